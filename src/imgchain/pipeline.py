from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

from .artifacts import TempArtifacts, extension_of
from .errors import EmptyPipelineError, PipelineError
from .events import Emitter, StepEvent, now_ns
from .normalize import OperationNormalizer
from .routines import FamilyRoutines, parse_format
from .types import CanonicalOperation, OperationDescriptor, PipelineResult

logger = logging.getLogger("imgchain.pipeline")

DEFAULT_OUTPUT_PREFIX = "processed_"

RawOperation = Union[OperationDescriptor, Mapping[str, Any]]


def _requested_extension(op: CanonicalOperation) -> Optional[str]:
    fmt = parse_format(op.params.get("format"))
    return f".{fmt}" if fmt else None


class PipelineExecutor:
    """Run an ordered list of operations, feeding each step's output to the next.

    Steps run strictly one after another; the awaited engine call inside a
    routine is the only suspension point. Intermediate files live in
    `out_dir` under unique names and are removed as soon as their successor
    exists. On failure every file the run created is removed and the
    original exception propagates.
    """

    def __init__(
        self,
        routines: FamilyRoutines,
        normalizer: Optional[OperationNormalizer] = None,
        *,
        on_event: Optional[Emitter] = None,
    ):
        self.routines = routines
        self.normalizer = normalizer or OperationNormalizer()
        self.on_event = on_event

    def _emit(self, event: StepEvent) -> None:
        if self.on_event:
            try:
                self.on_event(event)
            except Exception:
                # A broken listener must not break the pipeline.
                logger.warning("event handler raised for %s", event.kind, exc_info=True)

    async def run(
        self,
        *,
        seed_path: Union[str, Path],
        base_name: str,
        operations: Iterable[RawOperation],
        out_dir: Union[str, Path],
        prefix: str = DEFAULT_OUTPUT_PREFIX,
    ) -> PipelineResult:
        ops: List[RawOperation] = list(operations)
        if not ops:
            raise EmptyPipelineError()

        seed = Path(seed_path)
        total = len(ops)
        current = seed
        commands: List[str] = []

        with TempArtifacts(Path(out_dir), protected=[seed]) as temps:
            for i, raw in enumerate(ops):
                family: Optional[str] = None
                try:
                    op = self.normalizer.normalize(raw, step=i)
                    family = op.family_name

                    if i == total - 1:
                        ext = _requested_extension(op) or extension_of(current)
                        proposed = temps.final_path(prefix, base_name, ext)
                    else:
                        proposed = temps.temp_path(i, extension_of(current))

                    logger.info(f"[step {i + 1}/{total}] {family} …")
                    self._emit(StepEvent(kind="step.start", step=i, total=total, family=family, ts_ns=now_ns()))

                    outcome = await self.routines.dispatch(op, current, proposed)
                except Exception as exc:
                    if isinstance(exc, PipelineError):
                        if exc.step is None:
                            exc.step = i
                        if exc.family is None:
                            exc.family = family
                    logger.error(f"[step {i + 1}/{total}] {family or 'operation'} failed: {exc}")
                    self._emit(
                        StepEvent(kind="step.error", step=i, total=total, family=family, ts_ns=now_ns(), error=str(exc))
                    )
                    raise

                # The routine may have changed the extension (shapeCrop, convert).
                temps.register(outcome.output_path)
                commands.append(outcome.command)

                if current != seed and current != outcome.output_path:
                    temps.discard(current)
                current = outcome.output_path

                self._emit(
                    StepEvent(
                        kind="step.end",
                        step=i,
                        total=total,
                        family=family,
                        ts_ns=now_ns(),
                        command=outcome.command,
                        output=current.name,
                    )
                )
                logger.info(f"[step {i + 1}/{total}] {family} ✓")

            temps.keep(current)

        return PipelineResult(final_path=current, final_filename=current.name, commands=commands)

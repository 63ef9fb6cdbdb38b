from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Literal, Optional

EventKind = Literal["step.start", "step.end", "step.error"]


@dataclass(frozen=True)
class StepEvent:
    """
    A structured event emitted by the pipeline executor.

    - kind="step.start": a step is about to call the engine
    - kind="step.end": the step finished; `command` and `output` are set
    - kind="step.error": the step failed; `error` is set and the run stops
    """

    kind: EventKind
    step: int
    total: int
    family: Optional[str]
    ts_ns: int
    command: Optional[str] = None
    output: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "kind": self.kind,
            "step": self.step,
            "total": self.total,
            "family": self.family,
            "ts_ns": self.ts_ns,
        }
        if self.command is not None:
            d["command"] = self.command
        if self.output is not None:
            d["output"] = self.output
        if self.error is not None:
            d["error"] = self.error
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


Emitter = Callable[[StepEvent], None]


def now_ns() -> int:
    return time.time_ns()

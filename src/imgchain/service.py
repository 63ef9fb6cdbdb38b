from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

import httpx

from .config import ServiceConfig
from .engine import TransformationEngine
from .errors import EmptyPipelineError
from .events import Emitter
from .magick import MagickEngine
from .normalize import OperationNormalizer
from .pipeline import PipelineExecutor, RawOperation
from .resources import ResourceResolver
from .routines import FamilyRoutines
from .types import ProcessResult

logger = logging.getLogger("imgchain.service")


class ImageProcessingService:
    """Resolve a filename or URL, then run an operation chain on it."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        engine: Optional[TransformationEngine] = None,
        normalizer: Optional[OperationNormalizer] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        on_event: Optional[Emitter] = None,
    ):
        self.config = config or ServiceConfig.from_env()
        self.config.ensure_dirs()
        self.engine = engine or MagickEngine(self.config.magick_binary)
        self.resolver = ResourceResolver(
            self.config.uploads_dir,
            timeout_s=self.config.download_timeout_s,
            client=http_client,
        )
        self.executor = PipelineExecutor(
            FamilyRoutines(self.engine, uploads_dir=self.config.uploads_dir),
            normalizer,
            on_event=on_event,
        )

    async def process(self, identifier: str, operations: Iterable[RawOperation]) -> ProcessResult:
        ops = list(operations)
        if not ops:
            raise EmptyPipelineError()
        source = await self.resolver.resolve(identifier)
        logger.info(f"[process] {source.filename} ({source.provenance})")
        result = await self.executor.run(
            seed_path=source.path,
            base_name=Path(source.filename).stem,
            operations=ops,
            out_dir=self.config.output_dir,
            prefix=self.config.output_prefix,
        )
        return ProcessResult(
            output_file=result.final_filename,
            path=result.final_path,
            commands=result.commands,
            source=source.provenance,
            requested=identifier,
        )

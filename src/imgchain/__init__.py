"""imgchain: chained ImageMagick operations with multi-dialect operation names."""

from .config import ServiceConfig
from .normalize import OperationNormalizer
from .pipeline import PipelineExecutor
from .service import ImageProcessingService
from .types import CanonicalOperation, Family, OperationDescriptor, PipelineResult, ProcessResult

__all__ = [
    "CanonicalOperation",
    "Family",
    "ImageProcessingService",
    "OperationDescriptor",
    "OperationNormalizer",
    "PipelineExecutor",
    "PipelineResult",
    "ProcessResult",
    "ServiceConfig",
]

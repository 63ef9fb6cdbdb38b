from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Union


class Family(str, Enum):
    RESIZE = "resize"
    CROP = "crop"
    SHAPE_CROP = "shapeCrop"
    ROTATE = "rotate"
    CONVERT = "convert"
    WATERMARK = "watermark"
    ADJUST = "adjust"
    TRIM = "trim"
    EXTENT = "extent"
    FLIP = "flip"
    FLOP = "flop"
    TRANSPOSE = "transpose"
    TRANSVERSE = "transverse"
    FILTER = "filter"
    EFFECT = "effect"


# Families a raw descriptor may name directly. filter/effect always go
# through a prefixed, aliased or colon-qualified spelling.
BASE_FAMILIES = frozenset(f for f in Family if f not in (Family.FILTER, Family.EFFECT))

Provenance = Literal["local", "remote"]


@dataclass
class OperationDescriptor:
    """A caller-supplied operation, spelled however the caller likes."""

    type: Optional[str]
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, raw: Union["OperationDescriptor", Mapping[str, Any]]) -> "OperationDescriptor":
        if isinstance(raw, OperationDescriptor):
            return raw
        if not isinstance(raw, Mapping):
            raise TypeError(f"Operation must be a mapping, got {type(raw).__name__}")
        op_type = raw.get("type")
        params = raw.get("params") or {}
        if not isinstance(params, Mapping):
            raise TypeError(f"Operation params must be a mapping, got {type(params).__name__}")
        return cls(type=op_type if op_type is None else str(op_type), params=dict(params))


@dataclass(frozen=True)
class CanonicalOperation:
    # `family` is a plain string only when normalization passed an
    # unrecognized spelling through; dispatch rejects those.
    family: Union[Family, str]
    variant: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def family_name(self) -> str:
        return self.family.value if isinstance(self.family, Family) else str(self.family)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"family": self.family_name, "params": dict(self.params)}
        if self.variant is not None:
            d["variant"] = self.variant
        return d


@dataclass(frozen=True)
class StepOutcome:
    command: str
    output_path: Path


@dataclass(frozen=True)
class PipelineResult:
    final_path: Path
    final_filename: str
    commands: List[str]


@dataclass(frozen=True)
class ResolvedSource:
    path: Path
    filename: str
    provenance: Provenance
    requested: str


@dataclass(frozen=True)
class ProcessResult:
    output_file: str
    path: Path
    commands: List[str]
    source: Provenance
    requested: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "outputFile": self.output_file,
            "path": f"/output/{self.output_file}",
            "commands": list(self.commands),
            "source": self.source,
            "requested": self.requested,
        }

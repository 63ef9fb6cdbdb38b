from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ServiceConfig(BaseModel):
    """
    Configuration for the processing service.

    Every field can be overridden from the environment, see `from_env()`.
    Both directories are created on demand by `ensure_dirs()`.
    """

    uploads_dir: Path = Field(default=Path("uploads"))
    output_dir: Path = Field(default=Path("output"))
    output_prefix: str = Field(default="processed_")

    # Remote sources only; pipeline steps themselves have no deadline.
    download_timeout_s: float = Field(default=30.0, gt=0)

    # Explicit ImageMagick executable; None means look up magick/convert on PATH.
    magick_binary: Optional[str] = Field(default=None)

    log_level: str = Field(default="INFO")

    @field_validator("output_prefix")
    @classmethod
    def _validate_prefix(cls, v: str) -> str:
        if "/" in v or "\\" in v:
            raise ValueError("output_prefix must not contain path separators")
        return v

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v}")
        return level

    def ensure_dirs(self) -> None:
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """
        Load config overrides from environment variables.

        Supported env vars (optional):
          - IMGCHAIN_UPLOADS_DIR
          - IMGCHAIN_OUTPUT_DIR
          - IMGCHAIN_OUTPUT_PREFIX
          - IMGCHAIN_DOWNLOAD_TIMEOUT_S
          - IMGCHAIN_MAGICK_BINARY
          - IMGCHAIN_LOG_LEVEL
        """
        data = {}
        if os.getenv("IMGCHAIN_UPLOADS_DIR"):
            data["uploads_dir"] = Path(os.environ["IMGCHAIN_UPLOADS_DIR"])
        if os.getenv("IMGCHAIN_OUTPUT_DIR"):
            data["output_dir"] = Path(os.environ["IMGCHAIN_OUTPUT_DIR"])
        if os.getenv("IMGCHAIN_OUTPUT_PREFIX"):
            data["output_prefix"] = os.environ["IMGCHAIN_OUTPUT_PREFIX"]
        if os.getenv("IMGCHAIN_DOWNLOAD_TIMEOUT_S"):
            data["download_timeout_s"] = float(os.environ["IMGCHAIN_DOWNLOAD_TIMEOUT_S"])
        if os.getenv("IMGCHAIN_MAGICK_BINARY"):
            data["magick_binary"] = os.environ["IMGCHAIN_MAGICK_BINARY"]
        if os.getenv("IMGCHAIN_LOG_LEVEL"):
            data["log_level"] = os.environ["IMGCHAIN_LOG_LEVEL"]
        return cls(**data)

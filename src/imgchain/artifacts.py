from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Set

logger = logging.getLogger("imgchain.artifacts")


def unique_token() -> str:
    """Millisecond timestamp plus a random suffix; unique across concurrent requests."""
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9):09d}"


def extension_of(path: Path, default: str = ".jpg") -> str:
    return path.suffix or default


def discard(path: Path) -> bool:
    """Delete `path` if it exists. Never raises; returns True when a file was removed."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.warning("failed to delete temp artifact %s: %s", path, exc)
        return False
    logger.debug("deleted %s", path)
    return True


@dataclass
class TempArtifacts:
    """Tracks every file a pipeline run writes and deletes the ones it no longer needs.

    Paths are registered as they are allocated. On exit everything that was
    registered and not explicitly kept is deleted, whether the run succeeded
    or failed. `protected` paths (the seed image) are never touched.
    """

    out_dir: Path
    protected: Iterable[Path] = ()
    _registered: List[Path] = field(default_factory=list, init=False)
    _kept: Set[Path] = field(default_factory=set, init=False)
    _protected: Set[Path] = field(default_factory=set, init=False)

    def __post_init__(self) -> None:
        self.out_dir = Path(self.out_dir)
        self.out_dir.mkdir(parents=True, exist_ok=True)
        self._protected = {Path(p) for p in self.protected}

    def __enter__(self) -> "TempArtifacts":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def register(self, path: Path) -> Path:
        path = Path(path)
        if path not in self._protected and path not in self._registered:
            self._registered.append(path)
        return path

    def temp_path(self, index: int, ext: str) -> Path:
        return self.register(self.out_dir / f"temp_{unique_token()}_{index}{ext}")

    def final_path(self, prefix: str, base_name: str, ext: str) -> Path:
        # Registered too, so a failing last step does not leave a partial file.
        return self.register(self.out_dir / f"{prefix}{unique_token()}_{base_name}{ext}")

    def keep(self, path: Path) -> None:
        self._kept.add(Path(path))

    def discard(self, path: Path) -> bool:
        path = Path(path)
        if path in self._protected or path in self._kept:
            return False
        return discard(path)

    def release(self, *, keep: Optional[Path] = None) -> List[Path]:
        if keep is not None:
            self.keep(keep)
        removed: List[Path] = []
        for path in self._registered:
            if path in self._kept or path in self._protected:
                continue
            if discard(path):
                removed.append(path)
        self._registered = [p for p in self._registered if p in self._kept]
        return removed

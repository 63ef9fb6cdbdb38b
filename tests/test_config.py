from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from imgchain.config import ServiceConfig


def test_defaults():
    cfg = ServiceConfig()
    assert cfg.uploads_dir == Path("uploads")
    assert cfg.output_prefix == "processed_"
    assert cfg.download_timeout_s == 30.0
    assert cfg.magick_binary is None


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("IMGCHAIN_UPLOADS_DIR", str(tmp_path / "in"))
    monkeypatch.setenv("IMGCHAIN_OUTPUT_DIR", str(tmp_path / "out"))
    monkeypatch.setenv("IMGCHAIN_OUTPUT_PREFIX", "edit_")
    monkeypatch.setenv("IMGCHAIN_DOWNLOAD_TIMEOUT_S", "5")
    monkeypatch.setenv("IMGCHAIN_LOG_LEVEL", "debug")
    cfg = ServiceConfig.from_env()
    assert cfg.output_dir == tmp_path / "out"
    assert cfg.output_prefix == "edit_"
    assert cfg.download_timeout_s == 5.0
    assert cfg.log_level == "DEBUG"

    cfg.ensure_dirs()
    assert (tmp_path / "in").is_dir()
    assert (tmp_path / "out").is_dir()


@pytest.mark.parametrize("field, value", [("output_prefix", "a/b"), ("download_timeout_s", 0), ("log_level", "loud")])
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        ServiceConfig(**{field: value})

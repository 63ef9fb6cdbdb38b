from __future__ import annotations

import json

from typer.testing import CliRunner

from imgchain.cli import app

runner = CliRunner()


def test_normalize_prints_canonical_family():
    ops = json.dumps([{"type": "filter_sepia"}, {"type": "effects:blur"}])
    result = runner.invoke(app, ["normalize", ops])
    assert result.exit_code == 0
    assert "filter" in result.output
    assert "sepia" in result.output
    assert "effect" in result.output


def test_normalize_rejects_bare_filter():
    result = runner.invoke(app, ["normalize", json.dumps({"operations": [{"type": "filter"}]})])
    assert result.exit_code == 1
    assert "Invalid" in result.output


def test_process_missing_source(tmp_path, monkeypatch):
    monkeypatch.setenv("IMGCHAIN_LOG_LEVEL", "WARNING")
    result = runner.invoke(
        app,
        [
            "process",
            "nope.jpg",
            "--ops",
            json.dumps([{"type": "flip"}]),
            "--uploads-dir",
            str(tmp_path / "u"),
            "--output-dir",
            str(tmp_path / "o"),
        ],
    )
    assert result.exit_code == 1
    assert "File not found" in result.output

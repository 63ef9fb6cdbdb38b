from __future__ import annotations

from imgchain.artifacts import TempArtifacts, discard, unique_token


def test_unique_tokens_differ():
    assert len({unique_token() for _ in range(200)}) == 200


def test_release_removes_everything_but_kept_and_protected(tmp_path):
    seed = tmp_path / "seed.jpg"
    seed.write_bytes(b"s")
    with TempArtifacts(tmp_path / "out", protected=[seed]) as temps:
        a = temps.temp_path(0, ".jpg")
        b = temps.final_path("processed_", "seed", ".jpg")
        a.write_bytes(b"a")
        b.write_bytes(b"b")
        temps.register(seed)
        temps.keep(b)
    assert not a.exists()
    assert b.exists()
    assert seed.exists()
    assert b.name.startswith("processed_") and b.name.endswith("_seed.jpg")


def test_release_on_exception(tmp_path):
    try:
        with TempArtifacts(tmp_path) as temps:
            p = temps.temp_path(1, ".png")
            p.write_bytes(b"x")
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert not p.exists()


def test_discard_is_quiet(tmp_path):
    assert discard(tmp_path / "never-existed") is False
    f = tmp_path / "f"
    f.write_text("x")
    assert discard(f) is True

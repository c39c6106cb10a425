from __future__ import annotations

import json
from pathlib import Path

import pytest

from latexsvg.adapters.pipeline import CommandRenderPipeline
from latexsvg.api import open_vault
from latexsvg.core.config import PluginData
from latexsvg.core.fingerprint import Fingerprinter


def test_open_vault_restores_and_persists_references(
    tmp_path: Path, pipeline, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("LATEXSVG_CACHE_DIR", raising=False)
    fingerprinter = Fingerprinter()
    kept = fingerprinter.compute("$x$")
    cache_dir = tmp_path / ".latexsvg" / "svg-cache"
    cache_dir.mkdir(parents=True)
    (cache_dir / f"{kept}.svg").write_text("<svg/>", encoding="utf-8")
    settings_path = tmp_path / ".latexsvg" / "settings.json"
    settings_path.write_text(
        json.dumps({"gcDelay": 5, "gc_delay": 30, "cache": [[kept, ["a.md"]]]}),
        encoding="utf-8",
    )

    with open_vault(tmp_path, pipeline=pipeline) as coordinator:
        assert coordinator.references(kept) == {"a.md"}
        assert coordinator.lookup("$x$") is not None
        artifact = coordinator.request("$y$", "b.md")

    saved = json.loads(settings_path.read_text(encoding="utf-8"))
    assert saved["gc_delay"] == 30
    assert saved["cache"] == {kept: ["a.md"], artifact.fingerprint: ["b.md"]}
    assert pipeline.calls == [artifact.fingerprint]


def test_open_vault_builds_command_pipeline_from_settings(tmp_path: Path) -> None:
    settings = PluginData(command="render {input-path}", timeout=4, preamble="")

    coordinator = open_vault(tmp_path, settings=settings)
    try:
        assert isinstance(coordinator.pipeline, CommandRenderPipeline)
        assert coordinator.pipeline.command == "render {input-path}"
        assert coordinator.pipeline.timeout == 4
        assert coordinator.fingerprinter.normalize(" $x$ ") == "$x$"
    finally:
        coordinator.close()


def test_open_vault_disabled_cache_removes_directory_on_close(tmp_path: Path, pipeline) -> None:
    settings = PluginData(enable_cache=False, cache_dir=Path("cache"))

    with open_vault(tmp_path, settings=settings, pipeline=pipeline) as coordinator:
        coordinator.request("$x$", "a.md")
        coordinator.store.root.mkdir(parents=True, exist_ok=True)

    assert not (tmp_path / "cache").exists()

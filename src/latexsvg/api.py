"""Assemble a cache coordinator for a vault from its persisted settings."""

from __future__ import annotations

from pathlib import Path

from latexsvg.adapters.host import Vault
from latexsvg.adapters.pipeline import CommandRenderPipeline, RenderPipeline
from latexsvg.adapters.scanner import MarkdownScanner
from latexsvg.cache.coordinator import CacheCoordinator
from latexsvg.cache.store import ArtifactStore
from latexsvg.core.config import PluginData
from latexsvg.core.diagnostics import DiagnosticEmitter
from latexsvg.core.fingerprint import Fingerprinter


def open_vault(
    vault: Vault | str | Path,
    *,
    settings: PluginData | None = None,
    pipeline: RenderPipeline | None = None,
    emitter: DiagnosticEmitter | None = None,
) -> CacheCoordinator:
    """Return a coordinator wired to ``vault``, with its references restored.

    ``settings`` defaults to the vault's settings file. The persisted
    reference index is written back to that same file.
    """
    if not isinstance(vault, Vault):
        vault = Vault(vault)

    settings_store = vault.settings_store()
    data = settings if settings is not None else settings_store.load()

    fingerprinter = Fingerprinter(preamble=data.preamble)
    coordinator = CacheCoordinator(
        ArtifactStore(vault.cache_dir(data)),
        pipeline or CommandRenderPipeline(data.command, timeout=data.timeout),
        MarkdownScanner(vault, fingerprinter, languages=data.languages),
        fingerprinter=fingerprinter,
        enabled=data.enable_cache,
        gc_delay=data.gc_delay,
        persist=settings_store.save_references,
        emitter=emitter,
    )
    coordinator.load(data.cache)
    return coordinator


__all__ = ["open_vault"]

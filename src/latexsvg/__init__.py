"""Render LaTeX snippets into SVG through a reference-counted cache."""

from __future__ import annotations

from latexsvg.adapters.host import Vault
from latexsvg.adapters.markdown import PreviewDocument, render_preview
from latexsvg.adapters.pipeline import CommandRenderPipeline, RenderPipeline
from latexsvg.adapters.scanner import DocumentScanner, MarkdownScanner, Snippet, extract_snippets
from latexsvg.api import open_vault
from latexsvg.cache import Artifact, ArtifactStore, CacheCoordinator, ReferenceIndex, SweepReport
from latexsvg.core.config import PluginData, RenderSettings, SettingsStore
from latexsvg.core.exceptions import (
    ArtifactStoreError,
    ConsistencyWarning,
    DocumentMissingError,
    LatexSvgError,
    RenderError,
    SettingsError,
)
from latexsvg.core.fingerprint import Fingerprinter
from latexsvg.version import get_version


__version__ = get_version()

__all__ = [
    "Artifact",
    "ArtifactStore",
    "ArtifactStoreError",
    "CacheCoordinator",
    "CommandRenderPipeline",
    "ConsistencyWarning",
    "DocumentMissingError",
    "DocumentScanner",
    "Fingerprinter",
    "LatexSvgError",
    "MarkdownScanner",
    "PluginData",
    "PreviewDocument",
    "ReferenceIndex",
    "RenderError",
    "RenderPipeline",
    "RenderSettings",
    "SettingsError",
    "SettingsStore",
    "Snippet",
    "SweepReport",
    "Vault",
    "__version__",
    "extract_snippets",
    "open_vault",
    "render_preview",
]

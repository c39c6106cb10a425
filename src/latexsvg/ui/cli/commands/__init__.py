"""CLI command implementations exposed via `latexsvg.ui.cli`."""

from __future__ import annotations

from .cache import clear, forget, gc, status
from .render import render


__all__ = ["clear", "forget", "gc", "render", "status"]

"""CLI-specific diagnostic emitter implementation."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from latexsvg.core.diagnostics import DiagnosticEmitter, format_event_message

from .state import CLIState, get_cli_state


class CliEmitter(DiagnosticEmitter):
    """Emit diagnostics through the rich consoles of a captured CLI state.

    The state is captured up front because events also arrive from worker
    threads, where the Typer context is not available.
    """

    def __init__(self, state: CLIState | None = None, *, debug_enabled: bool | None = None) -> None:
        self._state = state or get_cli_state()
        if debug_enabled is None:
            debug_enabled = self._state.show_tracebacks
        self.debug_enabled = bool(debug_enabled)

    def _print(self, level: str, message: str, exc: BaseException | None) -> None:
        from rich.text import Text

        style = "red" if level == "error" else "yellow"
        text = Text.assemble((f"{level}: ", f"bold {style}"), (message, style))
        if exc is not None and self._state.verbosity >= 1:
            text.append(f"\ntype: {type(exc).__name__}", style=style)
        self._state.err_console.print(text)

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self._print("warning", message, exc)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        self._print("error", message, exc)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        if self._state.verbosity < 1:
            return
        message = format_event_message(name, payload)
        if message:
            self._state.console.log(message)


__all__ = ["CliEmitter"]

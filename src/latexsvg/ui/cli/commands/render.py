"""Render the LaTeX snippets of one vault document."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import typer

from latexsvg.adapters.host import Vault
from latexsvg.adapters.markdown import SnippetOutcome, render_preview
from latexsvg.api import open_vault
from latexsvg.core.exceptions import DocumentMissingError, RenderError, SettingsError

from .._options import DocumentArgument, HtmlOutputOption, JobsOption, SvgDirectoryOption
from ..diagnostics import CliEmitter
from ..state import emit_error, get_cli_state


def render(
    document: DocumentArgument,
    html: HtmlOutputOption = None,
    output_dir: SvgDirectoryOption = None,
    jobs: JobsOption = 4,
) -> None:
    """Render every LaTeX block of DOCUMENT through the SVG cache."""
    state = get_cli_state()
    vault = Vault(state.vault_root)
    try:
        document_id = vault.document_id(document)
        text = vault.read_document(document_id)
        data = vault.settings_store().load()
    except (ValueError, DocumentMissingError, SettingsError) as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    with open_vault(vault, settings=data, emitter=CliEmitter(state)) as coordinator:
        preview = render_preview(
            text,
            coordinator,
            document_id,
            languages=data.languages,
            max_workers=jobs,
        )

    try:
        if output_dir is not None:
            _write_svgs(output_dir, Path(document_id).stem, preview.outcomes)
        if html is not None:
            html.parent.mkdir(parents=True, exist_ok=True)
            html.write_text(preview.html, encoding="utf-8")
    except OSError as exc:
        emit_error(f"Unable to write render output: {exc}", exception=exc)
        raise typer.Exit(code=1) from exc

    failures = preview.errors
    for outcome in failures:
        error = outcome.error
        emit_error(f"{document_id}:{outcome.snippet.start_line + 1}: {error}", exception=error)
        if isinstance(error, RenderError) and state.verbosity >= 1 and error.stderr.strip():
            state.err_console.print(error.stderr.strip(), markup=False, highlight=False)

    total = len(preview.outcomes)
    state.console.print(f"Rendered {total - len(failures)}/{total} snippet(s) from {document_id}")
    if failures:
        raise typer.Exit(code=1)


def _write_svgs(output_dir: Path, stem: str, outcomes: Sequence[SnippetOutcome]) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)
    for number, outcome in enumerate(outcomes, start=1):
        if outcome.artifact is not None:
            (output_dir / f"{stem}-{number}.svg").write_bytes(outcome.artifact.data)


__all__ = ["render"]

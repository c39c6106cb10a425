"""Maintenance commands for the SVG cache of a vault."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from rich import box
from rich.table import Table
import typer

from latexsvg.adapters.host import Vault
from latexsvg.api import open_vault
from latexsvg.cache.coordinator import CacheCoordinator
from latexsvg.core.exceptions import LatexSvgError

from .._options import DocumentArgument
from ..diagnostics import CliEmitter
from ..state import emit_error, emit_warning, get_cli_state


@contextmanager
def _coordinator() -> Iterator[CacheCoordinator]:
    state = get_cli_state()
    try:
        coordinator = open_vault(Vault(state.vault_root), emitter=CliEmitter(state))
    except LatexSvgError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc
    with coordinator:
        yield coordinator


def gc() -> None:
    """Rescan referencing documents and delete unused SVGs."""
    state = get_cli_state()
    with _coordinator() as coordinator:
        if not coordinator.enabled:
            state.console.print("Caching is disabled; nothing to collect.")
            return
        report = coordinator.garbage_collect()

    state.console.print(
        f"Scanned {len(report.scanned)} document(s), "
        f"evicted {len(report.evicted)} SVG(s), "
        f"removed {len(report.orphans)} orphan(s)."
    )
    for document_id in report.missing:
        emit_warning(f"'{document_id}' no longer exists; its references were dropped.")
    for document_id, reason in sorted(report.skipped.items()):
        emit_error(f"Skipped '{document_id}': {reason}")
    if not report.complete:
        raise typer.Exit(code=1)


def status() -> None:
    """List cached SVGs and the documents referencing them."""
    state = get_cli_state()
    with _coordinator() as coordinator:
        table = Table(
            title="Cached SVGs",
            box=box.SQUARE,
            show_edge=True,
            header_style="bold cyan",
        )
        table.add_column("Fingerprint", style="magenta")
        table.add_column("Size", justify="right")
        table.add_column("Documents", style="green")

        payload = coordinator.index.to_payload()
        if not payload:
            table.add_row("-", "-", "No cached snippets")
        for fingerprint, documents in payload.items():
            size = coordinator.store.size(fingerprint)
            table.add_row(
                fingerprint[:12],
                "-" if size is None else f"{size:,} B",
                "\n".join(documents) or "(unreferenced)",
            )
        state.console.print(table)
        state.console.print(f"Cache directory: {coordinator.store.root}")


def forget(document: DocumentArgument) -> None:
    """Drop DOCUMENT from every reference set, as if it had been deleted."""
    state = get_cli_state()
    vault = Vault(state.vault_root)
    try:
        document_id = vault.document_id(document)
    except ValueError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    with _coordinator() as coordinator:
        emptied = coordinator.forget_document(document_id)
        if emptied:
            coordinator.garbage_collect()
    state.console.print(f"Forgot {document_id}; {len(emptied)} SVG(s) no longer referenced.")


def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete every cached SVG and the persisted references."""
    state = get_cli_state()
    if not yes:
        typer.confirm("Delete the whole SVG cache?", abort=True)
    with _coordinator() as coordinator:
        try:
            coordinator.clear()
        except LatexSvgError as exc:
            emit_error(str(exc), exception=exc)
            raise typer.Exit(code=1) from exc
        root = coordinator.store.root
    state.console.print(f"Cleared {root}")


__all__ = ["clear", "forget", "gc", "status"]

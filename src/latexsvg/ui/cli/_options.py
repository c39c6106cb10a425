"""Shared Typer option definitions for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer


OUTPUT_PANEL = "Output"
RENDERING_PANEL = "Rendering"

DocumentArgument = Annotated[
    Path,
    typer.Argument(
        metavar="DOCUMENT",
        help="Markdown document, absolute or relative to the vault root.",
    ),
]

HtmlOutputOption = Annotated[
    Path | None,
    typer.Option(
        "--html",
        help="Write an HTML preview with every snippet replaced by its SVG.",
        dir_okay=False,
        rich_help_panel=OUTPUT_PANEL,
    ),
]

SvgDirectoryOption = Annotated[
    Path | None,
    typer.Option(
        "--output-dir",
        "-o",
        help="Copy each rendered SVG into this directory.",
        file_okay=False,
        rich_help_panel=OUTPUT_PANEL,
    ),
]

JobsOption = Annotated[
    int,
    typer.Option(
        "--jobs",
        "-j",
        min=1,
        help="Number of snippets rendered concurrently.",
        rich_help_panel=RENDERING_PANEL,
    ),
]

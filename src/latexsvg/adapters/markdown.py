"""Markdown preview replacing LaTeX fences with their cached SVG renders."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from html import escape
import re
from typing import TYPE_CHECKING, Any

from markdown import Markdown
from markdown.extensions import Extension
from markdown.preprocessors import Preprocessor
import yaml

from latexsvg.core.exceptions import LatexSvgError, RenderError

from .scanner import DEFAULT_LANGUAGES, Snippet, extract_snippets


if TYPE_CHECKING:
    from latexsvg.cache.coordinator import CacheCoordinator
    from latexsvg.cache.store import Artifact


DEFAULT_MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "toc"]
TAB_LENGTH = 4

_XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>\s*", re.IGNORECASE)


@dataclass(slots=True)
class SnippetOutcome:
    """Result of requesting one snippet."""

    snippet: Snippet
    artifact: Artifact | None = None
    error: LatexSvgError | None = None

    @property
    def ok(self) -> bool:
        return self.artifact is not None


@dataclass(slots=True)
class PreviewDocument:
    """HTML preview of a Markdown document."""

    html: str
    front_matter: dict[str, Any]
    outcomes: list[SnippetOutcome] = field(default_factory=list)

    @property
    def errors(self) -> list[SnippetOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


def split_front_matter(source: str) -> tuple[dict[str, Any], str]:
    """Split YAML front matter from Markdown content, returning metadata and body."""
    candidate = source.lstrip("\ufeff")
    prefix_len = len(source) - len(candidate)
    lines = candidate.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, source

    front_matter_lines: list[str] = []
    closing_index: int | None = None
    for idx, line in enumerate(lines[1:], start=1):
        stripped = line.strip()
        if stripped in {"---", "..."}:
            closing_index = idx
            break
        front_matter_lines.append(line)

    if closing_index is None:
        return {}, source

    try:
        metadata = yaml.safe_load("\n".join(front_matter_lines)) or {}
    except yaml.YAMLError:
        return {}, source

    if not isinstance(metadata, dict):
        metadata = {}

    body = "\n".join(lines[closing_index + 1 :])
    if source.endswith("\n"):
        body += "\n"
    return metadata, source[:prefix_len] + body


def render_snippets(
    coordinator: CacheCoordinator,
    snippets: Sequence[Snippet],
    document_id: str,
    *,
    max_workers: int = 4,
) -> list[SnippetOutcome]:
    """Request every snippet concurrently, collecting per-snippet failures."""

    def _request(snippet: Snippet) -> SnippetOutcome:
        try:
            artifact = coordinator.request(snippet.source, document_id)
        except LatexSvgError as exc:
            return SnippetOutcome(snippet=snippet, error=exc)
        return SnippetOutcome(snippet=snippet, artifact=artifact)

    if not snippets:
        return []
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        return list(executor.map(_request, snippets))


def svg_fragment(artifact: Artifact) -> str:
    """Wrap an SVG artifact for inline display."""
    svg = _XML_DECLARATION_RE.sub("", artifact.text, count=1)
    return f'<div class="latexsvg" data-fingerprint="{artifact.fingerprint}">{svg}</div>'


def error_fragment(error: LatexSvgError) -> str:
    """Render a failure in place of the image."""
    detail = error.details() if isinstance(error, RenderError) else str(error)
    return f'<pre class="latexsvg-error">{escape(detail)}</pre>'


def snippet_key(source: str, tab_length: int = TAB_LENGTH) -> str:
    """Return ``source`` as seen after python-markdown's whitespace normalisation."""
    return "\n".join(line.expandtabs(tab_length).rstrip() for line in source.split("\n"))


class _SnippetPreprocessor(Preprocessor):
    """Swap each LaTeX fence for the stashed HTML fragment of its source."""

    def __init__(
        self, md: Markdown, fragments: Mapping[str, str], languages: Sequence[str]
    ) -> None:
        super().__init__(md)
        self.fragments = dict(fragments)
        self.languages = tuple(languages)

    def run(self, lines: list[str]) -> list[str]:
        snippets = extract_snippets("\n".join(lines), self.languages)
        if not snippets:
            return lines

        result: list[str] = []
        cursor = 0
        for snippet in snippets:
            fragment = self.fragments.get(snippet_key(snippet.source, self.md.tab_length))
            if fragment is None:
                continue
            result.extend(lines[cursor : snippet.start_line])
            placeholder = self.md.htmlStash.store(fragment)
            result.extend(["", placeholder, ""])
            cursor = snippet.end_line + 1
        result.extend(lines[cursor:])
        return result


class SnippetExtension(Extension):
    """Register the snippet preprocessor with fragments keyed by :func:`snippet_key`."""

    def __init__(
        self, fragments: Mapping[str, str], languages: Sequence[str] = DEFAULT_LANGUAGES
    ) -> None:
        super().__init__()
        self.fragments = dict(fragments)
        self.languages = tuple(languages)

    def extendMarkdown(self, md: Markdown) -> None:  # type: ignore[override]  # noqa: N802
        processor = _SnippetPreprocessor(md, self.fragments, self.languages)
        md.preprocessors.register(processor, "latexsvg_snippets", priority=27)


def render_preview(
    text: str,
    coordinator: CacheCoordinator,
    document_id: str,
    *,
    languages: Sequence[str] = DEFAULT_LANGUAGES,
    max_workers: int = 4,
) -> PreviewDocument:
    """Convert a Markdown document to HTML with its LaTeX snippets rendered."""
    front_matter, body = split_front_matter(text)
    snippets = extract_snippets(body, languages)
    outcomes = render_snippets(coordinator, snippets, document_id, max_workers=max_workers)

    fragments = {
        snippet_key(outcome.snippet.source): (
            svg_fragment(outcome.artifact)
            if outcome.artifact is not None
            else error_fragment(outcome.error or LatexSvgError("Snippet was not rendered"))
        )
        for outcome in outcomes
    }
    md = Markdown(
        extensions=[*DEFAULT_MARKDOWN_EXTENSIONS, SnippetExtension(fragments, languages)],
        tab_length=TAB_LENGTH,
    )
    html = md.convert(body)
    return PreviewDocument(html=html, front_matter=front_matter, outcomes=outcomes)


__all__ = [
    "DEFAULT_MARKDOWN_EXTENSIONS",
    "PreviewDocument",
    "SnippetExtension",
    "SnippetOutcome",
    "error_fragment",
    "render_preview",
    "render_snippets",
    "snippet_key",
    "split_front_matter",
    "svg_fragment",
]

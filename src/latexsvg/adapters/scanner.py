"""Locate LaTeX snippets in Markdown documents and fingerprint them."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import re
from typing import Protocol, runtime_checkable

from latexsvg.core.fingerprint import Fingerprinter

from .host import Vault


DEFAULT_LANGUAGES = ("latex",)

_FENCE_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})\s*([^`\s]*)")


@runtime_checkable
class DocumentScanner(Protocol):
    """Report the fingerprints a document currently embeds.

    Implementations raise :class:`~latexsvg.core.exceptions.DocumentMissingError`
    when the host no longer has the document.
    """

    def live_fingerprints(self, document_id: str) -> set[str]: ...


@dataclass(frozen=True, slots=True)
class Snippet:
    """Body of a fenced LaTeX block and its position in the document."""

    source: str
    start_line: int
    end_line: int
    language: str


def extract_snippets(
    text: str, languages: Iterable[str] = DEFAULT_LANGUAGES
) -> list[Snippet]:
    """Return every fenced block of ``text`` whose info string names a language.

    Line numbers are zero based: ``start_line`` is the opening fence and
    ``end_line`` the closing fence (or the last line for an unclosed block).
    """
    wanted = {language.lower() for language in languages}
    lines = text.splitlines()
    snippets: list[Snippet] = []
    index = 0
    total = len(lines)

    while index < total:
        match = _FENCE_RE.match(lines[index])
        if not match:
            index += 1
            continue

        token = match.group(1)
        language = match.group(2).lower()
        start = index
        index += 1
        body: list[str] = []
        closed = False
        while index < total:
            closing = _FENCE_RE.match(lines[index])
            if (
                closing
                and closing.group(1)[0] == token[0]
                and len(closing.group(1)) >= len(token)
                and not closing.group(2)
            ):
                closed = True
                break
            body.append(lines[index])
            index += 1

        end = index if closed else total - 1
        if language in wanted:
            snippets.append(
                Snippet(source="\n".join(body), start_line=start, end_line=end, language=language)
            )
        index += 1

    return snippets


class MarkdownScanner:
    """Scanner reading vault documents and hashing their snippets."""

    def __init__(
        self,
        host: Vault,
        fingerprinter: Fingerprinter,
        *,
        languages: Sequence[str] = DEFAULT_LANGUAGES,
    ) -> None:
        self.host = host
        self.fingerprinter = fingerprinter
        self.languages = tuple(languages)

    def snippets(self, document_id: str) -> list[Snippet]:
        text = self.host.read_document(document_id)
        return extract_snippets(text, self.languages)

    def live_fingerprints(self, document_id: str) -> set[str]:
        return {
            self.fingerprinter.compute(snippet.source) for snippet in self.snippets(document_id)
        }


__all__ = [
    "DEFAULT_LANGUAGES",
    "DocumentScanner",
    "MarkdownScanner",
    "Snippet",
    "extract_snippets",
]

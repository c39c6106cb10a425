"""Cache keys derived from normalised snippet source."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import re


DEFAULT_PREAMBLE = "\\documentclass{standalone}"

_FINGERPRINT_RE = re.compile(r"[0-9a-f]{64}")


@dataclass(frozen=True, slots=True)
class Fingerprinter:
    """Normalise snippets and hash them into stable cache keys.

    ``normalize`` is the single place where a snippet is turned into the text
    handed to the compiler. Rendering and document rescans both go through the
    same instance so that their fingerprints always agree.
    """

    preamble: str = DEFAULT_PREAMBLE

    def normalize(self, source: str) -> str:
        """Return the compiler-ready text for ``source``."""
        if not isinstance(source, str):
            raise TypeError(f"Snippet source must be a string, not {type(source).__name__}")
        body = source.strip()
        preamble = self.preamble.strip()
        if not preamble:
            return body
        return f"{preamble}\n{body}"

    def compute(self, source: str) -> str:
        """Return the fingerprint of ``source``."""
        return fingerprint_text(self.normalize(source))


def fingerprint_text(normalized: str) -> str:
    """Hash already-normalised text."""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def is_fingerprint(value: object) -> bool:
    """Return whether ``value`` has the shape of a fingerprint."""
    return isinstance(value, str) and _FINGERPRINT_RE.fullmatch(value) is not None


__all__ = ["DEFAULT_PREAMBLE", "Fingerprinter", "fingerprint_text", "is_fingerprint"]

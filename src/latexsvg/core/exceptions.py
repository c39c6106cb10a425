"""Custom exception hierarchy for the snippet render cache."""

from __future__ import annotations

from collections.abc import Sequence


class LatexSvgError(RuntimeError):
    """Base exception for snippet rendering and caching failures."""


class RenderError(LatexSvgError):
    """Raised when the external render command fails or times out."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
        timed_out: bool = False,
        command: str | Sequence[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out
        self.command = command

    def details(self) -> str:
        """Return the captured compiler output suitable for display."""
        parts = [str(self)]
        stderr = self.stderr.strip()
        stdout = self.stdout.strip()
        if stderr:
            parts.append(stderr)
        if stdout:
            parts.append(stdout)
        return "\n\n".join(parts)


class ArtifactStoreError(LatexSvgError):
    """Raised when the artifact directory cannot be read or written."""


class DocumentMissingError(LatexSvgError):
    """Raised when the host reports that a document no longer exists."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document '{document_id}' does not exist")
        self.document_id = document_id


class SettingsError(LatexSvgError):
    """Raised when the persisted settings cannot be loaded or saved."""


class ConsistencyWarning(UserWarning):
    """Emitted when the reference index and the artifact directory disagree."""


__all__ = [
    "ArtifactStoreError",
    "ConsistencyWarning",
    "DocumentMissingError",
    "LatexSvgError",
    "RenderError",
    "SettingsError",
]

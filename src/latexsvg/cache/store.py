"""Durable fingerprint to SVG mapping backed by a directory."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
import logging
import os
from pathlib import Path
import shutil
import tempfile

from latexsvg.core.exceptions import ArtifactStoreError
from latexsvg.core.fingerprint import is_fingerprint


_PARTIAL_PREFIX = ".partial-"
_log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Artifact:
    """Rendered image bytes for one fingerprint."""

    fingerprint: str
    data: bytes
    path: Path | None = None

    @property
    def text(self) -> str:
        """Decode the payload, SVG being a text format."""
        return self.data.decode("utf-8")


class ArtifactStore:
    """One file per fingerprint, written atomically under ``root``."""

    def __init__(self, root: Path, *, suffix: str = ".svg") -> None:
        self.root = Path(root)
        self.suffix = suffix

    def path_for(self, fingerprint: str) -> Path:
        """Return the file holding the artifact for ``fingerprint``."""
        if not is_fingerprint(fingerprint):
            raise ValueError(f"Invalid fingerprint: {fingerprint!r}")
        return self.root / f"{fingerprint}{self.suffix}"

    def get(self, fingerprint: str) -> Artifact | None:
        """Return the stored artifact, or ``None`` on a miss."""
        path = self.path_for(fingerprint)
        try:
            data = path.read_bytes()
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as exc:
            raise ArtifactStoreError(f"Unable to read cached SVG '{path}': {exc}") from exc

        if not data:
            # Nothing valid is ever written empty; treat it as a miss.
            _log.warning("Discarding empty cached SVG %s", path)
            self.delete(fingerprint)
            return None
        return Artifact(fingerprint=fingerprint, data=data, path=path)

    def put(self, fingerprint: str, data: bytes) -> Artifact:
        """Store ``data`` under ``fingerprint`` and return the new artifact."""
        path = self.path_for(fingerprint)
        if not data:
            raise ArtifactStoreError(f"Refusing to cache an empty SVG for {fingerprint}")

        tmp_name: str | None = None
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f"{_PARTIAL_PREFIX}{fingerprint}-", suffix=self.suffix, dir=self.root
            )
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise ArtifactStoreError(f"Unable to write cached SVG '{path}': {exc}") from exc
        finally:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
        return Artifact(fingerprint=fingerprint, data=data, path=path)

    def delete(self, fingerprint: str) -> bool:
        """Remove an artifact; return ``False`` when it was already absent."""
        path = self.path_for(fingerprint)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise ArtifactStoreError(f"Unable to delete cached SVG '{path}': {exc}") from exc
        return True

    def contains(self, fingerprint: str) -> bool:
        return self.path_for(fingerprint).is_file()

    def fingerprints(self) -> set[str]:
        """Return the fingerprints of every artifact on disk."""
        try:
            entries = list(self.root.iterdir())
        except FileNotFoundError:
            return set()
        except OSError as exc:
            raise ArtifactStoreError(
                f"Unable to list cache directory '{self.root}': {exc}"
            ) from exc

        found: set[str] = set()
        for entry in entries:
            if entry.suffix != self.suffix or entry.name.startswith(_PARTIAL_PREFIX):
                continue
            if is_fingerprint(entry.stem):
                found.add(entry.stem)
        return found

    def discard_partials(self) -> int:
        """Remove temporary files left behind by interrupted writes."""
        if not self.root.is_dir():
            return 0
        removed = 0
        for entry in self.root.glob(f"{_PARTIAL_PREFIX}*"):
            with contextlib.suppress(OSError):
                entry.unlink()
                removed += 1
        return removed

    def size(self, fingerprint: str) -> int | None:
        try:
            return self.path_for(fingerprint).stat().st_size
        except OSError:
            return None

    def clear(self) -> bool:
        """Remove the whole cache directory."""
        if not self.root.exists():
            return False
        try:
            shutil.rmtree(self.root)
        except OSError as exc:
            raise ArtifactStoreError(
                f"Unable to remove cache directory '{self.root}': {exc}"
            ) from exc
        return True


__all__ = ["Artifact", "ArtifactStore"]

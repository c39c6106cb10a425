"""Filesystem vault standing in for the host editor."""

from __future__ import annotations

from collections.abc import Iterator
import os
from pathlib import Path, PurePosixPath

from latexsvg.core.config import RenderSettings, SettingsStore
from latexsvg.core.exceptions import DocumentMissingError


DEFAULT_CONFIG_DIR = ".latexsvg"
SETTINGS_FILENAME = "settings.json"
CACHE_DIRNAME = "svg-cache"
DOCUMENT_SUFFIXES = (".md", ".markdown")


class Vault:
    """A directory of Markdown documents with a hidden configuration folder.

    Document identifiers are POSIX paths relative to ``root``.
    """

    def __init__(self, root: str | Path, *, config_dir: str = DEFAULT_CONFIG_DIR) -> None:
        self.root = Path(root).expanduser().resolve()
        self.config_dir = self.root / config_dir

    @property
    def settings_path(self) -> Path:
        return self.config_dir / SETTINGS_FILENAME

    def settings_store(self) -> SettingsStore:
        return SettingsStore(self.settings_path)

    def cache_dir(self, settings: RenderSettings | None = None) -> Path:
        """Resolve the artifact directory.

        ``LATEXSVG_CACHE_DIR`` wins over the ``cache_dir`` setting, which wins
        over the default folder inside the configuration directory.
        """
        env_cache = os.environ.get("LATEXSVG_CACHE_DIR")
        if env_cache:
            return Path(env_cache).expanduser()
        if settings is not None and settings.cache_dir is not None:
            candidate = Path(settings.cache_dir).expanduser()
            return candidate if candidate.is_absolute() else self.root / candidate
        return self.config_dir / CACHE_DIRNAME

    def document_id(self, path: str | Path) -> str:
        """Return the identifier of ``path``, which must live inside the vault."""
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.root / candidate
        resolved = candidate.resolve()
        try:
            relative = resolved.relative_to(self.root)
        except ValueError as exc:
            raise ValueError(f"'{path}' is outside the vault '{self.root}'") from exc
        return relative.as_posix()

    def path_for(self, document_id: str) -> Path:
        parts = PurePosixPath(document_id).parts
        if not parts or ".." in parts or PurePosixPath(document_id).is_absolute():
            raise ValueError(f"Invalid document identifier: {document_id!r}")
        return self.root.joinpath(*parts)

    def exists(self, document_id: str) -> bool:
        return self.path_for(document_id).is_file()

    def read_document(self, document_id: str) -> str:
        """Return the current text of a document."""
        path = self.path_for(document_id)
        try:
            return path.read_text(encoding="utf-8")
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as exc:
            raise DocumentMissingError(document_id) from exc

    def documents(self) -> Iterator[str]:
        """Yield the identifiers of every Markdown document, skipping hidden folders."""
        for path in sorted(self.root.rglob("*")):
            if path.suffix.lower() not in DOCUMENT_SUFFIXES or not path.is_file():
                continue
            relative = path.relative_to(self.root)
            if any(part.startswith(".") for part in relative.parts[:-1]):
                continue
            yield relative.as_posix()


__all__ = [
    "CACHE_DIRNAME",
    "DEFAULT_CONFIG_DIR",
    "SETTINGS_FILENAME",
    "Vault",
]

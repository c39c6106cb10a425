"""Settings model and the JSON file that persists it.

RenderSettings

`command` (`str`)
: Shell command template used to compile a snippet. Recognised placeholders
  are `{input-path}`, `{output-path-or-dir}`, `{output-dir}` and `{file-path}`
  (the bare fingerprint, without extension).

`timeout` (`float`)
: Seconds a render may run before its process group is killed.

`enable_cache` (`bool`)
: Keep rendered SVGs on disk and track which documents use them. When
  disabled every request renders and the cache directory is removed on close.

`gc_delay` (`float`)
: Quiet period, in seconds, after the last request before a cache sweep runs.

`preamble` (`str`)
: Text prepended to every snippet before hashing and compiling.

`languages` (`list[str]`)
: Fence info strings treated as LaTeX snippets in Markdown documents.

`cache_dir` (`Path | None`)
: Explicit artifact directory. Defaults to a folder inside the vault
  configuration directory.

PluginData

`cache` (`dict[str, list[str]]`)
: Persisted reference index, mapping each fingerprint to the sorted list of
  documents that embed it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import json
from pathlib import Path
from threading import Lock
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import SettingsError
from .fingerprint import DEFAULT_PREAMBLE


DEFAULT_COMMAND = (
    "latex -interaction=nonstopmode -halt-on-error {file-path}.tex"
    " && dvisvgm --no-fonts --exact-bbox {file-path}.dvi -o {output-path-or-dir}"
)


class RenderSettings(BaseModel):
    """User-facing settings controlling rendering and caching."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    command: str = Field(default=DEFAULT_COMMAND, description="Render command template")
    timeout: float = Field(default=10.0, gt=0, description="Render timeout in seconds")
    enable_cache: bool = Field(
        default=True,
        validation_alias=AliasChoices("enable_cache", "enableCache"),
        description="Keep rendered SVGs on disk",
    )
    gc_delay: float = Field(default=1.0, ge=0, description="Sweep debounce delay in seconds")
    preamble: str = DEFAULT_PREAMBLE
    languages: list[str] = Field(default_factory=lambda: ["latex"])
    cache_dir: Path | None = None

    @field_validator("languages", mode="before")
    @classmethod
    def _split_languages(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [token for token in value.replace(",", " ").split() if token]
        return value


class PluginData(RenderSettings):
    """Everything persisted in the settings file, references included."""

    cache: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("cache", mode="before")
    @classmethod
    def _coerce_cache(cls, value: Any) -> dict[str, list[str]]:
        return coerce_reference_payload(value)


def _unique_documents(value: Any) -> list[str]:
    # Sets serialised by JSON.stringify come back as "{}": nothing to recover.
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        return []
    if isinstance(value, Mapping):
        return []
    return sorted({str(item) for item in value if item})


def coerce_reference_payload(value: Any) -> dict[str, list[str]]:
    """Return a ``{fingerprint: [documents]}`` mapping from any stored shape.

    Accepts the current mapping layout as well as the legacy list of
    ``[fingerprint, documents]`` pairs.
    """
    if value is None:
        return {}

    pairs: Iterable[Any]
    if isinstance(value, Mapping):
        pairs = value.items()
    elif isinstance(value, (list, tuple)):
        pairs = value
    else:
        raise ValueError("cache must be a mapping or a list of pairs")

    result: dict[str, list[str]] = {}
    for pair in pairs:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            continue
        key, documents = pair
        if not key:
            continue
        merged = set(result.get(str(key), []))
        merged.update(_unique_documents(documents))
        result[str(key)] = sorted(merged)
    return result


class SettingsStore:
    """Read and write the JSON settings file shared with the host."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = Lock()

    def load(self) -> PluginData:
        """Return the persisted data, or defaults when the file does not exist."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return PluginData()
        except OSError as exc:
            raise SettingsError(f"Unable to read settings file '{self.path}': {exc}") from exc

        if not raw.strip():
            return PluginData()

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SettingsError(f"Settings file '{self.path}' is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise SettingsError(f"Settings file '{self.path}' must contain a JSON object.")

        try:
            return PluginData.model_validate(payload)
        except ValidationError as exc:
            raise SettingsError(f"Invalid settings in '{self.path}': {exc}") from exc

    def save(self, data: PluginData) -> None:
        """Persist ``data`` atomically."""
        with self._lock:
            self._write(data)

    def save_references(self, references: Mapping[str, Iterable[str]]) -> None:
        """Replace the persisted reference index, keeping every other setting."""
        with self._lock:
            data = self.load()
            data.cache = coerce_reference_payload(dict(references))
            self._write(data)

    def _write(self, data: PluginData) -> None:
        payload = data.model_dump(mode="json")
        tmp_path = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            raise SettingsError(f"Unable to write settings file '{self.path}': {exc}") from exc


__all__ = [
    "DEFAULT_COMMAND",
    "PluginData",
    "RenderSettings",
    "SettingsStore",
    "coerce_reference_payload",
]

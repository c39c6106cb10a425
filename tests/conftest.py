from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
import shlex
import sys
from threading import Event, Lock
from typing import Any

import pytest

from latexsvg.cache.coordinator import CacheCoordinator
from latexsvg.cache.store import ArtifactStore
from latexsvg.core.exceptions import DocumentMissingError, RenderError
from latexsvg.core.fingerprint import Fingerprinter


RENDER_SCRIPT = """\
import pathlib
import sys

source = pathlib.Path(sys.argv[1]).read_text(encoding="utf-8")
if "\\\\fail" in source:
    sys.stderr.write("! Undefined control sequence.\\n")
    sys.exit(1)
pathlib.Path(sys.argv[2]).write_text(
    '<?xml version="1.0"?>\\n<svg xmlns="http://www.w3.org/2000/svg"><desc>%d</desc></svg>'
    % len(source),
    encoding="utf-8",
)
"""


class FakePipeline:
    """Pipeline returning a deterministic SVG and recording every call."""

    def __init__(self, *, gate: Event | None = None, fail: bool = False) -> None:
        self.calls: list[str] = []
        self.started = Event()
        self.gate = gate
        self.fail = fail
        self._lock = Lock()

    def render(self, normalized_source: str, fingerprint: str) -> bytes:
        with self._lock:
            self.calls.append(fingerprint)
        self.started.set()
        if self.gate is not None:
            assert self.gate.wait(5), "render gate was never opened"
        if self.fail:
            raise RenderError("LaTeX failed", exit_code=1, stderr="! Undefined control sequence.")
        return f'<svg xmlns="http://www.w3.org/2000/svg"><desc>{fingerprint}</desc></svg>'.encode()


class FakeScanner:
    """Scanner backed by an in-memory ``{document: [sources]}`` mapping."""

    def __init__(self, fingerprinter: Fingerprinter) -> None:
        self.fingerprinter = fingerprinter
        self.documents: dict[str, list[str]] = {}
        self.failing: dict[str, Exception] = {}
        self.entered = Event()
        self.gate: Event | None = None

    def live_fingerprints(self, document_id: str) -> set[str]:
        self.entered.set()
        if self.gate is not None:
            assert self.gate.wait(5), "scan gate was never opened"
        if document_id in self.failing:
            raise self.failing[document_id]
        if document_id not in self.documents:
            raise DocumentMissingError(document_id)
        return {self.fingerprinter.compute(source) for source in self.documents[document_id]}


class RecordingEmitter:
    debug_enabled = False

    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self.events: list[tuple[str, dict[str, Any]]] = []
        self._lock = Lock()

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        with self._lock:
            self.warnings.append(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        with self._lock:
            self.errors.append(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        with self._lock:
            self.events.append((name, dict(payload)))

    def names(self) -> list[str]:
        with self._lock:
            return [name for name, _ in self.events]


class Persisted:
    def __init__(self) -> None:
        self.payloads: list[dict[str, list[str]]] = []

    def __call__(self, payload: Mapping[str, Iterable[str]]) -> None:
        self.payloads.append({key: list(value) for key, value in payload.items()})

    @property
    def last(self) -> dict[str, list[str]]:
        return self.payloads[-1]


@pytest.fixture
def fingerprinter() -> Fingerprinter:
    return Fingerprinter()


@pytest.fixture
def store(tmp_path: Path) -> ArtifactStore:
    return ArtifactStore(tmp_path / "svg-cache")


@pytest.fixture
def pipeline() -> FakePipeline:
    return FakePipeline()


@pytest.fixture
def scanner(fingerprinter: Fingerprinter) -> FakeScanner:
    return FakeScanner(fingerprinter)


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def persisted() -> Persisted:
    return Persisted()


@pytest.fixture
def coordinator(
    store: ArtifactStore,
    pipeline: FakePipeline,
    scanner: FakeScanner,
    fingerprinter: Fingerprinter,
    emitter: RecordingEmitter,
    persisted: Persisted,
) -> Iterator[CacheCoordinator]:
    instance = CacheCoordinator(
        store,
        pipeline,
        scanner,
        fingerprinter=fingerprinter,
        gc_delay=60.0,
        persist=persisted,
        emitter=emitter,
    )
    yield instance
    instance.close()


@pytest.fixture(scope="session")
def render_command(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Shell command rendering a snippet with a small Python script."""
    script = tmp_path_factory.mktemp("bin") / "fake_dvisvgm.py"
    script.write_text(RENDER_SCRIPT, encoding="utf-8")
    return (
        f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"
        " {input-path} {output-path-or-dir}"
    )

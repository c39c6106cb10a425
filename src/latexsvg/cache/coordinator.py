"""Cache coordinator: serve snippets, deduplicate renders, collect garbage."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future
from dataclasses import dataclass, field
import logging
from threading import Lock
from typing import TypeVar
import warnings

from latexsvg.adapters.pipeline import RenderPipeline
from latexsvg.adapters.scanner import DocumentScanner
from latexsvg.core.diagnostics import DiagnosticEmitter
from latexsvg.core.exceptions import (
    ArtifactStoreError,
    ConsistencyWarning,
    DocumentMissingError,
    SettingsError,
)
from latexsvg.core.fingerprint import Fingerprinter, fingerprint_text, is_fingerprint

from .concurrency import DebouncedSweeper, KeyedLock
from .references import ReferenceIndex
from .store import Artifact, ArtifactStore


_log = logging.getLogger(__name__)

T = TypeVar("T")

PersistCallback = Callable[[Mapping[str, list[str]]], None]


@dataclass(slots=True)
class SweepReport:
    """Outcome of one garbage collection pass."""

    scanned: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()
    skipped: dict[str, str] = field(default_factory=dict)
    evicted: tuple[str, ...] = ()
    orphans: tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.skipped


@dataclass(slots=True)
class _Claim:
    """Requests currently holding one ``(fingerprint, document)`` edge."""

    provisional: bool
    holders: int = 0
    resolved: bool = False


class CacheCoordinator:
    """Single owner of the reference index and the artifact store.

    Requests for different fingerprints never wait on each other. Requests for
    the same fingerprint join one in-flight resolution, and sweeps only evict a
    fingerprint while holding its lock with no reference left.
    """

    def __init__(
        self,
        store: ArtifactStore,
        pipeline: RenderPipeline,
        scanner: DocumentScanner,
        *,
        fingerprinter: Fingerprinter | None = None,
        enabled: bool = True,
        gc_delay: float = 1.0,
        persist: PersistCallback | None = None,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.scanner = scanner
        self.fingerprinter = fingerprinter or Fingerprinter()
        self.enabled = enabled
        self._persist_callback = persist
        self._emitter = emitter
        self._index = ReferenceIndex()
        self._pending: dict[str, Future[Artifact]] = {}
        self._pending_lock = Lock()
        self._claims: dict[tuple[str, str], _Claim] = {}
        self._claims_lock = Lock()
        self._locks = KeyedLock()
        self._sweep_lock = Lock()
        self._sweeper = (
            DebouncedSweeper(self.garbage_collect, delay=gc_delay) if enabled else None
        )
        self._closed = False

    # ------------------------------------------------------------------ state

    @property
    def index(self) -> ReferenceIndex:
        return self._index

    def fingerprint(self, source: str) -> str:
        return self.fingerprinter.compute(source)

    def references(self, fingerprint: str) -> frozenset[str]:
        return self._index.references(fingerprint)

    def load(self, payload: Mapping[str, Iterable[str]]) -> None:
        """Restore persisted references and reconcile them with the store.

        Call before serving requests. Entries without an artifact are dropped;
        artifact files without an entry are deleted.
        """
        if not self.enabled:
            return

        index = ReferenceIndex.from_payload(payload)
        on_disk = self.store.fingerprints()
        for fingerprint in sorted(index.fingerprints()):
            if is_fingerprint(fingerprint) and fingerprint in on_disk:
                continue
            index.drop(fingerprint)
            self._report_inconsistency(
                f"Cached SVG for {fingerprint} is missing; forgetting its references."
            )

        with self._claims_lock:
            self._index.reset(index.to_payload(), keep=list(self._claims))
            claimed = {fingerprint for fingerprint, _ in self._claims}

        self.store.discard_partials()
        for orphan in sorted(on_disk - index.fingerprints() - claimed):
            self._report_inconsistency(f"Removing cached SVG {orphan} with no references.")
            self.store.delete(orphan)

    # --------------------------------------------------------------- requests

    def request(self, source: str, document_id: str) -> Artifact:
        """Return the rendered artifact for ``source`` as embedded in ``document_id``.

        Raises :class:`RenderError` or :class:`ArtifactStoreError`; a failed
        request leaves no entry behind and the next one renders again.
        """
        normalized = self.fingerprinter.normalize(source)
        fingerprint = fingerprint_text(normalized)

        if not self.enabled:
            return self._join_or_start(
                fingerprint,
                lambda: Artifact(
                    fingerprint=fingerprint,
                    data=self._render(normalized, fingerprint, document_id),
                ),
            )

        # Recorded before resolving so a concurrent sweep never sees it unreferenced.
        edge = (fingerprint, document_id)
        self._claim(edge)
        resolved = False
        try:
            artifact = self._join_or_start(
                fingerprint, lambda: self._resolve(normalized, fingerprint, document_id)
            )
            resolved = True
            return artifact
        finally:
            self._release(edge, resolved=resolved)
            self.schedule_gc()

    def lookup(self, source: str) -> Artifact | None:
        """Return the cached artifact for ``source`` without rendering."""
        if not self.enabled:
            return None
        fingerprint = self.fingerprint(source)
        if fingerprint not in self._index:
            return None
        return self.store.get(fingerprint)

    def _claim(self, edge: tuple[str, str]) -> None:
        with self._claims_lock:
            created = self._index.add(*edge)
            claim = self._claims.get(edge)
            if claim is None:
                claim = self._claims[edge] = _Claim(provisional=created)
            elif created:
                claim.provisional = True
            claim.holders += 1

    def _release(self, edge: tuple[str, str], *, resolved: bool) -> None:
        """Drop the edge once its last holder leaves, unless one of them resolved it."""
        with self._claims_lock:
            claim = self._claims[edge]
            claim.holders -= 1
            claim.resolved = claim.resolved or resolved
            if claim.holders:
                return
            del self._claims[edge]
            if claim.provisional and not claim.resolved:
                self._index.discard(*edge)

    def _join_or_start(self, fingerprint: str, work: Callable[[], T]) -> T:
        with self._pending_lock:
            future = self._pending.get(fingerprint)
            owner = future is None
            if future is None:
                future = self._pending[fingerprint] = Future()

        if not owner:
            return future.result()

        try:
            result = work()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._pending_lock:
                self._pending.pop(fingerprint, None)

    def _resolve(self, normalized: str, fingerprint: str, document_id: str) -> Artifact:
        with self._locks.hold(fingerprint):
            artifact = self.store.get(fingerprint)
            if artifact is not None:
                self._event("cache_hit", {"fingerprint": fingerprint, "document": document_id})
                return artifact
            data = self._render(normalized, fingerprint, document_id)
            return self.store.put(fingerprint, data)

    def _render(self, normalized: str, fingerprint: str, document_id: str) -> bytes:
        self._event("render", {"fingerprint": fingerprint, "document": document_id})
        return self.pipeline.render(normalized, fingerprint)

    # ------------------------------------------------------- host notifications

    def forget_document(self, document_id: str) -> set[str]:
        """Handle a deleted document; returns fingerprints left unreferenced."""
        emptied = self._index.forget_document(document_id)
        self._persist()
        self.schedule_gc()
        return emptied

    def rename_document(self, old_id: str, new_id: str) -> int:
        """Handle a renamed document."""
        moved = self._index.rename_document(old_id, new_id)
        if moved:
            self._persist()
        return moved

    # ------------------------------------------------------ garbage collection

    def schedule_gc(self) -> None:
        """Re-arm the debounced sweep."""
        if self._sweeper is not None and not self._closed:
            self._sweeper.trigger()

    def wait_for_sweep(self, timeout: float | None = None) -> bool:
        """Block until no debounced sweep is pending or running."""
        if self._sweeper is None:
            return True
        return self._sweeper.wait_idle(timeout)

    def garbage_collect(self) -> SweepReport:
        """Rescan referencing documents and evict unreferenced artifacts."""
        if not self.enabled:
            return SweepReport()

        with self._sweep_lock:
            checkpoint = self._index.checkpoint()
            live: dict[str, set[str]] = {}
            missing: list[str] = []
            skipped: dict[str, str] = {}
            for document_id in sorted(checkpoint.documents):
                try:
                    live[document_id] = set(self.scanner.live_fingerprints(document_id))
                except DocumentMissingError:
                    live[document_id] = set()
                    missing.append(document_id)
                except Exception as exc:
                    skipped[document_id] = str(exc)
                    self._warning(f"Skipping '{document_id}' during cache sweep: {exc}", exc)

            unreferenced = self._index.prune(live, before=checkpoint.stamp)
            evicted = [
                fingerprint for fingerprint in sorted(unreferenced) if self._evict(fingerprint)
            ]
            try:
                orphans = self._reap_orphans()
            except ArtifactStoreError as exc:
                self._warning(f"Unable to scan cache directory: {exc}", exc)
                orphans = []
            self._persist()

        report = SweepReport(
            scanned=tuple(sorted(live)),
            missing=tuple(missing),
            skipped=skipped,
            evicted=tuple(evicted),
            orphans=tuple(orphans),
        )
        self._event(
            "sweep",
            {
                "scanned": len(report.scanned),
                "evicted": len(report.evicted) + len(report.orphans),
                "skipped": len(report.skipped),
            },
        )
        return report

    def _evict(self, fingerprint: str, *, reason: str = "unreferenced") -> bool:
        with self._locks.hold(fingerprint, blocking=False) as acquired:
            if not acquired:
                return False
            with self._pending_lock:
                if fingerprint in self._pending:
                    return False
            if not self._index.remove_if_unreferenced(fingerprint):
                return False
            try:
                self.store.delete(fingerprint)
            except ArtifactStoreError as exc:
                # The file is reaped as an orphan by a later sweep.
                self._warning(f"Unable to delete cached SVG {fingerprint}: {exc}", exc)
                return False
        self._event("evict", {"fingerprint": fingerprint, "reason": reason})
        return True

    def _reap_orphans(self) -> list[str]:
        reaped: list[str] = []
        for fingerprint in sorted(self.store.fingerprints() - self._index.fingerprints()):
            with self._locks.hold(fingerprint, blocking=False) as acquired:
                if not acquired or fingerprint in self._index:
                    continue
                with self._pending_lock:
                    if fingerprint in self._pending:
                        continue
                self._report_inconsistency(f"Removing cached SVG {fingerprint} with no references.")
                if not self.store.delete(fingerprint):
                    continue
            reaped.append(fingerprint)
            self._event("evict", {"fingerprint": fingerprint, "reason": "orphan"})
        return reaped

    # --------------------------------------------------------------- lifecycle

    def clear(self) -> None:
        """Delete every artifact and forget every reference."""
        with self._sweep_lock:
            self.store.clear()
            with self._claims_lock:
                # In-flight requests keep their edge until they resolve or fail.
                self._index.reset(keep=list(self._claims))
                for claim in self._claims.values():
                    claim.provisional = True
            self._persist()

    def close(self) -> None:
        """Stop background work and persist; wipe the directory when caching is off."""
        if self._closed:
            return
        self._closed = True
        if self._sweeper is not None:
            self._sweeper.stop()
        if self.enabled:
            self._persist()
        else:
            self.store.clear()

    def __enter__(self) -> CacheCoordinator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------- diagnostics

    def _persist(self) -> None:
        if self._persist_callback is None:
            return
        try:
            self._persist_callback(self._index.to_payload())
        except SettingsError as exc:
            self._warning(f"Unable to persist cache references: {exc}", exc)

    def _event(self, name: str, payload: Mapping[str, object]) -> None:
        if self._emitter is not None:
            self._emitter.event(name, payload)

    def _warning(self, message: str, exc: BaseException | None = None) -> None:
        if self._emitter is not None:
            self._emitter.warning(message, exc)
        else:
            _log.warning(message)

    def _report_inconsistency(self, message: str) -> None:
        if self._emitter is not None:
            self._emitter.warning(message)
        else:
            warnings.warn(message, ConsistencyWarning, stacklevel=3)


__all__ = ["CacheCoordinator", "PersistCallback", "SweepReport"]

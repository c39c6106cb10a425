"""Thread-safe mapping from fingerprints to the documents embedding them."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
import itertools
from threading import Lock


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """Point in the edge history captured at the start of a sweep."""

    stamp: int
    documents: frozenset[str]


@dataclass(slots=True)
class ReferenceIndex:
    """Fingerprint to document-set index.

    Each ``(fingerprint, document)`` edge remembers the stamp at which it was
    last recorded. A sweep only prunes edges that are not newer than its
    checkpoint, so references recorded while documents are being rescanned
    are never lost.
    """

    _edges: dict[str, dict[str, int]] = field(default_factory=dict)
    _clock: itertools.count = field(default_factory=lambda: itertools.count(1))
    _stamp: int = 0
    _lock: Lock = field(default_factory=Lock)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Iterable[str]]) -> ReferenceIndex:
        """Build an index from the persisted ``{fingerprint: [documents]}`` layout."""
        index = cls()
        index.reset(payload)
        return index

    def reset(
        self,
        payload: Mapping[str, Iterable[str]] | None = None,
        *,
        keep: Iterable[tuple[str, str]] = (),
    ) -> None:
        """Replace every edge in place with ``payload``, retaining the ``keep`` edges."""
        edges = {
            str(fingerprint): {str(document): 0 for document in set(documents)}
            for fingerprint, documents in (payload or {}).items()
        }
        with self._lock:
            for fingerprint, document_id in keep:
                stamp = self._edges.get(fingerprint, {}).get(document_id)
                if stamp is None:
                    stamp = self._tick()
                edges.setdefault(fingerprint, {})[document_id] = stamp
            self._edges = edges

    def to_payload(self) -> dict[str, list[str]]:
        """Return the persisted layout: sorted, de-duplicated document lists."""
        with self._lock:
            return {
                fingerprint: sorted(documents)
                for fingerprint, documents in sorted(self._edges.items())
            }

    def _tick(self) -> int:
        self._stamp = next(self._clock)
        return self._stamp

    def add(self, fingerprint: str, document_id: str) -> bool:
        """Record that ``document_id`` embeds ``fingerprint``; return whether it is new."""
        created, _ = self.track(fingerprint, document_id)
        return created

    def track(self, fingerprint: str, document_id: str) -> tuple[bool, int]:
        """Like :meth:`add`, also returning the stamp given to the edge."""
        with self._lock:
            documents = self._edges.setdefault(fingerprint, {})
            created = document_id not in documents
            stamp = documents[document_id] = self._tick()
            return created, stamp

    def discard(self, fingerprint: str, document_id: str, *, stamp: int | None = None) -> None:
        """Remove one edge, dropping the fingerprint when it becomes unreferenced.

        With ``stamp``, the edge is only removed if nobody recorded it again since.
        """
        with self._lock:
            documents = self._edges.get(fingerprint)
            if documents is None or document_id not in documents:
                return
            if stamp is not None and documents[document_id] != stamp:
                return
            del documents[document_id]
            if not documents:
                del self._edges[fingerprint]

    def ensure(self, fingerprint: str) -> None:
        with self._lock:
            self._edges.setdefault(fingerprint, {})

    def drop(self, fingerprint: str) -> None:
        with self._lock:
            self._edges.pop(fingerprint, None)

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._edges

    def __len__(self) -> int:
        with self._lock:
            return len(self._edges)

    def references(self, fingerprint: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._edges.get(fingerprint, ()))

    def fingerprints(self) -> set[str]:
        with self._lock:
            return set(self._edges)

    def documents(self) -> set[str]:
        """Return every document appearing in any reference set."""
        with self._lock:
            return {document for documents in self._edges.values() for document in documents}

    def fingerprints_for(self, document_id: str) -> set[str]:
        with self._lock:
            return {
                fingerprint
                for fingerprint, documents in self._edges.items()
                if document_id in documents
            }

    def unreferenced(self) -> set[str]:
        with self._lock:
            return {fingerprint for fingerprint, documents in self._edges.items() if not documents}

    def checkpoint(self) -> Checkpoint:
        """Capture the current stamp and the documents to rescan."""
        with self._lock:
            documents = frozenset(
                document for documents in self._edges.values() for document in documents
            )
            return Checkpoint(stamp=self._stamp, documents=documents)

    def prune(self, live: Mapping[str, Iterable[str]], *, before: int) -> set[str]:
        """Drop stale edges for the rescanned documents in ``live``.

        An edge ``(fingerprint, document)`` is removed when ``document`` was
        rescanned, no longer lists ``fingerprint``, and the edge was recorded
        at or before stamp ``before``. Returns every unreferenced fingerprint.
        """
        live_sets = {document: set(fingerprints) for document, fingerprints in live.items()}
        with self._lock:
            for fingerprint, documents in self._edges.items():
                for document, stamp in list(documents.items()):
                    current = live_sets.get(document)
                    if current is None or fingerprint in current or stamp > before:
                        continue
                    del documents[document]
            return {fingerprint for fingerprint, documents in self._edges.items() if not documents}

    def remove_if_unreferenced(self, fingerprint: str) -> bool:
        """Drop ``fingerprint`` when no document references it."""
        with self._lock:
            documents = self._edges.get(fingerprint)
            if documents is None or documents:
                return False
            del self._edges[fingerprint]
            return True

    def forget_document(self, document_id: str) -> set[str]:
        """Remove ``document_id`` everywhere; return fingerprints left unreferenced."""
        with self._lock:
            emptied: set[str] = set()
            for fingerprint, documents in self._edges.items():
                if documents.pop(document_id, None) is not None and not documents:
                    emptied.add(fingerprint)
            return emptied

    def rename_document(self, old_id: str, new_id: str) -> int:
        """Move every edge of ``old_id`` to ``new_id``; return how many moved."""
        if old_id == new_id:
            return 0
        with self._lock:
            moved = 0
            for documents in self._edges.values():
                if old_id in documents:
                    documents.pop(old_id)
                    documents[new_id] = self._tick()
                    moved += 1
            return moved


__all__ = ["Checkpoint", "ReferenceIndex"]

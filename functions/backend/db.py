"""
Document store abstraction for Firestore and an in-memory test implementation.
"""

from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from firebase_admin import firestore
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

UpdateFn = Callable[[Optional[dict]], dict]


class DocumentStore(Protocol):
    """Interface for document access. Paths are slash-separated document paths."""

    def get(self, path: str) -> Optional[dict]:
        ...

    def set(self, path: str, data: dict, *, merge: bool = False) -> None:
        ...

    def run_transaction(self, path: str, update_fn: UpdateFn) -> dict:
        """
        Atomically reads the document at `path`, passes its data (or None) to
        `update_fn` and merges the returned fields back. Exceptions raised by
        `update_fn` abort the transaction without writing.
        """
        ...


def _deep_merge(base: dict, update: dict) -> dict:
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self.docs: dict[str, dict] = {}
        self.writes: list[tuple[str, dict, bool]] = []
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()

    def _resolve_sentinels(self, value):
        if value is SERVER_TIMESTAMP:
            return self._clock()
        if isinstance(value, dict):
            return {k: self._resolve_sentinels(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._resolve_sentinels(v) for v in value]
        return value

    def get(self, path: str) -> Optional[dict]:
        with self._lock:
            data = self.docs.get(path)
            return copy.deepcopy(data) if data is not None else None

    def set(self, path: str, data: dict, *, merge: bool = False) -> None:
        with self._lock:
            resolved = self._resolve_sentinels(copy.deepcopy(data))
            self.writes.append((path, resolved, merge))
            if merge and path in self.docs:
                self.docs[path] = _deep_merge(self.docs[path], resolved)
            else:
                self.docs[path] = resolved

    def run_transaction(self, path: str, update_fn: UpdateFn) -> dict:
        with self._lock:
            updated = update_fn(self.get(path))
            self.set(path, updated, merge=True)
            return updated

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.docs.clear()
            self.writes.clear()


class FirestoreDocumentStore:
    """Firestore-backed implementation."""

    def __init__(self, client=None):
        self._db = client or firestore.client()

    def get(self, path: str) -> Optional[dict]:
        snapshot = self._db.document(path).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def set(self, path: str, data: dict, *, merge: bool = False) -> None:
        self._db.document(path).set(data, merge=merge)

    def run_transaction(self, path: str, update_fn: UpdateFn) -> dict:
        transaction = self._db.transaction()
        doc_ref = self._db.document(path)

        @firestore.transactional
        def _update_transaction(transaction, doc_ref):
            snapshot = doc_ref.get(transaction=transaction)
            current = (snapshot.to_dict() or {}) if snapshot.exists else None
            updated = update_fn(current)
            transaction.set(doc_ref, updated, merge=True)
            return updated

        return _update_transaction(transaction, doc_ref)


def doc_path(*segments) -> str:
    return "/".join(str(segment) for segment in segments)

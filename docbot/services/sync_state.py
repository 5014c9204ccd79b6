from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable


class ConcurrentIdSet:
    """Set of document ids safe for concurrent single-operation access."""

    def __init__(self, ids: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._ids: set[str] = set(ids)

    def add(self, doc_id: str) -> bool:
        with self._lock:
            if doc_id in self._ids:
                return False
            self._ids.add(doc_id)
            return True

    def discard(self, doc_id: str) -> None:
        with self._lock:
            self._ids.discard(doc_id)

    def update(self, ids: Iterable[str]) -> None:
        with self._lock:
            self._ids.update(ids)

    def clear(self) -> None:
        with self._lock:
            self._ids.clear()

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._ids)

    def __contains__(self, doc_id: object) -> bool:
        with self._lock:
            return doc_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


class AtomicFlag:
    def __init__(self, value: bool = False) -> None:
        self._lock = threading.Lock()
        self._value = value

    def compare_and_set(self, expected: bool, new: bool) -> bool:
        with self._lock:
            if self._value != expected:
                return False
            self._value = new
            return True

    def set(self, value: bool) -> None:
        with self._lock:
            self._value = value

    def get(self) -> bool:
        with self._lock:
            return self._value


@dataclass(frozen=True)
class SyncStatus:
    in_progress: bool
    indexed_count: int
    failed_count: int


class SyncState:
    """Indexed and failed id sets plus the in-progress flag.

    An id lives in at most one of the two sets. Failed ids stay failed until
    ``clear_failed`` is called.
    """

    def __init__(self) -> None:
        self.indexed = ConcurrentIdSet()
        self.failed = ConcurrentIdSet()
        self.sync_in_progress = AtomicFlag(False)

    def hydrate(self, indexed_ids: Iterable[str], failed_ids: Iterable[str]) -> None:
        failed = set(failed_ids)
        self.failed.update(failed)
        self.indexed.update(doc_id for doc_id in indexed_ids if doc_id not in failed)

    def is_known(self, doc_id: str) -> bool:
        return doc_id in self.indexed or doc_id in self.failed

    def mark_indexed(self, doc_id: str) -> None:
        if doc_id in self.failed:
            return
        self.indexed.add(doc_id)

    def mark_failed(self, doc_id: str) -> bool:
        self.indexed.discard(doc_id)
        return self.failed.add(doc_id)

    def clear_failed(self) -> None:
        self.failed.clear()

    def clear_all(self) -> None:
        self.indexed.clear()
        self.failed.clear()

    def try_begin(self) -> bool:
        return self.sync_in_progress.compare_and_set(False, True)

    def end(self) -> None:
        self.sync_in_progress.set(False)

    def status(self) -> SyncStatus:
        return SyncStatus(
            in_progress=self.sync_in_progress.get(),
            indexed_count=len(self.indexed),
            failed_count=len(self.failed),
        )

"""
In-memory proposition store keyed by surface.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Any, Optional, List, Tuple, Iterable

from shared.logging import get_logger
from shared.errors import ValidationError
from shared.metrics import MetricsCollector
from ..propositions.models import Proposition, PropositionItem


class ReadWriteLock:
    """Many concurrent readers or one writer. Waiting writers block new readers."""

    def __init__(self):
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self):
        with self._condition:
            while self._writer or self._writers_waiting:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if self._readers == 0:
                    self._condition.notify_all()

    @contextmanager
    def write(self):
        with self._condition:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._condition.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()


class PropositionStore:
    """Qualified propositions per surface.

    Every upsert replaces the whole set stored for a scope. Scopes are
    independent: each has its own reader/writer lock, so operations on
    different scopes never wait on each other.
    """

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.logger = get_logger("messaging.store")
        self.metrics = metrics
        self._propositions: Dict[str, Tuple[Proposition, ...]] = {}
        self._scope_locks: Dict[str, ReadWriteLock] = {}
        self._registry_lock = threading.Lock()

    def _existing_lock(self, scope: str) -> Optional[ReadWriteLock]:
        with self._registry_lock:
            return self._scope_locks.get(scope)

    def _lock_for(self, scope: str) -> ReadWriteLock:
        with self._registry_lock:
            lock = self._scope_locks.get(scope)
            if lock is None:
                lock = ReadWriteLock()
                self._scope_locks[scope] = lock
            return lock

    def upsert(self, scope: str, propositions: Iterable[Proposition]) -> None:
        """Replace everything stored for ``scope``. An empty set clears it."""
        if not isinstance(scope, str) or not scope:
            raise ValidationError("Scope must be a non-empty string")

        snapshot = tuple(propositions)
        for proposition in snapshot:
            if proposition.scope != scope:
                raise ValidationError(
                    "Proposition scope does not match upsert scope",
                    {"scope": scope, "proposition_id": proposition.unique_id, "proposition_scope": proposition.scope}
                )

        with self._lock_for(scope).write():
            with self._registry_lock:
                if snapshot:
                    self._propositions[scope] = snapshot
                else:
                    self._propositions.pop(scope, None)
                    self._scope_locks.pop(scope, None)

        self.logger.debug("Propositions replaced", scope=scope, count=len(snapshot))
        self._update_gauge()

    def get(self, scope: str) -> List[Proposition]:
        """Propositions stored for ``scope`` in insertion order; empty if unknown."""
        lock = self._existing_lock(scope)
        if lock is None:
            return []
        with lock.read():
            return list(self._propositions.get(scope, ()))

    def remove(self, scope: str) -> bool:
        """Clear a scope. Returns whether anything was stored for it."""
        lock = self._existing_lock(scope)
        if lock is None:
            return False
        with lock.write():
            with self._registry_lock:
                removed = self._propositions.pop(scope, None) is not None
                self._scope_locks.pop(scope, None)

        if removed:
            self.logger.info("Scope removed", scope=scope)
            self._update_gauge()
        return removed

    def resolve_owner(self, item: PropositionItem) -> Optional[Proposition]:
        """Find the stored proposition an item belongs to."""
        if not item.scope:
            return None
        lock = self._existing_lock(item.scope)
        if lock is None:
            return None
        with lock.read():
            for proposition in self._propositions.get(item.scope, ()):
                if proposition.unique_id == item.proposition_id:
                    return proposition
        return None

    def scopes(self) -> List[str]:
        """Scopes currently holding propositions."""
        with self._registry_lock:
            return list(self._propositions)

    def clear(self) -> None:
        """Remove every scope."""
        for scope in self.scopes():
            self.remove(scope)
        self.logger.info("Proposition store cleared")

    def get_store_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        with self._registry_lock:
            counts = {scope: len(props) for scope, props in self._propositions.items()}
        return {
            "total_scopes": len(counts),
            "total_propositions": sum(counts.values()),
            "propositions_per_scope": counts,
        }

    def _update_gauge(self):
        if self.metrics is not None:
            self.metrics.set_gauge("store_scopes", len(self.scopes()))

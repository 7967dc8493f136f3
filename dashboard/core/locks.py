"""Per-tenant write locks for the ingestion reconciler.

One lock per tenant id. Merges for the same tenant run one at a time;
merges for different tenants never wait on each other.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class TenantLockRegistry:
    """Thread-safe registry handing out one lock per tenant."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    def lock_for(self, tenant_id: int) -> threading.Lock:
        with self._lock:
            lock = self._locks.get(tenant_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[tenant_id] = lock
            return lock

    @contextmanager
    def hold(self, tenant_id: int) -> Iterator[None]:
        """Hold the tenant's exclusive write section for the duration of the block."""
        lock = self.lock_for(tenant_id)
        with lock:
            yield

    def discard(self, tenant_id: int) -> None:
        """Forget a deleted tenant's lock."""
        with self._lock:
            self._locks.pop(tenant_id, None)


# Process-wide registry shared by every reconciler instance
tenant_locks = TenantLockRegistry()

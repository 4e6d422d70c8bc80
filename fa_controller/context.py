"""Process-wide key/value store shared by task constructors and tasks."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator

# Keys used to hand step options and results between layers.
KEY_ALL_DEPLOY_CONFIGS = "ALL_DEPLOY_CONFIGS"
KEY_SKIPPED_CHECK_ITEMS = "SKIPPED_CHECK_ITEMS"
KEY_CLEAN_ITEMS = "CLEAN_ITEMS"
KEY_CLEAN_BY_RECYCLE = "CLEAN_BY_RECYCLE"
KEY_SKIP_MDS_CLI = "SKIP_MDS_CLI"
KEY_USE_LOCAL_IMAGE = "USE_LOCAL_IMAGE"
KEY_ALL_SERVICE_STATUS = "ALL_SERVICE_STATUS"
KEY_ALL_CLIENT_STATUS = "ALL_CLIENT_STATUS"
KEY_MONITOR_STATUS = "MONITOR_STATUS"
KEY_HOST_DATES = "HOST_DATES"
KEY_HTTP_SERVER_PORTS = "HTTP_SERVER_PORTS"
KEY_MOUNT_OPTIONS = "MOUNT_OPTIONS"
KEY_UMOUNT_FORCE = "UMOUNT_FORCE"
KEY_MAX_DATE_SKEW = "MAX_DATE_SKEW"


class _RWLock:
    """Writer-exclusive, reader-shared lock built on a condition variable."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._owner: int | None = None

    def _refuse_reentry(self) -> None:
        if self._writer and self._owner == threading.get_ident():
            raise RuntimeError("re-entered SharedContext inside a transaction")

    def acquire_read(self) -> None:
        with self._cond:
            self._refuse_reentry()
            while self._writer:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._refuse_reentry()
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
            self._owner = threading.get_ident()

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._owner = None
            self._cond.notify_all()


class Transaction:
    """Exclusive view handed out by :meth:`SharedContext.begin`.

    Only this object can read or write while the transaction is open, so a
    caller never re-enters the lock it already holds.
    """

    def __init__(self, data: Dict[str, Any]) -> None:
        self._data = data
        self._open = True

    def _check(self) -> None:
        if not self._open:
            raise RuntimeError("transaction already closed")

    def get(self, key: str, default: Any = None) -> Any:
        self._check()
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._check()
        self._data[key] = value

    def setdefault(self, key: str, value: Any) -> Any:
        self._check()
        return self._data.setdefault(key, value)

    def close(self) -> None:
        self._open = False


class SharedContext:
    """Lock-guarded map living for the whole process."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        self._lock = _RWLock()

    def get(self, key: str, default: Any = None) -> Any:
        self._lock.acquire_read()
        try:
            return self._data.get(key, default)
        finally:
            self._lock.release_read()

    def set(self, key: str, value: Any) -> None:
        self._lock.acquire_write()
        try:
            self._data[key] = value
        finally:
            self._lock.release_write()

    def update(self, values: Dict[str, Any]) -> None:
        self._lock.acquire_write()
        try:
            self._data.update(values)
        finally:
            self._lock.release_write()

    @contextmanager
    def begin(self) -> Iterator[Transaction]:
        """Hold the exclusive lock across a batch of reads and writes."""
        self._lock.acquire_write()
        tx = Transaction(self._data)
        try:
            yield tx
        finally:
            tx.close()
            self._lock.release_write()

    def merge(self, key: str, item_key: str, value: Any) -> None:
        """Insert ``value`` under ``item_key`` of the dict stored at ``key``."""
        with self.begin() as tx:
            bucket = tx.setdefault(key, {})
            bucket[item_key] = value

    def snapshot(self, key: str) -> Dict[str, Any]:
        """Shallow copy of a dict stored at ``key``."""
        self._lock.acquire_read()
        try:
            return dict(self._data.get(key) or {})
        finally:
            self._lock.release_read()


_process_context = SharedContext()


def process_context() -> SharedContext:
    return _process_context

from threading import Lock


class ManagerLockRegistry:
    """Per-manager locks serializing check-then-book sequences in this process.

    One instance is created at startup and handed to the services that book;
    nothing here is module-global. Entries are never evicted, so the map holds
    one lock per manager seen since startup until ``clear`` runs at shutdown.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[str, Lock] = {}

    def lock_for(self, manager_id: str) -> Lock:
        with self._guard:
            lock = self._locks.get(manager_id)
            if lock is None:
                lock = Lock()
                self._locks[manager_id] = lock
            return lock

    def clear(self) -> None:
        with self._guard:
            self._locks.clear()

import copy
import threading
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class Transaction(Generic[K, V]):
    """
    Staged view of the database. Reads see this transaction's own writes;
    nothing reaches the store until the transaction commits.
    """

    def __init__(self, store: MutableMapping[K, V]) -> None:
        self._store = store
        self._writes: dict[K, V] = {}

    def get(self, key: K) -> V | None:
        if key in self._writes:
            return self._writes[key]
        value = self._store.get(key)
        return copy.deepcopy(value) if value is not None else None

    def all(self) -> list[V]:
        keys = list(self._store.keys()) + [
            k for k in self._writes if k not in self._store
        ]
        return [v for v in (self.get(k) for k in keys) if v is not None]

    def put(self, key: K, value: V) -> None:
        self._writes[key] = value

    def _commit(self) -> None:
        self._store.update(self._writes)
        self._writes.clear()


class InMemoryKeyValueDatabase(Generic[K, V]):
    """
    Simple in-memory key/value database with serialised transactions.
    """

    def __init__(self) -> None:
        self._store: MutableMapping[K, V] = {}
        self._lock = threading.RLock()

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._store[key] = value

    def get(self, key: K) -> V | None:
        return self._store.get(key)

    def all(self) -> list[V]:
        return list(self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    @contextmanager
    def transaction(self) -> Iterator[Transaction[K, V]]:
        """
        Run a read-modify-write block atomically.

        Writes are committed when the block exits normally and discarded if
        it raises. Transactions never interleave with each other or with
        plain writes.
        """
        with self._lock:
            txn: Transaction[K, V] = Transaction(self._store)
            yield txn
            txn._commit()

"""
Binding Store — Persistent slave → master room relation.

Two namespaces share one key-value file:

- "s<room>" → master room id (scalar)
- "m<room>" → [slave room id, ...] (insertion-ordered, no duplicates)

The store is the only writer of these keys and keeps them in agreement:
for every s<x> = y, x appears exactly once in m<y>, and vice versa.
Empty slave lists are deleted rather than kept as placeholders.

Every operation runs under one lock per store instance. Mutations are
flushed to disk before returning; when the flush fails the in-memory
state is rolled back to the last persisted snapshot.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Dict, Iterator, List, Optional

from .kv_file import KeyValueFile, StoreWriteError

logger = logging.getLogger(__name__)


def _slave_key(room_id: int) -> str:
    return f"s{room_id}"


def _master_key(room_id: int) -> str:
    return f"m{room_id}"


class BindingStore:
    """
    Relation-integrity-preserving mapping between master and slave rooms.

    Usage:
        store = BindingStore.open(Path("bindings.json"))
        store.bind(master=-100, slave=-200)
        store.get_master(-200)   # -100
        store.get_slaves(-100)   # [-200]
    """

    def __init__(self, db: KeyValueFile):
        self._db = db
        self._lock = Lock()

    @classmethod
    def open(cls, path: Path) -> "BindingStore":
        """
        Load the store at path, creating an empty one if absent.

        Raises:
            StoreLoadError: If the file exists but is unreadable
        """
        return cls(KeyValueFile.load_or_create(path))

    @property
    def path(self) -> Path:
        return self._db.path

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Apply mutations and flush; roll back memory if the flush fails."""
        before = self._db.snapshot()
        try:
            yield
            self._db.dump()
        except StoreWriteError:
            self._db.restore(before)
            logger.error(f"Store write failed, changes rolled back ({self.path})")
            raise

    def bind(self, master: int, slave: int) -> None:
        """
        Bind slave to master, replacing any previous master of slave.

        The caller is responsible for rejecting master == slave.

        Raises:
            StoreWriteError: If the store could not be persisted
        """
        with self._lock, self._transaction():
            self._unbind_locked(slave)

            slaves: List[int] = self._db.get(_master_key(master)) or []
            if slave not in slaves:
                slaves.append(slave)

            self._db.set(_slave_key(slave), master)
            self._db.set(_master_key(master), slaves)

        logger.info(f"Bound room {slave} to master {master}")

    def unbind(self, slave: int) -> None:
        """
        Remove slave's binding. No-op if slave has no master.

        Raises:
            StoreWriteError: If the store could not be persisted
        """
        with self._lock, self._transaction():
            master = self._unbind_locked(slave)

        if master is not None:
            logger.info(f"Unbound room {slave} from master {master}")
        else:
            logger.debug(f"Room {slave} had no master, nothing to unbind")

    def _unbind_locked(self, slave: int) -> Optional[int]:
        master = self._db.get(_slave_key(slave))
        if master is None:
            return None

        self._db.rem(_slave_key(slave))

        mkey = _master_key(master)
        slaves = self._db.get(mkey)
        if slaves is not None:
            remaining = [room for room in slaves if room != slave]
            if remaining:
                self._db.set(mkey, remaining)
            else:
                self._db.rem(mkey)

        return master

    def get_master(self, slave: int) -> Optional[int]:
        """Return the master of slave, or None."""
        with self._lock:
            return self._db.get(_slave_key(slave))

    def get_slaves(self, master: int) -> List[int]:
        """Return the slaves of master in binding order (empty if none)."""
        with self._lock:
            return self._db.get(_master_key(master)) or []

    def bindings(self) -> Dict[int, List[int]]:
        """Snapshot of every master and its slaves."""
        with self._lock:
            result: Dict[int, List[int]] = {}
            for key in self._db.keys():
                if key.startswith("m"):
                    result[int(key[1:])] = self._db.get(key)
            return result

    def flush(self) -> None:
        """
        Persist the current contents.

        Raises:
            StoreWriteError: If the store could not be persisted
        """
        with self._lock:
            self._db.dump()
        logger.info(f"Store flushed to {self.path}")

#
# subvol - subvolume lifecycle management for cloud file storage
#
# Copyright (C) 2026  The subvol authors
#
# This library is free software; you can redistribute it and/or
# modify it under the terms of the GNU Lesser General Public
# License as published by the Free Software Foundation; either
# version 2.1 of the License, or (at your option) any later version.
#
# This library is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public
# License along with this library; if not, see <https://www.gnu.org/licenses/>.
#

"""
Bookkeeping shared by all invocations of one pool driver.

Both maps are in memory only. Losing them (process restart) must never make
an operation incorrect, only slower: a missing poller means the operation
is watched by polling the subvolume state, a missing ledger entry means the
temporary copy of a restore is left for a later restore to clean up.
"""

import asyncio
import contextlib
import enum
from typing import Dict, Hashable, NamedTuple, Optional, Tuple

import subvol.exc
from subvol.storage.api import Poller


class Operation(enum.IntEnum):
    CREATE = 0
    DELETE = 1
    UPDATE = 2
    RESTORE = 3


class PollerKey(NamedTuple):
    #: subvolume ID
    id: str
    operation: Operation


class PollerCache:
    """
    In-flight backend operations, so an invocation can resume watching
    an operation started by an earlier one.

    At most one handle is kept per key. Caller must grab the lock
    during a sequence of gets / puts / removes::

        async with pollers.locked():
            if key not in pollers:
                pollers.put(key, poller)

    The lock is not recursive!  Never call a function that
    holds the lock from another function that grabs the lock.

    Starting an operation takes a backend call between the check for an
    existing resource and the :py:meth:`put`, so the lock cannot be held
    across it. Invocations starting an operation on the same resource
    hold :py:meth:`reserved` instead::

        async with pollers.reserved(creation_token):
            exists, subvolume = await api.subvolume_exists(...)
            if not exists:
                subvolume, poller = await api.create_subvolume(...)
                async with pollers.locked():
                    pollers.put(PollerKey(subvolume.id, operation), poller)
    """

    def __init__(self) -> None:
        self.cache: Dict[PollerKey, Poller] = {}
        #: name -> (lock, number of invocations holding or waiting for it)
        self.reservations: Dict[Hashable, Tuple[asyncio.Lock, int]] = {}
        self.__lock = asyncio.Lock()

    @contextlib.asynccontextmanager
    async def locked(self):
        """Lock context manager to aid in respecting Demeter's law."""
        async with self.__lock:
            yield

    @contextlib.asynccontextmanager
    async def reserved(self, name: Hashable):
        """Serialize the invocations starting an operation on *name*, a
        creation token or a :py:class:`PollerKey`.

        Not recursive either, and reservations must always be taken in the
        same order.
        """
        async with self.__lock:
            lock, users = self.reservations.get(name, (None, 0))
            if lock is None:
                lock = asyncio.Lock()
            self.reservations[name] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            async with self.__lock:
                lock, users = self.reservations[name]
                if users > 1:
                    self.reservations[name] = (lock, users - 1)
                else:
                    del self.reservations[name]

    def put(self, key: PollerKey, poller: Poller) -> None:
        """Remember the handle of an operation that was just started.

        :raises subvol.exc.InProgressError: if another handle is kept for
            *key*, that operation has to be joined instead
        """
        # Grab lock before performing operation!
        if key in self.cache and self.cache[key] is not poller:
            raise subvol.exc.InProgressError(
                'Operation {} on subvolume {} is already in progress'.format(
                    key.operation.name.lower(), key.id))
        self.cache[key] = poller

    def get(self, key: PollerKey) -> Optional[Poller]:
        """Get a cached handle.  Returns None if not in cache."""
        # Grab lock before performing operation!
        return self.cache.get(key)

    def remove(self, key: PollerKey) -> None:
        """Forget a handle, the operation is not in flight anymore."""
        # Grab lock before performing operation!
        self.cache.pop(key, None)

    def __contains__(self, key):
        return key in self.cache

    def __len__(self):
        return len(self.cache)


class PendingDeletionLedger:
    """
    Subvolumes which still have to be deleted to finish a restore.

    Maps subvolume ID to the ID of the snapshot whose restore created the
    obligation. An entry is removed only after the subvolume was deleted
    by a restore of that same snapshot, or after it was found gone. Same
    locking rules as
    :py:class:`PollerCache`.
    """

    def __init__(self) -> None:
        self.entries: Dict[str, str] = {}
        self.__lock = asyncio.Lock()

    @contextlib.asynccontextmanager
    async def locked(self):
        """Lock context manager to aid in respecting Demeter's law."""
        async with self.__lock:
            yield

    def add(self, subvolume_id: str, snapshot_id: str) -> None:
        # Grab lock before performing operation!
        self.entries[subvolume_id] = snapshot_id

    def get(self, subvolume_id: str) -> Optional[str]:
        """Return the snapshot context of the obligation, if any."""
        # Grab lock before performing operation!
        return self.entries.get(subvolume_id)

    def remove(self, subvolume_id: str) -> None:
        # Grab lock before performing operation!
        self.entries.pop(subvolume_id, None)

    def __contains__(self, subvolume_id):
        return subvolume_id in self.entries

    def __len__(self):
        return len(self.entries)

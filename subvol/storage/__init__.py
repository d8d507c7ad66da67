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

""" subvol storage system"""

import functools
import importlib.metadata
import inspect
from datetime import datetime, timezone

import asyncio

import lxml.etree

import subvol.utils

STORAGE_ENTRY_POINT = "subvol.storage"

SNAPSHOT_STATE_ONLINE = "online"


class Volume:
    """Configuration of one volume managed by a pool.

    ``name`` is the external name the orchestrator knows the volume by,
    ``internal_name`` the creation token of the subvolume standing for it
    and ``internal_id`` the backend identifier of that subvolume, known
    once the subvolume was created.
    """

    def __init__(
        self,
        name,
        pool,
        *,
        internal_name="",
        internal_id="",
        size=0,
        clone_source_volume="",
        clone_source_snapshot="",
        clone_source_snapshot_internal="",
        **kwargs
    ):
        """Initialize a volume.

        :param str name: external name of the volume
        :param Pool pool: The pool object
        :param str internal_name: creation token of the backing subvolume
        :param str internal_id: backend ID of the backing subvolume
        :param str/int size: requested size, `0` for the pool default
        :param str clone_source_volume: name of the volume this one is
            cloned from
        :param str clone_source_snapshot: name of the snapshot this one is
            cloned from, if any
        :param str clone_source_snapshot_internal: internal name of that
            snapshot
        """

        super().__init__(**kwargs)
        assert isinstance(pool, Pool)

        self.name = str(name)
        #: :py:class:`Pool` instance owning this volume
        self.pool = pool
        self.internal_name = internal_name
        self.internal_id = internal_id
        self.size = size
        self.clone_source_volume = clone_source_volume
        self.clone_source_snapshot = clone_source_snapshot
        self.clone_source_snapshot_internal = clone_source_snapshot_internal
        #: Asynchronous lock for @Volume.locked decorator
        self._lock = asyncio.Lock()

    def __eq__(self, other):
        if isinstance(other, Volume):
            return other.pool == self.pool and other.name == self.name
        return NotImplemented

    def __hash__(self):
        return hash("%s:%s" % (self.pool, self.name))

    def __repr__(self):
        return "{!r}".format(str(self.pool) + ":" + self.name)

    def __str__(self):
        return self.name

    @staticmethod
    def locked(method):
        """Decorator running given Volume's coroutine under a lock."""

        @functools.wraps(method)
        async def wrapper(self, *args, **kwargs):
            async with self._lock:  # pylint: disable=protected-access
                return await method(self, *args, **kwargs)

        return wrapper

    async def create(self):
        """Create the backing subvolume.

        :raises subvol.exc.VolumeExistsError: if it already existed and
            is now available
        """
        raise self._not_implemented("create")

    async def create_clone(self, source):
        """Create the backing subvolume as a copy of *source* (or of its
        snapshot, when :py:attr:`clone_source_snapshot` is set)."""
        raise self._not_implemented("create_clone")

    async def create_followup(self):
        """Confirm that an earlier :py:meth:`create` converged."""
        raise self._not_implemented("create_followup")

    async def import_volume(self, original_name):
        """Bring an existing subvolume under management."""
        raise self._not_implemented("import_volume")

    async def remove(self):
        """Remove volume. Removing a missing volume is not an error."""
        raise self._not_implemented("remove")

    async def resize(self, size):
        """Expands volume, throws
        :py:class:`subvol.exc.InvalidRequestError` if
        given size is less than current_size
        """
        raise self._not_implemented("resize")

    async def verify(self):
        """Verifies the volume.

        :returns: `True` if the volume is usable
        """
        raise self._not_implemented("verify")

    async def create_snapshot(self, snapshot):
        raise self._not_implemented("create_snapshot")

    async def delete_snapshot(self, snapshot):
        raise self._not_implemented("delete_snapshot")

    async def restore_snapshot(self, snapshot):
        """Replace the volume content with the content of *snapshot*."""
        raise self._not_implemented("restore_snapshot")

    async def get_snapshot(self, snapshot):
        raise self._not_implemented("get_snapshot")

    async def get_snapshots(self):
        raise self._not_implemented("get_snapshots")

    @property
    def config(self):
        """return config data for serialization"""
        result = {
            "name": self.name,
            "pool": str(self.pool),
            "internal_name": self.internal_name,
        }

        if self.internal_id:
            result["internal_id"] = self.internal_id

        if self.size:
            result["size"] = self.size

        if self.clone_source_volume:
            result["clone_source_volume"] = self.clone_source_volume

        if self.clone_source_snapshot:
            result["clone_source_snapshot"] = self.clone_source_snapshot
            result[
                "clone_source_snapshot_internal"
            ] = self.clone_source_snapshot_internal

        return result

    def _not_implemented(self, method_name):
        """Helper for emitting helpful `NotImplementedError` exceptions"""
        msg = "Volume {!s} has {!s}() not implemented"
        msg = msg.format(str(self.__class__.__name__), method_name)
        return NotImplementedError(msg)


class Snapshot:
    """A point in time copy of a volume.

    ``created``, ``size_bytes`` and ``state`` are filled in by the pool when
    the snapshot is created or looked up.
    """

    def __init__(
        self,
        name,
        *,
        volume_name,
        volume_internal_name,
        internal_name="",
        created=None,
        size_bytes=0,
        state=SNAPSHOT_STATE_ONLINE
    ):
        self.name = name
        self.internal_name = internal_name
        self.volume_name = volume_name
        self.volume_internal_name = volume_internal_name
        #: ISO 8601 UTC timestamp, `None` when not known
        self.created = created
        self.size_bytes = size_bytes
        self.state = state

    def __eq__(self, other):
        if isinstance(other, Snapshot):
            return (
                other.volume_internal_name == self.volume_internal_name
                and other.name == self.name
            )
        return NotImplemented

    def __hash__(self):
        return hash("%s@%s" % (self.volume_internal_name, self.name))

    def __repr__(self):
        return "<{} {}@{} internal_name={!r}>".format(
            type(self).__name__,
            self.volume_name,
            self.name,
            self.internal_name,
        )

    @property
    def config(self):
        return {
            "name": self.name,
            "internal_name": self.internal_name,
            "volume_name": self.volume_name,
            "volume_internal_name": self.volume_internal_name,
        }


class Pool:
    """A Pool is used to manage volumes of one storage backend.

    3rd Parties providing own storage implementations will need to extend
    this class.
    """  # pylint: disable=unused-argument

    def __init__(self, *, name):
        self.name = name
        self._volume_objects_cache = {}

    def __eq__(self, other):
        if isinstance(other, Pool):
            return self.name == other.name
        if isinstance(other, str):
            return self.name == other
        return NotImplemented

    def __str__(self):
        return self.name

    def __hash__(self):
        return hash(self.name)

    def __xml__(self):
        config = _sanitize_config(self.config)
        return lxml.etree.Element("pool", **config)

    @property
    def config(self):
        """Returns the pool config to be written to the store"""
        raise self._not_implemented("config")

    async def destroy(self):
        """Called when removing the pool. Use this for implementation specific
        clean up.
        """
        raise self._not_implemented("destroy")

    def init_volume(self, volume_config):
        """
        Initialize a :py:class:`subvol.storage.Volume` from `volume_config`.
        """
        raise self._not_implemented("init_volume")

    async def setup(self):
        """Called when adding a pool to the system. Use this for implementation
        specific set up.
        """
        raise self._not_implemented("setup")

    async def list_volumes(self):
        """Return a list of volumes found on the backend"""
        raise self._not_implemented("list_volumes")

    def get_volume(self, name):
        """Return a volume with *name* from this pool

        :raise KeyError: if no volume is found
        """
        return self._volume_objects_cache[name]

    def _not_implemented(self, method_name):
        """Helper for emitting helpful `NotImplementedError` exceptions"""
        msg = "Pool driver {!s} has {!s}() not implemented"
        msg = msg.format(str(self.__class__.__name__), method_name)
        return NotImplementedError(msg)


def _sanitize_config(config):
    """Helper function to convert types to appropriate strings"""
    result = {}
    for key, value in config.items():
        if value is None:
            continue
        if isinstance(value, bool):
            if value:
                result[key] = "True"
        elif isinstance(value, (list, tuple)):
            result[key] = ",".join(str(item) for item in value)
        else:
            result[key] = str(value)
    return result


def pool_drivers():
    """Return a list of EntryPoints names"""
    return [
        ep.name
        for ep in importlib.metadata.entry_points(group=STORAGE_ENTRY_POINT)
    ]


def driver_parameters(name):
    """Get __init__ parameters from a driver with out `self` & `name`."""
    init_function = subvol.utils.get_entry_point_one(
        STORAGE_ENTRY_POINT, name
    ).__init__
    signature = inspect.signature(init_function)
    params = signature.parameters.keys()
    ignored_params = ["self", "name", "kwargs", "api", "pollers", "ledger"]
    return [p for p in params if p not in ignored_params]


def isodate(seconds):
    """Helper method which returns an iso date"""
    return (
        datetime.fromtimestamp(seconds, tz=timezone.utc)
        .isoformat()
        .replace("+00:00", "Z")
    )

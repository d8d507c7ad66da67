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
Interface of the cloud backend used by the subvolume driver.

The backend client itself (transport, authentication, retries of single
HTTP requests) lives outside of this package. It is handed to the pool as an
object implementing :py:class:`SubvolumeAPI`; every method is a coroutine.

Resource identifiers have the form::

    /subscriptions/{subscription}/resourceGroups/{resource group}
        /providers/Microsoft.NetApp/netAppAccounts/{account}
        /capacityPools/{capacity pool}/volumes/{volume}
        /subvolumes/{creation token}

and a parent volume is addressed by its *full name*
``{resource group}/{account}/{capacity pool}/{volume}``.
"""

import dataclasses
import re
from typing import List, NamedTuple, Optional, Tuple

import subvol.exc

STATE_ACCEPTED = "Accepted"
STATE_CREATING = "Creating"
STATE_AVAILABLE = "Available"
STATE_DELETING = "Deleting"
STATE_DELETED = "Deleted"
STATE_ERROR = "Error"
STATE_MOVING = "Moving"
STATE_REVERTING = "Reverting"

NETAPP_PROVIDER = "Microsoft.NetApp"

_SUBVOLUME_ID_RE = re.compile(
    r"/subscriptions/(?P<subscription_id>[^/]+)"
    r"/resourceGroups/(?P<resource_group>[^/]+)"
    r"/providers/(?P<provider>[^/]+)"
    r"/netAppAccounts/(?P<netapp_account>[^/]+)"
    r"/capacityPools/(?P<capacity_pool>[^/]+)"
    r"/volumes/(?P<volume>[^/]+)"
    r"/subvolumes/(?P<subvolume>[^/]+)",
    re.IGNORECASE,
)


class SubvolumeID(NamedTuple):
    """Structured form of a subvolume resource identifier"""

    subscription_id: str
    resource_group: str
    provider: str
    netapp_account: str
    capacity_pool: str
    volume: str
    subvolume: str


def create_subvolume_id(
    subscription_id: str,
    resource_group: str,
    netapp_account: str,
    capacity_pool: str,
    volume: str,
    subvolume: str,
) -> str:
    return (
        "/subscriptions/{}/resourceGroups/{}/providers/{}"
        "/netAppAccounts/{}/capacityPools/{}/volumes/{}/subvolumes/{}".format(
            subscription_id,
            resource_group,
            NETAPP_PROVIDER,
            netapp_account,
            capacity_pool,
            volume,
            subvolume,
        )
    )


def parse_subvolume_id(subvolume_id: str) -> SubvolumeID:
    """Split a subvolume resource identifier into its components.

    :raises subvol.exc.SubvolValueError: if *subvolume_id* is malformed
    """
    match = _SUBVOLUME_ID_RE.fullmatch(subvolume_id or "")
    if match is None:
        raise subvol.exc.SubvolValueError(
            "Invalid subvolume ID {!r}".format(subvolume_id)
        )
    return SubvolumeID(**match.groupdict())


def sibling_subvolume_id(subvolume_id: str, name: str) -> str:
    """ID of subvolume *name* living in the same parent volume as
    *subvolume_id*.

    Snapshots, temporary copies and clones of a volume all live next to it,
    so their identity is fully determined by the volume's own ID.
    """
    parsed = parse_subvolume_id(subvolume_id)
    return create_subvolume_id(
        parsed.subscription_id,
        parsed.resource_group,
        parsed.netapp_account,
        parsed.capacity_pool,
        parsed.volume,
        name,
    )


def create_volume_full_name(
    resource_group: str, netapp_account: str, capacity_pool: str, volume: str
) -> str:
    return "/".join((resource_group, netapp_account, capacity_pool, volume))


def parse_volume_full_name(full_name: str) -> Tuple[str, str, str, str]:
    """Return (resource group, account, capacity pool, volume).

    :raises subvol.exc.SubvolValueError: if *full_name* is malformed
    """
    parts = (full_name or "").split("/")
    if len(parts) != 4 or not all(parts):
        raise subvol.exc.SubvolValueError(
            "Invalid volume name {!r}, expected "
            "resource-group/account/capacity-pool/volume".format(full_name)
        )
    return parts[0], parts[1], parts[2], parts[3]


@dataclasses.dataclass
class Subvolume:
    """A subvolume as reported by the backend.

    ``name`` is the creation token. ``parent_path`` is set only for
    subvolumes created as a copy of another subvolume.
    """

    id: str = ""
    resource_group: str = ""
    netapp_account: str = ""
    capacity_pool: str = ""
    volume: str = ""
    name: str = ""
    size: int = 0
    provisioning_state: str = ""
    parent_path: str = ""

    @classmethod
    def from_id(cls, subvolume_id: str, name: Optional[str] = None):
        """Reference to a subvolume known only by its ID"""
        parsed = parse_subvolume_id(subvolume_id)
        return cls(
            id=subvolume_id,
            resource_group=parsed.resource_group,
            netapp_account=parsed.netapp_account,
            capacity_pool=parsed.capacity_pool,
            volume=parsed.volume,
            name=name or parsed.subvolume,
        )

    @property
    def volume_full_name(self) -> str:
        return create_volume_full_name(
            self.resource_group,
            self.netapp_account,
            self.capacity_pool,
            self.volume,
        )


@dataclasses.dataclass(frozen=True)
class SubvolumeCreateRequest:
    creation_token: str
    #: full name of the parent volume
    volume: str
    size: int = 0
    #: creation token of the source subvolume, only when copying
    parent: str = ""


class Poller:
    """Handle of a long running backend operation."""

    async def result(self) -> None:
        """Wait for the operation outcome.

        :raises subvol.exc.BackendError: if the operation failed
        """
        raise NotImplementedError(
            "Poller {!s} has result() not implemented".format(
                type(self).__name__
            )
        )


class SubvolumeAPI:
    """Backend primitives needed by :py:class:`SubvolumePool`.

    Implementations raise :py:class:`subvol.exc.SubvolumeNotFoundError` when
    the requested subvolume does not exist and
    :py:class:`subvol.exc.BackendError` for any other failure.
    """

    # pylint: disable=unused-argument

    async def create_subvolume(
        self, request: SubvolumeCreateRequest
    ) -> Tuple[Subvolume, Poller]:
        """Start creating a subvolume, return it (usually in the
        ``Accepted`` state) with the handle of the creation."""
        raise self._not_implemented("create_subvolume")

    async def delete_subvolume(self, subvolume: Subvolume) -> Poller:
        raise self._not_implemented("delete_subvolume")

    async def resize_subvolume(self, subvolume: Subvolume, size: int) -> None:
        raise self._not_implemented("resize_subvolume")

    async def subvolume_by_id(
        self, subvolume_id: str, query_metadata: bool = False
    ) -> Subvolume:
        raise self._not_implemented("subvolume_by_id")

    async def subvolume_by_creation_token(
        self,
        creation_token: str,
        file_pool_volumes: List[str],
        query_metadata: bool = False,
    ) -> Subvolume:
        raise self._not_implemented("subvolume_by_creation_token")

    async def subvolume_exists_by_id(
        self, subvolume_id: str
    ) -> Tuple[bool, Optional[Subvolume]]:
        raise self._not_implemented("subvolume_exists_by_id")

    async def subvolume_exists_by_creation_token(
        self, creation_token: str, file_pool_volumes: List[str]
    ) -> Tuple[bool, Optional[Subvolume]]:
        raise self._not_implemented("subvolume_exists_by_creation_token")

    async def subvolumes(self, file_pool_volumes: List[str]) -> List[Subvolume]:
        raise self._not_implemented("subvolumes")

    async def wait_for_subvolume_state(
        self,
        subvolume: Subvolume,
        desired_state: str,
        abort_states: List[str],
        max_elapsed: float,
    ) -> str:
        """Poll *subvolume* until it reaches *desired_state*.

        A subvolume which disappeared counts as ``Deleted``.

        :returns: the desired state
        :raises subvol.exc.SubvolumeStateError: when one of *abort_states*
            is reached or *max_elapsed* seconds pass; the exception carries
            the last observed state
        """
        raise self._not_implemented("wait_for_subvolume_state")

    def _not_implemented(self, method_name):
        """Helper for emitting helpful `NotImplementedError` exceptions"""
        msg = "Backend API {!s} has {!s}() not implemented"
        msg = msg.format(str(self.__class__.__name__), method_name)
        return NotImplementedError(msg)

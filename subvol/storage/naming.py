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

"""Names of subvolumes standing for volumes and snapshots.

The backend keeps a single string per subvolume, the creation token, so
snapshots are recognised by the shape of that token alone::

    {storage prefix}-{snapshot name}--{volume suffix}

where the volume suffix is a short fragment of the owning volume's name
(see :py:func:`snapshot_suffix`)::

    >>> naming = SnapshotNaming('trident')
    >>> naming.snapshot_internal_name('pvc-abc12345-xyz', 'daily')
    'trident-daily--abc12'
    >>> naming.decompose('trident-daily--abc12')
    ('daily', 'abc12')
"""

import re
from typing import Tuple

import subvol.config
import subvol.exc

_VOLUME_NAME_RE = re.compile(r"[a-zA-Z][a-zA-Z0-9-]{0,39}")
_SNAPSHOT_NAME_RE = re.compile(r"[a-zA-Z][a-zA-Z0-9-]{0,44}")
_CREATION_TOKEN_RE = re.compile(r"[a-zA-Z][a-zA-Z0-9-]{0,63}")
_STORAGE_PREFIX_RE = re.compile(r"[a-zA-Z][a-zA-Z0-9-]*")


def validate_volume_name(name: str) -> None:
    if not _VOLUME_NAME_RE.fullmatch(name or ""):
        raise subvol.exc.InvalidNameError(
            name,
            "Subvolume name {!r} is not allowed; it must be 1-40 characters "
            "long, begin with a letter, and contain only letters, digits, "
            "and hyphens".format(name),
        )
    if subvol.config.subvolume_name_separator in name:
        raise subvol.exc.InvalidNameError(
            name,
            "Subvolume name {!r} must not contain {!r}".format(
                name, subvol.config.subvolume_name_separator
            ),
        )


def validate_snapshot_name(name: str) -> None:
    if not _SNAPSHOT_NAME_RE.fullmatch(name or ""):
        raise subvol.exc.InvalidNameError(
            name,
            "Snapshot name {!r} is not allowed; it must be 1-45 characters "
            "long, begin with a letter, and contain only letters, digits, "
            "and hyphens".format(name),
        )
    if subvol.config.snapshot_name_separator in name:
        raise subvol.exc.InvalidNameError(
            name,
            "Snapshot name {!r} must not contain {!r}".format(
                name, subvol.config.snapshot_name_separator
            ),
        )


def validate_creation_token(name: str) -> None:
    if not _CREATION_TOKEN_RE.fullmatch(name or ""):
        raise subvol.exc.InvalidNameError(
            name,
            "Subvolume internal name {!r} is not allowed; it must be 1-64 "
            "characters long, begin with a letter, and contain only "
            "letters, digits, and hyphens".format(name),
        )


def validate_storage_prefix(prefix: str) -> None:
    """Check that volumes named with *prefix* can be snapshotted.

    :raises subvol.exc.InvalidRequestError: on an unusable prefix
    """
    separator = subvol.config.snapshot_name_separator
    if not _STORAGE_PREFIX_RE.fullmatch(prefix or ""):
        raise subvol.exc.InvalidRequestError(
            "Storage prefix {!r} must begin with a letter and contain only "
            "letters, digits, and hyphens".format(prefix)
        )
    if len(prefix) > 10:
        raise subvol.exc.InvalidRequestError(
            "Length of the storage prefix {!r} should be less than "
            "11".format(prefix)
        )
    if separator in prefix:
        raise subvol.exc.InvalidRequestError(
            "Storage prefix {!r} contains {!r}".format(prefix, separator)
        )
    if prefix.endswith("-"):
        raise subvol.exc.InvalidRequestError(
            "Storage prefix {!r} ends with '-'".format(prefix)
        )


def snapshot_suffix(volume_name: str) -> str:
    """Short fragment of *volume_name* identifying the snapshot's volume.

    *volume_name* is the external name, without the storage prefix.
    """
    marker = subvol.config.volume_name_prefix
    if volume_name.startswith(marker) and len(volume_name) > len(marker):
        return volume_name.split(marker)[1][:5]
    if len(volume_name) > 5:
        return volume_name[:4]
    return volume_name


class SnapshotNaming:
    """Codec for composite snapshot names of one storage prefix"""

    def __init__(self, prefix, separator=None):
        self.prefix = prefix
        self.separator = separator or subvol.config.snapshot_name_separator
        self.pattern = re.compile(
            r"^{}-(.+?){}(.+)".format(
                re.escape(self.prefix), re.escape(self.separator)
            ),
            re.MULTILINE,
        )

    def snapshot_internal_name(self, volume_name: str, snapshot_name: str) -> str:
        snapshot_name = snapshot_name.replace(self.separator, "-")
        return "{}-{}{}{}".format(
            self.prefix,
            snapshot_name,
            self.separator,
            snapshot_suffix(volume_name),
        )

    def decompose(self, internal_name: str) -> Tuple[str, str]:
        """Return the snapshot name and the volume suffix.

        :raises subvol.exc.InvalidNameError: if *internal_name* does not
            name a snapshot
        """
        match = self.pattern.search(internal_name)
        if match is None:
            raise subvol.exc.InvalidNameError(
                internal_name,
                "Not a snapshot subvolume: {!r}".format(internal_name),
            )
        return match.group(1), match.group(2)

    def snapshot_name(self, internal_name: str) -> str:
        """Logical snapshot name, empty if not a snapshot"""
        try:
            return self.decompose(internal_name)[0]
        except subvol.exc.InvalidNameError:
            return ""

    def suffix(self, internal_name: str) -> str:
        """Volume suffix, empty if not a snapshot"""
        try:
            return self.decompose(internal_name)[1]
        except subvol.exc.InvalidNameError:
            return ""

    def is_snapshot(self, internal_name: str) -> bool:
        return bool(self.snapshot_name(internal_name))

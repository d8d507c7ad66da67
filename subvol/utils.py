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

import hashlib
import importlib.metadata
import logging
import os
import os.path
import tempfile
from contextlib import contextmanager, suppress

import subvol.config
import subvol.exc

LOGGER = logging.getLogger('subvol.utils')


def parse_size(size):
    '''Convert size given as a number of bytes or a string with an unit
    suffix (``10G``, ``512MiB``...) to a number of bytes.

    :raises subvol.exc.InvalidRequestError: if *size* cannot be parsed
    '''
    units = [
        ('K', 1000), ('KB', 1000),
        ('M', 1000 * 1000), ('MB', 1000 * 1000),
        ('G', 1000 * 1000 * 1000), ('GB', 1000 * 1000 * 1000),
        ('T', 1000 ** 4), ('TB', 1000 ** 4),
        ('Ki', 1024), ('KiB', 1024),
        ('Mi', 1024 * 1024), ('MiB', 1024 * 1024),
        ('Gi', 1024 * 1024 * 1024), ('GiB', 1024 * 1024 * 1024),
        ('Ti', 1024 ** 4), ('TiB', 1024 ** 4),
    ]

    if isinstance(size, int):
        if size < 0:
            raise subvol.exc.InvalidRequestError(
                "Invalid size: {0}.".format(size))
        return size

    size = str(size).strip().upper()
    if size.isdigit():
        return int(size)

    for unit, multiplier in units:
        if size.endswith(unit.upper()):
            number = size[:-len(unit)].strip()
            if number.isdigit():
                return int(number) * multiplier

    raise subvol.exc.InvalidRequestError("Invalid size: {0}.".format(size))


def check_min_volume_size(size, minimum=None):
    '''Refuse volumes the backend would not create'''
    if minimum is None:
        minimum = subvol.config.min_subvolume_size
    if size < minimum:
        raise subvol.exc.InvalidRequestError(
            'Requested volume size ({} bytes) is too small; the minimum '
            'volume size is {} bytes'.format(size, minimum))


def check_volume_size_limit(size, limit):
    '''Enforce the configured maximum volume size

    :param int size: requested size in bytes
    :param limit: configured limit, anything false means no limit
    '''
    if not limit:
        return
    limit = parse_size(limit)
    if size > limit:
        raise subvol.exc.InvalidRequestError(
            'Requested size {} bytes exceeds the volume size limit of '
            '{} bytes'.format(size, limit))


def volume_path_hash(*components):
    '''Stable, fixed length fingerprint of a backend volume path.

    >>> volume_path_hash('sub', 'rg', 'acct', 'pool', 'vol')   # doctest: +SKIP
    '0b8d5b0c4c0b7f3a8a3ea1e7b6f3e5a1'
    '''
    path = '/'.join(components)
    digest = hashlib.sha256(path.encode('utf-8')).digest()
    return digest[:subvol.config.pool_hash_length].hex()


def get_entry_point_one(group, name):
    epoints = tuple(importlib.metadata.entry_points(group=group, name=name))
    if not epoints:
        raise KeyError(name)
    if len(epoints) > 1:
        raise TypeError(
            'more than 1 implementation of {!r} found: {}'.format(name,
                ', '.join(ep.value for ep in epoints)))
    return epoints[0].load()


@contextmanager
def replace_file(dst, *, permissions, logger=LOGGER, log_level=logging.DEBUG):
    ''' Yield a tempfile whose name starts with dst. If the block does
        not raise an exception, apply permissions and persist the
        tempfile to dst (which is allowed to already exist). Otherwise
        ensure that the tempfile is cleaned up.
    '''
    tmp_dir, prefix = os.path.split(dst + '~')
    tmp = tempfile.NamedTemporaryFile(dir=tmp_dir or '.', prefix=prefix,
                                      delete=False)
    try:
        yield tmp
        tmp.flush()
        os.fchmod(tmp.fileno(), permissions)
        os.fsync(tmp.fileno())
        tmp.close()
        os.replace(tmp.name, dst)
        logger.log(log_level, 'Renamed file: %r -> %r', tmp.name, dst)
    except BaseException:
        tmp.close()
        with suppress(FileNotFoundError):
            os.remove(tmp.name)
            logger.log(log_level, 'Removed file: %r', tmp.name)
        raise

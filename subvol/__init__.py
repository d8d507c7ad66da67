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

'''
subvol manages volumes, clones and snapshots on cloud file storage whose
only provisioning primitive is a flat *subvolume* (create, delete, resize).

Every high level operation is a coroutine and is safe to call again after a
partial failure: the caller is expected to re-invoke an operation that raised
a retryable exception (see :py:func:`subvol.exc.is_retryable`).
'''

__version__ = '1.0.0'

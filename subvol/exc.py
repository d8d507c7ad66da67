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
subvol exception hierarchy

Every exception carries a :py:attr:`SubvolException.retryable` flag. A
retryable exception tells the reconciling caller to invoke the same operation
again later instead of marking the resource as failed.
"""


class SubvolException(Exception):
    """Exception that can be shown to the user"""

    #: the caller should re-invoke the operation later
    retryable = False


class SubvolValueError(SubvolException, ValueError):
    """Cannot use some value, because it is invalid, out of bounds, etc."""


class InvalidNameError(SubvolValueError):
    """A volume, snapshot or creation token name violates its grammar"""

    def __init__(self, name, msg=None):
        super().__init__(msg or "Name is not allowed: {!r}".format(name))
        self.name = name


class InvalidRequestError(SubvolValueError):
    """The request cannot be fulfilled as specified (size policy, shrink)"""


class VolumeExistsError(SubvolException):
    """Subvolume already exists and has converged.

    Raised by idempotent creation when the requested subvolume was found and
    adopted. Callers treating provisioning as idempotent should handle it as
    success.
    """

    def __init__(self, name, msg=None):
        super().__init__(msg or "Volume already exists: {!r}".format(name))
        self.name = name


class SubvolumeNotFoundError(SubvolException, KeyError):
    """Subvolume cannot be found on the backend"""

    def __init__(self, name, msg=None):
        super().__init__(msg or "No such subvolume: {!r}".format(name))
        self.name = name

    def __str__(self):
        # KeyError overrides __str__ method
        return SubvolException.__str__(self)


class InProgressError(SubvolException):
    """Operation has not finished yet, try again later"""

    retryable = True


class VolumeCreatingError(InProgressError):
    """Subvolume is still being created"""


class BackendError(SubvolException):
    """The storage backend reported a failure"""


class SubvolumeStateError(BackendError):
    """Subvolume did not reach (or is not in) the expected state.

    :py:attr:`state` holds the last observed provisioning state, empty if
    the subvolume could not be observed at all.
    """

    def __init__(self, name, state, msg=None):
        super().__init__(
            msg or "Subvolume {!r} is in state {!r}".format(name, state)
        )
        self.name = name
        self.state = state


class InvariantViolationError(SubvolException):
    """The request contradicts itself, e.g. snapshot of a different volume"""


class UnknownPoolError(SubvolException, KeyError):
    """Storage pool is not configured"""

    def __init__(self, name):
        super().__init__("Unknown storage pool {!r}".format(name))
        self.name = name

    def __str__(self):
        # KeyError overrides __str__ method
        return SubvolException.__str__(self)


class PoolInUseError(SubvolException):
    """Pool is in use, cannot remove."""

    def __init__(self, pool, msg=None):
        super().__init__(
            msg or "Storage pool is in use: {!r}".format(pool.name)
        )


def is_retryable(exc):
    """Return `True` if *exc* signals that the operation should be retried"""
    return bool(getattr(exc, "retryable", False))

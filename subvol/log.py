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

'''subvol logging routines

Pool drivers log through ``subvol.storage.<driver>.<pool>`` loggers, see
:py:func:`get_pool_logger`. Nothing is printed until :py:func:`enable` is
called by the embedding program.
'''

import logging
import sys

POOL_LOGGER_PREFIX = 'subvol.storage.'


class Formatter(logging.Formatter):
    '''Short messages by default, with source location in debug mode.

    Records coming from a pool logger are prefixed with the pool name, so
    concurrent operations on several pools can be told apart.
    '''
    def __init__(self, *args, debug=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.debug = debug

    def formatMessage(self, record):
        fmt = ''
        if self.debug:
            fmt += '[%(processName)s %(module)s.%(funcName)s:%(lineno)d] '
            fmt += '%(levelname)s %(name)s: '
        elif record.name.startswith(POOL_LOGGER_PREFIX):
            fmt += '{}: '.format(record.name[len(POOL_LOGGER_PREFIX):])
        fmt += '%(message)s'

        return fmt % record.__dict__


def enable(stream=None):
    '''Enable global logging

    Use :py:mod:`logging` module from standard library to log messages.

    >>> import subvol.log
    >>> subvol.log.enable()         # doctest: +SKIP
    >>> import logging
    >>> logging.warning('Foobar')   # doctest: +SKIP
    '''

    if logging.root.handlers:
        return

    handler_console = logging.StreamHandler(stream or sys.stderr)
    handler_console.setFormatter(Formatter())
    logging.root.addHandler(handler_console)

    logging.root.setLevel(logging.INFO)

def enable_debug(stream=None):
    '''Enable debug logging

    Step by step progress of create, delete and restore operations is logged
    at the debug level.
    '''

    enable(stream)

    for handler in logging.root.handlers:
        handler.setFormatter(Formatter(debug=True))

    logging.root.setLevel(logging.DEBUG)

def get_pool_logger(driver, pool_name=None):
    '''Initialise logging for particular storage pool

    :param str driver: pool driver module name, like ``subvolume``
    :param str pool_name: name of the configured pool
    :rtype: :py:class:`logging.Logger`
    '''

    name = POOL_LOGGER_PREFIX + driver
    if pool_name:
        name += '.' + pool_name
    return logging.getLogger(name)

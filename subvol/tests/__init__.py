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
.. warning::
    The test suite hereby claims any pool named with a prefix
    :py:data:`POOLPREFIX`. Those pools only ever live in memory.

    All tests run against an in-memory backend, see
    :py:mod:`subvol.tests.storage`.
'''

import asyncio
import logging
import traceback
import unittest

#: pool names used in tests start with this
POOLPREFIX = 'test-'


class _AssertNotRaisesContext(object):
    """A context manager used to implement TestCase.assertNotRaises methods.

    Stolen from unittest and hacked. Regexp support stripped.
    """ # pylint: disable=too-few-public-methods

    def __init__(self, expected, test_case, expected_regexp=None):
        if expected_regexp is not None:
            raise NotImplementedError('expected_regexp is unsupported')

        self.expected = expected
        self.exception = None

        self.failureException = test_case.failureException

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        if exc_type is None:
            return True

        if issubclass(exc_type, self.expected):
            raise self.failureException(
                "{!r} raised, traceback:\n{!s}".format(
                    exc_value, ''.join(traceback.format_tb(tb))))
        # pass through
        return False


class SubvolTestCase(unittest.TestCase):
    '''Base class for subvol unit tests.

    Every test gets its own event loop in :py:attr:`loop`; run coroutines
    with ``self.loop.run_until_complete()``.
    '''

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.longMessage = True
        self.log = logging.getLogger('{}.{}.{}'.format(
            self.__class__.__module__,
            self.__class__.__name__,
            self._testMethodName))
        self.loop = None

    def __str__(self):
        return '{}/{}/{}'.format(
            self.__class__.__module__,
            self.__class__.__name__,
            self._testMethodName)

    def setUp(self):
        super().setUp()
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self.addCleanup(self.cleanup_loop)

    def cleanup_loop(self):
        '''Check that no task outlived the test, then close the loop'''
        pending = [task for task in asyncio.all_tasks(self.loop)
            if not task.done()]
        for task in pending:
            task.cancel()
        self.loop.close()
        asyncio.set_event_loop(None)
        del self.loop
        assert not pending, 'tasks left behind: {!r}'.format(pending)

    def assertNotRaises(self, excClass, callableObj=None, *args, **kwargs):
        """Fail if an exception of class excClass is raised
           by callableObj when invoked with arguments args and keyword
           arguments kwargs. If a different type of exception is
           raised, it will not be caught, and the test case will be
           deemed to have suffered an error, exactly as for an
           unexpected exception.

           If called with callableObj omitted or None, will return a
           context object used like this::

                with self.assertNotRaises(SomeException):
                    do_something()
        """
        context = _AssertNotRaisesContext(excClass, self)
        if callableObj is None:
            return context
        with context:
            callableObj(*args, **kwargs)

    def assertLogged(self, logger, level, fragment):
        '''Context manager checking that a record containing *fragment*
        was emitted, a thin wrapper over :py:meth:`assertLogs`'''
        return _AssertLoggedContext(self, logger, level, fragment)


class _AssertLoggedContext(object):
    # pylint: disable=too-few-public-methods
    def __init__(self, test_case, logger, level, fragment):
        self.test_case = test_case
        self.fragment = fragment
        self.cm = test_case.assertLogs(logger, level)
        self.watcher = None

    def __enter__(self):
        self.watcher = self.cm.__enter__()
        return self.watcher

    def __exit__(self, exc_type, exc_value, tb):
        result = self.cm.__exit__(exc_type, exc_value, tb)
        if exc_type is None:
            self.test_case.assertTrue(
                any(self.fragment in line for line in self.watcher.output),
                '{!r} not logged, got {!r}'.format(
                    self.fragment, self.watcher.output))
        return result


def load_tests(loader, tests, pattern): # pylint: disable=unused-argument
    # discard any tests from this module, because it hosts base classes
    tests = unittest.TestSuite()

    for modname in (
            'subvol.tests.utils',
            'subvol.tests.storage',
            'subvol.tests.storage_naming',
            'subvol.tests.storage_pollers',
            'subvol.tests.storage_subvolume',
            'subvol.tests.storage_restore',
            'subvol.tests.app',
            ):
        tests.addTests(loader.loadTestsFromName(modname))

    return tests

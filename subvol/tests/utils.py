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

import io
import logging
import os
import tempfile
import unittest.mock

import subvol.exc
import subvol.log
import subvol.utils
from subvol.tests import SubvolTestCase


class TC_00_ParseSize(SubvolTestCase):
    def test_000_bytes(self):
        self.assertEqual(subvol.utils.parse_size(20971520), 20971520)
        self.assertEqual(subvol.utils.parse_size('20971520'), 20971520)
        self.assertEqual(subvol.utils.parse_size(' 42 '), 42)

    def test_001_units(self):
        cases = {
            '1K': 1000,
            '1KB': 1000,
            '20M': 20 * 1000 ** 2,
            '10G': 10 * 1000 ** 3,
            '10gb': 10 * 1000 ** 3,
            '1T': 1000 ** 4,
            '1Ki': 1024,
            '20Mi': 20971520,
            '20MiB': 20971520,
            '1GiB': 1024 ** 3,
            '2Ti': 2 * 1024 ** 4,
            '1 GiB': 1024 ** 3,
        }
        for size, expected in cases.items():
            with self.subTest(size):
                self.assertEqual(subvol.utils.parse_size(size), expected)

    def test_002_invalid(self):
        for size in ('', 'abc', '1.5G', '10X', '-1', -1, 'G'):
            with self.subTest(size):
                with self.assertRaises(subvol.exc.InvalidRequestError):
                    subvol.utils.parse_size(size)

    def test_010_min_size(self):
        with self.assertNotRaises(subvol.exc.InvalidRequestError):
            subvol.utils.check_min_volume_size(20971520)
        with self.assertRaises(subvol.exc.InvalidRequestError):
            subvol.utils.check_min_volume_size(20971519)
        with self.assertRaises(subvol.exc.InvalidRequestError):
            subvol.utils.check_min_volume_size(10, minimum=11)

    def test_020_limit(self):
        with self.assertNotRaises(subvol.exc.InvalidRequestError):
            subvol.utils.check_volume_size_limit(10 ** 12, '')
            subvol.utils.check_volume_size_limit(10 ** 12, None)
            subvol.utils.check_volume_size_limit(1024 ** 3, '1Gi')
        with self.assertRaises(subvol.exc.InvalidRequestError):
            subvol.utils.check_volume_size_limit(1024 ** 3 + 1, '1Gi')


class TC_10_Misc(SubvolTestCase):
    def test_000_volume_path_hash(self):
        digest = subvol.utils.volume_path_hash('sub', 'rg', 'a', 'p', 'v')
        self.assertEqual(len(digest), 32)
        self.assertEqual(digest,
            subvol.utils.volume_path_hash('sub', 'rg', 'a', 'p', 'v'))
        self.assertNotEqual(digest,
            subvol.utils.volume_path_hash('sub', 'rg', 'a', 'p', 'w'))

    def test_010_entry_point_missing(self):
        with unittest.mock.patch('importlib.metadata.entry_points',
                return_value=[]):
            with self.assertRaises(KeyError):
                subvol.utils.get_entry_point_one('subvol.storage', 'nope')

    def test_011_entry_point_ambiguous(self):
        epoints = [unittest.mock.Mock(value='a:A'),
            unittest.mock.Mock(value='b:B')]
        with unittest.mock.patch('importlib.metadata.entry_points',
                return_value=epoints):
            with self.assertRaises(TypeError):
                subvol.utils.get_entry_point_one('subvol.storage', 'dup')

    def test_012_entry_point(self):
        epoint = unittest.mock.Mock(value='a:A')
        epoint.load.return_value = 'driver'
        with unittest.mock.patch('importlib.metadata.entry_points',
                return_value=[epoint]):
            self.assertEqual(
                subvol.utils.get_entry_point_one('subvol.storage', 'a'),
                'driver')


class TC_20_ReplaceFile(SubvolTestCase):
    def setUp(self):
        super().setUp()
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.path = os.path.join(self.tmpdir.name, 'subvol.xml')

    def test_000_replace(self):
        with open(self.path, 'w') as fh:
            fh.write('old')
        with subvol.utils.replace_file(self.path, permissions=0o640) as tmp:
            tmp.write(b'new')
        with open(self.path) as fh:
            self.assertEqual(fh.read(), 'new')
        self.assertEqual(os.stat(self.path).st_mode & 0o777, 0o640)
        self.assertEqual(os.listdir(self.tmpdir.name), ['subvol.xml'])

    def test_001_failure_keeps_old(self):
        with open(self.path, 'w') as fh:
            fh.write('old')
        with self.assertRaises(RuntimeError):
            with subvol.utils.replace_file(self.path,
                    permissions=0o640) as tmp:
                tmp.write(b'new')
                raise RuntimeError('boom')
        with open(self.path) as fh:
            self.assertEqual(fh.read(), 'old')
        self.assertEqual(os.listdir(self.tmpdir.name), ['subvol.xml'])


class TC_30_Log(SubvolTestCase):
    def test_000_pool_logger_name(self):
        self.assertEqual(subvol.log.get_pool_logger('subvolume').name,
            'subvol.storage.subvolume')
        self.assertEqual(
            subvol.log.get_pool_logger('subvolume', 'anf').name,
            'subvol.storage.subvolume.anf')

    def test_010_formatter(self):
        record = logging.LogRecord('subvol.storage.subvolume.anf',
            logging.INFO, __file__, 1, 'created %s', ('x',), None)
        self.assertEqual(subvol.log.Formatter().format(record),
            'subvolume.anf: created x')

        record = logging.LogRecord('subvol.app', logging.INFO, __file__, 1,
            'hello', (), None)
        self.assertEqual(subvol.log.Formatter().format(record), 'hello')

    def test_011_formatter_debug(self):
        record = logging.LogRecord('subvol.app', logging.WARNING, __file__,
            1, 'hello', (), None)
        formatted = subvol.log.Formatter(debug=True).format(record)
        self.assertIn('WARNING subvol.app: hello', formatted)

    def test_020_enable(self):
        stream = io.StringIO()
        with unittest.mock.patch.object(logging.root, 'handlers', []), \
                unittest.mock.patch.object(logging.root, 'level',
                    logging.WARNING):
            subvol.log.enable(stream)
            self.assertEqual(len(logging.root.handlers), 1)
            self.assertEqual(logging.root.level, logging.INFO)

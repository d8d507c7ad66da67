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

import doctest

import subvol.exc
import subvol.storage.naming
from subvol.storage import api
from subvol.storage.naming import SnapshotNaming, snapshot_suffix
from subvol.tests import SubvolTestCase

# :pylint: disable=invalid-name


class TC_00_Validation(SubvolTestCase):
    def test_000_volume_name(self):
        for name in ('a', 'pvc-abc12345-xyz', 'A' + 'b' * 39):
            with self.subTest(name):
                with self.assertNotRaises(subvol.exc.InvalidNameError):
                    subvol.storage.naming.validate_volume_name(name)

    def test_001_volume_name_invalid(self):
        for name in ('', '1abc', '-abc', 'a_b', 'a' * 41, 'pvc-file-1',
                     'a.b'):
            with self.subTest(name):
                with self.assertRaises(subvol.exc.InvalidNameError):
                    subvol.storage.naming.validate_volume_name(name)

    def test_010_snapshot_name(self):
        with self.assertNotRaises(subvol.exc.InvalidNameError):
            subvol.storage.naming.validate_snapshot_name('a' * 45)
        with self.assertNotRaises(subvol.exc.InvalidNameError):
            subvol.storage.naming.validate_snapshot_name('daily-1')

    def test_011_snapshot_name_invalid(self):
        for name in ('', 'a' * 46, 'daily--1', '1daily'):
            with self.subTest(name):
                with self.assertRaises(subvol.exc.InvalidNameError):
                    subvol.storage.naming.validate_snapshot_name(name)

    def test_020_creation_token(self):
        with self.assertNotRaises(subvol.exc.InvalidNameError):
            subvol.storage.naming.validate_creation_token('t' * 64)
        with self.assertRaises(subvol.exc.InvalidNameError):
            subvol.storage.naming.validate_creation_token('t' * 65)
        with self.assertRaises(subvol.exc.InvalidNameError):
            subvol.storage.naming.validate_creation_token('trident_x')

    def test_030_storage_prefix(self):
        for prefix in ('trident', 'netappdvp', 'a-b', 'x' * 10):
            with self.subTest(prefix):
                with self.assertNotRaises(subvol.exc.InvalidRequestError):
                    subvol.storage.naming.validate_storage_prefix(prefix)

    def test_031_storage_prefix_invalid(self):
        for prefix in ('', 'x' * 11, 'a--b', 'trident-', '1abc', 'a_b'):
            with self.subTest(prefix):
                with self.assertRaises(subvol.exc.InvalidRequestError):
                    subvol.storage.naming.validate_storage_prefix(prefix)

    def test_040_errors_are_value_errors(self):
        with self.assertRaises(ValueError):
            subvol.storage.naming.validate_volume_name('')
        self.assertFalse(subvol.exc.is_retryable(
            subvol.exc.InvalidNameError('')))


class TC_10_SnapshotNaming(SubvolTestCase):
    def setUp(self):
        super().setUp()
        self.naming = SnapshotNaming('trident')

    def test_000_suffix(self):
        self.assertEqual(snapshot_suffix('pvc-abc12345-xyz'), 'abc12')
        self.assertEqual(snapshot_suffix('myvolume'), 'myvo')
        self.assertEqual(snapshot_suffix('vol1'), 'vol1')
        self.assertEqual(snapshot_suffix('abcde'), 'abcde')

    def test_001_suffix_short_pvc(self):
        self.assertEqual(snapshot_suffix('pvc-ab'), 'ab')
        # nothing after the marker
        self.assertEqual(snapshot_suffix('pvc-'), 'pvc-')

    def test_010_compose(self):
        self.assertEqual(
            self.naming.snapshot_internal_name('pvc-abc12345-xyz', 'daily'),
            'trident-daily--abc12')

    def test_011_compose_collapses_separator(self):
        self.assertEqual(
            self.naming.snapshot_internal_name('vol1', 'a--b'),
            'trident-a-b--vol1')

    def test_020_decompose(self):
        self.assertEqual(self.naming.decompose('trident-daily--abc12'),
            ('daily', 'abc12'))
        self.assertEqual(self.naming.snapshot_name('trident-daily--abc12'),
            'daily')
        self.assertEqual(self.naming.suffix('trident-daily--abc12'),
            'abc12')

    def test_021_decompose_hyphenated(self):
        # non-greedy name, greedy suffix
        self.assertEqual(self.naming.decompose('trident-a-b--c--d'),
            ('a-b', 'c--d'))

    def test_022_not_snapshot(self):
        for name in ('trident-pvc-1-file-0', 'other-daily--abc12',
                     'tridentdaily--abc12'):
            with self.subTest(name):
                self.assertFalse(self.naming.is_snapshot(name))
                self.assertEqual(self.naming.snapshot_name(name), '')
                self.assertEqual(self.naming.suffix(name), '')
                with self.assertRaises(subvol.exc.InvalidNameError):
                    self.naming.decompose(name)

    def test_030_round_trip(self):
        for volume, snapshot in (('pvc-abc12345-xyz', 'daily'),
                                 ('vol1', 'snap-1'),
                                 ('myvolume', 'x')):
            with self.subTest(volume=volume, snapshot=snapshot):
                internal = self.naming.snapshot_internal_name(volume,
                    snapshot)
                self.assertTrue(self.naming.is_snapshot(internal))
                self.assertEqual(self.naming.decompose(internal),
                    (snapshot, snapshot_suffix(volume)))

    def test_040_prefix_escaped(self):
        naming = SnapshotNaming('a.b')
        self.assertFalse(naming.is_snapshot('axb-daily--abc12'))
        self.assertTrue(naming.is_snapshot('a.b-daily--abc12'))

    def test_050_docstring(self):
        result = doctest.testmod(subvol.storage.naming)
        self.assertEqual(result.failed, 0)


class TC_20_SubvolumeID(SubvolTestCase):
    subvolume_id = ('/subscriptions/sub/resourceGroups/rg'
        '/providers/Microsoft.NetApp/netAppAccounts/acct'
        '/capacityPools/cpool/volumes/vol/subvolumes/trident-a-file-0')

    def test_000_create(self):
        self.assertEqual(api.create_subvolume_id('sub', 'rg', 'acct',
            'cpool', 'vol', 'trident-a-file-0'), self.subvolume_id)

    def test_001_parse(self):
        parsed = api.parse_subvolume_id(self.subvolume_id)
        self.assertEqual(parsed.subscription_id, 'sub')
        self.assertEqual(parsed.resource_group, 'rg')
        self.assertEqual(parsed.provider, 'Microsoft.NetApp')
        self.assertEqual(parsed.netapp_account, 'acct')
        self.assertEqual(parsed.capacity_pool, 'cpool')
        self.assertEqual(parsed.volume, 'vol')
        self.assertEqual(parsed.subvolume, 'trident-a-file-0')

    def test_002_parse_case_insensitive(self):
        parsed = api.parse_subvolume_id(self.subvolume_id.replace(
            'resourceGroups', 'resourcegroups'))
        self.assertEqual(parsed.resource_group, 'rg')

    def test_003_parse_invalid(self):
        for subvolume_id in ('', '/subscriptions/sub',
                             self.subvolume_id + '/extra',
                             self.subvolume_id.replace('/volumes/', '/v/')):
            with self.subTest(subvolume_id):
                with self.assertRaises(subvol.exc.SubvolValueError):
                    api.parse_subvolume_id(subvolume_id)

    def test_010_sibling(self):
        sibling = api.sibling_subvolume_id(self.subvolume_id,
            'trident-daily--a')
        self.assertEqual(sibling, self.subvolume_id.replace(
            'trident-a-file-0', 'trident-daily--a'))

    def test_020_from_id(self):
        subvolume = api.Subvolume.from_id(self.subvolume_id)
        self.assertEqual(subvolume.name, 'trident-a-file-0')
        self.assertEqual(subvolume.volume_full_name, 'rg/acct/cpool/vol')

    def test_030_volume_full_name(self):
        self.assertEqual(api.parse_volume_full_name('rg/acct/cpool/vol'),
            ('rg', 'acct', 'cpool', 'vol'))
        for name in ('', 'rg/acct/cpool', 'rg/acct//vol', 'a/b/c/d/e'):
            with self.subTest(name):
                with self.assertRaises(subvol.exc.SubvolValueError):
                    api.parse_volume_full_name(name)

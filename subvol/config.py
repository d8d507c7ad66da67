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

'''Constants which can be configured in one place'''

#: the smallest subvolume the backend accepts, in bytes (20 MiB)
min_subvolume_size = 20971520

#: number of bytes of the SHA-256 digest used in physical pool names
pool_hash_length = 16

#: separator between logical snapshot name and volume suffix
snapshot_name_separator = '--'
#: orchestrator-assigned volume names start with this marker
volume_name_prefix = 'pvc-'
#: appended to the creation token of the temporary copy made by a restore
temp_copy_suffix = '-og'
#: the backend reserves this token inside subvolume names
subvolume_name_separator = '-file-'

#: driver contexts
context_csi = 'csi'
context_docker = 'docker'

store_filename = '/etc/subvol/subvol.xml'

defaults = {
    'driver_context': context_csi,
    'storage_prefix': {
        context_csi: 'trident',
        context_docker: 'netappdvp',
    },
    'size': '20971520',
    # empty means no limit
    'limit_volume_size': '',

    # seconds
    'volume_create_timeout': {
        context_csi: 10,
        context_docker: 115,
    },
    'default_timeout': {
        context_csi: 120,
        context_docker: 115,
    },
}

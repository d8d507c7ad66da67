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

''' Driver for volumes stored as subvolumes of cloud file pool volumes. '''

import time
from typing import NamedTuple

import lxml.etree

import subvol.config
import subvol.exc
import subvol.log
import subvol.storage
import subvol.utils
from subvol.storage import api
from subvol.storage import naming
from subvol.storage.pollers import (
    Operation,
    PendingDeletionLedger,
    PollerCache,
    PollerKey,
)

_defaults = subvol.config.defaults


class StoragePool(NamedTuple):
    ''' Place where new volumes of a :py:class:`SubvolumePool` are
    provisioned: one parent volume and the default size of new volumes. '''
    name: str
    #: full name of the parent volume
    file_pool_volume: str
    size: str
    virtual: bool = False


def _split_list(value):
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(',')
    return [item.strip() for item in value if item.strip()]


class SubvolumePool(subvol.storage.Pool):
    ''' Volumes backed by subvolumes of one or more cloud file pool volumes.

    The backend only knows how to create, delete and resize a subvolume.
    Snapshots, clones and restores are all built from these primitives;
    a snapshot is a subvolume copied from its volume and named::

        {storage_prefix}-{snapshot name}--{volume suffix}

    Every operation may be invoked again after it raised a retryable
    exception, and will then continue where the previous invocation stopped.
    Operations started on the backend are remembered in :py:attr:`pollers`,
    obligations to delete a temporary subvolume in :py:attr:`ledger`.

    Options:

    * `subscription_id`: cloud subscription of the file pool volumes
    * `location`: cloud region, informational
    * `storage_prefix`: prefix of creation tokens of managed subvolumes
    * `file_pool_volumes`: comma separated list of parent volumes, each as
      ``resource-group/account/capacity-pool/volume``
    * `size`: default size of new volumes
    * `limit_volume_size`: maximum size of a volume, empty for no limit
    * `volume_create_timeout`: seconds to wait for a subvolume to become
      available before giving up for this invocation
    * `driver_context`: ``csi`` (default) or ``docker``
    * `virtual_pools`: list of dicts with optional `file_pool_volumes`
      and `size` keys, each becoming a storage pool of its own
    '''  # pylint: disable=protected-access

    driver = 'anf-subvolume'

    def __init__(self, *, name, subscription_id='', location='',
                 storage_prefix=None, file_pool_volumes=None, size=None,
                 limit_volume_size=None, volume_create_timeout=None,
                 driver_context=None, virtual_pools=None,
                 api=None, pollers=None, ledger=None):
        # pylint: disable=redefined-outer-name
        super().__init__(name=name)
        self.subscription_id = subscription_id
        self.location = location
        self.driver_context = driver_context or _defaults['driver_context']
        if storage_prefix is None:
            storage_prefix = _defaults['storage_prefix'].get(
                self.driver_context, _defaults['storage_prefix'][
                    subvol.config.context_csi])
        self.storage_prefix = storage_prefix
        self.file_pool_volumes = _split_list(file_pool_volumes)
        self.size = size or _defaults['size']
        self.limit_volume_size = limit_volume_size or \
            _defaults['limit_volume_size']
        self._volume_create_timeout = volume_create_timeout
        self.virtual_pools = [dict(vpool) for vpool in virtual_pools or ()]

        #: backend client, see :py:class:`subvol.storage.api.SubvolumeAPI`
        self.api = api
        self.pollers = pollers if pollers is not None else PollerCache()
        self.ledger = ledger if ledger is not None else \
            PendingDeletionLedger()
        self.naming = naming.SnapshotNaming(self.storage_prefix)
        self.log = subvol.log.get_pool_logger('subvolume', self.name)

        self.physical_pools, self.virtual_storage_pools = \
            self._init_storage_pools()

    def __repr__(self):
        return '<{} at {:#x} name={!r} storage_prefix={!r}>'.format(
            type(self).__name__, id(self), self.name, self.storage_prefix)

    @property
    def config(self):
        result = {
            'name': self.name,
            'driver': SubvolumePool.driver,
            'subscription_id': self.subscription_id,
            'location': self.location,
            'storage_prefix': self.storage_prefix,
            'file_pool_volumes': self.file_pool_volumes,
            'size': self.size,
            'driver_context': self.driver_context,
        }
        if self.limit_volume_size:
            result['limit_volume_size'] = self.limit_volume_size
        if self._volume_create_timeout not in (None, ''):
            result['volume_create_timeout'] = self._volume_create_timeout
        return result

    def __xml__(self):
        element = super().__xml__()
        for vpool in self.virtual_pools:
            lxml.etree.SubElement(element, 'virtual-pool',
                **subvol.storage._sanitize_config(vpool))
        return element

    @property
    def volume_create_timeout(self):
        ''' Seconds to wait for a subvolume to become available '''
        if self._volume_create_timeout not in (None, ''):
            return int(self._volume_create_timeout)
        return _defaults['volume_create_timeout'].get(
            self.driver_context, _defaults['volume_create_timeout'][
                subvol.config.context_csi])

    @property
    def default_timeout(self):
        ''' Seconds to wait for other operations, most notably deletion '''
        return _defaults['default_timeout'].get(
            self.driver_context, _defaults['default_timeout'][
                subvol.config.context_csi])

    def _init_storage_pools(self):
        physical_pools = {}
        virtual_pools = {}

        for file_pool_volume in self.file_pool_volumes:
            resource_group, account, capacity_pool, volume = \
                api.parse_volume_full_name(file_pool_volume)
            path_hash = subvol.utils.volume_path_hash(self.subscription_id,
                resource_group, account, capacity_pool, volume)
            pool_name = '{}_{}'.format(volume, path_hash).replace('-', '')
            physical_pools[pool_name] = StoragePool(
                pool_name, file_pool_volume, self.size)

        for index, vpool in enumerate(self.virtual_pools):
            pool_name = '{}_{}'.format(self.name, 'pool_{}'.format(index))
            file_pool_volumes = _split_list(vpool.get('file_pool_volumes')) \
                or self.file_pool_volumes
            for file_pool_volume in file_pool_volumes:
                api.parse_volume_full_name(file_pool_volume)
            virtual_pools[pool_name] = StoragePool(
                pool_name,
                file_pool_volumes[0] if file_pool_volumes else '',
                vpool.get('size') or self.size,
                virtual=True)

        return physical_pools, virtual_pools

    @property
    def storage_pools(self):
        ''' All storage pools, virtual ones first '''
        result = dict(self.virtual_storage_pools)
        result.update(self.physical_pools)
        return result

    def get_storage_pool(self, storage_pool=None):
        ''' Return :py:class:`StoragePool` by name, the first one if no
        name is given '''
        if isinstance(storage_pool, StoragePool):
            return storage_pool
        pools = self.storage_pools
        if storage_pool is None:
            if not pools:
                raise subvol.exc.InvalidRequestError(
                    'Pool {} has no file pool volumes'.format(self.name))
            return next(iter(pools.values()))
        try:
            return pools[storage_pool]
        except KeyError:
            raise subvol.exc.UnknownPoolError(storage_pool)

    def get_all_file_pool_volumes(self):
        ''' Parent volumes in which subvolumes of this pool may live '''
        if not self.virtual_storage_pools:
            return list(self.file_pool_volumes)
        candidates = []
        for vpool in self.virtual_storage_pools.values():
            if vpool.file_pool_volume not in candidates:
                candidates.append(vpool.file_pool_volume)
        return candidates

    def validate(self):
        naming.validate_storage_prefix(self.storage_prefix)

        if not self.physical_pools and not self.virtual_storage_pools:
            raise subvol.exc.InvalidRequestError(
                'file_pool_volumes is a required field')

        for storage_pool in self.storage_pools.values():
            if not storage_pool.file_pool_volume:
                raise subvol.exc.InvalidRequestError(
                    'No file pool volume for pool {}'.format(
                        storage_pool.name))
            try:
                subvol.utils.parse_size(storage_pool.size)
            except subvol.exc.InvalidRequestError as e:
                raise subvol.exc.InvalidRequestError(
                    'Invalid value for default volume size in pool '
                    '{}: {}'.format(storage_pool.name, e)) from e

        try:
            timeout = self.volume_create_timeout
        except ValueError:
            timeout = -1
        if timeout < 0:
            raise subvol.exc.InvalidRequestError(
                'Invalid volume_create_timeout {!r}'.format(
                    self._volume_create_timeout))

        if self.limit_volume_size:
            subvol.utils.parse_size(self.limit_volume_size)

    async def setup(self):
        if self.api is None:
            raise subvol.exc.SubvolException(
                'No backend API configured for pool {}'.format(self.name))
        self.validate()
        self.log.debug('Pool configured with storage pools %s',
            ', '.join(self.storage_pools))

    async def destroy(self):
        # subvolumes are left on the backend
        self._volume_objects_cache.clear()

    def init_volume(self, volume_config):
        ''' Initialize a :py:class:`SubvolumeVolume` from `volume_config`.
        '''
        volume_config = dict(volume_config)
        volume_config.pop('pool', None)
        if not volume_config.get('internal_name'):
            volume_config['internal_name'] = self.get_internal_volume_name(
                volume_config['name'])
        volume = SubvolumeVolume(pool=self, **volume_config)
        self._volume_objects_cache[volume.name] = volume
        return volume

    def get_internal_volume_name(self, name):
        ''' Creation token of the subvolume standing for volume *name* '''
        internal = name
        if self.storage_prefix:
            internal = '{}-{}'.format(self.storage_prefix, name)
        internal += subvol.config.subvolume_name_separator + '0'
        self.log.debug('Internal name of volume %s is %s', name, internal)
        return internal

    def create_prepare(self, volume):
        volume.internal_name = self.get_internal_volume_name(volume.name)

    async def get(self, name):
        ''' Check that subvolume with creation token *name* exists

        :raises subvol.exc.SubvolumeNotFoundError: if it does not
        '''
        try:
            await self.api.subvolume_by_creation_token(
                name, self.get_all_file_pool_volumes())
        except subvol.exc.SubvolumeNotFoundError as e:
            raise subvol.exc.SubvolumeNotFoundError(name,
                'Could not get volume {}: {}'.format(name, e)) from e

    async def list_volumes(self):
        ''' Volumes of this pool found on the backend '''
        subvolumes = await self.api.subvolumes(
            self.get_all_file_pool_volumes())

        volumes = []
        for subvolume in subvolumes:
            if subvolume.provisioning_state in (api.STATE_DELETING,
                    api.STATE_DELETED, api.STATE_ERROR):
                continue
            if not subvolume.name.startswith(self.storage_prefix):
                continue
            if self.naming.is_snapshot(subvolume.name):
                self.log.debug('Skipping snapshot subvolume %s',
                    subvolume.name)
                continue
            volumes.append(self._external_volume(subvolume))
        return volumes

    def _external_volume(self, subvolume):
        internal_name = subvolume.name
        name = internal_name
        if self.storage_prefix and internal_name.startswith(
                self.storage_prefix):
            name = internal_name[len(self.storage_prefix + '-'):]
        name = name.split(subvol.config.subvolume_name_separator)[0]
        return SubvolumeVolume(name, self,
            internal_name=internal_name,
            internal_id=subvolume.id,
            size=subvolume.size)

    async def subvolume_exists(self, volume):
        ''' Look the subvolume of *volume* up by ID, or by creation token
        when the ID is not known yet.

        :returns: tuple (exists, subvolume)
        '''
        try:
            if volume.internal_id:
                return await self.api.subvolume_exists_by_id(
                    volume.internal_id)
            return await self.api.subvolume_exists_by_creation_token(
                volume.internal_name, self.get_all_file_pool_volumes())
        except subvol.exc.BackendError as e:
            raise subvol.exc.BackendError(
                'Error checking for existing subvolume {}: {}'.format(
                    volume.internal_name, e)) from e

    async def get_subvolume(self, volume, query_metadata=False):
        try:
            if volume.internal_id:
                return await self.api.subvolume_by_id(volume.internal_id,
                    query_metadata)
            return await self.api.subvolume_by_creation_token(
                volume.internal_name, self.get_all_file_pool_volumes(),
                query_metadata)
        except subvol.exc.SubvolumeNotFoundError as e:
            raise subvol.exc.SubvolumeNotFoundError(volume.internal_name,
                'Could not find subvolume {}: {}'.format(
                    volume.internal_name, e)) from e

    async def create_subvolume(self, request, operation=Operation.CREATE):
        ''' Start creating a subvolume and remember the operation handle,
        so a later invocation can keep watching it.

        :returns: tuple (subvolume, poller)
        '''
        try:
            subvolume, poller = await self.api.create_subvolume(request)
        except subvol.exc.SubvolException as e:
            raise subvol.exc.BackendError(
                'Error creating subvolume {}: {}'.format(
                    request.creation_token, e)) from e
        async with self.pollers.locked():
            self.pollers.put(PollerKey(subvolume.id, operation), poller)
        return subvolume, poller

    async def cached_poller(self, subvolume_id, operation=Operation.CREATE):
        async with self.pollers.locked():
            return self.pollers.get(PollerKey(subvolume_id, operation))

    async def wait_for_subvolume_create(self, subvolume, poller, operation,
                                        handle_error_in_followup):
        ''' Wait for *subvolume* to become available.

        A subvolume which ended up in the ``Error`` state is deleted. If the
        wait timed out while the subvolume is still being created,
        :py:class:`subvol.exc.VolumeCreatingError` is raised and the
        operation handle is kept in :py:attr:`pollers`, so the next
        invocation resumes watching the same operation.

        :param bool handle_error_in_followup: do not raise failures, the
            caller inspects the subvolume in a later step
        '''
        poll_for_error = False
        error = None
        state = ''

        try:
            await self.api.wait_for_subvolume_state(subvolume,
                api.STATE_AVAILABLE, [api.STATE_ERROR],
                self.volume_create_timeout)
        except subvol.exc.BackendError as e:
            error = e
            state = getattr(e, 'state', '')

            if state in (api.STATE_ACCEPTED, api.STATE_CREATING):
                self.log.debug('Subvolume %s is in %s state',
                    subvolume.name, state)
                raise subvol.exc.VolumeCreatingError(str(e)) from e

            if state == api.STATE_DELETING:
                try:
                    await self.api.wait_for_subvolume_state(subvolume,
                        api.STATE_DELETED, [api.STATE_ERROR],
                        self.default_timeout)
                except subvol.exc.BackendError as err_delete:
                    self.log.error('Subvolume %s could not be cleaned up '
                        'and must be manually deleted: %s',
                        subvolume.name, err_delete)

            elif state == api.STATE_ERROR:
                try:
                    await self.api.delete_subvolume(subvolume)
                except subvol.exc.SubvolException as err_delete:
                    self.log.error('Subvolume %s could not be cleaned up '
                        'and must be manually deleted: %s',
                        subvolume.name, err_delete)
                else:
                    self.log.info('Subvolume %s deleted', subvolume.name)
                poll_for_error = True

            else:
                self.log.error('Unexpected state %r found for subvolume %s',
                    state, subvolume.name)
                poll_for_error = True

        # not creating anymore, whatever the outcome
        async with self.pollers.locked():
            self.pollers.remove(PollerKey(subvolume.id, operation))

        if poll_for_error and poller is not None:
            if state == api.STATE_ERROR:
                try:
                    await poller.result()
                except subvol.exc.BackendError as result_error:
                    self.log.error('Failed to create subvolume %s: %s',
                        subvolume.name, result_error)
            else:
                await poller.result()

        if error is None or handle_error_in_followup:
            return
        raise error

    async def delete_subvolume(self, subvolume):
        ''' Delete *subvolume* and wait until it is gone. Deleting a missing
        subvolume is not an error. '''
        key = PollerKey(subvolume.id, Operation.DELETE)
        async with self.pollers.reserved(key):
            poller = await self._join_deletion(subvolume, key)
            if poller is None:
                try:
                    poller = await self.api.delete_subvolume(subvolume)
                except subvol.exc.SubvolumeNotFoundError:
                    pass
                except subvol.exc.BackendError as e:
                    raise subvol.exc.BackendError(
                        'Error deleting subvolume {}: {}'.format(
                            subvolume.name, e)) from e
                if poller is not None:
                    async with self.pollers.locked():
                        self.pollers.put(key, poller)

        self.log.debug('Deleting subvolume %s', subvolume.name)

        try:
            await self.api.wait_for_subvolume_state(subvolume,
                api.STATE_DELETED, [api.STATE_ERROR], self.default_timeout)
        except subvol.exc.BackendError as e:
            state = getattr(e, 'state', '')
            if state != api.STATE_DELETING:
                async with self.pollers.locked():
                    self.pollers.remove(key)
            if state == api.STATE_ERROR and poller is not None:
                try:
                    await poller.result()
                except subvol.exc.BackendError as result_error:
                    self.log.error('Failed to delete subvolume %s: %s',
                        subvolume.name, result_error)
            raise

        async with self.pollers.locked():
            self.pollers.remove(key)
        self.log.info('Subvolume %s deleted', subvolume.name)

    async def _join_deletion(self, subvolume, key):
        ''' Return the cached handle of a deletion of *subvolume* which is
        still going on, forget it if the deletion is over. '''
        async with self.pollers.locked():
            poller = self.pollers.get(key)
        if poller is None:
            return None

        try:
            exists, extant = await self.api.subvolume_exists_by_id(
                subvolume.id)
        except subvol.exc.BackendError as e:
            raise subvol.exc.BackendError(
                'Error checking for existing subvolume {}: {}'.format(
                    subvolume.name, e)) from e
        if exists and extant.provisioning_state == api.STATE_DELETING:
            self.log.debug('Subvolume %s is being deleted already',
                subvolume.name)
            return poller

        async with self.pollers.locked():
            self.pollers.remove(key)
        return None

    async def delete_subvolume_in_snapshot_context(self, subvolume_id,
                                                   snapshot_id):
        ''' Finish a deletion recorded in :py:attr:`ledger` by a restore of
        *snapshot_id*.

        A deletion recorded by the restore of another snapshot is never
        carried out here. Once the subvolume is gone, the entry is stale and
        dropped.

        :returns: `True` if the subvolume was deleted, `False` if there was
            nothing to do
        :raises subvol.exc.InProgressError: if the deletion failed
        :raises subvol.exc.InvariantViolationError: if the subvolume is left
            over by the restore of another snapshot, it has to be deleted
            manually
        '''
        async with self.ledger.locked():
            owner = self.ledger.get(subvolume_id)
        if owner is None:
            return False

        subvolume = api.Subvolume.from_id(subvolume_id)
        if owner != snapshot_id:
            try:
                exists, _ = await self.api.subvolume_exists_by_id(
                    subvolume_id)
            except subvol.exc.BackendError as e:
                raise subvol.exc.BackendError(
                    'Error checking for existing subvolume {}: {}'.format(
                        subvolume.name, e)) from e
            if not exists:
                self.log.warning('Subvolume %s left over by the restore of '
                    'snapshot %s is gone', subvolume.name, owner)
                async with self.ledger.locked():
                    self.ledger.remove(subvolume_id)
                return False

            self.log.error('Subvolume %s left over by the restore of '
                'snapshot %s must be deleted manually before restoring '
                'snapshot %s', subvolume.name, owner, snapshot_id)
            raise subvol.exc.InvariantViolationError(
                'Subvolume {} is pending deletion by the restore of snapshot '
                '{}; delete it manually'.format(subvolume.name, owner))

        try:
            await self.delete_subvolume(subvolume)
        except subvol.exc.SubvolException as e:
            self.log.error('Failed to delete subvolume %s: %s',
                subvolume.name, e)
            raise subvol.exc.InProgressError(str(e)) from e

        async with self.ledger.locked():
            self.ledger.remove(subvolume_id)
        self.log.debug('Subvolume %s deleted in context of snapshot %s',
            subvolume.name, snapshot_id)
        return True


class SubvolumeVolume(subvol.storage.Volume):
    ''' Volume backed by a single subvolume '''

    def _volume_size(self, storage_pool):
        size = subvol.utils.parse_size(self.size or 0)
        if size == 0:
            size = subvol.utils.parse_size(storage_pool.size)
        subvol.utils.check_min_volume_size(size)
        subvol.utils.check_volume_size_limit(size,
            self.pool.limit_volume_size)
        return size

    def _validate_names(self):
        naming.validate_volume_name(self.name)
        naming.validate_creation_token(self.internal_name)

    async def _adopt_existing(self, extant):
        ''' Take over the identity of *extant*, the subvolume found under
        our name, and wait for it like for a freshly created one.

        :raises subvol.exc.VolumeExistsError: if it converged
        '''
        self.internal_name = extant.name
        self.internal_id = extant.id
        self.pool.log.warning('Subvolume %s already exists, state %s',
            extant.name, extant.provisioning_state)

        poller = await self.pool.cached_poller(extant.id)
        # a failed or vanishing subvolume is not a converged one
        handle_error_in_followup = extant.provisioning_state not in (
            api.STATE_ERROR, api.STATE_DELETING)
        await self.pool.wait_for_subvolume_create(extant, poller,
            Operation.CREATE, handle_error_in_followup)

        raise subvol.exc.VolumeExistsError(self.internal_name)

    @subvol.storage.Volume.locked
    async def create(self, storage_pool=None):
        ''' Create the subvolume in *storage_pool* (name of one of
        :py:attr:`SubvolumePool.storage_pools`, the first one by default).
        '''
        self._validate_names()

        # another invocation may be creating the same subvolume
        async with self.pool.pollers.reserved(self.internal_name):
            exists, extant = await self.pool.subvolume_exists(self)
            if not exists:
                storage_pool = self.pool.get_storage_pool(storage_pool)
                size = self._volume_size(storage_pool)
                self.size = size

                self.pool.log.debug('Creating subvolume %s of %d bytes in %s',
                    self.internal_name, size, storage_pool.file_pool_volume)
                request = api.SubvolumeCreateRequest(
                    creation_token=self.internal_name,
                    volume=storage_pool.file_pool_volume,
                    size=size)
                subvolume, poller = await self.pool.create_subvolume(request)

        if exists:
            await self._adopt_existing(extant)

        # find the subvolume efficiently later
        self.internal_id = subvolume.id

        await self.pool.wait_for_subvolume_create(subvolume, poller,
            Operation.CREATE, True)

    @subvol.storage.Volume.locked
    async def create_clone(self, source):
        self._validate_names()

        source_id = source.internal_id
        if self.clone_source_snapshot:
            if not self.clone_source_snapshot_internal:
                self.clone_source_snapshot_internal = \
                    self.pool.naming.snapshot_internal_name(source.name,
                        self.clone_source_snapshot)
            # the snapshot lives next to its volume
            source_id = api.sibling_subvolume_id(source.internal_id,
                self.clone_source_snapshot_internal)

        try:
            source_subvolume = await self.pool.api.subvolume_by_id(source_id)
        except subvol.exc.SubvolumeNotFoundError as e:
            raise subvol.exc.SubvolumeNotFoundError(source.name,
                'Could not find source volume {}: {}'.format(
                    source.name, e)) from e

        async with self.pool.pollers.reserved(self.internal_name):
            exists, extant = await self.pool.subvolume_exists(self)
            if not exists:
                file_pool_volume = source_subvolume.volume_full_name
                self.pool.log.debug('Creating subvolume clone %s of %s in %s',
                    self.internal_name, source_subvolume.name,
                    file_pool_volume)
                request = api.SubvolumeCreateRequest(
                    creation_token=self.internal_name,
                    volume=file_pool_volume,
                    size=source_subvolume.size,
                    parent=source_subvolume.name)
                subvolume, poller = await self.pool.create_subvolume(request)

        if exists:
            await self._adopt_existing(extant)

        self.internal_id = subvolume.id
        self.size = source_subvolume.size

        await self.pool.wait_for_subvolume_create(subvolume, poller,
            Operation.CREATE, True)

    async def verify(self):
        subvolume = await self.pool.get_subvolume(self)
        if subvolume.provisioning_state != api.STATE_AVAILABLE:
            raise subvol.exc.SubvolumeStateError(self.internal_name,
                subvolume.provisioning_state,
                'Subvolume {} is in {} state'.format(self.internal_name,
                    subvolume.provisioning_state))
        return True

    async def create_followup(self):
        ''' Check the outcome of :py:meth:`create` or
        :py:meth:`create_clone`, whose errors are left to this step. '''
        await self.verify()
        self.pool.log.debug('Subvolume %s is available', self.internal_name)

    @subvol.storage.Volume.locked
    async def import_volume(self, original_name):
        naming.validate_creation_token(original_name)

        if self.pool.naming.is_snapshot(original_name):
            raise subvol.exc.InvalidRequestError(
                'Ineligible for import; subvolume {} is a snapshot '
                'subvolume'.format(original_name))

        try:
            subvolume = await self.pool.api.subvolume_by_creation_token(
                original_name, self.pool.get_all_file_pool_volumes(), True)
        except subvol.exc.SubvolumeNotFoundError as e:
            raise subvol.exc.SubvolumeNotFoundError(original_name,
                'Could not find subvolume {}: {}'.format(
                    original_name, e)) from e

        try:
            subvol.utils.check_min_volume_size(subvolume.size)
        except subvol.exc.InvalidRequestError as e:
            raise subvol.exc.InvalidRequestError(
                'Size error; {}'.format(e)) from e

        self.size = subvolume.size
        # creation token cannot be changed, use it as the internal name
        self.internal_name = original_name
        self.internal_id = subvolume.id

    @subvol.storage.Volume.locked
    async def remove(self):
        if not self.internal_id:
            # creation failed before the ID was known
            exists, extant = await self.pool.subvolume_exists(self)
            if not exists:
                self.pool.log.warning('Subvolume %s already deleted',
                    self.internal_name)
                return
            if extant.provisioning_state == api.STATE_DELETING:
                # a retry, give it more time before giving up again
                await self.pool.api.wait_for_subvolume_state(extant,
                    api.STATE_DELETED, [api.STATE_ERROR],
                    self.pool.volume_create_timeout)
                return
            subvolume = extant
        else:
            try:
                subvolume = api.Subvolume.from_id(self.internal_id,
                    self.internal_name)
            except subvol.exc.SubvolValueError as e:
                raise subvol.exc.SubvolValueError(
                    'Error parsing internal ID of volume {}: {}'.format(
                        self.internal_name, e)) from e

        await self.pool.delete_subvolume(subvolume)

    @subvol.storage.Volume.locked
    async def resize(self, size):
        size = subvol.utils.parse_size(size)
        subvolume = await self.pool.get_subvolume(self, query_metadata=True)

        if subvolume.provisioning_state != api.STATE_AVAILABLE:
            raise subvol.exc.SubvolumeStateError(self.internal_name,
                subvolume.provisioning_state,
                'Subvolume {} state is {}, not available'.format(
                    self.internal_name, subvolume.provisioning_state))

        self.size = subvolume.size

        if size == subvolume.size:
            return

        if size < subvolume.size:
            raise subvol.exc.InvalidRequestError(
                'Requested size {} is less than existing subvolume size '
                '{}'.format(size, subvolume.size))

        subvol.utils.check_volume_size_limit(size,
            self.pool.limit_volume_size)

        await self.pool.api.resize_subvolume(subvolume, size)
        self.size = size

    def _parse_internal_id(self):
        try:
            return api.parse_subvolume_id(self.internal_id)
        except subvol.exc.SubvolValueError as e:
            raise subvol.exc.SubvolValueError(
                'Error parsing internal ID of volume {}: {}'.format(
                    self.internal_name, e)) from e

    @subvol.storage.Volume.locked
    async def create_snapshot(self, snapshot):
        ''' Create *snapshot*, a copy of this volume's subvolume.

        The backend creation time is not read back, the returned snapshot
        carries the local wall-clock time at creation instead, taken once
        the creation was requested.
        '''
        naming.validate_snapshot_name(snapshot.name)
        creation_token = self.pool.naming.snapshot_internal_name(
            self.name, snapshot.name)
        naming.validate_creation_token(creation_token)

        parsed = self._parse_internal_id()
        snapshot_id = api.sibling_subvolume_id(self.internal_id,
            creation_token)

        async with self.pool.pollers.reserved(creation_token):
            try:
                exists, subvolume = \
                    await self.pool.api.subvolume_exists_by_id(snapshot_id)
            except subvol.exc.BackendError as e:
                raise subvol.exc.BackendError(
                    'Error checking for existing snapshot {}: {}'.format(
                        creation_token, e)) from e

            if exists:
                poller = await self.pool.cached_poller(subvolume.id)
            else:
                file_pool_volume = api.create_volume_full_name(
                    parsed.resource_group, parsed.netapp_account,
                    parsed.capacity_pool, parsed.volume)
                self.pool.log.debug(
                    'Creating subvolume snapshot %s of %s in %s',
                    creation_token, parsed.subvolume, file_pool_volume)
                request = api.SubvolumeCreateRequest(
                    creation_token=creation_token,
                    volume=file_pool_volume,
                    parent=parsed.subvolume)
                subvolume, poller = await self.pool.create_subvolume(request)

        created = subvol.storage.isodate(time.time())

        await self.pool.wait_for_subvolume_create(subvolume, poller,
            Operation.CREATE, False)

        snapshot.internal_name = creation_token
        snapshot.volume_internal_name = snapshot.volume_internal_name or \
            self.internal_name
        snapshot.created = created
        snapshot.size_bytes = 0
        snapshot.state = subvol.storage.SNAPSHOT_STATE_ONLINE

        self.pool.log.info('Snapshot %s of volume %s created',
            snapshot.internal_name, self.internal_name)
        return snapshot

    @subvol.storage.Volume.locked
    async def delete_snapshot(self, snapshot):
        self._parse_internal_id()
        subvolume = api.Subvolume.from_id(
            api.sibling_subvolume_id(self.internal_id,
                snapshot.internal_name),
            snapshot.internal_name)
        await self.pool.delete_subvolume(subvolume)

    async def get_snapshot(self, snapshot):
        ''' Look *snapshot* up.

        :returns: the snapshot, or `None` if it does not exist
        '''
        try:
            exists, source = await self.pool.api.subvolume_exists_by_id(
                self.internal_id)
        except subvol.exc.BackendError as e:
            raise subvol.exc.BackendError(
                'Could not find source subvolume {}: {}'.format(
                    self.internal_id, e)) from e
        if not exists:
            raise subvol.exc.SubvolumeNotFoundError(self.name,
                'Source subvolume {} does not exist'.format(self.name))

        # for imported snapshots the internal name is the creation token
        creation_token = snapshot.internal_name
        snapshot_id = api.sibling_subvolume_id(source.id, creation_token)

        try:
            exists, extant = await self.pool.api.subvolume_exists_by_id(
                snapshot_id)
        except subvol.exc.BackendError as e:
            raise subvol.exc.BackendError(
                'Error checking for existing snapshot {}: {}'.format(
                    snapshot_id, e)) from e
        if not exists:
            return None

        if extant.provisioning_state != api.STATE_AVAILABLE:
            raise subvol.exc.SubvolumeStateError(creation_token,
                extant.provisioning_state,
                'Snapshot {} state is {}'.format(creation_token,
                    extant.provisioning_state))

        self.pool.log.debug('Found snapshot %s of volume %s',
            creation_token, self.internal_name)
        snapshot.size_bytes = 0
        snapshot.state = subvol.storage.SNAPSHOT_STATE_ONLINE
        return snapshot

    async def get_snapshots(self):
        source = await self.pool.get_subvolume(self)
        subvolumes = await self.pool.api.subvolumes(
            [source.volume_full_name])

        suffix = naming.snapshot_suffix(self.name)
        snapshots = []
        for subvolume in subvolumes:
            if not subvolume.name.startswith(self.pool.storage_prefix):
                continue
            if not self.pool.naming.is_snapshot(subvolume.name):
                continue
            # volumes sharing a suffix share their snapshots here
            if self.pool.naming.suffix(subvolume.name) != suffix:
                continue
            snapshots.append(subvol.storage.Snapshot(
                self.pool.naming.snapshot_name(subvolume.name),
                internal_name=subvolume.name,
                volume_name=self.name,
                volume_internal_name=self.internal_name))
        return snapshots

    @subvol.storage.Volume.locked
    async def restore_snapshot(self, snapshot):
        ''' Replace the subvolume of this volume by a copy of *snapshot*.

        Subvolumes cannot be rewritten nor renamed, so the restore goes
        through these steps, each of which may be interrupted and resumed
        by calling this method again:

        1. copy the subvolume to ``{internal name}-og``
        2. delete the subvolume
        3. create it again as a copy of the snapshot
        4. delete the ``-og`` copy

        A copy that could not be deleted is recorded in
        :py:attr:`SubvolumePool.ledger` and deleted by the next restore
        of the same snapshot.

        The subvolume ID of the volume is refreshed after success.
        '''
        # other volume objects of the same name restore one at a time too
        async with self.pool.pollers.reserved(self.internal_name):
            await self._restore_snapshot(snapshot)

    async def _restore_snapshot(self, snapshot):
        # pylint: disable=too-many-locals,too-many-statements
        pool = self.pool
        internal_snap_name = snapshot.internal_name
        temp_name = self.internal_name + subvol.config.temp_copy_suffix

        if self.internal_name != snapshot.volume_internal_name:
            raise subvol.exc.InvariantViolationError(
                'Snapshot {} does not belong to volume {}'.format(
                    internal_snap_name, self.internal_name))

        try:
            parsed = self._parse_internal_id()
        except subvol.exc.SubvolValueError as e:
            pool.log.error('%s', e)
            raise

        temp_id = api.sibling_subvolume_id(self.internal_id, temp_name)
        snapshot_id = api.sibling_subvolume_id(self.internal_id,
            internal_snap_name)
        file_pool_volume = api.create_volume_full_name(parsed.resource_group,
            parsed.netapp_account, parsed.capacity_pool, parsed.volume)

        # only the cleanup of an earlier restore of this snapshot was left
        if await pool.delete_subvolume_in_snapshot_context(temp_id,
                snapshot_id):
            return

        restore_key = PollerKey(self.internal_id, Operation.RESTORE)
        async with pool.pollers.locked():
            in_flight = restore_key in pool.pollers
            poller = pool.pollers.get(restore_key)

        if not in_flight:
            async with pool.pollers.reserved(temp_name):
                try:
                    temp_exists, temp = \
                        await pool.api.subvolume_exists_by_id(temp_id)
                except subvol.exc.SubvolException as e:
                    pool.log.error('Error checking for existing subvolume '
                        '%s: %s', temp_name, e)
                    raise subvol.exc.InProgressError(str(e)) from e

                if temp_exists:
                    temp_poller = await pool.cached_poller(temp.id)
                else:
                    pool.log.debug(
                        'Creating temporary subvolume %s of %s in %s',
                        temp_name, self.internal_name, file_pool_volume)
                    request = api.SubvolumeCreateRequest(
                        creation_token=temp_name,
                        volume=file_pool_volume,
                        parent=self.internal_name)
                    try:
                        temp, temp_poller = \
                            await pool.create_subvolume(request)
                    except subvol.exc.SubvolException as e:
                        pool.log.error('Error creating temporary subvolume '
                            '%s: %s', temp_name, e)
                        raise subvol.exc.InProgressError(str(e)) from e

            try:
                await pool.wait_for_subvolume_create(temp, temp_poller,
                    Operation.CREATE, False)
            except subvol.exc.SubvolException as e:
                raise subvol.exc.InProgressError(
                    'Temporary subvolume {} is not ready: {}'.format(
                        temp_name, e)) from e

            pool.log.debug('Temporary subvolume %s created', temp_name)

            original = api.Subvolume.from_id(self.internal_id,
                self.internal_name)
            try:
                await pool.delete_subvolume(original)
            except subvol.exc.SubvolException as e:
                pool.log.error('Failed to delete subvolume %s: %s',
                    self.internal_name, e)
                raise subvol.exc.InProgressError(str(e)) from e

            pool.log.debug('Creating subvolume %s from snapshot %s',
                self.internal_name, internal_snap_name)
            request = api.SubvolumeCreateRequest(
                creation_token=self.internal_name,
                volume=file_pool_volume,
                parent=internal_snap_name)
            try:
                subvolume, poller = await pool.create_subvolume(request,
                    Operation.RESTORE)
            except subvol.exc.SubvolException as e:
                pool.log.error('Error creating subvolume %s from snapshot '
                    '%s: %s', self.internal_name, internal_snap_name, e)
                raise subvol.exc.InProgressError(str(e)) from e
            restore_key = PollerKey(subvolume.id, Operation.RESTORE)

        restored = api.Subvolume.from_id(restore_key.id, self.internal_name)
        try:
            await pool.wait_for_subvolume_create(restored, poller,
                Operation.RESTORE, False)
        except subvol.exc.VolumeCreatingError as e:
            raise subvol.exc.InProgressError(str(e)) from e

        # the subvolume was recreated, refresh its identity
        self.internal_id = restored.id
        pool.log.debug('Subvolume %s restored using snapshot %s',
            self.internal_name, internal_snap_name)

        temp = api.Subvolume.from_id(temp_id, temp_name)
        try:
            await pool.delete_subvolume(temp)
        except subvol.exc.SubvolException as e:
            pool.log.error('Failed to delete temporary subvolume %s: %s; '
                'retrying', temp_name, e)
            try:
                await pool.delete_subvolume(temp)
            except subvol.exc.SubvolException as e2:
                pool.log.error('Failed to delete temporary subvolume %s: %s',
                    temp_name, e2)
                async with pool.ledger.locked():
                    pool.ledger.add(temp_id, snapshot_id)
                raise subvol.exc.InProgressError(str(e2)) from e2

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

import logging
import os

import lxml.etree

import subvol.config
import subvol.exc
import subvol.storage
import subvol.utils


class SubvolumeApp:
    '''Main class, holding the configured storage pools.

    Pools are stored in an XML file::

        <subvol>
          <pools>
            <pool name="anf" driver="anf-subvolume"
                file_pool_volumes="rg/account/cpool/vol1" ...>
              <virtual-pool size="100G"/>
            </pool>
          </pools>
        </subvol>

    :param str store: path to the XML file, :py:attr:`subvol.config.\
store_filename` by default
    :param api: backend client handed to every pool, see
        :py:class:`subvol.storage.api.SubvolumeAPI`
    :param bool load: load the file at construction time
    '''

    def __init__(self, store=None, api=None, load=True):
        #: collection of all pools, by name
        self.pools = {}
        self.api = api
        self.log = logging.getLogger('subvol.app')
        self._store = store if store is not None else \
            subvol.config.store_filename

        if load:
            self.load()

    def __str__(self):
        return type(self).__name__

    @property
    def store(self):
        return self._store

    def load(self):
        '''Open the store file, a missing file means no pools

        :raises lxml.etree.XMLSyntaxError: on syntax error in the store
        '''
        if not os.path.exists(self._store):
            self.log.debug('No store at %s', self._store)
            return

        xml = lxml.etree.parse(self._store)

        for node in xml.xpath('./pools/pool'):
            name = node.get('name')
            assert name, "Pool name '%s' is invalid " % name
            kwargs = dict(node.attrib)
            virtual_pools = [dict(child.attrib)
                for child in node.xpath('./virtual-pool')]
            if virtual_pools:
                kwargs['virtual_pools'] = virtual_pools
            try:
                self.pools[name] = self._get_pool(api=self.api, **kwargs)
            except subvol.exc.SubvolException as e:
                self.log.error(str(e))

    def __xml__(self):
        element = lxml.etree.Element('subvol')

        pools_xml = lxml.etree.Element('pools')
        for pool in self.pools.values():
            xml = pool.__xml__()
            if xml is not None:
                pools_xml.append(xml)

        element.append(pools_xml)
        return element

    def save(self):
        '''Save all pools to the store file

        A failure leaves the previous file untouched.

        :throws EnvironmentError: failure on saving
        '''
        with subvol.utils.replace_file(self._store, permissions=0o660,
                                       logger=self.log) as fh_new:
            lxml.etree.ElementTree(self.__xml__()).write(
                fh_new, encoding='utf-8', pretty_print=True)

    async def add_pool(self, name, **kwargs):
        ''' Add a storage pool to config.'''

        if name in self.pools:
            raise subvol.exc.SubvolException(
                'pool named %s already exists' % name)

        kwargs['name'] = name
        pool = self._get_pool(api=self.api, **kwargs)
        await pool.setup()
        self.pools[name] = pool
        self.log.info('Added pool %s (%s)', name, kwargs.get('driver'))
        return pool

    async def remove_pool(self, name):
        ''' Remove a storage pool from config. Volumes on the backend are
        left alone. '''
        try:
            pool = self.pools[name]
        except KeyError:
            return
        # pylint: disable=protected-access
        if pool._volume_objects_cache:
            raise subvol.exc.PoolInUseError(pool)
        del self.pools[name]
        await pool.destroy()
        self.log.info('Removed pool %s', name)

    def get_pool(self, pool):
        '''  Returns a :py:class:`subvol.storage.Pool` instance '''
        if isinstance(pool, subvol.storage.Pool):
            return pool
        try:
            return self.pools[pool]
        except KeyError:
            raise subvol.exc.UnknownPoolError(pool)

    @staticmethod
    def _get_pool(**kwargs):
        try:
            name = kwargs['name']
            assert name, 'Name needs to be an non empty string'
        except KeyError:
            raise subvol.exc.SubvolException('No pool name for pool')

        try:
            driver = kwargs.pop('driver')
        except KeyError:
            raise subvol.exc.SubvolException(
                'No driver specified for pool ' + name)
        try:
            klass = subvol.utils.get_entry_point_one(
                subvol.storage.STORAGE_ENTRY_POINT, driver)
        except KeyError:
            raise subvol.exc.SubvolException(
                'No driver %s for pool %s' % (driver, name))
        try:
            return klass(**kwargs)
        except TypeError as e:
            raise subvol.exc.SubvolException(
                'Invalid options for pool %s: %s' % (name, e))

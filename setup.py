#!/usr/bin/python3 -O
# vim: fileencoding=utf-8

import setuptools


if __name__ == '__main__':
    setuptools.setup(
        name='subvol',
        version='1.0.0',
        author='The subvol authors',
        description='Subvolume lifecycle management for cloud file storage',
        license='LGPL2.1+',
        packages=setuptools.find_packages(exclude=('tests', 'tests.*')),
        python_requires='>=3.8',
        install_requires=[
            'lxml',
        ],
        extras_require={
            'test': [
                'pytest',
            ],
        },
        entry_points={
            'subvol.storage': [
                'anf-subvolume = subvol.storage.subvolume:SubvolumePool',
            ],
        })

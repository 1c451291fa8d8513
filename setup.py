# Copyright (C) 2009 The Open Planning Project
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU General Public License
# as published by the Free Software Foundation; either version 2
# of the License, or (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program; if not, write to the
# Free Software Foundation, Inc.,
# 51 Franklin Street, Fifth Floor,
# Boston, MA  02110-1301
# USA

from setuptools import setup, find_packages

setup(
    name='hubsub',
    version="0.1",
    description="WebSub (PubSubHubbub) subscriber: discovery, verification, renewal",
    license="GPLv2 or any later version",
    python_requires='>=3.8',
    install_requires=['CouchDB',
                      'eventlet>=0.33',
                      'httplib2>=0.20',
                      'simplejson',
                      'PyYAML',
                      'WebOb'
    ],
    extras_require={
        'test': ['pytest'],
    },
    packages=find_packages(exclude=['tests', 'tests.*']),
    include_package_data=True,
    entry_points="""
    [console_scripts]
    hubsub=hubsub.runner:main
    """,
)

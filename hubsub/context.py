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

from copy import deepcopy
import logging
from yaml import safe_load as load_yaml

from hubsub.db.store import MemoryStore
from hubsub.db.util import Backoff
from hubsub.discover import Discoverer
from hubsub.engine import SubscriptionEngine
from hubsub.hub import HubClient
from hubsub.tokens import TokenGenerator
from hubsub.transport import HTTPTransport

__all__ = ['Context', 'DEFAULTS']

log = logging.getLogger(__name__)

DEFAULTS = {
    'subscriber': {
        'callback_url': 'http://localhost:9300/',
        'host': '0.0.0.0',
        'port': 9300,
        'timeout': 30,
        'default_lease': 604800,
        'max_lease': 604800,
        'pending_timeout': 3600,
        'cancel_timeout': 3600,
        'scan_interval': 60,
        'head_only': False,
        'user_agent': 'hubsub/0.1',
        'retry': {
            'attempts': 5,
            'backoff': 1.0,
            'max_backoff': 3600
        }
    },
    'store': {
        'backend': 'couchdb',
        'couchdb': {
            'hostname': 'localhost',
            'port': 5984,
            'database': 'hubsub'
        }
    },
    'logging': {
        'level': 'INFO'
    }
}


class Context(object):
    """
    holds configuration and lazily created references to the
    store, outbound http and the subscription engine.

    collaborators may be swapped before first use, eg:

    ctx = Context.from_dict(cfg)
    ctx.http_factory = FakeHttp
    ctx.engine.subscribe(...)
    """
    def __init__(self, config):
        self.config = config
        self.http_factory = None
        self.tokens = TokenGenerator()
        self.clock = None
        self._store = None
        self._engine = None

    @property
    def subscriber_config(self):
        return self.config['subscriber']

    ######################
    # Storage
    ######################
    @property
    def store(self):
        if self._store is None:
            self._store = self.create_store()
        return self._store

    def create_store(self):
        backend = self.config['store']['backend']
        if backend == 'memory':
            return MemoryStore()
        elif backend == 'couchdb':
            from hubsub.db.couch import CouchSubscriptionStore
            return CouchSubscriptionStore.from_config(self.config['store']['couchdb'])
        else:
            raise ValueError("Unknown store backend: %s" % backend)

    ######################
    # Engine
    ######################
    def create_transport(self):
        cfg = self.subscriber_config
        return HTTPTransport(timeout=float(cfg['timeout']),
                             user_agent=cfg.get('user_agent'),
                             http_factory=self.http_factory)

    @property
    def engine(self):
        if self._engine is None:
            self._engine = self.create_engine()
        return self._engine

    def create_engine(self):
        cfg = self.subscriber_config
        transport = self.create_transport()
        kw = {}
        if self.clock is not None:
            kw['clock'] = self.clock
        return SubscriptionEngine(self.store, cfg['callback_url'],
                                  discoverer=Discoverer(transport, head_only=bool(cfg['head_only'])),
                                  hub_client=HubClient(transport),
                                  tokens=self.tokens,
                                  default_lease=int(cfg['default_lease']),
                                  max_lease=int(cfg['max_lease']),
                                  pending_timeout=float(cfg['pending_timeout']),
                                  cancel_timeout=float(cfg['cancel_timeout']),
                                  scan_interval=float(cfg['scan_interval']),
                                  backoff=Backoff.from_config(cfg['retry']),
                                  **kw)

    ##################################
    # Setup
    ##################################
    def bootstrap(self, purge=False):
        """
        prepare the configured store for use
        """
        store = self.store
        if hasattr(store, 'bootstrap'):
            store.bootstrap(purge=purge)

    def close(self):
        if self._engine is not None:
            self._engine.stop()
            self._engine = None
        if self._store is not None:
            self._store.close()
            self._store = None

    ##################################
    # Initializers
    ##################################

    @classmethod
    def from_dict(cls, dict, defaults=DEFAULTS):
        cfg = deepcopy(dict)
        if defaults is not None:
            _deep_setdefault(cfg, defaults)
        return cls(cfg)

    @classmethod
    def from_yaml(cls, yaml_filename, defaults=DEFAULTS):
        with open(yaml_filename, 'r') as yaml_file:
            cfg = load_yaml(yaml_file) or {}
        if defaults is not None:
            _deep_setdefault(cfg, defaults)
        return cls(cfg)


def _deep_setdefault(d, defaults):
    """
    >>> d = {'a': 1}
    >>> defaults = {'a': 0, 'b': 0}
    >>> _deep_setdefault(d, defaults)
    >>> d['a'] == 1
    True
    >>> d['b'] == 0
    True

    >>> d = {'a': {'b': 1}}
    >>> defaults = {'a': {'b': 0, 'c': 0}}
    >>> _deep_setdefault(d, defaults)
    >>> d['a']['b'] == 1
    True
    >>> d['a']['c'] == 0
    True

    >>> d = {'a': 'foo'}
    >>> defaults = {'a': {'b': 0}}
    >>> _deep_setdefault(d, defaults)
    >>> d['a'] == 'foo'
    True
    """
    for k, v in defaults.items():
        if not k in d:
            d[k] = deepcopy(v)
        else:
            if isinstance(d[k], dict) and isinstance(defaults[k], dict):
                _deep_setdefault(d[k], defaults[k])

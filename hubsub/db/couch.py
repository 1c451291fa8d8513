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

from couchdb import Server as CouchDBServer
from couchdb.http import HTTPError, ResourceConflict, ResourceNotFound
import logging
import traceback

from hubsub.db.store import SubscriptionStore
from hubsub.db.subscription import Subscription
from hubsub.db.util import Backoff, retry_with_backoff
from hubsub.errors import IOFailure, NotFound

__all__ = ['CouchSubscriptionStore']

log = logging.getLogger(__name__)

DOC_PREFIX = 'subscription:'
DOC_TYPE = 'Subscription'
BATCH_SIZE = 100

# a handful of quick retries when racing another writer
CONFLICT_BACKOFF = Backoff(attempts=6, backoff=.10, max_backoff=5)

class CouchSubscriptionStore(SubscriptionStore):
    """
    stores each subscription as one document in a CouchDB database.

    iteration pages through _all_docs in batches, records changed
    during a pass may or may not be seen in their new state.
    """

    def __init__(self, hostname='localhost', port=5984, database='hubsub', server=None):
        if server is None:
            server = CouchDBServer('http://%s:%d' % (hostname, int(port)))
        self.server = server
        self.database = database
        self._db = None

    @classmethod
    def from_config(cls, cfg):
        return cls(hostname=cfg.get('hostname', 'localhost'),
                   port=cfg.get('port', 5984),
                   database=cfg.get('database', 'hubsub'))

    @property
    def db(self):
        if self._db is None:
            try:
                self._db = self.server[self.database]
            except ResourceNotFound:
                log.error("Cannot find database %s, has it been bootstrapped yet?" % self.database)
                raise IOFailure('missing database %s' % self.database)
            except (HTTPError, OSError) as e:
                log.error("Error connecting to database %s: %s" % (self.database, traceback.format_exc()))
                raise IOFailure(str(e))
        return self._db

    def bootstrap(self, purge=False):
        try:
            if purge and self.database in self.server:
                del self.server[self.database]
            if not self.database in self.server:
                self.server.create(self.database)
        except (HTTPError, OSError) as e:
            raise IOFailure(str(e))
        self._db = None

    @staticmethod
    def doc_id(callback):
        return DOC_PREFIX + callback

    def get(self, callback):
        try:
            doc = self.db.get(self.doc_id(callback))
        except (HTTPError, OSError) as e:
            raise IOFailure(str(e))
        if doc is None:
            return None
        return _wake(doc)

    def put(self, subscription):
        doc_id = self.doc_id(subscription.callback)

        def save():
            doc = subscription.to_dict()
            doc['_id'] = doc_id
            doc['type'] = DOC_TYPE
            existing = self.db.get(doc_id)
            if existing is not None:
                doc['_rev'] = existing['_rev']
            self.db.save(doc)

        try:
            retry_with_backoff(save, ResourceConflict, CONFLICT_BACKOFF)
        except (HTTPError, OSError) as e:
            raise IOFailure(str(e))

    def delete(self, callback):
        try:
            del self.db[self.doc_id(callback)]
        except ResourceNotFound:
            raise NotFound(callback)
        except (HTTPError, OSError) as e:
            raise IOFailure(str(e))

    def iter_subscriptions(self):
        start = DOC_PREFIX
        end = DOC_PREFIX + '￰'
        skip = 0
        while True:
            args = {'startkey': start, 'endkey': end, 'include_docs': True, 'limit': BATCH_SIZE}
            if skip > 0:
                args['skip'] = skip
            try:
                rows = list(self.db.view('_all_docs', **args))
            except (HTTPError, OSError) as e:
                raise IOFailure(str(e))

            for row in rows:
                if row.doc is not None:
                    yield _wake(row.doc)

            if len(rows) < BATCH_SIZE:
                break
            start = rows[-1].key
            skip = 1

    def close(self):
        self._db = None


def _wake(doc):
    d = dict(doc)
    for k in list(d.keys()):
        if k.startswith('_') or k == 'type':
            del d[k]
    return Subscription.from_dict(d)

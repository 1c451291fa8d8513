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

from eventlet.semaphore import Semaphore
import logging

from hubsub.db.subscription import Subscription
from hubsub.errors import NotFound

__all__ = ['SubscriptionStore', 'MemoryStore']

log = logging.getLogger(__name__)

class SubscriptionStore(object):
    """
    persistence of Subscription records keyed by callback.

    implementations must make put atomic per key.  records handed
    out are copies, changing one has no effect until it is put back.
    """

    def get(self, callback):
        """
        the Subscription stored under callback or None
        """
        raise NotImplementedError()

    def put(self, subscription):
        """
        insert or replace the record for subscription.callback
        """
        raise NotImplementedError()

    def delete(self, callback):
        """
        remove the record for callback, raises NotFound if there is none.
        """
        raise NotImplementedError()

    def iter_subscriptions(self):
        """
        lazily yield every stored Subscription.  each call starts
        a fresh pass over the store.
        """
        raise NotImplementedError()

    def __contains__(self, callback):
        return self.get(callback) is not None

    def __iter__(self):
        return self.iter_subscriptions()

    def close(self):
        pass


class MemoryStore(SubscriptionStore):
    """
    keeps records in process memory.  iteration works on a
    snapshot taken when the pass begins, so records changed
    during a pass are seen as they were.
    """

    def __init__(self):
        self._records = {}
        self._lock = Semaphore()

    def get(self, callback):
        with self._lock:
            d = self._records.get(callback)
        if d is None:
            return None
        return Subscription.from_dict(d)

    def put(self, subscription):
        d = subscription.to_dict()
        with self._lock:
            self._records[subscription.callback] = d

    def delete(self, callback):
        with self._lock:
            try:
                del self._records[callback]
            except KeyError:
                raise NotFound(callback)

    def iter_subscriptions(self):
        with self._lock:
            snapshot = list(self._records.values())
        for d in snapshot:
            yield Subscription.from_dict(d)

    def __len__(self):
        return len(self._records)

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

import logging
import traceback

__all__ = ['SubscriptionEvents', 'EventRegistry', 'EVENTS']

log = logging.getLogger(__name__)

VALIDATED = 'validated'
DENIED = 'denied'
CONTENT = 'content'
CANCELLED = 'cancelled'
EXPIRED = 'expired'

EVENTS = (VALIDATED, DENIED, CONTENT, CANCELLED, EXPIRED)

class SubscriptionEvents(object):
    """
    listeners interested in a single subscription.

    validated()            the hub verified our intent to subscribe
    denied(reason)         the hub refused or revoked the subscription
    content(body, headers) an authenticated content push arrived
    cancelled()            the subscription was cancelled
    expired()              the lease ran out
    """
    def __init__(self, callback):
        self.callback = callback
        self._listeners = {}

    def add_listener(self, event, listener):
        if not event in EVENTS:
            raise ValueError("Unknown event: %s" % event)
        self._listeners.setdefault(event, []).append(listener)

    def remove_listener(self, event, listener):
        try:
            self._listeners.get(event, []).remove(listener)
        except ValueError:
            pass

    def listeners(self, event):
        return list(self._listeners.get(event, []))

    def emit(self, event, *args):
        for listener in self.listeners(event):
            try:
                listener(*args)
            except Exception:
                log.error("Unhandled exception in %s listener for %s: %s" %
                          (event, self.callback, traceback.format_exc()))


class EventRegistry(object):
    """
    holds the SubscriptionEvents for each callback, there
    is no listener shared between subscriptions.
    """
    def __init__(self):
        self._events = {}

    def for_callback(self, callback):
        events = self._events.get(callback)
        if events is None:
            events = SubscriptionEvents(callback)
            self._events[callback] = events
        return events

    def emit(self, callback, event, *args):
        events = self._events.get(callback)
        if events is not None:
            events.emit(event, *args)

    def discard(self, callback):
        self._events.pop(callback, None)

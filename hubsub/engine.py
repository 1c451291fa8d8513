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

"""
the subscription lifecycle: discovery, subscribe requests,
verification of intent, authenticated content and the
background renewal of leases.
"""
from datetime import timedelta
import eventlet
from eventlet import GreenPool
from eventlet.semaphore import Semaphore
import logging
import traceback
from urllib.parse import quote
from weakref import WeakValueDictionary

from hubsub.auth import ContentAuthenticator, SIGNATURE_HEADER
from hubsub.db.subscription import Subscription, utcnow
from hubsub.db.subscription import ACTIVE, CANCELLED, EXPIRED, PENDING
from hubsub.db.util import Backoff, retry_with_backoff
from hubsub.discover import Discoverer
from hubsub.errors import (ConnectionFailed, HubSubError, InvalidRequest, NoHubs, NotFound,
                           Timeout, TopicMismatch, TransportError, UnknownCallback)
from hubsub.events import EventRegistry, VALIDATED, DENIED, CONTENT, CANCELLED as CANCELLED_EVENT, EXPIRED as EXPIRED_EVENT
from hubsub.hub import HubClient, SUBSCRIBE, UNSUBSCRIBE
from hubsub.tokens import TokenGenerator

__all__ = ['SubscriptionEngine', 'SubscriptionHandle', 'MultiSubscription', 'DENIED_MODE']

log = logging.getLogger(__name__)

DENIED_MODE = 'denied'
MODES = (SUBSCRIBE, UNSUBSCRIBE, DENIED_MODE)

DEFAULT_LEASE = 604800
DEFAULT_MAX_LEASE = 604800
DEFAULT_PENDING_TIMEOUT = 3600
DEFAULT_CANCEL_TIMEOUT = 3600
DEFAULT_SCAN_INTERVAL = 60


class SubscriptionHandle(object):
    """
    caller's view of one subscription.  state is read from the
    store on access, so 'validated' becomes true eventually, once
    (and if) the hub verifies the subscription.
    """
    def __init__(self, engine, callback, hub, topic):
        self.engine = engine
        self.callback = callback
        self.hub = hub
        self.topic = topic

    @property
    def events(self):
        return self.engine.events(self.callback)

    def _record(self):
        return self.engine.store.get(self.callback)

    @property
    def state(self):
        record = self._record()
        if record is None:
            return None
        return record.state

    @property
    def validated(self):
        return self.state == ACTIVE

    def info(self):
        record = self._record()
        if record is None:
            return None
        return record.to_dict(public=True)

    @property
    def callback_url(self):
        return self.engine.callback_url_for(self.callback)

    def refresh(self):
        """
        re-send the subscribe request now rather than waiting
        for the renew window.
        """
        return self.engine.renew(self.callback)

    def cancel(self, force=False):
        return self.engine.cancel(self.callback, force=force)

    def __repr__(self):
        return '<SubscriptionHandle %s %s at %s>' % (self.callback, self.topic, self.hub)


class MultiSubscription(object):
    """
    all of the subscriptions made for a topic by one subscribe
    call, one per hub, keyed by callback.
    """
    def __init__(self, topic):
        self.topic = topic
        self.subscriptions = {}

    def add(self, handle):
        self.subscriptions[handle.callback] = handle

    @property
    def hubs(self):
        return [s.hub for s in self]

    @property
    def validated(self):
        return any(s.validated for s in self)

    def cancel(self, force=False):
        for s in self:
            try:
                s.cancel(force=force)
            except TransportError:
                log.warning("Error cancelling %s at %s: %s" % (s.topic, s.hub, traceback.format_exc()))

    def __iter__(self):
        return iter(list(self.subscriptions.values()))

    def __len__(self):
        return len(self.subscriptions)


class SubscriptionEngine(object):
    """
    owns the state of every subscription.  changes to a single
    subscription are serialized by a per-callback lock, separate
    subscriptions never wait on each other.  no lock is held while
    talking to a hub, a hub may verify before answering the request.
    """

    def __init__(self, store, callback_url, discoverer=None, hub_client=None,
                 tokens=None, authenticator=None, default_lease=DEFAULT_LEASE,
                 max_lease=DEFAULT_MAX_LEASE,
                 pending_timeout=DEFAULT_PENDING_TIMEOUT,
                 cancel_timeout=DEFAULT_CANCEL_TIMEOUT,
                 scan_interval=DEFAULT_SCAN_INTERVAL, backoff=None,
                 clock=utcnow, sleep=eventlet.sleep):
        self.store = store
        if not callback_url.endswith('/'):
            callback_url += '/'
        self.callback_url = callback_url
        self.discoverer = discoverer or Discoverer()
        self.hub_client = hub_client or HubClient()
        self.tokens = tokens or TokenGenerator()
        self.authenticator = authenticator or ContentAuthenticator()
        self.default_lease = default_lease
        self.max_lease = max_lease
        self.pending_timeout = pending_timeout
        self.cancel_timeout = cancel_timeout
        self.scan_interval = scan_interval
        self.backoff = backoff or Backoff()
        self.clock = clock
        self.sleep = sleep

        self._events = EventRegistry()
        # a lock lives only as long as someone holds or waits on it
        self._locks = WeakValueDictionary()
        self._in_flight = set()
        self._pool = GreenPool()
        self._scanner = None

    ##################################
    # helpers
    ##################################

    def callback_url_for(self, callback):
        return self.callback_url + quote(callback, safe='')

    def events(self, callback):
        return self._events.for_callback(callback)

    def _lock(self, callback):
        lock = self._locks.get(callback)
        if lock is None:
            lock = self._locks.setdefault(callback, Semaphore())
        return lock

    def _load(self, callback):
        record = self.store.get(callback)
        if record is None:
            raise NotFound(callback)
        return record

    def _handle(self, record):
        return SubscriptionHandle(self, record.callback, record.hub, record.topic)

    def get(self, callback):
        record = self._load(callback)
        return self._handle(record)

    def subscriptions(self):
        for record in self.store.iter_subscriptions():
            yield self._handle(record)

    def in_flight(self, callback):
        return callback in self._in_flight

    def _claim(self, callback):
        if callback in self._in_flight:
            return False
        self._in_flight.add(callback)
        return True

    def _release(self, callback):
        self._in_flight.discard(callback)

    def _send_subscribe(self, record):
        return self.hub_client.subscribe(record.hub, self.callback_url_for(record.callback),
                                         record.topic, lease_seconds=record.lease_seconds,
                                         secret=record.secret, params=record.params,
                                         headers=record.headers)

    ##################################
    # subscribing
    ##################################

    def subscribe(self, topic, lease_seconds=None, renew=None, secret=False,
                  params=None, headers=None, head_only=None):
        """
        discover the hubs for topic and ask each of them for a
        subscription.  returns once the requests have been accepted
        by the hubs, verification happens later (or never).
        """
        canonical, hubs = self.discoverer.discover(topic, head_only=head_only)
        if len(hubs) == 0:
            raise NoHubs('No hubs declared for %s' % canonical)

        multi = MultiSubscription(canonical)
        first_error = None
        for hub in hubs:
            record = Subscription(self.tokens.callback(), hub, canonical,
                                  secret=self.tokens.secret() if secret else None,
                                  lease_seconds=lease_seconds, renew=renew,
                                  params=params, headers=headers,
                                  created_at=self.clock())
            try:
                self._dispatch_new(record)
            except TransportError as e:
                log.warning("Failed to subscribe to %s at hub %s: %s" % (canonical, hub, e))
                if first_error is None:
                    first_error = e
                continue
            log.info("Requested subscription to %s at hub %s" % (canonical, hub))
            multi.add(self._handle(record))

        if len(multi) == 0:
            raise first_error
        return multi

    def _dispatch_new(self, record):
        now = self.clock()
        record.attempts = 1
        record.requested_at = now
        record.next_attempt_at = now + timedelta(seconds=self.pending_timeout)

        # persisted before the hub hears about it, a crash from
        # here on leaves a Pending record for the scanner.
        with self._lock(record.callback):
            self.store.put(record)

        try:
            retry_with_backoff(lambda: self._send_subscribe(record),
                               (Timeout, ConnectionFailed), self.backoff, sleep=self.sleep)
        except TransportError:
            with self._lock(record.callback):
                current = self.store.get(record.callback)
                if current is not None and current.state == PENDING:
                    self.store.delete(record.callback)
            raise

    def renew(self, callback):
        """
        re-send the subscribe request for an existing subscription,
        keeping its callback and secret.  returns False if nothing
        was sent (already in flight, cancelled, terminal).
        """
        if not self._claim(callback):
            log.debug("Renewal of %s already in progress" % callback)
            return False
        return self._renew_claimed(callback)

    def _renew_claimed(self, callback):
        try:
            expired = False
            with self._lock(callback):
                record = self._load(callback)
                if record.terminal or record.cancel_requested:
                    return False
                if record.state == ACTIVE:
                    record.transition(PENDING)
                    record.attempts = 0
                elif self.backoff.exhausted(record.attempts):
                    expired = self._give_up(record)
                    self.store.put(record)
                    return False
                now = self.clock()
                record.attempts += 1
                record.requested_at = now
                record.next_attempt_at = now + timedelta(seconds=self.pending_timeout)
                self.store.put(record)

            log.info('resubscribe %s to hub %s' % (record.topic, record.hub))
            return self._attempt(record)
        except HubSubError:
            log.error("Error renewing %s: %s" % (callback, traceback.format_exc()))
            return False
        finally:
            self._release(callback)
            if expired:
                self._events.emit(callback, EXPIRED_EVENT)

    def _give_up(self, record):
        """
        out of attempts: a record with a lease waits for it to
        run out, one without expires now.
        """
        log.warning("Giving up on %s at hub %s after %d attempts" %
                    (record.topic, record.hub, record.attempts))
        record.next_attempt_at = None
        if record.expires_at is None:
            record.transition(EXPIRED)
            return True
        return False

    def _attempt(self, record):
        try:
            self._send_subscribe(record)
            return True
        except TransportError as e:
            log.warning("Failed to resubscribe to %s at hub %s: %s" % (record.topic, record.hub, e))

        with self._lock(record.callback):
            current = self.store.get(record.callback)
            if current is None or current.state != PENDING:
                # verified (or cancelled) in the meantime
                return False
            current.next_attempt_at = self.backoff.next_attempt(current.attempts, self.clock())
            self.store.put(current)
        return False

    ##################################
    # cancelling
    ##################################

    def cancel(self, callback, force=False):
        """
        ask the hub to end the subscription.  it becomes Cancelled
        when the hub verifies the unsubscribe, or cancel_timeout
        seconds after this call, whichever comes first.  with force
        it is Cancelled locally right away.
        """
        with self._lock(callback):
            record = self._load(callback)
            if record.terminal:
                return self._handle(record)
            record.cancel_requested_at = self.clock()
            self.store.put(record)

        if force:
            self._force_cancel(callback)

        try:
            self.hub_client.unsubscribe(record.hub, self.callback_url_for(callback), record.topic,
                                        params=record.params, headers=record.headers)
            log.info("Requested unsubscribe from %s at hub %s" % (record.topic, record.hub))
        except TransportError:
            log.warning("Error unsubscribing from hub %s for %s: %s" %
                        (record.hub, record.topic, traceback.format_exc()))
            self._force_cancel(callback)
            raise
        return self._handle(record)

    def _force_cancel(self, callback):
        with self._lock(callback):
            record = self.store.get(callback)
            if record is None or record.state == CANCELLED or not record.can_become(CANCELLED):
                return False
            record.transition(CANCELLED)
            self.store.put(record)
        log.info("Cancelled subscription %s to %s" % (callback, record.topic))
        self._events.emit(callback, CANCELLED_EVENT)
        return True

    def delete(self, callback):
        """
        forget a subscription entirely
        """
        with self._lock(callback):
            self.store.delete(callback)
        self._events.discard(callback)
        self._locks.pop(callback, None)

    ##################################
    # inbound requests from hubs
    ##################################

    def handle_verification(self, callback, mode, topic, challenge=None,
                            lease_seconds=None, reason=None):
        """
        answer a hub's verification request.  returns the response
        body: the challenge for subscribe and unsubscribe, empty for
        denied.  raises UnknownCallback (also for a mismatched topic)
        when the request is not for a subscription we want.
        """
        # unknown callbacks are turned away before anything else,
        # no lock is taken for them.
        if callback not in self.store:
            log.warning("Got '%s' req for unknown callback %s" % (mode, callback))
            raise UnknownCallback(callback)

        if not mode in MODES:
            raise InvalidRequest('Unknown hub.mode: %s' % mode)
        if topic is None:
            raise InvalidRequest('Missing hub.topic')
        if mode != DENIED_MODE and not challenge:
            raise InvalidRequest('Missing hub.challenge')

        event = None
        with self._lock(callback):
            record = self.store.get(callback)
            if record is None:
                log.warning("Got '%s' req for unknown callback %s" % (mode, callback))
                raise UnknownCallback(callback)

            if topic != record.topic:
                log.warning("hub sent mismatched callback / topic: (%s, %s)" % (topic, record.topic))
                raise TopicMismatch(callback)

            if mode == SUBSCRIBE:
                if not record.state in (PENDING, ACTIVE) or record.cancel_requested:
                    log.warning("Refusing '%s' req for %s subscription %s" % (mode, record.state, callback))
                    raise UnknownCallback(callback)

                lease = self._parse_lease(lease_seconds)
                record.activate(lease, self.clock())
                self.store.put(record)
                event = (VALIDATED,)
                response = challenge

            elif mode == UNSUBSCRIBE:
                if record.state != CANCELLED and record.can_become(CANCELLED):
                    record.transition(CANCELLED)
                    self.store.put(record)
                    event = (CANCELLED_EVENT,)
                response = challenge

            else:
                if record.state in (PENDING, ACTIVE):
                    record.deny(reason)
                    self.store.put(record)
                    event = (DENIED, reason)
                response = ''

        log.info("Got valid '%s' req for '%s'" % (mode, topic))
        if event is not None:
            self._events.emit(callback, *event)
        return response

    def _parse_lease(self, lease_seconds):
        if lease_seconds is None or lease_seconds == '':
            return self.default_lease
        try:
            lease = int(lease_seconds)
        except (TypeError, ValueError):
            log.warning("hub sent bad lease_seconds %r, using default" % (lease_seconds,))
            return self.default_lease
        if lease < 0:
            return self.default_lease
        if lease > self.max_lease:
            log.info("hub granted lease of %d seconds, limiting to %d" % (lease, self.max_lease))
            return self.max_lease
        return lease

    def handle_content(self, callback, headers, content):
        """
        accept content pushed by a hub.  returns True if it was
        authenticated and delivered to listeners.  raises
        UnknownCallback if there is no such subscription.
        """
        record = self.store.get(callback)
        if record is None:
            log.warning("Got content push for unknown callback %s" % callback)
            raise UnknownCallback(callback)

        deliverable = (record.state == ACTIVE or
                       (record.state == PENDING and record.verified_at is not None))
        if not deliverable:
            log.warning("Ignoring hub push for %s subscription %s." % (record.state, callback))
            return False

        signature = _header(headers, SIGNATURE_HEADER)
        if not self.authenticator.verify(record.secret, signature, content):
            log.warning("Discarding unauthenticated push for %s" % callback)
            return False

        self._events.emit(callback, CONTENT, content, headers)
        return True

    ##################################
    # background work
    ##################################

    def scan(self):
        """
        one pass over all subscriptions: start renewals that are
        due, retry lost subscribe requests, expire elapsed leases and
        finish cancellations the hub never confirmed.  returns the
        number of renewals started.
        """
        now = self.clock()
        started = 0
        for record in self.store.iter_subscriptions():
            try:
                if self._scan_one(record, now):
                    started += 1
            except HubSubError:
                log.error("Error scanning subscription %s: %s" % (record.callback, traceback.format_exc()))
        return started

    def _scan_one(self, record, now):
        callback = record.callback
        if record.terminal:
            return False

        if record.expires_at is not None and record.expires_at <= now:
            self._expire(callback, now)
            return False

        if record.cancel_requested:
            if record.cancel_requested_at + timedelta(seconds=self.cancel_timeout) <= now:
                log.info("Hub never confirmed unsubscribe of %s, cancelling" % callback)
                self._force_cancel(callback)
            return False

        due = False
        if record.state == ACTIVE:
            due = record.renew is not None and record.seconds_left(now) <= record.renew
        elif record.state == PENDING:
            due = record.next_attempt_at is not None and record.next_attempt_at <= now

        if due:
            return self._spawn_renewal(callback)
        return False

    def _spawn_renewal(self, callback):
        if not self._claim(callback):
            return False
        self._pool.spawn_n(self._renew_claimed, callback)
        return True

    def _expire(self, callback, now):
        with self._lock(callback):
            record = self.store.get(callback)
            if (record is None or record.terminal or
                record.expires_at is None or record.expires_at > now):
                return False
            record.transition(EXPIRED)
            self.store.put(record)
        log.info("Subscription %s to %s expired" % (callback, record.topic))
        self._events.emit(callback, EXPIRED_EVENT)
        return True

    def recover(self):
        """
        re-send the requests of all Pending subscriptions, eg. after
        a restart interrupted them.
        """
        started = 0
        for record in self.store.iter_subscriptions():
            if record.state == PENDING and not record.cancel_requested and record.next_attempt_at is not None:
                if self._spawn_renewal(record.callback):
                    started += 1
        return started

    def start(self, recover=True):
        if self._scanner is not None:
            return
        if recover:
            self.recover()
        self._scanner = eventlet.spawn(self._scan_loop)

    def _scan_loop(self):
        while True:
            try:
                self.scan()
            except Exception:
                log.error("Unexpected error scanning subscriptions: %s" % traceback.format_exc())
            self.sleep(self.scan_interval)

    def stop(self):
        if self._scanner is not None:
            self._scanner.kill()
            self._scanner = None
        self.waitall()

    def waitall(self):
        self._pool.waitall()


def _header(headers, name):
    if headers is None:
        return None
    value = headers.get(name)
    if value is not None:
        return value
    lname = name.lower()
    for k, v in headers.items():
        if k.lower() == lname:
            return v
    return None

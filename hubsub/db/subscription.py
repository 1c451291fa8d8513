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
from datetime import datetime, timedelta, timezone

__all__ = ['Subscription', 'utcnow', 'PENDING', 'ACTIVE', 'DENIED', 'EXPIRED', 'CANCELLED', 'STATES']

PENDING = 'pending'
ACTIVE = 'active'
DENIED = 'denied'
EXPIRED = 'expired'
CANCELLED = 'cancelled'

STATES = (PENDING, ACTIVE, DENIED, EXPIRED, CANCELLED)
TERMINAL_STATES = (DENIED, EXPIRED, CANCELLED)

# allowed state changes.  terminal states only leave via
# a fresh subscribe, which starts a new record.
TRANSITIONS = {
    PENDING: (PENDING, ACTIVE, DENIED, EXPIRED, CANCELLED),
    ACTIVE: (ACTIVE, PENDING, DENIED, EXPIRED, CANCELLED),
    DENIED: (),
    EXPIRED: (),
    CANCELLED: (),
}

def utcnow():
    """
    current time as a naive UTC datetime
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)

_DATE_FIELDS = ('expires_at', 'created_at', 'requested_at', 'next_attempt_at',
                'cancel_requested_at', 'verified_at')

DATE_FORMAT = '%Y-%m-%dT%H:%M:%S.%fZ'

def _dump_date(d):
    if d is None:
        return None
    return d.strftime(DATE_FORMAT)

def _load_date(s):
    if s is None or isinstance(s, datetime):
        return s
    s = s.rstrip('Z')
    if '.' in s:
        return datetime.strptime(s, '%Y-%m-%dT%H:%M:%S.%f')
    return datetime.strptime(s, '%Y-%m-%dT%H:%M:%S')


class Subscription(object):
    """
    the stored state of one subscription to a topic at a hub,
    identified by its callback token.
    """

    def __init__(self, callback, hub, topic, secret=None, state=PENDING,
                 lease_seconds=None, expires_at=None, denied_reason=None,
                 renew=None, params=None, headers=None, created_at=None,
                 requested_at=None, attempts=0, next_attempt_at=None,
                 cancel_requested_at=None, verified_at=None):
        if not state in STATES:
            raise ValueError("Unknown subscription state: %s" % state)
        self.callback = callback
        self.hub = hub
        self.topic = topic
        self._secret = secret
        self.state = state
        self.lease_seconds = lease_seconds
        self.expires_at = expires_at
        self.denied_reason = denied_reason
        self.renew = renew
        self.params = dict(params or {})
        self.headers = dict(headers or {})
        self.created_at = created_at or utcnow()
        self.requested_at = requested_at
        self.attempts = attempts
        self.next_attempt_at = next_attempt_at
        self.cancel_requested_at = cancel_requested_at
        self.verified_at = verified_at

    @property
    def secret(self):
        return self._secret

    @property
    def validated(self):
        return self.state == ACTIVE

    @property
    def terminal(self):
        return self.state in TERMINAL_STATES

    @property
    def cancel_requested(self):
        return self.cancel_requested_at is not None

    def can_become(self, state):
        return state in TRANSITIONS[self.state]

    def transition(self, state):
        if not self.can_become(state):
            raise ValueError("Subscription %s cannot go from %s to %s" %
                             (self.callback, self.state, state))
        self.state = state

    def activate(self, lease_seconds, now):
        self.transition(ACTIVE)
        self.lease_seconds = lease_seconds
        self.expires_at = now + timedelta(seconds=lease_seconds)
        self.verified_at = now
        self.denied_reason = None
        self.attempts = 0
        self.next_attempt_at = None

    def deny(self, reason):
        self.transition(DENIED)
        self.denied_reason = reason
        self.next_attempt_at = None

    def seconds_left(self, now):
        if self.expires_at is None:
            return None
        return (self.expires_at - now).total_seconds()

    def to_dict(self, public=False):
        d = {
            'callback': self.callback,
            'hub': self.hub,
            'topic': self.topic,
            'state': self.state,
            'lease_seconds': self.lease_seconds,
            'denied_reason': self.denied_reason,
            'renew': self.renew,
            'params': deepcopy(self.params),
            'headers': deepcopy(self.headers),
            'attempts': self.attempts,
        }
        for field in _DATE_FIELDS:
            d[field] = _dump_date(getattr(self, field))
        if not public:
            d['secret'] = self._secret
        return d

    @classmethod
    def from_dict(cls, d):
        kw = dict((str(k), v) for k, v in d.items())
        for field in _DATE_FIELDS:
            if field in kw:
                kw[field] = _load_date(kw[field])
        return cls(**kw)

    def copy(self):
        return Subscription.from_dict(self.to_dict())

    def __eq__(self, other):
        if not isinstance(other, Subscription):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return '<Subscription %s %s at %s (%s)>' % (self.callback, self.topic, self.hub, self.state)

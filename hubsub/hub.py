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
requests sent from the subscriber to a hub.
"""
import logging
from urllib.parse import urlencode

from hubsub.transport import HTTPTransport

__all__ = ['HubClient', 'SUBSCRIBE', 'UNSUBSCRIBE']

log = logging.getLogger(__name__)

SUBSCRIBE = 'subscribe'
UNSUBSCRIBE = 'unsubscribe'

class HubClient(object):
    """
    sends one form encoded subscribe / unsubscribe request to a hub.
    failures are raised to the caller, no retries are made here.
    """

    def __init__(self, transport=None):
        if transport is None:
            transport = HTTPTransport()
        self.transport = transport

    def send(self, hub_url, mode, callback_url, topic,
             lease_seconds=None, secret=None, params=None, headers=None):
        req = []
        # caller supplied params first so they cannot
        # override the protocol fields.
        if params:
            for k, v in params.items():
                if not k in ('hub.callback', 'hub.mode', 'hub.topic'):
                    req.append((k, v))
        req += [
            ('hub.callback', callback_url),
            ('hub.mode', mode),
            ('hub.topic', topic),
        ]
        if lease_seconds is not None:
            req.append(('hub.lease_seconds', '%d' % lease_seconds))
        if secret:
            req.append(('hub.secret', secret))

        body = urlencode(req)
        hdrs = {}
        if headers:
            hdrs.update(headers)
        hdrs['content-type'] = 'application/x-www-form-urlencoded'

        log.debug("Sending %s request for %s to hub %s" % (mode, topic, hub_url))
        return self.transport.request(hub_url, method='POST', body=body, headers=hdrs)

    def subscribe(self, hub_url, callback_url, topic, **kw):
        return self.send(hub_url, SUBSCRIBE, callback_url, topic, **kw)

    def unsubscribe(self, hub_url, callback_url, topic, **kw):
        return self.send(hub_url, UNSUBSCRIBE, callback_url, topic, **kw)

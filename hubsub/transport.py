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
outbound http shared by discovery and hub requests.  every request
is bounded by a timeout and failures are reported as TransportErrors.
"""
from eventlet.timeout import Timeout as GreenTimeout
import httplib2
import logging
import socket

from hubsub.errors import ConnectionFailed, Timeout, UnexpectedStatus

__all__ = ['HTTPTransport']

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

class HTTPTransport(object):

    def __init__(self, timeout=DEFAULT_TIMEOUT, user_agent=None, http_factory=None):
        self.timeout = timeout
        self.user_agent = user_agent
        if http_factory is None:
            http_factory = httplib2.Http
        self.http_factory = http_factory

    def request(self, url, method='GET', body=None, headers=None):
        """
        perform a single request, returning (response, content) for
        2xx responses.  anything else raises a TransportError.
        """
        hdrs = {}
        if self.user_agent:
            hdrs['user-agent'] = self.user_agent
        if headers:
            hdrs.update(headers)

        http = self.http_factory(timeout=self.timeout)
        timer = GreenTimeout(self.timeout)
        try:
            r, c = http.request(url, method=method, body=body, headers=hdrs)
        except GreenTimeout as t:
            if t is not timer:
                raise
            raise Timeout('%s %s timed out after %ss' % (method, url, self.timeout))
        except socket.timeout:
            raise Timeout('%s %s timed out after %ss' % (method, url, self.timeout))
        except (httplib2.HttpLib2Error, OSError) as e:
            raise ConnectionFailed('%s %s failed: %s' % (method, url, e))
        finally:
            timer.cancel()

        if r.status < 200 or r.status >= 300:
            log.debug("%s %s returned %d" % (method, url, r.status))
            raise UnexpectedStatus(url, r.status, c)

        return r, c

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
exceptions raised by the subscriber.  callers can catch
at any level of the hierarchy, eg all TransportErrors or
just Timeouts.
"""

class HubSubError(Exception):
    pass

#############################
# discovery
#############################

class DiscoveryError(HubSubError):
    pass

class NoSuitableContent(DiscoveryError):
    """
    the topic response had no usable Link headers and its
    content is neither HTML nor XML.
    """

class NoCanonicalLink(DiscoveryError):
    """
    no rel="self" link was found in the headers or the content.
    """

class NoHubs(DiscoveryError):
    """
    a canonical topic was found, but nobody declared a hub for it.
    """

#############################
# outbound http
#############################

class TransportError(HubSubError):
    pass

class Timeout(TransportError):
    pass

class ConnectionFailed(TransportError):
    pass

class UnexpectedStatus(TransportError):

    def __init__(self, url, status, content=None):
        TransportError.__init__(self, 'Unexpected status %d from %s' % (status, url))
        self.url = url
        self.status = status
        self.content = content

#############################
# inbound protocol
#############################

class ProtocolError(HubSubError):
    pass

class UnknownCallback(ProtocolError):
    pass

class TopicMismatch(UnknownCallback):
    """
    the callback exists but the hub named a different topic.
    reported exactly like an unknown callback.
    """

class UnsupportedSignatureAlgorithm(ProtocolError):
    pass

class InvalidRequest(ProtocolError):
    pass

#############################
# storage
#############################

class PersistenceError(HubSubError):
    pass

class IOFailure(PersistenceError):
    pass

class NotFound(PersistenceError):
    pass

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
hub and canonical topic discovery for a topic url.
"""
import logging
from urllib.parse import urljoin

from hubsub.errors import NoCanonicalLink, NoSuitableContent
from hubsub.links import LinkSource, rel_tokens
from hubsub.transport import HTTPTransport

__all__ = ['Discoverer', 'dedup']

log = logging.getLogger(__name__)

def dedup(urls):
    """
    remove duplicates, keeping the first occurrence of each.

    >>> dedup(['a', 'b', 'a', 'c', 'b'])
    ['a', 'b', 'c']
    """
    seen = set()
    out = []
    for url in urls:
        if url not in seen:
            seen.add(url)
            out.append(url)
    return out


class Discoverer(object):
    """
    resolves a topic url into the canonical topic url (rel="self")
    and the hubs (rel="hub") designated by its publisher.
    """

    def __init__(self, transport=None, head_only=False):
        if transport is None:
            transport = HTTPTransport()
        self.transport = transport
        self.head_only = head_only

    def discover(self, topic_url, head_only=None):
        """
        returns (canonical_topic, hubs).  Link headers are consulted
        first; the body is only parsed if they are insufficient.
        """
        if head_only is None:
            head_only = self.head_only

        r, c = self.transport.request(topic_url, 'GET')
        # content-location may be relative to the url requested
        base = urljoin(topic_url, r.get('content-location', topic_url))
        source = LinkSource(base, r, c)
        return self.discover_from(source, head_only=head_only)

    def discover_from(self, source, head_only=False):
        hubs = []
        canonical = None

        for link in source.header_links():
            rels = rel_tokens(link.rel)
            if 'hub' in rels:
                hubs.append(link.href)
            if 'self' in rels and canonical is None:
                canonical = link.href

        if canonical is None or len(hubs) == 0:
            if not source.is_markup:
                raise NoSuitableContent('No links in headers of %s and content (%s) is not HTML or XML' %
                                        (source.url, source.content_type))

            # with head_only, links outside <head> are ignored
            for link in source.document_links(head_only=head_only):
                rels = rel_tokens(link.rel)
                if 'hub' in rels:
                    hubs.append(link.href)
                if 'self' in rels and canonical is None:
                    canonical = link.href

        if canonical is None:
            raise NoCanonicalLink('No self link found for %s' % source.url)

        hubs = dedup(hubs)
        log.debug("Discovered topic %s with hubs %s" % (canonical, hubs))
        return canonical, hubs

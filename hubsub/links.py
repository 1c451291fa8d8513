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

from collections import namedtuple
from html.parser import HTMLParser
import logging
import re
from urllib.parse import urljoin

__all__ = ['Link', 'LinkSource', 'parse_link_header', 'extract_links', 'content_kind']

log = logging.getLogger(__name__)

Link = namedtuple('Link', ['href', 'rel'])

def rel_tokens(rel):
    """
    >>> sorted(rel_tokens('Hub  self'))
    ['hub', 'self']
    >>> rel_tokens(None)
    set()
    """
    if not rel:
        return set()
    return set(rel.lower().split())


_PARAM_RE = re.compile(r';\s*([^\s=;,]+)\s*(?:=\s*("(?:[^"\\]|\\.)*"|[^;]*))?')

def _parse_params(s):
    params = {}
    for m in _PARAM_RE.finditer(s):
        key = m.group(1).lower()
        value = m.group(2)
        if value is None:
            value = ''
        value = value.strip()
        if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
            value = value[1:-1].replace('\\"', '"')
        # first occurrence of a parameter wins (RFC 8288)
        params.setdefault(key, value)
    return params

def parse_link_header(value):
    """
    parse the value of one or more (comma joined) Link headers
    into a list of Links.  entries without a rel are dropped.

    >>> parse_link_header('<https://hub.example/>; rel="hub", <https://example.com/feed>; rel=self')
    [Link(href='https://hub.example/', rel='hub'), Link(href='https://example.com/feed', rel='self')]
    >>> parse_link_header('<http://a/>; title="x, y"; rel="hub self"')
    [Link(href='http://a/', rel='hub self')]
    >>> parse_link_header('garbage')
    []
    """
    links = []
    if not value:
        return links

    pos = 0
    while True:
        start = value.find('<', pos)
        if start == -1:
            break
        end = value.find('>', start)
        if end == -1:
            break
        href = value[start + 1:end].strip()

        # parameters run until the next comma outside of quotes
        i = end + 1
        in_quote = False
        while i < len(value):
            c = value[i]
            if c == '"':
                in_quote = not in_quote
            elif c == ',' and not in_quote:
                break
            i += 1

        params = _parse_params(value[end + 1:i])
        rel = params.get('rel')
        if href and rel:
            links.append(Link(href, rel))
        pos = i + 1
    return links


class _LinkExtractor(HTMLParser):
    """
    collects the attributes of every <link> element, noting
    whether it appeared inside <head>.  tolerant of sloppy
    markup, never raises on bad input.
    """
    def __init__(self):
        HTMLParser.__init__(self, convert_charrefs=True)
        self.links = []
        self._in_head = False

    def handle_starttag(self, tag, attrs):
        if tag == 'head':
            self._in_head = True
        elif tag == 'body':
            self._in_head = False
        elif tag == 'link' or tag.endswith(':link'):
            self.links.append((dict(attrs), self._in_head))

    def handle_endtag(self, tag):
        if tag == 'head':
            self._in_head = False

def extract_links(text, head_only=False):
    """
    find all <link> elements in the (HTML or XML) text given that
    have both a rel and an href.  when head_only is set, only
    elements inside <head> are considered.

    >>> extract_links('<link rel="hub" href="http://h/"><link href="x"><link rel="self">')
    [Link(href='http://h/', rel='hub')]
    >>> extract_links('<html><body><link rel="hub" href="http://h/"></body></html>', head_only=True)
    []
    """
    parser = _LinkExtractor()
    parser.feed(text)
    parser.close()

    links = []
    for attrs, in_head in parser.links:
        if head_only and not in_head:
            continue
        rel = attrs.get('rel')
        href = attrs.get('href')
        if not rel or not href:
            continue
        links.append(Link(href.strip(), rel))
    return links


def _split_content_type(content_type):
    if not content_type:
        return None, {}
    parts = content_type.split(';', 1)
    mime = parts[0].strip().lower()
    params = {}
    if len(parts) > 1:
        params = _parse_params(';' + parts[1])
    return mime, params

def content_kind(content_type):
    """
    classify a Content-Type header value as 'html', 'xml' or None

    >>> content_kind('text/html; charset=utf-8')
    'html'
    >>> content_kind('application/atom+xml')
    'xml'
    >>> content_kind('text/xml')
    'xml'
    >>> content_kind('application/json') is None
    True
    """
    mime, params = _split_content_type(content_type)
    if mime is None or '/' not in mime:
        return None
    if mime == 'text/html':
        return 'html'
    subtype = mime.split('/', 1)[1]
    if subtype == 'xml' or subtype.endswith('+xml'):
        return 'xml'
    return None


class LinkSource(object):
    """
    typed links available from a fetched resource: those
    in its Link headers and, on demand, those in its markup.
    hrefs are resolved against the url the resource was
    fetched from.
    """

    def __init__(self, url, headers, content=b''):
        self.url = url
        self.headers = headers
        self.content = content

    @property
    def content_type(self):
        return self.headers.get('content-type')

    @property
    def is_markup(self):
        return content_kind(self.content_type) is not None

    def header_links(self):
        return [self._resolve(l) for l in parse_link_header(self.headers.get('link'))]

    def document_links(self, head_only=False):
        if not self.is_markup:
            return []
        return [self._resolve(l) for l in extract_links(self.text(), head_only=head_only)]

    def text(self):
        content = self.content
        if isinstance(content, str):
            return content
        mime, params = _split_content_type(self.content_type)
        charset = params.get('charset') or 'utf-8'
        try:
            return content.decode(charset, 'replace')
        except LookupError:
            log.warning("Unknown charset %s in response from %s" % (charset, self.url))
            return content.decode('utf-8', 'replace')

    def _resolve(self, link):
        return Link(urljoin(self.url, link.href), link.rel)

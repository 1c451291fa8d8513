import pytest
import socket
from helpers import *


def make_discoverer(web, **kw):
    from hubsub.discover import Discoverer
    from hubsub.transport import HTTPTransport
    return Discoverer(HTTPTransport(http_factory=web), **kw)

def test_discover_link_headers():
    web = FakeWeb()
    web.serve('https://example.com/feed',
              headers={'link': '<https://hub.example/>; rel="hub", <https://example.com/feed>; rel="self"'})

    topic, hubs = make_discoverer(web).discover('https://example.com/feed')
    assert topic == 'https://example.com/feed'
    assert hubs == ['https://hub.example/']

def test_discover_dedups_hubs():
    web = FakeWeb()
    links = ', '.join(['<http://h1/>; rel="hub"', '<http://h2/>; rel="hub"',
                       '<http://h1/>; rel="hub"', '<http://t/>; rel="self"',
                       '<http://h3/>; rel="hub"', '<http://h2/>; rel="hub"'])
    web.serve('http://t/', headers={'link': links})

    topic, hubs = make_discoverer(web).discover('http://t/')
    assert hubs == ['http://h1/', 'http://h2/', 'http://h3/']

def test_discover_first_self_wins():
    web = FakeWeb()
    web.serve('http://t/', headers={'link': '<http://h/>; rel="hub", <http://one/>; rel="self", <http://two/>; rel="self"'})
    topic, hubs = make_discoverer(web).discover('http://t/')
    assert topic == 'http://one/'

def test_discover_combined_rel():
    web = FakeWeb()
    web.serve('http://t/', headers={'link': '<http://h/>; rel="HUB", <http://c/>; rel="alternate self"'})
    topic, hubs = make_discoverer(web).discover('http://t/')
    assert topic == 'http://c/'
    assert hubs == ['http://h/']

def test_discover_headers_sufficient_skips_body(monkeypatch):
    from hubsub.links import LinkSource

    def no_parse(self, head_only=False):
        raise AssertionError('body should not be parsed')
    monkeypatch.setattr(LinkSource, 'document_links', no_parse)

    web = FakeWeb()
    web.serve('http://t/',
              headers={'link': '<http://h/>; rel="hub", <http://t/>; rel="self"', 'content-type': 'text/html'},
              content=html_page(head='<link rel="hub" href="http://other/">'))
    topic, hubs = make_discoverer(web).discover('http://t/')
    assert hubs == ['http://h/']

def test_discover_html_body():
    web = FakeWeb()
    web.serve('http://t/', headers={'content-type': 'text/html; charset=utf-8'},
              content=html_page(head='<link rel="hub" href="http://h/"><link rel="self" href="http://canonical/">'))
    topic, hubs = make_discoverer(web).discover('http://t/')
    assert topic == 'http://canonical/'
    assert hubs == ['http://h/']

def test_discover_relative_content_location():
    web = FakeWeb()
    web.serve('https://example.com/blog/',
              headers={'content-type': 'text/html', 'content-location': 'feed.xml'},
              content=html_page('<link rel="hub" href="/hub"><link rel="self" href="feed.xml">'))

    topic, hubs = make_discoverer(web).discover('https://example.com/blog/')
    assert topic == 'https://example.com/blog/feed.xml'
    assert hubs == ['https://example.com/hub']

def test_discover_header_canonical_beats_body():
    web = FakeWeb()
    web.serve('http://t/',
              headers={'link': '<http://from-header/>; rel="self"', 'content-type': 'text/html'},
              content=html_page(head='<link rel="hub" href="http://h/"><link rel="self" href="http://from-body/">'))
    topic, hubs = make_discoverer(web).discover('http://t/')
    assert topic == 'http://from-header/'
    assert hubs == ['http://h/']

def test_discover_header_and_body_hubs_merged():
    web = FakeWeb()
    web.serve('http://t/',
              headers={'link': '<http://h1/>; rel="hub"', 'content-type': 'application/atom+xml'},
              content=b'<feed><link rel="self" href="http://t/"/><link rel="hub" href="http://h1/"/><link rel="hub" href="http://h2/"/></feed>')
    topic, hubs = make_discoverer(web).discover('http://t/')
    assert topic == 'http://t/'
    assert hubs == ['http://h1/', 'http://h2/']

def test_discover_head_only():
    web = FakeWeb()
    web.serve('http://t/', headers={'content-type': 'text/html'},
              content=html_page(head='<link rel="self" href="http://t/">',
                                body='<link rel="hub" href="http://rogue/">'))

    topic, hubs = make_discoverer(web).discover('http://t/')
    assert hubs == ['http://rogue/']

    topic, hubs = make_discoverer(web).discover('http://t/', head_only=True)
    assert topic == 'http://t/'
    assert hubs == []

    # or as the discoverer's default
    topic, hubs = make_discoverer(web, head_only=True).discover('http://t/')
    assert hubs == []

def test_discover_no_suitable_content():
    from hubsub.errors import NoSuitableContent

    web = FakeWeb()
    web.serve('http://t/', headers={'link': '<http://t/>; rel="self"', 'content-type': 'application/json'},
              content=b'{"links": []}')
    with pytest.raises(NoSuitableContent):
        make_discoverer(web).discover('http://t/')

def test_discover_no_canonical():
    from hubsub.errors import NoCanonicalLink

    web = FakeWeb()
    web.serve('http://t/', headers={'content-type': 'text/html'},
              content=html_page(head='<link rel="hub" href="http://h/">'))
    with pytest.raises(NoCanonicalLink):
        make_discoverer(web).discover('http://t/')

def test_discover_no_hubs_is_not_an_error():
    web = FakeWeb()
    web.serve('http://t/', headers={'link': '<http://t/>; rel="self"', 'content-type': 'text/html'},
              content=html_page())
    topic, hubs = make_discoverer(web).discover('http://t/')
    assert topic == 'http://t/'
    assert hubs == []

def test_discover_transport_errors():
    from hubsub.errors import ConnectionFailed, Timeout, UnexpectedStatus

    web = FakeWeb()
    web.serve('http://gone/', status=404)
    with pytest.raises(UnexpectedStatus) as e:
        make_discoverer(web).discover('http://gone/')
    assert e.value.status == 404

    def slow(method, body, headers):
        raise socket.timeout('timed out')
    web.route('http://slow/', slow)
    with pytest.raises(Timeout):
        make_discoverer(web).discover('http://slow/')

    with pytest.raises(ConnectionFailed):
        make_discoverer(web).discover('http://nowhere/')

def test_dedup():
    from hubsub.discover import dedup
    assert dedup([]) == []
    assert dedup(['b', 'a', 'b']) == ['b', 'a']

def test_discover_doctest():
    import doctest
    from hubsub import discover
    doctest.testmod(discover, raise_on_error=True)

from datetime import datetime, timedelta
import itertools
import logging
import os
import httplib2
from urllib.parse import parse_qsl, quote_plus, urlsplit
from webob import Request

from hubsub.auth import hub_digest, SIGNATURE_HEADER
from hubsub.context import Context
from hubsub.tokens import TokenGenerator

__all__ = ['CALLBACK_BASE', 'TOPIC_URL', 'HUB_URL', 'Context', 'yaml_path', 'fresh_context', 'make_response',
           'append_param', 'epeq_datetime', 'counting_randbytes', 'nonce_str',
           'FakeClock', 'FakeWeb', 'FakeHub', 'serve_topic', 'html_page', 'hub_world']

log = logging.getLogger(__name__)

CALLBACK_BASE = 'http://subscriber.example/'
TOPIC_URL = 'https://example.com/feed'
HUB_URL = 'https://hub.example/'

def yaml_path():
    here = os.path.abspath(os.path.dirname(__file__))
    return os.path.join(here, 'test.yaml')

def nonce_str():
    return TokenGenerator().callback()

def counting_randbytes():
    """
    deterministic stand in for os.urandom, every call
    gives different bytes.
    """
    counter = itertools.count(1)
    def randbytes(n):
        return next(counter).to_bytes(n, 'big')
    return randbytes

def epeq_datetime(t1, t2):
    return abs(t1 - t2) < timedelta(seconds=1)

def append_param(url, k, v):
    if len(urlsplit(url)[3]) > 0:
        return '%s&%s=%s' % (url, quote_plus(k), quote_plus(v))
    else:
        return '%s?%s=%s' % (url, quote_plus(k), quote_plus(v))

def make_response(status=200, content=b'', headers=None):
    info = {'status': str(status)}
    for k, v in (headers or {}).items():
        info[k.lower()] = v
    return httplib2.Response(info), content

def html_page(head='', body=''):
    return ('<!DOCTYPE html><html><head><title>t</title>%s</head><body>%s</body></html>' %
            (head, body)).encode('utf-8')


class FakeClock(object):

    def __init__(self, start=None):
        if start is None:
            start = datetime(2026, 1, 1, 12, 0, 0)
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class FakeHttp(object):
    """
    behaves like httplib2.Http, but answers from the
    handlers registered with a FakeWeb.
    """
    def __init__(self, web, timeout=None):
        self.web = web
        self.timeout = timeout

    def request(self, uri, method='GET', body=None, headers=None, **kw):
        headers = dict(headers or {})
        self.web.requests.append((method, uri, body, headers))
        handler = self.web.handlers.get(uri)
        if handler is None:
            raise httplib2.ServerNotFoundError('Unable to find the server at %s' % uri)
        return handler(method, body, headers)


class FakeWeb(object):
    """
    the outside world as seen through FakeHttp.  use an
    instance as the context's http_factory.
    """
    def __init__(self):
        self.handlers = {}
        self.requests = []

    def __call__(self, timeout=None):
        return FakeHttp(self, timeout)

    def route(self, url, handler):
        self.handlers[url] = handler

    def serve(self, url, status=200, content=b'', headers=None):
        def handler(method, body, hdrs):
            return make_response(status, content, headers)
        self.route(url, handler)

    def requests_to(self, url, method=None):
        return [r for r in self.requests if r[1] == url and (method is None or r[0] == method)]


def serve_topic(web, topic=TOPIC_URL, hubs=(HUB_URL,), self_url=None):
    if self_url is None:
        self_url = topic
    links = ['<%s>; rel="hub"' % h for h in hubs]
    links.append('<%s>; rel="self"' % self_url)
    web.serve(topic, headers={'link': ', '.join(links), 'content-type': 'application/atom+xml'},
              content=b'<feed xmlns="http://www.w3.org/2005/Atom"></feed>')


class FakeHub(object):
    """
    This is a test fixture that responds to requests
    like a WebSub hub and tracks certain info.  it verifies
    intent by calling the subscriber's wsgi app directly.
    """

    def __init__(self, app, lease_seconds=999999, verify=True, status=202):
        self.app = app
        self.lease_seconds = lease_seconds
        self.verify = verify
        self.status = status
        self.down = False
        self.received = []
        self._verified = {}
        self._renewals = {}

    def __call__(self, method, body, headers):
        if self.down:
            raise ConnectionRefusedError('hub is down')

        if method != 'POST':
            return make_response(400)

        form = dict(parse_qsl(body))
        self.received.append((form, headers))

        cb = form['hub.callback']
        mode = form['hub.mode']
        topic = form['hub.topic']

        if not mode in ('subscribe', 'unsubscribe'):
            return make_response(400)

        if not self.verify:
            return make_response(self.status)

        if not self.verify_intent(cb, mode, topic):
            log.warning("Request did not validate: %s %s" % (mode, cb))
            return make_response(400)

        if mode == 'subscribe':
            if (cb, topic) in self._verified:
                self._renewals[(cb, topic)] = self._renewals.get((cb, topic), 0) + 1
            self._verified[(cb, topic)] = form.get('hub.secret', None)
        else:
            self._verified.pop((cb, topic), None)
            self._renewals.pop((cb, topic), None)

        return make_response(self.status)

    def verification_url(self, cb, mode, topic, challenge=None, lease_seconds=None, reason=None):
        vurl = append_param(cb, 'hub.mode', mode)
        vurl = append_param(vurl, 'hub.topic', topic)
        if challenge is not None:
            vurl = append_param(vurl, 'hub.challenge', challenge)
        if lease_seconds is not None:
            vurl = append_param(vurl, 'hub.lease_seconds', '%d' % lease_seconds)
        if reason is not None:
            vurl = append_param(vurl, 'hub.reason', reason)
        return vurl

    def verify_intent(self, cb, mode, topic):
        challenge = nonce_str()
        vurl = self.verification_url(cb, mode, topic, challenge=challenge,
                                     lease_seconds=self.lease_seconds)
        res = Request.blank(vurl).get_response(self.app)
        return res.status_int == 200 and res.text == challenge

    def deny(self, cb, topic, reason=None):
        vurl = self.verification_url(cb, 'denied', topic, reason=reason)
        return Request.blank(vurl).get_response(self.app)

    def push(self, cb, content, secret=None, algorithm='sha1', signature=None):
        headers = {'Content-Type': 'application/atom+xml'}
        if signature is None and secret is not None:
            signature = '%s=%s' % (algorithm, hub_digest(content, secret, algorithm))
        if signature is not None:
            headers[SIGNATURE_HEADER] = signature
        req = Request.blank(cb, method='POST', body=content, headers=headers)
        return req.get_response(self.app)

    def is_verified(self, cb, topic_url):
        return (cb, topic_url) in self._verified

    def secret_for(self, cb, topic_url):
        return self._verified.get((cb, topic_url), None)

    def renewals(self, cb, topic_url):
        return self._renewals.get((cb, topic_url), 0)

    def requests(self, mode=None):
        return [f for f, h in self.received if mode is None or f['hub.mode'] == mode]


def fresh_context(web=None, clock=None, store=None, **subscriber):
    """
    a context with an in memory store, no network, a fake
    clock, deterministic tokens and no waiting between retries.
    """
    cfg = {
        'subscriber': {
            'callback_url': CALLBACK_BASE,
            'retry': {'attempts': 3, 'backoff': 0},
        },
        'store': {'backend': 'memory'},
    }
    cfg['subscriber'].update(subscriber)
    if store is not None:
        cfg['store'] = store
    ctx = Context.from_dict(cfg)
    ctx.http_factory = web or FakeWeb()
    ctx.clock = clock or FakeClock()
    ctx.tokens = TokenGenerator(randbytes=counting_randbytes())
    return ctx

def hub_world(lease_seconds=999999, verify=True, **subscriber):
    """
    a subscriber context, a topic served with a Link header
    naming one FakeHub, and that hub.
    """
    from hubsub.wsgi import CallbackApp
    web = FakeWeb()
    ctx = fresh_context(web=web, **subscriber)
    hub = FakeHub(CallbackApp(ctx.engine), lease_seconds=lease_seconds, verify=verify)
    web.route(HUB_URL, hub)
    serve_topic(web)
    return ctx, web, hub

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

import eventlet
from eventlet import wsgi
from eventlet.support.greenlets import GreenletExit
import logging
import traceback
from urllib.parse import unquote
from webob import Request, Response

from hubsub.errors import InvalidRequest, UnknownCallback

__all__ = ['CallbackApp', 'CallbackServer', 'callback_for_path']

log = logging.getLogger(__name__)

def callback_for_path(path):
    """
    determine which callback a request from a hub refers to.

    >>> callback_for_path('/abc_-123')
    'abc_-123'
    >>> callback_for_path('/') is None
    True
    >>> callback_for_path('/a/b') is None
    True
    """
    cb = unquote(path).strip('/')
    if not cb or '/' in cb:
        return None
    return cb


class CallbackApp(object):
    """
    A wsgi application which handles subscription verification
    and content push requests from hubs, mount it at the base
    callback url.
    """
    def __init__(self, engine):
        self.engine = engine

    def __call__(self, environ, start_response):
        req = Request(environ)
        try:
            if req.method == 'POST':
                res = self.handle_content(req)
            elif req.method == 'GET':
                res = self.handle_verification(req)
            else:
                res = Response(status=405)
                res.allow = ('GET', 'POST')
        except Exception:
            log.error("Error handling hub request: %s" % traceback.format_exc())
            res = Response(status=500)
        return res(environ, start_response)

    def handle_verification(self, req):
        callback = callback_for_path(req.path_info)
        mode = req.GET.get('hub.mode', None)
        topic = req.GET.get('hub.topic', None)
        if callback is None:
            return Response(status=404)

        try:
            body = self.engine.handle_verification(callback, mode, topic,
                                                   challenge=req.GET.get('hub.challenge', None),
                                                   lease_seconds=req.GET.get('hub.lease_seconds', None),
                                                   reason=req.GET.get('hub.reason', None))
        except UnknownCallback:
            log.warning("Got invalid '%s' req for '%s'" % (mode, topic))
            return Response(status=404)
        except InvalidRequest as e:
            log.warning("Got malformed verification request: %s" % e)
            res = Response(status=400, content_type='text/plain', charset='utf-8')
            res.text = str(e)
            return res

        res = Response(status=200, content_type='text/plain', charset='utf-8')
        res.text = body
        return res

    def handle_content(self, req):
        callback = callback_for_path(req.path_info)
        if callback is None:
            return Response(status=404)
        try:
            # acknowledged whether or not it authenticates, so
            # hubs do not keep retrying rejected content.
            self.engine.handle_content(callback, req.headers, req.body)
        except UnknownCallback:
            return Response(status=404)
        return Response(status=200)


class CallbackServer(object):
    """
    serves a CallbackApp and keeps the engine's scanner
    running while it does.
    """
    def __init__(self, engine, host='0.0.0.0', port=9300):
        self.engine = engine
        self.host = host
        self.port = port
        self.app = CallbackApp(engine)

    def run(self):
        try:
            log.info("CallbackServer starting on %s:%d" % (self.host, self.port))
            self.engine.start()
            sock = eventlet.listen((self.host, self.port))
            wsgi.server(sock, self.app, log=logging.getLogger('hubsub.access'))
        except GreenletExit:
            pass
        finally:
            self.engine.stop()

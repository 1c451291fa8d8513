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
authenticated content distribution: checks the X-Hub-Signature
a hub attaches to pushed content against the subscription secret.
"""
import hashlib
import hmac
import logging

from hubsub.errors import InvalidRequest, UnsupportedSignatureAlgorithm

__all__ = ['ContentAuthenticator', 'hub_digest', 'parse_signature', 'SIGNATURE_HEADER']

log = logging.getLogger(__name__)

SIGNATURE_HEADER = 'X-Hub-Signature'

ALGORITHMS = {
    'sha1': hashlib.sha1,
    'sha256': hashlib.sha256,
    'sha384': hashlib.sha384,
    'sha512': hashlib.sha512,
}

def _to_bytes(s):
    if isinstance(s, str):
        return s.encode('utf-8')
    return s

def hub_digest(content, secret, algorithm='sha1'):
    """
    compute the hex digest a hub sends for content and secret

    >>> len(hub_digest(b'hello', 'secret'))
    40
    >>> len(hub_digest(b'hello', 'secret', 'sha256'))
    64
    """
    try:
        digestmod = ALGORITHMS[algorithm]
    except KeyError:
        raise UnsupportedSignatureAlgorithm(algorithm)
    return hmac.new(_to_bytes(secret), _to_bytes(content), digestmod).hexdigest()

def parse_signature(value):
    """
    split a signature header into (algorithm, hexdigest)

    >>> parse_signature('sha256=ABCDEF')
    ('sha256', 'abcdef')
    """
    if not value or '=' not in value:
        raise InvalidRequest('Malformed signature: %r' % value)
    algorithm, digest = value.strip().split('=', 1)
    algorithm = algorithm.strip().lower()
    digest = digest.strip().lower()
    if algorithm not in ALGORITHMS:
        raise UnsupportedSignatureAlgorithm(algorithm)
    if not digest:
        raise InvalidRequest('Empty digest in signature')
    return algorithm, digest


class ContentAuthenticator(object):

    def verify(self, secret, signature, content):
        """
        True if content may be delivered: either there is no secret
        (unauthenticated subscription) or the signature is a matching
        HMAC of the exact content bytes.
        """
        if not secret:
            return True

        try:
            algorithm, digest = parse_signature(signature)
        except (InvalidRequest, UnsupportedSignatureAlgorithm) as e:
            log.warning("Rejecting content push: %s" % e)
            return False

        expected = hub_digest(content, secret, algorithm)
        if not hmac.compare_digest(expected.encode('ascii'), digest.encode('ascii', 'replace')):
            log.warning("Rejecting content push: %s digest did not match" % algorithm)
            return False
        return True

import pytest
from helpers import *


def test_verify_matching_digest():
    from hubsub.auth import ContentAuthenticator, hub_digest

    auth = ContentAuthenticator()
    content = b'<feed>some content</feed>'
    secret = nonce_str()

    for alg in ('sha1', 'sha256', 'sha384', 'sha512'):
        sig = '%s=%s' % (alg, hub_digest(content, secret, alg))
        assert auth.verify(secret, sig, content)
        # hex digits are case insensitive
        assert auth.verify(secret, sig.upper().replace(alg.upper(), alg), content)

def test_verify_flipped_bits():
    from hubsub.auth import ContentAuthenticator, hub_digest

    auth = ContentAuthenticator()
    content = b'<feed>some content</feed>'
    secret = 'sekrit'
    sig = 'sha256=%s' % hub_digest(content, secret, 'sha256')

    flipped = bytearray(content)
    flipped[3] ^= 0x01
    assert not auth.verify(secret, sig, bytes(flipped))
    assert not auth.verify('sekriu', sig, content)
    assert not auth.verify(secret, sig[:-1], content)
    assert not auth.verify(secret, sig + '0', content)

def test_verify_malformed_signatures():
    from hubsub.auth import ContentAuthenticator, hub_digest

    auth = ContentAuthenticator()
    content = b'hello'
    digest = hub_digest(content, 'secret', 'sha1')

    assert not auth.verify('secret', None, content)
    assert not auth.verify('secret', '', content)
    assert not auth.verify('secret', digest, content)
    assert not auth.verify('secret', 'sha1=', content)
    assert not auth.verify('secret', 'md5=%s' % digest, content)
    assert not auth.verify('secret', 'sha1=' + 'z' * 40, content)

def test_verify_without_secret():
    from hubsub.auth import ContentAuthenticator

    auth = ContentAuthenticator()
    assert auth.verify(None, None, b'anything')
    assert auth.verify(None, 'sha1=garbage', b'anything')

def test_parse_signature():
    from hubsub.auth import parse_signature
    from hubsub.errors import InvalidRequest, UnsupportedSignatureAlgorithm

    assert parse_signature('SHA1=ABC') == ('sha1', 'abc')
    with pytest.raises(UnsupportedSignatureAlgorithm):
        parse_signature('md5=abc')
    with pytest.raises(InvalidRequest):
        parse_signature('abc')

def test_hub_digest_str_and_bytes():
    from hubsub.auth import hub_digest
    assert hub_digest('caf\xe9', 's') == hub_digest('caf\xe9'.encode('utf-8'), b's')

def test_auth_doctest():
    import doctest
    from hubsub import auth
    doctest.testmod(auth, raise_on_error=True)

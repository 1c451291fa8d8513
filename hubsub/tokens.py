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

from base64 import urlsafe_b64encode
import os

__all__ = ['TokenGenerator', 'CALLBACK_BYTES', 'SECRET_BYTES']

# 256 bits for callbacks, 512 bits for secrets.
CALLBACK_BYTES = 32
SECRET_BYTES = 64

def urlsafe_token(raw):
    """
    >>> urlsafe_token(b'\\xff\\xfe\\xfd')
    '__79'
    """
    return urlsafe_b64encode(raw).rstrip(b'=').decode('ascii')

class TokenGenerator(object):
    """
    produces url safe random tokens.  the source of randomness
    can be replaced (eg. with something deterministic in tests),
    it must behave like os.urandom.
    """
    def __init__(self, randbytes=None, callback_bytes=CALLBACK_BYTES, secret_bytes=SECRET_BYTES):
        if randbytes is None:
            randbytes = os.urandom
        self.randbytes = randbytes
        self.callback_bytes = callback_bytes
        self.secret_bytes = secret_bytes

    def callback(self):
        return urlsafe_token(self.randbytes(self.callback_bytes))

    def secret(self):
        return urlsafe_token(self.randbytes(self.secret_bytes))

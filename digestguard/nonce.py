# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

Nonce generation for digestguard.

"""

import os
import time
import hmac
import base64
import binascii
from hashlib import md5

from zope.interface import implementer

from digestguard.interfaces import INonceGenerator
from digestguard.utils import strings_differ


@implementer(INonceGenerator)
class TimestampNonceGenerator(object):
    """Generator for signed, timestamped digest-auth nonces.

    Each nonce consists of a hex-encoded timestamp in milliseconds, some
    random bytes and a HMAC signature over the two:

        18b3e7c9a10:5f0e2a:2Wn1c3...==

    Since the issue time is carried inside the token itself, checking its
    age needs no server-side state.  This lets several processes sharing a
    secret agree on whether a nonce has expired, even across restarts.

    The following options customize the use of this class:

       * secret:  bytestring key used for signing the nonces;
                  if not specified then a random bytestring is used.
    """

    def __init__(self, secret=None):
        # Default secret is a random bytestring.
        if secret is None:
            secret = os.urandom(16)
        elif not isinstance(secret, bytes):
            secret = secret.encode("utf-8")
        self.secret = secret

    def generate(self):
        """Generate a new nonce value."""
        timestamp = "%x" % (int(time.time() * 1000),)
        # Add some random bytes to avoid repeating nonces when several are
        # generated very close together.
        rand = binascii.hexlify(os.urandom(3)).decode("ascii")
        data = "%s:%s" % (timestamp, rand)
        return "%s:%s" % (data, self._get_signature(data))

    def has_expired(self, nonce, max_valid):
        """Check whether the given nonce is older than max_valid millisecs.

        A nonce that can't be parsed, or whose signature doesn't match, is
        always reported as expired.
        """
        try:
            data, sig = nonce.rsplit(":", 1)
            timestamp = data.split(":", 1)[0]
            expiry_time = int(timestamp, 16) + max_valid
        except (ValueError, AttributeError):
            # Eh? Malformed Nonce? Treat it as expired.
            return True
        if strings_differ(sig, self._get_signature(data)):
            return True
        return expiry_time <= time.time() * 1000

    def _get_signature(self, value):
        """Calculate the HMAC signature for the given value."""
        sig = hmac.new(self.secret, value.encode("utf-8"), md5)
        return base64.b64encode(sig.digest()).decode("ascii")

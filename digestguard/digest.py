# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

The HTTP-Digest-Auth authentication scheme:

    http://tools.ietf.org/html/rfc2617

"""

import enum
import uuid
import logging
import threading

from zope.interface import implementer

from digestguard.interfaces import IAuthenticationScheme, ISessionListener
from digestguard.errors import (ProtocolError, StaleNonceError,
                                ConfigurationError, CredentialError)
from digestguard.nonce import TimestampNonceGenerator
from digestguard.session import ENVKEY_SESSION
from digestguard.utils import (parse_auth_header,
                               validate_digest_parameters,
                               build_challenge_header)


logger = logging.getLogger(__name__)

# Default lifetime of a nonce, in milliseconds.
DEFAULT_NONCE_MAX_VALID = 3 * 60 * 1000


class NonceStatus(enum.Enum):
    INVALID = "invalid"
    STALE = "stale"
    VALID = "valid"


class NonceStore(object):
    """Thread-safe record of the nonces issued to each session.

    The list for a session only ever grows while the session lives, and is
    dropped as a whole by discard() when the session ends.
    """

    def __init__(self):
        self._nonces = {}
        self._lock = threading.Lock()

    def add(self, session, nonce):
        """Record a nonce issued to a session.

        Nothing is recorded for a session that has already expired, so a
        challenge racing with expiry can't leave a list behind.  Returns
        True if the nonce was recorded.
        """
        with self._lock:
            if not session.is_valid():
                return False
            self._nonces.setdefault(session.id, []).append(nonce)
            return True

    def contains(self, session_id, nonce):
        with self._lock:
            return nonce in self._nonces.get(session_id, ())

    def get(self, session_id):
        """Get a copy of the nonces issued to a session, possibly empty."""
        with self._lock:
            return tuple(self._nonces.get(session_id, ()))

    def discard(self, session_id):
        with self._lock:
            self._nonces.pop(session_id, None)

    def __len__(self):
        with self._lock:
            return len(self._nonces)


@implementer(IAuthenticationScheme, ISessionListener)
class DigestAuthenticationScheme(object):
    """Authentication scheme implementing HTTP's Digest Access Authentication.

    Each request is checked in order for: a well-formed digest-auth
    Authorization header; the server's opaque value; the configured realm;
    the configured qop; and a nonce that was issued to the requesting
    session and has not grown stale.  Only if all of these pass are the
    credentials handed to the AuthenticationManager for verification.
    Any failure results in a fresh challenge being written to the response.

    Nonces are tracked per session.  The scheme listens for session expiry
    and forgets all nonces issued to a session when it goes away.

    Nonce-counts are not enforced, so a nonce may be re-used for as long as
    it stays fresh.

    The following options customize the use of this class:

       * authentication_manager:  verifies the digest response; required
                                  before any request can be authenticated.

       * qop:  the quality-of-protection to demand, "auth" by default.

       * nonce_max_valid:  lifetime of a nonce in milliseconds; three
                           minutes by default.

       * nonce_generator:  an INonceGenerator, TimestampNonceGenerator by
                           default.

       * opaque:  the opaque value sent with every challenge; a random
                  value is generated if not specified.
    """

    def __init__(self, realm, authentication_manager=None, qop=None,
                 nonce_max_valid=None, nonce_generator=None, opaque=None):
        if qop is None:
            qop = "auth"
        if nonce_max_valid is None:
            nonce_max_valid = DEFAULT_NONCE_MAX_VALID
        if nonce_generator is None:
            nonce_generator = TimestampNonceGenerator()
        if opaque is None:
            opaque = uuid.uuid4().hex
        self.realm = realm
        self.authentication_manager = authentication_manager
        self.qop = qop
        self.nonce_max_valid = int(nonce_max_valid)
        self.nonce_generator = nonce_generator
        self.opaque = opaque
        self.nonce_store = NonceStore()

    def authenticate(self, environ, response):
        """Authenticate the request, or challenge the client.

        Returns whatever principal the AuthenticationManager produces for
        valid credentials.  In every other case a challenge is written to
        the response and None is returned.
        """
        session = self._get_session(environ)
        try:
            params = self.identify(environ, session)
        except StaleNonceError:
            logger.debug("stale nonce from session %s", session.id)
            self.challenge(environ, response, stale=True)
            return None
        except ProtocolError as e:
            logger.debug("rejecting digest response: %s", e)
            self.challenge(environ, response)
            return None
        if params is None:
            self.challenge(environ, response)
            return None
        principal = self._verify(params)
        if principal is None:
            self.challenge(environ, response)
        return principal

    def identify(self, environ, session):
        """Extract digest-auth credentials and check they are usable.

        Returns None if the request carries no credentials at all.  If the
        credentials are well-formed, match this scheme's configuration and
        use a fresh nonce issued to the session, they are returned as a dict
        with the request method included under "request-method", e.g.:

            {'scheme': 'Digest',
             'username': 'user',
             'realm': 'TestRealm',
             'nonce': '18b3e7c9a10:5f0e2a:2Wn1c3Ke7b+ojWb7uy1JHA==',
             'uri': '/some-protected-uri',
             'qop': 'auth',
             'nc': '00000001',
             'cnonce': 'd61391b0baeb5131',
             'opaque': '5ccc069c403ebaf9f0171e9517f40e41',
             'response': '75a8f0d4627eef8c73c3ac64a4b2acca',
             'request-method': 'GET'}

        Otherwise ProtocolError is raised, or StaleNonceError if the only
        problem is that the nonce has expired.
        """
        authz = environ.get("HTTP_AUTHORIZATION")
        if not authz:
            return None
        params = parse_auth_header(authz)
        if params["scheme"].lower() != "digest":
            raise ProtocolError("not a digest-auth header")
        if len(params) == 1:
            raise ProtocolError("no digest-auth parameters")
        if not validate_digest_parameters(params):
            raise ProtocolError("missing or malformed digest-auth parameters")
        opaque = params.get("opaque")
        if opaque is not None and opaque != self.opaque:
            raise ProtocolError("opaque mismatch")
        if params["realm"] != self.realm:
            raise ProtocolError("realm mismatch")
        if params.get("qop") != self.qop:
            raise ProtocolError("qop mismatch")
        params["request-method"] = environ["REQUEST_METHOD"]
        status = self.validate_nonce(params["nonce"], session.id)
        if status is NonceStatus.INVALID:
            raise ProtocolError("nonce was not issued to this session")
        if status is NonceStatus.STALE:
            raise StaleNonceError("nonce has expired")
        return params

    def validate_nonce(self, nonce, session_id):
        """Check a nonce against those issued to the given session."""
        if not self.nonce_store.contains(session_id, nonce):
            return NonceStatus.INVALID
        if self.nonce_generator.has_expired(nonce, self.nonce_max_valid):
            return NonceStatus.STALE
        return NonceStatus.VALID

    def challenge(self, environ, response, stale=False):
        """Issue a fresh digest-auth challenge.

        A new nonce is generated and recorded against the current session,
        then the WWW-Authenticate header and a 401 status are written to
        the response.  Returns the new nonce.
        """
        session = self._get_session(environ)
        nonce = self.nonce_generator.generate()
        if not self.nonce_store.add(session, nonce):
            logger.debug("session %s expired before its challenge was "
                         "recorded", session.id)
        domain = environ.get("SCRIPT_NAME") or "/"
        value = build_challenge_header(self.realm, domain, nonce, self.qop,
                                       self.opaque, stale)
        response.set_header("WWW-Authenticate", value)
        response.send_error(401)
        return nonce

    def session_created(self, session):
        pass

    def session_expired(self, session):
        self.nonce_store.discard(session.id)

    def _verify(self, params):
        if self.authentication_manager is None:
            logger.error("digest scheme for realm %r has no "
                         "AuthenticationManager", self.realm)
            raise ConfigurationError("no AuthenticationManager configured")
        try:
            return self.authentication_manager.authenticate(params)
        except CredentialError as e:
            logger.debug("credentials rejected for %r: %s",
                         params["username"], e)
            return None

    def _get_session(self, environ):
        session = environ.get(ENVKEY_SESSION)
        if session is None:
            raise ConfigurationError("no session found in the environ; "
                                     "is the scheme running in a "
                                     "SecurityPipeline?")
        return session

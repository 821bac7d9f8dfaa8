# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

Interface definitions for the collaborators composed by digestguard.

"""

from zope.interface import Interface, Attribute


class IAuthenticationScheme(Interface):
    """An HTTP authentication scheme, e.g. Digest.

    The scheme inspects the request, and either returns an authenticated
    principal or writes whatever is needed to the response to ask the
    client for credentials (typically a 401 status plus a challenge).
    """

    def authenticate(environ, response):
        """ args -> principal | None

        o 'environ' is the WSGI environment.

        o 'response' is the SecurityResponse for the current request.

        o Return None if the request could not be authenticated; in that
          case the scheme will normally have committed the response.

        o Raise ConfigurationError if the scheme cannot do its job because
          of a server misconfiguration.
        """


class IAuthenticationManager(Interface):
    """Verifies credentials extracted by an authentication scheme."""

    def authenticate(credentials):
        """ credentials -> principal | None

        For the Digest scheme 'credentials' is the parsed digest response
        dict, including the injected "request-method" key.  This call may
        block; no timeout is imposed on it.
        """


class IAuthorizationManager(Interface):
    """Decides whether an authenticated subject may access a request."""

    def start():
        """Prepare the manager for use."""

    def stop():
        """Release any resources held by the manager."""

    def authorize(subject, environ):
        """ args -> True | False

        o 'subject' is the Subject built for the request, or None if the
          request is not authenticated.

        o 'environ' is the WSGI environment.
        """


class IIdentityManager(Interface):
    """Maps an authenticated principal into a richer Subject."""

    def get_identity(principal):
        """ principal -> Subject """


class ILogoutManager(Interface):
    """Detects logout requests and tears down the current session."""

    def logout(environ, response):
        """Expire the session if the request signals a logout.

        This never rejects the request.
        """


class INonceGenerator(Interface):
    """Produces and ages nonce tokens for the Digest scheme."""

    def generate():
        """Generate a new unpredictable nonce token."""

    def has_expired(nonce, max_valid):
        """ args -> True | False

        Return True if the nonce is older than 'max_valid' milliseconds.
        Malformed tokens are always reported as expired.
        """


class ISessionListener(Interface):
    """Observer of session lifecycle transitions."""

    def session_created(session):
        """Called once, when the session is created."""

    def session_expired(session):
        """Called once, when the session times out or is logged out."""


class ISession(Interface):

    id = Attribute("Opaque session identifier, also the cookie value.")
    created = Attribute("Creation time, in seconds since the epoch.")

    def is_valid():
        """Return True until the session has expired."""

    def expire():
        """Expire the session, notifying its listeners exactly once."""

    def add_listener(listener):
        """Register an ISessionListener."""

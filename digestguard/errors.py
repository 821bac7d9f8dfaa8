# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

Exception classes for digestguard.

"""


class AuthenticationError(Exception):
    """Base class for all errors raised while authenticating a request."""
    pass


class ProtocolError(AuthenticationError, ValueError):
    """The client sent a malformed or incomplete Digest response.

    This is a client-correctable condition; the Digest scheme handles it
    by issuing a fresh challenge rather than letting it escape.
    """
    pass


class StaleNonceError(ProtocolError):
    """The client used a nonce that was issued to it but has since expired."""
    pass


class ConfigurationError(AuthenticationError):
    """The server is misconfigured, e.g. a required collaborator is missing.

    Unlike the protocol errors, this is never handled locally and aborts
    whatever operation ran into it.
    """
    pass


class CredentialError(AuthenticationError):
    """An AuthenticationManager rejected the supplied credentials."""
    pass

# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

Named factories for authentication schemes and authorization managers.

Deployment configuration refers to these components by short names such
as "digest"; the names are resolved here when the pipeline is composed.
Third-party components can be made available with register_scheme() and
register_authorization().

"""

import threading

from digestguard.errors import ConfigurationError
from digestguard.digest import DigestAuthenticationScheme
from digestguard.managers import (AllowAllAuthorizationManager,
                                  AuthenticatedAuthorizationManager)


_lock = threading.Lock()
_schemes = {}
_authorizations = {}


def register_scheme(name, factory):
    """Register an authentication scheme factory under the given name.

    The factory is called as factory(realm, authentication_manager,
    **options) and must return an IAuthenticationScheme.
    """
    with _lock:
        _schemes[name.lower()] = factory


def get_scheme_factory(name):
    with _lock:
        try:
            return _schemes[name.lower()]
        except KeyError:
            raise ConfigurationError("unknown authentication scheme: %r"
                                     % (name,))


def register_authorization(name, factory):
    """Register an authorization manager factory under the given name.

    The factory is called with no arguments and must return an
    IAuthorizationManager.
    """
    with _lock:
        _authorizations[name.lower()] = factory


def get_authorization_factory(name):
    with _lock:
        try:
            return _authorizations[name.lower()]
        except KeyError:
            raise ConfigurationError("unknown authorization manager: %r"
                                     % (name,))


register_scheme("digest", DigestAuthenticationScheme)
register_authorization("allow", AllowAllAuthorizationManager)
register_authorization("authenticated", AuthenticatedAuthorizationManager)

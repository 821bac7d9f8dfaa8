# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

WSGI middleware for authentication and authorization, built around an
implementation of HTTP-Digest-Auth:

    http://tools.ietf.org/html/rfc2617

"""


__ver_major__ = 0
__ver_minor__ = 1
__ver_patch__ = 0
__ver_sub__ = ""
__ver_tuple__ = (__ver_major__, __ver_minor__, __ver_patch__, __ver_sub__)
__version__ = "%d.%d.%d%s" % __ver_tuple__


from repoze.who.utils import resolveDotted

from digestguard.errors import (AuthenticationError, ProtocolError,
                                StaleNonceError, ConfigurationError,
                                CredentialError)
from digestguard.digest import DigestAuthenticationScheme, NonceStatus
from digestguard.identity import Principal, Subject, DefaultIdentityManager
from digestguard.manager import SecurityConfiguration, SecurityManager
from digestguard.managers import PasswordAuthenticationManager, LogoutManager
from digestguard.nonce import TimestampNonceGenerator
from digestguard.pipeline import SecurityPipeline
from digestguard.registry import (get_scheme_factory,
                                  get_authorization_factory,
                                  register_scheme,
                                  register_authorization)
from digestguard.session import SessionRegistry, Session, Expiry


def make_pipeline(app, global_conf, realm='', scheme='digest', qop=None,
                  nonce_max_valid=None, nonce_generator=None,
                  get_password=None, get_pwdhash=None, authorization=None,
                  session_expiry='5', session_expiry_unit='minutes',
                  logout_path='/logout', cookie_name='digestguard_sid'):
    """Make a SecurityPipeline using values from a .ini config file.

    This is a paste.deploy filter_app_factory.  It converts its arguments
    from strings to the appropriate type, composes and starts a
    SecurityManager, then wraps the application in a SecurityPipeline.

    Callbacks (get_password, get_pwdhash) and the nonce_generator are given
    as dotted names.  The scheme and authorization manager are given by the
    names they were registered under, e.g. "digest" and "authenticated".
    """
    if isinstance(nonce_generator, str):
        nonce_generator = resolveDotted(nonce_generator)
        if callable(nonce_generator):
            nonce_generator = nonce_generator()
    if isinstance(get_password, str):
        get_password = resolveDotted(get_password)
        if get_password is not None:
            assert callable(get_password)
    if isinstance(get_pwdhash, str):
        get_pwdhash = resolveDotted(get_pwdhash)
        if get_pwdhash is not None:
            assert callable(get_pwdhash)
    authentication_manager = None
    if get_password is not None or get_pwdhash is not None:
        authentication_manager = PasswordAuthenticationManager(get_password,
                                                               get_pwdhash)
    options = {}
    if qop is not None:
        options["qop"] = qop
    if nonce_max_valid is not None:
        options["nonce_max_valid"] = int(nonce_max_valid)
    if nonce_generator is not None:
        options["nonce_generator"] = nonce_generator
    auth_scheme = get_scheme_factory(scheme)(realm, authentication_manager,
                                             **options)
    config = SecurityConfiguration()
    config.authentication(auth_scheme)
    if authorization:
        config.authorization(get_authorization_factory(authorization)())
    config.logout_manager(LogoutManager(logout_path))
    config.session_registry(SessionRegistry(expiry=int(session_expiry),
                                            unit=session_expiry_unit))
    manager = config.build_and_start()
    return SecurityPipeline(app, manager, cookie_name=cookie_name)

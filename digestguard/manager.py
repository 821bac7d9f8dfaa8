# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

The security manager composing the pluggable collaborators, and the
builder used to put one together.

"""

import logging

from digestguard.errors import ConfigurationError
from digestguard.identity import DefaultIdentityManager
from digestguard.interfaces import ISessionListener
from digestguard.managers import AllowAllAuthorizationManager, LogoutManager
from digestguard.session import SessionRegistry, ENVKEY_SESSION


logger = logging.getLogger(__name__)

# WSGI environ key holding the Subject of an authenticated request.
ENVKEY_SUBJECT = "digestguard.subject"


class SecurityManager(object):
    """Runs the logout, authenticate and authorize stages for a request.

    The manager owns one authentication scheme, one authorization manager
    (allow-all if not given), one identity manager (a passthrough if not
    given), one logout manager and the session registry.  It must be
    started before use.
    """

    def __init__(self, authentication_scheme, logout_manager,
                 session_registry, authorization_manager=None,
                 identity_manager=None):
        if authorization_manager is None:
            authorization_manager = AllowAllAuthorizationManager()
        if identity_manager is None:
            identity_manager = DefaultIdentityManager()
        self.authentication_scheme = authentication_scheme
        self.logout_manager = logout_manager
        self.session_registry = session_registry
        self.authorization_manager = authorization_manager
        self.identity_manager = identity_manager
        self._started = False

    def start(self):
        if self._started:
            raise ConfigurationError("security manager already started")
        if self.authentication_scheme is None:
            raise ConfigurationError("no authentication scheme configured")
        self.authorization_manager.start()
        self._started = True

    def stop(self):
        if not self._started:
            return
        self._started = False
        self.authorization_manager.stop()
        self.session_registry.stop()

    def started(self):
        return self._started

    def lookup_session(self, session_id):
        """Find the live session with the given id, if any."""
        if not session_id:
            return None
        return self.session_registry.get(session_id)

    def create_session(self):
        """Create a session that the authentication scheme listens to."""
        listener = None
        if ISessionListener.providedBy(self.authentication_scheme):
            listener = self.authentication_scheme
        return self.session_registry.create(listener)

    def logout(self, environ, response):
        self.logout_manager.logout(environ, response)

    def authenticate(self, environ, response):
        """Authenticate the request, returning its Subject or None.

        On success the Subject is stored in the environ and REMOTE_USER is
        set to the principal's name.  Errors raised by the scheme are not
        caught here.
        """
        self._check_started()
        principal = self.authentication_scheme.authenticate(environ, response)
        if principal is None:
            return None
        subject = self.identity_manager.get_identity(principal)
        environ[ENVKEY_SUBJECT] = subject
        environ["REMOTE_USER"] = str(principal)
        return subject

    def authorize(self, environ, response):
        self._check_started()
        subject = environ.get(ENVKEY_SUBJECT)
        allowed = self.authorization_manager.authorize(subject, environ)
        if not allowed:
            session = environ.get(ENVKEY_SESSION)
            logger.debug("authorization denied for %r (session %s)",
                         subject, session.id if session else None)
        return allowed

    def _check_started(self):
        if not self._started:
            raise ConfigurationError("security manager has not been started")


class SecurityConfiguration(object):
    """Builder for a started SecurityManager.

    Use the configuration methods, which can be chained, then call
    build_and_start() exactly once:

        manager = SecurityConfiguration() \\
            .authentication(scheme) \\
            .authorization(AuthenticatedAuthorizationManager()) \\
            .build_and_start()

    """

    def __init__(self):
        self._manager = None
        self._authentication_scheme = None
        self._authorization_manager = None
        self._identity_manager = None
        self._logout_manager = None
        self._session_registry = None

    def authentication(self, authentication_scheme):
        self._authentication_scheme = authentication_scheme
        return self

    def authorization(self, authorization_manager):
        self._authorization_manager = authorization_manager
        return self

    def identity_manager(self, identity_manager):
        self._identity_manager = identity_manager
        return self

    def logout_manager(self, logout_manager):
        self._logout_manager = logout_manager
        return self

    def session_registry(self, session_registry):
        self._session_registry = session_registry
        return self

    def build_and_start(self):
        """Create and start the SecurityManager.

        Raises ConfigurationError if this builder has already produced a
        manager, or if the manager can't be started.  In the first case
        the existing manager is left as it is.
        """
        if self._manager is not None:
            raise ConfigurationError("security manager was already "
                                     "built and started")
        logout_manager = self._logout_manager
        if logout_manager is None:
            logout_manager = LogoutManager()
        session_registry = self._session_registry
        if session_registry is None:
            session_registry = SessionRegistry()
        manager = SecurityManager(self._authentication_scheme,
                                  logout_manager,
                                  session_registry,
                                  self._authorization_manager,
                                  self._identity_manager)
        try:
            manager.start()
        except ConfigurationError:
            logger.error("failed to start security manager", exc_info=True)
            raise
        self._manager = manager
        return manager

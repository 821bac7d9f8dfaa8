# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

Simple authentication, authorization and logout managers.

"""

import logging

from zope.interface import implementer

from digestguard.interfaces import (IAuthenticationManager,
                                    IAuthorizationManager,
                                    ILogoutManager)
from digestguard.identity import Principal
from digestguard.session import ENVKEY_SESSION
from digestguard.utils import calculate_pwdhash, check_digest_response


logger = logging.getLogger(__name__)


@implementer(IAuthenticationManager)
class PasswordAuthenticationManager(object):
    """Verifies digest responses using a password lookup callback.

    Exactly one of the callbacks should be given:

       * get_password(username) returns the user's plaintext password.

       * get_pwdhash(username, realm) returns the pre-computed password
         hash (aka "HA1") for the user in that realm.

    Either may return None for an unknown user.  The principal for valid
    credentials is a Principal named after the user.
    """

    def __init__(self, get_password=None, get_pwdhash=None):
        if get_password is None and get_pwdhash is None:
            raise ValueError("must provide 'get_password' or 'get_pwdhash'")
        self.get_password = get_password
        self.get_pwdhash = get_pwdhash

    def authenticate(self, credentials):
        username = credentials["username"]
        realm = credentials["realm"]
        # Obtain the pwdhash via one of the callbacks.
        if self.get_pwdhash is not None:
            pwdhash = self.get_pwdhash(username, realm)
        else:
            password = self.get_password(username)
            if password is None:
                pwdhash = None
            else:
                pwdhash = calculate_pwdhash(username, password, realm)
        if pwdhash is None:
            return None
        if not check_digest_response(credentials, pwdhash=pwdhash):
            return None
        return Principal(username)


@implementer(IAuthorizationManager)
class AllowAllAuthorizationManager(object):
    """Authorizes every request."""

    def start(self):
        pass

    def stop(self):
        pass

    def authorize(self, subject, environ):
        return True


@implementer(IAuthorizationManager)
class AuthenticatedAuthorizationManager(AllowAllAuthorizationManager):
    """Authorizes any request that carries an authenticated subject."""

    def authorize(self, subject, environ):
        return subject is not None and subject.is_authenticated()


@implementer(ILogoutManager)
class LogoutManager(object):
    """Expires the session of any request made to the logout path."""

    def __init__(self, logout_path="/logout"):
        self.logout_path = logout_path

    def is_logout(self, environ):
        return environ.get("PATH_INFO", "") == self.logout_path

    def logout(self, environ, response):
        if not self.is_logout(environ):
            return
        session = environ.pop(ENVKEY_SESSION, None)
        if session is not None:
            logger.debug("logging out session %s", session.id)
            session.expire()

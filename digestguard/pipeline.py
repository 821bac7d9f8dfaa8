# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

WSGI middleware running every request through a SecurityManager.

"""

import logging
from http.cookies import SimpleCookie, CookieError

from digestguard.response import SecurityResponse
from digestguard.session import ENVKEY_SESSION


logger = logging.getLogger(__name__)


class SecurityPipeline(object):
    """WSGI middleware enforcing authentication and authorization.

    Each request goes through the following stages, stopping at the first
    one that commits the response:

        * logout:        expire the session if the request asks for it;
                         this never rejects the request.
        * authenticate:  make sure the client has a session, then run the
                         authentication scheme, which may commit a 401.
        * authorize:     ask the authorization manager; commits a 403 if
                         access is denied.
        * forward:       call the wrapped application.

    The session id travels in a cookie; a Set-Cookie header is added to
    whatever response is sent when a new session is created.  Errors
    raised by the authentication scheme propagate to the WSGI server.
    """

    def __init__(self, application, security_manager,
                 cookie_name="digestguard_sid"):
        self.application = application
        self.security_manager = security_manager
        self.cookie_name = cookie_name

    def __call__(self, environ, start_response):
        response = SecurityResponse()
        environ[ENVKEY_SESSION] = self._load_session(environ)
        self.logout(environ, response)
        self.authenticate(environ, response)
        self.authorize(environ, response)
        if response.committed:
            return response(environ, start_response)
        extra_headers = list(response.headers)

        def security_start_response(status, headers, exc_info=None):
            headers = list(headers) + extra_headers
            return start_response(status, headers, exc_info)

        return self.application(environ, security_start_response)

    def logout(self, environ, response):
        self.security_manager.logout(environ, response)

    def authenticate(self, environ, response):
        if response.committed:
            return
        if environ.get(ENVKEY_SESSION) is None:
            session = self.security_manager.create_session()
            environ[ENVKEY_SESSION] = session
            response.add_header("Set-Cookie",
                                self._make_cookie(environ, session.id))
        self.security_manager.authenticate(environ, response)

    def authorize(self, environ, response):
        if response.committed:
            return
        if not self.security_manager.authorize(environ, response):
            if not response.committed:
                response.send_error(403)

    def stop(self):
        self.security_manager.stop()

    def _load_session(self, environ):
        """Find the session named by the request's cookie, if still live."""
        cookie = SimpleCookie()
        try:
            cookie.load(environ.get("HTTP_COOKIE", ""))
        except CookieError:
            logger.debug("ignoring malformed Cookie header")
            return None
        if self.cookie_name not in cookie:
            return None
        return self.security_manager.lookup_session(
            cookie[self.cookie_name].value)

    def _make_cookie(self, environ, session_id):
        path = environ.get("SCRIPT_NAME") or "/"
        return "%s=%s; Path=%s; HttpOnly" % (self.cookie_name, session_id,
                                            path)

# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

The response object handed to each stage of the security pipeline.

"""

from http.client import responses


class SecurityResponse(object):
    """Records what the security stages want to send back to the client.

    Stages add headers with set_header()/add_header() and end the request
    with send_error(), which commits the response.  Once committed, later
    stages are skipped and the downstream application is never called.
    Headers added without committing (e.g. a session cookie) are merged
    into the downstream application's response.
    """

    def __init__(self):
        self.status = None
        self.headers = []
        self.body = b""
        self.committed = False

    def set_header(self, name, value):
        lname = name.lower()
        self.headers = [(k, v) for (k, v) in self.headers
                        if k.lower() != lname]
        self.headers.append((name, value))

    def add_header(self, name, value):
        self.headers.append((name, value))

    def get_header(self, name, default=None):
        lname = name.lower()
        for (k, v) in self.headers:
            if k.lower() == lname:
                return v
        return default

    def send_error(self, code):
        """Commit the response with the given HTTP error code."""
        if self.committed:
            raise RuntimeError("response has already been committed")
        reason = responses.get(code, "Error")
        self.status = "%d %s" % (code, reason)
        self.body = reason.encode("ascii")
        self.set_header("Content-Type", "text/plain")
        self.set_header("Content-Length", str(len(self.body)))
        self.committed = True

    def __call__(self, environ, start_response):
        """Send a committed response as a WSGI application."""
        start_response(self.status, list(self.headers))
        return [self.body]

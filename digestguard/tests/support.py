# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

Shared fixtures for the digestguard tests.

"""

import wsgiref.util

from digestguard.session import DelayedCall
from digestguard.utils import calculate_digest_response, parse_auth_header


USERS = {"Aladdin": "Open Sesame"}


def get_password(username):
    return USERS.get(username)


class ManualScheduler(object):
    """A scheduler whose clock only moves when advance() is called."""

    def __init__(self):
        self.now = 0.0
        self.calls = []

    def seconds(self):
        return self.now

    def call_later(self, delay, func):
        call = DelayedCall(self.now + delay, func)
        self.calls.append(call)
        return call

    def advance(self, amount):
        self.now += amount
        due = [c for c in self.calls if c.when <= self.now]
        due.sort(key=lambda c: c.when)
        for call in due:
            self.calls.remove(call)
            if call.active():
                call.called = True
                call.func()


def make_environ(path="/", method="GET", authz=None, **kwds):
    environ = {"REQUEST_METHOD": method, "PATH_INFO": path}
    if authz is not None:
        environ["HTTP_AUTHORIZATION"] = authz
    environ.update(kwds)
    wsgiref.util.setup_testing_defaults(environ)
    return environ


def call_app(app, environ):
    """Call a WSGI app, returning (status, headers, body)."""
    captured = {}

    def start_response(status, headers, exc_info=None):
        captured["status"] = status
        captured["headers"] = headers

    body = b"".join(app(environ, start_response))
    return captured["status"], captured["headers"], body


def get_header(headers, name):
    for (key, value) in headers:
        if key.lower() == name.lower():
            return value
    return None


def parse_challenge(value):
    params = parse_auth_header(value)
    assert params.pop("scheme") == "Digest"
    return params


def make_digest_header(challenge, username="Aladdin", password="Open Sesame",
                       uri="/", method="GET", omit=(), **overrides):
    """Build an Authorization header answering the given challenge.

    The response digest is calculated before 'overrides' are applied and
    'omit' keys removed, so they can be used to produce bad headers.
    """
    params = {"username": username,
              "realm": challenge["realm"],
              "nonce": challenge["nonce"],
              "uri": uri,
              "algorithm": "MD5",
              "qop": "auth",
              "nc": "00000001",
              "cnonce": "0a4f113b",
              "opaque": challenge["opaque"],
              "request-method": method}
    params["response"] = calculate_digest_response(params, password=password)
    del params["request-method"]
    params.update(overrides)
    for key in omit:
        params.pop(key, None)
    return "Digest " + ", ".join('%s="%s"' % itm for itm in params.items())


def hello_app(environ, start_response):
    body = ("Hello %s" % (environ.get("REMOTE_USER", ""),)).encode("utf-8")
    start_response("200 OK", [("Content-Type", "text/plain"),
                              ("Content-Length", str(len(body)))])
    return [body]

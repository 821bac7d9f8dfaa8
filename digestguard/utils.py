# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

Helper functions for parsing and building HTTP-Digest-Auth headers.

"""

import re
from hashlib import md5

from digestguard.errors import ProtocolError


# Regular expression matching a single param in the HTTP_AUTHORIZATION header.
# This is basically <name>=<value> where <value> can be an unquoted token,
# an empty quoted string, or a quoted string where the ending quote is *not*
# preceded by a backslash.
_AUTH_PARAM_RE = r'([a-zA-Z0-9_\-]+)=(([a-zA-Z0-9_\-]+)|("")|(".*[^\\]"))'
_AUTH_PARAM_RE = re.compile(r"^\s*" + _AUTH_PARAM_RE + r"\s*$")

# Regular expression matching an unescaped quote character.
_UNESC_QUOTE_RE = r'(^")|([^\\]")'
_UNESC_QUOTE_RE = re.compile(_UNESC_QUOTE_RE)

# Regular expression matching a backslash-escaped characer.
_ESCAPED_CHAR = re.compile(r"\\.")

# Parameters that every digest response must carry.
MANDATORY_PARAMS = ("username", "realm", "nonce", "uri", "response")


def parse_auth_header(value):
    """Parse an authorization header string into a dict of parameters.

    The auth scheme name will be included under the key "scheme", and any
    other auth params will appear as keys in the dictionary.  For example,
    given the following auth header value:

        'Digest realm="TestRealm", username=user1, response="123456"'

    This function will return the following dict:

        {"scheme": "Digest", "realm": "TestRealm",
         "username": "user1", "response": "123456"}

    A header consisting of just the scheme name gives a dict with only the
    "scheme" key.  ProtocolError is raised if the parameters are malformed.
    """
    try:
        scheme, kvpairs_str = value.split(None, 1)
    except ValueError:
        scheme, kvpairs_str = value.strip(), ""
    # Split the parameters string into individual key=value pairs.
    # In the simple case we can just split by commas to get each pair.
    # Unfortunately this will break if one of the values contains a comma.
    # So if we find a component that isn't a well-formed key=value pair,
    # then we stitch bits back onto the end of it until it is.
    kvpairs = []
    if kvpairs_str.strip():
        for kvpair in kvpairs_str.split(","):
            if not kvpairs or _AUTH_PARAM_RE.match(kvpairs[-1]):
                kvpairs.append(kvpair)
            else:
                kvpairs[-1] = kvpairs[-1] + "," + kvpair
        if not _AUTH_PARAM_RE.match(kvpairs[-1]):
            raise ProtocolError("Malformed auth parameters")
    # Now we can just split by the equal-sign to get each key and value.
    params = {"scheme": scheme}
    for kvpair in kvpairs:
        (key, value) = kvpair.strip().split("=", 1)
        # For quoted strings, remove quotes and backslash-escapes.
        if value.startswith('"'):
            value = value[1:-1]
            if _UNESC_QUOTE_RE.search(value):
                raise ProtocolError("Unescaped quote in quoted-string")
            value = _ESCAPED_CHAR.sub(lambda m: m.group(0)[1], value)
        params[key] = value
    return params


def validate_digest_parameters(params):
    """Validate that a parsed header contains usable digest-auth parameters.

    This is a basic sanity-check: it checks that the parameters are
    well-formed and that none are missing, but doesn't provide any
    authentication.  Returns True if the parameters are valid, False if not.
    """
    for key in MANDATORY_PARAMS:
        if not params.get(key):
            return False
    # Check for extra information required when "qop" is present.
    if "qop" in params:
        for key in ("cnonce", "nc"):
            if key not in params:
                return False
        # RFC-2617 says the nonce-count must be an 8-char-long hex number.
        if len(params["nc"]) > 8:
            return False
        try:
            int(params["nc"], 16)
        except ValueError:
            return False
    # Check that the algorithm, if present, is explcitly set to MD5.
    if "algorithm" in params and params["algorithm"].lower() != "md5":
        return False
    return True


def build_challenge_header(realm, domain, nonce, qop, opaque, stale=False):
    """Build the value of a WWW-Authenticate header for a digest challenge.

    The parameters appear in a fixed order, with algorithm and qop sent as
    bare tokens and everything else as quoted-strings.
    """
    def quote(value):
        return '"%s"' % (value.replace('"', '\\"'),)
    params = [
        ("realm", quote(realm)),
        ("domain", quote(domain)),
        ("nonce", quote(nonce)),
        ("algorithm", "MD5"),
        ("qop", qop),
        ("opaque", quote(opaque)),
        ("stale", quote("true" if stale else "false")),
    ]
    return "Digest " + ",".join("%s=%s" % itm for itm in params)


def _md5_hex(data):
    return md5(data.encode("utf-8")).hexdigest()


def calculate_pwdhash(username, password, realm):
    """Calculate the password hash used for digest auth.

    This function takes the username, password and realm and calculates
    the password hash (aka "HA1") used in the digest-auth protocol.
    It assumes that the hash algorithm is MD5.
    """
    return _md5_hex("%s:%s:%s" % (username, realm, password))


def calculate_reqhash(params):
    """Calculate the request hash (aka "HA2") used for digest auth.

    Only qop="auth" or an absent qop are supported.
    """
    qop = params.get("qop")
    if qop not in (None, "auth"):
        raise ValueError("unrecognised qop value: %r" % (qop,))
    return _md5_hex("%s:%s" % (params["request-method"], params["uri"]))


def calculate_digest_response(params, pwdhash=None, password=None):
    """Calculate the expected response to a digest challenge.

    Given the digest response parameters and the user's password or
    password hash, this function calculates the expected digest response
    according to RFC-2617.  It assumes that the hash algorithm is MD5.

    If the parameters carry no qop the older RFC-2069 form is computed.
    DigestAuthenticationScheme always demands a qop and never passes such
    parameters on, but an AuthenticationManager such as
    PasswordAuthenticationManager may be driven by other callers that do.
    """
    username = params["username"]
    realm = params["realm"]
    if pwdhash is None:
        if password is None:
            raise ValueError("must provide either 'pwdhash' or 'password'")
        pwdhash = calculate_pwdhash(username, password, realm)
    reqhash = calculate_reqhash(params)
    qop = params.get("qop")
    if qop is None:
        data = "%s:%s:%s" % (pwdhash, params["nonce"], reqhash)
    else:
        data = ":".join([pwdhash, params["nonce"], params["nc"],
                         params["cnonce"], qop, reqhash])
    return _md5_hex(data)


def check_digest_response(params, pwdhash=None, password=None):
    """Check if the given digest response is valid.

    This function checks whether a dict of digest response parameters
    has been correctly computed using the specified password or
    password hash.
    """
    expected = calculate_digest_response(params, pwdhash, password)
    # Use a timing-invarient comparison to prevent guessing the correct
    # digest one character at a time.
    return not strings_differ(expected, params["response"])


def strings_differ(string1, string2):
    """Check whether two strings differ while avoiding timing attacks.

    This function returns True if the given strings differ and False
    if they are equal.  It's careful not to leak information about *where*
    they differ as a result of its running time, which can be very important
    to avoid certain timing-related crypto attacks:

        http://seb.dbzteam.org/crypto/python-oauth-timing-hmac.pdf

    """
    if len(string1) != len(string2):
        return True
    invalid_bits = 0
    for a, b in zip(string1, string2):
        invalid_bits += a != b
    return invalid_bits != 0

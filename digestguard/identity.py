# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

Principals, subjects and the default identity manager.

"""

from zope.interface import implementer

from digestguard.interfaces import IIdentityManager


class Principal(object):
    """An authenticated identity, compared by name."""

    def __init__(self, name):
        self.name = name

    def __eq__(self, other):
        if not isinstance(other, Principal):
            return NotImplemented
        return self.name == other.name

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash(self.name)

    def __repr__(self):
        return "<Principal %r>" % (self.name,)

    def __str__(self):
        return self.name


class Subject(object):
    """The identity attached to an authenticated request.

    Identity managers may fill in roles and arbitrary attributes; the
    default one just wraps the principal.
    """

    def __init__(self, user, roles=(), attributes=None):
        self.user = user
        self.roles = list(roles)
        self.attributes = dict(attributes or {})

    def __repr__(self):
        return "<Subject user=%r roles=%r>" % (self.user, self.roles)

    def is_authenticated(self):
        return self.user is not None


@implementer(IIdentityManager)
class DefaultIdentityManager(object):
    """Identity manager wrapping the raw principal with no enrichment."""

    def get_identity(self, principal):
        return Subject(principal)

# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.
"""

Session tracking for digestguard.

Sessions correlate the requests made by a single client, so that state such
as the digest-auth nonces issued to that client can be discarded together
when the client goes away.  Each session has a fixed lifetime that starts
when it is created; it is not extended by further activity.

"""

import os
import enum
import time
import heapq
import logging
import binascii
import itertools
import threading

from zope.interface import implementer

from digestguard.interfaces import ISession


logger = logging.getLogger(__name__)

# WSGI environ key holding the Session for the current request.
ENVKEY_SESSION = "digestguard.session"


class Expiry(enum.Enum):
    """Units accepted by SessionRegistry.set_expiry, valued in seconds."""

    seconds = 1
    minutes = 60
    hours = 60 * 60


class DelayedCall(object):
    """A one-shot call registered with a Scheduler."""

    def __init__(self, when, func):
        self.when = when
        self.func = func
        self.called = False
        self.cancelled = False

    def active(self):
        return not (self.called or self.cancelled)

    def cancel(self):
        """Prevent the call from running.  Safe to call more than once."""
        self.cancelled = True


class Scheduler(object):
    """A single background thread running one-shot calls at given times.

    Calls are kept in a heap ordered by their due time.  The worker thread
    is started lazily by the first call_later() and runs as a daemon, so an
    unstopped scheduler never keeps the process alive.
    """

    def __init__(self, clock=time.time):
        self.clock = clock
        self._cond = threading.Condition()
        self._queue = []
        self._counter = itertools.count()
        self._thread = None
        self._stopped = False

    def seconds(self):
        return self.clock()

    def call_later(self, delay, func):
        """Run func() after 'delay' seconds; returns a DelayedCall.

        Once the scheduler has been stopped nothing is queued, and the
        returned call is already cancelled.
        """
        call = DelayedCall(self.clock() + delay, func)
        with self._cond:
            if self._stopped:
                call.cancel()
                return call
            heapq.heappush(self._queue, (call.when, next(self._counter), call))
            if self._thread is None:
                self._thread = threading.Thread(target=self._run,
                                                name="digestguard-scheduler")
                self._thread.daemon = True
                self._thread.start()
            self._cond.notify()
        return call

    def stop(self):
        """Stop the worker thread, dropping any pending calls."""
        with self._cond:
            self._stopped = True
            self._queue = []
            self._cond.notify()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _next_due(self):
        """Block until a call is due, returning it, or None when stopped."""
        with self._cond:
            while not self._stopped:
                # Skip over anything cancelled while it sat in the queue.
                while self._queue and self._queue[0][2].cancelled:
                    heapq.heappop(self._queue)
                if not self._queue:
                    self._cond.wait()
                    continue
                wait = self._queue[0][0] - self.clock()
                if wait <= 0:
                    call = heapq.heappop(self._queue)[2]
                    call.called = True
                    return call
                self._cond.wait(wait)
        return None

    def _run(self):
        while True:
            call = self._next_due()
            if call is None:
                return
            try:
                call.func()
            except Exception:
                logger.exception("scheduled call %r failed", call.func)


@implementer(ISession)
class Session(object):
    """A short-lived object correlating the requests of one client.

    A session is valid from creation until expire() is called, either
    explicitly (e.g. on logout) or by the timer its registry schedules.
    Listeners are notified of both transitions.
    """

    def __init__(self, registry, session_id):
        self.registry = registry
        self.id = session_id
        self.created = time.time()
        self._valid = True
        self._listeners = []
        self._expire_call = None
        self._lock = threading.Lock()

    def __repr__(self):
        return "<Session %s valid=%s>" % (self.id, self._valid)

    def is_valid(self):
        return self._valid

    def add_listener(self, listener):
        with self._lock:
            self._listeners.append(listener)

    def expire(self):
        """Expire the session.

        Only the first call has any effect: it marks the session invalid,
        cancels the pending timer, removes the session from its registry
        and notifies the listeners.  Returns True if this call did the
        expiring, False if the session was already expired.
        """
        with self._lock:
            if not self._valid:
                return False
            self._valid = False
            listeners = list(self._listeners)
            expire_call, self._expire_call = self._expire_call, None
        if expire_call is not None and expire_call.active():
            expire_call.cancel()
        self.registry._evict(self)
        logger.debug("session %s expired", self.id)
        for listener in listeners:
            listener.session_expired(self)
        return True


class SessionRegistry(object):
    """Creates, tracks and times out Sessions.

    Every session gets exactly one one-shot timer, scheduled at creation
    for the registry's current default expiry.  Changing the expiry with
    set_expiry() only affects sessions created afterwards.

    The following options customize the use of this class:

       * scheduler:  object with a call_later(delay, func) method used to
                     schedule the expiry timers; by default each registry
                     owns its own Scheduler thread.

       * expiry, unit:  the default session lifetime; five minutes unless
                        specified.
    """

    session_factory = Session

    def __init__(self, scheduler=None, expiry=5, unit=Expiry.minutes):
        if scheduler is None:
            scheduler = Scheduler()
        self.scheduler = scheduler
        self._sessions = {}
        self._lock = threading.Lock()
        self.set_expiry(expiry, unit)

    def set_expiry(self, amount, unit):
        """Set the lifetime of subsequently created sessions.

        The unit is an Expiry member, or the name of one.
        """
        if not isinstance(unit, Expiry):
            try:
                unit = Expiry[unit]
            except KeyError:
                raise ValueError("unknown expiry unit: %r" % (unit,))
        self.timeout = int(amount) * unit.value

    def create(self, listener=None):
        """Create and register a new Session.

        If a listener is given it is added to the session and its
        session_created callback is fired before returning.
        """
        session_id = binascii.hexlify(os.urandom(16)).decode("ascii")
        session = self.session_factory(self, session_id)
        if listener is not None:
            session.add_listener(listener)
        with self._lock:
            self._sessions[session_id] = session
        logger.debug("session %s created, lifetime %ds",
                     session_id, self.timeout)
        if listener is not None:
            listener.session_created(session)
        expire_call = self.scheduler.call_later(self.timeout, session.expire)
        with session._lock:
            if session._valid:
                session._expire_call = expire_call
        return session

    def get(self, session_id):
        """Get a live session by id, or None if there isn't one."""
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None or not session.is_valid():
            return None
        return session

    def stop(self):
        """Stop the scheduler, if it is one that can be stopped."""
        stop = getattr(self.scheduler, "stop", None)
        if stop is not None:
            stop()

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def _evict(self, session):
        with self._lock:
            if self._sessions.get(session.id) is session:
                del self._sessions[session.id]

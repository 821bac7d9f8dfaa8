# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this file,
# You can obtain one at http://mozilla.org/MPL/2.0/.

import threading
import unittest
from unittest import mock

from zope.interface.verify import verifyObject

from digestguard.digest import DigestAuthenticationScheme, NonceStatus
from digestguard.interfaces import ISession
from digestguard.session import Expiry, Scheduler, SessionRegistry

from digestguard.tests.support import ManualScheduler


class TestSessionRegistry(unittest.TestCase):

    def setUp(self):
        self.scheduler = ManualScheduler()
        self.registry = SessionRegistry(scheduler=self.scheduler)

    def test_default_expiry_is_five_minutes(self):
        self.assertEqual(self.registry.timeout, 5 * 60)

    def test_create_registers_a_valid_session(self):
        session = self.registry.create()
        verifyObject(ISession, session)
        self.assertTrue(session.is_valid())
        self.assertIs(self.registry.get(session.id), session)
        self.assertEqual(len(self.registry), 1)
        self.assertNotEqual(self.registry.create().id, session.id)

    def test_get_unknown_session(self):
        self.assertEqual(self.registry.get("no-such-session"), None)

    def test_create_with_listener_fires_creation_callback(self):
        listener = mock.Mock()
        session = self.registry.create(listener)
        listener.session_created.assert_called_once_with(session)
        self.assertFalse(listener.session_expired.called)

    def test_session_expires_when_its_timer_fires(self):
        listener = mock.Mock()
        session = self.registry.create(listener)
        self.scheduler.advance(5 * 60 - 1)
        self.assertTrue(session.is_valid())
        self.scheduler.advance(1)
        self.assertFalse(session.is_valid())
        self.assertEqual(self.registry.get(session.id), None)
        self.assertEqual(len(self.registry), 0)
        listener.session_expired.assert_called_once_with(session)

    def test_each_session_schedules_exactly_one_timer(self):
        self.registry.create()
        self.registry.create()
        self.assertEqual(len(self.scheduler.calls), 2)

    def test_explicit_expiry_cancels_the_timer(self):
        listener = mock.Mock()
        session = self.registry.create(listener)
        self.assertTrue(session.expire())
        self.assertFalse(session.is_valid())
        self.assertFalse(self.scheduler.calls[0].active())
        self.scheduler.advance(10 * 60)
        listener.session_expired.assert_called_once_with(session)

    def test_expire_is_idempotent(self):
        listener = mock.Mock()
        session = self.registry.create()
        session.add_listener(listener)
        self.assertTrue(session.expire())
        self.assertFalse(session.expire())
        self.assertEqual(listener.session_expired.call_count, 1)

    def test_set_expiry_units(self):
        self.registry.set_expiry(10, Expiry.seconds)
        self.assertEqual(self.registry.timeout, 10)
        self.registry.set_expiry(2, Expiry.minutes)
        self.assertEqual(self.registry.timeout, 120)
        self.registry.set_expiry(1, "hours")
        self.assertEqual(self.registry.timeout, 3600)
        self.assertRaises(ValueError, self.registry.set_expiry, 1, "days")

    def test_set_expiry_only_affects_new_sessions(self):
        old = self.registry.create()
        self.registry.set_expiry(10, Expiry.seconds)
        new = self.registry.create()
        self.scheduler.advance(10)
        self.assertFalse(new.is_valid())
        self.assertTrue(old.is_valid())
        self.scheduler.advance(5 * 60)
        self.assertFalse(old.is_valid())

    def test_registries_are_independent(self):
        other = SessionRegistry(scheduler=ManualScheduler(),
                                expiry=1, unit=Expiry.hours)
        session = self.registry.create()
        self.assertEqual(other.timeout, 3600)
        self.assertEqual(other.get(session.id), None)


class TestScheduler(unittest.TestCase):

    def setUp(self):
        self.scheduler = Scheduler()

    def tearDown(self):
        self.scheduler.stop()

    def test_calls_run_after_their_delay(self):
        fired = threading.Event()
        call = self.scheduler.call_later(0.01, fired.set)
        self.assertTrue(fired.wait(5))
        self.assertTrue(call.called)
        self.assertFalse(call.active())

    def test_calls_run_in_order(self):
        order = []
        done = threading.Event()
        self.scheduler.call_later(0.05, lambda: (order.append(2), done.set()))
        self.scheduler.call_later(0.01, lambda: order.append(1))
        self.assertTrue(done.wait(5))
        self.assertEqual(order, [1, 2])

    def test_cancelled_calls_do_not_run(self):
        fired = threading.Event()
        done = threading.Event()
        call = self.scheduler.call_later(0.01, fired.set)
        call.cancel()
        self.scheduler.call_later(0.05, done.set)
        self.assertTrue(done.wait(5))
        self.assertFalse(fired.is_set())

    def test_failing_calls_do_not_kill_the_scheduler(self):
        done = threading.Event()
        self.scheduler.call_later(0.01, lambda: 1 / 0)
        self.scheduler.call_later(0.05, done.set)
        self.assertTrue(done.wait(5))

    def test_registry_with_real_scheduler(self):
        registry = SessionRegistry(scheduler=self.scheduler, expiry=0,
                                   unit=Expiry.seconds)
        expired = threading.Event()
        listener = mock.Mock()
        listener.session_expired.side_effect = lambda s: expired.set()
        session = registry.create(listener)
        self.assertTrue(expired.wait(5))
        self.assertFalse(session.is_valid())

    def test_timer_racing_explicit_expiry_notifies_once(self):
        scheme = DigestAuthenticationScheme("TestRealm")
        registry = SessionRegistry(scheduler=self.scheduler, expiry=0,
                                   unit=Expiry.seconds)
        count = 4
        for _ in range(20):
            listener = mock.Mock(wraps=scheme)
            session = registry.create(listener)
            nonce = scheme.nonce_generator.generate()
            scheme.nonce_store.add(session, nonce)
            barrier = threading.Barrier(count)
            results = []

            def expire():
                barrier.wait(timeout=5)
                results.append(session.expire())

            threads = [threading.Thread(target=expire)
                       for _ in range(count)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(5)
            # Calls run in due order, so once this fires the timer has too.
            done = threading.Event()
            self.scheduler.call_later(0, done.set)
            self.assertTrue(done.wait(5))
            self.assertEqual(len(results), count)
            self.assertTrue(results.count(True) <= 1)
            self.assertEqual(listener.session_expired.call_count, 1)
            self.assertFalse(session.is_valid())
            self.assertEqual(registry.get(session.id), None)
            self.assertEqual(scheme.validate_nonce(nonce, session.id),
                             NonceStatus.INVALID)
        self.assertEqual(len(scheme.nonce_store), 0)

    def test_call_later_after_stop_is_cancelled(self):
        fired = threading.Event()
        self.scheduler.stop()
        call = self.scheduler.call_later(0, fired.set)
        self.assertTrue(call.cancelled)
        self.assertFalse(call.active())
        self.assertEqual(self.scheduler._queue, [])
        self.assertEqual(self.scheduler._thread, None)
        self.assertFalse(fired.wait(0.05))

    def test_registry_on_stopped_scheduler(self):
        self.scheduler.stop()
        registry = SessionRegistry(scheduler=self.scheduler)
        session = registry.create()
        self.assertTrue(session.is_valid())
        self.assertTrue(session.expire())

"""
Tests for the bounded retry helper.

Author: HireMatch Team
"""

from django.test import SimpleTestCase

from core.scheduling.retry import RetryExhausted, RetryPolicy, call_with_retry


class Transient(Exception):
    pass


class Permanent(Exception):
    pass


def is_transient(exc):
    return isinstance(exc, Transient)


class FlakyCall:
    """Raises the scripted errors in order, then returns 'ok'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return 'ok'


class TestRetryPolicy(SimpleTestCase):
    """Tests for RetryPolicy."""

    def test_exponential_delay_without_jitter(self):
        policy = RetryPolicy(max_attempts=5, base_delay=0.5, max_delay=8.0, jitter=False)

        self.assertEqual(
            [policy.delay_for(n) for n in range(6)],
            [0.5, 1.0, 2.0, 4.0, 8.0, 8.0],
        )

    def test_jitter_stays_within_ten_percent(self):
        policy = RetryPolicy(base_delay=1.0, jitter=True)

        for _ in range(20):
            delay = policy.delay_for(0)
            self.assertGreaterEqual(delay, 1.0)
            self.assertLessEqual(delay, 1.1)

    def test_requires_one_attempt(self):
        with self.assertRaises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_from_settings(self):
        policy = RetryPolicy.from_settings({
            'BOOKING_MAX_ATTEMPTS': 4,
            'BOOKING_BACKOFF_BASE_SECONDS': 0,
            'BOOKING_BACKOFF_JITTER': False,
        })

        self.assertEqual(policy.max_attempts, 4)
        self.assertEqual(policy.base_delay, 0)
        self.assertEqual(policy.max_delay, 8.0)
        self.assertFalse(policy.jitter)


class TestCallWithRetry(SimpleTestCase):
    """Tests for call_with_retry."""

    def setUp(self):
        self.policy = RetryPolicy(max_attempts=3, base_delay=1.0, jitter=False)
        self.sleeps = []

    def test_success_first_try(self):
        call = FlakyCall()

        self.assertEqual(call_with_retry(call, self.policy, is_transient, sleep=self.sleeps.append), 'ok')
        self.assertEqual(call.calls, 1)
        self.assertEqual(self.sleeps, [])

    def test_transient_then_success(self):
        call = FlakyCall(Transient('timeout'), Transient('timeout'))

        result = call_with_retry(call, self.policy, is_transient, sleep=self.sleeps.append)

        self.assertEqual(result, 'ok')
        self.assertEqual(call.calls, 3)
        self.assertEqual(self.sleeps, [1.0, 2.0])

    def test_budget_exhausted(self):
        call = FlakyCall(Transient('a'), Transient('b'), Transient('c'), Transient('d'))

        with self.assertRaises(RetryExhausted) as ctx:
            call_with_retry(call, self.policy, is_transient, sleep=self.sleeps.append)

        self.assertEqual(ctx.exception.attempts, 3)
        self.assertEqual(str(ctx.exception.last_error), 'c')
        self.assertEqual(call.calls, 3)

    def test_permanent_error_not_retried(self):
        call = FlakyCall(Permanent('bad request'))

        with self.assertRaises(Permanent):
            call_with_retry(call, self.policy, is_transient, sleep=self.sleeps.append)
        self.assertEqual(call.calls, 1)

    def test_on_retry_hook(self):
        seen = []
        call = FlakyCall(Transient('x'))

        call_with_retry(
            call, self.policy, is_transient,
            sleep=self.sleeps.append,
            on_retry=lambda attempt, exc, delay: seen.append((attempt, str(exc), delay)),
        )

        self.assertEqual(seen, [(1, 'x', 1.0)])

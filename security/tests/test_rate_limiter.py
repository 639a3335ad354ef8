from django.test import SimpleTestCase, override_settings

from security.rate_limiter import RateLimiter, check_action_limit, get_rate_limit_config
from security.tests.fakes import BrokenCounterStore, FakeClock, FakeCounterStore


class RateLimiterTest(SimpleTestCase):

    def setUp(self):
        # Start at a bucket boundary so the window math is easy to follow
        self.clock = FakeClock(now=1_700_000_000 - (1_700_000_000 % 60))
        self.store = FakeCounterStore(self.clock)
        self.limiter = RateLimiter(store=self.store, clock=self.clock)

    def test_allows_up_to_limit_and_denies_next(self):
        results = [self.limiter.check('ip:1.2.3.4', 3, 60) for _ in range(4)]

        self.assertEqual([r.allowed for r in results], [True, True, True, False])
        self.assertEqual([r.remaining for r in results], [2, 1, 0, 0])
        self.assertIsNone(results[0].retry_after)
        self.assertGreater(results[3].retry_after, 0)
        self.assertEqual(results[3].limit, 3)

    def test_new_window_allows_again(self):
        for _ in range(4):
            self.limiter.check('ip:1.2.3.4', 3, 60)

        self.clock.now += 60
        result = self.limiter.check('ip:1.2.3.4', 3, 60)

        self.assertTrue(result.allowed)
        self.assertEqual(result.remaining, 2)

    def test_key_is_bucketed_by_window(self):
        self.limiter.check('ip:1.2.3.4', 3, 60)
        bucket = self.clock.now // 60
        self.assertEqual(list(self.store.counts), [f'rate_limit:ip:1.2.3.4:{bucket}'])

    def test_identifiers_are_counted_separately(self):
        for _ in range(3):
            self.limiter.check('ip:1.2.3.4', 3, 60)
        self.assertTrue(self.limiter.check('ip:5.6.7.8', 3, 60).allowed)

    def test_reset_time_uses_ttl(self):
        result = self.limiter.check('ip:1.2.3.4', 3, 60)
        self.assertEqual(result.reset_time, self.clock.now + 60)

    def test_negative_ttl_falls_back_to_window(self):
        class NoExpiryStore:
            def hit(self, key, window):
                return 5, -1

        result = RateLimiter(store=NoExpiryStore(), clock=self.clock).check('ip:x', 3, 60)
        self.assertFalse(result.allowed)
        self.assertEqual(result.retry_after, 60)

    def test_fixed_window_admits_burst_across_boundary(self):
        self.clock.now += 59
        first = [self.limiter.check('ip:b', 3, 60).allowed for _ in range(3)]
        self.clock.now += 1
        second = [self.limiter.check('ip:b', 3, 60).allowed for _ in range(3)]
        self.assertEqual(first + second, [True] * 6)

    def test_store_failure_fails_open(self):
        limiter = RateLimiter(store=BrokenCounterStore(), clock=self.clock)
        with self.assertRaises(ConnectionError):
            limiter.check('ip:x', 1, 60)
        self.assertIsNone(limiter.check_or_allow('ip:x', 1, 60))


class RateLimitConfigTest(SimpleTestCase):

    def test_most_specific_prefix_wins(self):
        self.assertEqual(get_rate_limit_config('/api/vouchers/verify'), (10, 3600))
        self.assertEqual(get_rate_limit_config('/api/vouchers/verify/ABCDEFGH12345678'), (10, 3600))
        self.assertEqual(get_rate_limit_config('/api/vouchers/link'), (20, 60))
        self.assertEqual(get_rate_limit_config('/api/vouchers/details/0xabc'), (50, 60))
        self.assertEqual(get_rate_limit_config('/api/users/username'), (5, 3600))

    def test_claim_reconciliation_paths_are_not_held_to_claim_budget(self):
        self.assertEqual(get_rate_limit_config('/api/vouchers/claim'), (10, 3600))
        self.assertEqual(get_rate_limit_config('/api/vouchers/claim-status'), (50, 60))
        self.assertEqual(get_rate_limit_config('/api/vouchers/claim-tx/0x' + 'ab' * 32), (50, 60))
        self.assertEqual(get_rate_limit_config('/api/vouchers/execute-claim'), (10, 3600))

    def test_unmatched_path_uses_default(self):
        self.assertEqual(get_rate_limit_config('/health'), (200, 60))

    @override_settings(RATE_LIMIT_RULES=[('/api', 1, 10)], RATE_LIMIT_DEFAULT=(7, 30))
    def test_rules_come_from_settings(self):
        self.assertEqual(get_rate_limit_config('/api/vouchers/claim'), (1, 10))
        self.assertEqual(get_rate_limit_config('/health'), (7, 30))


class ActionLimitTest(SimpleTestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.limiter = RateLimiter(store=FakeCounterStore(self.clock), clock=self.clock)

    def test_loopback_is_exempt(self):
        for ip in ('127.0.0.1', '::1', 'localhost'):
            self.assertIsNone(check_action_limit('execute_claim', 'CODE', ip, limiter=self.limiter))

    def test_execute_claim_limit_is_per_code_and_ip(self):
        results = [check_action_limit('execute_claim', 'CODE', '8.8.8.8', limiter=self.limiter) for _ in range(11)]
        self.assertTrue(all(r.allowed for r in results[:10]))
        self.assertFalse(results[10].allowed)

        other_code = check_action_limit('execute_claim', 'OTHER', '8.8.8.8', limiter=self.limiter)
        self.assertTrue(other_code.allowed)

    def test_unknown_action_is_not_limited(self):
        self.assertIsNone(check_action_limit('something_else', 'CODE', '8.8.8.8', limiter=self.limiter))

    def test_store_failure_fails_open(self):
        limiter = RateLimiter(store=BrokenCounterStore())
        self.assertIsNone(check_action_limit('claim', 'CODE', '8.8.8.8', limiter=limiter))

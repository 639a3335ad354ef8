import json
from unittest.mock import patch

from django.http import JsonResponse
from django.test import RequestFactory, SimpleTestCase, override_settings

from security.middleware import RateLimitMiddleware, get_client_ip, get_rate_limit_identifier
from security.rate_limiter import RateLimiter
from security.tests.fakes import BrokenCounterStore, FakeClock, FakeCounterStore


def ok_view(request):
    return JsonResponse({'ok': True})


@override_settings(RATE_LIMIT_ENABLED=True, RATE_LIMIT_RULES=[('/api/vouchers/verify', 2, 3600)])
class RateLimitMiddlewareTest(SimpleTestCase):

    def setUp(self):
        self.factory = RequestFactory()
        self.clock = FakeClock()
        self.limiter = RateLimiter(store=FakeCounterStore(self.clock), clock=self.clock)
        patcher = patch('security.middleware.get_rate_limiter', return_value=self.limiter)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.middleware = RateLimitMiddleware(ok_view)

    def test_allowed_response_carries_headers(self):
        response = self.middleware(self.factory.post('/api/vouchers/verify', REMOTE_ADDR='9.9.9.9'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['X-RateLimit-Limit'], '2')
        self.assertEqual(response['X-RateLimit-Remaining'], '1')
        self.assertIn('X-RateLimit-Reset', response)

    def test_denied_request_gets_429(self):
        for _ in range(2):
            self.middleware(self.factory.post('/api/vouchers/verify', REMOTE_ADDR='9.9.9.9'))

        response = self.middleware(self.factory.post('/api/vouchers/verify', REMOTE_ADDR='9.9.9.9'))

        self.assertEqual(response.status_code, 429)
        body = json.loads(response.content)
        self.assertEqual(body['error'], 'Too Many Requests')
        self.assertGreater(body['retry_after'], 0)
        self.assertEqual(response['Retry-After'], str(body['retry_after']))
        self.assertEqual(response['X-RateLimit-Remaining'], '0')

    def test_api_key_takes_precedence_over_ip(self):
        for _ in range(2):
            self.middleware(self.factory.post('/api/vouchers/verify', REMOTE_ADDR='9.9.9.9'))

        response = self.middleware(self.factory.post(
            '/api/vouchers/verify', REMOTE_ADDR='9.9.9.9', HTTP_X_API_KEY='partner-key',
        ))
        self.assertEqual(response.status_code, 200)

    def test_store_failure_lets_request_through(self):
        with patch('security.middleware.get_rate_limiter', return_value=RateLimiter(store=BrokenCounterStore())):
            response = self.middleware(self.factory.post('/api/vouchers/verify', REMOTE_ADDR='9.9.9.9'))

        self.assertEqual(response.status_code, 200)
        self.assertNotIn('X-RateLimit-Limit', response)

    @override_settings(RATE_LIMIT_ENABLED=False)
    def test_disabled_limiter_is_bypassed(self):
        for _ in range(5):
            response = self.middleware(self.factory.post('/api/vouchers/verify', REMOTE_ADDR='9.9.9.9'))
        self.assertEqual(response.status_code, 200)


class ClientIdentityTest(SimpleTestCase):

    def setUp(self):
        self.factory = RequestFactory()

    def test_first_forwarded_hop_wins(self):
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1', REMOTE_ADDR='10.0.0.2')
        self.assertEqual(get_client_ip(request), '203.0.113.7')
        self.assertEqual(get_rate_limit_identifier(request), 'ip:203.0.113.7')

    def test_remote_addr_fallback(self):
        request = self.factory.get('/', REMOTE_ADDR='198.51.100.4')
        self.assertEqual(get_client_ip(request), '198.51.100.4')

    def test_api_key_identifier(self):
        request = self.factory.get('/', HTTP_X_API_KEY='abc123')
        self.assertEqual(get_rate_limit_identifier(request), 'api_key:abc123')

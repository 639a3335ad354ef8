"""
Security middleware: global per-path rate limiting
"""
import logging

from django.conf import settings
from django.http import JsonResponse

from .rate_limiter import get_rate_limit_config, get_rate_limiter

logger = logging.getLogger(__name__)


def get_client_ip(request) -> str:
    """Extract client IP from request"""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR', '')
    return ip


def get_rate_limit_identifier(request) -> str:
    api_key = request.headers.get('X-API-Key')
    if api_key:
        return f"api_key:{api_key}"
    return f"ip:{get_client_ip(request)}"


class RateLimitMiddleware:
    """Applies the per-path fixed-window limit and reports it in X-RateLimit-* headers"""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not getattr(settings, 'RATE_LIMIT_ENABLED', True):
            return self.get_response(request)

        limit, window = get_rate_limit_config(request.path)
        identifier = get_rate_limit_identifier(request)
        result = get_rate_limiter().check_or_allow(identifier, limit, window)

        if result is not None and not result.allowed:
            logger.warning(f"[RateLimit] {identifier} exceeded {limit}/{window}s on {request.path}")
            response = JsonResponse({
                'error': 'Too Many Requests',
                'message': f"Rate limit exceeded. Try again in {result.retry_after} seconds.",
                'retry_after': result.retry_after,
            }, status=429)
            response['Retry-After'] = str(result.retry_after)
            self._set_headers(response, result)
            return response

        response = self.get_response(request)
        if result is not None:
            self._set_headers(response, result)
        return response

    @staticmethod
    def _set_headers(response, result):
        response['X-RateLimit-Limit'] = str(result.limit)
        response['X-RateLimit-Remaining'] = str(result.remaining)
        response['X-RateLimit-Reset'] = str(result.reset_time)

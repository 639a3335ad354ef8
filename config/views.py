from django.http import JsonResponse
from django.views.decorators.http import require_http_methods
import logging

from vouchers.services import get_voucher_service

logger = logging.getLogger(__name__)


@require_http_methods(["GET"])
def health_check(request):
    return JsonResponse({'status': 'healthy', 'service': 'voucher-backend'})


@require_http_methods(["GET"])
def debug_wallet(request):
    """Address of the backend signing key, to compare against the contract's configured signer."""
    try:
        wallet_address = get_voucher_service().wallet_address
    except ValueError as e:
        logger.error(f"Backend signer unavailable: {e}")
        return JsonResponse({'error': 'signer_unavailable', 'message': str(e)}, status=503)
    return JsonResponse({
        'wallet_address': wallet_address,
        'message': 'This is the backend wallet address used for signing',
    })

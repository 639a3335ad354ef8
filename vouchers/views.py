from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods
from functools import wraps
import json
import logging

from security.middleware import get_client_ip
from security.rate_limiter import check_action_limit

from .claim_executor import build_claim_executor
from .exceptions import InvalidFormat, RateLimited, VoucherError
from .services import get_voucher_service
from .validators import normalize_code

logger = logging.getLogger(__name__)


def voucher_api(view_func):
    """Translate voucher errors into JSON responses carrying their status code."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except VoucherError as e:
            if e.status_code >= 500:
                logger.error(f"{view_func.__name__} failed: {e.message}")
            else:
                logger.info(f"{view_func.__name__} rejected: {e.kind} ({e.message})")
            response = JsonResponse(e.as_dict(), status=e.status_code)
            if isinstance(e, RateLimited) and e.retry_after is not None:
                response['Retry-After'] = str(e.retry_after)
            return response
        except Exception as e:
            logger.exception(f"{view_func.__name__} crashed: {e}")
            return JsonResponse({'error': 'internal_error', 'message': 'Internal server error'}, status=500)
    return wrapper


def _json_body(request):
    try:
        data = json.loads(request.body or b'{}')
    except (ValueError, UnicodeDecodeError):
        raise InvalidFormat('Invalid JSON body')
    if not isinstance(data, dict):
        raise InvalidFormat('Invalid JSON body')
    return data


def _string_field(data, name, required=True):
    value = data.get(name)
    if value is None or value == '':
        if required:
            raise InvalidFormat(f"{name} is required")
        return None
    if not isinstance(value, str):
        raise InvalidFormat(f"{name} must be a string")
    return value


def _enforce_action_limit(action, code, ip):
    result = check_action_limit(action, code, ip)
    if result is not None and not result.allowed:
        raise RateLimited(f"Too many {action.replace('_', ' ')} attempts", retry_after=result.retry_after)


def _isoformat(value):
    return value.isoformat() if value else None


def serialize_voucher(voucher):
    return {
        'code': voucher.code,
        'voucher_id': voucher.voucher_id,
        'creator_address': voucher.creator_address,
        'amount': voucher.amount,
        'status': voucher.status,
        'has_password': voucher.has_password,
        'claimed': voucher.claimed,
        'claimed_by': voucher.claimed_by,
        'claimed_at': _isoformat(voucher.claimed_at),
        'claim_tx_hash': voucher.claim_tx_hash,
        'claim_tx_status': voucher.claim_tx_status,
        'cancelled': voucher.cancelled,
        'cancelled_at': _isoformat(voucher.cancelled_at),
        'on_chain_created_at': _isoformat(voucher.on_chain_created_at),
        'created_at': _isoformat(voucher.created_at),
    }


@csrf_exempt
@require_http_methods(["POST"])
@voucher_api
def create_voucher_link(request):
    data = _json_body(request)
    code = get_voucher_service().create_voucher_link(
        _string_field(data, 'voucher_id'),
        password=_string_field(data, 'password', required=False),
        creator_address=_string_field(data, 'creator_address', required=False),
        amount=_string_field(data, 'amount', required=False),
    )
    link = f"/claim/{code}"
    return JsonResponse({
        'success': True,
        'code': code,
        'shareable_code': code,
        'shareable_link': link,
        'link': link,
    })


def _verify(request, code, password):
    # Limits and audit rows are keyed by the code as the registry stores it
    code = normalize_code(code)
    service = get_voucher_service()
    ip = get_client_ip(request)
    _enforce_action_limit('verify', code, ip)

    attempt = service.record_attempt(code, ip)
    result = service.verify_voucher(code, password)
    service.mark_attempt_success(attempt)
    return JsonResponse(result)


@csrf_exempt
@require_http_methods(["POST"])
@voucher_api
def verify_voucher(request):
    data = _json_body(request)
    return _verify(request, _string_field(data, 'code'), _string_field(data, 'password', required=False))


@require_http_methods(["GET"])
@voucher_api
def verify_voucher_by_code(request, code):
    # Password comes from the X-Voucher-Password header, never the query string
    return _verify(request, code, request.headers.get('X-Voucher-Password') or None)


@csrf_exempt
@require_http_methods(["POST"])
@voucher_api
def claim_voucher(request):
    data = _json_body(request)
    code = normalize_code(_string_field(data, 'code'))
    recipient = _string_field(data, 'recipient_address')
    password = _string_field(data, 'password', required=False)

    service = get_voucher_service()
    ip = get_client_ip(request)
    _enforce_action_limit('claim', code, ip)

    attempt = service.record_attempt(code, ip, recipient=recipient)
    authorization = service.create_claim_authorization(code, recipient, password)
    service.mark_attempt_success(attempt)
    logger.info(f"Generated claim authorization for voucher {code} to recipient {recipient}")
    return JsonResponse(authorization.as_dict())


@csrf_exempt
@require_http_methods(["POST"])
@voucher_api
def execute_claim(request):
    data = _json_body(request)
    code = normalize_code(_string_field(data, 'code'))
    recipient = _string_field(data, 'recipient_address')
    password = _string_field(data, 'password', required=False)

    service = get_voucher_service()
    ip = get_client_ip(request)
    _enforce_action_limit('execute_claim', code, ip)

    attempt = service.record_attempt(code, ip, recipient=recipient)
    tx_hash = build_claim_executor(service).execute_claim(code, recipient, password)
    service.mark_attempt_success(attempt)
    return JsonResponse({
        'success': True,
        'tx_hash': tx_hash,
        'status': 'pending',
        'message': 'Gasless claim transaction submitted',
    })


@csrf_exempt
@require_http_methods(["POST"])
@voucher_api
def update_claim_status(request):
    data = _json_body(request)
    success = data.get('success')
    if not isinstance(success, bool):
        raise InvalidFormat('success must be a boolean')

    message = get_voucher_service().update_claim_status(
        _string_field(data, 'code'),
        _string_field(data, 'tx_hash'),
        success,
        recipient=_string_field(data, 'recipient_address', required=False),
    )
    return JsonResponse({'success': True, 'message': message})


@require_http_methods(["GET"])
@voucher_api
def get_claim_tx_status(request, tx_hash):
    voucher = get_voucher_service().get_claim_tx(tx_hash)
    return JsonResponse({
        'tx_hash': voucher.claim_tx_hash,
        'status': voucher.claim_tx_status or 'unknown',
        'voucher_code': voucher.code,
        'recipient': voucher.claimed_by,
        'submitted_at': _isoformat(voucher.claim_tx_submitted_at),
        'claimed_at': _isoformat(voucher.claimed_at),
        'success': voucher.claimed,
    })


@require_http_methods(["GET"])
@voucher_api
def list_user_vouchers(request, address):
    query_type = request.GET.get('type', 'created')
    try:
        page = int(request.GET.get('page', 0))
        limit = int(request.GET.get('limit', 20))
    except ValueError:
        raise InvalidFormat('page and limit must be integers')

    vouchers, page, limit = get_voucher_service().list_user_vouchers(address, query_type, page, limit)
    return JsonResponse({
        'vouchers': [serialize_voucher(v) for v in vouchers],
        'page': page,
        'limit': limit,
        'type': query_type,
    })


@csrf_exempt
@require_http_methods(["POST"])
@voucher_api
def sync_voucher_status(request, voucher_id):
    return JsonResponse(get_voucher_service().sync_voucher_status(voucher_id))


@require_http_methods(["GET"])
@voucher_api
def get_voucher_details(request, voucher_id):
    voucher = get_voucher_service().get_voucher_by_id(voucher_id)
    return JsonResponse(serialize_voucher(voucher))


@csrf_exempt
@require_http_methods(["DELETE"])
@voucher_api
def delete_voucher(request, voucher_id):
    get_voucher_service().delete_voucher(voucher_id, request.headers.get('X-User-Address') or None)
    return JsonResponse({'success': True, 'message': 'Voucher deleted successfully'})

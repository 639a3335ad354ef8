"""
Typed errors raised by the voucher services.

Each error carries a stable ``kind`` and the HTTP status the views answer with.
"""


class VoucherError(Exception):
    kind = 'internal_error'
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def as_dict(self):
        return {'error': self.kind, 'message': self.message}


class NotFound(VoucherError):
    kind = 'not_found'
    status_code = 404
    default_message = 'Voucher not found'


class AlreadyClaimed(VoucherError):
    kind = 'already_claimed'
    status_code = 400
    default_message = 'This voucher has already been claimed'


class VoucherCancelled(VoucherError):
    kind = 'voucher_cancelled'
    status_code = 400
    default_message = 'This voucher has been cancelled'


class Unauthorized(VoucherError):
    kind = 'unauthorized'
    status_code = 401
    default_message = 'Invalid password'


class InvalidRecipient(VoucherError):
    kind = 'invalid_recipient'
    status_code = 400
    default_message = 'Invalid recipient address'


class InvalidFormat(VoucherError):
    kind = 'invalid_format'
    status_code = 400
    default_message = 'Invalid request'


class Forbidden(VoucherError):
    kind = 'forbidden'
    status_code = 403
    default_message = 'Not allowed'


class RateLimited(VoucherError):
    kind = 'rate_limited'
    status_code = 429
    default_message = 'Too many requests. Please try again later.'

    def __init__(self, message=None, retry_after=None):
        super().__init__(message)
        self.retry_after = retry_after

    def as_dict(self):
        data = super().as_dict()
        if self.retry_after is not None:
            data['retry_after'] = self.retry_after
        return data


class UpstreamUnavailable(VoucherError):
    kind = 'upstream_unavailable'
    status_code = 503
    default_message = 'Blockchain node unavailable, please try again'


class TransactionSubmissionFailed(VoucherError):
    kind = 'transaction_failed'
    status_code = 502
    default_message = 'Failed to submit claim transaction'

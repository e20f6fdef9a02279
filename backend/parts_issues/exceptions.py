"""Errors raised by the parts-issue workflow, each mapped to an HTTP status"""


class PartsIssueError(Exception):
    """Base exception for parts-issue operations"""
    code = 'parts_issue_error'
    status_code = 400

    def __init__(self, message=None, **details):
        self.message = message or self.__class__.__doc__
        self.details = details
        super().__init__(self.message)

    def as_dict(self):
        data = {'error': self.message, 'code': self.code}
        if self.details:
            data['details'] = self.details
        return data


class PartsIssueValidationError(PartsIssueError):
    """Malformed input"""
    code = 'validation_error'
    status_code = 400


class QuantityExceededError(PartsIssueError):
    """Quantity would exceed what was approved or requested"""
    code = 'quantity_exceeded'
    status_code = 400


class InsufficientStockError(PartsIssueError):
    """Central stock cannot cover the quantity"""
    code = 'insufficient_stock'
    status_code = 400


class InvalidStateError(PartsIssueError):
    """Operation not allowed in the request's current status"""
    code = 'invalid_state'
    status_code = 409


class ConcurrencyConflictError(PartsIssueError):
    """The request was changed by someone else; reload and retry"""
    code = 'concurrency_conflict'
    status_code = 409


class PermissionDeniedError(PartsIssueError):
    """Not allowed to act on this request"""
    code = 'permission_denied'
    status_code = 403


ERRORS_BY_CODE = {
    error_class.code: error_class
    for error_class in (
        PartsIssueValidationError,
        QuantityExceededError,
        InsufficientStockError,
        InvalidStateError,
        ConcurrencyConflictError,
        PermissionDeniedError,
    )
}

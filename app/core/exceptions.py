"""
Service-level errors

Services raise these; main.py turns them into JSON responses.
"""


class ServiceError(Exception):
    status_code = 500
    code = "service_error"

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class NotFoundError(ServiceError):
    """Resource not found"""
    status_code = 404
    code = "not_found"


class InsufficientStockError(ServiceError):
    """Insufficient stock for movement"""
    status_code = 409
    code = "insufficient_stock"


class InvalidTransitionError(ServiceError):
    """Status transition not permitted"""
    status_code = 409
    code = "invalid_transition"


class ValidationError(ServiceError):
    """Invalid input"""
    status_code = 422
    code = "validation_error"


class ForbiddenError(ServiceError):
    """Not allowed for this role"""
    status_code = 403
    code = "forbidden"


class DependencyUnavailableError(ServiceError):
    """Backing service unavailable"""
    status_code = 503
    code = "dependency_unavailable"

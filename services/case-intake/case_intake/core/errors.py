"""
Intake error taxonomy

Every error carries the HTTP status and machine-readable code that the API
layer renders, so services raise domain errors and never HTTPException.
"""
from typing import Any, Dict, Optional


class IntakeError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_response(self) -> Dict[str, Any]:
        return {"status": "error", "message": self.message, "code": self.code}


class ValidationError(IntakeError):
    """Bad or missing input fields; fixable by the client"""

    status_code = 400
    code = "INVALID_REQUEST"


class ExtractionError(ValidationError):
    """An order payload could not be turned into case data"""

    code = "MISSING_CASE_DATA"


class DuplicateCaseError(IntakeError):
    """The case ID already exists; not retryable without a new ID"""

    status_code = 409
    code = "CASE_ALREADY_EXISTS"

    def __init__(self, case_id: str):
        super().__init__("Case has already been imported")
        self.case_id = case_id


class NotFoundError(IntakeError):
    status_code = 404
    code = "NOT_FOUND"


class CaseNotFoundError(NotFoundError):
    code = "CASE_NOT_FOUND"

    def __init__(self, case_id: str):
        super().__init__(f"Case {case_id} not found")
        self.case_id = case_id


class OrderNotFoundError(NotFoundError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_number: str):
        super().__init__(f"Order {order_number} does not exist in Shopify")
        self.order_number = order_number


class TransientIntegrationError(IntakeError):
    """Order source or transport failure; the caller may retry"""

    status_code = 502
    code = "SHOPIFY_API_ERROR"


class OrderSourceQueryError(IntakeError):
    """The order source rejected the query itself (GraphQL errors)"""

    status_code = 400
    code = "SHOPIFY_API_ERROR"


class ConfigurationError(IntakeError):
    status_code = 500
    code = "MISSING_CREDENTIALS"


class PersistenceError(IntakeError):
    """Unexpected store failure; the unit of work has been rolled back"""

    status_code = 500
    code = "DATABASE_ERROR"

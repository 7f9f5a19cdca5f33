"""
Shared error handling for the Professional Fees layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from .logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class PaymentsLayerException(Exception):
    """Base exception for Professional Fees services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(PaymentsLayerException):
    """Structurally invalid call (missing event date, bad base amount)."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class RuleDefinitionError(PaymentsLayerException):
    """A persisted rule record cannot be turned into a rule."""

    status_code = 422

    def __init__(self, message: str = "Invalid rule definition", details: Optional[Dict[str, Any]] = None):
        super().__init__("RULE_DEFINITION_ERROR", message, details)


class RepositoryError(PaymentsLayerException):
    """Rule repository access errors."""

    status_code = 503

    def __init__(self, message: str = "Rule repository unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("REPOSITORY_ERROR", message, details)


class ServiceError(PaymentsLayerException):
    """Service-related errors."""

    status_code = 500

    def __init__(self, message: str = "Service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERVICE_ERROR", message, details)

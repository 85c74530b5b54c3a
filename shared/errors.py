"""
Shared error handling for the Fibonacci pipeline.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class PipelineException(Exception):
    """Base exception for pipeline services."""

    status_code: int = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class InvalidIndexError(PipelineException):
    """Submitted index is not a non-negative integer within the cap."""

    status_code = 422

    def __init__(self, message: str = "Invalid index", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_INDEX", message, details)


class StoreUnavailableError(PipelineException):
    """History store or result cache could not be reached."""

    status_code = 503

    def __init__(self, store: str, message: str = "Store unavailable", details: Optional[Dict[str, Any]] = None):
        self.store = store
        super().__init__("STORE_UNAVAILABLE", f"{store}: {message}", {"store": store, **(details or {})})


class ComputeFailureError(PipelineException):
    """Fibonacci computation failed for an index."""

    status_code = 500

    def __init__(self, message: str = "Computation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("COMPUTE_FAILURE", message, details)

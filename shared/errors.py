"""
Shared error handling for the workspace access layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class WorkspaceLayerException(Exception):
    """Base exception for the workspace access layer."""

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


class ValidationError(WorkspaceLayerException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(WorkspaceLayerException):
    """Requested resource is unknown to this layer."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class FetchError(WorkspaceLayerException):
    """A named query failed; previously cached data stays visible."""

    status_code = 502

    def __init__(self, query: str, message: str = "Query failed", details: Optional[Dict[str, Any]] = None):
        self.query = query
        super().__init__("FETCH_ERROR", f"{query}: {message}", details)


class MutationError(WorkspaceLayerException):
    """A write or sync operation failed."""

    status_code = 502

    def __init__(self, mutation: str, message: str = "Mutation failed", details: Optional[Dict[str, Any]] = None,
                 code: str = "MUTATION_ERROR"):
        self.mutation = mutation
        super().__init__(code, f"{mutation}: {message}", details)


class DocumentRejectedError(MutationError):
    """The backend refused to store a document."""

    status_code = 422

    def __init__(self, message: str = "Document rejected", details: Optional[Dict[str, Any]] = None):
        super().__init__("write_document", message, details, code="DOCUMENT_REJECTED")


class ConcurrentMutationError(WorkspaceLayerException):
    """A mutation was started while the same controller was still pending."""

    status_code = 409

    def __init__(self, mutation: str, details: Optional[Dict[str, Any]] = None):
        self.mutation = mutation
        super().__init__(
            "CONCURRENT_MUTATION",
            f"{mutation}: a previous invocation is still pending",
            details
        )


class ExternalServiceError(WorkspaceLayerException):
    """External service errors."""

    status_code = 502

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)

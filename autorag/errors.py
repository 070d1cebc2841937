"""
Exception hierarchy for the AutoRAG service.

Every error carries the HTTP status it maps to at the API boundary, plus an
optional details dict that is logged but never returned to clients.
"""
from typing import Any, Dict, Optional


class AutoRAGError(Exception):
    """Base class for all application errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(AutoRAGError):
    """Missing or malformed request fields."""

    status_code = 400


class NotFoundError(AutoRAGError):
    """The directly addressed resource does not exist."""

    status_code = 404


class UpstreamError(AutoRAGError):
    """A call to the embedding model, vector index, blob store or LLM failed."""

    status_code = 500

    def __init__(
        self,
        message: str,
        service: str,
        operation: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        details.update({"service": service, "operation": operation})
        self.service = service
        self.operation = operation
        super().__init__(message, details)


class PartialFailureError(UpstreamError):
    """Some side effects were applied before the failure and were not undone."""

    def __init__(
        self,
        message: str,
        service: str,
        operation: str,
        document_id: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        details["document_id"] = document_id
        self.document_id = document_id
        super().__init__(message, service, operation, details)

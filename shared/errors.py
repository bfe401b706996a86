"""
Shared error handling for the messaging decisioning core.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class MessagingException(Exception):
    """Base exception for the messaging decisioning core."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        # Get trace ID from current span
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class MalformedPayloadError(MessagingException):
    """Structurally invalid decision payload; the whole batch is dropped."""

    def __init__(self, message: str = "Malformed decision payload", details: Optional[Dict[str, Any]] = None):
        super().__init__("MALFORMED_PAYLOAD", message, details)


class MissingRequiredFieldError(MessagingException):
    """A single entity lacks a required field; only that entity is dropped."""

    def __init__(self, field: str, entity: str = "entity", details: Optional[Dict[str, Any]] = None):
        self.field = field
        self.entity = entity
        super().__init__(
            "MISSING_REQUIRED_FIELD",
            f"{entity} is missing required field '{field}'",
            details
        )


class UnknownSchemaError(MessagingException):
    """Schema tag not recognized. Only raised by strict decoding."""

    def __init__(self, schema_tag: str, details: Optional[Dict[str, Any]] = None):
        self.schema_tag = schema_tag
        super().__init__("UNKNOWN_SCHEMA", f"Unknown schema '{schema_tag}'", details)


class MalformedConditionError(MessagingException):
    """Condition node that cannot be evaluated. Fails the whole tree closed."""

    def __init__(
        self,
        message: str = "Malformed condition",
        path: str = "$",
        code: str = "MALFORMED_CONDITION",
        details: Optional[Dict[str, Any]] = None
    ):
        self.path = path
        super().__init__(code, message, details)


class BuilderMisuseError(MessagingException):
    """Builder used after build() was invoked. Indicates a caller bug."""

    def __init__(self, builder: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            "BUILDER_MISUSE",
            f"Attempted to call methods on {builder} after build() was invoked.",
            details
        )


class ValidationError(MessagingException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ExternalServiceError(MessagingException):
    """External collaborator errors, e.g. a failed decision fetch."""

    def __init__(self, service: str, message: str = "External service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("EXTERNAL_SERVICE_ERROR", f"{service}: {message}", details)

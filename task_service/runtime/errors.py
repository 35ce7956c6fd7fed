# =============================================================================
# Pipeline Errors
# =============================================================================
# Error taxonomy for the classify -> normalize -> dispatch -> respond pipeline.
# Every error carries enough context to build a structured response envelope.
# =============================================================================

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base class for errors surfaced by the invocation pipeline."""

    error_type = "PipelineError"
    status_code = 500

    def __init__(self, reason: str, message: str = None, details: Dict[str, Any] = None,
                 status_code: int = None):
        self.reason = reason
        self.message = message or reason
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ClassificationError(PipelineError):
    """Payload shape does not match any supported event protocol."""

    error_type = "ClassificationError"
    status_code = 400

    UNCLASSIFIABLE_INPUT = "UnclassifiableInput"
    EMPTY_BATCH = "EmptyBatch"
    UNRECOGNIZED_BUS_EVENT_SOURCE = "UnrecognizedBusEventSource"

    @classmethod
    def unclassifiable(cls, keys) -> "ClassificationError":
        keys = list(keys)
        return cls(
            cls.UNCLASSIFIABLE_INPUT,
            f"Unable to classify invocation with top-level keys: {keys}",
            {"presentTopLevelKeys": keys},
        )

    @classmethod
    def empty_batch(cls) -> "ClassificationError":
        return cls(cls.EMPTY_BATCH, "Queue batch contains no records")

    @classmethod
    def unrecognized_bus_event(cls, source: str, detail_type: str) -> "ClassificationError":
        return cls(
            cls.UNRECOGNIZED_BUS_EVENT_SOURCE,
            f"Unable to determine bus event type from source='{source}' and detail-type='{detail_type}'",
            {"source": source, "detailType": detail_type},
        )


class DeserializationError(PipelineError):
    """Payload shape was recognized but a required field is missing or malformed."""

    error_type = "DeserializationError"
    status_code = 400

    @classmethod
    def missing(cls, field_name: str) -> "DeserializationError":
        return cls(field_name, f"Required field '{field_name}' is missing or empty",
                   {"field": field_name})

    @classmethod
    def malformed(cls, field_name: str, expected: str) -> "DeserializationError":
        return cls(field_name, f"Field '{field_name}' must be {expected}",
                   {"field": field_name, "expected": expected})


class RoutingError(PipelineError):
    """Recognized HTTP request with no matching handler."""

    error_type = "RoutingError"

    NOT_FOUND = "NotFound"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"
    MISSING_BODY = "MissingBody"

    @classmethod
    def not_found(cls, method: str, path: str, available_routes=None) -> "RoutingError":
        return cls(cls.NOT_FOUND, f"No route found for {method} {path}",
                   {"availableRoutes": list(available_routes or [])}, status_code=404)

    @classmethod
    def method_not_allowed(cls, method: str, path: str, allowed=None) -> "RoutingError":
        allowed = list(allowed or [])
        return cls(cls.METHOD_NOT_ALLOWED,
                   f"Method {method} not allowed for {path}. Use {', '.join(allowed)}.",
                   {"allowedMethods": allowed}, status_code=405)

    @classmethod
    def missing_body(cls, method: str, path: str) -> "RoutingError":
        return cls(cls.MISSING_BODY, "Request body is required", status_code=400)


class HandlerError(PipelineError):
    """Business-logic failure raised by a downstream handler."""

    error_type = "HandlerError"

    def __init__(self, message: str, status_code: int = 500, reason: str = "HandlerFailed",
                 details: Dict[str, Any] = None):
        super().__init__(reason, message, details, status_code=status_code)


class FatalError(PipelineError):
    """Anything unanticipated; wraps the original exception."""

    error_type = "FatalError"

    def __init__(self, cause: Optional[BaseException] = None, message: str = "Internal server error"):
        self.cause = cause
        reason = type(cause).__name__ if cause is not None else "Unknown"
        super().__init__(reason, message)


def as_pipeline_error(exc: BaseException) -> PipelineError:
    """Return exc unchanged if it is a PipelineError, otherwise wrap it in FatalError."""
    if isinstance(exc, PipelineError):
        return exc
    return FatalError(exc)

# Base utilities for all handlers
# JSON codec, response builders and request validation shared by collaborators
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from task_service.runtime.deps import Deps
from task_service.runtime.envelope import HttpResult
from task_service.runtime.errors import HandlerError
from task_service.runtime.respond import http_result

logger = logging.getLogger(__name__)


# =============================================================================
# JSON CODEC
# =============================================================================
def jdump(x: Any) -> str:
    """JSON dump with defaults for non-serializable types."""
    return json.dumps(x, ensure_ascii=False, default=str)


def jload(raw: Any) -> Any:
    """
    Decode JSON from str or bytes. Unknown fields are kept as-is.

    Raises:
        HandlerError: 400 when the input is not valid JSON
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise HandlerError(f"Invalid JSON: {e}", status_code=400, reason="InvalidJson")


def parse_json_object(raw: Optional[str], what: str = "Request body") -> Dict[str, Any]:
    """Decode raw as a JSON object, raising HandlerError(400) otherwise."""
    if raw is None or not str(raw).strip():
        raise HandlerError(f"{what} is required", status_code=400, reason="MissingBody")
    value = jload(raw)
    if not isinstance(value, dict):
        raise HandlerError(f"{what} must be a JSON object", status_code=400, reason="InvalidJson")
    return value


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================
def iso_now() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def epoch_millis() -> int:
    return int(time.time() * 1000)


def truncate(s: Optional[str], max_length: int = 100) -> str:
    """Shorten long strings for logging."""
    if s is None:
        return "null"
    return s if len(s) <= max_length else s[:max_length] + "..."


# =============================================================================
# RESPONSE HELPERS
# =============================================================================
def standard_body(deps: Deps, request_id: Optional[str], status: str, message: str,
                  **extra) -> Dict[str, Any]:
    """Common response fields for every successful API call."""
    body = {
        "service": deps.config.service_name,
        "requestId": request_id or "unknown-request-id",
        "version": deps.config.service_version,
        "status": status,
        "timestamp": epoch_millis(),
        "message": message,
    }
    body.update(extra)
    return body


def success_response(deps: Deps, request_id: Optional[str], message: str, status_code: int = 200,
                     status: str = "success", **extra) -> HttpResult:
    """Create a standardized success response."""
    return http_result(status_code, standard_body(deps, request_id, status, message, **extra))


# =============================================================================
# VALIDATION HELPERS
# =============================================================================
def require_text(data: Dict[str, Any], field_name: str, what: str = "Task") -> str:
    """Return data[field_name] stripped, or raise HandlerError(400) if blank."""
    value = data.get(field_name)
    if not isinstance(value, str) or not value.strip():
        raise HandlerError(f"{what} {field_name} is required", status_code=400,
                           reason="ValidationError", details={"field": field_name})
    return value.strip()


def validate_enum(value: Optional[str], valid_values: List[str], field_name: str) -> Optional[str]:
    """Return the upper-cased value if allowed, raising HandlerError(400) otherwise."""
    if value is None:
        return None
    normalized = str(value).strip().upper()
    if normalized not in valid_values:
        raise HandlerError(f"Invalid {field_name}. Must be: {', '.join(valid_values)}",
                           status_code=400, reason="ValidationError", details={"field": field_name})
    return normalized

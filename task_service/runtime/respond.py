# =============================================================================
# Response Adapter
# =============================================================================
# Wraps handler results and pipeline errors in the shape the originating
# protocol expects:
#   HttpRequest -> {statusCode, headers, body}
#   QueueBatch  -> {batchItemFailures: [{itemIdentifier}]}
#   BusEvent*   -> success token string, or a structured error map
# No traceback ever reaches a response body.
# =============================================================================

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Union

from task_service.runtime.envelope import (
    BatchOutcome,
    BusResult,
    HttpResult,
    InvocationKind,
)
from task_service.runtime.errors import PipelineError

logger = logging.getLogger(__name__)

ProtocolResponse = Union[Dict[str, Any], str]

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
}


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def json_headers(extra: Dict[str, str] = None) -> Dict[str, str]:
    headers = dict(DEFAULT_HEADERS)
    if extra:
        headers.update(extra)
    return headers


def http_result(status_code: int, data: Any, headers: Dict[str, str] = None) -> HttpResult:
    """Build an HttpResult with a JSON body and the default headers."""
    return HttpResult(
        status_code=status_code,
        headers=json_headers(headers),
        body=json.dumps(data, ensure_ascii=False, default=str),
    )


def error_envelope(error: PipelineError, request_id: Optional[str]) -> Dict[str, Any]:
    """Structured error map: errorMessage, errorType, errorReason, requestId, timestamp."""
    envelope = {
        "errorMessage": error.message,
        "errorType": error.error_type,
        "errorReason": error.reason,
        "requestId": request_id,
        "timestamp": iso_now(),
    }
    # Only client-facing details; never the wrapped exception
    if error.details:
        envelope["details"] = error.details
    return envelope


def http_error_result(error: PipelineError, request_id: Optional[str]) -> HttpResult:
    return http_result(error.status_code, error_envelope(error, request_id))


def batch_item_failures(item_ids: Iterable[str]) -> Dict[str, Any]:
    return {"batchItemFailures": [{"itemIdentifier": item_id} for item_id in dict.fromkeys(item_ids)]}


class ResponseAdapter:
    """Converts outcomes and errors into protocol responses."""

    def adapt(self, kind: InvocationKind, outcome: Any) -> ProtocolResponse:
        if kind == InvocationKind.HTTP_REQUEST:
            return self._adapt_http(outcome)
        if kind == InvocationKind.QUEUE_BATCH:
            return self._adapt_batch(outcome)
        if kind.is_bus_event:
            return self._adapt_bus(outcome)
        raise TypeError(f"No response shape for invocation kind {kind!r}")

    def adapt_error(self, kind: Optional[InvocationKind], error: PipelineError,
                    request_id: Optional[str], item_ids: Iterable[str] = ()) -> ProtocolResponse:
        """
        Build the error response for a rejected invocation.

        kind is None when classification itself failed. For queue batches
        every known item is reported failed so none is acknowledged by accident.
        """
        if kind == InvocationKind.HTTP_REQUEST:
            result = http_error_result(error, request_id)
            return self._adapt_http(result)
        if kind == InvocationKind.QUEUE_BATCH:
            item_ids = list(item_ids)
            if item_ids:
                logger.error(f"Batch failed at pipeline level, reporting all {len(item_ids)} items as failed")
                return batch_item_failures(item_ids)
        return error_envelope(error, request_id)

    @staticmethod
    def _adapt_http(result: HttpResult) -> Dict[str, Any]:
        if not isinstance(result, HttpResult):
            raise TypeError(f"HTTP handler returned {type(result).__name__}, expected HttpResult")
        return {
            "statusCode": result.status_code,
            "headers": dict(result.headers),
            "body": result.body,
        }

    @staticmethod
    def _adapt_batch(outcome: BatchOutcome) -> Dict[str, Any]:
        if not isinstance(outcome, BatchOutcome):
            raise TypeError(f"Queue dispatch returned {type(outcome).__name__}, expected BatchOutcome")
        return batch_item_failures(outcome.failed_item_ids)

    @staticmethod
    def _adapt_bus(result: BusResult) -> str:
        if not isinstance(result, BusResult):
            raise TypeError(f"Bus handler returned {type(result).__name__}, expected BusResult")
        return result.token

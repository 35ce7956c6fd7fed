# =============================================================================
# Envelope - Typed Invocation Values
# =============================================================================
# All inputs (API Gateway, SQS, EventBridge) are classified into an
# InvocationKind and normalized into one of the typed events below.
# Nothing here holds state beyond a single invocation.
# =============================================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


class InvocationKind(str, Enum):
    """Closed set of supported invocation kinds."""
    HTTP_REQUEST = "HttpRequest"
    QUEUE_BATCH = "QueueBatch"
    BUS_EVENT_SCHEDULED = "BusEventScheduled"
    BUS_EVENT_CUSTOM = "BusEventCustom"

    @property
    def is_bus_event(self) -> bool:
        return self in (InvocationKind.BUS_EVENT_SCHEDULED, InvocationKind.BUS_EVENT_CUSTOM)


class InvocationState(str, Enum):
    """Per-invocation lifecycle."""
    RECEIVED = "received"
    CLASSIFIED = "classified"
    NORMALIZED = "normalized"
    DISPATCHED = "dispatched"
    RESPONDED = "responded"
    REJECTED = "rejected"


# Wire protocol constants
QUEUE_EVENT_SOURCE = "aws:sqs"
SCHEDULED_EVENT_SOURCE = "aws.events"
SCHEDULED_EVENT_DETAIL_TYPE = "Scheduled Event"


# =============================================================================
# FIELD ALIASES
# =============================================================================
# Canonical wire name -> accepted spellings, canonical first.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    # API Gateway
    "httpMethod": ("httpMethod", "http_method"),
    "resource": ("resource",),
    "path": ("path", "rawPath"),
    "headers": ("headers",),
    "queryStringParameters": ("queryStringParameters", "query_string_parameters", "queryParameters"),
    "pathParameters": ("pathParameters", "path_parameters"),
    "body": ("body",),
    "requestContext": ("requestContext", "request_context"),
    "requestId": ("requestId", "request_id"),
    # SQS
    "Records": ("Records", "records"),
    "messageId": ("messageId", "message_id", "MessageId"),
    "eventSource": ("eventSource", "event_source", "EventSource"),
    "receiptHandle": ("receiptHandle", "receipt_handle"),
    "attributes": ("attributes",),
    "messageAttributes": ("messageAttributes", "message_attributes"),
    # EventBridge
    "source": ("source",),
    "detail-type": ("detail-type", "detailType", "detail_type"),
    "detail": ("detail",),
    "id": ("id",),
    "time": ("time",),
    "region": ("region",),
    "account": ("account",),
    "resources": ("resources",),
}

_MISSING = object()


def _spellings(canonical: str) -> Tuple[str, ...]:
    return FIELD_ALIASES.get(canonical, (canonical,))


def has_field(raw: Mapping[str, Any], canonical: str) -> bool:
    """True if any accepted spelling of the field is present as a key."""
    return any(name in raw for name in _spellings(canonical))


def pick(raw: Mapping[str, Any], canonical: str, default: Any = None) -> Any:
    """Get a field by canonical name, falling back through its aliases."""
    for name in _spellings(canonical):
        value = raw.get(name, _MISSING)
        if value is not _MISSING:
            return value
    return default


# =============================================================================
# TYPED EVENTS
# =============================================================================
@dataclass(frozen=True)
class HttpRequestEvent:
    method: str
    path: str
    resource: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    query_parameters: Dict[str, str] = field(default_factory=dict)
    path_parameters: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    request_id: Optional[str] = None

    kind = InvocationKind.HTTP_REQUEST

    @property
    def has_body(self) -> bool:
        return bool(self.body and self.body.strip())

    def with_path_parameters(self, params: Dict[str, str]) -> "HttpRequestEvent":
        """Copy with template-matched params merged under the payload's own."""
        merged = {**params, **self.path_parameters}
        return HttpRequestEvent(
            method=self.method, path=self.path, resource=self.resource,
            headers=self.headers, query_parameters=self.query_parameters,
            path_parameters=merged, body=self.body, request_id=self.request_id,
        )


@dataclass(frozen=True)
class QueueItem:
    id: str
    body: str
    attributes: Dict[str, str] = field(default_factory=dict)
    source_marker: str = QUEUE_EVENT_SOURCE
    receipt_handle: Optional[str] = None
    message_attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ItemRejection:
    """A queue record that could not be turned into a QueueItem."""
    item_id: str
    reason: str


@dataclass(frozen=True)
class QueueBatchEvent:
    items: Tuple[QueueItem, ...]
    rejected: Tuple[ItemRejection, ...] = ()

    kind = InvocationKind.QUEUE_BATCH

    @property
    def item_ids(self) -> List[str]:
        """Ids of every record in the batch, in wire order."""
        ids = [item.id for item in self.items] + [r.item_id for r in self.rejected]
        return list(dict.fromkeys(ids))

    def __len__(self) -> int:
        return len(self.items) + len(self.rejected)


@dataclass(frozen=True)
class BusEvent:
    kind: InvocationKind
    id: str
    source: str
    detail_type: str
    detail: Dict[str, Any] = field(default_factory=dict)
    time: Optional[str] = None
    region: Optional[str] = None
    account: Optional[str] = None
    resources: Tuple[str, ...] = ()


TypedEvent = Union[HttpRequestEvent, QueueBatchEvent, BusEvent]


# =============================================================================
# HANDLER RESULTS
# =============================================================================
@dataclass(frozen=True)
class HttpResult:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""


@dataclass(frozen=True)
class BusResult:
    ok: bool = True
    token: str = "OK"


@dataclass(frozen=True)
class ItemResult:
    item_id: str
    ok: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class BatchOutcome:
    """
    Result of processing one queue batch.

    failed_item_ids holds every item whose handler raised (or that was
    rejected or skipped for lack of time), each exactly once.
    """
    failed_item_ids: Tuple[str, ...] = ()
    processed: int = 0
    succeeded: int = 0

    @property
    def all_succeeded(self) -> bool:
        return not self.failed_item_ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            "failedItemIds": list(self.failed_item_ids),
            "processed": self.processed,
            "succeeded": self.succeeded,
        }


HandlerResult = Union[HttpResult, BusResult, ItemResult]

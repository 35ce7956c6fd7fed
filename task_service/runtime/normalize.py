# =============================================================================
# Event Normalizer - Raw Payload -> Typed Event
# =============================================================================
# Converts a classified payload into HttpRequestEvent, QueueBatchEvent or
# BusEvent. Field names are resolved through FIELD_ALIASES only.
# The raw payload is never mutated.
# =============================================================================

import base64
import binascii
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from task_service.runtime.envelope import (
    BusEvent,
    HttpRequestEvent,
    InvocationKind,
    ItemRejection,
    QueueBatchEvent,
    QueueItem,
    TypedEvent,
    pick,
)
from task_service.runtime.errors import ClassificationError, DeserializationError

logger = logging.getLogger(__name__)


def _string_map(value: Any, field_name: str) -> Dict[str, str]:
    """Coerce a wire map into Dict[str, str]; None becomes {}."""
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise DeserializationError.malformed(field_name, "an object")
    return {str(k): "" if v is None else str(v) for k, v in value.items()}


def _opaque_body(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


def _required_str(raw: Mapping[str, Any], canonical: str) -> str:
    value = pick(raw, canonical)
    if not isinstance(value, str) or not value.strip():
        raise DeserializationError.missing(canonical)
    return value.strip()


class EventNormalizer:
    """Builds typed events from raw payloads of an already-known kind."""

    def normalize(self, kind: InvocationKind, raw: Mapping[str, Any]) -> TypedEvent:
        if kind == InvocationKind.HTTP_REQUEST:
            return self.normalize_http(raw)
        if kind == InvocationKind.QUEUE_BATCH:
            return self.normalize_queue_batch(raw)
        if kind.is_bus_event:
            return self.normalize_bus_event(kind, raw)
        raise DeserializationError("kind", f"No normalizer for invocation kind {kind!r}")

    # -------------------------------------------------------------------------
    # API Gateway
    # -------------------------------------------------------------------------
    def normalize_http(self, raw: Mapping[str, Any]) -> HttpRequestEvent:
        method = _required_str(raw, "httpMethod").upper()

        resource = pick(raw, "resource")
        path = pick(raw, "path") or resource
        if not isinstance(path, str) or not path.strip():
            raise DeserializationError.missing("path")

        request_context = pick(raw, "requestContext") or {}
        request_id = pick(request_context, "requestId") if isinstance(request_context, Mapping) else None

        body = _opaque_body(pick(raw, "body"))
        if body is not None and raw.get("isBase64Encoded"):
            try:
                body = base64.b64decode(body, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError):
                raise DeserializationError.malformed("body", "base64-encoded UTF-8 text")

        event = HttpRequestEvent(
            method=method,
            path=path.strip(),
            resource=resource if isinstance(resource, str) else None,
            headers=_string_map(pick(raw, "headers"), "headers"),
            query_parameters=_string_map(pick(raw, "queryStringParameters"), "queryStringParameters"),
            path_parameters=_string_map(pick(raw, "pathParameters"), "pathParameters"),
            body=body,
            request_id=request_id if isinstance(request_id, str) else None,
        )
        logger.debug(f"Normalized HTTP request: method={event.method}, path={event.path}")
        return event

    # -------------------------------------------------------------------------
    # SQS
    # -------------------------------------------------------------------------
    def normalize_queue_batch(self, raw: Mapping[str, Any]) -> QueueBatchEvent:
        records = pick(raw, "Records")
        if not isinstance(records, list):
            raise DeserializationError.malformed("Records", "a list")
        if not records:
            raise ClassificationError.empty_batch()

        items: List[QueueItem] = []
        rejected: List[ItemRejection] = []
        for index, record in enumerate(records):
            item = self._normalize_queue_record(index, record)
            if isinstance(item, ItemRejection):
                logger.warning(f"Rejected queue record at index {index}: {item.reason}")
                rejected.append(item)
            else:
                items.append(item)

        logger.info(f"Normalized queue batch: records={len(records)}, items={len(items)}, rejected={len(rejected)}")
        return QueueBatchEvent(items=tuple(items), rejected=tuple(rejected))

    @staticmethod
    def _normalize_queue_record(index: int, record: Any):
        placeholder = f"record[{index}]"
        if not isinstance(record, Mapping):
            return ItemRejection(placeholder, "record is not an object")

        message_id = pick(record, "messageId")
        if not isinstance(message_id, str) or not message_id.strip():
            return ItemRejection(placeholder, "missing messageId")

        body = pick(record, "body")
        if body is None:
            return ItemRejection(message_id, "missing body")

        try:
            attributes = _string_map(pick(record, "attributes"), "attributes")
        except DeserializationError as e:
            return ItemRejection(message_id, e.message)

        message_attributes = pick(record, "messageAttributes")
        return QueueItem(
            id=message_id,
            body=_opaque_body(body),
            attributes=attributes,
            source_marker=str(pick(record, "eventSource") or ""),
            receipt_handle=pick(record, "receiptHandle"),
            message_attributes=dict(message_attributes) if isinstance(message_attributes, Mapping) else {},
        )

    # -------------------------------------------------------------------------
    # EventBridge
    # -------------------------------------------------------------------------
    def normalize_bus_event(self, kind: InvocationKind, raw: Mapping[str, Any]) -> BusEvent:
        source = _required_str(raw, "source")
        detail_type = _required_str(raw, "detail-type")

        detail = pick(raw, "detail")
        if detail is None:
            detail = {}
        elif not isinstance(detail, Mapping):
            raise DeserializationError.malformed("detail", "an object")

        resources = pick(raw, "resources") or ()
        if not isinstance(resources, (list, tuple)):
            raise DeserializationError.malformed("resources", "a list")

        event_id = pick(raw, "id")
        return BusEvent(
            kind=kind,
            id=str(event_id) if event_id is not None else "",
            source=source,
            detail_type=detail_type,
            detail=dict(detail),
            time=pick(raw, "time"),
            region=pick(raw, "region"),
            account=pick(raw, "account"),
            resources=tuple(str(r) for r in resources),
        )


def normalize(kind: InvocationKind, raw: Mapping[str, Any]) -> TypedEvent:
    """Convenience wrapper around EventNormalizer.normalize."""
    return EventNormalizer().normalize(kind, raw)

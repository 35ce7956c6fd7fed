#!/usr/bin/env python3
"""
Tests for event normalization (raw payload -> typed event).

Run with: pytest tests/test_normalize.py -v
"""
import base64
import copy

import pytest

from sample_events import custom_event, http_event, scheduled_event, sqs_event, sqs_record
from task_service.runtime.envelope import (
    BusEvent,
    HttpRequestEvent,
    InvocationKind,
    ItemRejection,
    QueueBatchEvent,
)
from task_service.runtime.errors import ClassificationError, DeserializationError
from task_service.runtime.normalize import EventNormalizer, normalize


# =============================================================================
# TEST: API Gateway
# =============================================================================

class TestNormalizeHttp:
    """Tests for HttpRequestEvent construction."""

    def test_full_request(self):
        raw = http_event("post", "/task", body={"name": "Write tests"}, request_id="abc-123",
                         queryStringParameters={"limit": "10"})
        event = normalize(InvocationKind.HTTP_REQUEST, raw)

        assert isinstance(event, HttpRequestEvent)
        assert event.method == "POST"
        assert event.path == "/task"
        assert event.resource == "/task"
        assert event.query_parameters == {"limit": "10"}
        assert event.headers == {"Content-Type": "application/json"}
        assert event.body == '{"name": "Write tests"}'
        assert event.request_id == "abc-123"
        assert event.has_body
        print("✓ Full HTTP request normalized")

    def test_minimal_request(self):
        """Missing optional maps become empty dicts."""
        event = normalize(InvocationKind.HTTP_REQUEST, {"httpMethod": "GET", "resource": "/ping"})
        assert event.path == "/ping"
        assert event.headers == {}
        assert event.path_parameters == {}
        assert event.body is None
        assert event.request_id is None
        assert not event.has_body
        print("✓ Minimal HTTP request normalized")

    def test_path_parameters_kept(self):
        raw = http_event("GET", "/task/task-1", resource="/task/{id}", path_parameters={"id": "task-1"})
        event = normalize(InvocationKind.HTTP_REQUEST, raw)
        assert event.path == "/task/task-1"
        assert event.resource == "/task/{id}"
        assert event.path_parameters == {"id": "task-1"}
        print("✓ Path parameters kept")

    def test_object_body_is_encoded(self):
        """A body sent as an object stays opaque text."""
        raw = {"httpMethod": "POST", "path": "/task", "body": {"name": "x"}}
        event = normalize(InvocationKind.HTTP_REQUEST, raw)
        assert event.body == '{"name": "x"}'
        print("✓ Object body encoded as JSON text")

    def test_base64_body_is_decoded(self):
        encoded = base64.b64encode(b'{"name": "x"}').decode("ascii")
        raw = {"httpMethod": "POST", "path": "/task", "body": encoded, "isBase64Encoded": True}
        event = normalize(InvocationKind.HTTP_REQUEST, raw)
        assert event.body == '{"name": "x"}'
        print("✓ Base64 body decoded")

    def test_invalid_base64_body(self):
        raw = {"httpMethod": "POST", "path": "/task", "body": "***", "isBase64Encoded": True}
        with pytest.raises(DeserializationError) as exc_info:
            normalize(InvocationKind.HTTP_REQUEST, raw)
        assert exc_info.value.details["field"] == "body"
        print("✓ Invalid base64 body rejected")

    def test_blank_method(self):
        with pytest.raises(DeserializationError) as exc_info:
            normalize(InvocationKind.HTTP_REQUEST, {"httpMethod": " ", "path": "/ping"})
        assert exc_info.value.reason == "httpMethod"
        print("✓ Blank method rejected")

    def test_malformed_headers(self):
        raw = {"httpMethod": "GET", "path": "/ping", "headers": ["Content-Type"]}
        with pytest.raises(DeserializationError) as exc_info:
            normalize(InvocationKind.HTTP_REQUEST, raw)
        assert exc_info.value.details == {"field": "headers", "expected": "an object"}
        print("✓ Malformed headers rejected")

    def test_with_path_parameters_prefers_payload(self):
        event = HttpRequestEvent(method="GET", path="/task/a", path_parameters={"id": "from-payload"})
        merged = event.with_path_parameters({"id": "from-route", "extra": "1"})
        assert merged.path_parameters == {"id": "from-payload", "extra": "1"}
        assert event.path_parameters == {"id": "from-payload"}
        print("✓ Payload path parameters win")


# =============================================================================
# TEST: SQS
# =============================================================================

class TestNormalizeQueueBatch:
    """Tests for QueueBatchEvent construction."""

    def test_items_in_wire_order(self):
        raw = sqs_event(sqs_record("m1", {"name": "a"}), sqs_record("m2", "plain text"))
        batch = normalize(InvocationKind.QUEUE_BATCH, raw)

        assert isinstance(batch, QueueBatchEvent)
        assert [item.id for item in batch.items] == ["m1", "m2"]
        assert batch.items[0].body == '{"name": "a"}'
        assert batch.items[1].body == "plain text"
        assert batch.items[0].attributes == {"ApproximateReceiveCount": "1"}
        assert batch.items[0].source_marker == "aws:sqs"
        assert batch.items[0].receipt_handle == "handle-m1"
        assert batch.rejected == ()
        assert len(batch) == 2
        print("✓ Queue items normalized in order")

    def test_missing_message_id_gets_placeholder(self):
        raw = sqs_event(sqs_record("m1", {"name": "a"}), sqs_record(None, {"name": "b"}))
        batch = normalize(InvocationKind.QUEUE_BATCH, raw)

        assert [item.id for item in batch.items] == ["m1"]
        assert batch.rejected == (ItemRejection("record[1]", "missing messageId"),)
        assert batch.item_ids == ["m1", "record[1]"]
        print("✓ Missing messageId gets positional placeholder")

    def test_missing_body_is_rejected(self):
        record = sqs_record("m1", {"name": "a"})
        del record["body"]
        batch = normalize(InvocationKind.QUEUE_BATCH, sqs_event(record))
        assert batch.items == ()
        assert batch.rejected == (ItemRejection("m1", "missing body"),)
        print("✓ Missing body rejected per item")

    def test_non_object_record(self):
        raw = {"Records": [sqs_record("m1", {"name": "a"}), "garbage"]}
        batch = normalize(InvocationKind.QUEUE_BATCH, raw)
        assert batch.rejected[0].item_id == "record[1]"
        print("✓ Non-object record rejected")

    def test_empty_records(self):
        with pytest.raises(ClassificationError) as exc_info:
            normalize(InvocationKind.QUEUE_BATCH, {"Records": []})
        assert exc_info.value.reason == ClassificationError.EMPTY_BATCH
        print("✓ Empty Records rejected")

    def test_records_not_a_list(self):
        with pytest.raises(DeserializationError):
            normalize(InvocationKind.QUEUE_BATCH, {"Records": {"messageId": "m1"}})
        print("✓ Non-list Records rejected")


# =============================================================================
# TEST: EventBridge
# =============================================================================

class TestNormalizeBusEvent:
    """Tests for BusEvent construction."""

    def test_scheduled_event(self):
        event = normalize(InvocationKind.BUS_EVENT_SCHEDULED, scheduled_event("sched-42"))
        assert isinstance(event, BusEvent)
        assert event.kind == InvocationKind.BUS_EVENT_SCHEDULED
        assert event.id == "sched-42"
        assert event.source == "aws.events"
        assert event.detail_type == "Scheduled Event"
        assert event.detail == {}
        assert event.resources == ("arn:aws:events:us-east-1:123456789012:rule/every-hour",)
        print("✓ Scheduled event normalized")

    def test_custom_event_detail(self):
        event = normalize(InvocationKind.BUS_EVENT_CUSTOM, custom_event({"name": "x", "extra": 1}))
        assert event.detail == {"name": "x", "extra": 1}
        print("✓ Custom event detail kept with unknown fields")

    def test_missing_detail_defaults_to_empty(self):
        raw = {"source": "com.custom.tasks", "detail-type": "custom-event.task"}
        event = normalize(InvocationKind.BUS_EVENT_CUSTOM, raw)
        assert event.detail == {}
        assert event.id == ""
        print("✓ Missing detail defaults to empty map")

    def test_non_object_detail(self):
        raw = {"source": "com.custom.tasks", "detail-type": "custom-event.task", "detail": "text"}
        with pytest.raises(DeserializationError) as exc_info:
            normalize(InvocationKind.BUS_EVENT_CUSTOM, raw)
        assert exc_info.value.details["field"] == "detail"
        print("✓ Non-object detail rejected")


# =============================================================================
# TEST: Purity
# =============================================================================

class TestNormalizerPurity:

    def test_raw_not_mutated(self):
        raw = sqs_event(sqs_record("m1", {"name": "a"}), sqs_record(None, {"name": "b"}))
        snapshot = copy.deepcopy(raw)
        EventNormalizer().normalize(InvocationKind.QUEUE_BATCH, raw)
        assert raw == snapshot
        print("✓ Raw payload not mutated")

#!/usr/bin/env python3
"""
Tests for the route table and dispatcher.

Run with: pytest tests/test_dispatch.py -v
"""
import json
from unittest.mock import MagicMock

import pytest

from task_service.runtime.dispatch import Dispatcher, RouteTable, compile_template
from task_service.runtime.envelope import (
    BatchOutcome,
    BusEvent,
    BusResult,
    HttpRequestEvent,
    HttpResult,
    InvocationKind,
    QueueBatchEvent,
    QueueItem,
)
from task_service.runtime.errors import HandlerError, RoutingError


def ok_handler(event, deps):
    return HttpResult(200, {}, json.dumps({"path": event.path, "params": event.path_parameters}))


def sample_routes():
    routes = RouteTable()
    routes.add("/ping", "GET", ok_handler, description="Health check")
    routes.add("/task", "GET", ok_handler)
    routes.add("/task", "POST", ok_handler, requires_body=True)
    routes.add("/task/{id}", "GET", ok_handler)
    routes.add("/task/{id}", "PUT", ok_handler, requires_body=True)
    routes.add("/task/{id}", "DELETE", ok_handler)
    return routes


def make_dispatcher(deps, routes=None, queue_handler=None, bus_handlers=None):
    return Dispatcher(
        deps=deps,
        routes=routes or sample_routes(),
        queue_handler=queue_handler or (lambda item, d: None),
        bus_handlers=bus_handlers or {
            InvocationKind.BUS_EVENT_SCHEDULED: lambda e, d: "OK",
            InvocationKind.BUS_EVENT_CUSTOM: lambda e, d: "OK",
        },
    )


# =============================================================================
# TEST: Route table
# =============================================================================

class TestRouteTable:
    """Tests for (path, method) matching."""

    def test_literal_match(self):
        route, params = sample_routes().match("/ping", "GET")
        assert route.pattern == "/ping"
        assert params == {}
        print("✓ Literal route matched")

    def test_template_match(self):
        route, params = sample_routes().match("/task/task-1", "put")
        assert route.pattern == "/task/{id}"
        assert route.method == "PUT"
        assert params == {"id": "task-1"}
        print("✓ Template route matched with params")

    def test_trailing_slash(self):
        route, _ = sample_routes().match("/task/", "GET")
        assert route.pattern == "/task"

    def test_literal_beats_template(self):
        routes = RouteTable()
        routes.add("/task/{id}", "GET", ok_handler)
        routes.add("/task/summary", "GET", ok_handler)
        route, params = routes.match("/task/summary", "GET")
        assert route.pattern == "/task/summary"
        assert params == {}
        print("✓ Literal pattern wins over template")

    def test_not_found(self):
        routes = sample_routes()
        with pytest.raises(RoutingError) as exc_info:
            routes.match("/nope", "GET")
        error = exc_info.value
        assert error.reason == RoutingError.NOT_FOUND
        assert error.status_code == 404
        assert "GET /ping - Health check" in error.details["availableRoutes"]
        assert len(error.details["availableRoutes"]) == len(routes)
        print("✓ Unknown path is NotFound")

    def test_method_not_allowed(self):
        with pytest.raises(RoutingError) as exc_info:
            sample_routes().match("/task/task-1", "PATCH")
        error = exc_info.value
        assert error.reason == RoutingError.METHOD_NOT_ALLOWED
        assert error.status_code == 405
        assert error.details["allowedMethods"] == ["GET", "PUT", "DELETE"]
        print("✓ Known path with wrong method is MethodNotAllowed")

    def test_duplicate_route(self):
        routes = sample_routes()
        with pytest.raises(ValueError):
            routes.add("/ping", "get", ok_handler)

    def test_decorator_uses_docstring(self):
        routes = RouteTable()

        @routes.route("/health", "GET")
        def health(event, deps):
            """Liveness probe."""
            return HttpResult(200)

        assert routes.available_routes() == ["GET /health - Liveness probe."]

    def test_compile_template(self):
        pattern = compile_template("/orders/{orderId}/items/{itemId}")
        match = pattern.match("/orders/o-1/items/i-2")
        assert match.groupdict() == {"orderId": "o-1", "itemId": "i-2"}
        assert pattern.match("/orders/o-1/items") is None


# =============================================================================
# TEST: Dispatcher
# =============================================================================

class TestDispatcherHttp:
    """HTTP branch of the dispatcher."""

    def test_dispatch_to_handler(self, deps):
        event = HttpRequestEvent(method="GET", path="/task/task-2")
        result = make_dispatcher(deps).dispatch(event)
        assert result.status_code == 200
        assert json.loads(result.body)["params"] == {"id": "task-2"}
        print("✓ HTTP event dispatched with matched params")

    def test_unknown_route_is_404_result(self, deps):
        event = HttpRequestEvent(method="GET", path="/unknown", request_id="req-1")
        result = make_dispatcher(deps).dispatch(event)
        body = json.loads(result.body)
        assert result.status_code == 404
        assert body["errorReason"] == "NotFound"
        assert body["requestId"] == "req-1"
        assert body["details"]["availableRoutes"]
        print("✓ Unknown route returns 404")

    def test_wrong_method_is_405_result(self, deps):
        result = make_dispatcher(deps).dispatch(HttpRequestEvent(method="PATCH", path="/task"))
        assert result.status_code == 405
        assert json.loads(result.body)["details"]["allowedMethods"] == ["GET", "POST"]

    @pytest.mark.parametrize("body", [None, "", "   "])
    def test_missing_body_is_400(self, deps, body):
        result = make_dispatcher(deps).dispatch(HttpRequestEvent(method="POST", path="/task", body=body))
        assert result.status_code == 400
        assert json.loads(result.body)["errorReason"] == "MissingBody"

    def test_handler_errors_propagate(self, deps):
        def failing(event, d):
            raise HandlerError("Task not found", status_code=404, reason="TaskNotFound")

        routes = RouteTable()
        routes.add("/task/{id}", "GET", failing)
        with pytest.raises(HandlerError):
            make_dispatcher(deps, routes=routes).dispatch(HttpRequestEvent(method="GET", path="/task/x"))


class TestDispatcherQueue:
    """Queue branch of the dispatcher."""

    def test_batch_delegated_to_aggregator(self, deps):
        handler = MagicMock(side_effect=[None, RuntimeError("bad"), None])
        batch = QueueBatchEvent(items=tuple(QueueItem(id=i, body="{}") for i in ("a", "b", "c")))

        outcome = make_dispatcher(deps, queue_handler=handler).dispatch(batch)

        assert isinstance(outcome, BatchOutcome)
        assert outcome.failed_item_ids == ("b",)
        assert handler.call_count == 3
        handler.assert_any_call(batch.items[0], deps)
        print("✓ Queue batch dispatched per item")


class TestDispatcherBus:
    """Bus branch of the dispatcher."""

    def _event(self, kind):
        return BusEvent(kind=kind, id="e-1", source="aws.events", detail_type="Scheduled Event")

    def test_each_sub_kind_has_its_handler(self, deps):
        scheduled = MagicMock(return_value="OK")
        custom = MagicMock(return_value=BusResult(token="SKIPPED"))
        dispatcher = make_dispatcher(deps, bus_handlers={
            InvocationKind.BUS_EVENT_SCHEDULED: scheduled,
            InvocationKind.BUS_EVENT_CUSTOM: custom,
        })

        assert dispatcher.dispatch(self._event(InvocationKind.BUS_EVENT_SCHEDULED)) == BusResult(True, "OK")
        assert dispatcher.dispatch(self._event(InvocationKind.BUS_EVENT_CUSTOM)) == BusResult(True, "SKIPPED")
        scheduled.assert_called_once()
        custom.assert_called_once()
        print("✓ Bus sub-kinds dispatched to their own handlers")

    def test_failed_bus_result_raises(self, deps):
        dispatcher = make_dispatcher(deps, bus_handlers={
            InvocationKind.BUS_EVENT_SCHEDULED: lambda e, d: BusResult(ok=False, token="nope"),
            InvocationKind.BUS_EVENT_CUSTOM: lambda e, d: "OK",
        })
        with pytest.raises(HandlerError):
            dispatcher.dispatch(self._event(InvocationKind.BUS_EVENT_SCHEDULED))

    def test_missing_bus_handler_rejected_at_construction(self, deps):
        with pytest.raises(ValueError):
            make_dispatcher(deps, bus_handlers={InvocationKind.BUS_EVENT_SCHEDULED: lambda e, d: "OK"})
        print("✓ Missing bus handler rejected")

    def test_every_kind_has_a_branch(self):
        assert set(Dispatcher._DISPATCH) == set(InvocationKind)

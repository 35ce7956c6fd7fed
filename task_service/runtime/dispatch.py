# =============================================================================
# Dispatcher
# =============================================================================
# Routes a typed event to its handler:
#   HttpRequest   -> route table lookup by (path, method)
#   QueueBatch    -> BatchOutcomeAggregator over the per-item handler
#   BusEvent*     -> one handler per sub-kind
# Route tables and handlers are passed in; nothing is registered globally.
# =============================================================================

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple, Union

from task_service.runtime.batch import BatchOutcomeAggregator, RemainingTimeFunc
from task_service.runtime.deps import Deps
from task_service.runtime.envelope import (
    BatchOutcome,
    BusEvent,
    BusResult,
    HttpRequestEvent,
    HttpResult,
    InvocationKind,
    QueueBatchEvent,
    QueueItem,
    TypedEvent,
)
from task_service.runtime.errors import DeserializationError, HandlerError, RoutingError
from task_service.runtime.respond import http_error_result

logger = logging.getLogger(__name__)

# Type definitions
HttpHandler = Callable[[HttpRequestEvent, Deps], HttpResult]
QueueItemHandler = Callable[[QueueItem, Deps], Any]
BusHandler = Callable[[BusEvent, Deps], Union[str, BusResult]]

DispatchResult = Union[HttpResult, BusResult, BatchOutcome]

_TEMPLATE_PARAM = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)\+?\}$")


def _normalize_path(path: str) -> str:
    path = "/" + path.strip().strip("/")
    return path


def compile_template(pattern: str) -> Pattern:
    """Compile '/task/{id}' into a regex with one named group per parameter."""
    parts = []
    for segment in _normalize_path(pattern).strip("/").split("/"):
        param = _TEMPLATE_PARAM.match(segment)
        if param:
            parts.append(f"(?P<{param.group(1)}>[^/]+)")
        elif segment:
            parts.append(re.escape(segment))
    return re.compile("^/" + "/".join(parts) + "$")


@dataclass(frozen=True)
class Route:
    pattern: str
    method: str
    handler: HttpHandler
    requires_body: bool = False
    description: str = ""

    @property
    def is_template(self) -> bool:
        return "{" in self.pattern

    def describe(self) -> str:
        text = f"{self.method} {self.pattern}"
        return f"{text} - {self.description}" if self.description else text


class RouteTable:
    """
    Static (path-pattern, method) -> handler table.

    Usage:
        routes = RouteTable()

        @routes.route("/task/{id}", "PUT", requires_body=True, description="Update task")
        def handle_update_task(event, deps):
            ...
    """

    def __init__(self):
        self._routes: List[Route] = []
        self._compiled: Dict[str, Pattern] = {}

    def add(self, pattern: str, method: str, handler: HttpHandler,
            requires_body: bool = False, description: str = None) -> Route:
        method = method.upper()
        pattern = _normalize_path(pattern)
        for existing in self._routes:
            if existing.pattern == pattern and existing.method == method:
                raise ValueError(f"Duplicate route: {method} {pattern}")

        desc = description
        if not desc and handler.__doc__:
            desc = handler.__doc__.split("\n")[0].strip()

        route = Route(pattern, method, handler, requires_body, desc or "")
        self._routes.append(route)
        self._compiled.setdefault(pattern, compile_template(pattern))
        return route

    def route(self, pattern: str, method: str, requires_body: bool = False, description: str = None):
        """Decorator form of add()."""
        def decorator(func: HttpHandler) -> HttpHandler:
            self.add(pattern, method, func, requires_body, description)
            return func
        return decorator

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    def available_routes(self) -> List[str]:
        return [route.describe() for route in self._routes]

    def match(self, path: str, method: str) -> Tuple[Route, Dict[str, str]]:
        """
        Find the route for (path, method).

        Raises:
            RoutingError: NotFound when no pattern matches the path,
                MethodNotAllowed when patterns match but none for method
        """
        path = _normalize_path(path)
        method = method.upper()

        candidates: List[Tuple[Route, Dict[str, str]]] = []
        for route in self._routes:
            found = self._compiled[route.pattern].match(path)
            if found:
                candidates.append((route, found.groupdict()))

        if not candidates:
            raise RoutingError.not_found(method, path, self.available_routes())

        # Literal patterns win over templates
        candidates.sort(key=lambda c: c[0].is_template)
        for route, params in candidates:
            if route.method == method:
                return route, params

        allowed = list(dict.fromkeys(route.method for route, _ in candidates))
        raise RoutingError.method_not_allowed(method, path, allowed)

    def __len__(self) -> int:
        return len(self._routes)


class Dispatcher:
    """
    Routes typed events to their handlers.

    Args:
        deps: dependency container passed to every handler
        routes: HTTP route table
        queue_handler: per-item handler for queue batches; raise to fail an item
        bus_handlers: handler per bus sub-kind; both sub-kinds are required
        aggregator: batch driver, defaults to one built from deps.config
    """

    _DISPATCH = {
        InvocationKind.HTTP_REQUEST: "_dispatch_http",
        InvocationKind.QUEUE_BATCH: "_dispatch_queue_batch",
        InvocationKind.BUS_EVENT_SCHEDULED: "_dispatch_bus_event",
        InvocationKind.BUS_EVENT_CUSTOM: "_dispatch_bus_event",
    }

    def __init__(self, deps: Deps, routes: RouteTable, queue_handler: QueueItemHandler,
                 bus_handlers: Dict[InvocationKind, BusHandler],
                 aggregator: Optional[BatchOutcomeAggregator] = None):
        unhandled = set(InvocationKind) - set(self._DISPATCH)
        if unhandled:
            raise TypeError(f"Dispatcher has no branch for: {sorted(k.value for k in unhandled)}")

        missing_bus = {k for k in InvocationKind if k.is_bus_event} - set(bus_handlers)
        if missing_bus:
            raise ValueError(f"Missing bus handlers for: {sorted(k.value for k in missing_bus)}")

        self.deps = deps
        self.routes = routes
        self.queue_handler = queue_handler
        self.bus_handlers = dict(bus_handlers)
        self.aggregator = aggregator or BatchOutcomeAggregator(
            max_workers=deps.config.batch_max_workers,
            deadline_margin_ms=deps.config.batch_deadline_margin_ms,
        )

    def dispatch(self, event: TypedEvent, remaining_time_ms: Optional[RemainingTimeFunc] = None) -> DispatchResult:
        method_name = self._DISPATCH.get(event.kind)
        if method_name is None:
            raise DeserializationError("kind", f"Cannot dispatch invocation kind {event.kind!r}")
        return getattr(self, method_name)(event, remaining_time_ms)

    # -------------------------------------------------------------------------
    # Branches
    # -------------------------------------------------------------------------
    def _dispatch_http(self, event: HttpRequestEvent, remaining_time_ms=None) -> HttpResult:
        logger.info(f"Routing API request: method={event.method}, path={event.path}")
        try:
            route, params = self.routes.match(event.path, event.method)
            if route.requires_body and not event.has_body:
                raise RoutingError.missing_body(event.method, event.path)
        except RoutingError as e:
            logger.warning(f"Routing failed: {e.reason} for {event.method} {event.path}")
            return http_error_result(e, event.request_id)

        return route.handler(event.with_path_parameters(params), self.deps)

    def _dispatch_queue_batch(self, event: QueueBatchEvent, remaining_time_ms=None) -> BatchOutcome:
        logger.info(f"Handling SQS event with {len(event)} messages")

        def handle_item(item: QueueItem) -> Any:
            return self.queue_handler(item, self.deps)

        return self.aggregator.process(event.items, handle_item, event.rejected, remaining_time_ms)

    def _dispatch_bus_event(self, event: BusEvent, remaining_time_ms=None) -> BusResult:
        logger.info(f"Handling EventBridge event: kind={event.kind.value}, source={event.source}, "
                    f"detailType={event.detail_type}, id={event.id}")
        result = self.bus_handlers[event.kind](event, self.deps)
        if isinstance(result, BusResult):
            if not result.ok:
                raise HandlerError(result.token or "Bus event handler reported failure")
            return result
        return BusResult(ok=True, token=str(result) if result else "OK")

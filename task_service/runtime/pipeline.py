# =============================================================================
# Invocation Pipeline
# =============================================================================
# Received -> Classified -> Normalized -> Dispatched -> Responded
#          \____________\_____________\__> Rejected (structured error envelope)
#
# One Pipeline is built per process and reused; every call to run() works on
# its own Invocation record, so no state leaks between invocations.
# =============================================================================

import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, List, Mapping, Optional

from task_service.runtime.classify import InvocationClassifier
from task_service.runtime.deps import Deps
from task_service.runtime.dispatch import Dispatcher
from task_service.runtime.envelope import (
    HttpRequestEvent,
    InvocationKind,
    InvocationState,
    QueueBatchEvent,
    TypedEvent,
    has_field,
    pick,
)
from task_service.runtime.errors import FatalError, PipelineError, as_pipeline_error
from task_service.runtime.normalize import EventNormalizer
from task_service.runtime.respond import ProtocolResponse, ResponseAdapter, error_envelope

logger = logging.getLogger(__name__)


@dataclass
class Invocation:
    """Everything known about one invocation as it moves through the pipeline."""
    request_id: str
    state: InvocationState = InvocationState.RECEIVED
    kind: Optional[InvocationKind] = None
    event: Optional[TypedEvent] = None
    outcome: Any = None
    response: Optional[ProtocolResponse] = None
    error: Optional[PipelineError] = None
    history: List[InvocationState] = field(default_factory=lambda: [InvocationState.RECEIVED])

    def advance(self, state: InvocationState) -> None:
        logger.debug(f"requestId={self.request_id} state {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    @property
    def rejected(self) -> bool:
        return self.state == InvocationState.REJECTED


def resolve_request_id(raw: Any, context: Any = None) -> str:
    """Correlation id: API Gateway request id, then bus event id, then Lambda request id."""
    if isinstance(raw, Mapping):
        request_context = pick(raw, "requestContext")
        if isinstance(request_context, Mapping):
            request_id = pick(request_context, "requestId")
            if isinstance(request_id, str) and request_id:
                return request_id
        if has_field(raw, "detail-type"):
            event_id = pick(raw, "id")
            if isinstance(event_id, str) and event_id:
                return event_id
    aws_request_id = getattr(context, "aws_request_id", None)
    if isinstance(aws_request_id, str) and aws_request_id:
        return aws_request_id
    return str(uuid.uuid4())


class Pipeline:
    """
    Classification, normalization, dispatch and response for one payload.

    Args:
        deps: dependency container (configuration + collaborators)
        dispatcher: routes typed events to handlers
        classifier, normalizer, adapter: stage overrides, built from deps when omitted
    """

    def __init__(self, deps: Deps, dispatcher: Dispatcher,
                 classifier: InvocationClassifier = None,
                 normalizer: EventNormalizer = None,
                 adapter: ResponseAdapter = None):
        self.deps = deps
        self.dispatcher = dispatcher
        self.classifier = classifier or InvocationClassifier(
            deps.config.custom_source_prefix,
            deps.config.custom_detail_type_prefix,
        )
        self.normalizer = normalizer or EventNormalizer()
        self.adapter = adapter or ResponseAdapter()

    def handle(self, raw: Any, context: Any = None) -> ProtocolResponse:
        """Process raw and return the protocol response. Never raises."""
        return self.run(raw, context).response

    def run(self, raw: Any, context: Any = None) -> Invocation:
        invocation = Invocation(request_id=resolve_request_id(raw, context))
        logger.debug(f"requestId={invocation.request_id} raw event: {raw!r}")

        try:
            invocation.kind = self.classifier.classify(raw)
            invocation.advance(InvocationState.CLASSIFIED)
            logger.info(f"requestId={invocation.request_id} invocation type detected: {invocation.kind.value}")

            invocation.event = self.normalizer.normalize(invocation.kind, raw)
            if isinstance(invocation.event, HttpRequestEvent) and not invocation.event.request_id:
                invocation.event = replace(invocation.event, request_id=invocation.request_id)
            invocation.advance(InvocationState.NORMALIZED)

            remaining = getattr(context, "get_remaining_time_in_millis", None)
            invocation.outcome = self.dispatcher.dispatch(invocation.event, remaining)
            invocation.advance(InvocationState.DISPATCHED)

            invocation.response = self.adapter.adapt(invocation.kind, invocation.outcome)
            invocation.advance(InvocationState.RESPONDED)
            logger.info(f"requestId={invocation.request_id} invocation completed successfully")

        except PipelineError as e:
            logger.warning(f"requestId={invocation.request_id} rejected in state {invocation.state.value}: "
                           f"{e.error_type}/{e.reason}: {e.message}")
            self._reject(invocation, e)

        except Exception as e:
            logger.exception(f"requestId={invocation.request_id} unexpected failure in state "
                             f"{invocation.state.value}: {e}")
            self._reject(invocation, as_pipeline_error(e))

        return invocation

    def _reject(self, invocation: Invocation, error: PipelineError) -> None:
        invocation.error = error
        invocation.advance(InvocationState.REJECTED)

        item_ids = invocation.event.item_ids if isinstance(invocation.event, QueueBatchEvent) else ()
        try:
            invocation.response = self.adapter.adapt_error(
                invocation.kind, error, invocation.request_id, item_ids,
            )
        except Exception:
            logger.exception(f"requestId={invocation.request_id} failed to build error response")
            invocation.response = error_envelope(FatalError(), invocation.request_id)

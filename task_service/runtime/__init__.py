# =============================================================================
# Runtime Package - Multi-Source Invocation Pipeline
# =============================================================================
# Turns one raw Lambda payload into a protocol-correct response:
# - API Gateway (REST proxy) requests
# - SQS batches with partial batch failure reporting
# - EventBridge scheduled and custom events
# =============================================================================

from task_service.runtime.envelope import (
    BatchOutcome,
    BusEvent,
    BusResult,
    HttpRequestEvent,
    HttpResult,
    InvocationKind,
    InvocationState,
    QueueBatchEvent,
    QueueItem,
)
from task_service.runtime.errors import (
    ClassificationError,
    DeserializationError,
    FatalError,
    HandlerError,
    PipelineError,
    RoutingError,
)
from task_service.runtime.classify import InvocationClassifier, classify
from task_service.runtime.normalize import EventNormalizer, normalize
from task_service.runtime.batch import BatchOutcomeAggregator
from task_service.runtime.dispatch import Dispatcher, RouteTable
from task_service.runtime.respond import ResponseAdapter
from task_service.runtime.pipeline import Invocation, Pipeline
from task_service.runtime.deps import Config, Deps, create_deps, load_config

__all__ = [
    "BatchOutcome",
    "BusEvent",
    "BusResult",
    "HttpRequestEvent",
    "HttpResult",
    "InvocationKind",
    "InvocationState",
    "QueueBatchEvent",
    "QueueItem",
    "ClassificationError",
    "DeserializationError",
    "FatalError",
    "HandlerError",
    "PipelineError",
    "RoutingError",
    "InvocationClassifier",
    "classify",
    "EventNormalizer",
    "normalize",
    "BatchOutcomeAggregator",
    "Dispatcher",
    "RouteTable",
    "ResponseAdapter",
    "Invocation",
    "Pipeline",
    "Config",
    "Deps",
    "create_deps",
    "load_config",
]

# =============================================================================
# Unified Lambda Handler
# =============================================================================
# Single entry point for API Gateway, SQS and EventBridge invocations.
# The pipeline (and its collaborators) is built once per container and
# reused across warm invocations.
# =============================================================================

import logging
from typing import Any, Dict, Optional, Union

from handlers import bus_handlers, build_routes, handle_queue_item
from task_service.runtime.deps import Deps, create_deps
from task_service.runtime.dispatch import Dispatcher
from task_service.runtime.errors import FatalError
from task_service.runtime.pipeline import Pipeline, resolve_request_id
from task_service.runtime.respond import error_envelope

logger = logging.getLogger(__name__)

_pipeline: Optional[Pipeline] = None


def build_pipeline(deps: Deps = None) -> Pipeline:
    """Wire the default handlers into a new Pipeline."""
    deps = deps or create_deps()
    dispatcher = Dispatcher(
        deps=deps,
        routes=build_routes(),
        queue_handler=handle_queue_item,
        bus_handlers=bus_handlers(),
    )
    return Pipeline(deps, dispatcher)


def get_pipeline() -> Pipeline:
    """Get or create the process-wide Pipeline."""
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline()
        logging.getLogger().setLevel(_pipeline.deps.config.log_level)
        logger.info(f"Pipeline initialized: service={_pipeline.deps.config.service_name}, "
                    f"routes={len(_pipeline.dispatcher.routes)}")
    return _pipeline


def reset_pipeline() -> None:
    """Drop the cached Pipeline (tests, config reloads)."""
    global _pipeline
    _pipeline = None


def unified_handler(event: Any, context: Any) -> Union[Dict[str, Any], str]:
    """
    Lambda entry point.

    Args:
        event: raw invocation payload (API Gateway, SQS or EventBridge)
        context: Lambda context

    Returns:
        Protocol-shaped response; never raises
    """
    logger.info(
        "Lambda invoked: functionName=%s, requestId=%s, remainingTime=%sms",
        getattr(context, "function_name", "unknown"),
        getattr(context, "aws_request_id", "unknown"),
        _remaining_time(context),
    )
    try:
        pipeline = get_pipeline()
    except Exception as e:
        logger.exception(f"Pipeline initialization failed: {e}")
        return error_envelope(FatalError(e), resolve_request_id(event, context))
    return pipeline.handle(event, context)


def _remaining_time(context: Any) -> Any:
    get_remaining = getattr(context, "get_remaining_time_in_millis", None)
    if get_remaining is None:
        return 0
    try:
        return get_remaining()
    except Exception:
        logger.warning("Could not read remaining invocation time", exc_info=True)
        return "unknown"

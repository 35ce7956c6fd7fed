# =============================================================================
# EventBridge Handlers
# =============================================================================
# Scheduled events create a "scheduled event <id>" task.
# Custom events persist the task described by their detail payload.
# =============================================================================

import logging
from typing import Dict

from handlers.base import iso_now
from handlers.store import Task
from task_service.runtime.deps import Deps
from task_service.runtime.dispatch import BusHandler
from task_service.runtime.envelope import BusEvent, InvocationKind
from task_service.runtime.errors import HandlerError

logger = logging.getLogger(__name__)

OK = "OK"
SKIPPED = "SKIPPED"


def handle_scheduled_event(event: BusEvent, deps: Deps) -> str:
    """Create a task for each scheduled trigger."""
    logger.info(f"Processing scheduled event: id={event.id}")
    task = deps.store.save(Task.from_request({
        "name": f"scheduled event {event.id}",
        "description": f"Automatically created from EventBridge scheduled event at {iso_now()}",
    }))
    logger.info(f"Scheduled task created: id={task.id}, name={task.name}")
    return OK


def handle_custom_event(event: BusEvent, deps: Deps) -> str:
    """
    Persist the task carried in a custom event's detail.

    Detail should contain:
        {"name": "Task Name", "description": "...", "status": "TODO"}

    An empty detail is skipped, not failed.
    """
    logger.info(f"Processing custom event: detailType={event.detail_type}, id={event.id}")

    if not event.detail:
        logger.warning("Custom event has empty detail - skipping")
        return SKIPPED

    try:
        task = Task.from_request(event.detail)
    except HandlerError as e:
        logger.error(f"Validation failed for custom event {event.id}: {e.message}")
        raise HandlerError(f"Custom event detail invalid: {e.message}", status_code=400,
                           reason=e.reason, details=e.details)

    deps.store.save(task)
    logger.info(f"Custom event task created: id={task.id}, name={task.name}, detailType={event.detail_type}")
    return OK


def bus_handlers() -> Dict[InvocationKind, BusHandler]:
    return {
        InvocationKind.BUS_EVENT_SCHEDULED: handle_scheduled_event,
        InvocationKind.BUS_EVENT_CUSTOM: handle_custom_event,
    }

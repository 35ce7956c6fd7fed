# =============================================================================
# SQS Message Handler
# =============================================================================
# Handles one queue message: the body is a task request
# ({"name": ..., "description": ..., "status": ...}). Raising marks the
# message as a batch item failure; siblings are unaffected.
# =============================================================================

import logging

from handlers.base import parse_json_object, truncate
from handlers.store import Task
from task_service.runtime.deps import Deps
from task_service.runtime.envelope import QueueItem

logger = logging.getLogger(__name__)


def handle_queue_item(item: QueueItem, deps: Deps) -> Task:
    """Create a task from one SQS message body."""
    logger.info(f"Processing message: messageId={item.id}")
    logger.debug(f"Message body: {truncate(item.body)}")

    task = Task.from_request(parse_json_object(item.body, what="Message body"))
    deps.store.save(task)

    logger.info(f"Task created successfully: id={task.id}, name={task.name} (messageId={item.id})")
    return task

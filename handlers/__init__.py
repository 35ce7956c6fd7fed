# =============================================================================
# Task Service Handlers
# =============================================================================
# Collaborators called by the runtime dispatcher.
#
#   handlers/
#   ├── base.py           # JSON codec, response + validation helpers
#   ├── store.py          # In-memory task store (CRUD)
#   ├── tasks.py          # API Gateway handlers + route table
#   ├── queue.py          # SQS per-message handler
#   ├── events.py         # EventBridge scheduled/custom handlers
#   └── external_api.py   # Bearer-token outbound HTTP client
# =============================================================================

from handlers.events import bus_handlers, handle_custom_event, handle_scheduled_event
from handlers.queue import handle_queue_item
from handlers.store import Task, TaskStatus, TaskStore
from handlers.tasks import build_routes

__all__ = [
    "bus_handlers",
    "handle_custom_event",
    "handle_scheduled_event",
    "handle_queue_item",
    "Task",
    "TaskStatus",
    "TaskStore",
    "build_routes",
]

# =============================================================================
# Task API Handlers
# =============================================================================
# HTTP handlers behind API Gateway:
#   GET    /ping        health check
#   GET    /task        list tasks
#   POST   /task        create task
#   GET    /task/{id}   get task
#   PUT    /task/{id}   update task
#   DELETE /task/{id}   delete task
#   GET    /external    call the external API with a bearer token
# =============================================================================

import logging

from handlers.base import parse_json_object, success_response, truncate
from handlers.external_api import ExternalApiError
from handlers.store import Task
from task_service.runtime.deps import Deps
from task_service.runtime.dispatch import RouteTable
from task_service.runtime.envelope import HttpRequestEvent, HttpResult
from task_service.runtime.errors import HandlerError
from task_service.runtime.respond import json_headers

logger = logging.getLogger(__name__)


def _task_id(event: HttpRequestEvent) -> str:
    task_id = (event.path_parameters.get("id") or "").strip()
    if not task_id:
        raise HandlerError("Task ID is required", status_code=400, reason="ValidationError")
    return task_id


def _not_found(task_id: str) -> HandlerError:
    return HandlerError(f"Task not found: {task_id}", status_code=404, reason="TaskNotFound",
                        details={"id": task_id})


def handle_ping(event: HttpRequestEvent, deps: Deps) -> HttpResult:
    """Health check."""
    logger.info("Processing GET /ping health check")
    return success_response(deps, event.request_id, "GET /ping successfully invoked", status="healthy")


def handle_list_tasks(event: HttpRequestEvent, deps: Deps) -> HttpResult:
    """Get all tasks."""
    tasks = deps.store.list()
    logger.info(f"Retrieved {len(tasks)} tasks from store")
    return success_response(deps, event.request_id, "GET /task successfully invoked",
                            count=len(tasks), data=[t.to_dict() for t in tasks])


def handle_create_task(event: HttpRequestEvent, deps: Deps) -> HttpResult:
    """Create new task."""
    logger.debug(f"Request body: {truncate(event.body)}")
    task = deps.store.save(Task.from_request(parse_json_object(event.body)))
    logger.info(f"Created new task with ID: {task.id}, name: {task.name}")
    return success_response(deps, event.request_id, "POST /task successfully invoked",
                            status_code=201, data=task.to_dict())


def handle_get_task(event: HttpRequestEvent, deps: Deps) -> HttpResult:
    """Get task by ID."""
    task_id = _task_id(event)
    task = deps.store.get(task_id)
    if task is None:
        logger.warning(f"Task not found: {task_id}")
        raise _not_found(task_id)
    return success_response(deps, event.request_id, f"GET /task/{task_id} successfully invoked",
                            data=task.to_dict())


def handle_update_task(event: HttpRequestEvent, deps: Deps) -> HttpResult:
    """Update task."""
    task_id = _task_id(event)
    changes = parse_json_object(event.body)

    existing = deps.store.get(task_id)
    if existing is None:
        raise _not_found(task_id)

    task = deps.store.save(existing.updated_from(changes))
    logger.info(f"Updated task: {task.id} ({task.name})")
    return success_response(deps, event.request_id, f"PUT /task/{task_id} successfully invoked",
                            data=task.to_dict())


def handle_delete_task(event: HttpRequestEvent, deps: Deps) -> HttpResult:
    """Delete task by ID."""
    task_id = _task_id(event)
    task = deps.store.delete(task_id)
    if task is None:
        logger.warning(f"Task not found for deletion: {task_id}")
        raise _not_found(task_id)
    logger.info(f"Deleted task: {task.name} (ID: {task_id})")
    return success_response(deps, event.request_id, f"DELETE /task/{task_id} successfully invoked",
                            data=task.to_dict())


def handle_external(event: HttpRequestEvent, deps: Deps) -> HttpResult:
    """Call the external API."""
    if not deps.config.external_api_configured:
        raise HandlerError("External API is not configured", status_code=503, reason="NotConfigured")

    try:
        body = deps.external_api.call()
    except ExternalApiError as e:
        logger.error(f"External API error: {e}")
        raise HandlerError(f"External API error: {e}", status_code=502, reason="ExternalApiError")

    return HttpResult(status_code=200, headers=json_headers(), body=body)


def build_routes() -> RouteTable:
    """Route table for the task API."""
    routes = RouteTable()
    routes.add("/ping", "GET", handle_ping, description="Health check")
    routes.add("/task", "GET", handle_list_tasks, description="Get all tasks")
    routes.add("/task", "POST", handle_create_task, requires_body=True, description="Create new task")
    routes.add("/task/{id}", "GET", handle_get_task, description="Get task by ID")
    routes.add("/task/{id}", "PUT", handle_update_task, requires_body=True, description="Update task")
    routes.add("/task/{id}", "DELETE", handle_delete_task, description="Delete task")
    routes.add("/external", "GET", handle_external, description="Call external API")
    return routes

"""Task lifecycle endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from task_market_service.core.state import get_app_state
from task_market_service.core.timeouts import run_with_timeout
from task_market_service.routers.validation import (
    ACTOR_HEADER,
    extract_actor_id,
    optional_string,
    parse_json_body,
    parse_query_int,
    require_string,
)
from task_market_service.schemas import TaskHistoryResponse, TaskListResponse, TaskResponse

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from task_market_service.models import Task
    from task_market_service.services.task_manager import TaskManager

router = APIRouter()


async def _run_on_task(
    task_id: str,
    name: str,
    action: Callable[[TaskManager, Task], Awaitable[Task]],
) -> dict[str, Any]:
    """Load the task, apply ``action`` to it under the operation time budget."""
    state = get_app_state()
    manager = state.require_task_manager()

    async def load_and_apply() -> Task:
        task = await manager.get_task(task_id)
        return await action(manager, task)

    updated = await run_with_timeout(load_and_apply(), state.operation_timeout_seconds, name)
    return updated.to_dict()


# ---------------------------------------------------------------------------
# POST /tasks: create task (MUST be before GET /tasks/{task_id})
# ---------------------------------------------------------------------------


@router.post("/tasks", status_code=201)
async def create_task(request: Request) -> JSONResponse:
    """Create a new OPEN task owned by the caller."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    data = parse_json_body(await request.body())

    state = get_app_state()
    manager = state.require_task_manager()
    task = await run_with_timeout(
        manager.create_task(actor_id, data), state.operation_timeout_seconds, "create_task"
    )
    return JSONResponse(status_code=201, content=task.to_dict())


# ---------------------------------------------------------------------------
# GET /tasks: list tasks (MUST be before GET /tasks/{task_id})
# ---------------------------------------------------------------------------


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(request: Request) -> dict[str, Any]:
    """List tasks with optional filters."""
    params = request.query_params
    offset = parse_query_int(params.get("offset"), "offset", minimum=0)
    limit = parse_query_int(params.get("limit"), "limit", minimum=1)

    manager = get_app_state().require_task_manager()
    tasks = await manager.list_tasks(
        status=params.get("status"),
        owner_id=params.get("owner_id"),
        assignee_id=params.get("assignee_id"),
        limit=limit,
        offset=offset,
    )
    return {"tasks": [task.to_dict() for task in tasks]}


# ---------------------------------------------------------------------------
# Lifecycle actions
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/assign")
async def assign_task(task_id: str, request: Request) -> dict[str, Any]:
    """Assign an OPEN task to a user directly."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    data = parse_json_body(await request.body())
    assignee_id = require_string(data, "assignee_id")

    return await _run_on_task(
        task_id,
        "assign_task",
        lambda manager, task: manager.assign_task(task, assignee_id, actor_id),
    )


@router.post("/tasks/{task_id}/transition")
async def request_transition(task_id: str, request: Request) -> dict[str, Any]:
    """Move a task to another status on behalf of its owner or assignee."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    data = parse_json_body(await request.body())
    target = require_string(data, "status")
    notes = optional_string(data, "notes")

    return await _run_on_task(
        task_id,
        "request_transition",
        lambda manager, task: manager.request_transition(task, target, actor_id, notes),
    )


@router.post("/tasks/{task_id}/complete")
async def complete_task(task_id: str, request: Request) -> dict[str, Any]:
    """Mark an IN_PROGRESS task completed."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    return await _run_on_task(
        task_id,
        "complete_task",
        lambda manager, task: manager.complete_task(task, actor_id),
    )


@router.post("/tasks/{task_id}/cancel")
async def cancel_task(task_id: str, request: Request) -> dict[str, Any]:
    """Cancel an OPEN or IN_PROGRESS task."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    return await _run_on_task(
        task_id,
        "cancel_task",
        lambda manager, task: manager.cancel_task(task, actor_id),
    )


@router.get("/tasks/{task_id}/history", response_model=TaskHistoryResponse)
async def get_task_history(task_id: str) -> dict[str, Any]:
    """Return the status history of a task."""
    manager = get_app_state().require_task_manager()
    events = await manager.get_task_history(task_id)
    return {"task_id": task_id, "events": [event.to_dict() for event in events]}


# ---------------------------------------------------------------------------
# /tasks/{task_id}: MUST be LAST (parameterized catch-all)
# ---------------------------------------------------------------------------


@router.patch("/tasks/{task_id}")
async def update_task(task_id: str, request: Request) -> dict[str, Any]:
    """Edit an OPEN task."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))
    data = parse_json_body(await request.body())

    return await _run_on_task(
        task_id,
        "update_task",
        lambda manager, task: manager.update_task(task, actor_id, data),
    )


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(task_id: str, request: Request) -> Response:
    """Delete an OPEN task."""
    actor_id = extract_actor_id(request.headers.get(ACTOR_HEADER))

    state = get_app_state()
    manager = state.require_task_manager()

    async def load_and_delete() -> None:
        task = await manager.get_task(task_id)
        await manager.delete_task(task, actor_id)

    await run_with_timeout(load_and_delete(), state.operation_timeout_seconds, "delete_task")
    return Response(status_code=204)


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str) -> dict[str, Any]:
    """Get full task details."""
    manager = get_app_state().require_task_manager()
    task = await manager.get_task(task_id)
    return task.to_dict()

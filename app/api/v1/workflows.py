from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_registry, get_request_context
from app.core.context import RequestContext
from app.models import PUBLISHED, TRASHED, UNPUBLISHED
from app.schemas.workflow import (
    BatchResult,
    StateSchema,
    TransitionPayload,
    WorkflowIds,
    WorkflowList,
    WorkflowPayload,
    WorkflowSchema,
)
from app.services.workflow_registry import WorkflowRegistry

router = APIRouter()


def _reject(registry: WorkflowRegistry) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=registry.error_messages or ["Request failed"],
    )


def _require_item(registry: WorkflowRegistry, workflow_id: int, ctx: RequestContext | None = None) -> dict:
    item = registry.get_item(workflow_id)
    if item is None or (ctx is not None and item["extension"] != ctx.extension):
        raise HTTPException(status_code=404, detail="Workflow not found")
    return item


@router.get("/", response_model=WorkflowList)
async def get_workflows(
    published: int | None = Query(default=None),
    search: str | None = Query(default=None, max_length=255),
    ordering: str = Query(default="a.title"),
    direction: str = Query(default="asc"),
    limit: int | None = Query(default=None, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    ctx: RequestContext = Depends(get_request_context),
    registry: WorkflowRegistry = Depends(get_registry),
):
    return registry.list_workflows(
        ctx,
        published=published,
        search=search,
        ordering=ordering,
        direction=direction,
        limit=limit,
        offset=offset,
    )


@router.get("/actions")
async def workflow_actions(
    published: int | None = Query(default=None),
    ctx: RequestContext = Depends(get_request_context),
    registry: WorkflowRegistry = Depends(get_registry),
):
    return {"extension": ctx.extension, "actions": registry.available_actions(published)}


@router.post("/", response_model=WorkflowSchema, status_code=status.HTTP_201_CREATED)
async def post_workflow(
    payload: WorkflowPayload,
    ctx: RequestContext = Depends(get_request_context),
    registry: WorkflowRegistry = Depends(get_registry),
):
    if not registry.save(ctx, payload.model_dump()):
        raise _reject(registry)
    return _require_item(registry, registry.saved_id)


@router.post("/publish", response_model=BatchResult)
async def publish_workflows(
    payload: WorkflowIds,
    ctx: RequestContext = Depends(get_request_context),
    registry: WorkflowRegistry = Depends(get_registry),
):
    ids = list(payload.ids)
    success = registry.publish(ctx, ids, PUBLISHED)
    return BatchResult(success=success, ids=ids, errors=registry.error_messages)


@router.post("/unpublish", response_model=BatchResult)
async def unpublish_workflows(
    payload: WorkflowIds,
    ctx: RequestContext = Depends(get_request_context),
    registry: WorkflowRegistry = Depends(get_registry),
):
    ids = list(payload.ids)
    success = registry.publish(ctx, ids, UNPUBLISHED)
    return BatchResult(success=success, ids=ids, errors=registry.error_messages)


@router.post("/trash", response_model=BatchResult)
async def trash_workflows(
    payload: WorkflowIds,
    ctx: RequestContext = Depends(get_request_context),
    registry: WorkflowRegistry = Depends(get_registry),
):
    ids = list(payload.ids)
    success = registry.publish(ctx, ids, TRASHED)
    return BatchResult(success=success, ids=ids, errors=registry.error_messages)


@router.post("/delete", response_model=BatchResult)
async def delete_workflows(
    payload: WorkflowIds,
    ctx: RequestContext = Depends(get_request_context),
    registry: WorkflowRegistry = Depends(get_registry),
):
    ids = list(payload.ids)
    success = registry.delete(ctx, ids)
    return BatchResult(success=success, ids=ids, errors=registry.error_messages)


@router.get("/{workflow_id}", response_model=WorkflowSchema)
async def workflow_detail(
    workflow_id: int,
    registry: WorkflowRegistry = Depends(get_registry),
):
    return _require_item(registry, workflow_id)


@router.put("/{workflow_id}", response_model=WorkflowSchema)
async def put_workflow(
    workflow_id: int,
    payload: WorkflowPayload,
    ctx: RequestContext = Depends(get_request_context),
    registry: WorkflowRegistry = Depends(get_registry),
):
    _require_item(registry, workflow_id, ctx)
    data = payload.model_dump()
    data["id"] = workflow_id
    if not registry.save(ctx, data):
        raise _reject(registry)
    return _require_item(registry, workflow_id)


@router.post("/{workflow_id}/default", response_model=WorkflowSchema)
async def make_default(
    workflow_id: int,
    ctx: RequestContext = Depends(get_request_context),
    registry: WorkflowRegistry = Depends(get_registry),
):
    _require_item(registry, workflow_id)
    if not registry.set_home(ctx, workflow_id, True):
        raise _reject(registry)
    return _require_item(registry, workflow_id)


@router.get("/{workflow_id}/states", response_model=list[StateSchema])
async def workflow_states(
    workflow_id: int,
    registry: WorkflowRegistry = Depends(get_registry),
):
    _require_item(registry, workflow_id)
    return registry.states_for_workflow(workflow_id)


@router.post("/{workflow_id}/transitions", status_code=status.HTTP_201_CREATED)
async def post_transition(
    workflow_id: int,
    payload: TransitionPayload,
    ctx: RequestContext = Depends(get_request_context),
    registry: WorkflowRegistry = Depends(get_registry),
):
    _require_item(registry, workflow_id)
    data = payload.model_dump()
    data["workflow_id"] = workflow_id
    if not registry.save_transition(ctx, data):
        raise _reject(registry)
    return {"success": True, "id": registry.saved_id, "workflow_id": workflow_id}

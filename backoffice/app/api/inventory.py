"""Inventory table endpoints: listing, CRUD and bulk deletion."""

import json
from typing import Any, Dict, List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status
from pydantic import ValidationError

from backoffice.app.api.activity import record_activity, summarize
from backoffice.app.api.deps import get_activity_log, get_inventory_manager
from backoffice.app.models.inventory import BulkDeleteRequest, ListPage, ListQuery
from backoffice.app.services.inventory import (
    InventoryManager,
    UnknownEntityError,
    UnknownFilterError,
    get_entity_spec,
)
from backoffice.app.services.supabase_client import SupabaseAPIError

router = APIRouter(prefix="/api/inventory", tags=["inventory"])

LIST_PARAMS = {"search", "sort_by", "sort_desc", "page", "page_size", "filters"}


def _label(entity: str) -> str:
    try:
        return get_entity_spec(entity).label
    except UnknownEntityError:
        return entity


def _fail(
    activity_log: List[Dict[str, Any]],
    exc: Exception,
    *,
    action: str,
    verb: str,
    entity: str,
    method: str,
    endpoint: str,
    payload: Optional[Dict[str, Any]] = None,
) -> NoReturn:
    """Record a failed call and raise the matching HTTP error."""
    if isinstance(exc, SupabaseAPIError):
        response: Dict[str, Any] = {"status_code": exc.status_code, "payload": exc.payload}
        code = status.HTTP_404_NOT_FOUND if exc.status_code == 404 else status.HTTP_400_BAD_REQUEST
        detail: Any = f"Failed to {verb} {_label(entity)}: {exc.message}"
    elif isinstance(exc, UnknownEntityError):
        response = {"error": f"unknown entity {entity}"}
        code = status.HTTP_404_NOT_FOUND
        detail = f"Unknown inventory entity '{entity}'"
    elif isinstance(exc, UnknownFilterError):
        response = {"error": str(exc)}
        code = status.HTTP_400_BAD_REQUEST
        detail = str(exc)
    elif isinstance(exc, ValidationError):
        response = {"error": exc.errors(include_url=False, include_context=False)}
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
        detail = response["error"]
    else:
        response = {"error": str(exc)}
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
        detail = f"Unexpected error while trying to {verb} {_label(entity)}"

    record_activity(
        activity_log,
        action=action,
        method=method,
        endpoint=endpoint,
        payload=payload,
        status="error",
        response=response,
    )
    raise HTTPException(status_code=code, detail=detail) from exc


def _list_query(request: Request, search, sort_by, sort_desc, page, page_size, filters) -> ListQuery:
    values: Dict[str, Any] = {}
    if filters:
        try:
            decoded = json.loads(filters)
        except json.JSONDecodeError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="filters must be a JSON object",
            ) from exc
        if not isinstance(decoded, dict):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="filters must be a JSON object",
            )
        values.update(decoded)
    for key, value in request.query_params.items():
        if key not in LIST_PARAMS:
            values[key] = value
    return ListQuery(
        filters=values,
        search=search,
        sort_by=sort_by,
        sort_desc=sort_desc,
        page=page,
        page_size=page_size,
    )


@router.get("/{entity}", response_model=ListPage)
async def list_items(
    request: Request,
    entity: str = Path(...),
    search: Optional[str] = Query(default=None),
    sort_by: Optional[str] = Query(default=None),
    sort_desc: bool = Query(default=False),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1, le=500),
    filters: Optional[str] = Query(default=None, description="JSON object of filter values"),
    manager: InventoryManager = Depends(get_inventory_manager),
    activity_log=Depends(get_activity_log),
) -> ListPage:
    """List an inventory table. Unknown query parameters are treated as filters."""
    query = _list_query(request, search, sort_by, sort_desc, page, page_size, filters)
    endpoint = f"/inventory/{entity}"
    try:
        result = await manager.list(entity, query)
    except Exception as exc:  # noqa: BLE001
        _fail(
            activity_log,
            exc,
            action="inventory.list",
            verb="fetch",
            entity=entity,
            method="GET",
            endpoint=endpoint,
            payload=query.model_dump(),
        )

    record_activity(
        activity_log,
        action="inventory.list",
        method="GET",
        endpoint=endpoint,
        payload=query.model_dump(),
        response={"total": result.total},
    )
    return result


@router.get("/{entity}/{record_id}")
async def get_item(
    entity: str = Path(...),
    record_id: str = Path(...),
    manager: InventoryManager = Depends(get_inventory_manager),
    activity_log=Depends(get_activity_log),
) -> Dict[str, Any]:
    endpoint = f"/inventory/{entity}/{record_id}"
    try:
        row = await manager.get(entity, record_id)
    except Exception as exc:  # noqa: BLE001
        _fail(
            activity_log,
            exc,
            action="inventory.get",
            verb="fetch",
            entity=entity,
            method="GET",
            endpoint=endpoint,
        )

    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{_label(entity).capitalize()} not found",
        )
    record_activity(
        activity_log,
        action="inventory.get",
        method="GET",
        endpoint=endpoint,
        response=summarize(row),
    )
    return row


@router.post("/{entity}", status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: Dict[str, Any],
    entity: str = Path(...),
    manager: InventoryManager = Depends(get_inventory_manager),
    activity_log=Depends(get_activity_log),
) -> Dict[str, Any]:
    endpoint = f"/inventory/{entity}"
    try:
        row = await manager.create(entity, payload)
    except Exception as exc:  # noqa: BLE001
        _fail(
            activity_log,
            exc,
            action="inventory.create",
            verb="create",
            entity=entity,
            method="POST",
            endpoint=endpoint,
            payload=payload,
        )

    record_activity(
        activity_log,
        action="inventory.create",
        method="POST",
        endpoint=endpoint,
        payload=payload,
        response=summarize(row),
    )
    return row


@router.put("/{entity}/{record_id}")
async def update_item(
    payload: Dict[str, Any],
    entity: str = Path(...),
    record_id: str = Path(...),
    manager: InventoryManager = Depends(get_inventory_manager),
    activity_log=Depends(get_activity_log),
) -> Dict[str, Any]:
    endpoint = f"/inventory/{entity}/{record_id}"
    try:
        row = await manager.update(entity, record_id, payload)
    except Exception as exc:  # noqa: BLE001
        _fail(
            activity_log,
            exc,
            action="inventory.update",
            verb="update",
            entity=entity,
            method="PUT",
            endpoint=endpoint,
            payload=payload,
        )

    record_activity(
        activity_log,
        action="inventory.update",
        method="PUT",
        endpoint=endpoint,
        payload=payload,
        response=summarize(row),
    )
    return row


@router.delete("/{entity}/{record_id}")
async def delete_item(
    entity: str = Path(...),
    record_id: str = Path(...),
    manager: InventoryManager = Depends(get_inventory_manager),
    activity_log=Depends(get_activity_log),
) -> Dict[str, Any]:
    endpoint = f"/inventory/{entity}/{record_id}"
    try:
        await manager.delete(entity, record_id)
    except Exception as exc:  # noqa: BLE001
        _fail(
            activity_log,
            exc,
            action="inventory.delete",
            verb="delete",
            entity=entity,
            method="DELETE",
            endpoint=endpoint,
        )

    record_activity(
        activity_log,
        action="inventory.delete",
        method="DELETE",
        endpoint=endpoint,
        response={"id": record_id},
    )
    return {"status": "deleted", "id": record_id}


@router.post("/{entity}/bulk-delete")
async def bulk_delete_items(
    payload: BulkDeleteRequest,
    entity: str = Path(...),
    manager: InventoryManager = Depends(get_inventory_manager),
    activity_log=Depends(get_activity_log),
) -> Dict[str, Any]:
    """Delete several rows; rows removed before a failure stay removed."""
    endpoint = f"/inventory/{entity}/bulk-delete"
    body = payload.model_dump()
    try:
        deleted = await manager.bulk_delete(entity, payload.ids)
    except Exception as exc:  # noqa: BLE001
        _fail(
            activity_log,
            exc,
            action="inventory.bulk_delete",
            verb="delete",
            entity=entity,
            method="POST",
            endpoint=endpoint,
            payload=body,
        )

    record_activity(
        activity_log,
        action="inventory.bulk_delete",
        method="POST",
        endpoint=endpoint,
        payload=body,
        response={"deleted": deleted},
    )
    return {"status": "deleted", "deleted": deleted}

"""Shared API dependencies: auth, request context and the workflow registry."""
from __future__ import annotations

from typing import Any

from fastapi import Depends, Query
from sqlalchemy.orm import Session

from app.config import settings
from app.core.context import RequestContext
from app.core.security import get_current_user
from app.database import get_db
from app.services.record_store import RecordStore
from app.services.workflow_registry import WorkflowRegistry


def get_request_context(
    extension: str | None = Query(default=None, max_length=50),
    user: dict[str, Any] = Depends(get_current_user),
) -> RequestContext:
    scope = (extension or "").strip() or settings.workflow_default_extension
    return RequestContext(actor_id=int(user["id"]), extension=scope)


def get_registry(db: Session = Depends(get_db)) -> WorkflowRegistry:
    return WorkflowRegistry(RecordStore(db))


__all__ = ["get_current_user", "get_registry", "get_request_context"]

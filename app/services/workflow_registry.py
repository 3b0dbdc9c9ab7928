"""
Workflow registry: create/update workflow definitions and keep exactly one
published default workflow per extension.

Business-rule violations never raise. They are collected on ``errors`` and the
operation returns False, leaving the database untouched.
"""
from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Any, Callable

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.core.context import RequestContext
from app.core.exceptions import ValidationError
from app.models import PUBLISH_STATES, PUBLISHED, TRASHED, Workflow, WorkflowState, WorkflowTransition
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

ITEM_MUST_BE_PUBLISHED = "The default workflow must be published."
DISABLE_DEFAULT = "You cannot disable the default workflow. Set another workflow as default first."
WORKFLOW_NOT_FOUND = "Workflow not found."
NOT_DELETABLE = "Workflow cannot be deleted. Only trashed workflows can be deleted."
STATE_NOT_IN_WORKFLOW = "The selected state does not belong to this workflow."
INITIAL_STATE_TITLE = "Published"

SORT_FIELDS = {
    "a.published": Workflow.published,
    "a.title": func.lower(Workflow.title),
    "a.id": Workflow.id,
}


def _is_set(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _as_int(value: Any, fallback: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def serialize_workflow(row: Workflow) -> dict[str, Any]:
    return {
        "id": row.id,
        "extension": row.extension,
        "title": row.title,
        "description": row.description or "",
        "published": row.published,
        "default": bool(row.default),
        "created": row.created.isoformat() if row.created else None,
        "created_by": row.created_by,
        "modified": row.modified.isoformat() if row.modified else None,
        "modified_by": row.modified_by,
    }


def serialize_state(row: WorkflowState) -> dict[str, Any]:
    return {
        "id": row.id,
        "workflow_id": row.workflow_id,
        "title": row.title,
        "description": row.description or "",
        "published": row.published,
        "condition": row.condition,
        "default": bool(row.default),
    }


class ListingCache:
    """
    Bounded LRU of workflow listings with a per-entry TTL.

    Writes drop the entries of their extension; the TTL bounds how long a
    listing cached by another worker process can stay stale.
    """

    def __init__(
        self,
        max_entries: int | None = None,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_entries = settings.workflow_list_cache_size if max_entries is None else max_entries
        self.ttl_seconds = settings.workflow_list_cache_ttl if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[tuple, tuple[float, dict[str, Any]]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, extension: str, key: tuple) -> dict[str, Any] | None:
        entry = self._entries.get((extension, key))
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= self._clock():
            self._entries.pop((extension, key), None)
            return None
        self._entries.move_to_end((extension, key))
        return value

    def set(self, extension: str, key: tuple, value: dict[str, Any]) -> None:
        if self.max_entries <= 0:
            return
        self._entries[(extension, key)] = (self._clock() + self.ttl_seconds, value)
        self._entries.move_to_end((extension, key))
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clean(self, extension: str | None = None) -> None:
        if extension is None:
            self._entries.clear()
            return
        for cache_key in [cache_key for cache_key in self._entries if cache_key[0] == extension]:
            del self._entries[cache_key]


listing_cache = ListingCache()


class WorkflowRegistry:
    """Rule engine over the workflow tables of one request."""

    def __init__(
        self,
        store: RecordStore,
        cache: ListingCache | None = None,
        set_home_strict: bool | None = None,
        create_initial_state: bool | None = None,
    ):
        self.store = store
        self.cache = cache if cache is not None else listing_cache
        self.set_home_strict = (
            settings.workflow_set_home_strict if set_home_strict is None else set_home_strict
        )
        self.create_initial_state = (
            settings.workflow_create_initial_state
            if create_initial_state is None
            else create_initial_state
        )
        self.errors: list[ValidationError] = []
        self.saved_id: int | None = None
        self.is_new = False

    # -- error bookkeeping ---------------------------------------------------

    @property
    def error_messages(self) -> list[str]:
        return [error.message for error in self.errors]

    def get_error(self) -> str | None:
        return self.errors[-1].message if self.errors else None

    def _error(self, message: str) -> None:
        logger.warning("Workflow validation failed: %s", message)
        self.errors.append(ValidationError(message))

    def _fail(self, message: str) -> bool:
        self._error(message)
        self.store.rollback()
        return False

    def _commit(self) -> None:
        try:
            self.store.commit()
        except SQLAlchemyError:
            logger.exception("Workflow transaction failed")
            self.store.rollback()
            raise

    def clean_cache(self, extension: str | None = None) -> None:
        self.cache.clean(extension)

    # -- operations ----------------------------------------------------------

    def save(self, ctx: RequestContext, data: dict[str, Any]) -> bool:
        """
        Create or update a workflow from ``data``.

        ``data`` is stamped in place with extension/actor/timestamp fields. A
        rejected attempt to clear the only default leaves ``data["default"]``
        forced back to True.
        """
        extension = ctx.current_extension()
        data["extension"] = extension
        data["asset_id"] = 0
        data["modified_by"] = ctx.current_actor_id()

        pk = _as_int(data.get("id")) or None
        data["id"] = pk
        if pk:
            data["modified"] = ctx.now()
        else:
            data["created_by"] = ctx.current_actor_id()

        data["published"] = _as_int(data.get("published"), PUBLISHED)
        self.saved_id = None
        self.is_new = pk is None

        try:
            if pk:
                # Updates never move a workflow to another extension.
                existing = self.store.load(Workflow, id=pk)
                if existing is None or existing.extension != extension:
                    return self._fail(WORKFLOW_NOT_FOUND)

            if _is_set(data.get("default")):
                data["default"] = True
                if data["published"] != PUBLISHED:
                    return self._fail(ITEM_MUST_BE_PUBLISHED)

                current = self.store.load_default(extension, for_update=True)
                if current is not None and current.id != pk:
                    current.default = False
                    self.store.store(current)
            else:
                current = self.store.load_default(extension)
                if current is None or current.id == pk:
                    data["default"] = True
                    return self._fail(DISABLE_DEFAULT)
                data["default"] = False

            record = self.store.save(Workflow, data)
            if record is None:
                return self._fail(WORKFLOW_NOT_FOUND)

            if self.is_new and self.create_initial_state:
                self.store.store(
                    WorkflowState(
                        workflow_id=record.id,
                        title=INITIAL_STATE_TITLE,
                        description="",
                        published=PUBLISHED,
                        condition=PUBLISHED,
                        default=True,
                    )
                )
            self.saved_id = record.id
        except SQLAlchemyError:
            logger.exception("Saving workflow failed")
            self.store.rollback()
            raise

        self._commit()
        self.clean_cache(extension)
        logger.info("Workflow %s %s", self.saved_id, "created" if self.is_new else "updated")
        return True

    def set_home(self, ctx: RequestContext, pk: int, value: bool = True) -> bool:
        """Make ``pk`` the default workflow of its extension (or clear its flag)."""
        record = self.store.load(Workflow, id=pk)
        if record is None:
            return self._fail(WORKFLOW_NOT_FOUND)

        if record.published != PUBLISHED:
            self._error(ITEM_MUST_BE_PUBLISHED)
            if self.set_home_strict:
                self.store.rollback()
                return False

        if not value and record.default and self.set_home_strict:
            return self._fail(DISABLE_DEFAULT)

        extension = record.extension
        now = ctx.now()
        try:
            if value:
                current = self.store.load_default(extension, for_update=True)
                if current is not None and current.id != record.id:
                    current.default = False
                    current.modified = now
                    self.store.store(current)

            record = self.store.load(Workflow, id=pk)
            record.modified = now
            record.default = bool(value)
            self.store.store(record)
        except SQLAlchemyError:
            logger.exception("Changing default workflow failed")
            self.store.rollback()
            raise

        self._commit()
        self.clean_cache(extension)
        logger.info("Workflow %s default=%s for %s", pk, bool(value), extension)
        return True

    def publish(self, ctx: RequestContext, pks: list[int], value: int = PUBLISHED) -> bool:
        """
        Change the publish state of ``pks``.

        Unpublishing or trashing stops at the first default workflow met: that
        id and every id after it are dropped from ``pks``, which is updated in
        place to the ids actually handed to the publish sweep.
        """
        if value not in PUBLISH_STATES:
            raise ValueError(f"Unsupported publish state: {value}")

        now = ctx.now()
        processed: list[int] = []
        extensions: set[str] = set()
        missing = False
        try:
            for pk in list(pks):
                record = self.store.load(Workflow, id=pk)
                if record is None:
                    self._error(WORKFLOW_NOT_FOUND)
                    missing = True
                    continue
                if value != PUBLISHED and record.default:
                    self._error(ITEM_MUST_BE_PUBLISHED)
                    break

                record.modified = now
                self.store.store(record)
                processed.append(record.id)
                extensions.add(record.extension)

            pks[:] = processed
            result = self.store.publish_batch(pks, value, ctx.current_actor_id(), now)
        except SQLAlchemyError:
            logger.exception("Publishing workflows failed")
            self.store.rollback()
            raise

        self._commit()
        for extension in extensions:
            self.clean_cache(extension)
        return result and not missing

    def can_delete(self, record: Workflow | None) -> bool:
        # TODO: refuse workflows whose states still have items assigned once
        # item/state associations are stored.
        return self.store.is_deletable(record)

    def delete(self, ctx: RequestContext, pks: list[int]) -> bool:
        """Delete trashed workflows; ``pks`` is narrowed in place to the deleted ids."""
        deleted: list[int] = []
        extensions: set[str] = set()
        failed = False
        try:
            for pk in list(pks):
                record = self.store.load(Workflow, id=pk)
                if record is None:
                    self._error(WORKFLOW_NOT_FOUND)
                    failed = True
                    continue
                if not self.can_delete(record):
                    self._error(NOT_DELETABLE)
                    failed = True
                    continue
                extensions.add(record.extension)
                self.store.delete(record)
                deleted.append(pk)
        except SQLAlchemyError:
            logger.exception("Deleting workflows failed")
            self.store.rollback()
            raise

        pks[:] = deleted
        self._commit()
        for extension in extensions:
            self.clean_cache(extension)
        if deleted:
            logger.info("Deleted workflows %s by user %s", deleted, ctx.current_actor_id())
        return not failed

    # -- read side -----------------------------------------------------------

    def get_item(self, pk: int) -> dict[str, Any] | None:
        row = self.store.load(Workflow, id=pk)
        if row is None:
            return None
        return serialize_workflow(row)

    def list_workflows(
        self,
        ctx: RequestContext,
        published: int | None = None,
        search: str | None = None,
        ordering: str = "a.title",
        direction: str = "asc",
        limit: int | None = None,
        offset: int = 0,
    ) -> dict[str, Any]:
        extension = ctx.current_extension()
        limit = limit or settings.workflow_list_limit
        offset = max(offset, 0)
        search = (search or "").strip() or None
        if ordering not in SORT_FIELDS:
            ordering = "a.title"
        direction = "desc" if str(direction).lower() == "desc" else "asc"

        key = (published, search, ordering, direction, limit, offset)
        cached = self.cache.get(extension, key)
        if cached is not None:
            return cached

        query = self.store.db.query(Workflow).filter(Workflow.extension == extension)
        if published is None:
            query = query.filter(Workflow.published != TRASHED)
        else:
            query = query.filter(Workflow.published == published)

        if search:
            if search.lower().startswith("id:"):
                query = query.filter(Workflow.id == _as_int(search[3:].strip(), -1))
            else:
                pattern = f"%{search.lower()}%"
                query = query.filter(
                    or_(
                        func.lower(Workflow.title).like(pattern),
                        func.lower(Workflow.description).like(pattern),
                    )
                )

        total = query.count()
        column = SORT_FIELDS[ordering]
        query = query.order_by(column.desc() if direction == "desc" else column.asc(), Workflow.id.asc())
        rows = query.offset(offset).limit(limit).all()

        result = {
            "items": [serialize_workflow(row) for row in rows],
            "total": total,
            "limit": limit,
            "offset": offset,
        }
        self.cache.set(extension, key, result)
        return result

    def available_actions(self, filter_published: int | None = None) -> list[str]:
        actions = ["add", "publish", "unpublish", "setDefault"]
        actions.append("delete" if filter_published == TRASHED else "trash")
        return actions

    # -- states and transitions ----------------------------------------------

    def states_for_workflow(self, workflow_id: int) -> list[dict[str, Any]]:
        rows = (
            self.store.db.query(WorkflowState)
            .filter(
                WorkflowState.workflow_id == workflow_id,
                WorkflowState.published != TRASHED,
            )
            .order_by(WorkflowState.id.asc())
            .all()
        )
        return [serialize_state(row) for row in rows]

    def save_transition(self, ctx: RequestContext, data: dict[str, Any]) -> bool:
        workflow_id = _as_int(data.get("workflow_id"))
        if self.store.load(Workflow, id=workflow_id) is None:
            return self._fail(WORKFLOW_NOT_FOUND)

        allowed = {state["id"] for state in self.states_for_workflow(workflow_id)}
        for key in ("from_state_id", "to_state_id"):
            if _as_int(data.get(key)) not in allowed:
                return self._fail(STATE_NOT_IN_WORKFLOW)

        data["workflow_id"] = workflow_id
        data["asset_id"] = 0
        data["published"] = _as_int(data.get("published"), PUBLISHED)
        self.saved_id = None
        try:
            record = self.store.save(WorkflowTransition, data)
            if record is None:
                return self._fail("Transition not found.")
            self.saved_id = record.id
        except SQLAlchemyError:
            logger.exception("Saving transition failed")
            self.store.rollback()
            raise

        self._commit()
        logger.info("Transition %s saved on workflow %s by user %s", self.saved_id, workflow_id, ctx.current_actor_id())
        return True

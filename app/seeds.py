from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy.orm import Session

from app.models import PUBLISHED, Workflow, WorkflowState

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW_TITLE = "Basic Workflow"
DEFAULT_WORKFLOW_DESCRIPTION = "Default workflow created on installation."

DEFAULT_STATES: list[dict] = [
    {"title": "Unpublished", "condition": 0, "default": False},
    {"title": "Published", "condition": PUBLISHED, "default": True},
    {"title": "Trashed", "condition": -2, "default": False},
]


def seed_default_workflows(db: Session, extensions: Iterable[str], actor_id: int = 0) -> int:
    """Insert a published default workflow for every extension that has none."""
    inserted = 0
    for extension in extensions:
        exists = (
            db.query(Workflow)
            .filter(Workflow.extension == extension, Workflow.default.is_(True))
            .first()
        )
        if exists is not None:
            continue

        workflow = Workflow(
            extension=extension,
            title=DEFAULT_WORKFLOW_TITLE,
            description=DEFAULT_WORKFLOW_DESCRIPTION,
            published=PUBLISHED,
            default=True,
            created_by=actor_id,
            modified_by=actor_id,
        )
        for item in DEFAULT_STATES:
            workflow.states.append(
                WorkflowState(
                    title=item["title"],
                    description="",
                    published=PUBLISHED,
                    condition=item["condition"],
                    default=item["default"],
                )
            )
        db.add(workflow)
        inserted += 1

    if inserted:
        db.commit()
        logger.info("Seeded %s default workflow(s)", inserted)
    return inserted

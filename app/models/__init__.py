"""
SQLAlchemy models for the workflow registry.
"""
from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

Base = declarative_base()

# Publish states shared by workflows, states and transitions.
PUBLISHED = 1
UNPUBLISHED = 0
TRASHED = -2

PUBLISH_STATES = (PUBLISHED, UNPUBLISHED, TRASHED)


class Workflow(Base):
    __tablename__ = "workflows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(Integer, nullable=False, default=0)
    extension = Column(String(50), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    published = Column(Integer, nullable=False, default=PUBLISHED)
    default = Column(Boolean, nullable=False, default=False)
    created = Column(DateTime(timezone=True), server_default=func.now())
    created_by = Column(Integer, nullable=False, default=0)
    modified = Column(DateTime(timezone=True))
    modified_by = Column(Integer, nullable=False, default=0)

    states = relationship(
        "WorkflowState",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowState.id",
    )
    transitions = relationship(
        "WorkflowTransition",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowTransition.id",
    )

    def __repr__(self) -> str:
        return f"<Workflow id={self.id} extension={self.extension!r} default={self.default}>"


class WorkflowState(Base):
    __tablename__ = "workflow_states"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(Integer, nullable=False, default=0)
    workflow_id = Column(Integer, ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    published = Column(Integer, nullable=False, default=PUBLISHED)
    condition = Column(Integer, nullable=False, default=PUBLISHED)
    default = Column(Boolean, nullable=False, default=False)

    workflow = relationship("Workflow", back_populates="states")


class WorkflowTransition(Base):
    __tablename__ = "workflow_transitions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(Integer, nullable=False, default=0)
    workflow_id = Column(Integer, ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    published = Column(Integer, nullable=False, default=PUBLISHED)
    from_state_id = Column(Integer, ForeignKey("workflow_states.id", ondelete="CASCADE"), nullable=False)
    to_state_id = Column(Integer, ForeignKey("workflow_states.id", ondelete="CASCADE"), nullable=False)

    workflow = relationship("Workflow", back_populates="transitions")

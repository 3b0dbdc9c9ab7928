from app.models import Workflow, WorkflowState
from app.seeds import seed_default_workflows


def test_seed_creates_one_default_per_extension(db_session):
    inserted = seed_default_workflows(db_session, ["com_content", "com_users"])
    assert inserted == 2

    defaults = db_session.query(Workflow).filter(Workflow.default.is_(True)).all()
    assert sorted(row.extension for row in defaults) == ["com_content", "com_users"]
    assert db_session.query(WorkflowState).count() == 6


def test_seed_is_idempotent(db_session):
    seed_default_workflows(db_session, ["com_content"])
    assert seed_default_workflows(db_session, ["com_content"]) == 0
    assert db_session.query(Workflow).count() == 1

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('APP_ENV', 'test')
os.environ.setdefault('SECRET_KEY', 'test-secret-key-with-enough-length-for-hs256')
os.environ.setdefault('ADMIN_EMAIL', 'admin@example.com')
os.environ.setdefault('ADMIN_USER_ID', '42')

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.context import RequestContext  # noqa: E402
from app.models import PUBLISHED, Base, Workflow  # noqa: E402
from app.services.record_store import RecordStore  # noqa: E402
from app.services.workflow_registry import ListingCache, WorkflowRegistry  # noqa: E402

FIXED_NOW = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def db_session():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def ctx():
    return RequestContext(actor_id=42, extension='com_content', clock=lambda: FIXED_NOW)


@pytest.fixture
def registry(db_session):
    return WorkflowRegistry(RecordStore(db_session), cache=ListingCache(), set_home_strict=True)


@pytest.fixture
def make_workflow(db_session):
    def _make(**fields):
        values = {
            'extension': 'com_content',
            'title': f"Workflow {fields.get('id', '')}".strip(),
            'description': '',
            'published': PUBLISHED,
            'default': False,
            'created_by': 1,
            'modified_by': 1,
        }
        values.update(fields)
        row = Workflow(**values)
        db_session.add(row)
        db_session.commit()
        return row.id

    return _make

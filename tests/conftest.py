"""Shared test fixtures."""
import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from portal.database import Base
from portal.models.records import Lead, ScoreRecord, MergedLead
from portal.scoring.catalog import Section, Thresholds
from portal.scoring.disposition import Disposition
from portal.services.store import LeadStore


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import portal.models.scored_lead  # noqa: F401
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    We disable close() so that store methods calling session.close()
    in their finally blocks don't invalidate the shared test session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with patch('portal.services.store.get_session', return_value=db_session):
        yield db_session
    db_session.close = _real_close


class MemoryStore(LeadStore):
    """Dict-backed LeadStore with the same upsert semantics as the real backends."""

    name = 'memory'

    def __init__(self, rows=None):
        self.rows = {}
        self.calls = []
        for row in rows or []:
            self.rows[row['lead_id']] = dict(row)

    def select_page(self, offset, limit):
        self.calls.append(('select_page', offset, limit))
        ordered = [self.rows[k] for k in sorted(self.rows)]
        return [dict(r) for r in ordered[offset:offset + limit]]

    def select_all(self):
        self.calls.append(('select_all',))
        return [dict(r) for r in self.rows.values()]

    def upsert(self, rows):
        self.calls.append(('upsert', len(rows)))
        for row in rows:
            self.rows.setdefault(row['lead_id'], {}).update(row)
        return [dict(self.rows[r['lead_id']]) for r in rows]

    def delete(self, lead_id):
        self.calls.append(('delete', lead_id))
        self.rows.pop(lead_id, None)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def failing_store():
    """MagicMock store whose every primitive raises StoreError."""
    from portal.errors import StoreError
    store = MagicMock(spec=LeadStore)
    store.name = 'failing'
    for method in ('select_page', 'select_all', 'upsert', 'delete'):
        getattr(store, method).side_effect = StoreError('store unreachable', status_code=503)
    return store


@pytest.fixture
def sections():
    """Four-section catalogue matching the shipped interview."""
    return [
        Section('motivation', 'Motivation & Ownership'),
        Section('ops', 'Food & Ops Readiness'),
        Section('finance', 'Financial & Bank Readiness'),
        Section('mindset', 'Business & Learning Mindset'),
    ]


@pytest.fixture
def thresholds():
    return Thresholds(fast_track=17, nurture=12)


@pytest.fixture
def make_lead():
    """Factory fixture — builds a roster Lead."""
    def _make(lead_id='9876543210', **overrides):
        defaults = dict(
            full_name='Asha Verma',
            phone_number=lead_id,
            city='Lucknow',
            target_city='Lucknow',
            platform='fb',
            assignee='Ravi',
            gender='Female',
            education_level='Graduate',
        )
        defaults.update(overrides)
        return Lead(lead_id=lead_id, **defaults)
    return _make


@pytest.fixture
def make_record(thresholds):
    """Factory fixture — builds a ScoreRecord."""
    def _make(lead_id='9876543210', scores=None, flags=None, notes='', disposition=None):
        return ScoreRecord(
            lead_id=lead_id,
            scores=dict(scores or {}),
            flags=dict(flags or {}),
            notes=notes,
            disposition=Disposition(disposition) if disposition else None,
            updated_at='2026-01-15T10:00:00+00:00',
            thresholds=thresholds,
        )
    return _make


@pytest.fixture
def make_merged(make_lead, make_record):
    """Factory fixture — builds a MergedLead; pass scores/flags/disposition to attach a record."""
    def _make(lead_id='9876543210', scores=None, flags=None, notes='', disposition=None, **lead_fields):
        lead = make_lead(lead_id, **lead_fields)
        if scores is None and flags is None and not notes and disposition is None:
            return MergedLead(lead)
        return MergedLead(lead, make_record(lead_id, scores, flags, notes, disposition))
    return _make


@pytest.fixture
def app(memory_store):
    """Flask test app over an in-memory store."""
    from portal import create_app
    app = create_app(store=memory_store)
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c

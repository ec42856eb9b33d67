"""Tests for the SQLAlchemy lead store."""
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from portal.errors import StoreError
from portal.models.scored_lead import ScoredLead
from portal.services.store import SqlLeadStore


@pytest.fixture
def store():
    return SqlLeadStore()


def _roster(n):
    return [{'lead_id': f'{i:04d}', 'full_name': f'Lead {i}'} for i in range(n)]


class TestSelectPage:
    """Tests for paginated selects."""

    def test_pages_are_ordered_and_bounded(self, store):
        store.upsert(_roster(5))
        first = store.select_page(0, 2)
        last = store.select_page(4, 2)
        assert [r['lead_id'] for r in first] == ['0000', '0001']
        assert [r['lead_id'] for r in last] == ['0004']

    def test_past_end_is_empty(self, store):
        store.upsert(_roster(2))
        assert store.select_page(10, 5) == []


class TestUpsert:
    """Tests for insert-or-update by lead_id."""

    def test_insert_then_update_only_supplied_columns(self, store, db_session):
        store.upsert([{'lead_id': '1', 'full_name': 'Asha', 'city': 'Agra'}])
        store.upsert([{'lead_id': '1', 'scores': {'ops': 5}, 'status': 'not-suitable', 'total': 5}])

        row = db_session.get(ScoredLead, '1')
        assert row.full_name == 'Asha'
        assert row.city == 'Agra'
        assert row.scores == {'ops': 5}
        assert row.total == 5

    def test_roster_reimport_leaves_overlay(self, store):
        store.upsert([{'lead_id': '1', 'full_name': 'Asha', 'notes': 'called', 'status': 'drop'}])
        store.upsert([{'lead_id': '1', 'full_name': 'Asha V', 'city': None}])
        row = store.select_all()[0]
        assert row['full_name'] == 'Asha V'
        assert row['notes'] == 'called'
        assert row['status'] == 'drop'

    def test_unknown_keys_ignored(self, store):
        written = store.upsert([{'lead_id': '1', 'not_a_column': 'x'}])
        assert written[0]['lead_id'] == '1'
        assert 'not_a_column' not in written[0]

    def test_database_error_becomes_store_error(self, store, db_session):
        with patch.object(db_session, 'commit', side_effect=OperationalError('stmt', {}, Exception('locked'))):
            with pytest.raises(StoreError):
                store.upsert(_roster(1))


class TestDelete:
    """Tests for delete-by-key."""

    def test_delete(self, store):
        store.upsert(_roster(2))
        store.delete('0000')
        assert [r['lead_id'] for r in store.select_all()] == ['0001']

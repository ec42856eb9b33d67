"""Tests for portal.routes.api — health, access gate, leads, scoring, dashboard, import."""
import pytest
from unittest.mock import patch

from portal.errors import ConfigurationError, ImportSourceError

MASTER = 'master-secret'
TEAM = {'Ravi': 'ravi-secret', 'Meena': 'meena-secret'}


@pytest.fixture(autouse=True)
def secrets():
    with patch('portal.services.access.MASTER_PASSWORD', MASTER), \
            patch('portal.services.access.TEAM_PASSWORDS', TEAM):
        yield


@pytest.fixture
def seeded(memory_store):
    memory_store.upsert([
        {'lead_id': '1001', 'full_name': 'Asha Verma', 'phone_number': '1001', 'lead_alloc': 'Ravi',
         'city': 'Agra', 'target_city': 'Agra'},
        {'lead_id': '1002', 'full_name': 'Meena Rao', 'phone_number': '1002', 'lead_alloc': 'Meena',
         'city': 'Kanpur', 'target_city': 'Kanpur'},
        {'lead_id': '1003', 'full_name': 'Ashok', 'phone_number': '1003', 'lead_alloc': 'Ravi',
         'scores': {'motivation': 3, 'ops': 5}, 'flags': {}, 'notes': '', 'status': 'not-suitable'},
    ])
    memory_store.calls.clear()
    return memory_store


def _unlock(client, identity='', password=MASTER):
    return client.post('/api/access', json={'identity': identity, 'password': password})


def _upserts(store):
    return [c for c in store.calls if c[0] == 'upsert']


class TestHealth:
    """Health and config endpoints."""

    def test_health(self, client):
        resp = client.get('/health')
        assert resp.status_code == 200
        assert resp.get_json()['status'] == 'healthy'

    def test_api_health_reports_store(self, client):
        data = client.get('/api/health').get_json()
        assert data['store'] == 'memory'
        assert data['bootError'] is None
        assert 'time' in data

    def test_config_missing_is_503(self, client):
        with patch('portal.config.SUPABASE_URL', None):
            resp = client.get('/api/config')
        assert resp.status_code == 503
        assert 'hint' in resp.get_json()

    def test_config_returns_coordinates(self, client):
        with patch('portal.config.SUPABASE_URL', 'https://x.supabase.co'), \
                patch('portal.config.SUPABASE_ANON_KEY', 'anon'):
            data = client.get('/api/config').get_json()
        assert data == {'supabaseUrl': 'https://x.supabase.co', 'supabaseAnonKey': 'anon'}

    def test_catalog(self, client):
        data = client.get('/api/catalog').get_json()
        assert [s['id'] for s in data['sections']] == ['motivation', 'ops', 'finance', 'mindset']
        assert len(data['red_flags']) == 4


class TestBootError:
    """A missing store configuration is a persistent 503."""

    @patch('portal.services.bootstrap.build_store', side_effect=ConfigurationError('Supabase credentials missing'))
    def test_data_routes_503(self, mock_build):
        from portal import create_app
        app = create_app()
        app.config['TESTING'] = True
        with app.test_client() as c:
            for _ in range(2):
                resp = c.get('/api/leads')
                assert resp.status_code == 503
                assert 'Supabase credentials missing' in resp.get_json()['error']
            assert c.get('/health').status_code == 200
            assert c.get('/api/health').get_json()['bootError'] == 'Supabase credentials missing'


class TestAccess:
    """POST /api/access and friends."""

    def test_challenge_without_password(self, client):
        resp = client.post('/api/access', json={'identity': 'Ravi'})
        assert resp.status_code == 401
        assert resp.get_json()['challenge'] == 'Ravi'

    def test_wrong_password(self, client):
        resp = _unlock(client, 'Ravi', 'meena-secret')
        assert resp.status_code == 401
        assert resp.get_json()['error']

    def test_own_secret_unlocks_identity_only(self, client, seeded):
        assert _unlock(client, 'Ravi', 'ravi-secret').status_code == 200

        resp = client.get('/api/leads?identity=Ravi')
        assert resp.status_code == 200
        assert {lead['lead_id'] for lead in resp.get_json()['leads']} == {'1001', '1003'}

        assert client.get('/api/leads?identity=Meena').status_code == 403
        assert client.get('/api/leads?identity=').status_code == 403

    def test_master_unlocks_everything(self, client, seeded):
        assert _unlock(client, 'Ravi').get_json()['scope'] == 'master'
        assert client.post('/api/access', json={'identity': 'Meena'}).status_code == 200
        assert client.get('/api/leads?identity=').get_json()['count'] == 3

    def test_team_secret_cannot_open_whole_team(self, client):
        assert _unlock(client, 'All Team Members', 'ravi-secret').status_code == 401

    def test_cancel_reverts_selection(self, client):
        _unlock(client, 'Meena', 'meena-secret')
        client.post('/api/access', json={'identity': 'Ravi'})
        assert client.post('/api/access/cancel').get_json()['selection'] == 'Meena'

    def test_cancel_before_success(self, client):
        client.post('/api/access', json={'identity': 'Ravi'})
        assert client.post('/api/access/cancel').get_json()['selection'] is None

    def test_logout_relocks(self, client, seeded):
        _unlock(client)
        client.post('/api/access/logout')
        assert client.get('/api/leads?identity=').status_code == 403


class TestLeads:
    """GET /api/leads and /api/leads/<id>."""

    def test_filters(self, client, seeded):
        _unlock(client)
        data = client.get('/api/leads?identity=&city=Agra&search=asha').get_json()
        assert [lead['lead_id'] for lead in data['leads']] == ['1001']
        assert data['filters']['city'] == ['Agra', 'Kanpur']

    def test_city_filter_uses_target_city(self, client, seeded):
        seeded.upsert([{'lead_id': '1004', 'full_name': 'Kiran', 'phone_number': '1004',
                        'lead_alloc': 'Ravi', 'target_city': 'Indore'}])
        _unlock(client)
        data = client.get('/api/leads?identity=&city=Indore').get_json()
        assert [lead['lead_id'] for lead in data['leads']] == ['1004']
        assert 'Indore' in data['filters']['city']

    def test_status_filter(self, client, seeded):
        _unlock(client)
        data = client.get('/api/leads?identity=&status=not-suitable').get_json()
        assert [lead['lead_id'] for lead in data['leads']] == ['1003']

    def test_selection_used_when_no_identity_param(self, client, seeded):
        _unlock(client, 'Meena', 'meena-secret')
        data = client.get('/api/leads').get_json()
        assert data['identity'] == 'Meena'
        assert [lead['lead_id'] for lead in data['leads']] == ['1002']

    def test_detail(self, client, seeded):
        _unlock(client)
        data = client.get('/api/leads/1003').get_json()
        assert data['total'] == 8
        assert data['disposition'] is None
        assert data['readiness']['label'] == 'Score all sections to save (2 / 4 done)'

    def test_detail_locked(self, client, seeded):
        _unlock(client, 'Meena', 'meena-secret')
        assert client.get('/api/leads/1001').status_code == 403

    def test_detail_not_found(self, client, seeded):
        _unlock(client)
        assert client.get('/api/leads/nope').status_code == 404


class TestScore:
    """POST /api/leads/<id>/score."""

    def test_full_score_saves_classified_status(self, client, seeded):
        _unlock(client)
        resp = client.post('/api/leads/1001/score', json={
            'scores': {'motivation': 5, 'ops': 5, 'finance': 5, 'mindset': 3},
        })
        assert resp.status_code == 200
        assert resp.get_json()['lead']['status'] == 'fast-track'
        assert seeded.rows['1001']['status'] == 'fast-track'
        assert seeded.rows['1001']['total'] == 18

    def test_drop_without_notes_refused_without_store_call(self, client, seeded):
        _unlock(client)
        resp = client.post('/api/leads/1003/score', json={'disposition': 'drop', 'notes': '  '})
        assert resp.status_code == 422
        assert resp.get_json()['error'] == 'notes_required'
        assert _upserts(seeded) == []

    def test_drop_keeps_existing_scores(self, client, seeded):
        _unlock(client)
        resp = client.post('/api/leads/1003/score', json={'disposition': 'drop', 'notes': 'Not interested'})
        assert resp.status_code == 200
        row = seeded.rows['1003']
        assert row['status'] == 'drop'
        assert row['scores'] == {'motivation': 3, 'ops': 5}
        assert row['notes'] == 'Not interested'

    def test_incomplete_sections_refused(self, client, seeded):
        _unlock(client)
        resp = client.post('/api/leads/1001/score', json={'scores': {'ops': 3}})
        assert resp.status_code == 422
        assert resp.get_json()['error'] == 'sections_incomplete'

    def test_invalid_score_is_400(self, client, seeded):
        _unlock(client)
        resp = client.post('/api/leads/1001/score', json={'scores': {'ops': 4}})
        assert resp.status_code == 400

    def test_flag_forces_reject(self, client, seeded):
        _unlock(client)
        resp = client.post('/api/leads/1001/score', json={
            'scores': {'motivation': 5, 'ops': 5, 'finance': 5, 'mindset': 5},
            'flags': {'1': True},
        })
        assert resp.get_json()['lead']['status'] == 'auto-reject'

    @pytest.mark.parametrize('flags', [{'99': True}, {'0': 'false'}, {'x': True}])
    def test_invalid_flag_is_400(self, client, seeded, flags):
        _unlock(client)
        resp = client.post('/api/leads/1001/score', json={
            'scores': {'motivation': 5, 'ops': 5, 'finance': 5, 'mindset': 5},
            'flags': flags,
        })
        assert resp.status_code == 400
        assert _upserts(seeded) == []

    def test_locked_assignee(self, client, seeded):
        _unlock(client, 'Meena', 'meena-secret')
        resp = client.post('/api/leads/1001/score', json={'disposition': 'drop', 'notes': 'x'})
        assert resp.status_code == 403
        assert _upserts(seeded) == []

    def test_store_failure_is_502_and_memory_untouched(self, app, client, seeded, failing_store):
        _unlock(client)
        client.get('/api/leads?identity=')
        app.extensions['lead_repository'].store = failing_store

        resp = client.post('/api/leads/1001/score', json={'disposition': 'callback', 'notes': 'Sunday'})

        assert resp.status_code == 502
        assert 'store unreachable' in resp.get_json()['error']
        assert app.extensions['lead_repository'].get('1001').status == 'Open'


class TestRefresh:
    """POST /api/refresh."""

    def test_refresh_counts(self, client, seeded):
        data = client.post('/api/refresh').get_json()
        assert data == {'count': 3, 'scored': 1}

    def test_refresh_failure_is_502(self, app, client, failing_store):
        app.extensions['lead_repository'].store = failing_store
        assert client.post('/api/refresh').status_code == 502


class TestDashboard:
    """GET /api/dashboard."""

    def test_requires_unlock(self, client, seeded):
        assert client.get('/api/dashboard?identity=').status_code == 403

    def test_kpis(self, client, seeded):
        _unlock(client)
        data = client.get('/api/dashboard?identity=').get_json()
        assert data['kpis']['total'] == 3
        assert data['kpis']['open'] == 2

    def test_scoped_to_identity(self, client, seeded):
        _unlock(client, 'Meena', 'meena-secret')
        data = client.get('/api/dashboard').get_json()
        assert data['kpis']['total'] == 1

    def test_sort_toggle_persists_in_session(self, client, seeded):
        _unlock(client)
        first = client.get('/api/dashboard?identity=&sort=member').get_json()['team']
        assert first['sort']['column'] == 'member'
        assert first['sort']['descending'] is False
        assert [r['member'] for r in first['rows']] == ['Meena', 'Ravi']

        second = client.get('/api/dashboard?identity=&sort=member').get_json()['team']
        assert second['sort']['descending'] is True
        assert [r['member'] for r in second['rows']] == ['Ravi', 'Meena']

    def test_unknown_sort_column(self, client, seeded):
        _unlock(client)
        assert client.get('/api/dashboard?identity=&sort=salary').status_code == 400


class TestImport:
    """POST /api/import."""

    def test_requires_master(self, client, seeded):
        _unlock(client, 'Ravi', 'ravi-secret')
        assert client.post('/api/import', json={'rows': []}).status_code == 403

    def test_rows(self, client, seeded):
        _unlock(client)
        resp = client.post('/api/import', json={'rows': [
            {'Phone': '2001', 'Name': 'First'},
            {'Phone': '2001', 'Name': 'Second'},
            {'Name': 'No id'},
        ]})
        assert resp.get_json() == {'imported': 1, 'skipped': 1, 'duplicates': 1}
        assert seeded.rows['2001']['full_name'] == 'Second'
        assert client.get('/api/leads?identity=').get_json()['count'] == 4

    @patch('portal.routes.api.fetch_csv_rows')
    def test_csv_url(self, mock_fetch, client, seeded):
        mock_fetch.return_value = [{'ID': '3001', 'Name': 'Sheet Lead'}]
        _unlock(client)
        resp = client.post('/api/import', json={'csv_url': 'https://docs.google.com/spreadsheets/d/x/edit'})
        assert resp.get_json()['imported'] == 1

    @patch('portal.routes.api.fetch_csv_rows', side_effect=ImportSourceError('Sheet download returned HTTP 404'))
    def test_csv_url_failure(self, mock_fetch, client, seeded):
        _unlock(client)
        resp = client.post('/api/import', json={'csv_url': 'https://example.com/x.csv'})
        assert resp.status_code == 502

    def test_bad_body(self, client, seeded):
        _unlock(client)
        assert client.post('/api/import', json={}).status_code == 400

"""
API routes — sync, access gate, lead review, scoring and dashboard JSON.

The repository and any boot-time configuration error live on
app.extensions; the access session lives in the Flask session cookie.
"""
from datetime import datetime, timezone
from functools import wraps

from flask import Blueprint, current_app, jsonify, request, session

from portal import config
from portal.errors import ImportSourceError, StoreError
from portal.scoring.catalog import get_red_flags, get_sections
from portal.services.access import AccessGate, AccessSession, normalise_identity
from portal.services.aggregation import BreakdownSort, build_dashboard
from portal.services.importer import fetch_csv_rows
from portal.services.query import LeadFilter, distinct_values, filter_leads, leads_for_identity

bp = Blueprint('api', __name__)

ACCESS_KEY = 'access'
SORT_KEY = 'team_sort'


def _access() -> AccessSession:
    return AccessSession.from_dict(session.get(ACCESS_KEY))


def _remember(access: AccessSession):
    session[ACCESS_KEY] = access.to_dict()


def requires_store(view):
    """Inject the repository; 503 while the engine has no store, 502 on transport errors."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        repo = current_app.extensions.get('lead_repository')
        if repo is None:
            error = current_app.extensions.get('boot_error') or 'Lead store is not configured'
            return jsonify({'error': error}), 503
        try:
            return view(repo, *args, **kwargs)
        except StoreError as e:
            current_app.logger.error("Store error on %s: %s", request.path, e)
            return jsonify({'error': str(e)}), 502
    return wrapper


def _ensure_loaded(repo):
    if not repo.loaded:
        repo.refresh()


def _locked(identity):
    label = identity or 'All Team Members'
    return jsonify({'error': f'Access to {label} is locked', 'identity': identity}), 403


# ── Health & config ──────────────────────────────────────────────────────────

@bp.route('/health')
def health():
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def api_health():
    repo = current_app.extensions.get('lead_repository')
    return jsonify({
        'status': 'ok',
        'store': repo.store.name if repo else None,
        'supabaseUrlSet': bool(config.SUPABASE_URL),
        'supabaseKeySet': bool(config.SUPABASE_ANON_KEY),
        'bootError': current_app.extensions.get('boot_error'),
        'time': datetime.now(timezone.utc).isoformat(),
    })


@bp.route('/api/config')
def store_config():
    """Public store coordinates for browser clients."""
    if not config.SUPABASE_URL or not config.SUPABASE_ANON_KEY:
        return jsonify({
            'error': 'Supabase credentials not configured',
            'hint': 'Set SUPABASE_URL and SUPABASE_ANON_KEY',
        }), 503
    return jsonify({'supabaseUrl': config.SUPABASE_URL, 'supabaseAnonKey': config.SUPABASE_ANON_KEY})


@bp.route('/api/catalog')
def catalog():
    """Interview sections and red flags, in display order."""
    return jsonify({
        'sections': [
            {'id': s.id, 'title': s.title, 'prompts': list(s.prompts), 'red_flag': s.red_flag}
            for s in get_sections()
        ],
        'red_flags': [{'index': f.index, 'text': f.text} for f in get_red_flags()],
    })


# ── Sync ─────────────────────────────────────────────────────────────────────

@bp.route('/api/refresh', methods=['POST'])
@requires_store
def refresh(repo):
    leads = repo.refresh()
    return jsonify({'count': len(leads), 'scored': len(repo.overlay)})


@bp.route('/api/import', methods=['POST'])
@requires_store
def import_roster(repo):
    """Upsert roster rows from a JSON body ({rows: [...]}) or a sheet URL ({csv_url: ...})."""
    access = _access()
    if not access.is_unlocked(''):
        return _locked('')

    data = request.get_json(silent=True) or {}
    rows = data.get('rows')
    if rows is None and data.get('csv_url'):
        try:
            rows = fetch_csv_rows(data['csv_url'], timeout=config.STORE_TIMEOUT)
        except ImportSourceError as e:
            return jsonify({'error': str(e)}), 502
    if not isinstance(rows, list):
        return jsonify({'error': 'Provide rows or csv_url'}), 400

    _ensure_loaded(repo)
    result = repo.import_roster(rows)
    return jsonify({
        'imported': result.imported,
        'skipped': result.skipped,
        'duplicates': result.duplicates,
    })


# ── Access gate ──────────────────────────────────────────────────────────────

@bp.route('/api/access', methods=['POST'])
def request_access():
    """
    Unlock an identity for this session.

    Without a password the call only reports whether the identity is
    already unlocked (200) or needs a challenge (401).
    """
    data = request.get_json(silent=True) or {}
    identity = normalise_identity(data.get('identity'))
    access = _access()
    gate = AccessGate(access)

    granted = gate.request_access(identity, on_granted=lambda: None)
    if granted:
        _remember(access)
        return jsonify({'granted': True, 'identity': identity})

    if data.get('password') is None:
        _remember(access)
        return jsonify({'granted': False, 'challenge': identity}), 401

    attempt = gate.submit(data.get('password'))
    _remember(access)
    if not attempt.granted:
        return jsonify({'granted': False, 'challenge': identity, 'error': attempt.error}), 401
    return jsonify({'granted': True, 'identity': identity, 'scope': attempt.scope})


@bp.route('/api/access/cancel', methods=['POST'])
def cancel_access():
    access = _access()
    AccessGate(access).cancel()
    _remember(access)
    return jsonify({'selection': access.selection})


@bp.route('/api/access/logout', methods=['POST'])
def logout():
    access = _access()
    access.reset()
    _remember(access)
    return jsonify({'ok': True})


# ── Leads ────────────────────────────────────────────────────────────────────

@bp.route('/api/leads')
@requires_store
def list_leads(repo):
    access = _access()
    identity = normalise_identity(request.args.get('identity', access.selection))
    if not access.is_unlocked(identity):
        return _locked(identity)

    _ensure_loaded(repo)
    visible = leads_for_identity(repo.leads, identity)
    matched = filter_leads(visible, LeadFilter.from_args(request.args))
    return jsonify({
        'identity': identity,
        'count': len(matched),
        'leads': [lead.to_dict() for lead in matched],
        'filters': {
            'city': distinct_values(visible, 'target_city'),
            'assignee': distinct_values(visible, 'assignee'),
            'platform': distinct_values(visible, 'platform'),
        },
    })


@bp.route('/api/leads/<lead_id>')
@requires_store
def lead_detail(repo, lead_id):
    _ensure_loaded(repo)
    lead = repo.get(lead_id)
    if lead is None:
        return jsonify({'error': 'Lead not found'}), 404
    if not _access().is_unlocked(lead.assignee):
        return _locked(lead.assignee)

    sheet = repo.sheet_for(lead_id)
    readiness = sheet.readiness()
    data = lead.to_dict()
    data['disposition'] = sheet.disposition.value if sheet.disposition else None
    data['readiness'] = {'ready': readiness.ready, 'reason': readiness.reason, 'label': readiness.label}
    return jsonify(data)


@bp.route('/api/leads/<lead_id>/score', methods=['POST'])
@requires_store
def score_lead(repo, lead_id):
    """
    Apply sheet edits and save.

    Body: {scores: {section: 1|3|5|null}, flags: {index: bool},
           notes: str, disposition: "drop"|"callback"|"info-requested"|null}
    Omitted keys keep the stored values.
    """
    _ensure_loaded(repo)
    lead = repo.get(lead_id)
    if lead is None:
        return jsonify({'error': 'Lead not found'}), 404
    if not _access().is_unlocked(lead.assignee):
        return _locked(lead.assignee)

    data = request.get_json(silent=True) or {}
    sheet = repo.sheet_for(lead_id)
    try:
        for section_id, value in (data.get('scores') or {}).items():
            sheet.set_score(section_id, None if value is None else int(value))
        for index, checked in (data.get('flags') or {}).items():
            sheet.set_flag(int(index), checked)
        if 'notes' in data:
            sheet.set_notes(data['notes'])
        if 'disposition' in data:
            if data['disposition']:
                sheet.select_disposition(data['disposition'])
            else:
                sheet.clear_disposition()
    except (TypeError, ValueError) as e:
        return jsonify({'error': str(e)}), 400

    outcome = sheet.save(repo)
    if not outcome.saved:
        return jsonify({'error': outcome.reason, 'label': sheet.readiness().label}), 422
    return jsonify({'saved': True, 'lead': repo.get(lead_id).to_dict()})


# ── Dashboard ────────────────────────────────────────────────────────────────

@bp.route('/api/dashboard')
@requires_store
def dashboard(repo):
    """Dashboard aggregates for the selected identity. ?sort=<column> toggles the team table."""
    access = _access()
    identity = normalise_identity(request.args.get('identity', access.selection))
    if not access.is_unlocked(identity):
        return _locked(identity)

    sort = BreakdownSort.from_dict(session.get(SORT_KEY))
    column = request.args.get('sort')
    if column:
        try:
            sort.toggle(column)
        except ValueError as e:
            return jsonify({'error': str(e)}), 400
        session[SORT_KEY] = sort.to_dict()

    _ensure_loaded(repo)
    leads = leads_for_identity(repo.leads, identity)
    return jsonify(build_dashboard(leads, top_n=config.TOP_N, sort=sort))

"""
Centralized configuration — all env vars, store coordinates, access secrets.
"""
import json
import os


def _env(name, default=None):
    """Read an env var, treating unfilled `REPLACE...` placeholders as unset."""
    value = os.getenv(name, default)
    if value is not None and 'REPLACE' in value:
        return default
    return value


def _team_passwords(raw):
    """Parse TEAM_PASSWORDS (JSON object of identity → secret)."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {str(k): str(v) for k, v in parsed.items()}


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Flask ────────────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')

# ── Store selection ──────────────────────────────────────────────────────────
# 'sql'      → SQLAlchemy (SQLite locally, Postgres in production)
# 'supabase' → hosted PostgREST backend reached over HTTP
STORE_BACKEND = os.getenv('STORE_BACKEND', 'sql').lower()
STORE_TABLE = os.getenv('STORE_TABLE', 'scored_leads')
STORE_TIMEOUT = int(os.getenv('STORE_TIMEOUT', '30'))

# ── PostgreSQL / SQLite ──────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Supabase ─────────────────────────────────────────────────────────────────
SUPABASE_URL = _env('SUPABASE_URL')
SUPABASE_ANON_KEY = _env('SUPABASE_ANON_KEY')
CONFIG_ENDPOINT_URL = _env('CONFIG_ENDPOINT_URL')

# ── Sync ─────────────────────────────────────────────────────────────────────
ROSTER_PAGE_SIZE = int(os.getenv('ROSTER_PAGE_SIZE', '1000'))

# ── Dashboard ────────────────────────────────────────────────────────────────
TOP_N = int(os.getenv('TOP_N', '8'))

# ── Access gate ──────────────────────────────────────────────────────────────
MASTER_PASSWORD = _env('MASTER_PASSWORD')
TEAM_PASSWORDS = _team_passwords(os.getenv('TEAM_PASSWORDS', ''))

# Sentinel identity that satisfies every check once unlocked
MASTER_IDENTITY = 'master'

# Fallback bucket for leads with no assignee
UNASSIGNED = 'Unassigned'

# ── Status tags ──────────────────────────────────────────────────────────────
STATUS_OPEN = 'Open'
STATUS_NOT_SUITABLE = 'not-suitable'
STATUS_NURTURE = 'nurture'
STATUS_FAST_TRACK = 'fast-track'
STATUS_AUTO_REJECT = 'auto-reject'

DISPOSITION_DROP = 'drop'
DISPOSITION_INFO_REQUESTED = 'info-requested'
DISPOSITION_CALLBACK = 'callback'

STATUS_LABELS = {
    STATUS_OPEN: 'Open',
    STATUS_NOT_SUITABLE: 'Not Suitable',
    STATUS_NURTURE: 'Nurture',
    STATUS_FAST_TRACK: 'Fast Track',
    STATUS_AUTO_REJECT: 'Auto Reject',
    'rejected': 'Rejected',
    DISPOSITION_DROP: 'Dropped',
    DISPOSITION_INFO_REQUESTED: 'Info Requested',
    DISPOSITION_CALLBACK: 'Call Back',
}

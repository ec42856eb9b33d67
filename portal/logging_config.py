"""
Logging setup for the portal.

configure_logging() runs once from create_app() and again from the import
script. Environment variables are read at call time:

    LOG_LEVEL   level name for the portal loggers (default INFO)
    LOG_FORMAT  "text" (default) or "json"
    LOG_SQL     "1"/"true" keeps SQLAlchemy statement logging at the portal level

Portal loggers are named by layer ('services.repository', 'scoring.sheet',
...). Lead, identity and store context passed through ``extra=`` is kept as
separate keys in JSON output.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

# Top-level logger names used across the package
PORTAL_NAMESPACES = ('portal', 'services', 'scoring', 'routes')

# Keys lifted from LogRecord extras into the JSON entry
CONTEXT_FIELDS = ('lead_id', 'identity', 'store', 'status_code')

# HTTP clients for the store API, the dev server and the SQL engine
_NOISY_LOGGERS = (
    'urllib3',
    'requests',
    'werkzeug',
    'sqlalchemy.engine',
    'sqlalchemy.pool',
)


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _env_level() -> int:
    level = logging.getLevelName(os.getenv('LOG_LEVEL', 'INFO').strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _env_flag(name: str) -> bool:
    return os.getenv(name, '').strip().lower() in ('1', 'true', 'yes')


def configure_logging(app=None):
    level = _env_level()
    log_format = os.getenv('LOG_FORMAT', 'text').strip().lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if log_format == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))

    root = logging.getLogger()
    root.setLevel(level)
    # Repeated calls (tests, script + app) must not stack handlers
    root.handlers.clear()
    root.addHandler(handler)

    for name in PORTAL_NAMESPACES:
        logging.getLogger(name).setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if _env_flag('LOG_SQL'):
        logging.getLogger('sqlalchemy.engine').setLevel(level)

    if app is not None:
        app.logger.setLevel(level)

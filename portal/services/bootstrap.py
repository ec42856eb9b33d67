"""
Boot-time store resolution.

The engine cannot sync anything until it knows where the store lives.
Missing coordinates are a ConfigurationError, fatal for the whole engine.
"""
import logging
from dataclasses import dataclass

import requests

from portal import config
from portal.errors import ConfigurationError
from portal.services.store import LeadStore, SqlLeadStore

logger = logging.getLogger('services.bootstrap')


@dataclass(frozen=True)
class StoreConfig:
    url: str
    anon_key: str


def fetch_store_config(config_url: str, timeout: int = 10) -> StoreConfig:
    """
    Single call to the configuration endpoint.

    Expects {"supabaseUrl": ..., "supabaseAnonKey": ...}. Any failure to get
    both values is fatal.
    """
    try:
        response = requests.get(config_url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise ConfigurationError(f"Config endpoint unreachable: {e}") from e

    if response.status_code != 200:
        raise ConfigurationError(f"{config_url} returned HTTP {response.status_code}")

    try:
        body = response.json()
    except ValueError as e:
        raise ConfigurationError(f"{config_url} did not return JSON") from e

    url = (body or {}).get('supabaseUrl')
    key = (body or {}).get('supabaseAnonKey')
    if not url or not key:
        raise ConfigurationError('Missing keys in config endpoint response')

    logger.info("Store coordinates loaded from %s", config_url)
    return StoreConfig(url=url, anon_key=key)


def resolve_store_config() -> StoreConfig:
    """Env coordinates first, then the configuration endpoint."""
    if config.SUPABASE_URL and config.SUPABASE_ANON_KEY:
        return StoreConfig(url=config.SUPABASE_URL, anon_key=config.SUPABASE_ANON_KEY)
    if config.CONFIG_ENDPOINT_URL:
        return fetch_store_config(config.CONFIG_ENDPOINT_URL)
    raise ConfigurationError(
        'Supabase credentials missing: set SUPABASE_URL and SUPABASE_ANON_KEY, '
        'or CONFIG_ENDPOINT_URL'
    )


def build_store(backend: str = None) -> LeadStore:
    """Instantiate the configured store backend."""
    backend = (backend or config.STORE_BACKEND).lower()

    if backend == 'sql':
        from portal.database import init_db
        init_db()
        logger.info("Using SQL store")
        return SqlLeadStore()

    if backend == 'supabase':
        from portal.services.supabase import SupabaseStore
        coords = resolve_store_config()
        logger.info("Using Supabase store at %s", coords.url)
        return SupabaseStore(coords.url, coords.anon_key)

    raise ConfigurationError(f"Unknown STORE_BACKEND '{backend}'")

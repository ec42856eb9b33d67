"""
Supabase (PostgREST) lead store over plain HTTP.
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from portal.config import STORE_TABLE, STORE_TIMEOUT
from portal.errors import StoreError
from portal.services.store import LeadStore

logger = logging.getLogger('services.supabase')


class SupabaseStore(LeadStore):
    """
    REST client for one Supabase table.

    select_page  GET    ?select=*&order=lead_id.asc&offset=N&limit=M
    select_all   GET    ?select=*&order=updated_at.desc.nullslast
    upsert       POST   ?on_conflict=lead_id  (Prefer: resolution=merge-duplicates)
    delete       DELETE ?lead_id=eq.<id>
    """

    name = 'supabase'

    def __init__(self, url: str, anon_key: str, table: str = STORE_TABLE, timeout: int = STORE_TIMEOUT):
        self.endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self.table = table
        self.timeout = timeout
        self.headers = {
            'apikey': anon_key,
            'Authorization': f'Bearer {anon_key}',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    def _request(self, method: str, params: Dict[str, Any], json: Any = None,
                 prefer: Optional[str] = None):
        headers = dict(self.headers)
        if prefer:
            headers['Prefer'] = prefer

        try:
            response = requests.request(
                method, self.endpoint,
                params=params, json=json, headers=headers, timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("%s %s failed: %s", method, self.table, e)
            raise StoreError(f"{method} {self.table} failed: {e}") from e

        if not response.ok:
            message = _error_message(response)
            logger.error("%s %s returned %d: %s", method, self.table, response.status_code, message,
                         extra={'store': self.name, 'status_code': response.status_code})
            raise StoreError(
                f"{method} {self.table} returned HTTP {response.status_code}: {message}",
                status_code=response.status_code,
            )
        return response

    def select_page(self, offset, limit):
        resp = self._request('GET', {
            'select': '*',
            'order': 'lead_id.asc',
            'offset': offset,
            'limit': limit,
        })
        return resp.json()

    def select_all(self):
        resp = self._request('GET', {'select': '*', 'order': 'updated_at.desc.nullslast'})
        return resp.json()

    def upsert(self, rows: List[Dict[str, Any]]):
        if not rows:
            return []
        resp = self._request(
            'POST', {'on_conflict': 'lead_id'}, json=rows,
            prefer='resolution=merge-duplicates,return=representation',
        )
        return resp.json() if resp.content else []

    def delete(self, lead_id):
        self._request('DELETE', {'lead_id': f'eq.{lead_id}'})


def _error_message(response) -> str:
    """PostgREST puts the reason in a JSON `message`; fall back to the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get('message') or body.get('error') or body)[:200]
    return str(body)[:200]

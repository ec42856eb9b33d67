"""
Roster import: maps spreadsheet rows onto Lead fields.

Column names vary between sheet exports, so every canonical field has an
ordered alias list consulted once per row. Rows with no derivable
identifier are dropped (a filter, not an error). Within one batch the last
row for an identifier wins.
"""
import csv
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import requests

from portal.errors import ImportSourceError
from portal.models.records import Lead

logger = logging.getLogger('services.importer')

# Survey questions exported verbatim as column headers
INTENT_COLUMN = 'आप_किसके_लिए_जानकारी_ले_रहे_हैं?'
TIME_COMMITMENT_COLUMN = 'क्या_आप_अपने_फूड_बिज़नेस_को_समय_देने_के_लिए_तैयार_हैं?'

# Lead attribute → accepted column names, first non-blank wins
FIELD_ALIASES = {
    'lead_id':         ('phone_number', 'Phone', 'ID', 'phone', 'id'),
    'full_name':       ('full_name', 'Full Name', 'Name', 'name'),
    'phone_number':    ('phone_number', 'Phone', 'phone'),
    'email':           ('email', 'Email'),
    'city':            ('city', 'City'),
    'target_city':     ('Target_City', 'Target City', 'target_city'),
    'platform':        ('platform', 'Platform'),
    'assignee':        ('Lead_Allocation', 'Lead Allocation', 'lead_allocation', 'allocation', 'lead_alloc'),
    'gender':          ('Lead_Gender', 'gender', 'Gender'),
    'age':             ('Age', 'age'),
    'dob':             ('date_of_birth', 'Formatted_Date', 'dob'),
    'education_level': ('education_level', 'Education', 'education'),
    'intent_purpose':  (INTENT_COLUMN, 'intent_purpose', 'intent'),
    'time_commitment': (TIME_COMMITMENT_COLUMN, 'time_commitment', 'time_ready'),
    'ad_name':         ('ad_name', 'Ad Name', 'adset_name'),
}

_DOB_FORMATS = ('%Y-%m-%d', '%d/%m/%Y', '%d-%m-%Y', '%m/%d/%Y')
_FLOAT_ID = re.compile(r'^(\d+)\.0+$')


@dataclass
class ImportBatch:
    leads: List[Lead] = field(default_factory=list)
    skipped: int = 0
    duplicates: int = 0


def _pick(row: Dict[str, Any], aliases: Iterable[str]) -> Optional[Any]:
    for alias in aliases:
        value = row.get(alias)
        if value is not None and str(value).strip() != '':
            return value
    return None


def normalise_identifier(value) -> Optional[str]:
    """Spreadsheet numbers come through as floats (9876543210.0); keep the digits."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    match = _FLOAT_ID.match(text)
    if match:
        return match.group(1)
    return text or None


def age_from_dob(dob: Optional[str], today: Optional[date] = None) -> Optional[str]:
    """Whole years between dob and today, or None if dob does not parse."""
    if not dob:
        return None
    text = str(dob).strip()
    born = None
    for fmt in _DOB_FORMATS:
        try:
            born = datetime.strptime(text, fmt).date()
            break
        except ValueError:
            continue
    if born is None:
        return None
    today = today or date.today()
    years = today.year - born.year - ((today.month, today.day) < (born.month, born.day))
    return str(years) if years >= 0 else None


def normalise_row(row: Dict[str, Any], today: Optional[date] = None) -> Optional[Lead]:
    """Build a Lead from one sheet row, or None if it has no identifier."""
    lead_id = normalise_identifier(_pick(row, FIELD_ALIASES['lead_id']))
    if not lead_id:
        return None

    values = {}
    for attr, aliases in FIELD_ALIASES.items():
        if attr == 'lead_id':
            continue
        raw = _pick(row, aliases)
        values[attr] = str(raw).strip() if raw is not None else None

    if values['phone_number']:
        values['phone_number'] = normalise_identifier(values['phone_number'])
    if not values['age']:
        values['age'] = age_from_dob(values['dob'], today)

    return Lead(lead_id=lead_id, **values)


def prepare_import(rows: Iterable[Dict[str, Any]], today: Optional[date] = None) -> ImportBatch:
    """Normalise and de-duplicate a batch. Later rows replace earlier ones."""
    by_id: Dict[str, Lead] = {}
    batch = ImportBatch()
    for row in rows:
        lead = normalise_row(row, today)
        if lead is None:
            batch.skipped += 1
            logger.debug("Skipping row without identifier: %s", sorted(row)[:5])
            continue
        if lead.lead_id in by_id:
            batch.duplicates += 1
        by_id[lead.lead_id] = lead
    batch.leads = list(by_id.values())
    logger.info("Import batch: %d leads, %d skipped, %d duplicates collapsed",
                len(batch.leads), batch.skipped, batch.duplicates)
    return batch


def resolve_csv_url(raw_url: str) -> str:
    """Turn a Google Sheets share/edit/pub link into a CSV export link."""
    url = raw_url.strip()
    if 'docs.google.com/spreadsheets' not in url:
        return url
    if '/pub?' in url:
        url = re.sub(r'output=[^&]+', 'output=csv', url)
        if 'output=csv' not in url:
            url += '&output=csv'
    elif '/edit' in url:
        match = re.search(r'/d/([\w-]+)', url)
        if match:
            url = f"https://docs.google.com/spreadsheets/d/{match.group(1)}/export?format=csv"
    elif 'output=csv' not in url and 'format=csv' not in url:
        url += ('&' if '?' in url else '?') + 'output=csv'
    return url


def parse_csv(text: str) -> List[Dict[str, str]]:
    # utf-8-sig exports carry a BOM on the first header
    return list(csv.DictReader(io.StringIO(text.lstrip('\ufeff'))))


def fetch_csv_rows(url: str, timeout: int = 30) -> List[Dict[str, str]]:
    """Download a published sheet (or any CSV URL) and return its rows."""
    csv_url = resolve_csv_url(url)
    try:
        response = requests.get(csv_url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        logger.error("CSV download failed: %s", e)
        raise ImportSourceError(f"Could not download sheet: {e}") from e
    if response.status_code != 200:
        raise ImportSourceError(f"Sheet download returned HTTP {response.status_code}")
    response.encoding = response.encoding or 'utf-8'
    return parse_csv(response.text)

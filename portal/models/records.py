"""
In-memory lead records.

Lead         — roster fields imported from the external sheet.
ScoreRecord  — the scoring/disposition overlay for one lead.
MergedLead   — a roster entry joined with its overlay (if any).

Store rows are plain dicts using the table's column names; these classes
convert to and from them.
"""
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from portal.config import STATUS_OPEN, UNASSIGNED
from portal.scoring.catalog import Thresholds
from portal.scoring.classifier import calc_total, classify, count_flags
from portal.scoring.disposition import Disposition

# Lead attribute → store column
ROSTER_COLUMNS = {
    'lead_id': 'lead_id',
    'full_name': 'full_name',
    'phone_number': 'phone_number',
    'email': 'email',
    'city': 'city',
    'target_city': 'target_city',
    'platform': 'platform',
    'assignee': 'lead_alloc',
    'gender': 'gender',
    'age': 'age',
    'dob': 'dob',
    'education_level': 'education_level',
    'intent_purpose': 'intent_purpose',
    'time_commitment': 'time_commitment',
    'ad_name': 'ad_name',
}

OVERLAY_COLUMNS = ('scores', 'flags', 'notes', 'total', 'flag_count', 'status', 'updated_at')

# Stored status values that mean "no review yet"
_OPEN_TAGS = {STATUS_OPEN, "'Open'", ''}


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clean(value) -> Optional[str]:
    """Missing or blank cells become None; everything else a stripped string."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class Lead:
    lead_id: str
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    city: Optional[str] = None
    target_city: Optional[str] = None
    platform: Optional[str] = None
    assignee: Optional[str] = None
    gender: Optional[str] = None
    age: Optional[str] = None
    dob: Optional[str] = None
    education_level: Optional[str] = None
    intent_purpose: Optional[str] = None
    time_commitment: Optional[str] = None
    ad_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Lead':
        values = {attr: _clean(row.get(col)) for attr, col in ROSTER_COLUMNS.items()}
        values['lead_id'] = str(row['lead_id']).strip()
        return cls(**values)

    def to_row(self) -> Dict[str, Any]:
        return {col: getattr(self, attr) for attr, col in ROSTER_COLUMNS.items()}


@dataclass(frozen=True)
class ScoreRecord:
    """
    Scoring overlay for one lead.

    total, flag_count and status are derived on every read from
    (scores, flags, disposition); they are never stored on the object.
    """
    lead_id: str
    scores: Dict[str, int] = field(default_factory=dict)
    flags: Dict[int, bool] = field(default_factory=dict)
    notes: str = ''
    disposition: Optional[Disposition] = None
    updated_at: Optional[str] = None
    thresholds: Optional[Thresholds] = field(default=None, compare=False, repr=False)

    @property
    def total(self) -> int:
        return calc_total(self.scores)

    @property
    def flag_count(self) -> int:
        return count_flags(self.flags)

    @property
    def score_status(self) -> str:
        return classify(self.scores, self.flag_count, self.thresholds).value

    @property
    def status(self) -> str:
        if self.disposition is not None:
            return self.disposition.value
        return self.score_status

    @classmethod
    def from_row(cls, row: Dict[str, Any], thresholds: Optional[Thresholds] = None) -> 'ScoreRecord':
        scores = {str(k): int(v) for k, v in (row.get('scores') or {}).items() if v}
        flags = {int(k): bool(v) for k, v in (row.get('flags') or {}).items()}
        return cls(
            lead_id=str(row['lead_id']).strip(),
            scores=scores,
            flags=flags,
            notes=row.get('notes') or '',
            disposition=Disposition.from_status(row.get('status')),
            updated_at=row.get('updated_at'),
            thresholds=thresholds,
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            'lead_id': self.lead_id,
            'scores': dict(self.scores),
            'flags': {str(k): v for k, v in self.flags.items()},
            'notes': self.notes,
            'total': self.total,
            'flag_count': self.flag_count,
            'status': self.status,
            'updated_at': self.updated_at or utcnow_iso(),
        }


def has_score_record(row: Dict[str, Any]) -> bool:
    """True when a store row carries a scoring overlay, not just roster fields."""
    if row.get('scores') or row.get('notes'):
        return True
    if any((row.get('flags') or {}).values()):
        return True
    status = (row.get('status') or '').strip()
    return status not in _OPEN_TAGS


@dataclass
class MergedLead:
    """A roster lead joined with its score record. No record means unscored/Open."""
    lead: Lead
    record: Optional[ScoreRecord] = None

    @property
    def lead_id(self) -> str:
        return self.lead.lead_id

    @property
    def assignee(self) -> str:
        return self.lead.assignee or UNASSIGNED

    @property
    def status(self) -> str:
        return self.record.status if self.record else STATUS_OPEN

    @property
    def is_scored(self) -> bool:
        return bool(self.record and self.record.scores)

    @property
    def scores(self) -> Dict[str, int]:
        return self.record.scores if self.record else {}

    @property
    def total(self) -> Optional[int]:
        return self.record.total if self.record else None

    @property
    def flag_count(self) -> int:
        return self.record.flag_count if self.record else 0

    def value(self, attr: str) -> Optional[str]:
        """Roster attribute by name (used by group-by and filters)."""
        if attr == 'assignee':
            return self.assignee
        return getattr(self.lead, attr)

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self.lead, f.name) for f in fields(self.lead)}
        data.update({
            'assignee': self.assignee,
            'status': self.status,
            'total': self.total,
            'flag_count': self.flag_count,
            'scores': dict(self.scores),
            'flags': {str(k): v for k, v in self.record.flags.items()} if self.record else {},
            'notes': self.record.notes if self.record else '',
            'updated_at': self.record.updated_at if self.record else None,
        })
        return data

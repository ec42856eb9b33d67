"""
Dashboard aggregation: pure functions over the merged lead collection.

Nothing here mutates its input or keeps state between calls; every render
recomputes from scratch. Statuses come from MergedLead.status, which goes
through the classifier, so no threshold comparison happens in this module.
"""
from collections import Counter
from dataclasses import asdict, dataclass, fields
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from portal.config import (
    DISPOSITION_CALLBACK, DISPOSITION_DROP, DISPOSITION_INFO_REQUESTED,
    STATUS_AUTO_REJECT, STATUS_FAST_TRACK, STATUS_LABELS, STATUS_NOT_SUITABLE,
    STATUS_NURTURE, STATUS_OPEN, TOP_N,
)
from portal.models.records import MergedLead
from portal.scoring.catalog import Section, get_sections

# Legacy 'rejected' rows still count as rejections
REJECTED_FAMILY = frozenset({STATUS_AUTO_REJECT, STATUS_NOT_SUITABLE, 'rejected'})
_OPEN_TAGS = frozenset({STATUS_OPEN, "'Open'", ''})

STATUS_ORDER = (
    STATUS_FAST_TRACK, STATUS_NURTURE, STATUS_NOT_SUITABLE, STATUS_AUTO_REJECT,
    DISPOSITION_DROP, DISPOSITION_INFO_REQUESTED, DISPOSITION_CALLBACK, STATUS_OPEN,
)

UNKNOWN = 'Unknown'


def status_of(lead: MergedLead) -> str:
    """Effective status tag, with the legacy open spellings folded into Open."""
    tag = (lead.status or '').strip()
    return STATUS_OPEN if tag in _OPEN_TAGS else tag


# ── Status distribution ──────────────────────────────────────────────────────

def status_distribution(leads: Iterable[MergedLead]) -> Dict[str, int]:
    """Lead count per status tag. Every known tag is present, unknown tags are appended."""
    counts = dict.fromkeys(STATUS_ORDER, 0)
    for lead in leads:
        tag = status_of(lead)
        counts[tag] = counts.get(tag, 0) + 1
    return counts


# ── Per-assignee breakdown ───────────────────────────────────────────────────

@dataclass
class AssigneeRow:
    member: str
    total: int = 0
    fast_track: int = 0
    nurture: int = 0
    rejected: int = 0
    dropped: int = 0
    info_requested: int = 0
    callback: int = 0
    open: int = 0


SORT_COLUMNS = tuple(f.name for f in fields(AssigneeRow))

_BUCKETS = {
    STATUS_FAST_TRACK: 'fast_track',
    STATUS_NURTURE: 'nurture',
    DISPOSITION_DROP: 'dropped',
    DISPOSITION_INFO_REQUESTED: 'info_requested',
    DISPOSITION_CALLBACK: 'callback',
    STATUS_OPEN: 'open',
}


def assignee_breakdown(leads: Iterable[MergedLead]) -> List[AssigneeRow]:
    """One row per assignee in first-seen order. Missing assignees land in Unassigned."""
    rows: Dict[str, AssigneeRow] = {}
    for lead in leads:
        row = rows.get(lead.assignee)
        if row is None:
            row = rows[lead.assignee] = AssigneeRow(member=lead.assignee)
        row.total += 1
        tag = status_of(lead)
        if tag in REJECTED_FAMILY:
            row.rejected += 1
        elif tag in _BUCKETS:
            setattr(row, _BUCKETS[tag], getattr(row, _BUCKETS[tag]) + 1)
    return list(rows.values())


def _sort_key(column: str):
    if column == 'member':
        return lambda row: row.member.casefold()
    return lambda row: getattr(row, column)


def sort_breakdown(rows: Sequence[AssigneeRow], column: str, descending: bool,
                   then_by: Optional[Tuple[str, bool]] = None) -> List[AssigneeRow]:
    """
    Sort rows by one column. Ties keep the order given by then_by
    (column, descending), i.e. the previously active sort.
    """
    if column not in SORT_COLUMNS:
        raise ValueError(f"Unknown sort column '{column}'")
    ordered = list(rows)
    if then_by is not None:
        ordered.sort(key=_sort_key(then_by[0]), reverse=then_by[1])
    # list.sort is stable in both directions
    ordered.sort(key=_sort_key(column), reverse=descending)
    return ordered


class BreakdownSort:
    """
    Team table sort state.

    Picking the active column flips its direction; a new column starts
    ascending for the member name and descending for the counts.
    """

    def __init__(self, column: str = 'total', descending: bool = True):
        if column not in SORT_COLUMNS:
            raise ValueError(f"Unknown sort column '{column}'")
        self.column = column
        self.descending = descending
        self.previous: Optional[Tuple[str, bool]] = None

    def toggle(self, column: str):
        if column not in SORT_COLUMNS:
            raise ValueError(f"Unknown sort column '{column}'")
        if column == self.column:
            self.descending = not self.descending
            return
        self.previous = (self.column, self.descending)
        self.column = column
        self.descending = column != 'member'

    def apply(self, rows: Sequence[AssigneeRow]) -> List[AssigneeRow]:
        return sort_breakdown(rows, self.column, self.descending, self.previous)

    def to_dict(self) -> Dict:
        return {
            'column': self.column,
            'descending': self.descending,
            'previous': list(self.previous) if self.previous else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> 'BreakdownSort':
        if not data or data.get('column') not in SORT_COLUMNS:
            return cls()
        sort = cls(data['column'], bool(data.get('descending', True)))
        previous = data.get('previous')
        if previous and previous[0] in SORT_COLUMNS:
            sort.previous = (previous[0], bool(previous[1]))
        return sort


# ── Section averages ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SectionAverage:
    id: str
    title: str
    average: float
    count: int


def section_averages(leads: Iterable[MergedLead],
                     sections: Optional[Sequence[Section]] = None) -> List[SectionAverage]:
    """Mean of present (>0) scores per section over scored leads; 0.0 when none."""
    sections = list(sections or get_sections())
    scored = [lead for lead in leads if lead.is_scored]
    result = []
    for section in sections:
        values = [lead.scores[section.id] for lead in scored if lead.scores.get(section.id)]
        average = sum(values) / len(values) if values else 0.0
        result.append(SectionAverage(section.id, section.title, average, len(values)))
    return result


# ── Categorical breakdowns ───────────────────────────────────────────────────

def top_values(leads: Iterable[MergedLead], attr: str, limit: Optional[int] = None,
               fallback: str = UNKNOWN) -> List[Tuple[str, int]]:
    """Group-by-count on a roster attribute, most common first (ties in first-seen order)."""
    counts = Counter(lead.value(attr) or fallback for lead in leads)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[:limit] if limit is not None else ranked


@dataclass(frozen=True)
class FlagDistribution:
    clean: int
    single: int
    multi: int

    @property
    def scored(self) -> int:
        return self.clean + self.single + self.multi


def flag_distribution(leads: Iterable[MergedLead]) -> FlagDistribution:
    clean = single = multi = 0
    for lead in leads:
        if not lead.is_scored:
            continue
        if lead.flag_count == 0:
            clean += 1
        elif lead.flag_count == 1:
            single += 1
        else:
            multi += 1
    return FlagDistribution(clean, single, multi)


# ── KPIs ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DashboardKpis:
    total: int
    processed: int
    processed_rate: float
    fast_track: int
    conversion_rate: float
    nurture: int
    rejected: int
    dropped: int
    info_requested: int
    callbacks: int
    open: int
    avg_score: float
    total_flags: int


def _pct(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def dashboard_kpis(leads: Iterable[MergedLead]) -> DashboardKpis:
    leads = list(leads)
    counts = status_distribution(leads)
    total = len(leads)
    totals = [lead.total for lead in leads if lead.is_scored]
    processed = len(totals)
    return DashboardKpis(
        total=total,
        processed=processed,
        processed_rate=_pct(processed, total),
        fast_track=counts[STATUS_FAST_TRACK],
        conversion_rate=_pct(counts[STATUS_FAST_TRACK], total),
        nurture=counts[STATUS_NURTURE],
        rejected=sum(n for tag, n in counts.items() if tag in REJECTED_FAMILY),
        dropped=counts[DISPOSITION_DROP],
        info_requested=counts[DISPOSITION_INFO_REQUESTED],
        callbacks=counts[DISPOSITION_CALLBACK],
        open=counts[STATUS_OPEN],
        avg_score=round(sum(totals) / len(totals), 1) if totals else 0.0,
        total_flags=sum(lead.flag_count for lead in leads),
    )


# ── Full dashboard ───────────────────────────────────────────────────────────

# Roster attribute → entries kept (None keeps all)
CATEGORY_BREAKDOWNS = {
    'target_city': 'top',
    'assignee': 'top',
    'platform': None,
    'gender': None,
    'education_level': 'top',
    'intent_purpose': 'top',
    'time_commitment': 'top',
}


def build_dashboard(leads: Iterable[MergedLead], sections: Optional[Sequence[Section]] = None,
                    top_n: int = TOP_N, sort: Optional[BreakdownSort] = None) -> Dict:
    """Everything the dashboard renders, as plain JSON-ready data."""
    leads = list(leads)
    sort = sort or BreakdownSort()

    statuses = status_distribution(leads)
    return {
        'kpis': asdict(dashboard_kpis(leads)),
        'status_distribution': [
            {'status': tag, 'label': STATUS_LABELS.get(tag, tag), 'count': n}
            for tag, n in statuses.items()
        ],
        'team': {
            'sort': sort.to_dict(),
            'rows': [asdict(row) for row in sort.apply(assignee_breakdown(leads))],
        },
        'section_averages': [
            {'id': s.id, 'title': s.title, 'average': round(s.average, 2), 'count': s.count}
            for s in section_averages(leads, sections)
        ],
        'categories': {
            attr: [
                {'value': value, 'count': n}
                for value, n in top_values(leads, attr, top_n if mode == 'top' else None)
            ]
            for attr, mode in CATEGORY_BREAKDOWNS.items()
        },
        'flags': asdict(flag_distribution(leads)),
    }

"""
Lead list filtering for the review table.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional

from portal.models.records import MergedLead


@dataclass(frozen=True)
class LeadFilter:
    city: Optional[str] = None
    assignee: Optional[str] = None
    platform: Optional[str] = None
    status: Optional[str] = None
    search: Optional[str] = None

    @classmethod
    def from_args(cls, args) -> 'LeadFilter':
        """Build from request args; blank values mean no filter."""
        return cls(**{
            name: (args.get(name) or '').strip() or None
            for name in ('city', 'assignee', 'platform', 'status', 'search')
        })

    def matches(self, lead: MergedLead) -> bool:
        if self.city and lead.lead.target_city != self.city:
            return False
        if self.assignee and lead.assignee != self.assignee:
            return False
        if self.platform and lead.lead.platform != self.platform:
            return False
        if self.status and lead.status != self.status:
            return False
        if self.search:
            needle = self.search.lower()
            name = (lead.lead.full_name or '').lower()
            phone = lead.lead.phone_number or ''
            if needle not in name and needle not in phone:
                return False
        return True


def filter_leads(leads: Iterable[MergedLead], criteria: LeadFilter) -> List[MergedLead]:
    return [lead for lead in leads if criteria.matches(lead)]


def leads_for_identity(leads: Iterable[MergedLead], identity: Optional[str]) -> List[MergedLead]:
    """Team-scoped view: one assignee's leads, or everyone's for the empty identity."""
    if not identity:
        return list(leads)
    return [lead for lead in leads if lead.assignee == identity]


def distinct_values(leads: Iterable[MergedLead], attr: str) -> List[str]:
    """Sorted non-empty values of a roster attribute, for filter dropdowns."""
    return sorted({v for v in (lead.value(attr) for lead in leads) if v})

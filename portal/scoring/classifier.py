"""
Score-derived status classifier.

classify() is the only place a status is derived from section scores and
red flags. Everything else (the score sheet, stored records, the dashboard)
calls it instead of comparing totals against thresholds itself.
"""
from enum import Enum
from typing import Iterable, Mapping, Optional

from portal.config import (
    STATUS_OPEN, STATUS_NOT_SUITABLE, STATUS_NURTURE,
    STATUS_FAST_TRACK, STATUS_AUTO_REJECT, STATUS_LABELS,
)
from portal.scoring.catalog import Thresholds, default_thresholds


class Status(str, Enum):
    """Score-derived lead status. Values are the persisted tags."""
    OPEN = STATUS_OPEN
    NOT_SUITABLE = STATUS_NOT_SUITABLE
    NURTURE = STATUS_NURTURE
    FAST_TRACK = STATUS_FAST_TRACK
    AUTO_REJECT = STATUS_AUTO_REJECT

    @property
    def label(self) -> str:
        return STATUS_LABELS[self.value]


def calc_total(scores: Mapping[str, Optional[int]], section_ids: Optional[Iterable[str]] = None) -> int:
    """Sum of explicitly scored sections. Unset (absent, None or 0) sections add nothing."""
    if section_ids is not None:
        values = (scores.get(sid) for sid in section_ids)
    else:
        values = scores.values()
    return sum(int(v) for v in values if v)


def count_flags(flags: Mapping[int, bool]) -> int:
    return sum(1 for v in flags.values() if v)


def classify(
    scores: Mapping[str, Optional[int]],
    flag_count: int,
    thresholds: Optional[Thresholds] = None,
) -> Status:
    """
    Map (scores, flag_count) to a Status.

    Precedence is fixed:
      1. any red flag          → AUTO_REJECT (regardless of total)
      2. nothing scored yet    → OPEN
      3. total ≥ fast-track    → FAST_TRACK
      4. total ≥ nurture       → NURTURE
      5. otherwise             → NOT_SUITABLE
    """
    limits = thresholds or default_thresholds()
    if flag_count > 0:
        return Status.AUTO_REJECT

    total = calc_total(scores)
    if total == 0:
        return Status.OPEN
    if total >= limits.fast_track:
        return Status.FAST_TRACK
    if total >= limits.nurture:
        return Status.NURTURE
    return Status.NOT_SUITABLE

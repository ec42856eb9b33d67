"""
Score sheet: the in-progress scoring of one lead, and the disposition
state machine that decides when it may be saved.

    None ──select──▶ DROP / CALLBACK / INFO_REQUESTED ──clear──▶ None
    DROP ◀──select──▶ CALLBACK ◀──select──▶ INFO_REQUESTED

Save preconditions by disposition:
    None            all sections scored
    DROP, CALLBACK  non-blank notes (scores optional)
    INFO_REQUESTED  all sections scored AND non-blank notes

A refused save is returned as a SaveOutcome; it never raises and never
reaches the store.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from portal.models.records import ScoreRecord, utcnow_iso
from portal.scoring.catalog import (
    Section, Thresholds, get_red_flags, get_score_values, get_sections,
)
from portal.scoring.classifier import calc_total, classify, count_flags
from portal.scoring.disposition import Disposition

logger = logging.getLogger('scoring.sheet')

REASON_SECTIONS_INCOMPLETE = 'sections_incomplete'
REASON_NOTES_REQUIRED = 'notes_required'


@dataclass(frozen=True)
class Readiness:
    """Whether the sheet can be saved right now, and why not."""
    ready: bool
    reason: Optional[str]
    scored: int
    required: int
    label: str


@dataclass(frozen=True)
class SaveOutcome:
    saved: bool
    reason: Optional[str] = None
    record: Optional[ScoreRecord] = None


class ScoreSheet:
    """Mutable draft of a ScoreRecord for one lead."""

    def __init__(
        self,
        lead_id: str,
        record: Optional[ScoreRecord] = None,
        sections: Optional[Sequence[Section]] = None,
        thresholds: Optional[Thresholds] = None,
    ):
        self.lead_id = lead_id
        self.sections: List[Section] = list(sections or get_sections())
        self.thresholds = thresholds
        self._score_values = get_score_values()
        self._flag_indexes = {flag.index for flag in get_red_flags()}

        self.scores: Dict[str, int] = dict(record.scores) if record else {}
        self.flags: Dict[int, bool] = dict(record.flags) if record else {}
        self.notes: str = record.notes if record else ''
        # Reopening a dispositioned lead restores its disposition
        self.disposition: Optional[Disposition] = record.disposition if record else None

    # ── Editing ──────────────────────────────────────────────────────────────

    def set_score(self, section_id: str, value: Optional[int]):
        if section_id not in {s.id for s in self.sections}:
            raise ValueError(f"Unknown section '{section_id}'")
        if value is None:
            self.scores.pop(section_id, None)
            return
        if value not in self._score_values:
            raise ValueError(f"Score for '{section_id}' must be one of {self._score_values}, got {value!r}")
        self.scores[section_id] = value

    def set_flag(self, index: int, checked: bool):
        if index not in self._flag_indexes:
            raise ValueError(f"Unknown red flag {index!r}")
        if not isinstance(checked, bool):
            raise ValueError(f"Red flag {index} must be true or false, got {checked!r}")
        self.flags[index] = checked

    def set_notes(self, text: Optional[str]):
        self.notes = text or ''

    def select_disposition(self, disposition: Union[Disposition, str]):
        """Enter or switch disposition. Notes carry over as the draft."""
        self.disposition = Disposition(disposition)

    def clear_disposition(self):
        self.disposition = None

    # ── Derived ──────────────────────────────────────────────────────────────

    @property
    def scored_count(self) -> int:
        return sum(1 for s in self.sections if self.scores.get(s.id))

    @property
    def all_scored(self) -> bool:
        return self.scored_count == len(self.sections)

    @property
    def has_notes(self) -> bool:
        return bool(self.notes.strip())

    @property
    def total(self) -> int:
        return calc_total(self.scores, (s.id for s in self.sections))

    @property
    def flag_count(self) -> int:
        return count_flags(self.flags)

    @property
    def status(self) -> str:
        """Status the record would be saved with."""
        if self.disposition is not None:
            return self.disposition.value
        return classify(self.scores, self.flag_count, self.thresholds).value

    def readiness(self) -> Readiness:
        scored, required = self.scored_count, len(self.sections)
        progress = f"Score all sections to save ({scored} / {required} done)"

        if self.disposition in (Disposition.DROP, Disposition.CALLBACK):
            if not self.has_notes:
                return Readiness(False, REASON_NOTES_REQUIRED, scored, required, 'Add notes to save')
            return Readiness(True, None, scored, required, 'Save Disposition')

        if not self.all_scored:
            return Readiness(False, REASON_SECTIONS_INCOMPLETE, scored, required, progress)

        if self.disposition is Disposition.INFO_REQUESTED:
            if not self.has_notes:
                return Readiness(False, REASON_NOTES_REQUIRED, scored, required, 'Add notes before saving')
            return Readiness(True, None, scored, required, 'Save as Info Requested')

        return Readiness(True, None, scored, required, 'Save Qualification Score')

    # ── Save ─────────────────────────────────────────────────────────────────

    def build_record(self) -> ScoreRecord:
        """Snapshot the sheet. Scores are ordered by section display order."""
        ordered = {s.id: self.scores[s.id] for s in self.sections if self.scores.get(s.id)}
        return ScoreRecord(
            lead_id=self.lead_id,
            scores=ordered,
            flags=dict(self.flags),
            notes=self.notes.strip(),
            disposition=self.disposition,
            updated_at=utcnow_iso(),
            thresholds=self.thresholds,
        )

    def save(self, repository) -> SaveOutcome:
        """
        Persist through the repository if the preconditions hold.

        StoreError from the repository propagates unchanged; the sheet keeps
        its in-progress state either way.
        """
        readiness = self.readiness()
        if not readiness.ready:
            logger.info("Save refused for lead %s: %s", self.lead_id, readiness.reason)
            return SaveOutcome(saved=False, reason=readiness.reason)

        record = self.build_record()
        repository.save(record)
        logger.info("Saved lead %s: %spts · %s", self.lead_id, record.total, record.status)
        return SaveOutcome(saved=True, record=record)

"""
Lead repository: syncs the roster and the score overlay from the store and
keeps the merged view current.

Refresh is all-or-nothing: every roster page and the overlay must load
before any in-memory state is replaced. Saves are last-write-wins; the
local copy is only updated after the store accepts the write.
"""
import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from portal.config import ROSTER_PAGE_SIZE
from portal.models.records import Lead, MergedLead, ScoreRecord, has_score_record
from portal.scoring.catalog import Thresholds
from portal.scoring.sheet import ScoreSheet
from portal.services.importer import prepare_import
from portal.services.store import LeadStore

logger = logging.getLogger('services.repository')


@dataclass(frozen=True)
class ImportResult:
    imported: int
    skipped: int
    duplicates: int


class LeadRepository:

    def __init__(self, store: LeadStore, page_size: int = ROSTER_PAGE_SIZE,
                 thresholds: Optional[Thresholds] = None):
        if page_size <= 0:
            raise ValueError('page_size must be positive')
        self.store = store
        self.page_size = page_size
        self.thresholds = thresholds

        self.roster: List[Lead] = []
        self.overlay: Dict[str, ScoreRecord] = {}
        self.leads: List[MergedLead] = []
        self._positions: Dict[str, int] = {}
        self.loaded = False

    # ── Fetch ────────────────────────────────────────────────────────────────

    def _fetch_rows(self) -> List[dict]:
        """Page through the store until a short page. One request in flight at a time."""
        rows = []
        offset = 0
        while True:
            page = self.store.select_page(offset, self.page_size)
            rows.extend(page)
            logger.debug("Page at offset %d: %d rows", offset, len(page))
            if len(page) < self.page_size:
                break
            offset += self.page_size
        return rows

    def _fetch_roster(self) -> List[Lead]:
        return [Lead.from_row(row) for row in self._fetch_rows() if row.get('lead_id')]

    def _fetch_overlay(self) -> Dict[str, ScoreRecord]:
        """Score records keyed by lead_id, read page by page."""
        overlay = {}
        for row in self._fetch_rows():
            if not row.get('lead_id') or not has_score_record(row):
                continue
            record = ScoreRecord.from_row(row, self.thresholds)
            overlay[record.lead_id] = record
        return overlay

    def load_roster(self) -> List[Lead]:
        self.roster = self._fetch_roster()
        logger.info("Loaded %d roster leads", len(self.roster))
        return self.roster

    def load_overlay(self) -> Dict[str, ScoreRecord]:
        self.overlay = self._fetch_overlay()
        logger.info("Loaded %d score records", len(self.overlay))
        return self.overlay

    def merge(self) -> List[MergedLead]:
        """Left join roster → overlay. Overlay rows with no roster entry are ignored."""
        self.leads = [MergedLead(lead, self.overlay.get(lead.lead_id)) for lead in self.roster]
        self._positions = {m.lead_id: i for i, m in enumerate(self.leads)}
        return self.leads

    def refresh(self) -> List[MergedLead]:
        """
        Reload overlay then roster, then merge.

        A StoreError from either fetch propagates and leaves the previous
        roster, overlay and merged view untouched.
        """
        overlay = self._fetch_overlay()
        roster = self._fetch_roster()
        self.overlay = overlay
        self.roster = roster
        self.loaded = True
        merged = self.merge()
        logger.info("Synced %d leads (%d scored)", len(roster), len(overlay))
        return merged

    # ── Lookup ───────────────────────────────────────────────────────────────

    def get(self, lead_id: str) -> Optional[MergedLead]:
        pos = self._positions.get(str(lead_id))
        return self.leads[pos] if pos is not None else None

    def sheet_for(self, lead_id: str) -> ScoreSheet:
        """Open a score sheet prefilled from the lead's saved record, if any."""
        return ScoreSheet(lead_id, record=self.overlay.get(str(lead_id)), thresholds=self.thresholds)

    # ── Write ────────────────────────────────────────────────────────────────

    def _put(self, lead: Lead, record: Optional[ScoreRecord]):
        merged = MergedLead(lead, record)
        pos = self._positions.get(lead.lead_id)
        if pos is None:
            self._positions[lead.lead_id] = len(self.leads)
            self.leads.append(merged)
            self.roster.append(lead)
        else:
            self.leads[pos] = merged
            for i, existing in enumerate(self.roster):
                if existing.lead_id == lead.lead_id:
                    self.roster[i] = lead
                    break

    def save(self, record: ScoreRecord) -> ScoreRecord:
        """
        Upsert one score record, sending the lead's roster fields with it.

        Last write wins. On StoreError nothing local changes.
        """
        if record.thresholds is None and self.thresholds is not None:
            record = replace(record, thresholds=self.thresholds)

        current = self.get(record.lead_id)
        lead = current.lead if current else Lead(lead_id=record.lead_id)
        row = {**lead.to_row(), **record.to_row()} if current else record.to_row()

        self.store.upsert([row])

        self.overlay[record.lead_id] = record
        self._put(lead, record)
        logger.info("Lead %s saved as %s", record.lead_id, record.status,
                    extra={'lead_id': record.lead_id, 'store': self.store.name})
        return record

    def import_roster(self, rows: Iterable[dict]) -> ImportResult:
        """
        Upsert sheet rows as roster leads. Only roster columns are written,
        so existing score records survive a re-import.
        """
        batch = prepare_import(rows)
        if batch.leads:
            self.store.upsert([lead.to_row() for lead in batch.leads])

        for lead in batch.leads:
            self._put(lead, self.overlay.get(lead.lead_id))

        logger.info("Imported %d leads", len(batch.leads))
        return ImportResult(imported=len(batch.leads), skipped=batch.skipped, duplicates=batch.duplicates)

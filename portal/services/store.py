"""
Lead store contract + SQLAlchemy implementation.

A store is a single table keyed by lead_id exposing four primitives:
range-paginated select, full select, upsert-by-key and delete-by-key.
Every failure is raised as StoreError. Nothing is retried here.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError

from portal.database import get_session
from portal.errors import StoreError
from portal.models.scored_lead import ScoredLead

logger = logging.getLogger('services.store')

Row = Dict[str, Any]


class LeadStore(ABC):
    """Persistence contract consumed by the lead repository."""

    name: str = ''

    @abstractmethod
    def select_page(self, offset: int, limit: int) -> List[Row]:
        """Rows [offset, offset + limit) in a stable order."""
        ...

    @abstractmethod
    def select_all(self) -> List[Row]:
        ...

    @abstractmethod
    def upsert(self, rows: List[Row]) -> List[Row]:
        """
        Insert-or-update by lead_id. On conflict only the supplied columns
        are written, so roster imports leave overlay columns alone and
        vice versa.
        """
        ...

    @abstractmethod
    def delete(self, lead_id: str) -> None:
        ...


class SqlLeadStore(LeadStore):
    """Store backed by the scored_leads table via SQLAlchemy sessions."""

    name = 'sql'

    _columns = frozenset(c.name for c in ScoredLead.__table__.columns) - {'created_at'}

    def select_page(self, offset, limit):
        session = get_session()
        try:
            rows = (
                session.query(ScoredLead)
                .order_by(ScoredLead.lead_id)
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [row.to_dict() for row in rows]
        except SQLAlchemyError as e:
            logger.error("Page select failed at offset %d: %s", offset, e)
            raise StoreError(f"select failed: {e}") from e
        finally:
            session.close()

    def select_all(self):
        session = get_session()
        try:
            rows = session.query(ScoredLead).order_by(ScoredLead.updated_at.desc()).all()
            return [row.to_dict() for row in rows]
        except SQLAlchemyError as e:
            logger.error("Full select failed: %s", e)
            raise StoreError(f"select failed: {e}") from e
        finally:
            session.close()

    def upsert(self, rows):
        session = get_session()
        try:
            written = []
            for row in rows:
                lead_id = row['lead_id']
                obj = session.get(ScoredLead, lead_id)
                if obj is None:
                    obj = ScoredLead(lead_id=lead_id)
                    session.add(obj)
                for key, value in row.items():
                    if key in self._columns and key != 'lead_id':
                        setattr(obj, key, value)
                session.flush()
                written.append(obj)
            session.commit()
            return [obj.to_dict() for obj in written]
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Upsert of %d rows failed: %s", len(rows), e)
            raise StoreError(f"upsert failed: {e}") from e
        finally:
            session.close()

    def delete(self, lead_id):
        session = get_session()
        try:
            session.query(ScoredLead).filter_by(lead_id=lead_id).delete()
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Delete of %s failed: %s", lead_id, e)
            raise StoreError(f"delete failed: {e}") from e
        finally:
            session.close()

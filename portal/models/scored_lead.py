"""
ScoredLead model: one row per lead, keyed by lead_id.

Holds both the roster columns (written by import) and the scoring overlay
columns (written by save). Each writer only touches its own columns.
"""
from sqlalchemy import Column, Integer, Text, DateTime, JSON
from sqlalchemy.sql import func

from portal.database import Base


class ScoredLead(Base):
    __tablename__ = 'scored_leads'

    lead_id = Column(Text, primary_key=True)  # phone number or external row id

    # Roster
    full_name = Column(Text, nullable=True)
    phone_number = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    target_city = Column(Text, nullable=True)
    platform = Column(Text, nullable=True)
    lead_alloc = Column(Text, nullable=True)
    gender = Column(Text, nullable=True)
    age = Column(Text, nullable=True)
    dob = Column(Text, nullable=True)
    education_level = Column(Text, nullable=True)
    intent_purpose = Column(Text, nullable=True)
    time_commitment = Column(Text, nullable=True)
    ad_name = Column(Text, nullable=True)

    # Scoring overlay
    scores = Column(JSON, nullable=True)
    flags = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    total = Column(Integer, nullable=True)
    flag_count = Column(Integer, nullable=True)
    status = Column(Text, nullable=True)
    updated_at = Column(Text, nullable=True)  # ISO-8601, set by the writer

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self):
        return {c.name: getattr(self, c.name) for c in self.__table__.columns if c.name != 'created_at'}

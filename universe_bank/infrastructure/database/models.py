"""SQLAlchemy ORM models for persisted credit state"""

from sqlalchemy import Column, DateTime, JSON, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class StateRecord(Base):
    """One whole JSON document per logical store (credit model, loan ledger)"""

    __tablename__ = "state_record"

    key = Column(Text, primary_key=True)
    document = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

# driver_onboarding/models/record.py
from sqlalchemy import Column, Integer, String, DateTime, JSON, Index
from sqlalchemy.sql import func
from .base import Base


class StoredRecord(Base):
    """
    One JSON document addressed by a slash-separated path,
    e.g. "drivers/u1/documents/LICENSE" or "plates/ABC123".
    `version` grows on every write and is the compare-and-swap token for transactions.
    """
    __tablename__ = "records"

    path = Column(String(512), primary_key=True)
    collection = Column(String(512), nullable=False)   # parent path: "drivers/u1/documents"
    doc_id = Column(String(256), nullable=False)

    data = Column(JSON, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_records_collection", "collection"),
    )

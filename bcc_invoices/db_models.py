"""
SQLAlchemy models
"""
from sqlalchemy import Column, String, Integer, Float, DateTime, JSON
from datetime import datetime, timezone
import uuid

from .database import Base

# record keys kept in the JSON payload column
PAYLOAD_KEYS = ("items", "clientName", "clientNumber", "clientAddress", "clientMF", "date")

# record key -> column
TOTAL_COLUMNS = {
    "totalHT": "total_ht",
    "totalTVA": "total_tva",
    "timbre": "timbre",
    "totalRemise": "total_remise",
    "totalTTC": "total_ttc",
}


def gen_id() -> str:
    """24 hex characters, same shape as a Mongo ObjectId."""
    return uuid.uuid4().hex[:24]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Invoice(Base):
    __tablename__ = "invoices"

    # insertion order, breaks created_at ties
    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(24), unique=True, nullable=False, default=gen_id)

    invoice_number = Column(String(32), unique=True, nullable=False)

    payload = Column(JSON, nullable=False)

    total_ht = Column(Float, default=0)
    total_tva = Column(Float, default=0)
    timbre = Column(Float, default=0.1)
    total_remise = Column(Float, default=0)
    total_ttc = Column(Float, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def apply(self, record: dict) -> None:
        payload = dict(self.payload or {})
        for key in PAYLOAD_KEYS:
            if key in record:
                payload[key] = record[key]
        self.payload = payload
        for key, column in TOTAL_COLUMNS.items():
            if key in record:
                setattr(self, column, record[key])

    def to_record(self) -> dict:
        record = {"id": self.id, "invoiceNumber": self.invoice_number}
        record.update(self.payload or {})
        for key, column in TOTAL_COLUMNS.items():
            record[key] = getattr(self, column)
        record["createdAt"] = self.created_at
        record["updatedAt"] = self.updated_at
        return record

"""
Invoice record stores.

Records are plain dicts in the API shape (camelCase keys). Every method is a
coroutine; lookups of an unknown id return ``None`` (or ``False`` for delete).
"""
import copy
import itertools
from typing import Dict, List, Optional, Protocol, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from .db_models import Invoice, gen_id, utcnow


class InvoiceStore(Protocol):
    async def find_all(self) -> List[dict]:
        """All records, newest first."""
        ...

    async def find_by_id(self, invoice_id: str) -> Optional[dict]:
        ...

    async def find_latest(self) -> Optional[dict]:
        """Most recently created record."""
        ...

    async def insert(self, record: dict) -> dict:
        ...

    async def update_by_id(self, invoice_id: str, patch: dict) -> Optional[dict]:
        ...

    async def delete_by_id(self, invoice_id: str) -> bool:
        ...


class MemoryInvoiceStore:
    def __init__(self) -> None:
        self._records: Dict[str, Tuple[int, dict]] = {}
        self._counter = itertools.count()

    def _ordered(self) -> List[dict]:
        entries = sorted(
            self._records.values(),
            key=lambda entry: (entry[1]["createdAt"], entry[0]),
            reverse=True,
        )
        return [record for _, record in entries]

    async def find_all(self) -> List[dict]:
        return [copy.deepcopy(r) for r in self._ordered()]

    async def find_by_id(self, invoice_id: str) -> Optional[dict]:
        entry = self._records.get(invoice_id)
        return copy.deepcopy(entry[1]) if entry else None

    async def find_latest(self) -> Optional[dict]:
        ordered = self._ordered()
        return copy.deepcopy(ordered[0]) if ordered else None

    async def insert(self, record: dict) -> dict:
        now = utcnow()
        stored = copy.deepcopy(record)
        stored.setdefault("id", gen_id())
        stored.setdefault("createdAt", now)
        stored["updatedAt"] = now
        self._records[stored["id"]] = (next(self._counter), stored)
        return copy.deepcopy(stored)

    async def update_by_id(self, invoice_id: str, patch: dict) -> Optional[dict]:
        entry = self._records.get(invoice_id)
        if entry is None:
            return None
        stored = entry[1]
        immutable = ("id", "invoiceNumber", "createdAt")
        stored.update({k: copy.deepcopy(v) for k, v in patch.items() if k not in immutable})
        stored["updatedAt"] = utcnow()
        return copy.deepcopy(stored)

    async def delete_by_id(self, invoice_id: str) -> bool:
        return self._records.pop(invoice_id, None) is not None


class SqlInvoiceStore:
    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._sessions = session_factory

    async def _get(self, session, invoice_id: str) -> Optional[Invoice]:
        result = await session.execute(select(Invoice).where(Invoice.id == invoice_id))
        return result.scalar_one_or_none()

    async def find_all(self) -> List[dict]:
        async with self._sessions() as session:
            result = await session.execute(
                select(Invoice).order_by(Invoice.created_at.desc(), Invoice.pk.desc())
            )
            return [row.to_record() for row in result.scalars()]

    async def find_by_id(self, invoice_id: str) -> Optional[dict]:
        async with self._sessions() as session:
            row = await self._get(session, invoice_id)
            return row.to_record() if row else None

    async def find_latest(self) -> Optional[dict]:
        async with self._sessions() as session:
            result = await session.execute(
                select(Invoice).order_by(Invoice.created_at.desc(), Invoice.pk.desc()).limit(1)
            )
            row = result.scalar_one_or_none()
            return row.to_record() if row else None

    async def insert(self, record: dict) -> dict:
        now = utcnow()
        row = Invoice(
            id=record.get("id") or gen_id(),
            invoice_number=record["invoiceNumber"],
            payload={},
            created_at=record.get("createdAt") or now,
            updated_at=now,
        )
        row.apply(record)
        async with self._sessions() as session:
            session.add(row)
            await session.commit()
            return row.to_record()

    async def update_by_id(self, invoice_id: str, patch: dict) -> Optional[dict]:
        async with self._sessions() as session:
            row = await self._get(session, invoice_id)
            if row is None:
                return None
            row.apply(patch)
            row.updated_at = utcnow()
            await session.commit()
            return row.to_record()

    async def delete_by_id(self, invoice_id: str) -> bool:
        async with self._sessions() as session:
            row = await self._get(session, invoice_id)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True

"""Sequential BCC invoice numbers."""
import asyncio
import re
from typing import Optional

from .errors import InvoiceNumberError
from .logging_config import get_logger

PREFIX = "BCC"
NUMBER_RE = re.compile(rf"^{PREFIX}(\d+)$")

logger = get_logger("numbering")


def format_invoice_number(counter: int) -> str:
    # grows past 3 digits instead of wrapping: BCC999 -> BCC1000
    return f"{PREFIX}{counter:03d}"


def parse_invoice_number(number: Optional[str]) -> int:
    match = NUMBER_RE.match(number or "")
    if not match:
        raise InvoiceNumberError(f"Cannot parse invoice number {number!r}")
    return int(match.group(1))


def next_invoice_number(last_number: Optional[str]) -> str:
    if last_number is None:
        return format_invoice_number(1)
    return format_invoice_number(parse_invoice_number(last_number) + 1)


class InvoiceNumberService:
    """
    Issues invoice numbers and persists the new record in one critical section.

    Reading the latest record, computing the next number and inserting must not
    interleave with another creation, otherwise two requests can read the same
    latest record and issue the same number.
    """

    def __init__(self, store):
        self.store = store
        self._lock = asyncio.Lock()

    async def issue(self, fields: dict) -> dict:
        async with self._lock:
            latest = await self.store.find_latest()
            last_number = latest["invoiceNumber"] if latest else None
            number = next_invoice_number(last_number)
            record = await self.store.insert({**fields, "invoiceNumber": number})
        logger.info("Issued invoice %s (id=%s)", number, record["id"])
        return record

    async def preview_next_number(self) -> str:
        """What the next creation would be numbered, without reserving it."""
        latest = await self.store.find_latest()
        return next_invoice_number(latest["invoiceNumber"] if latest else None)

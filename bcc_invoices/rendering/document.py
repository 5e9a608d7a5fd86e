import math
import os
from datetime import date, datetime, timezone
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, Undefined, select_autoescape

from ..config import Settings
from ..errors import RenderError
from ..logging_config import get_logger

logger = get_logger("rendering.document")

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "templates")
env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)

# item rows that fit on A4 with 10mm margins
FIRST_PAGE_ROWS = 14
NEXT_PAGE_ROWS = 30


def _number(value: Any) -> Optional[float]:
    # missing record fields reach filters as Undefined
    if value is None or isinstance(value, Undefined):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def tnd(amount: Any) -> str:
    value = _number(amount)
    if value is None or math.isnan(value):
        return "0,000 TND"
    return f"{value:.3f}".replace(".", ",") + " TND"


def qty(value: Any) -> str:
    quantity = _number(value)
    if quantity is None or math.isnan(quantity):
        return "0"
    if quantity.is_integer():
        return str(int(quantity))
    return str(quantity).replace(".", ",")


def date_fr(value: Any) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    if isinstance(value, (date, datetime)):
        return value.strftime("%d/%m/%Y")
    return str(value)


env.filters["tnd"] = tnd
env.filters["qty"] = qty
env.filters["date_fr"] = date_fr


def estimate_page_count(item_count: int) -> int:
    if item_count <= FIRST_PAGE_ROWS:
        return 1
    return 1 + math.ceil((item_count - FIRST_PAGE_ROWS) / NEXT_PAGE_ROWS)


def render_invoice_html(
    invoice: dict,
    settings: Settings,
    operator: Optional[str] = None,
    printed_at: Optional[datetime] = None,
) -> str:
    """
    Build the printable HTML for one invoice.

    Totals are displayed as stored on the record; nothing is recomputed here,
    so the TVA line always matches the persisted totalTVA.
    """
    items = invoice.get("items") or []
    company = {
        "name": settings.COMPANY_NAME,
        "address": settings.COMPANY_ADDRESS,
        "phone": settings.COMPANY_PHONE,
        "mf": settings.COMPANY_MF,
        "logo_url": settings.COMPANY_LOGO_URL,
        "delivery": settings.DELIVERY_LABEL,
    }
    template = env.get_template("invoice.html")
    return template.render(
        invoice=invoice,
        items=items,
        company=company,
        page_count=estimate_page_count(len(items)),
        operator=operator or settings.OPERATOR_LABEL,
        printed_at=printed_at or datetime.now(timezone.utc),
    )


class DocumentRenderer:
    """Invoice record -> PDF bytes, through an injected RenderEngine."""

    def __init__(self, engine, settings: Settings):
        self.engine = engine
        self.settings = settings

    async def render(self, invoice: dict, operator: Optional[str] = None) -> bytes:
        try:
            html = render_invoice_html(invoice, self.settings, operator=operator)
        except Exception as exc:
            logger.error("HTML synthesis failed for %s: %s", invoice.get("invoiceNumber"), exc)
            raise RenderError(f"Erreur lors de la génération du PDF: {exc}") from exc
        return await self.engine.render(html)

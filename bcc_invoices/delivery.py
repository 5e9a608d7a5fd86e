"""
PDF delivery for GET /invoices/{id}/pdf.

A request goes Validating -> Loading -> Rendering -> Verifying -> Sending.
Any failure ends the request with a classified JSON error instead.
"""
import asyncio
import re
import time
import traceback
from datetime import date, datetime, timezone
from typing import Optional, Set
from urllib.parse import quote

from fastapi.responses import JSONResponse, Response

from .config import Settings
from .errors import (
    ClientFormatError,
    NotFoundError,
    PdfValidationError,
    RenderTimeoutError,
    classify_failure,
)
from .logging_config import get_logger

logger = get_logger("delivery")

INVOICE_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")
PDF_MAGIC = b"%PDF"
EOF_MARKER = b"%%EOF"
MIN_PDF_BYTES = 1000
# %%EOF may be followed by a newline or two
EOF_SEARCH_WINDOW = 32


def validate_invoice_id(invoice_id: Optional[str]) -> None:
    if not invoice_id or not INVOICE_ID_RE.match(invoice_id):
        raise ClientFormatError(f"Invalid invoice id {invoice_id!r}")


def verify_pdf(buffer: Optional[bytes]) -> None:
    if not buffer:
        raise PdfValidationError("Le PDF généré est vide")
    if len(buffer) < MIN_PDF_BYTES:
        raise PdfValidationError("Le PDF généré semble corrompu (trop petit)")
    if buffer[:4] != PDF_MAGIC:
        logger.error("[PDF] Invalid PDF header: %r", buffer[:4])
        raise PdfValidationError("Le fichier généré n'est pas un PDF valide")
    if EOF_MARKER not in buffer[-EOF_SEARCH_WINDOW:]:
        logger.warning("[PDF] PDF may be incomplete - missing EOF marker")


def pdf_filename(invoice_number: str, today: Optional[date] = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return f"Facture_{invoice_number}_{today.isoformat()}.pdf"


def pdf_headers(filename: str, size: int, generation_ms: int) -> dict:
    return {
        "Content-Disposition": f"attachment; filename=\"{filename}\"; filename*=UTF-8''{quote(filename)}",
        "Content-Length": str(size),
        "Cache-Control": "no-cache, no-store, must-revalidate",
        "Pragma": "no-cache",
        "Expires": "0",
        "X-Content-Type-Options": "nosniff",
        "X-Download-Options": "noopen",
        "X-PDF-Generation-Time": str(generation_ms),
        "X-PDF-Size": str(size),
    }


class PdfDeliveryController:
    def __init__(self, store, renderer, settings: Settings, render_timeout: Optional[float] = None):
        self.store = store
        self.renderer = renderer
        self.settings = settings
        if render_timeout is None:
            render_timeout = settings.RENDER_TIMEOUT_MS / 1000
        self.render_timeout = render_timeout
        # renders that lost the race against the deadline but are still tearing down
        self._abandoned: Set[asyncio.Task] = set()

    def _reap(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            logger.info("[PDF] Abandoned render cancelled and released")
        elif task.exception() is not None:
            logger.warning("[PDF] Abandoned render failed: %s", task.exception())
        else:
            logger.info("[PDF] Abandoned render finished after the deadline; output dropped")

    async def render_with_deadline(self, invoice: dict, operator: Optional[str] = None) -> bytes:
        task = asyncio.create_task(self.renderer.render(invoice, operator=operator))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.render_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task in done:
            return task.result()

        task.cancel()
        self._abandoned.add(task)
        task.add_done_callback(self._reap)
        raise RenderTimeoutError(
            "PDF generation timeout - Le serveur met trop de temps à générer le PDF"
        )

    async def deliver(self, invoice_id: str, actor: Optional[str] = None) -> Response:
        invoice = None
        state = "validating"
        logger.info("[PDF] Starting PDF generation for invoice %s", invoice_id)
        try:
            validate_invoice_id(invoice_id)

            state = "loading"
            invoice = await self.store.find_by_id(invoice_id)
            if invoice is None:
                raise NotFoundError(f"Invoice {invoice_id} not found")
            logger.info("[PDF] Invoice found: %s (user=%s)", invoice.get("invoiceNumber"), actor or "Unknown")

            state = "rendering"
            started = time.perf_counter()
            pdf = await self.render_with_deadline(invoice, operator=actor)
            generation_ms = int((time.perf_counter() - started) * 1000)
            logger.info(
                "[PDF] PDF generated in %dms, size: %d bytes",
                generation_ms,
                len(pdf) if pdf else 0,
            )

            state = "verifying"
            verify_pdf(pdf)

            state = "sending"
            filename = pdf_filename(invoice["invoiceNumber"])
            return Response(
                content=pdf,
                media_type="application/pdf",
                headers=pdf_headers(filename, len(pdf), generation_ms),
            )
        except Exception as exc:
            return self.failure_response(exc, invoice_id, invoice, actor, state)

    def failure_response(
        self,
        exc: Exception,
        invoice_id: str,
        invoice: Optional[dict],
        actor: Optional[str],
        state: str,
    ) -> JSONResponse:
        failure = classify_failure(exc)
        invoice_number = invoice.get("invoiceNumber") if invoice else None
        timestamp = datetime.now(timezone.utc).isoformat()

        logger.error(
            "[PDF] Failed while %s: status=%s code=%s invoiceId=%s invoiceNumber=%s user=%s error=%s",
            state,
            failure.status_code,
            failure.code,
            invoice_id,
            invoice_number,
            actor or "Unknown",
            exc,
            exc_info=exc,
        )

        body = {
            "message": failure.message,
            "code": failure.code,
            "invoiceNumber": invoice_number,
            "timestamp": timestamp,
        }
        if self.settings.is_development:
            body["debug"] = {
                "originalError": str(exc),
                "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            }
        return JSONResponse(status_code=failure.status_code, content=body)

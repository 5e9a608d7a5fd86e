from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from .auth import current_actor, require_api_key
from .calculator import calc_totals
from .config import Settings, get_settings
from .database import create_tables, make_engine, make_session_factory
from .delivery import PdfDeliveryController
from .errors import InvoiceAPIError, NotFoundError
from .logging_config import get_logger, setup_logging
from .middleware import log_request_middleware
from .models import InvoiceIn
from .numbering import InvoiceNumberService
from .rendering import DocumentRenderer, build_engine
from .store import InvoiceStore, MemoryInvoiceStore, SqlInvoiceStore

logger = get_logger("api")

router = APIRouter(prefix="/invoices", dependencies=[Depends(require_api_key)])


def get_store(request: Request) -> InvoiceStore:
    return request.app.state.store


# --- Invoices API ---
@router.get("")
async def list_invoices(store: InvoiceStore = Depends(get_store)):
    return await store.find_all()


@router.get("/next-number")
async def preview_next_number(request: Request):
    number = await request.app.state.numbering.preview_next_number()
    return {"invoiceNumber": number}


@router.get("/{invoice_id}")
async def get_invoice(invoice_id: str, store: InvoiceStore = Depends(get_store)):
    invoice = await store.find_by_id(invoice_id)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


@router.post("", status_code=201)
async def create_invoice(payload: InvoiceIn, request: Request):
    fields = payload.record_fields()
    fields.update(calc_totals(payload.items, payload.timbre, payload.total_remise))
    return await request.app.state.numbering.issue(fields)


@router.put("/{invoice_id}")
async def update_invoice(invoice_id: str, payload: InvoiceIn, store: InvoiceStore = Depends(get_store)):
    patch = payload.record_fields(fill_date=False)
    patch.update(calc_totals(payload.items, payload.timbre, payload.total_remise))
    invoice = await store.update_by_id(invoice_id, patch)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


@router.delete("/{invoice_id}")
async def delete_invoice(invoice_id: str, store: InvoiceStore = Depends(get_store)):
    if not await store.delete_by_id(invoice_id):
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return {"message": "Invoice deleted successfully"}


@router.get("/{invoice_id}/pdf", name="invoice_pdf")
async def invoice_pdf(invoice_id: str, request: Request, actor: str = Depends(current_actor)):
    return await request.app.state.delivery.deliver(invoice_id, actor=actor)


@router.get("/{invoice_id}/download")
async def download_invoice(invoice_id: str, request: Request):
    return RedirectResponse(str(request.url_for("invoice_pdf", invoice_id=invoice_id)), status_code=302)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db_engine = app.state.db_engine
    if db_engine is not None:
        await create_tables(db_engine)
    yield
    if db_engine is not None:
        await db_engine.dispose()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[InvoiceStore] = None,
    engine=None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(title="BCC Invoice API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.db_engine = None

    if store is None:
        if settings.DATABASE_URL:
            app.state.db_engine = make_engine(settings.DATABASE_URL)
            store = SqlInvoiceStore(make_session_factory(app.state.db_engine))
        else:
            store = MemoryInvoiceStore()
    logger.info("Using %s", type(store).__name__)

    renderer = DocumentRenderer(engine or build_engine(settings), settings)
    app.state.store = store
    app.state.numbering = InvoiceNumberService(store)
    app.state.delivery = PdfDeliveryController(store, renderer, settings)

    app.middleware("http")(log_request_middleware)

    @app.exception_handler(InvoiceAPIError)
    async def invoice_api_error(request: Request, exc: InvoiceAPIError):
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "message": exc.message,
                "code": exc.code,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error(
            "%s %s crashed: %s (user=%s)",
            request.method,
            request.url.path,
            exc,
            getattr(request.state, "actor", None) or "-",
            exc_info=exc,
        )
        return JSONResponse(
            status_code=InvoiceAPIError.status_code,
            content={
                "message": InvoiceAPIError.message,
                "code": InvoiceAPIError.code,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    # --- Health ---
    @app.get("/healthz")
    async def healthz():
        return {"ok": True}

    app.include_router(router)
    return app


app = create_app()

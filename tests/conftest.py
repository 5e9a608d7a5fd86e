"""
Shared fixtures: a fake Chromium engine and an app wired to the memory store.
"""
import asyncio
import os

# Test environment variables
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("DATABASE_URL", None)
os.environ.pop("API_KEY", None)

import pytest
from fastapi.testclient import TestClient

from bcc_invoices.config import Settings
from bcc_invoices.main import create_app
from bcc_invoices.store import MemoryInvoiceStore

PDF_BYTES = b"%PDF-1.7\n" + b"0" * 2048 + b"\n%%EOF\n"


class FakeEngine:
    """Stands in for ChromiumEngine; records the HTML it was asked to print."""

    def __init__(self, output: bytes = PDF_BYTES, delay: float = 0.0, error: Exception | None = None):
        self.output = output
        self.delay = delay
        self.error = error
        self.calls: list[str] = []
        self.released = False

    async def render(self, html: str) -> bytes:
        self.calls.append(html)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return self.output
        finally:
            self.released = True


def invoice_payload(**overrides) -> dict:
    payload = {
        "clientName": "Epicerie Ben Salah",
        "clientNumber": "C-042",
        "clientAddress": "Rue de Tunis, Bizerte",
        "clientMF": "1234567/A",
        "date": "2026-10-19",
        "items": [
            {"designation": "Fromage frais", "quantity": 2, "unitPrice": 12.5, "totalPrice": 25.0},
            {"designation": "Ricotta", "quantity": 1.5, "unitPrice": 20.0, "totalPrice": 30.0},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def settings():
    return Settings(ENVIRONMENT="test", COMPANY_LOGO_URL=None)


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def store():
    return MemoryInvoiceStore()


@pytest.fixture
def app(settings, store, fake_engine):
    return create_app(settings=settings, store=store, engine=fake_engine)


@pytest.fixture
def client(app):
    return TestClient(app)

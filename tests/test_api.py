import asyncio
import re

from fastapi.testclient import TestClient

from bcc_invoices.config import Settings
from bcc_invoices.main import create_app
from bcc_invoices.store import MemoryInvoiceStore
from conftest import PDF_BYTES, FakeEngine, invoice_payload


# --- Health ---

def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


# --- CRUD ---

def test_create_assigns_number_and_totals(client):
    response = client.post("/invoices", json=invoice_payload())

    assert response.status_code == 201
    body = response.json()
    assert re.fullmatch(r"[0-9a-f]{24}", body["id"])
    assert body["invoiceNumber"] == "BCC001"
    assert body["totalHT"] == 55.0
    assert body["totalTVA"] == 55.0 * 0.19
    assert body["timbre"] == 0.1
    assert body["totalRemise"] == 0
    assert body["totalTTC"] == 55.0 + 55.0 * 0.19 + 0.1
    assert body["clientMF"] == "1234567/A"
    assert body["items"][1]["unitPrice"] == 20.0


def test_create_numbers_sequentially(client):
    numbers = [client.post("/invoices", json=invoice_payload()).json()["invoiceNumber"] for _ in range(3)]
    assert numbers == ["BCC001", "BCC002", "BCC003"]


def test_create_defaults_date(client):
    body = client.post("/invoices", json=invoice_payload(date=None)).json()
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", body["date"])


def test_create_requires_client_fields(client):
    payload = invoice_payload()
    del payload["clientName"]

    assert client.post("/invoices", json=payload).status_code == 422


def test_create_fails_on_corrupt_last_number(client, store):
    asyncio.run(store.insert({"invoiceNumber": "FAC-12"}))

    response = client.post("/invoices", json=invoice_payload())

    assert response.status_code == 409
    assert response.json()["code"] == "INVOICE_NUMBER_CORRUPT"


def test_list_newest_first(client):
    for _ in range(3):
        client.post("/invoices", json=invoice_payload())

    numbers = [i["invoiceNumber"] for i in client.get("/invoices").json()]
    assert numbers == ["BCC003", "BCC002", "BCC001"]


def test_get_invoice(client):
    created = client.post("/invoices", json=invoice_payload()).json()

    response = client.get(f"/invoices/{created['id']}")

    assert response.status_code == 200
    assert response.json()["invoiceNumber"] == "BCC001"
    assert client.get("/invoices/0123456789abcdef01234567").status_code == 404


def test_update_recomputes_totals_and_keeps_number(client):
    created = client.post("/invoices", json=invoice_payload()).json()
    new_items = [{"designation": "Mozzarella", "quantity": 4, "unitPrice": 25.0, "totalPrice": 100.0}]

    response = client.put(
        f"/invoices/{created['id']}",
        json=invoice_payload(items=new_items, date=None, totalRemise=10),
    )

    assert response.status_code == 200
    fetched = client.get(f"/invoices/{created['id']}").json()
    assert fetched["invoiceNumber"] == "BCC001"
    assert fetched["totalHT"] == 100.0
    assert fetched["totalTVA"] == 100.0 * 0.19
    assert fetched["totalRemise"] == 10.0
    assert fetched["totalTTC"] == 100.0 + 100.0 * 0.19 + 0.1 - 10.0
    assert fetched["items"][0]["designation"] == "Mozzarella"
    assert fetched["date"] == "2026-10-19"


def test_update_unknown_invoice(client):
    response = client.put("/invoices/0123456789abcdef01234567", json=invoice_payload())
    assert response.status_code == 404


def test_delete_invoice(client):
    created = client.post("/invoices", json=invoice_payload()).json()

    response = client.delete(f"/invoices/{created['id']}")

    assert response.status_code == 200
    assert response.json() == {"message": "Invoice deleted successfully"}
    assert client.get(f"/invoices/{created['id']}").status_code == 404
    assert client.delete(f"/invoices/{created['id']}").status_code == 404


def test_preview_next_number(client):
    assert client.get("/invoices/next-number").json() == {"invoiceNumber": "BCC001"}
    client.post("/invoices", json=invoice_payload())
    assert client.get("/invoices/next-number").json() == {"invoiceNumber": "BCC002"}


# --- PDF ---

def test_pdf_download(client, fake_engine):
    created = client.post("/invoices", json=invoice_payload()).json()

    response = client.get(f"/invoices/{created['id']}/pdf", headers={"X-User": "Sami"})

    assert response.status_code == 200
    assert response.content == PDF_BYTES
    assert response.headers["content-type"] == "application/pdf"
    assert "Facture_BCC001_" in response.headers["content-disposition"]
    assert response.headers["pragma"] == "no-cache"
    assert response.headers["expires"] == "0"
    assert response.headers["x-download-options"] == "noopen"
    assert "Utilisateur : Sami" in fake_engine.calls[0]


def test_pdf_invalid_id(client, fake_engine):
    response = client.get("/invoices/not-an-id/pdf")

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "INVALID_ID_FORMAT"
    assert body["message"] == "Format d'ID de facture invalide"
    assert "timestamp" in body
    assert fake_engine.calls == []


def test_pdf_unknown_invoice(client):
    response = client.get("/invoices/0123456789abcdef01234567/pdf")

    assert response.status_code == 404
    assert response.json()["code"] == "INVOICE_NOT_FOUND"


def test_pdf_engine_failure_is_json(settings, store):
    engine = FakeEngine(error=MemoryError("out of memory"))
    client = TestClient(create_app(settings=settings, store=store, engine=engine))
    created = client.post("/invoices", json=invoice_payload()).json()

    response = client.get(f"/invoices/{created['id']}/pdf")

    assert response.status_code == 507
    body = response.json()
    assert body["code"] == "INSUFFICIENT_MEMORY"
    assert body["invoiceNumber"] == "BCC001"


def test_download_redirects_to_pdf(client):
    created = client.post("/invoices", json=invoice_payload()).json()

    response = client.get(f"/invoices/{created['id']}/download", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"].endswith(f"/invoices/{created['id']}/pdf")


# --- Auth ---

def test_api_key_required_when_configured(store, fake_engine):
    settings = Settings(ENVIRONMENT="test", API_KEY="secret", COMPANY_LOGO_URL=None)
    client = TestClient(create_app(settings=settings, store=store, engine=fake_engine))

    assert client.get("/invoices").status_code == 401
    assert client.get("/invoices", headers={"X-API-Key": "wrong"}).status_code == 401
    assert client.get("/invoices", headers={"X-API-Key": "secret"}).status_code == 200
    assert client.get("/healthz").status_code == 200


# --- SQL backend ---

def test_sql_backend_round_trip(fake_engine):
    settings = Settings(
        ENVIRONMENT="test",
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        COMPANY_LOGO_URL=None,
    )
    with TestClient(create_app(settings=settings, engine=fake_engine)) as client:
        first = client.post("/invoices", json=invoice_payload()).json()
        second = client.post("/invoices", json=invoice_payload()).json()

        assert [first["invoiceNumber"], second["invoiceNumber"]] == ["BCC001", "BCC002"]
        assert client.get(f"/invoices/{first['id']}").json()["totalHT"] == 55.0
        assert client.get(f"/invoices/{second['id']}/pdf").status_code == 200
        assert client.delete(f"/invoices/{first['id']}").status_code == 200
        assert [i["invoiceNumber"] for i in client.get("/invoices").json()] == ["BCC002"]


# --- Error contract ---

class FailingInsertStore(MemoryInvoiceStore):
    async def insert(self, record):
        raise RuntimeError("UNIQUE constraint failed: invoices.invoice_number")


def test_crud_miss_returns_coded_json(client):
    for response in (
        client.get("/invoices/0123456789abcdef01234567"),
        client.put("/invoices/0123456789abcdef01234567", json=invoice_payload()),
        client.delete("/invoices/0123456789abcdef01234567"),
    ):
        assert response.status_code == 404
        body = response.json()
        assert body["code"] == "INVOICE_NOT_FOUND"
        assert body["message"] == "Facture introuvable"
        assert "timestamp" in body


def test_unexpected_store_error_returns_json(settings, fake_engine):
    app = create_app(settings=settings, store=FailingInsertStore(), engine=fake_engine)
    client = TestClient(app, raise_server_exceptions=False)

    response = client.post("/invoices", json=invoice_payload())

    assert response.status_code == 500
    assert response.headers["content-type"] == "application/json"
    body = response.json()
    assert body["code"] == "INTERNAL_ERROR"
    assert body["message"] == "Erreur interne du serveur"
    assert "timestamp" in body


def test_non_numeric_amounts_degrade_to_zero(client):
    items = [
        {"designation": "Fromage", "quantity": "abc", "unitPrice": "x", "totalPrice": "abc"},
        {"designation": "Ricotta", "quantity": 1, "unitPrice": 30, "totalPrice": 30},
    ]

    response = client.post("/invoices", json=invoice_payload(items=items))

    assert response.status_code == 201
    body = response.json()
    assert body["totalHT"] == 30.0
    assert body["items"][0]["quantity"] == 0
    assert body["items"][0]["totalPrice"] == 0

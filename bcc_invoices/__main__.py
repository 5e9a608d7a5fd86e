import os

import uvicorn


def main() -> None:
    host = os.getenv("INVOICE_HOST", "0.0.0.0")
    port = int(os.getenv("INVOICE_PORT", "8000"))
    uvicorn.run("bcc_invoices.main:app", host=host, port=port)


if __name__ == "__main__":
    main()

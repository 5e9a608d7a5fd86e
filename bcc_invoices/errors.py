"""
Error taxonomy for the invoice API.

Every error that can reach a client carries an HTTP status, a stable
machine-readable ``code`` and a French message shown to the end user.
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Type


class InvoiceAPIError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    message = "Erreur interne du serveur"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.message)


class ClientFormatError(InvoiceAPIError):
    status_code = 400
    code = "INVALID_ID_FORMAT"
    message = "Format d'ID de facture invalide"


class NotFoundError(InvoiceAPIError):
    status_code = 404
    code = "INVOICE_NOT_FOUND"
    message = "Facture introuvable"


class InvoiceNumberError(InvoiceAPIError):
    """The latest stored invoice number cannot be parsed."""

    status_code = 409
    code = "INVOICE_NUMBER_CORRUPT"
    message = "Le dernier numéro de facture est invalide; création impossible."


class RenderTimeoutError(InvoiceAPIError):
    status_code = 504
    code = "PDF_TIMEOUT"
    message = "La génération du PDF prend trop de temps. Veuillez réessayer."


class ResourceExhaustionError(InvoiceAPIError):
    status_code = 507
    code = "INSUFFICIENT_MEMORY"
    message = "Mémoire insuffisante pour générer le PDF. Veuillez réessayer plus tard."


class RenderServiceError(InvoiceAPIError):
    status_code = 503
    code = "PDF_SERVICE_UNAVAILABLE"
    message = "Service de génération PDF temporairement indisponible."


class PdfValidationError(InvoiceAPIError):
    status_code = 422
    code = "PDF_VALIDATION_ERROR"
    message = "Le PDF généré est invalide"


class InternalError(InvoiceAPIError):
    status_code = 500
    code = "PDF_GENERATION_ERROR"
    message = "Erreur lors de la génération du PDF"


class RenderError(Exception):
    """Raised by the document renderer; wraps whatever the engine raised."""


@dataclass(frozen=True)
class Failure:
    status_code: int
    code: str
    message: str


# First match wins. A rule matches on exception type or on a keyword
# found in the lower-cased error text.
CLASSIFICATION_RULES: Tuple[Tuple[Type[InvoiceAPIError], Tuple[type, ...], Tuple[str, ...]], ...] = (
    (RenderTimeoutError, (RenderTimeoutError, TimeoutError), ("timeout",)),
    (ResourceExhaustionError, (ResourceExhaustionError, MemoryError), ("memory",)),
    (RenderServiceError, (RenderServiceError,), ("browser", "playwright", "chromium")),
    (NotFoundError, (NotFoundError,), ("not found", "introuvable")),
    (PdfValidationError, (PdfValidationError,), ("vide", "corrompu")),
)


def _matches(exc: BaseException, types: Tuple[type, ...], keywords: Iterable[str]) -> bool:
    if isinstance(exc, types):
        return True
    text = str(exc).lower()
    return any(keyword in text for keyword in keywords)


def classify_failure(exc: BaseException) -> Failure:
    if isinstance(exc, ClientFormatError):
        return Failure(exc.status_code, exc.code, exc.message)

    for error_cls, types, keywords in CLASSIFICATION_RULES:
        if _matches(exc, types, keywords):
            # validation errors echo their specific reason
            if error_cls is PdfValidationError:
                return Failure(error_cls.status_code, error_cls.code, str(exc))
            return Failure(error_cls.status_code, error_cls.code, error_cls.message)

    return Failure(InternalError.status_code, InternalError.code, InternalError.message)

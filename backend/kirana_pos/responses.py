# Overview: Maps service-layer exceptions to JSON error responses.

from flask import jsonify

from .services.concurrency import PersistenceFailure
from .services.held_bill_service import HeldBillNotFound
from .services.invoice_service import InvoiceSequenceError
from .services.sales_service import FinalizeAborted, InsufficientPayment, SaleError
from .services.stock_service import StockConflict
from .validation import ConflictError, NotFoundError, ValidationError

# Expected failures a route reports to the caller instead of logging as a crash
SERVICE_ERRORS = (
    ValidationError,
    ConflictError,
    NotFoundError,
    SaleError,
    PersistenceFailure,
    InvoiceSequenceError,
)


def error_response(exc: Exception):
    """(body, status) for an expected service error."""
    body = {"error": str(exc)}
    details = getattr(exc, "details", None)
    if details:
        body["details"] = details

    if isinstance(exc, ValidationError):
        return jsonify(body), 400
    if isinstance(exc, InsufficientPayment):
        body["code"] = "insufficient_payment"
        return jsonify(body), 402
    if isinstance(exc, HeldBillNotFound):
        body["code"] = "held_bill_not_found"
        return jsonify(body), 404
    if isinstance(exc, NotFoundError):
        return jsonify(body), 404
    if isinstance(exc, StockConflict):
        body["code"] = "stock_conflict"
        return jsonify(body), 409
    if isinstance(exc, FinalizeAborted):
        body["code"] = "finalize_aborted"
        return jsonify(body), 409
    if isinstance(exc, ConflictError):
        return jsonify(body), 409
    if isinstance(exc, PersistenceFailure):
        body["code"] = "persistence_failure"
        body["retryable"] = True
        return jsonify(body), 503
    if isinstance(exc, InvoiceSequenceError):
        return jsonify(body), 503
    return jsonify(body), 400

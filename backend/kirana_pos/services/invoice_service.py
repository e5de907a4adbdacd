# Overview: Invoice number sequence: atomic increment, formatting and forward-only advances.

from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InvoiceCounter
from ..time_utils import utcnow
from .concurrency import run_in_write_transaction
from .settings_service import get_settings

logger = logging.getLogger(__name__)

COUNTER_NAME = "invoice"
NUMBER_PAD = 5


class InvoiceSequenceError(Exception):
    """Raised when invoice sequence operations fail."""
    pass


def format_invoice_number(prefix: str, year: int, number: int) -> str:
    return f"{prefix}-{year}-{number:0{NUMBER_PAD}d}"


def parse_invoice_number(value: str) -> tuple[str, int, int]:
    """
    Split "PREFIX-YYYY-NNNNN" into (prefix, year, number).

    The year is the issuance year; the number is the global counter value and
    does not restart at 00001 in January.
    """
    try:
        prefix, year, number = value.rsplit("-", 2)
        return prefix, int(year), int(number)
    except (AttributeError, ValueError):
        raise InvoiceSequenceError(f"Malformed invoice number: {value!r}")


def ensure_counter(starting_number: int | None = None) -> None:
    """
    Create the counter row if missing, seeded from the shop's starting number.

    Commits on its own; safe to call concurrently (the loser of the insert race
    just sees the winner's row).
    """
    if db.session.get(InvoiceCounter, COUNTER_NAME) is not None:
        return
    if starting_number is None:
        starting_number = get_settings().starting_invoice_number

    db.session.add(InvoiceCounter(name=COUNTER_NAME, next_number=starting_number))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()


def allocate_invoice_number(prefix: str) -> str:
    """
    Consume the next number inside the caller's write transaction (no commit).

    The increment is a single UPDATE ... SET next_number = next_number + 1;
    the value read back afterwards is ours because the row stays write-locked
    until the caller commits.
    """
    stmt = (
        update(InvoiceCounter)
        .where(InvoiceCounter.name == COUNTER_NAME)
        .values(next_number=InvoiceCounter.next_number + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        raise InvoiceSequenceError("Invoice counter is not initialized")

    current = (
        db.session.query(InvoiceCounter.next_number)
        .filter_by(name=COUNTER_NAME)
        .scalar()
    )
    return format_invoice_number(prefix, utcnow().year, current - 1)


def next_invoice_number(prefix: str | None = None) -> str:
    """Allocate and commit one invoice number; it stays consumed even if unused."""
    settings = get_settings()
    prefix = prefix or settings.invoice_prefix
    ensure_counter(settings.starting_invoice_number)

    number = run_in_write_transaction(lambda: allocate_invoice_number(prefix))
    logger.info("Invoice number issued: %s", number)
    return number


def peek_next_number() -> int:
    """The counter value the next sale will receive (read-only)."""
    current = (
        db.session.query(InvoiceCounter.next_number)
        .filter_by(name=COUNTER_NAME)
        .scalar()
    )
    if current is None:
        return get_settings().starting_invoice_number
    return current


def advance_counter(to_number: int) -> int:
    """
    Move the counter forward to to_number. Lower values are ignored, so issued
    numbers are never handed out again. Returns the resulting next number.
    """
    ensure_counter(to_number)

    def _op():
        stmt = (
            update(InvoiceCounter)
            .where(InvoiceCounter.name == COUNTER_NAME, InvoiceCounter.next_number < to_number)
            .values(next_number=to_number, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)
        if result.rowcount:
            logger.info("Invoice counter advanced to %s", to_number)
        return (
            db.session.query(InvoiceCounter.next_number)
            .filter_by(name=COUNTER_NAME)
            .scalar()
        )

    return run_in_write_transaction(_op)

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class InvoiceCounter(db.Model):
    """
    Store-wide invoice sequence.

    next_number is the number the next sale will receive. It is only ever
    changed by a single UPDATE ... SET next_number = next_number + 1 (or a
    forward-only jump), never by read-then-write.

    The counter is not reset at year rollover; the year printed in the invoice
    number is the year of issuance.
    """
    __tablename__ = "invoice_counters"

    name = db.Column(db.String(32), primary_key=True)
    next_number = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class FinalizeAttempt(db.Model):
    """
    Checkout attempt keyed by a client-generated id.

    STATUS:
    - numbered:  invoice number reserved, sale not committed yet (retryable with
                 the same attempt_id; the same invoice number is reused)
    - committed: sale and stock movements written
    - aborted:   stock conflict; the invoice number stays consumed and is never
                 reissued (gaps are allowed, duplicates are not)
    """
    __tablename__ = "finalize_attempts"
    __table_args__ = (
        db.Index("ix_finalize_attempts_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    attempt_id = db.Column(db.String(64), nullable=False, unique=True)
    invoice_number = db.Column(db.String(32), nullable=False, unique=True)
    status = db.Column(db.String(16), nullable=False, default="numbered")
    failure_reason = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "attempt_id": self.attempt_id,
            "invoice_number": self.invoice_number,
            "status": self.status,
            "failure_reason": self.failure_reason,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

# Overview: Outstanding-balance settlement; pure record operations plus locked, versioned persistence wrappers.

"""
Settlement Tracker

WHY: Credit sales (customer owes the business) and credit purchase orders
(the business owes a supplier) share one balance model: a total, an
outstanding amount that shrinks as payments are recorded, and a payment
status derived from the two.

DESIGN PRINCIPLES:
- SettlementRecord is an immutable value; every operation returns a new one
- outstanding == max(0, total - sum(live payment amounts)) after every operation
- A payment may never exceed the live outstanding amount
- Edits apply the delta (undo old amount, apply new) so edits compose
- Payment status is derived, never stored; "overdue" is derived at read time
- Persistence wrappers validate against an in-memory copy, then commit once
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.orm.attributes import flag_modified

from ..extensions import db
from ..models import Sale, PurchaseOrder, SettlementPayment
from ..models.sales import SALE_RETURNED
from ..models.settlement import PAYMENT_RECORDED, PAYMENT_DELETED
from ..money import ZERO, PAID_EPSILON, quantize, to_decimal
from ..validation import (
    ValidationError,
    NotFoundError,
    StateConflictError,
)
from retailcore.time_utils import utcnow
from .concurrency import lock_for_update, check_version, run_with_retry

logger = logging.getLogger(__name__)


STATUS_PAID = "paid"
STATUS_PARTIALLY_PAID = "partially_paid"
STATUS_UNPAID = "unpaid"
STATUS_OVERDUE = "overdue"

SETTLEMENT_METHODS = {"cash", "card", "transfer", "qris"}

DOCUMENT_SALE = "sale"
DOCUMENT_PURCHASE_ORDER = "purchase_order"

DOCUMENT_MODELS = {
    DOCUMENT_SALE: Sale,
    DOCUMENT_PURCHASE_ORDER: PurchaseOrder,
}


# =============================================================================
# PURE RECORD
# =============================================================================

@dataclass(frozen=True)
class PaymentEntry:
    id: Any
    amount: Decimal
    method: str
    paid_at: datetime | None = None
    note: str | None = None
    recorder_id: str | None = None
    recorder_name: str | None = None


@dataclass(frozen=True)
class SettlementRecord:
    total: Decimal
    outstanding: Decimal
    payments: tuple[PaymentEntry, ...] = field(default_factory=tuple)

    @property
    def paid_total(self) -> Decimal:
        return sum((p.amount for p in self.payments), ZERO)

    @property
    def status(self) -> str:
        return status_for(self.total, self.outstanding)

    def find(self, payment_id) -> PaymentEntry | None:
        for entry in self.payments:
            if entry.id == payment_id:
                return entry
        return None


def status_for(total: Decimal, outstanding: Decimal) -> str:
    """
    paid:            outstanding <= 0.01
    unpaid:          outstanding ~= total
    partially_paid:  anything in between
    """
    if outstanding <= PAID_EPSILON:
        return STATUS_PAID
    if abs(total - outstanding) <= PAID_EPSILON or outstanding > total:
        return STATUS_UNPAID
    return STATUS_PARTIALLY_PAID


def display_status(status: str, due_date: date | None, today: date | None = None) -> str:
    """
    Read-time refinement: unpaid/partially_paid past the due date shows as overdue.

    Never persist the result.
    """
    if status not in (STATUS_UNPAID, STATUS_PARTIALLY_PAID) or due_date is None:
        return status
    if today is None:
        today = utcnow().date()
    return STATUS_OVERDUE if today > due_date else status


def initialize(total_amount, is_credit_term: bool) -> SettlementRecord:
    total = to_decimal(total_amount)
    if total < ZERO:
        raise ValidationError("Total amount cannot be negative")
    return SettlementRecord(total=total, outstanding=total if is_credit_term else ZERO)


def _next_entry_id(record: SettlementRecord) -> int:
    ids = [p.id for p in record.payments if isinstance(p.id, int)]
    return max(ids, default=0) + 1


def record_payment(
    record: SettlementRecord,
    amount,
    method: str,
    paid_at: datetime | None = None,
    note: str | None = None,
    recorder_id: str | None = None,
    recorder_name: str | None = None,
    *,
    payment_id=None,
) -> SettlementRecord:
    """
    Apply a payment against the live outstanding amount.

    Raises:
        ValidationError: amount <= 0, amount > outstanding, or unknown method
    """
    amount = to_decimal(amount)
    if amount <= ZERO:
        raise ValidationError("Payment amount must be positive")
    if method not in SETTLEMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method. Must be one of: {', '.join(sorted(SETTLEMENT_METHODS))}"
        )
    if amount > record.outstanding:
        raise ValidationError(
            "Payment exceeds outstanding amount",
            details={"amount": str(amount), "outstanding": str(record.outstanding)},
        )

    entry = PaymentEntry(
        id=payment_id if payment_id is not None else _next_entry_id(record),
        amount=amount,
        method=method,
        paid_at=paid_at or utcnow(),
        note=note,
        recorder_id=recorder_id,
        recorder_name=recorder_name,
    )
    return replace(
        record,
        outstanding=record.outstanding - amount,
        payments=record.payments + (entry,),
    )


def edit_payment(
    record: SettlementRecord,
    payment_id,
    new_amount,
    *,
    method: str | None = None,
    paid_at: datetime | None = None,
    note: str | None = None,
) -> SettlementRecord:
    """
    Change a recorded payment.

    delta = new - old; rejected when outstanding - delta < 0.

    Raises:
        ValidationError: new amount <= 0 or would overdraw the balance
        StateConflictError: payment id not on this record
    """
    entry = record.find(payment_id)
    if entry is None:
        raise StateConflictError(f"Payment {payment_id} not found on this document")

    new_amount = to_decimal(new_amount)
    if new_amount <= ZERO:
        raise ValidationError("Payment amount must be positive")
    if method is not None and method not in SETTLEMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method. Must be one of: {', '.join(sorted(SETTLEMENT_METHODS))}"
        )

    delta = new_amount - entry.amount
    if record.outstanding - delta < ZERO:
        raise ValidationError(
            "Edited payment would exceed outstanding amount",
            details={
                "original_amount": str(entry.amount),
                "new_amount": str(new_amount),
                "outstanding": str(record.outstanding),
            },
        )

    updated = replace(
        entry,
        amount=new_amount,
        method=method or entry.method,
        paid_at=paid_at or entry.paid_at,
        note=note if note is not None else entry.note,
    )
    payments = tuple(updated if p.id == payment_id else p for p in record.payments)
    return replace(record, outstanding=record.outstanding - delta, payments=payments)


def delete_payment(record: SettlementRecord, payment_id) -> SettlementRecord:
    """
    Remove a payment and restore its amount (never above the total).

    Raises:
        StateConflictError: payment id unknown or already deleted
    """
    entry = record.find(payment_id)
    if entry is None:
        raise StateConflictError(f"Payment {payment_id} not found or already deleted")

    outstanding = min(record.outstanding + entry.amount, record.total)
    payments = tuple(p for p in record.payments if p.id != payment_id)
    return replace(record, outstanding=outstanding, payments=payments)


# =============================================================================
# PERSISTENCE
# =============================================================================

def _model_for(document_type: str):
    model = DOCUMENT_MODELS.get(document_type)
    if model is None:
        raise ValidationError(f"Unknown document type: {document_type}")
    return model


def _load_document(document_type: str, document_id: int):
    model = _model_for(document_type)
    document = lock_for_update(db.session.query(model).filter_by(id=document_id)).first()
    if not document:
        raise NotFoundError(f"{document_type.replace('_', ' ').capitalize()} {document_id} not found")
    return document


def _ensure_settleable(document_type: str, document) -> None:
    if document_type == DOCUMENT_SALE:
        if document.status == SALE_RETURNED:
            raise StateConflictError("Sale has been returned")
        if not document.is_credit:
            raise StateConflictError("Sale was not made on credit terms")
        return

    if document.status == "cancelled":
        raise StateConflictError("Purchase order is cancelled")
    if not document.is_credit:
        raise StateConflictError("Purchase order was not placed on credit terms")
    if not document.is_payable:
        raise StateConflictError("Purchase order is not payable until goods are received")


def _live_payment_rows(document_type: str, document_id: int) -> list[SettlementPayment]:
    return (
        db.session.query(SettlementPayment)
        .filter_by(document_type=document_type, document_id=document_id, status=PAYMENT_RECORDED)
        .order_by(SettlementPayment.id)
        .all()
    )


def record_for_document(document_type: str, document) -> SettlementRecord:
    """Build the in-memory record for a loaded document."""
    rows = _live_payment_rows(document_type, document.id)
    return SettlementRecord(
        total=to_decimal(document.total_amount),
        outstanding=to_decimal(document.outstanding_amount),
        payments=tuple(
            PaymentEntry(
                id=row.id,
                amount=to_decimal(row.amount),
                method=row.method,
                paid_at=row.paid_at,
                note=row.note,
                recorder_id=row.recorded_by_user_id,
                recorder_name=row.recorded_by_name,
            )
            for row in rows
        ),
    )


def list_payments(document_type: str, document_id: int, include_deleted: bool = False) -> list[SettlementPayment]:
    _model_for(document_type)
    query = db.session.query(SettlementPayment).filter_by(
        document_type=document_type, document_id=document_id
    )
    if not include_deleted:
        query = query.filter_by(status=PAYMENT_RECORDED)
    return query.order_by(SettlementPayment.paid_at, SettlementPayment.id).all()


def record_document_payment(
    *,
    document_type: str,
    document_id: int,
    amount,
    method: str,
    paid_at: datetime | None = None,
    note: str | None = None,
    actor=None,
    expected_version: int | None = None,
) -> tuple[SettlementPayment, Any]:
    """
    Record a payment on a sale or purchase order.

    Returns:
        (SettlementPayment, document)
    """
    amount = quantize(to_decimal(amount))

    def _op():
        document = _load_document(document_type, document_id)
        check_version(document, expected_version)
        _ensure_settleable(document_type, document)

        record = record_for_document(document_type, document)
        when = paid_at or utcnow()
        updated = record_payment(
            record,
            amount,
            method,
            when,
            note,
            actor.id if actor else None,
            actor.name if actor else None,
        )

        payment = SettlementPayment(
            document_type=document_type,
            document_id=document.id,
            amount=amount,
            method=method,
            paid_at=when,
            note=note,
            status=PAYMENT_RECORDED,
            recorded_by_user_id=actor.id if actor else None,
            recorded_by_name=actor.name if actor else None,
        )
        db.session.add(payment)
        document.outstanding_amount = quantize(updated.outstanding)
        db.session.commit()

        logger.info(
            "Payment %s recorded on %s %s: amount=%s outstanding=%s",
            payment.id, document_type, document.id, amount, document.outstanding_amount,
        )
        return payment, document

    return run_with_retry(_op)


def _load_payment_and_document(payment_id: int):
    payment = db.session.query(SettlementPayment).filter_by(id=payment_id).first()
    if not payment:
        raise NotFoundError(f"Payment {payment_id} not found")
    document = _load_document(payment.document_type, payment.document_id)
    if payment.status == PAYMENT_DELETED:
        raise StateConflictError(f"Payment {payment_id} has already been deleted")
    return payment, document


def edit_document_payment(
    *,
    payment_id: int,
    new_amount,
    method: str | None = None,
    paid_at: datetime | None = None,
    note: str | None = None,
    actor=None,
    expected_version: int | None = None,
) -> tuple[SettlementPayment, Any]:
    """Edit a recorded payment; the document's outstanding moves by the delta."""
    new_amount = quantize(to_decimal(new_amount))

    def _op():
        payment, document = _load_payment_and_document(payment_id)
        check_version(document, expected_version)
        _ensure_settleable(payment.document_type, document)

        record = record_for_document(payment.document_type, document)
        updated = edit_payment(
            record, payment.id, new_amount, method=method, paid_at=paid_at, note=note
        )
        entry = updated.find(payment.id)

        previous = payment.amount
        payment.amount = entry.amount
        payment.method = entry.method
        payment.paid_at = entry.paid_at
        payment.note = entry.note
        payment.edited_at = utcnow()
        payment.edited_by_user_id = actor.id if actor else None
        document.outstanding_amount = quantize(updated.outstanding)
        # Bump the document version even when only method/note changed
        flag_modified(document, "outstanding_amount")
        db.session.commit()

        logger.info(
            "Payment %s on %s %s edited: %s -> %s, outstanding=%s",
            payment.id, payment.document_type, document.id, previous, payment.amount,
            document.outstanding_amount,
        )
        return payment, document

    return run_with_retry(_op)


def delete_document_payment(
    *,
    payment_id: int,
    actor=None,
    expected_version: int | None = None,
) -> tuple[SettlementPayment, Any]:
    """Soft-delete a payment and restore its amount to the outstanding balance."""

    def _op():
        payment, document = _load_payment_and_document(payment_id)
        check_version(document, expected_version)
        _ensure_settleable(payment.document_type, document)

        record = record_for_document(payment.document_type, document)
        updated = delete_payment(record, payment.id)

        payment.status = PAYMENT_DELETED
        payment.deleted_at = utcnow()
        payment.deleted_by_user_id = actor.id if actor else None
        document.outstanding_amount = quantize(updated.outstanding)
        db.session.commit()

        logger.info(
            "Payment %s on %s %s deleted, outstanding=%s",
            payment.id, payment.document_type, document.id, document.outstanding_amount,
        )
        return payment, document

    return run_with_retry(_op)

# Overview: Cash-drawer shift ledger; open, attribute completed sales, summarize and close with variance.

"""
Shift Ledger

WHY: Each shift is a period of cash accountability for one cashier at one
branch. Completed sales land in per-payment-method buckets; closing the
shift compares the drawer against what the ledger expects.

DESIGN PRINCIPLES:
- At most one active shift per (cashier_id, branch_id)
- The cashier and branch are always passed explicitly
- Shifts are immutable once ended
- Returned sales are excluded by filtering on sale status, never by
  subtracting after the fact
- expected_cash = starting_balance + cash bucket, however it is derived

VARIANCE:
variance = expected_cash - total sales across *all* methods. This is the
figure existing reports use. cash_difference = counted - expected is
recorded alongside it as the drawer shortfall/overage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Shift, Sale
from ..models.shifts import SHIFT_ACTIVE, SHIFT_ENDED, PAYMENT_METHODS
from ..models.sales import SALE_COMPLETED
from ..money import ZERO, quantize, to_decimal, money_str
from ..validation import ValidationError, NotFoundError, StateConflictError
from retailcore.time_utils import utcnow, to_utc_z
from .concurrency import lock_for_update, check_version, run_with_retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShiftSummary:
    shift_id: int | None
    starting_balance: Decimal
    totals_by_method: dict = field(default_factory=dict)
    total_sales: Decimal = ZERO
    expected_cash: Decimal = ZERO
    sale_count: int = 0

    def to_dict(self) -> dict:
        return {
            "shift_id": self.shift_id,
            "starting_balance": money_str(self.starting_balance),
            "totals_by_method": {m: money_str(v) for m, v in self.totals_by_method.items()},
            "total_sales": money_str(self.total_sales),
            "expected_cash": money_str(self.expected_cash),
            "sale_count": self.sale_count,
        }


def summarize(starting_balance, sales: Iterable) -> ShiftSummary:
    """
    Totals by method over completed sales only.

    Each sale needs .status, .payment_method and .total_amount.
    """
    totals = {method: ZERO for method in PAYMENT_METHODS}
    count = 0
    for sale in sales:
        if sale.status != SALE_COMPLETED:
            continue
        totals[sale.payment_method] = totals.get(sale.payment_method, ZERO) + to_decimal(sale.total_amount)
        count += 1

    starting = to_decimal(starting_balance)
    return ShiftSummary(
        shift_id=None,
        starting_balance=starting,
        totals_by_method=totals,
        total_sales=sum(totals.values(), ZERO),
        expected_cash=starting + totals["cash"],
        sale_count=count,
    )


# =============================================================================
# LOOKUPS
# =============================================================================

def get_shift(shift_id: int) -> Shift:
    shift = db.session.query(Shift).filter_by(id=shift_id).first()
    if not shift:
        raise NotFoundError(f"Shift {shift_id} not found")
    return shift


def get_active_shift(cashier_id: str, branch_id: int, *, for_update: bool = False) -> Shift | None:
    query = db.session.query(Shift).filter_by(
        cashier_id=str(cashier_id),
        branch_id=branch_id,
        status=SHIFT_ACTIVE,
    )
    if for_update:
        query = lock_for_update(query)
    return query.first()


def require_active_shift(cashier_id: str, branch_id: int, *, for_update: bool = False) -> Shift:
    shift = get_active_shift(cashier_id, branch_id, for_update=for_update)
    if not shift:
        raise StateConflictError(
            "No active shift for this cashier at this branch. Open a shift first.",
            details={"cashier_id": str(cashier_id), "branch_id": branch_id},
        )
    return shift


def list_shifts(
    *,
    cashier_id: str | None = None,
    branch_id: int | None = None,
    status: str | None = None,
    limit: int = 50,
) -> list[Shift]:
    query = db.session.query(Shift)
    if cashier_id is not None:
        query = query.filter_by(cashier_id=str(cashier_id))
    if branch_id is not None:
        query = query.filter_by(branch_id=branch_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Shift.started_at.desc(), Shift.id.desc()).limit(limit).all()


def get_shift_sales(shift_id: int, *, include_returned: bool = True) -> list[Sale]:
    get_shift(shift_id)
    query = db.session.query(Sale).filter_by(shift_id=shift_id)
    if not include_returned:
        query = query.filter_by(status=SALE_COMPLETED)
    return query.order_by(Sale.created_at, Sale.id).all()


# =============================================================================
# LIFECYCLE
# =============================================================================

def open_shift(
    *,
    cashier_id: str,
    branch_id: int,
    starting_balance,
    cashier_name: str | None = None,
    notes: str | None = None,
) -> Shift:
    """
    Open a shift with a declared starting cash balance.

    Raises:
        ValidationError: starting_balance < 0
        StateConflictError: cashier already has an active shift at this branch
    """
    starting = to_decimal(starting_balance, default=None)
    if starting is None:
        raise ValidationError("starting_balance must be a number")
    if starting < ZERO:
        raise ValidationError("starting_balance cannot be negative")

    def _op():
        existing = get_active_shift(cashier_id, branch_id, for_update=True)
        if existing:
            raise StateConflictError(
                f"Cashier already has an active shift (shift {existing.id})",
                details={"shift_id": existing.id},
            )

        shift = Shift(
            cashier_id=str(cashier_id),
            cashier_name=cashier_name,
            branch_id=branch_id,
            status=SHIFT_ACTIVE,
            starting_balance=quantize(starting),
            started_at=utcnow(),
            notes=notes,
        )
        for method in PAYMENT_METHODS:
            setattr(shift, f"{method}_total", ZERO)
        db.session.add(shift)
        try:
            db.session.commit()
        except IntegrityError as exc:
            # Lost the race on uq_shifts_one_active
            db.session.rollback()
            raise StateConflictError("Cashier already has an active shift") from exc

        logger.info("Shift %s opened for cashier %s at branch %s", shift.id, cashier_id, branch_id)
        return shift

    return run_with_retry(_op)


def attribute_sale(shift: Shift, payment_method: str, amount) -> Shift:
    """
    Add a completed sale's total to the matching bucket.

    Does not commit; the caller commits with the sale.
    """
    if not shift.is_active:
        raise StateConflictError(f"Shift {shift.id} has ended; open a new shift")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method. Must be one of: {', '.join(PAYMENT_METHODS)}"
        )
    amount = to_decimal(amount)
    if amount < ZERO:
        raise ValidationError("Sale amount cannot be negative")

    column = f"{payment_method}_total"
    setattr(shift, column, quantize(to_decimal(getattr(shift, column)) + amount))
    return shift


def sync_buckets(shift: Shift, sales: Iterable | None = None) -> ShiftSummary:
    """
    Rewrite the stored buckets from the completed sales on the shift.

    Called whenever a sale on the shift changes status, so the running
    buckets always agree with prepare_close. Does not commit.
    """
    summary = prepare_close(shift, sales)
    for method, total in summary.totals_by_method.items():
        setattr(shift, f"{method}_total", quantize(total))
    return summary


def prepare_close(shift: Shift, sales: Iterable | None = None) -> ShiftSummary:
    """
    Totals-by-method, grand total and expected cash. Read only.

    `sales` defaults to every sale recorded on the shift; returned sales
    are filtered out by status.
    """
    if sales is None:
        sales = db.session.query(Sale).filter_by(shift_id=shift.id).all()
    summary = summarize(shift.starting_balance, sales)
    return ShiftSummary(
        shift_id=shift.id,
        starting_balance=summary.starting_balance,
        totals_by_method=summary.totals_by_method,
        total_sales=summary.total_sales,
        expected_cash=summary.expected_cash,
        sale_count=summary.sale_count,
    )


def close_shift(
    *,
    cashier_id: str,
    branch_id: int,
    actual_cash_counted,
    notes: str | None = None,
    expected_version: int | None = None,
) -> tuple[Shift, ShiftSummary]:
    """
    Count the drawer and end the shift.

    Raises:
        ValidationError: actual_cash_counted < 0
        StateConflictError: no active shift
        ConcurrencyConflictError: expected_version mismatch
    """
    counted = to_decimal(actual_cash_counted, default=None)
    if counted is None:
        raise ValidationError("actual_cash_counted must be a number")
    if counted < ZERO:
        raise ValidationError("actual_cash_counted cannot be negative")

    def _op():
        shift = require_active_shift(cashier_id, branch_id, for_update=True)
        check_version(shift, expected_version)

        summary = sync_buckets(shift)

        shift.total_sales = quantize(summary.total_sales)
        shift.expected_cash = quantize(summary.expected_cash)
        shift.actual_cash_counted = quantize(counted)
        shift.variance = quantize(summary.expected_cash - summary.total_sales)
        shift.cash_difference = quantize(counted - summary.expected_cash)
        shift.status = SHIFT_ENDED
        shift.ended_at = utcnow()
        if notes:
            shift.notes = f"{shift.notes}\n{notes}" if shift.notes else notes
        db.session.commit()

        logger.info(
            "Shift %s closed: expected_cash=%s counted=%s variance=%s",
            shift.id, shift.expected_cash, shift.actual_cash_counted, shift.variance,
        )
        return shift, summary

    return run_with_retry(_op)


def shift_report(shift: Shift) -> dict:
    """Shift plus its live summary, for the close screen and history."""
    data = shift.to_dict()
    data["summary"] = prepare_close(shift).to_dict()
    data["duration_minutes"] = None
    if shift.ended_at and shift.started_at:
        data["duration_minutes"] = int((shift.ended_at - shift.started_at).total_seconds() // 60)
    data["generated_at"] = to_utc_z(utcnow())
    return data

# Overview: Service-layer operations for POS sales; prices the cart, settles tender, attributes to the shift.

"""
Sales Service - checkout and reversal

WHY: A sale ties the pricing engine, the cashier's active shift, the
settlement tracker and the inventory collaborator together in one
transaction. Either all of it commits or none of it does.

LIFECYCLE:
1. completed: priced, tendered, stock decremented, attributed to the shift
2. returned: fully reversed; stock restored, outstanding cleared

Returned sales stay in the shift's sale list; shift totals filter them out
by status.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

from ..extensions import db
from ..models import Sale, SaleLine, Shift
from ..models.sales import SALE_COMPLETED, SALE_RETURNED
from ..models.inventory import REASON_SALE, REASON_SALE_RETURN
from ..models.shifts import PAYMENT_METHODS
from ..money import ZERO, quantize, to_decimal
from ..validation import ValidationError, NotFoundError, StateConflictError
from retailcore.time_utils import utcnow
from . import settlement_service
from .concurrency import lock_for_update, check_version, run_with_retry
from .document_service import next_document_number
from .inventory_service import adjust_stock
from .pricing_service import (
    Discount,
    LineItem,
    NO_DISCOUNT,
    NO_TAX,
    PriceBreakdown,
    TaxConfig,
    compute_totals,
)
from .shift_service import require_active_shift, attribute_sale, sync_buckets

logger = logging.getLogger(__name__)


METHOD_CASH = "cash"
METHOD_CREDIT = "credit"


def quote(
    lines: Iterable[LineItem],
    document_discount: Discount = NO_DISCOUNT,
    shipping=ZERO,
    voucher_discount=ZERO,
    tax: TaxConfig = NO_TAX,
) -> PriceBreakdown:
    """Price a cart without recording anything (checkout preview)."""
    return compute_totals(list(lines), document_discount, shipping, voucher_discount, tax)


def _settle_tender(payment_method: str, grand_total, amount_tendered) -> tuple:
    """Return (amount_tendered, change_given) for the chosen method."""
    if payment_method == METHOD_CREDIT:
        return ZERO, ZERO
    if payment_method == METHOD_CASH:
        tendered = to_decimal(amount_tendered)
        if tendered < grand_total:
            raise ValidationError(
                "Cash tendered is less than the total",
                details={"amount_tendered": str(tendered), "total_amount": str(grand_total)},
            )
        return tendered, tendered - grand_total
    # Card / transfer / QRIS settle the exact total
    return grand_total, ZERO


def record_sale(
    *,
    actor,
    branch_id: int,
    lines: list[LineItem],
    payment_method: str,
    document_discount: Discount = NO_DISCOUNT,
    tax: TaxConfig = NO_TAX,
    shipping=ZERO,
    voucher_code: str | None = None,
    voucher_discount=ZERO,
    amount_tendered=None,
    customer_id: str | None = None,
    customer_name: str | None = None,
    credit_due_date: date | None = None,
) -> Sale:
    """
    Record a completed sale on the cashier's active shift.

    Raises:
        ValidationError: empty cart, bad method, short cash tender,
            credit without customer, negative total
        StateConflictError: cashier has no active shift at the branch
    """
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method. Must be one of: {', '.join(PAYMENT_METHODS)}"
        )
    lines = list(lines)
    if not lines:
        raise ValidationError("At least one line item is required")
    if not any(line.quantity > 0 for line in lines):
        raise ValidationError("Sale must contain at least one item with quantity > 0")
    is_credit = payment_method == METHOD_CREDIT
    if is_credit and not customer_id:
        raise ValidationError("customer_id is required for credit sales")

    breakdown = compute_totals(lines, document_discount, shipping, voucher_discount, tax)
    grand_total = quantize(breakdown.grand_total)
    if grand_total < ZERO:
        raise ValidationError("Voucher discount exceeds the sale total")
    tendered, change = _settle_tender(payment_method, grand_total, amount_tendered)

    def _op():
        shift = require_active_shift(actor.id, branch_id, for_update=True)

        sale = Sale(
            branch_id=branch_id,
            shift_id=shift.id,
            invoice_number=next_document_number(branch_id=branch_id, document_type="sale", prefix="INV"),
            status=SALE_COMPLETED,
            cashier_id=str(actor.id),
            cashier_name=actor.name,
            customer_id=customer_id,
            customer_name=customer_name,
            document_discount_type=document_discount.kind,
            document_discount_value=document_discount.value,
            tax_mode=breakdown.tax_mode,
            tax_rate=breakdown.tax_rate,
            shipping_cost=quantize(breakdown.shipping_cost),
            voucher_code=voucher_code,
            voucher_discount=quantize(breakdown.voucher_discount),
            subtotal=quantize(breakdown.subtotal),
            item_discount_total=quantize(breakdown.item_discount_total),
            document_discount_amount=quantize(breakdown.document_discount_amount),
            tax_amount=quantize(breakdown.tax_amount),
            total_amount=grand_total,
            total_cost=quantize(breakdown.total_cost),
            payment_method=payment_method,
            amount_tendered=quantize(tendered),
            change_given=quantize(change),
            is_credit=is_credit,
            credit_due_date=credit_due_date if is_credit else None,
            created_at=utcnow(),
        )
        record = settlement_service.initialize(grand_total, is_credit)
        sale.outstanding_amount = quantize(record.outstanding)

        for item, priced in zip(lines, breakdown.lines):
            sale.lines.append(
                SaleLine(
                    product_id=str(item.product_id),
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=quantize(priced.unit_price),
                    unit_cost=quantize(priced.unit_cost),
                    discount_type=item.discount.kind,
                    discount_value=item.discount.value,
                    discount_amount=quantize(priced.discount_amount),
                    line_total=quantize(priced.net_amount),
                )
            )
        db.session.add(sale)
        db.session.flush()

        for item in lines:
            if item.quantity > 0:
                adjust_stock(
                    product_id=item.product_id,
                    branch_id=branch_id,
                    delta=-item.quantity,
                    reason_code=REASON_SALE,
                    reference=f"sale:{sale.id}",
                    actor=actor,
                )

        attribute_sale(shift, payment_method, grand_total)
        db.session.commit()

        logger.info(
            "Sale %s (%s) recorded on shift %s: total=%s method=%s",
            sale.id, sale.invoice_number, shift.id, sale.total_amount, payment_method,
        )
        return sale

    return run_with_retry(_op)


def return_sale(
    *,
    sale_id: int,
    actor,
    reason: str | None = None,
    expected_version: int | None = None,
) -> Sale:
    """
    Fully reverse a completed sale.

    Stock comes back; the outstanding balance is cleared. While the sale's
    shift is still active its buckets are rebuilt from the completed sales,
    so the returned amount drops out rather than being subtracted.
    """

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError(f"Sale {sale_id} not found")
        check_version(sale, expected_version)
        if sale.status == SALE_RETURNED:
            raise StateConflictError(f"Sale {sale_id} has already been returned")

        sale.status = SALE_RETURNED
        sale.outstanding_amount = ZERO
        sale.returned_at = utcnow()
        sale.return_reason = reason
        sale.returned_by_user_id = str(actor.id) if actor else None

        for line in sale.lines:
            if line.quantity > 0:
                adjust_stock(
                    product_id=line.product_id,
                    branch_id=sale.branch_id,
                    delta=line.quantity,
                    reason_code=REASON_SALE_RETURN,
                    reference=f"sale:{sale.id}",
                    actor=actor,
                )

        shift = lock_for_update(db.session.query(Shift).filter_by(id=sale.shift_id)).first()
        if shift is not None and shift.is_active:
            sync_buckets(shift)
        db.session.commit()

        logger.info("Sale %s returned by %s", sale.id, sale.returned_by_user_id)
        return sale

    return run_with_retry(_op)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id).first()
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(
    *,
    branch_id: int | None = None,
    shift_id: int | None = None,
    status: str | None = None,
    limit: int = 100,
) -> list[Sale]:
    query = db.session.query(Sale)
    if branch_id is not None:
        query = query.filter_by(branch_id=branch_id)
    if shift_id is not None:
        query = query.filter_by(shift_id=shift_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()


def list_outstanding_sales(*, branch_id: int | None = None, today: date | None = None) -> list[dict]:
    """Credit sales with a balance left, with the read-time overdue status."""
    query = db.session.query(Sale).filter(
        Sale.is_credit.is_(True),
        Sale.status == SALE_COMPLETED,
        Sale.outstanding_amount > 0,
    )
    if branch_id is not None:
        query = query.filter(Sale.branch_id == branch_id)

    results = []
    for sale in query.order_by(Sale.credit_due_date, Sale.id).all():
        data = sale.to_dict()
        data["display_status"] = settlement_service.display_status(
            sale.payment_status, sale.credit_due_date, today
        )
        results.append(data)
    return results

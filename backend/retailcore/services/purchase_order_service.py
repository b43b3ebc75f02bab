# Overview: Service-layer operations for supplier purchase orders; creation, manual transitions and receiving.

"""
Purchase Order Service

WHY: Goods arrive in pieces. Each line tracks ordered vs received quantity
and the document status is rolled up from the lines, so it can never drift
from what was actually received.

LIFECYCLE:
1. draft: created, priced, editable
2. ordered: sent to the supplier (manual)
3. partially_received / fully_received: derived from receipts, never set
4. cancelled: manual, from any non-terminal state

Terminal: fully_received, cancelled.

RECEIVING:
- All-or-nothing per batch: one over-received line rejects every line
- Each successful batch posts +stock through the inventory collaborator
- The first successful receipt makes the order payable; credit orders
  open their settlement balance at that point
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy.orm.attributes import flag_modified

from ..extensions import db
from ..models import PurchaseOrder, PurchaseOrderLine
from ..models.purchasing import (
    PO_DRAFT,
    PO_ORDERED,
    PO_CANCELLED,
    PO_PARTIALLY_RECEIVED,
    PO_TERMINAL_STATUSES,
    PAYMENT_TERMS_CASH,
    PAYMENT_TERMS_CREDIT,
)
from ..models.inventory import REASON_PURCHASE_RECEIPT
from ..money import ZERO, quantize
from ..validation import ValidationError, NotFoundError, StateConflictError, parse_id, parse_quantity
from retailcore.time_utils import utcnow
from . import settlement_service
from .concurrency import lock_for_update, check_version, run_with_retry
from .document_service import next_document_number
from .inventory_service import adjust_stock
from .pricing_service import Discount, LineItem, NO_DISCOUNT, NO_TAX, TaxConfig, compute_totals

logger = logging.getLogger(__name__)


PAYMENT_TERMS = {PAYMENT_TERMS_CASH, PAYMENT_TERMS_CREDIT}


def _load_locked(po_id: int) -> PurchaseOrder:
    po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=po_id)).first()
    if not po:
        raise NotFoundError(f"Purchase order {po_id} not found")
    return po


def get_purchase_order(po_id: int) -> PurchaseOrder:
    po = db.session.query(PurchaseOrder).filter_by(id=po_id).first()
    if not po:
        raise NotFoundError(f"Purchase order {po_id} not found")
    return po


def create_purchase_order(
    *,
    actor,
    branch_id: int,
    supplier_id: str,
    lines: list[LineItem],
    supplier_name: str | None = None,
    document_discount: Discount = NO_DISCOUNT,
    tax: TaxConfig = NO_TAX,
    shipping=ZERO,
    payment_terms: str = PAYMENT_TERMS_CASH,
    payment_due_date: date | None = None,
    order_date: date | None = None,
    expected_delivery_date: date | None = None,
    notes: str | None = None,
) -> PurchaseOrder:
    """
    Create a draft purchase order with its pricing snapshot.

    Line unit_price is the purchase price. Ordered quantities must be
    positive and each product may appear once.
    """
    if not supplier_id:
        raise ValidationError("supplier_id is required")
    if payment_terms not in PAYMENT_TERMS:
        raise ValidationError(f"Invalid payment_terms. Must be one of: {', '.join(sorted(PAYMENT_TERMS))}")
    lines = list(lines)
    if not lines:
        raise ValidationError("At least one line item is required")

    seen = set()
    for line in lines:
        if line.quantity <= 0:
            raise ValidationError(f"Ordered quantity for product {line.product_id} must be positive")
        if line.product_id in seen:
            raise ValidationError(f"Product {line.product_id} appears on more than one line")
        seen.add(line.product_id)

    breakdown = compute_totals(lines, document_discount, shipping, ZERO, tax)

    def _op():
        po = PurchaseOrder(
            branch_id=branch_id,
            po_number=next_document_number(branch_id=branch_id, document_type="purchase_order", prefix="PO"),
            supplier_id=str(supplier_id),
            supplier_name=supplier_name,
            manual_status=PO_DRAFT,
            order_date=order_date or utcnow().date(),
            expected_delivery_date=expected_delivery_date,
            notes=notes,
            document_discount_type=document_discount.kind,
            document_discount_value=document_discount.value,
            tax_mode=breakdown.tax_mode,
            tax_rate=breakdown.tax_rate,
            shipping_cost=quantize(breakdown.shipping_cost),
            subtotal=quantize(breakdown.subtotal),
            document_discount_amount=quantize(breakdown.document_discount_amount),
            tax_amount=quantize(breakdown.tax_amount),
            total_amount=quantize(breakdown.grand_total),
            payment_terms=payment_terms,
            payment_due_date=payment_due_date if payment_terms == PAYMENT_TERMS_CREDIT else None,
            outstanding_amount=ZERO,
            created_by_user_id=str(actor.id) if actor else None,
            created_by_name=actor.name if actor else None,
            created_at=utcnow(),
        )
        for item, priced in zip(lines, breakdown.lines):
            po.lines.append(
                PurchaseOrderLine(
                    product_id=str(item.product_id),
                    product_name=item.product_name,
                    ordered_quantity=item.quantity,
                    received_quantity=0,
                    unit_price=quantize(priced.unit_price),
                    line_total=quantize(priced.net_amount),
                )
            )
        db.session.add(po)
        db.session.commit()

        logger.info("Purchase order %s (%s) created, total=%s", po.id, po.po_number, po.total_amount)
        return po

    return run_with_retry(_op)


def mark_ordered(*, po_id: int, actor=None, expected_version: int | None = None) -> PurchaseOrder:
    """draft -> ordered."""

    def _op():
        po = _load_locked(po_id)
        check_version(po, expected_version)
        if po.status != PO_DRAFT:
            raise StateConflictError(f"Only draft purchase orders can be ordered (status is {po.status})")
        po.manual_status = PO_ORDERED
        db.session.commit()
        logger.info("Purchase order %s marked ordered", po.id)
        return po

    return run_with_retry(_op)


def cancel_purchase_order(
    *,
    po_id: int,
    actor=None,
    reason: str | None = None,
    expected_version: int | None = None,
) -> PurchaseOrder:
    """Any non-terminal status -> cancelled."""

    def _op():
        po = _load_locked(po_id)
        check_version(po, expected_version)
        if po.status in PO_TERMINAL_STATUSES:
            raise StateConflictError(f"Purchase order is already {po.status}")
        po.manual_status = PO_CANCELLED
        po.cancelled_at = utcnow()
        if reason:
            po.notes = f"{po.notes}\nCancelled: {reason}" if po.notes else f"Cancelled: {reason}"
        db.session.commit()
        logger.info("Purchase order %s cancelled", po.id)
        return po

    return run_with_retry(_op)


def _normalize_receipts(po: PurchaseOrder, receipts: Any) -> dict[int, int]:
    """
    Map receipt input onto line ids, summing repeated lines.

    Each receipt: {"line_id": int} or {"product_id": str}, plus "quantity" > 0.
    """
    if not isinstance(receipts, list) or not receipts:
        raise ValidationError("At least one receipt line is required")

    by_id = {line.id: line for line in po.lines}
    by_product = {line.product_id: line for line in po.lines}

    quantities: dict[int, int] = {}
    for index, receipt in enumerate(receipts):
        if not isinstance(receipt, dict):
            raise ValidationError(f"Receipt {index + 1} must be an object")
        line = None
        if receipt.get("line_id") is not None:
            line = by_id.get(parse_id(receipt.get("line_id"), f"Receipt {index + 1} line_id"))
        elif receipt.get("product_id") is not None:
            line = by_product.get(str(receipt.get("product_id")))
        if line is None:
            raise ValidationError(f"Receipt {index + 1} does not match a line on this purchase order")

        qty = parse_quantity(receipt.get("quantity"), f"Receipt {index + 1} quantity")
        if qty == 0:
            raise ValidationError(f"Receipt {index + 1} quantity must be positive")
        quantities[line.id] = quantities.get(line.id, 0) + qty
    return quantities


def receive_items(
    *,
    po_id: int,
    receipts: list[dict],
    actor=None,
    expected_version: int | None = None,
) -> PurchaseOrder:
    """
    Record received goods against an ordered purchase order.

    Raises:
        ValidationError: unknown line, non-positive quantity, or any line
            would exceed its ordered quantity (whole batch rejected)
        StateConflictError: order is draft, cancelled or fully received
    """

    def _op():
        po = _load_locked(po_id)
        check_version(po, expected_version)

        status = po.status
        if status == PO_DRAFT:
            raise StateConflictError("Purchase order must be ordered before goods can be received")
        if status in PO_TERMINAL_STATUSES:
            raise StateConflictError(f"Purchase order is already {status}")

        quantities = _normalize_receipts(po, receipts)
        lines = {line.id: line for line in po.lines}

        over = []
        for line_id, qty in quantities.items():
            line = lines[line_id]
            new_received = line.received_quantity + qty
            if new_received > line.ordered_quantity:
                over.append({
                    "line_id": line_id,
                    "product_id": line.product_id,
                    "ordered_quantity": line.ordered_quantity,
                    "received_quantity": line.received_quantity,
                    "attempted_quantity": qty,
                })
        if over:
            raise ValidationError("Receipt exceeds ordered quantity", details={"lines": over})

        for line_id, qty in quantities.items():
            line = lines[line_id]
            line.received_quantity = line.received_quantity + qty
            adjust_stock(
                product_id=line.product_id,
                branch_id=po.branch_id,
                delta=qty,
                reason_code=REASON_PURCHASE_RECEIPT,
                reference=f"purchase_order:{po.id}",
                actor=actor,
            )

        if not po.is_payable:
            record = settlement_service.initialize(po.total_amount, po.is_credit)
            po.outstanding_amount = quantize(record.outstanding)
            po.payable_since = utcnow()

        # Line changes alone do not bump the header version
        flag_modified(po, "manual_status")
        db.session.commit()

        logger.info(
            "Purchase order %s received %s unit(s), status=%s",
            po.id, sum(quantities.values()), po.status,
        )
        return po

    return run_with_retry(_op)


def list_purchase_orders(
    *,
    branch_id: int | None = None,
    status: str | None = None,
    supplier_id: str | None = None,
    limit: int = 100,
) -> list[PurchaseOrder]:
    """Status is derived, so status filtering happens after load."""
    query = db.session.query(PurchaseOrder)
    if branch_id is not None:
        query = query.filter_by(branch_id=branch_id)
    if supplier_id is not None:
        query = query.filter_by(supplier_id=str(supplier_id))
    orders = query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).limit(limit).all()
    if status:
        orders = [po for po in orders if po.status == status]
    return orders


def list_outstanding_purchase_orders(*, branch_id: int | None = None, today: date | None = None) -> list[dict]:
    """Payable credit orders with a balance left, with the read-time overdue status."""
    query = db.session.query(PurchaseOrder).filter(
        PurchaseOrder.payment_terms == PAYMENT_TERMS_CREDIT,
        PurchaseOrder.payable_since.isnot(None),
        PurchaseOrder.manual_status != PO_CANCELLED,
        PurchaseOrder.outstanding_amount > 0,
    )
    if branch_id is not None:
        query = query.filter(PurchaseOrder.branch_id == branch_id)

    results = []
    for po in query.order_by(PurchaseOrder.payment_due_date, PurchaseOrder.id).all():
        data = po.to_dict()
        data["display_status"] = settlement_service.display_status(
            po.payment_status, po.payment_due_date, today
        )
        results.append(data)
    return results


def receiving_progress(po: PurchaseOrder) -> dict:
    ordered = sum(line.ordered_quantity for line in po.lines)
    received = sum(line.received_quantity for line in po.lines)
    return {
        "ordered_quantity": ordered,
        "received_quantity": received,
        "remaining_quantity": ordered - received,
        "is_partial": po.status == PO_PARTIALLY_RECEIVED,
        "percent_received": round(received * 100 / ordered, 1) if ordered else 0.0,
    }

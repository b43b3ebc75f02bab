# Overview: Inventory collaborator; records stock movements caused by sales, returns and receipts.

# backend/retailcore/services/inventory_service.py

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import StockMutation
from ..models.inventory import STOCK_REASONS
from ..validation import ValidationError
from retailcore.time_utils import utcnow
"""
Inventory Invariants (authoritative for this boundary)

- Stock is ledger-derived from StockMutation rows; never stored as a mutable quantity field.
- Quantity on hand is SUM(quantity_delta) per (branch_id, product_id), optionally as-of.
- Stock-level policy (reorder points, negative-stock rules, valuation) lives outside this core.
- adjust_stock only flushes: the caller's document commit makes the movement durable,
  so a rejected sale or receipt never leaves a stray movement behind.
"""


def adjust_stock(
    *,
    product_id: str,
    branch_id: int,
    delta: int,
    reason_code: str,
    reference: str | None = None,
    note: str | None = None,
    actor=None,
    occurred_at: datetime | None = None,
) -> StockMutation:
    """
    Record one stock movement.

    Args:
        product_id: Product reference
        branch_id: Branch holding the stock
        delta: Signed quantity (negative for sales, positive for receipts/returns)
        reason_code: SALE, SALE_RETURN or PURCHASE_RECEIPT
        reference: Document key, e.g. "sale:12"
        actor: Actor performing the movement (optional)
    """
    if reason_code not in STOCK_REASONS:
        raise ValidationError(f"Unknown stock reason: {reason_code}")
    if delta == 0:
        raise ValidationError("Stock adjustment cannot be zero")

    mutation = StockMutation(
        branch_id=branch_id,
        product_id=str(product_id),
        reason_code=reason_code,
        quantity_delta=delta,
        reference=reference,
        note=note,
        actor_user_id=actor.id if actor else None,
        actor_name=actor.name if actor else None,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(mutation)
    db.session.flush()
    return mutation


def get_on_hand(product_id: str, branch_id: int, as_of: datetime | None = None) -> int:
    """Quantity on hand for a product at a branch (inclusive as-of)."""
    query = db.session.query(func.coalesce(func.sum(StockMutation.quantity_delta), 0)).filter(
        StockMutation.branch_id == branch_id,
        StockMutation.product_id == str(product_id),
    )
    if as_of is not None:
        query = query.filter(StockMutation.occurred_at <= as_of)
    return int(query.scalar() or 0)


def list_stock_mutations(*, branch_id: int, product_id: str | None = None, reference: str | None = None, limit: int = 200):
    query = db.session.query(StockMutation).filter_by(branch_id=branch_id)
    if product_id is not None:
        query = query.filter_by(product_id=str(product_id))
    if reference is not None:
        query = query.filter_by(reference=reference)
    return query.order_by(StockMutation.occurred_at.desc(), StockMutation.id.desc()).limit(limit).all()

from __future__ import annotations

from ..extensions import db
from retailcore.time_utils import to_utc_z


# Reason codes for stock movements
REASON_SALE = "SALE"
REASON_SALE_RETURN = "SALE_RETURN"
REASON_PURCHASE_RECEIPT = "PURCHASE_RECEIPT"

STOCK_REASONS = {REASON_SALE, REASON_SALE_RETURN, REASON_PURCHASE_RECEIPT}


class StockMutation(db.Model):
    """
    Append-only stock movement per product and branch.

    WHY: On-hand quantity is the sum of quantity_delta; rows are never
    updated or deleted. Negative deltas are sales, positive deltas are
    receipts and sale reversals.
    """
    __tablename__ = "stock_mutations"
    __table_args__ = (
        db.Index("ix_stock_mutations_branch_product_occurred", "branch_id", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    branch_id = db.Column(db.Integer, nullable=False, index=True)
    product_id = db.Column(db.String(64), nullable=False, index=True)

    reason_code = db.Column(db.String(32), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)

    # Document that caused the movement, e.g. "sale:12" or "purchase_order:4"
    reference = db.Column(db.String(64), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    actor_user_id = db.Column(db.String(64), nullable=True)
    actor_name = db.Column(db.String(128), nullable=True)

    occurred_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "product_id": self.product_id,
            "reason_code": self.reason_code,
            "quantity_delta": self.quantity_delta,
            "reference": self.reference,
            "note": self.note,
            "actor_user_id": self.actor_user_id,
            "actor_name": self.actor_name,
            "occurred_at": to_utc_z(self.occurred_at),
        }

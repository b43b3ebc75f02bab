from __future__ import annotations

from ..extensions import db
from ..money import money_str, to_decimal
from retailcore.time_utils import to_utc_z


# Manually-set statuses (stored)
PO_DRAFT = "draft"
PO_ORDERED = "ordered"
PO_CANCELLED = "cancelled"

# Derived statuses (never stored)
PO_PARTIALLY_RECEIVED = "partially_received"
PO_FULLY_RECEIVED = "fully_received"

PO_TERMINAL_STATUSES = {PO_FULLY_RECEIVED, PO_CANCELLED}

PAYMENT_TERMS_CASH = "cash"
PAYMENT_TERMS_CREDIT = "credit"


def derive_po_status(manual_status: str, lines) -> str:
    """
    Document status from the manual status and line quantities.

    - cancelled always wins
    - fully_received iff every line has received == ordered
    - partially_received iff some line has received > 0
    - otherwise the manual status (draft / ordered)
    """
    if manual_status == PO_CANCELLED:
        return PO_CANCELLED
    lines = list(lines)
    if lines and all(ln.received_quantity == ln.ordered_quantity for ln in lines):
        return PO_FULLY_RECEIVED
    if any(ln.received_quantity > 0 for ln in lines):
        return PO_PARTIALLY_RECEIVED
    return manual_status


class PurchaseOrder(db.Model):
    """
    Supplier purchase order.

    LIFECYCLE:
    - draft -> ordered (manual)
    - ordered -> partially_received / fully_received (derived from receipts)
    - draft / ordered / partially_received -> cancelled (manual)

    manual_status holds only draft/ordered/cancelled; `status` is always
    recomputed from the lines.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "po_number", name="uq_purchase_orders_branch_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, nullable=False, index=True)
    po_number = db.Column(db.String(64), nullable=False)

    supplier_id = db.Column(db.String(64), nullable=False, index=True)
    supplier_name = db.Column(db.String(255), nullable=True)

    manual_status = db.Column(db.String(16), nullable=False, default=PO_DRAFT, index=True)

    order_date = db.Column(db.Date, nullable=True)
    expected_delivery_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Pricing inputs
    document_discount_type = db.Column(db.String(16), nullable=False, default="none")
    document_discount_value = db.Column(db.Numeric(18, 4), nullable=False, default=0)
    tax_mode = db.Column(db.String(16), nullable=False, default="none")
    tax_rate = db.Column(db.Numeric(9, 4), nullable=False, default=0)
    shipping_cost = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    # Pricing snapshot
    subtotal = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    document_discount_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    # Settlement
    payment_terms = db.Column(db.String(16), nullable=False, default=PAYMENT_TERMS_CASH)
    payment_due_date = db.Column(db.Date, nullable=True)
    outstanding_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    payable_since = db.Column(db.DateTime(timezone=True), nullable=True)  # set on first receipt

    created_by_user_id = db.Column(db.String(64), nullable=True)
    created_by_name = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "PurchaseOrderLine",
        backref="purchase_order",
        lazy=True,
        order_by="PurchaseOrderLine.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def status(self) -> str:
        return derive_po_status(self.manual_status, self.lines)

    @property
    def is_credit(self) -> bool:
        return self.payment_terms == PAYMENT_TERMS_CREDIT

    @property
    def is_payable(self) -> bool:
        return self.payable_since is not None

    @property
    def payment_status(self) -> str | None:
        from ..services.settlement_service import status_for

        if not self.is_payable:
            return None
        return status_for(to_decimal(self.total_amount), to_decimal(self.outstanding_amount))

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "branch_id": self.branch_id,
            "po_number": self.po_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "status": self.status,
            "order_date": self.order_date.isoformat() if self.order_date else None,
            "expected_delivery_date": self.expected_delivery_date.isoformat() if self.expected_delivery_date else None,
            "notes": self.notes,
            "document_discount": {
                "type": self.document_discount_type,
                "value": str(to_decimal(self.document_discount_value).normalize()),
            },
            "tax_mode": self.tax_mode,
            "tax_rate": str(to_decimal(self.tax_rate).normalize()),
            "shipping_cost": money_str(self.shipping_cost),
            "subtotal": money_str(self.subtotal),
            "document_discount_amount": money_str(self.document_discount_amount),
            "tax_amount": money_str(self.tax_amount),
            "total_amount": money_str(self.total_amount),
            "payment_terms": self.payment_terms,
            "payment_due_date": self.payment_due_date.isoformat() if self.payment_due_date else None,
            "outstanding_amount": money_str(self.outstanding_amount),
            "payment_status": self.payment_status,
            "payable_since": to_utc_z(self.payable_since) if self.payable_since else None,
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class PurchaseOrderLine(db.Model):
    """Ordered vs received quantity for one product on a purchase order."""
    __tablename__ = "purchase_order_lines"
    __table_args__ = (
        db.UniqueConstraint("purchase_order_id", "product_id", name="uq_po_lines_order_product"),
        db.CheckConstraint("received_quantity >= 0", name="ck_po_lines_received_nonneg"),
        db.CheckConstraint("received_quantity <= ordered_quantity", name="ck_po_lines_not_over_received"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)

    ordered_quantity = db.Column(db.Integer, nullable=False)
    received_quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_price = db.Column(db.Numeric(18, 2), nullable=False)
    line_total = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    @property
    def remaining_quantity(self) -> int:
        return self.ordered_quantity - (self.received_quantity or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "ordered_quantity": self.ordered_quantity,
            "received_quantity": self.received_quantity,
            "remaining_quantity": self.remaining_quantity,
            "unit_price": money_str(self.unit_price),
            "line_total": money_str(self.line_total),
        }

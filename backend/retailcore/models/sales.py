from __future__ import annotations

from ..extensions import db
from ..money import money_str, to_decimal
from retailcore.time_utils import to_utc_z


SALE_COMPLETED = "completed"
SALE_RETURNED = "returned"


class Sale(db.Model):
    """
    Completed POS transaction with its pricing snapshot.

    WHY: Totals are computed by the pricing engine at checkout and frozen
    here; the lines keep the inputs so the snapshot can be re-derived.

    Payment status is never stored: it is derived from outstanding_amount
    (or is "returned" once the sale has been reversed).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("branch_id", "invoice_number", name="uq_sales_branch_invoice"),
        db.Index("ix_sales_branch_status_created", "branch_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, nullable=False, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)

    invoice_number = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SALE_COMPLETED, index=True)

    cashier_id = db.Column(db.String(64), nullable=False)
    cashier_name = db.Column(db.String(128), nullable=True)

    customer_id = db.Column(db.String(64), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    # Pricing inputs
    document_discount_type = db.Column(db.String(16), nullable=False, default="none")
    document_discount_value = db.Column(db.Numeric(18, 4), nullable=False, default=0)
    tax_mode = db.Column(db.String(16), nullable=False, default="none")
    tax_rate = db.Column(db.Numeric(9, 4), nullable=False, default=0)
    shipping_cost = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    voucher_code = db.Column(db.String(64), nullable=True)
    voucher_discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    # Pricing snapshot
    subtotal = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    item_discount_total = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    document_discount_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_cost = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    # Tender
    payment_method = db.Column(db.String(16), nullable=False)  # cash, card, transfer, qris, credit
    amount_tendered = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    change_given = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    # Settlement (credit sales)
    is_credit = db.Column(db.Boolean, nullable=False, default=False)
    credit_due_date = db.Column(db.Date, nullable=True)
    outstanding_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    # Reversal audit trail
    returned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    return_reason = db.Column(db.String(255), nullable=True)
    returned_by_user_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    shift = db.relationship("Shift", backref=db.backref("sales", lazy=True))
    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy=True,
        order_by="SaleLine.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def payment_status(self) -> str:
        from ..services.settlement_service import status_for

        if self.status == SALE_RETURNED:
            return "returned"
        return status_for(to_decimal(self.total_amount), to_decimal(self.outstanding_amount))

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "branch_id": self.branch_id,
            "shift_id": self.shift_id,
            "invoice_number": self.invoice_number,
            "status": self.status,
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier_name,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "document_discount": {
                "type": self.document_discount_type,
                "value": str(to_decimal(self.document_discount_value).normalize()),
            },
            "tax_mode": self.tax_mode,
            "tax_rate": str(to_decimal(self.tax_rate).normalize()),
            "shipping_cost": money_str(self.shipping_cost),
            "voucher_code": self.voucher_code,
            "voucher_discount": money_str(self.voucher_discount),
            "subtotal": money_str(self.subtotal),
            "item_discount_total": money_str(self.item_discount_total),
            "document_discount_amount": money_str(self.document_discount_amount),
            "tax_amount": money_str(self.tax_amount),
            "total_amount": money_str(self.total_amount),
            "total_cost": money_str(self.total_cost),
            "payment_method": self.payment_method,
            "amount_tendered": money_str(self.amount_tendered),
            "change_given": money_str(self.change_given),
            "is_credit": self.is_credit,
            "credit_due_date": self.credit_due_date.isoformat() if self.credit_due_date else None,
            "outstanding_amount": money_str(self.outstanding_amount),
            "payment_status": self.payment_status,
            "returned_at": to_utc_z(self.returned_at) if self.returned_at else None,
            "return_reason": self.return_reason,
            "returned_by_user_id": self.returned_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """One product line on a sale, with its discount input and priced amounts."""
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(18, 2), nullable=False)
    unit_cost = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    discount_type = db.Column(db.String(16), nullable=False, default="none")
    discount_value = db.Column(db.Numeric(18, 4), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    line_total = db.Column(db.Numeric(18, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "unit_cost": money_str(self.unit_cost),
            "discount": {
                "type": self.discount_type,
                "value": str(to_decimal(self.discount_value).normalize()),
            },
            "discount_amount": money_str(self.discount_amount),
            "line_total": money_str(self.line_total),
        }

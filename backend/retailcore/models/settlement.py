from __future__ import annotations

from ..extensions import db
from ..money import money_str
from retailcore.time_utils import to_utc_z


PAYMENT_RECORDED = "recorded"
PAYMENT_DELETED = "deleted"


class SettlementPayment(db.Model):
    """
    Payment recorded against an outstanding balance.

    WHY: One table serves both directions - customers paying down credit
    sales and the business paying suppliers for credit purchase orders.
    (document_type, document_id) points at the owning document.

    Deleted payments stay as rows (status=deleted) for the audit trail and
    drop out of the settlement record.
    """
    __tablename__ = "settlement_payments"
    __table_args__ = (
        db.Index("ix_settlement_payments_document", "document_type", "document_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False)  # sale, purchase_order
    document_id = db.Column(db.Integer, nullable=False)

    amount = db.Column(db.Numeric(18, 2), nullable=False)
    method = db.Column(db.String(16), nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PAYMENT_RECORDED, index=True)

    recorded_by_user_id = db.Column(db.String(64), nullable=True)
    recorded_by_name = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    edited_at = db.Column(db.DateTime(timezone=True), nullable=True)
    edited_by_user_id = db.Column(db.String(64), nullable=True)

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by_user_id = db.Column(db.String(64), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "document_id": self.document_id,
            "amount": money_str(self.amount),
            "method": self.method,
            "paid_at": to_utc_z(self.paid_at),
            "note": self.note,
            "status": self.status,
            "recorded_by_user_id": self.recorded_by_user_id,
            "recorded_by_name": self.recorded_by_name,
            "created_at": to_utc_z(self.created_at),
            "edited_at": to_utc_z(self.edited_at) if self.edited_at else None,
            "edited_by_user_id": self.edited_by_user_id,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "deleted_by_user_id": self.deleted_by_user_id,
        }

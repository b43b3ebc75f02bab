from __future__ import annotations

from ..extensions import db
from ..money import money_str
from retailcore.time_utils import to_utc_z


SHIFT_ACTIVE = "active"
SHIFT_ENDED = "ended"

PAYMENT_METHODS = ("cash", "card", "transfer", "qris", "credit")


class Shift(db.Model):
    """
    Cash-drawer session for one cashier at one branch.

    LIFECYCLE:
    - active: sales are attributed to the per-method buckets
    - ended: counted, variance recorded; immutable afterwards

    At most one active shift per (cashier_id, branch_id), enforced by the
    partial unique index below as well as the service-level check.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index(
            "uq_shifts_one_active",
            "cashier_id",
            "branch_id",
            unique=True,
            sqlite_where=db.text("status = 'active'"),
            postgresql_where=db.text("status = 'active'"),
        ),
        db.Index("ix_shifts_branch_started", "branch_id", "started_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cashier_id = db.Column(db.String(64), nullable=False, index=True)
    cashier_name = db.Column(db.String(128), nullable=True)
    branch_id = db.Column(db.Integer, nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SHIFT_ACTIVE, index=True)

    starting_balance = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    # Per-method running totals of completed sales
    cash_total = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    card_total = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    transfer_total = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    qris_total = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    credit_total = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    # Set at close
    total_sales = db.Column(db.Numeric(18, 2), nullable=True)
    expected_cash = db.Column(db.Numeric(18, 2), nullable=True)  # starting + cash sales
    actual_cash_counted = db.Column(db.Numeric(18, 2), nullable=True)
    variance = db.Column(db.Numeric(18, 2), nullable=True)  # expected - all-method sales
    cash_difference = db.Column(db.Numeric(18, 2), nullable=True)  # counted - expected

    started_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_active(self) -> bool:
        return self.status == SHIFT_ACTIVE

    def bucket_totals(self) -> dict:
        return {method: getattr(self, f"{method}_total") or 0 for method in PAYMENT_METHODS}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cashier_id": self.cashier_id,
            "cashier_name": self.cashier_name,
            "branch_id": self.branch_id,
            "status": self.status,
            "starting_balance": money_str(self.starting_balance),
            "totals_by_method": {m: money_str(v) for m, v in self.bucket_totals().items()},
            "total_sales": money_str(self.total_sales),
            "expected_cash": money_str(self.expected_cash),
            "actual_cash_counted": money_str(self.actual_cash_counted),
            "variance": money_str(self.variance),
            "cash_difference": money_str(self.cash_difference),
            "started_at": to_utc_z(self.started_at),
            "ended_at": to_utc_z(self.ended_at) if self.ended_at else None,
            "notes": self.notes,
            "version_id": self.version_id,
        }

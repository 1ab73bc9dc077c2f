from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class CashSession(db.Model):
    """
    Cash drawer session (caja).

    WHY: Cashier accountability. Each session has an opening amount,
    collects the sales recorded while it is open, and is reconciled
    (expected vs actual cash) exactly once at close.

    LIFECYCLE:
    - open: accepting sales
    - closed: counted and reconciled (terminal, never reopened)

    At most one row may be open; the partial unique index enforces it
    in the database as well as in the service.
    """
    __tablename__ = "cash_sessions"
    __table_args__ = (
        db.Index(
            "uq_cash_sessions_single_open",
            "status",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        db.CheckConstraint("initial_amount_cents >= 0", name="ck_cash_sessions_initial_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(16), nullable=False, default="open", index=True)  # open, closed

    # Cash tracking (all amounts in cents)
    initial_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    actual_amount_cents = db.Column(db.Integer, nullable=True)  # counted at close
    expected_amount_cents = db.Column(db.Integer, nullable=True)  # initial + sales, at close
    difference_cents = db.Column(db.Integer, nullable=True)  # actual - expected, sign preserved

    opening_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    closing_date = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    # Touched by every sale so a close racing a sale fails its version check
    last_sale_at = db.Column(db.DateTime(timezone=True), nullable=True)
    operator_user_id = db.Column(db.Integer, nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "initial_amount_cents": self.initial_amount_cents,
            "actual_amount_cents": self.actual_amount_cents,
            "expected_amount_cents": self.expected_amount_cents,
            "difference_cents": self.difference_cents,
            "opening_date": to_utc_z(self.opening_date),
            "closing_date": to_utc_z(self.closing_date),
            "notes": self.notes,
            "last_sale_at": to_utc_z(self.last_sale_at),
            "operator_user_id": self.operator_user_id,
            "sales_count": len(self.sales),
            "version_id": self.version_id,
        }

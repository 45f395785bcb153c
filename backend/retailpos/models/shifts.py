from __future__ import annotations

from ..extensions import db
from retailpos.time_utils import to_utc_z

SHIFT_OPEN = "open"
SHIFT_CLOSED = "closed"


class Shift(db.Model):
    """
    A cashier's work session against the store's cash drawer.

    LIFECYCLE:
    - open: started with a counted starting cash float
    - closed: ending cash counted, expected cash and difference frozen

    IMMUTABLE: Once closed, a shift is never reopened or recalculated.
    The summary columns are only written by the close action.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index("ix_shifts_store_user_status", "store_id", "user_id", "status"),
        # At most one open shift per user per store
        db.Index(
            "uq_shifts_open_per_user",
            "store_id",
            "user_id",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SHIFT_OPEN, index=True)
    start_time = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)

    starting_cash = db.Column(db.Integer, nullable=False, default=0)
    ending_cash = db.Column(db.Integer, nullable=True)

    # Frozen at close
    expected_cash = db.Column(db.Integer, nullable=True)  # starting_cash + cash sales
    cash_difference = db.Column(db.Integer, nullable=True)  # ending_cash - expected_cash
    cash_sales = db.Column(db.Integer, nullable=True)
    total_revenue = db.Column(db.Integer, nullable=True)
    sales_count = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("shifts", lazy=True))
    store = db.relationship("Store", backref=db.backref("shifts", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == SHIFT_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "user_id": self.user_id,
            "user_name": (self.user.display_name or self.user.username) if self.user else None,
            "status": self.status,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time) if self.end_time else None,
            "starting_cash": self.starting_cash,
            "ending_cash": self.ending_cash,
            "expected_cash": self.expected_cash,
            "cash_difference": self.cash_difference,
            "cash_sales": self.cash_sales,
            "total_revenue": self.total_revenue,
            "sales_count": self.sales_count,
            "notes": self.notes,
            "version_id": self.version_id,
        }

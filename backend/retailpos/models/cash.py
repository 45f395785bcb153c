from __future__ import annotations

from ..extensions import db
from retailpos.time_utils import to_utc_z

CASH_RECEIPT = "receipt"
CASH_DISBURSEMENT = "disbursement"
CASH_TYPES = (CASH_RECEIPT, CASH_DISBURSEMENT)

CASH_STATUS_ACTIVE = "active"
CASH_STATUS_REPLACED = "replaced"


class CashTransaction(db.Model):
    """
    Manual cash-book entry (money in or out of the shop outside of sales).

    amount is always positive; direction comes from transaction_type.
    signed_amount gives +amount for receipts and -amount for disbursements.

    IMMUTABLE: An edit creates a new row and marks this one REPLACED,
    linking forward via replaced_by_id. Replaced rows are excluded from
    listings and summaries.
    """
    __tablename__ = "cash_transactions"
    __table_args__ = (
        db.Index("ix_cash_txns_store_status_date", "store_id", "status", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(64), nullable=True, index=True)
    reason = db.Column(db.String(255), nullable=False)
    related_invoice = db.Column(db.String(64), nullable=True)
    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=CASH_STATUS_ACTIVE, index=True)
    replaced_by_id = db.Column(db.Integer, db.ForeignKey("cash_transactions.id"), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def signed_amount(self) -> int:
        return self.amount if self.transaction_type == CASH_RECEIPT else -self.amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "customer_id": self.customer_id,
            "transaction_type": self.transaction_type,
            "amount": self.amount,
            "signed_amount": self.signed_amount,
            "category": self.category,
            "reason": self.reason,
            "related_invoice": self.related_invoice,
            "transaction_date": to_utc_z(self.transaction_date),
            "status": self.status,
            "replaced_by_id": self.replaced_by_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }

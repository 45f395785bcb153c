from __future__ import annotations

from ..extensions import db
from retailpos.time_utils import to_utc_z

SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_VOIDED = "voided"

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_TRANSFER = "transfer"
METHOD_CREDIT = "credit"  # On account: whole total becomes customer debt

SALE_PAYMENT_METHODS = (METHOD_CASH, METHOD_CARD, METHOD_TRANSFER, METHOD_CREDIT)
DEBT_PAYMENT_METHODS = (METHOD_CASH, METHOD_CARD, METHOD_TRANSFER)

PAYMENT_STATUS_COMPLETED = "completed"
PAYMENT_STATUS_VOIDED = "voided"


class Sale(db.Model):
    """
    Completed point-of-sale transaction.

    IMMUTABLE: Amounts and items never change after creation. The only
    allowed transition is completed -> voided, which removes the sale from
    debt and shift aggregates and returns stock.

    AMOUNTS:
    - subtotal: sum of item line totals
    - total_amount: subtotal - discount (what the customer owes)
    - amount_tendered / change_due: cash handling at the counter
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("store_id", "invoice_number", name="uq_sales_store_invoice"),
        db.Index("ix_sales_store_status_date", "store_id", "status", "transaction_date"),
        db.Index("ix_sales_customer_date", "customer_id", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    invoice_number = db.Column(db.String(64), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)
    payment_method = db.Column(db.String(16), nullable=False, index=True)

    subtotal = db.Column(db.Integer, nullable=False, default=0)
    discount = db.Column(db.Integer, nullable=False, default=0)
    total_amount = db.Column(db.Integer, nullable=False, default=0)
    amount_tendered = db.Column(db.Integer, nullable=False, default=0)
    change_due = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.String(255), nullable=True)

    # Void audit trail
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("sales", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    shift = db.relationship("Shift", backref=db.backref("sales", lazy=True))
    items = db.relationship("SaleItem", backref="sale", lazy=True, order_by="SaleItem.id")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "shift_id": self.shift_id,
            "created_by_user_id": self.created_by_user_id,
            "transaction_date": to_utc_z(self.transaction_date),
            "status": self.status,
            "payment_method": self.payment_method,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "total_amount": self.total_amount,
            "amount_tendered": self.amount_tendered,
            "change_due": self.change_due,
            "notes": self.notes,
            "voided_by_user_id": self.voided_by_user_id,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "void_reason": self.void_reason,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line item on a sale. Name and cost are snapshotted at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Integer, nullable=True)
    line_total = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "unit_cost": self.unit_cost,
            "line_total": self.line_total,
        }


class Payment(db.Model):
    """
    Money received from a customer against their balance.

    WHY: Debt is sales minus payments. A payment is recorded either
    explicitly (customer settles debt) or automatically when a
    non-credit sale is paid at the counter (sale_id set).

    IMMUTABLE: Corrections are made by voiding, never by editing.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_customer_date", "customer_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    amount = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False, default=METHOD_CASH)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    notes = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_COMPLETED, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))
    sale = db.relationship("Sale", backref=db.backref("payments", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "sale_id": self.sale_id,
            "amount": self.amount,
            "method": self.method,
            "payment_date": to_utc_z(self.payment_date),
            "notes": self.notes,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "voided_by_user_id": self.voided_by_user_id,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "void_reason": self.void_reason,
            "created_at": to_utc_z(self.created_at),
        }

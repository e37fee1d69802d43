from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_PARTIALLY_REFUNDED = "partially_refunded"
SALE_STATUS_REFUNDED = "refunded"

# Monotonic order; a sale never moves back down this list
SALE_STATUS_RANK = {
    SALE_STATUS_COMPLETED: 0,
    SALE_STATUS_PARTIALLY_REFUNDED: 1,
    SALE_STATUS_REFUNDED: 2,
}


class Sale(db.Model):
    """
    Completed sale as seen by the settlement engine.

    Core fields (invoice, lines, totals) are immutable here. The engine only
    appends to the returns log and bumps the return summary columns.

    INVARIANT: returned_total_cents <= total_cents.
    `version_id` gives optimistic protection against a concurrent writer
    updating the summary between our read and our write.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("returned_total_cents <= total_cents", name="ck_sales_returned_le_total"),
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_no = db.Column(db.String(64), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    cashier_user_id = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(24), nullable=False, default=SALE_STATUS_COMPLETED, index=True)
    total_cents = db.Column(db.Integer, nullable=False)

    # Return summary
    returned_total_cents = db.Column(db.Integer, nullable=False, default=0)
    returned_items = db.Column(db.Integer, nullable=False, default=0)
    last_return_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    lines = db.relationship("SaleLine", back_populates="sale", order_by="SaleLine.id", lazy=True)
    return_records = db.relationship(
        "SaleReturnRecord", back_populates="sale", order_by="SaleReturnRecord.id", lazy=True
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_no": self.invoice_no,
            "customer_id": self.customer_id,
            "cashier_user_id": self.cashier_user_id,
            "status": self.status,
            "total_cents": self.total_cents,
            "return_summary": {
                "total_returned_cents": self.returned_total_cents,
                "returned_items": self.returned_items,
                "last_return_at": to_utc_z(self.last_return_at) if self.last_return_at else None,
            },
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["customer"] = self.customer.to_dict() if self.customer else None
            data["lines"] = [line.to_dict() for line in self.lines]
            data["returns"] = [record.to_dict() for record in self.return_records]
        return data


class SaleLine(db.Model):
    """Individual line items on a sale."""
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=True)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "sku": self.product.sku if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
        }


class SaleReturnRecord(db.Model):
    """
    Settlement summary appended to a sale for each processed return.

    Append-only: replaying these rows is how already-returned quantities
    are computed.
    """
    __tablename__ = "sale_return_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    return_transaction_id = db.Column(db.Integer, db.ForeignKey("return_transactions.id"), nullable=False, unique=True)

    reference = db.Column(db.String(32), nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(24), nullable=False)
    processed_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="return_records")
    items = db.relationship("SaleReturnRecordItem", back_populates="record", order_by="SaleReturnRecordItem.id", lazy=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_transaction_id": self.return_transaction_id,
            "reference": self.reference,
            "total_cents": self.total_cents,
            "method": self.method,
            "processed_by_user_id": self.processed_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class SaleReturnRecordItem(db.Model):
    __tablename__ = "sale_return_record_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    record_id = db.Column(db.Integer, db.ForeignKey("sale_return_records.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(24), nullable=False)
    disposition = db.Column(db.String(24), nullable=False)

    record = db.relationship("SaleReturnRecord", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "amount_cents": self.amount_cents,
            "reason": self.reason,
            "disposition": self.disposition,
        }

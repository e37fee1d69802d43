from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


BARCODE_STATUS_GENERATED = "generated"
BARCODE_STATUS_IN_STOCK = "in_stock"
BARCODE_STATUS_SOLD = "sold"
BARCODE_STATUS_RETURNED = "returned"
BARCODE_STATUS_DAMAGED = "damaged"
BARCODE_STATUS_WRITTEN_OFF = "written_off"


class UnitBarcode(db.Model):
    """
    Serialized identifier for one physical unit.

    LIFECYCLE: generated -> in_stock -> sold -> returned
    (sold units may also carry a warranty link, managed elsewhere).

    Only units in `sold` tied to the returning sale may become `returned`,
    and only once.
    """
    __tablename__ = "unit_barcodes"
    __table_args__ = (
        db.Index("ix_unit_barcodes_sale_product_status", "sale_id", "product_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    barcode = db.Column(db.String(64), nullable=False, unique=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=BARCODE_STATUS_GENERATED, index=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    warranty_status = db.Column(db.String(16), nullable=False, default="none")

    return_transaction_id = db.Column(db.Integer, db.ForeignKey("return_transactions.id"), nullable=True, index=True)
    returned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    return_reason = db.Column(db.String(24), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "barcode": self.barcode,
            "product_id": self.product_id,
            "status": self.status,
            "sale_id": self.sale_id,
            "sold_at": to_utc_z(self.sold_at) if self.sold_at else None,
            "customer_id": self.customer_id,
            "warranty_status": self.warranty_status,
            "return_transaction_id": self.return_transaction_id,
            "returned_at": to_utc_z(self.returned_at) if self.returned_at else None,
            "return_reason": self.return_reason,
        }

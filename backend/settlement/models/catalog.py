from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Product(db.Model):
    """
    Product master data as seen by the settlement engine.

    Owned by the catalog collaborator; the engine only reads pricing/category
    and increments `current_stock` in place when a return is restocked.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=True)
    current_stock = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category_id": self.category_id,
            "price_cents": self.price_cents,
            "current_stock": self.current_stock,
            "is_active": self.is_active,
        }


class InventoryRecord(db.Model):
    """
    Per-product stock counters.

    INVARIANT: counters only change together with a StockMovement row
    written in the same transaction.
    """
    __tablename__ = "inventory_records"
    __table_args__ = (
        db.UniqueConstraint("product_id", name="uq_inventory_records_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    minimum_stock = db.Column(db.Integer, nullable=False, default=0)
    reorder_point = db.Column(db.Integer, nullable=False, default=0)
    reserved_stock = db.Column(db.Integer, nullable=False, default=0)
    available_stock = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    product = db.relationship("Product", backref=db.backref("inventory", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "current_stock": self.current_stock,
            "minimum_stock": self.minimum_stock,
            "reorder_point": self.reorder_point,
            "reserved_stock": self.reserved_stock,
            "available_stock": self.available_stock,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock movement ledger.

    MOVEMENT TYPES written by returns:
    - return: restocked units (positive quantity)
    - return_damage / return_write_off / return_to_supplier: audit rows with
      zero quantity, stock unchanged

    IMMUTABLE: rows are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("new_stock = previous_stock + quantity", name="ck_stock_movements_balance"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(32), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    reference_type = db.Column(db.String(32), nullable=False, default="ReturnTransaction")
    return_transaction_id = db.Column(db.Integer, db.ForeignKey("return_transactions.id"), nullable=True, index=True)
    reason = db.Column(db.String(64), nullable=True)

    performed_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reference_type": self.reference_type,
            "return_transaction_id": self.return_transaction_id,
            "reason": self.reason,
            "performed_by_user_id": self.performed_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }

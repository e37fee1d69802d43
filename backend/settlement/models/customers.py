from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


CUSTOMER_TYPES = ("retail", "wholesale", "vip", "staff")


class Customer(db.Model):
    """
    Customer lookup data.

    Owned by the customer collaborator; the engine reads it for sale lookup,
    slip search and store-credit ownership.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_phone", "phone"),
        db.Index("ix_customers_email", "email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    nic = db.Column(db.String(32), nullable=True, index=True)
    customer_type = db.Column(db.String(16), nullable=False, default="retail")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "nic": self.nic,
            "customer_type": self.customer_type,
            "created_at": to_utc_z(self.created_at),
        }

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic per-day document counters.

    WHY: return and slip numbers are `<PREFIX><YYMMDD><NNNN>`; allocating them
    by "find max and add one" races under concurrent issuance. One counter
    row per (prefix, day) is incremented in place instead.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("prefix", "day", name="uq_document_sequences_prefix_day"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    prefix = db.Column(db.String(8), nullable=False)
    day = db.Column(db.String(6), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prefix": self.prefix,
            "day": self.day,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }

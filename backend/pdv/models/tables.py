from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class DiningTable(db.Model):
    __tablename__ = "dining_tables"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sort_order": self.sort_order,
            "active": self.active,
        }


class TableSession(db.Model):
    """
    Occupation of a dining table; TABLE orders attach to an OPEN session.

    INVARIANT: At most one OPEN session per table (partial unique index).
    """
    __tablename__ = "table_sessions"
    __table_args__ = (
        db.Index(
            "uq_table_sessions_table_open",
            "table_id",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    table_id = db.Column(db.Integer, db.ForeignKey("dining_tables.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)  # OPEN, CLOSED
    opened_by = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False)
    closed_by = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    table = db.relationship("DiningTable", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "table_id": self.table_id,
            "table_name": self.table.name if self.table else None,
            "status": self.status,
            "opened_by": self.opened_by,
            "closed_by": self.closed_by,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
        }

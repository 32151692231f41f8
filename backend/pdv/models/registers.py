from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ..validation import format_cents


class CashRegister(db.Model):
    """
    Cash register session (one drawer, opened and later closed).

    WHY: Orders can only be created while a register is OPEN, and closing
    reconciles counted cash against what the drawer should hold.

    INVARIANT: At most one OPEN register at a time. Enforced by the partial
    unique index below so concurrent opens cannot both succeed.
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        db.Index(
            "uq_cash_registers_single_open",
            "status",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)  # OPEN, CLOSED

    # Cash tracking (all amounts in cents)
    opening_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_cents = db.Column(db.Integer, nullable=True)
    expected_cents = db.Column(db.Integer, nullable=True)  # opening + cash sales + supplies - withdrawals
    variance_cents = db.Column(db.Integer, nullable=True)  # closing - expected

    opened_by = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False, index=True)
    closed_by = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "opening_cents": self.opening_cents,
            "opening_amount": format_cents(self.opening_cents),
            "closing_cents": self.closing_cents,
            "closing_amount": format_cents(self.closing_cents),
            "expected_cents": self.expected_cents,
            "variance_cents": self.variance_cents,
            "opened_by": self.opened_by,
            "closed_by": self.closed_by,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
            "notes": self.notes,
            "version_id": self.version_id,
        }


class Shift(db.Model):
    """
    Operator work shift.

    INVARIANT: At most one OPEN shift per operator (partial unique index).
    A shift may outlive the register it was opened under.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index(
            "uq_shifts_operator_open",
            "opened_by",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cash_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=True, index=True)
    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)  # OPEN, CLOSED

    opened_by = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False, index=True)
    closed_by = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    note_open = db.Column(db.String(255), nullable=True)
    note_close = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    register = db.relationship("CashRegister", backref=db.backref("shifts", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cash_register_id": self.cash_register_id,
            "status": self.status,
            "opened_by": self.opened_by,
            "closed_by": self.closed_by,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
            "note_open": self.note_open,
            "note_close": self.note_close,
        }


class CashMovement(db.Model):
    """
    Cash put into (SUPPLY) or taken out of (WITHDRAW) the drawer outside a sale.

    Append-only; feeds the expected cash figure at register close.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_cash_movements_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cash_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)
    type = db.Column(db.String(16), nullable=False)  # SUPPLY, WITHDRAW
    amount_cents = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    register = db.relationship("CashRegister", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cash_register_id": self.cash_register_id,
            "shift_id": self.shift_id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "amount": format_cents(self.amount_cents),
            "reason": self.reason,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }

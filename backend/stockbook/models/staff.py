from __future__ import annotations

from ..extensions import db


class Staff(db.Model):
    __tablename__ = "staff"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(100), nullable=False)
    salary = db.Column(db.Float, server_default="0")
    hire_date = db.Column(db.Date, nullable=True)
    is_active = db.Column(db.Integer, server_default="1")

    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now())


class Attendance(db.Model):
    """One row per staff member per day."""
    __tablename__ = "attendance"
    __table_args__ = (
        db.UniqueConstraint("staff_id", "date", name="uq_attendance_staff_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(
        db.Integer,
        db.ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
    )
    date = db.Column(db.Date, nullable=False)
    check_in = db.Column(db.Time, nullable=True)
    check_out = db.Column(db.Time, nullable=True)
    status = db.Column(db.String(50), server_default="present")
    notes = db.Column(db.Text, nullable=True)


class Expense(db.Model):
    __tablename__ = "expenses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(100), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    description = db.Column(db.Text, nullable=True)
    expense_date = db.Column(db.Date, server_default=db.text("CURRENT_DATE"))

    created_at = db.Column(db.DateTime, server_default=db.func.now())

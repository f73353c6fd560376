"""
Relational schema.

Ids are stored as 36-character strings so the same schema works on SQLite
and PostgreSQL. Timestamps are naive UTC; dates are plain calendar dates.
"""

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    display_name = Column(String(100), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class SessionRow(Base):
    __tablename__ = "sessions"

    token = Column(String(255), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False)


class FamilyRow(Base):
    __tablename__ = "families"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    monthly_budget = Column(Numeric(14, 2), nullable=True)
    large_expense_threshold = Column(Numeric(14, 2), nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class FamilyMemberRow(Base):
    __tablename__ = "family_members"
    __table_args__ = (
        UniqueConstraint("family_id", "user_id", name="uq_family_members_family_user"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    family_id = Column(String(36), ForeignKey("families.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(10), nullable=False, default="MEMBER")
    joined_at = Column(DateTime, nullable=False)


class InviteRow(Base):
    __tablename__ = "invites"

    id = Column(String(36), primary_key=True, default=_new_id)
    code = Column(String(6), nullable=False, unique=True)
    family_id = Column(String(36), ForeignKey("families.id"), nullable=False, index=True)
    created_by = Column(String(36), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_by = Column(String(36), nullable=True)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False)


class CategoryRow(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    icon = Column(String(50), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    family_id = Column(String(36), ForeignKey("families.id"), nullable=True, index=True)


class CategoryBudgetRow(Base):
    __tablename__ = "category_budgets"
    __table_args__ = (
        UniqueConstraint(
            "family_id", "category_id", "month",
            name="uq_category_budgets_family_category_month",
        ),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    family_id = Column(String(36), ForeignKey("families.id"), nullable=False, index=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=False)
    month = Column(String(7), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)


class ExpenseRow(Base):
    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=_new_id)
    amount = Column(Numeric(14, 2), nullable=False)
    description = Column(String(500), nullable=False)
    expense_date = Column("date", Date, nullable=False, index=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=False)
    family_id = Column(String(36), ForeignKey("families.id"), nullable=False, index=True)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class RecurringExpenseRow(Base):
    __tablename__ = "recurring_expenses"

    id = Column(String(36), primary_key=True, default=_new_id)
    amount = Column(Numeric(14, 2), nullable=False)
    description = Column(String(500), nullable=False)
    frequency = Column(String(10), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    next_due_date = Column(Date, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    family_id = Column(String(36), ForeignKey("families.id"), nullable=False, index=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=False)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class NotificationRow(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=_new_id)
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    family_id = Column(String(36), ForeignKey("families.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, index=True)


class JobLockRow(Base):
    __tablename__ = "job_locks"
    __table_args__ = (
        UniqueConstraint("job_name", "run_key", name="uq_job_locks_job_run"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    job_name = Column(String(100), nullable=False)
    run_key = Column(String(50), nullable=False)
    acquired_at = Column(DateTime, nullable=False)


class AuditEventRow(Base):
    __tablename__ = "audit_events"

    event_id = Column(String(36), primary_key=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    event_type = Column(String(50), nullable=False)
    severity = Column(String(10), nullable=False)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(36), nullable=True, index=True)
    family_id = Column(String(36), nullable=True)
    actor_id = Column(String(36), nullable=True)
    correlation_id = Column(String(36), nullable=True, index=True)
    description = Column(String(500), nullable=False)
    details = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)

"""Subscription model — a customer's recurring meal plan and its lifecycle state."""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zynk.constants import MEALS_PER_WEEK, SUB_PENDING, SUBSCRIPTION_STATUSES
from zynk.utils import now_utc
from .base import Base

# At most one pending/active subscription per user; the service pre-checks,
# this index is the backstop for concurrent creates.
_OPEN_STATUS_CLAUSE = text("status IN ('pending', 'active')")


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (
        Index(
            "uq_subscriptions_user_open",
            "user_id",
            unique=True,
            postgresql_where=_OPEN_STATUS_CLAUSE,
            sqlite_where=_OPEN_STATUS_CLAUSE,
        ),
        CheckConstraint(f"status IN {SUBSCRIPTION_STATUSES!r}", name="ck_subscriptions_status_valid"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    chef_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    plan_id: Mapped[int | None] = mapped_column(ForeignKey("meal_plans.id", ondelete="SET NULL"), nullable=True)

    plan_name: Mapped[str] = mapped_column(String(100), nullable=False)
    meals_per_week: Mapped[int] = mapped_column(Integer, nullable=False, default=MEALS_PER_WEEK)
    price_in_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    price_snapshot: Mapped[int] = mapped_column(Integer, nullable=False)

    delivery_address: Mapped[str] = mapped_column(Text, nullable=False)
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=SUB_PENDING)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_billing_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    payment_order_id: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)
    payment_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    is_skip_swap_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    lock_applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="subscriptions", foreign_keys=[user_id])
    deliveries: Mapped[list["Delivery"]] = relationship(
        back_populates="subscription", order_by="Delivery.delivery_date"
    )

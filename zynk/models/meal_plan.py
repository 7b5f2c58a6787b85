"""MealPlan model — a chef's purchasable plan."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from zynk.utils import now_utc
from .base import Base


class MealPlan(Base):
    __tablename__ = "meal_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chef_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    plan_name: Mapped[str] = mapped_column(String(100), nullable=False)
    monthly_price: Mapped[int] = mapped_column(Integer, nullable=False)  # minor units
    frequency: Mapped[str] = mapped_column(String(32), nullable=False, default="weekly")
    meal_type: Mapped[str] = mapped_column(String(32), nullable=False, default="lunch")
    availability: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

"""SQLAlchemy models for the Zynk backend."""

from .base import Base
from .user import User
from .customer_profile import CustomerProfile
from .meal_plan import MealPlan
from .subscription import Subscription
from .delivery import Delivery
from .notification import Notification

__all__ = [
    "Base",
    "User",
    "CustomerProfile",
    "MealPlan",
    "Subscription",
    "Delivery",
    "Notification",
]

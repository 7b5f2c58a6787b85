"""Centralized application constants — single source of truth for hardcoded values."""

# --- Roles ---
ROLE_CUSTOMER = "customer"
ROLE_CHEF = "chef"
ROLE_DELIVERY = "delivery"
ROLE_ADMIN = "admin"
USER_ROLES = (ROLE_CUSTOMER, ROLE_CHEF, ROLE_DELIVERY, ROLE_ADMIN)

# --- Subscription status ---
SUB_PENDING = "pending"
SUB_ACTIVE = "active"
SUB_PAUSED = "paused"
SUB_CANCELLED = "cancelled"
SUBSCRIPTION_STATUSES = (SUB_PENDING, SUB_ACTIVE, SUB_PAUSED, SUB_CANCELLED)
OPEN_SUBSCRIPTION_STATUSES = (SUB_PENDING, SUB_ACTIVE)

# --- Delivery status ---
DELIVERY_SCHEDULED = "scheduled"
DELIVERY_SKIPPED = "skipped"
DELIVERY_DELIVERED = "delivered"
DELIVERY_STATUSES = (DELIVERY_SCHEDULED, DELIVERY_SKIPPED, DELIVERY_DELIVERED)

# --- Schedule ---
DEFAULT_MEAL_TYPE = "standard"
MEALS_PER_WEEK = 7
BILLING_CYCLE_DAYS = 7  # one generated schedule per cycle

# --- Cutoffs (local time) ---
DELIVERY_CUTOFF_HOUR = 20  # 8 PM on the day before delivery
WEEKLY_LOCK_WEEKDAY = 4  # Friday
WEEKLY_LOCK_HOUR = 20  # Friday 8 PM through Sunday 23:59:59

# --- Auth ---
BEARER_PREFIX = "Bearer"

# --- Payments ---
STRIPE_CHECKOUT_COMPLETED = "checkout.session.completed"
STRIPE_ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
STRIPE_PAID = "paid"

# --- Pagination ---
NOTIFICATIONS_PER_PAGE = 50

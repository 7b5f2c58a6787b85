"""Shared fixtures: in-memory SQLite, a frozen clock and a recording notifier."""

import os

# Settings are read at import time; keep tests off any real database or API key.
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["RESEND_API_KEY"] = ""

from datetime import datetime  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from zoneinfo import ZoneInfo  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from zynk.constants import ROLE_CHEF, ROLE_CUSTOMER  # noqa: E402
from zynk.models import Base, CustomerProfile, MealPlan, User  # noqa: E402
from zynk.services.auth_service import create_jwt  # noqa: E402
from zynk.services.delivery_service import DeliveryService  # noqa: E402
from zynk.services.subscription_service import SubscriptionService  # noqa: E402

TZ = ZoneInfo("Asia/Kolkata")


def local(year, month, day, hour=0, minute=0, second=0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=TZ)


class FrozenClock:
    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, now: datetime) -> None:
        self.current = now


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    async def notify(self, user_id, type, title, message, metadata=None) -> None:
        self.sent.append(SimpleNamespace(user_id=user_id, type=type, title=title, message=message, metadata=metadata))

    @property
    def types(self) -> list[str]:
        return [n.type for n in self.sent]


class FailingNotifier:
    async def notify(self, user_id, type, title, message, metadata=None) -> None:
        raise RuntimeError("notification backend down")


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    # A Wednesday, well clear of both cutoffs
    return FrozenClock(local(2024, 3, 6, 10))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def seed(session_factory):
    """A chef with one plan, and two customers with delivery profiles."""
    async with session_factory() as session:
        chef = User(email="chef@example.com", full_name="Asha Kitchen", role=ROLE_CHEF)
        customer = User(email="ravi@example.com", full_name="Ravi", role=ROLE_CUSTOMER)
        intruder = User(email="mallory@example.com", full_name="Mallory", role=ROLE_CUSTOMER)
        session.add_all([chef, customer, intruder])
        await session.flush()

        plan = MealPlan(chef_id=chef.id, plan_name="Weekly Veg Lunch", monthly_price=4500)
        session.add_all(
            [
                plan,
                CustomerProfile(user_id=customer.id, address="12 MG Road", pincode="560001", city="Bengaluru"),
                CustomerProfile(user_id=intruder.id, address="4 Park Street", pincode="700016", city="Kolkata"),
            ]
        )
        await session.commit()
        return SimpleNamespace(
            chef_id=chef.id,
            customer_id=customer.id,
            intruder_id=intruder.id,
            plan_id=plan.id,
        )


@pytest.fixture
def subscriptions(db, clock, notifier):
    return SubscriptionService(db, clock, notifier)


@pytest.fixture
def deliveries(db, clock, notifier):
    return DeliveryService(db, clock, notifier)


@pytest.fixture
def activate(subscriptions):
    """Create, attach an order to and confirm a subscription at the clock's time."""

    async def _activate(user_id, plan_id):
        sub = await subscriptions.create_pending_subscription(user_id, plan_id)
        order_ref = f"order_test_{sub.id}"
        await subscriptions.attach_payment_order(sub.id, order_ref)
        return await subscriptions.confirm_payment(order_ref, f"pay_test_{sub.id}")

    return _activate


def auth(user_id: int, role: str) -> dict:
    return {"Authorization": f"Bearer {create_jwt(user_id, role)}"}


@pytest.fixture
async def client(session_factory, clock, notifier):
    from zynk.app import app
    from zynk.db.session import get_db
    from zynk.dependencies import get_clock, get_notifier

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

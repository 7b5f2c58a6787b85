"""Dev seed script — creates a local admin, chef (with a plan) and customer.

Bypasses registration so the subscription flow can be exercised locally
against SQLite with no Stripe key configured.

Usage:
    python -m zynk.dev_seed
"""

import asyncio


async def main():
    # Ensure .env is loaded before importing settings
    from dotenv import load_dotenv
    load_dotenv()

    from sqlalchemy import select
    from zynk.constants import ROLE_ADMIN, ROLE_CHEF, ROLE_CUSTOMER
    from zynk.db.session import async_session_factory, engine
    from zynk.models import Base
    from zynk.models.customer_profile import CustomerProfile
    from zynk.models.meal_plan import MealPlan
    from zynk.models.user import User
    from zynk.services.auth_service import create_jwt

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        result = await db.execute(select(User).where(User.email == "admin@localhost"))
        if result.scalar_one_or_none():
            print("Seed data already present; tokens for existing users:")
            users = (await db.execute(select(User).order_by(User.id))).scalars().all()
            for user in users:
                print(f"  {user.role:<9} {user.email:<22} {create_jwt(user.id, user.role)}")
            await engine.dispose()
            return

        admin = User(email="admin@localhost", full_name="Local Admin", role=ROLE_ADMIN)
        chef = User(email="chef@localhost", full_name="Asha Kitchen", role=ROLE_CHEF)
        customer = User(email="customer@localhost", full_name="Ravi Customer", role=ROLE_CUSTOMER)
        db.add_all([admin, chef, customer])
        await db.flush()

        plan = MealPlan(
            chef_id=chef.id,
            plan_name="Weekly Veg Lunch",
            monthly_price=4500,
            frequency="weekly",
            meal_type="lunch",
        )
        profile = CustomerProfile(
            user_id=customer.id,
            address="12 MG Road",
            pincode="560001",
            city="Bengaluru",
        )
        db.add_all([plan, profile])
        await db.commit()

        print(f"Seeded plan {plan.id} ({plan.plan_name}, {plan.monthly_price} minor units)")
        print()
        for user in (admin, chef, customer):
            print(f"  {user.role:<9} {user.email:<22} {create_jwt(user.id, user.role)}")
        print()
        print("Next steps:")
        print("  1. Start the API:  uvicorn zynk.app:app --reload")
        print(f"  2. POST /api/subscriptions  {{\"planId\": {plan.id}}}  with the customer token")
        print("  3. POST /api/payments/create-order, then confirm via the Stripe webhook")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())

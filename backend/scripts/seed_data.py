"""Seed the database with demo coaches in every billing state, plus their clients.

Each demo coach exercises one branch of the access check, so logging in as
the coach (or one of their clients) shows the corresponding banner or
denial page.

Run inside Docker:
    docker compose exec backend python -m scripts.seed_data
"""

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from app.auth.passwords import hash_password
from app.database import async_session_factory
from app.models.subscription import Subscription
from app.models.user import ROLE_ADMIN, ROLE_CLIENT, ROLE_COACH, User

DEMO_PASSWORD = "demo1234"
DEMO_DOMAIN = "demo.suplient.com"

ADMIN = {"email": f"admin@{DEMO_DOMAIN}", "name": "Demo Admin"}

# (slug, status, stripe subscription id, period end offset in days, cancel at period end)
COACH_STATES: list[tuple[str, str, str | None, int | None, bool]] = [
    ("unconnected", "none", None, None, False),
    ("active", "active", "sub_demo_active", 20, False),
    ("cancelling", "active", "sub_demo_cancelling", 10, True),
    ("expired", "active", "sub_demo_expired", -2, False),
    ("trialing", "trialing", "sub_demo_trialing", 14, False),
    ("pastdue-paid", "past_due", "sub_demo_pastdue_paid", 3, False),
    ("pastdue-grace", "past_due", "sub_demo_pastdue_grace", -4, False),
    ("pastdue-over", "past_due", "sub_demo_pastdue_over", -9, False),
    ("canceled", "canceled", "sub_demo_canceled", -30, False),
    ("unpaid", "unpaid", "sub_demo_unpaid", -12, False),
    ("incomplete", "incomplete", "sub_demo_incomplete", None, False),
]

CLIENTS_PER_COACH = 2


def _naive_utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def seed() -> None:
    """Populate the database with demo accounts.

    Idempotent: every account under the demo domain is deleted first.
    """
    async with async_session_factory() as session:
        result = await session.execute(select(User.id).where(User.email.like(f"%@{DEMO_DOMAIN}")))
        existing_ids = [row[0] for row in result.all()]
        if existing_ids:
            print(f"⚠️  Removing {len(existing_ids)} existing demo accounts...")
            await session.execute(delete(Subscription).where(Subscription.user_id.in_(existing_ids)))
            # Clients first: their coach_id points at coaches being deleted
            await session.execute(
                delete(User).where(User.id.in_(existing_ids), User.role == ROLE_CLIENT)
            )
            await session.execute(delete(User).where(User.id.in_(existing_ids)))
            await session.flush()

        hashed = hash_password(DEMO_PASSWORD)
        now = _naive_utc_now()

        admin = User(email=ADMIN["email"], name=ADMIN["name"], hashed_password=hashed, role=ROLE_ADMIN)
        session.add(admin)
        await session.flush()
        print(f"✅ Admin: {admin.email}")

        client_count = 0
        for slug, status, sub_id, end_offset, cancel in COACH_STATES:
            coach = User(
                email=f"coach-{slug}@{DEMO_DOMAIN}",
                name=f"Coach {slug.replace('-', ' ').title()}",
                hashed_password=hashed,
                role=ROLE_COACH,
            )
            session.add(coach)
            await session.flush()

            session.add(
                Subscription(
                    user_id=coach.id,
                    stripe_subscription_id=sub_id,
                    status=status,
                    current_period_start=now - timedelta(days=30) if end_offset is not None else None,
                    current_period_end=now + timedelta(days=end_offset) if end_offset is not None else None,
                    cancel_at_period_end=cancel,
                )
            )

            for i in range(1, CLIENTS_PER_COACH + 1):
                session.add(
                    User(
                        email=f"client{i}-{slug}@{DEMO_DOMAIN}",
                        name=f"Client {i} of {coach.name}",
                        hashed_password=hashed,
                        role=ROLE_CLIENT,
                        coach_id=coach.id,
                    )
                )
                client_count += 1

            await session.flush()
            print(f"   🧑‍🏫 {coach.email} — status={status}, period_end_offset={end_offset}")

        # A client without a coach, for the no_coach_assigned page
        session.add(
            User(
                email=f"client-orphan@{DEMO_DOMAIN}",
                name="Client Without Coach",
                hashed_password=hashed,
                role=ROLE_CLIENT,
            )
        )
        client_count += 1

        await session.commit()

        print()
        print("=" * 60)
        print("📊 Seed Summary")
        print("=" * 60)
        print(f"   Admins:   1")
        print(f"   Coaches:  {len(COACH_STATES)}")
        print(f"   Clients:  {client_count}")
        print(f"   Password: {DEMO_PASSWORD}")
        print("=" * 60)
        print("🎉 Done! Log in at /api/v1/auth/login and call /api/v1/subscription/check")


if __name__ == "__main__":
    asyncio.run(seed())

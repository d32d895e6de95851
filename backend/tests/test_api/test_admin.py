"""API tests for the admin coach-subscription overview."""

from datetime import datetime, timedelta, timezone

from httpx import AsyncClient

URL = "/api/v1/admin/coaches/subscriptions"


class TestCoachSubscriptionOverview:
    async def test_lists_every_coach_with_decision(self, client: AsyncClient, admin_headers, make_coach):
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        active = await make_coach(
            status="active", stripe_subscription_id="sub_a", current_period_end=now + timedelta(days=9)
        )
        canceled = await make_coach(status="canceled", stripe_subscription_id="sub_c")
        bare = await make_coach(with_subscription=False)

        response = await client.get(URL, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3

        rows = {row["coach_id"]: row for row in data["coaches"]}
        assert rows[str(active.id)]["access"]["has_access"] is True
        assert rows[str(active.id)]["subscription_status"] == "active"
        assert rows[str(canceled.id)]["access"]["reason"] == "canceled"
        assert rows[str(bare.id)]["subscription_status"] is None
        assert rows[str(bare.id)]["access"]["reason"] == "no_stripe_connection"

    async def test_coach_forbidden(self, client: AsyncClient, coach_headers):
        response = await client.get(URL, headers=coach_headers)
        assert response.status_code == 403

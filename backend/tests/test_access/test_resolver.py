"""Tests for access resolution. Fetches are mocked and the session is an AsyncMock."""

import asyncio
import uuid
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from app.access.decision import (
    MESSAGE_CLIENT_ERROR,
    MESSAGE_COACH_ERROR,
    MESSAGE_COACH_SUBSCRIPTION_INACTIVE,
    MESSAGE_NO_COACH_ASSIGNED,
    ReasonCode,
    SubscriptionRecord,
)
from app.access.resolver import (
    check_user_access,
    resolve_coach_access,
    resolve_effective_access,
)
from app.config import settings
from app.models.user import ROLE_ADMIN, ROLE_CLIENT, ROLE_COACH, User

NOW = datetime(2026, 6, 1, 8, 0, 0)
COACH_ID = uuid.uuid4()
CLIENT_ID = uuid.uuid4()

GET_CLIENT = "app.access.resolver.get_client"
GET_RECORD = "app.access.resolver.get_subscription_record"


def _record(status: str | None, period_end: datetime | None = None, sub_id: str | None = "sub_x"):
    return SubscriptionRecord(
        account_id=COACH_ID,
        subscription_id=sub_id,
        status=status,
        current_period_end=period_end,
    )


def _client(coach_id: uuid.UUID | None = COACH_ID):
    return SimpleNamespace(id=CLIENT_ID, coach_id=coach_id)


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


# ---------------------------------------------------------------------------
# Coach access
# ---------------------------------------------------------------------------


class TestResolveCoachAccess:
    async def test_classifies_fetched_record(self, db):
        record = _record("active", NOW + timedelta(days=5))
        with patch(GET_RECORD, new=AsyncMock(return_value=record)) as mock_get:
            decision = await resolve_coach_access(db, COACH_ID, NOW)
        mock_get.assert_awaited_once_with(db, COACH_ID)
        db.rollback.assert_not_awaited()
        assert decision.allowed is True
        assert decision.reason is ReasonCode.ACTIVE

    async def test_fetch_error_fails_closed(self, db):
        with patch(GET_RECORD, new=AsyncMock(side_effect=ConnectionError("db down"))):
            decision = await resolve_coach_access(db, COACH_ID, NOW)
        assert decision.allowed is False
        assert decision.reason is ReasonCode.ERROR
        assert decision.message == MESSAGE_COACH_ERROR
        db.rollback.assert_awaited_once()

    async def test_malformed_record_fails_closed(self, db):
        with patch(GET_RECORD, new=AsyncMock(side_effect=TypeError("bad period"))):
            decision = await resolve_coach_access(db, COACH_ID, NOW)
        assert decision.reason is ReasonCode.ERROR

    async def test_slow_fetch_fails_closed(self, db, monkeypatch):
        monkeypatch.setattr(settings, "access_check_timeout_seconds", 0.01)

        async def _slow(*args, **kwargs):
            await asyncio.sleep(1)
            return _record("active", NOW + timedelta(days=5))

        with patch(GET_RECORD, new=_slow):
            decision = await resolve_coach_access(db, COACH_ID, NOW)
        assert decision.allowed is False
        assert decision.reason is ReasonCode.ERROR
        db.rollback.assert_awaited_once()

    async def test_failed_rollback_still_fails_closed(self, db):
        db.rollback.side_effect = ConnectionError("connection lost")
        with patch(GET_RECORD, new=AsyncMock(side_effect=ConnectionError("db down"))):
            decision = await resolve_coach_access(db, COACH_ID, NOW)
        assert decision.allowed is False
        assert decision.reason is ReasonCode.ERROR

    async def test_uses_configured_grace_period(self, db, monkeypatch):
        monkeypatch.setattr(settings, "grace_period_days", 2)
        record = _record("past_due", NOW - timedelta(days=3))
        with patch(GET_RECORD, new=AsyncMock(return_value=record)):
            decision = await resolve_coach_access(db, COACH_ID, NOW)
        assert decision.reason is ReasonCode.PAST_DUE

    async def test_defaults_now_to_current_time(self, db):
        record = _record("active", datetime(2000, 1, 1))
        with patch(GET_RECORD, new=AsyncMock(return_value=record)):
            decision = await resolve_coach_access(db, COACH_ID)
        assert decision.reason is ReasonCode.EXPIRED


# ---------------------------------------------------------------------------
# Client access
# ---------------------------------------------------------------------------


class TestResolveEffectiveAccess:
    async def test_client_not_found(self, db):
        with patch(GET_CLIENT, new=AsyncMock(return_value=None)):
            decision = await resolve_effective_access(db, CLIENT_ID, NOW)
        assert decision.allowed is False
        assert decision.reason is ReasonCode.CLIENT_NOT_FOUND

    async def test_no_coach_assigned(self, db):
        with (
            patch(GET_CLIENT, new=AsyncMock(return_value=_client(coach_id=None))),
            patch(GET_RECORD, new=AsyncMock()) as mock_record,
        ):
            decision = await resolve_effective_access(db, CLIENT_ID, NOW)
        assert decision.reason is ReasonCode.NO_COACH_ASSIGNED
        assert decision.message == MESSAGE_NO_COACH_ASSIGNED
        mock_record.assert_not_awaited()

    async def test_coach_allowed_client_allowed(self, db):
        record = _record("active", NOW + timedelta(days=5))
        with (
            patch(GET_CLIENT, new=AsyncMock(return_value=_client())),
            patch(GET_RECORD, new=AsyncMock(return_value=record)) as mock_record,
        ):
            decision = await resolve_effective_access(db, CLIENT_ID, NOW)
        mock_record.assert_awaited_once_with(db, COACH_ID)
        assert decision.allowed is True
        assert decision.reason is None
        assert decision.message is None

    async def test_coach_notice_not_propagated(self, db):
        # Coach is cancelling: coach sees a banner, the client sees nothing
        record = SubscriptionRecord(
            account_id=COACH_ID,
            subscription_id="sub_x",
            status="active",
            current_period_end=NOW + timedelta(days=5),
            cancel_at_period_end=True,
        )
        with (
            patch(GET_CLIENT, new=AsyncMock(return_value=_client())),
            patch(GET_RECORD, new=AsyncMock(return_value=record)),
        ):
            decision = await resolve_effective_access(db, CLIENT_ID, NOW)
        assert decision.allowed is True
        assert decision.has_notice is False

    async def test_unconnected_coach_allows_client(self, db):
        with (
            patch(GET_CLIENT, new=AsyncMock(return_value=_client())),
            patch(GET_RECORD, new=AsyncMock(return_value=_record(None, sub_id=None))),
        ):
            decision = await resolve_effective_access(db, CLIENT_ID, NOW)
        assert decision.allowed is True

    @pytest.mark.parametrize(
        "record, coach_reason",
        [
            (_record("canceled"), ReasonCode.CANCELED),
            (_record("active", NOW - timedelta(days=1)), ReasonCode.EXPIRED),
            (_record("past_due", NOW - timedelta(days=30)), ReasonCode.PAST_DUE),
            (_record("bogus"), ReasonCode.INVALID_STATUS),
        ],
    )
    async def test_coach_denial_hides_coach_details(self, db, record, coach_reason):
        with (
            patch(GET_CLIENT, new=AsyncMock(return_value=_client())),
            patch(GET_RECORD, new=AsyncMock(return_value=record)),
        ):
            decision = await resolve_effective_access(db, CLIENT_ID, NOW)
        assert decision.allowed is False
        assert decision.reason is ReasonCode.COACH_SUBSCRIPTION_INACTIVE
        assert decision.message == MESSAGE_COACH_SUBSCRIPTION_INACTIVE
        assert decision.coach_subscription_reason is coach_reason
        assert decision.relevant_date is None

    async def test_directory_error_fails_closed(self, db):
        with patch(GET_CLIENT, new=AsyncMock(side_effect=RuntimeError("boom"))):
            decision = await resolve_effective_access(db, CLIENT_ID, NOW)
        assert decision.allowed is False
        assert decision.reason is ReasonCode.ERROR
        assert decision.message == MESSAGE_CLIENT_ERROR
        db.rollback.assert_awaited_once()

    async def test_coach_fetch_error_fails_closed(self, db):
        with (
            patch(GET_CLIENT, new=AsyncMock(return_value=_client())),
            patch(GET_RECORD, new=AsyncMock(side_effect=OSError("timeout"))),
        ):
            decision = await resolve_effective_access(db, CLIENT_ID, NOW)
        assert decision.reason is ReasonCode.ERROR
        assert decision.message == MESSAGE_CLIENT_ERROR
        db.rollback.assert_awaited_once()


# ---------------------------------------------------------------------------
# Role dispatch
# ---------------------------------------------------------------------------


def _user(role: str) -> User:
    return User(id=uuid.uuid4(), email=f"{role}@test.com", name=role, role=role)


class TestCheckUserAccess:
    async def test_admin_bypasses_checks(self, db):
        with (
            patch(GET_CLIENT, new=AsyncMock()) as mock_client,
            patch(GET_RECORD, new=AsyncMock()) as mock_record,
        ):
            decision = await check_user_access(db, _user(ROLE_ADMIN), NOW)
        assert decision.allowed is True
        mock_client.assert_not_awaited()
        mock_record.assert_not_awaited()

    async def test_coach_checks_own_subscription(self, db):
        coach = _user(ROLE_COACH)
        with patch(GET_RECORD, new=AsyncMock(return_value=_record("canceled"))) as mock_record:
            decision = await check_user_access(db, coach, NOW)
        mock_record.assert_awaited_once_with(db, coach.id)
        assert decision.reason is ReasonCode.CANCELED

    async def test_client_checks_coach_subscription(self, db):
        client_user = _user(ROLE_CLIENT)
        with (
            patch(GET_CLIENT, new=AsyncMock(return_value=_client())) as mock_client,
            patch(GET_RECORD, new=AsyncMock(return_value=_record("canceled"))),
        ):
            decision = await check_user_access(db, client_user, NOW)
        mock_client.assert_awaited_once_with(db, client_user.id)
        assert decision.reason is ReasonCode.COACH_SUBSCRIPTION_INACTIVE

    async def test_unknown_role_denied(self, db):
        decision = await check_user_access(db, _user("superhero"), NOW)
        assert decision.allowed is False
        assert decision.reason is ReasonCode.ERROR

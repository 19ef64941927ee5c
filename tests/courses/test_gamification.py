"""
Tests for points, badges and the gamification summary.
"""

import pytest
from httpx import AsyncClient

from learnsphere.auth.models.user import BadgeLevel
from learnsphere.courses.models import PointsLedger
from learnsphere.courses.services.gamification_service import GamificationService
from tests.utils.factories import create_user_factory
from tests.utils.helpers import create_auth_headers


@pytest.mark.parametrize(
    ("points", "badge"),
    [
        (0, BadgeLevel.NEWBIE),
        (39, BadgeLevel.NEWBIE),
        (40, BadgeLevel.EXPLORER),
        (59, BadgeLevel.EXPLORER),
        (60, BadgeLevel.ACHIEVER),
        (80, BadgeLevel.SPECIALIST),
        (99, BadgeLevel.SPECIALIST),
        (100, BadgeLevel.EXPERT),
        (119, BadgeLevel.EXPERT),
        (120, BadgeLevel.MASTER),
    ],
)
def test_calculate_badge(points, badge):
    assert GamificationService.calculate_badge(points) == badge


def test_next_badge_progress():
    assert GamificationService.next_badge_progress(50) == {
        "current": "EXPLORER",
        "next": "ACHIEVER",
        "progress": 50.0,
    }
    assert GamificationService.next_badge_progress(120) == {
        "current": "MASTER",
        "next": "MASTER",
        "progress": 100.0,
    }


def test_one_point_crosses_explorer(db_session):
    user = create_user_factory(db_session, total_points=39)
    user.badge_level = BadgeLevel.NEWBIE

    applied = GamificationService.apply_points(user, 1, "Quiz completed: Basics (Attempt 1)", db_session)

    assert applied == 1
    assert user.total_points == 40
    assert user.badge_level == BadgeLevel.EXPLORER


def test_cap_reaches_master_once(db_session):
    user = create_user_factory(db_session, total_points=119)
    user.badge_level = BadgeLevel.EXPERT

    assert GamificationService.apply_points(user, 50, "first", db_session) == 1
    assert user.total_points == 120
    assert user.badge_level == BadgeLevel.MASTER

    assert GamificationService.apply_points(user, 50, "second", db_session) == 0
    assert user.total_points == 120
    assert user.badge_level == BadgeLevel.MASTER

    db_session.flush()
    entries = db_session.query(PointsLedger).filter(PointsLedger.user_id == user.id).all()
    assert sorted(e.points for e in entries) == [0, 1]


@pytest.mark.asyncio
async def test_get_gamification_summary(
    test_client: AsyncClient, db_session, test_user, test_user_token
):
    GamificationService.apply_points(test_user, 45, "Quiz completed: Warmup (Attempt 1)", db_session)
    db_session.flush()

    response = await test_client.get(
        "/api/v1/gamification/me",
        headers=create_auth_headers(test_user_token),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total_points"] == 45
    assert data["max_points"] == 120
    assert data["badge_level"] == "EXPLORER"
    assert data["next_badge"]["next"] == "ACHIEVER"
    assert len(data["history"]) == 1
    assert data["history"][0]["points"] == 45


@pytest.mark.asyncio
async def test_get_me(test_client: AsyncClient, test_user, test_user_token):
    response = await test_client.get(
        "/api/v1/users/me",
        headers=create_auth_headers(test_user_token),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["email"] == test_user.email
    assert data["role"] == "LEARNER"
    assert data["badge_level"] == "NEWBIE"


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(test_client: AsyncClient):
    response = await test_client.get("/api/v1/gamification/me")

    assert response.status_code == 401

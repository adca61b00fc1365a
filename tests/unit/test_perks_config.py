from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from app.models import PreferredPerksConfigHistory, UserAppointment
from app.services.perks_config import PerksConfigService
from tests.support import make_home, make_user


@pytest.fixture
def perks(db_session):
    return PerksConfigService(db_session)


@pytest.mark.parametrize(
    "home_count, tier",
    [(0, "bronze"), (1, "bronze"), (2, "bronze"), (3, "silver"), (5, "silver"), (6, "gold"), (10, "gold"), (11, "platinum"), (40, "platinum")],
)
def test_calculate_tier_with_defaults(perks, home_count, tier) -> None:
    assert PerksConfigService.calculate_tier(home_count, perks.get_config()) == tier


def test_payout_priority(perks) -> None:
    config = perks.get_config()
    assert PerksConfigService.payout_priority("gold", config) == {"priority": "high", "payoutHours": 24}
    assert PerksConfigService.payout_priority("silver", config) == {"priority": "normal", "payoutHours": 48}


def test_early_access_window(perks) -> None:
    now = datetime(2030, 1, 1, 9, 0)
    assert perks.early_access_until(now) == now + timedelta(minutes=30)

    perks.update_config({"platinum": {"earlyAccess": False}}, make_user(perks.db, "boss", "owner"))
    assert perks.early_access_until(now) is None


def test_visible_during_early_access() -> None:
    now = datetime(2030, 1, 1, 9, 0)
    appointment = UserAppointment(early_access_until=now + timedelta(minutes=10))

    assert PerksConfigService.visible_during_early_access(appointment, True, now) is True
    assert PerksConfigService.visible_during_early_access(appointment, False, now) is False
    assert PerksConfigService.visible_during_early_access(appointment, False, now + timedelta(minutes=11)) is True


def test_cleaner_tier_counts_preferred_homes(db_session, perks) -> None:
    cleaner = make_user(db_session, "sparkle", "cleaner")
    for i in range(3):
        client = make_user(db_session, f"client{i}")
        make_home(db_session, client, preferred_cleaner_id=cleaner.id)

    assert perks.cleaner_tier(cleaner) == "silver"
    assert perks.has_early_access(cleaner) is False


def test_update_config_records_only_changed_fields(db_session, perks) -> None:
    owner = make_user(db_session, "boss", "owner")
    config = perks.update_config(
        {"silver": {"bonusPercent": 4, "minHomes": 3}, "earlyAccessMinutes": 45},
        owner,
        "bump silver",
    )

    assert config.silver_bonus_percent == 4
    assert config.early_access_minutes == 45

    entry = db_session.query(PreferredPerksConfigHistory).one()
    assert set(entry.changes) == {"silverBonusPercent", "earlyAccessMinutes"}
    assert entry.changes["earlyAccessMinutes"] == {"old": 30, "new": 45}

    history = perks.get_history()
    assert history[0]["changeNote"] == "bump silver"
    assert history[0]["changedBy"]["id"] == owner.id
    assert "Early Access Minutes: 30 → 45" in history[0]["summary"]


def test_update_without_changes_skips_history(db_session, perks) -> None:
    owner = make_user(db_session, "boss", "owner")
    perks.update_config({"gold": {"minHomes": 6}}, owner)
    assert db_session.query(PreferredPerksConfigHistory).count() == 0


@pytest.mark.parametrize(
    "data, message",
    [
        ({"bronze": {"minHomes": 2}}, "Bronze tier must start at 1 home"),
        ({"silver": {"minHomes": 4}}, "Tier thresholds must be contiguous. Gap between bronze and silver"),
        ({"gold": {"bonusPercent": 120}}, "goldBonusPercent must be between 0 and 100"),
        ({"platinum": {"payoutHours": 0}}, "platinumPayoutHours must be at least 1"),
        ({"earlyAccessMinutes": -5}, "earlyAccessMinutes cannot be negative"),
        ({"silver": {"bonusPercent": "abc"}}, "silverBonusPercent must be a number"),
        ({"gold": {"fasterPayouts": "yes"}}, "goldFasterPayouts must be true or false"),
        ({"gold": {"payoutHours": 1.5}}, "goldPayoutHours must be a whole number"),
        ({"bronze": ["minHomes"]}, "bronze must be an object"),
    ],
)
def test_update_config_validation(db_session, perks, data, message) -> None:
    owner = make_user(db_session, "boss", "owner")
    with pytest.raises(HTTPException) as exc:
        perks.update_config(data, owner)
    assert exc.value.status_code == 400
    assert exc.value.detail == message


def test_serialize_by_tier_labels(perks) -> None:
    tiers = {t["tier"]: t for t in PerksConfigService.serialize_by_tier(perks.get_config())}

    assert tiers["bronze"]["range"] == "1-2 homes"
    assert tiers["bronze"]["perks"] == []
    assert tiers["silver"]["perks"] == ["3% bonus on preferred jobs"]
    assert tiers["gold"]["perks"] == ["5% bonus on preferred jobs", "24h faster payouts"]
    assert tiers["platinum"]["range"] == "11+ homes"
    assert tiers["platinum"]["maxHomes"] is None
    assert "Early access to new jobs" in tiers["platinum"]["perks"]

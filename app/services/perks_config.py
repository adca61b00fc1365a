"""
Priority perks (cleaner tier) configuration.

Cleaners climb bronze -> silver -> gold -> platinum by the number of homes
that list them as preferred cleaner. Each tier carries a bonus on preferred
jobs; gold and platinum can get faster payouts, platinum gets early access
to newly posted jobs.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..models import (
    PreferredPerksConfig,
    PreferredPerksConfigHistory,
    User,
    UserAppointment,
    UserHome,
)

logger = logging.getLogger(__name__)

TIERS = ("bronze", "silver", "gold", "platinum")
DEFAULT_PAYOUT_HOURS = 48

# camelCase API field -> model column
FIELD_COLUMNS = {
    "bronzeMinHomes": "bronze_min_homes",
    "bronzeMaxHomes": "bronze_max_homes",
    "bronzeBonusPercent": "bronze_bonus_percent",
    "silverMinHomes": "silver_min_homes",
    "silverMaxHomes": "silver_max_homes",
    "silverBonusPercent": "silver_bonus_percent",
    "goldMinHomes": "gold_min_homes",
    "goldMaxHomes": "gold_max_homes",
    "goldBonusPercent": "gold_bonus_percent",
    "goldFasterPayouts": "gold_faster_payouts",
    "goldPayoutHours": "gold_payout_hours",
    "platinumMinHomes": "platinum_min_homes",
    "platinumBonusPercent": "platinum_bonus_percent",
    "platinumFasterPayouts": "platinum_faster_payouts",
    "platinumPayoutHours": "platinum_payout_hours",
    "platinumEarlyAccess": "platinum_early_access",
    "earlyAccessMinutes": "early_access_minutes",
    "backupCleanerTimeoutHours": "backup_cleaner_timeout_hours",
    "platformMaxDailyJobs": "platform_max_daily_jobs",
    "platformMaxConcurrentJobs": "platform_max_concurrent_jobs",
}

FIELD_LABELS = {
    "bronzeMinHomes": "Bronze Min Homes",
    "bronzeMaxHomes": "Bronze Max Homes",
    "bronzeBonusPercent": "Bronze Bonus %",
    "silverMinHomes": "Silver Min Homes",
    "silverMaxHomes": "Silver Max Homes",
    "silverBonusPercent": "Silver Bonus %",
    "goldMinHomes": "Gold Min Homes",
    "goldMaxHomes": "Gold Max Homes",
    "goldBonusPercent": "Gold Bonus %",
    "goldFasterPayouts": "Gold Faster Payouts",
    "goldPayoutHours": "Gold Payout Hours",
    "platinumMinHomes": "Platinum Min Homes",
    "platinumBonusPercent": "Platinum Bonus %",
    "platinumFasterPayouts": "Platinum Faster Payouts",
    "platinumPayoutHours": "Platinum Payout Hours",
    "platinumEarlyAccess": "Platinum Early Access",
    "earlyAccessMinutes": "Early Access Minutes",
    "backupCleanerTimeoutHours": "Backup Timeout Hours",
    "platformMaxDailyJobs": "Max Daily Jobs",
    "platformMaxConcurrentJobs": "Max Concurrent Jobs",
}

# Nested form keys per tier -> flat field suffix
TIER_FORM_KEYS = {
    "minHomes": "MinHomes",
    "maxHomes": "MaxHomes",
    "bonusPercent": "BonusPercent",
    "fasterPayouts": "FasterPayouts",
    "payoutHours": "PayoutHours",
    "earlyAccess": "EarlyAccess",
}

TOP_LEVEL_FORM_KEYS = (
    "earlyAccessMinutes",
    "backupCleanerTimeoutHours",
    "platformMaxDailyJobs",
    "platformMaxConcurrentJobs",
)


BOOLEAN_FIELDS = ("goldFasterPayouts", "platinumFasterPayouts", "platinumEarlyAccess")
PERCENT_FIELDS = tuple(f"{tier}BonusPercent" for tier in TIERS)


def config_values(config: PreferredPerksConfig) -> Dict[str, Any]:
    """Flat camelCase snapshot of a config row"""
    return {field: getattr(config, column) for field, column in FIELD_COLUMNS.items()}


def validate_values(values: Dict[str, Any]) -> None:
    """
    Check a full flat set of values.

    Raises:
        HTTPException 400 with the first problem found
    """
    if values["bronzeMinHomes"] != 1:
        raise HTTPException(status_code=400, detail="Bronze tier must start at 1 home")

    bounded = [("bronze", "silver"), ("silver", "gold"), ("gold", "platinum")]
    for lower, upper in bounded:
        if values[f"{lower}MaxHomes"] < values[f"{lower}MinHomes"]:
            raise HTTPException(
                status_code=400,
                detail=f"{lower.capitalize()} max homes must be at least its min homes",
            )
        if values[f"{upper}MinHomes"] != values[f"{lower}MaxHomes"] + 1:
            raise HTTPException(
                status_code=400,
                detail=f"Tier thresholds must be contiguous. Gap between {lower} and {upper}",
            )

    for tier in TIERS:
        field = f"{tier}BonusPercent"
        if not 0 <= values[field] <= 100:
            raise HTTPException(status_code=400, detail=f"{field} must be between 0 and 100")

    for field in ("goldPayoutHours", "platinumPayoutHours"):
        if values[field] < 1:
            raise HTTPException(status_code=400, detail=f"{field} must be at least 1")

    for field in ("earlyAccessMinutes", "backupCleanerTimeoutHours", "platformMaxDailyJobs",
                  "platformMaxConcurrentJobs"):
        if values[field] < 0:
            raise HTTPException(status_code=400, detail=f"{field} cannot be negative")


def check_field_types(updates: Dict[str, Any]) -> None:
    """Flags must be booleans, percents numbers, everything else whole numbers"""
    for field, value in updates.items():
        if field in BOOLEAN_FIELDS:
            if not isinstance(value, bool):
                raise HTTPException(status_code=400, detail=f"{field} must be true or false")
        elif isinstance(value, bool) or not isinstance(value, (int, float)):
            raise HTTPException(status_code=400, detail=f"{field} must be a number")
        elif field not in PERCENT_FIELDS and not float(value).is_integer():
            raise HTTPException(status_code=400, detail=f"{field} must be a whole number")


def format_change_summary(changes: Dict[str, Dict[str, Any]]) -> List[str]:
    def fmt(value):
        if isinstance(value, bool):
            return "Yes" if value else "No"
        return value

    return [
        f"{FIELD_LABELS.get(field, field)}: {fmt(change['old'])} → {fmt(change['new'])}"
        for field, change in changes.items()
    ]


class PerksConfigService:
    """Read/update the tier config and answer tier questions for cleaners"""

    def __init__(self, db: Session):
        self.db = db

    def get_config(self) -> PreferredPerksConfig:
        """Singleton row; created with defaults on first access"""
        config = self.db.query(PreferredPerksConfig).order_by(PreferredPerksConfig.id).first()
        if not config:
            config = PreferredPerksConfig()
            self.db.add(config)
            self.db.commit()
            self.db.refresh(config)
            logger.info("✅ Created default priority perks config")
        return config

    # ========================================================================
    # SERIALIZATION
    # ========================================================================

    @staticmethod
    def serialize_for_form(config: PreferredPerksConfig) -> Dict[str, Any]:
        values = config_values(config)
        return {
            "bronze": {
                "minHomes": values["bronzeMinHomes"],
                "maxHomes": values["bronzeMaxHomes"],
                "bonusPercent": values["bronzeBonusPercent"],
            },
            "silver": {
                "minHomes": values["silverMinHomes"],
                "maxHomes": values["silverMaxHomes"],
                "bonusPercent": values["silverBonusPercent"],
            },
            "gold": {
                "minHomes": values["goldMinHomes"],
                "maxHomes": values["goldMaxHomes"],
                "bonusPercent": values["goldBonusPercent"],
                "fasterPayouts": values["goldFasterPayouts"],
                "payoutHours": values["goldPayoutHours"],
            },
            "platinum": {
                "minHomes": values["platinumMinHomes"],
                "bonusPercent": values["platinumBonusPercent"],
                "fasterPayouts": values["platinumFasterPayouts"],
                "payoutHours": values["platinumPayoutHours"],
                "earlyAccess": values["platinumEarlyAccess"],
            },
            "earlyAccessMinutes": values["earlyAccessMinutes"],
            "backupCleanerTimeoutHours": values["backupCleanerTimeoutHours"],
            "platformMaxDailyJobs": values["platformMaxDailyJobs"],
            "platformMaxConcurrentJobs": values["platformMaxConcurrentJobs"],
        }

    @staticmethod
    def serialize_by_tier(config: PreferredPerksConfig) -> List[Dict[str, Any]]:
        """Public tier list: range label plus human-readable perks"""
        values = config_values(config)
        tiers = []
        for tier in TIERS:
            min_homes = values[f"{tier}MinHomes"]
            max_homes = values.get(f"{tier}MaxHomes")
            home_range = f"{min_homes}+ homes" if tier == "platinum" else f"{min_homes}-{max_homes} homes"

            perks = []
            bonus = values[f"{tier}BonusPercent"]
            if bonus > 0:
                perks.append(f"{bonus:g}% bonus on preferred jobs")
            if values.get(f"{tier}FasterPayouts"):
                perks.append(f"{values[f'{tier}PayoutHours']}h faster payouts")
            if tier == "platinum" and values["platinumEarlyAccess"]:
                perks.append("Early access to new jobs")

            tiers.append(
                {
                    "tier": tier,
                    "range": home_range,
                    "minHomes": min_homes,
                    "maxHomes": None if tier == "platinum" else max_homes,
                    "bonusPercent": bonus,
                    "perks": perks,
                }
            )
        return tiers

    # ========================================================================
    # UPDATE
    # ========================================================================

    @staticmethod
    def flatten_form(data: Dict[str, Any]) -> Dict[str, Any]:
        """Nested {bronze: {...}, ...} body -> flat camelCase updates"""
        updates = {}
        for tier in TIERS:
            section = data.get(tier) or {}
            if not isinstance(section, dict):
                raise HTTPException(status_code=400, detail=f"{tier} must be an object")
            for key, suffix in TIER_FORM_KEYS.items():
                field = f"{tier}{suffix}"
                if key in section and section[key] is not None and field in FIELD_COLUMNS:
                    updates[field] = section[key]
        for field in TOP_LEVEL_FORM_KEYS:
            if data.get(field) is not None:
                updates[field] = data[field]
        return updates

    def update_config(
        self, data: Dict[str, Any], changed_by: User, change_note: Optional[str] = None
    ) -> PreferredPerksConfig:
        config = self.get_config()
        previous = config_values(config)
        updates = self.flatten_form(data)
        check_field_types(updates)
        updates = {
            field: value if field in BOOLEAN_FIELDS or field in PERCENT_FIELDS else int(value)
            for field, value in updates.items()
        }

        merged = {**previous, **updates}
        validate_values(merged)

        changes = {
            field: {"old": previous[field], "new": value}
            for field, value in updates.items()
            if previous[field] != value
        }

        for field, value in updates.items():
            setattr(config, FIELD_COLUMNS[field], value)
        config.updated_by = changed_by.id

        if changes:
            self.db.add(
                PreferredPerksConfigHistory(
                    config_id=config.id,
                    changes=changes,
                    previous_values=previous,
                    new_values=merged,
                    change_note=change_note,
                    changed_by=changed_by.id,
                )
            )
            logger.info(f"✅ Perks config updated by {changed_by.username}: {list(changes)}")

        self.db.commit()
        self.db.refresh(config)
        return config

    def get_history(self, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        entries = (
            self.db.query(PreferredPerksConfigHistory)
            .order_by(PreferredPerksConfigHistory.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [
            {
                "id": entry.id,
                "changedAt": entry.created_at,
                "changedBy": {"id": entry.changer.id, "name": entry.changer.display_name}
                if entry.changer
                else None,
                "changes": entry.changes,
                "changeNote": entry.change_note,
                "summary": format_change_summary(entry.changes),
            }
            for entry in entries
        ]

    # ========================================================================
    # TIER QUESTIONS
    # ========================================================================

    @staticmethod
    def calculate_tier(home_count: int, config: PreferredPerksConfig) -> str:
        if home_count >= config.platinum_min_homes:
            return "platinum"
        if config.gold_min_homes <= home_count <= config.gold_max_homes:
            return "gold"
        if config.silver_min_homes <= home_count <= config.silver_max_homes:
            return "silver"
        return "bronze"

    @staticmethod
    def payout_priority(tier: str, config: PreferredPerksConfig) -> Dict[str, Any]:
        faster = bool(getattr(config, f"{tier}_faster_payouts", False))
        hours = getattr(config, f"{tier}_payout_hours", None) if faster else None
        return {"priority": "high" if faster else "normal", "payoutHours": hours or DEFAULT_PAYOUT_HOURS}

    def early_access_until(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """End of the platinum-only window for a job posted now"""
        config = self.get_config()
        if not config.platinum_early_access or not config.early_access_minutes:
            return None
        return (now or datetime.utcnow()) + timedelta(minutes=config.early_access_minutes)

    def cleaner_tier(self, cleaner: User) -> str:
        home_count = (
            self.db.query(UserHome).filter(UserHome.preferred_cleaner_id == cleaner.id).count()
        )
        return self.calculate_tier(home_count, self.get_config())

    def has_early_access(self, cleaner: User) -> bool:
        config = self.get_config()
        return bool(config.platinum_early_access) and self.cleaner_tier(cleaner) == "platinum"

    @staticmethod
    def visible_during_early_access(
        appointment: UserAppointment, cleaner_has_early_access: bool, now: Optional[datetime] = None
    ) -> bool:
        if cleaner_has_early_access or not appointment.early_access_until:
            return True
        return appointment.early_access_until <= (now or datetime.utcnow())

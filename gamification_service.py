import datetime
import sqlite3
from typing import Optional

from db import (
    AchievementRepository,
    CampaignRepository,
    ProfileRepository,
    SettingsRepository,
    WorkoutRepository,
)
from exercise_data import (
    GENERAL_ACHIEVEMENTS,
    MILESTONES,
    get_level_from_xp,
    get_xp_for_next_level,
)
from logging_setup import get_logger
from models import Campaign, CampaignGoal, PersonalRecord, Profile

logger = get_logger(__name__)

WORKOUT_COUNT_ACHIEVEMENTS = ((1, "first_workout"), (10, "ten_workouts"), (50, "fifty_workouts"))


class GamificationService:
    """XP, levels, milestone achievements and strength campaigns."""

    def __init__(
        self,
        profile_repo: ProfileRepository,
        achievement_repo: AchievementRepository,
        settings_repo: SettingsRepository,
        workout_repo: WorkoutRepository | None = None,
        campaign_repo: CampaignRepository | None = None,
    ) -> None:
        self.profiles = profile_repo
        self.achievements = achievement_repo
        self.settings = settings_repo
        self.workouts = workout_repo
        self.campaigns = campaign_repo

    def enable(self, enabled: bool) -> None:
        self.settings.set_bool("game_enabled", enabled)

    def is_enabled(self) -> bool:
        return self.settings.get_bool("game_enabled", True)

    def add_xp(self, amount: int, conn: Optional[sqlite3.Connection] = None) -> Profile:
        """Add (or with a negative amount remove) XP and recompute the level."""
        profile = self.profiles.fetch(conn)
        if not self.is_enabled() or not amount:
            return profile
        profile.xp = max(0, profile.xp + int(amount))
        level = get_level_from_xp(profile.xp)
        if level > profile.level:
            logger.info("level up: %d -> %d", profile.level, level)
        profile.level = level
        self.profiles.save(profile, conn)
        return profile

    def level_info(self) -> dict:
        profile = self.profiles.fetch()
        return {
            "level": profile.level,
            "xp": profile.xp,
            "next_level_xp": get_xp_for_next_level(profile.level),
        }

    def unlock(self, key: str, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Unlock a general achievement once, granting its XP."""
        if not self.is_enabled() or key not in GENERAL_ACHIEVEMENTS:
            return False
        if not self.achievements.add(key, conn):
            return False
        name, xp = GENERAL_ACHIEVEMENTS[key]
        logger.info("achievement unlocked: %s", name)
        self.add_xp(xp, conn)
        return True

    def check_milestones(
        self, exercise_id: str, weight: float, conn: Optional[sqlite3.Connection] = None
    ) -> list[str]:
        """Unlock every milestone of ``exercise_id`` reached by ``weight``."""
        if not self.is_enabled():
            return []
        unlocked = []
        for threshold, name, xp in MILESTONES.get(exercise_id, []):
            if weight < threshold:
                break
            key = f"{exercise_id}_{threshold}"
            if self.achievements.add(key, conn):
                logger.info("milestone reached: %s", name)
                self.add_xp(xp, conn)
                unlocked.append(key)
        return unlocked

    def record_workout(self, total_workouts: int, conn: Optional[sqlite3.Connection] = None) -> list[str]:
        unlocked = []
        for needed, key in WORKOUT_COUNT_ACHIEVEMENTS:
            if total_workouts >= needed and self.unlock(key, conn):
                unlocked.append(key)
        return unlocked

    def unlocked(self) -> list[str]:
        return self.achievements.fetch_keys()

    def workout_streak(self, today: datetime.date | None = None) -> dict[str, int]:
        """Return current and record workout streak lengths."""
        if self.workouts is None:
            return {"current": 0, "record": 0}
        dates = set()
        for workout in self.workouts.fetch_all_workouts():
            try:
                dates.add(datetime.date.fromisoformat(workout.start_time[:10]))
            except ValueError:
                continue
        if not dates:
            return {"current": 0, "record": 0}
        ordered = sorted(dates)
        record = 1
        current = 1
        for i in range(1, len(ordered)):
            gap = (ordered[i] - ordered[i - 1]).days
            if gap == 1:
                current += 1
            else:
                record = max(record, current)
                current = 1
        record = max(record, current)
        if ((today or datetime.date.today()) - ordered[-1]).days > 1:
            current = 0
        return {"current": current, "record": record}

    def create_campaign(
        self,
        name: str,
        goals: list[CampaignGoal],
        records: dict[str, PersonalRecord],
        target_date: Optional[str] = None,
    ) -> Campaign:
        if self.campaigns is None:
            raise ValueError("campaigns unavailable")
        if not name.strip():
            raise ValueError("campaign name required")
        campaign = Campaign(name=name.strip(), goals=goals, target_date=target_date)
        self._refresh(campaign, records)
        self.campaigns.save(campaign)
        return campaign

    def list_campaigns(self) -> list[Campaign]:
        return self.campaigns.fetch_campaigns() if self.campaigns else []

    def delete_campaign(self, campaign_id: str) -> None:
        self.campaigns.delete(campaign_id)

    def update_campaign_progress(self, records: dict[str, PersonalRecord]) -> list[Campaign]:
        """Copy current PRs into every campaign goal and stamp completion."""
        if self.campaigns is None:
            return []
        updated = []
        for campaign in self.campaigns.fetch_campaigns():
            if self._refresh(campaign, records):
                self.campaigns.save(campaign)
                updated.append(campaign)
        return updated

    @staticmethod
    def _refresh(campaign: Campaign, records: dict[str, PersonalRecord]) -> bool:
        changed = False
        for goal in campaign.goals:
            record = records.get(goal.exercise_id)
            current = record.weight if record else 0
            if current != goal.current_pr:
                goal.current_pr = current
                changed = True
        done = bool(campaign.goals) and all(
            g.current_pr >= g.target_weight for g in campaign.goals
        )
        if done and campaign.completed_at is None:
            campaign.completed_at = datetime.datetime.now().isoformat(timespec="seconds")
            logger.info("campaign completed: %s", campaign.name)
            changed = True
        return changed

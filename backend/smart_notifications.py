"""
Dickerchen - Challenge Notifications
Competitive nudges triggered when someone logs exercise: early bird,
leadership change, close race and lazy reminders.
"""

from datetime import date
from typing import Optional, List, Dict

from clock import Clock
from config import ChallengeConfig, get_challenge_config, get_notification_config
from database import db, Database, ActivityRepository
from logger import get_logger
from models import ChallengeNotification, TimeSlot
from notification_history import NotificationHistoryStore
from notification_templates import CHALLENGE_MESSAGES, CHALLENGE_TITLE
from push import PushSender, SendFailure

logger = get_logger("challenges")


class ChallengeNotifier:
    """Turns today's leaderboard into challenge notifications, once per kind and day."""

    def __init__(
        self,
        repository: ActivityRepository,
        history: NotificationHistoryStore,
        push_sender: PushSender,
        clock: Clock,
        config: Optional[ChallengeConfig] = None,
        daily_goal: int = 100
    ):
        self.repository = repository
        self.history = history
        self.push_sender = push_sender
        self.clock = clock
        self.config = config or get_challenge_config()
        self.daily_goal = daily_goal

    def evaluate(self, leaderboard: List[Dict], trigger_user_id: int,
                 hour: int) -> List[ChallengeNotification]:
        """Challenge notifications for a leaderboard ordered by today's total."""
        trigger = next((u for u in leaderboard if u["id"] == trigger_user_id), None)
        if trigger is None:
            return []

        notifications = []
        others = [u for u in leaderboard if u["id"] != trigger_user_id]

        # Reached the goal early in the morning
        if (self.config.early_bird_start_hour <= hour <= self.config.early_bird_end_hour
                and trigger["total"] >= self.daily_goal):
            behind = [u["id"] for u in others if u["total"] < self.daily_goal]
            if behind:
                notifications.append(ChallengeNotification(
                    kind="early_bird",
                    cooldown_key="early_bird",
                    target_user_ids=behind,
                    message=CHALLENGE_MESSAGES["early_bird"].format(
                        leader=trigger["name"], hour=hour, daily_goal=self.daily_goal
                    ),
                ))

        # Trigger user now leads outright
        runner_up_total = max((u["total"] for u in others), default=None)
        if trigger["total"] > 0 and runner_up_total is not None and trigger["total"] > runner_up_total:
            notifications.append(ChallengeNotification(
                kind="leadership_change",
                cooldown_key=f"leadership_change:{trigger_user_id}",
                target_user_ids=[u["id"] for u in others],
                message=CHALLENGE_MESSAGES["leadership_change"].format(
                    leader=trigger["name"], total=trigger["total"]
                ),
            ))

        if len(leaderboard) >= 2:
            leader, second = leaderboard[0], leaderboard[1]
            gap = leader["total"] - second["total"]
            if gap <= self.config.close_race_gap and leader["total"] > self.config.close_race_min_leader_total:
                notifications.append(ChallengeNotification(
                    kind="close_race",
                    cooldown_key="close_race",
                    target_user_ids=[second["id"]],
                    message=CHALLENGE_MESSAGES["close_race"].format(gap=gap, leader=leader["name"]),
                ))

        if hour >= self.config.lazy_after_hour:
            lazy = [u for u in leaderboard if u["total"] == 0]
            active = [u for u in leaderboard if u["total"] > 0]
            if lazy and active:
                top = active[0]
                notifications.append(ChallengeNotification(
                    kind="lazy_reminder",
                    cooldown_key="lazy_reminder",
                    target_user_ids=[u["id"] for u in lazy],
                    message=CHALLENGE_MESSAGES["lazy_reminder"].format(
                        leader=top["name"], total=top["total"]
                    ),
                ))

        return notifications

    async def check(self, trigger_user_id: int, added_count: int) -> List[ChallengeNotification]:
        """Evaluate and send challenge notifications after a user logged exercise."""
        today = self.clock.local_date()
        hour = self.clock.local_hour()
        logger.info(f"🧠 Smart notification check: User {trigger_user_id} added {added_count} push-ups at {hour}h")

        leaderboard = await self.repository.get_today_leaderboard(today)
        notifications = self.evaluate(leaderboard, trigger_user_id, hour)

        for notification in notifications:
            sent = await self._send(notification, today)
            logger.info(f"📱 Smart notification [{notification.kind}] sent to {sent} user(s)")

        return notifications

    async def _send(self, notification: ChallengeNotification, today: date) -> int:
        sent = 0
        for user_id in notification.target_user_ids:
            if await self.history.has_kind_today(user_id, today, notification.cooldown_key):
                continue

            try:
                delivered = await self.push_sender.send(
                    user_id, CHALLENGE_TITLE, notification.message, tag=notification.kind
                )
            except SendFailure as e:
                logger.warning(f"❌ Failed to send smart notification to user {user_id}: {e}")
                continue

            if delivered:
                await self.history.record(
                    user_id, today, TimeSlot.SPECIAL, notification.message,
                    self.clock.now(), kind=notification.cooldown_key
                )
                sent += 1
        return sent


# ============================================
# SINGLETON INSTANCE
# ============================================

def create_challenge_notifier(database: Database = db) -> ChallengeNotifier:
    notify_config = get_notification_config()
    return ChallengeNotifier(
        repository=ActivityRepository(database, timezone=notify_config.timezone),
        history=NotificationHistoryStore(database),
        push_sender=PushSender(database=database),
        clock=Clock(notify_config.timezone),
        daily_goal=notify_config.daily_goal
    )


challenge_notifier = create_challenge_notifier()

"""
Dickerchen - Reminder Notification Engine
Decides who gets nudged toward the daily goal, picks the text and
dispatches Web Push messages in jittered, independent sends.
"""

import asyncio
import random
from datetime import date
from typing import Optional, List, Dict, Set, Tuple, Callable, Awaitable

from clock import Clock
from config import NotificationConfig, get_notification_config
from database import db, Database, ActivityRepository, RepositoryError
from logger import get_logger
from models import (
    ActivityUser, ComposedMessage, CycleReport, CycleState, TimeSlot, UserCategory
)
from notification_history import NotificationHistoryStore
from notification_templates import templates_for, title_for, CLOSE_TO_GOAL_TITLE
from push import PushSender, SendFailure

logger = get_logger("notifications")


# ============================================
# USER CATEGORIES
# ============================================

NEW_USER_DAYS = 7
ADVANCED_LIFETIME_TOTAL = 1000
ACTIVE_TODAY_TOTAL = 50

# Max sends per user per slot and day
CATEGORY_SEND_CAPS: Dict[UserCategory, int] = {
    UserCategory.NEW: 1,
    UserCategory.CASUAL: 1,
    UserCategory.ACTIVE: 2,
    UserCategory.ADVANCED: 3,
}


def classify(user: ActivityUser, today: date) -> UserCategory:
    """Behavioral category of a user on `today`. First matching rule wins."""
    days_active = (today - user.first_activity_date).days if user.first_activity_date else 0

    if days_active < NEW_USER_DAYS:
        return UserCategory.NEW
    if user.total_all_time > ADVANCED_LIFETIME_TOTAL:
        return UserCategory.ADVANCED
    if user.today_total > ACTIVE_TODAY_TOTAL:
        return UserCategory.ACTIVE
    return UserCategory.CASUAL


def cap_for(category: UserCategory) -> int:
    return CATEGORY_SEND_CAPS.get(category, 1)


def slot_for_hour(hour: int) -> TimeSlot:
    """Slot used by the periodic timer for a local hour."""
    if 9 <= hour <= 12:
        return TimeSlot.MORNING
    if 17 <= hour <= 19:
        return TimeSlot.EVENING
    return TimeSlot.AFTERNOON


def matches_slot(today_total: int, time_slot: TimeSlot, config: NotificationConfig) -> bool:
    """Progress filter per slot. Anything that isn't morning or evening uses the afternoon rule."""
    if time_slot == TimeSlot.MORNING:
        return today_total == 0
    if time_slot == TimeSlot.EVENING:
        return config.evening_min_total <= today_total <= config.evening_max_total
    return today_total < config.afternoon_max_total


# ============================================
# ELIGIBILITY
# ============================================

class EligibilitySelector:
    """Picks the users to notify in one cycle."""

    def __init__(
        self,
        repository: ActivityRepository,
        history: NotificationHistoryStore,
        clock: Clock,
        config: Optional[NotificationConfig] = None,
        rng: Optional[random.Random] = None
    ):
        self.repository = repository
        self.history = history
        self.clock = clock
        self.config = config or get_notification_config()
        self.rng = rng or random.Random()

    async def _under_cap(self, users: List[ActivityUser], time_slot: TimeSlot,
                         today: date) -> List[ActivityUser]:
        eligible = []
        for user in users:
            sent = await self.history.count_sent_today(user.id, today, time_slot)
            if sent < cap_for(classify(user, today)):
                eligible.append(user)
        return eligible

    async def select_candidates(self, time_slot, daily_goal: Optional[int] = None) -> List[ActivityUser]:
        """
        Users to remind for a regular slot.

        Lifetime activity is required, users who already reached the goal
        are left alone, the slot's progress filter applies, users at their
        category cap for this slot are dropped, and the rest is shuffled and
        cut to a random batch size.
        """
        slot = TimeSlot.parse(time_slot)
        goal = daily_goal or self.config.daily_goal
        today = self.clock.local_date()

        users = await self.repository.get_users_with_today_and_lifetime_totals(today)
        matching = [
            user for user in users
            if user.total_all_time > 0 and user.today_total < goal
            and matches_slot(user.today_total, slot, self.config)
        ]
        eligible = await self._under_cap(matching, slot, today)

        self.rng.shuffle(eligible)
        batch_size = self.rng.randint(self.config.batch_min, self.config.batch_max)
        return eligible[:batch_size]

    async def select_close_to_goal(self, daily_goal: Optional[int] = None) -> List[ActivityUser]:
        """Users just short of the goal, still under their closeToGoal cap."""
        goal = daily_goal or self.config.daily_goal
        today = self.clock.local_date()

        users = await self.repository.get_users_close_to_goal(
            today, goal, self.config.close_to_goal_gap
        )
        matching = [
            user for user in users
            if user.total_all_time > 0 and goal - self.config.close_to_goal_gap <= user.today_total < goal
        ]
        eligible = await self._under_cap(matching, TimeSlot.CLOSE_TO_GOAL, today)

        self.rng.shuffle(eligible)
        return eligible


# ============================================
# MESSAGE COMPOSITION
# ============================================

class MessageComposer:
    """Builds title and body, preferring bodies the user hasn't seen today."""

    def __init__(
        self,
        history: NotificationHistoryStore,
        clock: Clock,
        daily_goal: int = 100,
        rng: Optional[random.Random] = None
    ):
        self.history = history
        self.clock = clock
        self.daily_goal = daily_goal
        self.rng = rng or random.Random()

    def candidates(self, user: ActivityUser, time_slot: TimeSlot,
                   category: Optional[UserCategory] = None) -> List[str]:
        """All rendered bodies for the user's category and slot."""
        category = category or classify(user, self.clock.local_date())
        values = {
            "name": user.name,
            "today_total": user.today_total,
            "remaining": max(0, self.daily_goal - user.today_total),
            "daily_goal": self.daily_goal,
        }
        return [template.format(**values) for template in templates_for(category, time_slot)]

    async def compose(self, user: ActivityUser, time_slot) -> ComposedMessage:
        slot = TimeSlot.parse(time_slot)
        bodies = self.candidates(user, slot)

        sent_today = await self.history.bodies_sent_today(user.id, self.clock.local_date())
        unused = [body for body in bodies if body not in sent_today]

        # Everything used already: a repeat beats sending nothing
        body = self.rng.choice(unused or bodies)
        return ComposedMessage(title=title_for(slot), body=body)


# ============================================
# DISPATCH
# ============================================

class DispatchScheduler:
    """
    Runs one notification cycle:
    idle -> gating -> selecting -> dispatching -> settling -> idle.

    Every selected user gets an independent task that waits a random delay,
    composes, sends and records on success. Once the last delay has elapsed
    no new send starts and the cycle is settling; it returns when every task
    has finished. Cycles on one scheduler run one at a time, so `state`
    always describes the running cycle.
    """

    def __init__(
        self,
        selector: EligibilitySelector,
        composer: MessageComposer,
        history: NotificationHistoryStore,
        push_sender: PushSender,
        clock: Clock,
        config: Optional[NotificationConfig] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.selector = selector
        self.composer = composer
        self.history = history
        self.push_sender = push_sender
        self.clock = clock
        self.config = config or get_notification_config()
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.state = CycleState.IDLE
        self._cycle_lock = asyncio.Lock()

    def is_good_time(self, hour: Optional[int] = None) -> bool:
        """Inside the daily send window (inclusive)."""
        hour = self.clock.local_hour() if hour is None else hour
        return self.config.send_window_start_hour <= hour <= self.config.send_window_end_hour

    async def run_cycle(self, time_slot=None) -> CycleReport:
        """Run one cycle for a slot (default afternoon). Repository errors propagate."""
        slot = TimeSlot.parse(time_slot)

        # One cycle at a time: quota checks only see records of finished cycles
        async with self._cycle_lock:
            try:
                return await self._run_cycle(slot)
            except RepositoryError as e:
                logger.error(f"❌ Aborting {slot.value} notifications: {e}")
                raise
            finally:
                self.state = CycleState.IDLE

    async def _run_cycle(self, slot: TimeSlot) -> CycleReport:
        report = CycleReport(time_slot=slot)

        self.state = CycleState.GATING
        if not self.is_good_time():
            logger.info("Not a good time for notifications")
            report.skipped = "outside_send_window"
            return report

        logger.info(f"🔔 Sending {slot.value} notifications...")

        self.state = CycleState.SELECTING
        users = await self.selector.select_candidates(slot)
        logger.info(f"Found {len(users)} users needing {slot.value} notifications")

        report.selected = len(users)
        report.sent, report.failed = await self._dispatch(
            users, slot, self.config.regular_jitter_seconds
        )

        if slot in (TimeSlot.AFTERNOON, TimeSlot.EVENING):
            self.state = CycleState.SELECTING
            close_users = await self.selector.select_close_to_goal()
            logger.info(f"Found {len(close_users)} users close to goal")

            report.close_to_goal_selected = len(close_users)
            sent, failed = await self._dispatch(
                close_users,
                TimeSlot.CLOSE_TO_GOAL,
                self.config.close_to_goal_jitter_seconds,
                title=CLOSE_TO_GOAL_TITLE
            )
            report.close_to_goal_sent = sent
            report.failed += failed

        if report.selected == 0 and report.close_to_goal_selected == 0:
            report.skipped = "no_candidates"

        logger.info(
            f"✅ {slot.value} notifications completed: "
            f"{report.sent + report.close_to_goal_sent} sent, {report.failed} failed"
        )
        return report

    async def _dispatch(
        self,
        users: List[ActivityUser],
        time_slot: TimeSlot,
        max_delay: float,
        title: Optional[str] = None
    ) -> Tuple[int, int]:
        """Send to every user concurrently; returns (sent, failed)."""
        if not users:
            return 0, 0

        self.state = CycleState.DISPATCHING
        started: Set[asyncio.Task] = set()
        tasks = [
            asyncio.create_task(
                self._send_to_user(
                    user, time_slot, self.rng.uniform(0, max_delay), started, len(users), title
                )
            )
            for user in users
        ]

        try:
            results = await asyncio.gather(*tasks)
        except Exception:
            # Users still waiting out their delay are skipped; sends under way finish and record
            self.state = CycleState.SETTLING
            for task in tasks:
                if task not in started:
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        sent = sum(1 for delivered in results if delivered)
        return sent, len(results) - sent

    async def _send_to_user(
        self,
        user: ActivityUser,
        time_slot: TimeSlot,
        delay: float,
        started: Set[asyncio.Task],
        fanout: int,
        title: Optional[str] = None
    ) -> bool:
        await self.sleep(delay)

        started.add(asyncio.current_task())
        if len(started) == fanout:
            self.state = CycleState.SETTLING

        message = await self.composer.compose(user, time_slot)
        try:
            delivered = await self.push_sender.send(user.id, title or message.title, message.body)
        except SendFailure as e:
            logger.warning(f"Send failure for {user.name}: {e}")
            delivered = False

        if not delivered:
            logger.info(f"No {time_slot.value} notification delivered to {user.name}")
            return False

        await self.history.record(
            user.id, self.clock.local_date(), time_slot, message.body, self.clock.now()
        )
        category = classify(user, self.clock.local_date())
        logger.info(f"✅ Sent {time_slot.value} notification to {user.name} ({category.value})")
        return True


# ============================================
# NOTIFICATION SERVICE (Background Runner)
# ============================================

class NotificationService:
    """Background timer that runs a reminder cycle every interval."""

    def __init__(self, scheduler: DispatchScheduler, interval_seconds: Optional[int] = None):
        self.scheduler = scheduler
        self.check_interval = interval_seconds or scheduler.config.interval_seconds
        self.running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the notification service."""
        if self.running:
            return

        self.running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"[NotificationService] Started with {self.check_interval}s interval")

    async def stop(self):
        """Stop the notification service."""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[NotificationService] Stopped")

    async def run_once(self) -> Optional[CycleReport]:
        """One timer tick: a cycle for the current hour's slot, if inside the window."""
        hour = self.scheduler.clock.local_hour()
        if not self.scheduler.is_good_time(hour):
            return None

        slot = slot_for_hour(hour)
        logger.info(f"⏰ Fallback notification check - Time slot: {slot.value}")
        return await self.scheduler.run_cycle(slot)

    async def _run_loop(self):
        while self.running:
            await asyncio.sleep(self.check_interval)
            try:
                await self.run_once()
                purged = await self.scheduler.history.purge_older_than(
                    self.scheduler.config.history_retention_days
                )
                if purged:
                    logger.info(f"[NotificationService] Purged {purged} old history records")
            except Exception as e:
                logger.warning(f"[NotificationService] Notification check failed (non-critical): {e}")


# ============================================
# SINGLETON INSTANCES
# ============================================

def create_dispatch_scheduler(
    database: Database = db,
    config: Optional[NotificationConfig] = None
) -> DispatchScheduler:
    """Wire the engine against the database with real time and randomness."""
    config = config or get_notification_config()
    clock = Clock(config.timezone)
    rng = random.Random()
    history = NotificationHistoryStore(database)
    repository = ActivityRepository(database, timezone=config.timezone)

    return DispatchScheduler(
        selector=EligibilitySelector(repository, history, clock, config, rng),
        composer=MessageComposer(history, clock, config.daily_goal, rng),
        history=history,
        push_sender=PushSender(database=database),
        clock=clock,
        config=config,
        rng=rng
    )


dispatch_scheduler = create_dispatch_scheduler()
notification_service = NotificationService(dispatch_scheduler)

"""
Dickerchen - Pydantic Models (v2 syntax)
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field


# ============================================
# ENUMS
# ============================================

class TimeSlot(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    CLOSE_TO_GOAL = "closeToGoal"
    SPECIAL = "special"

    @classmethod
    def parse(cls, label: Optional[str]) -> "TimeSlot":
        """Slot for a label; unknown or missing labels mean afternoon."""
        if isinstance(label, cls):
            return label
        try:
            return cls(label)
        except ValueError:
            return cls.AFTERNOON


REGULAR_SLOTS = (TimeSlot.MORNING, TimeSlot.AFTERNOON, TimeSlot.EVENING)


class UserCategory(str, Enum):
    NEW = "new"
    CASUAL = "casual"
    ACTIVE = "active"
    ADVANCED = "advanced"


class CycleState(str, Enum):
    IDLE = "idle"
    GATING = "gating"
    SELECTING = "selecting"
    DISPATCHING = "dispatching"
    SETTLING = "settling"


# ============================================
# ACTIVITY MODELS
# ============================================

class ActivityUser(BaseModel):
    """A user plus the activity facts derived for the current local day."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str
    today_total: int = 0
    total_all_time: int = 0
    first_activity_date: Optional[date] = None


class ExerciseEntryCreate(BaseModel):
    user_id: int = Field(alias="userId")
    count: int = Field(gt=0, le=1000)

    model_config = ConfigDict(populate_by_name=True)


# ============================================
# NOTIFICATION MODELS
# ============================================

class NotificationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    date: str
    time_slot: TimeSlot
    message_text: str
    sent_at: datetime
    kind: Optional[str] = None


class ComposedMessage(BaseModel):
    title: str
    body: str


class CycleReport(BaseModel):
    time_slot: TimeSlot
    skipped: Optional[str] = None
    selected: int = 0
    sent: int = 0
    failed: int = 0
    close_to_goal_selected: int = 0
    close_to_goal_sent: int = 0


class ChallengeNotification(BaseModel):
    kind: str
    cooldown_key: str
    target_user_ids: List[int]
    message: str


# ============================================
# PUSH SUBSCRIPTION MODELS
# ============================================

class PushSubscriptionKeys(BaseModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class PushSubscriptionPayload(BaseModel):
    endpoint: str = Field(min_length=1)
    keys: PushSubscriptionKeys


class SubscribeRequest(BaseModel):
    user_id: int = Field(alias="userId")
    subscription: PushSubscriptionPayload

    model_config = ConfigDict(populate_by_name=True)


class CleanupSubscriptionsRequest(BaseModel):
    current_user_id: int = Field(alias="currentUserId")
    subscription: PushSubscriptionPayload

    model_config = ConfigDict(populate_by_name=True)


# ============================================
# API RESPONSE MODELS
# ============================================

class HealthStatus(BaseModel):
    status: str = "healthy"
    version: str = "1.0.0"
    database: str = "connected"
    periodic_notifications: bool = False

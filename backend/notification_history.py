"""
Dickerchen - Notification History
Durable per-user, per-day, per-slot record of delivered notifications.
"""

from datetime import date, datetime
from typing import Optional, List, Set, Union

from pydantic import ValidationError

from database import db, Database, RepositoryError, affected_rows
from models import NotificationRecord, TimeSlot


def _date_key(local_date: Union[date, str]) -> str:
    return local_date.isoformat() if isinstance(local_date, date) else str(local_date)


class NotificationHistoryStore:
    """Append-only send history backed by the notification_history table."""

    def __init__(self, database: Database = db):
        self.db = database

    async def count_sent_today(self, user_id: int, local_date: Union[date, str],
                               time_slot: TimeSlot) -> int:
        row = await self.db.fetch_one("""
            SELECT COUNT(*) as count
            FROM notification_history
            WHERE user_id = $1 AND date = $2 AND time_slot = $3
        """, user_id, _date_key(local_date), TimeSlot(time_slot).value)
        if row is None or "count" not in row:
            raise RepositoryError("Malformed history count")
        return int(row["count"] or 0)

    async def records_for(self, user_id: int, local_date: Union[date, str]) -> List[NotificationRecord]:
        """Everything sent to a user on a local date, oldest first."""
        rows = await self.db.fetch("""
            SELECT user_id, date, time_slot, message_text, sent_at, kind
            FROM notification_history
            WHERE user_id = $1 AND date = $2
            ORDER BY sent_at
        """, user_id, _date_key(local_date))
        try:
            return [NotificationRecord.model_validate(row) for row in rows]
        except ValidationError as e:
            raise RepositoryError(f"Malformed history row: {e}") from e

    async def bodies_sent_today(self, user_id: int, local_date: Union[date, str]) -> Set[str]:
        return {record.message_text for record in await self.records_for(user_id, local_date)}

    async def has_kind_today(self, user_id: int, local_date: Union[date, str], kind: str) -> bool:
        row = await self.db.fetch_one("""
            SELECT EXISTS (
                SELECT 1 FROM notification_history
                WHERE user_id = $1 AND date = $2 AND kind = $3
            ) as found
        """, user_id, _date_key(local_date), kind)
        return bool(row and row["found"])

    async def record(
        self,
        user_id: int,
        local_date: Union[date, str],
        time_slot: TimeSlot,
        message_body: str,
        sent_at: datetime,
        kind: Optional[str] = None
    ) -> None:
        await self.db.execute("""
            INSERT INTO notification_history (user_id, date, time_slot, message_text, sent_at, kind)
            VALUES ($1, $2, $3, $4, $5, $6)
        """, user_id, _date_key(local_date), TimeSlot(time_slot).value, message_body, sent_at, kind)

    async def purge_older_than(self, days: int = 7) -> int:
        status = await self.db.execute(
            "DELETE FROM notification_history WHERE sent_at < NOW() - make_interval(days => $1)",
            days
        )
        return affected_rows(status)


# ============================================
# DATABASE SCHEMA MIGRATION
# ============================================

HISTORY_SCHEMA = """
CREATE TABLE IF NOT EXISTS notification_history (
    id SERIAL PRIMARY KEY,
    user_id INTEGER NOT NULL,
    date VARCHAR(10) NOT NULL,          -- local "YYYY-MM-DD"
    time_slot VARCHAR(20) NOT NULL,
    message_text TEXT NOT NULL,
    kind VARCHAR(100),
    sent_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_notification_history_slot
    ON notification_history(user_id, date, time_slot);
CREATE INDEX IF NOT EXISTS idx_notification_history_sent_at
    ON notification_history(sent_at);
"""


async def ensure_history_table(database: Database = db) -> None:
    """Create the history table if it doesn't exist."""
    await database.execute(HISTORY_SCHEMA)

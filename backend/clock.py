"""
Dickerchen - Clock
Local dates and hours in the app's fixed timezone.
"""

from datetime import datetime, date, timezone
from typing import Optional
from zoneinfo import ZoneInfo


class Clock:
    """Maps instants to calendar dates and hours in one target timezone."""

    def __init__(self, tz_name: str = "Europe/Berlin"):
        self.tz_name = tz_name
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self.tz)

    def to_local(self, instant: Optional[datetime] = None) -> datetime:
        if instant is None:
            return self.now()
        if instant.tzinfo is None:
            # Naive instants are UTC, as stored by the database
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self.tz)

    def local_date(self, instant: Optional[datetime] = None) -> date:
        return self.to_local(instant).date()

    def local_hour(self, instant: Optional[datetime] = None) -> int:
        return self.to_local(instant).hour

    def date_string(self, instant: Optional[datetime] = None) -> str:
        """Local date as YYYY-MM-DD."""
        return self.local_date(instant).isoformat()


"""
Dickerchen - Web Push Delivery
Sends title/body payloads to every registered push endpoint of a user.
"""

import asyncio
import json
from typing import Optional, Dict

from pywebpush import webpush, WebPushException

from config import PushConfig, get_push_config
from database import db, Database, get_push_subscriptions, delete_push_subscription
from logger import get_logger

logger = get_logger("push")


class SendFailure(Exception):
    """Delivery to a single push endpoint failed."""

    def __init__(self, endpoint: str, reason: str):
        super().__init__(f"{reason} ({endpoint[:50]}...)")
        self.endpoint = endpoint
        self.reason = reason


class SubscriptionGone(SendFailure):
    """The push service reported the endpoint as expired (404/410)."""


class PushSender:
    """Delivers notifications through pywebpush, pruning dead subscriptions."""

    def __init__(self, config: Optional[PushConfig] = None, database: Database = db):
        self.config = config or get_push_config()
        self.db = database

    def build_payload(self, user_id: int, title: str, body: str, tag: Optional[str] = None) -> str:
        payload = {
            "title": title,
            "body": body,
            "icon": self.config.icon,
            "badge": self.config.icon,
            "data": {"userId": user_id},
        }
        if tag:
            payload["tag"] = tag
        return json.dumps(payload, ensure_ascii=False)

    def _deliver(self, subscription: Dict, payload: str) -> None:
        """Blocking pywebpush call for one endpoint."""
        subscription_info = {
            "endpoint": subscription["endpoint"],
            "keys": {
                "p256dh": subscription["p256dh"],
                "auth": subscription["auth"],
            },
        }
        try:
            webpush(
                subscription_info=subscription_info,
                data=payload,
                vapid_private_key=self.config.private_key,
                # pywebpush adds aud/exp to the claims it is given
                vapid_claims={"sub": self.config.email},
                ttl=self.config.ttl,
                timeout=self.config.timeout_seconds,
            )
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            if status_code in (404, 410):
                raise SubscriptionGone(subscription["endpoint"], f"HTTP {status_code}") from e
            raise SendFailure(subscription["endpoint"], str(e)) from e
        except (OSError, ValueError) as e:
            # Transport errors (requests raises OSError subclasses) and bad keys
            raise SendFailure(subscription["endpoint"], str(e)) from e

    async def send(self, user_id: int, title: str, body: str, tag: Optional[str] = None) -> bool:
        """Send to all endpoints of a user. True when at least one succeeded."""
        subscriptions = await get_push_subscriptions(user_id, database=self.db)
        if not subscriptions:
            logger.info(f"No push subscriptions found for user {user_id}")
            return False

        payload = self.build_payload(user_id, title, body, tag)
        success_count = 0

        for subscription in subscriptions:
            try:
                await asyncio.to_thread(self._deliver, subscription, payload)
                success_count += 1
            except SubscriptionGone as e:
                logger.info(f"Removing expired subscription of user {user_id}: {e}")
                await delete_push_subscription(user_id, subscription["endpoint"], database=self.db)
            except SendFailure as e:
                logger.warning(f"Failed to send notification to user {user_id}: {e}")

        return success_count > 0

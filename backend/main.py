"""
Dickerchen - FastAPI Backend
Notification triggers, push subscriptions and exercise logging
"""

import os
import hmac
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, Header, BackgroundTasks, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import get_notification_config, get_push_config, get_config_summary
from database import (
    db, ActivityRepository, RepositoryError, ensure_core_tables,
    save_push_subscription, cleanup_device_subscriptions
)
from logger import logger
from models import (
    CycleReport, ExerciseEntryCreate, HealthStatus, SubscribeRequest,
    CleanupSubscriptionsRequest, REGULAR_SLOTS
)
from notification_history import ensure_history_table
from notifications import dispatch_scheduler, notification_service, DispatchScheduler, slot_for_hour
from smart_notifications import challenge_notifier, ChallengeNotifier


VERSION = "1.0.0"
TRIGGER_SLOTS = {slot.value for slot in REGULAR_SLOTS}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    await db.connect()
    await ensure_core_tables()
    await ensure_history_table()

    if get_notification_config().enable_periodic:
        await notification_service.start()

    logger.info(f"Server started (version {VERSION})")
    yield
    await notification_service.stop()
    logger.info("Server shutting down")
    await db.disconnect()


app = FastAPI(
    title="Dickerchen",
    description="Daily push-up challenge with reminder notifications",
    version=VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("FRONTEND_URL", "http://localhost:3001,http://127.0.0.1:3001").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RepositoryError)
async def repository_error_handler(request: Request, exc: RepositoryError):
    logger.error(f"Repository error on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"error": "Database unavailable"})


# ============================================
# DEPENDENCIES
# ============================================

def get_dispatch_scheduler() -> DispatchScheduler:
    return dispatch_scheduler


def get_challenge_notifier() -> ChallengeNotifier:
    return challenge_notifier


def get_activity_repository() -> ActivityRepository:
    return ActivityRepository(db, timezone=get_notification_config().timezone)


def require_notification_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Bearer token check for the notification triggers."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    secret = get_notification_config().secret
    token = authorization[len("Bearer "):]
    if not secret or not hmac.compare_digest(token, secret):
        raise HTTPException(status_code=401, detail="Invalid token")


# ============================================
# HEALTH & STATUS
# ============================================

@app.get("/health", response_model=HealthStatus)
@app.get("/api/health", response_model=HealthStatus)
async def health_check():
    """Check API and database health."""
    database = "connected"
    try:
        await db.fetch_one("SELECT 1 as ok")
    except RepositoryError:
        database = "disconnected"

    return HealthStatus(
        status="healthy" if database == "connected" else "degraded",
        version=VERSION,
        database=database,
        periodic_notifications=notification_service.running
    )


@app.get("/api/test")
async def wake_up():
    """Cheap endpoint for keep-alive pings."""
    return {"message": "Server is running"}


@app.get("/api/config", dependencies=[Depends(require_notification_secret)])
async def config_summary():
    return get_config_summary()


# ============================================
# PUSH SUBSCRIPTIONS
# ============================================

@app.get("/api/vapid-public-key")
async def vapid_public_key():
    return {"publicKey": get_push_config().public_key}


@app.post("/api/subscribe", status_code=201)
async def subscribe(request: SubscribeRequest):
    """Store (or replace) the push subscription of a user."""
    subscription = request.subscription
    await save_push_subscription(
        request.user_id,
        subscription.endpoint,
        subscription.keys.p256dh,
        subscription.keys.auth
    )
    logger.info(f"Subscription saved for user {request.user_id}")
    return {"success": True, "message": "Subscription saved successfully"}


@app.post("/api/cleanup-subscriptions")
async def cleanup_subscriptions(request: CleanupSubscriptionsRequest):
    """On a shared device, only the current user keeps receiving notifications."""
    cleaned = await cleanup_device_subscriptions(request.current_user_id, request.subscription.endpoint)
    logger.info(f"Cleaned up {cleaned} old subscriptions for this device")
    return {"success": True, "cleaned": cleaned}


# ============================================
# EXERCISE LOGGING
# ============================================

async def run_challenge_check(notifier: ChallengeNotifier, user_id: int, count: int) -> None:
    try:
        await notifier.check(user_id, count)
    except RepositoryError as e:
        logger.warning(f"Smart notification check failed (non-critical): {e}")


@app.post("/api/pushups")
async def add_pushups(
    entry: ExerciseEntryCreate,
    background_tasks: BackgroundTasks,
    repository: ActivityRepository = Depends(get_activity_repository),
    notifier: ChallengeNotifier = Depends(get_challenge_notifier)
):
    """Log an entry, then check for challenge notifications in the background."""
    try:
        row = await repository.add_exercise_entry(entry.user_id, entry.count)
    except LookupError:
        raise HTTPException(status_code=404, detail="User not found")

    background_tasks.add_task(run_challenge_check, notifier, entry.user_id, entry.count)
    return row


# ============================================
# NOTIFICATION TRIGGERS
# ============================================

@app.post(
    "/api/send-notifications/{time_slot}",
    response_model=CycleReport,
    dependencies=[Depends(require_notification_secret)]
)
async def send_slot_notifications(
    time_slot: str,
    scheduler: DispatchScheduler = Depends(get_dispatch_scheduler)
):
    """Run a reminder cycle for one slot and wait for every send to settle."""
    if time_slot not in TRIGGER_SLOTS:
        raise HTTPException(status_code=400, detail="Invalid time slot")
    return await scheduler.run_cycle(time_slot)


@app.post(
    "/api/send-daily-notifications",
    response_model=CycleReport,
    dependencies=[Depends(require_notification_secret)]
)
async def send_daily_notifications(scheduler: DispatchScheduler = Depends(get_dispatch_scheduler)):
    return await scheduler.run_cycle()


@app.post(
    "/api/trigger-fallback",
    response_model=CycleReport,
    dependencies=[Depends(require_notification_secret)]
)
async def trigger_fallback(scheduler: DispatchScheduler = Depends(get_dispatch_scheduler)):
    """Same cycle the periodic timer would run right now."""
    return await scheduler.run_cycle(slot_for_hour(scheduler.clock.local_hour()))


# ============================================
# RUN SERVER
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "3001")))

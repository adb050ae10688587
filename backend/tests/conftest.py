import random

import pytest

from config import NotificationConfig, ChallengeConfig
from notifications import DispatchScheduler, EligibilitySelector, MessageComposer

from tests.helpers.fakes import (
    FakeActivityRepository, FakePushSender, InMemoryHistoryStore, clock_at, no_sleep
)


@pytest.fixture
def notify_config() -> NotificationConfig:
    return NotificationConfig(secret="", enable_periodic=False)


@pytest.fixture
def challenge_config() -> ChallengeConfig:
    return ChallengeConfig()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def repository() -> FakeActivityRepository:
    return FakeActivityRepository()


@pytest.fixture
def history() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture
def push_sender() -> FakePushSender:
    return FakePushSender()


@pytest.fixture
def build_scheduler(repository, history, push_sender, notify_config, rng):
    """Factory for a scheduler whose clock sits at a given local hour."""

    def _build(hour: int) -> DispatchScheduler:
        clock = clock_at(hour)
        return DispatchScheduler(
            selector=EligibilitySelector(repository, history, clock, notify_config, rng),
            composer=MessageComposer(history, clock, notify_config.daily_goal, rng),
            history=history,
            push_sender=push_sender,
            clock=clock,
            config=notify_config,
            rng=rng,
            sleep=no_sleep,
        )

    return _build

import pytest

from models import TimeSlot
from smart_notifications import ChallengeNotifier

from tests.helpers.fakes import clock_at


def board(*entries):
    return [{"id": i, "name": name, "total": total} for i, name, total in entries]


@pytest.fixture
def build_notifier(repository, history, push_sender, challenge_config):
    def _build(hour: int) -> ChallengeNotifier:
        return ChallengeNotifier(
            repository=repository,
            history=history,
            push_sender=push_sender,
            clock=clock_at(hour),
            config=challenge_config,
            daily_goal=100,
        )

    return _build


def kinds(notifications):
    return {n.kind: n for n in notifications}


class TestEvaluate:
    def test_early_bird_without_taking_the_lead(self, build_notifier) -> None:
        leaderboard = board((3, "Ben", 120), (1, "Ana", 100), (2, "Leo", 30))
        result = kinds(build_notifier(7).evaluate(leaderboard, 1, hour=7))

        assert result["early_bird"].target_user_ids == [2]
        assert "Ana" in result["early_bird"].message
        assert "leadership_change" not in result

    def test_leadership_change_targets_everyone_else(self, build_notifier) -> None:
        leaderboard = board((2, "Leo", 45), (1, "Ana", 30), (3, "Ben", 0))
        result = kinds(build_notifier(11).evaluate(leaderboard, 2, hour=11))

        notification = result["leadership_change"]
        assert notification.target_user_ids == [1, 3]
        assert notification.cooldown_key == "leadership_change:2"

    def test_no_leader_change_on_a_tie(self, build_notifier) -> None:
        leaderboard = board((1, "Ana", 40), (2, "Leo", 40))
        assert "leadership_change" not in kinds(build_notifier(11).evaluate(leaderboard, 2, hour=11))

    def test_close_race_targets_the_runner_up(self, build_notifier) -> None:
        leaderboard = board((1, "Ana", 70), (2, "Leo", 60))
        result = kinds(build_notifier(10).evaluate(leaderboard, 2, hour=10))

        assert result["close_race"].target_user_ids == [2]
        assert "10" in result["close_race"].message

    def test_close_race_needs_a_real_lead_total(self, build_notifier) -> None:
        leaderboard = board((1, "Ana", 50), (2, "Leo", 45))
        assert "close_race" not in kinds(build_notifier(10).evaluate(leaderboard, 2, hour=10))

    def test_lazy_reminder_after_noon(self, build_notifier) -> None:
        leaderboard = board((1, "Ana", 20), (2, "Leo", 10), (3, "Ben", 0))

        assert "lazy_reminder" not in kinds(build_notifier(11).evaluate(leaderboard, 2, hour=11))

        result = kinds(build_notifier(14).evaluate(leaderboard, 2, hour=14))
        assert result["lazy_reminder"].target_user_ids == [3]
        assert "Ana" in result["lazy_reminder"].message

    def test_unknown_trigger_user(self, build_notifier) -> None:
        assert build_notifier(10).evaluate(board((1, "Ana", 20)), 99, hour=10) == []


class TestCheck:
    @pytest.mark.asyncio
    async def test_sends_once_per_kind_and_day(self, build_notifier, repository, history, push_sender) -> None:
        repository.leaderboard = board((2, "Leo", 45), (1, "Ana", 30))
        notifier = build_notifier(11)

        await notifier.check(2, 15)
        await notifier.check(2, 5)

        assert push_sender.recipients == [1]
        assert push_sender.sent[0]["title"] == "Dickerchen Challenge! 💪"
        assert push_sender.sent[0]["tag"] == "leadership_change"
        [record] = history.records
        assert record["time_slot"] == TimeSlot.SPECIAL
        assert record["kind"] == "leadership_change:2"

    @pytest.mark.asyncio
    async def test_failed_delivery_is_not_recorded(self, build_notifier, repository, history, push_sender) -> None:
        repository.leaderboard = board((2, "Leo", 45), (1, "Ana", 30), (3, "Ben", 10))
        push_sender.failing.add(1)
        push_sender.unsubscribed.add(3)

        await build_notifier(11).check(2, 15)

        assert push_sender.sent == []
        assert history.records == []

import random

import pytest

from database import RepositoryError
from models import TimeSlot
from notifications import EligibilitySelector

from tests.helpers.fakes import TODAY, clock_at, make_user


@pytest.fixture
def selector(repository, history, notify_config, rng) -> EligibilitySelector:
    return EligibilitySelector(repository, history, clock_at(12), notify_config, rng)


class TestSlotFilter:
    @pytest.mark.asyncio
    async def test_users_land_in_the_right_slots(self, selector, repository) -> None:
        a = make_user(1, "A", today_total=0)
        b = make_user(2, "B", today_total=60)
        c = make_user(3, "C", today_total=100)
        repository.users = [a, b, c]

        morning = {u.id for u in await selector.select_candidates("morning")}
        afternoon = {u.id for u in await selector.select_candidates("afternoon")}
        evening = {u.id for u in await selector.select_candidates("evening")}

        assert morning == {1}
        assert afternoon == {1}
        assert evening == {2}
        assert 3 not in morning | afternoon | evening

    @pytest.mark.asyncio
    async def test_users_without_lifetime_activity_are_skipped(self, selector, repository) -> None:
        repository.users = [make_user(1, "Ghost", today_total=0, total_all_time=0)]
        assert await selector.select_candidates(TimeSlot.MORNING) == []

    @pytest.mark.asyncio
    async def test_unknown_slot_uses_afternoon_rule(self, selector, repository) -> None:
        repository.users = [make_user(1, "A", today_total=30), make_user(2, "B", today_total=70)]
        assert [u.id for u in await selector.select_candidates("midnight")] == [1]

    @pytest.mark.asyncio
    async def test_queries_the_local_date(self, selector, repository) -> None:
        await selector.select_candidates("morning")
        assert repository.requested_dates == [TODAY]

    @pytest.mark.asyncio
    async def test_repository_errors_propagate(self, selector, repository) -> None:
        repository.fail = True
        with pytest.raises(RepositoryError):
            await selector.select_candidates("morning")

    @pytest.mark.asyncio
    async def test_users_at_a_lower_goal_are_done(self, selector, repository) -> None:
        repository.users = [make_user(1, "A", today_total=45), make_user(2, "B", today_total=60)]
        assert [u.id for u in await selector.select_candidates("evening", daily_goal=50)] == [1]
        assert await selector.select_candidates("evening", daily_goal=40) == []


class TestQuota:
    @pytest.mark.asyncio
    async def test_user_at_cap_is_never_selected(self, selector, repository, history) -> None:
        new_user = make_user(1, "Leo", today_total=0, total_all_time=10, days_active=2)
        advanced = make_user(2, "Ana", today_total=0, total_all_time=1500, days_active=400)
        repository.users = [new_user, advanced]

        history.add(1, TimeSlot.MORNING)
        history.add(2, TimeSlot.MORNING)
        history.add(2, TimeSlot.MORNING)

        assert [u.id for u in await selector.select_candidates("morning")] == [2]

        history.add(2, TimeSlot.MORNING)
        assert await selector.select_candidates("morning") == []

    @pytest.mark.asyncio
    async def test_quota_is_per_slot(self, selector, repository, history) -> None:
        repository.users = [make_user(1, "Leo", today_total=0, total_all_time=10, days_active=2)]
        history.add(1, TimeSlot.AFTERNOON)
        assert [u.id for u in await selector.select_candidates("morning")] == [1]

    @pytest.mark.asyncio
    async def test_yesterdays_sends_do_not_count(self, selector, repository, history) -> None:
        repository.users = [make_user(1, "Max", today_total=0)]
        history.add(1, TimeSlot.MORNING, local_date=TODAY.replace(day=9))
        assert [u.id for u in await selector.select_candidates("morning")] == [1]


class TestBatchSize:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed", range(25))
    async def test_large_pool_is_cut_to_three_to_ten(self, repository, history, notify_config, seed) -> None:
        repository.users = [make_user(i, f"User{i}", today_total=0) for i in range(1, 16)]
        selector = EligibilitySelector(repository, history, clock_at(10), notify_config, random.Random(seed))

        selected = await selector.select_candidates("morning")

        assert 3 <= len(selected) <= 10
        assert len({u.id for u in selected}) == len(selected)

    @pytest.mark.asyncio
    async def test_small_pool_is_returned_whole(self, selector, repository) -> None:
        repository.users = [make_user(1, "A"), make_user(2, "B")]
        assert {u.id for u in await selector.select_candidates("morning")} == {1, 2}


class TestCloseToGoal:
    @pytest.mark.asyncio
    async def test_selects_users_just_below_the_goal(self, selector, repository) -> None:
        repository.users = [
            make_user(1, "A", today_total=79),
            make_user(2, "B", today_total=80),
            make_user(3, "C", today_total=99),
            make_user(4, "D", today_total=100),
        ]
        assert {u.id for u in await selector.select_close_to_goal()} == {2, 3}

    @pytest.mark.asyncio
    async def test_close_to_goal_has_its_own_quota(self, selector, repository, history) -> None:
        repository.users = [make_user(1, "A", today_total=85)]
        history.add(1, TimeSlot.AFTERNOON)
        assert [u.id for u in await selector.select_close_to_goal()] == [1]

        # 85 today makes the user active, cap 2
        history.add(1, TimeSlot.CLOSE_TO_GOAL)
        history.add(1, TimeSlot.CLOSE_TO_GOAL)
        assert await selector.select_close_to_goal() == []

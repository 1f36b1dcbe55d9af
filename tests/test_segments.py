import asyncio
import math

import pytest

from danmu_api.segments import fetch_all, plan_segments


@pytest.mark.unit
class Describe_plan_segments:
    def test_given_330_seconds_and_300_window_should_plan_two_segments(self):
        assert plan_segments(330, 300) == [1, 2]

    def test_given_zero_duration_should_still_plan_first_segment(self):
        assert plan_segments(0, 300) == [1]

    def test_given_exact_multiple_should_not_add_extra_segment(self):
        assert plan_segments(720, 360) == [1, 2]

    def test_given_fractional_duration_should_round_up(self):
        assert plan_segments(0.5, 360) == [1]
        assert plan_segments(360.01, 360) == [1, 2]

    @pytest.mark.parametrize("window", [1, 7, 300, 360])
    def test_should_be_contiguous_and_sized_by_ceil(self, window):
        for duration in range(0, 2000, 37):
            plan = plan_segments(duration, window)
            assert plan == list(range(1, len(plan) + 1))
            assert len(plan) == max(1, math.ceil(duration / window))

    def test_given_non_positive_window_should_raise(self):
        with pytest.raises(ValueError):
            plan_segments(100, 0)


@pytest.mark.unit
class Describe_fetch_all:
    def test_should_keep_input_order_regardless_of_completion_order(self):
        async def fetch_one(index):
            # 序号越小完成得越晚
            await asyncio.sleep(0.01 * (5 - index))
            return f"seg-{index}"

        results = asyncio.run(fetch_all([1, 2, 3, 4, 5], 5, fetch_one))
        assert results == [(i, f"seg-{i}") for i in [1, 2, 3, 4, 5]]

    def test_given_failures_should_mark_slots_absent_without_raising(self):
        async def fetch_one(index):
            if index % 2 == 0:
                raise RuntimeError(f"boom {index}")
            return index * 10

        results = asyncio.run(fetch_all([1, 2, 3, 4], 2, fetch_one))
        assert results == [(1, 10), (2, None), (3, 30), (4, None)]

    def test_given_all_failures_should_return_all_slots_absent(self):
        async def fetch_one(index):
            raise OSError("network down")

        results = asyncio.run(fetch_all([1, 2, 3], 3, fetch_one))
        assert results == [(1, None), (2, None), (3, None)]

    def test_should_never_exceed_concurrency_limit(self):
        state = {"in_flight": 0, "peak": 0}

        async def fetch_one(index):
            state["in_flight"] += 1
            state["peak"] = max(state["peak"], state["in_flight"])
            await asyncio.sleep(0.01)
            state["in_flight"] -= 1
            return index

        results = asyncio.run(fetch_all(list(range(1, 13)), 3, fetch_one))
        assert [v for _, v in results] == list(range(1, 13))
        assert state["peak"] == 3

    def test_should_attempt_each_index_exactly_once(self):
        calls = []

        async def fetch_one(index):
            calls.append(index)
            raise ValueError("decode failed")

        asyncio.run(fetch_all([1, 2, 3], 9, fetch_one))
        assert sorted(calls) == [1, 2, 3]

    def test_given_no_indices_should_return_empty(self):
        async def fetch_one(index):
            return index

        assert asyncio.run(fetch_all([], 3, fetch_one)) == []

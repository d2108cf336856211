"""Unit tests for profile-page location.

Tests:
- page_number_for_position() arithmetic
- find_first_pomodoro_in_range() - found, empty range, query failures
- count_completed() degrading to 0
"""

from datetime import datetime, timezone

import httpx
import pytest

from crushquest.services.pagination_service import (
    PaginationService,
    page_number_for_position,
)
from supabase_mocks import make_query, make_result, route_tables

START = datetime(2025, 1, 6, tzinfo=timezone.utc)
END = datetime(2025, 1, 12, 23, 59, 59, tzinfo=timezone.utc)
FIRST = {"id": "doro-7", "launch_at": "2025-01-06T09:00:00+00:00"}


def _service(*results):
    pomodoros = make_query(results=list(results))
    return PaginationService(supabase=route_tables(pomodoros=pomodoros)), pomodoros


class TestPageNumberForPosition:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "position,page_size,expected",
        [
            (1, 20, 1),
            (20, 20, 1),
            (21, 20, 2),
            (40, 20, 2),
            (100, 20, 5),
            (0, 20, 1),
            (7, 1, 7),
        ],
    )
    def test_pages(self, position, page_size, expected):
        assert page_number_for_position(position, page_size) == expected

    @pytest.mark.unit
    def test_page_size_must_be_positive(self):
        with pytest.raises(ValueError):
            page_number_for_position(5, 0)


class TestFindFirstPomodoroInRange:
    @pytest.mark.unit
    def test_located_on_second_page(self):
        # 39 newer pomodoros put the target at position 40 -> page 2
        service, pomodoros = _service(
            make_result([FIRST]), make_result([], count=39), make_result([], count=120)
        )

        location = service.find_first_pomodoro_in_range("author", START, END, page_size=20)

        assert location.pomodoro_id == "doro-7"
        assert location.page_number == 2
        assert location.total_count == 120
        pomodoros.gte.assert_called_once_with("launch_at", START.isoformat())
        pomodoros.lte.assert_called_once_with("launch_at", END.isoformat())
        pomodoros.gt.assert_called_once_with("launch_at", FIRST["launch_at"])
        pomodoros.order.assert_called_once_with("launch_at")
        pomodoros.limit.assert_called_once_with(1)
        pomodoros.select.assert_any_call("id", count="exact", head=True)

    @pytest.mark.unit
    def test_newest_pomodoro_is_page_one(self):
        service, _ = _service(make_result([FIRST]), make_result([], count=0), make_result([], 1))

        location = service.find_first_pomodoro_in_range("author", START, END, page_size=20)

        assert location.page_number == 1

    @pytest.mark.unit
    def test_last_page_of_five(self):
        service, _ = _service(
            make_result([FIRST]), make_result([], count=99), make_result([], count=100)
        )

        location = service.find_first_pomodoro_in_range("author", START, END, page_size=20)

        assert location.page_number == 5

    @pytest.mark.unit
    def test_empty_range(self):
        service, pomodoros = _service(make_result([]))

        assert service.find_first_pomodoro_in_range("author", START, END, 20) is None
        assert pomodoros.execute.call_count == 1

    @pytest.mark.unit
    def test_range_query_error(self):
        service, _ = _service(httpx.ConnectError("down"))

        assert service.find_first_pomodoro_in_range("author", START, END, 20) is None

    @pytest.mark.unit
    def test_newer_count_error(self):
        service, _ = _service(make_result([FIRST]), httpx.ConnectError("down"))

        assert service.find_first_pomodoro_in_range("author", START, END, 20) is None

    @pytest.mark.unit
    def test_total_count_error_degrades_to_zero(self):
        service, _ = _service(
            make_result([FIRST]), make_result([], count=3), httpx.ConnectError("down")
        )

        location = service.find_first_pomodoro_in_range("author", START, END, 20)

        assert location.page_number == 1
        assert location.total_count == 0

    @pytest.mark.unit
    def test_page_size_must_be_positive(self):
        service, pomodoros = _service()

        with pytest.raises(ValueError):
            service.find_first_pomodoro_in_range("author", START, END, page_size=0)
        pomodoros.execute.assert_not_called()

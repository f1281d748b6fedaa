"""PeriodLockService: inclusive ranges, overlap refusal and the posting guard."""

from datetime import date
from uuid import uuid4

import pytest

from bursary_kernel.exceptions import (
    PeriodLockedError,
    PeriodLockNotFoundError,
    PeriodLockOverlapError,
    ValidationError,
)
from tests.conftest import MAKER


@pytest.fixture
def january_lock(period_lock_service):
    return period_lock_service.create_lock(
        date(2024, 1, 1), date(2024, 1, 31), MAKER, reason="Tutup buku Januari"
    )


class TestPeriodLocks:
    def test_bounds_are_inclusive(self, period_lock_service, january_lock):
        assert period_lock_service.is_locked(date(2024, 1, 1))
        assert period_lock_service.is_locked(date(2024, 1, 31))
        assert not period_lock_service.is_locked(date(2023, 12, 31))
        assert not period_lock_service.is_locked(date(2024, 2, 1))

    def test_find_lock_returns_covering_row(self, period_lock_service, january_lock):
        assert period_lock_service.find_lock(date(2024, 1, 15)).id == january_lock.id
        assert period_lock_service.find_lock(date(2024, 2, 15)) is None

    def test_assert_raises_with_lock_details(self, period_lock_service, january_lock):
        with pytest.raises(PeriodLockedError) as exc_info:
            period_lock_service.assert_period_unlocked(date(2024, 1, 10))

        error = exc_info.value
        assert error.target_date == date(2024, 1, 10)
        assert error.start_date == date(2024, 1, 1)
        assert error.end_date == date(2024, 1, 31)
        assert error.reason == "Tutup buku Januari"

    def test_assert_passes_outside_lock(self, period_lock_service, january_lock):
        period_lock_service.assert_period_unlocked(date(2024, 2, 1))

    def test_single_day_lock(self, period_lock_service):
        period_lock_service.create_lock(date(2024, 3, 5), date(2024, 3, 5), MAKER)

        assert period_lock_service.is_locked(date(2024, 3, 5))
        assert not period_lock_service.is_locked(date(2024, 3, 6))

    def test_inverted_range_rejected(self, period_lock_service):
        with pytest.raises(ValidationError):
            period_lock_service.create_lock(date(2024, 2, 1), date(2024, 1, 1), MAKER)

    @pytest.mark.parametrize(
        "start, end",
        [
            (date(2024, 1, 31), date(2024, 2, 10)),
            (date(2023, 12, 1), date(2024, 1, 1)),
            (date(2024, 1, 10), date(2024, 1, 12)),
            (date(2023, 12, 1), date(2024, 3, 1)),
        ],
    )
    def test_overlap_rejected(self, period_lock_service, january_lock, start, end):
        with pytest.raises(PeriodLockOverlapError) as exc_info:
            period_lock_service.create_lock(start, end, MAKER)
        assert exc_info.value.existing_lock_id == str(january_lock.id)

    def test_adjacent_lock_allowed(self, period_lock_service, january_lock):
        february = period_lock_service.create_lock(date(2024, 2, 1), date(2024, 2, 29), MAKER)

        assert [lock.id for lock in period_lock_service.list_locks()] == [
            january_lock.id,
            february.id,
        ]

    def test_delete_reopens_dates(self, period_lock_service, january_lock):
        period_lock_service.delete_lock(january_lock.id, MAKER)

        assert not period_lock_service.is_locked(date(2024, 1, 10))

    def test_delete_unknown_lock(self, period_lock_service):
        with pytest.raises(PeriodLockNotFoundError):
            period_lock_service.delete_lock(uuid4(), MAKER)

    def test_blocked_posting_is_logged(self, period_lock_service, january_lock, captured_logs):
        with pytest.raises(PeriodLockedError):
            period_lock_service.assert_period_unlocked(date(2024, 1, 2))

        records = [r for r in captured_logs() if r["message"] == "period_locked_rejected"]
        assert records
        assert records[0]["level"] == "WARNING"
        assert records[0]["target_date"] == "2024-01-02"

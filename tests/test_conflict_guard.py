"""Tests for the conflict guard and lookup retries."""
import pytest

from conftest import StubBookingLookup, lesson_start
from db.repositories import BookingRepository
from domain.errors import LookupFailureError
from domain.models import BookedInterval
from services.conflict_guard import ConflictGuard, call_with_retry


@pytest.fixture
def existing():
    return [BookedInterval(date=lesson_start(10), duration=60)]


@pytest.mark.unit
class TestConflictGuard:
    """Test availability decisions against stored bookings."""

    async def test_empty_day_is_available(self, settings):
        """Test a day without bookings is available."""
        guard = ConflictGuard(StubBookingLookup(), settings)
        check = await guard.check(lesson_start(13), 60)

        assert check.available is True
        assert check.conflict is None
        assert check.lookup_failed is False

    @pytest.mark.parametrize(
        "hour,minute,duration,available",
        [
            (10, 0, 60, False),
            (11, 0, 60, True),
            (10, 30, 30, False),
            (9, 0, 90, False),
            (9, 0, 60, True),
        ],
    )
    async def test_overlap_boundaries(self, settings, existing, hour, minute, duration, available):
        """Test identical, back-to-back, contained and containing candidates."""
        guard = ConflictGuard(StubBookingLookup(existing), settings)
        check = await guard.check(lesson_start(hour, minute), duration)

        assert check.available is available
        if not available:
            assert check.conflict.date == lesson_start(10)

    async def test_bookings_on_other_days_ignored(self, settings, existing):
        """Test only the candidate's calendar day is searched."""
        lookup = StubBookingLookup(existing)
        guard = ConflictGuard(lookup, settings)
        other_day = lesson_start(10).replace(day=18)

        assert await guard.check_availability(other_day, 60) is True

    async def test_naive_start_read_as_site_time(self, settings, existing):
        """Test a naive start is compared as Tokyo wall-clock time."""
        guard = ConflictGuard(StubBookingLookup(existing), settings)
        naive = lesson_start(10).replace(tzinfo=None)

        assert await guard.check_availability(naive, 60) is False

    async def test_missing_duration_defaults_to_lesson_length(self, settings, existing):
        """Test a candidate without duration is checked as a 60 minute lesson."""
        guard = ConflictGuard(StubBookingLookup(existing), settings)

        assert await guard.check_availability(lesson_start(9, 30)) is False
        assert await guard.check_availability(lesson_start(9)) is True

    async def test_explicit_window(self, settings, existing):
        """Test an explicit window replaces the calendar day."""
        guard = ConflictGuard(StubBookingLookup(existing), settings)
        window = (lesson_start(12), lesson_start(18))

        check = await guard.check(lesson_start(10), 60, window=window)
        assert check.available is True


@pytest.mark.unit
class TestFailClosed:
    """Test lookup failures never report a slot as available."""

    async def test_persistent_failure_is_unavailable(self, settings):
        """Test a store that never answers makes the slot unavailable."""
        lookup = StubBookingLookup(failures=99)
        guard = ConflictGuard(lookup, settings)

        check = await guard.check(lesson_start(13), 60)

        assert check.available is False
        assert check.lookup_failed is True
        assert check.conflict is None
        assert lookup.calls == settings.lookup_retry_attempts

    async def test_transient_failure_is_retried(self, settings):
        """Test a lookup that recovers within the retry budget succeeds."""
        lookup = StubBookingLookup(failures=2)
        guard = ConflictGuard(lookup, settings)

        assert await guard.check_availability(lesson_start(13), 60) is True
        assert lookup.calls == 3

    async def test_timeout_fails_closed(self, settings):
        """Test a hanging lookup is cut off and the slot reported unavailable."""
        settings = settings.model_copy(update={"lookup_timeout_seconds": 0.01, "lookup_retry_attempts": 2})
        lookup = StubBookingLookup(delay=1.0)
        guard = ConflictGuard(lookup, settings)

        check = await guard.check(lesson_start(13), 60)

        assert check.available is False
        assert check.lookup_failed is True
        assert lookup.calls == 2


@pytest.mark.integration
class TestUnreachableDatabase:
    """Test the guard against a database that refuses connections."""

    async def test_refused_connection_fails_closed(self, settings, unreachable_database):
        """Test connection errors from the driver become an unavailable slot."""
        guard = ConflictGuard(BookingRepository(unreachable_database), settings)

        check = await guard.check(lesson_start(13))

        assert check.available is False
        assert check.lookup_failed is True
        assert await guard.check_availability(lesson_start(13), 60) is False

    async def test_repository_raises_lookup_failure(self, unreachable_database):
        repo = BookingRepository(unreachable_database)

        with pytest.raises(LookupFailureError):
            await repo.get_bookings_by_date_range(lesson_start(12), lesson_start(18))


@pytest.mark.unit
class TestCallWithRetry:
    """Test the retry helper directly."""

    async def test_returns_first_success(self):
        calls = []

        async def operation():
            calls.append(1)
            return "ok"

        assert await call_with_retry(operation, description="test", backoff=0) == "ok"
        assert len(calls) == 1

    async def test_raises_after_attempts(self):
        """Test the last failure is chained onto the raised error."""
        async def operation():
            raise LookupFailureError("down")

        with pytest.raises(LookupFailureError, match="failed after 2 attempts") as exc_info:
            await call_with_retry(operation, description="test", attempts=2, backoff=0)
        assert isinstance(exc_info.value.__cause__, LookupFailureError)

    async def test_other_errors_propagate(self):
        """Test errors other than lookup failures are not retried."""
        calls = []

        async def operation():
            calls.append(1)
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            await call_with_retry(operation, description="test", backoff=0)
        assert len(calls) == 1

"""Tests for the periodic reminder trigger."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from salon_booking.errors import InvalidArgumentError
from salon_booking.scheduling.reminders import ReminderTrigger
from salon_booking.schemas.schedule_schema import BookingStatus, ReminderKind
from tests.conftest import CLIENT, CLIENT_EMAIL, MONDAY, make_booking, make_interval

TUESDAY = MONDAY + timedelta(days=1)


@pytest.fixture
def booking(repository):
    b = make_booking("BK-1", make_interval(10, day=TUESDAY))
    repository.add_booking(b)
    return repository.get_booking("BK-1")


class TestWindows:
    @pytest.mark.asyncio
    async def test_day_before_reminder_sent(self, trigger, repository, booking, email_sender):
        now = booking.interval.start - timedelta(hours=23)

        assert await trigger.process_due(now) == 1

        stored = repository.get_booking("BK-1")
        assert stored.reminder_sent is True
        assert stored.reminder_2h_sent is False
        assert email_sender.recipients() == [CLIENT_EMAIL]

    @pytest.mark.asyncio
    async def test_nothing_due_before_window_opens(self, trigger, booking):
        now = booking.interval.start - timedelta(hours=30)
        assert await trigger.process_due(now) == 0

    @pytest.mark.asyncio
    async def test_window_opens_exactly_at_lead(self, trigger, booking):
        now = booking.interval.start - timedelta(hours=24)
        assert await trigger.process_due(now) == 1

    @pytest.mark.asyncio
    async def test_two_hour_reminder_sent(self, trigger, repository, booking):
        now = booking.interval.start - timedelta(minutes=90)

        assert await trigger.process_due(now) == 1

        stored = repository.get_booking("BK-1")
        assert stored.reminder_2h_sent is True
        # The 24h window closed when the 2h window opened
        assert stored.reminder_sent is False

    @pytest.mark.asyncio
    async def test_both_reminders_over_time(self, trigger, repository, booking):
        start = booking.interval.start
        assert await trigger.process_due(start - timedelta(hours=20)) == 1
        assert await trigger.process_due(start - timedelta(hours=1)) == 1
        stored = repository.get_booking("BK-1")
        assert stored.reminder_sent and stored.reminder_2h_sent

    @pytest.mark.asyncio
    async def test_nothing_due_once_started(self, trigger, booking):
        assert await trigger.process_due(booking.interval.start) == 0

    @pytest.mark.asyncio
    async def test_utc_now_is_accepted(self, trigger, booking):
        now = booking.interval.start.astimezone(timezone.utc) - timedelta(hours=23)
        assert await trigger.process_due(now) == 1

    @pytest.mark.asyncio
    async def test_naive_now_rejected(self, trigger):
        with pytest.raises(InvalidArgumentError):
            await trigger.process_due(datetime(2025, 3, 17, 10))


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_second_cycle_does_not_resend(self, trigger, booking, email_sender):
        now = booking.interval.start - timedelta(hours=23)
        await trigger.process_due(now)
        assert await trigger.process_due(now + timedelta(minutes=5)) == 0
        assert len(email_sender.sent) == 1

    @pytest.mark.asyncio
    async def test_flag_set_even_when_channels_fail(self, trigger, repository, booking, email_sender):
        email_sender.fail = True
        now = booking.interval.start - timedelta(hours=23)

        assert await trigger.process_due(now) == 1
        assert repository.get_booking("BK-1").reminder_sent is True

    @pytest.mark.asyncio
    async def test_dispatch_exception_leaves_flag_unset(
        self, trigger, repository, orchestrator, booking, monkeypatch
    ):
        repository.add_booking(make_booking("BK-2", make_interval(11, day=TUESDAY)))
        real_dispatch = orchestrator.dispatch

        async def flaky_dispatch(event):
            if event.booking.id == "BK-1":
                raise RuntimeError("template store offline")
            return await real_dispatch(event)

        monkeypatch.setattr(orchestrator, "dispatch", flaky_dispatch)
        now = booking.interval.start - timedelta(hours=23)

        assert await trigger.process_due(now) == 1
        assert repository.get_booking("BK-1").reminder_sent is False
        assert repository.get_booking("BK-2").reminder_sent is True

    @pytest.mark.asyncio
    async def test_reschedule_resets_flags(self, trigger, repository, booking):
        await trigger.process_due(booking.interval.start - timedelta(hours=23))
        moved = repository.reschedule_booking("BK-1", make_interval(15, day=TUESDAY))
        assert moved.reminder_sent is False


class TestEligibility:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [BookingStatus.CANCELLED, BookingStatus.NO_SHOW, BookingStatus.COMPLETED],
    )
    async def test_inactive_bookings_skipped(self, trigger, repository, status):
        repository.add_booking(make_booking("BK-X", make_interval(10, day=TUESDAY), status))
        now = make_interval(10, day=TUESDAY).start - timedelta(hours=23)
        assert await trigger.process_due(now) == 0

    @pytest.mark.asyncio
    async def test_pending_booking_reminded(self, trigger, repository):
        repository.add_booking(
            make_booking("BK-P", make_interval(10, day=TUESDAY), BookingStatus.PENDING)
        )
        now = make_interval(10, day=TUESDAY).start - timedelta(hours=23)
        assert await trigger.process_due(now) == 1

    @pytest.mark.asyncio
    async def test_reminder_payload_names_window(self, trigger, booking, tokens, push_backend):
        tokens.register(CLIENT, "tok-client")
        await trigger.process_due(booking.interval.start - timedelta(minutes=90))
        payload = push_backend.calls[0][1]
        assert payload.data["window"] == ReminderKind.TWO_HOURS.value


class TestConfiguration:
    def test_rejects_inverted_leads(self, repository, orchestrator):
        with pytest.raises(ValueError):
            ReminderTrigger(
                repository,
                orchestrator,
                leads={
                    ReminderKind.DAY_BEFORE: timedelta(hours=1),
                    ReminderKind.TWO_HOURS: timedelta(hours=2),
                },
            )

    def test_partial_leads_keep_defaults(self, repository, orchestrator, booking):
        trigger = ReminderTrigger(
            repository, orchestrator, leads={ReminderKind.TWO_HOURS: timedelta(hours=3)}
        )
        start = booking.interval.start
        assert [b.id for b in trigger.due(ReminderKind.TWO_HOURS, start - timedelta(minutes=150))] == ["BK-1"]
        assert [b.id for b in trigger.due(ReminderKind.DAY_BEFORE, start - timedelta(hours=23))] == ["BK-1"]
        assert trigger.due(ReminderKind.DAY_BEFORE, start - timedelta(hours=25)) == []

    def test_rejects_zero_lead(self, repository, orchestrator):
        with pytest.raises(ValueError, match="positive"):
            ReminderTrigger(repository, orchestrator, leads={ReminderKind.TWO_HOURS: timedelta(0)})

    def test_due_lists_bookings_without_sending(self, trigger, booking, email_sender):
        now = booking.interval.start - timedelta(hours=23)
        assert [b.id for b in trigger.due(ReminderKind.DAY_BEFORE, now)] == ["BK-1"]
        assert trigger.due(ReminderKind.TWO_HOURS, now) == []
        assert email_sender.sent == []


class TestRunForever:
    @pytest.mark.asyncio
    async def test_runs_until_stopped(self, trigger, booking):
        stop = asyncio.Event()
        seen: list[datetime] = []
        now = booking.interval.start - timedelta(hours=23)

        def clock() -> datetime:
            seen.append(now)
            stop.set()
            return now

        await asyncio.wait_for(
            trigger.run_forever(interval_seconds=0.01, clock=clock, stop=stop), timeout=2.0
        )
        assert len(seen) == 1

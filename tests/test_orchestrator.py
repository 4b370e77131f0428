"""Tests for NotificationOrchestrator fan-out, fallback and token cleanup."""

import asyncio

import pytest

from salon_booking.notifications.backends import RecordingEmailSender
from salon_booking.notifications.channels import CalendarChannel, EmailChannel, PushChannel
from salon_booking.notifications.orchestrator import (
    ChannelTimeouts,
    NotificationOrchestrator,
    UnsupportedEventError,
)
from salon_booking.notifications.report import summarize
from salon_booking.schemas.notification_schema import (
    BookingCancelled,
    BookingConfirmed,
    BookingRescheduled,
    LifecycleEvent,
    NotificationPayload,
    ReminderDue,
)
from salon_booking.schemas.schedule_schema import Contact, ReminderKind
from tests.conftest import (
    CLIENT,
    CLIENT_EMAIL,
    EMPLOYEE,
    EMPLOYEE_EMAIL,
    TZ,
    make_booking,
    make_interval,
)


def _confirmed(**kwargs) -> BookingConfirmed:
    return BookingConfirmed(booking=make_booking(**kwargs))


class TestConfirmationFanOut:
    @pytest.mark.asyncio
    async def test_all_channels_succeed(self, orchestrator, tokens, email_sender, push_backend):
        tokens.register(CLIENT, "tok-client")
        tokens.register(EMPLOYEE, "tok-employee")

        outcomes = await orchestrator.dispatch(_confirmed())

        assert set(outcomes) == {"email_client", "push_client", "notify_employee", "calendar"}
        assert all(o.success for o in outcomes.values())
        assert email_sender.recipients() == [CLIENT_EMAIL]
        assert sorted(push_backend.tokens_sent()) == ["tok-client", "tok-employee"]
        assert outcomes["notify_employee"].fallback_used is False

    @pytest.mark.asyncio
    async def test_calendar_upsert_returns_external_id(self, orchestrator, calendar_backend):
        outcomes = await orchestrator.dispatch(_confirmed())
        external_id = outcomes["calendar"].external_id
        assert external_id in calendar_backend.events
        body = calendar_backend.events[external_id]
        assert body["start"]["timeZone"] == "America/Guayaquil"

    @pytest.mark.asyncio
    async def test_one_channel_failure_does_not_affect_others(
        self, orchestrator, tokens, email_sender, calendar_backend
    ):
        tokens.register(CLIENT, "tok-client")
        tokens.register(EMPLOYEE, "tok-employee")
        calendar_backend.fail = True

        outcomes = await orchestrator.dispatch(_confirmed())

        assert outcomes["calendar"].success is False
        assert "503" in outcomes["calendar"].error
        assert outcomes["email_client"].success is True
        assert outcomes["push_client"].success is True
        assert outcomes["notify_employee"].success is True
        assert email_sender.recipients() == [CLIENT_EMAIL]

    @pytest.mark.asyncio
    async def test_email_rejection_recorded(self, orchestrator, email_sender, tokens, push_backend):
        tokens.register(CLIENT, "tok-client")
        tokens.register(EMPLOYEE, "tok-employee")
        email_sender.fail = True

        outcomes = await orchestrator.dispatch(_confirmed())

        assert outcomes["email_client"].success is False
        assert outcomes["email_client"].invalidated_targets == []
        assert outcomes["push_client"].success is True
        assert "tok-client" in push_backend.tokens_sent()
        assert outcomes["calendar"].success is True
        assert summarize(outcomes).invalidated_targets == 0

    @pytest.mark.asyncio
    async def test_client_without_tokens_skips_push(self, orchestrator, push_backend, tokens):
        tokens.register(EMPLOYEE, "tok-employee")
        outcomes = await orchestrator.dispatch(_confirmed())
        assert outcomes["push_client"].skipped is True
        assert outcomes["push_client"].success is True
        assert push_backend.tokens_sent() == ["tok-employee"]

    @pytest.mark.asyncio
    async def test_client_without_email_is_skipped_failure(self, orchestrator, contacts, tokens):
        tokens.register(EMPLOYEE, "tok-employee")
        contacts.add(Contact(user_id=CLIENT, name="Walk-in"))
        outcomes = await orchestrator.dispatch(_confirmed())
        assert outcomes["email_client"].success is False
        assert outcomes["email_client"].skipped is True


class TestEmployeeFallback:
    @pytest.mark.asyncio
    async def test_zero_tokens_sends_exactly_one_employee_email(
        self, orchestrator, email_sender, push_backend
    ):
        outcomes = await orchestrator.dispatch(_confirmed())

        employee = outcomes["notify_employee"]
        assert employee.success is True
        assert employee.fallback_used is True
        assert email_sender.recipients().count(EMPLOYEE_EMAIL) == 1
        assert push_backend.calls == []

    @pytest.mark.asyncio
    async def test_unreachable_push_backend_falls_back(
        self, orchestrator, tokens, email_sender, push_backend
    ):
        tokens.register(EMPLOYEE, "tok-employee")
        push_backend.set_available(False)

        outcomes = await orchestrator.dispatch(_confirmed())

        assert outcomes["notify_employee"].fallback_used is True
        assert outcomes["notify_employee"].success is True
        assert EMPLOYEE_EMAIL in email_sender.recipients()
        assert "fallback_reason" in outcomes["notify_employee"].metadata

    @pytest.mark.asyncio
    async def test_transient_push_failure_does_not_fall_back(
        self, orchestrator, tokens, email_sender, push_backend
    ):
        tokens.register(EMPLOYEE, "tok-employee")
        push_backend.failing_tokens.add("tok-employee")

        outcomes = await orchestrator.dispatch(_confirmed())

        assert outcomes["notify_employee"].success is False
        assert outcomes["notify_employee"].fallback_used is False
        assert EMPLOYEE_EMAIL not in email_sender.recipients()
        assert tokens.is_active("tok-employee")

    @pytest.mark.asyncio
    async def test_failed_fallback_email_keeps_fallback_flag(self, orchestrator, email_sender):
        email_sender.unreachable = True
        outcomes = await orchestrator.dispatch(_confirmed())
        assert outcomes["notify_employee"].fallback_used is True
        assert outcomes["notify_employee"].success is False


class TestTokenSelfHealing:
    @pytest.mark.asyncio
    async def test_invalid_tokens_deactivated(self, orchestrator, tokens, push_backend):
        tokens.register(CLIENT, "tok-good")
        tokens.register(CLIENT, "tok-dead")
        push_backend.invalid_tokens.add("tok-dead")

        outcomes = await orchestrator.dispatch(_confirmed())

        assert outcomes["push_client"].success is True
        assert outcomes["push_client"].invalidated_targets == ["tok-dead"]
        assert not tokens.is_active("tok-dead")
        assert tokens.is_active("tok-good")

    @pytest.mark.asyncio
    async def test_invalidated_tokens_excluded_from_future_dispatches(
        self, orchestrator, tokens, push_backend
    ):
        tokens.register(CLIENT, "tok-good")
        tokens.register(CLIENT, "tok-dead")
        push_backend.invalid_tokens.add("tok-dead")

        await orchestrator.dispatch(_confirmed())
        push_backend.calls.clear()
        await orchestrator.dispatch(ReminderDue(booking=make_booking(), kind=ReminderKind.TWO_HOURS))

        assert push_backend.tokens_sent() == ["tok-good"]

    @pytest.mark.asyncio
    async def test_invalid_employee_token_is_pruned_without_fallback(
        self, orchestrator, tokens, push_backend, email_sender
    ):
        tokens.register(EMPLOYEE, "tok-dead")
        push_backend.invalid_tokens.add("tok-dead")

        outcomes = await orchestrator.dispatch(_confirmed())

        assert outcomes["notify_employee"].success is False
        assert outcomes["notify_employee"].fallback_used is False
        assert not tokens.is_active("tok-dead")
        assert EMPLOYEE_EMAIL not in email_sender.recipients()


class TestTimeouts:
    @pytest.mark.asyncio
    async def test_slow_channel_times_out_without_delaying_others(
        self, email_sender, push_backend, calendar_backend, tokens, contacts
    ):
        calendar_backend.delay = 5.0
        orchestrator = NotificationOrchestrator(
            email=EmailChannel(email_sender, "citas@salon.example"),
            push=PushChannel(push_backend),
            calendar=CalendarChannel(calendar_backend),
            tokens=tokens,
            contacts=contacts,
            timeouts=ChannelTimeouts(email=1.0, push=1.0, calendar=0.05),
            tz=TZ,
        )

        outcomes = await asyncio.wait_for(orchestrator.dispatch(_confirmed()), timeout=2.0)

        assert outcomes["calendar"].success is False
        assert "timed out" in outcomes["calendar"].error
        assert outcomes["email_client"].success is True
        assert outcomes["notify_employee"].success is True

    @pytest.mark.asyncio
    async def test_no_retries_on_failure(self, orchestrator, tokens, push_backend):
        tokens.register(CLIENT, "tok-client")
        push_backend.failing_tokens.add("tok-client")
        await orchestrator.dispatch(ReminderDue(booking=make_booking(), kind=ReminderKind.DAY_BEFORE))
        assert push_backend.tokens_sent() == ["tok-client"]


class TestOtherEvents:
    @pytest.mark.asyncio
    async def test_reminder_goes_to_client_only(self, orchestrator, tokens, email_sender, push_backend):
        tokens.register(CLIENT, "tok-client")
        tokens.register(EMPLOYEE, "tok-employee")

        outcomes = await orchestrator.dispatch(
            ReminderDue(booking=make_booking(), kind=ReminderKind.DAY_BEFORE)
        )

        assert set(outcomes) == {"email_client", "push_client"}
        assert email_sender.recipients() == [CLIENT_EMAIL]
        assert push_backend.tokens_sent() == ["tok-client"]
        assert push_backend.calls[0][1].data["window"] == "24h"

    @pytest.mark.asyncio
    async def test_cancel_deletes_calendar_event(self, orchestrator, calendar_backend, email_sender):
        booking = make_booking(calendar_event_id="evt-42")
        outcomes = await orchestrator.dispatch(BookingCancelled(booking=booking))
        assert set(outcomes) == {"calendar"}
        assert outcomes["calendar"].success is True
        assert calendar_backend.deleted == ["evt-42"]
        assert email_sender.sent == []

    @pytest.mark.asyncio
    async def test_cancel_without_calendar_event_is_skipped(self, orchestrator, calendar_backend):
        outcomes = await orchestrator.dispatch(BookingCancelled(booking=make_booking()))
        assert outcomes["calendar"].skipped is True
        assert calendar_backend.deleted == []

    @pytest.mark.asyncio
    async def test_reschedule_updates_existing_event(self, orchestrator, calendar_backend):
        created = await orchestrator.dispatch(_confirmed())
        event_id = created["calendar"].external_id

        moved = make_booking(interval=make_interval(15), calendar_event_id=event_id)
        outcomes = await orchestrator.dispatch(BookingRescheduled(booking=moved))

        assert outcomes["calendar"].external_id == event_id
        assert len(calendar_backend.events) == 1
        assert calendar_backend.events[event_id]["start"]["dateTime"].startswith("2025-03-17T15:00")

    @pytest.mark.asyncio
    async def test_unsupported_event_raises(self, orchestrator):
        with pytest.raises(UnsupportedEventError):
            await orchestrator.dispatch(LifecycleEvent(booking=make_booking()))

    @pytest.mark.asyncio
    async def test_unknown_contact_uses_user_id(self, orchestrator, email_sender):
        booking = make_booking(client_id="cli-unknown")
        outcomes = await orchestrator.dispatch(BookingConfirmed(booking=booking))
        assert outcomes["email_client"].skipped is True
        assert outcomes["calendar"].success is True


class TestStandaloneSender:
    @pytest.mark.asyncio
    async def test_recording_sender_collects_messages(self):
        sender = RecordingEmailSender()
        channel = EmailChannel(sender, "from@salon.example")

        result = await channel.send("to@example.com", NotificationPayload(title="Hi", body="Body"))
        assert result.success is True
        assert sender.recipients() == ["to@example.com"]
        assert str(sender.sent[0]["Subject"]) == "Hi"

    @pytest.mark.asyncio
    async def test_rejected_message_is_a_plain_failure(self):
        sender = RecordingEmailSender(fail=True)
        channel = EmailChannel(sender, "from@salon.example")

        result = await channel.send("to@example.com", NotificationPayload(title="Hi", body="Body"))

        assert result.success is False
        assert "554" in result.error
        assert result.invalid_targets == []

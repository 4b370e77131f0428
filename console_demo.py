"""
Offline console demo: walks bookings through the core with no credentials.

Uses the real availability checker, booking service, orchestrator and
reminder trigger against the in-memory repository, token store and
provider backends. No SMTP relay, no push gateway, no calendar API.
Designed for live demo walkthroughs.

Usage:
    python console_demo.py
    python console_demo.py --scenario race
    python console_demo.py --scenario reminders
"""

import argparse
import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time, timedelta
from typing import Callable

from main import Runtime, build_runtime
from salon_booking.config import settings
from salon_booking.errors import BookingCoreError, ConflictError
from salon_booking.notifications.backends import RecordingEmailSender
from salon_booking.notifications.report import format_outcomes
from salon_booking.schemas.interval import TimeInterval
from salon_booking.schemas.schedule_schema import Absence, Booking, Contact, WorkShift

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

BARBER = "emp-ana"
STYLIST = "emp-luis"
CLIENT = "cli-maria"
DEAD_TOKEN = "tok-maria-old-phone"


def _next_monday(today: date) -> date:
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7)


class ConsoleSession:
    """Scripted walkthroughs of the booking core in the terminal."""

    def __init__(self) -> None:
        self.email = RecordingEmailSender()
        self.runtime: Runtime = build_runtime(email_sender=self.email)
        self.tz = settings.business.tz
        self.monday = _next_monday(datetime.now(self.tz).date())
        self._seed()

    # ------------------------------------------------------------------ #
    # Output
    # ------------------------------------------------------------------ #

    def say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[core]{RESET} {GREEN}{text}{RESET}")

    def warn(self, text: str) -> None:
        print(f"{YELLOW}{BOLD}[core]{RESET} {YELLOW}{text}{RESET}")

    def fail(self, text: str) -> None:
        print(f"{RED}{BOLD}[core]{RESET} {RED}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def request(self, text: str) -> None:
        print(f"\n{BLUE}[request] {RESET}{text}")

    # ------------------------------------------------------------------ #
    # Seed data
    # ------------------------------------------------------------------ #

    def _seed(self) -> None:
        repo = self.runtime.repository
        for day in range(1, 7):
            repo.add_shift(WorkShift(
                employee_id=BARBER, day_of_week=day,
                start_time=time(9, 0), end_time=time(17, 0),
            ))
            repo.add_shift(WorkShift(
                employee_id=BARBER, day_of_week=day,
                start_time=time(13, 0), end_time=time(14, 0), is_break=True,
            ))
        for day in range(1, 6):
            repo.add_shift(WorkShift(
                employee_id=STYLIST, day_of_week=day,
                start_time=time(10, 0), end_time=time(18, 0),
            ))
        repo.add_absence(Absence(
            employee_id=STYLIST,
            start_date=self.monday + timedelta(days=4),
            end_date=self.monday + timedelta(days=4),
            approved=True,
            reason="Medical appointment",
        ))

        contacts = self.runtime.contacts
        contacts.add(Contact(user_id=BARBER, name="Ana Torres", email="ana@barbershot.example"))
        contacts.add(Contact(user_id=STYLIST, name="Luis Vera", email="luis@barbershot.example"))
        contacts.add(Contact(user_id=CLIENT, name="Maria Perez", email="Maria.Perez@Example.com"))

        tokens = self.runtime.tokens
        tokens.register(BARBER, "tok-ana-phone")
        tokens.register(CLIENT, "tok-maria-phone")
        tokens.register(CLIENT, DEAD_TOKEN)
        self.runtime.push_backend.invalid_tokens.add(DEAD_TOKEN)

    def at(self, day_offset: int, hour: int, minute: int = 0, minutes: int = 30) -> TimeInterval:
        start = datetime.combine(self.monday + timedelta(days=day_offset), time(hour, minute), tzinfo=self.tz)
        return TimeInterval(start=start, end=start + timedelta(minutes=minutes))

    # ------------------------------------------------------------------ #
    # Scenarios
    # ------------------------------------------------------------------ #

    def scenario_booking(self) -> None:
        checker = self.runtime.checker
        for label, employee, slot in [
            ("Ana, Monday 10:00", BARBER, self.at(0, 10)),
            ("Ana, Monday 13:15 (break)", BARBER, self.at(0, 13, 15)),
            ("Ana, Monday 16:45 (past shift end)", BARBER, self.at(0, 16, 45)),
            ("Luis, Friday 11:00 (absent)", STYLIST, self.at(4, 11)),
        ]:
            self.request(f"Is {label} free?")
            decision = checker.explain(employee, slot)
            if decision.available:
                self.say(f"{slot} is available")
            else:
                self.warn(f"{slot} unavailable: {decision.reason.value}")

        self.request("Book Maria with Ana, Monday 10:00")
        result = asyncio.run(
            self.runtime.service.book(BARBER, CLIENT, self.at(0, 10), service_name="Haircut")
        )
        self.say(f"Booking {result.booking.id} is {result.booking.status.value}")
        print(format_outcomes(result.notifications))
        self.system_log(f"Emails sent to: {', '.join(self.email.recipients())}")
        self.system_log(f"Dead token still active: {self.runtime.tokens.is_active(DEAD_TOKEN)}")

        self.request("Book Maria with Luis, Tuesday 11:00 (Luis has no device)")
        result = asyncio.run(
            self.runtime.service.book(STYLIST, CLIENT, self.at(1, 11), service_name="Beard trim")
        )
        print(format_outcomes(result.notifications))

        self.request(f"Reschedule {result.booking.id} to Tuesday 15:00")
        moved = asyncio.run(self.runtime.service.reschedule(result.booking.id, self.at(1, 15)))
        self.say(f"Booking moved to {moved.booking.interval}")
        print(format_outcomes(moved.notifications))

        self.request(f"Cancel {moved.booking.id}")
        cancelled = asyncio.run(self.runtime.service.cancel(moved.booking.id, reason="client request"))
        self.say(f"Booking {cancelled.booking.id} is {cancelled.booking.status.value}")
        print(format_outcomes(cancelled.notifications))

        self.request("Is Luis, Tuesday 15:00 free again?")
        self.say(f"available={checker.is_available(STYLIST, self.at(1, 15))}")

    def scenario_race(self) -> None:
        slot = self.at(2, 11)
        self.request(f"Two front desks book Ana at {slot} at the same moment")

        def attempt(booking_id: str) -> str:
            try:
                self.runtime.repository.insert_booking(Booking(
                    id=booking_id, employee_id=BARBER, client_id=CLIENT, interval=slot,
                ))
                return f"{booking_id}: stored"
            except ConflictError as exc:
                return f"{booking_id}: conflict ({exc})"

        with ThreadPoolExecutor(max_workers=2) as pool:
            for line in pool.map(attempt, ["BK-DESK-A", "BK-DESK-B"]):
                (self.say if "stored" in line else self.warn)(line)

    def scenario_reminders(self) -> None:
        result = asyncio.run(
            self.runtime.service.book(BARBER, CLIENT, self.at(3, 9), service_name="Haircut")
        )
        start = result.booking.interval.start
        self.say(f"Booking {result.booking.id} at {start.isoformat()}")
        trigger = self.runtime.trigger
        for label, now in [
            ("30 hours before", start - timedelta(hours=30)),
            ("23 hours before", start - timedelta(hours=23)),
            ("22 hours before (again)", start - timedelta(hours=22)),
            ("90 minutes before", start - timedelta(minutes=90)),
        ]:
            self.request(f"Reminder cycle {label}")
            count = asyncio.run(trigger.process_due(now))
            self.say(f"{count} reminder(s) dispatched")
        stored = self.runtime.repository.get_booking(result.booking.id)
        self.system_log(
            f"Flags: 24h={stored.reminder_sent} 2h={stored.reminder_2h_sent}"
        )

    SCENARIOS: dict[str, str] = {
        "booking": "scenario_booking",
        "race": "scenario_race",
        "reminders": "scenario_reminders",
    }

    def run_scenario(self, scenario: str) -> None:
        """Play one scripted scenario."""
        method_name = self.SCENARIOS.get(scenario)
        if not method_name:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return
        step: Callable[[], None] = getattr(self, method_name)

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  SALON BOOKING CORE - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name} ({settings.business.timezone}){RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

        try:
            step()
        except BookingCoreError as exc:
            self.fail(f"{type(exc).__name__}: {exc}")

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{DIM}  Emails recorded: {len(self.email.sent)}{RESET}")
        print(f"{DIM}  Push calls: {len(self.runtime.push_backend.calls)}{RESET}")
        print(f"{DIM}  Calendar events: {len(self.runtime.calendar_backend.events)}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def run(self) -> None:
        """Play every scenario in order against the same in-memory state."""
        for scenario in self.SCENARIOS:
            self.run_scenario(scenario)


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=list(ConsoleSession.SCENARIOS),
        default=None,
        help="Play a single scripted scenario instead of all of them",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()


if __name__ == "__main__":
    main()

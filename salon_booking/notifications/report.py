"""
Delivery statistics over dispatch outcome maps.

Outcomes are only observable through logs and monitoring, so the
orchestrator and the reminder trigger summarize them here before
logging.
"""

from dataclasses import dataclass, field

from salon_booking.schemas.notification_schema import NotificationOutcome


@dataclass
class DispatchSummary:
    """Counts across one or more outcome maps."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    fallbacks: int = 0
    invalidated_targets: int = 0
    failed_channels: list[str] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0

    def merge(self, other: "DispatchSummary") -> "DispatchSummary":
        return DispatchSummary(
            attempted=self.attempted + other.attempted,
            succeeded=self.succeeded + other.succeeded,
            failed=self.failed + other.failed,
            skipped=self.skipped + other.skipped,
            fallbacks=self.fallbacks + other.fallbacks,
            invalidated_targets=self.invalidated_targets + other.invalidated_targets,
            failed_channels=self.failed_channels + other.failed_channels,
        )

    def describe(self) -> str:
        text = (
            f"{self.succeeded}/{self.attempted} ok, {self.failed} failed, "
            f"{self.skipped} skipped, {self.fallbacks} fallback(s), "
            f"{self.invalidated_targets} token(s) invalidated"
        )
        if self.failed_channels:
            text += f" [failed: {', '.join(self.failed_channels)}]"
        return text


def summarize(outcomes: dict[str, NotificationOutcome]) -> DispatchSummary:
    """Summarize a single dispatch."""
    summary = DispatchSummary()
    for key, outcome in outcomes.items():
        summary.attempted += 1
        if outcome.success:
            summary.succeeded += 1
        else:
            summary.failed += 1
            summary.failed_channels.append(key)
        if outcome.skipped:
            summary.skipped += 1
        if outcome.fallback_used:
            summary.fallbacks += 1
        summary.invalidated_targets += len(outcome.invalidated_targets)
    return summary


def summarize_batch(batch: list[dict[str, NotificationOutcome]]) -> DispatchSummary:
    """Summarize many dispatches, e.g. one reminder cycle."""
    total = DispatchSummary()
    for outcomes in batch:
        total = total.merge(summarize(outcomes))
    return total


def format_outcomes(outcomes: dict[str, NotificationOutcome]) -> str:
    """One line per channel, for console and log output."""
    lines = []
    for key, outcome in outcomes.items():
        if outcome.skipped and outcome.success:
            status = "skipped"
        elif outcome.success:
            status = "ok"
        else:
            status = f"FAILED ({outcome.error})"
        extras = []
        if outcome.fallback_used:
            extras.append("email fallback")
        if outcome.invalidated_targets:
            extras.append(f"invalidated {', '.join(outcome.invalidated_targets)}")
        if outcome.external_id:
            extras.append(f"id={outcome.external_id}")
        suffix = f" [{'; '.join(extras)}]" if extras else ""
        lines.append(f"  {key:<16} {status}{suffix}")
    return "\n".join(lines)

"""Error taxonomy for the booking core.

Only InvalidArgumentError and ConflictError are meant to reach an end
user. Channel errors are turned into NotificationOutcome entries by the
orchestrator and never escape ``dispatch``.
"""


class BookingCoreError(Exception):
    """Base class for all booking-core errors."""


class InvalidArgumentError(BookingCoreError, ValueError):
    """Malformed interval or identifier, rejected before any lookup."""


class NotFoundError(BookingCoreError, LookupError):
    """Unknown employee or booking."""


class ConflictError(BookingCoreError):
    """The requested slot is already taken for this employee."""

    def __init__(self, message: str, conflicting_ids: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.conflicting_ids = conflicting_ids


class ChannelError(BookingCoreError):
    """Base class for notification channel failures."""

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel


class ChannelUnreachableError(ChannelError):
    """The channel backend is structurally down or not configured."""


class ChannelSendFailedError(ChannelError):
    """A single send attempt failed."""

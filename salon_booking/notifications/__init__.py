from salon_booking.notifications.channels import (
    CalendarChannel,
    EmailChannel,
    PushChannel,
    SmtpEmailSender,
)
from salon_booking.notifications.orchestrator import ChannelTimeouts, NotificationOrchestrator
from salon_booking.notifications.report import DispatchSummary, summarize, summarize_batch

__all__ = [
    "NotificationOrchestrator", "ChannelTimeouts",
    "EmailChannel", "PushChannel", "CalendarChannel", "SmtpEmailSender",
    "DispatchSummary", "summarize", "summarize_batch",
]

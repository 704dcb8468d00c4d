"""High-priority email alerts over WhatsApp/SMS.

The notifier decides which classified emails deserve an alert, builds the
message text and hands it to a transport callable ``send(to, message)``.
Transports signal retryable failures with TransientError and
configuration problems with PermanentError.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from src.models import HIGH, ClassificationResult, EmailRecord
from src.retry import PermanentError, with_retry
from src.summarizer import format_alert, format_bulk_alert, summarize
from src.utils import log_action

logger = logging.getLogger("mailsense.notifier")

Transport = Callable[[str, str], object]
Classified = tuple[EmailRecord, ClassificationResult]


@dataclass
class NotificationPreferences:
    enabled: bool = False
    whatsapp_number: str = ""
    high_priority_only: bool = True
    quiet_hours_enabled: bool = False
    quiet_hours_start: str = "22:00"
    quiet_hours_end: str = "08:00"

    @classmethod
    def from_config(cls, cfg) -> "NotificationPreferences":
        return cls(
            enabled=cfg.notifications_enabled,
            whatsapp_number=cfg.whatsapp_number,
            high_priority_only=cfg.high_priority_only,
            quiet_hours_enabled=cfg.quiet_hours_enabled,
            quiet_hours_start=cfg.quiet_hours_start,
            quiet_hours_end=cfg.quiet_hours_end,
        )


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.strip().split(":")
    return int(hours) * 60 + int(minutes)


def is_in_quiet_hours(prefs: NotificationPreferences, now: datetime | None = None) -> bool:
    """True when ``now`` falls inside the quiet window (both ends inclusive).

    A window whose start is later than its end wraps past midnight.
    """
    if not prefs.quiet_hours_enabled:
        return False
    now = now or datetime.now()
    current = now.hour * 60 + now.minute
    start = _minutes(prefs.quiet_hours_start)
    end = _minutes(prefs.quiet_hours_end)
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


def log_transport(to: str, message: str) -> None:
    """Transport used when no messaging provider is wired in: log the alert."""
    logger.info(f"Alert for {to}:\n{message}")


class Notifier:
    def __init__(
        self,
        prefs: NotificationPreferences,
        send: Transport = log_transport,
        logs_dir: Path | None = None,
        summary_model: str | None = None,
        max_attempts: int = 3,
    ):
        self.prefs = prefs
        self.logs_dir = logs_dir
        self.summary_model = summary_model
        self._send = with_retry(max_attempts=max_attempts)(send)
        self._processed: set[str] = set()

    def should_notify(self, email: EmailRecord, result: ClassificationResult,
                      now: datetime | None = None) -> bool:
        if email.id in self._processed:
            return False
        if not self.prefs.enabled:
            return False
        if email.is_read:
            return False
        if self.prefs.high_priority_only and result.priority != HIGH:
            return False
        if is_in_quiet_hours(self.prefs, now):
            logger.info(f"Quiet hours, holding alert for {email.id}")
            return False
        return True

    def process(self, items: list[Classified], now: datetime | None = None) -> list[str]:
        """Alert on every eligible email once. Returns the ids that were alerted.

        Several eligible emails in one call are combined into a single bulk alert.
        """
        eligible = [(e, r) for e, r in items if self.should_notify(e, r, now)]
        if not eligible:
            return []
        logger.info(f"Sending alerts for {len(eligible)} of {len(items)} email(s)")
        if len(eligible) == 1:
            self.notify(*eligible[0])
        else:
            self._deliver(format_bulk_alert(eligible), source="bulk")
        ids = [e.id for e, _ in eligible]
        self._processed.update(ids)
        return ids

    def notify(self, email: EmailRecord, result: ClassificationResult) -> None:
        summary = summarize(email, result.priority, self.summary_model)
        self._deliver(format_alert(email, summary.summary, result.priority), source=email.id)

    def trigger(self, email: EmailRecord, result: ClassificationResult) -> None:
        """Send an alert for ``email`` now, even if one was sent before."""
        if result.priority != HIGH:
            raise ValueError("Only high-priority emails can trigger an alert")
        self._processed.discard(email.id)
        self.notify(email, result)
        self._processed.add(email.id)

    def clear_processed(self) -> None:
        self._processed.clear()

    def _deliver(self, message: str, source: str) -> None:
        if not self.prefs.whatsapp_number:
            raise PermanentError("No WhatsApp number configured")
        try:
            self._send(self.prefs.whatsapp_number, message)
        except Exception as e:
            self._audit("alert_failed", source, str(e))
            raise
        self._audit("alert_sent", source, f"to:{self.prefs.whatsapp_number}")

    def _audit(self, action: str, source: str, result: str) -> None:
        if self.logs_dir is None:
            return
        log_action(
            logs_dir=self.logs_dir,
            actor="notifier",
            action=action,
            source=source,
            result=result,
        )

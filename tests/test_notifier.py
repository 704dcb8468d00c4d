"""Tests for alert gating and delivery."""
import json
from datetime import datetime
from unittest.mock import patch

import pytest

from src.models import ClassificationResult, EmailRecord
from src.notifier import NotificationPreferences, Notifier, is_in_quiet_hours
from src.retry import PermanentError, TransientError

HIGH = ClassificationResult("high", "urgent", ["urgent"], 0.9)
MEDIUM = ClassificationResult("medium", "primary", [], 0.5)
NOON = datetime(2026, 2, 17, 12, 0)


class RecordingTransport:
    def __init__(self, failures=()):
        self.sent = []
        self.failures = list(failures)

    def __call__(self, to, message):
        if self.failures:
            raise self.failures.pop(0)
        self.sent.append((to, message))


def _email(msg_id="m1", subject="Server down", is_read=False):
    return EmailRecord(id=msg_id, subject=subject, sender="Ops <ops@corp.com>",
                       snippet="The production server is down. Please look at it right away.",
                       is_read=is_read)


def _prefs(**overrides):
    values = {"enabled": True, "whatsapp_number": "+15550001111"}
    values.update(overrides)
    return NotificationPreferences(**values)


@pytest.fixture
def transport():
    return RecordingTransport()


# --- quiet hours ---

@pytest.mark.parametrize("start,end,hour,minute,expected", [
    ("22:00", "08:00", 23, 0, True),
    ("22:00", "08:00", 7, 59, True),
    ("22:00", "08:00", 8, 0, True),
    ("22:00", "08:00", 12, 0, False),
    ("09:00", "17:00", 12, 0, True),
    ("09:00", "17:00", 18, 0, False),
])
def test_quiet_hours_window(start, end, hour, minute, expected):
    prefs = _prefs(quiet_hours_enabled=True, quiet_hours_start=start, quiet_hours_end=end)
    assert is_in_quiet_hours(prefs, datetime(2026, 2, 17, hour, minute)) is expected


def test_quiet_hours_disabled():
    assert is_in_quiet_hours(_prefs(), datetime(2026, 2, 17, 23, 0)) is False


# --- gating ---

def test_should_notify_high_priority_unread(transport):
    notifier = Notifier(_prefs(), send=transport)
    assert notifier.should_notify(_email(), HIGH, NOON) is True


def test_should_not_notify_when_disabled(transport):
    notifier = Notifier(_prefs(enabled=False), send=transport)
    assert notifier.should_notify(_email(), HIGH, NOON) is False


def test_should_not_notify_read_email(transport):
    notifier = Notifier(_prefs(), send=transport)
    assert notifier.should_notify(_email(is_read=True), HIGH, NOON) is False


def test_high_priority_only_filters_medium(transport):
    assert Notifier(_prefs(), send=transport).should_notify(_email(), MEDIUM, NOON) is False
    relaxed = Notifier(_prefs(high_priority_only=False), send=transport)
    assert relaxed.should_notify(_email(), MEDIUM, NOON) is True


def test_should_not_notify_in_quiet_hours(transport):
    notifier = Notifier(_prefs(quiet_hours_enabled=True), send=transport)
    assert notifier.should_notify(_email(), HIGH, datetime(2026, 2, 17, 23, 30)) is False


# --- processing ---

def test_process_sends_single_alert(transport):
    notifier = Notifier(_prefs(), send=transport)
    sent = notifier.process([(_email(), HIGH), (_email("m2"), MEDIUM)], NOON)
    assert sent == ["m1"]
    assert len(transport.sent) == 1
    to, message = transport.sent[0]
    assert to == "+15550001111"
    assert "*Sub:* Server down" in message
    assert "_Priority: HIGH_" in message


def test_process_does_not_repeat_alerts(transport):
    notifier = Notifier(_prefs(), send=transport)
    notifier.process([(_email(), HIGH)], NOON)
    assert notifier.process([(_email(), HIGH)], NOON) == []
    assert len(transport.sent) == 1


def test_process_combines_several_emails_into_bulk_alert(transport):
    notifier = Notifier(_prefs(), send=transport)
    items = [(_email(f"m{i}", subject=f"Alert {i}"), HIGH) for i in range(3)]
    assert notifier.process(items, NOON) == ["m0", "m1", "m2"]
    assert len(transport.sent) == 1
    assert "*3 New High-Priority Emails*" in transport.sent[0][1]


def test_process_nothing_eligible(transport):
    notifier = Notifier(_prefs(), send=transport)
    assert notifier.process([(_email(), MEDIUM)], NOON) == []
    assert transport.sent == []


def test_transient_failures_are_retried():
    transport = RecordingTransport(failures=[TransientError("timeout")])
    notifier = Notifier(_prefs(), send=transport)
    with patch("src.retry.time.sleep"):
        assert notifier.process([(_email(), HIGH)], NOON) == ["m1"]
    assert len(transport.sent) == 1


def test_failed_delivery_leaves_email_unprocessed(tmp_path):
    transport = RecordingTransport(failures=[TransientError("down")] * 3)
    notifier = Notifier(_prefs(), send=transport, logs_dir=tmp_path)
    with patch("src.retry.time.sleep"):
        with pytest.raises(TransientError):
            notifier.process([(_email(), HIGH)], NOON)
    assert notifier.should_notify(_email(), HIGH, NOON) is True
    entries = json.loads(next(tmp_path.glob("*.json")).read_text())
    assert entries[-1]["action"] == "alert_failed"


def test_missing_number_is_permanent(transport):
    notifier = Notifier(_prefs(whatsapp_number=""), send=transport)
    with pytest.raises(PermanentError):
        notifier.process([(_email(), HIGH)], NOON)
    assert transport.sent == []


def test_successful_alert_is_audited(tmp_path, transport):
    notifier = Notifier(_prefs(), send=transport, logs_dir=tmp_path)
    notifier.process([(_email(), HIGH)], NOON)
    entries = json.loads(next(tmp_path.glob("*.json")).read_text())
    assert entries[0]["actor"] == "notifier"
    assert entries[0]["action"] == "alert_sent"
    assert entries[0]["source"] == "m1"


# --- manual trigger ---

def test_trigger_resends_processed_email(transport):
    notifier = Notifier(_prefs(), send=transport)
    notifier.process([(_email(), HIGH)], NOON)
    notifier.trigger(_email(), HIGH)
    assert len(transport.sent) == 2


def test_trigger_rejects_non_high_priority(transport):
    notifier = Notifier(_prefs(), send=transport)
    with pytest.raises(ValueError):
        notifier.trigger(_email(), MEDIUM)


def test_clear_processed_allows_new_alert(transport):
    notifier = Notifier(_prefs(), send=transport)
    notifier.process([(_email(), HIGH)], NOON)
    notifier.clear_processed()
    assert notifier.process([(_email(), HIGH)], NOON) == ["m1"]


def test_preferences_from_config():
    from types import SimpleNamespace
    cfg = SimpleNamespace(
        notifications_enabled=True, whatsapp_number="+1", high_priority_only=False,
        quiet_hours_enabled=True, quiet_hours_start="21:00", quiet_hours_end="07:00",
    )
    prefs = NotificationPreferences.from_config(cfg)
    assert prefs.enabled is True
    assert prefs.high_priority_only is False
    assert prefs.quiet_hours_start == "21:00"


def test_bulk_alert_with_medium_mail_is_not_labelled_high(transport):
    notifier = Notifier(_prefs(high_priority_only=False), send=transport)
    notifier.process([(_email("m1"), HIGH), (_email("m2", subject="Notes"), MEDIUM)], NOON)
    message = transport.sent[0][1]
    assert "*2 New Emails*" in message
    assert "HIGH priority" not in message

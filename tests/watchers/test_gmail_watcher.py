import base64
from unittest.mock import MagicMock

import pytest

from src.notifier import NotificationPreferences, Notifier
from src.watchers.gmail_watcher import GmailWatcher, fetch_emails, mark_as_read, parse_message


def _message(msg_id, subject="Test Email", sender="sender@test.com", labels=("INBOX", "UNREAD"), body="Hello World"):
    return {
        "id": msg_id,
        "snippet": body[:20],
        "internalDate": "1771236000000",
        "payload": {
            "headers": [
                {"name": "From", "value": sender},
                {"name": "Subject", "value": subject},
                {"name": "Date", "value": "Mon, 16 Feb 2026 10:00:00 +0000"},
            ],
            "body": {"data": base64.urlsafe_b64encode(body.encode()).decode()},
        },
        "labelIds": list(labels),
    }


@pytest.fixture
def mock_gmail_service():
    service = MagicMock()
    return service


def _serve(service, messages):
    service.users().messages().list.return_value.execute.return_value = {
        "messages": [{"id": m["id"], "threadId": "t"} for m in messages]
    }
    by_id = {m["id"]: m for m in messages}

    def get(userId, id, format):
        request = MagicMock()
        request.execute.return_value = by_id[id]
        return request

    service.users().messages().get.side_effect = get


def test_parse_message_reads_headers_and_body():
    email = parse_message(_message("msg_1"))
    assert email.id == "msg_1"
    assert email.sender == "sender@test.com"
    assert email.subject == "Test Email"
    assert email.body == "Hello World"
    assert email.is_read is False
    assert email.received_at.year == 2026


def test_parse_message_defaults_for_missing_headers():
    email = parse_message({"id": "x", "payload": {}, "labelIds": ["INBOX"]})
    assert email.subject == "No Subject"
    assert email.sender == "Unknown Sender"
    assert email.is_read is True
    assert email.body == ""


def test_parse_message_reads_plain_text_part():
    data = base64.urlsafe_b64encode(b"plain part").decode()
    msg = {
        "id": "multi",
        "payload": {
            "headers": [],
            "parts": [
                {"mimeType": "text/html", "body": {"data": base64.urlsafe_b64encode(b"<b>x</b>").decode()}},
                {"mimeType": "text/plain", "body": {"data": data}},
            ],
        },
    }
    assert parse_message(msg).body == "plain part"


def test_fetch_emails_returns_records(mock_gmail_service):
    _serve(mock_gmail_service, [_message("msg_1"), _message("msg_2")])
    emails = fetch_emails(mock_gmail_service, "is:unread", 10)
    assert [e.id for e in emails] == ["msg_1", "msg_2"]


def test_fetch_emails_no_messages(mock_gmail_service):
    mock_gmail_service.users().messages().list.return_value.execute.return_value = {}
    assert fetch_emails(mock_gmail_service) == []


def test_fetch_emails_list_error_returns_empty(mock_gmail_service):
    mock_gmail_service.users().messages().list.return_value.execute.side_effect = RuntimeError("quota")
    assert fetch_emails(mock_gmail_service) == []


def test_fetch_emails_skips_failed_message(mock_gmail_service):
    _serve(mock_gmail_service, [_message("ok")])
    mock_gmail_service.users().messages().list.return_value.execute.return_value = {
        "messages": [{"id": "ok"}, {"id": "missing"}]
    }
    emails = fetch_emails(mock_gmail_service)
    assert [e.id for e in emails] == ["ok"]


def test_mark_as_read_removes_unread_label(mock_gmail_service):
    assert mark_as_read(mock_gmail_service, "msg_1") is True
    mock_gmail_service.users().messages().modify.assert_called_with(
        userId="me", id="msg_1", body={"removeLabelIds": ["UNREAD"]}
    )


def test_mark_as_read_failure(mock_gmail_service):
    mock_gmail_service.users().messages().modify.return_value.execute.side_effect = RuntimeError("denied")
    assert mark_as_read(mock_gmail_service, "msg_1") is False


def test_watcher_classifies_and_hands_items_to_handler(mock_gmail_service):
    _serve(mock_gmail_service, [
        _message("urgent", subject="URGENT: Server is down", body="Production is down, fix asap today"),
        _message("promo", subject="50% off sale", sender="deals@store.com", body="limited time offer"),
    ])
    handled = []
    watcher = GmailWatcher(gmail_service=mock_gmail_service, handler=handled.extend)
    assert watcher.run_once() == 2
    priorities = {email.id: result.priority for email, result in handled}
    assert priorities == {"urgent": "high", "promo": "low"}


def test_watcher_skips_already_handled_messages(mock_gmail_service):
    _serve(mock_gmail_service, [_message("msg_1")])
    handler = MagicMock()
    watcher = GmailWatcher(gmail_service=mock_gmail_service, handler=handler)
    assert watcher.run_once() == 1
    assert watcher.run_once() == 0
    handler.assert_called_once()


def test_watcher_retries_when_handler_fails(mock_gmail_service):
    """Messages stay unseen when the handler raises, so the next cycle retries them."""
    _serve(mock_gmail_service, [_message("msg_1")])
    handler = MagicMock(side_effect=[RuntimeError("delivery down"), None])
    watcher = GmailWatcher(gmail_service=mock_gmail_service, handler=handler)
    assert watcher.run_once() == 0
    assert watcher.run_once() == 1


def test_watcher_without_handler_counts_items(mock_gmail_service):
    _serve(mock_gmail_service, [_message("msg_1")])
    watcher = GmailWatcher(gmail_service=mock_gmail_service)
    assert watcher.run_once() == 1


def test_watcher_does_not_retry_permanent_handler_failure(mock_gmail_service):
    """A misconfigured notifier is reported once and the messages are not refetched as new."""
    _serve(mock_gmail_service, [_message("msg_1", subject="URGENT: Server is down")])
    notifier = Notifier(NotificationPreferences(enabled=True, whatsapp_number=""))
    watcher = GmailWatcher(gmail_service=mock_gmail_service, handler=notifier.process)
    counts = [watcher.run_once() for _ in range(3)]
    assert counts == [1, 0, 0]


def test_watcher_marks_alerted_messages_read(mock_gmail_service):
    _serve(mock_gmail_service, [_message("msg_1"), _message("msg_2")])
    watcher = GmailWatcher(
        gmail_service=mock_gmail_service,
        handler=lambda items: ["msg_2"],
        mark_read=True,
    )
    assert watcher.run_once() == 2
    mock_gmail_service.users().messages().modify.assert_called_once_with(
        userId="me", id="msg_2", body={"removeLabelIds": ["UNREAD"]}
    )


def test_watcher_leaves_messages_unread_by_default(mock_gmail_service):
    _serve(mock_gmail_service, [_message("msg_1")])
    watcher = GmailWatcher(gmail_service=mock_gmail_service, handler=lambda items: ["msg_1"])
    watcher.run_once()
    mock_gmail_service.users().messages().modify.assert_not_called()

"""Gmail watcher: polls the Gmail API, classifies new mail and hands it on."""
import base64
import logging
from typing import Callable, Iterable

from src.models import ClassificationResult, EmailRecord
from src.priority import classify_batch
from src.retry import PermanentError
from src.rules import DEFAULT_RULES, ClassifierRules

logger = logging.getLogger("mailsense.gmail_watcher")

# A handler may return the ids it acted on; those are marked read when enabled.
Handler = Callable[[list[tuple[EmailRecord, ClassificationResult]]], Iterable[str] | None]


def _decode(data: str) -> str:
    return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace")


def _plain_text_body(payload: dict) -> str:
    if payload.get("body", {}).get("data"):
        return _decode(payload["body"]["data"])
    for part in payload.get("parts", []):
        if part.get("mimeType") == "text/plain" and part.get("body", {}).get("data"):
            return _decode(part["body"]["data"])
    return ""


def parse_message(msg: dict) -> EmailRecord:
    """Turn a Gmail API message resource into an EmailRecord."""
    payload = msg.get("payload", {})
    headers = {h["name"].lower(): h["value"] for h in payload.get("headers", [])}
    labels = msg.get("labelIds", [])
    return EmailRecord(
        id=msg["id"],
        subject=headers.get("subject") or "No Subject",
        sender=headers.get("from") or "Unknown Sender",
        snippet=msg.get("snippet", ""),
        body=_plain_text_body(payload),
        # internalDate is epoch milliseconds; fall back to the Date header.
        date=msg.get("internalDate") or headers.get("date"),
        is_read="UNREAD" not in labels,
        labels=labels,
    )


def fetch_emails(gmail_service, query: str = "is:unread", max_results: int = 50) -> list[EmailRecord]:
    """Fetch and parse messages matching ``query``.

    A failed listing yields an empty list; a message that fails to load is skipped.
    """
    try:
        results = gmail_service.users().messages().list(
            userId="me", q=query, maxResults=max_results
        ).execute()
    except Exception as e:
        logger.error(f"Gmail API error: {e}")
        return []
    emails = []
    for msg_ref in results.get("messages", []):
        try:
            msg = gmail_service.users().messages().get(
                userId="me", id=msg_ref["id"], format="full"
            ).execute()
            emails.append(parse_message(msg))
        except Exception as e:
            logger.error(f"Failed to fetch message {msg_ref['id']}: {e}")
    return emails


def mark_as_read(gmail_service, message_id: str) -> bool:
    """Remove the UNREAD label. Returns False when Gmail rejects the change."""
    try:
        gmail_service.users().messages().modify(
            userId="me", id=message_id, body={"removeLabelIds": ["UNREAD"]}
        ).execute()
        return True
    except Exception as e:
        logger.error(f"Failed to mark {message_id} as read: {e}")
        return False


class GmailWatcher:
    """Polls Gmail and passes each cycle's newly classified mail to a handler.

    Message ids already handed on are remembered for the life of the process
    so a message that stays unread is classified and announced only once.
    """

    def __init__(
        self,
        gmail_service,
        handler: Handler | None = None,
        gmail_filter: str = "is:unread",
        max_results: int = 50,
        check_interval: int = 60,
        rules: ClassifierRules = DEFAULT_RULES,
        workers: int = 1,
        mark_read: bool = False,
    ):
        self.service = gmail_service
        self.handler = handler
        self.gmail_filter = gmail_filter
        self.max_results = max_results
        self.check_interval = check_interval
        self.rules = rules
        self.workers = workers
        self.mark_read = mark_read
        self._seen_ids: set[str] = set()

    def check_for_updates(self) -> list[tuple[EmailRecord, ClassificationResult]]:
        emails = [
            e for e in fetch_emails(self.service, self.gmail_filter, self.max_results)
            if e.id not in self._seen_ids
        ]
        if not emails:
            return []
        results = classify_batch(emails, self.rules, workers=self.workers)
        return list(zip(emails, results))

    def run_once(self) -> int:
        items = self.check_for_updates()
        for email, result in items:
            logger.info(
                f"{result.priority.upper()} ({result.confidence:.2f}) "
                f"{email.subject!r} from {email.sender}"
            )
        handled = None
        if items and self.handler is not None:
            try:
                handled = self.handler(items)
            except PermanentError as e:
                logger.error(f"Handler gave up on {len(items)} email(s): {e}")
            except Exception as e:
                logger.error(f"Handler failed for {len(items)} email(s): {e}")
                return 0
        self._seen_ids.update(email.id for email, _ in items)
        if self.mark_read and handled:
            for message_id in handled:
                mark_as_read(self.service, message_id)
        return len(items)

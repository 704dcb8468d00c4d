"""Email and classification records shared across MailSense."""
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

logger = logging.getLogger("mailsense.models")

HIGH = "high"
MEDIUM = "medium"
LOW = "low"
PRIORITIES = (HIGH, MEDIUM, LOW)


@dataclass
class EmailRecord:
    id: str = ""
    subject: str = ""
    sender: str = ""
    snippet: str = ""
    body: str = ""
    date: datetime | str | int | float | None = None
    is_read: bool = False
    labels: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Body when available, otherwise the Gmail snippet."""
        return self.body or self.snippet

    @property
    def received_at(self) -> datetime | None:
        return parse_date(self.date)

    @classmethod
    def from_dict(cls, data: dict) -> "EmailRecord":
        """Build a record from a JSON-style dict (accepts ``from`` for the sender)."""
        return cls(
            id=str(data.get("id", "")),
            subject=data.get("subject") or "",
            sender=data.get("from") or data.get("sender") or "",
            snippet=data.get("snippet") or "",
            body=data.get("body") or "",
            date=data.get("date"),
            is_read=bool(data.get("is_read", data.get("isRead", False))),
            labels=list(data.get("labels") or []),
        )


@dataclass(frozen=True)
class ClassificationResult:
    priority: str
    reason: str
    keywords: list[str]
    confidence: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ClassificationStats:
    total: int
    high: int
    medium: int
    low: int
    average_confidence: float
    top_keywords: list[str]

    def to_dict(self) -> dict:
        return asdict(self)


def parse_date(value) -> datetime | None:
    """Parse a received timestamp into an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings, RFC 2822 header dates and epoch
    milliseconds (Gmail ``internalDate``). Returns None when the value
    cannot be understood; naive values are taken to be UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.isdigit():
            return parse_date(int(text))
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError, IndexError):
                logger.debug(f"Unparseable email date: {value!r}")
                return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

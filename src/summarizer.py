"""Two-line email summaries and alert text for WhatsApp/SMS delivery."""
import logging
import re
import subprocess
from dataclasses import dataclass

from src.models import HIGH, ClassificationResult, EmailRecord
from src.utils import sender_address, sender_domain

logger = logging.getLogger("mailsense.summarizer")

SUMMARY_TIMEOUT = 60
MAX_LINE_CHARS = 75
MAX_SUBJECT_CHARS = 60
BULK_LIST_LIMIT = 5
BULK_SUBJECT_CHARS = 50

_URGENT = re.compile(r"\b(urgent|asap|emergency|critical|important|deadline|security|alert)\b", re.I)
_ACTION = re.compile(r"\b(meeting|interview|call|appointment|review|approval|confirm|schedule|verify)\b", re.I)

SUMMARY_PROMPT = (
    "Create a clear 2-line WhatsApp summary for this email.\n\n"
    "From: {sender}\nSubject: {subject}\nContent: {content}\n\n"
    "Requirements:\n"
    "- Exactly 2 complete lines, 60-80 characters each, no trailing '...'\n"
    "- First line: the main message or action\n"
    "- Second line: important details or context\n"
    "Return only the 2-line summary."
)


@dataclass(frozen=True)
class EmailSummary:
    sender: str
    subject: str
    summary: str
    priority: str


def extract_company_name(sender: str) -> str:
    """Guess an organisation name from the sender domain (mail.google.com -> Mail)."""
    domain = sender_domain(sender)
    if domain:
        name = domain.split(".")[0]
        return name[:1].upper() + name[1:]
    return sender_address(sender).split("@")[0] or "Unknown"


def display_name(sender: str) -> str:
    """Text before the angle-bracketed address, or the sender unchanged."""
    return sender.split("<")[0].strip().strip('"') or sender


def truncate_subject(subject: str, limit: int = MAX_SUBJECT_CHARS) -> str:
    if len(subject) > limit:
        return subject[:limit - 3] + "..."
    return subject


def _clean(content: str) -> str:
    content = re.sub(r"\[image:.*?\]", "", content, flags=re.I)
    content = re.sub(r"<[^>]*>", "", content)
    return re.sub(r"\s+", " ", content).strip()


def _fit_line(sentence: str) -> str:
    """Cut at a word boundary so the line stays within MAX_LINE_CHARS."""
    sentence = sentence.strip()
    if len(sentence) <= 80:
        return sentence
    words = sentence.split(" ")
    kept = []
    for word in words:
        if len(" ".join(kept + [word])) > MAX_LINE_CHARS:
            break
        kept.append(word)
    return " ".join(kept) if kept else sentence


def basic_summary(content: str) -> str:
    """Local two-line summary used when no model is configured or it fails."""
    text = _clean(content)
    sentences = [s.strip() for s in re.split(r"[.!?]+", text) if len(s.strip()) > 15]

    if len(sentences) >= 2:
        return f"{_fit_line(sentences[0])}\n{_fit_line(sentences[1])}"
    if len(sentences) == 1:
        words = sentences[0].split(" ")
        if len(words) > 8:
            mid = (len(words) + 1) // 2
            return f"{' '.join(words[:mid])}\n{' '.join(words[mid:])}"
        return f"{sentences[0]}\nPlease check your email for complete details"

    lowered = text.lower()
    if "security" in lowered or "alert" in lowered:
        return "Security notification received\nPlease review your account activity and settings"
    if _URGENT.search(text):
        return "Important email requires your attention\nPlease review urgently for required actions"
    if _ACTION.search(text):
        return "Action may be required for this email\nPlease check for dates and deadlines"
    return "Important email received\nPlease check your email for complete information"


def _claude_summary(email: EmailRecord, model: str) -> str:
    prompt = SUMMARY_PROMPT.format(sender=email.sender, subject=email.subject, content=email.text)
    try:
        result = subprocess.run(
            ["claude", "--print", "--model", model, prompt],
            capture_output=True,
            text=True,
            timeout=SUMMARY_TIMEOUT,
        )
    except FileNotFoundError:
        logger.warning("Claude CLI not found, using local summary")
        return ""
    except subprocess.TimeoutExpired:
        logger.warning(f"Summary timed out for {email.id}, using local summary")
        return ""
    if result.returncode != 0:
        logger.warning(f"Summary failed for {email.id}: {result.stderr.strip()}")
        return ""
    lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    return "\n".join(lines[:2])


def summarize(email: EmailRecord, priority: str = "high", model: str | None = None) -> EmailSummary:
    """Summarize an email for an alert, asking Claude first when a model is given."""
    text = _claude_summary(email, model) if model else ""
    return EmailSummary(
        sender=extract_company_name(email.sender),
        subject=truncate_subject(email.subject),
        summary=text or basic_summary(email.text),
        priority=priority.upper(),
    )


def format_alert(email: EmailRecord, summary: str, priority: str) -> str:
    return (
        "*MailSense*\n"
        "_Business Account_\n\n"
        f"*From:* {display_name(email.sender)}\n"
        f"*Sub:* {email.subject}\n\n"
        "*Content:*\n"
        f"{summary}\n\n"
        f"_Priority: {priority.upper()}_"
    )


def format_bulk_alert(items: list[tuple[EmailRecord, ClassificationResult]]) -> str:
    all_high = all(result.priority == HIGH for _, result in items)
    entries = []
    for index, (email, _) in enumerate(items[:BULK_LIST_LIMIT], start=1):
        subject = email.subject[:BULK_SUBJECT_CHARS]
        if len(email.subject) > BULK_SUBJECT_CHARS:
            subject += "..."
        entries.append(f"{index}. *{display_name(email.sender)}*\n   {subject}")
    kind = "High-Priority Emails" if all_high else "Emails"
    message = (
        "*MailSense*\n"
        "_Business Account_\n\n"
        f"*{len(items)} New {kind}*\n\n"
        + "\n\n".join(entries)
    )
    if len(items) > BULK_LIST_LIMIT:
        message += f"\n\n_...and {len(items) - BULK_LIST_LIMIT} more_"
    if all_high:
        message += "\n\n_All emails marked as HIGH priority_"
    return message

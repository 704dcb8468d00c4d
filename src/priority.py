"""Email priority classification based on weighted rules.

Every rule that fires adds to a signed score and records a signal tag.
The final score is mapped onto one of three bands (high, medium, low)
and a band-specific confidence. The classifier keeps no state between
calls; the wall clock is passed in as ``now`` so results are reproducible.
"""
import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from src.models import (
    HIGH,
    LOW,
    MEDIUM,
    PRIORITIES,
    ClassificationResult,
    ClassificationStats,
    EmailRecord,
)
from src.rules import DEFAULT_RULES, ClassifierRules

logger = logging.getLogger("mailsense.priority")

BUSINESS_CAP = 6
PERSONAL_CAP = 3
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.99
TOP_KEYWORD_COUNT = 10

REASON_MULTIPLE_INDICATORS = "Gmail-style important: Multiple high-priority indicators"
REASON_URGENT = "Gmail-style important: Contains urgent keywords or important sender"
REASON_SOCIAL_PROMO = "Social/Promotional: LinkedIn invitations, promotions, or automated content"
REASON_LOW_INDICATORS = "Social/Promotional: Low priority indicators detected"
REASON_PRIMARY = "Primary: Standard email in primary inbox but not marked important"


def _hours_old(email: EmailRecord, now: datetime) -> float | None:
    received = email.received_at
    if received is None:
        return None
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - received).total_seconds() / 3600


def _band(score: int) -> tuple[str, float, str]:
    """Map a score to (priority, confidence, reason). First matching band wins."""
    if score >= 8:
        return HIGH, min(0.95, 0.7 + (score - 8) * 0.05), REASON_MULTIPLE_INDICATORS
    if score >= 4:
        return HIGH, min(0.85, 0.6 + (score - 4) * 0.05), REASON_URGENT
    if score <= -4:
        return LOW, min(0.9, 0.6 + abs(score + 4) * 0.05), REASON_SOCIAL_PROMO
    if score <= -1:
        return LOW, min(0.8, 0.5 + abs(score + 1) * 0.1), REASON_LOW_INDICATORS
    return MEDIUM, max(0.4, min(0.7, 0.5 + abs(score) * 0.05)), REASON_PRIMARY


def classify(
    email: EmailRecord,
    rules: ClassifierRules = DEFAULT_RULES,
    now: datetime | None = None,
) -> ClassificationResult:
    """Classify an email as 'high', 'medium', or 'low' priority.

    Rules are applied in a fixed order so the keyword list is stable:
    social and promotional patterns, time pressure, high-priority terms,
    business and personal context (capped), the first matching sender
    domain, low-priority terms, important senders, reply/forward markers,
    an all-caps subject, message length and finally recency.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    subject = email.subject or ""
    content = f"{subject} {email.text or ''}".lower()
    from_lower = (email.sender or "").lower()

    score = 0
    keywords: list[str] = []
    confidence = 0.5
    reason = ""

    for pattern in rules.social_patterns:
        if pattern in content:
            score -= 4
            keywords.append(f"social: {pattern}")
            confidence += 0.1
            reason = "Social network notification"

    for pattern in rules.promotional_patterns:
        if pattern in content:
            score -= 3
            keywords.append(f"promotional: {pattern}")
            confidence += 0.1
            reason = "Promotional content"

    for keyword in rules.time_urgency_keywords:
        if keyword in content:
            score += 4
            keywords.append(f"time-sensitive: {keyword}")
            confidence += 0.1

    for keyword in rules.high_priority_keywords:
        if keyword in content:
            score += 5 if keyword in rules.elevated_keywords else 3
            keywords.append(keyword)
            confidence += 0.05

    business_score = 0
    for keyword in rules.business_keywords:
        if keyword in content:
            business_score += 2
            keywords.append(f"business: {keyword}")
    score += min(business_score, BUSINESS_CAP)

    personal_score = 0
    for keyword in rules.personal_keywords:
        if keyword in content:
            personal_score += 1
            keywords.append(f"personal: {keyword}")
    score += min(personal_score, PERSONAL_CAP)

    email_domain = from_lower.split("@", 1)[1] if "@" in from_lower else ""
    for domain, weight in rules.domain_importance:
        if domain in email_domain or domain in from_lower:
            score += weight
            keywords.append(f"domain: {domain}")
            confidence += 0.1 if weight > 0 else -0.1
            break

    for keyword in rules.low_priority_keywords:
        if keyword in content:
            score -= 3
            keywords.append(f"low-priority: {keyword}")
            confidence += 0.05

    for sender in rules.important_senders:
        if sender in from_lower:
            score += 3
            keywords.append(f"important sender: {sender}")
            confidence += 0.1

    if "RE:" in subject or "FW:" in subject:
        score += 2
        keywords.append("ongoing conversation")

    trimmed = subject.strip()
    if trimmed == trimmed.upper() and len(trimmed) > 10:
        score += 3
        keywords.append("all caps subject")
        confidence += 0.1

    if len(content) < 50:
        score += 1
        keywords.append("brief message")
    elif len(content) > 1000:
        score += 2
        keywords.append("detailed message")

    hours_old = _hours_old(email, now)
    if hours_old is None:
        logger.debug(f"Skipping recency for {email.id or '<no id>'}: unknown date")
    elif hours_old < 1:
        score += 2
        keywords.append("very recent")
    elif hours_old < 4:
        score += 1
        keywords.append("recent")
    elif hours_old > 72:
        score -= 1

    # The band decides the reported reason and confidence; the running values
    # above are superseded here.
    priority, confidence, reason = _band(score)
    confidence = max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, confidence))

    logger.debug(f"Classified {email.id or '<no id>'}: score={score} priority={priority}")
    return ClassificationResult(
        priority=priority,
        reason=reason,
        keywords=keywords,
        confidence=confidence,
    )


def classify_batch(
    emails: list[EmailRecord],
    rules: ClassifierRules = DEFAULT_RULES,
    now: datetime | None = None,
    workers: int | None = None,
) -> list[ClassificationResult]:
    """Classify each email, returning results in input order."""
    if now is None:
        now = datetime.now(timezone.utc)
    if workers and workers > 1 and len(emails) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda e: classify(e, rules, now), emails))
    return [classify(e, rules, now) for e in emails]


def filter_by_priority(
    emails: list[EmailRecord],
    priority: str,
    rules: ClassifierRules = DEFAULT_RULES,
    now: datetime | None = None,
) -> list[EmailRecord]:
    """Return the emails classified as ``priority``, in their original order."""
    if priority not in PRIORITIES:
        raise ValueError(f"Unknown priority: {priority!r}")
    results = classify_batch(emails, rules, now)
    return [e for e, r in zip(emails, results) if r.priority == priority]


def _sort_key(pair: tuple[EmailRecord, ClassificationResult]):
    received = pair[0].received_at
    return (received is not None, received.timestamp() if received else 0.0)


def group_by_priority(
    emails: list[EmailRecord],
    rules: ClassifierRules = DEFAULT_RULES,
    now: datetime | None = None,
) -> dict[str, list[tuple[EmailRecord, ClassificationResult]]]:
    """Partition emails into priority bands, newest first within each band.

    Emails with an unknown date sort after dated ones.
    """
    groups: dict[str, list[tuple[EmailRecord, ClassificationResult]]] = {p: [] for p in PRIORITIES}
    for email, result in zip(emails, classify_batch(emails, rules, now)):
        groups[result.priority].append((email, result))
    for band in groups.values():
        band.sort(key=_sort_key, reverse=True)
    return groups


def top_keywords(results: list[ClassificationResult], limit: int = TOP_KEYWORD_COUNT) -> list[str]:
    """Most frequent signal tags; ties keep first-seen order."""
    counts = Counter()
    for result in results:
        counts.update(result.keywords)
    # Counter preserves insertion order and sorted() is stable.
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [keyword for keyword, _ in ranked[:limit]]


def aggregate_stats(
    emails: list[EmailRecord],
    rules: ClassifierRules = DEFAULT_RULES,
    now: datetime | None = None,
) -> ClassificationStats:
    """Summarize classifications across a list of emails."""
    results = classify_batch(emails, rules, now)
    total = len(results)
    average = sum(r.confidence for r in results) / total if total else 0.0
    return ClassificationStats(
        total=total,
        high=sum(1 for r in results if r.priority == HIGH),
        medium=sum(1 for r in results if r.priority == MEDIUM),
        low=sum(1 for r in results if r.priority == LOW),
        average_confidence=average,
        top_keywords=top_keywords(results),
    )


def record_feedback(
    email: EmailRecord,
    actual_priority: str,
    rules: ClassifierRules = DEFAULT_RULES,
    now: datetime | None = None,
) -> bool:
    """Compare the predicted band with a user-supplied one. Returns True on agreement."""
    if actual_priority not in PRIORITIES:
        raise ValueError(f"Unknown priority: {actual_priority!r}")
    predicted = classify(email, rules, now)
    if predicted.priority != actual_priority:
        logger.info(
            f"Classification mismatch for {email.id or '<no id>'}: "
            f"predicted {predicted.priority}, actual {actual_priority}"
        )
        return False
    return True

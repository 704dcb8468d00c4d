"""Keyword, sender and domain tables used by the priority classifier."""
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml

logger = logging.getLogger("mailsense.rules")


class RulesError(Exception):
    """Raised when a rules file cannot be turned into a rule bundle."""
    pass


@dataclass(frozen=True)
class ClassifierRules:
    high_priority_keywords: tuple[str, ...] = ()
    elevated_keywords: frozenset[str] = frozenset()
    low_priority_keywords: tuple[str, ...] = ()
    social_patterns: tuple[str, ...] = ()
    promotional_patterns: tuple[str, ...] = ()
    time_urgency_keywords: tuple[str, ...] = ()
    business_keywords: tuple[str, ...] = ()
    personal_keywords: tuple[str, ...] = ()
    important_senders: tuple[str, ...] = ()
    # Ordered; the first matching entry wins.
    domain_importance: tuple[tuple[str, int], ...] = ()


DEFAULT_RULES = ClassifierRules(
    high_priority_keywords=(
        "urgent", "asap", "emergency", "critical", "important", "deadline",
        "interview", "final round", "hr", "human resources", "contract",
        "payment", "invoice", "legal", "security", "alert", "warning",
        "action required", "time sensitive", "medical", "doctor",
        "appointment", "bank", "account", "verification", "confirm",
        "expire", "suspended", "meeting", "call", "conference", "client",
        "customer", "project", "proposal", "review", "approval", "decision",
    ),
    elevated_keywords=frozenset({"urgent", "emergency", "interview"}),
    low_priority_keywords=(
        "newsletter", "unsubscribe", "promotion", "marketing", "advertisement",
        "sale", "offer", "deal", "discount", "spam", "no-reply", "automated",
        "linkedin", "facebook", "twitter", "instagram", "social",
        "invitation to connect", "wants to connect", "viewed your profile",
        "job alert", "recommended for you", "trending", "weekly digest",
        "daily digest", "notification",
    ),
    social_patterns=(
        "wants to connect", "invitation to connect", "viewed your profile",
        "endorsed you", "shared a post", "commented on", "liked your",
        "tagged you", "mentioned you", "friend request", "follow request",
    ),
    promotional_patterns=(
        "% off", "discount", "sale", "deal", "offer", "coupon", "promo",
        "free shipping", "limited time", "act now", "don't miss", "exclusive",
        "special offer", "save money", "best price",
    ),
    time_urgency_keywords=(
        "today", "tomorrow", "this week", "end of day", "eod", "asap",
        "immediately", "now", "quickly", "soon", "expires", "deadline",
        "due date",
    ),
    business_keywords=(
        "meeting", "call", "conference", "presentation", "project", "client",
        "customer", "proposal", "contract", "agreement", "invoice", "payment",
        "budget", "report", "review", "feedback", "approval", "decision",
        "interview", "job", "position", "offer", "salary", "benefits",
    ),
    personal_keywords=(
        "family", "friend", "personal", "birthday", "anniversary", "vacation",
        "holiday", "weekend", "dinner", "lunch", "party", "event",
    ),
    important_senders=(
        "ceo", "manager", "director", "hr", "admin", "support", "team",
        "client", "customer", "partner", "vendor", "interview", "recruiter",
        "hiring", "bank", "payment", "billing", "security", "noreply@google",
        "noreply@microsoft", "noreply@apple",
    ),
    domain_importance=(
        ("gmail.com", 1),
        ("company.com", 3),
        ("work.com", 3),
        ("enterprise.com", 3),
        ("bank", 4),
        ("gov", 4),
        ("edu", 2),
        ("github.com", 1),
        ("stackoverflow.com", 1),
        ("paypal.com", 2),
        ("stripe.com", 2),
        ("linkedin.com", -2),
        ("facebook.com", -3),
        ("twitter.com", -3),
        ("instagram.com", -3),
        ("noreply", -2),
        ("no-reply", -2),
        ("marketing", -3),
        ("newsletter", -3),
        ("promo", -3),
        ("deals", -3),
    ),
)

_LIST_TABLES = {
    f.name for f in fields(ClassifierRules)
    if f.name not in ("elevated_keywords", "domain_importance")
}


def _string_list(name: str, value) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise RulesError(f"'{name}' must be a list of strings")
    return [v.lower() for v in value]


def _domain_table(value) -> tuple[tuple[str, int], ...]:
    """Accept either a mapping (YAML keeps insertion order) or a list of pairs."""
    if isinstance(value, dict):
        pairs = list(value.items())
    elif isinstance(value, list):
        pairs = []
        for entry in value:
            if not isinstance(entry, (list, tuple)) or len(entry) != 2:
                raise RulesError("'domain_importance' entries must be [domain, weight] pairs")
            pairs.append(tuple(entry))
    else:
        raise RulesError("'domain_importance' must be a mapping or a list of pairs")
    table = []
    for domain, weight in pairs:
        if not isinstance(domain, str) or isinstance(weight, bool) or not isinstance(weight, int):
            raise RulesError(f"Invalid domain_importance entry: {domain!r}: {weight!r}")
        table.append((domain.lower(), weight))
    return tuple(table)


def rules_from_dict(data: dict, base: ClassifierRules = DEFAULT_RULES) -> ClassifierRules:
    """Return ``base`` with the tables present in ``data`` replaced."""
    if not isinstance(data, dict):
        raise RulesError("Rules must be a mapping of table name to entries")
    overrides = {}
    for name, value in data.items():
        if name in _LIST_TABLES:
            overrides[name] = tuple(_string_list(name, value))
        elif name == "elevated_keywords":
            overrides[name] = frozenset(_string_list(name, value))
        elif name == "domain_importance":
            overrides[name] = _domain_table(value)
        else:
            raise RulesError(f"Unknown rules table: {name}")
    return replace(base, **overrides)


def load_rules(path: Path | None) -> ClassifierRules:
    """Load rule overrides from a YAML file; no path means the built-in tables."""
    if path is None:
        return DEFAULT_RULES
    path = Path(path)
    if not path.exists():
        raise RulesError(f"Rules file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise RulesError(f"Invalid YAML in {path}: {e}") from e
    rules = rules_from_dict(data)
    logger.info(f"Loaded classifier rules from {path} ({len(data)} table(s) overridden)")
    return rules

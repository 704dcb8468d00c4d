from dataclasses import dataclass
from pathlib import Path
import os

from dotenv import load_dotenv


@dataclass
class Config:
    log_level: str
    logs_dir: Path
    credentials_dir: Path
    gmail_filter: str
    gmail_max_results: int
    gmail_check_interval: int
    rules_path: Path | None
    classify_workers: int
    web_enabled: bool
    web_port: int
    notifications_enabled: bool
    mark_read_after_alert: bool
    high_priority_only: bool
    whatsapp_number: str
    quiet_hours_enabled: bool
    quiet_hours_start: str
    quiet_hours_end: str
    ai_summary_enabled: bool
    summary_model: str


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def load_config() -> Config:
    """Load configuration from environment variables with defaults."""
    load_dotenv()
    rules_path = os.getenv("RULES_PATH", "").strip()
    return Config(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        logs_dir=Path(os.getenv("LOGS_DIR", "./logs")).resolve(),
        credentials_dir=Path(os.getenv("CREDENTIALS_DIR", "./credentials")),
        gmail_filter=os.getenv("GMAIL_FILTER", "is:unread"),
        gmail_max_results=int(os.getenv("GMAIL_MAX_RESULTS", "50")),
        gmail_check_interval=int(os.getenv("GMAIL_CHECK_INTERVAL", "60")),
        rules_path=Path(rules_path).resolve() if rules_path else None,
        classify_workers=int(os.getenv("CLASSIFY_WORKERS", "1")),
        web_enabled=_flag("WEB_ENABLED", "true"),
        web_port=int(os.getenv("WEB_PORT", "8000")),
        notifications_enabled=_flag("NOTIFICATIONS_ENABLED", "false"),
        mark_read_after_alert=_flag("MARK_READ_AFTER_ALERT", "false"),
        high_priority_only=_flag("HIGH_PRIORITY_ONLY", "true"),
        whatsapp_number=os.getenv("WHATSAPP_NUMBER", "").strip(),
        quiet_hours_enabled=_flag("QUIET_HOURS_ENABLED", "false"),
        quiet_hours_start=os.getenv("QUIET_HOURS_START", "22:00"),
        quiet_hours_end=os.getenv("QUIET_HOURS_END", "08:00"),
        ai_summary_enabled=_flag("AI_SUMMARY_ENABLED", "false"),
        summary_model=os.getenv("SUMMARY_MODEL", "claude-sonnet-4-5-20250929"),
    )

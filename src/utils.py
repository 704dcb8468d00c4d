import json
import logging
from datetime import datetime, timezone
from pathlib import Path


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure and return the application logger."""
    logger = logging.getLogger("mailsense")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def log_action(
    logs_dir: Path,
    actor: str,
    action: str,
    source: str,
    result: str,
) -> None:
    """Append a structured log entry to the daily JSON log file."""
    logs_dir.mkdir(parents=True, exist_ok=True)
    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    log_file = logs_dir / f"{today}.json"

    entries = []
    if log_file.exists():
        entries = json.loads(log_file.read_text())

    entries.append({
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "actor": actor,
        "action": action,
        "source": source,
        "result": result,
    })
    log_file.write_text(json.dumps(entries, indent=2))


def sender_address(sender: str) -> str:
    """Return the bare address from 'Name <local@domain>' or the input unchanged."""
    sender = sender.strip()
    if "<" in sender and sender.endswith(">"):
        return sender[sender.rfind("<") + 1:-1].strip()
    return sender


def sender_domain(sender: str) -> str:
    """Return the lowercased domain part of a sender, or '' when there is none."""
    address = sender_address(sender).lower()
    return address.split("@", 1)[1] if "@" in address else ""

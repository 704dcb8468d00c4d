"""Email MCP Server: exposes inbox classification as tools for Claude Code.

This MCP server provides:
- classify_email: Classify a single email given its fields
- classify_inbox: Fetch Gmail messages for a query and classify them
- priority_stats: Priority counts and top signals for a Gmail query

Usage:
    python mcp_servers/email_server.py
"""
import json
import logging
import os
import sys
from pathlib import Path

from mcp.server.fastmcp import FastMCP

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.models import EmailRecord
from src.priority import aggregate_stats, classify, classify_batch
from src.rules import load_rules
from src.watchers.gmail_watcher import fetch_emails

logger = logging.getLogger("mcp.email_server")

mcp = FastMCP("MailSense Email Server")

CREDENTIALS_DIR = Path(os.getenv("CREDENTIALS_DIR", "./credentials"))
RULES_PATH = os.getenv("RULES_PATH") or None


def _get_gmail_service():
    """Lazy-load Gmail service to avoid import-time auth."""
    from src.auth import get_gmail_service
    return get_gmail_service(CREDENTIALS_DIR)


def _rules():
    return load_rules(Path(RULES_PATH) if RULES_PATH else None)


@mcp.tool()
def classify_email(subject: str = "", sender: str = "", snippet: str = "", date: str = "") -> str:
    """Classify one email as high, medium or low priority.

    Args:
        subject: Email subject line
        sender: From header, e.g. 'Jane <jane@company.com>'
        snippet: Body text or Gmail snippet
        date: Received time (ISO-8601 or RFC 2822); empty skips recency scoring
    """
    try:
        email = EmailRecord(subject=subject, sender=sender, snippet=snippet, date=date or None)
        result = classify(email, _rules())
        return json.dumps({"success": True, **result.to_dict()})
    except Exception as e:
        return json.dumps({"success": False, "error": str(e)})


@mcp.tool()
def classify_inbox(query: str = "is:unread", max_results: int = 10) -> str:
    """Fetch Gmail messages matching a query and classify each one.

    Args:
        query: Gmail search query (e.g., 'is:unread', 'from:client@example.com')
        max_results: Maximum number of messages to classify (default 10)
    """
    try:
        emails = fetch_emails(_get_gmail_service(), query, max_results)
        results = classify_batch(emails, _rules())
        return json.dumps({
            "success": True,
            "count": len(emails),
            "emails": [
                {"id": e.id, "from": e.sender, "subject": e.subject, **r.to_dict()}
                for e, r in zip(emails, results)
            ],
        })
    except Exception as e:
        return json.dumps({"success": False, "error": str(e)})


@mcp.tool()
def priority_stats(query: str = "is:unread", max_results: int = 50) -> str:
    """Summarize priorities for the Gmail messages matching a query.

    Args:
        query: Gmail search query
        max_results: Maximum number of messages to include (default 50)
    """
    try:
        emails = fetch_emails(_get_gmail_service(), query, max_results)
        stats = aggregate_stats(emails, _rules())
        return json.dumps({"success": True, **stats.to_dict()})
    except Exception as e:
        return json.dumps({"success": False, "error": str(e)})


if __name__ == "__main__":
    mcp.run()

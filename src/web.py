"""FastAPI JSON API behind the MailSense dashboard."""
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from src.models import PRIORITIES, EmailRecord
from src.priority import aggregate_stats, classify, classify_batch, group_by_priority
from src.rules import DEFAULT_RULES, ClassifierRules
from src.watchers.gmail_watcher import fetch_emails

app = FastAPI(title="MailSense", version="1.0.0")

# Set by create_app()
_gmail_service = None
_rules: ClassifierRules = DEFAULT_RULES
_gmail_filter = "is:unread"
_max_results = 50


class EmailIn(BaseModel):
    id: str = ""
    subject: str = ""
    sender: str = Field("", alias="from")
    snippet: str = ""
    body: str = ""
    date: datetime | str | int | None = None
    is_read: bool = Field(False, alias="isRead")

    model_config = {"populate_by_name": True}

    def to_record(self) -> EmailRecord:
        return EmailRecord(
            id=self.id,
            subject=self.subject,
            sender=self.sender,
            snippet=self.snippet,
            body=self.body,
            date=self.date,
            is_read=self.is_read,
        )


def create_app(
    gmail_service=None,
    rules: ClassifierRules = DEFAULT_RULES,
    gmail_filter: str = "is:unread",
    max_results: int = 50,
) -> FastAPI:
    """Configure the FastAPI app with its Gmail client and rule tables."""
    global _gmail_service, _rules, _gmail_filter, _max_results
    _gmail_service = gmail_service
    _rules = rules
    _gmail_filter = gmail_filter
    _max_results = max_results
    return app


def _email_json(email: EmailRecord) -> dict:
    received = email.received_at
    return {
        "id": email.id,
        "subject": email.subject,
        "from": email.sender,
        "snippet": email.snippet,
        "date": received.isoformat() if received else None,
        "isRead": email.is_read,
        "labels": email.labels,
    }


# Gmail calls block, so the routes that reach the inbox are plain defs and run
# in the threadpool.
def _inbox() -> list[EmailRecord]:
    if _gmail_service is None:
        raise HTTPException(status_code=503, detail="Gmail is not connected")
    return fetch_emails(_gmail_service, _gmail_filter, _max_results)


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "gmail_connected": _gmail_service is not None,
    }


@app.post("/api/classify")
async def classify_one(email: EmailIn):
    """Classify a single email record."""
    return classify(email.to_record(), _rules).to_dict()


@app.post("/api/classify/batch")
async def classify_many(emails: list[EmailIn]):
    """Classify a list of email records; results follow the request order."""
    records = [e.to_record() for e in emails]
    return {"results": [r.to_dict() for r in classify_batch(records, _rules)]}


@app.post("/api/stats")
async def stats_for(emails: list[EmailIn]):
    return aggregate_stats([e.to_record() for e in emails], _rules).to_dict()


@app.get("/api/emails")
def list_emails(priority: str | None = None):
    """Fetch the inbox, classify it and optionally keep a single priority band."""
    if priority is not None and priority not in PRIORITIES:
        raise HTTPException(status_code=422, detail=f"Unknown priority: {priority}")
    emails = _inbox()
    items = []
    for email, result in zip(emails, classify_batch(emails, _rules)):
        if priority is None or result.priority == priority:
            items.append({**_email_json(email), **result.to_dict()})
    return {"count": len(items), "emails": items}


@app.get("/api/emails/grouped")
def grouped_emails():
    groups = group_by_priority(_inbox(), _rules)
    return {
        band: [{**_email_json(e), **r.to_dict()} for e, r in pairs]
        for band, pairs in groups.items()
    }

"""Gmail OAuth 2.0 authentication for the dashboard."""
import logging
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

logger = logging.getLogger("mailsense.auth")
# modify covers reading plus clearing the UNREAD label.
SCOPES = ["https://www.googleapis.com/auth/gmail.modify"]
TOKEN_FILE = "token.json"
CLIENT_SECRET_FILE = "client_secret.json"


def load_credentials(credentials_dir: Path) -> Credentials:
    """Return valid credentials, refreshing or running the consent flow as needed."""
    credentials_dir.mkdir(parents=True, exist_ok=True)
    token_path = credentials_dir / TOKEN_FILE
    client_secret_path = credentials_dir / CLIENT_SECRET_FILE

    creds = None
    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)
    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        logger.info("Gmail access token expired, refreshing")
        creds.refresh(Request())
    else:
        if not client_secret_path.exists():
            raise FileNotFoundError(
                f"Missing {client_secret_path}. Create an OAuth client (Desktop app) "
                f"in Google Cloud Console with the Gmail API enabled and save its JSON there."
            )
        logger.info("No usable Gmail token, opening browser for consent")
        flow = InstalledAppFlow.from_client_secrets_file(str(client_secret_path), SCOPES)
        creds = flow.run_local_server(port=0)
    token_path.write_text(creds.to_json())
    logger.info(f"Gmail token stored at {token_path}")
    return creds


def get_gmail_service(credentials_dir: Path):
    """Build an authenticated Gmail v1 API client."""
    creds = load_credentials(credentials_dir)
    return build("gmail", "v1", credentials=creds, cache_discovery=False)

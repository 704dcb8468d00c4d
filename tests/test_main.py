"""Tests for the entry point's web dashboard thread."""
import logging
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import main
from src.rules import DEFAULT_RULES

CFG = SimpleNamespace(
    credentials_dir=Path("credentials"),
    gmail_filter="is:unread",
    gmail_max_results=25,
    web_port=8123,
)


@patch("uvicorn.Server")
@patch("uvicorn.Config")
@patch("src.web.create_app")
@patch("main.get_gmail_service")
def test_web_thread_builds_its_own_gmail_client(mock_service, mock_create_app, mock_config, mock_server):
    """The dashboard gets a Gmail client of its own rather than the poller's."""
    main.start_web_dashboard(DEFAULT_RULES, CFG, logging.getLogger("test"))
    mock_service.assert_called_once_with(CFG.credentials_dir)
    mock_create_app.assert_called_once_with(
        gmail_service=mock_service.return_value,
        rules=DEFAULT_RULES,
        gmail_filter="is:unread",
        max_results=25,
    )
    mock_server.return_value.run.assert_called_once()


@patch("uvicorn.Server")
@patch("uvicorn.Config")
@patch("src.web.create_app")
@patch("main.get_gmail_service")
def test_web_thread_without_gmail(mock_service, mock_create_app, mock_config, mock_server):
    main.start_web_dashboard(DEFAULT_RULES, CFG, logging.getLogger("test"), connect_gmail=False)
    mock_service.assert_not_called()
    assert mock_create_app.call_args.kwargs["gmail_service"] is None

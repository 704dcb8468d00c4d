"""MailSense: main entry point."""
import logging
import threading
import time
import sys

from src.config import load_config
from src.utils import setup_logging
from src.auth import get_gmail_service
from src.notifier import NotificationPreferences, Notifier
from src.rules import RulesError, load_rules
from src.watchers.gmail_watcher import GmailWatcher


def start_web_dashboard(rules, cfg, logger: logging.Logger, connect_gmail: bool = True):
    """Serve the FastAPI dashboard API (blocking; run in a thread).

    The web thread builds its own Gmail client; discovery clients must not be
    shared between threads.
    """
    import uvicorn
    from src.web import create_app

    gmail_service = get_gmail_service(cfg.credentials_dir) if connect_gmail else None
    app = create_app(
        gmail_service=gmail_service,
        rules=rules,
        gmail_filter=cfg.gmail_filter,
        max_results=cfg.gmail_max_results,
    )
    logger.info(f"Web dashboard starting at http://localhost:{cfg.web_port}")
    config = uvicorn.Config(app, host="0.0.0.0", port=cfg.web_port, log_level="warning")
    uvicorn.Server(config).run()


def main():
    cfg = load_config()
    logger = setup_logging(cfg.log_level)
    try:
        rules = load_rules(cfg.rules_path)
    except RulesError as e:
        logger.error(f"Invalid classifier rules: {e}")
        sys.exit(1)

    dashboard_only = "--dashboard-only" in sys.argv

    gmail_service = None
    if not dashboard_only:
        try:
            gmail_service = get_gmail_service(cfg.credentials_dir)
            logger.info("Gmail authenticated successfully")
        except FileNotFoundError as e:
            logger.error(str(e))
            logger.error(
                "\n=== SETUP REQUIRED ===\n"
                "1. Go to https://console.cloud.google.com/\n"
                "2. Create a project and enable the Gmail API\n"
                "3. Create OAuth 2.0 credentials (Desktop app)\n"
                f"4. Save the JSON as {cfg.credentials_dir / 'client_secret.json'}\n"
                "5. Run this script again\n"
                "\nTIP: Run 'python main.py --dashboard-only' to classify posted emails without Gmail.\n"
            )
            sys.exit(1)

    if cfg.web_enabled:
        web_thread = threading.Thread(
            target=start_web_dashboard,
            args=(rules, cfg, logger, not dashboard_only),
            daemon=True,
        )
        web_thread.start()

    if dashboard_only:
        logger.info("Running in dashboard-only mode (no Gmail required)")
        logger.info("Press Ctrl+C to stop")
        try:
            while True:
                time.sleep(5)
        except KeyboardInterrupt:
            logger.info("MailSense shutting down. Goodbye!")
        return

    if cfg.notifications_enabled and not cfg.whatsapp_number:
        logger.warning("NOTIFICATIONS_ENABLED is set but WHATSAPP_NUMBER is empty, no alerts will be sent")
    notifier = Notifier(
        NotificationPreferences.from_config(cfg),
        logs_dir=cfg.logs_dir,
        summary_model=cfg.summary_model if cfg.ai_summary_enabled else None,
    )
    watcher = GmailWatcher(
        gmail_service=gmail_service,
        handler=notifier.process,
        gmail_filter=cfg.gmail_filter,
        max_results=cfg.gmail_max_results,
        check_interval=cfg.gmail_check_interval,
        rules=rules,
        workers=cfg.classify_workers,
        mark_read=cfg.mark_read_after_alert,
    )
    alerts = "on" if cfg.notifications_enabled else "off"
    logger.info(
        f"MailSense started, checking Gmail every {cfg.gmail_check_interval}s "
        f"(filter: {cfg.gmail_filter}, alerts: {alerts})"
    )
    logger.info("Press Ctrl+C to stop")
    try:
        while True:
            count = watcher.run_once()
            if count > 0:
                logger.info(f"Gmail: {count} new email(s) classified")
            time.sleep(cfg.gmail_check_interval)
    except KeyboardInterrupt:
        logger.info("MailSense shutting down. Goodbye!")


if __name__ == "__main__":
    main()

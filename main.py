"""
Telegram assistant entry point.

Starts long polling against the Telegram Bot API. Rasa must be reachable
at RASA_URL; ERPNext is optional and enabled when its URL and API
credentials are set.

Usage:
    Telegram bot: python main.py
    Console mode: python main.py console
"""

import logging
import sys

from erpbot.config import settings

logger = logging.getLogger(__name__)


def _run_bot_mode() -> None:
    """Poll Telegram for updates until interrupted (requires TELEGRAM_TOKEN)."""
    from erpbot.app import build_application

    if not settings.telegram.token:
        logger.error("TELEGRAM_TOKEN is not set, cannot start the bot")
        sys.exit(1)

    application = build_application(settings)
    logger.info("Starting %s", settings.bot_name)
    try:
        application.run_polling()
    except KeyboardInterrupt:
        pass
    logger.info("Bot stopped.")


def _run_console_mode() -> None:
    """Start the offline console demo (no Telegram, Rasa or ERPNext required)."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    session.run()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode()
    else:
        _run_bot_mode()

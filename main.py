"""
Booking bot entry point.

Console mode runs the offline chat demo with the reminder trigger working
in the background on the same store, so reminders for appointments booked
in the chat are delivered into the same conversation.

Usage:
    Console mode:   python main.py console
    Scenario:       python main.py console --scenario booking
"""

import logging
import sys

from petcare.config import settings

logger = logging.getLogger(__name__)


def _run_console_mode() -> None:
    """Start the offline console demo (no gateway required)."""
    from console_demo import main as console_main

    logger.info("Starting console mode for '%s'", settings.business.name)
    console_main()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        sys.argv.pop(1)
    _run_console_mode()

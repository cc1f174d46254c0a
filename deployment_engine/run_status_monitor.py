# deployment_engine/run_status_monitor.py
"""Run the status monitor on its own (development)."""

import logging
import os
import signal
import sys
import threading

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from deployment_engine.config import settings
from deployment_engine.container import status_monitor

# Setup logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

_stop_requested = threading.Event()


def _handle_signal(signum, frame):
    logger.info(f"Received signal {signum}, shutting down")
    _stop_requested.set()


def main():
    """Main entry point."""
    logger.info("Starting Status Monitor (Development Mode)")

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    try:
        status_monitor.start()
        while not _stop_requested.wait(1.0):
            pass
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        status_monitor.stop()


if __name__ == "__main__":
    main()

from __future__ import annotations

import logging
import sys

from . import config, notifier
from .health import HealthServer
from .monitor import StockMonitor
from .schedule import Scheduler, TimeGate


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main() -> None:
    """Validate config, start the health server and run the scheduler."""
    setup_logging()
    logger = logging.getLogger(__name__)
    try:
        config.validate()
    except RuntimeError as e:
        logger.error("%s", e)
        sys.exit(2)

    if notifier.is_configured():
        logger.info("Twilio client configured for WhatsApp.")
    else:
        logger.warning("Twilio credentials not fully configured. Notifications will be disabled.")

    if config.ENABLE_HEALTH_SERVER:
        HealthServer(config.HEALTH_HOST, config.PORT).start()
    else:
        logger.info("Health server disabled.")

    gate = TimeGate.from_config()
    monitor = StockMonitor(gate=gate)

    logger.info("Initializing Grow A Garden Stock Notifier...")
    logger.info("Monitoring for keywords: %s", ", ".join(config.KEYWORDS))
    logger.info("Stock source: %s (%s)", config.STOCK_SOURCE, config.STOCK_URL.split("?")[0])
    logger.info("Notified items are marked %s.", config.NOTIFY_MARK_POLICY.replace("_", " "))

    scheduler = Scheduler(monitor.run_cycle, gate, poll_interval=config.SCHEDULER_INTERVAL_SECONDS)
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted; exiting.")
        scheduler.stop()


if __name__ == "__main__":
    main()

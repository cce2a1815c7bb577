#!/usr/bin/env python3
"""
One-off stock fetch for checking the source and proxy settings.

Fetches once, logs what is in stock and which items match the keyword
list.  Never sends notifications.

    python -m garden_stock_notifier.probe
"""

import logging
import sys

from . import config
from .dedupe import NotifiedSet
from .main import setup_logging
from .matcher import find_new_matches
from .scraper import CATEGORY_ORDER, fetch_stock_snapshot

logger = logging.getLogger(__name__)


def run_probe() -> int:
    logger.info("--- Starting manual stock probe ---")
    snapshot = fetch_stock_snapshot()
    if snapshot is None:
        logger.error("Failed to fetch stock data. Check the log above for the cause.")
        return 1

    for label in CATEGORY_ORDER:
        names = [item.name for item in snapshot.get(label)]
        logger.info("%s (%d): %s", label, len(names), ", ".join(names) or "-")

    matches = find_new_matches(snapshot, config.KEYWORDS, NotifiedSet())
    if matches:
        logger.info(
            "IN STOCK: %s",
            ", ".join(f"{m.name} ({m.category})" for m in matches),
        )
    else:
        logger.info("Connection worked, but no monitored items are currently in stock.")
    logger.info("--- Probe finished ---")
    return 0


def main() -> None:
    setup_logging()
    sys.exit(run_probe())


if __name__ == "__main__":
    main()

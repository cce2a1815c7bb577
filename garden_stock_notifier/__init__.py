"""
Grow a Garden stock notifier package.

This package contains modules for scraping the game's shop stock, matching
it against a keyword watch-list, deduplicating alerts per stock refresh,
notifying WhatsApp via Twilio and scheduling the checks.  See README.md
for details.
"""

__all__ = [
    "config",
    "dedupe",
    "health",
    "main",
    "matcher",
    "monitor",
    "notifier",
    "probe",
    "schedule",
    "scraper",
    "signature",
    "utils",
]

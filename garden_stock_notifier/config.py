"""Configuration loader.

Reads environment variables and `.env` to configure the notifier.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


# "NAME='value'" for every numeric setting that failed to parse; validate()
# reports them instead of running on the default.
UNPARSABLE: List[str] = []


def _env_int(name: str, default: int) -> int:
    value = _get_env(name)
    try:
        return int(value) if value is not None else default
    except ValueError:
        UNPARSABLE.append(f"{name}={value!r}")
        return default


def _env_float(name: str, default: float) -> float:
    value = _get_env(name)
    try:
        return float(value) if value is not None else default
    except ValueError:
        UNPARSABLE.append(f"{name}={value!r}")
        return default


def _get_list(name: str, default: str = "") -> List[str]:
    raw = _get_env(name, default) or ""
    return [s.strip() for s in raw.split(",") if s.strip()]


def _get_int_list(name: str, default: str) -> List[int]:
    out: List[int] = []
    for s in _get_list(name, default):
        try:
            out.append(int(s))
        except ValueError:
            # Kept as an out-of-range sentinel so validate() reports it.
            out.append(-1)
    return out


# ---- Schedule ----------------------------------------------------------------

# Minutes past the hour at which a stock check fires.
TARGET_MINUTES: List[int] = _get_int_list(
    "TARGET_MINUTES", "2,6,11,16,21,26,31,36,41,46,51,56"
)

# Second of the minute at which a stock check fires.
TARGET_SECOND: int = _env_int("TARGET_SECOND", 30)

# IANA timezone used for the schedule and quiet hours.
TIMEZONE: str = _get_env("TIMEZONE", "Asia/Jerusalem") or "Asia/Jerusalem"

# Hours (24h) during which alerts are computed but not delivered.
QUIET_HOURS_START: int = _env_int("QUIET_HOURS_START", 0)
QUIET_HOURS_END: int = _env_int("QUIET_HOURS_END", 9)

# Upper bound on how long the scheduler sleeps between clock checks.
SCHEDULER_INTERVAL_SECONDS: float = _env_float("SCHEDULER_INTERVAL_SECONDS", 1.0)

# ---- Watch-list --------------------------------------------------------------

# Case-insensitive substrings to look for in item names. Order matters:
# the first matching keyword is the one reported.
KEYWORDS: List[str] = _get_list(
    "KEYWORDS",
    "Sugar Apple,Feijoa,Loquat,Prickly Pear,Bell Pepper,"
    "Kiwi,Pineapple,Bug Egg,Lightning Rod,Master Sprinkler",
)

# ---- Stock source ------------------------------------------------------------

HTML_STOCK_URL = "https://vulcanvalues.com/grow-a-garden/stock"
JSON_STOCK_URL = (
    "https://growagarden.gg/api/ws/stocks.getAll?batch=1&input="
    "%7B%220%22%3A%7B%22json%22%3Anull%2C%22meta%22%3A%7B%22values%22%3A"
    "%5B%22undefined%22%5D%7D%7D%7D"
)

# "html" scrapes the public stock page, "json" reads the site API.
STOCK_SOURCE: str = (_get_env("STOCK_SOURCE", "html") or "html").strip().lower()

STOCK_URL: str = _get_env("STOCK_URL") or (
    JSON_STOCK_URL if STOCK_SOURCE == "json" else HTML_STOCK_URL
)

REQUEST_TIMEOUT_SECONDS: float = _env_float("REQUEST_TIMEOUT_SECONDS", 15.0)

# Optional outbound proxy: http(s)://user:pass@host:port or socks5://host:port
PROXY_URL: Optional[str] = _get_env("PROXY_URL") or None

# ---- Twilio (WhatsApp) -------------------------------------------------------

TWILIO_ACCOUNT_SID: Optional[str] = _get_env("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN: Optional[str] = _get_env("TWILIO_AUTH_TOKEN")
TWILIO_WHATSAPP_SANDBOX_NUMBER: Optional[str] = _get_env("TWILIO_WHATSAPP_SANDBOX_NUMBER")
YOUR_WHATSAPP_NUMBER: Optional[str] = _get_env("YOUR_WHATSAPP_NUMBER")
TWILIO_API_BASE: str = _get_env("TWILIO_API_BASE", "https://api.twilio.com/2010-04-01")

SEND_MAX_ATTEMPTS: int = _env_int("SEND_MAX_ATTEMPTS", 3)

# When items are recorded as notified for the current stock epoch:
#   before_send   - as soon as they are matched (a failed send is not retried)
#   after_success - only once delivery succeeded or quiet hours suppressed it
NOTIFY_MARK_POLICY: str = (_get_env("NOTIFY_MARK_POLICY", "before_send") or "before_send").strip().lower()

# ---- Health endpoint ---------------------------------------------------------

ENABLE_HEALTH_SERVER: bool = _parse_bool(_get_env("ENABLE_HEALTH_SERVER", "true"), True)
HEALTH_HOST: str = _get_env("HEALTH_HOST", "0.0.0.0") or "0.0.0.0"
PORT: int = _env_int("PORT", 3000)

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO") or "INFO"

STOCK_SOURCES = ("html", "json")
MARK_POLICIES = ("before_send", "after_success")
PROXY_SCHEMES = ("http", "https", "socks4", "socks4a", "socks5", "socks5h")


# ---- Validation --------------------------------------------------------------

def twilio_configured() -> bool:
    return all(
        (TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_WHATSAPP_SANDBOX_NUMBER, YOUR_WHATSAPP_NUMBER)
    )


def validate() -> None:
    """Validate configuration, raising RuntimeError listing every problem.

    Missing Twilio credentials are not an error: sending is disabled and
    matches are only logged.
    """
    problems: List[str] = [f"{entry} is not a number" for entry in UNPARSABLE]

    if not TARGET_MINUTES:
        problems.append("TARGET_MINUTES must list at least one minute")
    bad_minutes = [m for m in TARGET_MINUTES if not 0 <= m <= 59]
    if bad_minutes:
        problems.append("TARGET_MINUTES must be integers 0-59")
    if not 0 <= TARGET_SECOND <= 59:
        problems.append(f"TARGET_SECOND must be 0-59 (got {TARGET_SECOND})")

    for name, hour in (("QUIET_HOURS_START", QUIET_HOURS_START), ("QUIET_HOURS_END", QUIET_HOURS_END)):
        if not 0 <= hour <= 23:
            problems.append(f"{name} must be 0-23 (got {hour})")

    try:
        ZoneInfo(TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        problems.append(f"TIMEZONE {TIMEZONE!r} is not a known IANA timezone")

    if not 0 < SCHEDULER_INTERVAL_SECONDS <= 1:
        problems.append("SCHEDULER_INTERVAL_SECONDS must be > 0 and <= 1")

    if not KEYWORDS:
        problems.append("KEYWORDS must list at least one keyword")

    if STOCK_SOURCE not in STOCK_SOURCES:
        problems.append(f"STOCK_SOURCE must be one of {', '.join(STOCK_SOURCES)}")

    if NOTIFY_MARK_POLICY not in MARK_POLICIES:
        problems.append(f"NOTIFY_MARK_POLICY must be one of {', '.join(MARK_POLICIES)}")

    if REQUEST_TIMEOUT_SECONDS <= 0:
        problems.append("REQUEST_TIMEOUT_SECONDS must be positive")

    if SEND_MAX_ATTEMPTS < 1:
        problems.append("SEND_MAX_ATTEMPTS must be at least 1")

    if PROXY_URL:
        parsed = urlparse(PROXY_URL)
        if parsed.scheme not in PROXY_SCHEMES or not parsed.hostname:
            problems.append("PROXY_URL must look like http://host:port or socks5://host:port")

    if problems:
        raise RuntimeError("Invalid configuration: " + "; ".join(problems))


__all__ = [
    # Schedule
    "TARGET_MINUTES",
    "TARGET_SECOND",
    "TIMEZONE",
    "QUIET_HOURS_START",
    "QUIET_HOURS_END",
    "SCHEDULER_INTERVAL_SECONDS",
    # Watch-list
    "KEYWORDS",
    # Source
    "STOCK_SOURCE",
    "STOCK_URL",
    "HTML_STOCK_URL",
    "JSON_STOCK_URL",
    "REQUEST_TIMEOUT_SECONDS",
    "PROXY_URL",
    # Twilio
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TWILIO_WHATSAPP_SANDBOX_NUMBER",
    "YOUR_WHATSAPP_NUMBER",
    "TWILIO_API_BASE",
    "SEND_MAX_ATTEMPTS",
    "NOTIFY_MARK_POLICY",
    # Health
    "ENABLE_HEALTH_SERVER",
    "HEALTH_HOST",
    "PORT",
    "LOG_LEVEL",
    # Helpers
    "twilio_configured",
    "validate",
]

"""Date formatting for chat-facing text."""

import logging
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def format_date(
    value: datetime,
    timezone: str,
    include_year: bool = False,
    include_timezone_name: bool = False,
) -> str:
    """
    Render a timestamp the way German chat clients show it: "17.10., 14:03".

    Falls back to ISO 8601 if the timezone name is unknown.
    """
    try:
        local = value.astimezone(ZoneInfo(timezone))
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {timezone!r}, falling back to ISO format")
        return value.isoformat()

    date_part = local.strftime("%d.%m.%Y" if include_year else "%d.%m.")
    text = f"{date_part}, {local.strftime('%H:%M')}"
    if include_timezone_name:
        text = f"{text} {local.tzname()}"
    return text

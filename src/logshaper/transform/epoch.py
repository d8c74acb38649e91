"""Built-in replacement that turns date-time stamps into Unix epoch seconds.

A replacement rule whose ``RegexString`` is exactly :data:`DATE_TIME_PATTERN`
is not template-substituted; each match is rewritten as the epoch second it
denotes (UTC), which is shorter to store and trivially sortable.
"""
from __future__ import annotations

import calendar
import re
from datetime import datetime

DATE_TIME_PATTERN = r"(\d{4}-\d{2}-\d{2}[ -]\d{2}:\d{2}:\d{2})"

_FORMAT = "%Y-%m-%d %H:%M:%S"


def date_time_to_epoch(match: re.Match[str]) -> str:
    """``re.sub`` callable: ``2023-10-07 12:00:00`` -> ``1696680000``.

    Both the space and the dash separator between date and time are accepted.
    Text that looks like a date-time but is not one (``2023-13-45 ...``) is
    left unchanged.
    """
    text = match.group(0)
    try:
        dt = datetime.strptime(f"{text[:10]} {text[11:]}", _FORMAT)
    except ValueError:
        return text
    return str(calendar.timegm(dt.timetuple()))

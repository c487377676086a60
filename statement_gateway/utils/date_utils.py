"""Date manipulation utilities"""

import re
from datetime import date
from typing import Optional

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_strict_iso_date(value: object) -> Optional[date]:
    """Parse a YYYY-MM-DD string into a calendar date, None if malformed or impossible"""
    if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None

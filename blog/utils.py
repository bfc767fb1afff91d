"""Utility functions"""

from math import ceil
from datetime import datetime
from typing import Optional
from babel.dates import format_date, get_timezone

from blog.richtext import as_text

WORDS_PER_MINUTE = 200


def format_datetime(
    dt: Optional[datetime], lc: str = "pt_BR", tz: str = "America/Sao_Paulo"
) -> Optional[str]:
    """convert timestamp to medium formatted date in the given locale and timezone,
    with abbreviated month names written without a period (25 de mar de 2021)"""
    if dt is None:
        return None
    local = dt.astimezone(get_timezone(tz))
    month = format_date(local, format="MMM", locale=lc)
    return format_date(local, format="medium", locale=lc).replace(month, month.rstrip("."))


def count_words(text: str) -> int:
    return len(text.split())


def reading_time(sections) -> int:
    """Estimated reading time in minutes, rounded up per section."""
    return sum(
        ceil(count_words(as_text(section.body)) / WORDS_PER_MINUTE)
        for section in sections
    )

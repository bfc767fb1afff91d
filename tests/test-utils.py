"""Test utils"""

import pytest  # noqa: F401
import iso8601

from blog.schema import Section
from blog.utils import count_words, format_datetime, reading_time


def body(words: int) -> tuple:
    return ({"type": "paragraph", "text": " ".join(["palavra"] * words), "spans": []},)


def test_format_datetime_pt_br():
    "medium date in brazilian portuguese"
    dt = iso8601.parse_date("2021-03-25T19:27:35+0000")
    assert format_datetime(dt) == "25 de mar de 2021"


def test_format_datetime_month_without_period():
    "abbreviated months are written without a period"
    dt = iso8601.parse_date("2021-05-10T15:00:00+0000")
    assert format_datetime(dt) == "10 de mai de 2021"
    assert "." not in format_datetime(iso8601.parse_date("2021-09-10T15:00:00+0000"))


def test_format_datetime_uses_timezone():
    "date is taken in the display timezone"
    dt = iso8601.parse_date("2021-03-26T01:00:00+0000")
    assert format_datetime(dt, tz="America/Sao_Paulo") == "25 de mar de 2021"
    assert format_datetime(dt, tz="UTC") == "26 de mar de 2021"


def test_format_datetime_none():
    "unpublished posts have no date"
    assert format_datetime(None) is None


def test_count_words_whitespace_runs():
    "whitespace runs separate words"
    assert count_words("  one\ttwo \n\n three ") == 3
    assert count_words("") == 0


def test_reading_time_exact_minute():
    "200 words read in one minute"
    assert reading_time([Section(heading="a", body=body(200))]) == 1


def test_reading_time_rounds_up():
    "201 words take two minutes"
    assert reading_time([Section(heading="a", body=body(201))]) == 2


def test_reading_time_empty_section():
    "empty sections take no time"
    assert reading_time([Section(heading="a", body=())]) == 0
    assert reading_time([]) == 0


def test_reading_time_sums_sections():
    "each section is rounded up on its own"
    sections = [
        Section(heading="a", body=body(10)),
        Section(heading="b", body=body(10)),
    ]
    assert reading_time(sections) == 2


def test_reading_time_counts_every_block():
    "all blocks of a body count"
    section = Section(heading="a", body=body(150) + body(100))
    assert reading_time([section]) == 2

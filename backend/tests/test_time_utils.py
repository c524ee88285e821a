"""
Tests for date parsing of spreadsheet and JSON cells.
"""

from datetime import date, datetime

import pytest

from hpledger.time_utils import parse_date


class TestParseDate:

    @pytest.mark.parametrize("value, expected", [
        ("2026-03-01", date(2026, 3, 1)),
        ("2026-03-01T10:30:00Z", date(2026, 3, 1)),
        (datetime(2026, 3, 1, 9, 0), date(2026, 3, 1)),
        (date(2026, 3, 1), date(2026, 3, 1)),
    ])
    def test_accepted_forms(self, value, expected):
        assert parse_date(value) == expected

    @pytest.mark.parametrize("value", [None, "", "  ", "next week", "2026-03-01junk", "2026-02-30"])
    def test_unparseable_is_none(self, value):
        assert parse_date(value) is None

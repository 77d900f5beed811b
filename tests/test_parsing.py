"""Tests for parsing scraped bet-history text."""

from datetime import date, datetime

import pytest

from betsync.browser.parsing import (
    RowParser,
    clean_text,
    dedupe_by_bet_id,
    filter_by_date,
    parse_amount,
    parse_currency,
    parse_datetime,
    parse_odds,
    parse_recent_datetime,
    parse_status,
)
from betsync.schemas import BetHistoryItem, BetStatus


@pytest.mark.parametrize(
    'text,expected',
    [
        ('  Lakers   -3.5\n', 'Lakers -3.5'),
        ('   ', None),
        (None, None),
    ],
)
def test_clean_text(text, expected):
    assert clean_text(text) == expected


@pytest.mark.parametrize(
    'text,expected',
    [
        ('$1,234.50', 1234.5),
        ('-12', -12.0),
        ('(12.00)', -12.0),
        ('-$25.00', -25.0),
        ('USD 100', 100.0),
        ('', None),
        ('n/a', None),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize(
    'text,expected',
    [
        ('$10.00', 'USD'),
        ('€5', 'EUR'),
        ('£2.50', 'GBP'),
        ('10 CAD', 'CAD'),
        ('10.00', None),
    ],
)
def test_parse_currency(text, expected):
    assert parse_currency(text) == expected


@pytest.mark.parametrize(
    'text,expected',
    [
        ('1.91', 1.91),
        ('+150', 2.5),
        ('-200', 1.5),
        ('5/2', 3.5),
        ('0.5', None),
        ('evens', None),
    ],
)
def test_parse_odds(text, expected):
    assert parse_odds(text) == expected


@pytest.mark.parametrize(
    'text,expected',
    [
        ('Won', BetStatus.WON),
        ('WINNER', BetStatus.WON),
        ('Lost', BetStatus.LOST),
        ('Cancelled', BetStatus.VOID),
        ('Push', BetStatus.VOID),
        ('Cashed Out', BetStatus.CASHOUT),
        ('Pending', BetStatus.PENDING),
        ('???', None),
        ('', None),
    ],
)
def test_parse_status(text, expected):
    assert parse_status(text) == expected


class TestParseDatetime:
    """Test timestamp parsing across formats."""

    def test_first_matching_format_wins(self):
        parsed = parse_datetime('03/15/2024 7:30 PM', ['%Y-%m-%d', '%m/%d/%Y %I:%M %p'])
        assert parsed == datetime(2024, 3, 15, 19, 30)

    def test_yearless_format_uses_default_year(self):
        parsed = parse_datetime('02/29 1:05 AM', ['%m/%d %I:%M %p'], default_year=2024)
        assert parsed == datetime(2024, 2, 29, 1, 5)

    def test_yearless_format_defaults_to_current_year(self):
        parsed = parse_datetime('01/02', ['%m/%d'])
        assert parsed.year == date.today().year

    def test_unparsable(self):
        assert parse_datetime('yesterday', ['%m/%d/%Y']) is None
        assert parse_datetime(None, ['%m/%d/%Y']) is None


class TestParseRecentDatetime:
    """Test year inference for month/day timestamps."""

    def test_same_year_as_anchor(self):
        parsed = parse_recent_datetime(
            '03/15 7:30 PM', ['%m/%d %I:%M %p'], date(2024, 3, 31)
        )
        assert parsed == datetime(2024, 3, 15, 19, 30)

    def test_date_after_anchor_is_previous_year(self):
        parsed = parse_recent_datetime('12/30', ['%m/%d'], date(2024, 1, 5))
        assert parsed == datetime(2023, 12, 30)

    def test_anchor_day_itself(self):
        parsed = parse_recent_datetime('01/05', ['%m/%d'], date(2024, 1, 5))
        assert parsed == datetime(2024, 1, 5)

    def test_unparsable(self):
        assert parse_recent_datetime('soon', ['%m/%d'], date(2024, 1, 5)) is None


class TestRowParser:
    """Test RowParser warnings and item construction."""

    def test_unparsable_fields_become_warnings(self):
        parser = RowParser('sports411', row_label='row 3')
        item = parser.build(
            bet_id='1001',
            stake=parser.amount('stake', 'abc'),
            odds=parser.odds('odds', '+150'),
        )

        assert item.stake is None
        assert item.odds == 2.5
        assert parser.warnings == ["row 3: could not parse stake from 'abc'"]

    def test_empty_fields_are_not_warnings(self):
        parser = RowParser('sports411', row_label='row 1')
        parser.amount('stake', '')
        parser.timestamp('placed at', None, ['%m/%d'])
        assert parser.warnings == []

    def test_build_defaults_and_cleans(self):
        parser = RowParser('betonline', row_label='row 1')
        item = parser.build(bet_id=' 77 ', selection='  Over\n 210.5 ', status=None)

        assert item.status == BetStatus.PENDING
        assert item.bet_id == '77'
        assert item.selection == 'Over 210.5'
        assert item.site_id == 'betonline'


def test_dedupe_keeps_first_occurrence_and_unidentified_items():
    items = [
        BetHistoryItem(bet_id='1', stake=10),
        BetHistoryItem(bet_id='2'),
        BetHistoryItem(bet_id='1', stake=99),
        BetHistoryItem(),
        BetHistoryItem(),
    ]

    unique = dedupe_by_bet_id(items)

    assert [item.bet_id for item in unique] == ['1', '2', None, None]
    assert unique[0].stake == 10


class TestFilterByDate:
    """Test client-side date range filtering."""

    @pytest.fixture
    def items(self):
        return [
            BetHistoryItem(bet_id='early', placed_at=datetime(2024, 3, 1, 12)),
            BetHistoryItem(bet_id='mid', placed_at=datetime(2024, 3, 10, 23, 59)),
            BetHistoryItem(bet_id='late', placed_at=datetime(2024, 3, 20)),
            BetHistoryItem(bet_id='undated'),
        ]

    def test_no_bounds_keeps_everything(self, items):
        assert filter_by_date(items, None, None) == items

    def test_inclusive_range(self, items):
        kept = filter_by_date(items, date(2024, 3, 10), date(2024, 3, 20))
        assert [item.bet_id for item in kept] == ['mid', 'late', 'undated']

    def test_datetime_bounds(self, items):
        kept = filter_by_date(items, None, datetime(2024, 3, 10, 8))
        assert [item.bet_id for item in kept] == ['early', 'mid', 'undated']

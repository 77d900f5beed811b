"""
Parsing of scraped bet-history text into ``BetHistoryItem`` fields.

Every parser returns None instead of raising when the text cannot be
understood. ``RowParser`` wraps them so a record keeps its parsable fields
and the unparsable ones are reported as warnings rather than dropping the
whole record.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Iterable

from betsync.schemas import BetHistoryItem, BetStatus

_WHITESPACE = re.compile(r'\s+')
_AMOUNT = re.compile(r'-?\d[\d,]*(?:\.\d+)?|-?\.\d+')
_AMERICAN_ODDS = re.compile(r'^[+-]\d{3,}$')
_FRACTIONAL_ODDS = re.compile(r'^(\d+)\s*/\s*(\d+)$')

_CURRENCY_SYMBOLS = {'$': 'USD', '€': 'EUR', '£': 'GBP', '₦': 'NGN'}
_CURRENCY_CODE = re.compile(r'\b([A-Z]{3})\b')

_STATUS_KEYWORDS: list[tuple[BetStatus, tuple[str, ...]]] = [
    (BetStatus.CASHOUT, ('cash out', 'cashout', 'cashed out')),
    (BetStatus.VOID, ('void', 'cancel', 'push', 'refund', 'no action')),
    (BetStatus.WON, ('won', 'win', 'winner')),
    (BetStatus.LOST, ('lost', 'loss', 'lose', 'loser')),
    (BetStatus.PENDING, ('pending', 'open', 'accepted', 'unsettled', 'running')),
]


def clean_text(text: Any) -> str | None:
    """Collapse whitespace; empty strings become None."""
    if text is None:
        return None
    cleaned = _WHITESPACE.sub(' ', str(text)).strip()
    return cleaned or None


def parse_amount(text: Any) -> float | None:
    """Parse a money amount such as ``$1,234.50``, ``-12`` or ``(12.00)``."""
    cleaned = clean_text(text)
    if not cleaned:
        return None
    match = _AMOUNT.search(cleaned)
    if not match:
        return None
    try:
        value = float(match.group(0).replace(',', ''))
    except ValueError:
        return None
    if cleaned.startswith('(') and cleaned.endswith(')'):
        value = -abs(value)
    elif cleaned.startswith('-') and value > 0:
        value = -value
    return value


def parse_currency(text: Any) -> str | None:
    """Detect the currency of an amount string."""
    cleaned = clean_text(text)
    if not cleaned:
        return None
    for symbol, code in _CURRENCY_SYMBOLS.items():
        if symbol in cleaned:
            return code
    match = _CURRENCY_CODE.search(cleaned)
    return match.group(1) if match else None


def parse_odds(text: Any) -> float | None:
    """
    Parse odds into decimal form.

    Accepts decimal (``1.91``), American (``+150``, ``-200``) and fractional
    (``5/2``) notation.
    """
    cleaned = clean_text(text)
    if not cleaned:
        return None
    cleaned = cleaned.replace(' ', '')

    if _AMERICAN_ODDS.match(cleaned):
        american = int(cleaned)
        if american > 0:
            return round(1 + american / 100, 4)
        return round(1 + 100 / abs(american), 4)

    fractional = _FRACTIONAL_ODDS.match(cleaned)
    if fractional:
        numerator, denominator = (int(g) for g in fractional.groups())
        if denominator == 0:
            return None
        return round(1 + numerator / denominator, 4)

    try:
        value = float(cleaned)
    except ValueError:
        return None
    return value if value >= 1.0 else None


def parse_status(text: Any) -> BetStatus | None:
    """Map a site's status wording onto ``BetStatus``."""
    cleaned = clean_text(text)
    if not cleaned:
        return None
    lowered = cleaned.lower()
    for status, keywords in _STATUS_KEYWORDS:
        if any(re.search(rf'\b{re.escape(k)}', lowered) for k in keywords):
            return status
    return None


def parse_datetime(
    text: Any,
    formats: Iterable[str],
    default_year: int | None = None,
) -> datetime | None:
    """
    Parse a timestamp with the first matching ``strptime`` format.

    Formats without a year get ``default_year`` (current year when None).
    """
    cleaned = clean_text(text)
    if not cleaned:
        return None
    year = default_year or date.today().year
    for fmt in formats:
        value = cleaned
        if '%Y' not in fmt and '%y' not in fmt:
            value, fmt = f'{year} {cleaned}', f'%Y {fmt}'
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def parse_recent_datetime(
    text: Any,
    formats: Iterable[str],
    anchor: date,
) -> datetime | None:
    """
    Parse a year-less timestamp as its latest occurrence on or before ``anchor``.

    Sites that print only month and day list bets placed up to the end of
    the viewed range, so a date later than ``anchor`` belongs to the year
    before.
    """
    value = parse_datetime(text, formats, default_year=anchor.year)
    if value is not None and value.date() <= anchor:
        return value
    return parse_datetime(text, formats, default_year=anchor.year - 1)


class RowParser:
    """
    Builds one ``BetHistoryItem`` while recording unparsable fields.

    Example:
        >>> parser = RowParser('sports411', row_label='ticket 1001')
        >>> item = parser.build(
        ...     bet_id='1001',
        ...     stake=parser.amount('stake', '$25.00'),
        ...     status=parser.status('status', 'Won'),
        ... )
        >>> parser.warnings
        []
    """

    def __init__(self, site_id: str, row_label: str):
        self.site_id = site_id
        self.row_label = row_label
        self.warnings: list[str] = []

    def _check(self, field: str, raw: Any, value: Any) -> Any:
        if value is None and clean_text(raw):
            self.warnings.append(
                f'{self.row_label}: could not parse {field} from {clean_text(raw)!r}'
            )
        return value

    def amount(self, field: str, raw: Any) -> float | None:
        return self._check(field, raw, parse_amount(raw))

    def odds(self, field: str, raw: Any) -> float | None:
        return self._check(field, raw, parse_odds(raw))

    def status(self, field: str, raw: Any) -> BetStatus | None:
        return self._check(field, raw, parse_status(raw))

    def timestamp(
        self,
        field: str,
        raw: Any,
        formats: Iterable[str],
        default_year: int | None = None,
    ) -> datetime | None:
        return self._check(field, raw, parse_datetime(raw, formats, default_year))

    def recent_timestamp(
        self,
        field: str,
        raw: Any,
        formats: Iterable[str],
        anchor: date,
    ) -> datetime | None:
        return self._check(field, raw, parse_recent_datetime(raw, formats, anchor))

    def build(self, **fields: Any) -> BetHistoryItem:
        """Create the item; a None status falls back to pending."""
        if fields.get('status') is None:
            fields['status'] = BetStatus.PENDING
        text_fields = ('sport', 'league', 'event', 'bet_type', 'selection', 'bet_id')
        for name in text_fields:
            if name in fields:
                fields[name] = clean_text(fields[name])
        return BetHistoryItem(site_id=self.site_id, **fields)


def dedupe_by_bet_id(items: list[BetHistoryItem]) -> list[BetHistoryItem]:
    """Drop repeated bet ids, keeping the first occurrence and source order."""
    seen: set[str] = set()
    unique: list[BetHistoryItem] = []
    for item in items:
        if item.bet_id:
            if item.bet_id in seen:
                continue
            seen.add(item.bet_id)
        unique.append(item)
    return unique


def filter_by_date(
    items: list[BetHistoryItem],
    date_from: date | None,
    date_to: date | None,
) -> list[BetHistoryItem]:
    """Keep items placed within ``[date_from, date_to]``.

    Items without a placement timestamp are kept, since they cannot be
    ruled out.
    """
    if date_from is None and date_to is None:
        return list(items)
    if isinstance(date_from, datetime):
        date_from = date_from.date()
    if isinstance(date_to, datetime):
        date_to = date_to.date()
    kept = []
    for item in items:
        if item.placed_at is None:
            kept.append(item)
            continue
        placed = item.placed_at.date()
        if date_from and placed < date_from:
            continue
        if date_to and placed > date_to:
            continue
        kept.append(item)
    return kept

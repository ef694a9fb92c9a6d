"""
Card supply feed (ccsupply.xyz CSV).

Fetches the published Card_Supply.csv and turns it into an ordered list of
SupplyRecord values. The feed is not schema-guaranteed, so rows that do not
look like a card are dropped instead of failing the whole parse.

Expected columns (header line is discarded):
    card, name, total supply, burned, remaining, inactive, active
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Union

import requests

from logger import setup_logger
from supply_config import FEED_TIMEOUT_SECONDS, REQUEST_HEADERS, SUFFIXED_CARD_IDS, SUPPLY_FEED_URL

logger = setup_logger('supply_feed')

CardId = Union[int, str]

MIN_FIELDS = 7
MAX_CARD_ID_DIGITS = 9

_CARD_ID_PATTERN = re.compile(r"^([0-9]+)([a-z]*)$")


class FetchError(Exception):
    """Raised when the supply feed cannot be downloaded."""
    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Failed to fetch supply feed from {url}: {message}")


@dataclass(frozen=True)
class SupplyRecord:
    card_num: CardId
    name: str
    total_supply: int = 0
    burned: int = 0
    remaining: int = 0
    inactive: int = 0
    active: int = 0
    wrapped: int = 0

    @property
    def card_key(self) -> str:
        return str(self.card_num)

    def with_wrapped(self, wrapped: int) -> SupplyRecord:
        return replace(self, wrapped=max(0, int(wrapped or 0)))

    def to_json(self) -> dict:
        return {
            'cardNum': self.card_num,
            'name': self.name,
            'totalSupply': self.total_supply,
            'burned': self.burned,
            'remaining': self.remaining,
            'inactive': self.inactive,
            'active': self.active,
            'wrapped': self.wrapped,
        }

    @classmethod
    def from_json(cls, data: dict) -> SupplyRecord:
        return cls(
            card_num=data['cardNum'],
            name=data['name'],
            total_supply=data.get('totalSupply', 0),
            burned=data.get('burned', 0),
            remaining=data.get('remaining', 0),
            inactive=data.get('inactive', 0),
            active=data.get('active', 0),
            wrapped=data.get('wrapped', 0),
        )


def card_sort_key(card_num: CardId) -> tuple[int, str]:
    """
    Display order for card ids: numeric ascending, a suffixed edition
    (e.g. "17b") directly after its base number.
    """
    match = _CARD_ID_PATTERN.match(str(card_num).strip().lower())
    if not match:
        return (0, str(card_num))
    return (int(match.group(1)), match.group(2))


def parse_card_id(value: str) -> CardId | None:
    """Parse the card column. Returns None for anything that is not a card id."""
    token = value.strip()
    if token.lower() in SUFFIXED_CARD_IDS:
        return token.lower()
    if not (token.isascii() and token.isdigit()) or len(token) > MAX_CARD_ID_DIGITS:
        return None
    number = int(token)
    return number if number > 0 else None


def _parse_count(value: str) -> int:
    """Parse a count column; blank, non-numeric and negative values become 0."""
    txt = value.strip()
    if not txt:
        return 0
    try:
        number = int(txt)
    except ValueError:
        try:
            number = int(float(txt))
        except (ValueError, OverflowError):
            return 0
    return number if number > 0 else 0


def parse_row(line: str) -> SupplyRecord | None:
    values = line.split(',')
    if len(values) < MIN_FIELDS:
        return None

    card_num = parse_card_id(values[0])
    name = values[1].strip()
    if card_num is None or not name:
        return None

    return SupplyRecord(
        card_num=card_num,
        name=name,
        total_supply=_parse_count(values[2]),
        burned=_parse_count(values[3]),
        remaining=_parse_count(values[4]),
        inactive=_parse_count(values[5]),
        active=_parse_count(values[6]),
    )


def parse_supply_csv(raw_text: str) -> list[SupplyRecord]:
    """
    Parse the supply CSV into records sorted by card display order.

    The first line is treated as a header. Blank lines and rows that fail
    validation (too few fields, empty name, bad card id) are skipped.
    """
    lines = raw_text.splitlines()
    cards = []
    skipped = 0

    for line in lines[1:]:
        line = line.strip()
        if not line:
            continue
        record = parse_row(line)
        if record is None:
            skipped += 1
            logger.debug(f"Skipping malformed supply row: {line!r}")
            continue
        cards.append(record)

    if skipped:
        logger.debug(f"Skipped {skipped} malformed rows in supply feed")

    cards.sort(key=lambda card: card_sort_key(card.card_num))
    return cards


def fetch_supply_csv(url: str = SUPPLY_FEED_URL, session: requests.Session | None = None,
                     timeout: float = FEED_TIMEOUT_SECONDS) -> str:
    """Download the raw supply CSV. Raises FetchError on transport or HTTP errors."""
    logger.info(f"Fetching data from {url}...")
    http = session or requests
    try:
        response = http.get(url, headers=REQUEST_HEADERS, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(url, str(exc)) from exc
    return response.text

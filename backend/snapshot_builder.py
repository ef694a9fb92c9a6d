"""
Builds a supply snapshot: the parsed CSV feed merged with wrapped balances.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from logger import setup_logger
from supply_feed import SupplyRecord, card_sort_key, fetch_supply_csv, parse_supply_csv

logger = setup_logger('snapshot_builder')


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime | None) -> str | None:
    """ISO-8601 in UTC with millisecond precision and a trailing Z."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_timestamp(value) -> datetime | None:
    """Parse a stored timestamp; anything that is not an ISO string gives None."""
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None


@dataclass(frozen=True)
class Snapshot:
    cards: tuple[SupplyRecord, ...]
    generated_at: datetime
    fetched_at: datetime | None = None

    def to_json(self) -> dict:
        return {
            'cards': [card.to_json() for card in self.cards],
            'lastUpdated': format_timestamp(self.generated_at),
            'fetchedAt': format_timestamp(self.fetched_at or self.generated_at),
        }

    @classmethod
    def from_json(cls, data: dict) -> Snapshot:
        cards = tuple(SupplyRecord.from_json(card) for card in data.get('cards', []))
        generated_at = parse_timestamp(data.get('lastUpdated'))
        if generated_at is None:
            raise ValueError("Snapshot document has no valid lastUpdated timestamp")
        return cls(
            cards=tuple(sorted(cards, key=lambda card: card_sort_key(card.card_num))),
            generated_at=generated_at,
            fetched_at=parse_timestamp(data.get('fetchedAt')),
        )


class SnapshotBuilder:
    """
    Fetches the feed once and looks up each card's wrapped balance in feed order.

    Only a feed fetch failure (FetchError) escapes ``build``; the balance
    lookup is expected to degrade to 0 by itself, and anything it raises
    anyway is logged and treated as 0.
    """

    def __init__(self, balance_lookup, fetch_feed: Callable[[], str] = fetch_supply_csv,
                 clock: Callable[[], datetime] = utc_now):
        self.balance_lookup = balance_lookup
        self.fetch_feed = fetch_feed
        self.clock = clock

    def build(self) -> Snapshot:
        started_at = self.clock()

        raw_text = self.fetch_feed()
        fetched_at = self.clock()
        cards = parse_supply_csv(raw_text)
        logger.info(f"Successfully fetched {len(cards)} cards from CSV")

        logger.info("Fetching wrapped balances...")
        merged = []
        for card in cards:
            merged.append(card.with_wrapped(self._wrapped_balance(card.card_key)))

        return Snapshot(cards=tuple(merged), generated_at=started_at, fetched_at=fetched_at)

    def _wrapped_balance(self, card_key: str) -> int:
        try:
            return self.balance_lookup.lookup(card_key)
        except Exception as exc:
            logger.error(f"Wrapped balance lookup raised for card {card_key}, using 0: {exc}")
            return 0

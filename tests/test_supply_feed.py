"""Tests for supply CSV parsing and card ordering."""

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import requests

# Allow importing backend modules when running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from supply_feed import (
    FetchError,
    SupplyRecord,
    card_sort_key,
    fetch_supply_csv,
    parse_card_id,
    parse_supply_csv,
)

HEADER = "Card,Name,Total Supply,Burned,Remaining,Inactive,Active\n"


class TestParseSupplyCsv(unittest.TestCase):
    def test_example_feed(self):
        text = "Header\n1,Card One,100,10,90,5,85\n17b,Card Seventeen B,50,0,50,0,50\n"
        cards = parse_supply_csv(text)

        self.assertEqual([c.card_num for c in cards], [1, "17b"])
        self.assertEqual(cards[0].remaining, 90)
        self.assertEqual(cards[0].name, "Card One")
        self.assertEqual([c.wrapped for c in cards], [0, 0])

    def test_suffixed_variant_sorts_after_its_base(self):
        text = HEADER + "\n".join([
            "18,Eighteen,1,0,1,0,1",
            "17b,Seventeen B,1,0,1,0,1",
            "2,Two,1,0,1,0,1",
            "17,Seventeen,1,0,1,0,1",
            "10,Ten,1,0,1,0,1",
        ])
        cards = parse_supply_csv(text)
        self.assertEqual([c.card_num for c in cards], [2, 10, 17, "17b", 18])

    def test_malformed_rows_are_dropped(self):
        text = HEADER + "\n".join([
            "1,Card One,100,10,90,5,85",
            "2,Too Few,1,2,3",
            "3,,1,0,1,0,1",
            "abc,Bad Id,1,0,1,0,1",
            "0,Zero Id,1,0,1,0,1",
            "-4,Negative Id,1,0,1,0,1",
            "17c,Unknown Suffix,1,0,1,0,1",
            "²,Superscript Id,1,0,1,0,1",
            "٣,Arabic Digit Id,1,0,1,0,1",
            "9" * 5000 + ",Huge Id,1,0,1,0,1",
            "1234567890,Ten Digit Id,1,0,1,0,1",
            "",
            "   ",
        ])
        cards = parse_supply_csv(text)
        self.assertEqual([c.card_num for c in cards], [1])
        self.assertLessEqual(len(cards), len(text.splitlines()) - 1)

    def test_bad_numbers_default_to_zero(self):
        text = HEADER + "5,Card Five,lots,,-3,2.0,7\n"
        (card,) = parse_supply_csv(text)
        self.assertEqual(card.total_supply, 0)
        self.assertEqual(card.burned, 0)
        self.assertEqual(card.remaining, 0)
        self.assertEqual(card.inactive, 2)
        self.assertEqual(card.active, 7)

    def test_extra_columns_and_whitespace(self):
        text = HEADER + "  7 , Card Seven ,20,1,19,4,15,extra\r\n"
        (card,) = parse_supply_csv(text)
        self.assertEqual(card.card_num, 7)
        self.assertEqual(card.name, "Card Seven")
        self.assertEqual(card.active, 15)

    def test_header_only(self):
        self.assertEqual(parse_supply_csv(HEADER), [])
        self.assertEqual(parse_supply_csv(""), [])


class TestCardIds(unittest.TestCase):
    def test_parse_card_id(self):
        self.assertEqual(parse_card_id("12"), 12)
        self.assertEqual(parse_card_id(" 17B "), "17b")
        self.assertIsNone(parse_card_id("0"))
        self.assertIsNone(parse_card_id("1.5"))
        self.assertIsNone(parse_card_id(""))

    def test_sort_key(self):
        ids = [30, "17b", 1, 17, 9]
        self.assertEqual(sorted(ids, key=card_sort_key), [1, 9, 17, "17b", 30])

    def test_record_json_shape(self):
        record = SupplyRecord(card_num="17b", name="B", total_supply=3, wrapped=1)
        data = record.to_json()
        self.assertEqual(data["cardNum"], "17b")
        self.assertEqual(data["totalSupply"], 3)
        self.assertEqual(data["wrapped"], 1)
        self.assertEqual(SupplyRecord.from_json(data), record)

    def test_with_wrapped_returns_new_record(self):
        record = SupplyRecord(card_num=1, name="One")
        updated = record.with_wrapped(4)
        self.assertEqual(record.wrapped, 0)
        self.assertEqual(updated.wrapped, 4)


class TestFetchSupplyCsv(unittest.TestCase):
    def test_returns_body(self):
        session = MagicMock()
        session.get.return_value.text = "Header\n"
        self.assertEqual(fetch_supply_csv("http://feed.test/supply.csv", session=session), "Header\n")
        _, kwargs = session.get.call_args
        self.assertIn("User-Agent", kwargs["headers"])

    def test_transport_error_raises_fetch_error(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("unreachable")
        with self.assertRaises(FetchError):
            fetch_supply_csv("http://feed.test/supply.csv", session=session)

    def test_http_error_raises_fetch_error(self):
        session = MagicMock()
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("503")
        with self.assertRaises(FetchError) as ctx:
            fetch_supply_csv("http://feed.test/supply.csv", session=session)
        self.assertEqual(ctx.exception.url, "http://feed.test/supply.csv")


if __name__ == "__main__":
    unittest.main()

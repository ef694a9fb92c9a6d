"""
Wrapped card balances scraped from Etherscan token holder pages.

Each Curio Card has an ERC-20 wrapper. The number of wrapped cards is the
wrapper token balance held at the custodial address (the Curio main contract,
or a card-specific holder for 17b). There is no API for this, so the figure
is read from the HTML page on a best-effort basis.

Etherscan rate limits aggressively. Every lookup in the process goes through
one lock and waits at least LOOKUP_DELAY_SECONDS after the previous request
finished before starting its own.
"""

import re
import time
from threading import Lock

import requests
from bs4 import BeautifulSoup

from logger import setup_logger
from supply_config import (
    BALANCE_PAGE_URL,
    LOOKUP_DELAY_SECONDS,
    LOOKUP_TIMEOUT_SECONDS,
    REQUEST_HEADERS,
    get_contract,
    get_holder,
)

logger = setup_logger('wrapped_balances')

_BALANCE_PATTERN = re.compile(r"Balance\s*(\d[\d,]*)\s*[A-Z]", re.I)
_NUMBER_PATTERN = re.compile(r"\d[\d,]*")

# Section text containing any of these is not the holder balance
_DISQUALIFYING_PHRASES = ('Check previous', 'Token Balance')

# Rate limiting state (shared by every lookup in the process)
_lookup_lock = Lock()
_last_request_at: float | None = None


class BalanceLookupError(Exception):
    """Raised when a wrapped balance page cannot be fetched."""
    def __init__(self, card_id: str, message: str):
        self.card_id = card_id
        super().__init__(f"Wrapped balance lookup failed for card {card_id}: {message}")


def _to_int(token: str) -> int:
    return int(token.replace(',', ''))


def parse_balance(html: str) -> int | None:
    """
    Extract the holder balance from an Etherscan token page.

    Tries the labelled "Balance <n> <SYMBOL>" figure in the page text first,
    then falls back to the first number in any <div> mentioning "Balance"
    that is not one of the unrelated balance widgets.

    Returns:
        The balance, or None if nothing matched.
    """
    soup = BeautifulSoup(html, 'html.parser')

    body = soup.body or soup
    match = _BALANCE_PATTERN.search(body.get_text())
    if match:
        return _to_int(match.group(1))

    for div in soup.find_all('div'):
        text = div.get_text()
        if 'Balance' not in text:
            continue
        if any(phrase in text for phrase in _DISQUALIFYING_PHRASES):
            continue
        number = _NUMBER_PATTERN.search(text)
        if number:
            return _to_int(number.group(0))

    return None


class EtherscanBalanceLookup:
    """
    Looks up wrapped balances one card at a time.

    ``lookup`` never raises; any failure is logged and reported as 0.
    """

    def __init__(self, session: requests.Session | None = None,
                 min_interval: float = LOOKUP_DELAY_SECONDS,
                 timeout: float = LOOKUP_TIMEOUT_SECONDS,
                 sleep=time.sleep, clock=time.monotonic):
        self.session = session or requests.Session()
        self.min_interval = min_interval
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock

    def balance_url(self, card_id: str) -> str | None:
        contract = get_contract(card_id)
        holder = get_holder(card_id)
        if not contract or not holder:
            return None
        return BALANCE_PAGE_URL.format(contract=contract, holder=holder)

    def lookup(self, card_id) -> int:
        card_id = str(card_id)
        url = self.balance_url(card_id)
        if url is None:
            logger.info(f"No wrapped contract found for card {card_id}")
            return 0

        try:
            balance = self._fetch_balance(card_id, url)
        except Exception as exc:
            logger.error(f"Error fetching wrapped balance for card {card_id}: {exc}")
            return 0

        if balance is None:
            logger.warning(f"No balance figure found on page for card {card_id}, using 0")
            return 0
        logger.info(f"Card {card_id}: {balance} wrapped")
        return balance

    def _fetch_balance(self, card_id: str, url: str) -> int | None:
        global _last_request_at

        with _lookup_lock:
            self._wait_for_slot()
            logger.info(f"Fetching wrapped balance for card {card_id}...")
            try:
                response = self.session.get(url, headers=REQUEST_HEADERS, timeout=self.timeout)
                response.raise_for_status()
            except requests.RequestException as exc:
                raise BalanceLookupError(card_id, str(exc)) from exc
            finally:
                _last_request_at = self._clock()

        return parse_balance(response.text)

    def _wait_for_slot(self) -> None:
        """Sleep until min_interval has passed since the previous request ended."""
        if _last_request_at is None:
            return
        wait_time = self.min_interval - (self._clock() - _last_request_at)
        if wait_time > 0:
            logger.debug(f"Rate limit: waiting {wait_time:.2f}s before next lookup")
            self._sleep(wait_time)


def reset_rate_limit() -> None:
    """Forget the previous request time (next lookup starts immediately)."""
    global _last_request_at
    with _lookup_lock:
        _last_request_at = None

# Curio Cards Supply Configuration
# ================================
# Static reference data and runtime settings for the supply refresh pipeline.
#
# The wrapped contract map is loaded from data/wrapped_contracts.json once at
# import and exposed read-only. Update that JSON file when a card's wrapper
# or custodial holder changes.
#
# Runtime settings come from environment variables (optionally via a .env file).

import json
import os
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from dotenv import load_dotenv

from logger import setup_logger

load_dotenv()

logger = setup_logger('supply_config')

BACKEND_DIR = Path(__file__).parent
CONTRACTS_FILE = Path(os.environ.get('WRAPPED_CONTRACTS_FILE', BACKEND_DIR / 'data' / 'wrapped_contracts.json'))

# Snapshot and metadata documents live here (created on first write)
DATA_DIR = Path(os.environ.get('SUPPLY_DATA_DIR', BACKEND_DIR / 'data'))

SUPPLY_FEED_URL = os.environ.get('SUPPLY_FEED_URL', 'https://ccsupply.xyz/data/Card_Supply.csv')
BALANCE_PAGE_URL = 'https://etherscan.io/token/{contract}?a={holder}'

FEED_TIMEOUT_SECONDS = float(os.environ.get('FEED_TIMEOUT_SECONDS', '30'))
LOOKUP_TIMEOUT_SECONDS = float(os.environ.get('LOOKUP_TIMEOUT_SECONDS', '10'))
LOOKUP_DELAY_SECONDS = float(os.environ.get('LOOKUP_DELAY_SECONDS', '1.5'))
REFRESH_INTERVAL_DAYS = float(os.environ.get('REFRESH_INTERVAL_DAYS', '7'))

SERVICE_NAME = 'Curio Cards Supply Backend'

# Card ids that are a letter-suffixed edition of a numbered card
SUFFIXED_CARD_IDS = frozenset(
    token.strip().lower()
    for token in os.environ.get('SUFFIXED_CARD_IDS', '17b').split(',')
    if token.strip()
)

REQUEST_HEADERS = {
    'User-Agent': (
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36'
    )
}


def _load_contract_data(path: Path) -> dict:
    """Load the wrapped contract JSON file."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        logger.warning(f"Wrapped contract file not found at {path}")
        return {}
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing wrapped contract JSON: {e}")
        return {}


def load_wrapped_contracts(path: Path = CONTRACTS_FILE) -> tuple[Mapping[str, str], Mapping[str, str]]:
    """
    Load the card -> wrapped contract map and the holder address map.

    Returns:
        (contracts, holders) as read-only mappings. ``holders`` always has a
        ``default`` entry when the file defines one; other keys are card ids
        that use their own custodial address.
    """
    data = _load_contract_data(path)
    contracts = {str(k).lower(): v for k, v in data.get('contracts', {}).items()}
    holders = {str(k).lower(): v for k, v in data.get('_holders', {}).items()}
    return MappingProxyType(contracts), MappingProxyType(holders)


# Load once at module import
WRAPPED_CONTRACTS, HOLDER_ADDRESSES = load_wrapped_contracts()


def get_contract(card_id: str) -> str | None:
    """Get the wrapped contract address for a card, or None if unmapped."""
    return WRAPPED_CONTRACTS.get(str(card_id).lower())


def get_holder(card_id: str) -> str | None:
    """Get the holder address whose balance is read for a card."""
    return HOLDER_ADDRESSES.get(str(card_id).lower(), HOLDER_ADDRESSES.get('default'))

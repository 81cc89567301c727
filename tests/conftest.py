import base64

import pytest

from core.models import Market, MarketStatus, Venue
from utils.config_loader import ClobCredentials

# Well-known local development keys; never funded.
TEST_PRIV = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDR = "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266"
FUNDER_ADDR = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"

# bytes 0xfb/0xff force '-' and '_' into the URL-safe encoding
SECRET_BYTES = bytes([0xFB, 0xFF, 0xFE]) + b"clob-test-secret-0123456789"
URLSAFE_SECRET = base64.urlsafe_b64encode(SECRET_BYTES).decode().rstrip("=")
STANDARD_SECRET = base64.b64encode(SECRET_BYTES).decode()


@pytest.fixture
def make_market():
    counter = {"n": 0}

    def _build(
        title: str,
        venue: Venue = Venue.POLYMARKET,
        yes_price: float | None = 0.5,
        status: MarketStatus = MarketStatus.OPEN,
        market_id: str | None = None,
    ) -> Market:
        counter["n"] += 1
        return Market(
            id=market_id or f"{venue.value.lower()}-{counter['n']}",
            venue=venue,
            title=title,
            status=status,
            yes_price=yes_price,
            no_price=None if yes_price is None else round(1 - yes_price, 6),
        )

    return _build


@pytest.fixture
def credentials():
    return ClobCredentials(
        api_key="test-api-key",
        secret=URLSAFE_SECRET,
        passphrase="test-passphrase",
        wallet_address=TEST_ADDR,
        private_key=TEST_PRIV,
    )

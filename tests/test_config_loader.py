import json
from pathlib import Path

import pytest
import yaml

from core.errors import ConfigError
from core.models import Venue
from utils.config_loader import ConfigLoader

REPO_ROOT = Path(__file__).resolve().parents[1]


def _write_settings(tmp_path: Path, text: str, name: str = "settings.yaml") -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir(exist_ok=True)
    (config_dir / name).write_text(text, encoding="utf-8")


def test_defaults_without_files(tmp_path):
    settings = ConfigLoader(tmp_path, environ={}).load_settings()

    assert settings.ranking.primary_venue == Venue.POLYMARKET
    assert settings.ranking.secondary_venue == Venue.KALSHI
    assert settings.ranking.strict_similarity == 0.3
    assert settings.ranking.strict_min_spread == 0.005
    assert settings.ranking.synthetic_fallback is False
    assert settings.orders.expiration_for() == 24 * 60 * 60
    assert settings.orders.expiration_for("interactive") == 60 * 60
    assert settings.clob.chain_id == 137
    assert [cfg.venue for cfg in settings.enabled_venues()] == [Venue.POLYMARKET, Venue.KALSHI]


def test_example_settings_file_parses():
    settings = ConfigLoader(REPO_ROOT, environ={}).parse_settings(
        yaml.safe_load((REPO_ROOT / "config" / "settings.example.yaml").read_text())
    )
    assert settings.venues[Venue.OPINION].enabled is False
    assert settings.clob.exchange_address == "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E"


def test_settings_yaml_and_env_overrides(tmp_path):
    _write_settings(
        tmp_path,
        """
ranking:
  primary_venue: polymarket
  secondary_venue: Opinion
  limit: 3
  synthetic_fallback: true
venues:
  Opinion:
    enabled: true
    page_limit: 20
orders:
  expiration_policy: interactive
clob:
  use_server_time: true
logging:
  level: debug
""",
    )
    env = {
        "OPINION_API_KEY": "op-key",
        "POLYMARKET_FUNDER": "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
        "POLYMARKET_CLOB_HOST": "https://clob.example.test/",
    }

    settings = ConfigLoader(tmp_path, environ=env).load_settings()

    assert settings.ranking.secondary_venue == Venue.OPINION
    assert settings.ranking.limit == 3
    assert settings.ranking.synthetic_fallback is True
    assert settings.venues[Venue.OPINION].enabled is True
    assert settings.venues[Venue.OPINION].api_key == "op-key"
    assert settings.orders.expiration_for() == 3600
    assert settings.orders.funder == env["POLYMARKET_FUNDER"]
    assert settings.clob.rest_url == "https://clob.example.test"
    assert settings.clob.use_server_time is True
    assert settings.log_level == "DEBUG"


def test_local_settings_fallback(tmp_path):
    _write_settings(tmp_path, "ranking:\n  limit: 9\n", name="settings.local.yaml")
    assert ConfigLoader(tmp_path, environ={}).load_settings().ranking.limit == 9


@pytest.mark.parametrize(
    "text",
    [
        "ranking:\n  primary_venue: Kalshi\n  secondary_venue: Kalshi\n",
        "ranking:\n  primary_venue: Manifold\n",
        "orders:\n  expiration_policy: forever\n",
    ],
)
def test_invalid_settings_raise(tmp_path, text):
    _write_settings(tmp_path, text)
    with pytest.raises(ConfigError):
        ConfigLoader(tmp_path, environ={}).load_settings()


def test_credentials_from_file_with_env_override(tmp_path):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "credentials.json").write_text(
        json.dumps(
            {
                "polymarket": {
                    "api_key": "file-key",
                    "secret": "c2VjcmV0",
                    "passphrase": "file-pass",
                    "wallet_address": "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266",
                }
            }
        ),
        encoding="utf-8",
    )

    creds = ConfigLoader(tmp_path, environ={"POLYMARKET_API_KEY": "env-key"}).load_credentials()

    assert creds.api_key == "env-key"
    assert creds.passphrase == "file-pass"
    assert creds.private_key is None
    assert creds.redacted() == {
        "api_key": "env-key...",
        "wallet_address": "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266",
    }


def test_credentials_from_environment_only(tmp_path):
    env = {
        "POLYMARKET_API_KEY": "k",
        "POLYMARKET_SECRET": "c2VjcmV0",
        "POLYMARKET_PASSPHRASE": "p",
        "POLYMARKET_WALLET": "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266",
        "TRADING_PRIVATE_KEY": "0xabc",
    }
    creds = ConfigLoader(tmp_path, environ=env).load_credentials()
    assert creds.secret == "c2VjcmV0"
    assert creds.private_key == "0xabc"


@pytest.mark.parametrize("missing", ["POLYMARKET_SECRET", "POLYMARKET_WALLET"])
def test_missing_credentials_raise(tmp_path, missing):
    env = {
        "POLYMARKET_API_KEY": "k",
        "POLYMARKET_SECRET": "c2VjcmV0",
        "POLYMARKET_PASSPHRASE": "p",
        "POLYMARKET_WALLET": "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266",
    }
    env.pop(missing)
    with pytest.raises(ConfigError):
        ConfigLoader(tmp_path, environ=env).load_credentials()

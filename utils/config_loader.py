from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml

from core.errors import ConfigError
from core.models import Venue

DEFAULT_LISTING_URLS = {
    Venue.POLYMARKET: "https://gamma-api.polymarket.com",
    Venue.KALSHI: "https://trading-api.kalshi.com/trade-api/v2",
    Venue.OPINION: "https://openapi.opinion.trade/openapi",
}

EXPIRATION_POLICIES = ("standard", "interactive")


@dataclass(slots=True)
class VenueConfig:
    venue: Venue
    enabled: bool = True
    listing_url: str = ""
    page_limit: int = 50
    timeout_sec: float = 15.0
    api_key: Optional[str] = None


@dataclass(slots=True)
class RankingConfig:
    primary_venue: Venue = Venue.POLYMARKET
    secondary_venue: Venue = Venue.KALSHI
    strict_similarity: float = 0.3
    strict_min_spread: float = 0.005
    relaxed_similarity: float = 0.2
    relaxed_candidate_cap: int = 20
    limit: int = 5
    notional: float = 100.0
    synthetic_fallback: bool = False


@dataclass(slots=True)
class OrderConfig:
    expiration_policy: str = "standard"
    standard_expiration_sec: int = 24 * 60 * 60
    interactive_expiration_sec: int = 60 * 60
    funder: Optional[str] = None

    def expiration_for(self, policy: str | None = None) -> int:
        chosen = (policy or self.expiration_policy).lower()
        if chosen == "interactive":
            return self.interactive_expiration_sec
        if chosen == "standard":
            return self.standard_expiration_sec
        raise ConfigError(f"unknown expiration policy: {chosen}")


@dataclass(slots=True)
class ClobConfig:
    rest_url: str = "https://clob.polymarket.com"
    chain_id: int = 137
    exchange_address: str = "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E"
    neg_risk_exchange_address: str = "0xC5d563A36AE78145C45a50134d48A1215220f80a"
    domain_name: str = "Polymarket CTF Exchange"
    domain_version: str = "1"
    timeout_sec: float = 30.0
    use_server_time: bool = False
    requests_per_minute: int = 120
    burst: int = 10


@dataclass(slots=True)
class ClobCredentials:
    api_key: str
    secret: str
    passphrase: str
    wallet_address: str
    private_key: Optional[str] = None

    def redacted(self) -> Dict[str, str]:
        return {
            "api_key": f"{self.api_key[:8]}..." if self.api_key else "",
            "wallet_address": self.wallet_address,
        }


@dataclass(slots=True)
class Settings:
    venues: Dict[Venue, VenueConfig]
    ranking: RankingConfig
    orders: OrderConfig
    clob: ClobConfig
    aggregation_timeout_sec: float = 20.0
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def enabled_venues(self) -> List[VenueConfig]:
        return [cfg for cfg in self.venues.values() if cfg.enabled]


class ConfigLoader:
    """Loads settings.yaml and credentials.json, with environment overrides."""

    ENV_CREDENTIALS = {
        "api_key": "POLYMARKET_API_KEY",
        "secret": "POLYMARKET_SECRET",
        "passphrase": "POLYMARKET_PASSPHRASE",
        "wallet_address": "POLYMARKET_WALLET",
        "private_key": "TRADING_PRIVATE_KEY",
    }

    def __init__(self, base_path: Path | None = None, environ: Mapping[str, str] | None = None):
        self.base_path = base_path or Path(__file__).resolve().parent.parent
        self._config_dir = self.base_path / "config"
        self._environ = os.environ if environ is None else environ

    @property
    def environ(self) -> Mapping[str, str]:
        return self._environ

    def _resolve_config_file(self, filename: str, fallbacks: list[str] | None = None) -> Optional[Path]:
        candidates = [self._config_dir / filename]
        if fallbacks:
            candidates.extend(self._config_dir / name for name in fallbacks)
        for path in candidates:
            if path.exists():
                return path
        return None

    def load_settings(self) -> Settings:
        settings_path = self._resolve_config_file(
            "settings.yaml",
            ["settings.local.yaml", "settings.example.yaml"],
        )
        raw: Dict[str, object] = {}
        if settings_path is not None:
            with settings_path.open("r", encoding="utf-8") as handle:
                raw = yaml.safe_load(handle) or {}
        return self.parse_settings(raw)

    def load_credentials(self) -> ClobCredentials:
        creds_path = self._resolve_config_file(
            "credentials.json",
            ["credentials.local.json"],
        )
        data: Dict[str, str] = {}
        if creds_path is not None:
            data = json.loads(creds_path.read_text(encoding="utf-8")).get("polymarket", {})
        values = {}
        for attr, env_name in self.ENV_CREDENTIALS.items():
            values[attr] = self._environ.get(env_name) or data.get(attr)
        missing = [attr for attr in ("api_key", "secret", "passphrase") if not values.get(attr)]
        if missing:
            raise ConfigError(f"missing CLOB credentials: {', '.join(missing)}")
        if not values.get("wallet_address"):
            raise ConfigError("missing CLOB credentials: wallet_address")
        return ClobCredentials(
            api_key=str(values["api_key"]),
            secret=str(values["secret"]),
            passphrase=str(values["passphrase"]),
            wallet_address=str(values["wallet_address"]),
            private_key=values.get("private_key"),
        )

    def parse_settings(self, raw: Dict[str, object]) -> Settings:
        venues_cfg = raw.get("venues", {}) or {}
        ranking_cfg = raw.get("ranking", {}) or {}
        orders_cfg = raw.get("orders", {}) or {}
        clob_cfg = raw.get("clob", {}) or {}
        logging_cfg = raw.get("logging", {}) or {}

        venues: Dict[Venue, VenueConfig] = {}
        for venue in Venue:
            cfg = venues_cfg.get(venue.value) or venues_cfg.get(venue.value.lower()) or {}
            venues[venue] = VenueConfig(
                venue=venue,
                enabled=bool(cfg.get("enabled", venue != Venue.OPINION)),
                listing_url=str(cfg.get("listing_url", DEFAULT_LISTING_URLS[venue])).rstrip("/"),
                page_limit=int(cfg.get("page_limit", 50)),
                timeout_sec=float(cfg.get("timeout_sec", 15.0)),
                api_key=cfg.get("api_key"),
            )
        opinion_key = self._environ.get("OPINION_API_KEY")
        if opinion_key:
            venues[Venue.OPINION].api_key = opinion_key

        ranking = RankingConfig(
            primary_venue=self._parse_venue(ranking_cfg.get("primary_venue"), Venue.POLYMARKET),
            secondary_venue=self._parse_venue(ranking_cfg.get("secondary_venue"), Venue.KALSHI),
            strict_similarity=float(ranking_cfg.get("strict_similarity", 0.3)),
            strict_min_spread=float(ranking_cfg.get("strict_min_spread", 0.005)),
            relaxed_similarity=float(ranking_cfg.get("relaxed_similarity", 0.2)),
            relaxed_candidate_cap=int(ranking_cfg.get("relaxed_candidate_cap", 20)),
            limit=int(ranking_cfg.get("limit", 5)),
            notional=float(ranking_cfg.get("notional", 100.0)),
            synthetic_fallback=bool(ranking_cfg.get("synthetic_fallback", False)),
        )
        if ranking.primary_venue == ranking.secondary_venue:
            raise ConfigError("ranking.primary_venue and ranking.secondary_venue must differ")

        orders = OrderConfig(
            expiration_policy=str(orders_cfg.get("expiration_policy", "standard")).lower(),
            standard_expiration_sec=int(orders_cfg.get("standard_expiration_sec", 24 * 60 * 60)),
            interactive_expiration_sec=int(orders_cfg.get("interactive_expiration_sec", 60 * 60)),
            funder=self._environ.get("POLYMARKET_FUNDER") or orders_cfg.get("funder") or None,
        )
        if orders.expiration_policy not in EXPIRATION_POLICIES:
            raise ConfigError(f"unknown expiration policy: {orders.expiration_policy}")

        clob = ClobConfig(
            rest_url=str(
                self._environ.get("POLYMARKET_CLOB_HOST")
                or clob_cfg.get("rest_url", "https://clob.polymarket.com")
            ).rstrip("/"),
            chain_id=int(clob_cfg.get("chain_id", 137)),
            exchange_address=str(
                clob_cfg.get("exchange_address", "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E")
            ),
            neg_risk_exchange_address=str(
                clob_cfg.get("neg_risk_exchange_address", "0xC5d563A36AE78145C45a50134d48A1215220f80a")
            ),
            domain_name=str(clob_cfg.get("domain_name", "Polymarket CTF Exchange")),
            domain_version=str(clob_cfg.get("domain_version", "1")),
            timeout_sec=float(clob_cfg.get("timeout_sec", 30.0)),
            use_server_time=bool(clob_cfg.get("use_server_time", False)),
            requests_per_minute=int(clob_cfg.get("requests_per_minute", 120)),
            burst=int(clob_cfg.get("burst", 10)),
        )

        return Settings(
            venues=venues,
            ranking=ranking,
            orders=orders,
            clob=clob,
            aggregation_timeout_sec=float(raw.get("aggregation_timeout_sec", 20.0)),
            log_level=str(logging_cfg.get("level", "INFO")).upper(),
            log_file=logging_cfg.get("file"),
        )

    @staticmethod
    def _parse_venue(value: object, default: Venue) -> Venue:
        if not value:
            return default
        try:
            return Venue(str(value))
        except ValueError:
            for venue in Venue:
                if venue.value.lower() == str(value).lower():
                    return venue
            raise ConfigError(f"unknown venue: {value}")

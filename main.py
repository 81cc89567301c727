from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp

from core.aggregator import MarketAggregator, MarketSnapshot, VenueSource
from core.errors import BaseError
from core.models import Market, MarketRules, Opportunity, OrderIntent, OrderSide, Venue
from core.order_builder import OrderBuilder, check_identity, to_decimal
from core.ranker import scan
from core.submission import SubmissionPipeline
from core.venues import build_adapters
from exchanges.auth import OrderDomain, RequestAuthenticator, build_typed_data
from exchanges.clob_client import ClobClient
from exchanges.listings import build_fetcher
from exchanges.wallet import LocalAccountWallet
from utils.config_loader import ConfigLoader, Settings
from utils.logger import BotLogger


def market_to_dict(market: Market) -> Dict[str, Any]:
    return {
        "id": market.id,
        "venue": market.venue.value,
        "title": market.title,
        "status": market.status.value,
        "yes_price": market.yes_price,
        "no_price": market.no_price,
        "volume_24h": market.volume_24h,
        "liquidity": market.liquidity,
        "expires_at": market.expires_at.isoformat() if market.expires_at else None,
        "outcome_token_ids": list(market.outcome_token_ids) if market.outcome_token_ids else None,
        "tradable": market.tradable,
    }


def opportunity_to_dict(opp: Opportunity) -> Dict[str, Any]:
    return {
        "event": opp.event,
        "category": opp.category.value,
        "strategy": opp.strategy,
        "synthetic": opp.synthetic,
        "similarity": round(opp.pair.similarity, 4),
        "spread": round(opp.spread, 6),
        "profit_estimate": round(opp.profit_estimate, 4),
        "notional": opp.notional,
        "primary": market_to_dict(opp.pair.primary),
        "secondary": market_to_dict(opp.pair.secondary),
    }


def build_logger(settings: Settings, verbose: bool = False) -> BotLogger:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.INFO)
    log_file = Path(settings.log_file) if settings.log_file else None
    return BotLogger("arb_engine", level=level, log_file=log_file)


async def collect_markets(
    session: aiohttp.ClientSession,
    settings: Settings,
    logger: BotLogger,
    limit: int,
) -> MarketSnapshot:
    adapters = build_adapters(logger)
    sources: List[VenueSource] = []
    for venue_cfg in settings.enabled_venues():
        sources.append(
            VenueSource(
                venue=venue_cfg.venue,
                fetcher=build_fetcher(session, venue_cfg),
                adapter=adapters[venue_cfg.venue],
                timeout_sec=venue_cfg.timeout_sec,
            )
        )
    aggregator = MarketAggregator(sources, logger=logger, timeout_sec=settings.aggregation_timeout_sec)
    return await aggregator.aggregate(limit=limit)


async def run_scan(args: argparse.Namespace, settings: Settings, logger: BotLogger) -> Dict[str, Any]:
    limit = args.limit or max((cfg.page_limit for cfg in settings.enabled_venues()), default=50)
    async with aiohttp.ClientSession() as session:
        snapshot = await collect_markets(session, settings, logger, limit)
    if args.query:
        return {
            "markets": [market_to_dict(mkt) for mkt in snapshot.search(args.query, limit=args.top or 20)],
            "failures": {venue.value: error for venue, error in snapshot.failures.items()},
        }
    if args.top:
        settings.ranking.limit = args.top
    opportunities = scan(dict(snapshot.by_venue), settings.ranking, logger=logger)
    return {
        "fetched_at": snapshot.fetched_at.isoformat(),
        "markets": {venue.value: len(items) for venue, items in snapshot.by_venue.items()},
        "failures": {venue.value: error for venue, error in snapshot.failures.items()},
        "opportunities": [opportunity_to_dict(opp) for opp in opportunities],
    }


def resolve_wallet(loader: ConfigLoader) -> Optional[LocalAccountWallet]:
    key = loader.environ.get("TRADING_PRIVATE_KEY")
    if not key:
        return None
    return LocalAccountWallet(key)


def build_intent(args: argparse.Namespace, wallet_address: str) -> OrderIntent:
    return OrderIntent(
        venue=Venue.POLYMARKET,
        outcome_token_id=args.token_id,
        side=OrderSide(args.side.upper()),
        size=to_decimal(args.size, "size"),
        price=to_decimal(args.price, "price"),
        wallet_address=wallet_address,
    )


def build_order_builder(args: argparse.Namespace, settings: Settings) -> OrderBuilder:
    return OrderBuilder(
        expiration_sec=settings.orders.expiration_for(args.expiration),
        funder=settings.orders.funder,
    )


async def run_prepare(args: argparse.Namespace, settings: Settings, loader: ConfigLoader) -> Dict[str, Any]:
    wallet_address = args.wallet
    if not wallet_address:
        wallet = resolve_wallet(loader)
        if wallet is None:
            raise SystemExit("prepare needs --wallet or TRADING_PRIVATE_KEY")
        wallet_address = wallet.address()
    builder = build_order_builder(args, settings)
    intent = build_intent(args, wallet_address)
    rules = None
    if args.tick_size:
        rules = MarketRules(tick_size=to_decimal(args.tick_size, "tick size"), neg_risk=args.neg_risk)
    order = builder.build(intent, rules=rules)
    check_identity(order, wallet_address, builder.funder)
    domain = OrderDomain.from_config(settings.clob, neg_risk=args.neg_risk)
    return {
        "order": order.to_wire(),
        "typed_data": build_typed_data(order, domain),
    }


async def run_order(
    args: argparse.Namespace,
    settings: Settings,
    loader: ConfigLoader,
    logger: BotLogger,
) -> Dict[str, Any]:
    credentials = loader.load_credentials()
    key = credentials.private_key or loader.environ.get("TRADING_PRIVATE_KEY")
    if not key:
        raise SystemExit("order submission needs TRADING_PRIVATE_KEY")
    wallet = LocalAccountWallet(key)
    builder = build_order_builder(args, settings)
    intent = build_intent(args, wallet.address())
    async with aiohttp.ClientSession() as session:
        client = ClobClient(
            session,
            settings.clob,
            authenticator=RequestAuthenticator(credentials),
            logger=logger,
        )
        pipeline = SubmissionPipeline(
            builder,
            wallet,
            client,
            domain=OrderDomain.from_config(settings.clob),
            logger=logger,
            neg_risk_domain=OrderDomain.from_config(settings.clob, neg_risk=True),
        )
        try:
            rules = await client.get_market_rules(intent.outcome_token_id)
            result = await pipeline.submit(intent, rules=rules)
        finally:
            await client.rate_limit.close()
    return {
        "order_id": result.order_id,
        "tick_size": str(rules.tick_size),
        "neg_risk": rules.neg_risk,
        "state": result.state,
        "order": result.signed_order.order.to_wire(),
        "response": result.response,
    }


async def run_check_auth(
    settings: Settings,
    loader: ConfigLoader,
    logger: BotLogger,
) -> Dict[str, Any]:
    credentials = loader.load_credentials()
    async with aiohttp.ClientSession() as session:
        client = ClobClient(
            session,
            settings.clob,
            authenticator=RequestAuthenticator(credentials),
            logger=logger,
        )
        try:
            keys = await client.get_api_keys()
        finally:
            await client.rate_limit.close()
    return {"authenticated": True, "credentials": credentials.redacted(), "api_keys": keys}


async def run_open_orders(
    args: argparse.Namespace,
    settings: Settings,
    loader: ConfigLoader,
    logger: BotLogger,
) -> Dict[str, Any]:
    credentials = loader.load_credentials()
    async with aiohttp.ClientSession() as session:
        client = ClobClient(
            session,
            settings.clob,
            authenticator=RequestAuthenticator(credentials),
            logger=logger,
        )
        try:
            orders = await client.get_open_orders(market=args.market, asset_id=args.token_id)
        finally:
            await client.rate_limit.close()
    return {"count": len(orders), "orders": orders}


async def run_derive_api_key(settings: Settings, loader: ConfigLoader, logger: BotLogger) -> Dict[str, Any]:
    wallet = resolve_wallet(loader)
    if wallet is None:
        raise SystemExit("derive-api-key needs TRADING_PRIVATE_KEY")
    async with aiohttp.ClientSession() as session:
        client = ClobClient(session, settings.clob, logger=logger)
        try:
            credentials = await client.create_or_derive_api_key(wallet)
        finally:
            await client.rate_limit.close()
    return {
        "api_key": credentials.api_key,
        "secret": credentials.secret,
        "passphrase": credentials.passphrase,
        "wallet_address": credentials.wallet_address,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cross-venue prediction market arbitrage scanner and CLOB order tool.")
    parser.add_argument("--config-dir", default=None, help="Directory that contains config/ (default: repo root)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    scan_cmd = sub.add_parser("scan", help="Aggregate venues and rank arbitrage opportunities")
    scan_cmd.add_argument("--limit", type=int, default=0, help="Markets per venue (default: venue page_limit)")
    scan_cmd.add_argument("--top", type=int, default=0, help="Opportunities to return (default: ranking.limit)")
    scan_cmd.add_argument("--query", default=None, help="Search aggregated markets by title instead of ranking")

    for name, help_text in (
        ("prepare", "Build an unsigned order and its typed-data payload"),
        ("order", "Build, sign and submit an order to the CLOB"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--token-id", required=True, help="Outcome token id")
        cmd.add_argument("--side", choices=["buy", "sell", "BUY", "SELL"], default="BUY")
        cmd.add_argument("--size", required=True, help="Shares")
        cmd.add_argument("--price", required=True, help="Limit price in (0, 1)")
        cmd.add_argument("--expiration", choices=["standard", "interactive"], default=None)
        if name == "prepare":
            cmd.add_argument("--wallet", default=None, help="Wallet address (default: TRADING_PRIVATE_KEY address)")
            cmd.add_argument("--tick-size", default=None, help="Market tick size; off-tick prices are rejected")
            cmd.add_argument("--neg-risk", action="store_true", help="Sign against the neg-risk exchange")

    sub.add_parser("check-auth", help="Verify CLOB API credentials")
    orders_cmd = sub.add_parser("open-orders", help="List open CLOB orders for the credentials' wallet")
    orders_cmd.add_argument("--market", default=None, help="Condition id filter")
    orders_cmd.add_argument("--token-id", default=None, help="Outcome token id filter")
    sub.add_parser("derive-api-key", help="Create or derive L2 API credentials with the trading wallet")
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    loader = ConfigLoader(Path(args.config_dir) if args.config_dir else None)
    logger: Optional[BotLogger] = None

    try:
        settings = loader.load_settings()
        logger = build_logger(settings, args.verbose)
        if args.command == "scan":
            output = await run_scan(args, settings, logger)
        elif args.command == "prepare":
            output = await run_prepare(args, settings, loader)
        elif args.command == "order":
            output = await run_order(args, settings, loader, logger)
        elif args.command == "open-orders":
            output = await run_open_orders(args, settings, loader, logger)
        elif args.command == "derive-api-key":
            output = await run_derive_api_key(settings, loader, logger)
        else:
            output = await run_check_auth(settings, loader, logger)
    except BaseError as exc:
        (logger or BotLogger()).error(
            "command failed",
            command=args.command,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        print(json.dumps({"error": type(exc).__name__, "message": str(exc)}, indent=2))
        return 1

    print(json.dumps(output, indent=2, ensure_ascii=False, default=str))
    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()

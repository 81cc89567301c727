from __future__ import annotations

from typing import Sequence, Tuple

from core.models import Category

# Order matters: the first category with any substring hit wins.
# Geopolitics titles (war, sanctions, treaties) fall through to Other.
CATEGORY_KEYWORDS: Tuple[Tuple[Category, Sequence[str]], ...] = (
    (
        Category.POLITICS,
        (
            "trump",
            "biden",
            "election",
            "president",
            "congress",
            "senate",
            "democrat",
            "republican",
            "governor",
            "vote",
            "poll",
            "cabinet",
            "impeach",
            "politician",
            "party",
            "gop",
            "white house",
            "supreme court",
            "legislation",
            "harris",
            "parliament",
            "prime minister",
            "primary",
        ),
    ),
    (
        Category.SPORTS,
        (
            "nfl",
            "nba",
            "mlb",
            "nhl",
            "super bowl",
            "world series",
            "championship",
            "playoff",
            "mvp",
            "quarterback",
            "lebron",
            "football",
            "basketball",
            "baseball",
            "hockey",
            "soccer",
            "ufc",
            "boxing",
            "tennis",
            "golf",
            "olympics",
            "world cup",
            "fifa",
            "espn",
            "coach",
            "team",
            "player",
            "premier league",
            "lakers",
            "celtics",
        ),
    ),
    (
        Category.CRYPTO,
        (
            "bitcoin",
            "btc",
            "ethereum",
            "eth",
            "crypto",
            "solana",
            "sol",
            "dogecoin",
            "doge",
            "altcoin",
            "defi",
            "nft",
            "blockchain",
            "binance",
            "coinbase",
            "token",
            "mining",
            "halving",
            "satoshi",
            "web3",
            "stablecoin",
        ),
    ),
    (
        Category.ECONOMICS,
        (
            "stock",
            "market",
            "fed",
            "interest rate",
            "inflation",
            "gdp",
            "economy",
            "recession",
            "nasdaq",
            "s&p",
            "dow",
            "treasury",
            "bond",
            "ipo",
            "earnings",
            "revenue",
            "profit",
            "bank",
            "wall street",
            "investor",
            "trading",
            "cpi",
            "unemployment",
            "tariff",
        ),
    ),
    (
        Category.ENTERTAINMENT,
        (
            "movie",
            "film",
            "oscar",
            "grammy",
            "emmy",
            "netflix",
            "disney",
            "spotify",
            "youtube",
            "tiktok",
            "celebrity",
            "actor",
            "actress",
            "singer",
            "album",
            "concert",
            "taylor swift",
            "kardashian",
            "kanye",
            "box office",
            "streaming",
            "eurovision",
        ),
    ),
    (
        Category.TECHNOLOGY,
        (
            "apple",
            "google",
            "microsoft",
            "amazon",
            "meta",
            "facebook",
            "twitter",
            "x.com",
            "elon",
            "musk",
            "tesla",
            "spacex",
            "ai",
            "artificial intelligence",
            "openai",
            "chatgpt",
            "iphone",
            "android",
            "software",
            "startup",
            "silicon valley",
            "nvidia",
        ),
    ),
)


def detect_category(title: str) -> Category:
    text = (title or "").lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return Category.OTHER


__all__ = ["CATEGORY_KEYWORDS", "detect_category"]

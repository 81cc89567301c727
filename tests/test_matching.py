import pytest

from core.matching import detect_category, match, normalize_title, similarity, spread_between, tokenize
from core.models import Category, Venue


@pytest.mark.parametrize(
    "title",
    [
        "Will Bitcoin reach $100k in 2025?",
        "Fed rate cut in March?",
        "Lakers vs Celtics",
    ],
)
def test_similarity_is_reflexive(title):
    assert similarity(title, title) == 1.0


def test_similarity_keyword_overlap():
    score = similarity("Will Trump win the 2024 election?", "Election 2024: Trump victory?")
    assert score > 0.3


def test_similarity_unrelated_titles_score_zero():
    assert similarity("Bitcoin price", "Lakers vs Celtics") == 0.0


def test_similarity_empty_and_symbol_only_titles():
    assert similarity("", "Bitcoin price") == 0.0
    assert similarity("???", "Bitcoin price") == 0.0


def test_similarity_length_ratio_short_circuit():
    assert similarity("Fed", "Will the Federal Reserve cut interest rates in March 2025?") == 0.0


def test_similarity_shared_stem_counts_as_match():
    assert similarity("reaching", "reached") == 1.0


def test_similarity_is_asymmetric():
    short = "bitcoin above 100k"
    long = "bitcoin above 100k in december"
    assert similarity(short, long) == 1.0
    assert similarity(long, short) < 1.0


def test_similarity_bounded():
    pairs = [
        ("Will Trump win the 2024 election?", "Election 2024: Trump victory?"),
        ("Ethereum ETF approved by June", "Will an Ethereum ETF be approved?"),
        ("Super Bowl winner 2025", "Who wins the 2025 Super Bowl?"),
    ]
    for first, second in pairs:
        assert 0.0 <= similarity(first, second) <= 1.0


def test_normalize_and_tokenize():
    normalized = normalize_title("  Will BTC hit $100,000?!  ")
    assert normalized == "will btc hit 100000"
    assert tokenize(normalized) == {"will", "btc", "hit", "100000"}
    assert tokenize("a an of the") == {"the"}


def test_match_assigns_each_secondary_once(make_market):
    title = "Will Bitcoin hit 100k in 2025?"
    first = make_market(title, Venue.POLYMARKET, 0.40)
    second = make_market(title, Venue.POLYMARKET, 0.45)
    only = make_market(title, Venue.KALSHI, 0.55)

    pairs = match([first, second], [only], min_similarity=0.3)

    assert len(pairs) == 1
    assert pairs[0].primary is first
    assert pairs[0].secondary is only


def test_match_prefers_earliest_on_ties(make_market):
    title = "Will Bitcoin hit 100k in 2025?"
    first = make_market(title, Venue.POLYMARKET, 0.40)
    second = make_market(title, Venue.POLYMARKET, 0.42)
    k1 = make_market(title, Venue.KALSHI, 0.55)
    k2 = make_market(title, Venue.KALSHI, 0.60)

    pairs = match([first, second], [k1, k2], min_similarity=0.3)

    assert [(p.primary, p.secondary) for p in pairs] == [(first, k1), (second, k2)]
    keys = [p.secondary.key for p in pairs]
    assert len(keys) == len(set(keys))


def test_match_skips_same_venue_and_unpriced(make_market):
    title = "Will Bitcoin hit 100k in 2025?"
    candidate = make_market(title, Venue.POLYMARKET, 0.40)
    same_venue = make_market(title, Venue.POLYMARKET, 0.60)
    unpriced = make_market(title, Venue.KALSHI, None)

    assert match([candidate], [same_venue, unpriced], min_similarity=0.0) == []


def test_match_respects_shared_claimed_set(make_market):
    title = "Will Bitcoin hit 100k in 2025?"
    candidate = make_market(title, Venue.POLYMARKET, 0.40)
    k1 = make_market(title, Venue.KALSHI, 0.55)
    k2 = make_market(title, Venue.KALSHI, 0.60)
    claimed = {k1.key}

    pairs = match([candidate], [k1, k2], min_similarity=0.3, claimed=claimed)

    assert pairs[0].secondary is k2
    assert claimed == {k1.key, k2.key}


def test_match_spread_in_unit_interval(make_market):
    title = "Will Bitcoin hit 100k in 2025?"
    pairs = match(
        [make_market(title, Venue.POLYMARKET, 0.0)],
        [make_market(title, Venue.KALSHI, 1.0)],
        min_similarity=0.3,
    )
    assert pairs[0].spread == 1.0
    assert 0.0 <= pairs[0].similarity <= 1.0


def test_spread_between_requires_prices(make_market):
    priced = make_market("Fed cut", Venue.POLYMARKET, 0.2)
    unpriced = make_market("Fed cut", Venue.KALSHI, None)
    assert spread_between(priced, unpriced) is None
    assert spread_between(priced, make_market("Fed cut", Venue.KALSHI, 0.5)) == pytest.approx(0.3)


@pytest.mark.parametrize(
    "title,expected",
    [
        ("Will Trump win the 2024 election?", Category.POLITICS),
        ("Lakers vs Celtics game 7", Category.SPORTS),
        ("Bitcoin above 100k?", Category.CRYPTO),
        ("Will the Fed cut rates in March?", Category.ECONOMICS),
        ("Best Picture at the Oscars", Category.ENTERTAINMENT),
        ("Will OpenAI release GPT-5?", Category.TECHNOLOGY),
        ("Will it snow in Paris?", Category.OTHER),
    ],
)
def test_detect_category(title, expected):
    assert detect_category(title) == expected


@pytest.mark.parametrize(
    "title,expected",
    [
        ("ETH above $4,000 on Friday?", Category.CRYPTO),
        ("Will DOGE close above 50 cents?", Category.CRYPTO),
        ("Will the Yankees win the World Series?", Category.SPORTS),
        ("Will the House impeach the judge?", Category.POLITICS),
        ("10-year Treasury yield above 5%?", Category.ECONOMICS),
        ("Will Nvidia stock split again?", Category.ECONOMICS),
        ("Will Disney announce a sequel?", Category.ENTERTAINMENT),
        ("Will Amazon acquire a chip maker?", Category.TECHNOLOGY),
        ("Will Musk tweet 100 times?", Category.TECHNOLOGY),
        ("Will NATO expand to Sweden?", Category.OTHER),
    ],
)
def test_detect_category_extended_keywords(title, expected):
    assert detect_category(title) == expected


def test_detect_category_economics_checked_before_technology():
    assert detect_category("Apple earnings beat estimates?") == Category.ECONOMICS


def test_detect_category_first_table_entry_wins():
    # mentions both a politician and bitcoin
    assert detect_category("Will Trump buy Bitcoin?") == Category.POLITICS

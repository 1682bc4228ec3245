#!/usr/bin/env python3
"""
GM Compare — Competitive comparison of a small group of games.

For a group of 1-20 games:
  - Per-metric rankings (ccu, reviews, positive ratio, revenue, price)
  - Strengths / weaknesses per game
  - Common tags and per-game differentiators
  - Price analysis over the paid games
  - Market-position points (price vs rating, bubble = ccu)

Per-game maps are dicts keyed by app id, in input order.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from gm_core import (
    EMPTY_ENTITY_LIST,
    GameMetricRecord,
    InsufficientDataError,
    format_currency,
    round_half_up,
)
from gm_revenue import record_revenue

logger = logging.getLogger(__name__)

# ============================================================
# THRESHOLD CONSTANTS
# ============================================================

RATING_STRENGTH = 90         # positive ratio >= 90 = strength
RATING_WEAKNESS = 70         # positive ratio < 70 = weakness
PRICE_PREMIUM_FACTOR = 1.5   # price > 1.5x group average = weakness (no discount)

MAX_COMMON_TAGS = 10
MAX_DIFFERENTIATORS = 5

# --- Price analysis notes ---
PRICE_SPREAD_NARROW = 5      # max - min < $5
PRICE_AVG_PREMIUM = 30
PRICE_AVG_BUDGET = 15

PRICE_NOTE_ALL_FREE = "Every compared game is free to play. Consider a free-to-play model."
PRICE_NOTE_NARROW = "Competitor prices sit close together, so differentiating on price may be hard."
PRICE_NOTE_PREMIUM = "Premium market. Compete on quality, or target a niche with a lower price."
PRICE_NOTE_BUDGET = "Crowded low-price market. Differentiate on content volume and quality rather than price."

# --- Market position bubble ---
BUBBLE_MIN = 10
BUBBLE_RANGE = 50

RANKED_METRICS = ('ccu', 'reviews', 'positive_ratio', 'revenue', 'price')


# ============================================================
# DATA CLASSES
# ============================================================

@dataclass
class RankingItem:
    app_id: str
    name: str
    value: float
    rank: int                             # 1 = best


@dataclass
class PriceAnalysis:
    average: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0
    recommendation: Optional[str] = None


@dataclass
class MarketPosition:
    app_id: str
    name: str
    x: float                              # price, 0-100 of group max
    y: float                              # positive ratio
    size: float                           # bubble size, 10-60


@dataclass
class ComparisonResult:
    """Output of compare_entities()."""
    rankings: Dict[str, List[RankingItem]]
    strengths: Dict[str, List[str]]
    weaknesses: Dict[str, List[str]]
    common_tags: List[str]
    differentiators: Dict[str, List[str]]
    price_analysis: PriceAnalysis
    market_position: List[MarketPosition] = field(default_factory=list)


# ============================================================
# METRIC VALUES
# ============================================================

def _metric_value(game: GameMetricRecord, metric: str) -> float:
    if metric == 'ccu':
        return game.ccu
    elif metric == 'reviews':
        return game.total_reviews
    elif metric == 'positive_ratio':
        return game.positive_ratio
    elif metric == 'revenue':
        return record_revenue(game)
    elif metric == 'price':
        return game.price
    raise KeyError(metric)


# ============================================================
# RANKINGS
# ============================================================

def calculate_rankings(games: Sequence[GameMetricRecord]) -> Dict[str, List[RankingItem]]:
    """Rank games per metric. Price ranks ascending; ties keep input order."""
    rankings = {}
    for metric in RANKED_METRICS:
        values = [(g, _metric_value(g, metric)) for g in games]
        # sorted() is stable, including with reverse=True
        ordered = sorted(values, key=lambda pair: pair[1], reverse=(metric != 'price'))
        rankings[metric] = [
            RankingItem(app_id=g.app_id, name=g.name, value=v, rank=i + 1)
            for i, (g, v) in enumerate(ordered)
        ]
    return rankings


def _rank_of(rankings: Dict[str, List[RankingItem]], metric: str, app_id: str) -> int:
    for item in rankings[metric]:
        if item.app_id == app_id:
            return item.rank
    return 0


# ============================================================
# STRENGTHS & WEAKNESSES
# ============================================================

RANK_LABELS = {
    'ccu': ('Highest concurrent players', 'Lowest concurrent players'),
    'reviews': ('Most reviews (highest visibility)', 'Fewest reviews'),
    'revenue': ('Highest estimated revenue', 'Lowest estimated revenue'),
}


def analyze_strengths_weaknesses(games, rankings):
    """Strength and weakness phrases per app id."""
    n = len(games)
    avg_price = sum(g.price for g in games) / n
    strengths: Dict[str, List[str]] = {}
    weaknesses: Dict[str, List[str]] = {}

    for game in games:
        good: List[str] = []
        bad: List[str] = []

        for metric, (best_label, worst_label) in RANK_LABELS.items():
            rank = _rank_of(rankings, metric, game.app_id)
            if rank == 1:
                good.append(best_label)
            elif rank == n:
                bad.append(worst_label)

        if game.positive_ratio >= RATING_STRENGTH:
            good.append('Overwhelmingly positive reviews')
        elif game.positive_ratio < RATING_WEAKNESS:
            bad.append('Below-average user rating')

        if game.is_free:
            good.append('Free to play (low barrier to entry)')
        elif game.current_discount > 0:
            good.append(f"Currently {game.current_discount:g}% off")

        if game.price > avg_price * PRICE_PREMIUM_FACTOR and game.current_discount == 0:
            bad.append('Priced above the group average')

        strengths[game.app_id] = good
        weaknesses[game.app_id] = bad

    return strengths, weaknesses


# ============================================================
# TAGS
# ============================================================

def analyze_tags(games):
    """Common tags and per-game differentiators.

    Returns:
        (common_tags, differentiators). A tag held by every game is common
        and never a differentiator.
    """
    n = len(games)
    tag_counts: Dict[str, int] = {}
    for game in games:
        for tag in dict.fromkeys(game.tags):
            tag_counts[tag] = tag_counts.get(tag, 0) + 1

    common_tags = [t for t, c in tag_counts.items() if c == n][:MAX_COMMON_TAGS]

    rare_limit = math.ceil(n / 2)
    differentiators: Dict[str, List[str]] = {}
    for game in games:
        tags = [t for t in dict.fromkeys(game.tags) if tag_counts[t] < n]
        unique = [t for t in tags if tag_counts[t] == 1]
        chosen = unique if unique else [t for t in tags if tag_counts[t] <= rare_limit]
        differentiators[game.app_id] = chosen[:MAX_DIFFERENTIATORS]

    return common_tags, differentiators


# ============================================================
# PRICE & MARKET POSITION
# ============================================================

def analyze_pricing(games: Sequence[GameMetricRecord]) -> PriceAnalysis:
    """Price statistics over the paid games, with a market note."""
    prices = sorted(g.price for g in games if not g.is_free)
    if not prices:
        return PriceAnalysis(recommendation=PRICE_NOTE_ALL_FREE)

    average = sum(prices) / len(prices)
    low, high = prices[0], prices[-1]

    if high - low < PRICE_SPREAD_NARROW:
        note = PRICE_NOTE_NARROW
    elif average > PRICE_AVG_PREMIUM:
        note = PRICE_NOTE_PREMIUM
    elif average < PRICE_AVG_BUDGET:
        note = PRICE_NOTE_BUDGET
    else:
        note = None

    return PriceAnalysis(
        average=average,
        median=prices[len(prices) // 2],
        min=low,
        max=high,
        recommendation=note,
    )


def calculate_market_position(games: Sequence[GameMetricRecord]) -> List[MarketPosition]:
    """Scatter points: x = relative price, y = rating, size = relative ccu."""
    max_price = max([g.price for g in games] + [1])
    max_ccu = max([g.ccu for g in games] + [1])
    return [
        MarketPosition(
            app_id=g.app_id,
            name=g.name,
            x=g.price / max_price * 100,
            y=g.positive_ratio,
            size=max(BUBBLE_MIN, BUBBLE_MIN + g.ccu / max_ccu * BUBBLE_RANGE),
        )
        for g in games
    ]


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def compare_entities(entities: Sequence[GameMetricRecord]) -> ComparisonResult:
    """Compare a group of games.

    Raises:
        InsufficientDataError: empty entity list.
    """
    games = list(entities)
    if not games:
        raise InsufficientDataError(
            code=EMPTY_ENTITY_LIST,
            message="Comparison needs at least one game",
        )

    rankings = calculate_rankings(games)
    strengths, weaknesses = analyze_strengths_weaknesses(games, rankings)
    common_tags, differentiators = analyze_tags(games)

    logger.debug("compared %d games: %d common tags", len(games), len(common_tags))

    return ComparisonResult(
        rankings=rankings,
        strengths=strengths,
        weaknesses=weaknesses,
        common_tags=common_tags,
        differentiators=differentiators,
        price_analysis=analyze_pricing(games),
        market_position=calculate_market_position(games),
    )


# ============================================================
# DISPLAY ROWS
# ============================================================

def comparison_table(entities: Sequence[GameMetricRecord]) -> List[Dict[str, str]]:
    """One display row per metric: {'metric': label, app_id: formatted value, ...}."""
    metrics = [
        ('Price', lambda g: 'Free' if g.is_free else f"${g.price:.2f}"),
        ('Current CCU', lambda g: f"{g.ccu:,}"),
        ('Total Reviews', lambda g: f"{g.total_reviews:,}"),
        ('Positive Ratio', lambda g: f"{g.positive_ratio:g}%"),
        ('Estimated Revenue', lambda g: format_currency(record_revenue(g))),
        ('Release Year', lambda g: str(g.release_year) if g.release_year else 'N/A'),
    ]

    rows = []
    for label, fmt in metrics:
        row = {'metric': label}
        for game in entities:
            row[game.app_id] = fmt(game)
        rows.append(row)
    return rows


def radar_scores(entities: Sequence[GameMetricRecord]) -> List[Dict[str, object]]:
    """0-100 normalized scores per axis, one row per axis."""
    games = list(entities)
    revenues = {g.app_id: record_revenue(g) for g in games}
    max_ccu = max([g.ccu for g in games] + [1])
    max_reviews = max([g.total_reviews for g in games] + [1])
    max_revenue = max(list(revenues.values()) + [1])
    max_price = max([g.price for g in games] + [1])

    axes = [
        ('Popularity', lambda g: g.ccu / max_ccu * 100),
        ('Reviews', lambda g: g.total_reviews / max_reviews * 100),
        ('Rating', lambda g: g.positive_ratio),
        ('Revenue', lambda g: revenues[g.app_id] / max_revenue * 100),
        ('Value', lambda g: 100 if g.is_free else max(0, 100 - g.price / max_price * 100)),
    ]

    rows = []
    for label, calc in axes:
        row: Dict[str, object] = {'metric': label}
        for game in games:
            row[game.app_id] = round_half_up(calc(game))
        rows.append(row)
    return rows

#!/usr/bin/env python3
"""
GM Revenue — Boxleiter 2.0 sales and revenue estimation.

Estimates unit sales as total reviews x a dynamic multiplier:

    multiplier = BASE (30) x year x price x genre x rating

The rating factor is INVERTED: lower-rated games get a HIGHER multiplier.
The data model behind the tables assumes dissatisfied buyers leave reviews
less often than satisfied ones, so each review of a poorly rated game
stands for more buyers. This is counter-intuitive but intentional; do not
"fix" it.

Also provides the revenue, influence (F2P) and owners grades.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from gm_core import round_half_up

logger = logging.getLogger(__name__)

# ============================================================
# MODEL TABLES
# ============================================================

BASE_MULTIPLIER = 30
PLATFORM_SHARE = 0.7  # developer share after the storefront cut

# --- Release year ---
YEAR_BEFORE_2015 = 1.5
YEAR_DEFAULT = 0.85   # unmapped (future) years
YEAR_MULTIPLIERS = {
    2015: 1.5,
    2016: 1.3,
    2017: 1.3,
    2018: 1.3,
    2019: 1.1,
    2020: 1.1,
    2021: 1.1,
    2022: 1.0,
    2023: 1.0,
    2024: 0.85,
    2025: 0.85,
}

# --- Price brackets: (lower inclusive, upper exclusive, multiplier, label) ---
PRICE_FREE_MULTIPLIER = 1.5
PRICE_BRACKETS = (
    (0.0, 10.0, 1.3, '$0.01 - $9.99'),
    (10.0, 20.0, 1.0, '$10 - $19.99'),
    (20.0, 40.0, 0.9, '$20 - $39.99'),
    (40.0, float('inf'), 0.8, '$40+'),
)

# --- Genre ---
GENRE_MULTIPLIERS = {
    'Strategy': 0.8,
    'Simulation': 0.8,
    'RPG': 1.0,
    'Adventure': 1.0,
    'Action': 1.1,
    'Shooter': 1.1,
    'FPS': 1.1,
    'Casual': 1.3,
    'Puzzle': 1.3,
    'Indie': 1.1,
    'Sports': 1.0,
    'Racing': 1.0,
    'Massively Multiplayer': 1.2,
    'Free to Play': 1.5,
    'Free To Play': 1.5,
}

# --- Positive review percentage (min inclusive, multiplier, label) ---
RATING_BRACKETS = (
    (95, 0.9, 'Overwhelmingly Positive (95%+)'),
    (80, 1.0, 'Very Positive (80-94%)'),
    (70, 1.1, 'Mostly Positive (70-79%)'),
    (0, 1.2, 'Mixed/Negative (<70%)'),
)

# --- Confidence by review volume ---
CONFIDENCE_HIGH_REVIEWS = 1000
CONFIDENCE_MEDIUM_REVIEWS = 100

METHODOLOGY = 'Boxleiter Method 2.0 (dynamic multiplier)'

# --- Grade ladders: (minimum, grade, label) ---
REVENUE_GRADES = (
    (100_000_000, 'S', 'Platinum'),
    (50_000_000, 'A+', 'Diamond'),
    (10_000_000, 'A', 'Gold'),
    (1_000_000, 'B', 'Silver'),
    (100_000, 'C', 'Bronze'),
)
INFLUENCE_GRADES = (
    (500_000, 'S', 'Global phenomenon'),
    (100_000, 'A+', 'Mega hit'),
    (50_000, 'A', 'Major title'),
    (10_000, 'B', 'Popular'),
    (1_000, 'C', 'Stable'),
)
OWNERS_GRADES = (
    (50_000_000, 'S', 'Legendary'),
    (10_000_000, 'A+', 'Mega hit'),
    (5_000_000, 'A', 'Major success'),
    (1_000_000, 'B', 'Hit'),
    (100_000, 'C', 'Success'),
)


# ============================================================
# DATA CLASSES
# ============================================================

@dataclass
class RevenueEstimate:
    """Output of estimate_revenue()."""
    sales: int
    revenue: float
    multiplier: float                    # rounded to 2 decimals
    breakdown: Dict[str, float]
    confidence: str                      # high, medium, low
    is_free: bool
    methodology: str = METHODOLOGY


@dataclass
class Grade:
    grade: str
    label: str


@dataclass
class OwnersGrade(Grade):
    avg_owners: int = 0


# ============================================================
# FACTOR LOOKUPS
# ============================================================

def year_factor(release_year: int) -> float:
    """Release-year correction; older games under-review relative to sales."""
    if release_year < 2015:
        return YEAR_BEFORE_2015
    return YEAR_MULTIPLIERS.get(release_year, YEAR_DEFAULT)


def price_factor(price: float) -> Tuple[float, str]:
    """Price-bracket correction. Free games get the highest multiplier."""
    if price <= 0:
        return PRICE_FREE_MULTIPLIER, 'Free (F2P)'
    for low, high, multiplier, label in PRICE_BRACKETS:
        if low <= price < high:
            return multiplier, label
    # only reachable for NaN
    return 1.0, 'Default'


def genre_factor(genres: Optional[Sequence[str]]) -> float:
    """Mean multiplier of the known genres; 1.0 when none are known."""
    if not genres:
        return 1.0
    known = [GENRE_MULTIPLIERS[g] for g in genres if g in GENRE_MULTIPLIERS]
    if not known:
        return 1.0
    return sum(known) / len(known)


def rating_factor(positive_ratio: float) -> Tuple[float, str]:
    """Positive-review correction, inverted (see module docstring)."""
    for minimum, multiplier, label in RATING_BRACKETS:
        if positive_ratio >= minimum:
            return multiplier, label
    return RATING_BRACKETS[-1][1], RATING_BRACKETS[-1][2]


def estimate_confidence(total_reviews: int) -> str:
    """Confidence label driven by review volume."""
    if total_reviews >= CONFIDENCE_HIGH_REVIEWS:
        return 'high'
    elif total_reviews >= CONFIDENCE_MEDIUM_REVIEWS:
        return 'medium'
    return 'low'


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def estimate_revenue(
    total_reviews: int,
    positive_ratio: float,
    price: float,
    release_year: int,
    genres: Optional[Sequence[str]] = None,
) -> RevenueEstimate:
    """Estimate lifetime unit sales and gross developer revenue.

    Args:
        total_reviews:  Total storefront review count.
        positive_ratio: Positive review percentage (0-100).
        price:          Price in whole currency units; 0 means free to play.
        release_year:   Release year.
        genres:         Storefront genre names (unknown ones are ignored).

    Returns:
        RevenueEstimate. Free games report revenue 0 regardless of sales.
    """
    if price < 0:
        logger.warning("estimate_revenue: negative price %s treated as free", price)
        price = 0.0
    total_reviews = max(0, total_reviews)
    is_free = price == 0

    year_mult = year_factor(release_year)
    price_mult, _ = price_factor(price)
    genre_mult = genre_factor(genres)
    rating_mult, _ = rating_factor(positive_ratio)

    multiplier = BASE_MULTIPLIER * year_mult * price_mult * genre_mult * rating_mult

    sales = round_half_up(total_reviews * multiplier)
    revenue = 0.0 if is_free else sales * price * PLATFORM_SHARE

    return RevenueEstimate(
        sales=sales,
        revenue=revenue,
        multiplier=round(multiplier, 2),
        breakdown={
            'base_multiplier': BASE_MULTIPLIER,
            'year_multiplier': year_mult,
            'price_multiplier': price_mult,
            'genre_multiplier': round(genre_mult, 2),
            'rating_multiplier': rating_mult,
        },
        confidence=estimate_confidence(total_reviews),
        is_free=is_free,
    )


def estimate_record(record) -> RevenueEstimate:
    """estimate_revenue() over a GameMetricRecord."""
    return estimate_revenue(
        total_reviews=record.total_reviews,
        positive_ratio=record.positive_ratio,
        price=record.price,
        release_year=record.release_year,
        genres=record.genres,
    )


def record_revenue(record) -> float:
    """Precomputed revenue of record, else the estimator's."""
    if record.estimated_revenue is not None:
        return record.estimated_revenue
    return estimate_record(record).revenue


def record_sales(record) -> int:
    """Precomputed sales of record, else the estimator's."""
    if record.estimated_sales is not None:
        return record.estimated_sales
    return estimate_record(record).sales


# ============================================================
# GRADES
# ============================================================

def _grade_from_ladder(value: float, ladder) -> Grade:
    for minimum, grade, label in ladder:
        if value >= minimum:
            return Grade(grade, label)
    return Grade('D', 'Indie' if ladder is REVENUE_GRADES else 'Small')


def revenue_grade(revenue: float) -> Grade:
    """Revenue tier for paid games."""
    return _grade_from_ladder(revenue, REVENUE_GRADES)


def influence_grade(current_players: int) -> Grade:
    """Influence tier for free-to-play games, by concurrent players."""
    return _grade_from_ladder(current_players, INFLUENCE_GRADES)


_OWNERS_PATTERN = re.compile(r'([\d,]+)\s*\.\.\s*([\d,]+)')


def parse_owners(owners: str) -> Tuple[int, int, int]:
    """Parse an owners range like "100,000 .. 200,000" into (min, max, avg)."""
    match = _OWNERS_PATTERN.search(owners or '')
    if not match:
        return 0, 0, 0
    low = int(match.group(1).replace(',', ''))
    high = int(match.group(2).replace(',', ''))
    return low, high, round_half_up((low + high) / 2)


def owners_grade(owners: str) -> OwnersGrade:
    """Ownership tier from an owners range string."""
    _, _, avg = parse_owners(owners)
    base = _grade_from_ladder(avg, OWNERS_GRADES)
    return OwnersGrade(base.grade, base.label, avg_owners=avg)

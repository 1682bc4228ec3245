#!/usr/bin/env python3
"""
GM Core — Shared logic for the game market benchmark engine.

Single source of truth for:
- Grade and score-ladder constants
- Data classes (GameMetricRecord, MetricDefinition, BenchmarkTemplate, results)
- InsufficientDataError (caller-contract violations)
- Percentile and grade utilities
- Game database I/O (JSON) and record normalization
- Formatting utilities

Every engine module (gm_revenue, gm_benchmark, gm_compare, gm_correlation,
gm_insights) imports its shared types from here.
"""

import json
import math
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

# ============================================================
# THRESHOLD CONSTANTS
# ============================================================

# --- Grade bands (score >= threshold) ---
GRADE_S = 90
GRADE_A = 80
GRADE_B = 70
GRADE_C = 60
GRADE_D = 50
# < 50 = F

GRADE_ORDER = ['S', 'A', 'B', 'C', 'D', 'F']

# --- Threshold ladder scores ---
LADDER_EXCELLENT = 95
LADDER_GOOD = 80
LADDER_AVERAGE = 65
LADDER_POOR = 50
LADDER_BELOW = 30

# --- Neutral defaults ---
NEUTRAL_PERCENTILE = 50
NEUTRAL_SCORE = 50

SCORE_MIN = 0
SCORE_MAX = 100

# --- Error codes (stable API surface) ---
EMPTY_ENTITY_LIST = "EMPTY_ENTITY_LIST"
POOL_TOO_SMALL = "POOL_TOO_SMALL"


# ============================================================
# ERRORS
# ============================================================

@dataclass
class InsufficientDataError(Exception):
    """Caller-contract violation that makes a computation meaningless.

    The request layer maps these to a 4xx response using the stable code.
    """

    code: str
    message: str
    details: Optional[Any] = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


# ============================================================
# DATA CLASSES
# ============================================================

class MetricKind(str, Enum):
    """Closed set of benchmarkable metrics."""
    REVENUE = "revenue"
    CCU = "ccu"
    REVIEWS = "reviews"
    RATING = "rating"
    PRICE = "price"
    PLAYTIME = "playtime"
    WISHLIST = "wishlist"
    DISCOUNT = "discount"
    GROWTH = "growth"
    ENGAGEMENT = "engagement"


@dataclass(frozen=True)
class GameMetricRecord:
    """Per-call snapshot of one game's telemetry."""
    app_id: str
    name: str
    price: float = 0.0                    # whole currency units
    is_free: bool = False
    ccu: int = 0
    total_reviews: int = 0
    positive_ratio: float = 0.0           # 0-100
    release_year: int = 0
    genres: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()

    # --- Precomputed (optional) ---
    estimated_sales: Optional[int] = None
    estimated_revenue: Optional[float] = None

    # --- Engagement / storefront ---
    median_playtime: Optional[float] = None  # minutes
    wishlist_count: int = 0
    max_discount: float = 0.0             # max historical discount percent
    current_discount: float = 0.0         # active discount percent
    growth_rate: Optional[float] = None   # monthly review growth percent


@dataclass(frozen=True)
class MetricThreshold:
    """Absolute score ladder for one metric."""
    excellent: float
    good: float
    average: float
    poor: float


@dataclass(frozen=True)
class MetricDefinition:
    """One weighted metric inside a benchmark template."""
    kind: MetricKind
    name: str
    weight: float = 0.0                   # 0-100 within a template
    threshold: Optional[MetricThreshold] = None
    description: str = ""
    unit: str = ""


@dataclass(frozen=True)
class TemplateCriteria:
    """Applicability criteria, used only for upstream template selection."""
    genres: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    price_range: Optional[Tuple[float, float]] = None
    release_year_range: Optional[Tuple[int, int]] = None
    min_reviews: int = 0


@dataclass(frozen=True)
class BenchmarkTemplate:
    """Ordered, weighted metric set a game is scored against."""
    id: str
    name: str
    metrics: Tuple[MetricDefinition, ...]
    criteria: TemplateCriteria = TemplateCriteria()
    description: str = ""
    category: str = "custom"              # genre, price, release, feature, custom


@dataclass
class GroupStats:
    """Statistics for one metric over the positive pool values."""
    values: List[float]
    average: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0
    percentiles: Dict[int, float] = field(
        default_factory=lambda: {10: 0.0, 25: 0.0, 50: 0.0, 75: 0.0, 90: 0.0}
    )


@dataclass
class MetricComparison:
    average: float
    median: float
    best: float
    worst: float


@dataclass
class MetricResult:
    """Score of the target on one template metric."""
    kind: MetricKind
    name: str
    value: float
    display_value: str
    score: int                            # 0-100
    grade: str                            # S, A, B, C, D, F
    percentile: int                       # 0-100
    comparison: MetricComparison


@dataclass
class GroupComparison:
    group_name: str
    position: int                         # 1 = best
    total: int
    percentile: int


@dataclass
class BenchmarkResult:
    """Output of one benchmark run."""
    template_id: str
    template_name: str
    app_id: str
    game_name: str
    overall_score: int                    # 0-100
    overall_grade: str
    percentile: int
    metric_results: List[MetricResult]
    group_comparison: GroupComparison
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


# ============================================================
# PERCENTILE / GRADE UTILITIES
# ============================================================

def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))


def clamp_score(score: float) -> float:
    """Clamp a score to [0, 100]."""
    return max(SCORE_MIN, min(SCORE_MAX, score))


def percentile(values: Sequence[float], target: float) -> int:
    """Rank-based percentile of target within values.

    Values equal to target count as half below. An empty group has no
    information, so the neutral prior (50) is returned.
    """
    if not values:
        return NEUTRAL_PERCENTILE
    below = sum(1 for v in values if v < target)
    equal = sum(1 for v in values if v == target)
    return round_half_up((below + equal / 2) / len(values) * 100)


def score_to_grade(score: float) -> str:
    """Convert a 0-100 score to a letter grade."""
    if score >= GRADE_S:
        return 'S'
    elif score >= GRADE_A:
        return 'A'
    elif score >= GRADE_B:
        return 'B'
    elif score >= GRADE_C:
        return 'C'
    elif score >= GRADE_D:
        return 'D'
    else:
        return 'F'


# ============================================================
# GAME DATABASE I/O
# ============================================================

# Accepted aliases for collaborator payloads (camelCase storefront shape)
_RECORD_ALIASES = {
    'appId': 'app_id',
    'isFree': 'is_free',
    'totalReviews': 'total_reviews',
    'positiveRatio': 'positive_ratio',
    'releaseYear': 'release_year',
    'estimatedSales': 'estimated_sales',
    'estimatedRevenue': 'estimated_revenue',
    'medianPlaytime': 'median_playtime',
    'wishlistCount': 'wishlist_count',
    'maxDiscount': 'max_discount',
    'discountPercent': 'current_discount',
    'growthRate': 'growth_rate',
}


def _as_tuple(value) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(v.strip() for v in value.split(';') if v.strip())
    return tuple(str(v) for v in value)


def _optional_number(value, cast=float):
    # CSV loaders hand over NaN for empty cells
    if value is None or value == '':
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return cast(value)


def build_game_record(info: dict, app_id: Optional[str] = None) -> GameMetricRecord:
    """Build a GameMetricRecord from a collaborator-supplied dict.

    Accepts snake_case or camelCase keys. Missing numeric fields default
    to zero; optional fields stay None.
    """
    data = {_RECORD_ALIASES.get(k, k): v for k, v in info.items()}
    app_id = str(app_id if app_id is not None else data.get('app_id', ''))
    price = _optional_number(data.get('price')) or 0.0
    is_free = data.get('is_free')
    if is_free is None or (isinstance(is_free, float) and math.isnan(is_free)):
        is_free = price == 0
    sales = _optional_number(data.get('estimated_sales'), int)
    playtime = _optional_number(data.get('median_playtime'))
    growth = _optional_number(data.get('growth_rate'))

    return GameMetricRecord(
        app_id=app_id,
        name=str(data.get('name', app_id)),
        price=price,
        is_free=bool(is_free),
        ccu=_optional_number(data.get('ccu'), int) or 0,
        total_reviews=_optional_number(data.get('total_reviews'), int) or 0,
        positive_ratio=_optional_number(data.get('positive_ratio')) or 0.0,
        release_year=_optional_number(data.get('release_year'), int) or 0,
        genres=_as_tuple(data.get('genres')),
        tags=_as_tuple(data.get('tags')),
        estimated_sales=sales,
        estimated_revenue=_optional_number(data.get('estimated_revenue')),
        median_playtime=playtime,
        wishlist_count=_optional_number(data.get('wishlist_count'), int) or 0,
        max_discount=_optional_number(data.get('max_discount')) or 0.0,
        current_discount=_optional_number(data.get('current_discount')) or 0.0,
        growth_rate=growth,
    )


def load_game_database(path: str = None) -> Dict[str, dict]:
    """Load the game database from a JSON file.

    Args:
        path: Path to game_database.json. Defaults to same directory as this file.

    Returns:
        Dict mapping app id -> game info dict. A top-level list is keyed
        by each entry's app id.
    """
    if path is None:
        path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'game_database.json')

    with open(path, 'r') as f:
        data = json.load(f)

    if isinstance(data, list):
        return {str(item.get('app_id', item.get('appId'))): item for item in data}
    return data


def build_game_records(db: Dict[str, dict]) -> List[GameMetricRecord]:
    """Build records for every entry of a loaded database, in file order."""
    return [build_game_record(info, app_id) for app_id, info in db.items()]


# ============================================================
# FORMATTING UTILITIES
# ============================================================

def format_large_number(num: float) -> str:
    """Format counts with K/M/B suffixes."""
    if num >= 1_000_000_000:
        return f"{num / 1_000_000_000:.1f}B"
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 1_000:
        return f"{num / 1_000:.1f}K"
    return f"{num:,.0f}"


def format_currency(amount: float) -> str:
    """Format a dollar amount for display."""
    if amount >= 1_000_000_000:
        return f"${amount / 1_000_000_000:.2f}B"
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.2f}M"
    if amount >= 1_000:
        return f"${amount / 1_000:.1f}K"
    return f"${amount:,.0f}"


def format_metric_value(value: float, kind: MetricKind) -> str:
    """Render a metric value the way benchmark results display it."""
    if kind == MetricKind.REVENUE:
        if value >= 1_000_000_000:
            return f"${value / 1_000_000_000:.1f}B"
        if value >= 1_000_000:
            return f"${value / 1_000_000:.1f}M"
        if value >= 1_000:
            return f"${value / 1_000:.1f}K"
        return f"${value:,.0f}"
    if kind in (MetricKind.CCU, MetricKind.REVIEWS, MetricKind.WISHLIST):
        if value >= 1_000_000:
            return f"{value / 1_000_000:.1f}M"
        if value >= 1_000:
            return f"{value / 1_000:.1f}K"
        return f"{value:,.0f}"
    if kind in (MetricKind.RATING, MetricKind.DISCOUNT,
                MetricKind.GROWTH, MetricKind.ENGAGEMENT):
        return f"{value:.1f}%"
    if kind == MetricKind.PRICE:
        return "Free" if value == 0 else f"${value:.2f}"
    if kind == MetricKind.PLAYTIME:
        return f"{value:.1f}h"
    return f"{value:,}"


def format_grade(grade: str) -> str:
    """Format grade with emoji indicator."""
    emoji_map = {
        'S': '\U0001f7e3 S',
        'A': '\U0001f7e2 A',
        'B': '\U0001f535 B',
        'C': '\U0001f7e1 C',
        'D': '\U0001f7e0 D',
        'F': '\U0001f534 F',
    }
    return emoji_map.get(grade, grade)

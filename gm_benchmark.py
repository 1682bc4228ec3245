#!/usr/bin/env python3
"""
GM Benchmark — Percentile-based benchmark scoring against a peer pool.

Scores one game against a weighted metric template:
  1. Pool = target + peers
  2. Extract each template metric for every pool member
  3. Group stats over the positive pool values
  4. Per-metric score: threshold ladder, else percentile
  5. Weighted overall score and grade
  6. Strengths / weaknesses
  7. Rule-based recommendations
  8. Position of the target within the pool

Also ships the default metric catalogue, the system templates, batch
benchmarking and the batch summary.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from gm_core import (
    LADDER_AVERAGE,
    LADDER_BELOW,
    LADDER_EXCELLENT,
    LADDER_GOOD,
    LADDER_POOR,
    NEUTRAL_SCORE,
    POOL_TOO_SMALL,
    GRADE_ORDER,
    BenchmarkResult,
    BenchmarkTemplate,
    GameMetricRecord,
    GroupComparison,
    GroupStats,
    InsufficientDataError,
    MetricComparison,
    MetricDefinition,
    MetricKind,
    MetricResult,
    MetricThreshold,
    TemplateCriteria,
    clamp_score,
    format_metric_value,
    percentile,
    round_half_up,
    score_to_grade,
)
from gm_revenue import record_revenue, record_sales

logger = logging.getLogger(__name__)

# ============================================================
# THRESHOLD CONSTANTS
# ============================================================

STRENGTH_SCORE = 75          # metric score >= 75 = strength
WEAKNESS_SCORE = 60          # metric score < 60 = weakness
MAX_STRENGTHS = 3
MAX_WEAKNESSES = 3

RECOMMEND_LOW_SCORE = 50     # score < 50 = "low" band
RECOMMEND_HIGH_SCORE = 80    # score >= 80 = "high" band
MAX_RECOMMENDATIONS = 5

PREMIUM_PRICE = 30           # price > $30 with few reviews = discount/bundle hint
PRICE_REVIEWS_SCORE = 60

GROUP_PERCENTILES = (10, 25, 50, 75, 90)

MIN_POOL_SIZE = 2

# (metric kind, band) -> recommendation
RECOMMENDATION_RULES = {
    (MetricKind.RATING, 'low'): "Investigate what drives negative reviews and prioritize quality fixes",
    (MetricKind.CCU, 'low'): "Consider content updates or live events to retain players",
    (MetricKind.REVIEWS, 'low'): "Encourage reviews through community activation or review prompts",
    (MetricKind.ENGAGEMENT, 'low'): "Strengthen live-service elements to lift player engagement",
    (MetricKind.GROWTH, 'low'): "Build growth momentum with marketing pushes or content updates",
    (MetricKind.RATING, 'high'): "Use the strong rating prominently in marketing material",
    (MetricKind.CCU, 'high'): "Consider esports or streaming partnerships on the back of high concurrency",
}
PRICE_RECOMMENDATION = "Few reviews for the price point. Consider a discount event or a bundle"


# ============================================================
# DEFAULT METRICS & SYSTEM TEMPLATES
# ============================================================

DEFAULT_METRICS: Dict[MetricKind, MetricDefinition] = {
    MetricKind.REVENUE: MetricDefinition(
        MetricKind.REVENUE, 'Estimated Revenue',
        threshold=MetricThreshold(10_000_000, 1_000_000, 100_000, 10_000),
        description='Lifetime revenue estimated with the Boxleiter method', unit='USD'),
    MetricKind.CCU: MetricDefinition(
        MetricKind.CCU, 'Concurrent Players',
        threshold=MetricThreshold(10_000, 1_000, 100, 10),
        description='Current concurrent players', unit='players'),
    MetricKind.REVIEWS: MetricDefinition(
        MetricKind.REVIEWS, 'Total Reviews',
        threshold=MetricThreshold(10_000, 1_000, 100, 10),
        description='Total review count', unit='reviews'),
    MetricKind.RATING: MetricDefinition(
        MetricKind.RATING, 'Positive Ratio',
        threshold=MetricThreshold(95, 85, 70, 50),
        description='Share of positive reviews', unit='%'),
    MetricKind.PRICE: MetricDefinition(
        MetricKind.PRICE, 'Price',
        description='Current store price', unit='USD'),
    MetricKind.PLAYTIME: MetricDefinition(
        MetricKind.PLAYTIME, 'Median Playtime',
        threshold=MetricThreshold(50, 20, 10, 2),
        description='Median hours played', unit='hours'),
    MetricKind.WISHLIST: MetricDefinition(
        MetricKind.WISHLIST, 'Wishlists',
        threshold=MetricThreshold(100_000, 10_000, 1_000, 100),
        description='Estimated wishlist count', unit='wishlists'),
    MetricKind.DISCOUNT: MetricDefinition(
        MetricKind.DISCOUNT, 'Max Discount',
        description='Deepest historical discount', unit='%'),
    MetricKind.GROWTH: MetricDefinition(
        MetricKind.GROWTH, 'Growth',
        threshold=MetricThreshold(50, 20, 5, -10),
        description='Monthly review growth', unit='%'),
    MetricKind.ENGAGEMENT: MetricDefinition(
        MetricKind.ENGAGEMENT, 'Engagement',
        threshold=MetricThreshold(5, 2, 1, 0.1),
        description='Concurrent players per estimated sale', unit='%'),
}


def weighted(kind: MetricKind, weight: float) -> MetricDefinition:
    """Default definition for kind with the given template weight."""
    base = DEFAULT_METRICS[kind]
    return MetricDefinition(
        kind=base.kind,
        name=base.name,
        weight=weight,
        threshold=base.threshold,
        description=base.description,
        unit=base.unit,
    )


def _template(template_id, name, description, category, criteria, metrics):
    return BenchmarkTemplate(
        id=template_id,
        name=name,
        description=description,
        category=category,
        criteria=criteria,
        metrics=tuple(weighted(kind, weight) for kind, weight in metrics),
    )


R, C, V, RT = MetricKind.REVENUE, MetricKind.CCU, MetricKind.REVIEWS, MetricKind.RATING
P, G, E = MetricKind.PLAYTIME, MetricKind.GROWTH, MetricKind.ENGAGEMENT

SYSTEM_TEMPLATES: Tuple[BenchmarkTemplate, ...] = (
    _template('indie', 'Indie Benchmark', 'Overall performance of indie games', 'genre',
              TemplateCriteria(tags=('Indie',), price_range=(0, 30), min_reviews=10),
              [(R, 25), (V, 20), (RT, 25), (C, 15), (E, 15)]),
    _template('aaa', 'AAA Benchmark', 'Performance of large premium titles', 'price',
              TemplateCriteria(price_range=(40, 100), min_reviews=1000),
              [(R, 30), (C, 25), (RT, 20), (V, 15), (P, 10)]),
    _template('roguelike', 'Roguelike Benchmark', 'Roguelike and roguelite games', 'genre',
              TemplateCriteria(tags=('Roguelike', 'Roguelite'), min_reviews=50),
              [(RT, 25), (P, 25), (E, 20), (V, 15), (R, 15)]),
    _template('f2p', 'F2P Benchmark', 'Reach of free-to-play games', 'price',
              TemplateCriteria(price_range=(0, 0), min_reviews=100),
              [(C, 35), (RT, 25), (V, 20), (E, 20)]),
    _template('new_release', 'New Release Benchmark', 'Games released within the last year', 'release',
              TemplateCriteria(min_reviews=10),
              [(G, 25), (V, 25), (RT, 20), (C, 15), (R, 15)]),
    _template('multiplayer', 'Multiplayer Benchmark', 'Online multiplayer games', 'feature',
              TemplateCriteria(tags=('Multiplayer', 'Online Co-Op', 'PvP'), min_reviews=100),
              [(C, 30), (E, 25), (RT, 20), (V, 15), (P, 10)]),
    _template('singleplayer', 'Singleplayer Benchmark', 'Singleplayer games', 'feature',
              TemplateCriteria(tags=('Singleplayer',), min_reviews=50),
              [(RT, 30), (P, 25), (R, 20), (V, 15), (G, 10)]),
    _template('early_access', 'Early Access Benchmark', 'Growth of early access games', 'release',
              TemplateCriteria(tags=('Early Access',), min_reviews=20),
              [(G, 30), (RT, 25), (E, 20), (V, 15), (C, 10)]),
    _template('value', 'Value Benchmark', 'Value for money of budget games', 'price',
              TemplateCriteria(price_range=(0.99, 15), min_reviews=50),
              [(P, 30), (RT, 30), (V, 20), (R, 20)]),
    _template('story', 'Story Benchmark', 'Narrative-driven games', 'genre',
              TemplateCriteria(tags=('Story Rich', 'Narrative', 'Visual Novel'), min_reviews=50),
              [(RT, 35), (P, 25), (V, 20), (R, 20)]),
)

del R, C, V, RT, P, G, E

TEMPLATES_BY_ID = {t.id: t for t in SYSTEM_TEMPLATES}


def get_template(template_id: str, extra: Sequence[BenchmarkTemplate] = ()) -> BenchmarkTemplate:
    """Look up a template by id; configured templates shadow system ones."""
    for template in extra:
        if template.id == template_id:
            return template
    if template_id not in TEMPLATES_BY_ID:
        raise KeyError(f"Unknown benchmark template: {template_id}")
    return TEMPLATES_BY_ID[template_id]


def build_template(info: dict) -> BenchmarkTemplate:
    """Build a BenchmarkTemplate from a config dict.

    Each metric entry needs `kind` and `weight`; name, description, unit
    and threshold default to DEFAULT_METRICS. `threshold: null` switches a
    metric to pure percentile scoring.
    """
    metrics = []
    for entry in info.get('metrics', []):
        kind = MetricKind(entry['kind'])
        base = DEFAULT_METRICS[kind]
        threshold = base.threshold
        if 'threshold' in entry:
            raw = entry['threshold']
            threshold = MetricThreshold(**raw) if raw else None
        metrics.append(MetricDefinition(
            kind=kind,
            name=entry.get('name', base.name),
            weight=float(entry.get('weight', 0)),
            threshold=threshold,
            description=entry.get('description', base.description),
            unit=entry.get('unit', base.unit),
        ))

    raw_criteria = info.get('criteria', {}) or {}
    price_range = raw_criteria.get('price_range')
    year_range = raw_criteria.get('release_year_range')
    criteria = TemplateCriteria(
        genres=tuple(raw_criteria.get('genres', ())),
        tags=tuple(raw_criteria.get('tags', ())),
        price_range=tuple(price_range) if price_range else None,
        release_year_range=tuple(year_range) if year_range else None,
        min_reviews=int(raw_criteria.get('min_reviews', 0)),
    )

    return BenchmarkTemplate(
        id=str(info['id']),
        name=info.get('name', str(info['id'])),
        metrics=tuple(metrics),
        criteria=criteria,
        description=info.get('description', ''),
        category=info.get('category', 'custom'),
    )


def template_applies(template: BenchmarkTemplate, record: GameMetricRecord) -> bool:
    """Whether record meets template's criteria.

    Used by callers to pick templates; run_benchmark() never enforces it.
    Genre and tag criteria match when any listed value is present.
    """
    criteria = template.criteria
    if criteria.genres and not set(criteria.genres) & set(record.genres):
        return False
    if criteria.tags and not set(criteria.tags) & set(record.tags):
        return False
    if criteria.price_range is not None:
        low, high = criteria.price_range
        if not low <= record.price <= high:
            return False
    if criteria.release_year_range is not None:
        low, high = criteria.release_year_range
        if not low <= record.release_year <= high:
            return False
    return record.total_reviews >= criteria.min_reviews


# ============================================================
# METRIC EXTRACTION
# ============================================================

def _engagement(game: GameMetricRecord) -> float:
    sales = record_sales(game)
    if sales <= 0:
        return 0.0
    return game.ccu / sales * 100


def _playtime_hours(game: GameMetricRecord) -> float:
    if not game.median_playtime:
        return 0.0
    return game.median_playtime / 60


_EXTRACTORS: Dict[MetricKind, Callable[[GameMetricRecord], float]] = {
    MetricKind.REVENUE: record_revenue,
    MetricKind.CCU: lambda g: g.ccu,
    MetricKind.REVIEWS: lambda g: g.total_reviews,
    MetricKind.RATING: lambda g: g.positive_ratio,
    MetricKind.PRICE: lambda g: g.price,
    MetricKind.PLAYTIME: _playtime_hours,
    MetricKind.WISHLIST: lambda g: g.wishlist_count,
    MetricKind.DISCOUNT: lambda g: g.max_discount,
    MetricKind.GROWTH: lambda g: g.growth_rate if g.growth_rate is not None else 0.0,
    MetricKind.ENGAGEMENT: _engagement,
}

_missing = set(MetricKind) - set(_EXTRACTORS)
if _missing:
    raise RuntimeError(f"No extractor for metric kinds: {sorted(k.value for k in _missing)}")


def extract_metric_value(game: GameMetricRecord, kind: MetricKind) -> float:
    """Numeric value of metric kind for game."""
    return float(_EXTRACTORS[kind](game))


# ============================================================
# GROUP STATISTICS & SCORING
# ============================================================

def _group_stats(values: List[float]) -> GroupStats:
    positive = [v for v in values if v > 0]
    if not positive:
        return GroupStats(values=[])

    ordered = sorted(positive)
    n = len(ordered)
    return GroupStats(
        values=positive,
        average=sum(positive) / n,
        median=ordered[n // 2],
        min=ordered[0],
        max=ordered[-1],
        percentiles={p: ordered[int(math.floor(n * p / 100))] for p in GROUP_PERCENTILES},
    )


def calculate_group_stats(
    games: Sequence[GameMetricRecord], kinds: Sequence[MetricKind]
) -> Dict[MetricKind, GroupStats]:
    """Group statistics per metric kind over the positive pool values."""
    return {
        kind: _group_stats([extract_metric_value(g, kind) for g in games])
        for kind in kinds
    }


def score_metric(value: float, stats: GroupStats,
                 threshold: Optional[MetricThreshold] = None) -> int:
    """Score one metric value: threshold ladder when defined, else percentile."""
    if threshold is not None:
        if value >= threshold.excellent:
            return LADDER_EXCELLENT
        if value >= threshold.good:
            return LADDER_GOOD
        if value >= threshold.average:
            return LADDER_AVERAGE
        if value >= threshold.poor:
            return LADDER_POOR
        return LADDER_BELOW
    return int(clamp_score(percentile(stats.values, value)))


def _weighted_score(
    game: GameMetricRecord,
    template: BenchmarkTemplate,
    stats: Dict[MetricKind, GroupStats],
) -> float:
    total = 0.0
    total_weight = 0.0
    for metric in template.metrics:
        value = extract_metric_value(game, metric.kind)
        total += score_metric(value, stats[metric.kind], metric.threshold) * metric.weight
        total_weight += metric.weight
    if total_weight <= 0:
        return float(NEUTRAL_SCORE)
    return clamp_score(total / total_weight)


# ============================================================
# STRENGTHS, WEAKNESSES & RECOMMENDATIONS
# ============================================================

def _strengths_and_weaknesses(results: List[MetricResult]) -> Tuple[List[str], List[str]]:
    ranked = sorted(results, key=lambda r: r.score, reverse=True)

    strengths = [
        f"{r.name}: {r.display_value} (top {100 - r.percentile}%)"
        for r in ranked if r.score >= STRENGTH_SCORE
    ][:MAX_STRENGTHS]

    weak = [r for r in ranked if r.score < WEAKNESS_SCORE][-MAX_WEAKNESSES:]
    weaknesses = [f"{r.name}: {r.display_value} (bottom {r.percentile}%)" for r in weak]

    return strengths, weaknesses


def generate_recommendations(results: List[MetricResult], game: GameMetricRecord) -> List[str]:
    """Rule-table recommendations in metric order, capped at 5."""
    recs = []

    for result in results:
        if result.score < RECOMMEND_LOW_SCORE:
            band = 'low'
        elif result.score >= RECOMMEND_HIGH_SCORE:
            band = 'high'
        else:
            continue
        rec = RECOMMENDATION_RULES.get((result.kind, band))
        if rec and rec not in recs:
            recs.append(rec)

    reviews = next((r for r in results if r.kind == MetricKind.REVIEWS), None)
    if game.price > PREMIUM_PRICE and reviews is not None and reviews.score < PRICE_REVIEWS_SCORE:
        recs.append(PRICE_RECOMMENDATION)

    return recs[:MAX_RECOMMENDATIONS]


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def _build_pool(target: GameMetricRecord, peers: Sequence[GameMetricRecord]) -> List[GameMetricRecord]:
    pool = [target] + [p for p in peers if p.app_id != target.app_id]
    distinct = {g.app_id for g in pool}
    if len(distinct) < MIN_POOL_SIZE:
        raise InsufficientDataError(
            code=POOL_TOO_SMALL,
            message=f"Benchmark needs at least {MIN_POOL_SIZE} distinct games, got {len(distinct)}",
            details={'app_id': target.app_id},
        )
    return pool


def run_benchmark(
    target: GameMetricRecord,
    peers: Sequence[GameMetricRecord],
    template: BenchmarkTemplate,
) -> BenchmarkResult:
    """Score target against peers using template.

    Pure and deterministic: identical inputs give identical results.

    Raises:
        InsufficientDataError: fewer than 2 distinct games in the pool.
    """
    pool = _build_pool(target, peers)
    kinds = [m.kind for m in template.metrics]
    stats = calculate_group_stats(pool, kinds)

    metric_results: List[MetricResult] = []
    weighted_sum = 0.0
    total_weight = 0.0

    for metric in template.metrics:
        value = extract_metric_value(target, metric.kind)
        group = stats[metric.kind]
        score = score_metric(value, group, metric.threshold)

        metric_results.append(MetricResult(
            kind=metric.kind,
            name=metric.name,
            value=value,
            display_value=format_metric_value(value, metric.kind),
            score=score,
            grade=score_to_grade(score),
            percentile=percentile(group.values, value),
            comparison=MetricComparison(
                average=group.average,
                median=group.median,
                best=group.max,
                worst=group.min,
            ),
        ))

        weighted_sum += score * metric.weight
        total_weight += metric.weight

    if total_weight > 0:
        overall_score = round_half_up(clamp_score(weighted_sum / total_weight))
    else:
        overall_score = NEUTRAL_SCORE

    strengths, weaknesses = _strengths_and_weaknesses(metric_results)
    recommendations = generate_recommendations(metric_results, target)

    # Position within the pool, every member scored the same way
    pool_scores = [_weighted_score(g, template, stats) for g in pool]
    target_score = pool_scores[0]
    position = sum(1 for s in pool_scores if s > target_score) + 1
    pool_percentile = percentile(pool_scores, target_score)

    logger.debug("benchmark %s on %s: score=%s position=%s/%s",
                 target.app_id, template.id, overall_score, position, len(pool))

    return BenchmarkResult(
        template_id=template.id,
        template_name=template.name,
        app_id=target.app_id,
        game_name=target.name,
        overall_score=overall_score,
        overall_grade=score_to_grade(overall_score),
        percentile=pool_percentile,
        metric_results=metric_results,
        group_comparison=GroupComparison(
            group_name=template.name,
            position=position,
            total=len(pool),
            percentile=pool_percentile,
        ),
        strengths=strengths,
        weaknesses=weaknesses,
        recommendations=recommendations,
    )


def run_batch_benchmark(
    games: Sequence[GameMetricRecord],
    template: BenchmarkTemplate,
    max_workers: Optional[int] = None,
) -> List[BenchmarkResult]:
    """Benchmark every game against the rest of the list.

    Results come back in input order. With max_workers > 1 the independent
    evaluations run on a thread pool.
    """
    distinct = {g.app_id for g in games}
    if len(distinct) < MIN_POOL_SIZE:
        raise InsufficientDataError(
            code=POOL_TOO_SMALL,
            message=f"Batch benchmark needs at least {MIN_POOL_SIZE} distinct games, got {len(distinct)}",
        )

    def evaluate(game: GameMetricRecord) -> BenchmarkResult:
        others = [g for g in games if g.app_id != game.app_id]
        return run_benchmark(game, others, template)

    if max_workers and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(evaluate, games))
    return [evaluate(g) for g in games]


# ============================================================
# BATCH SUMMARY
# ============================================================

@dataclass
class BenchmarkSummary:
    top_performers: List[Dict[str, object]]
    average_score: int
    score_distribution: List[Dict[str, object]]
    key_insights: List[str]


def generate_benchmark_summary(results: Sequence[BenchmarkResult]) -> BenchmarkSummary:
    """Top performers, average score and grade distribution of a batch."""
    if not results:
        return BenchmarkSummary([], NEUTRAL_SCORE, [{'grade': g, 'count': 0} for g in GRADE_ORDER], [])

    top = sorted(results, key=lambda r: r.overall_score, reverse=True)[:5]
    top_performers = [
        {'app_id': r.app_id, 'name': r.game_name, 'score': r.overall_score}
        for r in top
    ]

    average_score = round_half_up(sum(r.overall_score for r in results) / len(results))

    counts = {g: 0 for g in GRADE_ORDER}
    for r in results:
        counts[r.overall_grade] += 1
    distribution = [{'grade': g, 'count': c} for g, c in counts.items()]

    insights = []
    n = len(results)
    high = counts['S'] + counts['A']
    low = counts['D'] + counts['F']
    if high > n * 0.3:
        insights.append(f"{round_half_up(high / n * 100)}% of the analyzed games rate S or A")
    if low > n * 0.3:
        insights.append(f"{round_half_up(low / n * 100)}% of the analyzed games need improvement (D or F)")
    insights.append(f"Top performer: {top_performers[0]['name']} ({top_performers[0]['score']} pts)")
    insights.append(f"Average benchmark score: {average_score} pts")

    return BenchmarkSummary(top_performers, average_score, distribution, insights)

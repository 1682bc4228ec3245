#!/usr/bin/env python3
"""
GM Insights — Plain-English sentences for engine results.

Every sentence is hedged ("tends to", "is estimated", "is associated
with"). Correlation and benchmark numbers describe association within a
peer group or time window, never cause and effect.
"""

from typing import List

from gm_core import BenchmarkResult
from gm_correlation import (
    CorrelationCoefficients,
    ElasticityResult,
    LagAnalysis,
    interpret_correlation,
)

LAG_CONFIDENCE_MIN = 0.5
ELASTICITY_CONFIDENCE_MIN = 0.3

RANKING_LABELS = {
    'ccu': 'concurrent players',
    'reviews': 'review count',
    'positive_ratio': 'user rating',
    'revenue': 'estimated revenue',
}


# ============================================================
# CORRELATION
# ============================================================

def describe_correlation(r: float) -> str:
    """Short label such as "strong positive correlation"."""
    strength, direction = interpret_correlation(r)
    if strength == 'none':
        return 'no meaningful correlation'
    words = [strength.replace('_', ' ')]
    if direction != 'none':
        words.append(direction)
    words.append('correlation')
    return ' '.join(words)


def correlation_insights(
    game_name: str,
    coefficients: CorrelationCoefficients,
    lag: LagAnalysis,
    elasticity: ElasticityResult,
) -> List[str]:
    insights = []

    r = coefficients.viewers_vs_ccu
    strength, _ = interpret_correlation(r)
    if strength != 'none':
        insights.append(
            f"Streaming viewership for {game_name} is associated with CCU "
            f"through a {describe_correlation(r)} (r={r:.2f})"
        )
    else:
        insights.append(
            f"Streaming viewership for {game_name} does not tend to move with CCU "
            f"(no meaningful correlation, r={r:.2f})"
        )

    if lag.confidence > LAG_CONFIDENCE_MIN:
        if lag.optimal_lag_days > 0:
            unit = 'day' if lag.optimal_lag_days == 1 else 'days'
            insights.append(
                f"The streaming effect tends to show up in CCU about "
                f"{lag.optimal_lag_days} {unit} later"
            )
        else:
            insights.append("The streaming effect tends to show up in CCU on the same day")

    if elasticity.confidence > ELASTICITY_CONFIDENCE_MIN and elasticity.elasticity != 0:
        change = abs(elasticity.elasticity * 10)
        movement = 'rise' if elasticity.elasticity > 0 else 'fall'
        insights.append(
            f"A 10% rise in streaming viewers is estimated to go with "
            f"a {change:.1f}% {movement} in CCU"
        )

    streams_strength, streams_direction = interpret_correlation(coefficients.streams_vs_ccu)
    if streams_strength in ('strong', 'very_strong'):
        level = 'higher' if streams_direction == 'positive' else 'lower'
        insights.append(
            f"Days with more live streams tend to have {level} CCU, "
            f"so a broad streamer roster is associated with reach"
        )

    reviews_strength, reviews_direction = interpret_correlation(coefficients.viewers_vs_reviews)
    if reviews_strength in ('moderate', 'strong'):
        level = 'more' if reviews_direction == 'positive' else 'fewer'
        insights.append(f"Days with more streaming viewers tend to see {level} reviews written")

    return insights


# ============================================================
# BENCHMARK
# ============================================================

def benchmark_insights(result: BenchmarkResult) -> List[str]:
    """Headline plus strongest and weakest metric."""
    group = result.group_comparison
    insights = [
        f"{result.game_name} is estimated at {result.overall_score} points "
        f"(grade {result.overall_grade}) on the {result.template_name}, "
        f"placing {group.position} of {group.total}"
    ]

    if result.metric_results:
        ranked = sorted(result.metric_results, key=lambda m: m.score, reverse=True)
        best, worst = ranked[0], ranked[-1]
        insights.append(
            f"{best.name} tends to be the strongest area "
            f"({best.display_value}, {best.score} pts)"
        )
        if worst is not best and worst.score < best.score:
            insights.append(
                f"{worst.name} tends to be the weakest area "
                f"({worst.display_value}, {worst.score} pts)"
            )

    return insights


# ============================================================
# COMPARISON
# ============================================================

def comparison_insights(result) -> List[str]:
    """Leader per ranking and the pricing note of a ComparisonResult."""
    insights = []
    for metric, label in RANKING_LABELS.items():
        ranking = result.rankings.get(metric)
        if ranking:
            insights.append(f"{ranking[0].name} tends to lead the group on {label}")

    cheapest = result.rankings.get('price')
    if cheapest and len(cheapest) > 1:
        insights.append(f"{cheapest[0].name} is estimated to be the most affordable option")

    note = result.price_analysis.recommendation
    if note:
        insights.append(f"Pricing in this group tends to suggest: {note}")

    return insights

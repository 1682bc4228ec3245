#!/usr/bin/env python3
"""
GM Correlation — Streaming attention vs player concurrency.

Features:
- Pearson correlation with degenerate-input guards
- Lag search (how many days streaming leads CCU)
- Log-log elasticity (1% more viewers -> x% more CCU)
- Strength / direction interpretation
- Full analysis over a daily metric series

All outputs are finite: insufficient or constant series give 0.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from gm_core import round_half_up

logger = logging.getLogger(__name__)

# ============================================================
# THRESHOLD CONSTANTS
# ============================================================

MIN_POINTS = 3               # pearson / lag window minimum
MIN_ELASTICITY_PAIRS = 5
FULL_CONFIDENCE_DAYS = 14    # two weeks of daily points = full confidence
DEFAULT_MAX_LAG = 7

# --- |r| strength buckets ---
STRENGTH_BUCKETS = (
    (0.9, 'very_strong'),
    (0.7, 'strong'),
    (0.5, 'moderate'),
    (0.3, 'weak'),
    (0.1, 'very_weak'),
)
DIRECTION_THRESHOLD = 0.1


# ============================================================
# DATA CLASSES
# ============================================================

@dataclass(frozen=True)
class DailyMetric:
    """One day of aligned telemetry; None = not collected that day."""
    date: str
    ccu_avg: Optional[float] = None
    ccu_peak: Optional[float] = None
    streaming_viewers_avg: Optional[float] = None
    streaming_streams_avg: Optional[float] = None
    review_count: Optional[float] = None


@dataclass
class LagResult:
    optimal_lag: int
    correlation: float
    all_lags: List[Tuple[int, float]] = field(default_factory=list)


@dataclass
class ElasticityResult:
    elasticity: float = 0.0
    confidence: float = 0.0
    r_squared: float = 0.0


@dataclass
class CorrelationCoefficients:
    viewers_vs_ccu: float = 0.0
    streams_vs_ccu: float = 0.0
    viewers_vs_reviews: float = 0.0


@dataclass
class LagAnalysis:
    optimal_lag_days: int = 0
    optimal_lag_hours: int = 0
    correlation_at_lag: float = 0.0
    confidence: float = 0.0


@dataclass
class CorrelationAnalysis:
    """Output of analyze_streaming_correlation()."""
    app_id: str
    game_name: str
    time_range: str
    correlation: CorrelationCoefficients
    lag_analysis: LagAnalysis
    elasticity: ElasticityResult
    insights: List[str]
    daily_data: List[DailyMetric]


# ============================================================
# CORE STATISTICS
# ============================================================

def pearson(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation coefficient in [-1, 1].

    Returns 0 for unequal lengths, fewer than 3 points or a constant series.
    """
    if len(x) != len(y) or len(x) < MIN_POINTS:
        return 0.0

    n = len(x)
    mean_x = sum(x) / n
    mean_y = sum(y) / n
    dx = [v - mean_x for v in x]
    dy = [v - mean_y for v in y]

    var_x = sum(d * d for d in dx)
    var_y = sum(d * d for d in dy)
    if var_x == 0 or var_y == 0 or min(x) == max(x) or min(y) == max(y):
        return 0.0

    r = sum(a * b for a, b in zip(dx, dy)) / math.sqrt(var_x * var_y)
    return max(-1.0, min(1.0, r))


def lag_correlation(
    streaming: Sequence[float],
    ccu: Sequence[float],
    max_lag: int = DEFAULT_MAX_LAG,
) -> LagResult:
    """Find the lag (in samples) at which streaming best predicts ccu.

    Lags are tried in ascending order and only a strictly higher
    correlation replaces the best, so the smallest lag wins ties.
    """
    all_lags: List[Tuple[int, float]] = []
    best_lag = 0
    best_corr: Optional[float] = None

    for lag in range(max_lag + 1):
        shifted_streaming = list(streaming[:max(0, len(streaming) - lag)])
        shifted_ccu = list(ccu[lag:])
        size = min(len(shifted_streaming), len(shifted_ccu))
        if size < MIN_POINTS:
            continue

        corr = pearson(shifted_streaming[:size], shifted_ccu[:size])
        all_lags.append((lag, corr))

        if best_corr is None or corr > best_corr:
            best_corr = corr
            best_lag = lag

    if best_corr is None:
        logger.debug("lag_correlation: no window of %d+ points", MIN_POINTS)
        return LagResult(optimal_lag=0, correlation=0.0, all_lags=[])

    return LagResult(optimal_lag=best_lag, correlation=best_corr, all_lags=all_lags)


def estimate_elasticity(streaming: Sequence[float], ccu: Sequence[float]) -> ElasticityResult:
    """Log-log OLS slope of ccu on streaming viewers.

    Only strictly positive pairs count; fewer than 5 gives all zeros.
    Confidence scales R^2 by sample size (14 points = full).
    """
    pairs = [(s, c) for s, c in zip(streaming, ccu)
             if s is not None and c is not None and s > 0 and c > 0]
    if len(pairs) < MIN_ELASTICITY_PAIRS:
        return ElasticityResult()

    log_s = [math.log(s) for s, _ in pairs]
    log_c = [math.log(c) for _, c in pairs]
    n = len(pairs)
    mean_s = sum(log_s) / n
    mean_c = sum(log_c) / n

    sxx = sum((x - mean_s) ** 2 for x in log_s)
    if sxx == 0 or min(log_s) == max(log_s):
        logger.debug("estimate_elasticity: constant streaming series")
        return ElasticityResult()

    sxy = sum((x - mean_s) * (y - mean_c) for x, y in zip(log_s, log_c))
    slope = sxy / sxx
    intercept = mean_c - slope * mean_s

    ss_total = sum((y - mean_c) ** 2 for y in log_c)
    ss_residual = sum((y - (slope * x + intercept)) ** 2 for x, y in zip(log_s, log_c))
    if ss_total > 0 and min(log_c) != max(log_c):
        r_squared = 1 - ss_residual / ss_total
    else:
        r_squared = 0.0

    confidence = max(0.0, min(1.0, r_squared)) * min(n / FULL_CONFIDENCE_DAYS, 1.0)

    return ElasticityResult(
        elasticity=round(slope, 4),
        confidence=round(confidence, 3),
        r_squared=round(r_squared, 4),
    )


def interpret_correlation(r: float) -> Tuple[str, str]:
    """(strength, direction) vocabulary for a coefficient."""
    magnitude = abs(r)
    strength = 'none'
    for minimum, label in STRENGTH_BUCKETS:
        if magnitude >= minimum:
            strength = label
            break

    if r > DIRECTION_THRESHOLD:
        direction = 'positive'
    elif r < -DIRECTION_THRESHOLD:
        direction = 'negative'
    else:
        direction = 'none'

    return strength, direction


def correlation_to_percentage(r: float) -> int:
    """Share of variance explained (r^2) as a whole percentage."""
    return round_half_up(r * r * 100)


# ============================================================
# FULL ANALYSIS
# ============================================================

def _paired(metrics: Sequence[DailyMetric], x_attr: str, y_attr: str) -> Tuple[List[float], List[float]]:
    xs, ys = [], []
    for m in metrics:
        x, y = getattr(m, x_attr), getattr(m, y_attr)
        if x is not None and y is not None:
            xs.append(x)
            ys.append(y)
    return xs, ys


def analyze_streaming_correlation(
    app_id: str,
    game_name: str,
    daily_metrics: Sequence[DailyMetric],
    time_range: str = '30d',
    max_lag: int = DEFAULT_MAX_LAG,
) -> CorrelationAnalysis:
    """Correlate streaming viewership with CCU over a daily series.

    Days without both CCU and viewer data are dropped. Streams and review
    coefficients use only the days where both of their series are present.
    A negative max_lag searches lag 0 only.
    """
    from gm_insights import correlation_insights

    max_lag = max(0, max_lag)
    valid = [m for m in daily_metrics
             if m.ccu_avg is not None and m.streaming_viewers_avg is not None]
    viewers = [m.streaming_viewers_avg for m in valid]
    ccu = [m.ccu_avg for m in valid]

    streams_x, streams_y = _paired(valid, 'streaming_streams_avg', 'ccu_avg')
    reviews_x, reviews_y = _paired(valid, 'streaming_viewers_avg', 'review_count')

    coefficients = CorrelationCoefficients(
        viewers_vs_ccu=round(pearson(viewers, ccu), 4),
        streams_vs_ccu=round(pearson(streams_x, streams_y), 4),
        viewers_vs_reviews=round(pearson(reviews_x, reviews_y), 4),
    )

    lag = lag_correlation(viewers, ccu, max_lag)
    lag_analysis = LagAnalysis(
        optimal_lag_days=lag.optimal_lag,
        optimal_lag_hours=lag.optimal_lag * 24,
        correlation_at_lag=round(lag.correlation, 4),
        confidence=round(len(lag.all_lags) / (max_lag + 1), 2),
    )

    elasticity = estimate_elasticity(viewers, ccu)

    logger.debug("correlation %s: %d/%d usable days, r=%s",
                 app_id, len(valid), len(daily_metrics), coefficients.viewers_vs_ccu)

    return CorrelationAnalysis(
        app_id=app_id,
        game_name=game_name,
        time_range=time_range,
        correlation=coefficients,
        lag_analysis=lag_analysis,
        elasticity=elasticity,
        insights=correlation_insights(game_name, coefficients, lag_analysis, elasticity),
        daily_data=list(daily_metrics),
    )

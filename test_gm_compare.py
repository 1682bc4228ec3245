#!/usr/bin/env python3
"""
Tests for gm_compare.py — competitive comparison.

Run: pytest test_gm_compare.py -v
"""

import pytest

from gm_compare import (
    PRICE_NOTE_ALL_FREE,
    PRICE_NOTE_BUDGET,
    PRICE_NOTE_NARROW,
    PRICE_NOTE_PREMIUM,
    analyze_pricing,
    compare_entities,
    comparison_table,
    radar_scores,
)
from gm_core import EMPTY_ENTITY_LIST, GameMetricRecord, InsufficientDataError


# ============================================================
# HELPERS
# ============================================================

def make_game(**kwargs) -> GameMetricRecord:
    """Shorthand for creating GameMetricRecord with defaults."""
    defaults = {
        'app_id': 'g1',
        'name': 'Test Game',
        'price': 19.99,
        'ccu': 100,
        'total_reviews': 1000,
        'positive_ratio': 85,
        'release_year': 2022,
        'genres': ('Action',),
        'tags': ('Indie',),
        'estimated_revenue': 100_000.0,
    }
    defaults.update(kwargs)
    return GameMetricRecord(**defaults)


def trio():
    return [
        make_game(app_id='a', name='Alpha', ccu=1000, total_reviews=5000, estimated_revenue=3e6, price=10),
        make_game(app_id='b', name='Beta', ccu=500, total_reviews=3000, estimated_revenue=2e6, price=10),
        make_game(app_id='c', name='Gamma', ccu=100, total_reviews=1000, estimated_revenue=1e6, price=40),
    ]


# ============================================================
# VALIDATION
# ============================================================

class TestValidation:

    def test_empty_raises(self):
        with pytest.raises(InsufficientDataError) as exc_info:
            compare_entities([])
        assert exc_info.value.code == EMPTY_ENTITY_LIST

    def test_single_entity(self):
        """One game is legal: every ranking is trivial."""
        result = compare_entities([make_game(app_id='solo', tags=('Indie', 'Roguelike'))])
        for items in result.rankings.values():
            assert [(i.app_id, i.rank) for i in items] == [('solo', 1)]
        assert 'Highest concurrent players' in result.strengths['solo']
        assert 'Lowest concurrent players' not in result.weaknesses['solo']
        assert result.common_tags == ['Indie', 'Roguelike']
        assert result.differentiators['solo'] == []


# ============================================================
# RANKINGS
# ============================================================

class TestRankings:

    def test_descending_metrics(self):
        result = compare_entities(trio())
        assert [i.app_id for i in result.rankings['ccu']] == ['a', 'b', 'c']
        assert [i.rank for i in result.rankings['ccu']] == [1, 2, 3]
        assert [i.app_id for i in result.rankings['revenue']] == ['a', 'b', 'c']

    def test_price_ascending(self):
        result = compare_entities(trio())
        assert result.rankings['price'][-1].app_id == 'c'

    def test_ties_keep_input_order(self):
        games = [make_game(app_id=x, ccu=50) for x in ('z', 'y', 'x')]
        result = compare_entities(games)
        assert [i.app_id for i in result.rankings['ccu']] == ['z', 'y', 'x']
        assert [i.app_id for i in result.rankings['price']] == ['z', 'y', 'x']

    def test_revenue_estimated_when_missing(self):
        games = [make_game(app_id='a', estimated_revenue=None, total_reviews=10),
                 make_game(app_id='b', estimated_revenue=None, total_reviews=10000)]
        result = compare_entities(games)
        assert result.rankings['revenue'][0].app_id == 'b'
        assert result.rankings['revenue'][0].value > 0


# ============================================================
# STRENGTHS & WEAKNESSES
# ============================================================

class TestStrengthsWeaknesses:

    def test_rank_extremes(self):
        result = compare_entities(trio())
        assert 'Highest concurrent players' in result.strengths['a']
        assert 'Most reviews (highest visibility)' in result.strengths['a']
        assert 'Highest estimated revenue' in result.strengths['a']
        assert 'Lowest concurrent players' in result.weaknesses['c']
        assert result.strengths['b'] == []

    def test_rating_rules(self):
        games = [make_game(app_id='good', positive_ratio=93), make_game(app_id='bad', positive_ratio=62)]
        result = compare_entities(games)
        assert 'Overwhelmingly positive reviews' in result.strengths['good']
        assert 'Below-average user rating' in result.weaknesses['bad']

    def test_free_and_discount(self):
        games = [
            make_game(app_id='free', price=0, is_free=True),
            make_game(app_id='sale', current_discount=25),
            make_game(app_id='full'),
        ]
        result = compare_entities(games)
        assert 'Free to play (low barrier to entry)' in result.strengths['free']
        assert 'Currently 25% off' in result.strengths['sale']

    def test_expensive_without_discount(self):
        """40 > 1.5 x avg(10, 10, 40) = 30."""
        result = compare_entities(trio())
        assert 'Priced above the group average' in result.weaknesses['c']

    def test_expensive_on_sale_is_not_weak(self):
        games = trio()
        games[2] = make_game(app_id='c', price=40, current_discount=10)
        result = compare_entities(games)
        assert 'Priced above the group average' not in result.weaknesses['c']

    def test_maps_in_input_order(self):
        result = compare_entities(trio())
        assert list(result.strengths) == ['a', 'b', 'c']
        assert list(result.weaknesses) == ['a', 'b', 'c']
        assert list(result.differentiators) == ['a', 'b', 'c']


# ============================================================
# TAGS
# ============================================================

class TestTags:

    def test_identical_tag_sets(self):
        """Shared tags are all common and nobody has differentiators."""
        tags = ('Roguelike', 'Indie', 'Pixel Graphics')
        games = [make_game(app_id=str(i), tags=tags) for i in range(4)]
        result = compare_entities(games)
        assert result.common_tags == list(tags)
        assert all(d == [] for d in result.differentiators.values())

    def test_unique_tags(self):
        games = [
            make_game(app_id='a', tags=('Shared', 'Crafting')),
            make_game(app_id='b', tags=('Shared', 'Horror')),
            make_game(app_id='c', tags=('Shared', 'Horror')),
        ]
        result = compare_entities(games)
        assert result.common_tags == ['Shared']
        assert result.differentiators['a'] == ['Crafting']
        # Horror on 2 of 3 = ceil(3/2), so it is a rare-tag fallback
        assert result.differentiators['b'] == ['Horror']

    def test_rare_tag_fallback(self):
        games = [
            make_game(app_id='a', tags=('P', 'R')),
            make_game(app_id='b', tags=('P', 'R')),
            make_game(app_id='c', tags=('P', 'S')),
            make_game(app_id='d', tags=('P', 'S')),
        ]
        result = compare_entities(games)
        assert result.common_tags == ['P']
        assert result.differentiators['a'] == ['R']
        assert result.differentiators['d'] == ['S']

    def test_caps(self):
        many = tuple(f"tag{i}" for i in range(12))
        games = [make_game(app_id='a', tags=many + ('x1', 'x2', 'x3', 'x4', 'x5', 'x6', 'x7')),
                 make_game(app_id='b', tags=many)]
        result = compare_entities(games)
        assert len(result.common_tags) == 10
        assert result.differentiators['a'] == ['x1', 'x2', 'x3', 'x4', 'x5']


# ============================================================
# PRICE & MARKET POSITION
# ============================================================

class TestPricing:

    def test_all_free(self):
        analysis = analyze_pricing([make_game(app_id=str(i), price=0, is_free=True) for i in range(3)])
        assert analysis.recommendation == PRICE_NOTE_ALL_FREE
        assert analysis.average == 0

    def test_narrow_spread(self):
        analysis = analyze_pricing([make_game(app_id=str(i), price=p) for i, p in enumerate([10, 12, 14])])
        assert analysis.median == 12
        assert analysis.recommendation == PRICE_NOTE_NARROW

    def test_premium(self):
        analysis = analyze_pricing([make_game(app_id=str(i), price=p) for i, p in enumerate([35, 45, 60])])
        assert analysis.recommendation == PRICE_NOTE_PREMIUM

    def test_budget(self):
        analysis = analyze_pricing([make_game(app_id=str(i), price=p) for i, p in enumerate([5, 10, 14.99])])
        assert analysis.recommendation == PRICE_NOTE_BUDGET

    def test_free_games_excluded(self):
        games = [make_game(app_id='f', price=0, is_free=True),
                 make_game(app_id='a', price=20), make_game(app_id='b', price=30)]
        analysis = analyze_pricing(games)
        assert analysis.average == 25
        assert analysis.median == 30
        assert (analysis.min, analysis.max) == (20, 30)
        assert analysis.recommendation is None

    def test_market_position(self):
        games = [make_game(app_id='a', price=0, is_free=True, ccu=0),
                 make_game(app_id='b', price=20, ccu=50),
                 make_game(app_id='c', price=40, ccu=100)]
        points = compare_entities(games).market_position
        assert [p.x for p in points] == [0, 50, 100]
        assert [p.size for p in points] == [10, 35, 60]
        assert points[1].y == 85

    def test_market_position_all_free(self):
        games = [make_game(app_id='a', price=0, is_free=True, ccu=0),
                 make_game(app_id='b', price=0, is_free=True, ccu=0)]
        points = compare_entities(games).market_position
        assert all(p.x == 0 and p.size == 10 for p in points)


# ============================================================
# DISPLAY ROWS
# ============================================================

class TestDisplayRows:

    def test_comparison_table(self):
        games = [make_game(app_id='a', price=0, is_free=True), make_game(app_id='b', price=9.99)]
        rows = comparison_table(games)
        price = rows[0]
        assert price['metric'] == 'Price'
        assert price['a'] == 'Free'
        assert price['b'] == '$9.99'

    def test_radar_scores(self):
        games = [make_game(app_id='a', price=0, is_free=True, ccu=50),
                 make_game(app_id='b', price=20, ccu=100)]
        rows = {r['metric']: r for r in radar_scores(games)}
        assert rows['Popularity'] == {'metric': 'Popularity', 'a': 50, 'b': 100}
        assert rows['Value']['a'] == 100
        assert rows['Value']['b'] == 0

#!/usr/bin/env python3
"""
Tests for gm_batch_analyzer.py — config, input loading, result files, CLI.

Run: pytest test_gm_batch_analyzer.py -v
"""

import json
import os

import pandas as pd
import pytest

from gm_batch_analyzer import (
    RESULTS_FILE,
    SUMMARY_FILE,
    AnalyzerConfig,
    load_config,
    load_daily_metrics,
    load_game_records,
    main,
    save_results,
)
from gm_benchmark import generate_benchmark_summary, get_template, run_batch_benchmark
from gm_core import MetricKind

HERE = os.path.dirname(os.path.abspath(__file__))
DATABASE = os.path.join(HERE, 'game_database.json')


# ============================================================
# CONFIGURATION
# ============================================================

class TestLoadConfig:

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(str(tmp_path / 'missing.yaml'))
        assert config == AnalyzerConfig()

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text('')
        assert load_config(str(path)) == AnalyzerConfig()

    def test_sections(self, tmp_path):
        path = tmp_path / 'gm.yaml'
        path.write_text(
            "analysis:\n"
            "  template: roguelike\n"
            "  max_lag: 10\n"
            "  workers: 3\n"
            "output:\n"
            "  directory: out\n"
            "  save: false\n"
            "logging:\n"
            "  level: debug\n"
            "templates:\n"
            "  - id: mine\n"
            "    name: Mine\n"
            "    metrics:\n"
            "      - kind: ccu\n"
            "        weight: 60\n"
            "      - kind: rating\n"
            "        weight: 40\n"
            "        threshold: null\n"
        )
        config = load_config(str(path))
        assert config.template == 'roguelike'
        assert config.max_lag == 10
        assert config.workers == 3
        assert config.output_dir == 'out'
        assert config.save is False
        assert config.log_level == 'DEBUG'
        assert [t.id for t in config.templates] == ['mine']
        assert config.templates[0].metrics[1].threshold is None

    def test_bundled_example_config(self):
        config = load_config(os.path.join(HERE, 'gm_config.yaml'))
        assert config.template == 'indie'
        assert config.templates[0].id == 'survivors_like'

    def test_negative_max_lag_rejected(self, tmp_path):
        path = tmp_path / 'gm.yaml'
        path.write_text("analysis:\n  max_lag: -1\n")
        with pytest.raises(ValueError):
            load_config(str(path))


# ============================================================
# INPUT LOADING
# ============================================================

class TestLoadGameRecords:

    def test_json_database(self):
        games = load_game_records(DATABASE)
        assert len(games) == 8
        assert games[0].name == 'Hades'

    def test_csv(self, tmp_path):
        path = tmp_path / 'games.csv'
        pd.DataFrame([
            {'app_id': 1, 'name': 'One', 'price': 9.99, 'ccu': 100, 'total_reviews': 500,
             'positive_ratio': 91, 'release_year': 2021, 'genres': 'Action;Indie',
             'tags': 'Roguelike', 'median_playtime': 600},
            {'app_id': 2, 'name': 'Two', 'price': 0, 'ccu': 50, 'total_reviews': 80,
             'positive_ratio': 70, 'release_year': 2023, 'genres': None,
             'tags': None, 'median_playtime': None},
        ]).to_csv(path, index=False)

        one, two = load_game_records(str(path))
        assert one.app_id == '1'
        assert one.genres == ('Action', 'Indie')
        assert one.median_playtime == 600
        assert two.is_free
        assert two.genres == ()
        assert two.median_playtime is None


class TestLoadDailyMetrics:

    def test_blanks_become_none(self, tmp_path):
        path = tmp_path / 'daily.csv'
        path.write_text(
            "date,ccu_avg,streaming_viewers_avg,review_count\n"
            "2026-03-01,1000,200,5\n"
            "2026-03-02,,250,\n"
        )
        first, second = load_daily_metrics(str(path))
        assert first.date == '2026-03-01'
        assert first.ccu_avg == 1000
        assert first.ccu_peak is None
        assert second.ccu_avg is None
        assert second.streaming_viewers_avg == 250

    def test_missing_date_column(self, tmp_path):
        path = tmp_path / 'daily.csv'
        path.write_text("ccu_avg\n1\n")
        with pytest.raises(ValueError):
            load_daily_metrics(str(path))


# ============================================================
# RESULT FILES
# ============================================================

class TestSaveResults:

    def test_writes_json_and_csv(self, tmp_path):
        games = load_game_records(DATABASE)
        results = run_batch_benchmark(games, get_template('indie'))
        summary = generate_benchmark_summary(results)

        json_path, csv_path = save_results(results, summary, str(tmp_path / 'out'))

        with open(json_path) as f:
            payload = json.load(f)
        assert len(payload['results']) == len(games)
        assert payload['results'][0]['metric_results'][0]['kind'] == MetricKind.REVENUE.value
        assert payload['results'][0]['insights']
        assert 'average_score' in payload['summary']

        df = pd.read_csv(csv_path)
        assert len(df) == len(games)
        assert {'app_id', 'overall_score', 'overall_grade', 'revenue_score'} <= set(df.columns)


# ============================================================
# CLI
# ============================================================

class TestMain:

    def _args(self, tmp_path, *extra):
        return [DATABASE, '--config', str(tmp_path / 'none.yaml'), '--output', str(tmp_path), *extra]

    def test_batch_run_saves_files(self, tmp_path):
        assert main(self._args(tmp_path)) == 0
        assert (tmp_path / RESULTS_FILE).exists()
        assert (tmp_path / SUMMARY_FILE).exists()

    def test_no_save(self, tmp_path):
        assert main(self._args(tmp_path, '--no-save', '--compare', '--workers', '2')) == 0
        assert not (tmp_path / RESULTS_FILE).exists()

    def test_unknown_template(self, tmp_path):
        assert main(self._args(tmp_path, '--template', 'nope')) == 1

    def test_missing_games_file(self, tmp_path):
        assert main([str(tmp_path / 'missing.json'), '--config', str(tmp_path / 'none.yaml')]) == 1

    def test_single_game_pool(self, tmp_path):
        path = tmp_path / 'one.json'
        path.write_text(json.dumps({'1': {'name': 'Solo', 'price': 5}}))
        assert main([str(path), '--config', str(tmp_path / 'none.yaml'), '--no-save']) == 1

    def test_series(self, tmp_path):
        series = tmp_path / 'daily.csv'
        rows = ["date,ccu_avg,streaming_viewers_avg"]
        rows += [f"2026-03-{d:02d},{1000 + d * 50},{200 + d * 10}" for d in range(1, 15)]
        series.write_text("\n".join(rows) + "\n")

        assert main(self._args(tmp_path, '--series', str(series), '--app-id', '1145360')) == 0
        with open(tmp_path / RESULTS_FILE) as f:
            payload = json.load(f)
        assert payload['correlation']['app_id'] == '1145360'
        assert payload['correlation']['game_name'] == 'Hades'
        assert payload['correlation']['correlation']['viewers_vs_ccu'] == pytest.approx(1.0)

    @pytest.mark.parametrize('content', [
        "templates:\n  - id: x\n    metrics:\n      - kind: vibes\n        weight: 1\n",
        "templates:\n  - name: No Id\n",
        "analysis: [unclosed\n",
        "analysis:\n  max_lag: -1\n",
    ])
    def test_invalid_config(self, tmp_path, content):
        config = tmp_path / 'bad.yaml'
        config.write_text(content)
        assert main([DATABASE, '--config', str(config), '--no-save']) == 1

    def test_markup_in_template_id(self, tmp_path):
        """Brackets in an unknown id are printed, not parsed as markup."""
        assert main(self._args(tmp_path, '--template', '[/nope]')) == 1

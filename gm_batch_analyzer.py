#!/usr/bin/env python3
"""
GM Analysis - Batch Analyzer
Benchmarks every game of a database against the rest of the group.

Optional extras:
- --compare      competitive comparison of the whole group
- --series CSV   streaming/CCU correlation for one game (--app-id)

Results are printed as rich tables and saved to
gm_batch_results.json (full data) and gm_batch_summary.csv.
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass, field
from typing import List, Optional, Sequence

import pandas as pd
import yaml
from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from gm_benchmark import (
    BenchmarkSummary,
    build_template,
    generate_benchmark_summary,
    get_template,
    run_batch_benchmark,
)
from gm_compare import ComparisonResult, compare_entities
from gm_core import (
    BenchmarkResult,
    BenchmarkTemplate,
    GameMetricRecord,
    InsufficientDataError,
    build_game_record,
    build_game_records,
    format_currency,
    format_grade,
    format_large_number,
    load_game_database,
)
from gm_correlation import CorrelationAnalysis, DailyMetric, analyze_streaming_correlation
from gm_insights import benchmark_insights, comparison_insights
from gm_revenue import influence_grade, record_revenue, revenue_grade

# Load environment variables
load_dotenv()

# Initialize Rich console
console = Console()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = 'gm_config.yaml'
RESULTS_FILE = 'gm_batch_results.json'
SUMMARY_FILE = 'gm_batch_summary.csv'

SERIES_COLUMNS = ('ccu_avg', 'ccu_peak', 'streaming_viewers_avg',
                  'streaming_streams_avg', 'review_count')


# ============================================================
# CONFIGURATION
# ============================================================

@dataclass
class AnalyzerConfig:
    """Configuration for the batch analyzer."""
    template: str = 'indie'
    max_lag: int = 7
    workers: int = 1
    output_dir: str = '.'
    save: bool = True
    log_level: str = 'INFO'
    templates: List[BenchmarkTemplate] = field(default_factory=list)


def load_config(config_path: str) -> AnalyzerConfig:
    """Load configuration from YAML file."""
    config = AnalyzerConfig()

    if not os.path.exists(config_path):
        console.print(f"[yellow]Config file not found: {escape(config_path)}[/yellow]")
        console.print("[yellow]Using default configuration.[/yellow]")
        return config

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    analysis = data.get('analysis', {}) or {}
    config.template = analysis.get('template', config.template)
    config.max_lag = int(analysis.get('max_lag', config.max_lag))
    if config.max_lag < 0:
        raise ValueError(f"analysis.max_lag must be 0 or more, got {config.max_lag}")
    config.workers = int(analysis.get('workers', config.workers))

    output = data.get('output', {}) or {}
    config.output_dir = output.get('directory', config.output_dir)
    config.save = bool(output.get('save', config.save))

    logging_cfg = data.get('logging', {}) or {}
    config.log_level = str(logging_cfg.get('level', config.log_level)).upper()

    config.templates = [build_template(t) for t in data.get('templates', []) or []]

    return config


def setup_logging(level: str):
    """Route log records through rich on the shared console."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


# ============================================================
# INPUT LOADING
# ============================================================

def _frame_rows(df: pd.DataFrame) -> List[dict]:
    # Empty cells -> None instead of NaN
    return df.astype(object).where(df.notna(), None).to_dict(orient='records')


def load_game_records(path: str) -> List[GameMetricRecord]:
    """Load game records from a JSON database or a one-row-per-game CSV."""
    if path.lower().endswith('.csv'):
        df = pd.read_csv(path, encoding='utf-8')
        records = [build_game_record(row) for row in _frame_rows(df)]
    else:
        records = build_game_records(load_game_database(path))

    logger.info("Loaded %d games from %s", len(records), path)
    return records


def load_daily_metrics(path: str) -> List[DailyMetric]:
    """Load a daily series CSV (date plus any of the SERIES_COLUMNS)."""
    df = pd.read_csv(path, encoding='utf-8')
    if 'date' not in df.columns:
        raise ValueError(f"{path}: missing 'date' column")

    metrics = []
    for row in _frame_rows(df):
        values = {}
        for column in SERIES_COLUMNS:
            value = row.get(column)
            values[column] = float(value) if value is not None else None
        metrics.append(DailyMetric(date=str(row['date']), **values))
    return metrics


# ============================================================
# CONSOLE OUTPUT
# ============================================================

def _revenue_cell(game: GameMetricRecord) -> str:
    if game.is_free:
        grade = influence_grade(game.ccu)
        return f"F2P · {grade.grade} {grade.label}"
    revenue = record_revenue(game)
    grade = revenue_grade(revenue)
    return f"{format_currency(revenue)} · {grade.grade} {grade.label}"


def print_benchmark_table(results: Sequence[BenchmarkResult], games: Sequence[GameMetricRecord]):
    by_id = {g.app_id: g for g in games}
    template_name = results[0].template_name if results else ''
    table = Table(title=f"{template_name} Results", box=box.ROUNDED)
    table.add_column("Game", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Grade", justify="center")
    table.add_column("Position", justify="right")
    table.add_column("Revenue (est.)")
    table.add_column("Top Strength")

    for r in sorted(results, key=lambda x: x.group_comparison.position):
        game = by_id[r.app_id]
        table.add_row(
            r.game_name[:28],
            str(r.overall_score),
            format_grade(r.overall_grade),
            f"{r.group_comparison.position}/{r.group_comparison.total}",
            _revenue_cell(game),
            r.strengths[0] if r.strengths else "-",
        )

    console.print(table)


def print_summary(summary: BenchmarkSummary):
    distribution = "  ".join(f"{d['grade']}: {d['count']}" for d in summary.score_distribution)
    lines = [f"Average score: [bold]{summary.average_score}[/bold]", f"Grades: {distribution}"]
    lines.extend(f"• {insight}" for insight in summary.key_insights)
    console.print(Panel.fit("\n".join(lines), title="Summary", border_style="blue"))


def print_comparison(comparison: ComparisonResult, games: Sequence[GameMetricRecord]):
    names = {g.app_id: g.name for g in games}

    table = Table(title="Competitive Comparison", box=box.ROUNDED)
    table.add_column("Game", style="cyan")
    table.add_column("Strengths", style="green")
    table.add_column("Weaknesses", style="red")
    table.add_column("Differentiators")

    for app_id, strengths in comparison.strengths.items():
        table.add_row(
            names.get(app_id, app_id)[:28],
            "\n".join(strengths) or "-",
            "\n".join(comparison.weaknesses.get(app_id, [])) or "-",
            ", ".join(comparison.differentiators.get(app_id, [])) or "-",
        )
    console.print(table)

    common = ", ".join(comparison.common_tags) or "none"
    lines = [f"Common tags: {common}"]
    lines.extend(f"• {insight}" for insight in comparison_insights(comparison))
    console.print(Panel.fit("\n".join(lines), title="Comparison Notes", border_style="blue"))


def print_correlation(analysis: CorrelationAnalysis):
    table = Table(title=f"Streaming Correlation: {analysis.game_name}", box=box.ROUNDED)
    table.add_column("Measure", style="cyan")
    table.add_column("Value", justify="right")

    c = analysis.correlation
    table.add_row("Viewers vs CCU", f"{c.viewers_vs_ccu:.4f}")
    table.add_row("Streams vs CCU", f"{c.streams_vs_ccu:.4f}")
    table.add_row("Viewers vs Reviews", f"{c.viewers_vs_reviews:.4f}")
    table.add_row("Optimal lag", f"{analysis.lag_analysis.optimal_lag_hours}h")
    table.add_row("Correlation at lag", f"{analysis.lag_analysis.correlation_at_lag:.4f}")
    table.add_row("Elasticity", f"{analysis.elasticity.elasticity:.4f}")
    table.add_row("Elasticity confidence", f"{analysis.elasticity.confidence:.3f}")
    console.print(table)

    if analysis.insights:
        console.print(Panel.fit("\n".join(f"• {i}" for i in analysis.insights),
                                title="Insights", border_style="blue"))


# ============================================================
# RESULT FILES
# ============================================================

def save_results(
    results: Sequence[BenchmarkResult],
    summary: BenchmarkSummary,
    output_dir: str,
    comparison: Optional[ComparisonResult] = None,
    correlation: Optional[CorrelationAnalysis] = None,
):
    """Save results to JSON and CSV."""
    os.makedirs(output_dir, exist_ok=True)
    json_path = os.path.join(output_dir, RESULTS_FILE)
    csv_path = os.path.join(output_dir, SUMMARY_FILE)

    # JSON - Full data
    payload = {
        'summary': asdict(summary),
        'results': [asdict(r) for r in results],
    }
    for r, data in zip(results, payload['results']):
        data['insights'] = benchmark_insights(r)
    if comparison is not None:
        payload['comparison'] = asdict(comparison)
    if correlation is not None:
        payload['correlation'] = asdict(correlation)

    with open(json_path, 'w') as f:
        json.dump(payload, f, indent=2, default=str)

    # CSV - Summary view
    rows = []
    for r in results:
        row = {
            'app_id': r.app_id,
            'name': r.game_name,
            'template': r.template_id,
            'overall_score': r.overall_score,
            'overall_grade': r.overall_grade,
            'position': r.group_comparison.position,
            'total': r.group_comparison.total,
            'percentile': r.percentile,
        }
        for m in r.metric_results:
            row[f"{m.kind.value}_score"] = m.score
        rows.append(row)
    pd.DataFrame(rows).to_csv(csv_path, index=False)

    console.print("\n[green]✅ Results saved:[/green]")
    console.print(f"   • {json_path} (full data)")
    console.print(f"   • {csv_path} (spreadsheet view)")
    return json_path, csv_path


# ============================================================
# MAIN
# ============================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point. Returns the process exit status."""
    parser = argparse.ArgumentParser(
        description="GM Batch Analyzer - benchmark a group of games against each other",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python gm_batch_analyzer.py game_database.json
  python gm_batch_analyzer.py games.csv --template roguelike --compare
  python gm_batch_analyzer.py game_database.json --series daily.csv --app-id 1145360
        """
    )
    parser.add_argument('games_file', help='JSON game database or CSV (one row per game)')
    parser.add_argument('--template', '-t', help='Benchmark template id (default from config)')
    parser.add_argument('--compare', action='store_true', help='Also run a competitive comparison')
    parser.add_argument('--series', metavar='CSV', help='Daily streaming/CCU series for one game')
    parser.add_argument('--app-id', help='App id the --series file belongs to')
    parser.add_argument('--workers', '-w', type=int, help='Worker threads for batch benchmarking')
    parser.add_argument('--config', '-c', help=f'Configuration file (default: $GM_CONFIG or {DEFAULT_CONFIG})')
    parser.add_argument('--output', '-o', help='Output directory for result files')
    parser.add_argument('--no-save', action='store_true', help='Print results without writing files')

    args = parser.parse_args(argv)

    config_path = args.config or os.environ.get('GM_CONFIG', DEFAULT_CONFIG)
    try:
        config = load_config(config_path)
    except (yaml.YAMLError, KeyError, ValueError, TypeError) as e:
        console.print(f"[red]Invalid config {escape(config_path)}: {escape(str(e))}[/red]")
        return 1
    setup_logging(os.environ.get('GM_LOG_LEVEL', config.log_level))

    if args.series and not args.app_id:
        parser.error('--series requires --app-id')

    template_id = args.template or config.template
    workers = args.workers if args.workers is not None else config.workers
    output_dir = args.output or config.output_dir

    try:
        template = get_template(template_id, config.templates)
    except KeyError as e:
        console.print(f"[red]{escape(str(e.args[0]))}[/red]")
        return 1

    try:
        games = load_game_records(args.games_file)
        daily = load_daily_metrics(args.series) if args.series else None
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not read input: {escape(str(e))}[/red]")
        return 1

    console.print(Panel.fit(
        f"[bold]GM BATCH ANALYSIS[/bold] - {len(games)} games · {template.name}",
        border_style="blue",
    ))

    try:
        results = run_batch_benchmark(games, template, max_workers=workers)
        comparison = compare_entities(games) if args.compare else None
    except InsufficientDataError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 1

    summary = generate_benchmark_summary(results)
    print_benchmark_table(results, games)
    print_summary(summary)

    if comparison is not None:
        print_comparison(comparison, games)

    correlation = None
    if daily is not None:
        game = next((g for g in games if g.app_id == str(args.app_id)), None)
        name = game.name if game else str(args.app_id)
        correlation = analyze_streaming_correlation(
            str(args.app_id), name, daily, time_range=f"{len(daily)}d", max_lag=config.max_lag,
        )
        print_correlation(correlation)

    if config.save and not args.no_save:
        save_results(results, summary, output_dir, comparison, correlation)

    total_revenue = sum(record_revenue(g) for g in games)
    logger.info("Group estimated revenue: %s across %s reviews",
                format_currency(total_revenue), format_large_number(sum(g.total_reviews for g in games)))
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Terminal display formatting for benchmark comparisons.

Builds plain strings from comparison records; nothing here computes
statistics.  Positive percentage changes mean the experiment's value
is lower than the baseline's and are shown in green, negative ones in
red.  Color is applied with ``click.style`` and can be switched off.
"""

from __future__ import annotations

import click

from abbench.bench.compare import BenchmarkComparison, ComparisonReport, MetricDelta
from abbench.bench.config import Catalogue, HarnessConfig
from abbench.bench.stats import DescriptiveStats
from abbench.formatting import (
    EM_DASH,
    format_metric,
    format_pct,
    format_section_header,
    format_table,
)

_RULE_WIDTH = 80


def _style(text: str, color: bool, fg: str) -> str:
    return click.style(text, fg=fg) if color else text


def _signed_pct(value: float | None, color: bool, precision: int = 1) -> str:
    """Percentage colored by direction (green = experiment lower)."""
    text = format_pct(value, precision)
    if value is None or value == 0:
        return text
    return _style(text, color, fg="green" if value > 0 else "red")


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------


def format_header(
    config: HarnessConfig,
    *,
    baseline_version: str = "",
    experiment_version: str = "",
    title: str = "A/B Benchmark Comparison",
) -> str:
    """Format the report header: variants, versions and run counts."""
    rule = "=" * _RULE_WIDTH
    lines = [rule, title, rule]
    lines.append(f"Baseline:   {config.baseline}")
    if baseline_version:
        lines.append(f"            {baseline_version}")
    lines.append(f"Experiment: {config.experiment}")
    if experiment_version:
        lines.append(f"            {experiment_version}")
    lines.append(f"Runs:       {config.runs} (+ {config.warmup} warmup, interleaved)")
    lines.append(rule)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Per-benchmark block
# ---------------------------------------------------------------------------


def _stats_row(
    label: str,
    metric: str,
    stats: DescriptiveStats,
    color: bool,
) -> list[str]:
    outliers = ""
    if stats.n_outliers:
        plural = "s" if stats.n_outliers > 1 else ""
        outliers = _style(f"({stats.n_outliers} outlier{plural})", color, fg="yellow")
    return [
        label,
        str(stats.n),
        format_metric(metric, stats.mean),
        format_metric(metric, stats.median),
        format_metric(metric, stats.stddev),
        format_metric(metric, stats.mad),
        outliers,
    ]


def format_raw_values(
    metric: str,
    values: list[float],
    stats: DescriptiveStats,
    *,
    color: bool = True,
) -> str:
    """Format raw observations in run order, marking outliers with ``!``."""
    flagged = set(stats.outliers)
    cells = []
    for i, v in enumerate(values):
        text = format_metric(metric, v)
        cells.append(_style(f"{text}!", color, fg="yellow") if i in flagged else text)
    return ", ".join(cells) if cells else "(none)"


def _format_comparison_lines(bc: BenchmarkComparison, color: bool) -> list[str]:
    comp = bc.comparison
    lines: list[str] = []

    if comp is None:
        lines.append(_style("  No comparison available", color, fg="red"))
        b, e = bc.baseline_stats.n, bc.experiment_stats.n
        if b < 2 or e < 2:
            lines.append(f"  (need at least 2 observations per variant, got {b} and {e})")
        else:
            lines.append("  (zero variance in both samples)")
        if bc.pct_change is not None:
            lines.append(f"  Difference:    {_signed_pct(bc.pct_change, color, 2)}")
    else:
        direction = "faster" if comp.pct_change > 0 else "slower"
        if comp.pct_change == 0:
            direction = "unchanged"
        marker = "*" if comp.significant else ""
        lines.append(
            f"  Difference:    {_signed_pct(comp.pct_change, color, 2)}{marker} "
            f"(experiment is {direction})"
        )
        lines.append(
            f"  Welch 95% CI:  [{format_metric(bc.metric, comp.ci_low, signed=True)}, "
            f"{format_metric(bc.metric, comp.ci_high, signed=True)}]"
        )
        lines.append(f"  t-stat:        {comp.t_stat:.3f} (df={comp.df})")

    if bc.bootstrap is not None:
        lines.append(
            f"  Boot 95% CI:   [{format_pct(bc.bootstrap.ci_low, 2)}, "
            f"{format_pct(bc.bootstrap.ci_high, 2)}]"
        )

    if comp is not None:
        if comp.effect_size is not None:
            lines.append(f"  Effect size:   {comp.effect_size:.3f} ({comp.effect_label})")
        else:
            lines.append("  Effect size:   n/a (no baseline variance)")
        if not comp.significant:
            lines.append(_style("  (not statistically significant at p<0.05)", color, fg="yellow"))

    return lines


def _format_delta_table(
    deltas: list[MetricDelta],
    color: bool,
    *,
    indent: int = 2,
) -> str:
    rows = [
        [
            d.metric,
            format_metric(d.metric, d.baseline_median),
            format_metric(d.metric, d.experiment_median),
            format_metric(d.metric, d.delta, signed=True),
            _signed_pct(d.pct_change if d.baseline_median else None, color),
        ]
        for d in deltas
    ]
    return format_table(
        ["Metric", "Baseline", "Experiment", "Delta", "Change"],
        rows,
        alignments=["l", "r", "r", "r", "r"],
        indent=indent,
    )


def format_benchmark(
    bc: BenchmarkComparison,
    *,
    verbose: bool = False,
    color: bool = True,
) -> str:
    """Format the full result block for one benchmark."""
    lines: list[str] = []
    title = f"{bc.name}: {bc.description}" if bc.description else bc.name
    lines.append(title)
    lines.append("-" * min(len(title), 60))

    for variant, failed in bc.failed_runs.items():
        lines.append(_style(f"  {failed} {variant} run(s) failed and were excluded", color, fg="red"))
    if bc.fell_back:
        lines.append(
            _style(
                "  Primary metric not reported; falling back to wall-clock time",
                color,
                fg="yellow",
            )
        )

    lines.append("")
    lines.append(f"  {bc.metric}:")
    lines.append(
        format_table(
            ["", "n", "mean", "median", "stddev", "MAD", ""],
            [
                _stats_row("baseline", bc.metric, bc.baseline_stats, color),
                _stats_row("experiment", bc.metric, bc.experiment_stats, color),
            ],
            alignments=["l", "r", "r", "r", "r", "r", "l"],
        )
    )

    if verbose:
        lines.append("")
        raw = format_raw_values(bc.metric, bc.baseline_sample, bc.baseline_stats, color=color)
        lines.append(f"  baseline raw:   {raw}")
        raw = format_raw_values(bc.metric, bc.experiment_sample, bc.experiment_stats, color=color)
        lines.append(f"  experiment raw: {raw}")

    lines.append("")
    lines.extend(_format_comparison_lines(bc, color))

    if bc.breakdown:
        lines.append("")
        lines.append("  Other metrics (medians):")
        lines.append(_format_delta_table(bc.breakdown, color, indent=4))

    if verbose and bc.counters:
        lines.append("")
        lines.append("  All reported counters (medians):")
        lines.append(_format_delta_table(bc.counters, color, indent=4))

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def format_summary(report: ComparisonReport, *, runs: int, color: bool = True) -> str:
    """Format the summary table over all benchmarks."""
    rule = "=" * _RULE_WIDTH
    lines = [rule, "Summary", rule, ""]

    if report.total == 0:
        lines.append("No benchmarks were run.")
        return "\n".join(lines)

    rows: list[list[str]] = []
    for bc in report.benchmarks:
        boot = bc.bootstrap
        boot_ci = f"[{format_pct(boot.ci_low)}, {format_pct(boot.ci_high)}]" if boot else EM_DASH
        if bc.comparison is None:
            verdict = _style("no comparison available", color, fg="yellow")
        elif bc.comparison.significant:
            verdict = "p < 0.05 **"
        else:
            verdict = "not significant"
        rows.append(
            [
                bc.name,
                bc.metric,
                format_metric(bc.metric, bc.baseline_stats.mean),
                format_metric(bc.metric, bc.experiment_stats.mean),
                _signed_pct(bc.pct_change, color, 2),
                boot_ci,
                verdict,
            ]
        )

    lines.append(
        format_table(
            ["Benchmark", "Metric", "Baseline", "Experiment", "Change", "Boot 95% CI", "Significance"],
            rows,
            alignments=["l", "l", "r", "r", "r", "r", "l"],
            indent=0,
        )
    )
    lines.append("")
    lines.append(
        f"{report.compared}/{report.total} compared, {report.significant} significant "
        f"({report.faster} faster, {report.slower} slower)"
    )
    if report.unavailable:
        lines.append(f"{report.unavailable} without enough data for a comparison")
    if report.fallbacks:
        lines.append(f"{report.fallbacks} fell back to wall-clock time")
    lines.append("")
    lines.append("** = statistically significant at 95% confidence level (Welch's t-test)")
    lines.append("Positive change = experiment value is lower than baseline (faster / smaller)")
    lines.append(f"Summary shows means of {runs} interleaved runs per variant")
    lines.append("Per-benchmark details include median + MAD for robustness")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Catalogue listing
# ---------------------------------------------------------------------------


def format_catalogue(catalogue: Catalogue) -> str:
    """List the benchmarks in a catalogue."""
    rows = [
        [name, bench.primary_metric, bench.description]
        for name, bench in catalogue.benchmarks.items()
    ]
    return "\n".join(
        [
            format_section_header("Benchmarks", _RULE_WIDTH),
            format_table(["Name", "Primary metric", "Description"], rows, indent=2),
        ]
    )

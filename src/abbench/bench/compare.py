"""Baseline-vs-experiment comparison.

Turns the samples collected by the runner into read-only comparison
records: Welch's t-test with its parametric interval, a bootstrap
interval on the percentage change, and Glass's delta.  Each quantity is
computed independently, so a degenerate piece (zero variance, too few
observations) is reported as unavailable without hiding the others.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from abbench.bench.config import WALL_CLOCK_METRIC
from abbench.bench.runner import BASELINE, EXPERIMENT, BenchmarkRun
from abbench.bench.stats import (
    BOOTSTRAP_SEED,
    DEFAULT_BOOTSTRAP_N,
    BootstrapCI,
    DescriptiveStats,
    bootstrap_pct_ci,
    describe,
    effect_size_label,
    glass_delta,
    median,
    pct_change,
    welch_t_test,
)

log = logging.getLogger("abbench")


# ---------------------------------------------------------------------------
# Per-metric comparison
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComparisonResult:
    """Statistical comparison of one metric between the two variants."""

    metric: str
    n_baseline: int
    n_experiment: int
    baseline_mean: float
    experiment_mean: float
    mean_diff: float  # baseline - experiment
    t_stat: float
    df: int
    t_crit: float
    significant: bool
    ci_low: float  # Welch interval on mean_diff
    ci_high: float
    pct_change: float  # positive = experiment lower than baseline
    bootstrap: BootstrapCI | None
    effect_size: float | None  # Glass's delta
    effect_label: str


def compare_samples(
    metric: str,
    baseline: Sequence[float],
    experiment: Sequence[float],
    *,
    n_boot: int = DEFAULT_BOOTSTRAP_N,
    seed: int = BOOTSTRAP_SEED,
) -> ComparisonResult | None:
    """Compare two independent samples of *metric*.

    Returns None ("no comparison available") when Welch's t-test is
    undefined: fewer than 2 observations on either side, or zero
    standard error.
    """
    ttest = welch_t_test(baseline, experiment)
    if ttest is None:
        return None

    delta = glass_delta(baseline, experiment)
    return ComparisonResult(
        metric=metric,
        n_baseline=len(baseline),
        n_experiment=len(experiment),
        baseline_mean=ttest.baseline_mean,
        experiment_mean=ttest.experiment_mean,
        mean_diff=ttest.mean_diff,
        t_stat=ttest.t_stat,
        df=ttest.df,
        t_crit=ttest.t_crit,
        significant=ttest.significant,
        ci_low=ttest.ci_low,
        ci_high=ttest.ci_high,
        pct_change=ttest.pct_change,
        bootstrap=bootstrap_pct_ci(baseline, experiment, n_boot=n_boot, seed=seed),
        effect_size=delta,
        effect_label=effect_size_label(delta),
    )


# ---------------------------------------------------------------------------
# Per-benchmark comparison
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricDelta:
    """Median of a secondary metric under each variant."""

    metric: str
    baseline_median: float
    experiment_median: float

    @property
    def delta(self) -> float:
        """Experiment minus baseline."""
        return self.experiment_median - self.baseline_median

    @property
    def pct_change(self) -> float:
        """Same sign convention as the primary comparison."""
        return pct_change(self.baseline_median, self.experiment_median)


@dataclass
class BenchmarkComparison:
    """Everything the renderer needs for one benchmark."""

    name: str
    description: str
    metric: str  # primary metric (or wall_ms after fallback)
    baseline_sample: list[float]
    experiment_sample: list[float]
    baseline_stats: DescriptiveStats
    experiment_stats: DescriptiveStats
    comparison: ComparisonResult | None
    # Available even when the t-test is undefined.
    bootstrap: BootstrapCI | None
    fell_back: bool = False
    failed_runs: dict[str, int] = field(default_factory=dict)
    breakdown: list[MetricDelta] = field(default_factory=list)
    # Raw KEY=VALUE counters both variants printed (verbose display).
    counters: list[MetricDelta] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.comparison is not None

    @property
    def pct_change(self) -> float | None:
        """Percentage change of the means, if both sides have data."""
        if self.comparison is not None:
            return self.comparison.pct_change
        b, e = self.baseline_stats.mean, self.experiment_stats.mean
        if b is None or e is None:
            return None
        return pct_change(b, e)


def _metric_breakdown(run: BenchmarkRun, skip: str) -> list[MetricDelta]:
    deltas: list[MetricDelta] = []
    for metric in run.benchmark.rules:
        if metric == skip:
            continue
        b = median(run.sample(BASELINE, metric))
        e = median(run.sample(EXPERIMENT, metric))
        if b is not None and e is not None:
            deltas.append(MetricDelta(metric, b, e))
    return deltas


def _counter_breakdown(run: BenchmarkRun) -> list[MetricDelta]:
    deltas: list[MetricDelta] = []
    for counter in run.common_counters():
        b = median(run.counter_sample(BASELINE, counter))
        e = median(run.counter_sample(EXPERIMENT, counter))
        if b is not None and e is not None:
            deltas.append(MetricDelta(counter, b, e))
    return deltas


def compare_benchmark(
    run: BenchmarkRun,
    *,
    n_boot: int = DEFAULT_BOOTSTRAP_N,
    seed: int = BOOTSTRAP_SEED,
) -> BenchmarkComparison:
    """Compare the primary metric of one benchmark's runs.

    Args:
        run: Measured runs of both variants.
        n_boot: Bootstrap resamples.
        seed: Bootstrap seed.

    Returns:
        BenchmarkComparison; its ``comparison`` is None when there is
        not enough data (or variance) for a t-test.
    """
    bench = run.benchmark
    baseline, experiment = run.primary_samples()
    fell_back = bool(run.fallbacks)
    metric = WALL_CLOCK_METRIC if fell_back else bench.primary_metric

    comparison = compare_samples(metric, baseline, experiment, n_boot=n_boot, seed=seed)
    if comparison is None:
        log.info("  %s: no comparison available for %s", bench.name, metric)
        boot = bootstrap_pct_ci(baseline, experiment, n_boot=n_boot, seed=seed)
    else:
        boot = comparison.bootstrap

    return BenchmarkComparison(
        name=bench.name,
        description=bench.description,
        metric=metric,
        baseline_sample=baseline,
        experiment_sample=experiment,
        baseline_stats=describe(baseline),
        experiment_stats=describe(experiment),
        comparison=comparison,
        bootstrap=boot,
        fell_back=fell_back,
        failed_runs={v: run.n_failed(v) for v in (BASELINE, EXPERIMENT) if run.n_failed(v)},
        breakdown=_metric_breakdown(run, skip=bench.primary_metric),
        counters=_counter_breakdown(run),
    )


# ---------------------------------------------------------------------------
# Aggregate report
# ---------------------------------------------------------------------------


@dataclass
class ComparisonReport:
    """All benchmark comparisons of one harness invocation."""

    benchmarks: list[BenchmarkComparison] = field(default_factory=list)

    total: int = 0
    compared: int = 0
    unavailable: int = 0
    significant: int = 0
    faster: int = 0  # significant and experiment lower
    slower: int = 0  # significant and experiment higher
    fallbacks: int = 0


def summarize(comparisons: list[BenchmarkComparison]) -> ComparisonReport:
    """Aggregate per-benchmark comparisons into a ComparisonReport."""
    report = ComparisonReport(benchmarks=list(comparisons))
    report.total = len(comparisons)
    report.compared = sum(1 for c in comparisons if c.available)
    report.unavailable = report.total - report.compared
    sig = [c.comparison for c in comparisons if c.comparison and c.comparison.significant]
    report.significant = len(sig)
    report.faster = sum(1 for c in sig if c.pct_change > 0)
    report.slower = sum(1 for c in sig if c.pct_change < 0)
    report.fallbacks = sum(1 for c in comparisons if c.fell_back)
    return report


def compare_all(
    runs: dict[str, BenchmarkRun],
    *,
    n_boot: int = DEFAULT_BOOTSTRAP_N,
    seed: int = BOOTSTRAP_SEED,
) -> ComparisonReport:
    """Compare every benchmark run and aggregate the results."""
    return summarize([compare_benchmark(r, n_boot=n_boot, seed=seed) for r in runs.values()])

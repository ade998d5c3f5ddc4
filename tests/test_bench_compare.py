"""Tests for abbench.bench.compare — baseline vs experiment comparisons."""

from __future__ import annotations

import unittest

from bench_test_helpers import make_bench, make_benchmark_run, make_run_result

from abbench.bench.compare import (
    BenchmarkComparison,
    ComparisonResult,
    MetricDelta,
    compare_all,
    compare_benchmark,
    compare_samples,
    summarize,
)
from abbench.bench.runner import BASELINE, EXPERIMENT, BenchmarkRun

BASE = [10.0, 11.0, 9.0, 10.0, 12.0]
EXP = [7.0, 8.0, 6.0, 7.0, 9.0]


# ---------------------------------------------------------------------------
# compare_samples
# ---------------------------------------------------------------------------


class TestCompareSamples(unittest.TestCase):
    """Tests for compare_samples()."""

    def test_clear_improvement(self) -> None:
        """Experiment consistently 3 lower: significant, about +28.8%."""
        result = compare_samples("sweep_ms", BASE, EXP, n_boot=1000)
        assert result is not None
        self.assertIsInstance(result, ComparisonResult)
        self.assertEqual(result.metric, "sweep_ms")
        self.assertEqual((result.n_baseline, result.n_experiment), (5, 5))
        self.assertAlmostEqual(result.baseline_mean, 10.4)
        self.assertAlmostEqual(result.experiment_mean, 7.4)
        self.assertAlmostEqual(result.mean_diff, 3.0)
        self.assertAlmostEqual(result.pct_change, 300 / 10.4, places=6)
        self.assertTrue(result.significant)
        self.assertGreater(result.ci_low, 0)
        self.assertEqual(result.effect_label, "large")
        assert result.bootstrap is not None
        self.assertGreater(result.bootstrap.ci_low, 0)

    def test_regression_is_negative(self) -> None:
        """A slower experiment gives a negative change."""
        result = compare_samples("sweep_ms", EXP, BASE, n_boot=100)
        assert result is not None
        self.assertLess(result.pct_change, 0)
        self.assertLess(result.t_stat, 0)

    def test_insufficient_data(self) -> None:
        """Fewer than 2 observations: no comparison."""
        self.assertIsNone(compare_samples("m", [1.0], EXP))

    def test_zero_variance(self) -> None:
        """Both samples constant: no comparison."""
        self.assertIsNone(compare_samples("m", [100.0] * 10, [80.0] * 10))

    def test_constant_baseline_has_no_effect_size(self) -> None:
        """t-test defined but Glass's delta is not."""
        result = compare_samples("m", [10.0, 10.0, 10.0], [8.0, 9.0, 10.0], n_boot=100)
        assert result is not None
        self.assertIsNone(result.effect_size)
        self.assertEqual(result.effect_label, "negligible")


# ---------------------------------------------------------------------------
# compare_benchmark
# ---------------------------------------------------------------------------


class TestCompareBenchmark(unittest.TestCase):
    """Tests for compare_benchmark()."""

    def test_primary_metric(self) -> None:
        """The primary metric's samples and stats are carried through."""
        bc = compare_benchmark(make_benchmark_run(BASE, EXP), n_boot=200)
        self.assertIsInstance(bc, BenchmarkComparison)
        self.assertEqual(bc.name, "sweep")
        self.assertEqual(bc.metric, "sweep_ms")
        self.assertEqual(bc.baseline_sample, BASE)
        self.assertEqual(bc.experiment_stats.n, 5)
        self.assertTrue(bc.available)
        self.assertFalse(bc.fell_back)
        self.assertIs(bc.bootstrap, bc.comparison.bootstrap)  # type: ignore[union-attr]
        self.assertAlmostEqual(bc.pct_change, 300 / 10.4, places=6)

    def test_unavailable_still_has_bootstrap(self) -> None:
        """Constant samples: no t-test, but the bootstrap and stats remain."""
        run = make_benchmark_run([100.0] * 4, [80.0] * 4)
        with self.assertLogs("abbench", level="INFO") as logs:
            bc = compare_benchmark(run, n_boot=100)
        self.assertIsNone(bc.comparison)
        self.assertFalse(bc.available)
        assert bc.bootstrap is not None
        self.assertAlmostEqual(bc.bootstrap.ci_low, 20.0)
        self.assertAlmostEqual(bc.pct_change, 20.0)
        self.assertIn("no comparison available", logs.output[0])

    def test_no_data(self) -> None:
        """Every run failed: nothing to compare."""
        run = BenchmarkRun(benchmark=make_bench())
        for variant in (BASELINE, EXPERIMENT):
            run.runs(variant).append(make_run_result(variant, 1, exit_code=1))
        with self.assertLogs("abbench", level="INFO"):
            bc = compare_benchmark(run, n_boot=100)
        self.assertIsNone(bc.comparison)
        self.assertIsNone(bc.bootstrap)
        self.assertIsNone(bc.pct_change)
        self.assertEqual(bc.failed_runs, {BASELINE: 1, EXPERIMENT: 1})

    def test_wall_clock_fallback(self) -> None:
        """No metric reported: wall time is compared and flagged."""
        run = BenchmarkRun(benchmark=make_bench())
        for i, wall in enumerate([1.0, 1.1, 0.9]):
            run.baseline.append(make_run_result(BASELINE, i + 1, wall_time_s=wall))
            run.experiment.append(make_run_result(EXPERIMENT, i + 1, wall_time_s=wall / 2))
        with self.assertLogs("abbench", level="WARNING"):
            bc = compare_benchmark(run, n_boot=100)
        self.assertTrue(bc.fell_back)
        self.assertEqual(bc.metric, "wall_ms")
        self.assertAlmostEqual(bc.baseline_stats.mean, 1000.0)
        self.assertAlmostEqual(bc.pct_change, 50.0)

    def test_metric_breakdown(self) -> None:
        """Secondary metrics are summarized by their medians."""
        run = BenchmarkRun(benchmark=make_bench())
        for i, (b, e) in enumerate(zip(BASE, EXP)):
            run.baseline.append(make_run_result(BASELINE, i + 1, {"sweep_ms": b, "mark_ms": 80.0}))
            run.experiment.append(
                make_run_result(EXPERIMENT, i + 1, {"sweep_ms": e, "mark_ms": 100.0})
            )
        bc = compare_benchmark(run, n_boot=100)
        self.assertEqual(bc.breakdown, [MetricDelta("mark_ms", 80.0, 100.0)])

    def test_counter_breakdown(self) -> None:
        """Raw counters both variants printed are summarized."""
        run = BenchmarkRun(benchmark=make_bench())
        for i, (b, e) in enumerate(zip(BASE, EXP)):
            run.baseline.append(
                make_run_result(BASELINE, i + 1, {"sweep_ms": b}, counters={"stat_count": 10})
            )
            run.experiment.append(
                make_run_result(EXPERIMENT, i + 1, {"sweep_ms": e}, counters={"stat_count": 12})
            )
        bc = compare_benchmark(run, n_boot=100)
        self.assertEqual(bc.counters, [MetricDelta("stat_count", 10.0, 12.0)])


class TestMetricDelta(unittest.TestCase):
    """Tests for MetricDelta."""

    def test_delta_and_change(self) -> None:
        """Delta is experiment minus baseline; change keeps the report's sign."""
        d = MetricDelta("rss_kb", 200.0, 150.0)
        self.assertEqual(d.delta, -50.0)
        self.assertEqual(d.pct_change, 25.0)

    def test_zero_baseline(self) -> None:
        """Zero baseline median gives a zero change."""
        self.assertEqual(MetricDelta("gc_count", 0.0, 3.0).pct_change, 0.0)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


class TestSummarize(unittest.TestCase):
    """Tests for summarize() and compare_all()."""

    def test_counts(self) -> None:
        """Faster, slower, unavailable and fallbacks are tallied."""
        runs = {
            "faster": make_benchmark_run(BASE, EXP, bench=make_bench("faster")),
            "slower": make_benchmark_run(EXP, BASE, bench=make_bench("slower")),
            "same": make_benchmark_run(BASE, list(BASE), bench=make_bench("same")),
            "flat": make_benchmark_run([5.0] * 3, [5.0] * 3, bench=make_bench("flat")),
        }
        with self.assertLogs("abbench", level="INFO"):
            report = compare_all(runs, n_boot=100)
        self.assertEqual([b.name for b in report.benchmarks], list(runs))
        self.assertEqual(report.total, 4)
        self.assertEqual(report.compared, 3)
        self.assertEqual(report.unavailable, 1)
        self.assertEqual(report.significant, 2)
        self.assertEqual(report.faster, 1)
        self.assertEqual(report.slower, 1)
        self.assertEqual(report.fallbacks, 0)

    def test_empty(self) -> None:
        """No benchmarks: all zeros."""
        report = summarize([])
        self.assertEqual(report.total, 0)
        self.assertEqual(report.significant, 0)


if __name__ == "__main__":
    unittest.main()

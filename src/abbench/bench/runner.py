"""Interleaved benchmark execution.

For each benchmark the runner alternates the two variants strictly:
baseline, experiment, baseline, experiment, ..., first for the warmup
iterations (results discarded), then for the measured iterations.

Execution is single-threaded and sequential: only one variant process
exists at any time, and each invocation blocks until the child exits.

Recoverable problems are logged and the harness keeps going:
- A run that exits non-zero, dies from a signal or cannot be started is
  kept as a failed RunResult with no observations and is not retried.
- A metric that no successful run of a variant reported falls back to
  the harness's own wall-clock measurement for that variant.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from abbench.bench.config import WALL_CLOCK_METRIC, BenchmarkDef, HarnessConfig
from abbench.bench.extract import Number, extract_all, extract_metrics
from abbench.bench.timing import CapturedRun, run_captured

log = logging.getLogger("abbench")

BASELINE = "baseline"
EXPERIMENT = "experiment"
VARIANTS = (BASELINE, EXPERIMENT)

_STDERR_TAIL_LINES = 5

# Exit code recorded for a run whose process could not be started.
LAUNCH_FAILED_EXIT_CODE = 127


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunResult:
    """Everything one process invocation produced.  Immutable."""

    variant: str
    index: int  # 1-based iteration number
    warmup: bool
    wall_time_s: float
    cpu_time_s: float
    exit_code: int
    observations: Mapping[str, Number] = field(default_factory=lambda: MappingProxyType({}))
    # Every KEY=VALUE counter the run printed, for the metric breakdown.
    counters: Mapping[str, Number] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def signal(self) -> int | None:
        """Number of the signal that killed the process, if any."""
        return -self.exit_code if self.exit_code < 0 else None

    @property
    def wall_ms(self) -> float:
        return self.wall_time_s * 1000


@dataclass
class BenchmarkRun:
    """Measured (non-warmup) runs of both variants for one benchmark."""

    benchmark: BenchmarkDef
    baseline: list[RunResult] = field(default_factory=list)
    experiment: list[RunResult] = field(default_factory=list)
    # Variants whose primary metric fell back to wall-clock time.
    fallbacks: set[str] = field(default_factory=set)

    def runs(self, variant: str) -> list[RunResult]:
        if variant == BASELINE:
            return self.baseline
        if variant == EXPERIMENT:
            return self.experiment
        raise ValueError(f"Unknown variant: {variant!r}")

    def successful(self, variant: str) -> list[RunResult]:
        return [r for r in self.runs(variant) if r.ok]

    def n_failed(self, variant: str) -> int:
        return sum(1 for r in self.runs(variant) if not r.ok)

    def sample(self, variant: str, metric: str | None = None) -> list[float]:
        """Values of *metric* over this variant's successful runs.

        Defaults to the benchmark's primary metric.  If no successful run
        reported the primary metric, falls back to wall-clock
        milliseconds and logs a warning; other metrics just come back
        empty.  The ``wall_ms`` pseudo-metric is always wall-clock.
        Order is execution order.
        """
        metric = metric or self.benchmark.primary_metric
        runs = self.successful(variant)

        if metric == WALL_CLOCK_METRIC and metric not in self.benchmark.rules:
            return self.wall_sample(variant)

        values = [r.observations[metric] for r in runs if metric in r.observations]
        if values or not runs or metric != self.benchmark.primary_metric:
            return [float(v) for v in values]

        log.warning(
            "  %s: could not extract %s for %s, falling back to wall-clock",
            self.benchmark.name,
            metric,
            variant,
        )
        self.fallbacks.add(variant)
        return [r.wall_ms for r in runs]

    def wall_sample(self, variant: str) -> list[float]:
        """Wall-clock milliseconds of this variant's successful runs."""
        return [r.wall_ms for r in self.successful(variant)]

    def primary_samples(self) -> tuple[list[float], list[float]]:
        """Baseline and experiment samples of the primary metric.

        If either variant had to fall back to wall-clock time, both
        sides use wall-clock time so the comparison stays like for like.
        """
        baseline = self.sample(BASELINE)
        experiment = self.sample(EXPERIMENT)
        if self.fallbacks:
            return self.wall_sample(BASELINE), self.wall_sample(EXPERIMENT)
        return baseline, experiment

    def counter_sample(self, variant: str, counter: str) -> list[float]:
        """Values of a raw KEY=VALUE counter, without any fallback."""
        return [
            float(r.counters[counter]) for r in self.successful(variant) if counter in r.counters
        ]

    def common_counters(self) -> list[str]:
        """Counters reported by at least one successful run of each variant."""
        seen: dict[str, set[str]] = {v: set() for v in VARIANTS}
        for variant in VARIANTS:
            for r in self.successful(variant):
                seen[variant].update(r.counters)
        return sorted(seen[BASELINE] & seen[EXPERIMENT])


# ---------------------------------------------------------------------------
# Progress callback
# ---------------------------------------------------------------------------


@dataclass
class RunProgress:
    """Progress info passed to the callback after every invocation."""

    phase: str  # "warmup" or "measure"
    benchmark: str
    variant: str
    iteration: int  # 1-based within the phase
    total_iterations: int
    ok: bool = True
    wall_time_s: float = 0.0


ProgressCallback = Callable[[RunProgress], None]


# ---------------------------------------------------------------------------
# InterleavedRunner
# ---------------------------------------------------------------------------


class InterleavedRunner:
    """Runs benchmarks under both variants in strict alternation.

    Usage::

        config = HarnessConfig(...)
        runner = InterleavedRunner(config)
        runs = runner.run_all()
    """

    def __init__(
        self,
        config: HarnessConfig,
        progress_callback: ProgressCallback | None = None,
        *,
        invoke: Callable[[list[str]], CapturedRun] | None = None,
    ) -> None:
        self.config = config
        self.progress: ProgressCallback = progress_callback or self._default_progress
        self._invoke = invoke or run_captured

    def run_all(self) -> dict[str, BenchmarkRun]:
        """Run every configured benchmark, one after another."""
        results: dict[str, BenchmarkRun] = {}
        for name, bench in self.config.benchmarks.items():
            log.info("%s: %s", name, bench.description or "(no description)")
            results[name] = self.run_benchmark(bench)
        return results

    def run_benchmark(self, bench: BenchmarkDef) -> BenchmarkRun:
        """Warm up, then measure, alternating baseline and experiment."""
        result = BenchmarkRun(benchmark=bench)
        executables = {
            BASELINE: self.config.baseline,
            EXPERIMENT: self.config.experiment,
        }

        for iter_idx in range(self.config.warmup):
            for variant in VARIANTS:
                run = self._run_once(bench, variant, executables[variant], iter_idx + 1, True)
                self.progress(
                    RunProgress(
                        phase="warmup",
                        benchmark=bench.name,
                        variant=variant,
                        iteration=iter_idx + 1,
                        total_iterations=self.config.warmup,
                        ok=run.ok,
                        wall_time_s=run.wall_time_s,
                    )
                )

        for iter_idx in range(self.config.runs):
            for variant in VARIANTS:
                run = self._run_once(bench, variant, executables[variant], iter_idx + 1, False)
                result.runs(variant).append(run)
                self.progress(
                    RunProgress(
                        phase="measure",
                        benchmark=bench.name,
                        variant=variant,
                        iteration=iter_idx + 1,
                        total_iterations=self.config.runs,
                        ok=run.ok,
                        wall_time_s=run.wall_time_s,
                    )
                )

        for variant in VARIANTS:
            failed = result.n_failed(variant)
            if failed:
                log.warning(
                    "  %s: %d of %d %s runs failed and were excluded",
                    bench.name,
                    failed,
                    self.config.runs,
                    variant,
                )
        return result

    def _run_once(
        self,
        bench: BenchmarkDef,
        variant: str,
        executable: Path,
        index: int,
        warmup: bool,
    ) -> RunResult:
        """Invoke one variant once and turn its output into a RunResult."""
        command = self.config.command_for(executable, bench)
        try:
            captured = self._invoke(command)
        except OSError as exc:
            log.warning("  %s %s run %d could not start: %s", bench.name, variant, index, exc)
            return RunResult(
                variant=variant,
                index=index,
                warmup=warmup,
                wall_time_s=0.0,
                cpu_time_s=0.0,
                exit_code=LAUNCH_FAILED_EXIT_CODE,
            )

        if not captured.success:
            tail = "\n".join(captured.stderr.strip().splitlines()[-_STDERR_TAIL_LINES:])
            log.warning(
                "  %s %s run %d exited (%s)%s",
                bench.name,
                variant,
                index,
                captured.status_description,
                f":\n{tail}" if tail else "",
            )
            return RunResult(
                variant=variant,
                index=index,
                warmup=warmup,
                wall_time_s=captured.wall_time_s,
                cpu_time_s=captured.cpu_time_s,
                exit_code=captured.exit_code,
            )

        text = captured.stderr + "\n" + captured.stdout
        observations = extract_metrics(text, bench.rules)
        missing = set(bench.rules) - set(observations)
        if missing:
            log.debug("  %s %s run %d: missing %s", bench.name, variant, index, sorted(missing))

        return RunResult(
            variant=variant,
            index=index,
            warmup=warmup,
            wall_time_s=captured.wall_time_s,
            cpu_time_s=captured.cpu_time_s,
            exit_code=captured.exit_code,
            observations=MappingProxyType(observations),
            counters=MappingProxyType(extract_all(captured.stderr)),
        )

    @staticmethod
    def _default_progress(progress: RunProgress) -> None:
        """Default progress callback: one INFO line per invocation."""
        marker = "B" if progress.variant == BASELINE else "E"
        status = "" if progress.ok else " [failed]"
        log.info(
            "  %s %s %s %d/%d %.3fs%s",
            progress.benchmark,
            progress.phase,
            marker,
            progress.iteration,
            progress.total_iterations,
            progress.wall_time_s,
            status,
        )

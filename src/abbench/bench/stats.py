"""Statistical functions for A/B benchmark comparison.

Provides robust descriptive statistics (mean, median, sample standard
deviation, median absolute deviation, MAD-based outlier flagging),
Welch's t-test, a percentile bootstrap on percentage change, and
Glass's delta effect size, all in pure Python.

Undefined quantities (empty samples, zero variance, zero MAD) are
signalled by returning None rather than NaN or raising, so callers can
report exactly which piece of a comparison is unavailable.

The t-test uses a fixed table of 95% two-tailed critical values with
linear interpolation between anchors instead of an inverse CDF.  The
table must stay as it is: significance calls are only comparable with
earlier runs of the harness if the same anchors are used.

References:
    Welch's t-test: Welch, B. L. (1947). "The generalization of
        'Student's' problem when several different population
        variances are involved." Biometrika 34(1-2): 28-35.
    Glass's delta: Glass, G. V., McGaw, B. & Smith, M. L. (1981).
        "Meta-Analysis in Social Research."
    Bootstrap CI: Efron, B. & Tibshirani, R. J. (1993). "An
        Introduction to the Bootstrap."
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Sequence

# Fixed so that bootstrap intervals are reproducible between runs.
BOOTSTRAP_SEED = 54321
DEFAULT_BOOTSTRAP_N = 10_000


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------


def mean(values: Sequence[float]) -> float | None:
    """Arithmetic mean, or None for an empty sample."""
    if not values:
        return None
    return math.fsum(values) / len(values)


def median(values: Sequence[float]) -> float | None:
    """Median of a sample, or None if it is empty.

    For an even number of values this is the average of the two middle
    elements.
    """
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2.0


def stddev(values: Sequence[float]) -> float | None:
    """Sample standard deviation (Bessel-corrected), None for n < 2."""
    if len(values) < 2:
        return None
    m = math.fsum(values) / len(values)
    variance = math.fsum((v - m) ** 2 for v in values) / (len(values) - 1)
    return math.sqrt(variance)


def mad(values: Sequence[float]) -> float | None:
    """Median absolute deviation from the median (robust spread)."""
    med = median(values)
    if med is None:
        return None
    return median([abs(v - med) for v in values])


def outlier_indices(values: Sequence[float], threshold: float = 3.0) -> list[int]:
    """Positions of values more than *threshold* MADs from the median.

    Returns an empty list for fewer than 3 values, and for samples
    whose MAD is zero (a constant sample has no outliers).  Flagging is
    for display only; nothing is removed from the sample.
    """
    if len(values) < 3:
        return []
    med = median(values)
    spread = mad(values)
    if med is None or not spread:
        return []
    return [i for i, v in enumerate(values) if abs(v - med) > threshold * spread]


@dataclass(frozen=True)
class DescriptiveStats:
    """Summary of one sample, as shown in the per-benchmark table."""

    n: int
    mean: float | None
    median: float | None
    stddev: float | None
    mad: float | None
    min: float | None
    max: float | None
    outliers: tuple[int, ...] = field(default_factory=tuple)

    @property
    def n_outliers(self) -> int:
        return len(self.outliers)


def describe(values: Sequence[float]) -> DescriptiveStats:
    """Compute DescriptiveStats for a sample (any size, including empty)."""
    return DescriptiveStats(
        n=len(values),
        mean=mean(values),
        median=median(values),
        stddev=stddev(values),
        mad=mad(values),
        min=min(values) if values else None,
        max=max(values) if values else None,
        outliers=tuple(outlier_indices(values)),
    )


# ---------------------------------------------------------------------------
# Welch's t-test
# ---------------------------------------------------------------------------

# Two-tailed critical values of Student's t at 95% confidence.
T_CRITICAL_95: dict[int, float] = {
    1: 12.706,
    2: 4.303,
    3: 3.182,
    4: 2.776,
    5: 2.571,
    6: 2.447,
    7: 2.365,
    8: 2.306,
    9: 2.262,
    10: 2.228,
    15: 2.131,
    20: 2.086,
    30: 2.042,
    60: 2.000,
    120: 1.980,
}
_T_KEYS = sorted(T_CRITICAL_95)


def t_critical(df: float) -> float:
    """95% two-tailed critical value for *df* degrees of freedom.

    Exact at the table anchors, linearly interpolated between them, and
    clamped to the first/last anchor outside the table's range.
    """
    if df in T_CRITICAL_95:
        return T_CRITICAL_95[int(df)]
    lower = max((k for k in _T_KEYS if k <= df), default=_T_KEYS[0])
    upper = min((k for k in _T_KEYS if k >= df), default=_T_KEYS[-1])
    if lower == upper:
        return T_CRITICAL_95[lower]
    t_low, t_high = T_CRITICAL_95[lower], T_CRITICAL_95[upper]
    return t_low + (t_high - t_low) * (df - lower) / (upper - lower)


def pct_change(baseline_mean: float, experiment_mean: float) -> float:
    """Percentage change relative to the baseline mean.

    Positive means the baseline value is larger than the experiment's
    (an improvement when lower is better).  Defined as 0.0 when the
    baseline mean is zero.
    """
    if baseline_mean == 0:
        return 0.0
    return (baseline_mean - experiment_mean) / baseline_mean * 100


@dataclass(frozen=True)
class TTestResult:
    """Result of Welch's t-test comparing baseline with experiment."""

    t_stat: float
    df: int
    t_crit: float
    se: float
    significant: bool  # |t| > t_crit at 95%
    mean_diff: float  # baseline_mean - experiment_mean
    ci_low: float
    ci_high: float
    pct_change: float
    baseline_mean: float
    experiment_mean: float


def welch_t_test(
    baseline: Sequence[float],
    experiment: Sequence[float],
) -> TTestResult | None:
    """Perform Welch's t-test for two independent samples.

    Tests the null hypothesis that the two populations have equal
    means, without assuming equal variances or paired observations.

    Returns None when the test is undefined: either sample has fewer
    than 2 values, or the standard error is zero (both samples
    constant).
    """
    n1, n2 = len(baseline), len(experiment)
    if n1 < 2 or n2 < 2:
        return None

    m1 = math.fsum(baseline) / n1
    m2 = math.fsum(experiment) / n2
    sd1 = stddev(baseline)
    sd2 = stddev(experiment)
    if sd1 is None or sd2 is None:
        return None
    var1 = sd1**2
    var2 = sd2**2

    se1 = var1 / n1
    se2 = var2 / n2
    se = math.sqrt(se1 + se2)
    if se == 0:
        return None

    mean_diff = m1 - m2
    t_stat = mean_diff / se

    # Welch-Satterthwaite degrees of freedom, truncated.
    numerator = (se1 + se2) ** 2
    denominator = se1**2 / (n1 - 1) + se2**2 / (n2 - 1)
    df = math.floor(max(numerator / denominator, 1))

    t_crit = t_critical(df)
    margin = t_crit * se

    return TTestResult(
        t_stat=t_stat,
        df=df,
        t_crit=t_crit,
        se=se,
        significant=abs(t_stat) > t_crit,
        mean_diff=mean_diff,
        ci_low=mean_diff - margin,
        ci_high=mean_diff + margin,
        pct_change=pct_change(m1, m2),
        baseline_mean=m1,
        experiment_mean=m2,
    )


# ---------------------------------------------------------------------------
# Bootstrap confidence interval
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BootstrapCI:
    """Percentile bootstrap interval on the percentage change."""

    ci_low: float
    ci_high: float
    median_pct: float
    n_bootstrap: int
    alpha: float

    def contains_zero(self) -> bool:
        """True if the interval includes zero (no clear difference)."""
        return self.ci_low <= 0 <= self.ci_high


def bootstrap_pct_ci(
    baseline: Sequence[float],
    experiment: Sequence[float],
    *,
    n_boot: int = DEFAULT_BOOTSTRAP_N,
    alpha: float = 0.05,
    seed: int = BOOTSTRAP_SEED,
) -> BootstrapCI | None:
    """Bootstrap a confidence interval on the percentage change.

    Each call draws from its own ``random.Random(seed)``, so identical
    inputs always give bit-identical bounds regardless of what else
    has consumed random numbers.

    Args:
        baseline: Baseline sample.
        experiment: Experiment sample.
        n_boot: Number of resample pairs.
        alpha: Two-sided significance level (0.05 for a 95% interval).
        seed: Seed for the resampling generator.

    Returns:
        BootstrapCI, or None if either sample is empty or n_boot < 1.
    """
    if not baseline or not experiment or n_boot < 1:
        return None

    rng = random.Random(seed)
    list_b = list(baseline)
    list_e = list(experiment)
    n1, n2 = len(list_b), len(list_e)

    pcts: list[float] = []
    for _ in range(n_boot):
        resample_b = [list_b[rng.randrange(n1)] for _ in range(n1)]
        resample_e = [list_e[rng.randrange(n2)] for _ in range(n2)]
        pcts.append(pct_change(math.fsum(resample_b) / n1, math.fsum(resample_e) / n2))

    pcts.sort()
    lo = min(math.floor(n_boot * alpha / 2), n_boot - 1)
    hi = min(math.floor(n_boot * (1 - alpha / 2)), n_boot - 1)

    return BootstrapCI(
        ci_low=pcts[lo],
        ci_high=pcts[hi],
        median_pct=pcts[n_boot // 2],
        n_bootstrap=n_boot,
        alpha=alpha,
    )


# ---------------------------------------------------------------------------
# Glass's delta effect size
# ---------------------------------------------------------------------------


def glass_delta(
    baseline: Sequence[float],
    experiment: Sequence[float],
) -> float | None:
    """Glass's delta: mean difference scaled by the baseline stddev.

    Used instead of a pooled Cohen's d because the two variants may
    have different variances.  A positive delta means the experiment
    mean is lower.  None if either sample has fewer than 2 values or
    the baseline stddev is zero.
    """
    if len(baseline) < 2 or len(experiment) < 2:
        return None
    s = stddev(baseline)
    if not s:
        return None
    m1 = math.fsum(baseline) / len(baseline)
    m2 = math.fsum(experiment) / len(experiment)
    return (m1 - m2) / s


def effect_size_label(d: float | None) -> str:
    """Classify an effect size by magnitude.

    |d| < 0.2: negligible
    |d| < 0.5: small
    |d| < 0.8: medium
    |d| >= 0.8: large
    """
    if d is None:
        return "negligible"
    d_abs = abs(d)
    if d_abs < 0.2:
        return "negligible"
    if d_abs < 0.5:
        return "small"
    if d_abs < 0.8:
        return "medium"
    return "large"

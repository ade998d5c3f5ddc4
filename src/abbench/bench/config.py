"""Harness configuration and the benchmark catalogue.

Handles:
- Loading benchmark catalogues from YAML files (the built-in one ships
  with the package as ``catalogue.yaml``).
- Selecting benchmarks by name.
- Building the command line for one variant invocation.
- Validating the final configuration before any measurement.

Catalogue format::

    flags: ["--disable-gems"]        # default flags for every invocation
    inline_flag: "-e"                # flag that precedes inline code
    snippets:
      report: |
        STDERR.puts "RSS_KB=..."
    benchmarks:
      sweep:
        description: "Sweeping performance"
        primary_metric: sweep_ms
        metrics:
          sweep_ms: SWEEP_MS                     # KEY=VALUE line
          wall_s: '\\(\\s*([\\d.]+)\\s*\\)\\s*$'  # regex, one group
        code: |
          ...
        append: [report]                 # snippets appended to code
      external:
        primary_metric: wall_ms
        script: bench/external.rb        # relative to the catalogue file
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from abbench.bench.extract import Rule, rule_from_config

log = logging.getLogger("abbench")

# Pseudo-metric: wall-clock milliseconds measured by the harness itself.
WALL_CLOCK_METRIC = "wall_ms"

DEFAULT_RUNS = 10
DEFAULT_WARMUP = 2
DEFAULT_FLAGS: tuple[str, ...] = ("--disable-gems",)
DEFAULT_INLINE_FLAG = "-e"

DEFAULT_CATALOGUE_PATH = Path(__file__).with_name("catalogue.yaml")


class ConfigError(ValueError):
    """Fatal configuration problem, reported before any measurement."""


# ---------------------------------------------------------------------------
# Benchmark definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BenchmarkDef:
    """One workload: its payload, description and how to read its metrics."""

    name: str
    primary_metric: str
    description: str = ""
    rules: Mapping[str, Rule] = field(default_factory=lambda: MappingProxyType({}))
    code: str | None = None
    script: Path | None = None

    def __post_init__(self) -> None:
        if (self.code is None) == (self.script is None):
            raise ConfigError(f"Benchmark '{self.name}' needs exactly one of 'code' or 'script'.")
        if not isinstance(self.rules, MappingProxyType):
            object.__setattr__(self, "rules", MappingProxyType(dict(self.rules)))

    def payload(self, inline_flag: str = DEFAULT_INLINE_FLAG) -> list[str]:
        """Arguments that hand the workload to the variant executable."""
        if self.code is not None:
            return [inline_flag, self.code]
        return [str(self.script)]


@dataclass(frozen=True)
class Catalogue:
    """Immutable name -> BenchmarkDef table plus invocation defaults."""

    benchmarks: Mapping[str, BenchmarkDef]
    flags: tuple[str, ...] = DEFAULT_FLAGS
    inline_flag: str = DEFAULT_INLINE_FLAG

    def __post_init__(self) -> None:
        if not isinstance(self.benchmarks, MappingProxyType):
            object.__setattr__(self, "benchmarks", MappingProxyType(dict(self.benchmarks)))

    @property
    def names(self) -> list[str]:
        return list(self.benchmarks)


def select_benchmarks(
    catalogue: Catalogue,
    names: list[str] | tuple[str, ...] | None,
) -> Mapping[str, BenchmarkDef]:
    """Pick benchmarks by name, in the order requested.

    With no names, every benchmark in the catalogue is selected.

    Raises:
        ConfigError: If a name is not in the catalogue.
    """
    if not names:
        return catalogue.benchmarks
    selected: dict[str, BenchmarkDef] = {}
    for name in names:
        if name not in catalogue.benchmarks:
            raise ConfigError(
                f"Unknown benchmark: {name}\nAvailable: {', '.join(catalogue.names)}"
            )
        selected[name] = catalogue.benchmarks[name]
    return MappingProxyType(selected)


# ---------------------------------------------------------------------------
# YAML catalogue loading
# ---------------------------------------------------------------------------


def load_catalogue(path: Path | None = None) -> Catalogue:
    """Load a benchmark catalogue from a YAML file.

    Args:
        path: Catalogue file; the built-in catalogue if None.

    Raises:
        ConfigError: If the file is missing or malformed.
    """
    path = path or DEFAULT_CATALOGUE_PATH
    if not path.exists():
        raise ConfigError(f"Catalogue not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    return catalogue_from_dict(data, base_dir=path.parent)


def catalogue_from_dict(data: Any, *, base_dir: Path | None = None) -> Catalogue:
    """Build a Catalogue from parsed YAML data."""
    if not isinstance(data, dict):
        raise ConfigError(f"Catalogue must be a YAML mapping, got {type(data).__name__}")

    snippets = data.get("snippets") or {}
    if not isinstance(snippets, dict) or not all(isinstance(v, str) for v in snippets.values()):
        raise ConfigError("Catalogue 'snippets' must be a mapping of name -> code")

    benchmarks_data = data.get("benchmarks")
    if not isinstance(benchmarks_data, dict) or not benchmarks_data:
        raise ConfigError("Catalogue 'benchmarks' must be a non-empty mapping")

    benchmarks: dict[str, BenchmarkDef] = {}
    for name, bench_data in benchmarks_data.items():
        benchmarks[str(name)] = _benchmark_from_dict(str(name), bench_data, snippets, base_dir)

    flags = data.get("flags", list(DEFAULT_FLAGS))
    if not isinstance(flags, list):
        raise ConfigError("Catalogue 'flags' must be a list of strings")

    return Catalogue(
        benchmarks=benchmarks,
        flags=tuple(str(f) for f in flags),
        inline_flag=str(data.get("inline_flag", DEFAULT_INLINE_FLAG)),
    )


def _benchmark_from_dict(
    name: str,
    data: Any,
    snippets: dict[str, str],
    base_dir: Path | None,
) -> BenchmarkDef:
    if not isinstance(data, dict):
        raise ConfigError(f"Benchmark '{name}' must be a mapping, got {type(data).__name__}")

    primary = data.get("primary_metric")
    if not primary:
        raise ConfigError(f"Benchmark '{name}' has no primary_metric")
    if not isinstance(primary, str):
        raise ConfigError(f"Benchmark '{name}': 'primary_metric' must be a string")

    metrics = data.get("metrics") or {}
    if not isinstance(metrics, dict):
        raise ConfigError(f"Benchmark '{name}': 'metrics' must be a mapping")
    try:
        rules = {str(k): rule_from_config(str(v)) for k, v in metrics.items()}
    except Exception as exc:  # noqa: BLE001
        raise ConfigError(f"Benchmark '{name}': bad metric rule: {exc}") from exc

    code = data.get("code")
    script = data.get("script")
    for key, value in (("code", code), ("script", script)):
        if value is not None and not isinstance(value, str):
            raise ConfigError(
                f"Benchmark '{name}': '{key}' must be a string, got {type(value).__name__}"
            )
    if code is not None:
        append = data.get("append") or []
        if isinstance(append, str):
            append = [append]
        for snippet in append:
            if snippet not in snippets:
                raise ConfigError(f"Benchmark '{name}' appends unknown snippet '{snippet}'")
            code = code.rstrip("\n") + "\n" + snippets[snippet]
    script_path: Path | None = None
    if script is not None:
        script_path = Path(script).expanduser()
        if not script_path.is_absolute() and base_dir is not None:
            script_path = base_dir / script_path

    return BenchmarkDef(
        name=name,
        description=str(data.get("description", "")),
        primary_metric=str(primary),
        rules=rules,
        code=code,
        script=script_path,
    )


# ---------------------------------------------------------------------------
# HarnessConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HarnessConfig:
    """Resolved configuration for one harness invocation."""

    baseline: Path
    experiment: Path
    benchmarks: Mapping[str, BenchmarkDef]
    runs: int = DEFAULT_RUNS
    warmup: int = DEFAULT_WARMUP
    flags: tuple[str, ...] = DEFAULT_FLAGS
    inline_flag: str = DEFAULT_INLINE_FLAG
    verbose: bool = False

    @property
    def total_iterations(self) -> int:
        """Iterations per variant per benchmark (warmup + measured)."""
        return self.warmup + self.runs

    def command_for(self, executable: Path, bench: BenchmarkDef) -> list[str]:
        """Full argument list for running *bench* under *executable*."""
        return [str(executable), *self.flags, *bench.payload(self.inline_flag)]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def _check_executable(label: str, path: Path) -> ValidationError | None:
    if not path.exists():
        return ValidationError(field=label, message=f"{label.capitalize()} not found: {path}")
    if not path.is_file() or not os.access(path, os.X_OK):
        return ValidationError(
            field=label,
            message=f"{label.capitalize()} is not an executable file: {path}",
        )
    return None


def validate_config(config: HarnessConfig) -> list[ValidationError]:
    """Validate a harness configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    for label, path in (("baseline", config.baseline), ("experiment", config.experiment)):
        err = _check_executable(label, path)
        if err is not None:
            errors.append(err)

    if config.baseline == config.experiment:
        errors.append(
            ValidationError(
                field="experiment",
                message="Baseline and experiment are the same executable.",
                severity="warning",
            )
        )

    if not config.benchmarks:
        errors.append(ValidationError(field="benchmarks", message="No benchmarks selected."))

    for name, bench in config.benchmarks.items():
        if bench.script is not None and not bench.script.exists():
            errors.append(
                ValidationError(
                    field=f"benchmarks.{name}.script",
                    message=f"Benchmark script not found: {bench.script}",
                )
            )

    # Inference needs at least two observations per variant.
    if config.runs < 2:
        errors.append(
            ValidationError(
                field="runs",
                message=f"Need at least 2 measured runs for a comparison (got {config.runs}).",
            )
        )

    if config.warmup < 0:
        errors.append(
            ValidationError(
                field="warmup",
                message=f"Warmup runs cannot be negative (got {config.warmup}).",
            )
        )

    return errors


def check_config(config: HarnessConfig) -> None:
    """Log warnings and raise ConfigError if *config* has any errors."""
    problems = validate_config(config)
    for w in problems:
        if w.severity == "warning":
            log.warning("Config warning: %s: %s", w.field, w.message)
    fatal = [e for e in problems if e.severity == "error"]
    if fatal:
        raise ConfigError("\n".join(e.message for e in fatal))

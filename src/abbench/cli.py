"""Command-line interface for abbench.

Runs the catalogue's benchmarks under a baseline and an experiment
executable, alternating the two, and prints a statistical comparison.
"""

from __future__ import annotations

from pathlib import Path

import click

from abbench import __version__
from abbench.bench.compare import compare_all
from abbench.bench.config import (
    DEFAULT_RUNS,
    DEFAULT_WARMUP,
    ConfigError,
    HarnessConfig,
    check_config,
    load_catalogue,
    select_benchmarks,
)
from abbench.bench.display import (
    format_benchmark,
    format_catalogue,
    format_header,
    format_summary,
)
from abbench.bench.runner import InterleavedRunner
from abbench.bench.timing import variant_version
from abbench.logging import setup_logging


_PATH = click.Path(path_type=Path)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__)
@click.option("--baseline", type=_PATH, default=None, help="Baseline executable.")
@click.option("--experiment", type=_PATH, default=None, help="Experiment executable.")
@click.option(
    "--runs",
    type=int,
    default=DEFAULT_RUNS,
    show_default=True,
    help="Measured runs per variant.",
)
@click.option(
    "--warmup",
    type=int,
    default=DEFAULT_WARMUP,
    show_default=True,
    help="Discarded warmup runs per variant.",
)
@click.option(
    "--scenario",
    "scenarios",
    type=str,
    multiple=True,
    help="Benchmark to run (repeatable; default: all).",
)
@click.option(
    "--catalogue",
    "catalogue_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML benchmark catalogue (default: built-in).",
)
@click.option(
    "--flag",
    "flags",
    type=str,
    multiple=True,
    help="Flag passed to both executables (repeatable; replaces the catalogue's).",
)
@click.option("--list", "list_only", is_flag=True, help="List available benchmarks and exit.")
@click.option("--no-color", is_flag=True, help="Disable colored output.")
@click.option("-v", "--verbose", is_flag=True, help="Show raw samples and all counters.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option(
    "--log-file",
    type=_PATH,
    default=None,
    help="Also write a debug log to this file.",
)
def main(
    baseline: Path | None,
    experiment: Path | None,
    runs: int,
    warmup: int,
    scenarios: tuple[str, ...],
    catalogue_path: Path | None,
    flags: tuple[str, ...],
    list_only: bool,
    no_color: bool,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Compare two builds of an executable with interleaved benchmark runs."""
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)
    color = not no_color

    try:
        catalogue = load_catalogue(catalogue_path)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    if list_only:
        click.echo(format_catalogue(catalogue))
        return

    if baseline is None or experiment is None:
        raise click.UsageError("--baseline and --experiment are required.")

    try:
        config = HarnessConfig(
            baseline=baseline,
            experiment=experiment,
            benchmarks=select_benchmarks(catalogue, scenarios),
            runs=runs,
            warmup=warmup,
            flags=flags or catalogue.flags,
            inline_flag=catalogue.inline_flag,
            verbose=verbose,
        )
        check_config(config)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    click.echo(
        format_header(
            config,
            baseline_version=variant_version(config.baseline),
            experiment_version=variant_version(config.experiment),
        )
    )

    runner = InterleavedRunner(config)
    try:
        results = runner.run_all()
    except KeyboardInterrupt:
        click.echo("\nBenchmark interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904

    report = compare_all(results)
    for bc in report.benchmarks:
        click.echo()
        click.echo(format_benchmark(bc, verbose=verbose, color=color))

    click.echo()
    click.echo(format_summary(report, runs=config.runs, color=color))

"""Shared text formatting helpers for abbench.

Provides unit-aware value formatting (milliseconds, bytes, kilobytes,
counts), signed percentages, section headers and aligned text tables
used by the report renderer.
"""

from __future__ import annotations

import click

EM_DASH = "—"


def format_ms(ms: float | None) -> str:
    """Format milliseconds: ``'412.0ms'``, ``'1.25s'``, or an em dash."""
    if ms is None:
        return EM_DASH
    if abs(ms) >= 1000:
        return f"{ms / 1000:.2f}s"
    return f"{ms:.1f}ms"


def format_bytes(n: float | None, *, signed: bool = False) -> str:
    """Format a byte count with binary units: ``'1.5 MB'``, ``'+12 B'``."""
    if n is None:
        return EM_DASH
    prefix = "+" if signed and n > 0 else ""
    size = abs(n)
    if size >= 1024**3:
        return f"{prefix}{n / 1024**3:.1f} GB"
    if size >= 1024**2:
        return f"{prefix}{n / 1024**2:.1f} MB"
    if size >= 1024:
        return f"{prefix}{n / 1024:.1f} KB"
    return f"{prefix}{round(n)} B"


def format_kb(n: float | None, *, signed: bool = False) -> str:
    """Format a kilobyte count (as reported by RSS) with binary units."""
    return format_bytes(n * 1024 if n is not None else None, signed=signed)


def format_count(n: float | None, *, signed: bool = False) -> str:
    """Format a count, rounding medians of integer counters."""
    if n is None:
        return EM_DASH
    v = round(n)
    return f"+{v}" if signed and v > 0 else str(v)


def format_metric(metric: str, value: float | None, *, signed: bool = False) -> str:
    """Format *value* according to the unit implied by the metric name.

    ``*_ms`` is a duration, ``*_kb`` a size in kilobytes, ``*_bytes`` or
    ``memsize*`` a size in bytes; anything else is a plain count.
    """
    name = metric.lower()
    if name.endswith("_ms"):
        text = format_ms(value)
        return f"+{text}" if signed and value is not None and value > 0 else text
    if name.endswith("_kb"):
        return format_kb(value, signed=signed)
    if name.endswith("_bytes") or name.startswith("memsize"):
        return format_bytes(value, signed=signed)
    return format_count(value, signed=signed)


def format_pct(value: float | None, precision: int = 1) -> str:
    """Format a percentage with explicit sign: ``'+12.3%'``."""
    if value is None:
        return EM_DASH
    return f"{value:+.{precision}f}%"


def format_section_header(title: str, width: int = 80) -> str:
    """Format a section header: ``'─── Title ──...'``."""
    prefix = "─── "
    suffix_len = width - len(prefix) - len(title) - 1
    suffix = " " + "─" * max(0, suffix_len)
    return prefix + title + suffix


def format_table(
    headers: list[str],
    rows: list[list[str]],
    *,
    alignments: list[str] | None = None,
    indent: int = 2,
) -> str:
    """Format a list of rows as an aligned text table.

    Column widths are computed from the visible text, so cells may
    carry ANSI styling (from ``click.style``) without breaking the
    alignment.  Right-aligns columns marked ``'r'`` in *alignments*.

    Args:
        headers: Column header strings.
        rows: List of rows, each a list of cell strings.
        alignments: Per-column alignment: ``'l'`` or ``'r'``.
        indent: Number of leading spaces per line.

    Returns:
        The formatted table as a string, with a rule under the header.
    """
    if not headers:
        return ""

    ncols = len(headers)
    aligns = list(alignments or [])
    aligns += ["l"] * (ncols - len(aligns))

    proc_rows = [(list(row) + [""] * ncols)[:ncols] for row in rows]

    widths = [len(click.unstyle(h)) for h in headers]
    for row in proc_rows:
        for ci, cell in enumerate(row):
            widths[ci] = max(widths[ci], len(click.unstyle(cell)))

    def _pad(text: str, width: int, align: str) -> str:
        gap = " " * (width - len(click.unstyle(text)))
        return gap + text if align == "r" else text + gap

    prefix = " " * indent
    lines = [prefix + "  ".join(_pad(h, widths[i], aligns[i]) for i, h in enumerate(headers))]
    lines.append(prefix + "─" * (sum(widths) + 2 * (ncols - 1)))
    for row in proc_rows:
        line = "  ".join(_pad(row[i], widths[i], aligns[i]) for i in range(ncols))
        lines.append((prefix + line).rstrip())
    return "\n".join(lines)

"""Metric extraction from captured benchmark output.

Workloads report their counters as ``KEY=VALUE`` lines on stderr (or
stdout), for example::

    SWEEP_MS=412
    MARK_MS=88
    GC_COUNT=1

Some tools print free-form lines instead (``sweeping_time: 412``), so a
metric can also be recognized with a regular expression that has one
capturing group.  Extraction is best-effort: a metric whose line is
missing or malformed is simply absent from the result, and the caller
decides what to do about it.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

Number = int | float

_KV_LINE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)=(\S+)\s*$")


# ---------------------------------------------------------------------------
# Recognition rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeyRule:
    """Match a ``KEY=VALUE`` line whose key is exactly *key*."""

    key: str
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        regex = re.compile(rf"^\s*{re.escape(self.key)}=(\S+)\s*$", re.MULTILINE)
        object.__setattr__(self, "_regex", regex)

    def find(self, text: str) -> str | None:
        m = self._regex.search(text)
        return m.group(1) if m else None


@dataclass(frozen=True)
class PatternRule:
    """Match the first line where *pattern* is found.

    The pattern must contain exactly one capturing group, which holds
    the value.
    """

    pattern: str
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        regex = re.compile(self.pattern)
        if regex.groups != 1:
            raise ValueError(
                f"Metric pattern must have exactly one capturing group "
                f"(got {regex.groups}): {self.pattern!r}"
            )
        object.__setattr__(self, "_regex", regex)

    def find(self, text: str) -> str | None:
        for line in text.splitlines():
            m = self._regex.search(line)
            if m:
                return m.group(1)
        return None


Rule = KeyRule | PatternRule


def rule_from_config(value: str) -> Rule:
    """Build a rule from its configuration string.

    A string containing a capturing group is treated as a regular
    expression; anything else is a ``KEY=VALUE`` key.
    """
    if "(" in value and re.compile(value).groups:
        return PatternRule(value)
    return KeyRule(value)


# ---------------------------------------------------------------------------
# Value parsing
# ---------------------------------------------------------------------------


def parse_number(text: str) -> Number | None:
    """Parse *text* as an int when integral, otherwise as a float.

    Returns None if the text is not numeric or not finite.
    """
    text = text.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def extract_metrics(text: str, rules: Mapping[str, Rule]) -> dict[str, Number]:
    """Extract every metric in *rules* that can be found in *text*.

    Args:
        text: Captured output of a single run.
        rules: Metric name -> recognition rule.

    Returns:
        Metric name -> numeric value, for the metrics found.
    """
    found: dict[str, Number] = {}
    for name, rule in rules.items():
        raw = rule.find(text)
        if raw is None:
            continue
        value = parse_number(raw)
        if value is not None:
            found[name] = value
    return found


def extract_all(text: str) -> dict[str, Number]:
    """Collect every numeric ``KEY=VALUE`` line, keyed by lowercased key.

    Later lines win when a key repeats.
    """
    found: dict[str, Number] = {}
    for line in text.splitlines():
        m = _KV_LINE.match(line)
        if not m:
            continue
        value = parse_number(m.group(2))
        if value is not None:
            found[m.group(1).lower()] = value
    return found


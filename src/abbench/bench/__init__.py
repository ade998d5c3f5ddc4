"""Measurement and inference engine for abbench.

Runs a workload under a baseline and an experiment executable in strict
alternation, extracts the counters each run prints, and compares the
resulting samples with Welch's t-test, a percentile bootstrap and
Glass's delta.
"""

"""abbench — interleaved A/B benchmarking of two executable builds."""

__version__ = "0.1.0"

"""
Core modules for TPS Meter.

This package contains the pure functionality: folding run messages into
usage counters and rendering the one-line throughput summary.
"""

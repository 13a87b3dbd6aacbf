"""
Run summary formatting.

Renders elapsed time and usage counters into one stable, parseable line.

Segment order:
1. Throughput (output tokens per second)
2. Output tokens
3. Input tokens
4. Cache read/write counts, then cache hit rate (when show_cache)
5. Total tokens, then output/input ratio (when show_totals)
6. Elapsed seconds
"""

import math
import sys
from decimal import Context, Decimal, ROUND_HALF_UP
from typing import Callable, List, Tuple

from tps_meter.config.loader import NotificationOptions
from .usage import UsageCounters

MIN_ELAPSED_SECONDS = 1e-9
MAX_FINITE = sys.float_info.max
SEPARATOR = ", "

# Wide enough to quantize any finite float
_DECIMAL_CONTEXT = Context(prec=400)

Segment = Tuple[Callable[[], bool], Callable[[], str]]


def _finite(value: float) -> float:
    """Clamp infinities to the largest finite float; NaN becomes 0."""
    if isinstance(value, float):
        if math.isnan(value):
            return 0.0
        if math.isinf(value):
            return math.copysign(MAX_FINITE, value)
    return value


def format_fixed(value: float, decimals: int) -> str:
    """Format with a fixed number of decimals, rounding half away from zero.

    Rounds the exact value of the float, so 0.125 -> "0.13" but
    1.005 (stored as 1.00499...) -> "1.00".
    """
    quantum = Decimal(1).scaleb(-decimals)
    return str(Decimal(_finite(value)).quantize(
        quantum, rounding=ROUND_HALF_UP, context=_DECIMAL_CONTEXT
    ))


def format_int(value: float) -> str:
    """Truncate toward zero and group thousands: 1234.9 -> "1,234"."""
    return f"{int(_finite(value)):,}"


def _always() -> bool:
    return True


def _has_cache_denominator(usage: UsageCounters) -> bool:
    return usage.input + usage.cache_read > 0


def _cache_hit_rate(usage: UsageCounters) -> str:
    hit_rate = usage.cache_read / (usage.input + usage.cache_read)
    return f"cache% {format_fixed(hit_rate * 100, 0)}%"


def format_notification(
    elapsed_seconds: float,
    usage: UsageCounters,
    options: NotificationOptions,
) -> str:
    """Render the one-line summary for a finished run.

    Optional segments are dropped, never zeroed, and the remaining
    segments keep their relative order whatever the option combination.

    Args:
        elapsed_seconds: Run duration in seconds
        usage: Aggregated counters for the run
        options: Display options

    Returns:
        Segments joined with ", "
    """
    precision = options.precision
    throughput = usage.output / max(elapsed_seconds, MIN_ELAPSED_SECONDS)

    segments: List[Segment] = [
        (_always, lambda: f"TPS {format_fixed(throughput, precision)} tok/s"),
        (_always, lambda: f"out {format_int(usage.output)}"),
        (_always, lambda: f"in {format_int(usage.input)}"),
        (
            lambda: options.show_cache,
            lambda: f"cache r/w {format_int(usage.cache_read)}/{format_int(usage.cache_write)}",
        ),
        (
            lambda: options.show_cache and _has_cache_denominator(usage),
            lambda: _cache_hit_rate(usage),
        ),
        (lambda: options.show_totals, lambda: f"total {format_int(usage.total_tokens)}"),
        (
            lambda: options.show_totals and usage.input > 0,
            lambda: f"o/i {format_fixed(usage.output / usage.input, 2)}",
        ),
        (_always, lambda: f"{format_fixed(elapsed_seconds, precision)}s"),
    ]

    return SEPARATOR.join(render() for include, render in segments if include())

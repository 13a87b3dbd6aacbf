"""
Token usage aggregation.

Folds the messages produced during a run into a single set of counters.
"""

import math
import numbers
import sys
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping

ASSISTANT_ROLE = "assistant"
MAX_COUNT = sys.float_info.max

# Counter field -> key used in the host's usage sub-record
USAGE_KEYS: Dict[str, str] = {
    "input": "input",
    "output": "output",
    "cache_read": "cacheRead",
    "cache_write": "cacheWrite",
    "total_tokens": "totalTokens",
}


@dataclass
class UsageCounters:
    """Additive token counters for one run.

    Created zero-valued and only ever grown by addition.
    """
    input: float = 0
    output: float = 0
    cache_read: float = 0
    cache_write: float = 0
    total_tokens: float = 0

    def add(self, other: "UsageCounters") -> None:
        """Add another counter set into this one, field by field."""
        for f in fields(self):
            setattr(self, f.name, _saturating_add(getattr(self, f.name), getattr(other, f.name)))

    def __add__(self, other: "UsageCounters") -> "UsageCounters":
        if not isinstance(other, UsageCounters):
            return NotImplemented
        result = UsageCounters()
        result.add(self)
        result.add(other)
        return result


def _saturating_add(a: float, b: float) -> float:
    """Add two counts, clamping at the largest finite float."""
    try:
        total = float(a + b)
    except OverflowError:
        return MAX_COUNT
    return total if math.isfinite(total) else MAX_COUNT


def read_count(value: Any) -> float:
    """Read a usage field, degrading anything unusable to 0.

    Any real number (int, float, Decimal, Fraction, numpy scalars) is read
    as a float. Booleans, strings, None, NaN, infinities, negative numbers
    and integers too large for a float all read as 0 so that a malformed
    record can never fail or shrink the totals.
    """
    if isinstance(value, bool) or not isinstance(value, (numbers.Real, Decimal)):
        return 0
    try:
        count = float(value)
    except (OverflowError, ValueError):
        return 0
    if not math.isfinite(count) or count < 0:
        return 0
    return count


def is_assistant_message(message: Any) -> bool:
    """Whether a message is a mapping authored by the assistant role."""
    return isinstance(message, Mapping) and message.get("role") == ASSISTANT_ROLE


def usage_from_record(usage: Any) -> UsageCounters:
    """Build counters from a single usage sub-record.

    Args:
        usage: The ``usage`` value of a message; anything that is not a
            mapping contributes nothing

    Returns:
        UsageCounters for this record (all zeros when unusable)
    """
    if not isinstance(usage, Mapping):
        return UsageCounters()
    return UsageCounters(**{
        field_name: read_count(usage.get(key))
        for field_name, key in USAGE_KEYS.items()
    })


def aggregate_usage(messages: Iterable[Any]) -> UsageCounters:
    """Sum usage across every assistant message of a run.

    Non-assistant and malformed messages are skipped without error. The
    result does not depend on message order.

    Args:
        messages: Messages produced during the run, in any shape

    Returns:
        UsageCounters holding the field-wise sums
    """
    totals = UsageCounters()
    for message in messages:
        if not is_assistant_message(message):
            continue
        totals.add(usage_from_record(message.get("usage")))
    return totals

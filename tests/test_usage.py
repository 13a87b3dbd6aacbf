"""
Unit tests for usage aggregation.

Tests message filtering, defensive field reads, and additivity.
"""

import json
import math
import sys
from decimal import Decimal
from fractions import Fraction

import pytest

from tps_meter.core.usage import (
    UsageCounters,
    aggregate_usage,
    is_assistant_message,
    read_count,
    usage_from_record,
)


def _assistant(**usage):
    return {"role": "assistant", "usage": usage}


class TestReadCount:
    """Test the defensive numeric reader."""

    @pytest.mark.parametrize("value", [None, "12", True, False, float("nan"),
                                       float("inf"), float("-inf"), -5, [], {}])
    def test_unusable_values_read_as_zero(self, value):
        """Verify anything that is not a finite, non-negative number reads as 0."""
        assert read_count(value) == 0

    def test_numbers_pass_through(self):
        """Verify ints and floats are returned unchanged."""
        assert read_count(42) == 42
        assert read_count(1.5) == 1.5
        assert read_count(0) == 0

    def test_oversized_int_reads_as_zero(self):
        """Verify an int too large for a float is treated as malformed."""
        assert read_count(10**400) == 0

    def test_other_real_numbers_are_accepted(self):
        """Verify Decimal and Fraction counts are read as floats."""
        assert read_count(Decimal("12")) == 12.0
        assert read_count(Fraction(3, 2)) == 1.5
        assert read_count(Decimal("NaN")) == 0
        assert read_count(Decimal("sNaN")) == 0
        assert read_count(Decimal("-3")) == 0


class TestUsageCounters:
    """Test UsageCounters arithmetic."""

    def test_default_is_zero(self):
        """Verify counters start at zero."""
        counters = UsageCounters()
        assert counters == UsageCounters(0, 0, 0, 0, 0)

    def test_add_is_field_wise(self):
        """Verify addition sums each field independently."""
        a = UsageCounters(input=1, output=2, cache_read=3, cache_write=4, total_tokens=10)
        b = UsageCounters(input=10, output=20, cache_read=30, cache_write=40, total_tokens=100)
        assert a + b == UsageCounters(11, 22, 33, 44, 110)
        # Operands are left untouched
        assert a == UsageCounters(1, 2, 3, 4, 10)

    def test_add_rejects_other_types(self):
        """Verify adding a non-counter object is unsupported."""
        with pytest.raises(TypeError):
            UsageCounters() + 1


class TestUsageFromRecord:
    """Test reading a single usage sub-record."""

    def test_reads_host_keys(self):
        """Verify the camelCase host keys map onto the counters."""
        usage = usage_from_record({
            "input": 100, "output": 50, "cacheRead": 20,
            "cacheWrite": 5, "totalTokens": 175,
        })
        assert usage == UsageCounters(100, 50, 20, 5, 175)

    def test_non_mapping_contributes_nothing(self):
        """Verify a missing or malformed record is all zeros."""
        assert usage_from_record(None) == UsageCounters()
        assert usage_from_record("usage") == UsageCounters()
        assert usage_from_record([1, 2, 3]) == UsageCounters()

    def test_missing_fields_are_zero(self):
        """Verify partially populated records fill the rest with zero."""
        assert usage_from_record({"output": 7}) == UsageCounters(output=7)


class TestAggregateUsage:
    """Test folding run messages into counters."""

    def test_empty_sequence(self):
        """Verify no messages yields zero counters."""
        assert aggregate_usage([]) == UsageCounters()

    def test_sums_assistant_messages(self):
        """Verify assistant usage is summed across messages."""
        messages = [
            _assistant(input=100, output=10, cacheRead=5, cacheWrite=1, totalTokens=116),
            _assistant(input=200, output=20, cacheRead=15, cacheWrite=2, totalTokens=237),
        ]
        assert aggregate_usage(messages) == UsageCounters(300, 30, 20, 3, 353)

    def test_skips_other_roles(self):
        """Verify user, tool and system messages are ignored even with usage."""
        messages = [
            {"role": "user", "usage": {"input": 999, "output": 999}},
            {"role": "toolResult", "usage": {"output": 999}},
            {"role": "system", "usage": {"output": 999}},
            _assistant(output=3),
        ]
        assert aggregate_usage(messages) == UsageCounters(output=3)

    def test_malformed_messages_contribute_zero(self):
        """Verify junk input never raises and yields zeros."""
        messages = [
            None,
            42,
            "assistant",
            ["role", "assistant"],
            {"usage": {"output": 10}},
            {"role": "assistant"},
            {"role": "assistant", "usage": None},
            {"role": "assistant", "usage": "lots"},
            {"role": "Assistant", "usage": {"output": 10}},
        ]
        assert aggregate_usage(messages) == UsageCounters()

    def test_malformed_fields_degrade_to_zero(self):
        """Verify bad field values are read as zero but good ones still count."""
        messages = [
            _assistant(input="100", output=float("nan"), cacheRead=None,
                       cacheWrite=True, totalTokens=float("inf")),
            _assistant(input=10, output=5),
        ]
        assert aggregate_usage(messages) == UsageCounters(input=10, output=5)

    def test_result_is_finite_and_non_negative(self):
        """Verify every field of the result is a finite number >= 0."""
        messages = [_assistant(input=-1, output=2.5, cacheRead=float("-inf")), object()]
        usage = aggregate_usage(messages)
        for value in (usage.input, usage.output, usage.cache_read,
                      usage.cache_write, usage.total_tokens):
            assert math.isfinite(value)
            assert value >= 0

    def test_aggregation_is_additive(self):
        """Verify aggregate(A + B) equals aggregate(A) + aggregate(B)."""
        a = [_assistant(input=1, output=2), {"role": "user"}, _assistant(cacheRead=4)]
        b = [None, _assistant(input=8, cacheWrite=16, totalTokens=32)]
        assert aggregate_usage(a + b) == aggregate_usage(a) + aggregate_usage(b)

    def test_aggregation_is_order_independent(self):
        """Verify message order does not change the result."""
        messages = [_assistant(input=i, output=i * 2) for i in range(1, 6)]
        assert aggregate_usage(messages) == aggregate_usage(list(reversed(messages)))

    def test_accepts_any_iterable(self):
        """Verify generators are consumed like lists."""
        usage = aggregate_usage(_assistant(output=1) for _ in range(3))
        assert usage.output == 3

    def test_is_assistant_message(self):
        """Verify role detection."""
        assert is_assistant_message({"role": "assistant"})
        assert not is_assistant_message({"role": "user"})
        assert not is_assistant_message(None)

    def test_oversized_json_literal_does_not_raise(self):
        """Verify a huge integer literal from JSON degrades to zero."""
        messages = json.loads(
            '[{"role": "assistant", "usage": {"output": 1' + '0' * 400 + ', "input": 7}}]'
        )
        assert aggregate_usage(messages) == UsageCounters(input=7)

    def test_sums_saturate_instead_of_overflowing(self):
        """Verify totals stay finite when the sum exceeds the float range."""
        messages = [_assistant(totalTokens=1.7e308, output=1)] * 2
        usage = aggregate_usage(messages)
        assert usage.total_tokens == sys.float_info.max
        assert math.isfinite(usage.total_tokens)
        assert usage.output == 2


class TestSaturatingAddition:
    """Test counter addition at the float boundary."""

    def test_add_clamps_to_max(self):
        """Verify adding two near-max counters saturates."""
        big = UsageCounters(input=1.7e308)
        assert (big + big).input == sys.float_info.max

    def test_saturated_value_stays_saturated(self):
        """Verify adding to a saturated counter keeps it finite."""
        saturated = UsageCounters(output=sys.float_info.max)
        assert (saturated + UsageCounters(output=1e308)).output == sys.float_info.max

"""
Property-based tests using Hypothesis for the report engine.

These tests verify the invariants of the engine across generated ranges,
datasets and operands:
- buckets cover a range exactly, without gaps or overlaps
- a flow metric's scalar equals the sum of its bucket values
- division never produces NaN or Infinity
- null values never match a filter
"""

import math
from datetime import date, datetime, timedelta

import hypothesis.strategies as st
from hypothesis import HealthCheck, given, settings

from reportengine.catalog import DEFAULT_SCHEMA, build_catalog
from reportengine.engine.block_evaluator import evaluate_block
from reportengine.engine.filters import compile_filters
from reportengine.engine.formula import apply_operator
from reportengine.engine.time_buckets import TimeBucketer, bucketize
from reportengine.models import CalculationOperator, DateRange, Granularity
from tests.conftest import make_block, make_condition, make_raw_payment

range_starts = st.dates(min_value=date(2020, 1, 1), max_value=date(2026, 12, 31))
range_lengths = st.integers(min_value=0, max_value=400)
granularities = st.sampled_from(list(Granularity))
operand = st.one_of(
    st.none(),
    st.just(0),
    st.just(0.0),
    st.integers(min_value=-(10**9), max_value=10**9),
    st.floats(allow_nan=False, allow_infinity=False),
)


# =============================================================================
# Time Bucketer Property Tests
# =============================================================================


@given(start=range_starts, length=range_lengths, granularity=granularities)
@settings(max_examples=150)
def test_prop_buckets_cover_range_without_gaps(start: date, length: int, granularity: Granularity):
    """
    Invariant: buckets are ordered, contiguous and start exactly at the range
    start; the last bucket contains the range end.
    """
    end = start + timedelta(days=length)
    buckets = bucketize(start, end, granularity)

    assert buckets[0].start == datetime(start.year, start.month, start.day)
    for previous, current in zip(buckets, buckets[1:]):
        assert previous.end == current.start
        assert previous.start < previous.end
    assert buckets[-1].start <= datetime(end.year, end.month, end.day) < buckets[-1].end
    assert len({bucket.label for bucket in buckets}) == len(buckets)


@given(
    start=range_starts,
    length=range_lengths,
    granularity=granularities,
    offset_minutes=st.integers(min_value=-2 * 24 * 60, max_value=410 * 24 * 60),
)
@settings(max_examples=200)
def test_prop_assign_maps_to_exactly_one_bucket(start, length, granularity, offset_minutes):
    """
    Invariant: every timestamp inside the window maps to the one bucket
    containing it; timestamps outside map to None.
    """
    bucketer = TimeBucketer(start, start + timedelta(days=length), granularity)
    timestamp = datetime(start.year, start.month, start.day) + timedelta(minutes=offset_minutes)

    index = bucketer.assign(timestamp)
    containing = [i for i, b in enumerate(bucketer.buckets) if b.start <= timestamp < b.end]

    if bucketer.window_start <= timestamp < bucketer.window_end:
        assert containing == [index]
    else:
        assert index is None
        assert containing == []


# =============================================================================
# Block Evaluator Property Tests
# =============================================================================


payment_rows = st.lists(
    st.tuples(
        st.integers(min_value=0, max_value=120),
        st.one_of(st.none(), st.integers(min_value=0, max_value=100_000)),
    ),
    max_size=25,
)


@given(rows=payment_rows, granularity=granularities, op=st.sampled_from(["sum", "count"]))
@settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.too_slow])
def test_prop_flow_scalar_equals_sum_of_buckets(rows, granularity, op):
    """
    Invariant: for sum_over_period, the scalar over a range equals the sum of
    the non-null bucket values of the same range.
    """
    first_day = datetime(2024, 1, 1)
    catalog = build_catalog(
        DEFAULT_SCHEMA,
        {
            "payment": [
                make_raw_payment(f"py_{i}", (first_day + timedelta(days=day)).isoformat(), amount=amount)
                for i, (day, amount) in enumerate(rows)
            ]
        },
    )
    date_range = DateRange(start=date(2024, 1, 10), end=date(2024, 4, 20), granularity=granularity)
    block = make_block("metric", op, "payment.amount")

    scalar = evaluate_block(block, catalog, date_range, bucketed=False).value
    series = evaluate_block(block, catalog, date_range, bucketed=True).series
    bucket_values = [point.value for point in series if point.value is not None]

    if scalar is None:
        assert bucket_values == []
    else:
        assert scalar == sum(bucket_values)


@given(rows=payment_rows)
@settings(max_examples=40, deadline=None)
def test_prop_latest_count_never_exceeds_flow_count(rows):
    """Invariant: a snapshot count is bounded by the flow count of the same range."""
    first_day = datetime(2024, 1, 1)
    catalog = build_catalog(
        DEFAULT_SCHEMA,
        {
            "payment": [
                make_raw_payment(f"py_{i}", (first_day + timedelta(days=day)).isoformat())
                for i, (day, _) in enumerate(rows)
            ]
        },
    )
    date_range = DateRange(start=date(2024, 1, 1), end=date(2024, 5, 31), granularity=Granularity.MONTH)
    latest = evaluate_block(make_block("l", "count", "payment.id", type="latest"), catalog, date_range, False).value
    flow = evaluate_block(make_block("f", "count", "payment.id"), catalog, date_range, False).value
    assert 0 <= latest <= flow
    assert (latest == 0) == (flow == 0)


# =============================================================================
# Formula Combiner Property Tests
# =============================================================================


@given(left=operand, right=operand, operator=st.sampled_from(list(CalculationOperator)))
@settings(max_examples=300)
def test_prop_combination_is_never_nan_or_infinite(left, right, operator):
    """Invariant: a combined value is None or a finite number, never NaN/Infinity."""
    value, note = apply_operator(operator, left, right)
    if value is None:
        assert note is not None
    else:
        assert math.isfinite(value)
        assert note is None


@given(right=st.one_of(st.none(), st.just(0), st.just(0.0)), left=operand)
def test_prop_divide_by_zero_or_null_is_null(left, right):
    value, note = apply_operator(CalculationOperator.DIVIDE, left, right)
    assert value is None
    assert note


# =============================================================================
# Filter Evaluator Property Tests
# =============================================================================


@given(
    condition=st.sampled_from(
        [
            ("payment.amount", "equals", 10),
            ("payment.amount", "not_equals", 10),
            ("payment.amount", "greater_than", -1),
            ("payment.amount", "less_than", 10**9),
            ("payment.amount", "between", [-(10**9), 10**9]),
            ("payment.amount", "in", [0, 10]),
            ("payment.amount", "contains", ""),
            ("payment.captured", "is_true", None),
            ("payment.captured", "is_false", None),
            ("payment.created", "not_equals", "2024-01-01"),
        ]
    )
)
def test_prop_null_values_never_match(condition):
    """Invariant: a record with null values is excluded by every operator."""
    catalog = build_catalog(
        DEFAULT_SCHEMA,
        {"payment": [make_raw_payment("py_null", created=None, amount=None, captured=None)]},
    )
    compiled = compile_filters(catalog, "payment", [make_condition(*condition)])
    assert compiled.apply(catalog.table("payment")) == []

"""
Pytest configuration and shared fixtures for the report engine test suite.

Provides raw record factories, model factories for blocks, formulas and
reports, a small billing catalog shared by unit, golden and integration tests,
and a TestClient wired to that catalog.
"""

import os

import pytest
from fastapi.testclient import TestClient
from pydantic import TypeAdapter

# Set testing environment BEFORE importing app
os.environ["TESTING"] = "true"
os.environ.pop("CATALOG_PATH", None)

from reportengine.catalog import DEFAULT_SCHEMA, RecordCatalog, build_catalog, get_catalog
from reportengine.config import Settings
from reportengine.engine import MetricEngine
from reportengine.models import (
    DateRange,
    FilterCondition,
    MetricBlock,
    MetricFormula,
    ReportSpec,
)

_block_adapter = TypeAdapter(MetricBlock)


# ---------------------------------------------------------------------------
# Raw record factories
# ---------------------------------------------------------------------------


def make_raw_customer(record_id: str = "cus_1", email: str = "ada@example.com", **overrides) -> dict:
    """Factory for a raw customer row."""
    defaults = dict(
        id=record_id,
        email=email,
        name="Ada",
        created="2023-06-01T00:00:00Z",
        balance=0,
        delinquent=False,
    )
    defaults.update(overrides)
    return defaults


def make_raw_invoice(
    record_id: str = "in_1",
    created: str = "2024-01-05",
    status: str = "paid",
    amount_due: int = 1000,
    **overrides,
) -> dict:
    """Factory for a raw invoice row (amounts in cents)."""
    defaults = dict(
        id=record_id,
        customer_id="cus_1",
        subscription_id="sub_1",
        amount_due=amount_due,
        amount_paid=amount_due if status == "paid" else 0,
        created=created,
        status=status,
        paid=status == "paid",
    )
    defaults.update(overrides)
    return defaults


def make_raw_payment(
    record_id: str = "py_1",
    created: str = "2024-01-05T10:00:00Z",
    status: str = "succeeded",
    amount: int = 1000,
    **overrides,
) -> dict:
    """Factory for a raw payment row (amounts in cents)."""
    defaults = dict(
        id=record_id,
        customer_id="cus_1",
        invoice_id=None,
        amount=amount,
        currency="usd",
        created=created,
        status=status,
        captured=status == "succeeded",
    )
    defaults.update(overrides)
    return defaults


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


def make_condition(qualified: str, operator: str, value=None) -> FilterCondition:
    """Factory for a filter condition on ``object.field``."""
    obj, _, field = qualified.partition(".")
    return FilterCondition(field={"object": obj, "field": field}, operator=operator, value=value)


def make_block(
    block_id: str = "count",
    op: str = "count",
    source: str = None,
    type: str = "sum_over_period",
    filters=(),
    **overrides,
):
    """Factory for a metric block; ``source`` is a qualified ``object.field``."""
    defaults = dict(id=block_id, name=block_id.replace("_", " ").title(), op=op, type=type, filters=list(filters))
    if source is not None:
        obj, _, field = source.partition(".")
        defaults["source"] = {"object": obj, "field": field}
    defaults.update(overrides)
    return _block_adapter.validate_python(defaults)


def make_formula(*blocks, calculation: dict = None, **overrides) -> MetricFormula:
    """Factory for a formula; defaults to a single record-count block."""
    defaults = dict(
        name="Test Formula",
        blocks=list(blocks) or [make_block()],
        calculation=calculation,
    )
    defaults.update(overrides)
    return MetricFormula(**defaults)


def make_range(start: str = "2024-01-01", end: str = "2024-02-29", granularity: str = "month") -> DateRange:
    """Factory for a date range."""
    return DateRange(start=start, end=end, granularity=granularity)


def make_report(
    formula: MetricFormula = None,
    objects=("payment",),
    start: str = "2024-01-01",
    end: str = "2024-02-29",
    granularity: str = "month",
    mode: str = "series",
    **overrides,
) -> ReportSpec:
    """Factory for a report over the billing catalog."""
    defaults = dict(
        name="Test Report",
        objects=list(objects),
        formula=formula if formula is not None or "metric" in overrides else make_formula(),
        range={"start": start, "end": end, "granularity": granularity},
        mode=mode,
    )
    defaults.update(overrides)
    return ReportSpec.model_validate(defaults)


def billing_tables() -> dict:
    """
    Raw tables of the shared billing dataset.

    Two customers; three invoices (one open); four payments, two of which
    (one failed, one blocked) are not captured; py_3 and py_4 share the
    latest timestamp; one refund of the second charge.
    """
    return {
        "customer": [
            make_raw_customer("cus_1", "ada@example.com"),
            make_raw_customer(
                "cus_2", "bob@example.com", name="Bob", created="2023-07-15T00:00:00Z", balance=1500, delinquent=True
            ),
        ],
        "subscription": [
            {"id": "sub_1", "customer_id": "cus_1", "status": "active", "created": "2023-06-01"},
            {"id": "sub_2", "customer_id": "cus_2", "status": "canceled", "created": "2023-07-15"},
        ],
        "invoice": [
            make_raw_invoice("in_1", "2024-01-05", "paid", 1000),
            make_raw_invoice("in_2", "2024-02-10", "open", 2500, customer_id="cus_2", subscription_id="sub_2"),
            make_raw_invoice("in_3", "2024-02-20", "paid", 1999),
        ],
        "payment": [
            make_raw_payment("py_1", "2024-01-05T10:00:00Z", "succeeded", 1000, invoice_id="in_1"),
            make_raw_payment("py_2", "2024-02-10T09:00:00Z", "failed", 2500, customer_id="cus_2", invoice_id="in_2"),
            make_raw_payment("py_3", "2024-02-20T12:00:00Z", "succeeded", 1999, invoice_id="in_3"),
            make_raw_payment("py_4", "2024-02-20T12:00:00Z", "blocked", 500, customer_id="cus_2"),
        ],
        "charge": [
            {
                "id": "ch_1",
                "customer_id": "cus_1",
                "payment_intent_id": "py_1",
                "amount": 1000,
                "currency": "usd",
                "created": "2024-01-05T10:00:05Z",
                "paid": True,
                "refunded": False,
            },
            {
                "id": "ch_3",
                "customer_id": "cus_1",
                "payment_intent_id": "py_3",
                "amount": 1999,
                "currency": "usd",
                "created": "2024-02-20T12:00:05Z",
                "paid": True,
                "refunded": True,
            },
        ],
        "refund": [
            {
                "id": "re_1",
                "charge_id": "ch_3",
                "amount": 1999,
                "currency": "usd",
                "created": "2024-02-25T08:30:00Z",
                "status": "succeeded",
                "reason": "requested_by_customer",
            },
        ],
    }


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def billing_catalog() -> RecordCatalog:
    """Typed catalog of the shared billing dataset."""
    return build_catalog(DEFAULT_SCHEMA, billing_tables())


@pytest.fixture
def invoice_catalog() -> RecordCatalog:
    """Three invoices dated 2024-01-05, 2024-02-10 and 2024-02-20; the second is open."""
    return build_catalog(
        DEFAULT_SCHEMA,
        {
            "invoice": [
                make_raw_invoice("in_1", "2024-01-05", "paid"),
                make_raw_invoice("in_2", "2024-02-10", "open"),
                make_raw_invoice("in_3", "2024-02-20", "paid"),
            ]
        },
    )


@pytest.fixture
def engine_settings() -> Settings:
    """Engine settings with sequential block evaluation."""
    return Settings(parallel_blocks=False, max_buckets=500, max_group_values=10)


@pytest.fixture
def engine(billing_catalog, engine_settings) -> MetricEngine:
    """MetricEngine over the billing catalog."""
    return MetricEngine(billing_catalog, engine_settings)


@pytest.fixture
def client(billing_catalog):
    """TestClient whose catalog dependency serves the billing catalog."""
    from reportengine.main import app

    app.dependency_overrides[get_catalog] = lambda: billing_catalog
    yield TestClient(app)
    app.dependency_overrides.clear()

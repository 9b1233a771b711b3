"""
Unit tests for report presets and the SQL preview.
"""

from datetime import date

import pytest

from reportengine.catalog import DEFAULT_SCHEMA
from reportengine.engine import MetricEngine
from reportengine.engine.sql_preview import condition_sql, generate_sql, sql_literal
from reportengine.models import UnitType
from reportengine.presets import DEFAULT_PRESETS, PresetIndex, ReportPreset, build_default_index, to_slug
from tests.conftest import make_block, make_condition, make_formula, make_report


class TestPresets:
    def test_to_slug(self):
        assert to_slug("Active Subscribers") == "active-subscribers"
        assert to_slug("Blocked Payment Rate (%)") == "blocked-payment-rate"

    def test_default_index_lookups(self):
        index = build_default_index()
        assert len(index) == len(DEFAULT_PRESETS)
        assert index.by_slug("gross-volume").key == "gross_volume"
        assert index.slug_for("refund_count") == "refund-count"
        assert index.key_for("blocked-payment-rate") == "blocked_payment_rate"
        assert "subscriber_ltv" in index
        assert index.by_slug("missing") is None
        assert index.slug_for("missing") is None

    def test_duplicate_keys_rejected(self):
        with pytest.raises(ValueError, match="Duplicate preset key"):
            PresetIndex([DEFAULT_PRESETS[0], DEFAULT_PRESETS[0]])

    def test_duplicate_slugs_rejected(self):
        clone = DEFAULT_PRESETS[0].model_copy(update={"key": "gross_volume_copy"})
        with pytest.raises(ValueError, match="Duplicate preset slug"):
            PresetIndex([DEFAULT_PRESETS[0], clone])

    def test_explicit_slug_is_kept(self):
        preset = ReportPreset(
            key="custom",
            label="Custom Report",
            slug="my-custom",
            report=make_report(),
        )
        assert preset.slug == "my-custom"

    def test_report_for_today(self):
        preset = build_default_index().by_key("refund_count")
        report = preset.report_for(date(2024, 8, 31))
        assert report.range.end == date(2024, 8, 31)
        assert report.range.start == date(2024, 2, 29)
        assert preset.report.range.end == date(2024, 12, 31)

    def test_blocked_payment_rate_preset_computes(self, billing_catalog, engine_settings):
        preset = build_default_index().by_key("blocked_payment_rate")
        computation = MetricEngine(billing_catalog, engine_settings).compute(preset.report_for(date(2024, 2, 29)))
        assert computation.result.unit_type is UnitType.RATE
        assert [r.block_id for r in computation.block_results] == ["blocked", "all"]

    def test_every_preset_validates_against_default_schema(self, billing_catalog, engine_settings):
        engine = MetricEngine(billing_catalog, engine_settings)
        for preset in DEFAULT_PRESETS:
            engine.validate(preset.report_for(date(2024, 6, 30)))


class TestSqlPreview:
    def test_sql_literal(self):
        assert sql_literal("O'Brien") == "'O''Brien'"
        assert sql_literal(True) == "TRUE"
        assert sql_literal(None) == "NULL"
        assert sql_literal(date(2024, 1, 1)) == "'2024-01-01'"

    def test_condition_sql(self):
        assert condition_sql(make_condition("payment.status", "in", ["failed", "blocked"])) == (
            "payment.status IN ('failed', 'blocked')"
        )
        assert condition_sql(make_condition("payment.amount", "between", [1, 5])) == (
            "payment.amount BETWEEN 1 AND 5"
        )
        assert condition_sql(make_condition("customer.email", "contains", "ada")) == "customer.email ILIKE '%ada%'"
        assert condition_sql(make_condition("payment.captured", "is_false")) == "payment.captured = FALSE"

    def test_series_report(self):
        formula = make_formula(
            make_block("blocked", "count", filters=[make_condition("payment.status", "equals", "failed")]),
            make_block("all", "count"),
            calculation={"operator": "divide", "left_operand": "blocked", "right_operand": "all"},
            name="Failure Rate",
        )
        sql = generate_sql(make_report(formula, objects=("payment", "customer")), DEFAULT_SCHEMA)
        assert "DATE_TRUNC('month', payment.created) AS period" in sql
        assert "COUNT(*) FILTER (WHERE payment.status = 'failed') AS blocked" in sql
        assert "blocked / NULLIF(all, 0) AS failure_rate" in sql
        assert "FROM payment\nLEFT JOIN customer ON payment.customer_id = customer.id" in sql
        assert "payment.created >= '2024-01-01'" in sql
        assert "payment.created < '2024-03-01'" in sql
        assert sql.endswith("GROUP BY period\nORDER BY period")

    def test_scalar_report_with_filters_and_group(self):
        report = make_report(
            make_formula(make_block("volume", "sum", "payment.amount")),
            objects=("customer", "payment"),
            mode="scalar",
            filters={"conditions": [make_condition("payment.status", "equals", "succeeded")]},
            group_by={"field": {"object": "customer", "field": "email"}},
        )
        sql = generate_sql(report, DEFAULT_SCHEMA)
        assert "period" not in sql
        assert "SUM(payment.amount) AS volume" in sql
        assert "LEFT JOIN payment ON payment.customer_id = customer.id" in sql
        assert "AND payment.status = 'succeeded'" in sql
        assert sql.endswith("GROUP BY customer.email")

    def test_nothing_selected(self):
        report = make_report(objects=())
        assert generate_sql(report, DEFAULT_SCHEMA).startswith("-- Select objects")

"""
Report presets and the preset index.

Presets are named, ready-made reports (gross volume, refund count ...). The
index is built once from a sequence of presets and passed by reference to
whoever needs slug or key lookups; it is immutable after construction.
"""

import re
from collections.abc import Iterable, Iterator
from datetime import date
from types import MappingProxyType
from typing import Optional

import pandas as pd
from pydantic import Field, model_validator

from reportengine.models.base import EngineModel
from reportengine.models.report import ReportSpec


def to_slug(label: str) -> str:
    """
    Convert a label to a URL-safe slug.

    Examples:
        >>> to_slug("Active Subscribers")
        'active-subscribers'
        >>> to_slug("Blocked Payment Rate (%)")
        'blocked-payment-rate'
    """
    return re.sub(r"[^a-z0-9]+", "-", label.lower()).strip("-")


class ReportPreset(EngineModel):
    """
    A named, ready-made report.

    Attributes:
        key: Stable identifier (snake_case)
        label: Display label
        slug: URL slug, derived from the label when omitted
        description: Short explanation shown in the preset picker
        lookback_months: Length of the default range ending today
        report: Report template; its range is replaced by ``report_for``
    """

    key: str = Field(min_length=1)
    label: str = Field(min_length=1)
    slug: str = ""
    description: str = ""
    lookback_months: int = Field(default=12, ge=1, le=120)
    report: ReportSpec

    @model_validator(mode="before")
    @classmethod
    def derive_slug(cls, data):
        if isinstance(data, dict) and not data.get("slug") and data.get("label"):
            data = {**data, "slug": to_slug(data["label"])}
        return data

    def report_for(self, today: Optional[date] = None) -> ReportSpec:
        """Return the preset's report with its range ending ``today``."""
        today = today or date.today()
        start = (pd.Timestamp(today) - pd.DateOffset(months=self.lookback_months)).date()
        date_range = self.report.range.model_copy(update={"start": start, "end": today})
        return self.report.model_copy(update={"range": date_range})


class PresetIndex:
    """
    Immutable index of report presets with key and slug lookups.

    Args:
        presets: Presets to index; keys and slugs must be unique

    Raises:
        ValueError: On duplicate keys or slugs

    Example:
        >>> index = PresetIndex(DEFAULT_PRESETS)
        >>> index.by_slug("gross-volume").key
        'gross_volume'
    """

    def __init__(self, presets: Iterable[ReportPreset]):
        by_key: dict[str, ReportPreset] = {}
        by_slug: dict[str, ReportPreset] = {}
        for preset in presets:
            if preset.key in by_key:
                raise ValueError(f"Duplicate preset key {preset.key!r}")
            if preset.slug in by_slug:
                raise ValueError(f"Duplicate preset slug {preset.slug!r}")
            by_key[preset.key] = preset
            by_slug[preset.slug] = preset
        self._by_key = MappingProxyType(by_key)
        self._by_slug = MappingProxyType(by_slug)

    def by_key(self, key: str) -> Optional[ReportPreset]:
        return self._by_key.get(key)

    def by_slug(self, slug: str) -> Optional[ReportPreset]:
        return self._by_slug.get(slug)

    def slug_for(self, key: str) -> Optional[str]:
        preset = self._by_key.get(key)
        return preset.slug if preset is not None else None

    def key_for(self, slug: str) -> Optional[str]:
        preset = self._by_slug.get(slug)
        return preset.key if preset is not None else None

    def __iter__(self) -> Iterator[ReportPreset]:
        return iter(self._by_key.values())

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key


_PLACEHOLDER_RANGE = {"start": "2024-01-01", "end": "2024-12-31", "granularity": "month"}

DEFAULT_PRESETS: tuple[ReportPreset, ...] = (
    ReportPreset(
        key="gross_volume",
        label="Gross Volume",
        description="Total payment volume per period",
        lookback_months=12,
        report={
            "name": "Gross Volume",
            "objects": ["payment", "customer"],
            "fields": [
                {"object": "payment", "field": "id"},
                {"object": "payment", "field": "amount"},
                {"object": "payment", "field": "status"},
                {"object": "customer", "field": "email"},
            ],
            "metric": {
                "name": "Gross Volume",
                "source": {"object": "payment", "field": "amount"},
                "op": "sum",
                "type": "sum_over_period",
            },
            "range": _PLACEHOLDER_RANGE,
        },
    ),
    ReportPreset(
        key="active_subscribers",
        label="Active Subscribers",
        description="Distinct active subscriptions per period",
        lookback_months=12,
        report={
            "name": "Active Subscribers",
            "objects": ["subscription", "customer"],
            "fields": [
                {"object": "subscription", "field": "id"},
                {"object": "subscription", "field": "status"},
                {"object": "customer", "field": "email"},
            ],
            "formula": {
                "name": "Active Subscribers",
                "blocks": [
                    {
                        "id": "active",
                        "name": "Active subscriptions",
                        "source": {"object": "subscription", "field": "id"},
                        "op": "distinct_count",
                        "type": "sum_over_period",
                        "filters": [
                            {
                                "field": {"object": "subscription", "field": "status"},
                                "operator": "in",
                                "value": ["active", "trialing"],
                            }
                        ],
                    }
                ],
            },
            "range": _PLACEHOLDER_RANGE,
        },
    ),
    ReportPreset(
        key="refund_count",
        label="Refund Count",
        description="Number of refunds per period",
        lookback_months=6,
        report={
            "name": "Refund Count",
            "objects": ["refund", "charge"],
            "fields": [
                {"object": "refund", "field": "id"},
                {"object": "refund", "field": "amount"},
                {"object": "refund", "field": "reason"},
            ],
            "metric": {
                "name": "Refund Count",
                "source": {"object": "refund", "field": "id"},
                "op": "count",
                "type": "sum_over_period",
            },
            "range": _PLACEHOLDER_RANGE,
        },
    ),
    ReportPreset(
        key="blocked_payment_rate",
        label="Blocked Payment Rate",
        description="Share of payments that failed or were blocked",
        lookback_months=12,
        report={
            "name": "Blocked Payment Rate",
            "objects": ["payment"],
            "formula": {
                "name": "Blocked Payment Rate",
                "blocks": [
                    {
                        "id": "blocked",
                        "name": "Failed or blocked payments",
                        "op": "count",
                        "type": "sum_over_period",
                        "filters": [
                            {
                                "field": {"object": "payment", "field": "status"},
                                "operator": "in",
                                "value": ["failed", "blocked"],
                            }
                        ],
                    },
                    {
                        "id": "all",
                        "name": "All payments",
                        "op": "count",
                        "type": "sum_over_period",
                    },
                ],
                "calculation": {
                    "operator": "divide",
                    "leftOperand": "blocked",
                    "rightOperand": "all",
                    "resultUnitType": "rate",
                },
                "exposeBlocks": ["blocked", "all"],
            },
            "range": _PLACEHOLDER_RANGE,
        },
    ),
    ReportPreset(
        key="average_invoice_amount",
        label="Average Invoice Amount",
        description="Mean amount due per invoice",
        lookback_months=12,
        report={
            "name": "Average Invoice Amount",
            "objects": ["invoice", "customer"],
            "fields": [
                {"object": "invoice", "field": "id"},
                {"object": "invoice", "field": "amount_due"},
                {"object": "invoice", "field": "status"},
            ],
            "metric": {
                "name": "Average Invoice Amount",
                "source": {"object": "invoice", "field": "amount_due"},
                "op": "avg",
                "type": "sum_over_period",
            },
            "range": _PLACEHOLDER_RANGE,
        },
    ),
    ReportPreset(
        key="subscriber_ltv",
        label="Subscriber LTV",
        description="Average amount paid per invoice over the whole period",
        lookback_months=12,
        report={
            "name": "Subscriber Lifetime Value",
            "objects": ["invoice", "customer", "subscription"],
            "fields": [
                {"object": "customer", "field": "email"},
                {"object": "invoice", "field": "amount_paid"},
            ],
            "metric": {
                "name": "Subscriber Lifetime Value",
                "source": {"object": "invoice", "field": "amount_paid"},
                "op": "avg",
                "type": "sum_over_period",
            },
            "range": _PLACEHOLDER_RANGE,
            "mode": "scalar",
        },
    ),
)


def build_default_index() -> PresetIndex:
    """Build the index of the built-in presets."""
    return PresetIndex(DEFAULT_PRESETS)

"""
Integration tests for the Report Engine API.

All endpoints tested against the billing catalog fixture:
- System: health
- Metrics: compute, compute grouped, SQL preview
- Catalog: schema, integrity, group fields, group values, granularity
- Presets: list, detail, compute
"""

import pytest
from fastapi.testclient import TestClient

BLOCKED_RATE_REPORT = {
    "name": "Blocked Payment Rate",
    "objects": ["payment"],
    "formula": {
        "name": "Blocked Payment Rate",
        "blocks": [
            {
                "id": "blocked",
                "op": "count",
                "filters": [
                    {
                        "field": {"object": "payment", "field": "status"},
                        "operator": "in",
                        "value": ["failed", "blocked"],
                    }
                ],
            },
            {"id": "all", "op": "count"},
        ],
        "calculation": {"operator": "divide", "leftOperand": "blocked", "rightOperand": "all"},
        "exposeBlocks": ["blocked", "all"],
    },
    "range": {"start": "2024-01-01", "end": "2024-02-29", "granularity": "month"},
    "mode": "scalar",
}


def report_body(**overrides) -> dict:
    body = dict(BLOCKED_RATE_REPORT)
    body.update(overrides)
    return body


# ============================================================================
# System Endpoints
# ============================================================================


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_system_health_success(client: TestClient):
    """Test GET /api/v1/system/health returns 200 with correct envelope."""
    response = client.get("/api/v1/system/health")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["data"]["status"] == "healthy"
    assert "uptime_seconds" in data["data"]
    assert data["data"]["catalog"]["total_records"] == 14
    assert data["data"]["catalog"]["tables"]["payment"] == 4
    assert "max_buckets" in data["data"]["limits"]


# ============================================================================
# Metrics Endpoints
# ============================================================================


def test_compute_scalar_rate(client: TestClient):
    """Test POST /api/v1/metrics/compute divides two count blocks into a rate."""
    response = client.post("/api/v1/metrics/compute", json=report_body())

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    result = data["data"]["result"]
    assert result["value"] == 0.5
    assert result["unitType"] == "rate"
    assert result["series"] is None
    assert [(b["blockId"], b["value"]) for b in data["data"]["blockResults"]] == [
        ("blocked", 2),
        ("all", 4),
    ]
    assert data["data"]["display"]["value"] == "50.00%"


def test_compute_series(client: TestClient):
    response = client.post("/api/v1/metrics/compute", json=report_body(mode="series"))

    assert response.status_code == 200
    series = response.json()["data"]["result"]["series"]
    assert [point["date"] for point in series] == ["2024-01", "2024-02"]
    assert series[0]["value"] == 0
    assert series[1]["value"] == pytest.approx(2 / 3)
    assert response.json()["data"]["display"]["series"][1]["value"] == "66.67%"


def test_compute_legacy_metric_definition(client: TestClient):
    body = {
        "objects": ["invoice"],
        "metric": {"name": "Revenue", "source": {"object": "invoice", "field": "amount_paid"}, "op": "sum"},
        "range": {"start": "2024-01-01", "end": "2024-02-29", "granularity": "month"},
        "mode": "scalar",
    }
    response = client.post("/api/v1/metrics/compute", json=body)

    assert response.status_code == 200
    assert response.json()["data"]["result"]["unitType"] == "currency"
    assert response.json()["data"]["result"]["kind"] == "currency"


def test_compute_legacy_metric_without_source_returns_422(client: TestClient):
    """A legacy sum metric without a source is rejected like a sourceless block."""
    body = {
        "objects": ["payment"],
        "metric": {"op": "sum", "type": "sum_over_period"},
        "range": {"start": "2024-01-01", "end": "2024-02-29", "granularity": "month"},
    }

    response = client.post("/api/v1/metrics/compute", json=body)

    assert response.status_code == 422
    assert "requires a source field" in str(response.json()["detail"])
    assert client.post("/api/v1/metrics/sql", json=body).status_code == 422


def test_compute_unresolved_field_returns_422(client: TestClient):
    body = report_body(
        formula={
            "blocks": [{"id": "bad", "op": "sum", "source": {"object": "payment", "field": "nope"}}],
        }
    )
    response = client.post("/api/v1/metrics/compute", json=body)

    assert response.status_code == 422
    assert "payment.nope" in response.json()["detail"]


def test_compute_malformed_formula_returns_422(client: TestClient):
    """Aggregations without a source and unknown operands are rejected on input."""
    missing_source = report_body(formula={"blocks": [{"id": "s", "op": "sum"}]})
    unknown_operand = report_body(
        formula={
            "blocks": [{"id": "a", "op": "count"}],
            "calculation": {"operator": "divide", "leftOperand": "a", "rightOperand": "z"},
        }
    )

    assert client.post("/api/v1/metrics/compute", json=missing_source).status_code == 422
    assert client.post("/api/v1/metrics/compute", json=unknown_operand).status_code == 422


def test_compute_inverted_range_returns_422(client: TestClient):
    body = report_body(range={"start": "2024-03-01", "end": "2024-01-01", "granularity": "month"})
    assert client.post("/api/v1/metrics/compute", json=body).status_code == 422


def test_compute_grouped(client: TestClient):
    """Test POST /api/v1/metrics/compute/grouped splits by payment status."""
    body = report_body(
        formula={"blocks": [{"id": "n", "op": "count"}], "exposeBlocks": ["n"]},
        groupBy={"field": {"object": "payment", "field": "status"}, "values": ["succeeded", "failed"]},
    )
    response = client.post("/api/v1/metrics/compute/grouped", json=body)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["groupField"] == "payment.status"
    assert [(g["groupValue"], g["result"]["value"]) for g in data["groups"]] == [
        ("succeeded", 2),
        ("failed", 1),
    ]


def test_compute_grouped_without_group_by_returns_422(client: TestClient):
    response = client.post("/api/v1/metrics/compute/grouped", json=report_body())
    assert response.status_code == 422


def test_preview_sql(client: TestClient):
    response = client.post("/api/v1/metrics/sql", json=report_body())

    assert response.status_code == 200
    sql = response.json()["data"]["sql"]
    assert "COUNT(*) FILTER (WHERE payment.status IN ('failed', 'blocked')) AS blocked" in sql
    assert "FROM payment" in sql


# ============================================================================
# Catalog Endpoints
# ============================================================================


def test_catalog_schema(client: TestClient):
    response = client.get("/api/v1/catalog/schema")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["recordCounts"]["payment"] == 4
    assert data["recordCounts"]["customer"] == 2
    names = [obj["name"] for obj in data["schema"]["objects"]]
    assert "invoice" in names
    assert all("timeField" in obj for obj in data["schema"]["objects"])


def test_catalog_integrity(client: TestClient):
    response = client.get("/api/v1/catalog/integrity")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["issues"] == []
    assert data["integrityScore"] == 1.0
    assert data["checkedRelationships"] == 12
    assert data["totalRecords"] == 14


def test_catalog_group_fields(client: TestClient):
    response = client.get("/api/v1/catalog/group-fields", params={"objects": "payment, ledger"})

    assert response.status_code == 200
    fields = response.json()["data"]
    assert {"object": "payment", "field": "status"} in fields
    assert {"object": "payment", "field": "amount"} not in fields


def test_catalog_group_values(client: TestClient):
    response = client.get("/api/v1/catalog/group-values", params={"object": "payment", "field": "status"})

    assert response.status_code == 200
    assert response.json()["data"] == ["succeeded", "blocked", "failed"]


def test_catalog_group_values_unknown_field(client: TestClient):
    response = client.get("/api/v1/catalog/group-values", params={"object": "payment", "field": "nope"})
    assert response.status_code == 404


@pytest.mark.parametrize(
    "params,suggested,changed",
    [
        ({"start": "2024-01-01", "end": "2024-01-20", "current": "month"}, "day", True),
        ({"start": "2024-01-01", "end": "2024-12-31", "current": "month"}, "month", False),
        ({"start": "2024-01-01", "end": "2024-03-01"}, "week", False),
    ],
)
def test_catalog_granularity(client: TestClient, params, suggested, changed):
    response = client.get("/api/v1/catalog/granularity", params=params)

    assert response.status_code == 200
    assert response.json()["data"] == {"suggested": suggested, "changed": changed}


def test_catalog_granularity_inverted_range(client: TestClient):
    response = client.get("/api/v1/catalog/granularity", params={"start": "2024-02-01", "end": "2024-01-01"})
    assert response.status_code == 422


# ============================================================================
# Presets Endpoints
# ============================================================================


def test_presets_list(client: TestClient):
    response = client.get("/api/v1/presets")

    assert response.status_code == 200
    slugs = [preset["slug"] for preset in response.json()["data"]]
    assert "blocked-payment-rate" in slugs
    assert "gross-volume" in slugs


def test_preset_detail_ranged_to_today(client: TestClient):
    response = client.get("/api/v1/presets/refund-count", params={"today": "2024-08-31"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["key"] == "refund_count"
    assert data["report"]["range"]["start"] == "2024-02-29"
    assert data["report"]["range"]["end"] == "2024-08-31"


def test_preset_compute(client: TestClient):
    response = client.post("/api/v1/presets/blocked-payment-rate/compute", params={"today": "2024-02-29"})

    assert response.status_code == 200
    data = response.json()["data"]
    series = data["result"]["series"]
    assert series[-1]["date"] == "2024-02"
    assert series[-1]["value"] == pytest.approx(2 / 3)
    assert series[-2]["value"] == 0
    assert data["result"]["unitType"] == "rate"
    assert [b["blockId"] for b in data["blockResults"]] == ["blocked", "all"]


def test_preset_not_found(client: TestClient):
    assert client.get("/api/v1/presets/missing").status_code == 404
    assert client.post("/api/v1/presets/missing/compute").status_code == 404

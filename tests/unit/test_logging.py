"""
Unit tests for the structlog processors.
"""

from reportengine.utils.logging import SERVICE_NAME, add_service_context, add_severity


def test_add_severity():
    assert add_severity(None, "warning", {"event": "x"})["severity"] == "WARNING"


def test_service_context_from_logger_name():
    event = add_service_context(None, "info", {"event": "catalog_loaded", "logger": "reportengine.catalog.loader"})
    assert event["service"] == SERVICE_NAME
    assert event["component"] == "catalog"


def test_bound_component_is_kept():
    event = add_service_context(
        None,
        "debug",
        {"event": "block_evaluated", "logger": "reportengine.engine.block_evaluator", "component": "block_evaluator"},
    )
    assert event["component"] == "block_evaluator"


def test_foreign_logger_gets_no_component():
    event = add_service_context(None, "info", {"event": "startup", "logger": "uvicorn.error"})
    assert event["service"] == SERVICE_NAME
    assert "component" not in event

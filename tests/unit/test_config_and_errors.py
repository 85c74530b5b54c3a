"""
Unit tests for configuration and error types.
"""

from shared.config import get_config
from shared.errors import ComputeFailureError, InvalidIndexError, PipelineException, StoreUnavailableError
from shared.logging import clear_context, set_request_id


def test_config_defaults():
    config = get_config("gateway", 8000)

    assert config.service_name == "gateway"
    assert config.port == 8000
    assert config.max_index == 40
    assert config.values_key == "values"
    assert config.notification_channel == "insert"


def test_config_from_environment(monkeypatch):
    monkeypatch.setenv("FIB_MAX_INDEX", "90")
    monkeypatch.setenv("FIB_REDIS_URL", "redis://cache:6379/2")

    config = get_config("gateway", 8000)

    assert config.max_index == 90
    assert config.redis_url == "redis://cache:6379/2"


def test_error_status_codes():
    assert InvalidIndexError().status_code == 422
    assert StoreUnavailableError("redis").status_code == 503
    assert ComputeFailureError().status_code == 500
    assert PipelineException("X", "y").status_code == 400
    assert PipelineException("X", "y", status_code=409).status_code == 409


def test_store_unavailable_details():
    error = StoreUnavailableError("postgres", "timeout", {"attempt": 1})

    assert error.code == "STORE_UNAVAILABLE"
    assert error.message == "postgres: timeout"
    assert error.details == {"store": "postgres", "attempt": 1}


def test_error_response_carries_request_id():
    set_request_id("req-1")
    try:
        response = InvalidIndexError("Index too high", {"index": 41}).to_response()
    finally:
        clear_context()

    assert response.request_id == "req-1"
    assert response.code == "INVALID_INDEX"
    assert response.details == {"index": 41}

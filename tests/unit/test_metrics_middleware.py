"""Unit tests for Prometheus middleware path normalisation"""
import pytest
from fastapi import FastAPI

from lms_gamification.observability.metrics_middleware import PrometheusMiddleware


@pytest.fixture
def middleware():
    return PrometheusMiddleware(FastAPI())


@pytest.mark.parametrize("path,expected", [
    ("/api/health", "/api/health"),
    ("/metrics", "/metrics"),
    ("/api/v1/users/alice/stats", "/api/v1/users/{user_id}/stats"),
    ("/api/v1/users/42/lessons/complete", "/api/v1/users/{user_id}/lessons/complete"),
    ("/api/v1/leaderboards/global", "/api/v1/leaderboards/global"),
    ("/api/v1/items/123", "/api/v1/items/{id}"),
    ("/api/v1/items/123e4567-e89b-12d3-a456-426614174000", "/api/v1/items/{uuid}"),
])
def test_normalize_path(middleware, path, expected):
    """Free-form ids are collapsed to keep label cardinality bounded"""
    assert middleware._normalize_path(path) == expected

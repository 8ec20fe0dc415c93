"""
Observability module for the gamification engine.

This module provides:
- Metrics collection with Prometheus
- FastAPI middleware recording HTTP metrics
"""

__all__ = ["metrics", "metrics_middleware"]

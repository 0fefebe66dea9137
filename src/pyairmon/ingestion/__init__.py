"""Ingestion layer.

This package contains adapters that turn replies and push signals from the
remote service into typed models and normalized state-store events.
"""

__all__: list[str] = []

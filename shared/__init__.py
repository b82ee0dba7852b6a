"""
Shared utilities for the workspace access layer.

This package aggregates common building blocks consumed by the services
and the mock backend:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request and workspace correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service skeleton with health and metrics routes

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service packages into shared/.
"""

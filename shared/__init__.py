"""
Shared utilities for the Catalog Access Layer.

This package aggregates common building blocks consumed by services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request and trace correlation
- metrics: Prometheus metrics helpers
- tracing: OpenTelemetry tracing config
- errors: Canonical error types and responses
- base_service: FastAPI service scaffold (health, metrics, error handlers)

Do not import from service packages into shared/.
"""

"""
Shared utilities for the Professional Fees layer.

This package aggregates common building blocks consumed by all services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- observability: Logging + metrics facade for business events
- errors: Canonical error types and responses
- base_service: FastAPI service skeleton (health, metrics, error handlers)

Any cross-service logic should live here to avoid import cycles across
service packages. Runtime modules here never import from service_* packages;
test_helpers is the exception and is only used by test suites.
"""

"""
Shared utilities for the Fibonacci request pipeline.

This package aggregates common building blocks consumed by all services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry decorators for transient store failures
- models: Index records, cache entries and notifications
- stores: Redis result cache and PostgreSQL history adapters

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""

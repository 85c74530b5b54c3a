"""
Gateway Service package for the Fibonacci pipeline.

The gateway accepts indices from callers and:
- Validates them against the configured cap
- Records each request in the PostgreSQL history
- Seeds a pending entry in the Redis result cache
- Notifies compute workers over Redis pub/sub

Structure:
- app.gateway: RequestGateway core, independent of HTTP.
- app.main: FastAPI app and routes.
- app.models: Request/response schemas.
"""

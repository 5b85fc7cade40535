# contract_gateway/adapters/api/routers/__init__.py
"""
API Route Definitions.

Operation endpoints are generated from the contracts (see ``binding``).
Only system endpoints are hand-written:
- `health`: Liveness and readiness checks.
"""

from .health import router as health_router

__all__ = [
    "health_router",
]

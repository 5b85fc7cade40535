# contract_gateway/adapters/api/__init__.py
"""
REST API Adapter.

The HTTP entry point. It is built on FastAPI and follows the Hexagonal
Architecture principles:
- It depends on `contract_gateway.core` (Use Cases & Models).
- It wires the `contract_gateway.shared.container` to inject dependencies.
- It does NOT contain business logic: endpoints are generated from the
  contract metadata and delegate to `InvokeOperation`.
"""

from .main import create_app

__all__ = ["create_app"]

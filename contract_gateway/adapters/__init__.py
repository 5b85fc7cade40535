# contract_gateway/adapters/__init__.py
"""
Infrastructure Adapters.

Concrete implementations of the Ports defined in `contract_gateway.core.ports`:
- `api`: The Primary Adapter (Driving) - FastAPI binding of the contracts.
- `cache`: Secondary Adapter (Driven) - response cache and idempotency store
  (in-memory or Redis).
- `audit`: Secondary Adapter (Driven) - audit record sinks.
- `services`: Secondary Adapter (Driven) - backend function locators.
- `config`: Secondary Adapter (Driven) - env fallback configuration source.

Dependencies point INWARD. These modules depend on `contract_gateway.core`,
but `contract_gateway.core` never imports from here.
"""

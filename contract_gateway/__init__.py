# contract_gateway/__init__.py
"""
Contract Gateway - declarative operation metadata for HTTP APIs.

Each API operation carries an ``OpMeta`` declaration describing its
authorization posture, backend call wiring, cache invalidation and audit
side effects. This package validates those declarations, attaches them to
route definitions, and serves the operations without per-endpoint glue.

Laid out as Hexagonal Architecture (Ports & Adapters).
"""

__version__ = "1.0.0"

# tests/__init__.py
"""
Test Suite for the Contract Gateway.

Organization:
- `core`: Metadata validation, argument resolution, invalidation and audit logic with in-memory fakes.
- `adapters`: Stores, locators, the HTTP binding and the CLI.
- `sample_service` / `sample_contracts`: a small flags/billing backend used across both.
"""

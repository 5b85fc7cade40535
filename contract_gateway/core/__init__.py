# contract_gateway/core/__init__.py
"""
Core Domain Layer.

This package contains the pure contract logic:
- No dependencies on infrastructure (Redis, environment, backend modules).
- Defines Interfaces (Ports) that the Infrastructure layer must implement.

The only framework it knows about is pydantic, which is the schema language
of the metadata itself.
"""

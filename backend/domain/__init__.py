"""
Domain Layer

This package contains the core business domain logic, separated from
persistence concerns and infrastructure.

Structure:
- value_objects/: Immutable value types without identity (sections)
- aggregates/: The per-user profile aggregate and its item helpers
"""

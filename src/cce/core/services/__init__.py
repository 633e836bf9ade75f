"""
Service layer for cce.

Services compose core operations into the API surface the CLI calls.

Design principles:
- Methods accept typed inputs, return typed outputs, raise typed exceptions.
- No sys.exit or print statements; presentation is the caller's job.
- Services are created via factory methods that accept configuration.
"""

from cce.core.services.launch import (
    LaunchService,
    LaunchServiceError,
    ProfileSelectionError,
)

__all__ = [
    "LaunchService",
    "LaunchServiceError",
    "ProfileSelectionError",
]

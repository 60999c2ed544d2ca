"""
AimCoach Core - Foundation modules shared by every layer.

This module contains:
- constants: Enums and thresholds
- config: Application configuration and logging setup
- errors: Exception hierarchy
- schemas: Data contracts for module boundaries
"""

from aimcoach.core.constants import (
    Intent,
    Role,
    TaskStatus,
    TaskType,
    TrendDirection,
    UserContext,
)
from aimcoach.core.errors import (
    AimCoachError,
    DataSourceError,
    ModelServiceError,
    UnknownTaskError,
)

__all__ = [
    # Enums
    "Intent",
    "Role",
    "TaskStatus",
    "TaskType",
    "TrendDirection",
    "UserContext",
    # Errors
    "AimCoachError",
    "DataSourceError",
    "ModelServiceError",
    "UnknownTaskError",
]

"""Settings, database sessions, exceptions and request dependencies."""

from clipforge.core.config import Settings, get_settings
from clipforge.core.database import Base, get_db
from clipforge.core.exceptions import (
    AuthenticationError,
    ClipForgeException,
    ConflictError,
    NotFoundError,
    ProviderError,
    ValidationError,
)

__all__ = [
    "Settings",
    "get_settings",
    "Base",
    "get_db",
    "ClipForgeException",
    "AuthenticationError",
    "ConflictError",
    "NotFoundError",
    "ProviderError",
    "ValidationError",
]

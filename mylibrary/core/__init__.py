"""Core app configuration, database and security primitives."""

from mylibrary.core.config import get_settings, settings
from mylibrary.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]

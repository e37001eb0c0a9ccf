"""SQLAlchemy adapters for the user directory port."""

from __future__ import annotations

from .sql_user_directory import SqlUserDirectory

__all__ = ["SqlUserDirectory"]

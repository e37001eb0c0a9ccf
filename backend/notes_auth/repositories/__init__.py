"""Repository package exposing persistence-layer access."""

from __future__ import annotations

from notes_auth.repositories.base import BaseRepository
from notes_auth.repositories.user import UserRepository

__all__ = ["BaseRepository", "UserRepository"]

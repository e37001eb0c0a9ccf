"""Session facade orchestrating the token engines."""

from __future__ import annotations

from .service import SessionService

__all__ = ["SessionService"]

"""API route handlers."""

from api.routes import cache, census, health, verify

__all__ = ["cache", "census", "health", "verify"]

# backend/app/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import access_admin, health, prometheus, registration, settings

__all__ = ["access_admin", "health", "prometheus", "registration", "settings"]

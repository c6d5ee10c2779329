# app/routers/__init__.py
"""
API routers.
"""

from app.routers.admin_archive import router as admin_archive_router

__all__ = [
    "admin_archive_router",
]

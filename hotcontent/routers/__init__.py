# hotcontent/routers/__init__.py
"""
API routers for v1 endpoints.
"""

from hotcontent.routers.admin import router as admin_router
from hotcontent.routers.hot import router as hot_router

__all__ = [
    "admin_router",
    "hot_router",
]

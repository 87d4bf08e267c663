"""
API routers for the Splittat endpoints.
"""

from . import auth_router, group_router, health_router, receipt_router, split_router

__all__ = ["auth_router", "group_router", "health_router", "receipt_router", "split_router"]

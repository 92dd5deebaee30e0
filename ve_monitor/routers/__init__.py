"""
API Routers for VE Threshold Monitor
"""

from .files import router as files_router
from .sessions import router as sessions_router

__all__ = ["files_router", "sessions_router"]

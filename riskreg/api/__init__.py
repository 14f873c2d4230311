"""HTTP routers for the risk register (FastAPI)."""

from .main import api_router

__all__ = ["api_router"]

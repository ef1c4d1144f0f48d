"""HTTP routers."""

from .documents import router

__all__ = ["router"]

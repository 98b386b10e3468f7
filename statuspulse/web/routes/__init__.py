from .public import router as public_router
from .api import router as api_router

__all__ = ["public_router", "api_router"]

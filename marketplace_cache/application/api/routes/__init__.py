from .health import router as health_router
from .marketplace import router as marketplace_router

__all__ = ["health_router", "marketplace_router"]

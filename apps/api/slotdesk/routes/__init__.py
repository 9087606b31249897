"""Route modules."""

from .admins import router as admins_router
from .centres import router as centres_router
from .health import router as health_router
from .jobs import router as jobs_router
from .profile import router as profile_router

__all__ = ["admins_router", "centres_router", "health_router", "jobs_router", "profile_router"]

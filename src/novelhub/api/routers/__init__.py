"""API routers for different endpoint groups.

Routers:
- health: Liveness and database status
- stories: Story publishing, listing, likes, comments and generation
- users: Accounts, sessions, password reset and profiles
"""

from .health import router as health_router
from .stories import router as stories_router
from .users import router as users_router

__all__ = [
    "health_router",
    "stories_router",
    "users_router",
]

"""Service layer for Novel Hub.

Business logic and external integrations:
- auth_service: registration, login, profile and password reset
- story_service: story CRUD, listing, likes and comments
- media: image validation and asset-host uploads
- generation: AI story generation proxy
- notifications: out-of-band password reset delivery
"""

from .auth_service import AuthService
from .generation import GenerationProxy
from .media import CloudinaryAssetHost, LocalAssetHost, MediaPipeline
from .notifications import ResetTokenDelivery
from .story_service import StoryPage, StoryService

__all__ = [
    "AuthService",
    "StoryService",
    "StoryPage",
    "MediaPipeline",
    "CloudinaryAssetHost",
    "LocalAssetHost",
    "GenerationProxy",
    "ResetTokenDelivery",
]

"""
LogoForge Backend — Media Service Selection
=============================================

What:  Builds the configured MediaService once at import time.
How:   MEDIA_BACKEND=cloudinary → CloudinaryMediaService,
       MEDIA_BACKEND=local      → LocalMediaService.
Who:   Imported by AssetService, ExportService and the health route. Tests
       patch `media_service` in the module that uses it.
"""

import logging

from logoforge.config import settings
from logoforge.services.media_base import MediaService

logger = logging.getLogger(__name__)


def create_media_service(backend: str = None) -> MediaService:
    backend = backend or settings.media_backend
    if backend == "cloudinary":
        from logoforge.services.cloudinary_service import CloudinaryMediaService

        return CloudinaryMediaService()
    from logoforge.services.local_media_service import LocalMediaService

    return LocalMediaService()


# ── Singleton Instance ────────────────────────────────────────────────────
media_service = create_media_service()

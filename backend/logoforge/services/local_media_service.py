"""
LogoForge Backend — Local Filesystem Media Service
====================================================

What:  MediaService that keeps uploads on local disk and serves them from
       MEDIA_PUBLIC_URL (GET /media/{path}).
Why:   Development and tests run without a Cloudinary account.
How:   Validates extension, size and content type (libmagic), writes with
       aiofiles into date-organized directories under STORAGE_ROOT, and reads
       dimensions, alpha and a small palette with Pillow.

Security Model:
    1. Extension check:   fast rejection of unsupported types
    2. MIME type check:   libmagic inspects the header bytes
    3. Size check:        MAX_FILE_SIZE
    4. UUID filename:     no user input in stored paths

Limitations:
    transformed_url() returns the stored file's URL; resizing and format
    conversion are only performed by a real media host. sign_upload() points
    at this API's own upload route.

Directory Structure:
    storage/
    └── logo-maker/
        └── 2026/
            └── 10/
                └── 17/
                    └── a1b2c3d4-....png
"""

import hashlib
import io
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

import aiofiles
from PIL import Image, UnidentifiedImageError

from logoforge.config import settings
from logoforge.exceptions import UpstreamMediaError, ValidationError
from logoforge.services.media_base import MediaService, SignedUpload, UploadResult

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/svg+xml": ".svg",
    "font/ttf": ".ttf",
    "font/otf": ".otf",
    "font/woff": ".woff",
    "font/woff2": ".woff2",
}

EXTENSION_MIME = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
}

# libmagic reports some types under older names
MIME_ALIASES = {
    "application/x-font-ttf": "font/ttf",
    "application/font-sfnt": "font/ttf",
    "application/vnd.ms-opentype": "font/otf",
    "application/font-woff": "font/woff",
}

# Plain-text detections accepted for .svg files
SVG_TEXT_TYPES = {"image/svg", "image/svg+xml", "text/xml", "application/xml", "text/plain"}

PALETTE_SIZE = 5


def detect_mime_type(content: bytes, filename: str) -> str:
    """
    True content type from the header bytes.

    Falls back to the extension when python-magic (libmagic) is not
    installed, e.g. in CI.
    """
    ext = Path(filename).suffix.lower()
    try:
        import magic
        mime_type = magic.from_buffer(content[:4096], mime=True)
    except ImportError:
        logger.warning(
            "python-magic not available; falling back to extension-based type detection. "
            "Install libmagic for production security."
        )
        return EXTENSION_MIME.get(ext, "application/octet-stream")

    mime_type = MIME_ALIASES.get(mime_type, mime_type)
    if ext == ".svg" and mime_type in SVG_TEXT_TYPES:
        return "image/svg+xml"
    if mime_type == "image/svg+xml" and ext != ".svg":
        return "application/octet-stream"
    if mime_type == "application/octet-stream" and ext in (".woff", ".woff2", ".otf", ".ttf"):
        # libmagic versions disagree on font signatures
        return EXTENSION_MIME[ext]
    return mime_type


def inspect_image(content: bytes) -> Tuple[Optional[int], Optional[int], Optional[bool], List[str]]:
    """
    (width, height, has_alpha, palette) of a raster image.

    Palette: up to five hex colors, most frequent first. Unreadable content
    yields (None, None, None, []).
    """
    try:
        with Image.open(io.BytesIO(content)) as img:
            width, height = img.size
            has_alpha = img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info
            sample = img.convert("RGB")
            sample.thumbnail((64, 64))
            quantized = sample.quantize(colors=PALETTE_SIZE)
            palette = quantized.getpalette() or []
            counts = sorted(quantized.getcolors() or [], reverse=True)
            colors = []
            for _count, index in counts[:PALETTE_SIZE]:
                r, g, b = palette[index * 3: index * 3 + 3]
                colors.append(f"#{r:02x}{g:02x}{b:02x}")
            return width, height, has_alpha, colors
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.debug("Pillow could not read image: %s", e)
        return None, None, None, []


class LocalMediaService(MediaService):

    backend_name = "local"

    def __init__(self, storage_root: Optional[str] = None, public_url: Optional[str] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
            public_url:   URL prefix the stored files are served under.
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        self.public_url = (public_url or settings.media_public_url).rstrip("/")
        logger.info("LocalMediaService initialized with storage_root=%s", self.storage_root)

    # ── Validation ────────────────────────────────────────────────────────

    def validate(self, content: bytes, filename: str) -> str:
        """
        Returns:
            The detected MIME type.

        Raises:
            ValidationError: unsupported extension or content, or too large
        """
        ext = Path(filename).suffix.lower()
        if ext not in EXTENSION_MIME:
            raise ValidationError(
                message=(
                    f"File type '{ext}' is not supported. "
                    f"Allowed types: {', '.join(sorted(EXTENSION_MIME))}"
                ),
                field="file",
                context={"extension": ext},
            )
        if len(content) > settings.max_file_size:
            max_mb = settings.max_file_size / (1024 * 1024)
            raise ValidationError(
                message=f"File size ({len(content) / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "actual_size": len(content)},
            )
        mime_type = detect_mime_type(content, filename)
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=f"File content type '{mime_type}' is not supported.",
                field="file",
                context={"detected_mime": mime_type},
            )
        return mime_type

    def resolve(self, provider_id: str) -> Path:
        """Absolute path of a stored file; refuses paths outside the storage root."""
        path = (self.storage_root / provider_id).resolve()
        if not path.is_relative_to(self.storage_root):
            raise ValidationError(message="Invalid file path", field="path")
        return path

    # ── MediaService operations ───────────────────────────────────────────

    async def upload(self, content: bytes, filename: str, folder: Optional[str] = None) -> UploadResult:
        mime_type = self.validate(content, filename)
        extension = ALLOWED_MIME_TYPES[mime_type]
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        prefix = (folder or settings.cloudinary_folder).strip("/")
        relative_path = f"{prefix}/{date_dir}/{uuid.uuid4()}{extension}"
        absolute_path = self.resolve(relative_path)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, e)
            raise UpstreamMediaError(
                message="Failed to save the uploaded file. Please try again.",
                context={"os_error": str(e)},
            )

        width = height = has_alpha = None
        colors: List[str] = []
        if mime_type.startswith("image/") and mime_type != "image/svg+xml":
            width, height, has_alpha, colors = inspect_image(content)

        logger.info("File stored: %s (%d bytes)", relative_path, len(content))
        return UploadResult(
            url=f"{self.public_url}/{relative_path}",
            provider_id=relative_path,
            width=width,
            height=height,
            format=extension.lstrip("."),
            bytes=len(content),
            resource_type="image" if mime_type.startswith("image/") else "raw",
            has_alpha=has_alpha,
            colors=colors,
        )

    async def delete(self, provider_id: str, resource_type: str = "image") -> None:
        path = self.resolve(provider_id)
        try:
            if path.exists():
                os.remove(path)
                logger.info("Deleted stored file: %s", provider_id)
            else:
                logger.debug("Delete: file already gone: %s", provider_id)
        except OSError as e:
            raise UpstreamMediaError(
                message="Failed to delete the stored file",
                context={"provider_id": provider_id, "os_error": str(e)},
            )

    def transformed_url(
        self,
        provider_id: str,
        width: Optional[int] = None,
        height: Optional[int] = None,
        format: Optional[str] = None,
        quality: Optional[int] = None,
    ) -> str:
        return f"{self.public_url}/{provider_id}"

    def sign_upload(
        self,
        folder: Optional[str] = None,
        public_id: Optional[str] = None,
        resource_type: str = "auto",
    ) -> SignedUpload:
        timestamp = int(time.time())
        target_folder = folder or settings.cloudinary_folder
        to_sign = f"folder={target_folder}&public_id={public_id or ''}&timestamp={timestamp}"
        return SignedUpload(
            upload_url="/api/assets/upload",
            timestamp=timestamp,
            signature=hashlib.sha1(to_sign.encode("utf-8")).hexdigest(),
            folder=target_folder,
            public_id=public_id,
            resource_type=resource_type,
        )

    def download_url(self, provider_id: str, resource_type: str = "image", expires_at: Optional[int] = None) -> str:
        return f"{self.public_url}/{provider_id}?expires_at={expires_at or int(time.time()) + 3600}"

    async def health_check(self) -> bool:
        return self.storage_root.is_dir() and os.access(self.storage_root, os.W_OK)

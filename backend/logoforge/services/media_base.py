"""
LogoForge Backend — Abstract Media Service Interface
======================================================

What:  The contract every media host implementation fulfils: upload, delete,
       transformed URLs, signed direct uploads and expiring download links.
Why:   Services depend on these operations only, never on a provider's API
       shape, so Cloudinary and the local filesystem are interchangeable.
How:   Concrete classes inherit from MediaService; `services.media` picks one
       from MEDIA_BACKEND at startup.

Implementations:
    - CloudinaryMediaService: REST API over httpx, retries and circuit breaker
    - LocalMediaService:      files under STORAGE_ROOT (development, tests)
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field


class UploadResult(BaseModel):
    """What the media host reports back about stored bytes."""
    url: str
    provider_id: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    bytes: int = 0
    resource_type: str = "image"
    has_alpha: Optional[bool] = None
    colors: List[str] = Field(default_factory=list, description="Dominant colors, most frequent first")


class SignedUpload(BaseModel):
    upload_url: str
    api_key: Optional[str] = None
    timestamp: int
    signature: str
    folder: str
    public_id: Optional[str] = None
    resource_type: str = "auto"


class MediaService(ABC):
    """
    Contract:
        - errors from the host surface as UpstreamMediaError (or
          CircuitBreakerOpenError while the host is considered down)
        - upload never leaves a partial record behind on failure
        - transformed_url and download_url build URLs without re-uploading
    """

    backend_name: str = "abstract"

    @abstractmethod
    async def upload(self, content: bytes, filename: str, folder: Optional[str] = None) -> UploadResult:
        """
        Store raw bytes.

        Returns:
            URL, provider id and the detected dimensions/format/colors.

        Raises:
            UpstreamMediaError: the host rejected or failed the upload
        """
        ...

    @abstractmethod
    async def delete(self, provider_id: str, resource_type: str = "image") -> None:
        ...

    @abstractmethod
    def transformed_url(
        self,
        provider_id: str,
        width: Optional[int] = None,
        height: Optional[int] = None,
        format: Optional[str] = None,
        quality: Optional[int] = None,
    ) -> str:
        """URL of a resized/re-encoded rendition of an uploaded resource."""
        ...

    @abstractmethod
    def sign_upload(
        self,
        folder: Optional[str] = None,
        public_id: Optional[str] = None,
        resource_type: str = "auto",
    ) -> SignedUpload:
        """Parameters letting a browser upload straight to the host."""
        ...

    @abstractmethod
    def download_url(self, provider_id: str, resource_type: str = "image", expires_at: Optional[int] = None) -> str:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True when the host is reachable. Never raises."""
        ...

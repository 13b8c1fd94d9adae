"""
LogoForge Backend — Cloudinary Media Service Implementation
=============================================================

What:  MediaService backed by Cloudinary's REST API.
Why:   Cloudinary stores uploads, reports dimensions and dominant colors, and
       renders transformed renditions (resize, SVG → PNG) from a URL, which
       is how exports and thumbnails are rasterized.
How:   Signed form posts over httpx, wrapped in tenacity retries and guarded
       by a circuit breaker.
Who:   Selected by MEDIA_BACKEND=cloudinary; called by AssetService and
       ExportService.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter on transient failures
       (connection errors, timeouts, 5xx, 429)
    2. 4xx responses are final: retrying a rejected upload cannot help
    3. Circuit breaker fails fast while the host is down

Request signing:
    signature = sha1("k1=v1&k2=v2..." + api_secret), parameters sorted by
    name, excluding file, api_key, resource_type and cloud_name.
"""

import hashlib
import logging
import time
import uuid
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from tenacity import (
    RetryError,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from logoforge.config import settings
from logoforge.exceptions import CircuitBreakerOpenError, UpstreamMediaError
from logoforge.services.media_base import MediaService, SignedUpload, UploadResult

logger = logging.getLogger(__name__)

# Parameters that never take part in the signature
UNSIGNED_PARAMS = {"file", "api_key", "resource_type", "cloud_name"}


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker in front of the media host.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Not thread-safe; uvicorn async workers share a single process and the
    counters are only touched from the event loop.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Media circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Media circuit breaker transitioning to CLOSED (host recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Media circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Media circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


class TransientMediaError(Exception):
    """A failure worth retrying: network trouble, 5xx or 429."""


# ══════════════════════════════════════════════════════════════════════════
# Cloudinary Service
# ══════════════════════════════════════════════════════════════════════════

class CloudinaryMediaService(MediaService):
    """
    Error Handling Chain:
        HTTP call fails transiently → tenacity retries (N attempts with backoff)
        → All retries fail → record circuit breaker failure → UpstreamMediaError
        → Threshold reached → future calls rejected instantly (503)
        → Recovery timeout → one test call (HALF_OPEN)
    """

    backend_name = "cloudinary"

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        folder: Optional[str] = None,
    ):
        self.cloud_name = cloud_name or settings.cloudinary_cloud_name
        self.api_key = api_key or settings.cloudinary_api_key
        self.api_secret = api_secret or settings.cloudinary_api_secret
        self.folder = folder or settings.cloudinary_folder
        self.api_base = f"{settings.cloudinary_base_url.rstrip('/')}/{self.cloud_name}"
        self.delivery_base = f"{settings.cloudinary_delivery_url.rstrip('/')}/{self.cloud_name}"
        self.timeout = httpx.Timeout(settings.media_timeout_seconds, connect=10.0)
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )
        logger.info(
            "CloudinaryMediaService initialized for cloud=%s, folder=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            self.cloud_name,
            self.folder,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    # ── Signing ───────────────────────────────────────────────────────────

    def sign(self, params: Dict[str, Any]) -> str:
        """SHA-1 request signature over the sorted, non-empty parameters."""
        to_sign = "&".join(
            f"{key}={params[key]}"
            for key in sorted(params)
            if key not in UNSIGNED_PARAMS and params[key] not in (None, "")
        )
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    def _signed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = {k: v for k, v in params.items() if v not in (None, "")}
        params.setdefault("timestamp", int(time.time()))
        params["signature"] = self.sign(params)
        params["api_key"] = self.api_key
        return params

    # ── Transport ─────────────────────────────────────────────────────────

    async def _call(self, operation: str, url: str, data: Dict[str, Any], files=None) -> Dict[str, Any]:
        """
        One guarded host call: circuit breaker → retried POST → JSON body.

        Raises:
            CircuitBreakerOpenError: the circuit is open
            UpstreamMediaError:      rejected (4xx) or failed after retries
        """
        request_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()
        logger.info("[%s] Cloudinary %s started", request_id, operation)

        try:
            body = await self._post_with_retry(url, data, files, request_id)
            self.circuit_breaker.record_success()
            return body
        except UpstreamMediaError:
            # Rejected by the host: the host itself is healthy
            self.circuit_breaker.record_success()
            raise
        except (RetryError, TransientMediaError) as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] Cloudinary %s failed after retries: %s", request_id, operation, e)
            raise UpstreamMediaError(
                message=f"The media host failed to {operation} the file. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": request_id, "attempts": settings.retry_max_attempts},
            )

    @retry(
        retry=retry_if_exception_type(TransientMediaError),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _post_with_retry(self, url: str, data: Dict[str, Any], files, request_id: str) -> Dict[str, Any]:
        start_time = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, data=data, files=files)
        except httpx.TransportError as e:
            logger.warning("[%s] Cloudinary transport error after %.0fms: %s",
                           request_id, (time.time() - start_time) * 1000, e)
            raise TransientMediaError(str(e))

        duration_ms = (time.time() - start_time) * 1000
        if response.status_code >= 500 or response.status_code == 429:
            logger.warning("[%s] Cloudinary returned %d after %.0fms",
                           request_id, response.status_code, duration_ms)
            raise TransientMediaError(f"HTTP {response.status_code}")
        if response.status_code >= 400:
            message = _error_message(response)
            logger.error("[%s] Cloudinary rejected request (%d): %s",
                         request_id, response.status_code, message)
            raise UpstreamMediaError(
                message=f"The media host rejected the request: {message}",
                context={"request_id": request_id, "status": response.status_code},
            )

        logger.info("[%s] Cloudinary call completed in %.0fms", request_id, duration_ms)
        return response.json()

    # ── MediaService operations ───────────────────────────────────────────

    async def upload(self, content: bytes, filename: str, folder: Optional[str] = None) -> UploadResult:
        params = self._signed({"folder": folder or self.folder, "colors": "true"})
        body = await self._call(
            "upload",
            f"{self.api_base}/auto/upload",
            data=params,
            files={"file": (filename, content)},
        )
        colors = [entry[0] for entry in body.get("colors") or [] if entry]
        return UploadResult(
            url=body.get("secure_url") or body["url"],
            provider_id=body["public_id"],
            width=body.get("width"),
            height=body.get("height"),
            format=body.get("format"),
            bytes=body.get("bytes") or len(content),
            resource_type=body.get("resource_type", "image"),
            colors=colors,
        )

    async def delete(self, provider_id: str, resource_type: str = "image") -> None:
        params = self._signed({"public_id": provider_id, "invalidate": "true"})
        body = await self._call("delete", f"{self.api_base}/{resource_type}/destroy", data=params)
        if body.get("result") not in ("ok", "not found"):
            raise UpstreamMediaError(
                message="The media host did not confirm the deletion",
                context={"provider_id": provider_id, "result": body.get("result")},
            )

    def transformed_url(
        self,
        provider_id: str,
        width: Optional[int] = None,
        height: Optional[int] = None,
        format: Optional[str] = None,
        quality: Optional[int] = None,
    ) -> str:
        parts = []
        if width:
            parts.append(f"w_{width}")
        if height:
            parts.append(f"h_{height}")
        if width or height:
            parts.append("c_fit")
        if quality:
            parts.append(f"q_{quality}")
        transformation = ",".join(parts)
        path = f"{provider_id}.{format}" if format else provider_id
        segments = [self.delivery_base, "image", "upload"]
        if transformation:
            segments.append(transformation)
        segments.append(path)
        return "/".join(segments)

    def sign_upload(
        self,
        folder: Optional[str] = None,
        public_id: Optional[str] = None,
        resource_type: str = "auto",
    ) -> SignedUpload:
        timestamp = int(time.time())
        target_folder = folder or self.folder
        signature = self.sign({"folder": target_folder, "public_id": public_id, "timestamp": timestamp})
        return SignedUpload(
            upload_url=f"{self.api_base}/{resource_type}/upload",
            api_key=self.api_key,
            timestamp=timestamp,
            signature=signature,
            folder=target_folder,
            public_id=public_id,
            resource_type=resource_type,
        )

    def download_url(self, provider_id: str, resource_type: str = "image", expires_at: Optional[int] = None) -> str:
        params = self._signed({
            "public_id": provider_id,
            "expires_at": expires_at or int(time.time()) + 3600,
        })
        return f"{self.api_base}/{resource_type}/download?{urlencode(params)}"

    async def health_check(self) -> bool:
        """Pings the admin API; an open circuit counts as unhealthy."""
        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            return False
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(5.0)) as client:
                response = await client.get(
                    f"{self.api_base}/ping",
                    auth=(self.api_key, self.api_secret),
                )
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("Cloudinary health check failed: %s", e)
            return False


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("error", {}).get("message") or response.text
    except (ValueError, AttributeError):
        return response.text[:200]

"""
Cloudinary media store client.

Talks to the Cloudinary upload API over HTTPS: signed ``upload`` and
``destroy`` requests for images. Failures are never retried.
"""

import hashlib
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional, Type

import httpx
import structlog

from .exceptions import MediaDeleteError, MediaStoreError, MediaUploadError
from .models import MediaFile
from utilities.config import config

logger = structlog.get_logger(__name__)


class CloudinaryClient:
    """
    Thin async wrapper around the Cloudinary image upload API.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        base_url: str = "https://api.cloudinary.com/v1_1",
        timeout: float = 30,
    ):
        """
        Initialize the client.

        Args:
            cloud_name: Cloudinary cloud (account) name
            api_key: API key sent with every signed request
            api_secret: Secret used to sign requests; never sent
            base_url: Root of the Cloudinary REST API
            timeout: Request timeout in seconds
        """
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")

        # HTTP client configuration
        self.client_config = {
            "timeout": timeout,
            "headers": {"User-Agent": config.get_user_agent()},
        }

    @classmethod
    def from_config(cls, settings=config) -> "CloudinaryClient":
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            base_url=settings.cloudinary_base_url,
            timeout=settings.media_request_timeout,
        )

    def _endpoint(self, action: str) -> str:
        return f"{self.base_url}/{self.cloud_name}/image/{action}"

    def sign(self, params: Dict[str, Any]) -> str:
        """
        SHA-1 request signature: non-empty params sorted by name, joined as
        ``key=value`` pairs with ``&``, followed by the API secret.
        """
        to_sign = "&".join(
            f"{key}={value}"
            for key, value in sorted(params.items())
            if value is not None and value != ""
        )
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    def _signed_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        signed = dict(params)
        signed["timestamp"] = int(time.time())
        signed["signature"] = self.sign(signed)
        signed["api_key"] = self.api_key
        return signed

    @staticmethod
    def _read_payload(
        response: httpx.Response, error_cls: Type[MediaStoreError]
    ) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise error_cls(
                f"Media store returned an unreadable response (HTTP {response.status_code})"
            ) from e

        error = payload.get("error") if isinstance(payload, dict) else None
        if response.status_code >= 400 or error:
            message = error.get("message") if isinstance(error, dict) else error
            raise error_cls(
                f"Media store rejected the request (HTTP {response.status_code}): "
                f"{message or 'unknown error'}"
            )
        return payload

    @staticmethod
    def _write_temp_file(file: MediaFile) -> Path:
        suffix = Path(file.filename).suffix if file.filename else ""
        with tempfile.NamedTemporaryFile(
            prefix="catalog-upload-", suffix=suffix, delete=False
        ) as handle:
            handle.write(file.content)
            return Path(handle.name)

    async def upload(self, file: Optional[MediaFile]) -> Dict[str, Any]:
        """
        Upload an image with default options.

        Args:
            file: File to upload

        Returns:
            Cloudinary upload payload; contains at least ``url`` and ``public_id``

        Raises:
            MediaUploadError: If the file is missing or empty (no request is
                made) or the upload fails
        """
        if file is None or file.is_empty:
            raise MediaUploadError("File is empty or missing")

        temp_path: Optional[Path] = None
        try:
            temp_path = self._write_temp_file(file)
            with temp_path.open("rb") as handle:
                files = {
                    "file": (
                        file.filename or temp_path.name,
                        handle,
                        file.content_type or "application/octet-stream",
                    )
                }
                async with httpx.AsyncClient(**self.client_config) as client:
                    response = await client.post(
                        self._endpoint("upload"),
                        data=self._signed_params({}),
                        files=files,
                    )
            payload = self._read_payload(response, MediaUploadError)

        except httpx.HTTPError as e:
            logger.error("Media upload failed", filename=file.filename, error=str(e))
            raise MediaUploadError(f"Upload failed: {e}") from e
        except OSError as e:
            logger.error("Could not stage file for upload", filename=file.filename, error=str(e))
            raise MediaUploadError(f"Error processing file: {e}") from e
        finally:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)

        logger.info(
            "Uploaded image to media store",
            filename=file.filename,
            public_id=payload.get("public_id"),
            bytes=file.size,
        )
        return payload

    async def delete(self, public_id: Optional[str]) -> Dict[str, Any]:
        """
        Destroy a remote image.

        The identifier is sent as given; an empty or missing one is left
        for the remote API to answer.

        Returns:
            Cloudinary confirmation payload, e.g. ``{"result": "ok"}``

        Raises:
            MediaDeleteError: If the request fails
        """
        try:
            async with httpx.AsyncClient(**self.client_config) as client:
                response = await client.post(
                    self._endpoint("destroy"),
                    data=self._signed_params({"public_id": public_id}),
                )
            payload = self._read_payload(response, MediaDeleteError)

        except httpx.HTTPError as e:
            logger.error("Media delete failed", public_id=public_id, error=str(e))
            raise MediaDeleteError(f"Delete failed: {e}") from e

        logger.info("Deleted image from media store", public_id=public_id, result=payload.get("result"))
        return payload

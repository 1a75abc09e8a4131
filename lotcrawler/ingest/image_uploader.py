"""Download lot images into a staging directory and upload them to Imgur."""

from __future__ import annotations

import logging
import random
import shutil
import string
import time
from pathlib import Path, PurePosixPath
from typing import Callable, Optional, Sequence
from urllib.parse import urlparse

import httpx

from lotcrawler.config import Settings
from lotcrawler.ingest.http_client import USER_AGENT
from lotcrawler.ingest.proxy_manager import ProxyInfo, choose_proxy

logger = logging.getLogger(__name__)

IMGUR_UPLOAD_URL = "https://api.imgur.com/3/image"
RESPONSE_PREVIEW_CHARS = 200
DEFAULT_IMAGE_NAME = "image.jpg"

_BASE36_DIGITS = string.digits + string.ascii_lowercase


class UploadError(RuntimeError):
    """Raised when an image cannot be downloaded or uploaded."""

    pass


def prepare_staging_dir(path: str | Path) -> Path:
    """Recreate the image staging directory empty. OSError propagates."""
    staging = Path(path)
    shutil.rmtree(staging, ignore_errors=True)
    staging.mkdir(parents=True, exist_ok=True)
    return staging


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def staged_filename(
    image_url: str,
    now_ms: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Build a collision-resistant file name for a downloaded image.

    Format: ``<base36 time in ms><6 random base36 chars>_<original name>``.
    The original name defaults to image.jpg and gets .jpg when it has no
    extension.
    """
    rng = rng or random
    orig_name = PurePosixPath(urlparse(image_url).path).name or DEFAULT_IMAGE_NAME
    if not PurePosixPath(orig_name).suffix:
        orig_name += ".jpg"
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(rng.choice(_BASE36_DIGITS) for _ in range(6))
    return f"{_base36(now_ms)}{suffix}_{orig_name}"


class ImageUploader:
    """Stages an image locally and uploads it as multipart form data."""

    def __init__(
        self,
        client_id: str,
        staging_dir: Path,
        download_client: httpx.AsyncClient,
        base_url: str,
        access_token: str = "",
        proxies: Sequence[ProxyInfo] = (),
        timeout: float = 25.0,
        upload_url: str = IMGUR_UPLOAD_URL,
        rng: Optional[random.Random] = None,
        client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient,
    ):
        self.client_id = client_id
        self.access_token = access_token
        self.staging_dir = Path(staging_dir)
        self.download_client = download_client
        self.base_url = base_url
        self.proxies = tuple(proxies)
        self.timeout = timeout
        self.upload_url = upload_url
        self._rng = rng or random.Random()
        self._client_factory = client_factory

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        staging_dir: Path,
        download_client: httpx.AsyncClient,
        proxies: Sequence[ProxyInfo] = (),
        rng: Optional[random.Random] = None,
        client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient,
    ) -> "ImageUploader":
        """
        Build an uploader from settings.

        Raises:
            ConfigurationError: If no client id is configured
        """
        client_id, access_token = settings.upload_credentials()
        return cls(
            client_id=client_id,
            access_token=access_token,
            staging_dir=staging_dir,
            download_client=download_client,
            base_url=settings.base_url,
            proxies=proxies,
            timeout=settings.image_timeout,
            rng=rng,
            client_factory=client_factory,
        )

    @property
    def authorization(self) -> str:
        if self.access_token:
            return f"Bearer {self.access_token}"
        return f"Client-ID {self.client_id}"

    async def upload(self, image_url: str) -> str:
        """
        Download an image and upload it to the image host.

        Returns:
            Hosted image link

        Raises:
            UploadError: On any download, validation, transport or response failure
        """
        path = await self.download(image_url)
        return await self._post(path)

    async def download(self, image_url: str) -> Path:
        """Download an image into the staging directory and return its path."""
        path = self.staging_dir / staged_filename(image_url, rng=self._rng)
        headers = {"User-Agent": USER_AGENT, "Referer": self.base_url}

        try:
            resp = await self.download_client.get(image_url, headers=headers, timeout=self.timeout)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise UploadError(f"Failed to download image: {type(e).__name__}: {e}") from e

        if resp.status_code != 200:
            raise UploadError(f"Failed to download image: status {resp.status_code}")
        content_type = resp.headers.get("content-type", "")
        if not content_type.lower().startswith("image/"):
            raise UploadError(f"Failed to download image: not an image ({content_type or 'no content type'})")

        try:
            path.write_bytes(resp.content)
        except OSError as e:
            raise UploadError(f"Failed to stage image {path}: {e}") from e
        return path

    async def _post(self, path: Path) -> str:
        proxy = choose_proxy(self.proxies, self._rng)
        if proxy:
            logger.debug(f"Image upload via proxy {proxy.display}")
        logger.debug(f"Uploading {path.name} to {self.upload_url}")

        try:
            async with self._client_factory(
                proxy=proxy.url if proxy else None,
                timeout=self.timeout,
            ) as client:
                with path.open("rb") as fh:
                    resp = await client.post(
                        self.upload_url,
                        headers={"Authorization": self.authorization},
                        files={"image": (path.name, fh)},
                    )
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as e:
            raise UploadError(f"Upload request failed: {type(e).__name__}: {e}") from e

        body = resp.text
        try:
            payload = resp.json()
        except ValueError:
            raise UploadError(f"Unexpected upload response: {body[:RESPONSE_PREVIEW_CHARS]}")

        if isinstance(payload, dict) and payload.get("success"):
            data = payload.get("data") or {}
            link = data.get("link") if isinstance(data, dict) else None
            if link:
                logger.debug(f"Image uploaded: {link}")
                return link

        raise UploadError(f"Image host error: {body[:RESPONSE_PREVIEW_CHARS]}")

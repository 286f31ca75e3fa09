"""Product image hosting.

The API never stores image bytes itself: uploads are forwarded to Cloudinary
and only the returned ``secure_url`` is persisted on the product row.  The
:class:`ImageHost` interface keeps the product service independent from the
concrete provider so tests and image-less deployments can swap it out.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlsplit

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from storefront.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)


class ImageHostError(RuntimeError):
    """Raised when the image host rejects a request or cannot be reached."""


@dataclass(frozen=True)
class ImageUpload:
    secure_url: str
    public_id: str


def public_id_from_url(image_url: str, folder: str) -> str | None:
    """Derive the image host public id from a stored ``secure_url``.

    Cloudinary URLs end with ``<public id>.<extension>`` where the public id of
    product images is ``<folder>/<name>``, e.g.
    ``https://res.cloudinary.com/demo/image/upload/v17/products/abc.jpg``
    resolves to ``products/abc``.
    """

    if not image_url:
        return None
    filename = PurePosixPath(urlsplit(image_url).path).name
    stem = filename.split(".", 1)[0]
    if not stem:
        return None
    return f"{folder}/{stem}" if folder else stem


class ImageHost(ABC):
    """Abstract image hosting backend."""

    def __init__(self, folder: str) -> None:
        self.folder = folder

    @abstractmethod
    async def upload(self, data: str) -> ImageUpload:
        """Upload ``data`` (remote URL or data URI) into :attr:`folder`."""

    @abstractmethod
    async def destroy(self, public_id: str) -> None:
        """Delete the hosted image identified by ``public_id``."""


class CloudinaryImageHost(ImageHost):
    """Image host backed by the Cloudinary upload API."""

    def __init__(self, cloudinary_url: str, folder: str) -> None:
        super().__init__(folder)
        parsed = urlsplit(cloudinary_url)
        if parsed.scheme != "cloudinary" or not parsed.hostname:
            raise ValueError(
                "CLOUDINARY_URL must look like cloudinary://<api_key>:<api_secret>@<cloud_name>"
            )
        cloudinary.config(
            cloud_name=parsed.hostname,
            api_key=parsed.username,
            api_secret=parsed.password,
            secure=True,
        )

    async def upload(self, data: str) -> ImageUpload:
        try:
            response: dict[str, Any] = await asyncio.to_thread(
                cloudinary.uploader.upload, data, folder=self.folder
            )
        except CloudinaryError as exc:
            raise ImageHostError(f"Image upload failed: {exc}") from exc

        secure_url = response.get("secure_url")
        if not secure_url:
            raise ImageHostError("Image upload response did not include a secure_url")
        return ImageUpload(secure_url=secure_url, public_id=response.get("public_id", ""))

    async def destroy(self, public_id: str) -> None:
        try:
            response: dict[str, Any] = await asyncio.to_thread(
                cloudinary.uploader.destroy, public_id
            )
        except CloudinaryError as exc:
            raise ImageHostError(f"Image delete failed: {exc}") from exc

        outcome = response.get("result")
        if outcome not in ("ok", "not found"):
            raise ImageHostError(f"Image delete for {public_id} returned {outcome!r}")
        logger.info("Deleted image %s from image host (%s)", public_id, outcome)


class DisabledImageHost(ImageHost):
    """Used when no image host is configured.

    Uploads fail loudly so products are never stored with a silently dropped
    image; deletes have nothing to clean up.
    """

    async def upload(self, data: str) -> ImageUpload:
        raise ImageHostError("Image uploads are disabled; set CLOUDINARY_URL to enable them")

    async def destroy(self, public_id: str) -> None:
        logger.debug("Image host disabled; skipping delete of %s", public_id)


def create_image_host(settings: AppSettings | None = None) -> ImageHost:
    """Build the image host selected by the current configuration."""

    settings = settings or get_settings()
    if settings.cloudinary_url:
        return CloudinaryImageHost(settings.cloudinary_url, settings.product_image_folder)
    return DisabledImageHost(settings.product_image_folder)


__all__ = [
    "CloudinaryImageHost",
    "DisabledImageHost",
    "ImageHost",
    "ImageHostError",
    "ImageUpload",
    "create_image_host",
    "public_id_from_url",
]

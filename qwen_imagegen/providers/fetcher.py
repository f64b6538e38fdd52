"""Navigation-style download of the generated image."""

from __future__ import annotations

from io import BytesIO

from PIL import Image, UnidentifiedImageError

from ..errors import FetchFailed
from .base import PageHandle


async def fetch_resource(page: PageHandle, url: str, timeout_ms: int | None = None) -> bytes:
    # The CDN only answers with the cookies the page already holds, so this
    # goes through navigation rather than a background request.
    try:
        response = await page.navigate(url, wait_until="load", timeout_ms=timeout_ms)
    except Exception as exc:
        raise FetchFailed(f"Navigation to image failed: {exc}") from exc
    if response is None:
        raise FetchFailed("Navigation to image returned no response")
    status = int(getattr(response, "status", 0) or 0)
    if not 200 <= status < 300:
        raise FetchFailed(f"Image fetch failed ({status})")
    try:
        return await response.body()
    except Exception as exc:
        raise FetchFailed(f"Image body unavailable: {exc}") from exc


def describe_image(image_bytes: bytes) -> tuple[int | None, int | None, str | None]:
    try:
        with Image.open(BytesIO(image_bytes)) as image:
            return image.width, image.height, (image.format or "").lower() or None
    except (UnidentifiedImageError, OSError, ValueError):
        return None, None, None

"""Request types and receipt writer."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

from ..errors import InvalidRequest
from ..utils import now_utc_iso, sanitize_payload, serialize, write_json


RECEIPT_SCHEMA_VERSION = 1

MODE_TEXT_TO_IMAGE = "t2i"
MODE_IMAGE_EDIT = "image_edit"
_MODES = {MODE_TEXT_TO_IMAGE, MODE_IMAGE_EDIT}


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    size: str = "1:1"
    mode: str = MODE_TEXT_TO_IMAGE
    source_images: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.mode not in _MODES:
            raise InvalidRequest(f"Unsupported mode: {self.mode!r}")
        if not isinstance(self.prompt, str) or not self.prompt.strip():
            raise InvalidRequest("Prompt must be a non-empty string.")
        images = tuple(str(url).strip() for url in self.source_images or ())
        if any(not url for url in images):
            raise InvalidRequest("Source image URLs must be non-empty.")
        if self.mode == MODE_IMAGE_EDIT and not images:
            raise InvalidRequest("Image composition requires at least one source image.")
        if self.mode == MODE_TEXT_TO_IMAGE and images:
            raise InvalidRequest("Text-to-image requests take no source images.")
        object.__setattr__(self, "source_images", images)
        object.__setattr__(self, "size", str(self.size or "1:1").strip() or "1:1")

    @classmethod
    def text_to_image(cls, prompt: str, size: str = "1:1") -> "GenerationRequest":
        return cls(prompt=prompt, size=size, mode=MODE_TEXT_TO_IMAGE)

    @classmethod
    def image_edit(cls, image_urls: Sequence[str], prompt: str, size: str = "1:1") -> "GenerationRequest":
        if isinstance(image_urls, str):
            raise InvalidRequest("image_urls must be a sequence of URLs, not a single string.")
        return cls(prompt=prompt, size=size, mode=MODE_IMAGE_EDIT, source_images=tuple(image_urls or ()))


def build_receipt(
    *,
    request: GenerationRequest,
    result: Any,
    image_path: Path | None,
    receipt_path: Path,
    metadata: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "schema_version": RECEIPT_SCHEMA_VERSION,
        "created_at": now_utc_iso(),
        "request": serialize(request),
        "result": sanitize_payload(result.to_dict()),
        "artifacts": {
            "image_path": str(image_path) if image_path else None,
            "receipt_path": str(receipt_path),
        },
        "metadata": sanitize_payload(dict(metadata or {})),
    }


def write_receipt(path: Path, payload: Mapping[str, Any]) -> None:
    write_json(path, payload)

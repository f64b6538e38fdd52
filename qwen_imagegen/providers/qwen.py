"""Qwen chat API payloads and in-page calls."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from ..errors import ChatCreationFailed
from ..runs.receipts import MODE_IMAGE_EDIT, MODE_TEXT_TO_IMAGE, GenerationRequest
from ..settings import API_VERSION, QwenSettings
from .base import ChatSession, PageHandle
from .stream import cdn_or_scheme_predicate, cdn_predicate


# Runs inside the page so the request carries the browser's cookies.
POST_JSON_SCRIPT = """
async ({ url, token, body }) => {
    const r = await fetch(url, {
        method: 'POST',
        headers: { 'Content-Type': 'application/json', 'Authorization': 'Bearer ' + token },
        body: JSON.stringify(body)
    });
    return r.json();
}
"""

POST_TEXT_SCRIPT = """
async ({ url, token, body }) => {
    const r = await fetch(url, {
        method: 'POST',
        headers: { 'Content-Type': 'application/json', 'Authorization': 'Bearer ' + token },
        body: JSON.stringify(body)
    });
    return r.text();
}
"""

SOURCE_IMAGE_TYPE = "image/png"


@dataclass(frozen=True)
class RequestVariant:
    mode: str
    chat_name: str
    research_mode: str
    accept_scheme_marker: bool
    log_response: bool

    def acceptance(self, settings: QwenSettings) -> Callable[[str], bool]:
        if self.accept_scheme_marker:
            return cdn_or_scheme_predicate(settings.cdn_marker, settings.scheme_marker)
        return cdn_predicate(settings.cdn_marker)


TEXT_TO_IMAGE = RequestVariant(
    mode=MODE_TEXT_TO_IMAGE,
    chat_name="img",
    research_mode="advance",
    accept_scheme_marker=False,
    log_response=False,
)

# Edited images may be served from a host other than the CDN.
IMAGE_EDIT = RequestVariant(
    mode=MODE_IMAGE_EDIT,
    chat_name="img-edit",
    research_mode="normal",
    accept_scheme_marker=True,
    log_response=True,
)

VARIANTS: dict[str, RequestVariant] = {
    TEXT_TO_IMAGE.mode: TEXT_TO_IMAGE,
    IMAGE_EDIT.mode: IMAGE_EDIT,
}


def variant_for(request: GenerationRequest) -> RequestVariant:
    return VARIANTS[request.mode]


def _uuid4() -> str:
    return str(uuid.uuid4())


class QwenPayloadBuilder:
    """Builds the chat-creation and completion documents.

    ``id_factory`` supplies every identifier embedded in a payload and
    ``clock`` supplies epoch seconds; both exist so tests can pin them.
    """

    def __init__(
        self,
        model: str,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.model = model
        self.id_factory = id_factory or _uuid4
        self.clock = clock or time.time

    def now(self) -> int:
        return int(self.clock())

    def chat_payload(self, variant: RequestVariant) -> dict[str, Any]:
        return {"name": variant.chat_name}

    def completion_payload(
        self,
        request: GenerationRequest,
        chat: ChatSession,
        owner: str | None = None,
    ) -> dict[str, Any]:
        variant = variant_for(request)
        ts = self.now()
        message = {
            "fid": self.id_factory(),
            "parentId": None,
            "parent_id": None,
            "role": "user",
            "content": request.prompt,
            "chat_type": variant.mode,
            "sub_chat_type": variant.mode,
            "childrenIds": [self.id_factory()],
            "extra": {"meta": {"subChatType": variant.mode}},
            "feature_config": {
                "thinking_enabled": False,
                "output_schema": "phase",
                "research_mode": variant.research_mode,
            },
            "files": self.files_payload(request, owner=owner, ts=ts),
            "models": [self.model],
            "user_action": "chat",
            "timestamp": ts,
        }
        return {
            "stream": True,
            "version": API_VERSION,
            "incremental_output": True,
            "chat_id": chat.id,
            "chat_mode": "normal",
            "model": self.model,
            "parent_id": None,
            "size": request.size,
            "timestamp": ts,
            "messages": [message],
        }

    def files_payload(
        self,
        request: GenerationRequest,
        *,
        owner: str | None = None,
        ts: int | None = None,
    ) -> list[dict[str, Any]]:
        stamp_ms = (ts if ts is not None else self.now()) * 1000
        files: list[dict[str, Any]] = []
        for idx, url in enumerate(request.source_images, start=1):
            filename = f"image{idx}.png"
            files.append(
                {
                    "type": "image",
                    "file": {
                        "id": self.id_factory(),
                        "user_id": owner,
                        "filename": filename,
                        "hash": None,
                        "data": {},
                        "meta": {"name": filename, "size": 0, "content_type": SOURCE_IMAGE_TYPE},
                        "created_at": stamp_ms,
                        "update_at": stamp_ms,
                    },
                    "id": self.id_factory(),
                    "url": url,
                    "name": filename,
                    "collection_name": "",
                    "progress": 0,
                    "status": "uploaded",
                    "size": 0,
                    "error": "",
                    "itemId": self.id_factory(),
                    "file_type": SOURCE_IMAGE_TYPE,
                    "showType": "image",
                    "file_class": "vision",
                    "uploadTaskId": self.id_factory(),
                }
            )
        return files


async def create_chat(
    page: PageHandle,
    settings: QwenSettings,
    token: str,
    payload: Mapping[str, Any],
    *,
    created_at: int,
) -> ChatSession:
    response = await page.evaluate(
        POST_JSON_SCRIPT,
        {"url": settings.chats_new_url, "token": token, "body": dict(payload)},
    )
    if not isinstance(response, Mapping) or not response.get("success"):
        raise ChatCreationFailed("Failed to create chat")
    data = response.get("data")
    chat_id = data.get("id") if isinstance(data, Mapping) else None
    if not chat_id:
        raise ChatCreationFailed("Chat creation response missing chat id")
    return ChatSession(id=str(chat_id), created_at=created_at)


async def request_completion(
    page: PageHandle,
    settings: QwenSettings,
    token: str,
    chat: ChatSession,
    payload: Mapping[str, Any],
) -> str:
    raw = await page.evaluate(
        POST_TEXT_SCRIPT,
        {"url": settings.completions_url(chat.id), "token": token, "body": dict(payload)},
    )
    if raw is None:
        return ""
    return raw if isinstance(raw, str) else str(raw)

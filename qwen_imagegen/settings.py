"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import quote

from .utils import getenv_int

DEFAULT_BASE_URL = "https://chat.qwen.ai"
DEFAULT_MODEL = "qwen3-max-2025-10-30"
DEFAULT_CDN_MARKER = "cdn.qwenlm.ai"
DEFAULT_SCHEME_MARKER = "http"
DEFAULT_NAVIGATION_TIMEOUT_MS = 30_000
DEFAULT_DEBUG_EXCERPT_CHARS = 1000
DEFAULT_RESPONSE_LOG_CHARS = 500
DEFAULT_URL_LOG_CHARS = 80
API_VERSION = "2.1"


@dataclass(frozen=True)
class QwenSettings:
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    cdn_marker: str = DEFAULT_CDN_MARKER
    scheme_marker: str = DEFAULT_SCHEME_MARKER
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    debug_excerpt_chars: int = DEFAULT_DEBUG_EXCERPT_CHARS
    response_log_chars: int = DEFAULT_RESPONSE_LOG_CHARS
    url_log_chars: int = DEFAULT_URL_LOG_CHARS

    @classmethod
    def from_env(cls) -> "QwenSettings":
        base_url = (os.getenv("QWEN_BASE_URL") or "").strip() or DEFAULT_BASE_URL
        model = (os.getenv("QWEN_MODEL") or "").strip() or DEFAULT_MODEL
        cdn_marker = (os.getenv("QWEN_CDN_MARKER") or "").strip() or DEFAULT_CDN_MARKER
        return cls(
            base_url=base_url.rstrip("/"),
            model=model,
            cdn_marker=cdn_marker,
            navigation_timeout_ms=max(0, getenv_int("QWEN_NAV_TIMEOUT_MS", DEFAULT_NAVIGATION_TIMEOUT_MS)),
            debug_excerpt_chars=max(0, getenv_int("QWEN_DEBUG_EXCERPT_CHARS", DEFAULT_DEBUG_EXCERPT_CHARS)),
        )

    @property
    def home_url(self) -> str:
        return f"{self.base_url}/"

    @property
    def chats_new_url(self) -> str:
        return f"{self.base_url}/api/v2/chats/new"

    def completions_url(self, chat_id: str) -> str:
        return f"{self.base_url}/api/v2/chat/completions?chat_id={quote(chat_id, safe='')}"

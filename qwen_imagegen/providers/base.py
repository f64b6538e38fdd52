"""Collaborator protocols and result types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Union


@dataclass(frozen=True)
class Credential:
    token: str | None
    owner: str | None = None


@dataclass(frozen=True)
class ChatSession:
    id: str
    created_at: int


@dataclass
class ImageSuccess:
    url: str
    image_bytes: bytes | None = None
    width: int | None = None
    height: int | None = None
    image_format: str | None = None

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "image_bytes": self.image_bytes}


@dataclass
class ImageFailure:
    error: str
    debug_excerpt: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error}
        if self.debug_excerpt is not None:
            payload["debug_excerpt"] = self.debug_excerpt
        if self.message:
            payload["message"] = self.message
        return payload


OperationResult = Union[ImageSuccess, ImageFailure]


class PageResponse(Protocol):
    status: int

    async def body(self) -> bytes:
        ...


class PageHandle(Protocol):
    async def navigate(
        self,
        url: str,
        *,
        wait_until: str = "load",
        timeout_ms: int | None = None,
    ) -> PageResponse | None:
        ...

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        ...

    async def close(self) -> None:
        ...


class SessionProvider(Protocol):
    def browser_context(self) -> Any | None:
        ...

    async def new_page(self) -> PageHandle:
        ...


class TokenProvider(Protocol):
    async def get_credential(self) -> Credential | None:
        ...


class Logger(Protocol):
    def info(self, message: str, **fields: Any) -> None:
        ...

    def error(self, message: str, **fields: Any) -> None:
        ...

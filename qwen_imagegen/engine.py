"""Image generation and composition through the Qwen chat API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Sequence

from .errors import (
    INTERNAL_ERROR,
    CredentialUnavailable,
    EnvironmentNotReady,
    ImageGenError,
)
from .providers.base import (
    Credential,
    ImageFailure,
    ImageSuccess,
    Logger,
    OperationResult,
    PageHandle,
    SessionProvider,
    TokenProvider,
)
from .providers.fetcher import describe_image, fetch_resource
from .providers.qwen import QwenPayloadBuilder, create_chat, request_completion, variant_for
from .providers.stream import extract_resource_url
from .runs.events import NullLogger
from .runs.receipts import GenerationRequest
from .settings import QwenSettings
from .utils import truncate


class QwenImageEngine:
    def __init__(
        self,
        sessions: SessionProvider,
        tokens: TokenProvider,
        logger: Logger | None = None,
        settings: QwenSettings | None = None,
        builder: QwenPayloadBuilder | None = None,
    ) -> None:
        self.sessions = sessions
        self.tokens = tokens
        self.logger = logger or NullLogger()
        self.settings = settings or QwenSettings()
        self.builder = builder or QwenPayloadBuilder(self.settings.model)
        self.last_request: GenerationRequest | None = None

    async def generate_image(self, prompt: str, size: str = "1:1") -> OperationResult:
        return await self._run_guarded(lambda: GenerationRequest.text_to_image(prompt, size))

    async def compose_images(self, image_urls: Sequence[str], prompt: str) -> OperationResult:
        return await self._run_guarded(lambda: GenerationRequest.image_edit(image_urls, prompt))

    async def run(self, request: GenerationRequest) -> OperationResult:
        return await self._run_guarded(lambda: request)

    async def _run_guarded(self, make_request: Callable[[], GenerationRequest]) -> OperationResult:
        try:
            request = make_request()
            self.last_request = request
            return await self._run(request)
        except ImageGenError as exc:
            self.logger.error(f"Image operation failed: {exc}", reason=exc.reason)
            return ImageFailure(error=exc.reason, debug_excerpt=exc.excerpt, message=str(exc))
        except Exception as exc:
            self.logger.error("Image generation error", reason=INTERNAL_ERROR, detail=str(exc))
            return ImageFailure(error=INTERNAL_ERROR, message=str(exc))

    async def _run(self, request: GenerationRequest) -> ImageSuccess:
        variant = variant_for(request)
        if self.sessions.browser_context() is None:
            raise EnvironmentNotReady("Browser not initialized")
        credential = await self.tokens.get_credential()
        token = _token_of(credential)
        if not token:
            raise CredentialUnavailable("No valid token")

        async with self._page() as page:
            await page.navigate(
                self.settings.home_url,
                wait_until="domcontentloaded",
                timeout_ms=self.settings.navigation_timeout_ms,
            )
            chat = await create_chat(
                page,
                self.settings,
                token,
                self.builder.chat_payload(variant),
                created_at=self.builder.now(),
            )
            payload = self.builder.completion_payload(request, chat, owner=_owner_of(credential))
            raw = await request_completion(page, self.settings, token, chat, payload)
            if variant.log_response:
                self.logger.info(
                    "Composition response received",
                    excerpt=truncate(raw, self.settings.response_log_chars),
                )
            url = extract_resource_url(
                raw,
                variant.acceptance(self.settings),
                excerpt_chars=self.settings.debug_excerpt_chars,
            )
            self.logger.info(f"Image generated: {truncate(url, self.settings.url_log_chars)}...")
            image_bytes = await fetch_resource(page, url)

        width, height, image_format = describe_image(image_bytes)
        return ImageSuccess(
            url=url,
            image_bytes=image_bytes,
            width=width,
            height=height,
            image_format=image_format,
        )

    @asynccontextmanager
    async def _page(self) -> AsyncIterator[PageHandle]:
        page = await self.sessions.new_page()
        try:
            yield page
        finally:
            try:
                await page.close()
            except Exception as exc:
                self.logger.error("Page close failed", detail=str(exc))


def _credential_field(credential: Credential | Any | None, name: str) -> str | None:
    if credential is None:
        return None
    if isinstance(credential, dict):
        value = credential.get(name)
    else:
        value = getattr(credential, name, None)
    if not isinstance(value, str) or not value.strip():
        return None
    return value


def _token_of(credential: Credential | Any | None) -> str | None:
    return _credential_field(credential, "token")


def _owner_of(credential: Credential | Any | None) -> str | None:
    return _credential_field(credential, "owner")


async def generate_image(
    prompt: str,
    size: str = "1:1",
    *,
    sessions: SessionProvider,
    tokens: TokenProvider,
    logger: Logger | None = None,
    settings: QwenSettings | None = None,
) -> OperationResult:
    engine = QwenImageEngine(sessions, tokens, logger=logger, settings=settings)
    return await engine.generate_image(prompt, size)


async def compose_images(
    image_urls: Sequence[str],
    prompt: str,
    *,
    sessions: SessionProvider,
    tokens: TokenProvider,
    logger: Logger | None = None,
    settings: QwenSettings | None = None,
) -> OperationResult:
    engine = QwenImageEngine(sessions, tokens, logger=logger, settings=settings)
    return await engine.compose_images(image_urls, prompt)

"""Playwright-backed browser session."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from ..utils import getenv_flag


class PlaywrightPage:
    def __init__(self, page: Any) -> None:
        self._page = page

    async def navigate(
        self,
        url: str,
        *,
        wait_until: str = "load",
        timeout_ms: int | None = None,
    ) -> Any | None:
        kwargs: dict[str, Any] = {"wait_until": wait_until}
        if timeout_ms is not None:
            kwargs["timeout"] = timeout_ms
        return await self._page.goto(url, **kwargs)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._page.evaluate(script, arg)

    async def close(self) -> None:
        await self._page.close()


class PlaywrightSessionProvider:
    """Owns one browser context; every operation gets its own page.

    Either launches Chromium (optionally seeded from a ``storage_state`` file
    that holds the logged-in cookies) or attaches to a running browser over
    CDP when ``cdp_url`` is set.
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        storage_state: Path | None = None,
        cdp_url: str | None = None,
    ) -> None:
        self.headless = headless
        self.storage_state = storage_state
        self.cdp_url = cdp_url
        self._playwright: Any | None = None
        self._browser: Any | None = None
        self._context: Any | None = None

    @classmethod
    def from_env(cls) -> "PlaywrightSessionProvider":
        storage_state = (os.getenv("QWEN_STORAGE_STATE") or "").strip()
        cdp_url = (os.getenv("QWEN_CDP_URL") or "").strip()
        if cdp_url.isdigit():
            cdp_url = f"http://127.0.0.1:{cdp_url}"
        return cls(
            headless=getenv_flag("QWEN_HEADLESS", True),
            storage_state=Path(storage_state).expanduser() if storage_state else None,
            cdp_url=cdp_url or None,
        )

    def browser_context(self) -> Any | None:
        return self._context

    async def start(self) -> None:
        if self._context is not None:
            return
        from playwright.async_api import async_playwright

        self._playwright = await async_playwright().start()
        chromium = self._playwright.chromium
        if self.cdp_url:
            self._browser = await chromium.connect_over_cdp(self.cdp_url)
            contexts = self._browser.contexts
            self._context = contexts[0] if contexts else await self._browser.new_context()
            return
        self._browser = await chromium.launch(headless=self.headless)
        context_kwargs: dict[str, Any] = {}
        if self.storage_state and self.storage_state.exists():
            context_kwargs["storage_state"] = str(self.storage_state)
        self._context = await self._browser.new_context(**context_kwargs)

    async def new_page(self) -> PlaywrightPage:
        if self._context is None:
            raise RuntimeError("Browser context not started.")
        return PlaywrightPage(await self._context.new_page())

    async def stop(self) -> None:
        context, browser, playwright = self._context, self._browser, self._playwright
        self._context = self._browser = self._playwright = None
        try:
            if context is not None and not self.cdp_url:
                await context.close()
            if browser is not None:
                await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()

    async def __aenter__(self) -> "PlaywrightSessionProvider":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

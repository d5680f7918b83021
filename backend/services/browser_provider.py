"""
Remote browser sessions for page capture.

``BrowserbaseProvider`` creates a hosted session through the Browserbase SDK
and attaches Playwright to it over CDP. ``LocalBrowserProvider`` launches a
local headless Chromium and is selected with ``BROWSER_PROVIDER=local``.
"""

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from browserbase import AsyncBrowserbase
from playwright.async_api import async_playwright

from scraping import config
from scraping.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteSession:
    session_id: str
    connect_url: str = ""


class BrowserConnection:
    """An attached browser plus the Playwright driver that owns it."""

    def __init__(self, browser: Any, playwright: Any = None):
        self.browser = browser
        self.playwright = playwright

    async def page(self) -> Any:
        """Reuse the session's first page when it has one, otherwise open a new one."""
        contexts = list(self.browser.contexts)
        if contexts:
            context = contexts[0]
            if context.pages:
                return context.pages[0]
            return await context.new_page()
        return await self.browser.new_page()

    async def close(self) -> None:
        try:
            await self.browser.close()
        finally:
            if self.playwright is not None:
                await self.playwright.stop()


class BrowserProvider:
    async def create_session(self) -> RemoteSession:
        raise NotImplementedError

    async def connect(self, session: RemoteSession) -> BrowserConnection:
        raise NotImplementedError

    def replay_url(self, session: RemoteSession) -> Optional[str]:
        return None


class BrowserbaseProvider(BrowserProvider):
    def __init__(self, api_key: str, project_id: str):
        self.api_key = api_key
        self.project_id = project_id

    @classmethod
    def from_env(cls) -> "BrowserbaseProvider":
        api_key = (os.getenv("BROWSERBASE_API_KEY") or "").strip()
        project_id = (os.getenv("BROWSERBASE_PROJECT_ID") or "").strip()
        missing = [
            name
            for name, value in (("BROWSERBASE_API_KEY", api_key), ("BROWSERBASE_PROJECT_ID", project_id))
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing environment variable(s): {', '.join(missing)}")
        return cls(api_key=api_key, project_id=project_id)

    async def create_session(self) -> RemoteSession:
        async with AsyncBrowserbase(api_key=self.api_key) as client:
            session = await client.sessions.create(project_id=self.project_id)
        logger.info("Browserbase session created: %s", session.id)
        return RemoteSession(session_id=session.id, connect_url=session.connect_url)

    async def connect(self, session: RemoteSession) -> BrowserConnection:
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.connect_over_cdp(session.connect_url)
        except Exception:
            await playwright.stop()
            raise
        return BrowserConnection(browser, playwright)

    def replay_url(self, session: RemoteSession) -> Optional[str]:
        return config.REPLAY_URL_TEMPLATE.format(session_id=session.session_id)


class LocalBrowserProvider(BrowserProvider):
    def __init__(self, headless: bool = True):
        self.headless = headless

    async def create_session(self) -> RemoteSession:
        return RemoteSession(session_id=f"local-{uuid.uuid4().hex[:12]}")

    async def connect(self, session: RemoteSession) -> BrowserConnection:
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(headless=self.headless)
        except Exception:
            await playwright.stop()
            raise
        return BrowserConnection(browser, playwright)


def provider_from_env() -> BrowserProvider:
    name = (os.getenv("BROWSER_PROVIDER") or "browserbase").strip().lower()
    if name == "local":
        headless = (os.getenv("BROWSER_HEADLESS") or "1").strip().lower() not in {"0", "false", "no"}
        return LocalBrowserProvider(headless=headless)
    if name == "browserbase":
        return BrowserbaseProvider.from_env()
    raise ConfigurationError(f"Unknown BROWSER_PROVIDER '{name}' (expected 'browserbase' or 'local')")

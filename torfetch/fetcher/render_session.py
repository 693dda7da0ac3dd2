"""Single-navigation headless Chromium sessions routed through Tor."""

import asyncio
from typing import Awaitable, Callable

from playwright.async_api import async_playwright

from torfetch.errors import AttemptError
from torfetch.models.data_models import RenderArtifacts

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
]


class RenderSessionFactory:
    """
    Launches one isolated browser per capture.

    Each call to capture() starts its own Playwright driver and Chromium
    process bound to the SOCKS proxy, navigates, lets the page settle,
    extracts the serialized DOM and a full-page PNG, and tears everything
    down again before returning or raising. Nothing is shared between
    captures.
    """

    def __init__(
        self,
        proxy_address: str,
        navigation_wait: float = 10.0,
        attempt_timeout: float = 120.0,
        viewport_width: int = 1920,
        viewport_height: int = 1080,
        headless: bool = True,
        playwright_factory: Callable = async_playwright,
        sleeper: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize factory.

        Args:
            proxy_address: Tor SOCKS proxy as host:port
            navigation_wait: Seconds to wait after navigation before extracting
            attempt_timeout: Hard deadline for the whole session in seconds
            viewport_width: Browser viewport width
            viewport_height: Browser viewport height
            headless: Run Chromium without a window
            playwright_factory: Returns a Playwright async context manager
            sleeper: Async sleep function (default: asyncio.sleep)
        """
        self.proxy_server = f"socks5://{proxy_address}"
        self.navigation_wait = navigation_wait
        self.attempt_timeout = attempt_timeout
        self.viewport = {"width": viewport_width, "height": viewport_height}
        self.headless = headless
        self._playwright_factory = playwright_factory
        self._sleep = sleeper

    @classmethod
    def from_config(cls, config) -> "RenderSessionFactory":
        return cls(
            config.proxy_address,
            navigation_wait=config.navigation_wait,
            attempt_timeout=config.attempt_timeout,
            viewport_width=config.viewport_width,
            viewport_height=config.viewport_height,
            headless=config.headless,
        )

    async def capture(self, url: str) -> RenderArtifacts:
        """
        Render url and capture its DOM and a full-page screenshot.

        Args:
            url: Page to render

        Returns:
            RenderArtifacts with html and PNG bytes

        Raises:
            AttemptError: On launch, navigation, timeout or extraction failure
        """
        try:
            return await asyncio.wait_for(self._run_session(url), timeout=self.attempt_timeout)
        except asyncio.TimeoutError as e:
            raise AttemptError(f"timed out after {self.attempt_timeout:g}s") from e
        except Exception as e:
            raise AttemptError(f"{type(e).__name__}: {e}") from e

    async def _run_session(self, url: str) -> RenderArtifacts:
        async with self._playwright_factory() as playwright:
            browser = await playwright.chromium.launch(
                headless=self.headless,
                proxy={"server": self.proxy_server},
                args=LAUNCH_ARGS,
            )
            try:
                context = await browser.new_context(viewport=self.viewport)
                page = await context.new_page()
                await page.goto(url, timeout=self.attempt_timeout * 1000)
                # Tor is slow; let late requests and scripts finish
                await self._sleep(self.navigation_wait)
                html = await page.content()
                screenshot = await page.screenshot(full_page=True, type="png")
            finally:
                await browser.close()

        return RenderArtifacts(html=html, screenshot=screenshot)

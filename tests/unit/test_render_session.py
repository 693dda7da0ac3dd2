"""Unit tests for single-navigation browser sessions."""

import pytest

from torfetch.errors import AttemptError
from torfetch.fetcher.render_session import LAUNCH_ARGS, RenderSessionFactory
from torfetch.models.config import ScraperConfig

from tests.fixtures.fakes import FakePlaywright, RecordingSleeper


def make_factory(fake, sleeper=None, attempt_timeout=120.0):
    return RenderSessionFactory(
        "127.0.0.1:9150",
        navigation_wait=10.0,
        attempt_timeout=attempt_timeout,
        playwright_factory=lambda: fake,
        sleeper=sleeper or RecordingSleeper(),
    )


class TestCapture:

    @pytest.mark.asyncio
    async def test_returns_html_and_screenshot(self):
        fake = FakePlaywright(html="<html>page</html>", screenshot=b"\x89PNGbytes")
        sleeper = RecordingSleeper()

        artifacts = await make_factory(fake, sleeper).capture("http://example.test")

        assert artifacts.html == "<html>page</html>"
        assert artifacts.screenshot == b"\x89PNGbytes"
        assert fake.page.visited == ["http://example.test"]
        assert sleeper.delays == [10.0]

    @pytest.mark.asyncio
    async def test_browser_is_bound_to_the_proxy(self):
        fake = FakePlaywright()

        await make_factory(fake).capture("http://example.test")

        launch = fake.chromium.launch_kwargs
        assert launch["proxy"] == {"server": "socks5://127.0.0.1:9150"}
        assert launch["headless"] is True
        assert launch["args"] == LAUNCH_ARGS
        assert "--no-sandbox" in launch["args"]

    @pytest.mark.asyncio
    async def test_viewport_and_full_page_screenshot(self):
        fake = FakePlaywright()

        await make_factory(fake).capture("http://example.test")

        assert fake.browser.context_kwargs == {"viewport": {"width": 1920, "height": 1080}}
        assert fake.page.screenshot_kwargs == {"full_page": True, "type": "png"}

    @pytest.mark.asyncio
    async def test_resources_released_on_success(self):
        fake = FakePlaywright()

        await make_factory(fake).capture("http://example.test")

        assert fake.browser.closed is True
        assert fake.exited is True

    def test_from_config(self):
        config = ScraperConfig(proxy_address="10.0.0.2:9050", viewport_width=1280, viewport_height=720)
        factory = RenderSessionFactory.from_config(config)

        assert factory.proxy_server == "socks5://10.0.0.2:9050"
        assert factory.viewport == {"width": 1280, "height": 720}
        assert factory.attempt_timeout == 120.0
        assert factory.navigation_wait == 10.0


class TestFailures:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("step", ["goto", "content", "screenshot"])
    async def test_step_failure_raises_attempt_error_and_releases(self, step):
        fake = FakePlaywright(fail_on=step)

        with pytest.raises(AttemptError, match="RuntimeError"):
            await make_factory(fake).capture("http://bad.test")

        assert fake.browser.closed is True
        assert fake.exited is True

    @pytest.mark.asyncio
    async def test_launch_failure_raises_attempt_error(self):
        fake = FakePlaywright(fail_on="launch")

        with pytest.raises(AttemptError, match="Executable"):
            await make_factory(fake).capture("http://bad.test")

        assert fake.exited is True

    @pytest.mark.asyncio
    async def test_deadline_exceeded(self):
        fake = FakePlaywright(goto_delay=5.0)

        with pytest.raises(AttemptError, match="timed out"):
            await make_factory(fake, attempt_timeout=0.05).capture("http://slow.test")

        # Cancellation still runs the cleanup path
        assert fake.browser.closed is True
        assert fake.exited is True

"""
Headless browser lifecycle and navigation helpers built on Playwright
"""

import logging
import time
from typing import Any, List, Optional, Tuple
from urllib.parse import urljoin

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .config import CollectorConfig
from .exceptions import BrowserLaunchFailed, NavigationTimeout
from .models import RedirectData


# Removes the most common automation fingerprints before any page script runs
STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
if (window.navigator.permissions && window.navigator.permissions.query) {
  const originalQuery = window.navigator.permissions.query.bind(window.navigator.permissions);
  window.navigator.permissions.query = (parameters) =>
    parameters.name === 'notifications'
      ? Promise.resolve({ state: Notification.permission })
      : originalQuery(parameters);
}
window.chrome = window.chrome || { runtime: {} };
"""


class BrowserSession:
    """One browser, context and page, exclusively owned by one collection run"""

    def __init__(self, config: CollectorConfig):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self._playwright = None
        self.browser = None
        self.context = None
        self.page = None

    async def start(self):
        """Launch the browser and open the shared page"""
        try:
            self._playwright = await async_playwright().start()
            self.browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=self.config.launch_args,
            )
            self.context = await self.browser.new_context(
                user_agent=self.config.user_agent,
                viewport={
                    'width': self.config.viewport_width,
                    'height': self.config.viewport_height,
                },
                extra_http_headers=self.config.extra_http_headers,
            )
            await self.context.add_init_script(STEALTH_SCRIPT)
            self.page = await self.context.new_page()
        except Exception as e:
            self.logger.error(f"Browser launch failed: {e}")
            await self.close()
            raise BrowserLaunchFailed(str(e)) from e

        self.logger.info("Launched headless browser")
        return self.page

    async def close(self):
        """Tear down whatever was initialized, in reverse order"""
        for name in ('page', 'context', 'browser'):
            handle = getattr(self, name)
            if handle is None:
                continue
            try:
                await handle.close()
            except Exception as e:
                self.logger.warning(f"Error closing {name}: {e}")
            setattr(self, name, None)

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                self.logger.warning(f"Error stopping Playwright: {e}")
            self._playwright = None


class ConsoleRecorder:
    """Buffers console errors and uncaught page errors between navigations"""

    def __init__(self, page):
        self._messages: List[str] = []
        page.on("console", self._on_console)
        page.on("pageerror", self._on_page_error)

    def _on_console(self, message):
        if message.type == "error":
            self._messages.append(message.text)

    def _on_page_error(self, error):
        self._messages.append(getattr(error, 'message', None) or str(error))

    def clear(self):
        self._messages = []

    def drain(self) -> List[str]:
        messages, self._messages = self._messages, []
        return messages


async def navigate(page, url: str, config: CollectorConfig) -> Tuple[Optional[Any], float]:
    """Navigate the shared page, returning the response and elapsed milliseconds"""
    start = time.monotonic()
    try:
        response = await page.goto(url, wait_until=config.wait_until, timeout=config.timeout_ms)
    except PlaywrightTimeoutError as e:
        raise NavigationTimeout(url, config.timeout_ms) from e
    return response, (time.monotonic() - start) * 1000


async def redirect_of(response, requested_url: str) -> Optional[RedirectData]:
    """Describe the redirect behind a response, whether returned as-is or followed by the browser"""
    status = response.status
    if 300 <= status < 400:
        location = response.headers.get('location', '')
        target = urljoin(requested_url, location) if location else ''
        return RedirectData.for_status(requested_url, target, status)

    first_hop = response.request.redirected_from
    if first_hop is None:
        return None
    while first_hop.redirected_from is not None:
        first_hop = first_hop.redirected_from

    hop_response = await first_hop.response()
    hop_status = hop_response.status if hop_response is not None else 302
    return RedirectData.for_status(requested_url, response.url, hop_status)

"""
In-memory stand-ins for the Playwright objects a session holds, so the
orchestration logic can be tested without a browser.
"""
import asyncio
from collections import defaultdict

import pytest
from playwright.async_api import Error as PlaywrightError

from webrender.components.renderer.capture_executor import DOM_SNAPSHOT_SCRIPT
from webrender.components.renderer.session_manager import SessionManager

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"fake-png-payload"
PDF_BYTES = b"%PDF-1.7\n" + b"fake-pdf-payload"
FAKE_DOM = "<html><head><title>Fake</title></head><body><h1>Fake Page</h1></body></html>"


class FakeEmitter:
    def __init__(self):
        self._listeners = defaultdict(list)

    def on(self, event, handler):
        self._listeners[event].append(handler)

    def remove_listener(self, event, handler):
        self._listeners[event].remove(handler)

    def emit(self, event, *args):
        for handler in list(self._listeners[event]):
            handler(*args)

    def listener_count(self, event=None):
        if event is not None:
            return len(self._listeners[event])
        return sum(len(handlers) for handlers in self._listeners.values())


class FakeResponse:
    status = 200


class FakePage(FakeEmitter):
    """
    A page whose timing and failures are set per test:

    - `hang_on`: names of calls that never finish ("goto", "screenshot", ...).
    - `fail_on`: call name -> message of the PlaywrightError it raises.
    """

    def __init__(self):
        super().__init__()
        self.calls = []
        self.hang_on = set()
        self.fail_on = {}
        self.load_seconds = 0.0
        self.dom = FAKE_DOM
        self.png = PNG_BYTES
        self.pdf_bytes = PDF_BYTES

    async def _call(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.fail_on:
            raise PlaywrightError(self.fail_on[name])
        if name in self.hang_on:
            await asyncio.Event().wait()

    def call_names(self):
        return [c[0] for c in self.calls]

    async def goto(self, url, wait_until=None, timeout=None):
        await self._call("goto", url)
        await asyncio.sleep(self.load_seconds)
        return FakeResponse()

    async def evaluate(self, expression, arg=None):
        if expression == DOM_SNAPSHOT_SCRIPT:
            await self._call("dom", arg)
            return self.dom
        await self._call("evaluate", expression)
        return None

    async def screenshot(self, type="png", full_page=False, timeout=None):
        await self._call("screenshot", full_page)
        return self.png

    async def pdf(self, display_header_footer=False):
        await self._call("pdf", display_header_footer)
        return self.pdf_bytes


class FakeCDPSession:
    def __init__(self):
        self.sent = []
        self.fail_on = {}
        self.hang_on = set()
        self.detached = False

    async def send(self, method, params=None):
        self.sent.append((method, params))
        if method in self.fail_on:
            raise PlaywrightError(self.fail_on[method])
        if method in self.hang_on:
            await asyncio.Event().wait()
        if method == "Browser.getVersion":
            return {"product": "HeadlessChrome/120.0.0.0"}
        return {}

    async def detach(self):
        self.detached = True


class FakeBrowser(FakeEmitter):
    def __init__(self):
        super().__init__()
        self.close_count = 0

    async def close(self):
        self.close_count += 1


class FakeContext:
    def __init__(self):
        self.close_count = 0

    async def close(self):
        self.close_count += 1


class FakePlaywright:
    def __init__(self):
        self.stop_count = 0

    async def stop(self):
        self.stop_count += 1


class FakeSessionManager(SessionManager):
    """A `SessionManager` whose launch hands out the fakes below."""

    def __init__(self, kit):
        super().__init__()
        self.kit = kit
        self.launched = []
        self.launch_error = None

    async def _launch(self, launch_config):
        self.launched.append(launch_config)
        if self.launch_error is not None:
            raise self.launch_error
        kit = self.kit
        return kit.playwright, kit.browser, kit.context, kit.page, kit.cdp


class FakeBrowserKit:
    def __init__(self):
        self.playwright = FakePlaywright()
        self.browser = FakeBrowser()
        self.context = FakeContext()
        self.page = FakePage()
        self.cdp = FakeCDPSession()
        self.manager = FakeSessionManager(self)


@pytest.fixture
def kit():
    return FakeBrowserKit()


@pytest.fixture
def fake_page():
    return FakePage()


@pytest.fixture
def fake_browser():
    return FakeBrowser()

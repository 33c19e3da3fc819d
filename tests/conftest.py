"""walletpilot test configuration: shared fixtures and in-memory browser fakes."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import pytest
from playwright.async_api import Error as PlaywrightError

from walletpilot.exceptions import NoSessionError

EXTENSION_ID = "abcdefghijklmnopabcdefghijklmnop"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear the settings LRU cache between tests."""
    from walletpilot.settings.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings(tmp_path: Path):
    """Settings rooted in a temp dir with near-zero waits."""
    from walletpilot.settings.config import Settings

    return Settings(
        project_root=tmp_path,
        approval={
            "timeout_ms": 200,
            "trigger_popup_timeout_ms": 50,
            "reject_timeout_ms": 200,
            "check_timeout_ms": 50,
            "load_settle_ms": 0,
            "settle_ms": 1,
            "poll_interval_ms": 1,
            "close_wait_ms": 40,
            "retry_backoff_ms": 1,
            "click_timeout_ms": 100,
            "post_click_ms": 0,
        },
        wallet={"page_settle_ms": 0, "extensions_page_settle_ms": 0, "service_worker_timeout_ms": 50},
        output={"output_dir": str(tmp_path / "out"), "credentials_file": str(tmp_path / ".test-env")},
    )


# ---------------------------------------------------------------------------
# Browser fakes
# ---------------------------------------------------------------------------


@dataclass
class FakeControl:
    """One control on a ``FakePage``; ``on_click`` runs after a successful click."""

    visible: bool = True
    enabled: bool = True
    intercepted: bool = False
    on_click: Callable[["FakePage"], None] | None = None


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str, index: int = 0) -> None:
        self.page = page
        self.selector = selector
        self.index = index

    @property
    def first(self) -> "FakeLocator":
        return self

    def nth(self, index: int) -> "FakeLocator":
        return FakeLocator(self.page, self.selector, index)

    def _control(self) -> FakeControl:
        control = self.page.controls.get(self.selector)
        if control is None:
            raise PlaywrightError(f"No element matches {self.selector}")
        return control

    async def count(self) -> int:
        return 1 if self.selector in self.page.controls else 0

    async def is_visible(self) -> bool:
        return self.selector in self.page.controls and self._control().visible

    async def is_enabled(self) -> bool:
        return self._control().enabled

    async def scroll_into_view_if_needed(self, timeout: float | None = None) -> None:
        return None

    async def click(self, timeout: float | None = None, force: bool = False) -> None:
        control = self._control()
        if control.intercepted and not force:
            raise PlaywrightError("Element is intercepted by another element")
        self.page.clicks.append((self.selector, force))
        if control.on_click is not None:
            control.on_click(self.page)

    async def fill(self, value: str, timeout: float | None = None) -> None:
        self._control()
        self.page.fills.append((self.selector, self.index, value))

    async def _interact(self, name: str, value: Any = None) -> None:
        self._control()
        self.page.interactions.append((name, self.selector, value))

    async def select_option(self, value: str, timeout: float | None = None) -> list[str]:
        await self._interact("select", value)
        return [value]

    async def check(self, timeout: float | None = None) -> None:
        await self._interact("check")

    async def uncheck(self, timeout: float | None = None) -> None:
        await self._interact("uncheck")

    async def hover(self, timeout: float | None = None) -> None:
        await self._interact("hover")

    async def press(self, key: str, timeout: float | None = None) -> None:
        await self._interact("press", key)

    async def text_content(self, timeout: float | None = None) -> str:
        self._control()
        return self.page.text

    async def wait_for(self, state: str = "visible", timeout: float | None = None) -> None:
        if self.selector not in self.page.controls:
            raise PlaywrightError(f"Timeout {timeout}ms exceeded waiting for {self.selector}")


class FakeMouse:
    def __init__(self) -> None:
        self.events: list[tuple[str, int, int]] = []

    async def click(self, x: int, y: int) -> None:
        self.events.append(("click", x, y))

    async def wheel(self, delta_x: int, delta_y: int) -> None:
        self.events.append(("wheel", delta_x, delta_y))


class FakeKeyboard:
    def __init__(self) -> None:
        self.typed: list[str] = []

    async def type(self, text: str, delay: float | None = None) -> None:
        self.typed.append(text)


class FakePage:
    """Minimal async ``Page`` stand-in driven by a selector -> control map."""

    def __init__(self, url: str = "about:blank", controls: dict[str, FakeControl] | None = None, text: str = "") -> None:
        self.url = url
        self.controls: dict[str, FakeControl] = dict(controls or {})
        self.text = text
        self.closed = False
        self.clicks: list[tuple[str, bool]] = []
        self.fills: list[tuple[str, int, str]] = []
        self.screenshots: list[str] = []
        self.gotos: list[tuple[str, str | None]] = []
        self.evaluate_result: Any = None
        self.viewport_size = {"width": 1920, "height": 1080}
        self.next_url: str | None = None
        self.interactions: list[tuple[str, str, Any]] = []
        self.mouse = FakeMouse()
        self.keyboard = FakeKeyboard()

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def wait_for_load_state(self, state: str = "load", timeout: float | None = None) -> None:
        return None

    async def wait_for_url(self, url: Any, timeout: float | None = None) -> None:
        """Follows ``next_url`` if set; raises when the predicate still fails."""
        if self.next_url is not None:
            self.url, self.next_url = self.next_url, None
        if not url(self.url):
            raise PlaywrightError(f"Timeout {timeout}ms exceeded waiting for navigation")

    async def wait_for_timeout(self, timeout: float) -> None:
        return None

    async def screenshot(self, **kwargs: Any) -> bytes:
        if self.closed:
            raise PlaywrightError("Target page, context or browser has been closed")
        self.screenshots.append(kwargs["path"])
        return b""

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if isinstance(self.evaluate_result, BaseException):
            raise self.evaluate_result
        if callable(self.evaluate_result):
            return self.evaluate_result(script, arg)
        if self.evaluate_result is None and "innerText" in script:
            return self.text
        return self.evaluate_result

    async def goto(self, url: str, wait_until: str | None = None, timeout: float | None = None) -> None:
        self.gotos.append((url, wait_until))
        self.url = url

    async def title(self) -> str:
        return "Fake page"

    async def content(self) -> str:
        return self.text


def close_page(page: FakePage) -> None:
    """``on_click`` hook: the click closes the surface."""
    page.closed = True


class FakeContext:
    """``BrowserContext`` stand-in with a pyee-like listener registry."""

    def __init__(self, pages: list[FakePage] | None = None) -> None:
        self.pages: list[FakePage] = list(pages or [])
        self.service_workers: list[Any] = []
        self._listeners: dict[str, list[Callable]] = {}

    def on(self, event: str, handler: Callable) -> None:
        self._listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Callable) -> None:
        # Mirrors pyee: removing an unknown handler raises.
        self._listeners[event].remove(handler)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def open_page(self, page: FakePage) -> FakePage:
        """Simulate the browser opening *page* (e.g. the wallet popup)."""
        self.pages.append(page)
        for handler in list(self._listeners.get("page", [])):
            handler(page)
        return page

    async def new_page(self) -> FakePage:
        page = FakePage()
        self.pages.append(page)
        return page


@dataclass
class FakeSession:
    """The slice of ``BrowserSession`` the flows use."""

    settings: Any
    _context: FakeContext | None = None
    primary: FakePage | None = None
    identity: Any = None
    degraded: bool = False

    @property
    def context(self) -> FakeContext:
        if self._context is None:
            raise NoSessionError()
        return self._context

    @property
    def primary_page(self) -> FakePage:
        if self.primary is None:
            raise NoSessionError()
        return self.primary

    def set_primary_page(self, page: FakePage) -> None:
        self.primary = page

    async def ensure_identity(self) -> Any:
        return self.identity


@pytest.fixture()
def fake_context() -> FakeContext:
    return FakeContext([FakePage("https://dapp.example/")])


@pytest.fixture()
def fake_session(settings, fake_context: FakeContext) -> FakeSession:
    from walletpilot.browser.extension import build_identity

    identity = build_identity(EXTENSION_ID, settings.wallet, verified=True, source="test")
    return FakeSession(settings=settings, _context=fake_context, primary=fake_context.pages[0], identity=identity)


@pytest.fixture()
def make_page() -> type[FakePage]:
    """The ``FakePage`` class, for tests that build their own surfaces."""
    return FakePage


@pytest.fixture()
def make_control() -> type[FakeControl]:
    return FakeControl


@pytest.fixture()
def closing_control() -> Callable[..., FakeControl]:
    """Factory for a control whose click closes its page."""

    def _factory(**kwargs: Any) -> FakeControl:
        return FakeControl(on_click=close_page, **kwargs)

    return _factory


@pytest.fixture()
def make_session() -> type[FakeSession]:
    return FakeSession

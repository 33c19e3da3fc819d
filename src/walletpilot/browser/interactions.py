"""Single-shot page interactions behind the basic CLI commands.

Unlike the action driver these do not retry or fall back: each request
names one selector (or raw keyboard/mouse input) and Playwright's own
timeout bounds it.  Missing arguments raise ``InvalidArgumentError``;
Playwright failures propagate to the command layer, which reports them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from walletpilot.exceptions import InvalidArgumentError

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page

logger = logging.getLogger(__name__)

_TYPE_DELAY_MS = 50
_PREVIEW_CHARS = 20
_DEFAULT_WAIT_MS = 1_000
_DEFAULT_SCROLL = 500

SCROLL_VECTORS: dict[str, tuple[int, int]] = {
    "down": (0, 1),
    "up": (0, -1),
    "right": (1, 0),
    "left": (-1, 0),
}


class PageAction(str, Enum):
    SELECT = "select"
    CHECK = "check"
    UNCHECK = "uncheck"
    HOVER = "hover"
    PRESS = "press"
    TEXT = "text"
    WAIT_FOR = "wait-for"
    EVALUATE = "evaluate"
    WAIT = "wait"
    TYPE = "vision-type"
    SCROLL = "vision-scroll"


@dataclass(frozen=True)
class PageActionRequest:
    """Arguments for one interaction; which fields matter depends on the action.

    Attributes:
        selector: Target element (select/check/uncheck/hover/press/text/wait-for).
        value: Option, key, script, text to type, or scroll direction.
        amount: Milliseconds to wait, or pixels to scroll.
        timeout_ms: Bound on selector-based interactions.
    """

    selector: str | None = None
    value: str | None = None
    amount: int | None = None
    timeout_ms: int = 5_000


def preview(text: str) -> str:
    return text[:_PREVIEW_CHARS] + ("..." if len(text) > _PREVIEW_CHARS else "")


async def run_page_action(page: Page, action: PageAction, request: PageActionRequest) -> dict[str, Any]:
    """Perform *action* on *page* and return its result record."""
    handler = _HANDLERS[action]
    record = await handler(page, request)
    logger.info("%s done on %s", action.value, page.url)
    return {"success": True, "action": action.value, **record}


def _target(page: Page, request: PageActionRequest) -> Locator:
    if not request.selector:
        raise InvalidArgumentError("Selector required")
    return page.locator(request.selector).first


def _required_value(request: PageActionRequest, what: str) -> str:
    if not request.value:
        raise InvalidArgumentError(f"{what} required")
    return request.value


async def _do_select(page: Page, request: PageActionRequest) -> dict[str, Any]:
    value = _required_value(request, "Option value")
    await _target(page, request).select_option(value, timeout=request.timeout_ms)
    return {"selector": request.selector, "value": value}


async def _do_check(page: Page, request: PageActionRequest) -> dict[str, Any]:
    await _target(page, request).check(timeout=request.timeout_ms)
    return {"selector": request.selector}


async def _do_uncheck(page: Page, request: PageActionRequest) -> dict[str, Any]:
    await _target(page, request).uncheck(timeout=request.timeout_ms)
    return {"selector": request.selector}


async def _do_hover(page: Page, request: PageActionRequest) -> dict[str, Any]:
    await _target(page, request).hover(timeout=request.timeout_ms)
    return {"selector": request.selector}


async def _do_press(page: Page, request: PageActionRequest) -> dict[str, Any]:
    key = _required_value(request, "Key")
    await _target(page, request).press(key, timeout=request.timeout_ms)
    return {"selector": request.selector, "key": key}


async def _do_text(page: Page, request: PageActionRequest) -> dict[str, Any]:
    text = await _target(page, request).text_content(timeout=request.timeout_ms)
    return {"selector": request.selector, "text": text}


async def _do_wait_for(page: Page, request: PageActionRequest) -> dict[str, Any]:
    await _target(page, request).wait_for(state="visible", timeout=request.timeout_ms)
    return {"selector": request.selector, "found": True}


async def _do_evaluate(page: Page, request: PageActionRequest) -> dict[str, Any]:
    script = _required_value(request, "JavaScript code")
    return {"result": await page.evaluate(script)}


async def _do_wait(page: Page, request: PageActionRequest) -> dict[str, Any]:
    ms = request.amount if request.amount is not None else _DEFAULT_WAIT_MS
    if ms < 0:
        raise InvalidArgumentError(f"Wait must be a non-negative number of milliseconds, got {ms}")
    await page.wait_for_timeout(ms)
    return {"waited": ms}


async def _do_type(page: Page, request: PageActionRequest) -> dict[str, Any]:
    text = _required_value(request, "Text")
    await page.keyboard.type(text, delay=_TYPE_DELAY_MS)
    return {"text": preview(text)}


async def _do_scroll(page: Page, request: PageActionRequest) -> dict[str, Any]:
    direction = (request.value or "down").lower()
    if direction not in SCROLL_VECTORS:
        raise InvalidArgumentError(f"Unknown scroll direction: {request.value}. Use one of: {', '.join(SCROLL_VECTORS)}")
    amount = request.amount if request.amount is not None else _DEFAULT_SCROLL
    dx, dy = SCROLL_VECTORS[direction]
    await page.mouse.wheel(dx * amount, dy * amount)
    return {"direction": direction, "amount": amount}


_HANDLERS: dict[PageAction, Callable[[Page, PageActionRequest], Awaitable[dict[str, Any]]]] = {
    PageAction.SELECT: _do_select,
    PageAction.CHECK: _do_check,
    PageAction.UNCHECK: _do_uncheck,
    PageAction.HOVER: _do_hover,
    PageAction.PRESS: _do_press,
    PageAction.TEXT: _do_text,
    PageAction.WAIT_FOR: _do_wait_for,
    PageAction.EVALUATE: _do_evaluate,
    PageAction.WAIT: _do_wait,
    PageAction.TYPE: _do_type,
    PageAction.SCROLL: _do_scroll,
}

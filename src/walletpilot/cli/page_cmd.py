"""Page commands: single-shot element interactions, page inspection and raw input."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, List, Optional

import typer

from walletpilot.browser.interactions import PageAction, PageActionRequest, run_page_action
from walletpilot.browser.screenshots import take_screenshot
from walletpilot.browser.session import BrowserSession
from walletpilot.cli.common import (
    HEADED_OPTION,
    KEEP_OPEN_OPTION,
    SCREENSHOT_OPTION,
    TIMEOUT_OPTION,
    WALLET_OPTION,
    run,
)
from walletpilot.models.options import CommandOptions

_CONTENT_PREVIEW = 500


def _run_page_action(
    kind: PageAction,
    request: PageActionRequest,
    *,
    headed: Optional[bool],
    wallet: bool,
    keep_open: bool,
    timeout: Optional[int] = None,
    screenshot: Optional[str] = None,
) -> None:
    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        page = session.primary_page
        timeout_ms = options.timeout_ms or session.settings.browser.action_timeout_ms
        record = await run_page_action(page, kind, replace(request, timeout_ms=timeout_ms))
        if options.screenshot:
            record["screenshot"] = await take_screenshot(page, session.settings.output, options.screenshot)
        return record

    run(action, headed=headed, wallet=wallet, keep_open=keep_open, timeout=timeout, screenshot=screenshot)


# ---------------------------------------------------------------------------
# walletpilot select / check / uncheck / hover / press
# ---------------------------------------------------------------------------


def select(
    selector: str = typer.Argument(..., help="Selector of the <select> element."),
    value: str = typer.Argument(..., help="Option value to select."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
    timeout: Optional[int] = TIMEOUT_OPTION,
    screenshot: Optional[str] = SCREENSHOT_OPTION,
) -> None:
    """Select an option in a dropdown."""
    _run_page_action(
        PageAction.SELECT,
        PageActionRequest(selector=selector, value=value),
        headed=headed, wallet=wallet, keep_open=keep_open, timeout=timeout, screenshot=screenshot,
    )


def check(
    selector: str = typer.Argument(..., help="Selector of the checkbox or radio."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
    timeout: Optional[int] = TIMEOUT_OPTION,
    screenshot: Optional[str] = SCREENSHOT_OPTION,
) -> None:
    """Tick a checkbox or radio button."""
    _run_page_action(
        PageAction.CHECK,
        PageActionRequest(selector=selector),
        headed=headed, wallet=wallet, keep_open=keep_open, timeout=timeout, screenshot=screenshot,
    )


def uncheck(
    selector: str = typer.Argument(..., help="Selector of the checkbox."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
    timeout: Optional[int] = TIMEOUT_OPTION,
    screenshot: Optional[str] = SCREENSHOT_OPTION,
) -> None:
    """Clear a checkbox."""
    _run_page_action(
        PageAction.UNCHECK,
        PageActionRequest(selector=selector),
        headed=headed, wallet=wallet, keep_open=keep_open, timeout=timeout, screenshot=screenshot,
    )


def hover(
    selector: str = typer.Argument(..., help="Selector of the element to hover."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
    timeout: Optional[int] = TIMEOUT_OPTION,
    screenshot: Optional[str] = SCREENSHOT_OPTION,
) -> None:
    """Move the pointer over an element."""
    _run_page_action(
        PageAction.HOVER,
        PageActionRequest(selector=selector),
        headed=headed, wallet=wallet, keep_open=keep_open, timeout=timeout, screenshot=screenshot,
    )


def press(
    selector: str = typer.Argument(..., help="Selector of the element to focus."),
    key: str = typer.Argument(..., help="Key to press, e.g. Enter, Tab, Escape."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
    timeout: Optional[int] = TIMEOUT_OPTION,
    screenshot: Optional[str] = SCREENSHOT_OPTION,
) -> None:
    """Press a key on an element."""
    _run_page_action(
        PageAction.PRESS,
        PageActionRequest(selector=selector, value=key),
        headed=headed, wallet=wallet, keep_open=keep_open, timeout=timeout, screenshot=screenshot,
    )


# ---------------------------------------------------------------------------
# walletpilot text / content / evaluate / wait / wait-for
# ---------------------------------------------------------------------------


def text(
    selector: str = typer.Argument(..., help="Selector of the element to read."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
    timeout: Optional[int] = TIMEOUT_OPTION,
) -> None:
    """Print an element's text content."""
    _run_page_action(
        PageAction.TEXT,
        PageActionRequest(selector=selector),
        headed=headed, wallet=wallet, keep_open=keep_open, timeout=timeout,
    )


def content(
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
) -> None:
    """Save the page HTML under the output directory and print a preview."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        html = await session.primary_page.content()
        path = session.settings.output.content_path
        path.write_text(html, encoding="utf-8")
        return {
            "success": True,
            "contentFile": str(path),
            "contentLength": len(html),
            "preview": html[:_CONTENT_PREVIEW] + ("..." if len(html) > _CONTENT_PREVIEW else ""),
        }

    run(action, headed=headed, wallet=wallet, keep_open=keep_open)


def evaluate(
    script: List[str] = typer.Argument(..., help="JavaScript expression (words are joined with spaces)."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
) -> None:
    """Evaluate JavaScript in the current page and print the result."""
    _run_page_action(
        PageAction.EVALUATE,
        PageActionRequest(value=" ".join(script)),
        headed=headed, wallet=wallet, keep_open=keep_open,
    )


def wait(
    ms: int = typer.Argument(1000, help="Milliseconds to wait."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
) -> None:
    """Wait a fixed time on the current page."""
    _run_page_action(
        PageAction.WAIT,
        PageActionRequest(amount=ms),
        headed=headed, wallet=wallet, keep_open=keep_open,
    )


def wait_for(
    selector: str = typer.Argument(..., help="Selector to wait for."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
    timeout: Optional[int] = TIMEOUT_OPTION,
) -> None:
    """Wait until an element is visible."""
    _run_page_action(
        PageAction.WAIT_FOR,
        PageActionRequest(selector=selector),
        headed=headed, wallet=wallet, keep_open=keep_open, timeout=timeout,
    )


# ---------------------------------------------------------------------------
# walletpilot vision-type <text> / vision-scroll [direction] [amount]
# ---------------------------------------------------------------------------


def vision_type(
    words: List[str] = typer.Argument(..., help="Text to type at the focused element."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
    screenshot: Optional[str] = SCREENSHOT_OPTION,
) -> None:
    """Type text with the keyboard wherever focus is."""
    _run_page_action(
        PageAction.TYPE,
        PageActionRequest(value=" ".join(words)),
        headed=headed, wallet=wallet, keep_open=keep_open, screenshot=screenshot or "after-type",
    )


def vision_scroll(
    direction: str = typer.Argument("down", help="down, up, left or right."),
    amount: int = typer.Argument(500, help="Pixels to scroll."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
    screenshot: Optional[str] = SCREENSHOT_OPTION,
) -> None:
    """Scroll the page with the mouse wheel."""
    _run_page_action(
        PageAction.SCROLL,
        PageActionRequest(value=direction, amount=amount),
        headed=headed, wallet=wallet, keep_open=keep_open, screenshot=screenshot or f"after-scroll-{direction}",
    )

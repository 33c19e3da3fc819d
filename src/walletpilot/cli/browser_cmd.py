"""Browser commands: session lifecycle, page navigation and interaction."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Optional

import typer

from walletpilot.browser.actions import ActionDriver
from walletpilot.browser.approval import ApprovalFlow
from walletpilot.browser.locators import Intent, by_css, click_intents
from walletpilot.browser.navigation import resilient_goto
from walletpilot.browser.pointer import clear_pointer
from walletpilot.browser.screenshots import take_screenshot
from walletpilot.browser.session import BrowserSession
from walletpilot.cli.common import (
    HEADED_OPTION,
    KEEP_OPEN_OPTION,
    SCREENSHOT_OPTION,
    TIMEOUT_OPTION,
    WALLET_OPTION,
    BrowserMode,
    fail,
    run,
)
from walletpilot.exceptions import InvalidArgumentError
from walletpilot.models.options import CommandOptions
from walletpilot.models.results import ActionKind

_VISION_CLICK_SETTLE = 0.5


class WalletAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    IGNORE = "ignore"


async def _maybe_screenshot(session: BrowserSession, options: CommandOptions) -> str | None:
    if not options.screenshot:
        return None
    return await take_screenshot(session.primary_page, session.settings.output, options.screenshot)


async def _handle_triggered_popup(flow: ApprovalFlow, action: WalletAction) -> dict[str, Any] | None:
    """Settle a popup the preceding click may have opened; ``None`` if none appeared."""
    timeout = flow.approval.trigger_popup_timeout_ms
    if action == WalletAction.REJECT:
        outcome = await flow.reject(timeout)
    else:
        outcome = await flow.approve(timeout)
    return outcome.to_dict() if outcome.popup_found else None


async def _click_and_settle(
    session: BrowserSession,
    options: CommandOptions,
    intents: tuple[Intent, ...],
    fallback: tuple[int, int] | None,
    wallet_action: WalletAction,
    record: dict[str, Any],
) -> dict[str, Any]:
    """Click through the driver, then settle any wallet popup the click opened."""
    handle_popup = options.wallet and wallet_action != WalletAction.IGNORE
    flow = ApprovalFlow(session) if handle_popup else None
    if flow is not None:
        flow.listener.arm()

    try:
        driver = ActionDriver.from_settings(session.settings.approval)
        if options.timeout_ms:
            driver.click_timeout_ms = options.timeout_ms
        result = await driver.click_with_fallback(session.primary_page, intents, fallback)

        record = {"success": result.success, **record}
        if result.strategy is not None:
            record["strategy"] = result.strategy
        if result.coordinates is not None:
            record["coordinates"] = {"x": result.coordinates[0], "y": result.coordinates[1]}
        if not result.success:
            record["error"] = result.error
            record["hint"] = "Use screenshot to see the page, then vision-click to click by coordinates"
        elif flow is not None:
            popup = await _handle_triggered_popup(flow, wallet_action)
            if popup is not None:
                record["walletPopup"] = popup
    finally:
        if flow is not None:
            flow.listener.disarm()

    record["screenshot"] = await _maybe_screenshot(session, options)
    return record


# ---------------------------------------------------------------------------
# walletpilot start / stop
# ---------------------------------------------------------------------------


def start(
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
) -> None:
    """Launch (or reattach to) the shared browser and leave it running."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        record: dict[str, Any] = {
            "success": True,
            "message": "Connected to existing browser" if session.reattached else "Browser started",
            "cdpEndpoint": session.endpoint_url,
            "currentPage": session.primary_page.url,
        }
        if session.identity is not None:
            record["extension"] = session.identity.to_dict()
            record["degraded"] = session.degraded
        return record

    run(action, headed=headed, wallet=wallet, keep_open=True)


def stop() -> None:
    """Close the shared browser and remove its session pointer."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        if not await session.attach_existing():
            clear_pointer(session.pointer_path)
            return {"success": True, "message": "No browser running"}
        await session.teardown()
        return {
            "success": True,
            "message": "Browser stopped",
            "note": "Login state and extensions are preserved in the user data directory.",
        }

    run(action, BrowserMode.NONE)


# ---------------------------------------------------------------------------
# walletpilot navigate <url>
# ---------------------------------------------------------------------------


def navigate(
    url: str = typer.Argument(..., help="URL to open in the current page."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
    timeout: Optional[int] = TIMEOUT_OPTION,
    screenshot: Optional[str] = SCREENSHOT_OPTION,
) -> None:
    """Navigate the current page to URL."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        page = session.primary_page
        await resilient_goto(
            page,
            url,
            timeout_ms=options.timeout_ms or session.settings.browser.navigation_timeout_ms,
            wait_until="load",
        )
        return {
            "success": True,
            "url": page.url,
            "title": await page.title(),
            "screenshot": await _maybe_screenshot(session, options),
        }

    run(action, headed=headed, wallet=wallet, keep_open=keep_open, timeout=timeout, screenshot=screenshot)


# ---------------------------------------------------------------------------
# walletpilot click <selector> / dapp-click [text] / fill <selector> <value>
# ---------------------------------------------------------------------------


def click(
    selector: str = typer.Argument(..., help="Playwright selector of the element to click."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    wallet_action: WalletAction = typer.Option(
        WalletAction.APPROVE, "--wallet-action", help="What to do with a wallet popup the click opens."
    ),
    keep_open: bool = KEEP_OPEN_OPTION,
    timeout: Optional[int] = TIMEOUT_OPTION,
    screenshot: Optional[str] = SCREENSHOT_OPTION,
) -> None:
    """Click an element; in wallet mode, settle any popup it triggers."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        record: dict[str, Any] = {"action": "click", "selector": selector}
        return await _click_and_settle(session, options, (by_css(selector),), None, wallet_action, record)

    run(action, headed=headed, wallet=wallet, keep_open=keep_open, timeout=timeout, screenshot=screenshot)


def dapp_click(
    text: Optional[str] = typer.Argument(None, help="Visible text of the control; tried first."),
    css: Optional[str] = typer.Option(None, "--css", help="CSS selector tried after the text."),
    fallback_x: Optional[int] = typer.Option(None, "--fallback-x", help="X coordinate clicked when no selector matches."),
    fallback_y: Optional[int] = typer.Option(None, "--fallback-y", help="Y coordinate clicked when no selector matches."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    wallet_action: WalletAction = typer.Option(
        WalletAction.APPROVE, "--wallet-action", help="What to do with a wallet popup the click opens."
    ),
    keep_open: bool = KEEP_OPEN_OPTION,
    timeout: Optional[int] = TIMEOUT_OPTION,
    screenshot: Optional[str] = SCREENSHOT_OPTION,
) -> None:
    """Click a dApp control by text, then CSS selector, then fallback coordinates."""
    try:
        fallback = parse_fallback(fallback_x, fallback_y)
        intents = click_intents(text, css)
        if not intents and fallback is None:
            raise InvalidArgumentError("Give the control's text, --css, or --fallback-x/--fallback-y")
    except InvalidArgumentError as e:
        fail(e)

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        record: dict[str, Any] = {"action": "dapp-click", "text": text, "css": css}
        return await _click_and_settle(session, options, intents, fallback, wallet_action, record)

    run(action, headed=headed, wallet=wallet, keep_open=keep_open, timeout=timeout, screenshot=screenshot)


def parse_fallback(x: int | None, y: int | None) -> tuple[int, int] | None:
    """Pair the fallback coordinates; both or neither must be given."""
    if x is None and y is None:
        return None
    if x is None or y is None:
        raise InvalidArgumentError("--fallback-x and --fallback-y must be given together")
    if x < 0 or y < 0:
        raise InvalidArgumentError(f"Fallback coordinates must be non-negative, got ({x}, {y})")
    return x, y


def fill(
    selector: str = typer.Argument(..., help="Playwright selector of the input."),
    value: str = typer.Argument(..., help="Text to enter."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
    timeout: Optional[int] = TIMEOUT_OPTION,
    screenshot: Optional[str] = SCREENSHOT_OPTION,
) -> None:
    """Fill an input with text."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        driver = ActionDriver.from_settings(session.settings.approval)
        if options.timeout_ms:
            driver.click_timeout_ms = options.timeout_ms
        result = await driver.perform_action(session.primary_page, (by_css(selector),), kind=ActionKind.FILL, value=value)
        record: dict[str, Any] = {
            "success": result.success,
            "action": "fill",
            "selector": selector,
            "value": value[:20] + ("..." if len(value) > 20 else ""),
        }
        if not result.success:
            record["error"] = result.error
        record["screenshot"] = await _maybe_screenshot(session, options)
        return record

    run(action, headed=headed, wallet=wallet, keep_open=keep_open, timeout=timeout, screenshot=screenshot)


# ---------------------------------------------------------------------------
# walletpilot vision-click <x> <y> / screenshot [name]
# ---------------------------------------------------------------------------


def vision_click(
    x: int = typer.Argument(..., help="X coordinate in CSS pixels."),
    y: int = typer.Argument(..., help="Y coordinate in CSS pixels."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
) -> None:
    """Click raw page coordinates (fallback when no selector matches)."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        page = session.primary_page
        flow = ApprovalFlow(session) if options.wallet else None
        if flow is not None:
            flow.listener.arm()

        await page.mouse.click(x, y)
        await asyncio.sleep(_VISION_CLICK_SETTLE)

        record: dict[str, Any] = {
            "success": True,
            "message": f"Clicked at ({x}, {y})",
            "coordinates": {"x": x, "y": y},
        }
        if flow is not None:
            popup = await _handle_triggered_popup(flow, WalletAction.APPROVE)
            flow.listener.disarm()
            if popup is not None:
                record["walletPopup"] = popup
        record["screenshot"] = await take_screenshot(page, session.settings.output, f"after-click-{x}-{y}")
        return record

    run(action, headed=headed, wallet=wallet, keep_open=keep_open)


def screenshot(
    name: Optional[str] = typer.Argument(None, help="Screenshot name (extension follows the configured format)."),
    headed: Optional[bool] = HEADED_OPTION,
    wallet: bool = WALLET_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
) -> None:
    """Capture the current page."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        page = session.primary_page
        path = await take_screenshot(page, session.settings.output, name)
        return {
            "success": True,
            "screenshot": path,
            "url": page.url,
            "viewport": page.viewport_size,
            "hint": "Open this screenshot to determine click coordinates for vision-click",
        }

    run(action, headed=headed, wallet=wallet, keep_open=keep_open)

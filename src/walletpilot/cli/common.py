"""Shared plumbing for walletpilot commands.

Each command builds a validated ``CommandOptions``, runs one coroutine
against a ``BrowserSession`` under ``asyncio.run`` and emits exactly one
JSON record.  Structural errors become an error record plus exit code 1;
environmental failures are reported with exit code 0.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, NoReturn, Optional

import typer
from playwright.async_api import Error as PlaywrightError
from pydantic import ValidationError

from walletpilot.browser.session import BrowserSession
from walletpilot.exceptions import (
    InvalidArgumentError,
    NavigationError,
    NoSessionError,
    StructuralError,
    WalletSetupError,
)
from walletpilot.models.options import CommandOptions
from walletpilot.reporting import emit, failure
from walletpilot.settings import get_settings
from walletpilot.wallet.networks import DEFAULT_NETWORK

logger = logging.getLogger(__name__)

Action = Callable[[BrowserSession, CommandOptions], Awaitable[dict[str, Any]]]


class BrowserMode(str, Enum):
    """How a command obtains its browser."""

    NONE = "none"  # no browser at all
    ATTACH = "attach"  # reuse a running browser or fail with NoSessionError
    ENSURE = "ensure"  # reuse a running browser or launch one


# Shared option declarations
HEADED_OPTION = typer.Option(None, "--headed/--headless", help="Show the browser window (default from settings).")
WALLET_OPTION = typer.Option(False, "--wallet", help="Load the wallet extension and auto-handle its popups.")
KEEP_OPEN_OPTION = typer.Option(False, "--keep-open", help="Leave the browser running after the command.")
TIMEOUT_OPTION = typer.Option(None, "--timeout", help="Timeout in milliseconds.")
NETWORK_OPTION = typer.Option(DEFAULT_NETWORK, "--network", help="Network name for network-aware commands.")
SCREENSHOT_OPTION = typer.Option(None, "--screenshot", help="Save a screenshot under this name afterwards.")


def build_options(
    *,
    headed: Optional[bool] = None,
    wallet: bool = False,
    keep_open: bool = False,
    timeout: Optional[int] = None,
    network: str = DEFAULT_NETWORK,
    screenshot: Optional[str] = None,
) -> CommandOptions:
    """Validate raw CLI flags into ``CommandOptions``.

    Raises:
        InvalidArgumentError: If any flag fails validation.
    """
    headless = get_settings().browser.headless if headed is None else not headed
    try:
        return CommandOptions(
            headless=headless,
            wallet=wallet,
            keep_open=keep_open,
            timeout_ms=timeout,
            network=network,
            screenshot=screenshot,
        )
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise InvalidArgumentError(messages) from None


async def _execute(action: Action, options: CommandOptions, mode: BrowserMode) -> dict[str, Any]:
    session = BrowserSession(get_settings())
    try:
        if mode == BrowserMode.ENSURE:
            await session.ensure(options)
        elif mode == BrowserMode.ATTACH and not await session.attach_existing():
            raise NoSessionError()
        return await action(session, options)
    finally:
        await session.release(keep_open=options.keep_open)


def fail(error: StructuralError) -> NoReturn:
    """Emit *error* as a failure record and exit 1."""
    logger.debug("Structural error: %s", error)
    emit(failure(str(error)))
    raise typer.Exit(code=1) from None


def run(action: Action, mode: BrowserMode = BrowserMode.ENSURE, **flags: Any) -> None:
    """Run *action* and emit its record; map errors to records and exit codes."""
    try:
        options = build_options(**flags)
        get_settings().ensure_directories()
        record = asyncio.run(_execute(action, options, mode))
    except StructuralError as e:
        fail(e)
    except NavigationError as e:
        record = failure(str(e), url=e.url)
    except WalletSetupError as e:
        record = failure(str(e))
    except PlaywrightError as e:
        logger.debug("Playwright error", exc_info=True)
        record = failure(str(e).splitlines()[0])
    emit(record)

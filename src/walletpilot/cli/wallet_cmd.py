"""Wallet commands: install, onboard, connect, and settle wallet popups.

Every command here loads the wallet extension.  Popup commands
(``wallet-approve``, ``wallet-sign``, ``wallet-reject``, ``wallet-check``)
and the provider helpers only attach to an already-running browser: a
freshly launched one could not hold a pending popup or a connected dapp.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import typer

from walletpilot.browser.approval import ApprovalFlow
from walletpilot.browser.navigation import resilient_goto
from walletpilot.browser.screenshots import try_screenshot
from walletpilot.browser.session import BrowserSession
from walletpilot.cli.common import (
    HEADED_OPTION,
    KEEP_OPEN_OPTION,
    NETWORK_OPTION,
    TIMEOUT_OPTION,
    BrowserMode,
    run,
)
from walletpilot.exceptions import WalletSetupError
from walletpilot.models.options import CommandOptions
from walletpilot.reporting import emit, failure, info, warning
from walletpilot.settings import get_settings
from walletpilot.wallet.credentials import CredentialStore
from walletpilot.wallet.installer import install_extension
from walletpilot.wallet.networks import NETWORKS
from walletpilot.wallet.onboarding import initialize_wallet
from walletpilot.wallet.provider import get_address, switch_network

# ---------------------------------------------------------------------------
# walletpilot wallet-setup
# ---------------------------------------------------------------------------


def wallet_setup(
    force: bool = typer.Option(False, "--force", help="Reinstall even if the extension is present."),
) -> None:
    """Download the latest wallet extension release and unpack it."""
    settings = get_settings()
    settings.ensure_directories()
    info("Fetching latest wallet extension release...")
    try:
        result = install_extension(settings, force=force)
    except WalletSetupError as e:
        emit(failure(f"Failed to setup wallet: {e}", hint="Check network access to api.github.com"))
        return
    record = result.to_dict()
    record["note"] = record.get("note") or "Use --wallet (or any wallet-* command) to load the extension"
    emit(record)


# ---------------------------------------------------------------------------
# walletpilot wallet-init
# ---------------------------------------------------------------------------


def wallet_init(
    headed: Optional[bool] = HEADED_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
) -> None:
    """Import, unlock or reset the wallet so it ends up unlocked."""
    settings = get_settings()
    store = CredentialStore(settings.output.credentials_file)
    try:
        credentials = store.load()
    except WalletSetupError as e:
        emit(failure(str(e), hint=f"Add WALLET_PRIVATE_KEY to {store.path}"))
        return
    if credentials.password_generated:
        info("Generated new wallet password (saved to the credential file)")

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        result = await initialize_wallet(session, credentials)
        result["security"] = f"Private key and password read from {store.path}; never logged"
        return result

    run(action, headed=headed, wallet=True, keep_open=keep_open)


# ---------------------------------------------------------------------------
# walletpilot wallet-navigate <url>
# ---------------------------------------------------------------------------


def wallet_navigate(
    url: str = typer.Argument(..., help="dApp URL to open."),
    headed: Optional[bool] = HEADED_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
    timeout: Optional[int] = TIMEOUT_OPTION,
) -> None:
    """Open URL in a new page with the wallet extension available."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        identity = await session.ensure_identity()
        if session.degraded:
            warning(
                "Wallet extension id could not be verified; using the recorded or configured id",
                extensionId=identity.extension_id,
            )
        page = await session.context.new_page()
        session.set_primary_page(page)
        await resilient_goto(
            page,
            url,
            timeout_ms=options.timeout_ms or session.settings.browser.navigation_timeout_ms,
            wait_until="domcontentloaded",
        )
        await asyncio.sleep(session.settings.wallet.page_settle_ms / 1000)
        return {
            "success": True,
            "message": f"Navigated to {url} with the wallet available",
            "url": page.url,
            "screenshot": await try_screenshot(page, session.settings.output, "dapp-home"),
            "extension": identity.to_dict(),
            "degraded": session.degraded,
            "nextSteps": [
                "Click the dApp's connect button, then run wallet-approve",
                "Use wallet-switch-network <network> to change network",
                "Use click/fill commands to interact with the dApp",
            ],
        }

    run(action, headed=headed, wallet=True, keep_open=keep_open, timeout=timeout)


# ---------------------------------------------------------------------------
# walletpilot wallet-approve / wallet-sign / wallet-reject / wallet-check
# ---------------------------------------------------------------------------


def wallet_approve(
    timeout: Optional[int] = TIMEOUT_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
) -> None:
    """Approve the pending wallet popup, following chained steps until it closes."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        info("Waiting for wallet popup...")
        outcome = await ApprovalFlow(session).approve(options.timeout_ms)
        return outcome.to_dict()

    run(action, BrowserMode.ATTACH, wallet=True, keep_open=keep_open, timeout=timeout)


def wallet_sign(
    timeout: Optional[int] = TIMEOUT_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
) -> None:
    """Classify the pending popup; approve it unless it is a failing transaction."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        info("Looking for wallet popup...")
        outcome = await ApprovalFlow(session).sign(options.timeout_ms)
        return outcome.to_dict()

    run(action, BrowserMode.ATTACH, wallet=True, keep_open=keep_open, timeout=timeout)


def wallet_reject(
    timeout: Optional[int] = TIMEOUT_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
) -> None:
    """Reject the pending wallet popup."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        outcome = await ApprovalFlow(session).reject(options.timeout_ms)
        return outcome.to_dict()

    run(action, BrowserMode.ATTACH, wallet=True, keep_open=keep_open, timeout=timeout)


def wallet_check(
    timeout: Optional[int] = TIMEOUT_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
) -> None:
    """Report whether a wallet popup is pending and what it asks for."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        return await ApprovalFlow(session).check(options.timeout_ms)

    run(action, BrowserMode.ATTACH, wallet=True, keep_open=keep_open, timeout=timeout)


# ---------------------------------------------------------------------------
# walletpilot wallet-switch-network [network] / wallet-get-address
# ---------------------------------------------------------------------------


def wallet_switch_network(
    network_name: Optional[str] = typer.Argument(None, metavar="NETWORK", help=f"One of: {', '.join(NETWORKS)}."),
    network: str = NETWORK_OPTION,
    keep_open: bool = KEEP_OPEN_OPTION,
) -> None:
    """Ask the wallet to switch the dApp's chain."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        return await switch_network(session.primary_page, NETWORKS[options.network])

    run(action, BrowserMode.ATTACH, wallet=True, keep_open=keep_open, network=network_name or network)


def wallet_get_address(
    keep_open: bool = KEEP_OPEN_OPTION,
) -> None:
    """Print the first account the dApp sees through the wallet."""

    async def action(session: BrowserSession, options: CommandOptions) -> dict[str, Any]:
        return await get_address(session.primary_page)

    run(action, BrowserMode.ATTACH, wallet=True, keep_open=keep_open)

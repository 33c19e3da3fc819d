"""Wallet onboarding: bring the extension to an unlocked, imported account.

``initialize_wallet`` inspects the extension's home page and then:

- NEW_USER: import the account from its private key;
- LOCKED: unlock with the stored password, or reset and re-import when no
  password is known or unlocking fails;
- UNLOCKED: nothing to do;
- UNKNOWN: attempt an import and report what happened.

The private key and password only ever flow into ``fill`` actions.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Sequence

from playwright.async_api import Error as PlaywrightError

from walletpilot.browser.actions import ActionDriver
from walletpilot.browser.extension import ExtensionPage
from walletpilot.browser.locators import (
    CONFIRM_INTENTS,
    FORGOT_PASSWORD_INTENTS,
    GUIDE_IMPORT_INTENTS,
    PRIVATE_KEY_INPUT_INTENTS,
    RESET_CONFIRM_INTENTS,
    UNLOCK_INTENTS,
    by_css,
)
from walletpilot.browser.navigation import resilient_goto, resilient_reload
from walletpilot.browser.screenshots import try_screenshot
from walletpilot.exceptions import WalletSetupError
from walletpilot.models.results import ActionKind

if TYPE_CHECKING:
    from playwright.async_api import Page

    from walletpilot.browser.extension import ExtensionIdentity
    from walletpilot.browser.session import BrowserSession
    from walletpilot.wallet.credentials import WalletCredentials

logger = logging.getLogger(__name__)

PASSWORD_INPUT = 'input[type="password"]'

NEW_USER_MARKERS: tuple[str, ...] = ("new-user", "Get Started", "Create a new address")
FORGOT_PASSWORD_MARKERS: tuple[str, ...] = ("Forgot Password", "forgot-password", "Forgot password")
ACCOUNT_SELECTORS: tuple[str, ...] = (
    '[class*="address"]',
    '[class*="balance"]',
    '[class*="asset"]',
    '[class*="CurrentAccount"]',
)


class WalletState(str, Enum):
    NEW_USER = "NEW_USER"
    LOCKED = "LOCKED"
    UNLOCKED = "UNLOCKED"
    UNKNOWN = "UNKNOWN"


async def _has_any(page: Page, selectors: Sequence[str]) -> bool:
    for selector in selectors:
        try:
            if await page.locator(selector).count() > 0:
                return True
        except PlaywrightError:
            continue
    return False


async def detect_wallet_state(page: Page) -> WalletState:
    """Infer the wallet state from the extension page's markup."""
    content = await page.content()
    has_password = await _has_any(page, (PASSWORD_INPUT,))
    has_account = await _has_any(page, ACCOUNT_SELECTORS)
    is_new_user = any(marker in content for marker in NEW_USER_MARKERS) or ("Import" in content and "Create" in content)

    if is_new_user and not has_password:
        return WalletState.NEW_USER
    if has_password and not has_account:
        return WalletState.LOCKED
    if has_account and not has_password:
        return WalletState.UNLOCKED
    if any(marker in content for marker in FORGOT_PASSWORD_MARKERS):
        return WalletState.LOCKED
    return WalletState.UNKNOWN


class WalletOnboarding:
    """Drives the extension's own pages through import, unlock and reset.

    Args:
        session: Live browser session with the wallet extension loaded.
        identity: Resolved extension identity used to address its pages.
        driver: Action driver; built from approval settings by default.
    """

    def __init__(
        self,
        session: BrowserSession,
        identity: ExtensionIdentity,
        driver: ActionDriver | None = None,
    ) -> None:
        self.session = session
        self.identity = identity
        self.settings = session.settings
        self.driver = driver or ActionDriver.from_settings(self.settings.approval)
        self.screenshots: list[str] = []

    async def _settle(self, factor: float = 1.0) -> None:
        await asyncio.sleep(self.settings.wallet.page_settle_ms * factor / 1000)

    async def _shot(self, page: Page, name: str) -> None:
        path = await try_screenshot(page, self.settings.output, name)
        if path:
            self.screenshots.append(path)

    async def open(self, page: Page, target: ExtensionPage) -> None:
        await resilient_goto(
            page,
            self.identity.url_for(target),
            timeout_ms=self.settings.browser.navigation_timeout_ms,
            wait_until="domcontentloaded",
        )
        await self._settle()

    # ------------------------------------------------------------------
    # Individual flows
    # ------------------------------------------------------------------

    async def import_wallet(self, page: Page, credentials: WalletCredentials) -> bool:
        """Import the account by private key; True if the wallet left onboarding."""
        logger.info("Importing wallet account by private key")
        await self.open(page, ExtensionPage.IMPORT_PRIVATE_KEY)
        await self._shot(page, "wallet-init-import-page")

        if "/new-user/guide" in page.url:
            logger.info("Redirected to onboarding guide; selecting import")
            await self.driver.perform_action(page, GUIDE_IMPORT_INTENTS, retries=1)
            await self._settle()
            await self.open(page, ExtensionPage.IMPORT_PRIVATE_KEY)

        filled = await self.driver.perform_action(
            page, PRIVATE_KEY_INPUT_INTENTS, kind=ActionKind.FILL, value=credentials.private_key
        )
        if not filled.success:
            await self._shot(page, "wallet-init-pk-input-failed")
            raise WalletSetupError("Failed to find private key input field")

        await self.driver.perform_action(page, CONFIRM_INTENTS)
        await self._settle(1.5)
        await self._shot(page, "wallet-init-after-confirm")

        password_inputs = page.locator(PASSWORD_INPUT)
        if await password_inputs.count() >= 2:
            await password_inputs.nth(0).fill(credentials.password)
            await password_inputs.nth(1).fill(credentials.password)
            await self.driver.perform_action(page, CONFIRM_INTENTS)
            await self._settle(1.5)

        await self.open(page, ExtensionPage.HOME)
        await self._shot(page, "wallet-init-verify")
        if "/new-user" in page.url:
            logger.warning("Still on onboarding after import; the account may not have been imported")
            return False
        logger.info("Wallet import verified")
        return True

    async def unlock_wallet(self, page: Page, password: str) -> bool:
        """Unlock with *password*; True if the wallet reports unlocked afterwards."""
        logger.info("Unlocking wallet")
        filled = await self.driver.perform_action(page, (by_css(PASSWORD_INPUT),), kind=ActionKind.FILL, value=password)
        if not filled.success:
            raise WalletSetupError("Password input not found")
        await self.driver.perform_action(page, UNLOCK_INTENTS)
        await self._settle()
        await self._shot(page, "wallet-init-after-unlock")
        return await detect_wallet_state(page) == WalletState.UNLOCKED

    async def reset_wallet(self, page: Page) -> None:
        """Run the extension's forgot-password reset."""
        logger.info("Resetting wallet through forgot-password flow")
        forgot = await self.driver.perform_action(page, FORGOT_PASSWORD_INTENTS)
        if not forgot.success:
            raise WalletSetupError("Could not find Forgot Password link")
        await self._settle()
        await self._shot(page, "wallet-init-reset-page")
        await self.driver.perform_action(page, RESET_CONFIRM_INTENTS)
        await self._settle()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def initialize(self, credentials: WalletCredentials) -> dict[str, Any]:
        """Bring the wallet to UNLOCKED from whatever state it is in."""
        page = await self.session.context.new_page()
        await self.open(page, ExtensionPage.HOME)
        await self._shot(page, "wallet-init-state-check")

        initial = await detect_wallet_state(page)
        logger.info("Detected wallet state: %s", initial.value)
        steps: list[str] = []
        done = False

        if initial == WalletState.NEW_USER:
            steps.append("detected_new_user")
            await self.import_wallet(page, credentials)
            steps.append("imported_wallet")
            done = True

        elif initial == WalletState.LOCKED:
            steps.append("detected_locked")
            if credentials.password_generated:
                steps.append("no_password_resetting")
                await self._reset_and_import(page, credentials, steps)
                done = True
            elif await self.unlock_wallet(page, credentials.password):
                steps.append("unlock_success")
                done = True
            else:
                steps.append("unlock_failed_resetting")
                await resilient_reload(
                    page, timeout_ms=self.settings.browser.navigation_timeout_ms, wait_until="domcontentloaded"
                )
                await self._settle()
                await self._reset_and_import(page, credentials, steps)
                done = True

        elif initial == WalletState.UNLOCKED:
            steps.append("already_unlocked")
            done = True

        else:
            steps.append("unknown_state_trying_import")
            try:
                await self.import_wallet(page, credentials)
                steps.append("import_attempted")
                done = True
            except (WalletSetupError, PlaywrightError) as e:
                logger.warning("Import attempt from unknown state failed: %s", e)
                steps.append("import_failed")

        await self.open(page, ExtensionPage.HOME)
        final = await detect_wallet_state(page)
        await self._shot(page, "wallet-init-final")

        result: dict[str, Any] = {
            "success": final == WalletState.UNLOCKED or done,
            "initialState": initial.value,
            "finalState": final.value,
            "steps": steps,
            "passwordGenerated": credentials.password_generated,
            "screenshots": self.screenshots,
        }
        if result["success"]:
            result["message"] = "Wallet initialization completed successfully"
        else:
            result["error"] = "Wallet initialization failed"
            result["hint"] = "Check screenshots for details"
        return result

    async def _reset_and_import(self, page: Page, credentials: WalletCredentials, steps: list[str]) -> None:
        await self.reset_wallet(page)
        steps.append("wallet_reset")
        await self.open(page, ExtensionPage.HOME)
        await self.import_wallet(page, credentials)
        steps.append("imported_wallet_after_reset")


async def initialize_wallet(session: BrowserSession, credentials: WalletCredentials) -> dict[str, Any]:
    """Resolve the extension identity and run :meth:`WalletOnboarding.initialize`."""
    identity = await session.ensure_identity()
    onboarding = WalletOnboarding(session, identity)
    result = await onboarding.initialize(credentials)
    result["extension"] = identity.to_dict()
    return result

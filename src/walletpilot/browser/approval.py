"""Approval flow controller: drive one wallet popup to a terminal state.

A single user intent ("approve") can chain several wallet screens:
connect, then add/switch network, then sign.  The controller clicks the
first affirmative control, checks once more after a settle delay, and then
keeps polling for the popup to close, opportunistically clicking whatever
affirmative control shows up next.

The popup closing is always success, whichever step it happens at.  The
only failures reported are a popup that never appears, a surface that is
not a page of the resolved wallet extension, and (for signing) a transaction the wallet itself
flags as failing.  Structural mistakes (no session, bad timeout) raise.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any, Sequence

from playwright.async_api import Error as PlaywrightError

from walletpilot.browser.actions import ActionDriver
from walletpilot.browser.locators import APPROVE_INTENTS, REJECT_INTENTS, Intent
from walletpilot.browser.popup import PopupListener
from walletpilot.browser.screenshots import try_screenshot
from walletpilot.exceptions import InvalidArgumentError
from walletpilot.models.results import ApprovalOutcome
from walletpilot.models.states import ApprovalState, can_transition
from walletpilot.wallet.popup_kinds import PopupKind, approve_intents_for, classify_popup

if TYPE_CHECKING:
    from playwright.async_api import Page

    from walletpilot.browser.session import BrowserSession

logger = logging.getLogger(__name__)

NO_POPUP_ERROR = "No popup window detected within timeout"
NO_POPUP_HINT = "Make sure you clicked Connect Wallet button first"
NOT_EXTENSION_ERROR = "Popup is not a Chrome extension"
BLANK_URLS = ("", "about:blank")


def validate_timeout(timeout_ms: Any, default: int) -> int:
    """Return a positive millisecond timeout, or raise ``InvalidArgumentError``."""
    if timeout_ms is None:
        return default
    if isinstance(timeout_ms, bool):
        raise InvalidArgumentError(f"Invalid timeout: {timeout_ms!r}")
    try:
        value = int(timeout_ms)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"Invalid timeout: {timeout_ms!r}") from None
    if value <= 0:
        raise InvalidArgumentError(f"Timeout must be a positive number of milliseconds, got {timeout_ms!r}")
    return value


class ApprovalFlow:
    """Discovers the wallet popup and drives it to ``closed`` or ``timed_out``.

    Args:
        session: Live browser session (required for every operation).
        listener: Popup listener; created lazily from the session's context.
        driver: Action driver; built from approval settings by default.
    """

    def __init__(
        self,
        session: BrowserSession,
        listener: PopupListener | None = None,
        driver: ActionDriver | None = None,
    ) -> None:
        self.session = session
        self.approval = session.settings.approval
        self.output = session.settings.output
        self.driver = driver or ActionDriver.from_settings(self.approval)
        self._listener = listener

    @property
    def listener(self) -> PopupListener:
        if self._listener is None:
            wallet = self.session.settings.wallet
            self._listener = PopupListener(self.session.context, wallet.extension_scheme, wallet.popup_url_markers)
        return self._listener

    # ------------------------------------------------------------------
    # Public flows
    # ------------------------------------------------------------------

    async def approve(self, timeout_ms: int | None = None, intents: Sequence[Intent] = APPROVE_INTENTS) -> ApprovalOutcome:
        """Wait for the popup and approve every step until it closes."""
        timeout = validate_timeout(timeout_ms, self.approval.timeout_ms)
        outcome = ApprovalOutcome()
        popup = await self._discover(outcome, timeout)
        if popup is not None:
            await self._drive(outcome, popup, intents)
        await self._finish(outcome)
        return outcome

    async def reject(self, timeout_ms: int | None = None) -> ApprovalOutcome:
        """Wait for the popup and press its reject/cancel control once."""
        timeout = validate_timeout(timeout_ms, self.approval.reject_timeout_ms)
        outcome = ApprovalOutcome(action="reject")
        popup = await self._discover(outcome, timeout)
        if popup is not None:
            await self._shot(outcome, popup, "wallet-popup-reject")
            await self._reject_and_wait(outcome, popup)
        await self._finish(outcome)
        return outcome

    async def sign(self, timeout_ms: int | None = None) -> ApprovalOutcome:
        """Classify the popup, refuse failing transactions, approve the rest."""
        timeout = validate_timeout(timeout_ms, self.approval.timeout_ms)
        outcome = ApprovalOutcome()
        popup = await self._discover(outcome, timeout)
        if popup is None:
            await self._finish(outcome)
            return outcome

        info = await classify_popup(popup)
        outcome.details = info.to_dict()

        if info.kind == PopupKind.TRANSACTION and info.has_error:
            logger.warning("Transaction popup shows an error (%s); rejecting", info.error_text)
            await self._shot(outcome, popup, "wallet-popup-gas-error")
            outcome.test_failed = True
            outcome.error = "insufficient_gas"
            outcome.error_text = info.error_text or ""
            await self._reject_and_wait(outcome, popup)
        else:
            await self._drive(outcome, popup, approve_intents_for(info.kind))
        await self._finish(outcome)
        return outcome

    async def check(self, timeout_ms: int | None = None) -> dict[str, Any]:
        """Report whether a popup is present and what it asks for; no clicks."""
        timeout = validate_timeout(timeout_ms, self.approval.check_timeout_ms)
        outcome = ApprovalOutcome()
        popup = await self._discover(outcome, timeout)
        if popup is None:
            if outcome.state == ApprovalState.NOT_EXTENSION:
                return outcome.to_dict()
            if not outcome.popup_found:
                return {"success": True, "hasPopup": False, "message": "No wallet popup detected"}
            return {"success": True, "hasPopup": True, "popupClosed": True, "url": outcome.url}

        info = await classify_popup(popup)
        screenshot = await try_screenshot(popup, self.output, "wallet-popup-check")
        return {
            "success": True,
            "hasPopup": True,
            "popupType": info.kind.value,
            "details": info.to_dict(),
            "url": outcome.url,
            "screenshot": screenshot,
            "message": f"Wallet popup detected: {info.kind.value}",
        }

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _discover(self, outcome: ApprovalOutcome, timeout_ms: int) -> Page | None:
        """Find the popup; returns it only when it is open and owned by the wallet extension."""
        context = self.session.context
        popup = await self.listener.consume_pending_or_wait(timeout_ms)
        if popup is None:
            self._advance(outcome, ApprovalState.TIMED_OUT)
            outcome.error = NO_POPUP_ERROR
            outcome.hint = NO_POPUP_HINT
            outcome.page_count = len(context.pages)
            return None

        outcome.popup_found = True
        outcome.url = popup.url
        self._advance(outcome, ApprovalState.POPUP_OPENED)
        if self._closed(outcome, popup):
            return None

        with contextlib.suppress(PlaywrightError):
            await popup.wait_for_load_state("domcontentloaded", timeout=self.approval.click_timeout_ms)
        await asyncio.sleep(self.approval.load_settle_ms / 1000)
        if self._closed(outcome, popup):
            return None
        if popup.url in BLANK_URLS:
            # Extension popups can open blank and navigate a moment later.
            with contextlib.suppress(PlaywrightError):
                await popup.wait_for_url(lambda url: url not in BLANK_URLS, timeout=self.approval.click_timeout_ms)
            if self._closed(outcome, popup):
                return None
        outcome.url = popup.url

        identity = await self.session.ensure_identity()
        if not identity.owns(outcome.url):
            logger.warning("Popup %s does not belong to extension %s; not clicking", outcome.url, identity.extension_id)
            self._advance(outcome, ApprovalState.NOT_EXTENSION)
            outcome.error = NOT_EXTENSION_ERROR
            return None
        return popup

    async def _drive(self, outcome: ApprovalOutcome, popup: Page, intents: Sequence[Intent]) -> None:
        await self._shot(outcome, popup, "wallet-popup")

        first = await self.driver.perform_action(popup, intents, retries=self.approval.action_retries)
        outcome.steps.append(first)
        self._advance(outcome, ApprovalState.FIRST_APPROVAL_ATTEMPTED)
        if self._closed(outcome, popup):
            return

        await asyncio.sleep(self.approval.settle_ms / 1000)
        self._advance(outcome, ApprovalState.ADDITIONAL_APPROVAL_CHECK)
        if self._closed(outcome, popup):
            return
        followup = await self.driver.perform_action(popup, intents, retries=self.approval.followup_retries)
        outcome.steps.append(followup)
        if self._closed(outcome, popup):
            return

        await self._shot(outcome, popup, "wallet-popup-after-approve")
        self._advance(outcome, ApprovalState.AWAITING_CLOSE)
        await self._poll_until_closed(outcome, popup, intents)

    async def _reject_and_wait(self, outcome: ApprovalOutcome, popup: Page) -> None:
        step = await self.driver.perform_action(popup, REJECT_INTENTS, retries=self.approval.action_retries)
        outcome.steps.append(step)
        self._advance(outcome, ApprovalState.FIRST_APPROVAL_ATTEMPTED)
        if self._closed(outcome, popup):
            return
        self._advance(outcome, ApprovalState.ADDITIONAL_APPROVAL_CHECK)
        self._advance(outcome, ApprovalState.AWAITING_CLOSE)
        await self._poll_until_closed(outcome, popup, ())

    async def _poll_until_closed(self, outcome: ApprovalOutcome, popup: Page, intents: Sequence[Intent]) -> None:
        """Poll for the popup to close; click any next-step control seen meanwhile."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.approval.close_wait_ms / 1000
        while loop.time() < deadline:
            await asyncio.sleep(self.approval.poll_interval_ms / 1000)
            if self._closed(outcome, popup):
                return
            if intents:
                step = await self.driver.perform_action(popup, intents, retries=1)
                if step.success and not step.surface_closed:
                    outcome.steps.append(step)
                if self._closed(outcome, popup):
                    return

        logger.info("Popup still open after %dms", self.approval.close_wait_ms)
        self._advance(outcome, ApprovalState.TIMED_OUT)

    async def _finish(self, outcome: ApprovalOutcome) -> None:
        """Capture the primary page once the popup is gone."""
        if outcome.state != ApprovalState.CLOSED:
            return
        await asyncio.sleep(self.approval.post_click_ms / 1000)
        await self._shot(outcome, self.session.primary_page, f"after-wallet-{outcome.action}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _shot(self, outcome: ApprovalOutcome, page: Page, name: str) -> None:
        path = await try_screenshot(page, self.output, name)
        if path:
            outcome.screenshots.append(path)

    def _closed(self, outcome: ApprovalOutcome, popup: Page) -> bool:
        if not popup.is_closed():
            return False
        outcome.popup_closed = True
        self._advance(outcome, ApprovalState.CLOSED)
        return True

    def _advance(self, outcome: ApprovalOutcome, target: ApprovalState) -> None:
        if outcome.state == target:
            return
        if not can_transition(outcome.state, target):
            logger.debug("Ignoring approval transition %s -> %s", outcome.state.value, target.value)
            return
        logger.debug("Approval state %s -> %s", outcome.state.value, target.value)
        outcome.state = target


"""Action driver: one logical UI action through an ordered intent fallback chain.

Translates "click the approve button" into real Playwright interactions
against whichever intent is usable right now.  Transient UI problems (not
yet visible, overlay intercepting the click) are absorbed by a bounded retry
loop; exhausting it yields a failed ``ActionResult`` rather than an
exception, so the caller can fall back to another strategy (e.g. a
coordinate click).
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from typing import TYPE_CHECKING, Sequence

from playwright.async_api import Error as PlaywrightError

from walletpilot.browser.locators import Intent, select_intent
from walletpilot.exceptions import InvalidArgumentError
from walletpilot.models.results import ActionKind, ActionResult

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page

    from walletpilot.settings.config import ApprovalSettings

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 3
DEFAULT_BACKOFF_MS = 500
DEFAULT_CLICK_TIMEOUT_MS = 5_000


class ActionDriver:
    """Performs click/fill actions using the first ready intent.

    Args:
        retries: Default number of attempts per action.
        backoff_ms: Sleep between attempts.
        click_timeout_ms: Bound on each individual click/fill/scroll.
    """

    def __init__(
        self,
        *,
        retries: int = DEFAULT_RETRIES,
        backoff_ms: int = DEFAULT_BACKOFF_MS,
        click_timeout_ms: int = DEFAULT_CLICK_TIMEOUT_MS,
    ) -> None:
        self.retries = retries
        self.backoff_ms = backoff_ms
        self.click_timeout_ms = click_timeout_ms

    @classmethod
    def from_settings(cls, approval: ApprovalSettings) -> "ActionDriver":
        return cls(
            retries=approval.action_retries,
            backoff_ms=approval.retry_backoff_ms,
            click_timeout_ms=approval.click_timeout_ms,
        )

    async def perform_action(
        self,
        surface: Page,
        intents: Sequence[Intent],
        *,
        kind: ActionKind = ActionKind.CLICK,
        value: str | None = None,
        retries: int | None = None,
    ) -> ActionResult:
        """Run one action against *surface* using the first ready intent.

        Args:
            surface: Page or popup to act on.
            intents: Synonymous ways to find the same control, in priority order.
            kind: Click or fill.
            value: Text to fill (required for ``ActionKind.FILL``).
            retries: Attempt budget; defaults to the driver's.

        Returns:
            An ``ActionResult``.  A surface found closed at the start of an
            attempt counts as success (the action's effect already happened).
        """
        if kind == ActionKind.FILL and value is None:
            raise InvalidArgumentError("A value is required for fill actions")
        if not intents:
            raise InvalidArgumentError("At least one locator intent is required")

        budget = retries if retries is not None else self.retries
        last_error = ""

        for attempt in range(1, budget + 1):
            if surface.is_closed():
                logger.debug("Surface already closed on attempt %d; treating %s as done", attempt, kind.value)
                return ActionResult(success=True, action=kind, attempts=attempt, surface_closed=True)

            match = await select_intent(intents, functools.partial(self._is_ready, surface))
            if match is not None:
                index, intent = match
                try:
                    forced = await self._apply(intent.locate(surface), kind, value)
                except PlaywrightError as e:
                    last_error = str(e).splitlines()[0]
                    if surface.is_closed():
                        return ActionResult(success=True, action=kind, attempts=attempt, surface_closed=True)
                    logger.debug("%s via %s failed: %s", kind.value, intent.describe(), last_error)
                else:
                    logger.info("%s succeeded via %s (intent #%d, attempt %d)", kind.value, intent.describe(), index, attempt)
                    return ActionResult(
                        success=True,
                        action=kind,
                        strategy=intent.strategy.value,
                        selector=intent.selector,
                        attempts=attempt,
                        forced=forced,
                    )

            if attempt < budget:
                await asyncio.sleep(self.backoff_ms / 1000)

        logger.info("%s found no usable control after %d attempt(s)", kind.value, budget)
        return ActionResult(
            success=False,
            action=kind,
            attempts=budget,
            error=last_error or "No matching control was present, visible and enabled",
        )

    async def click_with_fallback(
        self,
        surface: Page,
        intents: Sequence[Intent],
        fallback: tuple[int, int] | None = None,
    ) -> ActionResult:
        """Click the first ready intent, else the *fallback* page coordinates.

        Raises:
            InvalidArgumentError: If there are neither intents nor coordinates.
        """
        if not intents and fallback is None:
            raise InvalidArgumentError("A text, a CSS selector or fallback coordinates are required")

        attempts = 0
        if intents:
            result = await self.perform_action(surface, intents)
            if result.success or fallback is None:
                return result
            attempts = result.attempts

        x, y = fallback
        logger.info("No locator intent matched; clicking fallback coordinates (%d, %d)", x, y)
        await surface.mouse.click(x, y)
        return ActionResult(success=True, strategy="coordinates", attempts=attempts, coordinates=(x, y))

    async def _is_ready(self, surface: Page, intent: Intent) -> bool:
        """True when the intent's control exists, is visible and is enabled."""
        locator = intent.locate(surface)
        try:
            if await locator.count() == 0:
                return False
            return await locator.is_visible() and await locator.is_enabled()
        except PlaywrightError:
            return False

    async def _apply(self, locator: Locator, kind: ActionKind, value: str | None) -> bool:
        """Perform the action; returns True if a forced click was needed."""
        with contextlib.suppress(PlaywrightError):
            await locator.scroll_into_view_if_needed(timeout=self.click_timeout_ms)

        if kind == ActionKind.FILL:
            await locator.fill(value or "", timeout=self.click_timeout_ms)
            return False

        try:
            await locator.click(timeout=self.click_timeout_ms)
            return False
        except PlaywrightError as e:
            # Overlays and animations commonly intercept the pointer.
            logger.debug("Direct click failed (%s); retrying with force", str(e).splitlines()[0])
            await locator.click(timeout=self.click_timeout_ms, force=True)
            return True

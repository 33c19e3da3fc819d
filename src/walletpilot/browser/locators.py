"""Typed locator intents and first-match selection.

An *intent* is one way of finding a logical control ("the approve
button").  Wallet UIs differ across versions and languages, so callers pass
an ordered list of synonymous intents and the driver uses the first one
that is actually usable on the page.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Sequence

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page


class LocatorStrategy(str, Enum):
    """How an intent's ``value`` is turned into a Playwright selector."""

    TEXT = "text"  # button whose text contains value
    ROLE = "role"  # ARIA button with accessible name value
    TEST_ID = "test_id"  # [data-testid=value]
    CSS = "css"  # raw CSS / Playwright selector


@dataclass(frozen=True)
class Intent:
    """One (strategy, value) candidate for a logical control."""

    strategy: LocatorStrategy
    value: str

    @property
    def selector(self) -> str:
        """Render the intent as a single Playwright selector string."""
        quoted = json.dumps(self.value, ensure_ascii=False)
        if self.strategy == LocatorStrategy.TEXT:
            return f"button:has-text({quoted})"
        if self.strategy == LocatorStrategy.ROLE:
            return f"role=button[name={quoted}]"
        if self.strategy == LocatorStrategy.TEST_ID:
            return f"[data-testid={quoted}]"
        return self.value

    def locate(self, surface: Page) -> Locator:
        return surface.locator(self.selector).first

    def describe(self) -> str:
        return f"{self.strategy.value}={self.value}"


def by_text(value: str) -> Intent:
    return Intent(LocatorStrategy.TEXT, value)


def by_role(value: str) -> Intent:
    return Intent(LocatorStrategy.ROLE, value)


def by_test_id(value: str) -> Intent:
    return Intent(LocatorStrategy.TEST_ID, value)


def by_css(value: str) -> Intent:
    return Intent(LocatorStrategy.CSS, value)


async def select_intent(
    intents: Sequence[Intent],
    is_ready: Callable[[Intent], Awaitable[bool]],
) -> tuple[int, Intent] | None:
    """Return ``(index, intent)`` for the first intent *is_ready* accepts.

    Intents are probed strictly in order and probing stops at the first
    match, so a later intent is never chosen while an earlier one is usable.
    """
    for index, intent in enumerate(intents):
        if await is_ready(intent):
            return index, intent
    return None


def click_intents(text: str | None = None, css: str | None = None) -> tuple[Intent, ...]:
    """Intents for a dApp control named by visible text and/or CSS; text first."""
    intents: list[Intent] = []
    if text:
        intents += [by_text(text), by_role(text), by_css(f"text={text}")]
    if css:
        intents.append(by_css(css))
    return tuple(intents)


# ---------------------------------------------------------------------------
# Intent catalogs
# ---------------------------------------------------------------------------

# Affirmative action on connect / add-network / sign / transaction screens.
APPROVE_INTENTS: tuple[Intent, ...] = (
    by_test_id("confirm-footer-button"),
    by_test_id("confirm-btn"),
    by_test_id("page-container-footer-next"),
    by_test_id("signature-request-scroll-button"),
    by_text("Connect"),
    by_text("Confirm"),
    by_text("Approve"),
    by_text("Sign"),
    by_text("Allow"),
    by_text("Add network"),
    by_text("Switch network"),
    by_text("确认"),
    by_text("连接"),
    by_text("签名"),
    by_text("允许"),
    by_css(".ant-btn-primary"),
    by_css('button[type="submit"]'),
)

REJECT_INTENTS: tuple[Intent, ...] = (
    by_test_id("confirm-footer-cancel-button"),
    by_test_id("page-container-footer-cancel"),
    by_text("Reject"),
    by_text("Cancel"),
    by_text("拒绝"),
    by_text("取消"),
)

UNLOCK_INTENTS: tuple[Intent, ...] = (
    by_text("Unlock"),
    by_text("解锁"),
    by_css('button[type="submit"]'),
    by_css(".ant-btn-primary"),
)

CONFIRM_INTENTS: tuple[Intent, ...] = (
    by_text("Confirm"),
    by_text("Next"),
    by_text("Import"),
    by_css('button[type="submit"]'),
    by_css(".ant-btn-primary"),
)

GUIDE_IMPORT_INTENTS: tuple[Intent, ...] = (
    by_css("text=Import an address"),
    by_css("text=Import"),
    by_text("Import"),
    by_css('[class*="import"]'),
)

PRIVATE_KEY_INPUT_INTENTS: tuple[Intent, ...] = (
    by_css('textarea[placeholder*="private" i]'),
    by_css("textarea"),
    by_css('input[type="text"][placeholder*="private" i]'),
    by_css('input[type="password"]'),
)

FORGOT_PASSWORD_INTENTS: tuple[Intent, ...] = (
    by_css("text=Forgot Password"),
    by_css("text=Forgot password"),
    by_css('a:has-text("Forgot")'),
    by_css('[class*="forgot"]'),
)

RESET_CONFIRM_INTENTS: tuple[Intent, ...] = (
    by_text("Reset"),
    by_text("Confirm"),
    by_text("I understand"),
    by_text("Continue"),
    by_css(".ant-btn-primary"),
    by_css(".ant-btn-danger"),
)
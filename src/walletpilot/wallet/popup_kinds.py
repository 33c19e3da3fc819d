"""Classify a wallet popup by its visible text.

Used by the sign flow to pick kind-specific buttons and to refuse
transactions the wallet already flags as failing (insufficient gas,
reverted estimation) instead of blindly confirming them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from playwright.async_api import Error as PlaywrightError

from walletpilot.browser.locators import APPROVE_INTENTS, Intent, by_test_id, by_text

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)


class PopupKind(str, Enum):
    SIGNATURE = "signature"
    TRANSACTION = "transaction"
    CONNECT = "connect"
    UNKNOWN = "unknown"
    ERROR = "error"


SIGNATURE_INDICATORS: tuple[str, ...] = (
    "Signature request",
    "Sign message",
    "personal_sign",
    "Sign typed data",
    "signTypedData",
    "eth_signTypedData",
    "Message:",
    "Sign this message",
    "Sign Text",
    "签名",
)

TRANSACTION_INDICATORS: tuple[str, ...] = (
    "Gas fee",
    "Estimated gas",
    "Max fee",
    "Total",
    "Amount",
    "Send",
    "Confirm transaction",
    "Contract interaction",
    "Sign and Create",
)

TRANSACTION_ERROR_INDICATORS: tuple[str, ...] = (
    "Insufficient funds",
    "insufficient funds",
    "Insufficient balance",
    "not enough",
    "gas required exceeds",
    "cannot estimate gas",
    "execution reverted",
    "Error",
)

CONNECT_INDICATORS: tuple[str, ...] = (
    "Connect to this site",
    "Connect to Dapp",
    "Connect request",
    "wants to connect",
)

_KIND_APPROVE_INTENTS: dict[PopupKind, tuple[Intent, ...]] = {
    PopupKind.SIGNATURE: (
        by_test_id("confirm-footer-button"),
        by_test_id("signature-request-scroll-button"),
        by_text("Sign"),
        by_text("Confirm"),
    ),
    PopupKind.TRANSACTION: (
        by_test_id("confirm-footer-button"),
        by_test_id("page-container-footer-next"),
        by_text("Sign"),
        by_text("Confirm"),
        by_text("Approve"),
    ),
    PopupKind.CONNECT: (
        by_test_id("confirm-btn"),
        by_text("Connect"),
    ),
}


@dataclass(frozen=True)
class PopupInfo:
    """What kind of request a popup shows."""

    kind: PopupKind
    subtype: str | None = None
    has_error: bool = False
    error_text: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind.value, "hasError": self.has_error}
        if self.subtype:
            data["subtype"] = self.subtype
        if self.error_text:
            data["errorText"] = self.error_text
        return data


def classify_text(text: str) -> PopupInfo:
    """Classify popup body text; error indicators win over everything else."""
    for indicator in TRANSACTION_ERROR_INDICATORS:
        if indicator in text:
            return PopupInfo(PopupKind.TRANSACTION, subtype="insufficient_gas", has_error=True, error_text=indicator)

    for indicator in SIGNATURE_INDICATORS:
        if indicator in text:
            typed = "signTypedData" in text or "typed data" in text
            return PopupInfo(PopupKind.SIGNATURE, subtype="signTypedData_v4" if typed else "personal_sign")

    if any(indicator in text for indicator in TRANSACTION_INDICATORS):
        return PopupInfo(PopupKind.TRANSACTION)
    if any(indicator in text for indicator in CONNECT_INDICATORS):
        return PopupInfo(PopupKind.CONNECT)
    return PopupInfo(PopupKind.UNKNOWN)


async def classify_popup(page: Page) -> PopupInfo:
    """Read the popup's visible text and classify it."""
    try:
        text = await page.evaluate("() => document.body ? document.body.innerText : ''")
    except PlaywrightError as e:
        logger.debug("Popup classification failed: %s", e)
        return PopupInfo(PopupKind.ERROR, has_error=True, error_text=str(e).splitlines()[0])
    info = classify_text(text or "")
    logger.info("Popup classified as %s%s", info.kind.value, " (error)" if info.has_error else "")
    return info


def approve_intents_for(kind: PopupKind) -> tuple[Intent, ...]:
    """Kind-specific approve intents first, then the generic catalog."""
    specific = _KIND_APPROVE_INTENTS.get(kind, ())
    return specific + tuple(intent for intent in APPROVE_INTENTS if intent not in specific)

"""Resilient page navigation with automatic wait-strategy fallback.

Dapp front-ends frequently never reach ``networkidle`` (RPC polling,
websocket price feeds, analytics beacons).  This module wraps Playwright's
``page.goto`` / ``page.reload`` with a fallback chain: try the preferred
strategy first, then progressively weaker ones on timeout.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from walletpilot.exceptions import NavigationError

if TYPE_CHECKING:
    from playwright.async_api import Page, Response

logger = logging.getLogger(__name__)

# Playwright error substrings that indicate non-retryable navigation failures.
_NON_RETRYABLE_ERRORS: tuple[str, ...] = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_CONNECTION_REFUSED",
    "ERR_CONNECTION_RESET",
    "ERR_CONNECTION_CLOSED",
    "ERR_SSL_PROTOCOL_ERROR",
    "ERR_CERT_AUTHORITY_INVALID",
    "ERR_CERT_COMMON_NAME_INVALID",
    "ERR_ADDRESS_UNREACHABLE",
    "ERR_FILE_NOT_FOUND",
)

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]

_FALLBACK_STRATEGY: list[WaitUntil] = ["networkidle", "load", "domcontentloaded"]


def _non_retryable_reason(error_msg: str) -> str | None:
    for pattern in _NON_RETRYABLE_ERRORS:
        if pattern in error_msg:
            return pattern.replace("ERR_", "").replace("_", " ").lower()
    return None


async def resilient_goto(
    page: Page,
    url: str,
    *,
    timeout_ms: int = 30_000,
    wait_until: WaitUntil = "networkidle",
) -> Response | None:
    """Navigate to *url* with automatic wait-strategy fallback.

    Args:
        page: Playwright page instance.
        url: Target URL to navigate to.
        timeout_ms: Timeout per attempt in milliseconds.
        wait_until: Preferred initial wait strategy.

    Returns:
        The main-frame ``Response``, or ``None`` (e.g. extension pages).

    Raises:
        NavigationError: On DNS, connection or certificate failures.
        PlaywrightTimeout: If every strategy in the chain times out.
    """
    last_error: PlaywrightTimeout | None = None
    for strategy in _build_fallback_chain(wait_until):
        try:
            logger.debug("goto %s (wait_until=%s, timeout=%dms)", url, strategy, timeout_ms)
            return await page.goto(url, wait_until=strategy, timeout=timeout_ms)
        except PlaywrightTimeout as exc:
            logger.warning("Navigation to %s timed out with wait_until=%s; retrying with weaker strategy", url, strategy)
            last_error = exc
        except PlaywrightError as exc:
            reason = _non_retryable_reason(str(exc))
            if reason is None:
                raise
            logger.warning("Navigation to %s failed (non-retryable): %s", url, reason)
            raise NavigationError(url, reason) from exc

    raise last_error  # type: ignore[misc]


async def resilient_reload(
    page: Page,
    *,
    timeout_ms: int = 15_000,
    wait_until: WaitUntil = "networkidle",
) -> Response | None:
    """Reload the current page; same fallback logic as :func:`resilient_goto`."""
    last_error: PlaywrightTimeout | None = None
    for strategy in _build_fallback_chain(wait_until):
        try:
            logger.debug("reload (wait_until=%s, timeout=%dms)", strategy, timeout_ms)
            return await page.reload(wait_until=strategy, timeout=timeout_ms)
        except PlaywrightTimeout as exc:
            logger.warning("Reload timed out with wait_until=%s; retrying with weaker strategy", strategy)
            last_error = exc
        except PlaywrightError as exc:
            reason = _non_retryable_reason(str(exc))
            if reason is None:
                raise
            raise NavigationError(page.url, reason) from exc

    raise last_error  # type: ignore[misc]


def _build_fallback_chain(preferred: WaitUntil) -> list[WaitUntil]:
    """Return the fallback chain starting from *preferred*.

    If *preferred* is in the default chain, returns from that point onward.
    Otherwise returns ``[preferred]`` followed by the full default chain.
    """
    if preferred in _FALLBACK_STRATEGY:
        idx = _FALLBACK_STRATEGY.index(preferred)
        return _FALLBACK_STRATEGY[idx:]
    return [preferred, *_FALLBACK_STRATEGY]

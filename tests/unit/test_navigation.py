"""Unit tests for walletpilot.browser.navigation: resilient goto / reload."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from walletpilot.browser.navigation import (
    _build_fallback_chain,
    _non_retryable_reason,
    resilient_goto,
    resilient_reload,
)
from walletpilot.exceptions import NavigationError


# ---------------------------------------------------------------------------
# _build_fallback_chain
# ---------------------------------------------------------------------------

class TestBuildFallbackChain:
    """Tests for the internal fallback-chain builder."""

    def test_networkidle_produces_full_chain(self) -> None:
        assert _build_fallback_chain("networkidle") == ["networkidle", "load", "domcontentloaded"]

    def test_load_skips_networkidle(self) -> None:
        assert _build_fallback_chain("load") == ["load", "domcontentloaded"]

    def test_domcontentloaded_is_terminal(self) -> None:
        assert _build_fallback_chain("domcontentloaded") == ["domcontentloaded"]

    def test_unknown_strategy_prepends_to_chain(self) -> None:
        chain = _build_fallback_chain("commit")
        assert chain[0] == "commit"
        assert "networkidle" in chain


class TestNonRetryableReason:
    def test_dns_failure(self) -> None:
        assert _non_retryable_reason("net::ERR_NAME_NOT_RESOLVED at https://x") == "name not resolved"

    def test_other_errors_are_retryable(self) -> None:
        assert _non_retryable_reason("Target closed") is None


# ---------------------------------------------------------------------------
# resilient_goto
# ---------------------------------------------------------------------------

class TestResilientGoto:
    """Tests for resilient_goto."""

    async def test_success_on_first_try(self) -> None:
        """Returns immediately when networkidle succeeds."""
        page = MagicMock()
        sentinel = MagicMock(name="response")
        page.goto = AsyncMock(return_value=sentinel)

        result = await resilient_goto(page, "https://example.com", timeout_ms=5000)

        assert result is sentinel
        page.goto.assert_awaited_once_with("https://example.com", wait_until="networkidle", timeout=5000)

    async def test_fallback_to_load_on_timeout(self) -> None:
        """Falls back to 'load' when 'networkidle' times out."""
        page = MagicMock()
        sentinel = MagicMock(name="response")
        page.goto = AsyncMock(side_effect=[PlaywrightTimeout("timeout"), sentinel])

        result = await resilient_goto(page, "https://example.com", timeout_ms=5000)

        assert result is sentinel
        assert page.goto.await_count == 2
        page.goto.assert_any_await("https://example.com", wait_until="load", timeout=5000)

    async def test_raises_when_all_strategies_fail(self) -> None:
        page = MagicMock()
        page.goto = AsyncMock(side_effect=PlaywrightTimeout("all failed"))

        with pytest.raises(PlaywrightTimeout):
            await resilient_goto(page, "https://example.com")

        assert page.goto.await_count == 3

    async def test_dns_failure_is_not_retried(self) -> None:
        page = MagicMock()
        page.goto = AsyncMock(side_effect=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))

        with pytest.raises(NavigationError) as exc_info:
            await resilient_goto(page, "https://nowhere.invalid")

        assert exc_info.value.url == "https://nowhere.invalid"
        assert exc_info.value.reason == "name not resolved"
        page.goto.assert_awaited_once()

    async def test_other_playwright_errors_propagate(self) -> None:
        page = MagicMock()
        page.goto = AsyncMock(side_effect=PlaywrightError("Target page, context or browser has been closed"))

        with pytest.raises(PlaywrightError):
            await resilient_goto(page, "https://example.com")

    async def test_custom_wait_until(self) -> None:
        page = MagicMock()
        page.goto = AsyncMock(return_value=None)

        await resilient_goto(page, "https://example.com", wait_until="domcontentloaded")

        page.goto.assert_awaited_once_with("https://example.com", wait_until="domcontentloaded", timeout=30_000)


# ---------------------------------------------------------------------------
# resilient_reload
# ---------------------------------------------------------------------------

class TestResilientReload:
    """Tests for resilient_reload."""

    async def test_success_on_first_try(self) -> None:
        page = MagicMock()
        sentinel = MagicMock(name="response")
        page.reload = AsyncMock(return_value=sentinel)

        result = await resilient_reload(page, timeout_ms=10_000)

        assert result is sentinel
        page.reload.assert_awaited_once_with(wait_until="networkidle", timeout=10_000)

    async def test_fallback_on_timeout(self) -> None:
        page = MagicMock()
        page.reload = AsyncMock(side_effect=[PlaywrightTimeout("timeout"), None])

        await resilient_reload(page, timeout_ms=10_000)

        assert page.reload.await_count == 2

"""Unit tests for walletpilot.browser.extension: identity resolution and page URLs."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from walletpilot.browser.extension import (
    ExtensionIdentity,
    ExtensionPage,
    build_identity,
    extension_id_from_url,
    fallback_identity,
    identity_from_pages,
    resolve_extension_identity,
)
from walletpilot.exceptions import InvalidArgumentError

EXT_ID = "abcdefghijklmnopabcdefghijklmnop"


def _context(*, workers=(), pages=(), listing=None, worker_event=None) -> MagicMock:
    context = MagicMock()
    context.service_workers = [MagicMock(url=url) for url in workers]
    context.pages = [MagicMock(url=url) for url in pages]
    if worker_event is None:
        context.wait_for_event = AsyncMock(side_effect=PlaywrightTimeout("Timeout 50ms exceeded"))
    else:
        context.wait_for_event = AsyncMock(return_value=MagicMock(url=worker_event))
    listing_page = MagicMock()
    listing_page.goto = AsyncMock()
    listing_page.wait_for_timeout = AsyncMock()
    listing_page.evaluate = AsyncMock(return_value=listing or [])
    listing_page.close = AsyncMock()
    context.new_page = AsyncMock(return_value=listing_page)
    return context


# ---------------------------------------------------------------------------
# Identity helpers
# ---------------------------------------------------------------------------


class TestExtensionIdentity:
    def test_url_for_known_pages(self, settings) -> None:
        identity = build_identity(EXT_ID, settings.wallet, verified=True, source="test")
        assert identity.url_for(ExtensionPage.POPUP) == f"chrome-extension://{EXT_ID}/popup.html"
        assert identity.url_for(ExtensionPage.IMPORT_PRIVATE_KEY) == (
            f"chrome-extension://{EXT_ID}/index.html#/new-user/import/private-key"
        )

    def test_url_for_unconfigured_page_raises(self) -> None:
        identity = ExtensionIdentity(EXT_ID)
        with pytest.raises(InvalidArgumentError):
            identity.url_for(ExtensionPage.HOME)

    def test_owns(self) -> None:
        identity = ExtensionIdentity(EXT_ID)
        assert identity.owns(f"chrome-extension://{EXT_ID}/notification.html")
        assert not identity.owns("chrome-extension://otherid/notification.html")

    def test_to_dict(self) -> None:
        identity = ExtensionIdentity(EXT_ID, verified=False, source="fallback")
        assert identity.to_dict() == {"extensionId": EXT_ID, "verified": False, "source": "fallback"}

    def test_extension_id_from_url(self) -> None:
        assert extension_id_from_url(f"chrome-extension://{EXT_ID}/background.js") == EXT_ID
        assert extension_id_from_url("https://example.com/") is None

    def test_fallback_prefers_recorded_id(self, settings) -> None:
        recorded = fallback_identity(settings.wallet, "recordedid")
        assert recorded.extension_id == "recordedid"
        assert recorded.verified is False
        assert recorded.source == "recorded"

        default = fallback_identity(settings.wallet)
        assert default.extension_id == settings.wallet.fallback_extension_id
        assert default.source == "fallback"

    def test_identity_from_pages(self, settings) -> None:
        context = _context(pages=["https://dapp.example/", f"chrome-extension://{EXT_ID}/index.html"])
        identity = identity_from_pages(context, settings.wallet)
        assert identity is not None
        assert identity.extension_id == EXT_ID
        assert identity.verified is True


# ---------------------------------------------------------------------------
# resolve_extension_identity
# ---------------------------------------------------------------------------


class TestResolveExtensionIdentity:
    async def test_registered_service_worker(self, settings) -> None:
        context = _context(workers=[f"chrome-extension://{EXT_ID}/background.js"])

        identity = await resolve_extension_identity(context, settings.wallet)

        assert identity.extension_id == EXT_ID
        assert identity.source == "service_worker"
        context.wait_for_event.assert_not_awaited()

    async def test_service_worker_observed_while_waiting(self, settings) -> None:
        context = _context(worker_event=f"chrome-extension://{EXT_ID}/background.js")

        identity = await resolve_extension_identity(context, settings.wallet)

        assert identity.extension_id == EXT_ID
        assert identity.verified is True

    async def test_open_page_strategy(self, settings) -> None:
        context = _context(pages=[f"chrome-extension://{EXT_ID}/popup.html"])

        identity = await resolve_extension_identity(context, settings.wallet)

        assert identity.source == "open_page"

    async def test_extensions_listing_matches_by_name(self, settings) -> None:
        listing = [{"id": "firstid", "name": "Other"}, {"id": EXT_ID, "name": "Rabby Wallet"}]
        context = _context(listing=listing)

        identity = await resolve_extension_identity(context, settings.wallet)

        assert identity.extension_id == EXT_ID
        assert identity.source == "extensions_listing"
        context.new_page.return_value.close.assert_awaited_once()

    async def test_fallback_is_unverified(self, settings) -> None:
        identity = await resolve_extension_identity(_context(), settings.wallet)

        assert identity.verified is False
        assert identity.extension_id == settings.wallet.fallback_extension_id

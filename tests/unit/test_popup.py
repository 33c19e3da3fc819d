"""Unit tests for walletpilot.browser.popup.PopupListener."""

from __future__ import annotations

import asyncio

from walletpilot.browser.popup import PopupListener, is_popup_url

POPUP_URL = "chrome-extension://abcdefghijklmnopabcdefghijklmnop/notification.html#/approval"


class TestIsPopupUrl:
    def test_extension_notification_page(self) -> None:
        assert is_popup_url(POPUP_URL) is True

    def test_extension_home_page_is_not_a_popup(self) -> None:
        assert is_popup_url("chrome-extension://abc/index.html") is False

    def test_web_page_with_marker_is_not_a_popup(self) -> None:
        assert is_popup_url("https://dapp.example/popup") is False

    def test_custom_scheme_and_markers(self) -> None:
        assert is_popup_url("moz-extension://abc/confirm.html", "moz-extension", ("confirm",)) is True


# ---------------------------------------------------------------------------
# Subscription management
# ---------------------------------------------------------------------------


class TestArmDisarm:
    async def test_arm_twice_keeps_single_subscription(self, fake_context) -> None:
        listener = PopupListener(fake_context)

        listener.arm()
        listener.arm()

        assert fake_context.listener_count("page") == 1
        assert listener.armed is True

    async def test_disarm_is_idempotent(self, fake_context) -> None:
        listener = PopupListener(fake_context)
        listener.arm()

        listener.disarm()
        listener.disarm()

        assert fake_context.listener_count("page") == 0
        assert listener.armed is False
        assert listener.pending is None

    async def test_armed_listener_captures_page(self, fake_context, make_page) -> None:
        listener = PopupListener(fake_context)
        listener.arm()

        popup = fake_context.open_page(make_page(POPUP_URL))

        assert listener.pending is popup


# ---------------------------------------------------------------------------
# consume_pending_or_wait
# ---------------------------------------------------------------------------


class TestConsume:
    async def test_pending_popup_returned_even_if_closed(self, fake_context, make_page) -> None:
        """A popup that opened and closed before consumption is still reported."""
        listener = PopupListener(fake_context)
        listener.arm()
        popup = fake_context.open_page(make_page(POPUP_URL))
        popup.closed = True

        result = await listener.consume_pending_or_wait(10)

        assert result is popup
        assert listener.armed is False
        assert fake_context.listener_count("page") == 0

    async def test_existing_open_popup_returned(self, fake_context, make_page) -> None:
        popup = make_page(POPUP_URL)
        fake_context.pages.append(popup)
        listener = PopupListener(fake_context)

        assert await listener.consume_pending_or_wait(10) is popup

    async def test_closed_existing_popup_ignored(self, fake_context, make_page) -> None:
        popup = make_page(POPUP_URL)
        popup.closed = True
        fake_context.pages.append(popup)
        listener = PopupListener(fake_context)

        assert await listener.consume_pending_or_wait(10) is None

    async def test_popup_opened_while_waiting(self, fake_context, make_page) -> None:
        listener = PopupListener(fake_context)
        popup = make_page(POPUP_URL)
        asyncio.get_running_loop().call_later(0.01, fake_context.open_page, popup)

        result = await listener.consume_pending_or_wait(1_000)

        assert result is popup
        assert fake_context.listener_count("page") == 0

    async def test_timeout_returns_none_and_cleans_up(self, fake_context) -> None:
        listener = PopupListener(fake_context)
        listener.arm()

        result = await listener.consume_pending_or_wait(20)

        assert result is None
        assert listener.armed is False
        assert fake_context.listener_count("page") == 0

    async def test_any_new_page_counts_as_candidate(self, fake_context, make_page) -> None:
        """Discovery takes whatever page opens; the flow decides if it is an extension page."""
        listener = PopupListener(fake_context)
        page = make_page("https://phish.example/")
        asyncio.get_running_loop().call_later(0.01, fake_context.open_page, page)

        assert await listener.consume_pending_or_wait(1_000) is page

"""Unit tests for walletpilot.browser.interactions."""

from __future__ import annotations

import pytest
from playwright.async_api import Error as PlaywrightError

from walletpilot.browser.interactions import PageAction, PageActionRequest, preview, run_page_action
from walletpilot.exceptions import InvalidArgumentError


# ---------------------------------------------------------------------------
# Element interactions
# ---------------------------------------------------------------------------


class TestElementActions:
    async def test_select(self, make_page, make_control) -> None:
        page = make_page(controls={"#chain": make_control()})

        record = await run_page_action(page, PageAction.SELECT, PageActionRequest(selector="#chain", value="137"))

        assert record == {"success": True, "action": "select", "selector": "#chain", "value": "137"}
        assert page.interactions == [("select", "#chain", "137")]

    @pytest.mark.parametrize("action", [PageAction.CHECK, PageAction.UNCHECK, PageAction.HOVER])
    async def test_selector_only_actions(self, make_page, make_control, action) -> None:
        page = make_page(controls={"#terms": make_control()})

        record = await run_page_action(page, action, PageActionRequest(selector="#terms"))

        assert record["success"] is True
        assert record["action"] == action.value
        assert page.interactions == [(action.value, "#terms", None)]

    async def test_press(self, make_page, make_control) -> None:
        page = make_page(controls={"#search": make_control()})

        record = await run_page_action(page, PageAction.PRESS, PageActionRequest(selector="#search", value="Enter"))

        assert record["key"] == "Enter"
        assert page.interactions == [("press", "#search", "Enter")]

    async def test_missing_selector_rejected(self, make_page) -> None:
        with pytest.raises(InvalidArgumentError, match="Selector required"):
            await run_page_action(make_page(), PageAction.HOVER, PageActionRequest())

    async def test_press_without_key_rejected(self, make_page, make_control) -> None:
        page = make_page(controls={"#search": make_control()})

        with pytest.raises(InvalidArgumentError, match="Key required"):
            await run_page_action(page, PageAction.PRESS, PageActionRequest(selector="#search"))
        assert page.interactions == []

    async def test_missing_element_propagates(self, make_page) -> None:
        with pytest.raises(PlaywrightError):
            await run_page_action(make_page(), PageAction.CHECK, PageActionRequest(selector="#gone"))


# ---------------------------------------------------------------------------
# Page inspection and waits
# ---------------------------------------------------------------------------


class TestInspection:
    async def test_text(self, make_page, make_control) -> None:
        page = make_page(controls={"h1": make_control()}, text="Uniswap Interface")

        record = await run_page_action(page, PageAction.TEXT, PageActionRequest(selector="h1"))

        assert record["text"] == "Uniswap Interface"

    async def test_wait_for_found(self, make_page, make_control) -> None:
        page = make_page(controls={".balance": make_control()})

        record = await run_page_action(page, PageAction.WAIT_FOR, PageActionRequest(selector=".balance"))

        assert record["found"] is True

    async def test_wait_for_missing_times_out(self, make_page) -> None:
        with pytest.raises(PlaywrightError, match="Timeout"):
            await run_page_action(make_page(), PageAction.WAIT_FOR, PageActionRequest(selector=".balance", timeout_ms=10))

    async def test_evaluate(self, make_page) -> None:
        page = make_page()
        page.evaluate_result = "0x89"

        record = await run_page_action(page, PageAction.EVALUATE, PageActionRequest(value="window.ethereum.chainId"))

        assert record == {"success": True, "action": "evaluate", "result": "0x89"}

    async def test_evaluate_without_script_rejected(self, make_page) -> None:
        with pytest.raises(InvalidArgumentError):
            await run_page_action(make_page(), PageAction.EVALUATE, PageActionRequest())

    async def test_wait_defaults_to_one_second(self, make_page) -> None:
        record = await run_page_action(make_page(), PageAction.WAIT, PageActionRequest())
        assert record["waited"] == 1000

    async def test_negative_wait_rejected(self, make_page) -> None:
        with pytest.raises(InvalidArgumentError):
            await run_page_action(make_page(), PageAction.WAIT, PageActionRequest(amount=-5))


# ---------------------------------------------------------------------------
# Raw keyboard and mouse input
# ---------------------------------------------------------------------------


class TestRawInput:
    async def test_type_reports_preview_only(self, make_page) -> None:
        page = make_page()
        text = "vitalik.eth and some more words"

        record = await run_page_action(page, PageAction.TYPE, PageActionRequest(value=text))

        assert page.keyboard.typed == [text]
        assert record["text"] == "vitalik.eth and some..."

    def test_short_preview_untouched(self) -> None:
        assert preview("gm") == "gm"

    @pytest.mark.parametrize(
        ("direction", "expected"),
        [("down", (0, 300)), ("up", (0, -300)), ("right", (300, 0)), ("LEFT", (-300, 0))],
    )
    async def test_scroll_directions(self, make_page, direction, expected) -> None:
        page = make_page()

        record = await run_page_action(page, PageAction.SCROLL, PageActionRequest(value=direction, amount=300))

        assert page.mouse.events == [("wheel", *expected)]
        assert record["direction"] == direction.lower()

    async def test_scroll_defaults(self, make_page) -> None:
        page = make_page()

        record = await run_page_action(page, PageAction.SCROLL, PageActionRequest())

        assert record["direction"] == "down"
        assert record["amount"] == 500
        assert page.mouse.events == [("wheel", 0, 500)]

    async def test_unknown_direction_rejected(self, make_page) -> None:
        page = make_page()

        with pytest.raises(InvalidArgumentError, match="diagonal"):
            await run_page_action(page, PageAction.SCROLL, PageActionRequest(value="diagonal"))
        assert page.mouse.events == []

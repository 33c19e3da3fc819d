"""Unit tests for walletpilot.browser.locators."""

from __future__ import annotations

from walletpilot.browser.locators import (
    APPROVE_INTENTS,
    REJECT_INTENTS,
    LocatorStrategy,
    by_css,
    by_role,
    by_test_id,
    by_text,
    click_intents,
    select_intent,
)


# ---------------------------------------------------------------------------
# Selector rendering
# ---------------------------------------------------------------------------


class TestIntentSelector:
    def test_text_intent(self) -> None:
        assert by_text("Confirm").selector == 'button:has-text("Confirm")'

    def test_role_intent(self) -> None:
        assert by_role("Sign").selector == 'role=button[name="Sign"]'

    def test_test_id_intent(self) -> None:
        assert by_test_id("confirm-btn").selector == '[data-testid="confirm-btn"]'

    def test_css_intent_is_passed_through(self) -> None:
        assert by_css(".ant-btn-primary").selector == ".ant-btn-primary"

    def test_quotes_are_escaped(self) -> None:
        assert by_text('Say "hi"').selector == 'button:has-text("Say \\"hi\\"")'

    def test_non_ascii_text_kept_verbatim(self) -> None:
        assert by_text("确认").selector == 'button:has-text("确认")'

    def test_describe(self) -> None:
        assert by_test_id("x").describe() == "test_id=x"
        assert by_text("x").strategy == LocatorStrategy.TEXT


# ---------------------------------------------------------------------------
# select_intent
# ---------------------------------------------------------------------------


class TestSelectIntent:
    async def test_first_ready_intent_wins(self) -> None:
        intents = [by_text("A"), by_text("B"), by_text("C")]
        probed: list[str] = []

        async def is_ready(intent):
            probed.append(intent.value)
            return intent.value in ("B", "C")

        assert await select_intent(intents, is_ready) == (1, intents[1])
        # Probing stops at the first match
        assert probed == ["A", "B"]

    async def test_none_when_nothing_ready(self) -> None:
        async def is_ready(intent):
            return False

        assert await select_intent([by_text("A")], is_ready) is None


class TestCatalogs:
    def test_affirmative_catalog_prefers_test_ids(self) -> None:
        assert APPROVE_INTENTS[0].strategy == LocatorStrategy.TEST_ID

    def test_reject_catalog_has_no_affirmative_labels(self) -> None:
        values = {intent.value for intent in REJECT_INTENTS}
        assert "Confirm" not in values
        assert "Reject" in values


class TestClickIntents:
    def test_text_intents_come_before_css(self) -> None:
        intents = click_intents("Connect Wallet", "button.connect-btn")

        assert [i.strategy for i in intents] == [
            LocatorStrategy.TEXT,
            LocatorStrategy.ROLE,
            LocatorStrategy.CSS,
            LocatorStrategy.CSS,
        ]
        assert intents[2].selector == "text=Connect Wallet"
        assert intents[-1].selector == "button.connect-btn"

    def test_css_only(self) -> None:
        assert click_intents(css="#go") == (by_css("#go"),)

    def test_nothing_given(self) -> None:
        assert click_intents() == ()

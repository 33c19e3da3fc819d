"""Unit tests for walletpilot.browser.screenshots."""

from __future__ import annotations

from walletpilot.browser.screenshots import screenshot_path, take_screenshot, try_screenshot


class TestScreenshotPath:
    def test_strips_directories_and_suffix(self, settings) -> None:
        path = screenshot_path(settings.output, "shots/popup.png")
        assert path == settings.output.screenshots_dir / "popup.jpg"

    def test_png_format(self, settings) -> None:
        settings.output.screenshot_format = "png"
        assert screenshot_path(settings.output, "home").name == "home.png"

    def test_default_name_is_timestamped(self, settings) -> None:
        assert screenshot_path(settings.output).name.startswith("screenshot-")


class TestTakeScreenshot:
    async def test_jpeg_quality_passed(self, settings, make_page) -> None:
        page = make_page("https://dapp.example/")

        path = await take_screenshot(page, settings.output, "dapp-home")

        assert path.endswith("dapp-home.jpg")
        assert page.screenshots == [path]
        assert settings.output.screenshots_dir.is_dir()

    async def test_try_screenshot_skips_closed_page(self, settings, make_page) -> None:
        page = make_page()
        page.closed = True
        assert await try_screenshot(page, settings.output, "x") is None
        assert await try_screenshot(None, settings.output, "x") is None

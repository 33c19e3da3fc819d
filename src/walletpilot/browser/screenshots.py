"""Diagnostic screenshots of the primary page and popup surfaces."""

from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError

if TYPE_CHECKING:
    from playwright.async_api import Page

    from walletpilot.settings.config import OutputSettings

logger = logging.getLogger(__name__)

_IMAGE_SUFFIX = re.compile(r"\.(png|jpe?g)$", re.IGNORECASE)


def screenshot_path(output: OutputSettings, name: str | None = None) -> Path:
    """Build the file path for a screenshot called *name*.

    Directory components are stripped and the extension always follows the
    configured format, so ``"shots/popup.png"`` becomes
    ``<screenshots_dir>/popup.jpg`` under the default JPEG format.
    """
    base = Path(name).name if name else f"screenshot-{int(time.time() * 1000)}"
    base = _IMAGE_SUFFIX.sub("", base) or "screenshot"
    suffix = ".jpg" if output.screenshot_format == "jpeg" else ".png"
    return output.screenshots_dir / f"{base}{suffix}"


async def take_screenshot(page: Page, output: OutputSettings, name: str | None = None, *, full_page: bool = True) -> str:
    """Capture *page* to the screenshots directory and return the file path.

    Raises:
        playwright.async_api.Error: If the page is closed or capture fails.
    """
    path = screenshot_path(output, name)
    path.parent.mkdir(parents=True, exist_ok=True)
    kwargs: dict = {"path": str(path), "full_page": full_page, "type": output.screenshot_format}
    if output.screenshot_format == "jpeg":
        kwargs["quality"] = output.screenshot_quality
    await page.screenshot(**kwargs)
    logger.debug("Screenshot saved: %s", path)
    return str(path)


async def try_screenshot(page: Page | None, output: OutputSettings, name: str) -> str | None:
    """Best-effort variant of :func:`take_screenshot` for diagnostic captures.

    Returns ``None`` instead of raising when the page is missing, closed, or
    the capture fails (popups routinely close mid-capture).
    """
    if page is None or page.is_closed():
        return None
    try:
        return await take_screenshot(page, output, name)
    except PlaywrightError as e:
        logger.debug("Screenshot %s skipped: %s", name, str(e).splitlines()[0])
        return None

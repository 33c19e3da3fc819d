"""Popup race listener.

The wallet's confirmation popup is opened by the extension, not by us, and
it can appear before, during, or after the command that triggered it.  The
listener is armed *before* the triggering click so a popup that opens and
closes quickly is still observed.

Only one subscription is ever outstanding: ``arm()`` always disarms the
previous one first.  Handlers only resolve a future; they never touch the
session's primary page.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Page

logger = logging.getLogger(__name__)

DEFAULT_MARKERS: tuple[str, ...] = ("notification", "popup", "confirm")


def is_popup_url(url: str, scheme: str = "chrome-extension", markers: Sequence[str] = DEFAULT_MARKERS) -> bool:
    """True if *url* is an extension page that looks like a confirmation popup."""
    if not url.startswith(f"{scheme}://"):
        return False
    return any(marker in url for marker in markers)


class PopupListener:
    """One-shot ``page`` event subscription backed by an ``asyncio.Future``.

    Args:
        context: Browser context to observe.
        scheme: Extension URL scheme, used when scanning already-open pages.
        markers: URL fragments that identify a popup-style extension page.
    """

    def __init__(
        self,
        context: BrowserContext,
        scheme: str = "chrome-extension",
        markers: Sequence[str] = DEFAULT_MARKERS,
    ) -> None:
        self._context = context
        self._scheme = scheme
        self._markers = tuple(markers)
        self._future: asyncio.Future[Page] | None = None
        self._handler = None

    @property
    def armed(self) -> bool:
        return self._handler is not None

    @property
    def pending(self) -> Page | None:
        """The captured page, if the armed subscription already fired."""
        fut = self._future
        if fut is not None and fut.done() and not fut.cancelled():
            return fut.result()
        return None

    # ------------------------------------------------------------------
    # Subscription management
    # ------------------------------------------------------------------

    def arm(self) -> None:
        """Register a fresh one-shot subscription, replacing any prior one."""
        self.disarm()
        future, handler = self._subscribe()
        self._future = future
        self._handler = handler
        logger.debug("Popup listener armed")

    def disarm(self) -> None:
        """Drop the subscription and cancel its future if still unresolved. Idempotent."""
        if self._handler is not None:
            self._context.remove_listener("page", self._handler)
            self._handler = None
        if self._future is not None and not self._future.done():
            self._future.cancel()
        self._future = None

    def _subscribe(self) -> tuple[asyncio.Future[Page], object]:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Page] = loop.create_future()

        def handler(page: Page) -> None:
            if not future.done():
                logger.debug("Popup surface opened: %s", page.url)
                future.set_result(page)

        self._context.on("page", handler)
        return future, handler

    # ------------------------------------------------------------------
    # Consumption
    # ------------------------------------------------------------------

    def find_open_popup(self) -> Page | None:
        """Return an already-open extension popup page, if any."""
        for page in self._context.pages:
            if page.is_closed():
                continue
            if is_popup_url(page.url, self._scheme, self._markers):
                return page
        return None

    async def consume_pending_or_wait(self, timeout_ms: int) -> Page | None:
        """Return the popup surface, waiting up to *timeout_ms* for one to open.

        Resolution order:

        1. a page captured by the armed subscription (even if already closed);
        2. an open extension page whose URL carries a popup marker;
        3. whichever of the armed subscription or a fresh one fires first.

        Returns:
            The popup page, or ``None`` on timeout.
        """
        captured = self.pending
        if captured is not None:
            self.disarm()
            return captured

        existing = self.find_open_popup()
        if existing is not None:
            logger.debug("Using already-open popup: %s", existing.url)
            self.disarm()
            return existing

        fresh, fresh_handler = self._subscribe()
        waiters: set[asyncio.Future[Page]] = {fresh}
        if self._future is not None and not self._future.done():
            waiters.add(self._future)

        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout_ms / 1000, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self._context.remove_listener("page", fresh_handler)
            if not fresh.done():
                fresh.cancel()

        page: Page | None = None
        for fut in done:
            if not fut.cancelled():
                page = fut.result()
                break
        self.disarm()
        if page is None:
            logger.info("No popup surface within %dms", timeout_ms)
        return page

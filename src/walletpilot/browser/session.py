"""Browser session registry: launch, reattach, and tear down one Chromium.

Every CLI invocation is a separate process, so the browser has to outlive
the command that started it.  A fresh launch spawns a detached Chromium
listening on a fixed CDP port and records a small pointer file; later
invocations probe that port and reattach over CDP, which keeps the wallet's
persistent profile (imported account, unlock state) intact.

The session is an explicit object handed to every component that needs the
browser.  Its primary page changes only through :meth:`set_primary_page`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import subprocess
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
from playwright.async_api import Error as PlaywrightError, async_playwright

from walletpilot.browser.extension import (
    ExtensionIdentity,
    fallback_identity,
    identity_from_pages,
    resolve_extension_identity,
)
from walletpilot.browser.pointer import SessionPointer, clear_pointer, read_pointer, write_pointer
from walletpilot.exceptions import NoSessionError, SessionError
from walletpilot.models.states import SessionState
from walletpilot.settings import Settings, get_settings

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, ConsoleMessage, Page, Playwright

    from walletpilot.models.options import CommandOptions

logger = logging.getLogger(__name__)

_LAUNCH_POLL_INTERVAL = 0.5
_PROCESS_STOP_TIMEOUT = 5.0


async def probe_cdp_endpoint(host: str, port: int, timeout_ms: int = 2_000) -> bool:
    """Return True if a DevTools endpoint answers on ``host:port``."""
    url = f"http://{host}:{port}/json/version"
    try:
        async with httpx.AsyncClient(timeout=timeout_ms / 1000) as client:
            resp = await client.get(url)
    except httpx.HTTPError:
        return False
    return resp.status_code == 200


def wallet_extension_path(settings: Settings) -> Path:
    """Unpacked extension directory for the configured wallet."""
    return settings.output.extensions_dir / settings.wallet.extension_name


def build_launch_command(settings: Settings, options: CommandOptions, binary: str) -> list[str]:
    """Assemble the Chromium command line for a fresh, detached session."""
    browser = settings.browser
    cmd = [
        binary,
        f"--remote-debugging-port={browser.cdp_port}",
        f"--user-data-dir={Path(settings.output.user_data_dir).resolve()}",
        f"--window-size={browser.window_width},{browser.window_height}",
        "--no-first-run",
        "--no-default-browser-check",
        "--disable-blink-features=AutomationControlled",
        "--disable-popup-blocking",
        "--disable-background-timer-throttling",
        "--disable-backgrounding-occluded-windows",
        "--disable-renderer-backgrounding",
        "--disable-component-update",
    ]
    if options.headless:
        cmd.append("--headless=new")
    if not browser.sandbox:
        cmd.append("--no-sandbox")
    if options.wallet:
        ext_path = wallet_extension_path(settings).resolve()
        cmd.append(f"--disable-extensions-except={ext_path}")
        cmd.append(f"--load-extension={ext_path}")
    cmd.extend(browser.extra_args)
    cmd.append("about:blank")
    return cmd


def select_primary_page(pages: list[Page], scheme: str = "chrome-extension") -> Page | None:
    """First page that is neither an extension page nor blank, else the first page."""
    for page in pages:
        url = page.url
        if not url.startswith(f"{scheme}://") and url != "about:blank":
            return page
    return pages[0] if pages else None


class BrowserSession:
    """One attached browser for the duration of a command.

    Args:
        settings: Resolved settings; defaults to :func:`get_settings`.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.state = SessionState.ABSENT
        self.identity: ExtensionIdentity | None = None
        self.degraded = False
        self.reattached = False
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._primary: Page | None = None
        self._process: subprocess.Popen | None = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_live(self) -> bool:
        return self.state == SessionState.ATTACHED and self._context is not None

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise NoSessionError()
        return self._context

    @property
    def primary_page(self) -> Page:
        if self._primary is None:
            raise NoSessionError()
        return self._primary

    def set_primary_page(self, page: Page) -> None:
        """Make *page* the page subsequent commands act on."""
        if page is not self._primary:
            self._capture_console(page)
        self._primary = page

    @property
    def pointer_path(self) -> Path:
        return self.settings.output.session_path

    @property
    def endpoint_url(self) -> str:
        return f"http://{self.settings.browser.cdp_host}:{self.settings.browser.cdp_port}"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ensure(self, options: CommandOptions) -> BrowserContext:
        """Attach to the running browser, or launch one. Idempotent.

        Raises:
            SessionError: If a fresh launch fails (never retried).
        """
        if self.is_live:
            return self.context

        self.state = SessionState.LAUNCHING
        try:
            if not await self._try_reattach():
                clear_pointer(self.pointer_path)
                await self._launch(options)
        except BaseException:
            await self._stop_playwright()
            self.state = SessionState.ABSENT
            raise
        self.state = SessionState.ATTACHED
        return self.context

    async def attach_existing(self) -> bool:
        """Attach only if a browser is already running; never launch."""
        if self.is_live:
            return True
        try:
            attached = await self._try_reattach()
        except BaseException:
            await self._stop_playwright()
            raise
        if attached:
            self.state = SessionState.ATTACHED
        return attached

    async def ensure_identity(self) -> ExtensionIdentity:
        """Return a wallet identity, upgrading an unverified one when possible."""
        if self.identity is not None and self.identity.verified:
            return self.identity
        resolved = await resolve_extension_identity(self.context, self.settings.wallet)
        if resolved.verified or self.identity is None:
            self.identity = resolved
            self.degraded = not resolved.verified
        return self.identity

    async def release(self, *, keep_open: bool = False) -> None:
        """End-of-command hook: detach (``keep_open``) or tear down."""
        if keep_open:
            await self.detach()
        else:
            await self.teardown()

    async def detach(self) -> None:
        """Drop the CDP connection but leave the browser and pointer alive."""
        if self.state == SessionState.CLOSED:
            return
        await self._stop_playwright()
        self._browser = None
        self._context = None
        self._primary = None
        self._process = None
        self.state = SessionState.ABSENT
        logger.debug("Detached from browser; it stays available on %s", self.endpoint_url)

    async def teardown(self) -> None:
        """Close the browser, stop Playwright, remove the pointer. Idempotent."""
        if self.state == SessionState.CLOSED:
            return
        if self._browser is None and self._process is None and self._playwright is None:
            # Never attached in this process; leave any running browser alone.
            return
        if self._browser is not None:
            try:
                cdp = await self._browser.new_browser_cdp_session()
                await cdp.send("Browser.close")
            except PlaywrightError as e:
                logger.debug("CDP Browser.close failed: %s", e)
            with contextlib.suppress(PlaywrightError):
                await self._browser.close()
        self._stop_process()
        await self._stop_playwright()
        clear_pointer(self.pointer_path)
        self._browser = None
        self._context = None
        self._primary = None
        self.state = SessionState.CLOSED
        logger.info("Browser session closed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _start_playwright(self) -> Playwright:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return self._playwright

    async def _stop_playwright(self) -> None:
        if self._playwright is not None:
            with contextlib.suppress(PlaywrightError):
                await self._playwright.stop()
            self._playwright = None

    async def _connect(self) -> BrowserContext:
        pw = await self._start_playwright()
        self._browser = await pw.chromium.connect_over_cdp(self.endpoint_url)
        contexts = self._browser.contexts
        self._context = contexts[0] if contexts else await self._browser.new_context()
        return self._context

    async def _try_reattach(self) -> bool:
        browser = self.settings.browser
        if not await probe_cdp_endpoint(browser.cdp_host, browser.cdp_port, browser.probe_timeout_ms):
            return False
        try:
            context = await self._connect()
        except PlaywrightError as e:
            logger.warning("CDP endpoint answered but attach failed: %s", e)
            await self._stop_playwright()
            return False

        scheme = self.settings.wallet.extension_scheme
        primary = select_primary_page(context.pages, scheme)
        self.set_primary_page(primary if primary is not None else await context.new_page())

        identity = identity_from_pages(context, self.settings.wallet)
        if identity is None:
            pointer = read_pointer(self.pointer_path)
            identity = fallback_identity(self.settings.wallet, pointer.extension_id if pointer else None)
            self.degraded = True
            logger.info("No open extension page; using %s extension id %s", identity.source, identity.extension_id)
        self.identity = identity
        self.reattached = True
        logger.info("Reattached to existing browser at %s (page: %s)", self.endpoint_url, self._primary.url)
        return True

    async def _launch(self, options: CommandOptions) -> None:
        settings = self.settings
        if options.wallet and not (wallet_extension_path(settings) / "manifest.json").is_file():
            raise SessionError("Wallet extension not found. Run wallet-setup first.")

        pw = await self._start_playwright()
        binary = settings.browser.chrome_binary or pw.chromium.executable_path
        cmd = build_launch_command(settings, options, binary)
        Path(settings.output.user_data_dir).mkdir(parents=True, exist_ok=True)

        logger.info("Launching browser on CDP port %d (headless=%s, wallet=%s)", settings.browser.cdp_port, options.headless, options.wallet)
        try:
            self._process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise SessionError(f"Failed to start browser binary {binary}: {e}") from e

        await self._wait_for_endpoint()
        try:
            context = await self._connect()
        except PlaywrightError as e:
            self._stop_process()
            raise SessionError(f"Failed to attach to launched browser: {e}") from e

        pages = context.pages
        self.set_primary_page(pages[0] if pages else await context.new_page())

        if options.wallet:
            self.identity = await resolve_extension_identity(context, settings.wallet)
            self.degraded = not self.identity.verified

        write_pointer(
            self.pointer_path,
            SessionPointer(
                port=settings.browser.cdp_port,
                extension_id=self.identity.extension_id if self.identity else None,
            ),
        )

    async def _wait_for_endpoint(self) -> None:
        browser = self.settings.browser
        deadline = time.monotonic() + browser.launch_timeout_ms / 1000
        while time.monotonic() < deadline:
            if self._process is not None and self._process.poll() is not None:
                raise SessionError(f"Browser exited during startup (code {self._process.returncode})")
            if await probe_cdp_endpoint(browser.cdp_host, browser.cdp_port, browser.probe_timeout_ms):
                return
            await asyncio.sleep(_LAUNCH_POLL_INTERVAL)
        self._stop_process()
        raise SessionError(f"Browser CDP endpoint did not come up within {browser.launch_timeout_ms}ms")

    def _stop_process(self) -> None:
        proc = self._process
        if proc is None:
            return
        if proc.poll() is None:
            proc.terminate()
            try:
                proc.wait(timeout=_PROCESS_STOP_TIMEOUT)
            except subprocess.TimeoutExpired:
                proc.kill()
        self._process = None

    def _capture_console(self, page: Page) -> None:
        """Append the page's console output and uncaught errors to console-logs.txt."""
        log_file = Path(self.settings.output.output_dir) / "console-logs.txt"

        def _append(kind: str, text: str) -> None:
            stamp = datetime.now(timezone.utc).isoformat()
            with contextlib.suppress(OSError):
                log_file.parent.mkdir(parents=True, exist_ok=True)
                with open(log_file, "a", encoding="utf-8") as f:
                    f.write(f"[{stamp}] [{kind}] {text}\n")

        def on_console(msg: ConsoleMessage) -> None:
            _append(msg.type, msg.text)

        def on_page_error(error: Exception) -> None:
            _append("ERROR", str(error))

        page.on("console", on_console)
        page.on("pageerror", on_page_error)


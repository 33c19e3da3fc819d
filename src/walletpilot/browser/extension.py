"""Wallet extension identity resolution and internal-page addressing.

The extension's runtime id is needed to address its internal pages
(``chrome-extension://<id>/popup.html`` and friends).  Resolution tries
three live strategies in order and stops at the first hit:

1. the extension's background service worker (already registered, or
   observed within a bounded wait);
2. any open page whose URL uses the extension scheme;
3. scraping the ``chrome://extensions`` listing.

If all three fail, the configured last-known id is returned with
``verified=False`` so callers can surface the degraded mode instead of
treating it as a real detection.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError

from walletpilot.exceptions import InvalidArgumentError

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext

    from walletpilot.settings.config import WalletSettings

logger = logging.getLogger(__name__)

EXTENSIONS_LISTING_URL = "chrome://extensions/"

# extensions-item elements live two shadow roots deep in current Chromium.
_SCRAPE_EXTENSIONS_JS = """
() => {
  const manager = document.querySelector('extensions-manager');
  const list = manager && manager.shadowRoot
    ? manager.shadowRoot.querySelector('extensions-item-list')
    : null;
  const root = list && list.shadowRoot ? list.shadowRoot : document;
  return Array.from(root.querySelectorAll('extensions-item'))
    .map(item => {
      const nameEl = item.shadowRoot ? item.shadowRoot.querySelector('#name') : null;
      return { id: item.id, name: nameEl ? nameEl.textContent.trim() : '' };
    })
    .filter(entry => entry.id);
}
"""


class ExtensionPage(str, Enum):
    """Closed set of extension pages the engine knows how to address."""

    POPUP = "popup"
    HOME = "home"
    ONBOARDING = "onboarding"
    IMPORT_PRIVATE_KEY = "import_private_key"
    NOTIFICATION = "notification"


def page_paths(wallet: WalletSettings) -> dict[ExtensionPage, str]:
    """Map each ``ExtensionPage`` to its configured path."""
    return {
        ExtensionPage.POPUP: wallet.popup_path,
        ExtensionPage.HOME: wallet.home_path,
        ExtensionPage.ONBOARDING: wallet.onboarding_path,
        ExtensionPage.IMPORT_PRIVATE_KEY: wallet.import_private_key_path,
        ExtensionPage.NOTIFICATION: wallet.notification_path,
    }


@dataclass(frozen=True)
class ExtensionIdentity:
    """A resolved (or assumed) wallet extension id.

    Attributes:
        extension_id: Opaque runtime id, e.g. ``"acmacodkjbdgmoleebolmdjonilkdbch"``.
        verified: False when the id is a recorded or hard-coded fallback.
        source: Which strategy produced the id.
        scheme: URL scheme of extension pages.
        paths: Page → path table used by :meth:`url_for`.
    """

    extension_id: str
    verified: bool = True
    source: str = ""
    scheme: str = "chrome-extension"
    paths: Mapping[ExtensionPage, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.extension_id}"

    def url_for(self, page: ExtensionPage) -> str:
        """Build ``<scheme>://<id>/<path>`` for a known extension page."""
        try:
            path = self.paths[page]
        except KeyError:
            raise InvalidArgumentError(f"No path configured for extension page: {page.value}") from None
        return f"{self.base_url}/{path.lstrip('/')}"

    def owns(self, url: str) -> bool:
        """True if *url* is one of this extension's pages."""
        return url.startswith(f"{self.base_url}/") or url == self.base_url

    def to_dict(self) -> dict[str, Any]:
        return {
            "extensionId": self.extension_id,
            "verified": self.verified,
            "source": self.source,
        }


def extension_id_from_url(url: str, scheme: str = "chrome-extension") -> str | None:
    """Extract the extension id from an extension-scheme URL, else ``None``."""
    if not url.startswith(f"{scheme}://"):
        return None
    return urlparse(url).netloc or None


def build_identity(
    extension_id: str,
    wallet: WalletSettings,
    *,
    verified: bool,
    source: str,
) -> ExtensionIdentity:
    """Construct an ``ExtensionIdentity`` wired to the configured page paths."""
    return ExtensionIdentity(
        extension_id=extension_id,
        verified=verified,
        source=source,
        scheme=wallet.extension_scheme,
        paths=page_paths(wallet),
    )


def fallback_identity(wallet: WalletSettings, recorded_id: str | None = None) -> ExtensionIdentity:
    """Return the degraded, unverified identity (recorded id wins over the hard-coded one)."""
    if recorded_id:
        return build_identity(recorded_id, wallet, verified=False, source="recorded")
    return build_identity(wallet.fallback_extension_id, wallet, verified=False, source="fallback")


def identity_from_pages(context: BrowserContext, wallet: WalletSettings) -> ExtensionIdentity | None:
    """Identity from the first open extension-scheme page, if there is one."""
    for page in context.pages:
        ext_id = extension_id_from_url(page.url, wallet.extension_scheme)
        if ext_id:
            return build_identity(ext_id, wallet, verified=True, source="open_page")
    return None


# ---------------------------------------------------------------------------
# Live strategies
# ---------------------------------------------------------------------------


async def _from_service_worker(context: BrowserContext, wallet: WalletSettings) -> str | None:
    for worker in context.service_workers:
        ext_id = extension_id_from_url(worker.url, wallet.extension_scheme)
        if ext_id:
            return ext_id
    worker = await context.wait_for_event("serviceworker", timeout=wallet.service_worker_timeout_ms)
    return extension_id_from_url(worker.url, wallet.extension_scheme)


async def _from_open_pages(context: BrowserContext, wallet: WalletSettings) -> str | None:
    identity = identity_from_pages(context, wallet)
    return identity.extension_id if identity else None


async def _from_extensions_listing(context: BrowserContext, wallet: WalletSettings) -> str | None:
    page = await context.new_page()
    try:
        await page.goto(EXTENSIONS_LISTING_URL, timeout=5_000)
        await page.wait_for_timeout(wallet.extensions_page_settle_ms)
        entries = await page.evaluate(_SCRAPE_EXTENSIONS_JS) or []
    finally:
        with contextlib.suppress(PlaywrightError):
            await page.close()

    if not entries:
        return None
    wanted = wallet.extension_name.lower()
    for entry in entries:
        if wanted and wanted in (entry.get("name") or "").lower():
            return entry["id"]
    return entries[0]["id"]


_Strategy = Callable[["BrowserContext", "WalletSettings"], Awaitable["str | None"]]

_STRATEGIES: tuple[tuple[str, _Strategy], ...] = (
    ("service_worker", _from_service_worker),
    ("open_page", _from_open_pages),
    ("extensions_listing", _from_extensions_listing),
)


async def resolve_extension_identity(context: BrowserContext, wallet: WalletSettings) -> ExtensionIdentity:
    """Resolve the wallet extension id, falling back to an unverified default.

    Args:
        context: The live browser context with the extension loaded.
        wallet: Wallet settings (scheme, timeouts, fallback id, page paths).

    Returns:
        The resolved identity; ``verified`` is False only for the fallback.
    """
    for source, strategy in _STRATEGIES:
        try:
            ext_id = await strategy(context, wallet)
        except PlaywrightError as e:
            logger.debug("Extension id strategy %s failed: %s", source, e)
            ext_id = None
        if ext_id:
            logger.info("Wallet extension id resolved via %s: %s", source, ext_id)
            return build_identity(ext_id, wallet, verified=True, source=source)

    identity = fallback_identity(wallet)
    logger.warning(
        "Wallet extension id could not be detected; using unverified fallback %s",
        identity.extension_id,
    )
    return identity

"""Download and unpack the wallet extension from its latest GitHub release."""

from __future__ import annotations

import json
import logging
import shutil
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from walletpilot.exceptions import WalletSetupError
from walletpilot.settings import Settings

logger = logging.getLogger(__name__)

_DOWNLOAD_TIMEOUT = 120.0
_API_TIMEOUT = 15.0


@dataclass
class InstallResult:
    """Outcome of :func:`install_extension`."""

    version: str
    extension_path: str
    already_installed: bool = False
    tag: str | None = None
    manifest_version: int | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.already_installed:
            message = f"Wallet extension v{self.version} is already installed"
        else:
            message = f"Wallet extension v{self.version} installed successfully"
        data: dict[str, Any] = {
            "success": True,
            "message": message,
            "version": self.version,
            "extensionPath": self.extension_path,
        }
        if self.already_installed:
            data["note"] = "Use --force to reinstall"
        if self.tag:
            data["tag"] = self.tag
        if self.manifest_version is not None:
            data["manifestVersion"] = self.manifest_version
        return data


def read_manifest(extension_dir: Path) -> dict[str, Any] | None:
    """Parsed ``manifest.json`` of an unpacked extension, or ``None``."""
    manifest = extension_dir / "manifest.json"
    if not manifest.is_file():
        return None
    try:
        return json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Unreadable extension manifest %s: %s", manifest, e)
        return None


def fetch_latest_tag(client: httpx.Client, api_url: str) -> str:
    """Return ``tag_name`` of the latest release."""
    resp = client.get(api_url, headers={"Accept": "application/vnd.github+json"}, timeout=_API_TIMEOUT)
    resp.raise_for_status()
    tag = resp.json().get("tag_name")
    if not tag:
        raise WalletSetupError(f"Release info from {api_url} has no tag_name")
    return tag


def download_file(client: httpx.Client, url: str, dest: Path) -> None:
    """Stream *url* to *dest*."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    with client.stream("GET", url, timeout=_DOWNLOAD_TIMEOUT) as resp:
        resp.raise_for_status()
        with open(dest, "wb") as f:
            for chunk in resp.iter_bytes():
                f.write(chunk)


def extract_archive(archive: Path, dest: Path) -> None:
    """Unpack *archive* into a fresh *dest*, refusing entries that escape it."""
    if dest.exists():
        shutil.rmtree(dest)
    dest.mkdir(parents=True)
    root = dest.resolve()
    with zipfile.ZipFile(archive) as zf:
        for name in zf.namelist():
            target = (dest / name).resolve()
            if target != root and root not in target.parents:
                raise WalletSetupError(f"Archive entry escapes extraction directory: {name}")
        zf.extractall(dest)


def install_extension(settings: Settings, *, force: bool = False, client: httpx.Client | None = None) -> InstallResult:
    """Install the wallet extension into ``<output>/extensions/<name>``.

    Args:
        settings: Resolved settings (release URLs, output directory).
        force: Reinstall even if a manifest is already present.
        client: Optional ``httpx.Client`` (tests inject a mock transport).

    Returns:
        An ``InstallResult``.

    Raises:
        WalletSetupError: If the release lookup, download or unpack fails.
    """
    wallet = settings.wallet
    ext_dir = settings.output.extensions_dir / wallet.extension_name

    existing = read_manifest(ext_dir)
    if existing is not None and not force:
        return InstallResult(version=str(existing.get("version", "unknown")), extension_path=str(ext_dir), already_installed=True)

    owns_client = client is None
    http = client or httpx.Client(follow_redirects=True)
    archive = settings.output.extensions_dir / f"{wallet.extension_name}.zip"
    try:
        tag = fetch_latest_tag(http, wallet.release_api_url)
        url = wallet.release_download_template.format(tag=tag)
        logger.info("Downloading wallet extension %s from %s", tag, url)
        download_file(http, url, archive)
        extract_archive(archive, ext_dir)
    except httpx.HTTPError as e:
        raise WalletSetupError(f"Failed to download wallet extension: {e}") from e
    except zipfile.BadZipFile as e:
        raise WalletSetupError(f"Failed to extract wallet extension: {e}") from e
    finally:
        archive.unlink(missing_ok=True)
        if owns_client:
            http.close()

    manifest = read_manifest(ext_dir)
    if manifest is None:
        raise WalletSetupError("Extension extraction failed: manifest.json not found")

    logger.info("Wallet extension %s installed at %s", manifest.get("version"), ext_dir)
    return InstallResult(
        version=str(manifest.get("version", "unknown")),
        extension_path=str(ext_dir),
        tag=tag,
        manifest_version=manifest.get("manifest_version"),
    )

"""Unit tests for walletpilot.wallet.installer (HTTP mocked with httpx.MockTransport)."""

from __future__ import annotations

import io
import json
import zipfile

import httpx
import pytest

from walletpilot.exceptions import WalletSetupError
from walletpilot.wallet.installer import extract_archive, install_extension, read_manifest


def _zip_bytes(files: dict[str, str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buf.getvalue()


def _client(archive: bytes, tag: str = "v0.93.1", api_status: int = 200) -> tuple[httpx.Client, list[str]]:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if request.url.host == "api.github.com":
            return httpx.Response(api_status, json={"tag_name": tag})
        return httpx.Response(200, content=archive)

    return httpx.Client(transport=httpx.MockTransport(handler)), requested


MANIFEST = json.dumps({"name": "Rabby Wallet", "version": "0.93.1", "manifest_version": 3})


class TestInstallExtension:
    def test_fresh_install(self, settings) -> None:
        client, requested = _client(_zip_bytes({"manifest.json": MANIFEST, "background.js": ""}))

        result = install_extension(settings, client=client)

        assert result.version == "0.93.1"
        assert result.tag == "v0.93.1"
        assert result.already_installed is False
        assert requested[1].endswith("/download/v0.93.1/Rabby_v0.93.1.zip")
        ext_dir = settings.output.extensions_dir / "rabby"
        assert read_manifest(ext_dir)["manifest_version"] == 3
        # The downloaded archive is removed after extraction
        assert not (settings.output.extensions_dir / "rabby.zip").exists()
        assert result.to_dict()["manifestVersion"] == 3

    def test_already_installed_skips_download(self, settings) -> None:
        ext_dir = settings.output.extensions_dir / "rabby"
        ext_dir.mkdir(parents=True)
        (ext_dir / "manifest.json").write_text(MANIFEST)
        client, requested = _client(b"")

        result = install_extension(settings, client=client)

        assert result.already_installed is True
        assert requested == []
        assert result.to_dict()["note"] == "Use --force to reinstall"

    def test_force_reinstalls(self, settings) -> None:
        ext_dir = settings.output.extensions_dir / "rabby"
        ext_dir.mkdir(parents=True)
        (ext_dir / "manifest.json").write_text(json.dumps({"version": "0.1.0"}))
        (ext_dir / "stale.js").write_text("")
        client, _ = _client(_zip_bytes({"manifest.json": MANIFEST}))

        result = install_extension(settings, force=True, client=client)

        assert result.version == "0.93.1"
        assert not (ext_dir / "stale.js").exists()

    def test_api_failure_maps_to_setup_error(self, settings) -> None:
        client, _ = _client(b"", api_status=403)
        with pytest.raises(WalletSetupError, match="Failed to download"):
            install_extension(settings, client=client)

    def test_archive_without_manifest(self, settings) -> None:
        client, _ = _client(_zip_bytes({"README.md": "hi"}))
        with pytest.raises(WalletSetupError, match="manifest.json not found"):
            install_extension(settings, client=client)

    def test_corrupt_archive(self, settings) -> None:
        client, _ = _client(b"not a zip")
        with pytest.raises(WalletSetupError, match="Failed to extract"):
            install_extension(settings, client=client)


class TestExtractArchive:
    def test_rejects_path_traversal(self, tmp_path) -> None:
        archive = tmp_path / "evil.zip"
        archive.write_bytes(_zip_bytes({"../escape.txt": "x"}))

        with pytest.raises(WalletSetupError, match="escapes"):
            extract_archive(archive, tmp_path / "dest")

        assert not (tmp_path / "escape.txt").exists()

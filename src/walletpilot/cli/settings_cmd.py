"""CLI commands for inspecting and validating walletpilot settings."""

from __future__ import annotations

import json

import typer
from pydantic import ValidationError
from rich.console import Console

settings_app = typer.Typer(help="Inspect and validate walletpilot configuration.")
console = Console()


@settings_app.command("show")
def show_settings() -> None:
    """Display the currently resolved settings."""
    from walletpilot.settings import get_settings

    settings = get_settings()
    console.print_json(json.dumps(settings.model_dump(mode="json"), indent=2, default=str))


@settings_app.command("validate")
def validate_settings() -> None:
    """Validate settings and report where the wallet pieces live."""
    from walletpilot.browser.session import wallet_extension_path
    from walletpilot.settings import get_settings

    try:
        settings = get_settings()
    except ValidationError as e:
        console.print(f"[red]✗[/red] Settings validation failed: {e}")
        raise typer.Exit(code=1)

    extension = wallet_extension_path(settings)
    console.print("[green]✓[/green] Settings are valid.")
    console.print(f"  Environment: {settings.env}")
    console.print(f"  CDP endpoint: {settings.browser.cdp_host}:{settings.browser.cdp_port}")
    console.print(f"  Output dir: {settings.output.output_dir}")
    console.print(f"  Credential file: {settings.output.credentials_file}")
    if (extension / "manifest.json").is_file():
        console.print(f"  Wallet extension: {extension}")
    else:
        console.print(f"  [yellow]![/yellow] Wallet extension not installed (run wallet-setup): {extension}")

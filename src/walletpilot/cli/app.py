"""Unified CLI entry point for walletpilot.

Config precedence: settings.default.toml -> settings.<env>.toml -> settings.local.toml -> env vars (WALLETPILOT_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

import click
import typer
from typer.core import TyperGroup

from walletpilot import __version__
from walletpilot.cli import browser_cmd, page_cmd, wallet_cmd
from walletpilot.cli.settings_cmd import settings_app
from walletpilot.exceptions import UnknownCommandError
from walletpilot.reporting import configure_logging, emit, failure
from walletpilot.settings import get_settings

APP_HELP = (
    "walletpilot: drive a shared Chrome session and its wallet extension for unattended dApp testing. "
    "Every command prints one JSON result line on stdout; logs go to stderr. "
    "Config precedence: settings.default.toml -> settings.<env>.toml -> settings.local.toml "
    "-> env vars (WALLETPILOT_* with __) -> CLI flags."
)


class CommandGroup(TyperGroup):
    """Reports an unrecognised command as a JSON error record with exit code 1."""

    def resolve_command(self, ctx: click.Context, args: list[str]):
        name = args[0] if args else None
        if name and not name.startswith("-") and self.get_command(ctx, name) is None:
            error = UnknownCommandError(name)
            emit(failure(str(error), hint=f"Available commands: {', '.join(self.list_commands(ctx))}"))
            ctx.exit(1)
        return super().resolve_command(ctx, args)


app = typer.Typer(cls=CommandGroup, add_completion=True, help=APP_HELP)

app.add_typer(settings_app, name="settings")

# Browser session and page interaction
app.command("start")(browser_cmd.start)
app.command("stop")(browser_cmd.stop)
app.command("navigate")(browser_cmd.navigate)
app.command("click")(browser_cmd.click)
app.command("dapp-click")(browser_cmd.dapp_click)
app.command("fill")(browser_cmd.fill)
app.command("vision-click")(browser_cmd.vision_click)
app.command("screenshot")(browser_cmd.screenshot)

# Single-shot page interactions
app.command("select")(page_cmd.select)
app.command("check")(page_cmd.check)
app.command("uncheck")(page_cmd.uncheck)
app.command("hover")(page_cmd.hover)
app.command("press")(page_cmd.press)
app.command("text")(page_cmd.text)
app.command("content")(page_cmd.content)
app.command("evaluate")(page_cmd.evaluate)
app.command("wait")(page_cmd.wait)
app.command("wait-for")(page_cmd.wait_for)
app.command("vision-type")(page_cmd.vision_type)
app.command("vision-scroll")(page_cmd.vision_scroll)

# Wallet
app.command("wallet-setup")(wallet_cmd.wallet_setup)
app.command("wallet-init")(wallet_cmd.wallet_init)
app.command("wallet-navigate")(wallet_cmd.wallet_navigate)
app.command("wallet-approve")(wallet_cmd.wallet_approve)
app.command("wallet-sign")(wallet_cmd.wallet_sign)
app.command("wallet-reject")(wallet_cmd.wallet_reject)
app.command("wallet-check")(wallet_cmd.wallet_check)
app.command("wallet-switch-network")(wallet_cmd.wallet_switch_network)
app.command("wallet-get-address")(wallet_cmd.wallet_get_address)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr."),
) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"walletpilot {__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()
    configure_logging("DEBUG" if verbose else get_settings().output.log_level)


if __name__ == "__main__":
    app()

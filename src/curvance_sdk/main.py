"""CLI entrypoint for the Curvance SDK."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from .client import CurvanceClient
from .errors import SdkError
from .logger import setup_logging
from .oracles.redstone import RedstoneClient
from .settings import Chain, SdkSettings
from .transport.retry import ResilientTransport, RetryPolicy
from .units import integer_to_usd

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Inspect Curvance SDK configuration, signed price payloads and oracle prices.",
)


@dataclass
class CliState:
    """Settings and logger resolved once by the callback and shared by commands."""

    settings: SdkSettings
    logger: logging.Logger


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [curvance] table).",
        ),
    ] = None,
    chain: Annotated[
        Chain | None,
        typer.Option("--chain", help="Chain to use (monad-mainnet or monad-testnet)."),
    ] = None,
    rpc_url: Annotated[
        str | None,
        typer.Option("--rpc-url", help="RPC endpoint; overrides the chain default."),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
):
    """Load configuration with precedence CLI > ENV > CONFIG FILE."""
    if config_path:
        os.environ["CURVANCE_CONFIG"] = str(config_path)

    init_kwargs: dict[str, Chain | str] = {}
    if chain is not None:
        init_kwargs["chain"] = chain
    if rpc_url is not None:
        init_kwargs["rpc_url"] = rpc_url
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    settings = SdkSettings(**init_kwargs)
    setup_logging(settings.log_level)
    ctx.obj = CliState(settings=settings, logger=logging.getLogger("curvance_sdk"))


@app.command("show-config")
def show_config(ctx: typer.Context):
    """Print effective config (with secrets redacted)."""
    typer.echo(json.dumps(_state(ctx).settings.as_safe_dict(), indent=2))


@app.command()
def payload(
    ctx: typer.Context,
    symbol: Annotated[str, typer.Argument(help="Feed symbol, e.g. WMON.")],
):
    """Fetch and summarize the quorum-signed price payload for SYMBOL."""
    state = _state(ctx)
    transport = ResilientTransport(RetryPolicy.from_settings(state.settings))
    redstone = RedstoneClient.from_settings(state.settings, transport)

    try:
        signed = asyncio.run(redstone.get_payload(symbol))
    except SdkError as e:
        state.logger.error("Could not build payload for %s: %s", symbol, e)
        raise typer.Exit(code=1) from e

    table = Table(title=f"{symbol} signed payload")
    table.add_column("Signer", style="cyan", no_wrap=True)
    for signer in signed.signers:
        table.add_row(signer)
    console = Console()
    console.print(table)
    console.print(f"Timestamp (ms): [bold]{signed.timestamp}[/]")
    console.print(f"Payload size: [bold]{len(signed.payload)}[/] bytes")


@app.command()
def price(
    ctx: typer.Context,
    asset: Annotated[str, typer.Argument(help="Asset address to price.")],
    lower: Annotated[
        bool, typer.Option("--lower/--upper", help="Read the lower (safer) price.")
    ] = False,
):
    """Read an asset's USD price from the oracle manager."""
    state = _state(ctx)
    if not state.settings.oracle_manager_address:
        raise typer.BadParameter(
            "oracle_manager_address must be configured",
            param_hint=["CURVANCE_ORACLE_MANAGER_ADDRESS"],
        )
    client = CurvanceClient.from_settings(state.settings)
    assert client.oracle_manager is not None

    try:
        raw = asyncio.run(client.oracle_manager.get_price(asset, True, lower))
    except SdkError as e:
        state.logger.error("Price unavailable for %s: %s", asset, e)
        raise typer.Exit(code=1) from e
    finally:
        client.close()
    typer.echo(f"{integer_to_usd(raw)}")


@app.command()
def classify(
    ctx: typer.Context,
    message: Annotated[str, typer.Argument(help="Error message to classify.")],
):
    """Show how the retry transport would treat an error MESSAGE."""
    policy = RetryPolicy.from_settings(_state(ctx).settings)
    result = ResilientTransport(policy).classify(Exception(message))
    typer.echo(
        json.dumps(
            {"kind": result.kind.value, "retryable": result.retryable, "message": result.message},
            indent=2,
        )
    )


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()

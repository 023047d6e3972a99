"""CLI for Agent Chain Wallet - provision keys and drive chain tools from the terminal."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from agent_chain_wallet.errors import ConfigurationError, WalletError

app = typer.Typer(
    name="agent-chain-wallet",
    help="Key custody and chain tools for autonomous agents.",
    no_args_is_help=True,
)
console = Console()

_config_path: Optional[Path] = None


def _version_callback(value: bool):
    if value:
        from agent_chain_wallet import __version__
        console.print(f"agent-chain-wallet {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML settings file",
        envvar="AGENT_WALLET_CONFIG",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Key custody and chain tools for autonomous agents."""
    global _config_path
    _config_path = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _chain_label(chain) -> str:
    return f"{chain.name} testnet" if chain.testnet else chain.name


def _load_runtime():
    """Build the runtime or exit with status 1 on configuration errors."""
    from agent_chain_wallet.config import load_settings
    from agent_chain_wallet.runtime import create_runtime

    try:
        return create_runtime(load_settings(_config_path))
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)


# ------------------------------------------------------------------
# setup commands
# ------------------------------------------------------------------


@app.command()
def init(
    path: Path = typer.Option(Path("agent-wallet.yaml"), "--path", "-o", help="Where to write the settings file"),
    chain: str = typer.Option("sepolia", "--chain", help="Chain name (ethereum, sepolia, base, monad-testnet)"),
    rpc_url: Optional[str] = typer.Option(None, "--rpc-url", help="JSON-RPC endpoint (defaults to the chain's public RPC)"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """Write a settings file. Secrets stay in the environment."""
    from agent_chain_wallet.config import WalletSettings, save_settings

    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)

    settings = WalletSettings(chain=chain, rpc_url=rpc_url)
    try:
        settings.resolve_chain()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    save_settings(settings, path)
    console.print(f"[green]Settings written to {path}[/green]")
    console.print("Set [bold]AGENT_KEY_ENCRYPTION_SECRET[/bold] (see [cyan]keygen-secret[/cyan]) before running.")


@app.command("keygen-secret")
def keygen_secret():
    """Print a new random encryption secret for AGENT_KEY_ENCRYPTION_SECRET."""
    from agent_chain_wallet.wallet.vault import generate_encryption_key

    console.print(generate_encryption_key())


vault_app = typer.Typer(name="vault", help="Inspect the key vault.", no_args_is_help=True)
app.add_typer(vault_app, name="vault")


@vault_app.command("check")
def vault_check():
    """Validate the encryption secret and run an encrypt/decrypt round trip."""
    from agent_chain_wallet.config import load_settings

    try:
        vault = load_settings(_config_path).build_vault()
        vault.self_test()
    except WalletError as e:
        console.print(f"[red]Vault check failed:[/red] {e}")
        raise typer.Exit(1)
    console.print("[green]Vault OK[/green] - encryption round trip passed.")


# ------------------------------------------------------------------
# wallet sub-commands
# ------------------------------------------------------------------

wallet_app = typer.Typer(
    name="wallet",
    help="Provision and inspect agent wallets.",
    no_args_is_help=True,
)
app.add_typer(wallet_app, name="wallet")


@wallet_app.command("generate")
def wallet_generate(
    show_key: bool = typer.Option(
        False, "--show-key", help="Also print the raw private key (handle with care)"
    ),
):
    """Generate a new agent identity and print its encrypted key record."""
    from agent_chain_wallet.config import load_settings
    from agent_chain_wallet.wallet.agent_wallet import AgentWallet

    try:
        vault = load_settings(_config_path).build_vault()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    identity = AgentWallet.generate_wallet()
    encrypted = vault.encrypt(identity.private_key)

    body = (
        f"[bold green]Wallet generated![/bold green]\n\n"
        f"Address: [cyan]{identity.address}[/cyan]\n"
        f"Encrypted key: [dim]{encrypted}[/dim]"
    )
    if show_key:
        body += f"\nPrivate key: [red]{identity.private_key}[/red]"
    console.print(Panel(body, title="Agent Wallet"))


@wallet_app.command("address")
def wallet_address():
    """Show the configured wallet address."""
    runtime = _load_runtime()
    if runtime.wallet is None:
        console.print("[yellow]No signing key configured.[/yellow] Set PRIVATE_KEY or ENCRYPTED_PRIVATE_KEY.")
        raise typer.Exit(1)
    chain = runtime.client.chain
    console.print(Panel(
        f"[cyan]{runtime.wallet.address}[/cyan]\n"
        f"[dim]{chain.address_url(runtime.wallet.address)}[/dim]",
        title=f"Wallet Address ({_chain_label(chain)})",
    ))


@wallet_app.command("provision")
def wallet_provision(
    username: str = typer.Argument(help="On-chain username for the new agent"),
    funding: str = typer.Option("0.01", "--funding", help="Gas money sent from the treasury, in ETH"),
):
    """Create a new agent wallet, fund it from the treasury and register it."""
    from agent_chain_wallet.wallet.units import parse_ether

    try:
        amount = parse_ether(funding)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    runtime = _load_runtime()
    try:
        agent = runtime.onboard_agent(username, amount)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)
    except WalletError as e:
        console.print(f"[red]Provisioning failed:[/red] {e}")
        raise typer.Exit(1)

    chain = runtime.client.chain
    console.print(Panel(
        f"[bold green]Agent {username} registered![/bold green]\n\n"
        f"Address: [cyan]{agent.wallet_address}[/cyan]\n"
        f"Encrypted key: [dim]{agent.private_key_encrypted}[/dim]\n"
        f"Funding tx: {chain.tx_url(agent.funding_tx)}\n"
        f"Registration tx: {chain.tx_url(agent.registration_tx)}\n"
        f"Registered at: {agent.registered_onchain_at.isoformat()}",
        title=f"Agent Wallet ({_chain_label(chain)})",
    ))


def _parse_token(spec: str) -> tuple[str, str, int]:
    """Split ``SYMBOL=ADDRESS[:DECIMALS]``. Raises ``ValueError`` when malformed."""
    symbol, _, rest = spec.partition("=")
    address, _, decimals = rest.partition(":")
    if not symbol or not address:
        raise ValueError("missing symbol or address")
    if decimals and not (decimals.isascii() and decimals.isdigit()):
        raise ValueError(f"decimals must be a whole number, got '{decimals}'")
    return symbol, address, int(decimals or 18)


@wallet_app.command("balance")
def wallet_balance(
    token: list[str] = typer.Option(
        None, "--token", "-t", help="ERC-20 token as SYMBOL=ADDRESS[:DECIMALS] (repeatable)"
    ),
):
    """Show native and token balances of the configured wallet."""
    tokens: dict[str, tuple[str, int]] = {}
    for spec in token or []:
        try:
            symbol, address, decimals = _parse_token(spec)
        except ValueError as e:
            console.print(f"[red]Bad --token value '{spec}':[/red] {e}. Use SYMBOL=ADDRESS[:DECIMALS].")
            raise typer.Exit(1)
        tokens[symbol] = (address, decimals)

    runtime = _load_runtime()
    if runtime.wallet is None:
        console.print("[yellow]No signing key configured.[/yellow] Set PRIVATE_KEY or ENCRYPTED_PRIVATE_KEY.")
        raise typer.Exit(1)

    try:
        balances = runtime.wallet.get_balances(tokens)
    except (WalletError, ValueError) as e:
        console.print(f"[red]Balance lookup failed: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Balances on {_chain_label(runtime.client.chain)}")
    table.add_column("Asset", style="cyan")
    table.add_column("Balance", justify="right")
    for symbol, amount in balances.items():
        table.add_row(symbol.upper(), amount)
    console.print(table)


# ------------------------------------------------------------------
# tools sub-commands
# ------------------------------------------------------------------

tools_app = typer.Typer(name="tools", help="List and call planner tools.", no_args_is_help=True)
app.add_typer(tools_app, name="tools")


@tools_app.command("list")
def tools_list(
    as_json: bool = typer.Option(False, "--json", help="Print function-calling definitions as JSON"),
):
    """List the registered chain tools."""
    runtime = _load_runtime()
    definitions = runtime.tools.definitions()
    if as_json:
        console.print_json(json.dumps([d.to_function() for d in definitions]))
        return

    table = Table(title="Chain Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Parameters")
    table.add_column("Description", style="dim")
    for d in definitions:
        params = ", ".join(d.parameters.get("properties", {}).keys()) or "-"
        table.add_row(d.name, params, d.description)
    console.print(table)


@tools_app.command("call")
def tools_call(
    name: str = typer.Argument(help="Tool name, e.g. get_eth_balance"),
    params: str = typer.Option("{}", "--params", "-p", help="Parameters as a JSON object"),
):
    """Invoke one tool and print its result."""
    try:
        parsed = json.loads(params)
    except json.JSONDecodeError as e:
        console.print(f"[red]--params is not valid JSON: {e}[/red]")
        raise typer.Exit(1)

    runtime = _load_runtime()
    invocation = asyncio.run(runtime.tools.invoke(name, parsed))
    style = "green" if invocation.succeeded else "red"
    console.print(Panel(invocation.text, title=name, border_style=style))
    if not invocation.succeeded:
        raise typer.Exit(1)

"""
ForkLedger - Command Line Interface
=====================================
CLI per replay di sequenze di blocchi e ispezione del ledger.

Security Level: MEDIUM
Last Updated: 2026-10-17
Version: 1.0.0

Commands:
- replay: Ammette una sequenza di blocchi da file JSON
- keygen: Genera una coppia di chiavi
- config: Mostra la configurazione effettiva
"""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from fork_ledger.config import get_settings, override_settings
from fork_ledger.domain.chain_tree import ChainTree
from fork_ledger.domain.keypairs import generate_keypair
from fork_ledger.domain.models import Block, Transaction
from fork_ledger.errors import ForkLedgerException
from fork_ledger.logging_setup import setup_logging, AuditLogger


# ============================================================================
# CLI APP
# ============================================================================

app = typer.Typer(
    name="forkledger",
    help="ForkLedger - UTXO fork tree CLI",
    add_completion=False
)

console = Console()


# ============================================================================
# HELPERS
# ============================================================================

def _load_replay_file(path: Path) -> dict:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Cannot read {path}: {e}[/red]")
        raise typer.Exit(1)

    if not isinstance(data, dict) or "genesis" not in data:
        console.print(f"[red]{path} must contain a 'genesis' block[/red]")
        raise typer.Exit(1)

    return data


# ============================================================================
# REPLAY
# ============================================================================

@app.command("replay")
def replay(
    file: Path = typer.Argument(..., help="JSON file {genesis, blocks, pending}"),
    cutoff_age: Optional[int] = typer.Option(
        None,
        "--cutoff-age",
        "-c",
        help="Override cutoff age"
    ),
    audit_dir: Optional[Path] = typer.Option(
        None,
        "--audit-dir",
        help="Write admission audit trail to this directory"
    ),
    show_utxos: bool = typer.Option(
        False,
        "--show-utxos",
        help="Print the best-chain UTXO set"
    )
):
    """Replay a sequence of blocks and report each admission"""
    data = _load_replay_file(file)

    config = get_settings()
    if cutoff_age is not None:
        config = override_settings(**{**config.model_dump(), "cutoff_age": cutoff_age})

    audit = AuditLogger(audit_dir) if audit_dir else None

    try:
        tree = ChainTree(Block.from_dict(data["genesis"]), config=config, audit=audit)

        table = Table(title="Admission Results")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Block", style="cyan")
        table.add_column("Result")
        table.add_column("Depth / Reason", style="yellow")

        for index, block_data in enumerate(data.get("blocks", []), start=1):
            result = tree.add_block(Block.from_dict(block_data))
            if result.accepted:
                table.add_row(
                    str(index),
                    result.block_hash[:16] + "...",
                    "[green]admitted[/green]",
                    str(result.node.depth)
                )
            else:
                table.add_row(
                    str(index),
                    result.block_hash[:16] + "...",
                    "[red]rejected[/red]",
                    result.code
                )

        for tx_data in data.get("pending", []):
            tree.add_transaction(Transaction.from_dict(tx_data))

    except (ForkLedgerException, KeyError, ValueError) as e:
        console.print(f"[red]Replay failed: {e}[/red]")
        raise typer.Exit(1)

    finally:
        if audit:
            audit.close()

    console.print(table)

    stats = tree.get_statistics()
    console.print(Panel.fit(
        f"[cyan]Best hash:[/cyan] {stats['best_hash']}\n"
        f"[cyan]Best depth:[/cyan] {stats['best_depth']}\n"
        f"[cyan]Nodes:[/cyan] {stats['node_count']} ({stats['tip_count']} tips)\n"
        f"[cyan]UTXOs:[/cyan] {stats['best_utxos']}\n"
        f"[cyan]Total value:[/cyan] {stats['best_value']}\n"
        f"[cyan]Pending:[/cyan] {stats['pending_transactions']}",
        title="Best Chain",
        border_style="green"
    ))

    if show_utxos:
        utxo_table = Table(title="Best-chain UTXO set")
        utxo_table.add_column("Output", style="cyan")
        utxo_table.add_column("Owner", style="dim")
        utxo_table.add_column("Amount", justify="right", style="green")

        for key, output in tree.get_best_utxo_set().items():
            utxo_table.add_row(
                f"{key.txid[:16]}...:{key.output_index}",
                output.owner.hex()[-16:],
                str(output.amount)
            )

        console.print(utxo_table)


# ============================================================================
# KEYS
# ============================================================================

@app.command("keygen")
def keygen(
    save: Optional[Path] = typer.Option(
        None,
        "--save",
        "-s",
        help="Save keypair (with private key) as JSON"
    )
):
    """Generate an ECDSA keypair"""
    keypair = generate_keypair(get_settings().crypto_algorithm)

    if save:
        save.write_text(json.dumps(keypair.to_dict(include_private=True), indent=2))
        console.print(f"[green]Keypair saved to {save}[/green]")

    console.print(Panel.fit(
        f"[cyan]Public key (hex):[/cyan]\n{keypair.get_public_key_hex()}",
        title="New KeyPair",
        border_style="green"
    ))


# ============================================================================
# CONFIG
# ============================================================================

@app.command("config")
def show_config():
    """Show effective configuration"""
    table = Table(title="Configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in get_settings().to_dict().items():
        table.add_row(key, str(value))

    console.print(table)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Verbose output"
    )
):
    """
    ForkLedger - UTXO fork tree CLI

    Replay di blocchi, ispezione del ledger e gestione chiavi.
    """
    config = get_settings()
    setup_logging(
        log_level="DEBUG" if verbose else config.log_level,
        log_to_file=config.log_to_file,
        log_dir=config.log_dir,
        log_format=config.log_format,
        log_rotation_mb=config.log_rotation_mb,
        log_retention_days=config.log_retention_days,
        enable_console=verbose,
    )


if __name__ == "__main__":
    app()


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "app",
]

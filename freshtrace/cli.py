"""
FreshTrace command line
=======================

Operate the traceability ledger from a terminal, against the database
configured in ``DATABASE_URL``.

Commands:
    freshtrace init                                   - Create tables and the owner
    freshtrace register-participant <addr> <name> <role>
    freshtrace deactivate <addr>
    freshtrace register-product <name> <type> <origin>
    freshtrace add-checkpoint <product_id> <stage>
    freshtrace certify <product_id> <name> <authority>
    freshtrace quality <product_id> <score>
    freshtrace deliver <product_id> <customer>
    freshtrace journey <product_id>
    freshtrace verify <product_id>
    freshtrace bulk-register <name> <type> <origin> --quantity N
    freshtrace serve

Example:
    $ freshtrace register-product "Organic Apples" Fruit "Shimla, HP" --organic --caller 0xF4rm3r
    $ freshtrace add-checkpoint 1 quality_check --location Lab --temperature 15 --caller 0x1nsp3ct
    $ freshtrace journey 1
"""

from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from threading import RLock
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from sqlmodel import Session

from freshtrace.core.config import settings
from freshtrace.core.events import EventBus
from freshtrace.core.exceptions import LedgerError
from freshtrace.db.core import engine, init_db
from freshtrace.db.schema import ParticipantRole, Stage, utcnow
from freshtrace.models.participant import ParticipantCreate
from freshtrace.models.product import ProductCreate
from freshtrace.models.checkpoint import CheckpointCreate
from freshtrace.models.certification import CertificationCreate
from freshtrace.services.bulk import bulk_register
from freshtrace.services.ledger import LedgerService


app = typer.Typer(
    name="freshtrace",
    help="Farm-to-door product traceability ledger",
    no_args_is_help=True,
)

console = Console()

CallerOption = typer.Option(
    ..., "--caller", "-c", envvar="FRESHTRACE_CALLER",
    help="Participant address performing the action")


@contextmanager
def _ledger() -> Iterator[LedgerService]:
    """Open a ledger service; ledger rejections exit with status 1."""
    with Session(engine) as session:
        service = LedgerService(session, events=EventBus(), lock=RLock())
        try:
            yield service
        except LedgerError as e:
            console.print(f"[red]✗ {e.name}:[/red] {e.message}")
            raise typer.Exit(1)


@app.command()
def init():
    """Create tables and register the configured owner as Admin."""
    init_db(engine)
    with _ledger() as service:
        meta = service.initialize(
            settings.owner_address, settings.owner_name, settings.owner_contact)
    console.print(f"[green]✓[/green] Ledger ready, owner [bold]{meta.owner_address}[/bold]")


@app.command("register-participant")
def register_participant(
    address: str = typer.Argument(..., help="Participant address"),
    name: str = typer.Argument(..., help="Display name"),
    role: ParticipantRole = typer.Argument(..., help="Participant role"),
    contact: str = typer.Option("", "--contact", help="Contact info"),
    caller: str = CallerOption,
):
    """Register a participant (owner only)."""
    with _ledger() as service:
        participant = service.register_participant(caller, ParticipantCreate(
            address=address, name=name, contact_info=contact, role=role))
    console.print(
        f"[green]✓[/green] Registered {participant.name} ({participant.role.value}) at {participant.address}")


@app.command()
def deactivate(
    address: str = typer.Argument(..., help="Participant address"),
    caller: str = CallerOption,
):
    """Deactivate a participant (owner only)."""
    with _ledger() as service:
        service.deactivate_participant(caller, address)
    console.print(f"[yellow]●[/yellow] Deactivated {address}")


@app.command("register-product")
def register_product(
    name: str = typer.Argument(..., help="Product name"),
    product_type: str = typer.Argument(..., help="Product type, e.g. Fruit"),
    origin: str = typer.Argument(..., help="Harvest location"),
    organic: bool = typer.Option(False, "--organic", help="Product is organic"),
    caller: str = CallerOption,
):
    """Register a harvested product (farmers only)."""
    with _ledger() as service:
        product = service.register_product(caller, ProductCreate(
            name=name, product_type=product_type, origin=origin, is_organic=organic))
    console.print(Panel.fit(
        f"Product ID: [bold]{product.id}[/bold]\n"
        f"Code: {product.product_code}\n"
        f"Tracking: {product.tracking_url}",
        title=f"[green]✓ {product.name}[/green]",
    ))


@app.command("add-checkpoint")
def add_checkpoint(
    product_id: int = typer.Argument(..., help="Product ID"),
    stage: Stage = typer.Argument(..., help="Stage reached"),
    location: str = typer.Option("", "--location", "-l"),
    temperature: float = typer.Option(0.0, "--temperature", "-t", help="Degrees Celsius"),
    notes: str = typer.Option("", "--notes", "-n"),
    evidence: str = typer.Option("", "--evidence", help="Evidence content hash"),
    caller: str = CallerOption,
):
    """Record that a product reached a later stage."""
    with _ledger() as service:
        checkpoint = service.add_checkpoint(caller, product_id, CheckpointCreate(
            stage=stage, location=location, temperature=temperature,
            notes=notes, evidence_hash=evidence))
    console.print(
        f"[green]✓[/green] Product {product_id} -> {checkpoint.stage.value} (checkpoint #{checkpoint.position})")


@app.command()
def certify(
    product_id: int = typer.Argument(..., help="Product ID"),
    name: str = typer.Argument(..., help="Certification name"),
    authority: str = typer.Argument(..., help="Issuing authority"),
    valid_days: int = typer.Option(365, "--valid-days", help="Days until expiry"),
    evidence: str = typer.Option("", "--evidence", help="Certificate content hash"),
    caller: str = CallerOption,
):
    """Attach a certification to a product."""
    with _ledger() as service:
        service.add_certification(caller, product_id, CertificationCreate(
            name=name, authority=authority,
            expires_at=utcnow() + timedelta(days=valid_days),
            evidence_hash=evidence))
    console.print(f"[green]✓[/green] '{name}' added to product {product_id}")


@app.command()
def quality(
    product_id: int = typer.Argument(..., help="Product ID"),
    score: int = typer.Argument(..., min=0, help="Score 0-100"),
    caller: str = CallerOption,
):
    """Set a product quality score (quality inspectors only)."""
    with _ledger() as service:
        service.update_quality_score(caller, product_id, score)
    console.print(f"[green]✓[/green] Product {product_id} quality score {score}")


@app.command()
def deliver(
    product_id: int = typer.Argument(..., help="Product ID"),
    customer: str = typer.Argument(..., help="Customer reference"),
    caller: str = CallerOption,
):
    """Mark a product delivered (delivery partners only)."""
    with _ledger() as service:
        service.mark_delivered(caller, product_id, customer)
    console.print(f"[green]✓[/green] Product {product_id} delivered to {customer}")


@app.command()
def journey(
    product_id: int = typer.Argument(..., help="Product ID"),
):
    """Show the full checkpoint journey of a product."""
    with _ledger() as service:
        product = service.get_product(product_id)
        checkpoints = service.get_product_journey(product_id)

        table = Table(title=f"#{product.id} {product.name} ({product.product_code})")
        table.add_column("#", justify="right")
        table.add_column("Stage", style="cyan")
        table.add_column("Location")
        table.add_column("Verifier")
        table.add_column("Temp °C", justify="right")
        table.add_column("Notes")
        table.add_column("Time", style="dim")

        for c in checkpoints:
            table.add_row(
                str(c.position), c.stage.value, c.location,
                f"{c.verifier_name} ({c.verifier_role.value})",
                f"{c.temperature:g}", c.notes,
                c.timestamp.strftime("%Y-%m-%d %H:%M"),
            )

    console.print(table)


@app.command()
def verify(
    product_id: int = typer.Argument(..., help="Product ID"),
):
    """Check that a product exists with a recorded journey."""
    with _ledger() as service:
        verified = service.verify_product(product_id)
    if verified:
        console.print(f"[green]✓[/green] Product {product_id} verified")
    else:
        console.print(f"[red]✗[/red] Product {product_id} has no journey")
        raise typer.Exit(1)


@app.command("bulk-register")
def bulk(
    name: str = typer.Argument(..., help="Product name"),
    product_type: str = typer.Argument(..., help="Product type"),
    origin: str = typer.Argument(..., help="Harvest location"),
    quantity: int = typer.Option(10, "--quantity", "-q", min=1),
    organic: bool = typer.Option(False, "--organic"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output directory (default: <static>/batches)"),
    caller: str = CallerOption,
):
    """Register a batch of products and write QR labels plus a CSV manifest."""
    template = ProductCreate(
        name=name, product_type=product_type, origin=origin, is_organic=organic)
    with _ledger() as service:
        batch = bulk_register(service, caller, template, quantity,
                              output or settings.static_dir / "batches")

    console.print(Panel.fit(
        f"Batch Code: [bold]{batch.batch_code}[/bold]\n"
        f"Products: {batch.items[0].product_id}-{batch.items[-1].product_id}\n"
        f"Output: {batch.output_dir}",
        title="[green]✓ Bulk registration complete[/green]",
    ))


@app.command()
def serve():
    """Run the HTTP API."""
    from freshtrace.main import run

    run()


def main():
    app()


if __name__ == "__main__":
    main()

"""Command-line interface for refledger operators."""

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy import select

from refledger.ads.models import Ad
from refledger.earnings.ledger import get_balances
from refledger.exceptions import NotFoundError
from refledger.logging_config import configure_logging, get_logger
from refledger.referral.codes import build_referral_link, referral_codes
from refledger.storage.db import db

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="refledger",
    help="refledger - referral attribution, earnings and ad tracking",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    db.create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("issue-code")
def issue_code(
    account_id: Annotated[int, typer.Argument(help="Account ID")],
) -> None:
    """Show an account's referral code, creating one if needed."""
    try:
        code = referral_codes.issue_code(account_id)
    except NotFoundError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(code=1)

    console.print(f"Code: [bold]{code}[/bold]")
    console.print(f"Link: {build_referral_link(code)}")


@app.command("rotate-code")
def rotate_code(
    account_id: Annotated[int, typer.Argument(help="Account ID")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Replace an account's referral code. The old code stops working."""
    if not yes:
        typer.confirm(f"Rotate the referral code of account {account_id}?", abort=True)

    try:
        code = referral_codes.rotate(account_id)
    except NotFoundError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[bold green]✓[/bold green] New code: [bold]{code}[/bold]")


@app.command("balances")
def show_balances(
    account_id: Annotated[int, typer.Argument(help="Account ID")],
) -> None:
    """Show referral earnings balances per currency."""
    balances = get_balances(account_id)
    if not balances:
        console.print("[yellow]No earnings yet[/yellow]")
        return

    table = Table(title=f"Referral earnings for account {account_id}")
    table.add_column("Currency", style="cyan")
    table.add_column("Amount", justify="right", style="green")
    for currency, amount in sorted(balances.items()):
        table.add_row(currency.upper(), f"{amount / 100:.2f}")
    console.print(table)


@app.command("ad-stats")
def ad_stats(
    placement: Annotated[str | None, typer.Option("--placement", "-p", help="Filter by placement")] = None,
) -> None:
    """List ads with their impression and click counters."""
    with db.session() as session:
        query = select(Ad).order_by(Ad.created_at.desc())
        if placement:
            query = query.where(Ad.placement == placement)
        ads = list(session.scalars(query))

    if not ads:
        console.print("[yellow]No ads found[/yellow]")
        return

    table = Table(title="Ads")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Placement")
    table.add_column("Impressions", justify="right")
    table.add_column("Clicks", justify="right")
    table.add_column("CTR", justify="right")
    for ad in ads:
        ctr = f"{ad.clicks / ad.impressions:.1%}" if ad.impressions else "-"
        table.add_row(ad.id, ad.title, ad.placement or "-", str(ad.impressions), str(ad.clicks), ctr)
    console.print(table)


if __name__ == "__main__":
    app()

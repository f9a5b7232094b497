"""CLI for Poker Ledger using Typer."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation

import typer
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .db import Database
from .models import (
    Game,
    GameStatus,
    PaymentMethod,
    PlayerBalance,
    SettlementLine,
    Transaction,
)
from .planner import NO_SETTLEMENTS_MESSAGE
from .service import GameService
from .ui import confirm_close, select_payment_method_interactive

app = typer.Typer(
    name="poker-ledger",
    help="Track buy-ins and cash-outs for home poker games and settle up",
)

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def open_service(verbose: bool = False) -> Iterator[GameService]:
    """Load settings, open the database and report errors uniformly."""
    setup_logging(verbose)
    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path)
        yield GameService(settings, db)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def parse_amount(value: str) -> Decimal:
    """Parse a CLI amount such as ``20``, ``20.50`` or ``$1,000``."""
    try:
        return Decimal(value.replace("$", "").replace(",", "").strip())
    except InvalidOperation as e:
        raise typer.BadParameter(f"Not a valid amount: {value}") from e


def format_money(amount: Decimal, use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: ($85.02)
    Positive amounts have spaces:      $85.02
    The spaces ensure decimal points align in tables.
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            formatted = f"($[red]{abs_amount:,.2f}[/red])"
        else:
            formatted = f"(${abs_amount:,.2f})"
    else:
        if use_color:
            formatted = f" [green]${abs_amount:,.2f}[/green] "
        else:
            formatted = f" ${abs_amount:,.2f} "
    return formatted


def display_balances(balances: dict[str, PlayerBalance]):
    """Display per-player totals in a table."""
    table = Table(title="Balances", show_header=True, header_style="bold magenta")
    table.add_column("Player", style="cyan")
    table.add_column("Buy-ins", justify="right", width=8)
    table.add_column("Total In", justify="right", width=12)
    table.add_column("Total Out", justify="right", width=12)
    table.add_column("Net", justify="right", width=12)

    for balance in balances.values():
        table.add_row(
            balance.user_id,
            str(len(balance.buyins)),
            format_money(balance.total_buyin, use_color=False),
            format_money(balance.total_cashout, use_color=False),
            format_money(balance.net),
        )

    console.print(table)


def display_games(games: list[Game]):
    """Display games, newest first."""
    if not games:
        console.print("[dim]No games yet.[/dim]")
        return

    table = Table(title="Games", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    table.add_column("Buy-in", justify="right")

    for game in games:
        table.add_row(
            game.id,
            game.name,
            game.status.value,
            format_money(game.buyin_amount, use_color=False),
        )

    console.print(table)


def display_rankings(rankings: list[PlayerBalance]):
    """Display players by net result."""
    table = Table(title="Rankings", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", width=3)
    table.add_column("Player", style="cyan")
    table.add_column("Net", justify="right", width=12)

    for rank, balance in enumerate(rankings, start=1):
        table.add_row(str(rank), balance.user_id, format_money(balance.net))

    console.print(table)


def display_transactions(
    title: str, transactions: list[Transaction], show_game: bool = False
):
    """Display transactions with their IDs for editing."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    if show_game:
        table.add_column("Game", style="dim", no_wrap=True)
    table.add_column("Time")
    table.add_column("Type")
    table.add_column("Amount", justify="right", width=12)
    table.add_column("Notes", style="dim")

    for txn in transactions:
        row = [txn.id]
        if show_game:
            row.append(txn.game_id)
        row += [
            txn.timestamp.strftime("%Y-%m-%d %H:%M"),
            "Buy-in" if txn.type == "buyin" else "Cash-out",
            format_money(txn.amount, use_color=False),
            txn.notes or "",
        ]
        table.add_row(*row)

    console.print(table)


def display_settlements(lines: list[SettlementLine]):
    """Display the settlement plan with paid/unpaid status."""
    if not lines:
        console.print(
            f"\n[bold green]✓ All settled![/bold green] {NO_SETTLEMENTS_MESSAGE}"
        )
        return

    table = Table(
        title="Settlement Summary", show_header=True, header_style="bold magenta"
    )
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Amount", justify="right", width=12)
    table.add_column("Status")

    for line in lines:
        if line.is_settled:
            status = f"[green]✓ Paid ({line.status.method.label})[/green]"
        else:
            status = "[yellow]Pending[/yellow]"
        table.add_row(
            line.transfer.from_user_id,
            line.transfer.to_user_id,
            format_money(line.transfer.amount, use_color=False),
            status,
        )

    console.print(table)
    paid = sum(1 for line in lines if line.is_settled)
    console.print(f"  {paid} of {len(lines)} transfers paid")


@app.command("new-game")
def new_game(
    name: str = typer.Argument(..., help="Game name"),
    buyin: str | None = typer.Option(None, "--buyin", "-b", help="Buy-in amount"),
    currency: str | None = typer.Option(None, "--currency", help="Currency code"),
    player: list[str] | None = typer.Option(None, "--player", "-p", help="Player ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Create a scheduled game."""
    with open_service(verbose) as service:
        game = service.create_game(
            name=name,
            buyin_amount=parse_amount(buyin) if buyin else None,
            currency=currency,
            participants=player,
        )
        console.print(f"[bold green]✓ Created game[/bold green] {game.id}")
        console.print(f"  Buy-in: {format_money(game.buyin_amount)} {game.currency}")


@app.command("add-player")
def add_player(
    game_id: str = typer.Argument(..., help="Game ID"),
    user_id: str = typer.Argument(..., help="Player ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Seat a player in a game."""
    with open_service(verbose) as service:
        service.add_participant(game_id, user_id)
        console.print(f"[green]✓ Added {user_id}[/green]")


@app.command()
def start(
    game_id: str = typer.Argument(..., help="Game ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Start a game, recording each player's initial buy-in."""
    with open_service(verbose) as service:
        game = service.start_game(game_id)
        console.print(f"[bold green]✓ Started {game.name}[/bold green]")
        display_balances(service.get_balances(game_id))


@app.command()
def buyin(
    game_id: str = typer.Argument(..., help="Game ID"),
    user_id: str = typer.Argument(..., help="Player ID"),
    amount: str = typer.Argument(..., help="Amount"),
    notes: str | None = typer.Option(None, "--notes", "-n", help="Notes"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record a buy-in or additional buy-in."""
    with open_service(verbose) as service:
        txn = service.add_transaction(
            game_id, user_id, "buyin", parse_amount(amount), notes
        )
        console.print(
            f"[green]✓ Buy-in {format_money(txn.amount)} for {user_id}[/green]"
        )


@app.command()
def cashout(
    game_id: str = typer.Argument(..., help="Game ID"),
    user_id: str = typer.Argument(..., help="Player ID"),
    amount: str = typer.Argument(..., help="Amount"),
    notes: str | None = typer.Option(None, "--notes", "-n", help="Notes"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record a cash-out."""
    with open_service(verbose) as service:
        txn = service.add_transaction(
            game_id, user_id, "cashout", parse_amount(amount), notes
        )
        console.print(
            f"[green]✓ Cash-out {format_money(txn.amount)} for {user_id}[/green]"
        )


@app.command("edit-txn")
def edit_transaction(
    transaction_id: str = typer.Argument(..., help="Transaction ID"),
    amount: str = typer.Argument(..., help="New amount"),
    notes: str | None = typer.Option(None, "--notes", "-n", help="Notes"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Correct a transaction amount."""
    with open_service(verbose) as service:
        txn = service.update_transaction(transaction_id, parse_amount(amount), notes)
        console.print(
            f"[green]✓ Updated {txn.type} to {format_money(txn.amount)}[/green]"
        )


@app.command("delete-txn")
def delete_transaction(
    transaction_id: str = typer.Argument(..., help="Transaction ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a transaction."""
    with open_service(verbose) as service:
        service.delete_transaction(transaction_id)
        console.print("[green]✓ Transaction deleted[/green]")


@app.command()
def balances(
    game_id: str = typer.Argument(..., help="Game ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show each player's totals and whether the books balance."""
    with open_service(verbose) as service:
        display_balances(service.get_balances(game_id))
        validation = service.check_balance(game_id)
        if validation.balanced:
            console.print(f"  [green]✓ {validation.message}[/green]")
        else:
            console.print(f"  [red]✗ {validation.message}[/red]")


@app.command()
def games(
    status: GameStatus | None = typer.Option(
        None, "--status", "-s", help="Only games with this status"
    ),
    limit: int = typer.Option(20, "--limit", "-l", help="Games per page"),
    page: int = typer.Option(1, "--page", help="Page number", min=1),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List games, newest first."""
    with open_service(verbose) as service:
        display_games(
            service.list_games(status=status, limit=limit, offset=(page - 1) * limit)
        )


@app.command()
def rankings(
    game_id: str = typer.Argument(..., help="Game ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Rank players by net result."""
    with open_service(verbose) as service:
        display_rankings(service.get_rankings(game_id))


@app.command()
def history(
    game_id: str = typer.Argument(..., help="Game ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show each player's buy-ins and cash-outs in order."""
    with open_service(verbose) as service:
        for balance in service.get_balances(game_id).values():
            in_out = (
                f"in {format_money(balance.total_buyin, use_color=False).strip()}, "
                f"out {format_money(balance.total_cashout, use_color=False).strip()}"
            )
            display_transactions(
                f"{balance.user_id} ({in_out})", balance.buyins + balance.cashouts
            )


@app.command()
def player(
    user_id: str = typer.Argument(..., help="Player ID"),
    game_id: str | None = typer.Option(None, "--game", "-g", help="Only this game"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show a player's transactions across games."""
    with open_service(verbose) as service:
        transactions = service.get_player_history(user_id, game_id)
        if not transactions:
            console.print(f"[dim]No transactions for {user_id}.[/dim]")
            return
        display_transactions(
            f"History for {user_id}", transactions, show_game=game_id is None
        )


@app.command()
def close(
    game_id: str = typer.Argument(..., help="Game ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Complete a game. Refused while buy-ins and cash-outs don't match."""
    with open_service(verbose) as service:
        validation = service.check_balance(game_id)
        if not validation.balanced:
            console.print(f"[red]✗ Cannot close game:[/red] {validation.message}")
            sys.exit(1)

        if not yes and not confirm_close(
            format_money(validation.total_buyin, use_color=False).strip(),
            format_money(validation.total_cashout, use_color=False).strip(),
        ):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        game = service.close_game(game_id)
        console.print(f"[bold green]✓ {game.name} completed[/bold green]")
        display_settlements(service.get_settlement_lines(game_id))


@app.command()
def settle(
    game_id: str = typer.Argument(..., help="Game ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show who pays whom, and what has been paid."""
    with open_service(verbose) as service:
        report = service.reconcile_settlements(game_id)
        for record in report.orphaned:
            console.print(
                f"[yellow]⚠️  Stale settlement {record.from_user_id} → "
                f"{record.to_user_id} (${record.amount:,.2f}) "
                f"is no longer in the plan[/yellow]"
            )
        display_settlements(service.get_settlement_lines(game_id))


@app.command("mark-paid")
def mark_paid(
    game_id: str = typer.Argument(..., help="Game ID"),
    from_user_id: str = typer.Argument(..., help="Paying player"),
    to_user_id: str = typer.Argument(..., help="Receiving player"),
    method: PaymentMethod | None = typer.Option(
        None, "--method", "-m", help="Payment method (prompted when omitted)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Mark a planned transfer as paid."""
    with open_service(verbose) as service:
        if method is None:
            transfer = next(
                (
                    t
                    for t in service.get_settlement_plan(game_id)
                    if (t.from_user_id, t.to_user_id) == (from_user_id, to_user_id)
                ),
                None,
            )
            if transfer is None:
                console.print(
                    f"[red]✗ No settlement from {from_user_id} to {to_user_id}[/red]"
                )
                sys.exit(1)
            method = select_payment_method_interactive(transfer)
            if method is None:
                console.print("[yellow]No payment method selected.[/yellow]")
                return

        record = service.mark_settled(game_id, from_user_id, to_user_id, method)
        console.print(
            f"[bold green]✓ {from_user_id} paid {to_user_id} "
            f"{format_money(record.amount).strip()} via "
            f"{record.payment_method.label}[/bold green]"
        )


@app.command()
def reset(
    game_id: str = typer.Argument(..., help="Game ID"),
    from_user_id: str = typer.Argument(..., help="Paying player"),
    to_user_id: str = typer.Argument(..., help="Receiving player"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Mark a transfer as unpaid again."""
    with open_service(verbose) as service:
        if service.reset_settlement(game_id, from_user_id, to_user_id):
            console.print("[green]✓ Settlement reset[/green]")
        else:
            console.print("[dim]Nothing to reset.[/dim]")


if __name__ == "__main__":
    app()

"""CLI for SplitCheck using Typer."""

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .editing import contributor_name_path, item_path, split_path, title_path
from .exceptions import SplitCheckError
from .formatter import format_currency, get_currency_type
from .models import CheckDocument, EditContext, Notification
from .reconciler import Reconciler
from .store import SqliteStore
from .strings import DEFAULT_STRINGS
from .ui import confirm_delete, select_contributor_interactive

app = typer.Typer(
    name="splitcheck",
    help="Split shared bills between contributors by arbitrary ratios",
)

console = Console()

T = TypeVar("T")

LocaleOption = typer.Option(None, "--locale", "-l", help="Locale, e.g. en-US")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose output")


def setup_logging(verbose: bool = False, level_name: str = "INFO"):
    """Setup logging configuration."""
    level = (
        logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    )
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def print_notification(notification: Notification):
    """Show a reconciler notification on the console."""
    colors = {"info": "blue", "success": "green", "error": "red"}
    color = colors.get(notification.level, "white")
    console.print(f"[{color}]{notification.message}[/{color}]")


def make_context(settings: Settings, locale: str | None) -> EditContext:
    """Terminal sessions own their local database, so they always edit."""
    locale = locale or settings.default_locale
    return EditContext(
        locale=locale,
        currency=get_currency_type(locale),
        write_access=True,
        access_rank=0,
        strings=DEFAULT_STRINGS,
        name_max_length=settings.name_max_length,
    )


def run_session(
    check_id: str,
    locale: str | None,
    verbose: bool,
    action: Callable[[Reconciler], Awaitable[T]],
) -> T:
    """
    Open a check, run an action against its reconciler, and close everything.

    Errors are printed and exit with status 1, or re-raised with --verbose.
    """
    settings = load_settings()
    setup_logging(verbose, settings.log_level)

    async def session() -> T:
        with SqliteStore(settings.database_path) as store:
            reconciler = await Reconciler.open(
                store,
                check_id,
                make_context(settings, locale),
                notify=print_notification,
            )
            return await action(reconciler)

    try:
        return asyncio.run(session())
    except SplitCheckError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


def format_balance(locale: str, amount: int, currency: str) -> str:
    """Negative balances in red, positive in green."""
    text = format_currency(locale, amount, currency)
    if amount < 0:
        return f"[red]{text}[/red]"
    if amount > 0:
        return f"[green]{text}[/green]"
    return text


def display_check(reconciler: Reconciler):
    """Display a check as a grid with contributor totals underneath."""
    form = reconciler.form
    context = reconciler.context
    strings = reconciler.strings
    ledger = reconciler.ledger()

    table = Table(
        title=form.title.dirty or reconciler.check_id,
        show_header=True,
        header_style="bold magenta",
        show_footer=True,
    )
    table.add_column("#", style="dim", justify="right")
    table.add_column(strings["item"], style="cyan")
    table.add_column(
        strings["cost"],
        justify="right",
        footer=format_currency(context.locale, ledger.total_cost, context.currency),
    )
    table.add_column(strings["buyer"], style="yellow")
    for index, contributor in enumerate(form.contributors, start=1):
        table.add_column(f"{index}. {contributor.name.dirty}", justify="right")

    for index, item in enumerate(form.items, start=1):
        buyer = item.buyer.dirty
        buyer_name = (
            form.contributors[buyer].name.dirty
            if 0 <= buyer < len(form.contributors)
            else "[dim]-[/dim]"
        )
        table.add_row(
            str(index),
            item.name.dirty,
            item.cost.dirty,
            buyer_name,
            *[split.dirty for split in item.split],
        )

    console.print()
    console.print(table)

    totals = Table(show_header=True, header_style="bold magenta")
    totals.add_column(strings["contributorName"], style="cyan")
    totals.add_column(strings["totalPaid"], justify="right")
    totals.add_column(strings["totalOwing"], justify="right")
    totals.add_column(strings["balance"], justify="right")
    for contributor in ledger.contributors:
        totals.add_row(
            contributor.name,
            format_currency(context.locale, contributor.total_paid, context.currency),
            format_currency(context.locale, contributor.total_owing, context.currency),
            format_balance(context.locale, contributor.balance, context.currency),
        )
    console.print(totals)

    console.print(
        f"[bold]{strings['checkTotal']}:[/bold] "
        f"{format_currency(context.locale, ledger.total_cost, context.currency)}"
    )
    if ledger.unallocated:
        console.print(
            "[yellow]⚠️  Not split between anyone: "
            f"{format_currency(context.locale, ledger.unallocated, context.currency)}"
            "[/yellow]"
        )


@app.command()
def new(
    title: str = typer.Argument(..., help="Title of the check"),
    verbose: bool = VerboseOption,
):
    """Create an empty check and print its id."""
    settings = load_settings()
    setup_logging(verbose, settings.log_level)
    with SqliteStore(settings.database_path) as store:
        check_id = store.create_document(CheckDocument(title=title))
    console.print(f"[green]Created check[/green] [bold]{check_id}[/bold]")


@app.command("list")
def list_checks(verbose: bool = VerboseOption):
    """List stored checks, most recently modified first."""
    settings = load_settings()
    setup_logging(verbose, settings.log_level)
    with SqliteStore(settings.database_path) as store:
        documents = store.list_documents()

    if not documents:
        console.print("[yellow]No checks found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Contributors", justify="right")
    table.add_column("Items", justify="right")
    for check_id, document in documents:
        table.add_row(
            check_id,
            document.title,
            str(len(document.contributors)),
            str(len(document.items)),
        )
    console.print(table)


@app.command()
def delete(
    check_id: str = typer.Argument(..., help="Check id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    verbose: bool = VerboseOption,
):
    """Delete a check."""
    settings = load_settings()
    setup_logging(verbose, settings.log_level)
    if not yes and not confirm_delete(f"check {check_id}"):
        return
    try:
        with SqliteStore(settings.database_path) as store:
            store.delete_document(check_id)
    except SplitCheckError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    console.print(f"[green]✓ Deleted check {check_id}[/green]")


@app.command()
def show(
    check_id: str = typer.Argument(..., help="Check id"),
    locale: str | None = LocaleOption,
    verbose: bool = VerboseOption,
):
    """Show a check's items and every contributor's paid, owing and balance."""

    async def action(reconciler: Reconciler):
        display_check(reconciler)

    run_session(check_id, locale, verbose, action)


@app.command()
def summary(
    check_id: str = typer.Argument(..., help="Check id"),
    contributor: int = typer.Argument(..., help="Contributor number (from 1)"),
    locale: str | None = LocaleOption,
    verbose: bool = VerboseOption,
):
    """Show what one contributor paid and owes, item by item."""

    async def action(reconciler: Reconciler):
        context = reconciler.context
        try:
            breakdown = reconciler.summary(contributor - 1)
        except IndexError:
            console.print(f"[red]No contributor number {contributor}[/red]")
            return

        def money(amount: int) -> str:
            return format_currency(context.locale, amount, context.currency)

        table = Table(
            title=breakdown.name, show_header=True, header_style="bold magenta"
        )
        table.add_column(reconciler.strings["item"], style="cyan")
        table.add_column(reconciler.strings["cost"], justify="right")
        table.add_column(reconciler.strings["totalPaid"], justify="right")
        table.add_column(reconciler.strings["totalOwing"], justify="right")
        for line in breakdown.lines:
            table.add_row(
                line.item_name, money(line.cost), money(line.paid), money(line.owing)
            )
        console.print(table)
        console.print(
            f"[bold]{reconciler.strings['balance']}:[/bold] "
            f"{format_balance(context.locale, breakdown.balance, context.currency)}"
        )

    run_session(check_id, locale, verbose, action)


@app.command()
def title(
    check_id: str = typer.Argument(..., help="Check id"),
    value: str = typer.Argument(..., help="New title"),
    locale: str | None = LocaleOption,
    verbose: bool = VerboseOption,
):
    """Rename a check."""

    async def action(reconciler: Reconciler):
        reconciler.edit(title_path(), value)
        if await reconciler.commit_field(title_path()):
            console.print("[green]✓ Title updated[/green]")
        else:
            console.print("[dim]Nothing to update[/dim]")

    run_session(check_id, locale, verbose, action)


@app.command("add-contributor")
def add_contributor(
    check_id: str = typer.Argument(..., help="Check id"),
    name: str | None = typer.Option(None, "--name", "-n", help="Contributor name"),
    locale: str | None = LocaleOption,
    verbose: bool = VerboseOption,
):
    """Add a contributor; they get ratio 1 on every existing item."""

    async def action(reconciler: Reconciler):
        if await reconciler.add_contributor(name):
            display_check(reconciler)

    run_session(check_id, locale, verbose, action)


@app.command()
def rename(
    check_id: str = typer.Argument(..., help="Check id"),
    contributor: int = typer.Argument(..., help="Contributor number (from 1)"),
    name: str = typer.Argument(..., help="New name"),
    locale: str | None = LocaleOption,
    verbose: bool = VerboseOption,
):
    """Rename a contributor."""

    async def action(reconciler: Reconciler):
        if not 1 <= contributor <= len(reconciler.form.contributors):
            console.print(f"[red]No contributor number {contributor}[/red]")
            return
        path = contributor_name_path(contributor - 1)
        reconciler.edit(path, name)
        if await reconciler.commit_field(path):
            console.print("[green]✓ Contributor renamed[/green]")

    run_session(check_id, locale, verbose, action)


@app.command("delete-contributor")
def delete_contributor(
    check_id: str = typer.Argument(..., help="Check id"),
    contributor: int = typer.Argument(..., help="Contributor number (from 1)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    locale: str | None = LocaleOption,
    verbose: bool = VerboseOption,
):
    """Delete a contributor column from the check."""

    async def action(reconciler: Reconciler):
        index = contributor - 1
        if not 0 <= index < len(reconciler.form.contributors):
            console.print(f"[red]No contributor number {contributor}[/red]")
            return
        name = reconciler.form.contributors[index].name.dirty
        if not yes and not confirm_delete(name):
            return
        if await reconciler.delete_contributor(index):
            display_check(reconciler)

    run_session(check_id, locale, verbose, action)


@app.command("add-item")
def add_item(
    check_id: str = typer.Argument(..., help="Check id"),
    name: str | None = typer.Option(None, "--name", "-n", help="Item name"),
    cost: str | None = typer.Option(None, "--cost", "-c", help="Item cost"),
    locale: str | None = LocaleOption,
    verbose: bool = VerboseOption,
):
    """Add an item split evenly between all contributors."""

    async def action(reconciler: Reconciler):
        if not await reconciler.add_item(name):
            return
        if cost is not None:
            path = item_path(len(reconciler.form.items) - 1, "cost")
            reconciler.edit(path, cost)
            await reconciler.commit_field(path)
        display_check(reconciler)

    run_session(check_id, locale, verbose, action)


@app.command("edit-item")
def edit_item(
    check_id: str = typer.Argument(..., help="Check id"),
    item: int = typer.Argument(..., help="Item number (from 1)"),
    name: str | None = typer.Option(None, "--name", "-n", help="Item name"),
    cost: str | None = typer.Option(None, "--cost", "-c", help="Item cost"),
    split: list[str] | None = typer.Option(
        None, "--split", "-s", help="Ratio per contributor, in column order"
    ),
    locale: str | None = LocaleOption,
    verbose: bool = VerboseOption,
):
    """Change an item's name, cost or split ratios."""

    async def action(reconciler: Reconciler):
        index = item - 1
        if not 0 <= index < len(reconciler.form.items):
            console.print(f"[red]No item number {item}[/red]")
            return

        paths = []
        if name is not None:
            paths.append((item_path(index, "name"), name))
        if cost is not None:
            paths.append((item_path(index, "cost"), cost))
        for split_index, ratio in enumerate(split or []):
            if split_index >= len(reconciler.form.contributors):
                console.print(f"[yellow]Ignoring extra ratio {ratio}[/yellow]")
                break
            paths.append((split_path(index, split_index), ratio))

        for path, value in paths:
            reconciler.edit(path, value)
            await reconciler.commit_field(path)
        display_check(reconciler)

    run_session(check_id, locale, verbose, action)


@app.command("set-buyer")
def set_buyer(
    check_id: str = typer.Argument(..., help="Check id"),
    item: int = typer.Argument(..., help="Item number (from 1)"),
    contributor: int | None = typer.Argument(
        None, help="Contributor number (from 1); prompts when omitted"
    ),
    locale: str | None = LocaleOption,
    verbose: bool = VerboseOption,
):
    """Choose who bought an item."""

    async def action(reconciler: Reconciler):
        index = item - 1
        form = reconciler.form
        if not 0 <= index < len(form.items):
            console.print(f"[red]No item number {item}[/red]")
            return

        if contributor is None:
            # prompt_toolkit runs its own event loop, so prompt off this one
            buyer = await asyncio.to_thread(
                select_contributor_interactive,
                form.contributors,
                form.items[index].name.dirty,
                current_index=form.items[index].buyer.dirty,
            )
            if buyer is None:
                return
        else:
            buyer = contributor - 1
            if not 0 <= buyer < len(form.contributors):
                console.print(f"[red]No contributor number {contributor}[/red]")
                return

        path = item_path(index, "buyer")
        reconciler.edit(path, buyer)
        await reconciler.commit_field(path)
        display_check(reconciler)

    run_session(check_id, locale, verbose, action)


@app.command("delete-item")
def delete_item(
    check_id: str = typer.Argument(..., help="Check id"),
    item: int = typer.Argument(..., help="Item number (from 1)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    locale: str | None = LocaleOption,
    verbose: bool = VerboseOption,
):
    """Delete an item row from the check."""

    async def action(reconciler: Reconciler):
        index = item - 1
        if not 0 <= index < len(reconciler.form.items):
            console.print(f"[red]No item number {item}[/red]")
            return
        if not yes and not confirm_delete(reconciler.form.items[index].name.dirty):
            return
        if await reconciler.delete_item(index):
            display_check(reconciler)

    run_session(check_id, locale, verbose, action)


if __name__ == "__main__":
    app()

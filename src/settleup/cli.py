"""CLI for SettleUp."""

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import TypeVar

import typer
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .db import Database
from .exceptions import LedgerValidationError, UnknownMemberError
from .models import Expense, SettlementPlan, to_money
from .session import SettleUpSession
from .settlement import SettlementStatus
from .status import check_services
from .ui import prompt_shares, select_group_interactive

T = TypeVar("T")

app = typer.Typer(
    name="settleup",
    help="Track shared expenses and work out who owes whom",
)
groups_app = typer.Typer(help="Create, edit and select groups")
members_app = typer.Typer(help="Manage members of the active group")
categories_app = typer.Typer(help="Manage categories of the active group")
expenses_app = typer.Typer(help="Record and list expenses of the active group")
settle_app = typer.Typer(help="Settlement plans and recorded transfers")

app.add_typer(groups_app, name="groups")
app.add_typer(members_app, name="members")
app.add_typer(categories_app, name="categories")
app.add_typer(expenses_app, name="expenses")
app.add_typer(settle_app, name="settle")

console = Console()

GROUP_OPTION = typer.Option(
    None, "--group", "-g", help="Group id to use (becomes the active group)"
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Verbose output")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Downgrade httpx logging (network requests are too noisy at INFO)
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def format_money(amount: Decimal, currency: str = "", use_color: bool = True) -> str:
    """
    Format money in accounting style.

    Negative amounts use parentheses: (85.02)
    """
    prefix = f"{currency} " if currency else ""
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"({prefix}[red]{abs_amount:,.2f}[/red])"
        return f"({prefix}{abs_amount:,.2f})"
    if use_color:
        return f" {prefix}[green]{abs_amount:,.2f}[/green] "
    return f" {prefix}{abs_amount:,.2f} "


def _run(
    action: Callable[[SettleUpSession], Awaitable[T]],
    verbose: bool,
    group_id: int | None = None,
) -> T:
    """
    Open a session, run an action against it and remember the active group.

    Args:
        action: Coroutine function taking the session
        verbose: Verbose output (re-raises errors)
        group_id: Group to activate instead of the remembered one
    """
    setup_logging(verbose)

    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path)
        preferred = group_id if group_id is not None else db.get_active_group_id()

        async def _with_session() -> T:
            async with SettleUpSession(settings) as session:
                await session.open(preferred)
                try:
                    return await action(session)
                finally:
                    db.set_active_group_id(session.store.active_group_id)

        return asyncio.run(_with_session())

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def _member_label(session: SettleUpSession, member_id: int) -> str:
    member = session.members.get(member_id)
    return member.email if member else f"#{member_id}"


def _resolve_member(session: SettleUpSession, ref: str) -> int:
    """Find a loaded member by id or email."""
    for member in session.members.items:
        if ref == str(member.id) or ref.lower() == member.email.lower():
            return member.id
    raise LedgerValidationError(
        f"No member {ref!r} in group {session.store.active_group_id}"
    )


def display_expenses(session: SettleUpSession, expenses: list[Expense]):
    """Display expenses in a table."""
    table = Table(title="Expenses", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", width=6)
    table.add_column("Payer", style="cyan")
    table.add_column("Amount", justify="right")
    table.add_column("Splits")

    for expense in expenses:
        splits = ", ".join(
            f"{_member_label(session, s.member_id)} {s.share_amount:,.2f}"
            for s in expense.splits
        )
        amount = format_money(expense.total_amount, expense.currency)
        if not expense.is_balanced():
            amount = f"⚠️  {amount}"
        table.add_row(
            str(expense.id),
            _member_label(session, expense.payer_member_id),
            amount,
            splits or "[dim]none[/dim]",
        )

    console.print(table)


def display_plan(session: SettleUpSession, plan: SettlementPlan, currency: str):
    """Display a settlement plan."""
    if not plan.transfers:
        console.print("[green]Everyone is settled up.[/green]")
        return

    table = Table(title="Transfers", show_header=True, header_style="bold magenta")
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Amount", justify="right")

    for transfer in plan.transfers:
        table.add_row(
            _member_label(session, transfer.from_member_id),
            _member_label(session, transfer.to_member_id),
            format_money(transfer.amount, currency),
        )

    console.print(table)


# ============================================================================
# Groups
# ============================================================================


@groups_app.command("list")
def groups_list(verbose: bool = VERBOSE_OPTION):
    """List all groups (* marks the active one)."""

    async def action(session: SettleUpSession):
        table = Table(title="Groups", show_header=True, header_style="bold magenta")
        table.add_column("", width=1)
        table.add_column("ID", style="dim", width=6)
        table.add_column("Name", style="cyan")
        table.add_column("Currency")

        active_id = session.store.active_group_id
        for group in session.groups.groups:
            table.add_row(
                "*" if group.id == active_id else "",
                str(group.id),
                group.name,
                group.base_currency,
            )
        console.print(table)

    _run(action, verbose)


@groups_app.command("create")
def groups_create(
    name: str = typer.Argument(..., help="Group name"),
    currency: str = typer.Option("USD", "--currency", "-c", help="Base currency"),
    verbose: bool = VERBOSE_OPTION,
):
    """Create a group."""

    async def action(session: SettleUpSession):
        group = await session.groups.create(name, currency)
        console.print(
            f"[green]✓ Created group #{group.id} {group.name} ({group.base_currency})[/green]"
        )

    _run(action, verbose)


@groups_app.command("update")
def groups_update(
    group_id: int = typer.Argument(..., help="Group id"),
    name: str | None = typer.Option(None, "--name", "-n", help="New name"),
    currency: str | None = typer.Option(None, "--currency", "-c", help="New base currency"),
    verbose: bool = VERBOSE_OPTION,
):
    """Rename a group or change its base currency."""

    async def action(session: SettleUpSession):
        current = await session.groups.get(group_id)
        group = await session.groups.update(
            group_id, name or current.name, currency or current.base_currency
        )
        console.print(
            f"[green]✓ Updated group #{group.id} {group.name} ({group.base_currency})[/green]"
        )

    _run(action, verbose)


@groups_app.command("delete")
def groups_delete(
    group_id: int = typer.Argument(..., help="Group id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Don't ask for confirmation"),
    verbose: bool = VERBOSE_OPTION,
):
    """Delete a group with its members, categories and expenses."""
    if not yes and not typer.confirm(f"Delete group #{group_id} and everything in it?"):
        raise typer.Abort()

    async def action(session: SettleUpSession):
        await session.groups.delete(group_id)
        console.print(f"[green]✓ Deleted group #{group_id}[/green]")
        active = session.active_group
        if active:
            console.print(f"[dim]Active group is now #{active.id} {active.name}[/dim]")

    _run(action, verbose)


@groups_app.command("use")
def groups_use(
    group_id: int | None = typer.Argument(None, help="Group id (omit to search)"),
    verbose: bool = VERBOSE_OPTION,
):
    """Select the active group."""

    async def action(session: SettleUpSession):
        target = group_id
        if target is None:
            target = await select_group_interactive(
                session.groups.groups, session.store.active_group_id
            )
            if target is None:
                return
        await session.groups.select_active(target)
        active = session.active_group
        if active:
            console.print(f"[green]✓ Active group: #{active.id} {active.name}[/green]")

    _run(action, verbose)


# ============================================================================
# Members
# ============================================================================


@members_app.command("list")
def members_list(group: int | None = GROUP_OPTION, verbose: bool = VERBOSE_OPTION):
    """List members of the active group."""

    async def action(session: SettleUpSession):
        active = session.require_active_group()
        table = Table(
            title=f"Members of {active.name}",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("ID", style="dim", width=6)
        table.add_column("Email", style="cyan")
        table.add_column("Role")
        for member in session.members.items:
            table.add_row(str(member.id), member.email, member.role)
        console.print(table)

    _run(action, verbose, group)


@members_app.command("add")
def members_add(
    email: str = typer.Argument(..., help="Member email"),
    role: str = typer.Option("MEMBER", "--role", "-r", help="Member role"),
    group: int | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Add a member to the active group."""

    async def action(session: SettleUpSession):
        group_id = session.store.require_active()
        member = await session.members.add(group_id, email, role)
        console.print(f"[green]✓ Added member #{member.id} {member.email}[/green]")

    _run(action, verbose, group)


@members_app.command("update")
def members_update(
    member_id: int = typer.Argument(..., help="Member id"),
    email: str | None = typer.Option(None, "--email", "-e", help="New email"),
    role: str | None = typer.Option(None, "--role", "-r", help="New role"),
    group: int | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Change a member's email or role."""

    async def action(session: SettleUpSession):
        group_id = session.store.require_active()
        current = session.members.get(member_id)
        if current is None:
            raise UnknownMemberError(member_id, group_id)
        member = await session.members.update(
            group_id, member_id, email or current.email, role or current.role
        )
        console.print(f"[green]✓ Updated member #{member.id} {member.email}[/green]")

    _run(action, verbose, group)


@members_app.command("remove")
def members_remove(
    member_id: int = typer.Argument(..., help="Member id"),
    group: int | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Remove a member from the active group."""

    async def action(session: SettleUpSession):
        group_id = session.store.require_active()
        await session.members.remove(group_id, member_id)
        console.print(f"[green]✓ Removed member #{member_id}[/green]")

    _run(action, verbose, group)


# ============================================================================
# Categories
# ============================================================================


@categories_app.command("list")
def categories_list(group: int | None = GROUP_OPTION, verbose: bool = VERBOSE_OPTION):
    """List categories of the active group."""

    async def action(session: SettleUpSession):
        active = session.require_active_group()
        table = Table(
            title=f"Categories of {active.name}",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("ID", style="dim", width=6)
        table.add_column("Name", style="cyan")
        for category in session.categories.items:
            table.add_row(str(category.id), category.name)
        console.print(table)

    _run(action, verbose, group)


@categories_app.command("add")
def categories_add(
    name: str = typer.Argument(..., help="Category name"),
    group: int | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Add a category to the active group."""

    async def action(session: SettleUpSession):
        group_id = session.store.require_active()
        category = await session.categories.add(group_id, name)
        console.print(f"[green]✓ Added category #{category.id} {category.name}[/green]")

    _run(action, verbose, group)


@categories_app.command("update")
def categories_update(
    category_id: int = typer.Argument(..., help="Category id"),
    name: str = typer.Argument(..., help="New name"),
    group: int | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Rename a category."""

    async def action(session: SettleUpSession):
        group_id = session.store.require_active()
        category = await session.categories.update(group_id, category_id, name)
        console.print(f"[green]✓ Renamed category #{category.id} to {category.name}[/green]")

    _run(action, verbose, group)


@categories_app.command("remove")
def categories_remove(
    category_id: int = typer.Argument(..., help="Category id"),
    group: int | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Remove a category from the active group."""

    async def action(session: SettleUpSession):
        group_id = session.store.require_active()
        await session.categories.remove(group_id, category_id)
        console.print(f"[green]✓ Removed category #{category_id}[/green]")

    _run(action, verbose, group)


# ============================================================================
# Expenses
# ============================================================================


@expenses_app.command("list")
def expenses_list(group: int | None = GROUP_OPTION, verbose: bool = VERBOSE_OPTION):
    """List expenses of the active group."""

    async def action(session: SettleUpSession):
        session.require_active_group()
        display_expenses(session, session.expenses.items)

    _run(action, verbose, group)


@expenses_app.command("add")
def expenses_add(
    total: str = typer.Argument(..., help="Total amount, e.g. 100 or 19.99"),
    payer: str | None = typer.Option(
        None, "--payer", "-p", help="Payer id or email (default: first member)"
    ),
    currency: str | None = typer.Option(
        None, "--currency", "-c", help="Currency (default: group base currency)"
    ),
    share: list[str] = typer.Option(
        [], "--share", "-s", help="Share as MEMBER=AMOUNT (member id or email)"
    ),
    even: bool = typer.Option(False, "--even", "-e", help="Split the total evenly"),
    interactive: bool = typer.Option(
        False, "--interactive", "-i", help="Enter each member's share interactively"
    ),
    group: int | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """
    Record an expense in the active group.

    Shares must add up to the total. Use --even to split equally, --share for
    explicit amounts, or --interactive to be asked per member.
    """

    async def action(session: SettleUpSession):
        active = session.require_active_group()
        ledger = session.expenses

        ledger.set_total(total)
        ledger.set_currency(currency or active.base_currency)
        if payer is not None:
            ledger.set_payer(_resolve_member(session, payer))

        if even:
            ledger.split_evenly()
        elif interactive:
            shares = await prompt_shares(
                session.members.items, ledger.draft.total_amount, ledger.draft.currency
            )
            if shares is None:
                return
            for member_id, amount in shares.items():
                ledger.set_share(member_id, amount)
        else:
            for entry in share:
                ref, sep, amount = entry.partition("=")
                if not sep:
                    raise LedgerValidationError(
                        f"Invalid share {entry!r}, expected MEMBER=AMOUNT"
                    )
                ledger.set_share(_resolve_member(session, ref.strip()), to_money(amount))

        expense = await ledger.submit_draft(active.id)
        console.print(
            f"[green]✓ Recorded expense #{expense.id}: "
            f"{format_money(expense.total_amount, expense.currency, use_color=False).strip()} "
            f"paid by {_member_label(session, expense.payer_member_id)}[/green]"
        )

    _run(action, verbose, group)


@expenses_app.command("delete")
def expenses_delete(
    expense_id: int = typer.Argument(..., help="Expense id"),
    group: int | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Delete an expense."""

    async def action(session: SettleUpSession):
        group_id = session.store.require_active()
        await session.expenses.delete(expense_id, group_id)
        console.print(f"[green]✓ Deleted expense #{expense_id}[/green]")

    _run(action, verbose, group)


# ============================================================================
# Settlement
# ============================================================================


@settle_app.command("compute")
def settle_compute(
    verify: bool = typer.Option(
        False, "--verify", help="Check the plan against the group's expenses"
    ),
    group: int | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Compute who pays whom to settle the active group."""

    async def action(session: SettleUpSession):
        active = session.require_active_group()
        console.print(f"\n[bold blue]Computing settlement for {active.name}...[/bold blue]")
        plan = await session.compute_settlement()
        if plan is None or session.settlement.status != SettlementStatus.READY:
            return
        display_plan(session, plan, active.base_currency)
        if verify:
            await session.check_plan()
            console.print("[green]✓ Plan settles every member's balance[/green]")

    _run(action, verbose, group)


@settle_app.command("record")
def settle_record(
    from_member: str = typer.Argument(..., help="Paying member (id or email)"),
    to_member: str = typer.Argument(..., help="Receiving member (id or email)"),
    amount: str = typer.Argument(..., help="Amount paid"),
    note: str | None = typer.Option(None, "--note", help="Optional note"),
    group: int | None = GROUP_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Record a payment that was made to settle up."""

    async def action(session: SettleUpSession):
        group_id = session.store.require_active()
        transfer = await session.settlement.record_transfer(
            group_id,
            _resolve_member(session, from_member),
            _resolve_member(session, to_member),
            amount,
            note,
        )
        console.print(f"[green]✓ Recorded transfer #{transfer.id}[/green]")

    _run(action, verbose, group)


@settle_app.command("transfers")
def settle_transfers(group: int | None = GROUP_OPTION, verbose: bool = VERBOSE_OPTION):
    """List recorded payments of the active group."""

    async def action(session: SettleUpSession):
        active = session.require_active_group()
        transfers = await session.settlement.list_transfers(active.id)

        table = Table(
            title="Recorded transfers", show_header=True, header_style="bold magenta"
        )
        table.add_column("ID", style="dim", width=6)
        table.add_column("From", style="cyan")
        table.add_column("To", style="cyan")
        table.add_column("Amount", justify="right")
        table.add_column("Note", style="dim")
        for transfer in transfers:
            table.add_row(
                str(transfer.id),
                _member_label(session, transfer.from_member_id),
                _member_label(session, transfer.to_member_id),
                format_money(transfer.amount, active.base_currency),
                transfer.note or "",
            )
        console.print(table)

    _run(action, verbose, group)


# ============================================================================
# Status
# ============================================================================


@app.command()
def status(verbose: bool = VERBOSE_OPTION):
    """Check that the backend services are reachable."""
    setup_logging(verbose)
    try:
        settings = load_settings()
        checks = asyncio.run(check_services(settings))
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)

    table = Table(title="Service status", show_header=True, header_style="bold magenta")
    table.add_column("Service", style="cyan")
    table.add_column("URL", style="dim")
    table.add_column("Status")
    for check in checks:
        state = "[green]OK[/green]" if check.ok else f"[red]ERROR: {check.error}[/red]"
        table.add_row(check.name, check.url, state)
    console.print(table)

    if not all(check.ok for check in checks):
        sys.exit(1)


if __name__ == "__main__":
    app()

"""
CampusGrid Console - CLI Entry Point.

Usage:
    campusgrid onboard [--from-file draft.json]   Onboard a new school group
    campusgrid groups list [--status] [--search]  List onboarded groups
    campusgrid groups show ID                     Show one group
    campusgrid groups stats                       Dashboard counters
    campusgrid groups activate ID                 Pending -> Active
    campusgrid groups set-status ID STATUS        Any allowed status change
    campusgrid sandbox                            Run the in-memory API
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from campusgrid.adapters.platform_client import PlatformClient
from campusgrid.config import get_settings
from campusgrid.exceptions import (
    ApplicationError,
    AuthError,
    CampusGridError,
    NetworkError,
    ValidationError,
)
from campusgrid.models.enums import Board, GroupStatus
from campusgrid.models.group import Group
from campusgrid.services.auth_service import AuthService
from campusgrid.services.credential_vault import CredentialVault
from campusgrid.services.group_registry import GroupRegistry
from campusgrid.services.onboarding_service import OnboardingSubmitter
from campusgrid.services.wizard import FIELD_LABELS, WizardState, steps_summary
from campusgrid.session import OperatorSession

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="campusgrid",
    help="CampusGrid Console - onboard school groups and manage their lifecycle.",
    add_completion=False,
)
groups_app = typer.Typer(help="Browse and manage onboarded groups.", add_completion=False)
app.add_typer(groups_app, name="groups")

console = Console()

STATUS_STYLES = {
    GroupStatus.PENDING: "yellow",
    GroupStatus.ACTIVE: "green",
    GroupStatus.INACTIVE: "dim",
    GroupStatus.SUSPENDED: "red",
}

EMAIL_OPTION = typer.Option(..., "--email", "-e", envvar="CAMPUSGRID_EMAIL", prompt="Operator email")
PASSWORD_OPTION = typer.Option(
    ..., "--password", "-p", envvar="CAMPUSGRID_PASSWORD", prompt="Password", hide_input=True,
)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs")) -> None:
    """Configure logging once per invocation."""
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


# ═══════════════════════════════════════════════════════════════════════════
# Сессия оператора
# ═══════════════════════════════════════════════════════════════════════════


@asynccontextmanager
async def operator_client(email: str, password: str) -> AsyncIterator[PlatformClient]:
    """Логин → клиент с активной сессией → логаут при выходе."""
    session = OperatorSession()
    async with PlatformClient(session) as client:
        auth = AuthService(client)
        await auth.login(email, password)
        try:
            yield client
        except AuthError:
            # Токен больше не принимается: закрываем сессию без запроса
            session.teardown()
            raise
        finally:
            if session.is_active:
                await auth.logout()


def _run(coro) -> None:
    """Запускает корутину команды и печатает ошибки в понятном виде."""
    try:
        asyncio.run(coro)
    except AuthError as exc:
        console.print(f"[red]Authentication failed:[/red] {exc.message}")
        raise typer.Exit(2)
    except ValidationError as exc:
        console.print(f"[red]{exc.message}[/red]")
        _print_field_errors(exc.field_errors)
        raise typer.Exit(1)
    except CampusGridError as exc:
        console.print(f"[red]Error:[/red] {exc.message}")
        raise typer.Exit(1)


def _print_field_errors(errors: dict[str, str]) -> None:
    for name, message in errors.items():
        console.print(f"  [red]•[/red] {FIELD_LABELS.get(name, name)}: {message}")


# ═══════════════════════════════════════════════════════════════════════════
# onboard
# ═══════════════════════════════════════════════════════════════════════════


@app.command()
def onboard(
    from_file: Path | None = typer.Option(
        None, "--from-file", "-f", exists=True, dir_okay=False, help="Read the draft from a JSON file",
    ),
    email: str = EMAIL_OPTION,
    password: str = PASSWORD_OPTION,
) -> None:
    """Onboard a new school group and show its admin credentials once."""
    wizard = WizardState()

    if from_file is not None:
        try:
            wizard.update(json.loads(from_file.read_text(encoding="utf-8")))
        except json.JSONDecodeError as exc:
            console.print(f"[red]{from_file} is not valid JSON:[/red] {exc}")
            raise typer.Exit(1)
        except ValidationError as exc:
            console.print(f"[red]{exc.message}[/red]")
            raise typer.Exit(1)
        while not wizard.is_review:
            step = wizard.current_step
            if not wizard.advance():
                console.print(f"[red]Step {step.index} ({step.title}) is incomplete:[/red]")
                _print_field_errors(wizard.errors)
                raise typer.Exit(1)
    else:
        console.print(Panel.fit(
            "[bold green]CampusGrid group onboarding[/bold green]\n"
            "[dim]Press Enter to keep the value in brackets.[/dim]",
            border_style="green",
        ))
        _collect_interactively(wizard)

    _render_review(wizard)
    if not typer.confirm("Submit this group?", default=True):
        wizard.cancel()
        console.print("[dim]Onboarding cancelled. Nothing was sent.[/dim]")
        raise typer.Exit(0)

    _run(_submit_flow(wizard, email, password))


def _collect_interactively(wizard: WizardState) -> None:
    """Проходит шаги мастера; при ошибках спрашивает только неверные поля."""
    while not wizard.is_review:
        step = wizard.current_step
        console.print(f"\n[bold]Step {step.index} of {len(wizard.steps)}: {step.title}[/bold]")
        pending = step.fields
        while True:
            for name in pending:
                _prompt_field(wizard, name)
            if wizard.advance():
                break
            _print_field_errors(wizard.errors)
            pending = list(wizard.errors)


def _prompt_field(wizard: WizardState, name: str) -> None:
    label = FIELD_LABELS.get(name, name)
    current = getattr(wizard.draft, name)
    if name == "affiliated_boards":
        options = ", ".join(b.value for b in Board)
        default = ", ".join(sorted(current))
        value = typer.prompt(f"{label} ({options})", default=default, show_default=True)
    else:
        value = typer.prompt(label, default="" if current is None else str(current), show_default=True)
    wizard.set_field(name, value)


def _render_review(wizard: WizardState) -> None:
    for step, values in steps_summary(wizard):
        table = Table(title=step.title, show_header=False, title_justify="left")
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for name, value in values.items():
            if isinstance(value, (set, frozenset)):
                value = ", ".join(sorted(value))
            table.add_row(FIELD_LABELS.get(name, name), "" if value is None else str(value))
        console.print(table)


async def _submit_flow(wizard: WizardState, email: str, password: str) -> None:
    async with operator_client(email, password) as client:
        vault = CredentialVault(client.session)
        submitter = OnboardingSubmitter(client, vault)
        while True:
            try:
                outcome = await wizard.submit(submitter)
                break
            except (NetworkError, ApplicationError) as exc:
                console.print(f"[red]Onboarding failed:[/red] {exc.message}")
                if not typer.confirm("The draft is kept. Retry?", default=False):
                    raise typer.Exit(1)

        group = outcome.group
        console.print(
            f"\n[green]✅ Group [bold]{group.group_name}[/bold] created[/green] "
            f"(subdomain: {group.subdomain}, status: {group.status.value})"
        )
        with vault.disclosure() as admin:
            if admin is not None:
                console.print(Panel.fit(
                    f"Name:     {admin.name}\n"
                    f"Email:    {admin.email}\n"
                    f"Password: [bold]{admin.password.get_secret_value()}[/bold]\n\n"
                    "[yellow]This password is shown only once. Store it securely now.[/yellow]",
                    title="Group admin credentials",
                    border_style="yellow",
                ))


# ═══════════════════════════════════════════════════════════════════════════
# groups
# ═══════════════════════════════════════════════════════════════════════════


def _status_text(status: GroupStatus) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/{style}]"


def _groups_table(groups: list[Group], title: str = "Groups") -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Subdomain")
    table.add_column("Contact")
    table.add_column("Status")
    table.add_column("Created")
    for g in groups:
        created = g.created_at.strftime("%Y-%m-%d") if g.created_at else ""
        table.add_row(g.id or "", g.group_name, g.subdomain, g.contact_email, _status_text(g.status), created)
    return table


def _render_group(group: Group) -> None:
    table = Table(show_header=False, title=group.group_name, title_justify="left")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Status", _status_text(group.status))
    for name, value in group.model_dump(exclude={"status"}).items():
        if value in (None, "", set()):
            continue
        if isinstance(value, (set, frozenset)):
            value = ", ".join(sorted(value))
        table.add_row(FIELD_LABELS.get(name, name), str(value))
    console.print(table)


@groups_app.command("list")
def list_groups(
    status: str | None = typer.Option(None, "--status", "-s", help="Pending, Active, Inactive or Suspended"),
    search: str | None = typer.Option(None, "--search", "-q", help="Match name, contact email or subdomain"),
    email: str = EMAIL_OPTION,
    password: str = PASSWORD_OPTION,
) -> None:
    """List onboarded groups."""
    async def _list() -> None:
        async with operator_client(email, password) as client:
            registry = GroupRegistry(client)
            await registry.refresh()
            groups = registry.list(status=status, search_text=search)
            if not groups:
                console.print("[dim]No groups match.[/dim]")
                return
            console.print(_groups_table(groups))

    _run(_list())


@groups_app.command("show")
def show_group(
    group_id: str = typer.Argument(..., help="Group ID"),
    email: str = EMAIL_OPTION,
    password: str = PASSWORD_OPTION,
) -> None:
    """Show one group."""
    async def _show() -> None:
        async with operator_client(email, password) as client:
            _render_group(await GroupRegistry(client).get_by_id(group_id))

    _run(_show())


@groups_app.command("stats")
def stats(email: str = EMAIL_OPTION, password: str = PASSWORD_OPTION) -> None:
    """Dashboard counters and recently onboarded groups."""
    async def _stats() -> None:
        async with operator_client(email, password) as client:
            registry = GroupRegistry(client)
            await registry.refresh()
            s = registry.stats()
            console.print(Panel.fit(
                f"Total: [bold]{s.total}[/bold]   "
                f"Active: [green]{s.active}[/green]   "
                f"Pending: [yellow]{s.pending}[/yellow]   "
                f"Inactive: [dim]{s.inactive}[/dim]",
                title="Groups",
            ))
            recent = registry.recent()
            if recent:
                console.print(_groups_table(recent, title="Recently onboarded"))

    _run(_stats())


async def _change_status(group_id: str, new_status: str, email: str, password: str) -> None:
    async with operator_client(email, password) as client:
        registry = GroupRegistry(client)
        await registry.refresh()
        before = registry.cached(group_id)
        group = await registry.set_status(group_id, new_status)
        if before is not None and before.status is group.status:
            console.print(f"[dim]{group.group_name} is already {group.status.value}.[/dim]")
            return
        # Мутация не перечитывает список сама
        await registry.refresh()
        current = registry.cached(group_id) or group
        console.print(f"✅ {current.group_name}: {_status_text(current.status)}")


@groups_app.command("activate")
def activate(
    group_id: str = typer.Argument(..., help="Group ID"),
    email: str = EMAIL_OPTION,
    password: str = PASSWORD_OPTION,
) -> None:
    """Activate a pending group."""
    _run(_change_status(group_id, GroupStatus.ACTIVE.value, email, password))


@groups_app.command("set-status")
def set_status(
    group_id: str = typer.Argument(..., help="Group ID"),
    new_status: str = typer.Argument(..., metavar="STATUS", help="Active, Inactive or Suspended"),
    email: str = EMAIL_OPTION,
    password: str = PASSWORD_OPTION,
) -> None:
    """Change a group's status."""
    _run(_change_status(group_id, new_status, email, password))


# ═══════════════════════════════════════════════════════════════════════════
# sandbox / version
# ═══════════════════════════════════════════════════════════════════════════


@app.command()
def sandbox(
    host: str | None = typer.Option(None, "--host", help="Bind address (default: SANDBOX_HOST)"),
    port: int | None = typer.Option(None, "--port", help="Port (default: SANDBOX_PORT)"),
) -> None:
    """Run the in-memory emulation of the platform API."""
    from campusgrid.sandbox.app import main as run_sandbox

    run_sandbox(host=host, port=port)


@app.command()
def version() -> None:
    """Show version information."""
    from campusgrid import __version__

    console.print(f"CampusGrid Console version {__version__}")


if __name__ == "__main__":
    app()

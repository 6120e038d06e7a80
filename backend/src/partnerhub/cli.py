"""Command-line interface for PartnerHub operators."""

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from partnerhub.auth.local import UserService
from partnerhub.auth.models import UserStatus
from partnerhub.errors import PartnerHubError
from partnerhub.logging_config import configure_logging, get_logger
from partnerhub.storage.db import db

configure_logging()
logger = get_logger(__name__)

app = typer.Typer(
    name="partnerhub",
    help="PartnerHub - user and team management",
    no_args_is_help=True,
)

console = Console()


def _fail(error: PartnerHubError) -> None:
    console.print(f"[bold red]✗[/bold red] {error.message} (code {int(error.code)})")
    raise typer.Exit(code=1)


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    db.create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("user-status")
def set_user_status(
    user_id: Annotated[int, typer.Argument(help="User ID")],
    enable: Annotated[bool, typer.Option("--enable/--disable", help="Enable or disable the account")] = True,
) -> None:
    """Enable or disable an account."""
    status = UserStatus.ENABLED if enable else UserStatus.DISABLED
    try:
        UserService(db).set_account_status(user_id, status)
    except PartnerHubError as e:
        _fail(e)
    console.print(f"[bold green]✓[/bold green] User {user_id} is now {status.name.lower()}")


@app.command("grant-admin")
def grant_admin(
    user_id: Annotated[int, typer.Argument(help="User ID")],
    revoke: Annotated[bool, typer.Option("--revoke", help="Revoke instead of grant")] = False,
) -> None:
    """Grant or revoke administrator rights."""
    try:
        UserService(db).set_admin(user_id, not revoke)
    except PartnerHubError as e:
        _fail(e)
    verb = "revoked from" if revoke else "granted to"
    console.print(f"[bold green]✓[/bold green] Admin rights {verb} user {user_id}")


@app.command("users")
def list_users(
    page: Annotated[int, typer.Option("--page", "-p", help="Page number")] = 1,
    page_size: Annotated[int, typer.Option("--size", "-s", help="Page size")] = 20,
) -> None:
    """List user accounts."""
    try:
        result = UserService(db).paginate(page, page_size)
    except PartnerHubError as e:
        _fail(e)

    table = Table(title=f"Users (page {result.current}/{max(result.pages, 1)}, {result.total} total)")
    table.add_column("ID", style="cyan")
    table.add_column("Username")
    table.add_column("Status")
    table.add_column("Admin")
    table.add_column("Tags")

    for user in result.records:
        table.add_row(
            str(user.id),
            user.username,
            UserStatus(user.status).name.lower(),
            "yes" if user.is_admin else "",
            ", ".join(user.tags),
        )

    console.print(table)


if __name__ == "__main__":
    app()

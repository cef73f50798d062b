"""RLS Projects operator CLI.

Maintenance entry points that need system-wide access: seeding demo data,
statistics across every company, the cross-company isolation check and
the policy SQL. Everything here runs through the admin context and is
never reachable from the HTTP surface. Human-readable output goes to
*stderr* via Rich.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console
from rich.table import Table

from rls_projects.core.config import settings
from rls_projects.core.rls import AccessContextExecutor, PrincipalMap
from rls_projects.core.rls.policies import install_statements, uninstall_statements
from rls_projects.models.database import create_engine, create_session_factory
from rls_projects.schemas.system import SystemStats, UserIsolationReport
from rls_projects.seeds import seed_demo_data
from rls_projects.services.accounts import AccountsService
from rls_projects.services.isolation import IsolationAuditService
from rls_projects.services.project import ProjectService
from rls_projects.services.system import SystemService
from rls_projects.utils.context import configure_logging

T = TypeVar("T")

app = typer.Typer(
    name="rls-projects",
    help="Tenant-isolated projects - operator commands.",
    no_args_is_help=True,
)
console = Console(stderr=True)


@app.callback()
def _global_options(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Log level for structured logs (written to stderr).",
        envvar="LOG_LEVEL",
    ),
) -> None:
    """Global options applied to every command."""
    configure_logging(log_level, "console")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(work: Callable[[AccessContextExecutor], Awaitable[T]]) -> T:
    """Run ``work`` with a fresh engine and executor, disposing both after."""

    async def runner() -> T:
        engine = create_engine(settings.database)
        executor = AccessContextExecutor.from_settings(create_session_factory(engine), settings.rls)
        try:
            return await work(executor)
        finally:
            await engine.dispose()

    return asyncio.run(runner())


def _print_stats(system_stats: SystemStats) -> None:
    table = Table(title="System statistics", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Companies", str(system_stats.total_companies))
    table.add_row("Users", str(system_stats.total_users))
    table.add_row("Projects", str(system_stats.total_projects))
    table.add_row("Users per company", f"{system_stats.users_per_company:.2f}")
    console.print(table)


def _print_isolation(reports: list[UserIsolationReport]) -> None:
    table = Table(title="Cross-company isolation check")
    table.add_column("User")
    table.add_column("Company")
    table.add_column("Role")
    table.add_column("Own projects", justify="right")
    table.add_column("Accessible", justify="right")
    table.add_column("Breaches", justify="right")

    for report in reports:
        breaches = str(report.security_breaches)
        table.add_row(
            report.user,
            report.company,
            report.role,
            str(report.own_projects),
            str(report.total_accessible_projects),
            f"[red]{breaches}[/red]" if report.security_breaches else f"[green]{breaches}[/green]",
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def seed() -> None:
    """Create the demo companies, users and projects (idempotent)."""

    async def work(executor: AccessContextExecutor):
        result = await seed_demo_data(executor)
        return result, await SystemService(executor).get_system_stats()

    try:
        result, system_stats = _run(work)
    except Exception as exc:
        console.print(f"[red]Seeding failed: {exc}[/red]")
        raise typer.Exit(code=3) from exc

    console.print(
        f"Created [bold]{result.companies_created}[/bold] companies, "
        f"[bold]{result.users_created}[/bold] users, "
        f"[bold]{result.projects_created}[/bold] projects."
    )
    _print_stats(system_stats)


@app.command()
def stats() -> None:
    """Show statistics across every company."""

    async def work(executor: AccessContextExecutor):
        system = SystemService(executor)
        return await system.get_system_stats(), await system.company_project_counts()

    try:
        system_stats, per_company = _run(work)
    except Exception as exc:
        console.print(f"[red]Failed to collect statistics: {exc}[/red]")
        raise typer.Exit(code=3) from exc

    _print_stats(system_stats)

    table = Table(title="Projects per company")
    table.add_column("Company")
    table.add_column("Projects", justify="right")
    for row in per_company:
        table.add_row(row.company_name, str(row.project_count))
    console.print(table)


@app.command("isolation-check")
def isolation_check() -> None:
    """Check that no regular user can reach another company's projects.

    Exits with code 1 when a breach is found.
    """

    async def work(executor: AccessContextExecutor):
        users = await AccountsService(executor).list_users()
        return await IsolationAuditService(ProjectService(executor)).run(users)

    try:
        reports = _run(work)
    except Exception as exc:
        console.print(f"[red]Isolation check failed to run: {exc}[/red]")
        raise typer.Exit(code=3) from exc

    if not reports:
        console.print("[yellow]No users found. Run 'rls-projects seed' first.[/yellow]")
        raise typer.Exit(code=0)

    _print_isolation(reports)

    breaches = sum(r.security_breaches for r in reports)
    if breaches:
        console.print(f"[red]{breaches} cross-company access breach(es) detected.[/red]")
        raise typer.Exit(code=1)
    console.print("[green]Isolation holds: no cross-company access for regular users.[/green]")


@app.command()
def policies(
    uninstall: bool = typer.Option(False, "--uninstall", help="Print the removal statements instead."),
) -> None:
    """Print the row-level security SQL for the configured principals."""
    principals = PrincipalMap.from_settings(settings.rls)
    if uninstall:
        statements = uninstall_statements(principals)
    else:
        statements = install_statements(
            principals,
            login_role=settings.rls.login_role,
            settings_prefix=settings.rls.settings_prefix,
        )
    for statement in statements:
        typer.echo(statement.strip() + ";")


@app.command()
def serve(
    host: str = typer.Option(settings.host, "--host", help="Bind address."),
    port: int = typer.Option(settings.port, "--port", help="Bind port."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    console.print(f"Serving on [bold]http://{host}:{port}[/bold]")
    uvicorn.run("rls_projects.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()

"""Command-line interface for Energy Tracker."""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Config, ensure_directories, load_config
from .db.repository import Database, MarketType, User
from .exceptions import IntegrityConflictError, InvalidInputError, NotifierNotConfiguredError
from .logging import configure_logging
from .output.email import format_currency
from .processing.competence import parse_competence_slug

# Create Typer app with subcommands
app = typer.Typer(
    name="energy-tracker",
    help="Electricity expense tracking and free-market savings reporting.",
    no_args_is_help=True,
)

competences_app = typer.Typer(help="Manage competences (billing months).")
units_app = typer.Typer(help="Manage units.")
estimates_app = typer.Typer(help="Manage regulated-market estimates.")

app.add_typer(competences_app, name="competences")
app.add_typer(units_app, name="units")
app.add_typer(estimates_app, name="estimates")

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file"),
]


def get_config(config_path: Path | None) -> Config:
    """Load configuration and set up logging."""
    config = load_config(config_path)
    configure_logging(config)
    return config


def get_db(config: Config) -> Database:
    """Get database connection and ensure it's initialized."""
    db = Database(config.database.path)
    db.initialize()
    return db


def get_admin(db: Database, config: Config) -> User:
    """The bootstrap administrator the CLI acts as."""
    return db.ensure_admin(config.bootstrap_admin.name, config.bootstrap_admin.email)


def resolve_competence_id(db: Database, slug: str | None) -> int | None:
    """Map a YYYY-MM option to a competence id, exiting if unknown."""
    if slug is None:
        return None
    try:
        year, month = parse_competence_slug(slug)
    except InvalidInputError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    competence = db.find_competence(year, month)
    if competence is None:
        console.print(f"[red]Competence {slug} not found[/red]")
        raise typer.Exit(1)
    return competence.id


@app.command()
def version():
    """Show version information."""
    console.print(f"energy-tracker version {__version__}")


@app.command()
def init(config_path: ConfigOption = None):
    """Create the database schema and the bootstrap administrator."""
    config = get_config(config_path)
    ensure_directories(config)
    db = get_db(config)

    try:
        admin = get_admin(db, config)
        console.print(f"[green]Database ready at {config.database.path}[/green]")
        console.print(f"  Admin: {admin.name} <{admin.email}> (id={admin.id})")
    finally:
        db.close()


@app.command()
def dashboard(
    competence: Annotated[
        Optional[str],
        typer.Option("--competence", "-p", help="Competence to filter by (YYYY-MM)"),
    ] = None,
    contract: Annotated[
        Optional[int],
        typer.Option("--contract", help="Contract ID to filter by"),
    ] = None,
    config_path: ConfigOption = None,
):
    """Show dashboard KPIs and cost breakdowns."""
    from .services.dashboard_service import DashboardFilters, DashboardService

    config = get_config(config_path)
    db = get_db(config)

    try:
        filters = DashboardFilters(
            contract_id=contract,
            competence_id=resolve_competence_id(db, competence),
        )
        result = DashboardService(db).get_dashboard(get_admin(db, config), filters)

        def money(value: float) -> str:
            return format_currency(value, config.currency)

        console.print(f"Total expense: [cyan]{money(result.kpis.total_expense)}[/cyan]")
        console.print(f"Total savings: [green]{money(result.kpis.total_savings)}[/green]")

        for title, entries in (
            ("By Type", result.charts.by_type),
            ("By Unit", result.charts.by_unit),
            ("By Month", result.charts.by_month),
            ("Improvement Opportunities", result.charts.improvement_opportunities),
        ):
            if not entries:
                continue
            table = Table(title=title)
            table.add_column("Name", style="cyan")
            table.add_column("Value", justify="right")
            for entry in entries:
                table.add_row(entry.name, money(entry.value))
            console.print(table)

        if result.charts.market_comparison:
            table = Table(title="Free Market vs Regulated")
            table.add_column("Name", style="cyan")
            table.add_column("Real", justify="right")
            table.add_column("Estimated", justify="right")
            table.add_column("Savings", justify="right", style="green")
            for entry in result.charts.market_comparison:
                table.add_row(
                    entry.name,
                    money(entry.real),
                    money(entry.estimated),
                    money(entry.savings),
                )
            console.print(table)

    finally:
        db.close()


@app.command()
def report(
    competence: Annotated[str, typer.Option("--competence", "-p", help="Competence (YYYY-MM)")],
    to: Annotated[list[str], typer.Option("--to", help="Recipient email (repeatable)")],
    contract: Annotated[
        Optional[int],
        typer.Option("--contract", help="Contract ID to filter by"),
    ] = None,
    config_path: ConfigOption = None,
):
    """Generate the competence report and email it."""
    from .services.report_service import ReportService

    config = get_config(config_path)
    ensure_directories(config)
    db = get_db(config)

    try:
        competence_id = resolve_competence_id(db, competence)
        try:
            result = ReportService(db, config).generate_and_send(
                get_admin(db, config), competence_id, to, contract
            )
        except (InvalidInputError, NotifierNotConfiguredError) as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

        table = Table(title=f"Report - {result.report.competence_label}")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Units", str(result.report.unit_count))
        table.add_row("Total expense", format_currency(result.report.total_expense, config.currency))
        table.add_row("Total savings", format_currency(result.report.total_savings, config.currency))
        table.add_row("Sent", str(result.sent))
        table.add_row("Failed", str(len(result.failed)))
        console.print(table)

        if config.dev_mode:
            console.print(f"\n[yellow]Dev mode: emails written to {config.output.email_dir}[/yellow]")
        if result.failed:
            console.print(f"[red]Failed recipients: {', '.join(result.failed)}[/red]")
            raise typer.Exit(1)

    finally:
        db.close()


# Competence commands


@competences_app.command("list")
def competences_list(config_path: ConfigOption = None):
    """List all competences, newest first."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        competences = db.list_competences()

        if not competences:
            console.print("[yellow]No competences found[/yellow]")
            raise typer.Exit(0)

        table = Table(title="Competences")
        table.add_column("ID", style="white")
        table.add_column("Competence", style="cyan")
        table.add_column("References", justify="right")

        for competence in competences:
            table.add_row(
                str(competence.id),
                competence.label,
                str(db.count_competence_references(competence.id)),
            )

        console.print(table)

    finally:
        db.close()


@competences_app.command("add")
def competences_add(
    competence: Annotated[str, typer.Argument(help="Competence to create (YYYY-MM)")],
    config_path: ConfigOption = None,
):
    """Register a competence."""
    from .services.expense_service import ExpenseService

    config = get_config(config_path)
    db = get_db(config)

    try:
        try:
            created = ExpenseService(db).create_competence(get_admin(db, config), competence)
        except (InvalidInputError, IntegrityConflictError) as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]Competence {created.label} created (id={created.id})[/green]")

    finally:
        db.close()


@competences_app.command("delete")
def competences_delete(
    competence: Annotated[str, typer.Argument(help="Competence to delete (YYYY-MM)")],
    config_path: ConfigOption = None,
):
    """Delete a competence that no expense refers to."""
    from .services.expense_service import ExpenseService

    config = get_config(config_path)
    db = get_db(config)

    try:
        competence_id = resolve_competence_id(db, competence)
        try:
            ExpenseService(db).delete_competence(get_admin(db, config), competence_id)
        except IntegrityConflictError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]Competence {competence} deleted[/green]")

    finally:
        db.close()


# Unit commands


@units_app.command("list")
def units_list(config_path: ConfigOption = None):
    """List all units."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        units = db.list_units()

        if not units:
            console.print("[yellow]No units found[/yellow]")
            raise typer.Exit(0)

        contracts = {c.id: c.name for c in db.list_contracts()}
        table = Table(title="Units")
        table.add_column("ID", style="white")
        table.add_column("Name", style="cyan")
        table.add_column("Market", style="white")
        table.add_column("Contract", style="white")

        for unit in units:
            style = "green" if unit.is_free_market else "yellow"
            table.add_row(
                str(unit.id),
                unit.name,
                f"[{style}]{unit.market_type.value}[/{style}]",
                contracts.get(unit.contract_id, "") if unit.contract_id else "",
            )

        console.print(table)

    finally:
        db.close()


@units_app.command("add")
def units_add(
    name: Annotated[str, typer.Argument(help="Unit name")],
    market: Annotated[
        MarketType,
        typer.Option("--market", "-m", help="Market type"),
    ] = MarketType.REGULATED,
    contract: Annotated[
        Optional[str],
        typer.Option("--contract", help="Contract name (created if missing)"),
    ] = None,
    config_path: ConfigOption = None,
):
    """Add a unit."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        contract_id = None
        if contract:
            existing = {c.name: c.id for c in db.list_contracts()}
            contract_id = existing.get(contract) or db.create_contract(contract).id
        unit = db.create_unit(name, market, contract_id=contract_id)
        console.print(f"[green]Unit '{unit.name}' created (id={unit.id})[/green]")

    finally:
        db.close()


@units_app.command("delete")
def units_delete(
    name: Annotated[str, typer.Argument(help="Unit name")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation"),
    ] = False,
    config_path: ConfigOption = None,
):
    """Delete a unit together with its expenses and estimates."""
    from .services.expense_service import ExpenseService

    config = get_config(config_path)
    db = get_db(config)

    try:
        unit = db.get_unit_by_name(name)
        if unit is None:
            console.print(f"[red]Unit '{name}' not found[/red]")
            raise typer.Exit(1)

        if not yes:
            typer.confirm(f"Delete '{unit.name}' and all of its expenses?", abort=True)

        ExpenseService(db).delete_unit(get_admin(db, config), unit.id)
        console.print(f"[green]Unit '{unit.name}' deleted[/green]")

    finally:
        db.close()


# Estimate commands


@estimates_app.command("set")
def estimates_set(
    competence: Annotated[str, typer.Argument(help="Competence (YYYY-MM)")],
    values: Annotated[
        list[str],
        typer.Argument(help="Estimates as UNIT_NAME=AMOUNT"),
    ],
    config_path: ConfigOption = None,
):
    """Set regulated-market estimates for a competence."""
    from .services.expense_service import ExpenseService

    config = get_config(config_path)
    db = get_db(config)

    try:
        competence_id = resolve_competence_id(db, competence)
        amounts: dict[int, float] = {}
        for value in values:
            name, sep, amount = value.rpartition("=")
            unit = db.get_unit_by_name(name) if sep else None
            if unit is None:
                console.print(f"[red]Invalid estimate '{value}': unknown unit or missing '='[/red]")
                raise typer.Exit(1)
            try:
                amounts[unit.id] = float(amount)
            except ValueError:
                console.print(f"[red]Invalid amount in '{value}'[/red]")
                raise typer.Exit(1)

        try:
            count = ExpenseService(db).save_estimates(get_admin(db, config), competence_id, amounts)
        except InvalidInputError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]{count} estimates saved for {competence}[/green]")

    finally:
        db.close()


@app.command()
def serve(
    host: Annotated[
        Optional[str],
        typer.Option("--host", "-h", help="Host to bind to"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port to bind to"),
    ] = None,
    config_path: ConfigOption = None,
):
    """Start the API server."""
    import uvicorn

    from .web import create_app

    config = get_config(config_path)

    server_host = host or config.web.host
    server_port = port or config.web.port

    console.print("[cyan]Starting Energy Tracker API...[/cyan]")
    console.print(f"  Host: {server_host}")
    console.print(f"  Port: {server_port}")
    console.print(f"  Config: {config_path or 'instance/config.yaml'}")

    uvicorn.run(create_app(config=config), host=server_host, port=server_port)


if __name__ == "__main__":
    app()

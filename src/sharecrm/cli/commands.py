"""CLI commands for SHARE CRM administration.

Commands:
- init-db: Create the database schema
- seed-permissions: Insert the permission catalog and Super Admin role
- create-admin: Create a staff account holding the Super Admin role
- list-customers: Show customers with status and credit
- list-sessions: Show sessions for the current (or a given) term
- export-report: Write an attendance, cancellation, participants or roll report
- serve: Run the HTTP API with uvicorn
"""

from datetime import date
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from sharecrm.core import catalog, customers, reports
from sharecrm.core.errors import CrmError
from sharecrm.core.permissions import create_staff, ensure_super_admin_role, seed_permissions
from sharecrm.db.database import init_db as do_init_db

app = typer.Typer(
    name="sharecrm",
    help="Administration commands for the SHARE CRM backend.",
    no_args_is_help=True,
)

console = Console()

REPORT_KINDS = ("attendance", "class-cancellations", "participants", "class-roll", "receipt")


def _parse_date_or_exit(value: str | None, option: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        console.print(f"[red]✗ {option} must be a date in YYYY-MM-DD format[/red]")
        raise typer.Exit(code=1)


@app.command(name="init-db")
def init_db(
    db_path: str | None = typer.Option(None, "--db", help="Database file (defaults to config)"),
) -> None:
    """Create the database schema if it does not exist."""
    path = do_init_db(Path(db_path) if db_path else None)
    console.print("[green]✓ Database ready[/green]")
    console.print(f"  [dim]path:[/dim] {path}")


@app.command(name="seed-permissions")
def seed_permissions_command() -> None:
    """Insert missing permissions and sync the Super Admin role."""
    do_init_db()
    added = seed_permissions()
    role = ensure_super_admin_role()
    console.print(f"[green]✓ {added} permission(s) added[/green]")
    console.print(f"  [dim]role:[/dim] {role.name} ({len(role.permissions)} permissions)")


@app.command(name="create-admin")
def create_admin(
    email: str = typer.Argument(..., help="Login email for the new staff member"),
    name: str = typer.Option(..., "--name", "-n", help="Full name"),
    password: str | None = typer.Option(
        None, "--password", "-p", help="Password (generated when omitted)"
    ),
) -> None:
    """Create a staff account with every permission."""
    do_init_db()
    try:
        role = ensure_super_admin_role()
        user, generated = create_staff(name, email, role.id, password=password)
    except CrmError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print("[green]✓ Staff account created[/green]")
    console.print(f"  [dim]user_id:[/dim] {user.id}")
    console.print(f"  [dim]email:[/dim]   {user.email}")
    console.print(f"  [dim]role:[/dim]    {role.name}")
    if generated:
        console.print(f"  [dim]password:[/dim] [bold]{generated}[/bold]")


@app.command(name="list-customers")
def list_customers(
    search: str | None = typer.Option(None, "--search", "-s", help="Filter by name or email"),
    status: str | None = typer.Option(None, "--status", help="active, inactive or blocked"),
) -> None:
    """List customers."""
    do_init_db()
    found = customers.list_customers(search=search, status=status)
    if not found:
        console.print("[yellow]No customers found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Email")
    table.add_column("Status", justify="center")
    table.add_column("PAQ", justify="center")
    table.add_column("Credit", justify="right")
    for c in found:
        color = {"active": "green", "blocked": "red"}.get(c.status, "yellow")
        table.add_row(
            c.full_name,
            c.email,
            f"[{color}]{c.status}[/{color}]",
            c.paq_status or "-",
            str(c.customer_credit),
        )
    console.print(table)
    console.print(f"\n[dim]{len(found)} customer(s)[/dim]")


@app.command(name="list-sessions")
def list_sessions(
    term_id: int | None = typer.Option(None, "--term", "-t", help="Term id (defaults to current term)"),
) -> None:
    """List sessions for a term."""
    do_init_db()
    if term_id is None:
        term, sessions = catalog.list_current_sessions()
        if term is None:
            console.print("[yellow]No current term[/yellow]")
            return
    else:
        try:
            term = catalog.get_term(term_id)
        except CrmError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(code=1)
        sessions = catalog.list_sessions(term_id=term_id)

    console.print(f"[bold]{term.label}[/bold] ({term.start_date} to {term.end_date})")
    table = Table(show_header=True, header_style="bold")
    table.add_column("Code", style="cyan")
    table.add_column("Name")
    table.add_column("Day")
    table.add_column("Time")
    table.add_column("Venue")
    table.add_column("Instructor")
    table.add_column("Fee", justify="right")
    for s in sessions:
        table.add_row(
            s.code,
            s.name,
            s.day_of_week,
            s.start_time,
            s.venue_name,
            s.instructor_name,
            f"{s.fee_amount:.2f}",
        )
    console.print(table)


@app.command(name="export-report")
def export_report(
    kind: str = typer.Argument(..., help="attendance, class-cancellations, participants, class-roll or receipt"),
    fmt: str = typer.Option("pdf", "--format", "-f", help="pdf or csv"),
    out: str | None = typer.Option(None, "--out", "-o", help="Output file or directory"),
    start: str | None = typer.Option(None, "--start", help="Attendance period start (YYYY-MM-DD)"),
    end: str | None = typer.Option(None, "--end", help="Attendance period end (YYYY-MM-DD)"),
    session_id: str | None = typer.Option(None, "--session", help="Session id"),
    class_date: str | None = typer.Option(None, "--date", help="Class date for a roll (YYYY-MM-DD)"),
    term_id: int | None = typer.Option(None, "--term", help="Term id for participants"),
    status: str | None = typer.Option(None, "--status", help="Cancellation status filter"),
    enrollment_id: str | None = typer.Option(None, "--enrollment", help="Enrollment id for a receipt"),
) -> None:
    """Generate a report file."""
    if kind not in REPORT_KINDS:
        console.print(f"[red]✗ Unknown report '{kind}'[/red] (choose: {', '.join(REPORT_KINDS)})")
        raise typer.Exit(code=1)

    start_date = _parse_date_or_exit(start, "--start")
    end_date = _parse_date_or_exit(end, "--end")
    roll_date = _parse_date_or_exit(class_date, "--date")
    do_init_db()

    try:
        if kind == "attendance":
            if start_date is None or end_date is None:
                console.print("[red]✗ --start and --end are required[/red]")
                raise typer.Exit(code=1)
            report = reports.attendance_report_document(start_date, end_date, session_id, fmt)
        elif kind == "class-cancellations":
            report = reports.class_cancellation_report(status, fmt)
        elif kind == "participants":
            report = reports.participants_report(term_id, fmt)
        elif kind == "receipt":
            if enrollment_id is None:
                console.print("[red]✗ --enrollment is required[/red]")
                raise typer.Exit(code=1)
            report = reports.enrollment_receipt(enrollment_id, fmt)
        else:
            if session_id is None or roll_date is None:
                console.print("[red]✗ --session and --date are required[/red]")
                raise typer.Exit(code=1)
            report, _ = reports.class_roll(session_id, roll_date, fmt)
    except CrmError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    target = Path(out) if out else Path(report.filename)
    if target.is_dir():
        target = target / report.filename
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(report.data)
    console.print("[green]✓ Report written[/green]")
    console.print(f"  [dim]path:[/dim] {target}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    console.print(f"[green]SHARE CRM API[/green] on http://{host}:{port}")
    uvicorn.run("sharecrm.web.api:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()

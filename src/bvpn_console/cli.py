"""Typer CLI for BVPN Console."""

from datetime import datetime, timezone
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="bvpn-console", help="BVPN Console: operator ledger and withdrawal approvals")
console = Console()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (default: BVPN_HOST)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default: BVPN_PORT)"),
):
    """Start the BVPN Console API server."""
    import uvicorn
    from bvpn_console.app import create_app
    from bvpn_console.common.config import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port

    console.print(f"[bold green]Starting BVPN Console on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def presence(
    status: str = typer.Argument(..., help="Stored status label"),
    last_seen: Optional[str] = typer.Option(None, help="ISO-8601 heartbeat time"),
    window: int = typer.Option(300, help="Staleness window in seconds"),
):
    """Resolve an effective status offline (no server required)."""
    from datetime import timedelta
    from bvpn_console.presence.resolver import resolve_presence

    seen = None
    if last_seen:
        try:
            seen = datetime.fromisoformat(last_seen)
        except ValueError:
            console.print(f"[bold red]Invalid timestamp:[/bold red] {last_seen}")
            raise typer.Exit(1)
    result = resolve_presence(status, seen, datetime.now(timezone.utc), timedelta(seconds=window))
    console.print(f"[bold]{result.value}[/bold]")


@app.command()
def txid(
    prefix: str = typer.Option("TXN", help="Transaction id prefix"),
):
    """Generate a payout transaction id (offline)."""
    from bvpn_console.withdrawals.txid import generate_transaction_id

    console.print(f"[bold]{generate_transaction_id(prefix)}[/bold]")


@app.command()
def pending(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
    api_key: str = typer.Option(..., envvar="BVPN_API_KEY", help="Operator API key"),
    limit: int = typer.Option(50, help="Maximum rows"),
):
    """List pending withdrawal requests."""
    from bvpn_console.client import ConsoleClient

    client = ConsoleClient(server_url=url, api_key=api_key)
    try:
        result = client.list_withdrawals(status="pending", limit=limit)
    finally:
        client.close()
    if not result.ok:
        console.print(f"[bold red]{result.code}[/bold red] — {result.error}")
        raise typer.Exit(1)

    table = Table(title="Pending withdrawals")
    for column in ("id", "device", "points", "method", "account", "created"):
        table.add_column(column)
    for w in result.data:
        table.add_row(
            w["id"], w["device_id"], str(w["points"]), w["method"],
            f"{w['account_name']} ({w['account_number']})", str(w["created_at"]),
        )
    console.print(table)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check BVPN Console server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] — v{data['version']}")
    except (httpx.HTTPError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()

"""
Socket inventory CLI command.
"""

import json
from dataclasses import asdict

import click
from rich.console import Console
from rich.table import Table

from hostdiag.net.privilege import is_elevated
from hostdiag.net.process import resolve_process_name
from hostdiag.net.table import read_tcp_table, read_udp_table


@click.command()
@click.option("--tcp/--no-tcp", default=True, help="Include TCP sockets")
@click.option("--udp/--no-udp", default=True, help="Include UDP sockets")
@click.option("--json-output", "json_out", is_flag=True, help="Output as JSON")
def sockets(tcp: bool, udp: bool, json_out: bool):
    """List active IPv4 sockets with their owning processes.

    Examples:
        hostdiag sockets
        hostdiag sockets --no-udp
    """
    console = Console()
    err_console = Console(stderr=True)
    failed = False
    output: dict[str, list[dict]] = {}

    if not is_elevated() and not json_out:
        console.print("[yellow]Not running elevated; some process names may be unavailable.[/yellow]")

    if tcp:
        result = read_tcp_table()
        if result.error:
            failed = True
            err_console.print(f"[red]TCP table error:[/red] {result.error}")

        rows = [
            {**asdict(row), "state": row.state.value, "process": resolve_process_name(row.owning_pid)}
            for row in result.records
        ]
        output["tcp"] = rows

        if not json_out and rows:
            table = Table(title="TCP Sockets", box=None)
            table.add_column("Local", style="cyan")
            table.add_column("Remote", style="white")
            table.add_column("State", style="yellow")
            table.add_column("PID", justify="right")
            table.add_column("Process", style="green")
            for row in rows:
                remote = "-" if row["state"] == "Listen" else f"{row['remote_address']}:{row['remote_port']}"
                table.add_row(
                    f"{row['local_address']}:{row['local_port']}",
                    remote,
                    row["state"],
                    str(row["owning_pid"]),
                    row["process"],
                )
            console.print(table)

    if udp:
        result = read_udp_table()
        if result.error:
            failed = True
            err_console.print(f"[red]UDP table error:[/red] {result.error}")

        rows = [{**asdict(row), "process": resolve_process_name(row.owning_pid)} for row in result.records]
        output["udp"] = rows

        if not json_out and rows:
            table = Table(title="UDP Sockets", box=None)
            table.add_column("Local", style="cyan")
            table.add_column("PID", justify="right")
            table.add_column("Process", style="green")
            for row in rows:
                table.add_row(f"{row['local_address']}:{row['local_port']}", str(row["owning_pid"]), row["process"])
            console.print(table)

    if json_out:
        click.echo(json.dumps(output, indent=2))

    if failed:
        raise SystemExit(1)

"""
Diagnostics CLI commands.
"""

import json
from dataclasses import asdict

import click
from rich.console import Console
from rich.table import Table

from hostdiag.config import get_config
from hostdiag.diag.core import dns_resolve, ping, traceroute
from hostdiag.diag.models import ProbeStatus


STATUS_STYLES = {
    ProbeStatus.SUCCESS: "green",
    ProbeStatus.TTL_EXPIRED: "white",
    ProbeStatus.TIMED_OUT: "yellow",
}


def status_text(status: ProbeStatus) -> str:
    style = STATUS_STYLES.get(status, "red")
    return f"[{style}]{status.value}[/{style}]"


def format_rtt(rtt_ms: float | None) -> str:
    return f"{rtt_ms:.1f} ms" if rtt_ms is not None else "*"


@click.group()
def diag():
    """Network reachability probes."""
    pass


@diag.command("ping")
@click.argument("target")
@click.option("-t", "--timeout", "timeout_ms", type=int, default=None, help="Timeout in milliseconds")
@click.option("--json-output", "json_out", is_flag=True, help="Output as JSON")
def ping_cmd(target: str, timeout_ms: int | None, json_out: bool):
    """Send one echo request to a host.

    Examples:
        hostdiag diag ping 8.8.8.8
        hostdiag diag ping example.com -t 500
    """
    console = Console()
    timeout_ms = timeout_ms or get_config().ping_timeout_ms

    with console.status(f"[cyan]Pinging {target}...[/cyan]"):
        result = ping(target, timeout_ms)

    if json_out:
        click.echo(json.dumps(asdict(result), indent=2))
        return

    table = Table(title=f"Ping: {target}", show_header=False, box=None)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Target", target)
    if result.resolved_address:
        table.add_row("Address", result.resolved_address)
    table.add_row("Status", status_text(result.status))
    if result.roundtrip_ms is not None:
        table.add_row("RTT", format_rtt(result.roundtrip_ms))
    if result.error:
        table.add_row("Error", f"[red]{result.error}[/red]")

    console.print(table)

    if result.status != ProbeStatus.SUCCESS:
        raise SystemExit(1)


@diag.command()
@click.argument("target")
@click.option("-m", "--max-hops", type=int, default=None, help="Maximum number of hops")
@click.option("-t", "--timeout", "timeout_ms", type=int, default=None, help="Timeout per hop in milliseconds")
@click.option("--json-output", "json_out", is_flag=True, help="Output as JSON")
def trace(target: str, max_hops: int | None, timeout_ms: int | None, json_out: bool):
    """Trace the route to a host.

    Examples:
        hostdiag diag trace 8.8.8.8
        hostdiag diag trace example.com -m 20
    """
    console = Console()
    config = get_config()

    with console.status(f"[cyan]Tracing route to {target}...[/cyan]"):
        run = traceroute(
            target,
            max_hops or config.trace_max_hops,
            timeout_ms or config.trace_timeout_ms,
        )

    if json_out:
        click.echo(json.dumps(asdict(run), indent=2))
        return

    title = f"Traceroute: {target}"
    if run.resolved_address and run.resolved_address != target:
        title += f" [{run.resolved_address}]"

    table = Table(title=title, box=None)
    table.add_column("Hop", style="cyan", width=4)
    table.add_column("Address", style="white", width=16)
    table.add_column("RTT", style="white", width=10)
    table.add_column("Status", width=16)
    table.add_column("Error", style="dim")

    for hop in run.hops:
        table.add_row(
            str(hop.hop_number),
            hop.address,
            format_rtt(hop.roundtrip_ms),
            status_text(hop.status),
            hop.error or "",
        )

    console.print(table)

    if run.hops and run.hops[0].hop_number == 0:
        raise SystemExit(1)
    if not run.reached_target:
        console.print(f"[yellow]Trace incomplete: target not reached within {len(run.hops)} hops[/yellow]")


@diag.command()
@click.argument("hostname")
@click.option("-t", "--timeout", "timeout_ms", type=int, default=None, help="Timeout in milliseconds")
@click.option("-s", "--server", "servers", multiple=True, help="Nameserver to query (repeatable)")
def dns(hostname: str, timeout_ms: int | None, servers: tuple[str, ...]):
    """Test DNS resolution of a hostname.

    Examples:
        hostdiag diag dns www.cloudflare.com
        hostdiag diag dns example.com -s 1.1.1.1
    """
    console = Console()

    with console.status(f"[cyan]Resolving {hostname}...[/cyan]"):
        result = dns_resolve(hostname, timeout_ms or get_config().dns_timeout_ms, list(servers) or None)

    if not result.success:
        console.print(f"[red]Error:[/red] {result.error}")
        raise SystemExit(1)

    console.print(f"[cyan]{hostname}[/cyan] resolved in {result.resolution_ms:.1f} ms")
    for address in result.addresses:
        console.print(f"  {address}")

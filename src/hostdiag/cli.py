"""
HostDiag command line entry point.
"""

import json
from dataclasses import asdict

import click
from rich.console import Console
from rich.table import Table

from hostdiag import __version__
from hostdiag.collect import collect_network
from hostdiag.config import get_config
from hostdiag.diag.cli import diag, format_rtt, status_text
from hostdiag.logging_config import configure_logging
from hostdiag.net.cli import sockets


@click.group()
@click.version_option(__version__, prog_name="hostdiag")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Also log to this file")
def main(debug: bool, log_file: str | None):
    """HostDiag - host network diagnostics."""
    configure_logging(debug=debug, log_file=log_file)


@main.command()
@click.option("--trace", "trace_target", default=None, help="Also trace the route to this host")
@click.option("--json-output", "json_out", is_flag=True, help="Output as JSON")
def collect(trace_target: str | None, json_out: bool):
    """Collect the full network section: sockets, pings, DNS and traceroute."""
    console = Console()
    config = get_config()
    if trace_target:
        config.trace_target = trace_target

    with console.status("[cyan]Collecting network diagnostics...[/cyan]"):
        snapshot = collect_network(config)

    if json_out:
        click.echo(json.dumps(asdict(snapshot), indent=2))
        return

    console.print(
        f"[cyan]TCP sockets:[/cyan] {len(snapshot.tcp_sockets)}    "
        f"[cyan]UDP sockets:[/cyan] {len(snapshot.udp_sockets)}"
    )

    pings = Table(title="Connectivity", box=None)
    pings.add_column("Target", style="cyan")
    pings.add_column("Address", style="white")
    pings.add_column("Status")
    pings.add_column("RTT", style="white")
    pings.add_column("Error", style="dim")
    for result in filter(None, [snapshot.gateway_ping, *snapshot.pings]):
        pings.add_row(
            result.target,
            result.resolved_address or "-",
            status_text(result.status),
            format_rtt(result.roundtrip_ms),
            result.error or "",
        )
    console.print(pings)

    if snapshot.dns_resolution:
        dns = snapshot.dns_resolution
        if dns.success:
            console.print(f"[green]DNS[/green] {dns.hostname}: {', '.join(dns.addresses)}")
        else:
            console.print(f"[red]DNS[/red] {dns.hostname}: {dns.error}")

    if snapshot.traceroute:
        run = snapshot.traceroute
        hops = Table(title=f"Traceroute: {run.target}", box=None)
        hops.add_column("Hop", style="cyan", width=4)
        hops.add_column("Address", style="white", width=16)
        hops.add_column("RTT", style="white", width=10)
        hops.add_column("Status")
        for hop in run.hops:
            hops.add_row(str(hop.hop_number), hop.address, format_rtt(hop.roundtrip_ms), status_text(hop.status))
        console.print(hops)

    for section, message in snapshot.errors.items():
        console.print(f"[yellow]{section}:[/yellow] {message}")


main.add_command(diag)
main.add_command(sockets)


if __name__ == "__main__":
    main()

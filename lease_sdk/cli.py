#!/usr/bin/env python3
"""
lease-sdk command line

Register an instance with a service registry and hold its lease, or resolve
the address of a registered service.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import click
from rich.console import Console
from rich.markup import escape

from .application.client import ServiceRegistryClient
from .domain.enums import AddressFamily
from .domain.exceptions import LeaseSdkError
from .infrastructure.config import DEFAULT_RESOLVE_TIMEOUT, RegistryClientConfig
from .infrastructure.simple_logger import SimpleLogger

console = Console()


def registry_option(envvar: str | None = None):
    """``--registry`` for the group and for each subcommand.

    The environment variable only feeds the group option, so a value given
    on the command line always wins over it.
    """
    return click.option(
        "--registry",
        "-r",
        envvar=envvar,
        default=None,
        help="Registry URL, e.g. http://registry:9000",
    )


def _registry_url(ctx: click.Context, registry: str | None) -> str:
    url = registry or ctx.obj.get("registry")
    if not url:
        raise click.UsageError("Missing option '--registry' / '-r'.", ctx=ctx)
    return url


@click.group()
@registry_option(envvar="LEASE_SDK_REGISTRY")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx: click.Context, registry: str | None, verbose: bool) -> None:
    """Service registry client."""
    ctx.ensure_object(dict)
    ctx.obj["registry"] = registry
    ctx.obj["logger"] = SimpleLogger(level=logging.DEBUG if verbose else logging.WARNING)


@main.command()
@click.argument("service_name")
@registry_option()
@click.option(
    "--family",
    "-f",
    type=click.Choice([f.value for f in AddressFamily]),
    default=AddressFamily.IPV4.value,
    help="Address family to resolve",
)
@click.option(
    "--timeout",
    "-t",
    type=float,
    default=DEFAULT_RESOLVE_TIMEOUT,
    show_default=True,
    help="Resolution deadline in seconds",
)
@click.pass_context
def resolve(
    ctx: click.Context, service_name: str, registry: str | None, family: str, timeout: float
) -> None:
    """Print the address of a random instance of SERVICE_NAME."""
    registry_url = _registry_url(ctx, registry)

    async def run() -> str:
        config = RegistryClientConfig(registry_host=registry_url)
        async with ServiceRegistryClient(config, logger=ctx.obj["logger"]) as client:
            return await client.resolve(service_name, family=family, timeout=timeout)

    try:
        address = asyncio.run(run())
    except (LeaseSdkError, ValueError) as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        sys.exit(1)

    console.print(address, highlight=False, markup=False)


@main.command()
@click.argument("service_name")
@registry_option()
@click.option("--port", "-p", type=int, required=True, help="Port this service listens on")
@click.option("--identifier", "-i", default=None, help="Instance identifier (default: UUID4)")
@click.option("--protocol", default="http://", show_default=True, help="Advertised scheme prefix")
@click.pass_context
def register(
    ctx: click.Context,
    service_name: str,
    registry: str | None,
    port: int,
    identifier: str | None,
    protocol: str,
) -> None:
    """Register SERVICE_NAME and hold the lease until interrupted."""
    registry_url = _registry_url(ctx, registry)

    async def run() -> None:
        config = RegistryClientConfig(
            registry_host=registry_url,
            identifier=identifier,
            service_name=service_name,
            port=port,
            protocol=protocol,
        )
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        async with ServiceRegistryClient(config, logger=ctx.obj["logger"]) as client:
            registration = await client.register()
            console.print(
                f"[green]✓ Registered {service_name} as {registration.identifier}[/green] "
                f"(ttl {registration.ttl_millis} ms)"
            )
            for address in (registration.ipv4_address, registration.ipv6_address):
                if address:
                    console.print(f"  {address}", highlight=False, markup=False)
            console.print("Press Ctrl-C to deregister")

            await stop.wait()
            await client.deregister()
            console.print("[green]✓ Deregistered[/green]")

    try:
        asyncio.run(run())
    except (LeaseSdkError, ValueError) as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""Entry point for the statusboard service."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from statusboard.config import settings
from statusboard.endpoints.registry import EndpointRegistry
from statusboard.health.checker import CheckRun, run_checks
from statusboard.health.engine import Status
from statusboard.notifications.email import EmailNotifier

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

_STYLE = {
    Status.HEALTHY: "green",
    Status.UNHEALTHY: "yellow",
    Status.ERROR: "red",
    Status.PENDING: "dim",
}


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting Statusboard API Server", style="bold green"))
    uvicorn.run(
        "statusboard.api.server:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


async def _check_once(path: str, notify: bool) -> CheckRun:
    registry = EndpointRegistry(path)
    run = await run_checks(registry.load())
    if notify and run.failures:
        await EmailNotifier().notify_failures(run.failures)
    return run


def run_check(path: str, notify: bool = False) -> int:
    """Run a single check pass and print the results. Returns the exit code."""
    run = asyncio.run(_check_once(path, notify))

    table = Table(title=f"Checked at {run.result.checked_at.isoformat()}")
    table.add_column("Name")
    table.add_column("Method")
    table.add_column("URL")
    table.add_column("Status")
    table.add_column("Code", justify="right")
    table.add_column("Detail")
    for o in run.result.outcomes:
        style = _STYLE[o.status]
        table.add_row(
            o.name, o.method, o.url,
            f"[{style}]{o.status.value}[/{style}]",
            str(o.status_code) if o.status_code is not None else "-",
            o.error_message or "",
        )
    console.print(table)

    if run.failures:
        console.print(f"[bold red]{len(run.failures)} endpoint(s) failing[/bold red]")
        return 1
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Statusboard endpoint monitor")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")

    check_parser = sub.add_parser("check", help="Probe all endpoints once")
    check_parser.add_argument("--file", default=settings.endpoints_file, help="Endpoints file")
    check_parser.add_argument("--notify", action="store_true", help="Email failures")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "check":
        sys.exit(run_check(args.file, args.notify))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

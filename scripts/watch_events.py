#!/usr/bin/env python3
"""
Docker event watcher - tails the daemon's event bus.

Usage:
  python scripts/watch_events.py                       # All events
  python scripts/watch_events.py --filter container    # Only container events
  python scripts/watch_events.py --host tcp://10.0.0.5:2375 --limit 20

Press Ctrl+C to stop; a per-subject summary is printed on exit.
"""

import argparse
import asyncio
import sys
from collections import Counter
from pathlib import Path
from typing import List, Optional

# Add the project root to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file if it exists
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from dockersdk.client import DockerClient
from dockersdk.config import settings
from dockersdk.models.errors import DockerException
from dockersdk.models.events import (
    ContainerEvent,
    Event,
    ImageEvent,
    NetworkEvent,
    SwarmEvent,
    VolumeEvent,
)
from dockersdk.utils.logging import setup_logging

console = Console()

SUBJECT_COLORS = {
    "container": "cyan",
    "image": "magenta",
    "network": "green",
    "volume": "yellow",
    "daemon": "red",
}


def describe(event: Event) -> str:
    """One-line detail text for an event."""
    if isinstance(event, ContainerEvent):
        parts = [str(event.container_name or event.container_id[:12])]
        if event.image:
            parts.append(f"image={event.image}")
        if event.exit_code is not None:
            parts.append(f"exit={event.exit_code}")
        if event.signal is not None:
            parts.append(f"signal={event.signal}")
        return " ".join(parts)
    if isinstance(event, ImageEvent):
        return str(event.image_name or event.image_id)
    if isinstance(event, NetworkEvent):
        text = str(event.network_name or event.network_id[:12])
        if event.container_id:
            text += f" container={event.container_id[:12]}"
        return text
    if isinstance(event, VolumeEvent):
        return f"{event.volume_name} driver={event.driver or '-'}"
    if isinstance(event, SwarmEvent):
        return str(event.resource_name or event.resource_id)
    return event.actor_id


def print_event(event: Event) -> None:
    subject = event.subject_type.value
    color = SUBJECT_COLORS.get(subject, "white")
    console.print(
        f"[dim]{event.timestamp:%H:%M:%S.%f}[/dim] "
        f"[{color}]{subject:<9}[/{color}] "
        f"[bold]{event.event_type.value:<17}[/bold] "
        f"{describe(event)}"
    )


def print_summary(counts: Counter) -> None:
    if not counts:
        console.print("[dim]No events received.[/dim]")
        return
    table = Table(title="Events received", box=box.ROUNDED)
    table.add_column("Subject", style="cyan")
    table.add_column("Kind")
    table.add_column("Count", justify="right")
    for (subject, kind), count in sorted(counts.items()):
        table.add_row(subject, kind, str(count))
    console.print(table)


async def watch(host: Optional[str], subjects: List[str], limit: Optional[int]) -> int:
    config = settings.transport
    if host:
        config = config.model_copy(update={"host": host})

    try:
        client = await DockerClient.start(config)
    except DockerException as e:
        console.print(f"[red]Error:[/red] {e.message}")
        return 1

    console.print(
        Panel.fit(
            f"[bold cyan]Docker Events[/bold cyan]\n"
            f"Host: {config.host}\n"
            f"API version: v{client.api_version}\n"
            f"Subjects: {', '.join(subjects) if subjects else 'all'}",
            border_style="cyan",
        )
    )

    counts: Counter = Counter()
    done = asyncio.Event()
    failure: List[BaseException] = []

    def on_next(event: Event) -> None:
        counts[(event.subject_type.value, event.event_type.value)] += 1
        print_event(event)
        if limit is not None and sum(counts.values()) >= limit:
            done.set()

    def on_error(error: BaseException) -> None:
        failure.append(error)
        done.set()

    source = client.events
    if subjects:
        source = source.filter(lambda e: e.subject_type.value in subjects)

    try:
        with source.subscribe(on_next=on_next, on_error=on_error, on_completed=done.set):
            await done.wait()
    finally:
        await client.aclose()
        print_summary(counts)

    if failure:
        console.print(f"[red]Event stream failed:[/red] {failure[0]}")
        return 1
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Tail Docker daemon events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                               # All events
  %(prog)s --filter container --filter network
  %(prog)s --host unix:///var/run/docker.sock --limit 10
"""
    )
    parser.add_argument("--host", help="Daemon address (defaults to DOCKER_HOST)")
    parser.add_argument(
        "--filter",
        dest="subjects",
        action="append",
        default=[],
        help="Only show events for this subject (repeatable)",
    )
    parser.add_argument("--limit", type=int, help="Stop after this many events")
    parser.add_argument("--log-level", default=None, help="Log level (default: LOG_LEVEL)")

    args = parser.parse_args()
    setup_logging(level=args.log_level)

    try:
        sys.exit(asyncio.run(watch(args.host, args.subjects, args.limit)))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()

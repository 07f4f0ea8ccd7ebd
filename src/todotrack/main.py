"""Main entry point for the To Do time tracker.

Signs in with a device code, greets the user, then hands over to the
interactive command loop.
"""
from __future__ import annotations
import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiohttp
import click

from todotrack.auth import DeviceCodeAuth
from todotrack.cli import CLI, ask_estimate
from todotrack.errors import AuthError, ConfigError
from todotrack.graph import GraphClient
from todotrack.settings import AppSettings, load_settings
from todotrack.tracker import TaskTracker


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


async def _session(settings: AppSettings, calendar_events: bool) -> None:
    auth = DeviceCodeAuth(settings, prompt=click.echo)
    # one sign-in at a time, even under a read fan-out
    token_lock = asyncio.Lock()

    async def token() -> str:
        async with token_lock:
            # msal blocks while the user completes the device flow
            return await asyncio.to_thread(auth.get_token)

    async with aiohttp.ClientSession() as session:
        store = GraphClient(session, token, time_zone=settings.time_zone)
        tracker = TaskTracker(
            store,
            ask_estimate=ask_estimate,
            calendar_events=calendar_events,
            calendar_id=settings.calendar_id,
        )
        cli = CLI(tracker, store, settings, token_provider=token)
        await cli.greet()
        await cli.run()


@click.command()
@click.option('--env-file', type=click.Path(dir_okay=False, path_type=Path),
              help='Read TODOTRACK_* settings from this file instead of ./.env')
@click.option('--log-level', default=None, help='Override TODOTRACK_LOG_LEVEL.')
@click.option('--calendar/--no-calendar', 'calendar', default=None,
              help='Add a calendar event for every tracked interval.')
def main(env_file: Optional[Path], log_level: Optional[str], calendar: Optional[bool]) -> None:
    """Track time on today's Microsoft To Do tasks."""
    try:
        settings = load_settings(env_file=env_file)
    except ConfigError as e:
        raise click.ClickException(str(e))
    configure_logging(log_level or settings.log_level)
    click.echo('Microsoft To Do time tracker')
    calendar_events = settings.calendar_events if calendar is None else calendar
    try:
        asyncio.run(_session(settings, calendar_events))
    except AuthError as e:
        raise click.ClickException(f'Sign-in failed: {e}')


if __name__ == "__main__":
    main()

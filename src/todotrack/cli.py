"""Command-line interface loop for the To Do time tracker.

Every command is one awaited operation; the loop never runs two at once.
Errors are reported as "Error <operation>: <cause>" and the loop goes on
with the tracker state it had before the failed command.
"""
from __future__ import annotations
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import click

from todotrack import summary
from todotrack.durations import format_minutes
from todotrack.errors import SOURCE_ERRORS, SourceUnavailable, TrackerError, describe
from todotrack.models import StartResult, TrackedTask
from todotrack.settings import AppSettings
from todotrack.theme import HEADER_COLOR, INDEX_COLOR, WORKING_COLOR, BOLD, color, status_text
from todotrack.timelog import format_timestamp, parse_timestamp
from todotrack.tracker import TaskTracker

REPORTED_ERRORS = (TrackerError,) + SOURCE_ERRORS
IMPORTANCE = ('low', 'normal', 'high')


def ask_estimate(task: TrackedTask) -> str:
    return click.prompt(f'Estimate for "{task.title}" (blank for none)',
                        default='', show_default=False)


def _parse_index(tokens: List[str], usage: str) -> Optional[int]:
    if len(tokens) != 2:
        click.echo(f'Usage: {usage}')
        return None
    raw = tokens[1].rstrip('.')
    if not raw.isdigit():
        click.echo('Invalid index.')
        return None
    return int(raw)


class CLI:
    def __init__(self, tracker: TaskTracker, store: Any, settings: AppSettings,
                 token_provider: Optional[Callable[[], Awaitable[str]]] = None):
        self.tracker = tracker
        self.store = store
        self.settings = settings
        self.token_provider = token_provider
        self.user: Dict[str, Any] = {}
        self._lists: List[Dict[str, Any]] = []
        self.commands: Dict[str, Tuple[Callable[[List[str]], Awaitable[None]], str]] = {
            'pull': (self._cmd_pull, "pulling today's tasks"),
            'ls': (self._cmd_ls, 'listing tracked tasks'),
            'start': (self._cmd_start, 'starting task'),
            'stop': (self._cmd_stop, 'stopping task'),
            'done': (self._cmd_done, 'finishing task'),
            'show': (self._cmd_show, 'displaying task'),
            'summary': (self._cmd_summary, 'building summary'),
            'mail-summary': (self._cmd_mail_summary, 'mailing summary'),
            'token': (self._cmd_token, 'getting user access token'),
            'inbox': (self._cmd_inbox, "getting user's inbox"),
            'send-mail': (self._cmd_send_mail, 'sending mail'),
            'lists': (self._cmd_lists, 'getting task lists'),
            'tasks': (self._cmd_tasks, 'getting tasks'),
            'calendars': (self._cmd_calendars, 'getting calendars'),
            'events': (self._cmd_events, 'getting events'),
            'add-event': (self._cmd_add_event, 'creating event'),
        }

    async def greet(self) -> None:
        try:
            self.user = await self.store.get_user()
        except SOURCE_ERRORS as e:
            click.echo(f'Error getting user: {describe(e)}')
            return
        click.echo(f"Hello, {self.user.get('displayName') or 'there'}!")
        # work/school accounts carry mail, personal accounts only the UPN
        click.echo(f'Email: {self._user_email() or ""}')

    def _user_email(self) -> Optional[str]:
        return self.user.get('mail') or self.user.get('userPrincipalName')

    async def run(self) -> None:
        """Main REPL loop; returns on 'exit', Ctrl-C or end of input."""
        exit_message = 'Goodbye...'
        try:
            while True:
                line = click.prompt('\n:', default='', show_default=False,
                                    prompt_suffix=' ').strip()
                if not line:
                    continue
                lower = line.lower()
                if lower == 'help':
                    self._help()
                    continue
                if lower == 'exit':
                    break
                await self.handle_command(line)
        except (click.exceptions.Abort, EOFError):
            exit_message = 'Interrupted. Goodbye...'
        working = self.tracker.working_task
        if working is not None:
            click.echo(f'"{working.title}" is still in progress; its open interval stays in the log.')
        click.echo(exit_message)

    # -------------------- command dispatch --------------------
    async def handle_command(self, line: str) -> None:
        tokens = line.split()
        if not tokens:
            return
        entry = self.commands.get(tokens[0].lower())
        if entry is None:
            click.echo("Unknown command. Type 'help' for instructions.")
            return
        handler, operation = entry
        try:
            await handler(tokens)
        except SourceUnavailable as e:
            click.echo(f'Error {e.operation}: {describe(e.cause)}')
        except REPORTED_ERRORS as e:
            click.echo(f'Error {operation}: {describe(e)}')

    # ---- time tracking ----
    async def _cmd_pull(self, tokens: List[str]) -> None:
        await self.tracker.pull_today()
        await self._cmd_ls(tokens)

    async def _cmd_ls(self, tokens: List[str]) -> None:
        tasks = self.tracker.tasks
        if not tasks:
            click.echo('No tasks due today (run "pull" to refresh).')
            return
        working = self.tracker.state.working_index
        for idx, task in enumerate(tasks):
            marker = color('*', WORKING_COLOR) if idx == working else ' '
            list_name = f'  [{task.list_name}]' if task.list_name else ''
            click.echo(f'{marker}{color(f"{idx}.", INDEX_COLOR)} {task.title}{list_name}')

    async def _cmd_start(self, tokens: List[str]) -> None:
        index = _parse_index(tokens, 'start <index>')
        if index is None:
            return
        result = await self.tracker.start(index)
        title = self.tracker.tasks[index].title
        if result is StartResult.ALREADY_DONE:
            click.echo(f'"{title}" is already done.')
        elif result is StartResult.RESUMED:
            click.echo(f'Continuing "{title}".')
        else:
            click.echo(f'Started "{title}".')

    async def _stop(self, finished: bool) -> None:
        task = self.tracker.working_task
        interval = await self.tracker.stop(finished)
        verb = 'Finished' if finished else 'Paused'
        title = task.title if task else ''
        click.echo(f'{verb} "{title}" after {format_minutes(interval.minutes)} min.')

    async def _cmd_stop(self, tokens: List[str]) -> None:
        await self._stop(False)

    async def _cmd_done(self, tokens: List[str]) -> None:
        await self._stop(True)

    async def _cmd_show(self, tokens: List[str]) -> None:
        index = _parse_index(tokens, 'show <index>')
        if index is None:
            return
        detail = await self.tracker.display(index)
        click.echo(color(detail.task.title, BOLD))
        click.echo(f'  List:       {detail.task.list_name}')
        click.echo(f'  Status:     {status_text(detail.status)}')
        click.echo(f'  Importance: {detail.importance}')
        click.echo(f'  Estimate:   {detail.log.estimate or "-"}')
        for entry in detail.log.entries:
            click.echo(f'  {format_timestamp(entry.start)} -> {format_timestamp(entry.end)}'
                       f'  ({format_minutes(entry.minutes)} min)')
        if detail.log.open_start is not None:
            click.echo(f'  {format_timestamp(detail.log.open_start)} -> (running)')
        click.echo(f'  Today: {format_minutes(detail.today_minutes)} min, '
                   f'all: {format_minutes(detail.all_minutes)} min')

    async def _build_report(self) -> str:
        inputs = await summary.collect(self.store, self.tracker.tasks)
        return summary.render(summary.build(inputs, self.tracker.clock()))

    async def _cmd_summary(self, tokens: List[str]) -> None:
        if not self.tracker.tasks:
            click.echo('Nothing to summarize (run "pull" first).')
            return
        report = await self._build_report()
        click.echo(report)
        await summary.publish(self.store, report, self.settings.summary_list_id,
                              self.tracker.clock())
        click.echo(f'Saved as "{summary.SUMMARY_TITLE}".')

    async def _cmd_mail_summary(self, tokens: List[str]) -> None:
        recipient = self._user_email()
        if not recipient:
            click.echo("Couldn't get your email address, canceling...")
            return
        report = await self._build_report()
        await summary.mail(self.store, report, recipient, self.tracker.clock())
        click.echo('Mail sent.')

    # ---- graph utilities ----
    async def _cmd_token(self, tokens: List[str]) -> None:
        if self.token_provider is None:
            click.echo('No token provider configured.')
            return
        click.echo(f'User token: {await self.token_provider()}')

    async def _cmd_inbox(self, tokens: List[str]) -> None:
        messages, more = await self.store.get_inbox()
        for message in messages:
            sender = ((message.get('from') or {}).get('emailAddress') or {}).get('name')
            click.echo(f"Message: {message.get('subject') or 'NO SUBJECT'}")
            click.echo(f"  From: {sender or 'UNKNOWN'}")
            click.echo(f"  Status: {'Read' if message.get('isRead') else 'Unread'}")
            click.echo(f"  Received: {message.get('receivedDateTime')}")
        click.echo(f'\nMore messages available? {more}')

    async def _cmd_send_mail(self, tokens: List[str]) -> None:
        recipient = self._user_email()
        if not recipient:
            click.echo("Couldn't get your email address, canceling...")
            return
        subject = click.prompt('Subject', default='Testing Microsoft Graph')
        body = click.prompt('Body', default='Hello world!')
        await self.store.send_mail(subject, body, recipient)
        click.echo('Mail sent.')

    async def _cmd_lists(self, tokens: List[str]) -> None:
        self._lists = await self.store.list_task_lists()
        for idx, task_list in enumerate(self._lists):
            click.echo(f"{color(f'{idx}.', INDEX_COLOR)} {task_list.get('displayName')}")

    async def _cmd_tasks(self, tokens: List[str]) -> None:
        index = _parse_index(tokens, 'tasks <list index>')
        if index is None:
            return
        if not self._lists:
            self._lists = await self.store.list_task_lists()
        if index >= len(self._lists):
            click.echo(f'No list #{index}.')
            return
        for task in await self.store.list_tasks(self._lists[index]['id']):
            due = (task.get('dueDateTime') or {}).get('dateTime') or '-'
            click.echo(f"{status_text(task.get('status', ''))}  {task.get('title')}"
                       f"  importance={task.get('importance')}  due={due}")

    async def _cmd_calendars(self, tokens: List[str]) -> None:
        for calendar in await self.store.list_calendars():
            click.echo(f"{calendar.get('name')}  {color(calendar.get('id', ''), HEADER_COLOR)}")

    async def _cmd_events(self, tokens: List[str]) -> None:
        for event in await self.store.list_events(self.settings.calendar_id):
            start = (event.get('start') or {}).get('dateTime')
            end = (event.get('end') or {}).get('dateTime')
            click.echo(f"{event.get('subject')}  {start} -> {end}")

    async def _cmd_add_event(self, tokens: List[str]) -> None:
        subject = click.prompt('Subject').strip()
        start = parse_timestamp(click.prompt('Start (YYYY-MM-DDTHH:MM)').strip())
        end = parse_timestamp(click.prompt('End (YYYY-MM-DDTHH:MM)').strip())
        if start is None or end is None:
            click.echo('Invalid date/time.')
            return
        if end <= start:
            click.echo('End must be after start.')
            return
        importance = click.prompt('Importance', default='normal',
                                  type=click.Choice(IMPORTANCE))
        event = await self.store.create_event(self.settings.calendar_id, subject or '(no subject)',
                                              start, end, importance)
        click.echo(f"Event created with id {event.get('id')}")

    # -------------------- help --------------------
    def _help(self) -> None:
        click.echo("Commands:")
        click.echo("  pull              Fetch tasks due today from every list")
        click.echo("  ls                Show today's tasks (* marks the working one)")
        click.echo("  start <index>     Start or continue working on a task")
        click.echo("  stop              Pause the working task (stays in progress)")
        click.echo("  done              Finish the working task (marks it completed)")
        click.echo("  show <index>      Show a task's time log and totals")
        click.echo("  summary           Print today's summary and save it as a task")
        click.echo("  mail-summary      Mail today's summary to yourself")
        click.echo("  token             Display the access token")
        click.echo("  inbox             List the newest inbox messages")
        click.echo("  send-mail         Send a mail to yourself")
        click.echo("  lists             List task lists")
        click.echo("  tasks <index>     List the tasks of a task list")
        click.echo("  calendars         List calendars")
        click.echo("  events            List events of the configured calendar")
        click.echo("  add-event         Add an event to the configured calendar")
        click.echo("  help              Show this help")
        click.echo("  exit              Quit")

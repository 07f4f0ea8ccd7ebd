"""Asynchronous Microsoft Graph client (aiohttp).

Covers the slice of Graph the tracker needs: the signed-in user, inbox and
sendMail, To Do lists/tasks, calendars/events. Collection reads follow
``@odata.nextLink`` until the last page. Every failure surfaces once as
GraphError (timeouts and network errors included); there is no retry layer.
An AuthError from the token provider passes through unchanged.
"""
from __future__ import annotations
import json
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

import aiohttp

from todotrack.errors import TRANSPORT_ERRORS, GraphError, describe
from todotrack.models import NOT_STARTED

logger = logging.getLogger(__name__)

GRAPH_URL = 'https://graph.microsoft.com/v1.0'
REQUEST_ERRORS = (aiohttp.ClientError,) + TRANSPORT_ERRORS

TokenProvider = Callable[[], Awaitable[str]]
Json = Dict[str, Any]
When = Union[str, datetime]


def _when(value: When) -> str:
    return value.isoformat() if isinstance(value, datetime) else value


async def _error_detail(resp: aiohttp.ClientResponse) -> Tuple[str, Optional[str]]:
    text = await resp.text()
    try:
        err = json.loads(text).get('error', {})
    except (ValueError, AttributeError):
        return (text.strip() or resp.reason or 'request failed'), None
    return err.get('message') or resp.reason or 'request failed', err.get('code')


class GraphClient:
    def __init__(self, session: aiohttp.ClientSession, token_provider: TokenProvider,
                 base_url: str = GRAPH_URL, time_zone: str = 'UTC'):
        self.session = session
        self.token_provider = token_provider
        self.base_url = base_url.rstrip('/')
        self.time_zone = time_zone

    # -------------------- transport --------------------
    async def _request(self, method: str, path: str, params: Optional[Dict[str, str]] = None,
                       body: Optional[Json] = None) -> Optional[Json]:
        url = path if path.startswith('http') else f'{self.base_url}/{path.lstrip("/")}'
        logger.debug('%s %s', method, url)
        try:
            token = await self.token_provider()
            headers = {'Authorization': f'Bearer {token}'}
            async with self.session.request(method, url, params=params, json=body,
                                            headers=headers) as resp:
                if resp.status >= 400:
                    message, code = await _error_detail(resp)
                    raise GraphError(message, status=resp.status, code=code)
                text = await resp.text()
        except REQUEST_ERRORS as e:
            raise GraphError(describe(e)) from e
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise GraphError(f'invalid JSON from {url}') from e

    async def _collect(self, path: str, params: Optional[Dict[str, str]] = None) -> List[Json]:
        items: List[Json] = []
        page = await self._request('GET', path, params=params) or {}
        while True:
            items.extend(page.get('value', []))
            next_link = page.get('@odata.nextLink')
            if not next_link:
                return items
            page = await self._request('GET', next_link) or {}

    # -------------------- user / mail --------------------
    async def get_user(self) -> Json:
        return await self._request('GET', 'me', params={
            '$select': 'displayName,mail,userPrincipalName'}) or {}

    async def get_inbox(self, top: int = 25) -> Tuple[List[Json], bool]:
        """Return the newest messages and whether more pages exist."""
        page = await self._request('GET', 'me/mailFolders/inbox/messages', params={
            '$select': 'from,isRead,receivedDateTime,subject',
            '$top': str(top),
            '$orderby': 'receivedDateTime DESC',
        }) or {}
        return page.get('value', []), '@odata.nextLink' in page

    async def send_mail(self, subject: str, body: str, recipient: str) -> None:
        message = {
            'subject': subject,
            'body': {'content': body, 'contentType': 'text'},
            'toRecipients': [{'emailAddress': {'address': recipient}}],
        }
        await self._request('POST', 'me/sendMail', body={'message': message})

    # -------------------- to do --------------------
    async def list_task_lists(self) -> List[Json]:
        return await self._collect('me/todo/lists')

    async def list_tasks(self, list_id: str, query_filter: str = '') -> List[Json]:
        params = {'$filter': query_filter} if query_filter else None
        return await self._collect(f'me/todo/lists/{list_id}/tasks', params=params)

    async def get_task(self, list_id: str, task_id: str) -> Json:
        return await self._request('GET', f'me/todo/lists/{list_id}/tasks/{task_id}') or {}

    async def create_task(self, list_id: str, title: str, body: Optional[str] = None,
                          status: str = NOT_STARTED, due: Optional[When] = None) -> Json:
        task: Json = {
            'title': title,
            'body': {'content': body or '', 'contentType': 'text'},
            'status': status,
        }
        if due is not None:
            task['dueDateTime'] = {'dateTime': _when(due), 'timeZone': self.time_zone}
        return await self._request('POST', f'me/todo/lists/{list_id}/tasks', body=task) or {}

    async def update_task(self, list_id: str, task_id: str, body: str,
                          status: str = NOT_STARTED) -> Json:
        patch = {'body': {'content': body, 'contentType': 'text'}, 'status': status}
        return await self._request('PATCH', f'me/todo/lists/{list_id}/tasks/{task_id}',
                                   body=patch) or {}

    # -------------------- calendar --------------------
    async def list_calendars(self) -> List[Json]:
        return await self._collect('me/calendars')

    async def list_events(self, calendar_id: Optional[str] = None) -> List[Json]:
        path = f'me/calendars/{calendar_id}/events' if calendar_id else 'me/calendar/events'
        return await self._collect(path, params={'$select': 'subject,start,end,categories'})

    async def create_event(self, calendar_id: Optional[str], subject: str, start: When, end: When,
                           importance: str = 'normal',
                           categories: Optional[Sequence[str]] = None) -> Json:
        event: Json = {
            'subject': subject,
            'start': {'dateTime': _when(start), 'timeZone': self.time_zone},
            'end': {'dateTime': _when(end), 'timeZone': self.time_zone},
            'importance': importance,
        }
        if categories:
            event['categories'] = list(categories)
        path = f'me/calendars/{calendar_id}/events' if calendar_id else 'me/calendar/events'
        return await self._request('POST', path, body=event) or {}

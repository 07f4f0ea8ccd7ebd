"""Shared fixtures: an in-memory task store and a settable clock."""
import copy
from datetime import datetime

import pytest

from todotrack.errors import GraphError


class FakeStore:
    """Coroutine-compatible stand-in for GraphClient backed by dicts."""

    def __init__(self):
        self.lists = []
        self.tasks = {}
        self.events = []
        self.created = []
        self.mails = []
        self.filters = []
        self.updates = []
        self.fail = set()
        # method name -> exception to raise instead of GraphError
        self.errors = {}
        self.user = {'displayName': 'Ada', 'mail': 'ada@example.com'}

    # ---- setup helpers ----
    def add_list(self, list_id, name, wellknown='none'):
        self.lists.append({'id': list_id, 'displayName': name, 'wellknownListName': wellknown})
        self.tasks.setdefault(list_id, [])

    def add_task(self, list_id, task_id, title, status='notStarted', body='', importance='normal'):
        self.tasks[list_id].append({
            'id': task_id,
            'title': title,
            'status': status,
            'importance': importance,
            'body': {'content': body, 'contentType': 'text'},
        })

    def task(self, list_id, task_id):
        for raw in self.tasks[list_id]:
            if raw['id'] == task_id:
                return raw
        raise KeyError(task_id)

    def body(self, list_id, task_id):
        return self.task(list_id, task_id)['body']['content']

    def _check(self, name):
        if name in self.errors:
            raise self.errors[name]
        if name in self.fail:
            raise GraphError('service unavailable', status=503)

    # ---- store protocol ----
    async def get_user(self):
        self._check('get_user')
        return dict(self.user)

    async def list_task_lists(self):
        self._check('list_task_lists')
        return copy.deepcopy(self.lists)

    async def list_tasks(self, list_id, query_filter=''):
        self._check('list_tasks')
        self.filters.append(query_filter)
        return copy.deepcopy(self.tasks[list_id])

    async def get_task(self, list_id, task_id):
        self._check('get_task')
        return copy.deepcopy(self.task(list_id, task_id))

    async def update_task(self, list_id, task_id, body, status='notStarted'):
        self._check('update_task')
        raw = self.task(list_id, task_id)
        raw['body']['content'] = body
        raw['status'] = status
        self.updates.append((task_id, body, status))
        return copy.deepcopy(raw)

    async def create_task(self, list_id, title, body=None, status='notStarted', due=None):
        self._check('create_task')
        created = {'id': f'new-{len(self.created)}', 'list_id': list_id, 'title': title,
                   'body': body, 'status': status, 'due': due}
        self.created.append(created)
        return dict(created)

    async def create_event(self, calendar_id, subject, start, end, importance='normal',
                           categories=None):
        self._check('create_event')
        event = {'calendar_id': calendar_id, 'subject': subject, 'start': start, 'end': end,
                 'importance': importance, 'categories': categories}
        self.events.append(event)
        return dict(event, id=f'E{len(self.events)}')

    async def send_mail(self, subject, body, recipient):
        self._check('send_mail')
        self.mails.append((subject, body, recipient))


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def clock():
    return Clock(datetime(2024, 1, 1, 9, 0, 0))


@pytest.fixture
def three_tasks(store):
    """Three tasks due today across two lists, one per status."""
    store.add_list('L1', 'Work', wellknown='defaultList')
    store.add_list('L2', 'Home')
    store.add_task('L1', 'T1', 'Write report')
    store.add_task('L1', 'T2', 'Review PR', status='inProgress',
                   body='45\n2024-01-01T08:00:00 2024-01-01T08:30:00\n2024-01-01T08:40:00')
    store.add_task('L2', 'T3', 'Groceries', status='completed',
                   body='20\n2023-12-31T17:00:00 2023-12-31T17:25:00\nTotal: 25.0 min')
    return store

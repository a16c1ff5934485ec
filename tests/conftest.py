import asyncio
from collections import defaultdict
from unittest.mock import AsyncMock

import pytest_asyncio


class FakeCDPSession:
    """In-memory CDP session.

    ``replies`` maps a command method to the ``result`` dict to answer with,
    an exception to raise, a full ``{'error': ...}`` reply, or a callable
    taking the command and returning any of those (or an awaitable).
    """

    def __init__(self):
        self.handlers = defaultdict(list)
        self.sent = []
        self.replies = {}
        self.detach = AsyncMock()

    async def on(self, event_name, callback):
        self.handlers[getattr(event_name, 'value', event_name)].append(callback)
        return sum(len(callbacks) for callbacks in self.handlers.values())

    async def send(self, command):
        self.sent.append(command)
        reply = self.replies.get(command['method'], {})
        if callable(reply):
            reply = reply(command)
        if asyncio.iscoroutine(reply):
            reply = await reply
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, dict) and 'error' in reply:
            return reply
        return {'id': len(self.sent), 'result': reply}

    def emit(self, method, params):
        method = getattr(method, 'value', method)
        event = {'method': method, 'params': params}
        for callback in list(self.handlers[method]):
            callback(event)
        return event

    def sent_methods(self):
        return [command['method'] for command in self.sent]


class FakeTarget:
    def __init__(self):
        self.sessions = []

    async def create_cdp_session(self):
        session = FakeCDPSession()
        self.sessions.append(session)
        return session

    @property
    def session(self):
        return self.sessions[-1]


@pytest_asyncio.fixture
async def cdp_session():
    return FakeCDPSession()


@pytest_asyncio.fixture
async def target():
    return FakeTarget()

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Coroutine, Optional

from chromehar.browser.requests.body_fetcher import DEFAULT_BODY_TIMEOUT

if TYPE_CHECKING:
    from chromehar.browser.requests.body_fetcher import BodyResult
    from chromehar.connection import CDPSession
    from chromehar.protocol.base import CDPEvent

logger = logging.getLogger(__name__)

DEFAULT_CAPTURED_MIME_TYPES: frozenset[str] = frozenset({'text/html', 'application/json'})


@dataclass
class CaptureSession:
    """
    State of one recording, from ``start()`` to ``stop()``.

    A new instance is created for every capture, so handlers registered for an
    earlier capture only ever see their own, inactive, session.
    """

    client: CDPSession
    persist_response_bodies: bool = False
    captured_mime_types: frozenset[str] = DEFAULT_CAPTURED_MIME_TYPES
    use_interception: bool = False
    path: Optional[Path] = None
    body_timeout: Optional[float] = DEFAULT_BODY_TIMEOUT
    active: bool = True
    page_events: list[CDPEvent] = field(default_factory=list)
    network_events: list[CDPEvent] = field(default_factory=list)
    pending_bodies: dict[str, asyncio.Future[BodyResult]] = field(default_factory=dict)
    body_tasks: list[asyncio.Task] = field(default_factory=list)
    continuation_tasks: set[asyncio.Task] = field(default_factory=set)

    @property
    def event_log(self) -> list[CDPEvent]:
        """Page events followed by network events, each in arrival order."""
        return [*self.page_events, *self.network_events]

    def start_body_fetch(
        self, request_id: str, fetch: Coroutine[Any, Any, BodyResult]
    ) -> asyncio.Future[BodyResult]:
        """Schedule ``fetch`` as the single pending body for ``request_id``."""
        task = asyncio.create_task(fetch)
        self.pending_bodies[request_id] = task
        self.body_tasks.append(task)
        return task

    def track_body_task(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self.body_tasks.append(task)
        return task

    def track_continuation(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self.continuation_tasks.add(task)
        task.add_done_callback(self.continuation_tasks.discard)
        return task

    async def wait_for_body_tasks(self) -> None:
        """Wait until every body retrieval and attachment has settled."""
        while self.body_tasks:
            tasks = list(self.body_tasks)
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, BaseException):
                    logger.error('Body task ended with an error: %r', result)
            self.body_tasks = [task for task in self.body_tasks if task not in tasks]

    async def wait_for_continuations(self) -> None:
        if self.continuation_tasks:
            await asyncio.gather(*list(self.continuation_tasks), return_exceptions=True)

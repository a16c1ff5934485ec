"""Structural types for the CDP transport the recorder runs on.

chromehar does not open browser connections itself. Any object with the
methods below works: a thin adapter over a websocket client, a wrapper around
a browser automation library's tab, or a test double.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from chromehar.exceptions import ProtocolError
from chromehar.protocol.base import Command, Response

logger = logging.getLogger(__name__)


class CDPSession(Protocol):
    """A CDP session attached to a single target."""

    async def on(self, event_name: str, callback: Callable[[dict], Any]) -> Any:
        """
        Register ``callback`` for ``event_name``.

        The callback receives the whole event, ``{'method': ..., 'params': ...}``,
        and is invoked on the event loop for every delivery.
        """
        ...

    async def send(self, command: Command) -> Response:
        """Send a command and wait for the browser's reply."""
        ...

    async def detach(self) -> None:
        """Detach from the target. Registered callbacks stop firing."""
        ...


class CDPTarget(Protocol):
    """Something a dedicated CDP session can be opened on, usually a page."""

    async def create_cdp_session(self) -> CDPSession: ...


async def execute_command(session: CDPSession, command: Command) -> dict[str, Any]:
    """
    Send ``command`` and return the ``result`` part of the reply.

    Raises:
        ProtocolError: If the browser answered with an error.
    """
    response = await session.send(command)
    error = response.get('error')
    if error:
        logger.debug(f'Command {command["method"]} rejected: {error}')
        raise ProtocolError(f'{command["method"]} failed: {error.get("message", error)}')
    return response.get('result', {})

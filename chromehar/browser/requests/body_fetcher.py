"""Response body retrieval for the HAR recorder.

Bodies are read either through the Network domain once the response has been
received, or through the Fetch domain while the response is paused at the
response stage. The second path is the only way to read bodies the browser
throws away when the page navigates.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Union

from chromehar.commands import FetchCommands, NetworkCommands
from chromehar.connection import execute_command
from chromehar.exceptions import BodyRetrievalFailed
from chromehar.utils import decode_body, encode_bytes_to_base64

if TYPE_CHECKING:
    from chromehar.connection import CDPSession
    from chromehar.protocol.base import Command
    from chromehar.protocol.network.events import Response

logger = logging.getLogger(__name__)

DEFAULT_BODY_TIMEOUT = 30.0


@dataclass(frozen=True)
class BodyPayload:
    """Body as returned by ``getResponseBody``."""

    body: str
    base64_encoded: bool

    def decode(self) -> bytes:
        return decode_body(self.body, self.base64_encoded)


@dataclass(frozen=True)
class BodyFailure:
    """A retrieval that did not produce a body."""

    reason: str

    @property
    def placeholder(self) -> str:
        """Text stored in place of the body."""
        return f'<body unavailable: {self.reason}>'


BodyResult = Union[BodyPayload, BodyFailure]


class BodyFetcher:
    """
    Issues body retrieval commands on a CDP session.

    Both fetch methods resolve to a ``BodyResult`` and never raise: protocol
    errors, transport errors and timeouts are reported as ``BodyFailure``.
    """

    def __init__(self, session: CDPSession, timeout: Optional[float] = DEFAULT_BODY_TIMEOUT):
        """
        Args:
            session: Session the commands are sent on.
            timeout: Seconds to wait for each retrieval. None waits forever.
        """
        self._session = session
        self._timeout = timeout

    async def fetch_network_body(self, request_id: str) -> BodyResult:
        """Read the body of a received response via Network.getResponseBody."""
        return await self._fetch(NetworkCommands.get_response_body(request_id), request_id)

    async def fetch_intercepted_body(self, request_id: str) -> BodyResult:
        """Read the body of a response paused by the Fetch domain."""
        return await self._fetch(FetchCommands.get_response_body(request_id), request_id)

    async def _fetch(self, command: Command, request_id: str) -> BodyResult:
        try:
            async with asyncio.timeout(self._timeout):
                result = await execute_command(self._session, command)
            payload = self._parse_result(result)
        except TimeoutError:
            logger.warning(
                '%s timed out after %ss for %s', command['method'], self._timeout, request_id
            )
            return BodyFailure(f'timed out after {self._timeout}s')
        except Exception as exc:
            logger.warning('%s failed for %s: %s', command['method'], request_id, exc)
            return BodyFailure(str(exc) or type(exc).__name__)

        logger.debug(
            f'Retrieved body for {request_id}: length={len(payload.body)}, '
            f'base64={payload.base64_encoded}'
        )
        return payload

    @staticmethod
    def _parse_result(result: dict[str, Any]) -> BodyPayload:
        body = result.get('body')
        if not isinstance(body, str):
            raise BodyRetrievalFailed('reply carries no body')
        return BodyPayload(body=body, base64_encoded=bool(result.get('base64Encoded', False)))


def attach_text_body(response: Response, result: BodyResult) -> None:
    """Store the decoded body as UTF-8 text (direct retrieval)."""
    if isinstance(result, BodyFailure):
        response['body'] = result.placeholder
        return
    try:
        response['body'] = result.decode().decode('utf-8', errors='replace')
    except ValueError as exc:
        response['body'] = BodyFailure(f'undecodable payload: {exc}').placeholder


def attach_base64_body(response: Response, result: BodyResult) -> None:
    """Store the decoded body re-encoded as base64 (intercepted retrieval)."""
    if isinstance(result, BodyFailure):
        response['body'] = result.placeholder
        return
    try:
        response['body'] = encode_bytes_to_base64(result.decode())
    except ValueError as exc:
        response['body'] = BodyFailure(f'undecodable payload: {exc}').placeholder
        return
    response['encoding'] = 'base64'

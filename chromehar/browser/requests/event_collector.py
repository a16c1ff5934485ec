from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from chromehar.browser.requests.body_fetcher import attach_base64_body, attach_text_body
from chromehar.commands import FetchCommands
from chromehar.connection import execute_command
from chromehar.protocol.fetch.events import FetchEvent
from chromehar.protocol.network.events import NetworkEvent
from chromehar.protocol.page.events import PageEvent

if TYPE_CHECKING:
    import asyncio

    from chromehar.browser.requests.body_fetcher import BodyFetcher, BodyResult
    from chromehar.browser.requests.capture_session import CaptureSession
    from chromehar.protocol.base import CDPEvent
    from chromehar.protocol.fetch.events import RequestPausedEvent, RequestPausedEventParams
    from chromehar.protocol.network.events import Response, ResponseReceivedEvent

logger = logging.getLogger(__name__)

OBSERVED_PAGE_EVENTS: tuple[PageEvent, ...] = (
    PageEvent.LOAD_EVENT_FIRED,
    PageEvent.DOM_CONTENT_EVENT_FIRED,
    PageEvent.FRAME_STARTED_LOADING,
    PageEvent.FRAME_ATTACHED,
    PageEvent.FRAME_SCHEDULED_NAVIGATION,
)

OBSERVED_NETWORK_EVENTS: tuple[NetworkEvent, ...] = (
    NetworkEvent.REQUEST_WILL_BE_SENT,
    NetworkEvent.REQUEST_SERVED_FROM_CACHE,
    NetworkEvent.DATA_RECEIVED,
    NetworkEvent.RESPONSE_RECEIVED,
    NetworkEvent.RESOURCE_CHANGED_PRIORITY,
    NetworkEvent.LOADING_FINISHED,
    NetworkEvent.LOADING_FAILED,
)

_HTTP_NO_CONTENT = 204


class EventCollector:
    """
    Buffers Page and Network events for one capture and schedules body reads.

    Handlers are plain callbacks: they never await and never raise, so they
    can run straight from the session's dispatch loop.
    """

    def __init__(self, capture: CaptureSession, fetcher: BodyFetcher):
        self._capture = capture
        self._fetcher = fetcher

    async def subscribe(self) -> None:
        """Register the handlers on the capture's CDP session."""
        client = self._capture.client
        if self._capture.use_interception:
            await client.on(FetchEvent.REQUEST_PAUSED, self._on_request_paused)
        for event_name in OBSERVED_PAGE_EVENTS:
            await client.on(event_name, self._on_page_event)
        for event_name in OBSERVED_NETWORK_EVENTS:
            await client.on(event_name, self._on_network_event)
        logger.debug(
            f'Event collector subscribed: interception={self._capture.use_interception}'
        )

    def _on_page_event(self, event: CDPEvent) -> None:
        if not self._capture.active:
            return
        self._capture.page_events.append(event)

    def _on_network_event(self, event: CDPEvent) -> None:
        if not self._capture.active:
            return
        self._capture.network_events.append(event)

        if not self._capture.persist_response_bodies:
            return
        if event.get('method') != NetworkEvent.RESPONSE_RECEIVED:
            return
        try:
            self._on_response_received(event)  # type: ignore[arg-type]
        except (KeyError, TypeError, AttributeError) as exc:
            logger.warning(f'Skipping body capture for malformed responseReceived: {exc!r}')

    def _on_response_received(self, event: ResponseReceivedEvent) -> None:
        params = event['params']
        request_id = params['requestId']
        response = params['response']
        if not self._should_capture_body(response):
            return

        pending = self._capture.pending_bodies.get(request_id)
        if self._capture.use_interception:
            if pending is None:
                logger.debug(f'No intercepted body for {request_id}, leaving it empty')
                return
            attach = attach_base64_body
        else:
            if pending is None:
                pending = self._capture.start_body_fetch(
                    request_id, self._fetcher.fetch_network_body(request_id)
                )
            attach = attach_text_body

        self._capture.track_body_task(self._attach_when_settled(response, pending, attach))

    def _should_capture_body(self, response: Response) -> bool:
        # Redirects, 204s and media carry no retrievable body.
        if response['status'] == _HTTP_NO_CONTENT:
            return False
        headers = response.get('headers') or {}
        if any(name.lower() == 'location' for name in headers):
            return False
        return response.get('mimeType') in self._capture.captured_mime_types

    @staticmethod
    async def _attach_when_settled(
        response: Response,
        pending: asyncio.Future[BodyResult],
        attach: Callable[[Response, BodyResult], None],
    ) -> None:
        attach(response, await pending)

    def _on_request_paused(self, event: RequestPausedEvent) -> None:
        params = event.get('params', {})
        request_id = params.get('requestId')
        if request_id is None:
            logger.warning('Fetch.requestPaused without a requestId, ignoring')
            return

        if self._should_fetch_paused_body(params):
            network_id = params.get('networkId', request_id)
            if network_id not in self._capture.pending_bodies:
                self._capture.start_body_fetch(
                    network_id, self._fetcher.fetch_intercepted_body(request_id)
                )

        # Scheduled after the body read so getResponseBody reaches the browser first.
        self._capture.track_continuation(self._continue_request(request_id))

    def _should_fetch_paused_body(self, params: RequestPausedEventParams) -> bool:
        if params.get('responseHeaders') is None:
            return False
        status = params.get('responseStatusCode')
        if status is not None and 300 <= status < 400:
            return False
        if not self._capture.active:
            return False
        if status is None and params.get('responseErrorReason') is None:
            logger.error(
                f'Request {params.get("requestId")} paused outside the response stage'
            )
            return False
        return True

    async def _continue_request(self, request_id: str) -> None:
        try:
            await execute_command(
                self._capture.client, FetchCommands.continue_request(request_id)
            )
        except Exception as exc:
            logger.warning(f'Failed to continue paused request {request_id}: {exc}')

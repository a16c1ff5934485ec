"""HAR recording for a CDP target.

``HarRecorder`` owns the capture lifecycle (idle, capturing, finalizing) and
``HarCapture`` is the result object handed out by ``HarRecorder.record()``.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator, Callable, Iterable, Optional, Union

import aiofiles

from chromehar.browser.requests.body_fetcher import DEFAULT_BODY_TIMEOUT, BodyFetcher
from chromehar.browser.requests.capture_session import (
    DEFAULT_CAPTURED_MIME_TYPES,
    CaptureSession,
)
from chromehar.browser.requests.event_collector import EventCollector
from chromehar.browser.requests.har_builder import har_from_messages
from chromehar.commands import FetchCommands, NetworkCommands, PageCommands
from chromehar.connection import execute_command
from chromehar.exceptions import (
    ArchiveWriteError,
    ConfigurationError,
    RecordingAlreadyActive,
    RecordingNotStarted,
)

if TYPE_CHECKING:
    from chromehar.connection import CDPSession, CDPTarget
    from chromehar.protocol.network.har_types import Har, HarEntry, HarPage

logger = logging.getLogger(__name__)

ArchiveBuilder = Callable[..., 'Har']


class HarRecorder:
    """
    Records Page and Network events of a target and builds a HAR from them.

    Only one capture runs at a time per recorder; once stopped, the recorder
    can be started again.

    Example:
        recorder = HarRecorder(page)
        await recorder.start(persist_response_bodies=True)
        await page.goto('https://example.com')
        har = await recorder.stop()
    """

    def __init__(self, target: CDPTarget, archive_builder: ArchiveBuilder = har_from_messages):
        """
        Args:
            target: Object a dedicated CDP session is opened on.
            archive_builder: Called as ``archive_builder(events,
                include_text_from_response_body=...)`` to turn the event log
                into the returned document.
        """
        self._target = target
        self._archive_builder = archive_builder
        self._capture: Optional[CaptureSession] = None
        self._starting = False

    @property
    def is_recording(self) -> bool:
        return self._capture is not None and self._capture.active

    async def start(
        self,
        path: Optional[Union[str, Path]] = None,
        persist_response_bodies: bool = False,
        captured_mime_types: Optional[Iterable[str]] = None,
        use_interception: bool = False,
        body_timeout: Optional[float] = DEFAULT_BODY_TIMEOUT,
    ) -> None:
        """
        Open a CDP session on the target and start buffering events.

        Args:
            path: Where ``stop()`` writes the HAR. When omitted, ``stop()``
                returns it instead.
            persist_response_bodies: Retrieve bodies of responses whose MIME
                type is in ``captured_mime_types`` and embed them in the HAR.
            captured_mime_types: MIME types whose bodies are kept. Defaults to
                text/html and application/json.
            use_interception: Read bodies through the Fetch domain while the
                response is paused. Needed for bodies the browser evicts on
                navigation. Requires ``persist_response_bodies``.
            body_timeout: Seconds to wait for each body retrieval. None waits
                forever.

        Raises:
            ConfigurationError: If ``use_interception`` is set without
                ``persist_response_bodies``.
            RecordingAlreadyActive: If a capture is already running.
            ProtocolError: If the browser rejects enabling a domain.
        """
        if use_interception and not persist_response_bodies:
            raise ConfigurationError('use_interception requires persist_response_bodies')
        if self._capture is not None or self._starting:
            raise RecordingAlreadyActive()

        # Claimed before the first await so overlapping calls are rejected.
        self._starting = True
        try:
            client = await self._target.create_cdp_session()
            capture = CaptureSession(
                client=client,
                persist_response_bodies=persist_response_bodies,
                captured_mime_types=(
                    frozenset(captured_mime_types)
                    if captured_mime_types is not None
                    else DEFAULT_CAPTURED_MIME_TYPES
                ),
                use_interception=use_interception,
                path=Path(path) if path is not None else None,
                body_timeout=body_timeout,
            )
            try:
                await EventCollector(capture, BodyFetcher(client, body_timeout)).subscribe()
                await self._enable_domains(capture)
            except BaseException:
                capture.active = False
                await self._detach_after_failed_start(client)
                raise

            self._capture = capture
        finally:
            self._starting = False

        logger.info(
            f'HAR recording started: bodies={persist_response_bodies}, '
            f'interception={use_interception}, mime_types={sorted(capture.captured_mime_types)}'
        )

    async def stop(self) -> Optional[Har]:
        """
        Stop the capture and build the HAR.

        Events delivered from here on are dropped. Pending body retrievals are
        awaited, the CDP session is detached and the buffered events, page
        events first, are handed to the archive builder.

        Returns:
            The HAR, or None when ``start()`` was given a ``path``.

        Raises:
            RecordingNotStarted: If no capture is running.
            ArchiveWriteError: If the HAR could not be written to ``path``.
        """
        capture = self._capture
        if capture is None:
            raise RecordingNotStarted()

        capture.active = False
        try:
            await capture.wait_for_body_tasks()
            await capture.wait_for_continuations()
            await capture.client.detach()
        finally:
            self._capture = None

        events = capture.event_log
        har = self._archive_builder(
            events, include_text_from_response_body=capture.persist_response_bodies
        )
        logger.info(
            'HAR recording stopped: %d page events, %d network events',
            len(capture.page_events),
            len(capture.network_events),
        )

        if capture.path is None:
            return har
        await self._write_har(capture.path, har)
        return None

    @asynccontextmanager
    async def record(
        self,
        persist_response_bodies: bool = False,
        captured_mime_types: Optional[Iterable[str]] = None,
        use_interception: bool = False,
        body_timeout: Optional[float] = DEFAULT_BODY_TIMEOUT,
    ) -> AsyncIterator[HarCapture]:
        """
        Record for the duration of the ``async with`` block.

        The yielded ``HarCapture`` is filled in when the block exits.

        Example:
            async with recorder.record(persist_response_bodies=True) as capture:
                await page.goto('https://example.com')
            capture.save('example.har')
        """
        await self.start(
            persist_response_bodies=persist_response_bodies,
            captured_mime_types=captured_mime_types,
            use_interception=use_interception,
            body_timeout=body_timeout,
        )
        capture = HarCapture()
        try:
            yield capture
        except BaseException:
            try:
                capture._har = await self.stop()
            except Exception as exc:
                logger.warning(f'Failed to stop recording after an error in the block: {exc}')
            raise
        capture._har = await self.stop()

    @staticmethod
    async def _enable_domains(capture: CaptureSession) -> None:
        await execute_command(capture.client, PageCommands.enable())
        await execute_command(capture.client, NetworkCommands.enable())
        if capture.use_interception:
            await execute_command(
                capture.client, FetchCommands.enable(request_stage='Response')
            )

    @staticmethod
    async def _detach_after_failed_start(client: CDPSession) -> None:
        try:
            await client.detach()
        except Exception as exc:
            logger.warning(f'Failed to detach CDP session after aborted start: {exc}')

    @staticmethod
    async def _write_har(path: Path, har: Har) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, 'w', encoding='utf-8') as f:
                await f.write(json.dumps(har, ensure_ascii=False))
        except OSError as exc:
            raise ArchiveWriteError(f'Failed to write HAR to {path}: {exc}') from exc
        logger.info(f'HAR saved to {path}')


class HarCapture:
    """
    Result of ``HarRecorder.record()``.

    Empty while the ``async with`` block runs; holds the HAR afterwards.
    """

    def __init__(self, har: Optional[Har] = None):
        self._har = har

    @property
    def entries(self) -> list[HarEntry]:
        """Copy of the recorded entries, ordered by start time."""
        return list(self.to_dict()['log']['entries'])

    @property
    def pages(self) -> list[HarPage]:
        return list(self.to_dict()['log']['pages'])

    def to_dict(self) -> Har:
        """
        Return the HAR document.

        Raises:
            RecordingNotStarted: If the recording has not finished yet.
        """
        if self._har is None:
            raise RecordingNotStarted('The recording has not finished yet')
        return self._har

    def save(self, path: Union[str, Path]) -> None:
        """Write the HAR as JSON, creating parent directories."""
        har = self.to_dict()
        file_path = Path(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(har, f, indent=2, ensure_ascii=False)
        logger.info('HAR saved to %s (%d entries)', path, len(har['log']['entries']))

"""Build a HAR 1.2 document from a recorded CDP event log.

``har_from_messages`` is a pure function: it walks the ordered list of
``{'method', 'params'}`` events once, correlates Network events by
``requestId`` and derives pages from the Page lifecycle events of the root
frame.
"""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional
from urllib.parse import parse_qsl, urlparse

from chromehar.protocol.network.events import NetworkEvent
from chromehar.protocol.network.har_types import (
    Har,
    HarContent,
    HarCookie,
    HarCreator,
    HarEntry,
    HarLog,
    HarNameValue,
    HarPage,
    HarPageTimings,
    HarPostData,
    HarRequest,
    HarResponse,
    HarTimings,
)
from chromehar.protocol.page.events import PageEvent

if TYPE_CHECKING:
    from chromehar.protocol.base import CDPEvent

logger = logging.getLogger(__name__)

_CREATOR_NAME = 'chromehar'
_HTTP_NOT_MODIFIED = 304
_DOCUMENT_RESOURCE_TYPE = 'Document'


def _get_chromehar_version() -> str:
    try:
        return _pkg_version('chromehar')
    except PackageNotFoundError:
        return 'unknown'


def har_from_messages(
    events: Iterable[CDPEvent], include_text_from_response_body: bool = False
) -> Har:
    """
    Build a HAR document from recorded CDP events.

    Args:
        events: Events in the order they should be replayed, page events first.
        include_text_from_response_body: Copy ``response['body']`` into the
            entry's ``content.text`` when the recorder attached one.

    Returns:
        A HAR 1.2 dict ready for ``json.dump``.
    """
    return HarBuilder(include_text_from_response_body).build(events)


class HarBuilder:
    """Single-use accumulator behind ``har_from_messages``."""

    def __init__(self, include_text_from_response_body: bool = False):
        self._include_text = include_text_from_response_body
        self._pending: dict[str, dict[str, Any]] = {}
        self._data_received_sizes: dict[str, int] = {}
        self._entries: list[HarEntry] = []
        self._root_frame_id: Optional[str] = None
        self._child_frame_ids: set[str] = set()
        self._page_slots: list[dict[str, Any]] = []
        self._claimed_pages: list[dict[str, Any]] = []
        self._handlers: dict[str, Callable[[dict[str, Any]], None]] = {
            PageEvent.FRAME_ATTACHED: self._on_frame_attached,
            PageEvent.FRAME_STARTED_LOADING: self._on_frame_started_loading,
            PageEvent.DOM_CONTENT_EVENT_FIRED: self._on_dom_content_event_fired,
            PageEvent.LOAD_EVENT_FIRED: self._on_load_event_fired,
            NetworkEvent.REQUEST_WILL_BE_SENT: self._on_request_will_be_sent,
            NetworkEvent.REQUEST_WILL_BE_SENT_EXTRA_INFO: self._on_request_extra_info,
            NetworkEvent.REQUEST_SERVED_FROM_CACHE: self._on_request_served_from_cache,
            NetworkEvent.RESPONSE_RECEIVED: self._on_response_received,
            NetworkEvent.RESPONSE_RECEIVED_EXTRA_INFO: self._on_response_extra_info,
            NetworkEvent.RESOURCE_CHANGED_PRIORITY: self._on_resource_changed_priority,
            NetworkEvent.DATA_RECEIVED: self._on_data_received,
            NetworkEvent.LOADING_FINISHED: self._on_loading_finished,
            NetworkEvent.LOADING_FAILED: self._on_loading_failed,
        }

    def build(self, events: Iterable[CDPEvent]) -> Har:
        for event in events:
            handler = self._handlers.get(event.get('method', ''))
            if handler is None:
                continue
            try:
                handler(event.get('params') or {})
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f'Skipping malformed {event.get("method")} event: {exc!r}')

        self._flush_pending()
        return Har(
            log=HarLog(
                version='1.2',
                creator=HarCreator(name=_CREATOR_NAME, version=_get_chromehar_version()),
                pages=[self._build_page(page) for page in self._claimed_pages],
                entries=sorted(self._entries, key=lambda e: e['startedDateTime']),
            )
        )

    def _on_frame_attached(self, params: dict[str, Any]) -> None:
        if params.get('parentFrameId'):
            self._child_frame_ids.add(params['frameId'])

    def _on_frame_started_loading(self, params: dict[str, Any]) -> None:
        frame_id = params['frameId']
        if frame_id in self._child_frame_ids:
            return
        if self._root_frame_id is None:
            self._root_frame_id = frame_id
        if frame_id == self._root_frame_id:
            self._page_slots.append({'content_load_ts': None, 'load_ts': None})

    def _on_dom_content_event_fired(self, params: dict[str, Any]) -> None:
        if self._page_slots and self._page_slots[-1]['content_load_ts'] is None:
            self._page_slots[-1]['content_load_ts'] = params['timestamp']

    def _on_load_event_fired(self, params: dict[str, Any]) -> None:
        if self._page_slots and self._page_slots[-1]['load_ts'] is None:
            self._page_slots[-1]['load_ts'] = params['timestamp']

    def _claim_page(self, request_id: str, params: dict[str, Any]) -> None:
        """Bind a root-frame document request to the next page."""
        if self._root_frame_id is None:
            return
        if params.get('type') != _DOCUMENT_RESOURCE_TYPE:
            return
        if params.get('frameId', self._root_frame_id) != self._root_frame_id:
            return
        if any(page['request_id'] == request_id for page in self._claimed_pages):
            return

        unclaimed = [slot for slot in self._page_slots if 'request_id' not in slot]
        if unclaimed:
            slot = unclaimed[0]
        else:
            slot = {'content_load_ts': None, 'load_ts': None}
            self._page_slots.append(slot)
        slot.update(
            id=f'page_{len(self._claimed_pages) + 1}',
            request_id=request_id,
            url=params['request'].get('url', ''),
            wall_time=params.get('wallTime', 0),
            timestamp=params.get('timestamp'),
        )
        self._claimed_pages.append(slot)

    @property
    def _current_pageref(self) -> Optional[str]:
        return self._claimed_pages[-1]['id'] if self._claimed_pages else None

    def _on_request_will_be_sent(self, params: dict[str, Any]) -> None:
        request_id = params['requestId']
        request_data = params['request']
        redirect_response = params.get('redirectResponse')

        if redirect_response and request_id in self._pending:
            self._finalize_redirect_entry(request_id, redirect_response)

        self._claim_page(request_id, params)
        self._pending[request_id] = {
            'url': request_data.get('url', ''),
            'method': request_data.get('method', 'GET'),
            'request_headers': request_data.get('headers', {}),
            'post_data': request_data.get('postData'),
            'wall_time': params.get('wallTime', 0),
            'timestamp': params.get('timestamp'),
            'resource_type': params.get('type', ''),
            'priority': request_data.get('initialPriority', ''),
            'pageref': self._current_pageref,
        }

    def _on_request_extra_info(self, params: dict[str, Any]) -> None:
        pending = self._pending.get(params['requestId'])
        if pending is not None and params.get('headers'):
            pending['request_headers_extra'] = params['headers']

    def _on_request_served_from_cache(self, params: dict[str, Any]) -> None:
        pending = self._pending.get(params['requestId'])
        if pending is not None:
            pending['from_cache'] = 'memory'

    def _on_resource_changed_priority(self, params: dict[str, Any]) -> None:
        pending = self._pending.get(params['requestId'])
        if pending is not None:
            pending['priority'] = params.get('newPriority', pending.get('priority', ''))

    def _on_response_received(self, params: dict[str, Any]) -> None:
        pending = self._pending.get(params['requestId'])
        if pending is None:
            return

        response = params['response']
        pending.update(
            status=response['status'],
            status_text=response.get('statusText', ''),
            response_headers=response.get('headers', {}),
            mime_type=response.get('mimeType', ''),
            protocol=response.get('protocol', ''),
            timing=response.get('timing'),
            remote_ip=response.get('remoteIPAddress', ''),
            connection_id=str(response.get('connectionId', '')),
            response_timestamp=params.get('timestamp'),
        )
        if response.get('fromDiskCache'):
            pending['from_cache'] = 'disk'
        if self._include_text and response.get('body') is not None:
            pending['response_body'] = response['body']
            pending['response_body_base64'] = response.get('encoding') == 'base64'

    def _on_response_extra_info(self, params: dict[str, Any]) -> None:
        pending = self._pending.get(params['requestId'])
        if pending is None:
            return
        if params.get('headers'):
            pending['response_headers_extra'] = params['headers']
        if params.get('statusCode') is not None:
            pending['extra_status_code'] = params['statusCode']

    def _on_data_received(self, params: dict[str, Any]) -> None:
        request_id = params['requestId']
        self._data_received_sizes[request_id] = self._data_received_sizes.get(
            request_id, 0
        ) + params.get('encodedDataLength', 0)

    def _on_loading_finished(self, params: dict[str, Any]) -> None:
        request_id = params['requestId']
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        pending['finished_timestamp'] = params.get('timestamp')
        pending['body_bytes'] = self._data_received_sizes.pop(request_id, -1)
        self._entries.append(self._build_entry(pending))

    def _on_loading_failed(self, params: dict[str, Any]) -> None:
        request_id = params['requestId']
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        self._data_received_sizes.pop(request_id, None)
        pending.setdefault('status', 0)
        pending.setdefault('status_text', params.get('errorText', 'Failed'))
        pending['error_text'] = params.get('errorText', '')
        self._entries.append(self._build_entry(pending))

    def _finalize_redirect_entry(self, request_id: str, redirect_response: dict[str, Any]) -> None:
        pending = self._pending.pop(request_id)
        pending.update(
            status=redirect_response.get('status', 302),
            status_text=redirect_response.get('statusText', ''),
            response_headers=redirect_response.get('headers', {}),
            mime_type=redirect_response.get('mimeType', ''),
            protocol=redirect_response.get('protocol', ''),
            timing=redirect_response.get('timing'),
            remote_ip=redirect_response.get('remoteIPAddress', ''),
            body_bytes=self._data_received_sizes.pop(request_id, -1),
        )
        self._entries.append(self._build_entry(pending))

    def _flush_pending(self) -> None:
        """Emit requests that never finished with status 0."""
        for request_id in list(self._pending):
            pending = self._pending.pop(request_id)
            pending.setdefault('status', 0)
            pending.setdefault('status_text', '(pending)')
            self._entries.append(self._build_entry(pending))

    def _build_page(self, page: dict[str, Any]) -> HarPage:
        return HarPage(
            startedDateTime=self._wall_time_to_iso(page['wall_time']),
            id=page['id'],
            title=page['url'],
            pageTimings=HarPageTimings(
                onContentLoad=self._elapsed_ms(page['timestamp'], page['content_load_ts']),
                onLoad=self._elapsed_ms(page['timestamp'], page['load_ts']),
            ),
        )

    @staticmethod
    def _elapsed_ms(start: Optional[float], end: Optional[float]) -> float:
        if start is None or end is None or end < start:
            return -1
        return round((end - start) * 1000, 3)

    def _build_entry(self, pending: dict[str, Any]) -> HarEntry:
        req_headers = pending.get('request_headers_extra') or pending.get('request_headers', {})
        resp_headers = pending.get('response_headers_extra') or pending.get(
            'response_headers', {}
        )
        http_version = self._normalize_http_version(pending.get('protocol', ''))

        response_ts = pending.get('response_timestamp')
        finished_ts = pending.get('finished_timestamp')
        receive_ms = None
        if response_ts and finished_ts and finished_ts > response_ts:
            receive_ms = (finished_ts - response_ts) * 1000
        timings = self._build_har_timings(pending.get('timing'), receive_ms)
        # ssl is already part of connect
        total_time = sum(
            value
            for name, value in timings.items()
            if name != 'ssl' and value > 0
        )

        entry = HarEntry(
            startedDateTime=self._wall_time_to_iso(pending.get('wall_time', 0)),
            time=round(total_time, 2),
            request=self._build_har_request(pending, req_headers, http_version),
            response=self._build_har_response(pending, resp_headers, http_version),
            cache={},
            timings=timings,
        )
        optional_fields = (
            ('pageref', 'pageref'),
            ('remote_ip', 'serverIPAddress'),
            ('connection_id', 'connection'),
            ('resource_type', '_resourceType'),
            ('priority', '_priority'),
            ('from_cache', '_fromCache'),
        )
        for key, har_field in optional_fields:
            if pending.get(key):
                entry[har_field] = pending[key]  # type: ignore[literal-required]
        return entry

    def _build_har_request(
        self, pending: dict[str, Any], headers: dict[str, str], http_version: str
    ) -> HarRequest:
        url = pending.get('url', '')
        post_data = pending.get('post_data')
        har_request = HarRequest(
            method=pending.get('method', 'GET'),
            url=url,
            httpVersion=http_version,
            cookies=self._parse_request_cookies(headers),
            headers=self._headers_to_list(headers),
            queryString=self._parse_query_string(url),
            headersSize=-1,
            bodySize=len(post_data.encode('utf-8')) if post_data else 0,
        )
        if post_data:
            har_request['postData'] = HarPostData(
                mimeType=self._get_header(headers, 'content-type'), text=post_data
            )
        return har_request

    def _build_har_response(
        self, pending: dict[str, Any], headers: dict[str, str], http_version: str
    ) -> HarResponse:
        body = pending.get('response_body', '')
        is_base64 = pending.get('response_body_base64', False)
        status = pending.get('extra_status_code', pending.get('status', 0))
        content_size = self._content_size(body, is_base64)

        content = HarContent(size=content_size, mimeType=pending.get('mime_type', ''))
        if body:
            content['text'] = body
            if is_base64:
                content['encoding'] = 'base64'

        # 304 carries no body; file:// loads report no dataReceived bytes.
        body_bytes = pending.get('body_bytes', -1)
        if status == _HTTP_NOT_MODIFIED:
            body_size = 0
        elif body_bytes > 0:
            body_size = body_bytes
        elif content_size > 0:
            body_size = content_size
        else:
            body_size = -1

        har_response = HarResponse(
            status=status,
            statusText=pending.get('status_text', ''),
            httpVersion=http_version,
            cookies=self._parse_response_cookies(headers),
            headers=self._headers_to_list(headers),
            content=content,
            redirectURL=self._get_header(headers, 'location'),
            headersSize=-1,
            bodySize=body_size,
        )
        if pending.get('error_text'):
            har_response['_error'] = pending['error_text']
        return har_response

    @staticmethod
    def _content_size(body: str, is_base64: bool) -> int:
        if not body:
            return 0
        if is_base64:
            try:
                return len(base64.b64decode(body))
            except (binascii.Error, ValueError):
                return len(body)
        return len(body.encode('utf-8'))

    @staticmethod
    def _build_har_timings(
        timing: Optional[dict[str, float]], receive_ms: Optional[float] = None
    ) -> HarTimings:
        """
        Convert a CDP ResourceTiming (ms offsets from requestTime) to HAR timings.

        ``receive_ms`` comes from the responseReceived/loadingFinished
        timestamps, the only source for the receive phase.
        """
        receive = round(receive_ms, 3) if receive_ms is not None else 0
        if not timing:
            return HarTimings(
                blocked=-1, dns=-1, connect=-1, ssl=-1, send=0, wait=0, receive=receive
            )

        def phase(start_key: str, end_key: str) -> float:
            start = timing.get(start_key, -1)
            end = timing.get(end_key, -1)
            if start < 0 or end < 0:
                return -1
            return round(max(end - start, 0), 3)

        dns_start = timing.get('dnsStart', -1)
        connect_start = timing.get('connectStart', -1)
        send_start = timing.get('sendStart', 0)
        send_end = timing.get('sendEnd', 0)
        headers_start = timing.get('receiveHeadersStart', timing.get('receiveHeadersEnd', 0))

        if dns_start >= 0:
            first_activity = dns_start
        elif connect_start >= 0:
            first_activity = connect_start
        else:
            first_activity = send_start

        return HarTimings(
            blocked=round(max(first_activity, 0), 3),
            dns=phase('dnsStart', 'dnsEnd'),
            connect=phase('connectStart', 'connectEnd'),
            ssl=phase('sslStart', 'sslEnd'),
            send=round(max(send_end - send_start, 0), 3),
            wait=round(max(headers_start - send_end, 0), 3),
            receive=receive,
        )

    @staticmethod
    def _normalize_http_version(protocol: str) -> str:
        """Map CDP protocol names ('h2', 'http/1.1', 'file') to HAR httpVersion."""
        lower = protocol.lower()
        if lower in {'h2', 'h2c', 'h3'}:
            return lower
        if lower.startswith('http/'):
            return protocol.upper()
        return ''

    @staticmethod
    def _get_header(headers: dict[str, str], name: str) -> str:
        for header_name, value in headers.items():
            if header_name.lower() == name:
                return value
        return ''

    @staticmethod
    def _headers_to_list(headers: dict[str, str]) -> list[HarNameValue]:
        # CDP folds repeated headers into one value separated by newlines.
        return [
            HarNameValue(name=name, value=line)
            for name, value in headers.items()
            for line in str(value).split('\n')
        ]

    @staticmethod
    def _parse_query_string(url: str) -> list[HarNameValue]:
        query = urlparse(url).query
        return [
            HarNameValue(name=name, value=value)
            for name, value in parse_qsl(query, keep_blank_values=True)
        ]

    @staticmethod
    def _wall_time_to_iso(wall_time: float) -> str:
        """Convert a CDP wallTime (seconds since epoch) to ISO 8601."""
        if not wall_time:
            return datetime.now(tz=timezone.utc).isoformat()
        return datetime.fromtimestamp(wall_time, tz=timezone.utc).isoformat()

    @classmethod
    def _parse_request_cookies(cls, headers: dict[str, str]) -> list[HarCookie]:
        cookies: list[HarCookie] = []
        for pair in cls._get_header(headers, 'cookie').split(';'):
            name, sep, value = pair.strip().partition('=')
            if sep and name.strip():
                cookies.append(HarCookie(name=name.strip(), value=value.strip()))
        return cookies

    @classmethod
    def _parse_response_cookies(cls, headers: dict[str, str]) -> list[HarCookie]:
        cookies: list[HarCookie] = []
        for line in cls._get_header(headers, 'set-cookie').split('\n'):
            name_value, *attributes = line.strip().split(';')
            name, sep, value = name_value.partition('=')
            if not sep or not name.strip():
                continue
            cookie = HarCookie(name=name.strip(), value=value.strip())
            for attribute in attributes:
                key, _, attr_value = attribute.strip().partition('=')
                key = key.lower()
                if key == 'httponly':
                    cookie['httpOnly'] = True
                elif key == 'secure':
                    cookie['secure'] = True
                elif key in {'path', 'domain', 'expires'}:
                    cookie[key] = attr_value  # type: ignore[literal-required]
            cookies.append(cookie)
        return cookies

from __future__ import annotations

from enum import Enum

from typing_extensions import NotRequired, TypedDict


class FetchEvent(str, Enum):
    REQUEST_PAUSED = 'Fetch.requestPaused'


class HeaderEntry(TypedDict):
    name: str
    value: str


class RequestPausedEventParams(TypedDict):
    """Params of Fetch.requestPaused.

    At the response stage ``responseStatusCode`` or ``responseErrorReason`` is
    present; ``networkId`` matches the Network domain ``requestId``.
    """

    requestId: str
    request: dict
    frameId: str
    resourceType: str
    responseErrorReason: NotRequired[str]
    responseStatusCode: NotRequired[int]
    responseStatusText: NotRequired[str]
    responseHeaders: NotRequired[list[HeaderEntry]]
    networkId: NotRequired[str]
    redirectedRequestId: NotRequired[str]


class RequestPausedEvent(TypedDict):
    method: str
    params: RequestPausedEventParams

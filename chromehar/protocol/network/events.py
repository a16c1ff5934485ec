from __future__ import annotations

from enum import Enum

from typing_extensions import NotRequired, TypedDict


class NetworkEvent(str, Enum):
    """Network domain events recorded during a capture."""

    REQUEST_WILL_BE_SENT = 'Network.requestWillBeSent'
    REQUEST_WILL_BE_SENT_EXTRA_INFO = 'Network.requestWillBeSentExtraInfo'
    REQUEST_SERVED_FROM_CACHE = 'Network.requestServedFromCache'
    DATA_RECEIVED = 'Network.dataReceived'
    RESPONSE_RECEIVED = 'Network.responseReceived'
    RESPONSE_RECEIVED_EXTRA_INFO = 'Network.responseReceivedExtraInfo'
    RESOURCE_CHANGED_PRIORITY = 'Network.resourceChangedPriority'
    LOADING_FINISHED = 'Network.loadingFinished'
    LOADING_FAILED = 'Network.loadingFailed'


class Response(TypedDict):
    """Network.Response as delivered in Network.responseReceived.

    ``body`` and ``encoding`` are never sent by the browser; the recorder adds
    them when it captures the response body.
    """

    url: str
    status: int
    statusText: str
    headers: dict[str, str]
    mimeType: str
    protocol: NotRequired[str]
    timing: NotRequired[dict]
    remoteIPAddress: NotRequired[str]
    connectionId: NotRequired[int]
    encodedDataLength: NotRequired[float]
    fromDiskCache: NotRequired[bool]
    fromServiceWorker: NotRequired[bool]
    body: NotRequired[str]
    encoding: NotRequired[str]


class ResponseReceivedEventParams(TypedDict):
    requestId: str
    loaderId: str
    timestamp: float
    type: str
    response: Response
    frameId: NotRequired[str]
    hasExtraInfo: NotRequired[bool]


class ResponseReceivedEvent(TypedDict):
    method: str
    params: ResponseReceivedEventParams


class RequestWillBeSentEventParams(TypedDict):
    requestId: str
    loaderId: str
    documentURL: str
    request: dict
    timestamp: float
    wallTime: float
    initiator: dict
    type: NotRequired[str]
    frameId: NotRequired[str]
    redirectResponse: NotRequired[Response]


class RequestWillBeSentEvent(TypedDict):
    method: str
    params: RequestWillBeSentEventParams

"""HAR 1.2 document types.

Field names follow http://www.softwareishard.com/blog/har-12-spec/ so that a
``Har`` dict can be passed to ``json.dump`` as-is. Keys starting with an
underscore are custom fields, which the format allows.
"""

from __future__ import annotations

from typing_extensions import NotRequired, TypedDict


class HarTimings(TypedDict):
    blocked: float
    dns: float
    connect: float
    ssl: float
    send: float
    wait: float
    receive: float


class HarNameValue(TypedDict):
    """Header or query string parameter."""

    name: str
    value: str


class HarCookie(TypedDict):
    name: str
    value: str
    path: NotRequired[str]
    domain: NotRequired[str]
    expires: NotRequired[str]
    httpOnly: NotRequired[bool]
    secure: NotRequired[bool]


class HarPostData(TypedDict):
    mimeType: str
    text: str


class HarRequest(TypedDict):
    method: str
    url: str
    httpVersion: str
    cookies: list[HarCookie]
    headers: list[HarNameValue]
    queryString: list[HarNameValue]
    headersSize: int
    bodySize: int
    postData: NotRequired[HarPostData]


class HarContent(TypedDict):
    """Response body. ``encoding`` is ``'base64'`` when ``text`` is base64."""

    size: int
    mimeType: str
    text: NotRequired[str]
    encoding: NotRequired[str]


class HarResponse(TypedDict):
    status: int
    statusText: str
    httpVersion: str
    cookies: list[HarCookie]
    headers: list[HarNameValue]
    content: HarContent
    redirectURL: str
    headersSize: int
    bodySize: int
    _error: NotRequired[str]


class HarEntry(TypedDict):
    pageref: NotRequired[str]
    startedDateTime: str
    time: float
    request: HarRequest
    response: HarResponse
    cache: dict
    timings: HarTimings
    serverIPAddress: NotRequired[str]
    connection: NotRequired[str]
    _resourceType: NotRequired[str]
    _priority: NotRequired[str]
    _fromCache: NotRequired[str]


class HarPageTimings(TypedDict):
    """Milliseconds since the page's document request; -1 when unknown."""

    onContentLoad: float
    onLoad: float


class HarPage(TypedDict):
    startedDateTime: str
    id: str
    title: str
    pageTimings: HarPageTimings


class HarCreator(TypedDict):
    name: str
    version: str


class HarLog(TypedDict):
    version: str
    creator: HarCreator
    pages: list[HarPage]
    entries: list[HarEntry]


class Har(TypedDict):
    log: HarLog

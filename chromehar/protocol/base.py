from __future__ import annotations

from typing import Any

from typing_extensions import NotRequired, TypedDict


class Command(TypedDict):
    """A CDP command ready to be sent over a session."""

    method: str
    params: NotRequired[dict[str, Any]]


class ErrorDetails(TypedDict):
    code: int
    message: str
    data: NotRequired[str]


class Response(TypedDict):
    """Reply to a CDP command. Exactly one of ``result`` and ``error`` is set."""

    id: NotRequired[int]
    result: NotRequired[dict[str, Any]]
    error: NotRequired[ErrorDetails]


class CDPEvent(TypedDict):
    """An event as delivered by the session: the CDP method plus its params."""

    method: str
    params: dict[str, Any]

from __future__ import annotations

from enum import Enum

from typing_extensions import NotRequired, TypedDict


class PageEvent(str, Enum):
    """Page domain events used to describe page lifecycle in the HAR."""

    LOAD_EVENT_FIRED = 'Page.loadEventFired'
    DOM_CONTENT_EVENT_FIRED = 'Page.domContentEventFired'
    FRAME_STARTED_LOADING = 'Page.frameStartedLoading'
    FRAME_ATTACHED = 'Page.frameAttached'
    FRAME_SCHEDULED_NAVIGATION = 'Page.frameScheduledNavigation'


class TimestampEventParams(TypedDict):
    """Params of Page.loadEventFired and Page.domContentEventFired."""

    timestamp: float


class FrameStartedLoadingEventParams(TypedDict):
    frameId: str


class FrameAttachedEventParams(TypedDict):
    frameId: str
    parentFrameId: str
    stack: NotRequired[dict]


class FrameScheduledNavigationEventParams(TypedDict):
    frameId: str
    delay: float
    reason: str
    url: str

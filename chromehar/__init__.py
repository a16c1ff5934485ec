"""Record Chrome DevTools Protocol page and network activity as HAR 1.2."""

from chromehar.browser.requests import HarCapture, HarRecorder, har_from_messages

__all__ = ['HarCapture', 'HarRecorder', 'har_from_messages']

"""
HAR recording on top of a CDP session: event capture, response body
retrieval and HAR 1.2 document building.
"""

from .har_builder import har_from_messages
from .har_recorder import HarCapture, HarRecorder

__all__ = ['HarCapture', 'HarRecorder', 'har_from_messages']

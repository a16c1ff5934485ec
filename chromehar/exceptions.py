class ChromeHarException(Exception):
    """Base class for every error raised by chromehar."""

    message = 'An error occurred while recording'

    def __init__(self, message: str = ''):
        super().__init__(message or self.message)


class ConfigurationError(ChromeHarException):
    message = 'Invalid recording configuration'


class RecordingAlreadyActive(ChromeHarException):
    message = 'A recording is already running for this target'


class RecordingNotStarted(ChromeHarException):
    message = 'No recording is running for this target'


class ProtocolError(ChromeHarException):
    """A CDP command was rejected by the browser."""

    message = 'The browser rejected a protocol command'


class BodyRetrievalFailed(ChromeHarException):
    message = 'The response body could not be retrieved'


class ArchiveWriteError(ChromeHarException, OSError):
    """Writing the HAR document to disk failed."""

    message = 'Failed to write the HAR file'

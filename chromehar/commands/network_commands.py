from chromehar.protocol.base import Command


class NetworkCommands:
    """Builders for the Network domain commands the recorder issues."""

    @staticmethod
    def enable() -> Command:
        return Command(method='Network.enable')

    @staticmethod
    def get_response_body(request_id: str) -> Command:
        """
        Fetch the body of a finished response.

        The browser may already have evicted the body (for instance after the
        page navigated away); the command then fails.
        """
        return Command(method='Network.getResponseBody', params={'requestId': request_id})

from chromehar.protocol.base import Command


class FetchCommands:
    """Builders for the Fetch domain (request interception) commands."""

    @staticmethod
    def enable(request_stage: str) -> Command:
        """
        Pause every request at ``request_stage`` ('Request' or 'Response').

        Every paused request must be continued, or the page stalls.
        """
        return Command(
            method='Fetch.enable', params={'patterns': [{'requestStage': request_stage}]}
        )

    @staticmethod
    def get_response_body(request_id: str) -> Command:
        """Read the body of a request paused at the response stage."""
        return Command(method='Fetch.getResponseBody', params={'requestId': request_id})

    @staticmethod
    def continue_request(request_id: str) -> Command:
        return Command(method='Fetch.continueRequest', params={'requestId': request_id})

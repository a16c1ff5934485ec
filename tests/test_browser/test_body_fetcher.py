import asyncio

import pytest

from chromehar.browser.requests.body_fetcher import (
    BodyFailure,
    BodyFetcher,
    BodyPayload,
    attach_base64_body,
    attach_text_body,
)


class TestBodyFetcher:
    @pytest.mark.asyncio
    async def test_network_body(self, cdp_session):
        cdp_session.replies['Network.getResponseBody'] = {
            'body': '<html></html>',
            'base64Encoded': False,
        }
        result = await BodyFetcher(cdp_session).fetch_network_body('req-1')

        assert result == BodyPayload(body='<html></html>', base64_encoded=False)
        assert cdp_session.sent == [
            {'method': 'Network.getResponseBody', 'params': {'requestId': 'req-1'}}
        ]

    @pytest.mark.asyncio
    async def test_intercepted_body(self, cdp_session):
        cdp_session.replies['Fetch.getResponseBody'] = {'body': 'AAEC', 'base64Encoded': True}
        result = await BodyFetcher(cdp_session).fetch_intercepted_body('interception-1')

        assert result == BodyPayload(body='AAEC', base64_encoded=True)
        assert result.decode() == b'\x00\x01\x02'
        assert cdp_session.sent_methods() == ['Fetch.getResponseBody']

    @pytest.mark.asyncio
    async def test_protocol_error_becomes_failure(self, cdp_session):
        cdp_session.replies['Network.getResponseBody'] = {
            'error': {'code': -32000, 'message': 'No resource with given identifier found'}
        }
        result = await BodyFetcher(cdp_session).fetch_network_body('req-1')

        assert isinstance(result, BodyFailure)
        assert 'No resource with given identifier found' in result.reason

    @pytest.mark.asyncio
    async def test_transport_error_becomes_failure(self, cdp_session):
        cdp_session.replies['Network.getResponseBody'] = ConnectionError('socket closed')
        result = await BodyFetcher(cdp_session).fetch_network_body('req-1')

        assert result == BodyFailure('socket closed')

    @pytest.mark.asyncio
    async def test_reply_without_body_becomes_failure(self, cdp_session):
        cdp_session.replies['Network.getResponseBody'] = {'base64Encoded': False}
        result = await BodyFetcher(cdp_session).fetch_network_body('req-1')

        assert isinstance(result, BodyFailure)
        assert 'no body' in result.reason

    @pytest.mark.asyncio
    async def test_timeout_becomes_failure(self, cdp_session):
        cdp_session.replies['Network.getResponseBody'] = lambda command: asyncio.Event().wait()
        result = await BodyFetcher(cdp_session, timeout=0.01).fetch_network_body('req-1')

        assert result == BodyFailure('timed out after 0.01s')

    @pytest.mark.asyncio
    async def test_no_timeout_waits(self, cdp_session):
        async def slow_reply(command):
            await asyncio.sleep(0.01)
            return {'body': 'late', 'base64Encoded': False}

        cdp_session.replies['Network.getResponseBody'] = slow_reply
        result = await BodyFetcher(cdp_session, timeout=None).fetch_network_body('req-1')

        assert result == BodyPayload(body='late', base64_encoded=False)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, cdp_session):
        cdp_session.replies['Network.getResponseBody'] = lambda command: asyncio.Event().wait()
        task = asyncio.create_task(BodyFetcher(cdp_session).fetch_network_body('req-1'))
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


class TestAttachBody:
    def test_text_body_from_plain_payload(self):
        response = {}
        attach_text_body(response, BodyPayload(body='{"a":1}', base64_encoded=False))
        assert response == {'body': '{"a":1}'}

    def test_text_body_from_base64_payload(self):
        response = {}
        attach_text_body(response, BodyPayload(body='eyJhIjoxfQ==', base64_encoded=True))
        assert response == {'body': '{"a":1}'}

    def test_text_body_replaces_invalid_utf8(self):
        response = {}
        attach_text_body(response, BodyPayload(body='/w==', base64_encoded=True))
        assert response['body'] == '\ufffd'

    def test_text_body_failure_placeholder(self):
        response = {}
        attach_text_body(response, BodyFailure('gone'))
        assert response == {'body': '<body unavailable: gone>'}

    def test_text_body_undecodable_payload(self):
        response = {}
        attach_text_body(response, BodyPayload(body='not base64!', base64_encoded=True))
        assert response['body'].startswith('<body unavailable: undecodable payload')

    def test_base64_body_from_plain_payload(self):
        response = {}
        attach_base64_body(response, BodyPayload(body='{"a":1}', base64_encoded=False))
        assert response == {'body': 'eyJhIjoxfQ==', 'encoding': 'base64'}

    def test_base64_body_from_base64_payload(self):
        response = {}
        attach_base64_body(response, BodyPayload(body='AAEC', base64_encoded=True))
        assert response == {'body': 'AAEC', 'encoding': 'base64'}

    def test_base64_body_failure_has_no_encoding(self):
        response = {}
        attach_base64_body(response, BodyFailure('timed out after 1s'))
        assert response == {'body': '<body unavailable: timed out after 1s>'}


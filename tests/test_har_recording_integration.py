"""End-to-end tests for HAR recording.

A scripted page load is played through the fake CDP session while the real
recorder, body fetcher and archive builder run, and the resulting HAR
document is checked.
"""

import asyncio
import json

import pytest

from chromehar import HarRecorder

PAGE_URL = 'http://127.0.0.1:8080/index.html'
USERS_URL = 'http://127.0.0.1:8080/api/users'
LOGO_URL = 'http://127.0.0.1:8080/logo.png'

USERS_JSON = json.dumps([{'id': 1, 'name': 'Alice'}, {'id': 2, 'name': 'Bob'}])
INDEX_HTML = '<html><body><script>fetch("/api/users")</script></body></html>'


def _request(request_id, url, resource_type, wall_time, timestamp, method='GET'):
    return {
        'requestId': request_id,
        'loaderId': 'loader-1',
        'documentURL': PAGE_URL,
        'request': {
            'url': url,
            'method': method,
            'headers': {'Accept': '*/*'},
            'initialPriority': 'High',
        },
        'timestamp': timestamp,
        'wallTime': wall_time,
        'initiator': {'type': 'other'},
        'type': resource_type,
        'frameId': 'main-frame',
    }


def _response(request_id, url, mime_type, timestamp, status=200):
    return {
        'requestId': request_id,
        'loaderId': 'loader-1',
        'timestamp': timestamp,
        'type': 'Document',
        'response': {
            'url': url,
            'status': status,
            'statusText': 'OK',
            'headers': {'Content-Type': mime_type},
            'mimeType': mime_type,
            'protocol': 'http/1.1',
        },
    }


def _finished(request_id, timestamp):
    return {'requestId': request_id, 'timestamp': timestamp, 'encodedDataLength': 100}


def _play_page_load(session):
    """Emit the events a browser sends for a page that fetches JSON and an image."""
    session.emit('Page.frameStartedLoading', {'frameId': 'main-frame'})
    session.emit(
        'Network.requestWillBeSent',
        _request('doc', PAGE_URL, 'Document', 1700000000.0, 10.0),
    )
    session.emit('Network.responseReceived', _response('doc', PAGE_URL, 'text/html', 10.1))
    session.emit('Network.loadingFinished', _finished('doc', 10.2))
    session.emit('Page.domContentEventFired', {'timestamp': 10.3})
    session.emit(
        'Network.requestWillBeSent',
        _request('api', USERS_URL, 'Fetch', 1700000000.35, 10.35),
    )
    session.emit(
        'Network.responseReceived', _response('api', USERS_URL, 'application/json', 10.4)
    )
    session.emit('Network.loadingFinished', _finished('api', 10.45))
    session.emit(
        'Network.requestWillBeSent',
        _request('img', LOGO_URL, 'Image', 1700000000.4, 10.4),
    )
    session.emit('Network.responseReceived', _response('img', LOGO_URL, 'image/png', 10.5))
    session.emit('Network.loadingFinished', _finished('img', 10.6))
    session.emit('Page.loadEventFired', {'timestamp': 10.7})


def _serve_bodies(session):
    bodies = {'doc': INDEX_HTML, 'api': USERS_JSON}

    def reply(command):
        return {'body': bodies[command['params']['requestId']], 'base64Encoded': False}

    session.replies['Network.getResponseBody'] = reply


class TestHarRecordingIntegration:
    @pytest.mark.asyncio
    async def test_page_load_without_bodies(self, target):
        recorder = HarRecorder(target)
        await recorder.start()
        _play_page_load(target.session)
        har = await recorder.stop()

        log = har['log']
        assert [e['request']['url'] for e in log['entries']] == [PAGE_URL, USERS_URL, LOGO_URL]
        assert all('text' not in e['response']['content'] for e in log['entries'])
        assert 'Network.getResponseBody' not in target.session.sent_methods()

        assert len(log['pages']) == 1
        page = log['pages'][0]
        assert page['title'] == PAGE_URL
        assert page['pageTimings'] == {'onContentLoad': 300.0, 'onLoad': 700.0}
        assert {e['pageref'] for e in log['entries']} == {page['id']}

    @pytest.mark.asyncio
    async def test_page_load_with_bodies(self, target):
        recorder = HarRecorder(target)
        await recorder.start(persist_response_bodies=True)
        _serve_bodies(target.session)
        _play_page_load(target.session)
        har = await recorder.stop()

        entries = {e['request']['url']: e for e in har['log']['entries']}
        assert entries[PAGE_URL]['response']['content']['text'] == INDEX_HTML
        assert json.loads(entries[USERS_URL]['response']['content']['text']) == [
            {'id': 1, 'name': 'Alice'},
            {'id': 2, 'name': 'Bob'},
        ]
        assert 'text' not in entries[LOGO_URL]['response']['content']

        body_requests = [
            command['params']['requestId']
            for command in target.session.sent
            if command['method'] == 'Network.getResponseBody'
        ]
        assert sorted(body_requests) == ['api', 'doc']

    @pytest.mark.asyncio
    async def test_evicted_body_gets_placeholder(self, target):
        recorder = HarRecorder(target)
        await recorder.start(persist_response_bodies=True)
        target.session.replies['Network.getResponseBody'] = {
            'error': {'code': -32000, 'message': 'No data found for resource'}
        }
        _play_page_load(target.session)
        har = await recorder.stop()

        entries = {e['request']['url']: e for e in har['log']['entries']}
        text = entries[USERS_URL]['response']['content']['text']
        assert text.startswith('<body unavailable:')
        assert 'No data found for resource' in text

    @pytest.mark.asyncio
    async def test_intercepted_json_body(self, target):
        recorder = HarRecorder(target)
        await recorder.start(
            persist_response_bodies=True,
            use_interception=True,
            captured_mime_types={'application/json'},
        )
        session = target.session
        session.replies['Fetch.getResponseBody'] = {'body': USERS_JSON, 'base64Encoded': False}

        session.emit(
            'Network.requestWillBeSent',
            _request('api', USERS_URL, 'Fetch', 1700000000.0, 10.0),
        )
        session.emit(
            'Fetch.requestPaused',
            {
                'requestId': 'interception-7',
                'networkId': 'api',
                'request': {'url': USERS_URL, 'method': 'GET', 'headers': {}},
                'frameId': 'main-frame',
                'resourceType': 'Fetch',
                'responseStatusCode': 200,
                'responseHeaders': [{'name': 'Content-Type', 'value': 'application/json'}],
            },
        )
        session.emit(
            'Network.responseReceived', _response('api', USERS_URL, 'application/json', 10.1)
        )
        session.emit('Network.loadingFinished', _finished('api', 10.2))
        har = await recorder.stop()

        content = har['log']['entries'][0]['response']['content']
        assert content['encoding'] == 'base64'
        assert content['size'] == len(USERS_JSON)
        assert session.sent_methods()[-2:] == ['Fetch.getResponseBody', 'Fetch.continueRequest']

    @pytest.mark.asyncio
    async def test_record_saves_har(self, target, tmp_path):
        recorder = HarRecorder(target)
        async with recorder.record() as capture:
            _play_page_load(target.session)
            await asyncio.sleep(0)

        path = tmp_path / 'page.har'
        capture.save(path)

        saved = json.loads(path.read_text())
        assert saved['log']['version'] == '1.2'
        assert len(saved['log']['entries']) == 3
        assert not recorder.is_recording

    @pytest.mark.asyncio
    async def test_stop_writes_har_to_path(self, target, tmp_path):
        recorder = HarRecorder(target)
        await recorder.start(path=tmp_path / 'out' / 'page.har')
        _play_page_load(target.session)

        assert await recorder.stop() is None
        saved = json.loads((tmp_path / 'out' / 'page.har').read_text())
        assert len(saved['log']['entries']) == 3

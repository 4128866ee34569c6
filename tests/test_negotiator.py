"""
Tests for model page parsing and the websocket handshake.
"""

import asyncio
import json
from types import SimpleNamespace

import aiohttp
import pytest

from streamrec.site.negotiator import NegotiationState, StreamNegotiator, decode_frame, run_handshake
from streamrec.site.page import StreamPage, parse_stream_page, ws_url_for
from streamrec.utils.config import DEFAULT_WS_HOST_MAP
from streamrec.utils.exceptions import (
    AlreadyJoinedError,
    NegotiationError,
    NegotiationTimeout,
    ParameterNotFound,
    TargetOfflineError,
)


MODEL_PAGE = """
<script>
  var player = new Player('rtmp://94.23.171.122:1935/liveedge');
  var user = new User(123456, 'guest');
  startChildBug(user.uid, 's3cr3t', 'j12.showup.tv:8080');
</script>
"""


def text(frame):
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=json.dumps(frame))


class FakeWebSocket:
    """Replays a scripted list of frames."""

    def __init__(self, messages):
        self.messages = list(messages)
        self.sent = []

    async def send_str(self, data):
        self.sent.append(json.loads(data))

    def exception(self):
        return RuntimeError("socket error")

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.messages:
            raise StopAsyncIteration
        return self.messages.pop(0)


class TestParseStreamPage:

    def test_parses_all_markers(self):
        page = parse_stream_page(MODEL_PAGE, 'alice')

        assert page == StreamPage(
            stream_server='94.23.171.122:1935',
            user_id=123456,
            ws_password='s3cr3t',
            ws_server='j12.showup.tv:8080'
        )

    @pytest.mark.parametrize('marker, parameter', [
        ("'rtmp://94.23.171.122:1935/liveedge'", 'streamServer'),
        ("var user = new User(123456,", 'user'),
        ("startChildBug(user.uid, 's3cr3t', 'j12.showup.tv:8080'", 'startChildBug'),
    ])
    def test_missing_marker(self, marker, parameter):
        html = MODEL_PAGE.replace(marker, '')

        with pytest.raises(ParameterNotFound) as exc_info:
            parse_stream_page(html, 'alice')

        assert exc_info.value.parameter == parameter
        assert exc_info.value.target == 'alice'

    def test_offline_page(self):
        with pytest.raises(ParameterNotFound):
            parse_stream_page("<html>Transmisja zakończona</html>")


class TestWsUrl:

    def test_known_host_mapped_to_ip(self):
        assert ws_url_for('j12.showup.tv:8080', DEFAULT_WS_HOST_MAP) == 'ws://94.23.171.122:8080'

    def test_unknown_host_kept(self):
        assert ws_url_for('j99.showup.tv:8080', DEFAULT_WS_HOST_MAP) == 'ws://j99.showup.tv:8080'


class TestNegotiationState:

    def test_play_path_before_server(self):
        """Parameters may arrive in any order."""
        state = NegotiationState('alice')
        state.feed({'id': 103, 'value': ['pp-1']})
        assert not state.complete

        state.server_address = '1.2.3.4:1935'
        assert state.complete
        assert state.descriptor().play_path == 'pp-1'

    def test_auth_ack(self):
        state = NegotiationState('alice', '1.2.3.4')
        state.feed({'id': 143, 'value': ['0']})
        assert state.authenticated
        assert not state.complete

    def test_offline(self):
        state = NegotiationState('alice', '1.2.3.4')
        with pytest.raises(TargetOfflineError):
            state.feed({'id': 102, 'value': ['failure']})

    def test_already_joined(self):
        state = NegotiationState('alice', '1.2.3.4')
        with pytest.raises(AlreadyJoinedError):
            state.feed({'id': 102, 'value': ['alreadyJoined']})

    def test_unrelated_frames_ignored(self):
        state = NegotiationState('alice', '1.2.3.4')
        state.feed({'id': 102, 'value': ['ok']})
        state.feed({'id': 55})
        assert not state.complete

    def test_incomplete_descriptor(self):
        with pytest.raises(NegotiationError):
            NegotiationState('alice').descriptor()

    def test_decode_frame(self):
        assert decode_frame('{"id": 1}') == {'id': 1}
        assert decode_frame('not json') is None
        assert decode_frame('[1, 2]') is None


class TestHandshake:

    @pytest.fixture
    def page(self):
        return parse_stream_page(MODEL_PAGE)

    def test_resolves_with_play_path(self, page):
        ws = FakeWebSocket([
            text({'id': 143, 'value': ['0']}),
            SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data='garbage'),
            text({'id': 103, 'value': ['stream-token']}),
        ])

        descriptor = asyncio.run(run_handshake(ws, page, 'alice'))

        assert descriptor.server_address == '94.23.171.122:1935'
        assert descriptor.play_path == 'stream-token'
        assert ws.sent == [
            {'id': 0, 'value': [123456, 's3cr3t']},
            {'id': 2, 'value': ['alice']},
        ]

    def test_offline(self, page):
        ws = FakeWebSocket([text({'id': 102, 'value': ['failure']})])

        with pytest.raises(TargetOfflineError):
            asyncio.run(run_handshake(ws, page, 'alice'))

    def test_closed_before_play_path(self, page):
        ws = FakeWebSocket([text({'id': 143, 'value': ['0']})])

        with pytest.raises(NegotiationError):
            asyncio.run(run_handshake(ws, page, 'alice'))

    def test_socket_error(self, page):
        ws = FakeWebSocket([SimpleNamespace(type=aiohttp.WSMsgType.ERROR, data=None)])

        with pytest.raises(NegotiationError):
            asyncio.run(run_handshake(ws, page, 'alice'))


class HangingResponse:

    async def __aenter__(self):
        await asyncio.sleep(10)

    async def __aexit__(self, *exc):
        return False


class HangingSession:

    def get(self, url):
        return HangingResponse()


class TestStreamNegotiator:

    def test_timeout_bounds_negotiation(self):
        negotiator = StreamNegotiator(HangingSession(), 'http://showup.tv', timeout=0.05)

        with pytest.raises(NegotiationTimeout) as exc_info:
            asyncio.run(negotiator.negotiate('alice'))

        assert exc_info.value.target == 'alice'

    def test_page_url(self):
        negotiator = StreamNegotiator(HangingSession(), 'http://showup.tv/')

        assert negotiator.page_url('alice') == 'http://showup.tv/alice'

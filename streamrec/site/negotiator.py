"""
Stream negotiation over the site's websocket channel.

Turns a model name into the RTMP server and play path rtmpdump needs.
"""

import asyncio
import json
from typing import Any, Optional

import aiohttp

from ..utils.config import Config
from ..utils.exceptions import (
    AlreadyJoinedError,
    NegotiationError,
    NegotiationTimeout,
    TargetOfflineError,
)
from ..utils.logger import get_logger
from ..state.models import CaptureDescriptor
from .page import StreamPage, parse_stream_page, ws_url_for


logger = get_logger(__name__)


# Frame ids used by the chat/stream server
FRAME_AUTH = 0
FRAME_JOIN = 2
FRAME_JOIN_STATUS = 102
FRAME_PLAY_PATH = 103
FRAME_AUTH_ACK = 143


class NegotiationState:
    """
    Partial result of a handshake.

    Server address and play path may arrive in either order; the
    negotiation resolves once both are known.
    """

    def __init__(self, target: str, server_address: Optional[str] = None):
        self.target = target
        self.server_address = server_address
        self.play_path: Optional[str] = None
        self.authenticated = False

    @property
    def complete(self) -> bool:
        return bool(self.server_address) and bool(self.play_path)

    def feed(self, frame: dict) -> None:
        """
        Apply one decoded frame.

        Raises:
            TargetOfflineError: Server reports the model offline
            AlreadyJoinedError: Another session for the model exists
        """
        frame_id = frame.get('id')
        values = frame.get('value') or []
        first = values[0] if isinstance(values, list) and values else None

        if frame_id == FRAME_AUTH_ACK and first == '0':
            self.authenticated = True
            logger.debug(f"[{self.target}] Logged in to stream server")

        elif frame_id == FRAME_JOIN_STATUS and first:
            if first == 'failure':
                raise TargetOfflineError("Model might be offline", self.target)
            if first == 'alreadyJoined':
                raise AlreadyJoinedError("Another stream of this model exists", self.target)

        elif frame_id == FRAME_PLAY_PATH and first:
            self.play_path = str(first)

    def descriptor(self) -> CaptureDescriptor:
        if not self.complete:
            raise NegotiationError("Negotiation incomplete", self.target)
        return CaptureDescriptor(server_address=self.server_address, play_path=self.play_path)


def decode_frame(data: Any) -> Optional[dict]:
    """Decode a text frame, ignoring anything that is not a JSON object."""
    try:
        frame = json.loads(data)
    except (TypeError, ValueError):
        return None
    return frame if isinstance(frame, dict) else None


async def run_handshake(ws, page: StreamPage, target: str) -> CaptureDescriptor:
    """
    Authenticate, join the model's room and wait for the stream parameters.

    Args:
        ws: Open websocket (aiohttp ClientWebSocketResponse or compatible)
        page: Parameters scraped from the model page
        target: Model name

    Returns:
        CaptureDescriptor for rtmpdump

    Raises:
        NegotiationError: On rejection or if the connection closes early
    """
    state = NegotiationState(target, server_address=page.stream_server)

    await ws.send_str(json.dumps({'id': FRAME_AUTH, 'value': [page.user_id, page.ws_password]}))
    await ws.send_str(json.dumps({'id': FRAME_JOIN, 'value': [target]}))

    async for message in ws:
        if message.type == aiohttp.WSMsgType.TEXT:
            frame = decode_frame(message.data)
            if frame is None:
                continue
            state.feed(frame)
            if state.complete:
                return state.descriptor()
        elif message.type == aiohttp.WSMsgType.ERROR:
            raise NegotiationError(f"Websocket error: {ws.exception()}", target)

    raise NegotiationError("Stream server closed the connection", target)


class StreamNegotiator:
    """
    Negotiates capture parameters for a model.

    Fetches the model page, then performs the websocket handshake. The whole
    exchange is bounded by a timeout so one stuck model cannot hold up the
    scan cycle.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        host_map: Optional[dict] = None,
        timeout: float = 15
    ):
        """
        Initialize negotiator.

        Args:
            session: Logged-in HTTP session
            base_url: Site root, e.g. http://showup.tv
            host_map: Websocket host to IP overrides
            timeout: Overall negotiation timeout in seconds
        """
        self.session = session
        self.base_url = base_url.rstrip('/')
        self.host_map = host_map or {}
        self.timeout = timeout

    def page_url(self, target: str) -> str:
        return f"{self.base_url}/{target}"

    async def negotiate(self, target: str) -> CaptureDescriptor:
        """
        Negotiate stream parameters for a model.

        Raises:
            NegotiationError: Any failure, including timeout
        """
        try:
            return await asyncio.wait_for(self._negotiate(target), self.timeout)
        except asyncio.TimeoutError:
            raise NegotiationTimeout(f"Negotiation timed out after {self.timeout}s", target)
        except aiohttp.ClientError as e:
            raise NegotiationError(f"Connection failed: {e}", target)

    async def __call__(self, target: str) -> CaptureDescriptor:
        return await self.negotiate(target)

    async def _negotiate(self, target: str) -> CaptureDescriptor:
        async with self.session.get(self.page_url(target)) as response:
            html = await response.text()

        page = parse_stream_page(html, target)
        ws_url = ws_url_for(page.ws_server, self.host_map)

        logger.debug(f"[{target}] Negotiating via {ws_url}")

        async with self.session.ws_connect(ws_url) as ws:
            return await run_handshake(ws, page, target)


def create_negotiator(config: Config, session: aiohttp.ClientSession) -> StreamNegotiator:
    """
    Factory function to create a negotiator.

    Args:
        config: Recorder configuration
        session: Shared HTTP session

    Returns:
        StreamNegotiator instance
    """
    return StreamNegotiator(
        session,
        base_url=config.get('site.base_url', 'http://showup.tv'),
        host_map=config.get_ws_host_map(),
        timeout=config.get('site.negotiation_timeout', 15),
    )

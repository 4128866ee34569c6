"""
Model page parsing.

Extracts the stream and websocket parameters embedded in a model page.
"""

import re
from dataclasses import dataclass
from typing import Union

from ..utils.exceptions import ParameterNotFound


_STREAM_SERVER_RE = re.compile(r"'rtmp://([\s\S]+?)/liveedge'")
_USER_RE = re.compile(r"var user = new User\(([\s\S]+?),")
_CHILD_BUG_RE = re.compile(r"startChildBug\(user\.uid, '([\s\S]+?)', '([\s\S]+?)'")
_LOGIN_FORM_RE = re.compile(r'<input[^>]*name=["\']submitLogin["\']')


@dataclass(frozen=True)
class StreamPage:
    """Parameters scraped from a model page."""

    stream_server: str
    user_id: Union[int, str]
    ws_password: str
    ws_server: str


def parse_stream_page(html: str, target: str = '') -> StreamPage:
    """
    Parse a model page.

    Args:
        html: Page markup
        target: Model name, attached to raised errors

    Returns:
        StreamPage with every parameter present

    Raises:
        ParameterNotFound: If any expected marker is missing
    """
    match = _STREAM_SERVER_RE.search(html)
    if not match or not match.group(1):
        raise ParameterNotFound('streamServer', target)
    stream_server = match.group(1)

    match = _USER_RE.search(html)
    if not match or not match.group(1).strip():
        raise ParameterNotFound('user', target)
    raw_uid = match.group(1).strip()
    user_id: Union[int, str] = int(raw_uid) if raw_uid.isdigit() else raw_uid.strip('\'"')

    match = _CHILD_BUG_RE.search(html)
    if not match:
        raise ParameterNotFound('startChildBug', target)
    ws_password, ws_server = match.group(1), match.group(2)

    if not ws_password:
        raise ParameterNotFound('wsPassword', target)
    if not ws_server:
        raise ParameterNotFound('serverAddr', target)

    return StreamPage(
        stream_server=stream_server,
        user_id=user_id,
        ws_password=ws_password,
        ws_server=ws_server,
    )


def ws_url_for(server: str, host_map: dict) -> str:
    """
    Build the websocket URL for a ``host:port`` server string.

    Hosts present in host_map are replaced by their IP address.
    """
    host, _, port = server.partition(':')
    ip = host_map.get(host)

    if not ip:
        return f"ws://{server}"
    return f"ws://{ip}:{port}" if port else f"ws://{ip}"


def has_login_form(html: str) -> bool:
    """True when the page still asks for credentials."""
    return bool(_LOGIN_FORM_RE.search(html))

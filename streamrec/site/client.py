"""
HTTP client for the streaming site.

Handles login and fetching the list of favourite models.
"""

import asyncio
from typing import Optional

import aiohttp

from ..utils.config import Config
from ..utils.exceptions import LoginError, SiteError
from ..utils.logger import get_logger
from .page import has_login_form


logger = get_logger(__name__)


def parse_favourites(raw: str) -> list[str]:
    """
    Parse the favourites list.

    The site returns ``"<id>,<name>;<id>,<name>;..."``.
    """
    names = []
    for entry in raw.split(';'):
        if not entry:
            continue
        parts = entry.split(',')
        if len(parts) > 1 and parts[1]:
            names.append(parts[1])
    return names


class SiteClient:
    """
    Logs in to the site and lists favourite models.

    Shares its aiohttp session (and therefore its cookies) with the
    negotiator.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        email: str,
        password: str,
        timeout: float = 15
    ):
        """
        Initialize site client.

        Args:
            session: HTTP session with a cookie jar
            base_url: Site root, e.g. http://showup.tv
            email: Account e-mail
            password: Account password
            timeout: Per-operation timeout in seconds
        """
        self.session = session
        self.base_url = base_url.rstrip('/')
        self.email = email
        self.password = password
        self.timeout = timeout

    async def login(self) -> None:
        """
        Log in to the site.

        Raises:
            LoginError: If the site rejects the credentials or times out
        """
        try:
            await asyncio.wait_for(self._login(), self.timeout)
        except asyncio.TimeoutError:
            raise LoginError("Failed to login")
        except aiohttp.ClientError as e:
            raise LoginError(f"Failed to login: {e}")

    async def _login(self) -> None:
        login_page = f"{self.base_url}/site/log_in"

        async with self.session.get(
            f"{self.base_url}/site/accept_rules/yes?ref={login_page}",
            headers={'referer': f"{self.base_url}/site/accept_rules?ref={login_page}"}
        ) as response:
            await response.read()

        form = {
            'email': self.email,
            'password': self.password,
            'remember': '',
            'submitLogin': 'Zaloguj',
        }

        async with self.session.post(
            f"{login_page}?ref={self.base_url}/TransList/fullList/lang/pl",
            data=form,
            headers={'referer': login_page}
        ) as response:
            body = await response.text()

        if has_login_form(body):
            raise LoginError("Failed to login")

        logger.debug("Logged in")

    async def get_favourites(self) -> list[str]:
        """
        Fetch names of favourite models currently listed by the site.

        Raises:
            SiteError: If the list cannot be fetched or parsed
        """
        try:
            return await asyncio.wait_for(self._get_favourites(), self.timeout)
        except asyncio.TimeoutError:
            raise SiteError("Failed to get favourite models")
        except aiohttp.ClientError as e:
            raise SiteError(f"Failed to get favourite models: {e}")

    async def _get_favourites(self) -> list[str]:
        async with self.session.get(
            f"{self.base_url}/site/favorites",
            headers={'referer': self.base_url}
        ) as response:
            try:
                data = await response.json(content_type=None)
            except ValueError:
                data = None

        raw: Optional[str] = data.get('list') if isinstance(data, dict) else None
        if not raw:
            raise SiteError("Failed to get favorite models")

        favourites = parse_favourites(raw)
        logger.debug(f"Found these favorite models: {', '.join(favourites)}")
        return favourites


def create_session(config: Config) -> aiohttp.ClientSession:
    """Create the HTTP session shared by the site client and negotiator."""
    timeout = aiohttp.ClientTimeout(total=config.get('site.request_timeout', 15))
    return aiohttp.ClientSession(timeout=timeout)


def create_site_client(config: Config, session: aiohttp.ClientSession) -> SiteClient:
    """
    Factory function to create a site client.

    Args:
        config: Recorder configuration
        session: Shared HTTP session

    Returns:
        SiteClient instance
    """
    return SiteClient(
        session,
        base_url=config.get('site.base_url', 'http://showup.tv'),
        email=config.get('site.email'),
        password=config.get('site.password'),
        timeout=config.get('site.request_timeout', 15),
    )

"""
Tests for the site client and target resolution.
"""

import asyncio

import pytest

from streamrec.site.client import SiteClient, parse_favourites
from streamrec.site.resolver import resolve_targets
from streamrec.state.models import CaptureDescriptor, OnlineTarget
from streamrec.utils.exceptions import LoginError, SiteError


class FakeResponse:

    def __init__(self, body='', json_data=None):
        self.body = body
        self.json_data = json_data

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def read(self):
        return self.body.encode()

    async def text(self):
        return self.body

    async def json(self, content_type=None):
        if self.json_data is None:
            raise ValueError("not json")
        return self.json_data


class FakeSession:

    def __init__(self, login_body='<p>Witaj</p>', favourites=None):
        self.login_body = login_body
        self.favourites = favourites
        self.requests = []

    def get(self, url, headers=None):
        self.requests.append(('GET', url))
        if url.endswith('/site/favorites'):
            return FakeResponse(json_data=self.favourites)
        return FakeResponse()

    def post(self, url, data=None, headers=None):
        self.requests.append(('POST', url, data))
        return FakeResponse(self.login_body)


class TestSiteClient:

    def test_login_success(self):
        session = FakeSession()
        client = SiteClient(session, 'http://showup.tv', 'me@example.com', 'pw')

        asyncio.run(client.login())

        method, url, form = session.requests[1]
        assert method == 'POST'
        assert url.startswith('http://showup.tv/site/log_in')
        assert form['email'] == 'me@example.com'
        assert form['password'] == 'pw'

    def test_login_rejected(self):
        session = FakeSession(login_body='<input type="submit" name="submitLogin" value="Zaloguj">')
        client = SiteClient(session, 'http://showup.tv', 'me@example.com', 'bad')

        with pytest.raises(LoginError):
            asyncio.run(client.login())

    def test_get_favourites(self):
        session = FakeSession(favourites={'list': '1,alice;2,bob;'})
        client = SiteClient(session, 'http://showup.tv', 'e', 'p')

        assert asyncio.run(client.get_favourites()) == ['alice', 'bob']

    @pytest.mark.parametrize('payload', [None, {}, {'list': ''}])
    def test_get_favourites_failure(self, payload):
        client = SiteClient(FakeSession(favourites=payload), 'http://showup.tv', 'e', 'p')

        with pytest.raises(SiteError):
            asyncio.run(client.get_favourites())


class TestParseFavourites:

    def test_skips_empty_and_malformed_entries(self):
        assert parse_favourites('1,alice;;broken;3,carol;4,') == ['alice', 'carol']


class TestResolveTargets:

    def test_deduplicates_in_order(self):
        targets = resolve_targets(['bob', 'alice', 'bob', ' ', 'carol'])

        assert [t.name for t in targets] == ['bob', 'alice', 'carol']

    def test_allow_list(self):
        targets = resolve_targets(['bob', 'alice', 'carol'], allow_list=['carol', 'alice', 'dave'])

        assert [t.name for t in targets] == ['alice', 'carol']

    def test_empty_allow_list_keeps_everything(self):
        assert len(resolve_targets(['a', 'b'], allow_list=[])) == 2

    def test_keeps_descriptor_hints(self):
        hint = CaptureDescriptor('1.2.3.4:1935', 'pp')

        targets = resolve_targets([OnlineTarget('alice', hint), 'alice'])

        assert targets == [OnlineTarget('alice', hint)]

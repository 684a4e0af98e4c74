"""
Unit tests for account and credential resolution.
"""

import httpx
import pytest

from snapcheck.auth.client import AccountsClient
from snapcheck.auth.session import AccountSession, AuthState
from snapcheck.config.store import ACCOUNT_ID_COOKIE_NAME, API_KEY_COOKIE_NAME
from snapcheck.core.types import QueryParam, RunKey
from snapcheck.error_handling.exceptions import (
    AccountsFetchError,
    AccountSelectionError,
    AuthenticationError,
)

ACCOUNTS = [
    {"accountId": "a", "accountName": "Team A", "runnerKey": "run-a", "accessKey": "view-a"},
    {
        "accountId": "b",
        "accountName": "Team B",
        "isCurrent": True,
        "runnerKey": "run-b",
        "accessKey": "view-b",
    },
]


def _client(handler):
    return AccountsClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def _answer(status_code, payload=None):
    def handler(request):
        handler.requests.append(request)
        return httpx.Response(status_code, json=payload)

    handler.requests = []
    return handler


def _unreachable(request):
    raise httpx.ConnectError("connection refused", request=request)


def _set_legacy_cookies(browser, settings):
    browser.cookies[(settings.legacy_cookie_url, API_KEY_COOKIE_NAME)] = "legacy-key"
    browser.cookies[(settings.legacy_cookie_url, ACCOUNT_ID_COOKIE_NAME)] = "legacy-account"


class TestAccountsClient:
    """Tests for the HTTP layer."""

    @pytest.mark.asyncio
    async def test_fetch_accounts_url_and_parsing(self):
        handler = _answer(200, ACCOUNTS)
        client = _client(handler)

        accounts = await client.fetch_accounts("https://api.example.com/")

        assert str(handler.requests[0].url) == "https://api.example.com/api/auth/accounts.json"
        assert [account.account_id for account in accounts] == ["a", "b"]
        assert accounts[1].is_current is True

    @pytest.mark.asyncio
    async def test_forbidden_means_not_logged_in(self):
        client = _client(_answer(403))

        assert await client.fetch_accounts("https://api.example.com") is None

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        client = _client(_answer(500))

        with pytest.raises(AccountsFetchError) as exc_info:
            await client.fetch_accounts("https://api.example.com")

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        client = _client(_unreachable)

        with pytest.raises(AccountsFetchError):
            await client.fetch_accounts("https://api.example.com")

    @pytest.mark.asyncio
    async def test_bad_payload_raises(self):
        client = _client(_answer(200, {"not": "a list"}))

        with pytest.raises(AccountsFetchError):
            await client.fetch_accounts("https://api.example.com")


class TestLoadCredentials:
    """The three terminal states of credential loading."""

    @pytest.mark.asyncio
    async def test_server_marked_current_account(self, store):
        session = AccountSession(store, _client(_answer(200, ACCOUNTS)))

        state = await session.load_credentials()

        assert state == AuthState.AUTHENTICATED
        assert session.current_account_index == 1
        assert await store.get_current_account_id() == "b"

    @pytest.mark.asyncio
    async def test_remembered_account_wins(self, store):
        await store.set_current_account_id("a")
        session = AccountSession(store, _client(_answer(200, ACCOUNTS)))

        await session.load_credentials()

        assert session.current_account_index == 0

    @pytest.mark.asyncio
    async def test_unknown_remembered_account_falls_back(self, store):
        await store.set_current_account_id("gone")
        session = AccountSession(store, _client(_answer(200, ACCOUNTS)))

        await session.load_credentials()

        assert session.current_account_index == 1
        assert await store.get_current_account_id() == "b"

    @pytest.mark.asyncio
    async def test_no_accounts_redirects_to_access_denied(self, store, settings):
        session = AccountSession(store, _client(_answer(200, [])))

        state = await session.load_credentials()

        assert state == AuthState.UNAUTHENTICATED
        assert session.redirect_url == settings.server_url.rstrip("/") + "/app/accessdenied"

    @pytest.mark.asyncio
    async def test_forbidden_redirects_to_login(self, store, settings):
        session = AccountSession(store, _client(_answer(403)))

        state = await session.load_credentials()

        assert state == AuthState.UNAUTHENTICATED
        assert session.redirect_url == (
            settings.api_server_url.rstrip("/") + "/api/auth/authredirect"
        )

    @pytest.mark.asyncio
    async def test_fetch_failure_uses_legacy_cookies(self, store, browser, settings):
        _set_legacy_cookies(browser, settings)
        session = AccountSession(store, _client(_unreachable))

        state = await session.load_credentials()

        assert state == AuthState.AUTHENTICATED_LEGACY
        assert session.accounts is None
        assert session.legacy_credentials.api_key == "legacy-key"

    @pytest.mark.asyncio
    async def test_fetch_failure_without_cookies(self, store, settings):
        session = AccountSession(store, _client(_answer(500)))

        state = await session.load_credentials()

        assert state == AuthState.UNAUTHENTICATED
        assert session.redirect_url == settings.legacy_login_url


class TestCurrentAccount:
    """Switching accounts."""

    @pytest.mark.asyncio
    async def test_set_current_account(self, store):
        session = AccountSession(store, _client(_answer(200, ACCOUNTS)))
        await session.load_credentials()

        index = await session.set_current_account("a")

        assert index == 0
        assert await session.get_current_account_id() == "a"

    @pytest.mark.asyncio
    async def test_unknown_account(self, store):
        session = AccountSession(store, _client(_answer(200, ACCOUNTS)))
        await session.load_credentials()

        with pytest.raises(AccountSelectionError) as exc_info:
            await session.set_current_account("zzz")

        assert exc_info.value.reason == AccountSelectionError.NOT_FOUND
        assert session.current_account_index == 1

    @pytest.mark.asyncio
    async def test_legacy_scheme_cannot_switch(self, store, browser, settings):
        _set_legacy_cookies(browser, settings)
        session = AccountSession(store, _client(_unreachable))
        await session.load_credentials()

        with pytest.raises(AccountSelectionError) as exc_info:
            await session.set_current_account("a")

        assert exc_info.value.reason == AccountSelectionError.WRONG_SCHEME


class TestKeys:
    """Keys derived from the loaded credentials."""

    @pytest.mark.asyncio
    async def test_new_scheme_keys(self, store):
        session = AccountSession(store, _client(_answer(200, ACCOUNTS)))
        await session.load_credentials()

        assert session.get_run_key() == RunKey(run_key="run-b", is_new_auth_scheme=True)
        assert session.get_results_view_key() == QueryParam(name="accountId", value="b")
        assert session.get_access_key() == QueryParam(name="accessKey", value="view-b")

    @pytest.mark.asyncio
    async def test_legacy_keys(self, store, browser, settings):
        _set_legacy_cookies(browser, settings)
        session = AccountSession(store, _client(_unreachable))
        await session.load_credentials()

        assert session.get_run_key() == RunKey(run_key="legacy-key", is_new_auth_scheme=False)
        assert session.get_results_view_key() is None
        assert session.get_access_key() == QueryParam(name="apiKey", value="legacy-key")

    def test_keys_require_credentials(self, store):
        session = AccountSession(store, _client(_answer(200, ACCOUNTS)))

        with pytest.raises(AuthenticationError):
            session.get_run_key()

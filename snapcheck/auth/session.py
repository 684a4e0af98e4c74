"""
Account and credential resolution.

Two mutually exclusive schemes exist: the multi-account scheme, where the
server lists the accounts of the logged-in user, and the legacy scheme,
where an API key and an account id are left behind as cookies by the login
page. Loading credentials ends in exactly one of three states.
"""

import logging
from enum import Enum
from typing import List, Optional

from snapcheck.auth.client import AccountsClient, url_concat
from snapcheck.config.store import ConfigurationStore
from snapcheck.core.types import Account, LegacyCredentials, QueryParam, RunKey
from snapcheck.error_handling.exceptions import (
    AccountsFetchError,
    AccountSelectionError,
    AuthenticationError,
)

logger = logging.getLogger(__name__)

ACCESS_DENIED_PATH = "/app/accessdenied"
NEW_AUTH_REDIRECT_PATH = "/api/auth/authredirect"


class AuthState(str, Enum):
    """Terminal states of credential loading."""

    AUTHENTICATED = "authenticated"
    AUTHENTICATED_LEGACY = "authenticated_legacy"
    UNAUTHENTICATED = "unauthenticated"


class AccountSession:
    """Resolves and caches the account checks are run under."""

    def __init__(self, store: ConfigurationStore, client: AccountsClient) -> None:
        self.store = store
        self.client = client
        self.accounts: Optional[List[Account]] = None
        self.current_account_index = -1
        self.legacy_credentials: Optional[LegacyCredentials] = None
        self.redirect_url: Optional[str] = None
        self.state = AuthState.UNAUTHENTICATED

    async def load_credentials(self) -> AuthState:
        """
        Resolve credentials and return the resulting state.

        When the result is UNAUTHENTICATED, ``redirect_url`` names the page
        the user has to visit.
        """
        server_url = await self.store.get_server_url()
        api_server_url = await self.store.get_api_server_url()
        access_denied_url = url_concat(server_url, ACCESS_DENIED_PATH)
        new_auth_url = url_concat(api_server_url, NEW_AUTH_REDIRECT_PATH)
        remembered_id = await self.store.get_current_account_id()

        try:
            accounts = await self.client.fetch_accounts(api_server_url)
        except AccountsFetchError as exc:
            logger.info(
                "Accounts unavailable, trying legacy credentials",
                extra={"url": exc.url},
            )
            return await self._load_legacy()

        self.legacy_credentials = None

        if accounts is None:
            return self._unauthenticated(new_auth_url, "user is not logged in")

        if not accounts:
            return self._unauthenticated(access_denied_url, "user is not a member of any team")

        selected = -1
        default_index = 0
        for index, account in enumerate(accounts):
            if remembered_id and remembered_id == account.account_id:
                selected = index
                break
            if account.is_current:
                default_index = index

        if selected == -1:
            selected = default_index
            await self.store.set_current_account_id(accounts[default_index].account_id)

        self.accounts = accounts
        self.current_account_index = selected
        self.redirect_url = None
        self.state = AuthState.AUTHENTICATED
        logger.info(f"Loaded {len(accounts)} account(s), current index {selected}")
        return self.state

    async def _load_legacy(self) -> AuthState:
        self.accounts = None
        self.current_account_index = -1

        api_key = await self.store.get_api_key()
        account_id = await self.store.get_account_id()
        if not api_key or not account_id:
            self.legacy_credentials = None
            return self._unauthenticated(
                self.store.settings.legacy_login_url, "legacy credentials missing"
            )

        self.legacy_credentials = LegacyCredentials(api_key=api_key, account_id=account_id)
        self.redirect_url = None
        self.state = AuthState.AUTHENTICATED_LEGACY
        logger.info("Using legacy credentials")
        return self.state

    def _unauthenticated(self, redirect_url: str, reason: str) -> AuthState:
        self.accounts = None
        self.current_account_index = -1
        self.redirect_url = redirect_url
        self.state = AuthState.UNAUTHENTICATED
        logger.warning(
            f"Failed to load credentials: {reason}",
            extra={"url": redirect_url},
        )
        return self.state

    @property
    def current_account(self) -> Optional[Account]:
        if self.accounts is None or self.current_account_index < 0:
            return None
        return self.accounts[self.current_account_index]

    async def get_current_account_id(self) -> Optional[str]:
        return await self.store.get_current_account_id()

    async def set_current_account(self, account_id: str) -> int:
        """
        Switch the account checks run under.

        Returns:
            Index of the newly selected account

        Raises:
            AccountSelectionError: When not on the multi-account scheme, or
                when the id is not one of the loaded accounts.
        """
        if self.accounts is None:
            raise AccountSelectionError(
                "Failed to set current account: not using the new authentication scheme",
                reason=AccountSelectionError.WRONG_SCHEME,
                account_id=account_id,
            )

        for index, account in enumerate(self.accounts):
            if account.account_id == account_id:
                await self.store.set_current_account_id(account_id)
                self.current_account_index = index
                return index

        raise AccountSelectionError(
            f"Failed to set current account: failed to find account ID: {account_id}",
            reason=AccountSelectionError.NOT_FOUND,
            account_id=account_id,
        )

    def _require_credentials(self) -> None:
        if self.current_account is None and self.legacy_credentials is None:
            raise AuthenticationError(
                "No credentials are loaded",
                redirect_url=self.redirect_url,
            )

    def get_run_key(self) -> RunKey:
        """Key checks are submitted with."""
        self._require_credentials()
        account = self.current_account
        if account is not None:
            return RunKey(run_key=account.runner_key or "", is_new_auth_scheme=True)
        return RunKey(run_key=self.legacy_credentials.api_key, is_new_auth_scheme=False)

    def get_results_view_key(self) -> Optional[QueryParam]:
        """Query parameter needed to view results, None under the legacy scheme."""
        self._require_credentials()
        account = self.current_account
        if account is not None:
            return QueryParam(name="accountId", value=account.account_id)
        return None

    def get_access_key(self) -> QueryParam:
        """Query parameter granting access to stored images."""
        self._require_credentials()
        account = self.current_account
        if account is not None:
            return QueryParam(name="accessKey", value=account.access_key or "")
        return QueryParam(name="apiKey", value=self.legacy_credentials.api_key)

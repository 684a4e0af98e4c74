"""HTTP client for the results server's account and session endpoints."""

import logging
from typing import List, Optional

import httpx
from pydantic import ValidationError

from snapcheck.core.types import Account, SessionInfo
from snapcheck.error_handling.exceptions import AccountsFetchError, SessionInfoError

logger = logging.getLogger(__name__)

ACCOUNTS_PATH = "/api/auth/accounts.json"
SESSION_INFO_PATH = "/api/sessions/{session_id}.json"


def url_concat(base: str, path: str) -> str:
    """Join a server URL and a path with exactly one slash between them."""
    return base.rstrip("/") + "/" + path.lstrip("/")


class AccountsClient:
    """Async client for account lookup and session info.

    The caller may pass its own ``httpx.AsyncClient`` (for instance one
    built on a mock transport); otherwise one is created and owned here.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch_accounts(self, api_server_url: str) -> Optional[List[Account]]:
        """Fetch the accounts the current user belongs to.

        Args:
            api_server_url: Base URL of the API server

        Returns:
            The account list, or None when the server answered 403 (the user
            is not logged in under the new scheme).

        Raises:
            AccountsFetchError: On network errors, other non-200 statuses,
                or an unparseable body.
        """
        url = url_concat(api_server_url, ACCOUNTS_PATH)
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("Network error fetching accounts from %s: %s", url, exc)
            raise AccountsFetchError(
                "Network error when trying to get accounts info",
                url=url,
                cause=exc,
            ) from exc

        if response.status_code == 403:
            logger.info("Accounts endpoint answered 403; user is not logged in")
            return None

        if response.status_code != 200:
            raise AccountsFetchError(
                f"Failed to get accounts info: {response.status_code} {response.reason_phrase}",
                url=url,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
            if not isinstance(payload, list):
                raise ValueError("accounts payload is not a list")
            return [Account.model_validate(item) for item in payload]
        except (ValueError, ValidationError) as exc:
            raise AccountsFetchError(
                f"Failed to parse accounts info: {exc}",
                url=url,
                status_code=response.status_code,
                cause=exc,
            ) from exc

    async def fetch_session_info(self, server_url: str, session_id: str) -> SessionInfo:
        """Fetch the start info of an existing session.

        Raises:
            SessionInfoError: When the session cannot be fetched or parsed.
        """
        url = url_concat(server_url, SESSION_INFO_PATH.format(session_id=session_id))
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SessionInfoError(
                f"Failed to get test info: {exc.response.status_code}",
                session_id=session_id,
                cause=exc,
            ) from exc
        except httpx.HTTPError as exc:
            raise SessionInfoError(
                "Network error when trying to get test info",
                session_id=session_id,
                cause=exc,
            ) from exc

        try:
            return SessionInfo.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise SessionInfoError(
                f"Failed to parse test info: {exc}",
                session_id=session_id,
                cause=exc,
            ) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

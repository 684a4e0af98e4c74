"""
Unit tests for test parameter resolution.
"""

import httpx
import pytest

from snapcheck.auth.client import AccountsClient
from snapcheck.core.types import (
    DefaultSelection,
    MatchLevel,
    Size,
    StepUrlSelection,
    UserValuesSelection,
)
from snapcheck.error_handling.exceptions import InvalidStepUrlError, SessionInfoError
from snapcheck.orchestration.parameters import TestParametersResolver, default_names

SESSION = {
    "startInfo": {
        "appIdOrName": "Checkout",
        "scenarioIdOrName": "Pay with card",
        "branchName": "feature/pay",
        "parentBranchName": "default",
        "environment": {"os": "Linux", "hostingApp": "Chrome", "displaySize": "1024x600"},
    }
}


def _resolver(store, handler=None):
    handler = handler or (lambda request: httpx.Response(404))
    client = AccountsClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    return TestParametersResolver(store, client)


class TestDefaultNames:
    """Tests for default_names."""

    def test_host_and_path(self):
        assert default_names("https://shop.example.com/cart?id=3") == (
            "shop.example.com",
            "/cart",
        )

    def test_query_included_on_request(self):
        assert default_names("https://shop.example.com/cart?id=3", include_query=True) == (
            "shop.example.com",
            "/cart?id=3",
        )

    def test_empty_path_is_root(self):
        assert default_names("https://shop.example.com") == ("shop.example.com", "/")


class TestResolve:
    """Tests for TestParametersResolver.resolve."""

    @pytest.mark.asyncio
    async def test_default_selection_uses_store_settings(self, store):
        await store.set_viewport_size("1024x600")
        await store.set_match_level("Layout")

        params = await _resolver(store).resolve(
            "https://shop.example.com/cart", DefaultSelection()
        )

        assert params.app_name == "shop.example.com"
        assert params.test_name == "/cart"
        assert params.viewport_size == Size(width=1024, height=600)
        assert params.match_level == MatchLevel.LAYOUT
        assert params.batch is None

    @pytest.mark.asyncio
    async def test_selection_read_from_store(self, store):
        await store.set_baseline_selection(UserValuesSelection(app_name="Shop", test_name="Cart"))

        params = await _resolver(store).resolve("https://shop.example.com/cart")

        assert (params.app_name, params.test_name) == ("Shop", "Cart")

    @pytest.mark.asyncio
    async def test_user_values(self, store):
        params = await _resolver(store).resolve(
            "https://shop.example.com/cart",
            UserValuesSelection(app_name="Shop", test_name="Cart page"),
        )

        assert (params.app_name, params.test_name) == ("Shop", "Cart page")
        assert params.viewport_size == Size(width=800, height=600)

    @pytest.mark.asyncio
    async def test_step_url_takes_session_values(self, store, settings):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=SESSION)

        params = await _resolver(store, handler).resolve(
            "https://shop.example.com/cart",
            StepUrlSelection(url="https://eyes.example.com/app/batches/1/sessions/42/steps/1"),
        )

        assert str(requests[0].url) == f"{settings.server_url}/api/sessions/42.json"
        assert params.app_name == "Checkout"
        assert params.test_name == "Pay with card"
        assert params.branch_name == "feature/pay"
        assert params.os == "Linux"
        assert params.hosting_app == "Chrome"
        assert params.viewport_size == Size(width=1024, height=600)

    @pytest.mark.asyncio
    async def test_step_url_without_session(self, store):
        with pytest.raises(InvalidStepUrlError):
            await _resolver(store).resolve(
                "https://shop.example.com/cart",
                StepUrlSelection(url="https://eyes.example.com/app/batches/1"),
            )

    @pytest.mark.asyncio
    async def test_unknown_session(self, store):
        with pytest.raises(SessionInfoError):
            await _resolver(store).resolve(
                "https://shop.example.com/cart",
                StepUrlSelection(url="https://eyes.example.com/app/sessions/7"),
            )

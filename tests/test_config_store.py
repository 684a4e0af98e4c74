"""
Unit tests for the user configuration store.
"""

import json

import pytest

from snapcheck.config.store import (
    ConfigurationStore,
    JsonFileStorage,
    MemoryStorage,
)
from snapcheck.core.types import DefaultSelection, StepUrlSelection, UserValuesSelection


class TestConfigurationStore:
    """Tests for ConfigurationStore accessors."""

    @pytest.mark.asyncio
    async def test_defaults_come_from_settings(self, store):
        assert await store.get_match_level() == "Strict"
        assert await store.get_viewport_size() == "800x600"
        assert await store.get_new_tab_for_results() is True
        assert await store.get_take_full_page_screenshot() is True
        assert await store.get_remove_scroll_bars() is True
        assert await store.get_include_query_params_in_test_name() is False
        assert await store.get_server_url() == "https://eyes.applitools.com"
        assert await store.get_page_part_wait_time() == 300
        assert await store.get_should_use_batch() is False
        assert await store.get_batch_name() is None

    @pytest.mark.asyncio
    async def test_invalid_values_are_normalised(self, store):
        await store.set_match_level("Layout")
        assert await store.get_match_level() == "Layout"

        await store.set_match_level("Fuzzy")
        assert await store.get_match_level() == "Strict"

        await store.set_viewport_size("123x456")
        assert await store.get_viewport_size() == "800x600"

        await store.set_server_url("   ")
        assert await store.get_server_url() == "https://eyes.applitools.com"

        await store.set_page_part_wait_time(-5)
        assert await store.get_page_part_wait_time() == 300

    @pytest.mark.asyncio
    async def test_none_removes_optional_keys(self, store):
        await store.set_batch_name("Nightly")
        assert await store.get_batch_name() == "Nightly"

        await store.set_batch_name(None)
        assert await store.get_batch_name() is None

    @pytest.mark.asyncio
    async def test_flags_round_trip(self, store):
        await store.set_new_tab_for_results(False)
        await store.set_take_full_page_screenshot(False)
        await store.set_should_use_batch(True)

        assert await store.get_new_tab_for_results() is False
        assert await store.get_take_full_page_screenshot() is False
        assert await store.get_should_use_batch() is True

    @pytest.mark.asyncio
    async def test_baseline_selection(self, store):
        assert await store.get_baseline_selection() == DefaultSelection()

        await store.set_baseline_selection(UserValuesSelection(app_name="Shop", test_name="Cart"))
        assert await store.get_baseline_selection() == UserValuesSelection(
            app_name="Shop", test_name="Cart"
        )

        step_url = "https://eyes.example.com/app/sessions/12345/steps/1"
        await store.set_baseline_selection(StepUrlSelection(url=step_url))
        assert await store.get_baseline_selection() == StepUrlSelection(url=step_url)

        await store.set_baseline_selection(DefaultSelection())
        assert await store.get_baseline_selection() == DefaultSelection()

    @pytest.mark.asyncio
    async def test_selection_without_values_degrades_to_default(self, store):
        await store.set_baseline_selection_id("userValuesSelection")
        await store.set_baseline_app_name("Shop")

        assert await store.get_baseline_selection() == DefaultSelection()

    @pytest.mark.asyncio
    async def test_legacy_credentials_are_read_from_cookies(self, store, browser, settings):
        assert await store.get_api_key() is None

        browser.cookies[(settings.legacy_cookie_url, "run-key")] = "KEY"
        browser.cookies[(settings.legacy_cookie_url, "account-id")] = "ACC"

        assert await store.get_api_key() == "KEY"
        assert await store.get_account_id() == "ACC"

    @pytest.mark.asyncio
    async def test_no_browser_means_no_cookies(self, settings):
        store = ConfigurationStore(settings=settings)

        assert await store.get_api_key() is None
        assert await store.get_account_id() is None

    def test_available_values(self):
        assert ConfigurationStore.get_all_match_levels()[0] == "Layout"
        assert "1800x950" in ConfigurationStore.get_all_viewport_sizes()


class TestStorages:
    """Tests for the storage backends."""

    @pytest.mark.asyncio
    async def test_memory_storage(self):
        storage = MemoryStorage({"a": 1})

        assert await storage.get("a") == 1
        await storage.remove("a")
        await storage.remove("a")
        assert await storage.get("a") is None

    @pytest.mark.asyncio
    async def test_json_file_storage_persists(self, tmp_path):
        path = tmp_path / "nested" / "store.json"
        storage = JsonFileStorage(path)

        await storage.set("matchLevel", "Content")
        await storage.set("useBatch", True)

        assert json.loads(path.read_text()) == {"matchLevel": "Content", "useBatch": True}
        assert await JsonFileStorage(path).get("matchLevel") == "Content"

        await storage.remove("useBatch")
        assert await storage.get("useBatch") is None

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")

        assert await JsonFileStorage(path).get("anything") is None

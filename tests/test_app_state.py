import asyncio

import pytest

from app_state import AppState, ConfigStore
from conftest import FakeBackend, make_config, wait_until
from models import GameEntry
from save_backend import BackendError


class TestConfigStore:
    def test_generation_increments(self):
        store = ConfigStore()
        store.replace(make_config("A"))
        store.replace(make_config("B"))
        assert store.generation == 2
        assert store.config.game_names() == ["B"]

    def test_stale_read_discarded(self):
        store = ConfigStore()
        generation = store.generation
        store.replace(make_config("Written"))
        assert store.replace_if_current(make_config("Stale"), generation) is False
        assert store.config.game_names() == ["Written"]


class TestBaseInfo:
    @pytest.mark.asyncio
    async def test_selects_first_uid(self):
        backend = FakeBackend()
        backend.uids = ["111", "222"]
        backend.steam_dir = "C:\\Steam"
        app_state = AppState(backend)

        assert await app_state.refresh_base_info() is True
        assert app_state.selected_steam_uid == "111"
        assert app_state.env.steam_dir == "C:\\Steam"
        assert app_state.resolve("{Steam}\\userdata\\{SteamUID}") == "C:\\Steam\\userdata\\111"

    @pytest.mark.asyncio
    async def test_failure_reported(self):
        backend = FakeBackend()
        backend.failures["get_user_folder"] = BackendError("no home")
        errors = []
        app_state = AppState(backend, on_error=lambda msg, exc: errors.append(exc))

        assert await app_state.refresh_base_info() is False
        assert app_state.config is None
        assert len(errors) == 1


class TestPathState:
    @pytest.mark.asyncio
    async def test_fan_out(self):
        backend = FakeBackend()
        backend.existing_paths = {"{Home}\\saves\\Alpha"}
        app_state = AppState(backend)
        await app_state.refresh_base_info()

        assert await app_state.refresh_path_state() is True
        assert app_state.path_state_for("Alpha").exists is True
        assert app_state.path_state_for("Beta").exists is False
        assert app_state.path_state_for("Alpha").resolved == "C:\\Users\\A\\saves\\Alpha"

    @pytest.mark.asyncio
    async def test_no_overlapping_passes(self):
        backend = FakeBackend()
        app_state = AppState(backend)
        await app_state.refresh_base_info()
        backend.gates["check_save_path"] = asyncio.Event()

        first = asyncio.create_task(app_state.refresh_path_state())
        await wait_until(lambda: backend.count("check_save_path") == 3)
        assert await app_state.refresh_path_state() is False

        backend.gates["check_save_path"].set()
        assert await first is True
        assert backend.count("check_save_path") == 3
        assert app_state.checking_paths is False

    @pytest.mark.asyncio
    async def test_check_failure_means_missing(self):
        backend = FakeBackend()
        app_state = AppState(backend)
        await app_state.refresh_base_info()
        backend.failures["check_save_path"] = BackendError("boom")

        await app_state.refresh_path_state()
        assert all(not state.exists for state in app_state.path_state.values())

    @pytest.mark.asyncio
    async def test_unchecked_game_is_unsafe(self):
        backend = FakeBackend()
        app_state = AppState(backend)
        await app_state.refresh_base_info()
        game = app_state.games[0]
        assert app_state.unsafe_reason(game) is not None

        await app_state.refresh_path_state()
        assert app_state.unsafe_reason(game) is None

        steam_game = GameEntry(name="S", path="{Steam}\\x", type="steam")
        assert app_state.unsafe_reason(steam_game) == "Steam is not installed"

    @pytest.mark.asyncio
    async def test_user_folder_change_invalidates_path_state(self):
        backend = FakeBackend()
        backend.uids = ["111"]
        app_state = AppState(backend)
        await app_state.refresh_base_info()
        await app_state.refresh_path_state()
        game = app_state.games[0]
        assert app_state.unsafe_reason(game) is None

        backend.user_folder = "D:\\Other"
        await app_state.refresh_base_info()

        assert app_state.resolve(game.path) == "D:\\Other\\saves\\Alpha"
        assert app_state.path_state_for(game.name) is None
        assert app_state.unsafe_reason(game) == "Save path has not been checked"

        await app_state.refresh_path_state()
        assert app_state.path_state_for(game.name).resolved == "D:\\Other\\saves\\Alpha"

    @pytest.mark.asyncio
    async def test_steam_dir_change_during_pass_discards_results(self):
        backend = FakeBackend()
        app_state = AppState(backend)
        await app_state.refresh_base_info()
        backend.gates["check_save_path"] = asyncio.Event()

        task = asyncio.create_task(app_state.refresh_path_state())
        await wait_until(lambda: backend.count("check_save_path") == 3)
        app_state.steam_dir = "E:\\Steam"
        backend.gates["check_save_path"].set()

        assert await task is False
        assert app_state.path_state == {}
        assert app_state.unsafe_reason(app_state.games[0]) == "Save path has not been checked"

import asyncio

import pytest

from app_state import AppState
from backup_catalog import (BackupCatalog, CatalogState, DeleteInProgressError, ListLoaded,
                            ListRequested, RemarkEdited, normalize_remark, reduce_catalog)
from conftest import FakeBackend, wait_until
from models import BackupEntry
from save_backend import BackendError


def entry(name, remark=None):
    return BackupEntry(file_name=name, file_path=f"backup/{name}", timestamp=1, remark=remark)


@pytest.fixture
def catalog_setup():
    backend = FakeBackend()
    app_state = AppState(backend)
    app_state.set_config(backend.config)
    errors = []
    catalog = BackupCatalog(backend, app_state, on_error=lambda msg, exc: errors.append(msg))
    return backend, app_state, catalog, errors


class TestReducer:
    def test_list_requested_clears_items(self):
        state = CatalogState(game_name="Alpha", items=(entry("a.zip"),))
        state = reduce_catalog(state, ListRequested("Beta"))
        assert state.items == () and state.loading and state.game_name == "Beta"

    def test_late_result_for_other_game_ignored(self):
        state = reduce_catalog(CatalogState(), ListRequested("Beta"))
        assert reduce_catalog(state, ListLoaded("Alpha", (entry("a.zip"),))) is state

    def test_remark_patch_keeps_identity(self):
        state = CatalogState(game_name="Alpha", items=(entry("a.zip"), entry("b.zip")))
        state = reduce_catalog(state, RemarkEdited("Alpha", "b.zip", "boss"))
        assert [b.remark for b in state.items] == [None, "boss"]
        assert [b.file_name for b in state.items] == ["a.zip", "b.zip"]


def test_normalize_remark():
    assert normalize_remark("  hello ") == "hello"
    assert normalize_remark("   ") is None
    assert normalize_remark(None) is None


class TestCatalog:
    @pytest.mark.asyncio
    async def test_create_trims_remark_and_replaces_config(self, catalog_setup):
        backend, app_state, catalog, _errors = catalog_setup
        generation = app_state.store.generation
        game = backend.config.games[0]

        await catalog.create_backup(game, "   ")
        await catalog.create_backup(game, " before boss ")

        remarks = [call[4] for call in backend.calls if call[0] == "backup_game"]
        assert remarks == [None, "before boss"]
        assert app_state.store.generation == generation + 2

    @pytest.mark.asyncio
    async def test_create_failure_propagates(self, catalog_setup):
        backend, app_state, catalog, _errors = catalog_setup
        backend.failures["backup_game"] = BackendError("no source")
        generation = app_state.store.generation
        with pytest.raises(BackendError):
            await catalog.create_backup(backend.config.games[0])
        assert app_state.store.generation == generation

    @pytest.mark.asyncio
    async def test_list_failure_leaves_empty_list(self, catalog_setup):
        backend, _app_state, catalog, errors = catalog_setup
        backend.backups["Alpha"] = [entry("a.zip")]
        assert len(await catalog.list_backups("Alpha")) == 1

        backend.failures["list_backups"] = BackendError("unreadable")
        assert await catalog.list_backups("Alpha") == ()
        assert catalog.state.items == ()
        assert catalog.state.error == "unreadable"
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_unexpected_list_error_clears_loading(self, catalog_setup):
        backend, _app_state, catalog, errors = catalog_setup
        backend.failures["list_backups"] = RuntimeError("bug")

        with pytest.raises(RuntimeError):
            await catalog.list_backups("Alpha")
        assert catalog.state.loading is False
        assert catalog.state.error == "Backup listing was interrupted"
        assert errors == []

    @pytest.mark.asyncio
    async def test_edit_remark_patches_cache(self, catalog_setup):
        backend, _app_state, catalog, _errors = catalog_setup
        backend.backups["Alpha"] = [entry("a.zip", "old")]
        await catalog.list_backups("Alpha")

        await catalog.edit_remark("Alpha", "a.zip", "new")
        assert catalog.state.items[0].remark == "new"
        assert backend.count("list_backups") == 1

        await catalog.edit_remark("Alpha", "a.zip", "")
        assert catalog.state.items[0].remark is None

    @pytest.mark.asyncio
    async def test_duplicate_delete_rejected(self, catalog_setup):
        backend, _app_state, catalog, _errors = catalog_setup
        backend.backups["Alpha"] = [entry("x.zip"), entry("y.zip")]
        await catalog.list_backups("Alpha")
        backend.gates["delete_backup"] = asyncio.Event()

        first = asyncio.create_task(catalog.delete_backup("Alpha", "x.zip"))
        await wait_until(lambda: backend.count("delete_backup") == 1)

        with pytest.raises(DeleteInProgressError):
            await catalog.delete_backup("Alpha", "x.zip")
        other = asyncio.create_task(catalog.delete_backup("Alpha", "y.zip"))
        await wait_until(lambda: backend.count("delete_backup") == 2)

        backend.gates["delete_backup"].set()
        await asyncio.gather(first, other)
        assert backend.count("delete_backup") == 2
        assert catalog.state.items == ()
        assert catalog.state.deleting == frozenset()

    @pytest.mark.asyncio
    async def test_delete_failure_keeps_item(self, catalog_setup):
        backend, _app_state, catalog, _errors = catalog_setup
        backend.backups["Alpha"] = [entry("x.zip")]
        await catalog.list_backups("Alpha")
        backend.failures["delete_backup"] = BackendError("locked")

        with pytest.raises(BackendError):
            await catalog.delete_backup("Alpha", "x.zip")
        assert [b.file_name for b in catalog.state.items] == ["x.zip"]
        assert not catalog.is_deleting("x.zip")

import json

import pytest

import config
import path_template
import steam_utils
from app_state import AppState
from backup_catalog import BackupCatalog
from restore_flow import RestoreOrchestrator, RestoreResult, RestoreStage, StageStatus
from save_backend import BackendError, LocalSaveBackend


@pytest.fixture
def machine(tmp_path, monkeypatch):
    home = tmp_path / "home"
    save = home / "Documents" / "Game"
    save.mkdir(parents=True)
    (save / "save.dat").write_text("original")
    monkeypatch.setattr(path_template, "get_user_home", lambda: str(home))
    monkeypatch.setattr(steam_utils, "get_steam_install_path", lambda: None)
    monkeypatch.setattr(steam_utils, "list_steam_uids", lambda steam_path=None: [])

    work_dir = tmp_path / "work"
    work_dir.mkdir()
    data = {
        "settings": {},
        "games": [
            {"name": "Game", "path": "{Home}\\Documents\\Game", "icon": ""},
            {"name": "SteamGame", "path": "{Steam}\\userdata\\{SteamUID}\\1\\remote", "icon": "", "type": "steam"},
        ],
        "version": 1,
    }
    (work_dir / config.CONFIG_FILENAME).write_text(json.dumps(data), encoding="utf-8")
    return work_dir, save


@pytest.mark.asyncio
async def test_check_save_path(machine):
    work_dir, _save = machine
    backend = LocalSaveBackend(str(work_dir))
    assert await backend.check_save_path("{Home}\\Documents\\Game", None) is True
    assert await backend.check_save_path("{Home}\\Documents\\Missing", None) is False
    assert await backend.check_save_path("{Steam}\\userdata\\{SteamUID}", None) is False


@pytest.mark.asyncio
async def test_backup_list_restore_end_to_end(machine):
    work_dir, save = machine
    backend = LocalSaveBackend(str(work_dir))
    app_state = AppState(backend)
    assert await app_state.refresh_base_info()
    catalog = BackupCatalog(backend, app_state)
    game = app_state.config.find_game("Game")

    response = await catalog.create_backup(game, "  first  ")
    assert app_state.config.find_game("Game").last_save == response.timestamp

    items = await catalog.list_backups("Game")
    assert [b.remark for b in items] == ["first"]

    (save / "save.dat").write_text("changed")
    orchestrator = RestoreOrchestrator(backend, app_state)
    state = await orchestrator.restore(game, items[0])

    assert state.result == RestoreResult.SUCCESS
    assert (save / "save.dat").read_text() == "original"
    assert app_state.path_state_for("Game").exists is True
    # The extra backup taken before restoring is listed too
    assert len(await catalog.list_backups("Game")) == 2


@pytest.mark.asyncio
async def test_restore_of_unknown_backup_fails_at_check(machine):
    work_dir, _save = machine
    backend = LocalSaveBackend(str(work_dir))
    app_state = AppState(backend)
    await app_state.refresh_base_info()
    game = app_state.config.find_game("Game")

    from models import BackupEntry
    missing = BackupEntry(file_name="Game-Backup-20000101-000000.zip",
                          file_path=str(work_dir / "backup" / "Game-Backup-20000101-000000.zip"))
    state = await RestoreOrchestrator(backend, app_state).restore(game, missing)

    assert state.result == RestoreResult.ERROR
    assert state.status_of(RestoreStage.CHECK) == StageStatus.ERROR


@pytest.mark.asyncio
async def test_errors_are_backend_errors(machine):
    work_dir, _save = machine
    backend = LocalSaveBackend(str(work_dir))
    with pytest.raises(BackendError):
        await backend.delete_backup("Game", "Game-Backup-missing.zip")
    with pytest.raises(BackendError):
        await backend.backup_game("Game", "{Home}\\Nope", None, None)


@pytest.mark.asyncio
async def test_reorder_and_settings(machine):
    work_dir, _save = machine
    backend = LocalSaveBackend(str(work_dir))
    cfg = await backend.reorder_games(["SteamGame"])
    assert cfg.game_names() == ["SteamGame", "Game"]
    cfg = await backend.set_setting(config.SETTING_USE_RELATIVE_TIME, False)
    assert cfg.settings[config.SETTING_USE_RELATIVE_TIME] is False
    assert cfg.settings[config.SETTING_RESTORE_EXTRA_BACKUP] is True


@pytest.mark.asyncio
async def test_single_file_save_backup_and_restore(machine, tmp_path):
    work_dir, _save = machine
    save_file = tmp_path / "home" / "save.dat"
    save_file.write_text("first")
    backend = LocalSaveBackend(str(work_dir))

    response = await backend.backup_game("Game", "{Home}\\save.dat", None, None)
    save_file.write_text("second")
    await backend.restore_backup("Game", "{Home}\\save.dat", response.file_path, None)

    assert save_file.read_text() == "first"

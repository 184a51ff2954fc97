import pytest

import config
from app_state import AppState
from conftest import FakeBackend, make_config
from save_backend import BackendError
from settings_sync import SettingsSynchronizer, read_bool_setting


def test_non_boolean_falls_back_to_default():
    cfg = make_config(settings={config.SETTING_USE_RELATIVE_TIME: "no", config.SETTING_RESTORE_EXTRA_BACKUP: False})
    assert read_bool_setting(cfg, config.SETTING_USE_RELATIVE_TIME) is True
    assert read_bool_setting(cfg, config.SETTING_RESTORE_EXTRA_BACKUP) is False
    assert read_bool_setting(None, config.SETTING_RESTORE_EXTRA_BACKUP) is True


@pytest.mark.asyncio
async def test_toggle_round_trips_through_config():
    backend = FakeBackend()
    app_state = AppState(backend)
    app_state.set_config(backend.config)
    sync = SettingsSynchronizer(backend, app_state)

    assert sync.use_relative_time is True
    await sync.set_use_relative_time(False)
    assert backend.calls[-1] == ("set_setting", config.SETTING_USE_RELATIVE_TIME, False)
    assert sync.use_relative_time is False


@pytest.mark.asyncio
async def test_failure_propagates():
    backend = FakeBackend()
    app_state = AppState(backend)
    app_state.set_config(backend.config)
    sync = SettingsSynchronizer(backend, app_state)
    backend.failures["set_setting"] = BackendError("read only")

    with pytest.raises(BackendError):
        await sync.set_restore_extra_backup(False)
    assert sync.restore_extra_backup is True

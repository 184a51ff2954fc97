# settings_sync.py
"""Boolean preferences stored in ``config.settings``."""

import logging

import config
from app_state import AppState
from models import AppConfig
from save_backend import BackendError, SaveBackend


def read_bool_setting(app_config, key: str) -> bool:
    """Stored value when it is a real boolean, otherwise the default."""
    default = config.DEFAULT_SETTINGS.get(key, True)
    if app_config is None:
        return default
    value = app_config.settings.get(key)
    return value if isinstance(value, bool) else default


class SettingsSynchronizer:
    def __init__(self, backend: SaveBackend, app_state: AppState):
        self.backend = backend
        self.app_state = app_state

    @property
    def use_relative_time(self) -> bool:
        return read_bool_setting(self.app_state.config, config.SETTING_USE_RELATIVE_TIME)

    @property
    def restore_extra_backup(self) -> bool:
        return read_bool_setting(self.app_state.config, config.SETTING_RESTORE_EXTRA_BACKUP)

    async def _set(self, key: str, value: bool) -> AppConfig:
        try:
            new_config = await self.backend.set_setting(key, bool(value))
        except BackendError as e:
            logging.error(f"Unable to save setting '{key}': {e}")
            raise
        self.app_state.set_config(new_config)
        return new_config

    async def set_use_relative_time(self, checked: bool) -> AppConfig:
        return await self._set(config.SETTING_USE_RELATIVE_TIME, checked)

    async def set_restore_extra_backup(self, checked: bool) -> AppConfig:
        return await self._set(config.SETTING_RESTORE_EXTRA_BACKUP, checked)

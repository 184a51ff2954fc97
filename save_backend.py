# save_backend.py
# -*- coding: utf-8 -*-
"""
Backend remote operations.

``SaveBackend`` is the contract every backend implements; the client side
(app state, catalog, restore flow, ordering, settings) only talks to it.
``LocalSaveBackend`` implements it against the local filesystem, running the
blocking work on worker threads.
"""

from abc import ABC, abstractmethod
import asyncio
import logging
import os
from typing import Any, List, Optional

import config
import core_logic
import settings_manager
import steam_utils
from models import AppConfig, BackupEntry, BackupResponse, RestoreResponse
import path_template as templates
from path_template import TemplateError, requires_steam_uid, resolve_for_machine


class BackendError(Exception):
    """A backend operation failed. The message is meant for the user."""


class RestoreStageError(BackendError):
    """A restore failed at a known stage. ``str()`` is ``[STAGE] detail``."""

    def __init__(self, stage_code: str, detail: str):
        super().__init__(f"[{stage_code}] {detail}")
        self.stage_code = stage_code
        self.detail = detail


class SaveBackend(ABC):
    """
    Abstract base class for backends.

    Reads return plain values; every write returns the authoritative
    configuration (directly or inside a response) or raises ``BackendError``.
    """

    # -------------------------------------------------------------------------
    # Environment
    # -------------------------------------------------------------------------

    @abstractmethod
    async def load_config(self) -> AppConfig:
        pass

    @abstractmethod
    async def get_user_folder(self) -> str:
        pass

    @abstractmethod
    async def get_steam_install_dir(self) -> Optional[str]:
        """Steam install folder, or None when Steam is not installed."""
        pass

    @abstractmethod
    async def get_steam_uid_list(self) -> List[str]:
        pass

    @abstractmethod
    async def check_save_path(self, path: str, steam_uid: Optional[str]) -> bool:
        """Whether the save path template resolves to an existing path."""
        pass

    @abstractmethod
    async def get_backup_dir(self) -> str:
        pass

    @abstractmethod
    async def get_version(self) -> str:
        pass

    # -------------------------------------------------------------------------
    # Backups
    # -------------------------------------------------------------------------

    @abstractmethod
    async def backup_game(self, game_name: str, path_template: str, steam_uid: Optional[str],
                          remark: Optional[str]) -> BackupResponse:
        pass

    @abstractmethod
    async def list_backups(self, game_name: str) -> List[BackupEntry]:
        pass

    @abstractmethod
    async def update_backup_remark(self, game_name: str, file_name: str, remark: str) -> None:
        pass

    @abstractmethod
    async def delete_backup(self, game_name: str, file_name: str) -> None:
        pass

    @abstractmethod
    async def restore_backup(self, game_name: str, path_template: str, backup_path: str,
                             steam_uid: Optional[str]) -> RestoreResponse:
        """
        Restore ``backup_path`` over the game's save folder.

        Raises:
            RestoreStageError: When a known stage fails
            BackendError: For anything else
        """
        pass

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    @abstractmethod
    async def set_setting(self, key: str, value: Any) -> AppConfig:
        pass

    @abstractmethod
    async def reorder_games(self, order: List[str]) -> AppConfig:
        pass


class LocalSaveBackend(SaveBackend):
    """Backend working on this machine: config.json plus a backup folder in ``work_dir``."""

    def __init__(self, work_dir: Optional[str] = None):
        self.work_dir = work_dir or settings_manager.get_default_work_dir()
        logging.info(f"Local backend using work directory: {self.work_dir}")

    async def _run(self, func, *args):
        """Run blocking work on a thread, turning low-level failures into BackendError."""
        try:
            return await asyncio.to_thread(func, *args)
        except BackendError:
            raise
        except core_logic.RestoreStageError as e:
            raise RestoreStageError(e.stage, e.detail) from e
        except (core_logic.BackupError, settings_manager.ConfigError, TemplateError, OSError) as e:
            logging.error(f"Backend operation '{func.__name__}' failed: {e}")
            raise BackendError(str(e)) from e

    def _backup_dir(self) -> str:
        return core_logic.ensure_backup_dir(self.work_dir)

    # --- Environment ---

    async def load_config(self) -> AppConfig:
        return await self._run(settings_manager.load_config, self.work_dir)

    async def get_user_folder(self) -> str:
        return await self._run(templates.get_user_home)

    async def get_steam_install_dir(self) -> Optional[str]:
        return await self._run(steam_utils.get_steam_install_path)

    async def get_steam_uid_list(self) -> List[str]:
        return await self._run(steam_utils.list_steam_uids)

    def _check_save_path(self, path: str, steam_uid: Optional[str]) -> bool:
        if requires_steam_uid(path) and not steam_uid:
            return False
        try:
            resolved = resolve_for_machine(path, steam_uid)
        except TemplateError as e:
            logging.debug(f"check_save_path: '{path}' not resolvable: {e}")
            return False
        return os.path.exists(resolved)

    async def check_save_path(self, path: str, steam_uid: Optional[str]) -> bool:
        return await self._run(self._check_save_path, path, steam_uid)

    async def get_backup_dir(self) -> str:
        return await self._run(self._backup_dir)

    async def get_version(self) -> str:
        return config.APP_VERSION

    # --- Backups ---

    def _backup_game(self, game_name, path_template, steam_uid, remark) -> BackupResponse:
        source_path = resolve_for_machine(path_template, steam_uid)
        info = core_logic.perform_backup(game_name, source_path, self._backup_dir(), remark=remark)
        app_config = settings_manager.update_last_save(game_name, info["timestamp"], self.work_dir)
        return BackupResponse(
            file_name=info["file_name"],
            file_path=info["file_path"],
            timestamp=info["timestamp"],
            remark_path=info["remark_path"],
            config=app_config,
        )

    async def backup_game(self, game_name, path_template, steam_uid, remark) -> BackupResponse:
        return await self._run(self._backup_game, game_name, path_template, steam_uid, remark)

    async def list_backups(self, game_name: str) -> List[BackupEntry]:
        return await self._run(lambda: core_logic.list_backups(game_name, self._backup_dir()))

    async def update_backup_remark(self, game_name: str, file_name: str, remark: str) -> None:
        await self._run(lambda: core_logic.update_backup_remark(game_name, file_name, remark, self._backup_dir()))

    async def delete_backup(self, game_name: str, file_name: str) -> None:
        await self._run(lambda: core_logic.delete_backup(game_name, file_name, self._backup_dir()))

    def _restore_backup(self, game_name, path_template, backup_path, steam_uid) -> RestoreResponse:
        try:
            app_config = settings_manager.load_config(self.work_dir)
            if app_config.find_game(game_name) is None:
                raise core_logic.RestoreStageError(core_logic.STAGE_CHECK, f"Game '{game_name}' is not configured")
            dest_path = resolve_for_machine(path_template, steam_uid)
            backup_dir = self._backup_dir()
        except (TemplateError, settings_manager.ConfigError, core_logic.BackupError) as e:
            raise core_logic.RestoreStageError(core_logic.STAGE_CHECK, str(e)) from e

        extra_enabled = app_config.settings.get(config.SETTING_RESTORE_EXTRA_BACKUP, True) is not False
        extra = core_logic.perform_restore(game_name, dest_path, backup_path, backup_dir, extra_backup=extra_enabled)

        try:
            if extra is not None:
                app_config = settings_manager.update_last_save(game_name, extra["timestamp"], self.work_dir)
            else:
                app_config = settings_manager.load_config(self.work_dir)
        except settings_manager.ConfigError as e:
            raise core_logic.RestoreStageError(core_logic.STAGE_UPDATE_CONFIG, str(e)) from e

        logging.info(f"Restore of '{game_name}' completed.")
        return RestoreResponse(config=app_config)

    async def restore_backup(self, game_name, path_template, backup_path, steam_uid) -> RestoreResponse:
        return await self._run(self._restore_backup, game_name, path_template, backup_path, steam_uid)

    # --- Configuration ---

    async def set_setting(self, key: str, value: Any) -> AppConfig:
        return await self._run(settings_manager.update_setting, key, value, self.work_dir)

    async def reorder_games(self, order: List[str]) -> AppConfig:
        return await self._run(settings_manager.reorder_games, list(order), self.work_dir)

# app_state.py
# -*- coding: utf-8 -*-
"""
Client-side application state: the configuration snapshot, the template
environment (user folder, Steam folder, accounts) and per-game path checks.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from models import AppConfig, ConfigSnapshot, GameEntry, PathState, TemplateEnv
from path_template import requires_steam_uid, resolve_template
from save_backend import BackendError, SaveBackend

ErrorCallback = Callable[[str, Exception], None]


class ConfigStore:
    """
    Holds the current configuration snapshot.

    Writes replace the snapshot unconditionally. Reads issued before a write
    landed must use ``replace_if_current`` so they never overwrite it.
    """

    def __init__(self):
        self._snapshot = ConfigSnapshot()

    @property
    def snapshot(self) -> ConfigSnapshot:
        return self._snapshot

    @property
    def config(self) -> Optional[AppConfig]:
        return self._snapshot.config

    @property
    def generation(self) -> int:
        return self._snapshot.generation

    def replace(self, config: AppConfig) -> ConfigSnapshot:
        self._snapshot = ConfigSnapshot(config=config, generation=self._snapshot.generation + 1)
        return self._snapshot

    def replace_if_current(self, config: AppConfig, expected_generation: int) -> bool:
        if self._snapshot.generation != expected_generation:
            logging.debug(f"Discarding stale configuration read (generation {expected_generation}, "
                          f"current {self._snapshot.generation}).")
            return False
        self.replace(config)
        return True


class AppState:
    """Shared state used by the catalog, restore flow, ordering and settings helpers."""

    def __init__(self, backend: SaveBackend, on_error: Optional[ErrorCallback] = None):
        self.backend = backend
        self.on_error = on_error
        self.store = ConfigStore()
        self.user_folder = ""
        self.steam_dir: Optional[str] = None
        self.steam_uids: List[str] = []
        self.selected_steam_uid: Optional[str] = None
        self.path_state: Dict[str, PathState] = {}
        # Environment the current path_state was computed for
        self.path_state_env: Optional[TemplateEnv] = None
        self.checking_paths = False
        self.version: Optional[str] = None

    # --- Configuration ---

    @property
    def config(self) -> Optional[AppConfig]:
        return self.store.config

    def set_config(self, config: AppConfig) -> None:
        self.store.replace(config)

    @property
    def games(self) -> List[GameEntry]:
        return list(self.config.games) if self.config else []

    # --- Environment ---

    @property
    def env(self) -> TemplateEnv:
        return TemplateEnv(user_folder=self.user_folder, steam_dir=self.steam_dir,
                           steam_uid=self.selected_steam_uid)

    @property
    def has_steam(self) -> bool:
        return bool(self.steam_dir)

    def resolve(self, template: str) -> str:
        return resolve_template(template, self.env)

    def select_steam_uid(self, uid: Optional[str]) -> None:
        if uid is not None and uid not in self.steam_uids:
            raise ValueError(f"Unknown Steam account id: {uid}")
        if uid != self.selected_steam_uid:
            self.selected_steam_uid = uid
            self._drop_stale_path_state()

    def _drop_stale_path_state(self) -> None:
        """Forget path checks made for another user folder, Steam folder or account."""
        if self.path_state and self.path_state_env != self.env:
            logging.debug("Template environment changed, clearing path states.")
            self.path_state = {}
            self.path_state_env = None

    def _report(self, message: str, exc: Exception) -> None:
        logging.error(f"{message}: {exc}")
        if self.on_error:
            self.on_error(message, exc)

    async def refresh_base_info(self) -> bool:
        """Load configuration, user folder, Steam folder and account ids."""
        generation = self.store.generation
        try:
            config, user_folder, steam_dir, uids = await asyncio.gather(
                self.backend.load_config(),
                self.backend.get_user_folder(),
                self.backend.get_steam_install_dir(),
                self.backend.get_steam_uid_list(),
            )
        except BackendError as e:
            self._report("Unable to load base information", e)
            return False

        self.store.replace_if_current(config, generation)
        self.user_folder = user_folder or ""
        self.steam_dir = steam_dir or None
        self.steam_uids = list(uids or [])
        if self.selected_steam_uid not in self.steam_uids:
            self.selected_steam_uid = self.steam_uids[0] if self.steam_uids else None
        self._drop_stale_path_state()
        return True

    async def refresh_version(self) -> Optional[str]:
        try:
            self.version = await self.backend.get_version()
        except BackendError as e:
            self._report("Unable to read version", e)
            self.version = None
        return self.version

    # --- Path checks ---

    async def _check_game(self, game: GameEntry, env: TemplateEnv) -> PathState:
        resolved = resolve_template(game.path, env)
        try:
            exists = await self.backend.check_save_path(game.path, env.steam_uid)
        except BackendError as e:
            logging.warning(f"Path check failed for '{game.name}': {e}")
            exists = False
        return PathState(exists=bool(exists), resolved=resolved)

    async def refresh_path_state(self) -> bool:
        """
        Check every game's save path concurrently and replace ``path_state``.

        Returns:
            False when skipped because a previous pass is still running, or
            when the environment changed before the pass finished
        """
        if self.checking_paths:
            logging.debug("Path check already in progress, skipping.")
            return False
        config = self.config
        if config is None:
            return False

        self.checking_paths = True
        try:
            env = self.env
            games = list(config.games)
            results = await asyncio.gather(*(self._check_game(g, env) for g in games))
            if env != self.env:
                logging.debug("Template environment changed during path check, results discarded.")
                return False
            self.path_state = {g.name: state for g, state in zip(games, results)}
            self.path_state_env = env
        finally:
            self.checking_paths = False
        return True

    def path_state_for(self, game_name: str) -> Optional[PathState]:
        """The game's path state, or None when unchecked for the current environment."""
        if self.path_state_env != self.env:
            return None
        return self.path_state.get(game_name)

    def unsafe_reason(self, game: GameEntry) -> Optional[str]:
        """Why destructive actions are not allowed on ``game`` right now, or None."""
        if game.is_steam and not self.has_steam:
            return "Steam is not installed"
        if requires_steam_uid(game.path) and not self.selected_steam_uid:
            return "No Steam account selected"
        if self.path_state_for(game.name) is None:
            return "Save path has not been checked"
        return None

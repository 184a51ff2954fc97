# backup_catalog.py
# -*- coding: utf-8 -*-
"""
Backup catalog of the selected game.

The catalog is one immutable ``CatalogState`` value. Every change goes through
``reduce_catalog`` so the state transitions can be tested without a backend.
"""

from dataclasses import dataclass, field, replace
import logging
from typing import Callable, FrozenSet, Optional, Tuple, Union

from app_state import AppState
from models import BackupEntry, BackupResponse, GameEntry
from save_backend import BackendError, SaveBackend


@dataclass(frozen=True)
class CatalogState:
    game_name: Optional[str] = None
    items: Tuple[BackupEntry, ...] = ()
    loading: bool = False
    deleting: FrozenSet[str] = field(default_factory=frozenset)
    error: Optional[str] = None


# --- Events ---

@dataclass(frozen=True)
class ListRequested:
    game_name: str


@dataclass(frozen=True)
class ListLoaded:
    game_name: str
    items: Tuple[BackupEntry, ...]


@dataclass(frozen=True)
class ListFailed:
    game_name: str
    message: str


@dataclass(frozen=True)
class RemarkEdited:
    game_name: str
    file_name: str
    remark: Optional[str]


@dataclass(frozen=True)
class DeleteStarted:
    file_name: str


@dataclass(frozen=True)
class DeleteFinished:
    game_name: str
    file_name: str
    removed: bool


CatalogEvent = Union[ListRequested, ListLoaded, ListFailed, RemarkEdited, DeleteStarted, DeleteFinished]


def reduce_catalog(state: CatalogState, event: CatalogEvent) -> CatalogState:
    if isinstance(event, ListRequested):
        # Cleared up front so a failed fetch never shows another game's list
        return replace(state, game_name=event.game_name, items=(), loading=True, error=None)
    if isinstance(event, ListLoaded):
        if event.game_name != state.game_name:
            return state
        return replace(state, items=tuple(event.items), loading=False, error=None)
    if isinstance(event, ListFailed):
        if event.game_name != state.game_name:
            return state
        return replace(state, items=(), loading=False, error=event.message)
    if isinstance(event, RemarkEdited):
        if event.game_name != state.game_name:
            return state
        items = tuple(replace(b, remark=event.remark) if b.file_name == event.file_name else b
                      for b in state.items)
        return replace(state, items=items)
    if isinstance(event, DeleteStarted):
        return replace(state, deleting=state.deleting | {event.file_name})
    if isinstance(event, DeleteFinished):
        deleting = state.deleting - {event.file_name}
        items = state.items
        if event.removed and event.game_name == state.game_name:
            items = tuple(b for b in items if b.file_name != event.file_name)
        return replace(state, deleting=deleting, items=items)
    raise TypeError(f"Unknown catalog event: {event!r}")


def normalize_remark(remark: Optional[str]) -> Optional[str]:
    if remark is None:
        return None
    remark = remark.strip()
    return remark or None


class DeleteInProgressError(Exception):
    """A delete of the same backup is still running."""


class BackupCatalog:
    def __init__(self, backend: SaveBackend, app_state: AppState,
                 on_error: Optional[Callable[[str, Exception], None]] = None):
        self.backend = backend
        self.app_state = app_state
        self.on_error = on_error
        self.state = CatalogState()

    def _dispatch(self, event: CatalogEvent) -> CatalogState:
        self.state = reduce_catalog(self.state, event)
        return self.state

    def is_deleting(self, file_name: str) -> bool:
        return file_name in self.state.deleting

    async def create_backup(self, game: GameEntry, remark: Optional[str] = None) -> BackupResponse:
        """Back up ``game``; the returned configuration replaces the local one."""
        response = await self.backend.backup_game(
            game.name, game.path, self.app_state.selected_steam_uid, normalize_remark(remark))
        self.app_state.set_config(response.config)
        logging.info(f"Backup created for '{game.name}': {response.file_name}")
        return response

    async def list_backups(self, game_name: str) -> Tuple[BackupEntry, ...]:
        """Fetch the game's backups. Failures are reported and leave an empty list."""
        self._dispatch(ListRequested(game_name))
        try:
            items = await self.backend.list_backups(game_name)
            self._dispatch(ListLoaded(game_name, tuple(items)))
        except BackendError as e:
            logging.error(f"Unable to list backups for '{game_name}': {e}")
            self._dispatch(ListFailed(game_name, str(e)))
            if self.on_error:
                self.on_error(f"Unable to list backups for '{game_name}'", e)
            return ()
        finally:
            # Unexpected errors still propagate, without leaving the list loading
            if self.state.loading and self.state.game_name == game_name:
                self._dispatch(ListFailed(game_name, "Backup listing was interrupted"))
        return self.state.items

    async def edit_remark(self, game_name: str, file_name: str, new_remark: str) -> None:
        await self.backend.update_backup_remark(game_name, file_name, new_remark)
        self._dispatch(RemarkEdited(game_name, file_name, new_remark if new_remark.strip() else None))

    async def delete_backup(self, game_name: str, file_name: str) -> None:
        """
        Delete (move to trash) one backup.

        Raises:
            DeleteInProgressError: When the same file is already being deleted
            BackendError: When the backend refuses; the list is left as is
        """
        if self.is_deleting(file_name):
            raise DeleteInProgressError(f"'{file_name}' is already being deleted")
        self._dispatch(DeleteStarted(file_name))
        removed = False
        try:
            await self.backend.delete_backup(game_name, file_name)
            removed = True
        finally:
            self._dispatch(DeleteFinished(game_name, file_name, removed))
        logging.info(f"Backup '{file_name}' deleted.")

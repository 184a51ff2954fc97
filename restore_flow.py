# restore_flow.py
# -*- coding: utf-8 -*-
"""
Restore state machine.

A restore goes through five stages in a fixed order. The backend reports a
failure as ``[STAGE_CODE] detail`` (or a ``RestoreStageError`` carrying the
code), which tells which stage broke: earlier stages are shown finished, the
failing one errored and the rest waiting.
"""

from dataclasses import dataclass, replace
from enum import Enum
import logging
import re
from typing import Optional, Tuple, Union

import config
from app_state import AppState
from models import BackupEntry, GameEntry
from save_backend import RestoreStageError, SaveBackend


class RestoreStage(Enum):
    CHECK = "check"
    EXTRA = "extra"
    DELETE = "delete"
    EXTRACT = "extract"
    UPDATE = "update"


class StageStatus(Enum):
    WAIT = "wait"
    PROCESS = "process"
    FINISH = "finish"
    ERROR = "error"


class RestoreResult(Enum):
    SUCCESS = "success"
    ERROR = "error"


STAGE_ORDER = tuple(RestoreStage)

STAGE_CODES = {
    "CHECK": RestoreStage.CHECK,
    "EXTRA_BACKUP": RestoreStage.EXTRA,
    "DELETE": RestoreStage.DELETE,
    "EXTRACT": RestoreStage.EXTRACT,
    "UPDATE_CONFIG": RestoreStage.UPDATE,
}

STAGE_TITLES = {
    RestoreStage.CHECK: "Check",
    RestoreStage.EXTRA: "Extra backup",
    RestoreStage.DELETE: "Delete old save",
    RestoreStage.EXTRACT: "Extract backup",
    RestoreStage.UPDATE: "Update config",
}

_ERROR_PREFIX_RE = re.compile(r"^\s*Error:\s*", re.IGNORECASE)
_STAGE_MESSAGE_RE = re.compile(r"^\[(.+?)\]\s*(.*)$", re.DOTALL)

Stages = Tuple[Tuple[RestoreStage, StageStatus], ...]


@dataclass(frozen=True)
class RestoreFailure:
    stage: Optional[RestoreStage]
    detail: str


def map_stage_code(code: str) -> Optional[RestoreStage]:
    return STAGE_CODES.get(code.strip().upper())


def parse_restore_error(message: str) -> RestoreFailure:
    """
    Split a backend failure message into stage and detail.

    An optional leading ``Error:`` marker is dropped first. Messages without a
    ``[CODE]`` prefix, or with an unknown code, have no stage. The detail is
    the text after the code, or the whole message when that is empty.
    """
    text = _ERROR_PREFIX_RE.sub("", str(message), count=1).strip()
    match = _STAGE_MESSAGE_RE.match(text)
    if not match:
        return RestoreFailure(stage=None, detail=text)
    detail = match.group(2).strip()
    return RestoreFailure(stage=map_stage_code(match.group(1)), detail=detail or text)


def failure_from_exception(exc: BaseException) -> RestoreFailure:
    if isinstance(exc, RestoreStageError):
        return RestoreFailure(stage=map_stage_code(exc.stage_code), detail=exc.detail or str(exc))
    return parse_restore_error(str(exc))


def initial_stages() -> Stages:
    return tuple((stage, StageStatus.WAIT) for stage in STAGE_ORDER)


def stages_for_failure(stage: Optional[RestoreStage]) -> Stages:
    if stage is None:
        return initial_stages()
    failed_index = STAGE_ORDER.index(stage)
    statuses = []
    for index, current in enumerate(STAGE_ORDER):
        if index < failed_index:
            statuses.append((current, StageStatus.FINISH))
        elif index == failed_index:
            statuses.append((current, StageStatus.ERROR))
        else:
            statuses.append((current, StageStatus.WAIT))
    return tuple(statuses)


@dataclass(frozen=True)
class RestoreState:
    open: bool = False
    stages: Stages = initial_stages()
    result: Optional[RestoreResult] = None
    note: str = ""
    detail: str = ""
    game_name: str = ""
    backup_name: str = ""

    def status_of(self, stage: RestoreStage) -> StageStatus:
        return dict(self.stages)[stage]

    @property
    def in_flight(self) -> bool:
        return self.open and self.result is None


# --- Events ---

@dataclass(frozen=True)
class RestoreOpened:
    game_name: str
    backup_name: str


@dataclass(frozen=True)
class RestoreSucceeded:
    pass


@dataclass(frozen=True)
class RestoreFailed:
    failure: RestoreFailure


@dataclass(frozen=True)
class RestoreClosed:
    pass


RestoreEvent = Union[RestoreOpened, RestoreSucceeded, RestoreFailed, RestoreClosed]


def reduce_restore(state: RestoreState, event: RestoreEvent) -> RestoreState:
    if isinstance(event, RestoreOpened):
        stages = ((RestoreStage.CHECK, StageStatus.PROCESS),) + initial_stages()[1:]
        return RestoreState(open=True, stages=stages, result=None, note=config.RESTORE_NOTE_RUNNING,
                            detail="", game_name=event.game_name, backup_name=event.backup_name)
    if isinstance(event, RestoreSucceeded):
        return replace(state, stages=tuple((s, StageStatus.FINISH) for s in STAGE_ORDER),
                       result=RestoreResult.SUCCESS, note=config.RESTORE_NOTE_DONE, detail="")
    if isinstance(event, RestoreFailed):
        return replace(state, stages=stages_for_failure(event.failure.stage),
                       result=RestoreResult.ERROR, note=config.RESTORE_NOTE_FAILED,
                       detail=event.failure.detail)
    if isinstance(event, RestoreClosed):
        if state.result is None:
            return state
        return RestoreState()
    raise TypeError(f"Unknown restore event: {event!r}")


class RestoreInProgressError(Exception):
    """Another restore is still running."""


class RestoreOrchestrator:
    def __init__(self, backend: SaveBackend, app_state: AppState):
        self.backend = backend
        self.app_state = app_state
        self.state = RestoreState()

    def _dispatch(self, event: RestoreEvent) -> RestoreState:
        self.state = reduce_restore(self.state, event)
        return self.state

    @property
    def busy(self) -> bool:
        return self.state.in_flight

    async def restore(self, game: GameEntry, backup: BackupEntry) -> RestoreState:
        """
        Restore ``backup`` over ``game``'s save folder with a single backend call.

        Failures are not raised; they end up in the returned state.

        Raises:
            RestoreInProgressError: When a restore is already running
        """
        if self.busy:
            raise RestoreInProgressError("A restore is already in progress")

        self._dispatch(RestoreOpened(game.name, backup.file_name))
        logging.info(f"Restoring '{backup.file_name}' for '{game.name}'")
        try:
            response = await self.backend.restore_backup(
                game.name, game.path, backup.file_path, self.app_state.selected_steam_uid)
        except Exception as e:
            failure = failure_from_exception(e)
            logging.error(f"Restore of '{game.name}' failed at stage "
                          f"{failure.stage.value if failure.stage else 'unknown'}: {failure.detail}")
            return self._dispatch(RestoreFailed(failure))

        self.app_state.set_config(response.config)
        self._dispatch(RestoreSucceeded())
        await self.app_state.refresh_path_state()
        return self.state

    def close(self) -> bool:
        """Dismiss a finished restore. Returns False while it is still running."""
        if self.state.result is None:
            return False
        self._dispatch(RestoreClosed())
        return True

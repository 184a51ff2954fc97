# models.py
# -*- coding: utf-8 -*-
"""
Shared data types for GameSL.

Everything coming back from a backend is wrapped in these frozen dataclasses.
The on-disk / wire representation uses camelCase keys, so each type carries
``from_dict`` / ``to_dict`` helpers for that mapping.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import config

# Where a backup timestamp came from
TIME_SOURCE_FILE_NAME = "file-name"
TIME_SOURCE_MODIFIED_TIME = "modified-time"
TIME_SOURCE_UNKNOWN = "unknown"


@dataclass(frozen=True)
class GameEntry:
    """A tracked game. ``path`` is a template that may contain placeholders."""
    name: str
    path: str
    icon: str = ""
    last_save: Optional[int] = None
    type: Optional[str] = None

    @property
    def is_steam(self) -> bool:
        return self.type == config.GAME_TYPE_STEAM

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameEntry":
        last_save = data.get("lastSave")
        return cls(
            name=str(data["name"]),
            path=str(data.get("path", "")),
            icon=str(data.get("icon") or ""),
            last_save=int(last_save) if isinstance(last_save, (int, float)) and not isinstance(last_save, bool) else None,
            type=data.get("type") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "path": self.path, "icon": self.icon}
        if self.last_save is not None:
            data["lastSave"] = self.last_save
        if self.type:
            data["type"] = self.type
        return data


@dataclass(frozen=True)
class AppConfig:
    """The whole configuration. Always replaced wholesale, never patched."""
    settings: Dict[str, Any] = field(default_factory=dict)
    games: Tuple[GameEntry, ...] = ()
    version: int = config.CONFIG_VERSION

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        settings = data.get("settings") or {}
        if not isinstance(settings, dict):
            raise ValueError("'settings' must be an object")
        games_raw = data.get("games") or []
        if not isinstance(games_raw, list):
            raise ValueError("'games' must be a list")
        version = data.get("version", config.CONFIG_VERSION)
        return cls(
            settings=dict(settings),
            games=tuple(GameEntry.from_dict(g) for g in games_raw),
            version=int(version),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "settings": dict(self.settings),
            "games": [g.to_dict() for g in self.games],
            "version": self.version,
        }

    def game_names(self) -> List[str]:
        return [g.name for g in self.games]

    def find_game(self, name: str) -> Optional[GameEntry]:
        for game in self.games:
            if game.name == name:
                return game
        return None


@dataclass(frozen=True)
class BackupEntry:
    file_name: str
    file_path: str
    timestamp: Optional[int] = None
    remark: Optional[str] = None
    size: int = 0
    time_source: str = TIME_SOURCE_UNKNOWN

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackupEntry":
        return cls(
            file_name=data["fileName"],
            file_path=data["filePath"],
            timestamp=data.get("timestamp"),
            remark=data.get("remark"),
            size=int(data.get("size", 0)),
            time_source=data.get("timeSource", TIME_SOURCE_UNKNOWN),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fileName": self.file_name,
            "filePath": self.file_path,
            "timestamp": self.timestamp,
            "remark": self.remark,
            "size": self.size,
            "timeSource": self.time_source,
        }


@dataclass(frozen=True)
class BackupResponse:
    file_name: str
    file_path: str
    timestamp: int
    config: AppConfig
    remark_path: Optional[str] = None


@dataclass(frozen=True)
class RestoreResponse:
    config: AppConfig


@dataclass(frozen=True)
class PathState:
    exists: bool
    resolved: str


@dataclass(frozen=True)
class TemplateEnv:
    """Values substituted into save path templates."""
    user_folder: str = ""
    steam_dir: Optional[str] = None
    steam_uid: Optional[str] = None


@dataclass(frozen=True)
class ConfigSnapshot:
    """The current configuration plus a counter bumped on every replacement."""
    config: Optional[AppConfig] = None
    generation: int = 0

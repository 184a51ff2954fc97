# settings_manager.py
"""
Reads and writes ``config.json`` in the work directory.

Every mutating helper returns the freshly written ``AppConfig`` so callers can
hand the authoritative configuration back to the client. Read-modify-write
cycles are serialized with a module lock because the local backend runs them
on worker threads.
"""

import copy
import json
import logging
import os
import threading

import config
from models import AppConfig

DEFAULT_CONFIG = {
    "settings": dict(config.DEFAULT_SETTINGS),
    "games": [],
    "version": config.CONFIG_VERSION,
}

_config_lock = threading.RLock()


class ConfigError(Exception):
    """Raised when config.json cannot be read, parsed or written."""


def get_default_work_dir() -> str:
    return config.get_app_data_folder()


def get_config_path(work_dir: str) -> str:
    return os.path.join(work_dir, config.CONFIG_FILENAME)


def ensure_settings_defaults(data: dict) -> bool:
    """
    Fill missing setting keys with their defaults.

    Returns:
        True if ``data`` was changed and should be written back
    """
    settings = data.get("settings")
    if not isinstance(settings, dict):
        settings = {}
        data["settings"] = settings
        changed = True
    else:
        changed = False

    for key, default_value in config.DEFAULT_SETTINGS.items():
        if key not in settings:
            settings[key] = default_value
            changed = True
    return changed


def _write_config_data(data: dict, work_dir: str) -> None:
    """Write to a temp file first, then replace, so a crash never leaves half a file."""
    config_path = get_config_path(work_dir)
    temp_path = config_path + ".tmp"
    try:
        os.makedirs(work_dir, exist_ok=True)
        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(temp_path, config_path)
    except OSError as e:
        try:
            if os.path.exists(temp_path):
                os.remove(temp_path)
        except OSError:
            logging.debug(f"Unable to remove temp config file '{temp_path}'")
        raise ConfigError(f"Unable to write '{config_path}': {e}") from e
    logging.debug(f"Configuration saved to '{config_path}'.")


def _read_config_data(work_dir: str) -> dict:
    config_path = get_config_path(work_dir)

    if not os.path.exists(config_path):
        logging.info(f"Configuration file '{config_path}' not found, creating default configuration.")
        data = copy.deepcopy(DEFAULT_CONFIG)
        _write_config_data(data, work_dir)
        return data

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in '{config_path}': {e}") from e
    except OSError as e:
        raise ConfigError(f"Unable to read '{config_path}': {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"'{config_path}' does not contain a JSON object")

    if ensure_settings_defaults(data):
        logging.info("Missing settings filled with defaults, writing configuration back.")
        _write_config_data(data, work_dir)
    return data


def _to_app_config(data: dict) -> AppConfig:
    try:
        return AppConfig.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Malformed configuration: {e}") from e


def load_config(work_dir: str) -> AppConfig:
    """Load config.json, creating it from the defaults when missing."""
    with _config_lock:
        return _to_app_config(_read_config_data(work_dir))


def update_setting(key: str, value, work_dir: str) -> AppConfig:
    with _config_lock:
        data = _read_config_data(work_dir)
        data["settings"][key] = value
        _write_config_data(data, work_dir)
        logging.info(f"Setting '{key}' updated to {value!r}.")
        return _to_app_config(data)


def update_last_save(game_name: str, timestamp_ms: int, work_dir: str) -> AppConfig:
    """Record ``timestamp_ms`` as the game's last save. Unknown games are left untouched."""
    with _config_lock:
        data = _read_config_data(work_dir)
        found = False
        for game in data.get("games", []):
            if game.get("name") == game_name:
                game["lastSave"] = timestamp_ms
                found = True
                break
        if found:
            _write_config_data(data, work_dir)
        else:
            logging.warning(f"update_last_save: game '{game_name}' not found in configuration.")
        return _to_app_config(data)


def reorder_games(order: list, work_dir: str) -> AppConfig:
    """
    Reorder the games list.

    Games named in ``order`` come first, in that order. Games missing from
    ``order`` keep their relative order and are appended after them. Unknown
    names are ignored, so the result is always a permutation of the stored list.

    Args:
        order: Game names in the desired order
        work_dir: Folder holding config.json

    Returns:
        The updated configuration
    """
    with _config_lock:
        data = _read_config_data(work_dir)
        games = data.get("games", [])
        by_name = {g.get("name"): g for g in games}

        reordered = []
        used = set()
        for name in order:
            if name in by_name and name not in used:
                reordered.append(by_name[name])
                used.add(name)
        for game in games:
            if game.get("name") not in used:
                reordered.append(game)

        data["games"] = reordered
        _write_config_data(data, work_dir)
        logging.info(f"Games reordered ({len(reordered)} entries).")
        return _to_app_config(data)

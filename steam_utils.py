# steam_utils.py
# -*- coding: utf-8 -*-
"""
Steam detection utilities.

This module provides functions to:
- Find the Steam installation path across Windows, Linux, and macOS
- List the Steam account ids (SteamID3 folder names under userdata)
- Read the account display names from loginusers.vdf
"""

import logging
import os
import platform
from datetime import datetime

import vdf

# --- Cache Variables ---
_steam_install_path = None

# Constant for SteamID3 <-> SteamID64 conversion
STEAM_ID64_BASE = 76561197960265728


def _parse_vdf(file_path: str) -> dict:
    """
    Parse a Valve Data Format (VDF) file such as loginusers.vdf.

    Args:
        file_path: Path to the VDF file

    Returns:
        Parsed dictionary, or None if the file is missing or unreadable
    """
    if not os.path.isfile(file_path):
        return None

    for encoding in ('utf-8', 'latin-1'):
        try:
            with open(file_path, 'r', encoding=encoding) as f:
                content = f.read()
            # Remove C-style comments if present
            content = '\n'.join(line for line in content.splitlines() if not line.strip().startswith('//'))
            return vdf.loads(content, mapper=dict)
        except UnicodeDecodeError:
            logging.warning(f"Encoding error reading VDF '{os.path.basename(file_path)}' as {encoding}.")
        except (OSError, SyntaxError, ValueError) as e:
            logging.error(f"ERROR parsing VDF '{os.path.basename(file_path)}': {e}")
            return None
    return None


def get_steam_install_path() -> str:
    """
    Find the Steam installation path.

    Searches for Steam installation in:
    - Windows: Registry (HKCU and HKLM)
    - Linux: ~/.local/share/Steam, ~/.steam/steam, ~/.steam/root, Flatpak
    - macOS: ~/Library/Application Support/Steam

    Results are cached.

    Returns:
        Steam installation path as string, or None if not found
    """
    global _steam_install_path

    if _steam_install_path is not None:
        return _steam_install_path

    current_os = platform.system()
    found_path = None

    if current_os == "Windows":
        found_path = _find_steam_windows()
    elif current_os == "Linux":
        found_path = _find_steam_linux()
    elif current_os == "Darwin":
        found_path = _find_steam_macos()
    else:
        logging.info(f"Steam path detection for OS '{current_os}' is not implemented.")

    if found_path:
        _steam_install_path = found_path
        return _steam_install_path

    logging.warning("Steam installation path could not be determined.")
    return None


def _find_steam_windows() -> str:
    """Find Steam installation on Windows via registry."""
    try:
        import winreg
    except ImportError:
        logging.info("winreg module not available (normal for non-Windows).")
        return None

    key_path = r"Software\Valve\Steam"
    potential_hives = [
        (winreg.HKEY_CURRENT_USER, "HKCU"),
        (winreg.HKEY_LOCAL_MACHINE, "HKLM"),
    ]

    for hive, hive_name in potential_hives:
        try:
            with winreg.OpenKey(hive, key_path) as hkey:
                path_value, _ = winreg.QueryValueEx(hkey, "SteamPath")
        except OSError:
            logging.debug(f"SteamPath not found in registry hive: {hive_name}\\{key_path}")
            continue

        norm_path = os.path.normpath(path_value.replace('/', '\\'))
        if os.path.isdir(norm_path):
            logging.info(f"Found Steam installation ({hive_name}) via registry: {norm_path}")
            return norm_path

    logging.warning("Steam installation not found in Windows registry.")
    return None


def _find_steam_linux() -> str:
    """Find Steam installation on Linux."""
    common_linux_paths = [
        os.path.expanduser("~/.local/share/Steam"),
        os.path.expanduser("~/.steam/steam"),
        os.path.expanduser("~/.steam/root"),
        os.path.expanduser("~/.var/app/com.valvesoftware.Steam/data/Steam")  # Flatpak
    ]

    for path_to_check in common_linux_paths:
        if not os.path.isdir(path_to_check):
            continue

        has_steam_sh = os.path.exists(os.path.join(path_to_check, "steam.sh"))
        has_steamapps = os.path.isdir(os.path.join(path_to_check, "steamapps"))
        has_userdata = os.path.isdir(os.path.join(path_to_check, "userdata"))
        has_config_vdf = os.path.exists(os.path.join(path_to_check, "config", "config.vdf"))

        if (has_steamapps and has_userdata) or has_config_vdf or has_steam_sh:
            found_path = os.path.normpath(path_to_check)
            logging.info(f"Found Steam installation on Linux at: {found_path}")
            return found_path
        logging.debug(f"No clear Steam indicators found in {path_to_check}")

    logging.warning("Steam installation not found in common Linux paths.")
    return None


def _find_steam_macos() -> str:
    """Find Steam installation on macOS."""
    path_to_check = os.path.expanduser("~/Library/Application Support/Steam")
    if os.path.isdir(os.path.join(path_to_check, "steamapps")) and os.path.isdir(os.path.join(path_to_check, "userdata")):
        found_path = os.path.normpath(path_to_check)
        logging.info(f"Found Steam installation on macOS at: {found_path}")
        return found_path

    logging.warning("Steam installation not found in common macOS paths.")
    return None


def _user_folder_mtime(user_path: str) -> float:
    """Last activity of a userdata folder: localconfig.vdf if present, else the folder itself."""
    latest = 0.0
    for check_path in (os.path.join(user_path, 'config', 'localconfig.vdf'), user_path):
        try:
            latest = max(latest, os.path.getmtime(check_path))
        except OSError:
            continue
    return latest


def list_steam_uids(steam_path: str = None) -> list:
    """
    List the Steam account ids found under ``<steam>/userdata``.

    Only numeric folder names count, and ``0`` is skipped. The most recently
    used account comes first.

    Returns:
        List of SteamID3 strings (empty when Steam or userdata is missing)
    """
    steam_path = steam_path or get_steam_install_path()
    if not steam_path:
        return []

    userdata_base = os.path.join(steam_path, 'userdata')
    if not os.path.isdir(userdata_base):
        logging.warning(f"Steam 'userdata' folder not found in '{steam_path}'.")
        return []

    found = []
    try:
        for entry in os.listdir(userdata_base):
            user_path = os.path.join(userdata_base, entry)
            if entry.isdigit() and entry != '0' and os.path.isdir(user_path):
                found.append((_user_folder_mtime(user_path), entry))
    except OSError as e:
        logging.error(f"ERROR scanning 'userdata': {e}")
        return []

    found.sort(key=lambda item: (-item[0], item[1]))
    uids = [uid for _mtime, uid in found]
    logging.info(f"Found {len(uids)} Steam account id(s) in userdata.")
    return uids


def _read_login_users(steam_path: str) -> dict:
    """
    Read persona names from loginusers.vdf.

    Returns:
        Dictionary mapping SteamID64 to PersonaName
    """
    user_persona_names = {}
    loginusers_path = os.path.join(steam_path, 'config', 'loginusers.vdf')
    logging.debug(f"Reading profile names from: {loginusers_path}")

    loginusers_data = _parse_vdf(loginusers_path)
    if loginusers_data and 'users' in loginusers_data:
        for steam_id64_str, user_data in loginusers_data['users'].items():
            if isinstance(user_data, dict) and 'PersonaName' in user_data:
                user_persona_names[steam_id64_str] = user_data['PersonaName']
    else:
        logging.warning("'loginusers.vdf' missing, empty or not recognized.")

    return user_persona_names


def get_steam_account_details(steam_path: str = None) -> dict:
    """
    Describe every Steam account found in userdata.

    Returns:
        Dict mapping SteamID3 to {'display_name', 'last_mod_str'}, in the
        same order as ``list_steam_uids``
    """
    steam_root = steam_path or get_steam_install_path()
    if not steam_root:
        return {}

    persona_names = _read_login_users(steam_root)
    details = {}
    for uid in list_steam_uids(steam_root):
        steam_id64_str = str(int(uid) + STEAM_ID64_BASE)
        mtime = _user_folder_mtime(os.path.join(steam_root, 'userdata', uid))
        details[uid] = {
            'display_name': persona_names.get(steam_id64_str, f"ID: {uid}"),
            'last_mod_str': datetime.fromtimestamp(mtime).strftime('%d/%m/%Y %H:%M') if mtime else "N/D",
        }

    return details

# path_template.py
# -*- coding: utf-8 -*-
"""
Save path templates.

A game's save location is stored as a template such as
``{AppData}\\LocalLow\\Studio\\Game`` or ``{Steam}\\userdata\\{SteamUID}\\123``.
``resolve_template`` turns a template into a concrete path for display and
checks. The local backend resolves with the very same function through
``resolve_for_machine`` so both sides always agree on the placeholder set.
"""

import logging
import os
import re
from typing import List, Optional

from models import TemplateEnv

PLACEHOLDER_APPDATA = "{AppData}"
PLACEHOLDER_USER_FOLDER = "{UserFolder}"
PLACEHOLDER_HOME = "{Home}"
PLACEHOLDER_STEAM = "{Steam}"
PLACEHOLDER_STEAM_UID = "{SteamUID}"

KNOWN_PLACEHOLDERS = (
    PLACEHOLDER_APPDATA,
    PLACEHOLDER_USER_FOLDER,
    PLACEHOLDER_HOME,
    PLACEHOLDER_STEAM,
    PLACEHOLDER_STEAM_UID,
)

_KNOWN_PLACEHOLDER_RE = re.compile("|".join(re.escape(p) for p in KNOWN_PLACEHOLDERS))


class TemplateError(ValueError):
    """Raised when a template cannot be turned into a concrete path."""


def resolve_template(template: str, env: TemplateEnv) -> str:
    """
    Substitute the known placeholders of ``template`` using ``env``.

    Substitution order is fixed: user folder based placeholders first, then
    ``{Steam}``, then ``{SteamUID}``. A placeholder whose source value is
    empty is left verbatim, as is anything that is not a known placeholder.

    Args:
        template: The save path template
        env: User folder, Steam directory and selected Steam account id

    Returns:
        The template with every occurrence of each available placeholder replaced
    """
    result = template
    if env.user_folder:
        result = result.replace(PLACEHOLDER_APPDATA, env.user_folder + "\\AppData")
        result = result.replace(PLACEHOLDER_USER_FOLDER, env.user_folder)
        result = result.replace(PLACEHOLDER_HOME, env.user_folder)
    if env.steam_dir:
        result = result.replace(PLACEHOLDER_STEAM, env.steam_dir)
    if env.steam_uid:
        result = result.replace(PLACEHOLDER_STEAM_UID, env.steam_uid)
    return result


def unresolved_placeholders(path: str) -> List[str]:
    """Return the known placeholders still present in ``path`` (in order, no duplicates)."""
    found = []
    for match in _KNOWN_PLACEHOLDER_RE.findall(path):
        if match not in found:
            found.append(match)
    return found


def requires_steam_uid(template: str) -> bool:
    return PLACEHOLDER_STEAM_UID in template


def to_native_path(path: str) -> str:
    """Templates are written with Windows separators; use the host separator."""
    if os.sep != "\\":
        path = path.replace("\\", os.sep)
    return os.path.normpath(path) if path else path


def get_user_home() -> str:
    """User home folder: USERPROFILE on Windows, HOME elsewhere."""
    home = os.environ.get("USERPROFILE") or os.environ.get("HOME")
    if not home:
        raise TemplateError("Unable to determine the user folder (USERPROFILE/HOME not set)")
    return home


def machine_env(template: str, steam_uid: Optional[str] = None) -> TemplateEnv:
    """Build the environment of this machine for ``template``.

    The Steam directory is only looked up when the template needs it.
    """
    steam_dir = None
    if PLACEHOLDER_STEAM in template:
        import steam_utils
        steam_dir = steam_utils.get_steam_install_path()
    return TemplateEnv(user_folder=get_user_home(), steam_dir=steam_dir, steam_uid=steam_uid or None)


def resolve_for_machine(template: str, steam_uid: Optional[str] = None) -> str:
    """
    Resolve ``template`` against this machine and return a native path.

    Raises:
        TemplateError: If the user folder is unknown or a placeholder stays unresolved
    """
    env = machine_env(template, steam_uid)
    resolved = resolve_template(template, env)
    missing = unresolved_placeholders(resolved)
    if missing:
        if PLACEHOLDER_STEAM_UID in missing and not steam_uid:
            raise TemplateError(f"Missing Steam account id for template '{template}'")
        if PLACEHOLDER_STEAM in missing:
            raise TemplateError("Steam installation not found, cannot resolve {Steam}")
        raise TemplateError(f"Unresolved placeholder(s) {', '.join(missing)} in '{template}'")
    native = to_native_path(resolved)
    logging.debug(f"Resolved template '{template}' -> '{native}'")
    return native

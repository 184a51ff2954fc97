# core_logic.py
# -*- coding: utf-8 -*-
"""
Filesystem work behind the local backend: zip backups, remark sidecars,
the recoverable trash folder and the staged restore.
"""

from datetime import datetime
import json
import logging
import os
import platform
import re
import shutil
import zipfile

import config
from models import (BackupEntry, TIME_SOURCE_FILE_NAME, TIME_SOURCE_MODIFIED_TIME,
                    TIME_SOURCE_UNKNOWN)
from utils import sanitize_filename

# --- Restore stage codes (prefix of restore error messages) ---
STAGE_CHECK = "CHECK"
STAGE_EXTRA_BACKUP = "EXTRA_BACKUP"
STAGE_DELETE = "DELETE"
STAGE_EXTRACT = "EXTRACT"
STAGE_UPDATE_CONFIG = "UPDATE_CONFIG"

_TIMESTAMP_RE = re.compile(r"-Backup-(\d{8}-\d{6})(?:-\d+)?\.[^.]+$")


class BackupError(Exception):
    """A backup, listing, remark or delete operation failed."""


class RestoreStageError(Exception):
    """A restore failed at ``stage``. ``str()`` gives ``[STAGE] detail``."""

    def __init__(self, stage: str, detail: str):
        super().__init__(f"[{stage}] {detail}")
        self.stage = stage
        self.detail = detail


# --- Naming helpers ---

def backup_prefix(game_name: str) -> str:
    return f"{sanitize_filename(game_name)}{config.BACKUP_NAME_MARKER}"


def ensure_backup_dir(work_dir: str) -> str:
    backup_dir = os.path.join(work_dir, config.BACKUP_DIR_NAME)
    try:
        os.makedirs(backup_dir, exist_ok=True)
    except OSError as e:
        raise BackupError(f"Unable to create backup directory '{backup_dir}': {e}") from e
    return backup_dir


def parse_timestamp_from_name(file_name: str):
    """Millis from '<game>-Backup-YYYYMMDD-HHMMSS[-N].ext' (local time), or None."""
    match = _TIMESTAMP_RE.search(file_name)
    if not match:
        return None
    try:
        dt = datetime.strptime(match.group(1), config.BACKUP_TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return int(dt.timestamp() * 1000)


def file_modified_millis(path: str):
    try:
        return int(os.path.getmtime(path) * 1000)
    except OSError:
        return None


def _remark_path_for(archive_path: str) -> str:
    return os.path.splitext(archive_path)[0] + config.REMARK_EXTENSION


def _unique_archive_path(backup_dir: str, file_stem: str) -> str:
    archive_path = os.path.join(backup_dir, f"{file_stem}.zip")
    counter = 1
    while os.path.exists(archive_path):
        archive_path = os.path.join(backup_dir, f"{file_stem}-{counter}.zip")
        counter += 1
    return archive_path


# --- Zip helpers ---

def _is_safe_zip_path(member_path: str, target_dir: str) -> bool:
    """
    Check that a ZIP member stays inside ``target_dir`` once extracted (Zip Slip).

    Args:
        member_path: The path of the file inside the ZIP archive
        target_dir: The target extraction directory

    Returns:
        True if the path is safe, False if it could escape the target directory
    """
    abs_target = os.path.abspath(target_dir)
    normalized_member = member_path.replace('/', os.sep)
    full_path = os.path.normpath(os.path.join(abs_target, normalized_member))
    return full_path.startswith(abs_target + os.sep) or full_path == abs_target


def _safe_extractall(zipf: zipfile.ZipFile, target_dir: str, skip=()) -> tuple:
    """
    Extract every member except ``skip``, refusing unsafe paths.

    Returns:
        Tuple (success: bool, blocked_paths: list, error_messages: list)
    """
    blocked_paths = []
    error_messages = []

    for member in zipf.namelist():
        if member in skip:
            continue
        if not _is_safe_zip_path(member, target_dir):
            blocked_paths.append(member)
            logging.error(f"SECURITY: Blocked unsafe ZIP path: '{member}'")
            continue
        try:
            zipf.extract(member, target_dir)
        except (OSError, zipfile.BadZipFile) as e:
            error_messages.append(f"Error extracting '{member}': {e}")
            logging.error(f"Error extracting '{member}': {e}")

    if blocked_paths:
        logging.warning(f"Blocked {len(blocked_paths)} potentially malicious paths in ZIP archive")
    return not blocked_paths and not error_messages, blocked_paths, error_messages


def _add_directory_to_zip(zipf: zipfile.ZipFile, source_path: str) -> int:
    """
    Add the contents of a directory, with member names relative to it.

    Returns:
        Number of files written
    """
    count = 0
    for foldername, subfolders, filenames in os.walk(source_path):
        rel_folder = os.path.relpath(foldername, source_path)
        if rel_folder != "." and not filenames and not subfolders:
            # Keep empty folders
            zipf.writestr(rel_folder.replace(os.sep, "/") + "/", "")
        for filename in filenames:
            file_path_absolute = os.path.join(foldername, filename)
            arcname = os.path.relpath(file_path_absolute, source_path).replace(os.sep, "/")
            logging.debug(f"  Adding file: '{file_path_absolute}' as '{arcname}'")
            try:
                zipf.write(file_path_absolute, arcname=arcname)
                count += 1
            except FileNotFoundError:
                logging.warning(f"  Skipped file (not found during walk): '{file_path_absolute}'")
    return count


def _write_backup_manifest(zipf: zipfile.ZipFile, game_name: str, source_path: str) -> None:
    """Write a manifest.json so the archive describes itself."""
    manifest_data = {
        "schema": 1,
        "app_version": config.APP_VERSION,
        "created_at": datetime.now().isoformat(),
        "game_name": game_name,
        "source_path": source_path,
        "source_type": config.SOURCE_TYPE_DIR if os.path.isdir(source_path) else config.SOURCE_TYPE_FILE,
        "platform": platform.system(),
    }
    zipf.writestr(config.MANIFEST_ARCNAME, json.dumps(manifest_data, indent=2, ensure_ascii=False))


def read_manifest_from_zip(zip_path: str) -> dict:
    """Return the archive manifest, or an empty dict when absent/unreadable."""
    try:
        with zipfile.ZipFile(zip_path, 'r') as zipf:
            if config.MANIFEST_ARCNAME not in zipf.namelist():
                return {}
            return json.loads(zipf.read(config.MANIFEST_ARCNAME).decode('utf-8'))
    except (OSError, zipfile.BadZipFile, ValueError) as e:
        logging.warning(f"Unable to read manifest from '{zip_path}': {e}")
        return {}


# --- Backup ---

def perform_backup(game_name, source_path, backup_dir, remark=None):
    """
    Zip ``source_path`` into ``backup_dir``.

    Args:
        game_name: Game the backup belongs to
        source_path: Resolved save folder (or single save file)
        backup_dir: Folder receiving the archive
        remark: Optional note stored in the same-stem .txt file

    Returns:
        Dict with file_name, file_path, timestamp (millis) and remark_path

    Raises:
        BackupError: If the source is missing or the archive cannot be written
    """
    logging.info(f"Starting backup for '{game_name}' from '{source_path}'")
    if not os.path.exists(source_path):
        raise BackupError(f"Save path does not exist, nothing to back up: '{source_path}'")

    now = datetime.now()
    file_stem = f"{backup_prefix(game_name)}-{now.strftime(config.BACKUP_TIMESTAMP_FORMAT)}"
    archive_path = _unique_archive_path(backup_dir, file_stem)
    timestamp_ms = int(now.timestamp() * 1000)

    try:
        with zipfile.ZipFile(archive_path, 'w', compression=zipfile.ZIP_DEFLATED) as zipf:
            _write_backup_manifest(zipf, game_name, source_path)
            if os.path.isdir(source_path):
                count = _add_directory_to_zip(zipf, source_path)
            else:
                zipf.write(source_path, arcname=os.path.basename(source_path))
                count = 1
        logging.info(f"Backup archive created ({count} file(s)): '{archive_path}'")
    except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        try:
            if os.path.exists(archive_path):
                os.remove(archive_path)
                logging.warning(f"Incomplete archive deleted: {archive_path}")
        except OSError as del_e:
            logging.error(f"Unable to delete incomplete archive '{archive_path}': {del_e}")
        raise BackupError(f"Error creating backup archive '{archive_path}': {e}") from e

    remark_path = None
    if remark:
        remark_path = _remark_path_for(archive_path)
        try:
            with open(remark_path, 'w', encoding='utf-8') as f:
                f.write(remark)
        except OSError as e:
            raise BackupError(f"Unable to write remark '{remark_path}': {e}") from e

    return {
        "file_name": os.path.basename(archive_path),
        "file_path": archive_path,
        "timestamp": timestamp_ms,
        "remark_path": remark_path,
    }


def list_backups(game_name, backup_dir):
    """List the game's archives, newest first. A missing folder means no backups."""
    prefix = backup_prefix(game_name)
    try:
        names = os.listdir(backup_dir)
    except FileNotFoundError:
        return []
    except OSError as e:
        raise BackupError(f"Unable to read backup directory '{backup_dir}': {e}") from e

    backups = []
    for file_name in names:
        file_path = os.path.join(backup_dir, file_name)
        if not os.path.isfile(file_path):
            continue
        if not file_name.lower().endswith(config.BACKUP_EXTENSIONS) or not file_name.startswith(prefix):
            continue

        timestamp = parse_timestamp_from_name(file_name)
        if timestamp is not None:
            time_source = TIME_SOURCE_FILE_NAME
        else:
            timestamp = file_modified_millis(file_path)
            time_source = TIME_SOURCE_MODIFIED_TIME if timestamp is not None else TIME_SOURCE_UNKNOWN

        remark = None
        remark_path = _remark_path_for(file_path)
        if os.path.isfile(remark_path):
            try:
                with open(remark_path, 'r', encoding='utf-8') as f:
                    remark = f.read()
            except (OSError, UnicodeDecodeError) as e:
                logging.warning(f"Unable to read remark '{remark_path}': {e}")

        try:
            size = os.path.getsize(file_path)
        except OSError:
            size = 0

        backups.append(BackupEntry(file_name=file_name, file_path=file_path, timestamp=timestamp,
                                   remark=remark, size=size, time_source=time_source))

    backups.sort(key=lambda b: (b.timestamp is not None, b.timestamp or 0), reverse=True)
    return backups


def _archive_for_game(game_name, file_name, backup_dir):
    if os.path.basename(file_name) != file_name or not file_name.startswith(backup_prefix(game_name)):
        raise BackupError(f"Backup '{file_name}' does not belong to game '{game_name}'")
    archive_path = os.path.join(backup_dir, file_name)
    if not os.path.isfile(archive_path):
        raise BackupError(f"Backup file not found: '{file_name}'")
    return archive_path


def update_backup_remark(game_name, file_name, remark, backup_dir):
    """Write the remark sidecar; a blank remark removes it."""
    archive_path = _archive_for_game(game_name, file_name, backup_dir)
    remark_path = _remark_path_for(archive_path)
    try:
        if not remark or not remark.strip():
            if os.path.exists(remark_path):
                os.remove(remark_path)
                logging.info(f"Remark removed for '{file_name}'")
            return
        with open(remark_path, 'w', encoding='utf-8') as f:
            f.write(remark)
        logging.info(f"Remark updated for '{file_name}'")
    except OSError as e:
        raise BackupError(f"Unable to update remark for '{file_name}': {e}") from e


def _move_to_trash(path, trash_dir):
    target = os.path.join(trash_dir, os.path.basename(path))
    stem, ext = os.path.splitext(target)
    counter = 1
    while os.path.exists(target):
        target = f"{stem} ({counter}){ext}"
        counter += 1
    shutil.move(path, target)
    return target


def delete_backup(game_name, file_name, backup_dir):
    """Move an archive and its remark into the trash folder (recoverable)."""
    archive_path = _archive_for_game(game_name, file_name, backup_dir)
    trash_dir = os.path.join(backup_dir, config.TRASH_DIR_NAME)
    try:
        os.makedirs(trash_dir, exist_ok=True)
        moved = _move_to_trash(archive_path, trash_dir)
        remark_path = _remark_path_for(archive_path)
        if os.path.exists(remark_path):
            _move_to_trash(remark_path, trash_dir)
    except OSError as e:
        raise BackupError(f"Unable to move '{file_name}' to trash: {e}") from e
    logging.info(f"Backup '{file_name}' moved to trash: '{moved}'")
    return moved


# --- Restore ---

def _validate_restore_archive(archive_path: str) -> tuple:
    """
    Validate that the archive exists and is a valid ZIP file.

    Returns:
        Tuple (success: bool, error_message: str or None)
    """
    if not os.path.isfile(archive_path):
        return False, f"Restore archive not found: '{archive_path}'"
    if not zipfile.is_zipfile(archive_path):
        return False, f"The selected file is not a valid ZIP archive: '{archive_path}'"
    return True, None


def _cleanup_destination_path(dest_path: str) -> tuple:
    """
    Empty the destination before restoring; create its parent when missing.

    Returns:
        Tuple (success: bool, error_message: str or None)
    """
    parent_dir = os.path.dirname(dest_path)
    try:
        if parent_dir and not os.path.exists(parent_dir):
            logging.info(f"Creating missing parent directory: '{parent_dir}'")
            os.makedirs(parent_dir, exist_ok=True)
    except OSError as e:
        return False, f"Error creating parent directory '{parent_dir}': {e}"

    if os.path.isdir(dest_path):
        logging.warning(f"Removing contents of existing directory: '{dest_path}'")
        try:
            for item in os.listdir(dest_path):
                item_path = os.path.join(dest_path, item)
                if os.path.isdir(item_path) and not os.path.islink(item_path):
                    shutil.rmtree(item_path)
                else:
                    os.remove(item_path)
        except OSError as e:
            return False, f"Error cleaning destination directory '{dest_path}': {e}"
    elif os.path.isfile(dest_path):
        try:
            os.remove(dest_path)
        except OSError as e:
            return False, f"Error removing destination file '{dest_path}': {e}"
    return True, None


def _extract_single_file(zipf: zipfile.ZipFile, dest_path: str, skip=()) -> tuple:
    """
    Write the archive's only file to ``dest_path`` (save path pointing at a file).

    Returns:
        Tuple (success: bool, error_message: str or None)
    """
    members = [info for info in zipf.infolist() if info.filename not in skip and not info.is_dir()]
    if len(members) != 1:
        return False, f"Expected a single file in the archive, found {len(members)}"
    try:
        with zipf.open(members[0]) as source, open(dest_path, 'wb') as target:
            shutil.copyfileobj(source, target)
    except (OSError, zipfile.BadZipFile) as e:
        return False, f"Error extracting '{members[0].filename}' to '{dest_path}': {e}"
    return True, None


def _is_single_file_backup(archive_path: str, dest_path: str) -> bool:
    """Manifest source type, falling back to the current save path for archives without one."""
    source_type = read_manifest_from_zip(archive_path).get("source_type")
    if source_type is None:
        return os.path.isfile(dest_path)
    return source_type == config.SOURCE_TYPE_FILE


def _has_content(path: str) -> bool:
    if os.path.isfile(path):
        return True
    if os.path.isdir(path):
        return any(True for _ in os.scandir(path))
    return False


def perform_restore(game_name, dest_path, archive_path, backup_dir, extra_backup=True):
    """
    Run the filesystem stages of a restore: check, extra backup, delete, extract.

    Args:
        game_name: Game being restored
        dest_path: Resolved save folder (or single save file) to overwrite
        archive_path: Archive to restore
        backup_dir: Backup folder (receives the extra backup)
        extra_backup: Back up the current save first when it has content

    Returns:
        The extra backup info dict, or None when no extra backup was made

    Raises:
        RestoreStageError: Naming the stage that failed
    """
    logging.info(f"Starting restore of '{game_name}' from '{archive_path}' to '{dest_path}'")

    ok, error = _validate_restore_archive(archive_path)
    if not ok:
        raise RestoreStageError(STAGE_CHECK, error)
    single_file = _is_single_file_backup(archive_path, dest_path)
    if single_file and os.path.isdir(dest_path):
        raise RestoreStageError(STAGE_CHECK, f"Backup holds a single file but the save path is a folder: '{dest_path}'")
    if not single_file and os.path.exists(dest_path) and not os.path.isdir(dest_path):
        raise RestoreStageError(STAGE_CHECK, f"Save path is not a folder: '{dest_path}'")

    extra = None
    if extra_backup and _has_content(dest_path):
        try:
            extra = perform_backup(game_name, dest_path, backup_dir, remark=config.EXTRA_BACKUP_REMARK)
        except BackupError as e:
            raise RestoreStageError(STAGE_EXTRA_BACKUP, str(e)) from e

    ok, error = _cleanup_destination_path(dest_path)
    if not ok:
        raise RestoreStageError(STAGE_DELETE, error)

    skip = (config.MANIFEST_ARCNAME,)
    try:
        if single_file:
            with zipfile.ZipFile(archive_path, 'r') as zipf:
                ok, error = _extract_single_file(zipf, dest_path, skip=skip)
            if not ok:
                raise RestoreStageError(STAGE_EXTRACT, error)
            logging.info(f"Restore of '{game_name}' wrote single file '{dest_path}'")
            return extra
        os.makedirs(dest_path, exist_ok=True)
        with zipfile.ZipFile(archive_path, 'r') as zipf:
            ok, blocked, errors = _safe_extractall(zipf, dest_path, skip=skip)
    except (OSError, zipfile.BadZipFile) as e:
        raise RestoreStageError(STAGE_EXTRACT, f"Unable to extract '{archive_path}': {e}") from e
    if not ok:
        details = errors + [f"Blocked unsafe path '{p}'" for p in blocked]
        raise RestoreStageError(STAGE_EXTRACT, "; ".join(details))

    logging.info(f"Restore of '{game_name}' extracted to '{dest_path}'")
    return extra

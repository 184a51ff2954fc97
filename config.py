# config.py
import os
import logging
import platform


# --- Application name (used for the data folder) ---
APP_NAME = "GameSL"
APP_VERSION = "0.3.0"

# --- Work directory layout ---
CONFIG_FILENAME = "config.json"
BACKUP_DIR_NAME = "backup"
TRASH_DIR_NAME = ".trash"
MANIFEST_ARCNAME = ".gamesl/manifest.json"
CONFIG_VERSION = 1

# Manifest "source_type" values
SOURCE_TYPE_DIR = "dir"
SOURCE_TYPE_FILE = "file"

# Archive extensions recognised when listing backups
BACKUP_EXTENSIONS = (".zip", ".7z")
REMARK_EXTENSION = ".txt"
BACKUP_NAME_MARKER = "-Backup"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
EXTRA_BACKUP_REMARK = "Automatic backup before restore"

# --- Settings keys and defaults ---
SETTING_USE_RELATIVE_TIME = "useRelativeTime"
SETTING_RESTORE_EXTRA_BACKUP = "restoreExtraBackup"

DEFAULT_SETTINGS = {
    SETTING_RESTORE_EXTRA_BACKUP: True,
    SETTING_USE_RELATIVE_TIME: True,
}

# --- Game types ---
GAME_TYPE_STEAM = "steam"
GAME_TYPE_USERDATA = "userdata"

# --- Restore notes shown while the restore runs ---
RESTORE_NOTE_RUNNING = "Restoring, do not close the window or start another restore."
RESTORE_NOTE_DONE = "Restore complete, you can close this window."
RESTORE_NOTE_FAILED = "Restore failed, see the details below."

# Minimum similarity (thefuzz token set ratio) for a typed game name to match
FUZZY_MATCH_THRESHOLD = 85


# --- Locate/create the application data folder ---
def get_app_data_folder():
    """Return the application data folder (%LOCALAPPDATA% on Windows) and
       create it if it does not exist. Falls back to the current directory."""
    system = platform.system()
    base_path = None
    app_folder = None

    try:
        if system == "Windows":
            base_path = os.getenv('LOCALAPPDATA')
        elif system == "Darwin": # macOS
            base_path = os.path.expanduser('~/Library/Application Support')
        elif system == "Linux":
            # XDG Base Directory Specification
            base_path = os.getenv('XDG_DATA_HOME', os.path.expanduser('~/.local/share'))

        if not base_path:
            logging.error("Unable to determine the standard user data folder. Using the current folder as fallback.")
            app_folder = os.path.abspath(APP_NAME)
        else:
            app_folder = os.path.join(base_path, APP_NAME)

        if not os.path.exists(app_folder):
            try:
                os.makedirs(app_folder, exist_ok=True)
                logging.info(f"Created application data folder: {app_folder}")
            except OSError as e:
                # Callers reading/writing inside the folder report the failure
                logging.error(f"Unable to create data folder {app_folder}: {e}.")

    except OSError as e:
        logging.error(f"Unexpected error in get_app_data_folder: {e}. Falling back to CWD.", exc_info=True)
        app_folder = os.path.abspath(APP_NAME)

    return app_folder

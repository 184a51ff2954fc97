# utils.py
import logging
import os
import platform
import re
import subprocess
import time
from datetime import datetime


def sanitize_filename(filename):
    """
    Sanitizes a string to be safe for use as a filename.
    Replaces characters that are invalid on most filesystems with an underscore.
    """
    if not isinstance(filename, str):
        filename = str(filename)

    # \ / : * ? " < > | and control characters (0-31)
    illegal_chars_pattern = r'[\\/:*?"<>|\x00-\x1F]'
    sanitized = re.sub(illegal_chars_pattern, '_', filename)

    # Leading/trailing whitespace and dots cause issues on Windows
    sanitized = sanitized.strip(' .')
    sanitized = re.sub(r'_+', '_', sanitized)

    if not sanitized:
        return "sanitized_empty_name"
    return sanitized


def now_millis() -> int:
    return int(time.time() * 1000)


def format_absolute(timestamp_ms: int) -> str:
    """Local time as 'YYYY-MM-DD HH:MM'."""
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M")


def format_relative(now_ms: int, timestamp_ms: int) -> str:
    """
    Human readable age of a timestamp.

    Under 30 seconds is "just now", then seconds, minutes, hours and days.
    Anything a week old or more falls back to the absolute date.
    """
    diff = max(0, now_ms - timestamp_ms)
    sec = diff // 1000
    if sec < 30:
        return "just now"
    if sec < 60:
        return f"{sec} seconds ago"
    minutes = sec // 60
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    days = hours // 24
    if days < 7:
        return f"{days} day{'s' if days != 1 else ''} ago"
    return format_absolute(timestamp_ms)


def format_timestamp(timestamp_ms, relative=True, now_ms=None):
    """Display text for an optional timestamp, following the relative-time preference."""
    if not timestamp_ms:
        return "no backup yet"
    if not relative:
        return format_absolute(timestamp_ms)
    return format_relative(now_ms if now_ms is not None else now_millis(), timestamp_ms)


def format_size(size_bytes):
    """Format a size in bytes as B/KB/MB/GB."""
    size = float(size_bytes or 0)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.2f} GB"


def open_folder(folder_path):
    """Open a folder in the system file manager. Returns (success, message)."""
    if not folder_path or not os.path.isdir(folder_path):
        return False, f"Folder not found: '{folder_path}'"

    system = platform.system()
    try:
        if system == "Windows":
            subprocess.Popen(["explorer", os.path.normpath(folder_path)])
        elif system == "Darwin":
            subprocess.Popen(["open", folder_path])
        else:
            subprocess.Popen(["xdg-open", folder_path])
    except OSError as e:
        logging.error(f"Unable to open folder '{folder_path}': {e}")
        return False, f"Unable to open folder '{folder_path}': {e}"

    logging.info(f"Opened folder: {folder_path}")
    return True, folder_path

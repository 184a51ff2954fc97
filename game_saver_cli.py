# game_saver_cli.py
# -*- coding: utf-8 -*-
"""Command handlers for the GameSL command line."""

import asyncio
import logging
import sys

from colorama import Fore, Style, init
from thefuzz import fuzz, process

import config
from app_state import AppState
from backup_catalog import BackupCatalog, DeleteInProgressError
from game_order import GameOrderManager
from restore_flow import (STAGE_TITLES, RestoreInProgressError, RestoreOrchestrator,
                          RestoreResult, StageStatus)
from save_backend import BackendError, LocalSaveBackend
from settings_sync import SettingsSynchronizer
import steam_utils
from utils import format_size, format_timestamp, open_folder

init(autoreset=True)


# --- Colored output helpers ---

def print_title(text):
    """Prints a title in bright red."""
    print(f"{Style.BRIGHT}{Fore.RED}=== {text.upper()} ===")

def print_header(text):
    print(f"\n{Style.BRIGHT}{Fore.MAGENTA}--- {text} ---{Style.RESET_ALL}")

def print_info(text):
    print(text)

def print_success(text):
    print(f"{Fore.GREEN}{text}")

def print_warning(text):
    print(f"{Fore.YELLOW}WARNING: {text}")

def print_error(text):
    print(f"{Style.BRIGHT}{Fore.RED}ERROR: {text}")

def get_input(prompt):
    """Gets user input with a specific prompt style."""
    try:
        return input(f"{Style.BRIGHT}{Fore.WHITE}> {prompt}{Style.RESET_ALL} ")
    except EOFError:
        print_error("Input stream closed unexpectedly.")
        return ""

def confirm(prompt):
    return get_input(f"{prompt} [y/N]").strip().lower() in ("y", "yes")


_STATUS_COLORS = {
    StageStatus.WAIT: Fore.LIGHTBLACK_EX,
    StageStatus.PROCESS: Fore.CYAN,
    StageStatus.FINISH: Fore.GREEN,
    StageStatus.ERROR: Fore.RED,
}


class CliSession:
    """Wires the backend and the client-side helpers together for one command."""

    def __init__(self, work_dir=None, steam_uid=None, backend=None):
        self.backend = backend or LocalSaveBackend(work_dir)
        self.requested_uid = steam_uid
        self.app_state = AppState(self.backend, on_error=lambda msg, exc: print_error(f"{msg}: {exc}"))
        self.catalog = BackupCatalog(self.backend, self.app_state, on_error=self.app_state.on_error)
        self.restorer = RestoreOrchestrator(self.backend, self.app_state)
        self.order = GameOrderManager(self.backend, self.app_state)
        self.settings = SettingsSynchronizer(self.backend, self.app_state)

    async def start(self, check_paths=True):
        if not await self.app_state.refresh_base_info():
            raise BackendError("Unable to load the configuration")
        if self.requested_uid:
            self.app_state.select_steam_uid(self.requested_uid)
        if check_paths:
            await self.app_state.refresh_path_state()

    def find_game(self, typed_name):
        """Exact name first, then the closest fuzzy match above the threshold."""
        games = self.app_state.games
        for game in games:
            if game.name == typed_name:
                return game
        for game in games:
            if game.name.lower() == typed_name.lower():
                return game
        names = [g.name for g in games]
        best = process.extractOne(typed_name, names, scorer=fuzz.token_set_ratio) if names else None
        if best and best[1] >= config.FUZZY_MATCH_THRESHOLD:
            print_warning(f"No game named '{typed_name}', using '{best[0]}' ({best[1]}% match).")
            return self.app_state.config.find_game(best[0])
        raise BackendError(f"Game '{typed_name}' not found")

    async def find_backup(self, game, file_name):
        items = await self.catalog.list_backups(game.name)
        for item in items:
            if item.file_name == file_name:
                return item
        raise BackendError(f"Backup '{file_name}' not found for '{game.name}'")

    def require_safe(self, game):
        reason = self.app_state.unsafe_reason(game)
        if reason:
            raise BackendError(f"Action not available for '{game.name}': {reason}")

    def fmt_time(self, timestamp):
        return format_timestamp(timestamp, relative=self.settings.use_relative_time)


# --- Commands ---

async def cmd_games(session, args):
    await session.start()
    print_title("Games")
    if not session.app_state.games:
        print_info("No games configured. Add them to config.json in the work directory.")
    for index, game in enumerate(session.app_state.games, start=1):
        state = session.app_state.path_state_for(game.name)
        if state is None:
            status = f"{Fore.LIGHTBLACK_EX}unchecked"
        elif state.exists:
            status = f"{Fore.GREEN}found"
        else:
            status = f"{Fore.YELLOW}missing"
        print(f"  {Style.BRIGHT}{Fore.CYAN}{index}{Style.RESET_ALL}. {game.name} [{status}{Style.RESET_ALL}]"
              f" last backup: {session.fmt_time(game.last_save)}")
        print(f"     {Fore.LIGHTBLACK_EX}{state.resolved if state else session.app_state.resolve(game.path)}")
    return 0


async def cmd_accounts(session, args):
    await session.start(check_paths=False)
    print_title("Steam accounts")
    if not session.app_state.has_steam:
        print_warning("Steam installation not found.")
        return 0
    # Display names come from this machine's loginusers.vdf
    details = {}
    if isinstance(session.backend, LocalSaveBackend):
        details = steam_utils.get_steam_account_details(session.app_state.steam_dir)
    for uid in session.app_state.steam_uids:
        marker = "*" if uid == session.app_state.selected_steam_uid else " "
        info = details.get(uid, {})
        print_info(f" {marker} {uid}  {info.get('display_name', '')}  (last used {info.get('last_mod_str', 'N/D')})")
    return 0


async def cmd_backup(session, args):
    await session.start()
    game = session.find_game(args.game)
    response = await session.catalog.create_backup(game, args.remark)
    print_success(f"Backup created: {response.file_name}")
    return 0


async def cmd_backups(session, args):
    await session.start(check_paths=False)
    game = session.find_game(args.game)
    items = await session.catalog.list_backups(game.name)
    print_title(f"Backups of {game.name}")
    if session.catalog.state.error:
        return 1
    if not items:
        print_info("No backups yet.")
    for item in items:
        remark = f" - {item.remark}" if item.remark else ""
        print_info(f"  {item.file_name}  {format_size(item.size)}  {session.fmt_time(item.timestamp)}{remark}")
    return 0


async def cmd_remark(session, args):
    await session.start(check_paths=False)
    game = session.find_game(args.game)
    await session.catalog.edit_remark(game.name, args.file, args.text)
    print_success("Remark removed." if not args.text.strip() else "Remark updated.")
    return 0


async def cmd_delete(session, args):
    await session.start()
    game = session.find_game(args.game)
    session.require_safe(game)
    if not args.yes and not confirm(f"Move '{args.file}' to the trash?"):
        print_info("Cancelled.")
        return 0
    try:
        await session.catalog.delete_backup(game.name, args.file)
    except DeleteInProgressError as e:
        print_warning(str(e))
        return 1
    print_success(f"'{args.file}' moved to the trash.")
    return 0


def print_restore_state(state):
    print_header(f"Restore {state.backup_name} -> {state.game_name}")
    for stage, status in state.stages:
        print(f"  {_STATUS_COLORS[status]}[{status.value:^7}]{Style.RESET_ALL} {STAGE_TITLES[stage]}")
    print_info(state.note)
    if state.detail:
        print_error(state.detail)


async def cmd_restore(session, args):
    await session.start()
    game = session.find_game(args.game)
    session.require_safe(game)
    backup = await session.find_backup(game, args.file)
    if not args.yes and not confirm(f"Overwrite the current save of '{game.name}' with '{backup.file_name}'?"):
        print_info("Cancelled.")
        return 0
    try:
        state = await session.restorer.restore(game, backup)
    except RestoreInProgressError as e:
        print_error(str(e))
        return 1
    print_restore_state(state)
    session.restorer.close()
    return 0 if state.result == RestoreResult.SUCCESS else 1


async def cmd_move(session, args):
    await session.start(check_paths=False)
    game = session.find_game(args.game)
    action = {"up": session.order.move_up, "down": session.order.move_down, "top": session.order.pin_to_top}[args.direction]
    if await action(game.name) is None:
        print_info("Order unchanged.")
    else:
        print_success(f"Moved '{game.name}' {args.direction}.")
    return 0


async def cmd_set(session, args):
    await session.start(check_paths=False)
    value = args.value == "on"
    if args.name == "relative-time":
        await session.settings.set_use_relative_time(value)
    else:
        await session.settings.set_restore_extra_backup(value)
    print_success(f"{args.name} set to {args.value}.")
    return 0


async def cmd_settings(session, args):
    await session.start(check_paths=False)
    print_title("Settings")
    print_info(f"  relative-time: {'on' if session.settings.use_relative_time else 'off'}")
    print_info(f"  extra-backup:  {'on' if session.settings.restore_extra_backup else 'off'}")
    print_info(f"  work dir:      {getattr(session.backend, 'work_dir', '?')}")
    version = await session.app_state.refresh_version()
    print_info(f"  backend:       {version or 'unknown'}")
    return 0


async def cmd_open_folder(session, args):
    backup_dir = await session.backend.get_backup_dir()
    ok, message = open_folder(backup_dir)
    if not ok:
        print_error(message)
        return 1
    print_info(backup_dir)
    return 0


COMMANDS = {
    "games": cmd_games,
    "accounts": cmd_accounts,
    "backup": cmd_backup,
    "backups": cmd_backups,
    "remark": cmd_remark,
    "delete": cmd_delete,
    "restore": cmd_restore,
    "move": cmd_move,
    "set": cmd_set,
    "settings": cmd_settings,
    "open-folder": cmd_open_folder,
}


async def run_command(args, session=None):
    session = session or CliSession(work_dir=args.work_dir, steam_uid=args.steam_uid)
    try:
        return await COMMANDS[args.command](session, args)
    except (BackendError, ValueError) as e:
        logging.debug(f"Command '{args.command}' failed", exc_info=True)
        print_error(str(e))
        return 1


def run(args):
    return asyncio.run(run_command(args))


if __name__ == "__main__":
    import main
    sys.exit(main.main())

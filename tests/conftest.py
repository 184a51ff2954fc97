import asyncio

import pytest

from models import AppConfig, BackupEntry, BackupResponse, GameEntry, RestoreResponse
from save_backend import SaveBackend


def make_config(*names, settings=None):
    games = tuple(GameEntry(name=n, path=f"{{Home}}\\saves\\{n}") for n in names)
    return AppConfig(settings=dict(settings or {}), games=games, version=1)


class FakeBackend(SaveBackend):
    """In-memory backend. ``gates`` holds an asyncio.Event per operation to pause it."""

    def __init__(self, config=None):
        self.config = config or make_config("Alpha", "Beta", "Gamma")
        self.calls = []
        self.gates = {}
        self.failures = {}
        self.backups = {}
        self.existing_paths = set()
        self.user_folder = "C:\\Users\\A"
        self.steam_dir = None
        self.uids = []

    async def _enter(self, name, *args):
        self.calls.append((name,) + args)
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)

    async def load_config(self):
        await self._enter("load_config")
        return self.config

    async def get_user_folder(self):
        await self._enter("get_user_folder")
        return self.user_folder

    async def get_steam_install_dir(self):
        await self._enter("get_steam_install_dir")
        return self.steam_dir

    async def get_steam_uid_list(self):
        await self._enter("get_steam_uid_list")
        return list(self.uids)

    async def check_save_path(self, path, steam_uid):
        await self._enter("check_save_path", path, steam_uid)
        return path in self.existing_paths

    async def get_backup_dir(self):
        return "backup"

    async def get_version(self):
        await self._enter("get_version")
        return "9.9.9"

    async def backup_game(self, game_name, path_template, steam_uid, remark):
        await self._enter("backup_game", game_name, path_template, steam_uid, remark)
        file_name = f"{game_name}-Backup-20240101-120000.zip"
        entry = BackupEntry(file_name=file_name, file_path=f"backup/{file_name}", timestamp=1, remark=remark)
        self.backups.setdefault(game_name, []).append(entry)
        return BackupResponse(file_name=file_name, file_path=entry.file_path, timestamp=1, config=self.config)

    async def list_backups(self, game_name):
        await self._enter("list_backups", game_name)
        return list(self.backups.get(game_name, []))

    async def update_backup_remark(self, game_name, file_name, remark):
        await self._enter("update_backup_remark", game_name, file_name, remark)

    async def delete_backup(self, game_name, file_name):
        await self._enter("delete_backup", game_name, file_name)

    async def restore_backup(self, game_name, path_template, backup_path, steam_uid):
        await self._enter("restore_backup", game_name, path_template, backup_path, steam_uid)
        return RestoreResponse(config=self.config)

    async def set_setting(self, key, value):
        await self._enter("set_setting", key, value)
        self.config = AppConfig(settings={**self.config.settings, key: value},
                                games=self.config.games, version=self.config.version)
        return self.config

    async def reorder_games(self, order):
        await self._enter("reorder_games", list(order))
        by_name = {g.name: g for g in self.config.games}
        self.config = AppConfig(settings=self.config.settings,
                                games=tuple(by_name[n] for n in order), version=self.config.version)
        return self.config


@pytest.fixture
def fake_backend():
    return FakeBackend()


async def wait_until(predicate, timeout=1.0):
    """Let other tasks run until ``predicate()`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0)

import os

import pytest

import steam_utils


@pytest.fixture
def steam_root(tmp_path):
    userdata = tmp_path / "userdata"
    for name in ("111", "222", "0", "notes"):
        (userdata / name).mkdir(parents=True)
    os.utime(userdata / "111", (1_600_000_000, 1_600_000_000))
    os.utime(userdata / "222", (1_700_000_000, 1_700_000_000))
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "loginusers.vdf").write_text(
        '"users"\n{\n\t"76561197960265839"\n\t{\n\t\t"PersonaName"\t\t"Alice"\n\t}\n}\n',
        encoding="utf-8")
    return tmp_path


def test_list_steam_uids_most_recent_first(steam_root):
    assert steam_utils.list_steam_uids(str(steam_root)) == ["222", "111"]


def test_list_steam_uids_without_userdata(tmp_path):
    assert steam_utils.list_steam_uids(str(tmp_path)) == []


def test_account_details_use_login_users(steam_root):
    details = steam_utils.get_steam_account_details(str(steam_root))
    assert list(details) == ["222", "111"]
    assert details["111"]["display_name"] == "Alice"
    assert details["222"]["display_name"] == "ID: 222"

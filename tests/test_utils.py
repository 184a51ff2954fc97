import pytest

from utils import format_absolute, format_relative, format_size, format_timestamp, sanitize_filename

NOW = 1_700_000_000_000


@pytest.mark.parametrize("age_ms, expected", [
    (0, "just now"),
    (29_000, "just now"),
    (45_000, "45 seconds ago"),
    (60_000, "1 minute ago"),
    (5 * 60_000, "5 minutes ago"),
    (3 * 3_600_000, "3 hours ago"),
    (2 * 86_400_000, "2 days ago"),
])
def test_format_relative(age_ms, expected):
    assert format_relative(NOW, NOW - age_ms) == expected


def test_week_old_is_absolute():
    ts = NOW - 8 * 86_400_000
    assert format_relative(NOW, ts) == format_absolute(ts)


def test_future_timestamp_is_just_now():
    assert format_relative(NOW, NOW + 10_000) == "just now"


def test_format_timestamp_without_value():
    assert format_timestamp(None) == "no backup yet"


def test_sanitize_filename():
    assert sanitize_filename('a<b>:c') == "a_b_c"
    assert sanitize_filename(" ..") == "sanitized_empty_name"


def test_format_size():
    assert format_size(512) == "512 B"
    assert format_size(2048) == "2.0 KB"

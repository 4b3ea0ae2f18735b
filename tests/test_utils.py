from datetime import datetime

from ledger.utils import (
    norm_text,
    collation_key,
    parse_timestamp,
    format_timestamp,
    day_key,
    sort_timestamp,
    shift_timestamp,
    minutes_between,
    parse_minutes,
)


def test_norm_text():
    assert norm_text(None) == ""
    assert norm_text(float("nan")) == ""
    assert norm_text("\ufeff \u3000田中\u00a0") == "田中"


def test_collation_key_folds_width_and_case():
    assert collation_key("ＡＢＣ") == collation_key("abc")


def test_timestamps():
    assert parse_timestamp("2024/4/8 16:05") == datetime(2024, 4, 8, 16, 5)
    assert parse_timestamp("") is None
    assert parse_timestamp("あいう") is None
    assert format_timestamp("2024-04-08 09:00:00") == "2024/4/8 9:00"
    assert format_timestamp("不明") == "不明"
    assert day_key("2024/04/08 23:59") == "2024/4/8"
    assert sort_timestamp("") == datetime.min
    assert shift_timestamp("2024/4/8 23:30", 60) == "2024/4/9 0:30"
    assert minutes_between("2024/4/8 16:00", "2024/4/8 17:20") == 80
    assert minutes_between("2024/4/8 16:00", "") is None


def test_parse_minutes():
    assert parse_minutes("80") == 80
    assert parse_minutes(" 60分") == 60
    assert parse_minutes("abc") == 0
    assert parse_minutes("", default=80) == 80

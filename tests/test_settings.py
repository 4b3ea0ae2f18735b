import json

from ledger.models import SpecialClassRule
from ledger.settings import LedgerSettings, load_settings, save_settings, settings_from_dict

DEFAULT = ["吉川講師", "島田講師"]


def test_missing_file_falls_back_to_default_order(tmp_path):
    s = load_settings(DEFAULT, tmp_path / "settings.json")

    assert s.sort_order == DEFAULT
    assert s.excluded_teachers == []
    assert s.special_rules == []
    assert s.sheet_comments == {}


def test_round_trip(tmp_path):
    path = tmp_path / "nested" / "settings.json"
    s = LedgerSettings(
        sort_order=["岡講師", "吉川講師"],
        excluded_teachers=["岡講師"],
        special_rules=[SpecialClassRule(id="r1", teacher="吉川", student="山本", subject="")],
        sheet_comments={"全体集計": "確認済み"},
    )

    save_settings(s, path)
    loaded = load_settings(DEFAULT, path)

    assert loaded == s
    assert json.loads(path.read_text(encoding="utf-8"))["excluded_teachers"] == ["岡講師"]


def test_malformed_values_are_normalised():
    s = settings_from_dict(
        {
            "sort_order": [],
            "excluded_teachers": "岡講師",
            "special_rules": [{"teacher": "", "student": "", "subject": ""}, {"student": "山本"}, "junk"],
            "sheet_comments": {"田中講師": "  ", "全体集計": "メモ"},
        },
        DEFAULT,
    )

    assert s.sort_order == DEFAULT
    assert s.excluded_teachers == ["岡講師"]
    assert len(s.special_rules) == 1
    assert s.special_rules[0].student == "山本"
    assert s.special_rules[0].id
    assert s.sheet_comments == {"全体集計": "メモ"}


def test_corrupt_file_uses_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert load_settings(DEFAULT, path).sort_order == DEFAULT

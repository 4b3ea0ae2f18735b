from datetime import date

from ledger.models import ForceType, is_separator
from ledger.quality import check_quality
from ledger.sorting import sort_records
from ledger.transform import transform, classify_session, display_subject, lesson_minutes
from ledger.utils import day_key, week_key


def data_rows(rows):
    return [r for r in rows if not is_separator(r)]


def test_two_students_same_slot_is_one_individual_session(rec):
    r1 = rec(teacher="Tanaka", student="A")
    r2 = rec(teacher="Tanaka", student="B")

    rows, stats = transform([r1, r2], [])
    out = data_rows(rows)

    assert len(out) == 2
    assert out[0].individual is None
    assert out[0].office is None
    assert out[1].individual == 80
    assert out[1].office == 10
    assert stats["Tanaka"].individual == 80
    assert stats["Tanaka"].office == 10
    assert stats["Tanaka"].individual_count == 1


def test_excluded_teacher_falls_through_to_conversation(rec):
    r = rec(teacher="Tanaka", duration="60", end="2024/4/8 17:00")

    rows, stats = transform([r], ["Tanaka"])
    out = data_rows(rows)

    assert out[0].conversation == 60
    assert out[0].individual is None
    assert out[0].office is None
    assert stats["Tanaka"].conversation == 60
    assert stats["Tanaka"].individual_count == 0


def test_missing_end_time_is_flagged_and_uses_raw_duration(rec):
    r = rec(end="")

    errors, _ = check_quality([r])
    rows, _ = transform([r], [])
    out = data_rows(rows)

    assert errors == [0]
    assert out[0].is_error is True
    assert out[0].individual == 80


def test_manual_fix_recomputes_minutes_from_timestamps(rec):
    r = rec(start="2024/4/8 16:00", end="2024/4/8 17:00", duration="80")
    assert lesson_minutes(r) == 80

    r.annotations.is_manually_fixed = True
    assert lesson_minutes(r) == 60


def test_conversation_lesson_subject_shows_content(rec):
    r = rec(subject="英会話レッスン", content="Free Talk")
    assert display_subject(r) == "Free Talk"

    r2 = rec(subject="英会話レッスン", content="", comment="発音練習")
    assert display_subject(r2) == "発音練習"

    rows, _ = transform([r], [])
    assert data_rows(rows)[0].subject == "Free Talk"


def test_ninety_minutes_is_group_even_when_special_or_excluded(rec):
    r = rec(teacher="Tanaka", duration="90", class_type="特能")

    rows, stats = transform([r], ["Tanaka"])
    out = data_rows(rows)

    assert out[0].group == 90
    assert out[0].special_single is None
    assert out[0].office is None
    assert stats["Tanaka"].individual_count == 0


def test_special_single_and_pair(rec):
    single = rec(student="A", class_type="特能")
    rows, stats = transform([single], [])
    out = data_rows(rows)
    assert out[0].special_single == 80
    assert out[0].office == 10
    assert stats["田中講師"].individual_count == 1

    a = rec(student="A")
    b = rec(student="B")
    a.annotations.force_special = True
    rows, stats = transform([a, b], [])
    out = data_rows(rows)
    assert out[0].special_pair is None
    assert out[1].special_pair == 80
    assert stats["田中講師"].special_pair == 80
    # 特能フラグは行ごとの表示用
    assert out[0].is_special is True
    assert out[1].is_special is False


def test_office_detection_and_force_types(rec):
    assert classify_session(80, "事務作業", None, False, 1, "T", ()) == "office"
    assert classify_session(80, "事務作業", ForceType.LESSON, False, 1, "T", ()) == "individual"
    assert classify_session(90, "数学", ForceType.OFFICE, True, 2, "T", ()) == "office"
    assert classify_session(90, "数学", ForceType.LESSON, True, 2, "T", ()) == "group"
    # 授業指定の特能は事務トークンや対象外講師より優先
    assert classify_session(80, "事務", ForceType.LESSON, True, 2, "T", ["T"]) == "special_pair"
    assert classify_session(60, "事務", ForceType.LESSON, True, 1, "T", ["T"]) == "special_single"
    assert classify_session(45, "数学", None, False, 1, "T", ()) == "conversation"
    assert classify_session(60, "数学", None, False, 1, "T", ["T"]) == "conversation"

    r = rec(subject="事務", duration="120")
    rows, stats = transform([r], [])
    out = data_rows(rows)
    assert out[0].office == 120
    assert stats["田中講師"].office == 120
    assert stats["田中講師"].individual_count == 0


def test_unparsable_duration_counts_as_zero(rec):
    r = rec(duration="不明")
    rows, stats = transform([r], [])
    assert data_rows(rows)[0].conversation == 0
    assert stats["田中講師"].conversation == 0


def test_rows_without_teacher_are_dropped(rec):
    rows, stats = transform([rec(teacher=""), rec(teacher="  "), rec()], [])
    assert len(data_rows(rows)) == 1
    assert list(stats) == ["田中講師"]
    assert not any(is_separator(r) for r in rows)


def test_separators_between_teachers_and_weeks(rec):
    records = [
        # 4/6(土) と 4/7(日) は別の週
        rec(start="2024/4/6 16:00", end="2024/4/6 17:20"),
        rec(start="2024/4/7 16:00", end="2024/4/7 17:20"),
        rec(start="2024/4/8 16:00", end="2024/4/8 17:20"),
        rec(teacher="鈴木講師", start="2024/4/8 16:00", end="2024/4/8 17:20"),
    ]
    rows, _ = transform(records, [])

    kinds = ["sep" if is_separator(r) else r.start for r in rows]
    assert kinds == [
        "2024/4/6 16:00",
        "sep",
        "2024/4/7 16:00",
        "2024/4/8 16:00",
        "sep",
        "2024/4/8 16:00",
    ]


def test_weekly_days_only_on_last_row_of_week(rec):
    records = [
        rec(start="2024/4/8 16:00", end="2024/4/8 17:20"),
        rec(start="2024/4/8 18:00", end="2024/4/8 19:20"),
        rec(start="2024/4/9 16:00", end="2024/4/9 17:20"),
        rec(start="2024/4/15 16:00", end="2024/4/15 17:20"),
    ]
    rows, stats = transform(records, [])
    out = data_rows(rows)

    assert [r.weekly_days for r in out] == [None, None, 2, 1]
    assert stats["田中講師"].work_days == 3


def _mixed_records(rec):
    return [
        rec(teacher="吉川講師", student="A", start="2024/4/8 16:00", end="2024/4/8 17:20"),
        rec(teacher="吉川講師", student="B", start="2024/4/8 16:00", end="2024/4/8 17:20"),
        rec(teacher="吉川講師", student="C", start="2024/4/9 16:00", end="2024/4/9 17:00", duration="60"),
        rec(teacher="吉川講師", student="D", start="2024/4/14 16:00", end="2024/4/14 17:30", duration="90"),
        rec(teacher="島田講師", student="E", start="2024/4/8 19:00", end="2024/4/8 20:20", class_type="特能"),
        rec(teacher="島田講師", student="", start="2024/4/10 12:00", end="2024/4/10 14:00", duration="120", subject="事務"),
        rec(teacher="島田講師", student="F", start="", end="", duration="80"),
        rec(teacher="", student="G"),
        rec(teacher="久保講師", student="H", start="2024/4/20 10:00", end="2024/4/20 10:45", duration="45"),
    ]


def test_pipeline_properties(rec):
    records = _mixed_records(rec)
    order = ["吉川講師", "島田講師", "久保講師"]
    sorted_records = sort_records(records, order)

    rows, stats = transform(sorted_records, [])
    out = data_rows(rows)

    # 講師のある行はすべて1行ずつ出る
    assert len(out) == sum(1 for r in records if r.teacher.strip())

    categories = ["individual", "special_pair", "special_single", "group", "office", "conversation"]
    for r in out:
        filled = [c for c in categories if getattr(r, c) is not None]
        if len(filled) > 1:
            assert len(filled) == 2
            assert "office" in filled
            assert r.office == 10

    for teacher, st in stats.items():
        mine = [r for r in out if r.teacher == teacher]
        for c in categories:
            assert sum(getattr(r, c) or 0 for r in mine) == getattr(st, c)

    again_rows, again_stats = transform(sorted_records, [])
    assert again_rows == rows
    assert again_stats == stats

    prev = None
    expect_sep = False
    for r in rows:
        if is_separator(r):
            assert prev is not None
            expect_sep = True
            continue
        if prev is not None:
            wp, wc = week_key(prev.start), week_key(r.start)
            changed = prev.teacher != r.teacher or (wp is not None and wc is not None and wp != wc)
            assert changed == expect_sep
        prev = r
        expect_sep = False

    for teacher, st in stats.items():
        dates = {day_key(r.start) for r in records if r.teacher == teacher} - {None}
        assert st.work_days == len(dates)


def test_week_key_is_sunday_on_or_before():
    assert week_key("2024/4/6 10:00") == date(2024, 3, 31)
    assert week_key("2024/4/7 10:00") == date(2024, 4, 7)
    assert week_key("2024/4/13 23:59") == date(2024, 4, 7)
    assert week_key("") is None
    assert week_key("not a date") is None


def test_forced_lesson_special_session_with_office_subject(rec):
    a = rec(student="A", subject="事務")
    b = rec(student="B", subject="事務", class_type="特能")
    for r in (a, b):
        r.annotations.force_type = ForceType.LESSON

    rows, stats = transform([a, b], ["田中講師"])
    out = data_rows(rows)

    assert out[1].special_pair == 80
    assert out[1].office == 10
    assert stats["田中講師"].special_pair == 80
    assert stats["田中講師"].individual_count == 1


def test_error_annotation_is_carried_to_output(rec):
    r = rec()
    r.annotations.is_error = True

    rows, _ = transform([r], [])

    assert data_rows(rows)[0].is_error is True

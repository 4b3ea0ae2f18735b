from ledger.columns import SUMMARY_HEADER
from ledger.models import TeacherStats, is_separator
from ledger.summary import teachers_in_order, summary_frame, ledger_frame, rows_for_teacher, highlight_mask
from ledger.transform import transform


def test_teachers_in_order_puts_listed_first():
    stats = {"Z講師": TeacherStats(), "田中講師": TeacherStats(), "a講師": TeacherStats()}
    assert teachers_in_order(stats, ["田中講師"]) == ["田中講師", "a講師", "Z講師"]


def test_summary_frame(rec):
    _, stats = transform([rec(student="A"), rec(student="B"), rec(teacher="鈴木講師", duration="90")], [])

    df = summary_frame(stats, ["鈴木講師", "田中講師"])

    assert list(df.columns) == SUMMARY_HEADER
    assert df["講師名"].tolist() == ["鈴木講師", "田中講師"]
    tanaka = df.iloc[1]
    assert tanaka["1:2"] == 80
    assert tanaka["事務作業"] == 10
    assert tanaka["勤務日数"] == 1
    assert tanaka["個別授業回数"] == 1


def test_ledger_frame_keeps_integers(rec):
    rows, _ = transform([rec(student="A"), rec(student="B")], [])

    df = ledger_frame(rows)

    assert df.iloc[1]["１：２"] == 80
    assert df.iloc[0]["１：２"] is None


def test_rows_for_teacher_keeps_week_breaks_only(rec):
    rows, _ = transform(
        [
            rec(start="2024/4/6 16:00", end="2024/4/6 17:20"),
            rec(start="2024/4/7 16:00", end="2024/4/7 17:20"),
            rec(teacher="鈴木講師"),
        ],
        [],
    )

    tanaka = rows_for_teacher(rows, "田中講師")
    suzuki = rows_for_teacher(rows, "鈴木講師")

    assert [is_separator(r) for r in tanaka] == [False, True, False]
    assert len(suzuki) == 1 and suzuki[0].teacher == "鈴木講師"


def test_highlight_mask_marks_missing_time_and_fixed_rows(rec):
    fixed = rec(teacher="鈴木講師")
    fixed.annotations.is_manually_fixed = True
    rows, _ = transform([rec(student="A", end=""), rec(student="B", start="2024/4/8 18:00", end="2024/4/8 19:20"), fixed], [])

    mask = highlight_mask(rows)

    assert len(mask) == len(ledger_frame(rows))
    assert mask.tolist() == [True, False, False, True]


def test_teachers_in_order_needs_exact_names():
    stats = {"吉川 太郎": TeacherStats(), "島田講師": TeacherStats()}
    assert teachers_in_order(stats, ["吉川講師", "島田講師"]) == ["島田講師", "吉川 太郎"]

from __future__ import annotations
import re
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, Mapping, Optional, Sequence
import pandas as pd
from .columns import (
    OUTPUT_HEADER, CATEGORY_FIELDS, SUMMARY_HEADER, SUMMARY_TARGET,
    SEASONAL_TOKEN, MAKEUP_TOKEN, HONORIFIC,
)
from .models import ClassifiedRecord, OutputRow, TeacherStats, is_separator
from .summary import ledger_frame, teachers_in_order, rows_for_teacher, row_values
from .utils import parse_timestamp
from .logging import get_logger

log = get_logger(__name__)

SUMMARY_SHEET = "集計一覧"
FONT = "Meiryo UI"
DARK_BLUE = "#1B2C40"
STRIPE_ODD = "#F8F9FA"
LEGEND = "凡例: 緑文字=振替 青文字=講習会授業"

# 講師シートのレイアウト（0 始まりの行番号）
MINI_HEADER_ROW = 2
MINI_DATA_ROW = 3
DAYS_ROW = 4
COUNT_ROW = 5
COMMENT_ROW = 6
LEGEND_ROW = 7
HEADER_ROW = 9
FIRST_DATA_ROW = 10
MINI_FIRST_COL = 7   # H 列
MIN_SUM_LAST_ROW = 1000  # 出力後に行を書き足しても合計に入るように

MINI_HEADER = ["１：２", "１：２\n(特能)", "１：１\n(特能)", "集団指導", "事務作業", "英会話"]

COL_WIDTHS = [15, 15, 12, 6, 6, 18, 18, 6, 8, 8, 10, 10, 10, 25, 8]
SUMMARY_WIDTHS = [15, 10, 10, 10, 10, 10, 10, 10, 15]

# 集計一覧の列色: 1:2 系=青, 集団=緑, 事務=橙, 英会話=赤
SUMMARY_FILLS = {1: "#DCE6F1", 2: "#DCE6F1", 3: "#DCE6F1", 4: "#EBF1DE", 5: "#FDE9D9", 6: "#F2DCDB"}

_SHEET_BAD_CHARS_RE = re.compile(r"[\[\]:*?/\\]")


def _col_letter(idx: int) -> str:
    s = ""
    idx += 1
    while idx:
        idx, rem = divmod(idx - 1, 26)
        s = chr(65 + rem) + s
    return s


def safe_sheet_name(name: str, used: Optional[set] = None) -> str:
    # Excel のシート名: 31 文字まで、[]:*?/\ は不可、前後の ' も不可
    # 重複判定は大文字小文字を区別しないので used は小文字で持つ
    base = _SHEET_BAD_CHARS_RE.sub("_", name or "").strip("'").strip() or "Sheet"
    base = base[:31]
    if used is None:
        return base
    cand = base
    n = 2
    while cand.lower() in used:
        suffix = f"({n})"
        cand = base[: 31 - len(suffix)] + suffix
        n += 1
    used.add(cand.lower())
    return cand


def _sheet_ref(sheet: str) -> str:
    return "'" + sheet.replace("'", "''") + "'"


def report_month(rows: Sequence[OutputRow]) -> int:
    # 最も早い開始日時の月（読める日時がなければ今月）
    dates = []
    for r in rows:
        if is_separator(r):
            continue
        dt = parse_timestamp(r.start)
        if dt is not None:
            dates.append(dt)
    return min(dates).month if dates else datetime.now().month


def excel_file_name(rows: Sequence[OutputRow]) -> str:
    return f"勤務集計_{report_month(rows)}月分.xlsx"


def csv_file_name() -> str:
    return "勤務集計.csv"


def export_to_csv_bytes(rows: Sequence[OutputRow]) -> bytes:
    """BOM 付き UTF-8。内部フラグ列は出さない。"""
    df = ledger_frame(rows)
    return df.to_csv(index=False, lineterminator="\r\n").encode("utf-8-sig")


class _Formats:
    """xlsxwriter の Format を属性の組み合わせごとに使い回す。"""

    def __init__(self, wb):
        self.wb = wb
        self._cache: Dict[tuple, Any] = {}

    def get(self, **props):
        key = tuple(sorted(props.items()))
        fmt = self._cache.get(key)
        if fmt is None:
            base = {"font_name": FONT, "font_size": 10, "valign": "vcenter"}
            base.update(props)
            fmt = self.wb.add_format(base)
            self._cache[key] = fmt
        return fmt


def _write_value(ws, r: int, c: int, value: Any, fmt) -> None:
    if value is None or value == "":
        ws.write_blank(r, c, None, fmt)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        ws.write_number(r, c, value, fmt)
    else:
        ws.write_string(r, c, str(value), fmt)


def _data_cell_format(fmts: _Formats, row: Optional[ClassifiedRecord], stripe: int, col: int, is_header: bool = False):
    props: Dict[str, Any] = {
        "left": 1, "right": 1, "top": 4, "bottom": 4, "text_wrap": True,
    }
    if is_header:
        props.update({"bold": True, "font_color": "#FFFFFF", "bg_color": DARK_BLUE, "align": "center", "top": 2, "bottom": 1})
        return fmts.get(**props)

    if stripe % 2 == 1:
        props["bg_color"] = STRIPE_ODD

    if row is not None:
        # 手修正・時間未入力 > 講習 > 振替 の順で文字色
        if row.is_manually_fixed or row.is_error:
            props["font_color"] = "#FF0000"
        elif row.class_type and SEASONAL_TOKEN in row.class_type:
            props["font_color"] = "#0000FF"
        elif row.class_type and MAKEUP_TOKEN in row.class_type:
            props["font_color"] = "#008000"
        if row.is_special and col == 0:
            props["bg_color"] = "#FFFF00"
    return fmts.get(**props)


def _write_teacher_sheet(
    writer: pd.ExcelWriter,
    fmts: _Formats,
    sheet: str,
    teacher: str,
    rows: Sequence[OutputRow],
    stats: TeacherStats,
    month: int,
    comment: str = "",
) -> None:
    ws = writer.book.add_worksheet(sheet)
    writer.sheets[sheet] = ws

    title_name = teacher if teacher.endswith(HONORIFIC) else f"{teacher}{HONORIFIC}"
    ws.write_string(0, 0, title_name, fmts.get(font_size=12, bold=True))
    ws.write_string(1, 0, f"{month}月分勤務時間集計(分)", fmts.get(font_size=16, bold=True))

    n_data = len(rows)
    last_row = max(MIN_SUM_LAST_ROW, FIRST_DATA_ROW + n_data)
    first_excel = FIRST_DATA_ROW + 1

    mini_head = fmts.get(bold=True, font_color="#FFFFFF", bg_color=DARK_BLUE, align="center", text_wrap=True, border=1)
    mini_data = fmts.get(bold=True, align="center", border=1)
    ws.set_row(MINI_HEADER_ROW, 30)
    for j, (label, cat) in enumerate(zip(MINI_HEADER, CATEGORY_FIELDS)):
        col = MINI_FIRST_COL + j
        letter = _col_letter(col)
        ws.write_string(MINI_HEADER_ROW, col, label, mini_head)
        ws.write_formula(
            MINI_DATA_ROW, col,
            f"=SUM({letter}{first_excel}:{letter}{last_row})",
            mini_data,
            getattr(stats, cat),
        )

    stat_label = fmts.get(font_size=11)
    stat_value = fmts.get(font_size=11, align="right")
    ws.write_string(DAYS_ROW, 0, "月間勤務日数", stat_label)
    ws.write_string(DAYS_ROW, 2, f"{stats.work_days} 日", stat_value)

    h, i, j = (_col_letter(MINI_FIRST_COL + k) for k in range(3))
    count_formula = (
        f'=(COUNTIF({h}{first_excel}:{h}{last_row},">0")'
        f'+COUNTIF({i}{first_excel}:{i}{last_row},">0")'
        f'+COUNTIF({j}{first_excel}:{j}{last_row},">0"))&" 回"'
    )
    ws.write_string(COUNT_ROW, 0, "個別授業回数", stat_label)
    ws.write_formula(COUNT_ROW, 2, count_formula, stat_value, f"{stats.individual_count} 回")

    if comment:
        ws.write_string(COMMENT_ROW, 0, comment, fmts.get(font_size=10, font_color="#333333"))
    ws.write_string(LEGEND_ROW, 1, LEGEND, fmts.get(font_size=9, font_color="#555555"))

    for c, name in enumerate(OUTPUT_HEADER):
        ws.write_string(HEADER_ROW, c, name, _data_cell_format(fmts, None, 0, c, is_header=True))

    r_out = FIRST_DATA_ROW
    stripe = 0
    for row in rows:
        if is_separator(row):
            for c in range(len(OUTPUT_HEADER)):
                ws.write_blank(r_out, c, None, _data_cell_format(fmts, None, stripe, c))
        else:
            for c, value in enumerate(row_values(row)):
                _write_value(ws, r_out, c, value, _data_cell_format(fmts, row, stripe, c))
        r_out += 1
        stripe += 1

    for c, w in enumerate(COL_WIDTHS):
        ws.set_column(c, c, w)
    ws.freeze_panes(FIRST_DATA_ROW, 0)


def _write_summary_sheet(
    writer: pd.ExcelWriter,
    fmts: _Formats,
    teachers: Sequence[str],
    sheet_names: Mapping[str, str],
    stats: Mapping[str, TeacherStats],
    month: int,
    comment: str = "",
) -> None:
    ws = writer.book.add_worksheet(SUMMARY_SHEET)
    writer.sheets[SUMMARY_SHEET] = ws

    ws.write_string(0, 0, f"{month}月勤務時間集計", fmts.get(font_size=14, bold=True, bottom=2))
    if comment:
        ws.write_string(1, 0, comment, fmts.get(font_size=10, font_color="#333333"))

    header_row = 2
    head = fmts.get(bold=True, font_color="#FFFFFF", bg_color=DARK_BLUE, align="center", border=1)
    for c, name in enumerate(SUMMARY_HEADER):
        ws.write_string(header_row, c, name, head)

    days_ref = f"C{DAYS_ROW + 1}"
    count_ref = f"C{COUNT_ROW + 1}"
    for k, t in enumerate(teachers):
        r = header_row + 1 + k
        st = stats[t]
        ref = _sheet_ref(sheet_names[t])

        def cell_fmt(c: int):
            props: Dict[str, Any] = {"border": 1}
            if c in SUMMARY_FILLS:
                props["bg_color"] = SUMMARY_FILLS[c]
            elif k % 2 == 1:
                props["bg_color"] = STRIPE_ODD
            return fmts.get(**props)

        ws.write_string(r, 0, t, cell_fmt(0))
        # 講師シートの集計表を参照する（シート側を手で直しても追従する）
        for j, cat in enumerate(CATEGORY_FIELDS):
            col_letter = _col_letter(MINI_FIRST_COL + j)
            ws.write_formula(r, 1 + j, f"={ref}!{col_letter}{MINI_DATA_ROW + 1}", cell_fmt(1 + j), getattr(st, cat))
        ws.write_formula(r, 7, f"={ref}!{days_ref}", cell_fmt(7), f"{st.work_days} 日")
        ws.write_formula(r, 8, f"={ref}!{count_ref}", cell_fmt(8), f"{st.individual_count} 回")

    for c, w in enumerate(SUMMARY_WIDTHS):
        ws.set_column(c, c, w)


def export_to_excel_bytes(
    rows: Sequence[OutputRow],
    stats: Mapping[str, TeacherStats],
    sort_order: Sequence[str],
    *,
    comments: Optional[Mapping[str, str]] = None,
) -> bytes:
    """
    集計一覧シート + 講師ごとのシート。
    comments: {"全体集計" or 講師名: シート上部に出すコメント}
    """
    comments = comments or {}
    month = report_month(rows)
    teachers = [t for t in teachers_in_order(stats, sort_order) if rows_for_teacher(rows, t)]

    used = {SUMMARY_SHEET.lower()}
    sheet_names = {t: safe_sheet_name(t, used) for t in teachers}

    bio = BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        fmts = _Formats(writer.book)
        _write_summary_sheet(writer, fmts, teachers, sheet_names, stats, month, comments.get(SUMMARY_TARGET, ""))
        for t in teachers:
            _write_teacher_sheet(
                writer, fmts, sheet_names[t], t,
                rows_for_teacher(rows, t), stats[t], month,
                comments.get(t, ""),
            )

    log.info("workbook_exported", teachers=len(teachers), rows=len(rows), month=month)
    return bio.getvalue()

from __future__ import annotations
from typing import Dict, List, Mapping, Sequence
import pandas as pd
from .columns import (
    OUTPUT_HEADER, OUTPUT_FIELDS, CATEGORY_FIELDS, CATEGORY_LABELS,
    SUMMARY_HEADER, SUMMARY_TEACHER, SUMMARY_DAYS, SUMMARY_COUNT,
)
from .models import OutputRow, TeacherStats, is_separator
from .utils import collation_key


def teachers_in_order(stats: Mapping[str, TeacherStats], sort_order: Sequence[str]) -> List[str]:
    """
    シート・集計表の講師順: 並び順リストにある講師（完全一致）が先、残りは名前順。
    """
    # sort_records の部分一致とは違い完全一致だけを見る（元の出力順と同じ）
    pos = {name: i for i, name in enumerate(sort_order)}

    def key(t: str):
        if t in pos:
            return (0, pos[t], "")
        return (1, 0, collation_key(t))

    return sorted(stats.keys(), key=key)


def row_values(row: OutputRow) -> List:
    # 区切り行はすべて空欄
    if is_separator(row):
        return [None] * len(OUTPUT_FIELDS)
    return [getattr(row, f) for f in OUTPUT_FIELDS]


def ledger_frame(rows: Sequence[OutputRow]) -> pd.DataFrame:
    """出力列の順番どおりの一覧（区切り行は空行）。"""
    # object のままにしておく（int と空欄が混ざっても 80.0 にならないように）
    return pd.DataFrame([row_values(r) for r in rows], columns=OUTPUT_HEADER, dtype=object)


HIGHLIGHT_CSS = "background-color: #FEF2F2; color: #B91C1C"


def highlight_mask(rows: Sequence[OutputRow]) -> pd.Series:
    """ledger_frame と同じ行番号で、時間未入力または手修正の行が True。"""
    return pd.Series(
        [not is_separator(r) and (r.is_error or r.is_manually_fixed) for r in rows],
        dtype=bool,
    )


def style_ledger(view: pd.DataFrame, mask: pd.Series):
    # view は ledger_frame を絞り込んだもの（index はそのまま）
    def paint(row: pd.Series) -> List[str]:
        css = HIGHLIGHT_CSS if bool(mask.get(row.name, False)) else ""
        return [css] * len(row)

    return view.style.apply(paint, axis=1)


def summary_frame(stats: Mapping[str, TeacherStats], sort_order: Sequence[str]) -> pd.DataFrame:
    out: List[Dict] = []
    for t in teachers_in_order(stats, sort_order):
        st = stats[t]
        row = {SUMMARY_TEACHER: t}
        for c in CATEGORY_FIELDS:
            row[CATEGORY_LABELS[c]] = getattr(st, c)
        row[SUMMARY_DAYS] = st.work_days
        row[SUMMARY_COUNT] = st.individual_count
        out.append(row)
    return pd.DataFrame(out, columns=SUMMARY_HEADER)


def rows_for_teacher(rows: Sequence[OutputRow], teacher: str) -> List[OutputRow]:
    """
    講師1人分の行。週の区切りは残し、先頭・末尾・連続の区切りは落とす。
    """
    picked: List[OutputRow] = []
    current = None
    for r in rows:
        if is_separator(r):
            if current == teacher and picked and not is_separator(picked[-1]):
                picked.append(r)
            continue
        current = r.teacher
        if r.teacher == teacher:
            picked.append(r)
    while picked and is_separator(picked[-1]):
        picked.pop()
    return picked

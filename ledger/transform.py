"""
集計の本体: 並べ替え済みの出席データを授業コマ（セッション）単位に区分し、
講師ごとの合計を積み上げる。

セッション = 同じ講師・同じ開始時刻が連続する行のまとまり（1:2 なら生徒2行）。
区分はセッションの最終行でだけ決まり、その行の該当列に授業時間が入る。
"""
from __future__ import annotations
from datetime import date
from typing import Collection, Dict, List, Optional, Sequence, Set, Tuple
from .columns import (
    OFFICE_TOKEN, CONVERSATION_TOKEN, SPECIAL_TOKEN,
    GROUP_MINUTES, INDIVIDUAL_MINUTES, AUTO_OFFICE_MINUTES,
)
from .models import (
    ClassifiedRecord, ForceType, OutputRow, RawRecord, SEPARATOR, TeacherStats,
)
from .utils import norm_text, format_timestamp, week_key, day_key, minutes_between, parse_minutes
from .quality import has_missing_time
from .logging import get_logger

log = get_logger(__name__)

# 事務の自動加算（10分）と個別授業回数の対象になる区分
INDIVIDUAL_CATEGORIES = ("individual", "special_pair", "special_single")


def lesson_minutes(r: RawRecord) -> int:
    # 手修正した行だけ開始/終了から計算し直す（元の「授業時間(分)」が古い行はそのまま）
    if r.annotations.is_manually_fixed and norm_text(r.start) and norm_text(r.end):
        m = minutes_between(r.start, r.end)
        if m is not None:
            return m
    return parse_minutes(r.duration)


def display_subject(r: RawRecord) -> str:
    subject = r.subject or ""
    if CONVERSATION_TOKEN in subject:
        if norm_text(r.content):
            return r.content
        if norm_text(r.comment):
            return r.comment
    return subject


def is_special_row(r: RawRecord) -> bool:
    return SPECIAL_TOKEN in (r.class_type or "") or r.annotations.force_special


def classify_session(
    minutes: int,
    subject: str,
    force_type: Optional[ForceType],
    special: bool,
    row_count: int,
    teacher: str,
    excluded_teachers: Collection[str],
) -> str:
    """
    1セッションの区分を返す（上から順に最初に当たったもの）:
      強制「事務」 -> office
      強制「授業」 -> group(90分) / 特能 / 1:2(80,60分・対象外講師以外) / 英会話
      指定なし     -> office(「事務」を含む) / group / 特能 / 1:2 / 英会話
    特能は生徒2行以上で 1:2、1行なら 1:1。
    """
    if force_type == ForceType.OFFICE:
        return "office"
    if force_type != ForceType.LESSON and OFFICE_TOKEN in subject:
        return "office"
    if minutes == GROUP_MINUTES:
        return "group"
    if special:
        return "special_pair" if row_count >= 2 else "special_single"
    if teacher not in excluded_teachers and minutes in INDIVIDUAL_MINUTES:
        return "individual"
    return "conversation"


def _seed_stats(rows: Sequence[RawRecord]) -> Tuple[Dict[str, TeacherStats], Dict[Tuple[str, date], Set[str]]]:
    # 1パス目: 講師ごとの勤務日と、講師×週ごとの勤務日を集める（区分はしない）
    stats: Dict[str, TeacherStats] = {}
    weekly: Dict[Tuple[str, date], Set[str]] = {}
    for r in rows:
        st = stats.setdefault(r.teacher, TeacherStats())
        wk = week_key(r.start)
        day = day_key(r.start)
        if wk is None or day is None:
            continue
        weekly.setdefault((r.teacher, wk), set()).add(day)
        st.days.add(day)
    return stats, weekly


def transform(
    sorted_records: Sequence[RawRecord],
    excluded_teachers: Collection[str],
) -> Tuple[List[OutputRow], Dict[str, TeacherStats]]:
    """
    並べ替え済みのレコードから出力行（区切り行を含む）と講師別集計を作る。

    - 講師が空の行は出力しない
    - 講師が変わる / 週（日曜始まり）が変わる所に SEPARATOR を入れる
    - 週の最終行にだけ「週間日数」を入れる
    例外は投げない。日時や分が読めない行も必ず1行出力される。
    """
    rows = [r for r in sorted_records if norm_text(r.teacher)]
    skipped = len(sorted_records) - len(rows)
    excluded = set(excluded_teachers)

    stats, weekly = _seed_stats(rows)

    starts = [format_timestamp(r.start) for r in rows]
    weeks = [week_key(r.start) for r in rows]

    out: List[OutputRow] = []
    session_rows = 0
    session_special = False
    separators = 0

    for i, r in enumerate(rows):
        t = r.teacher
        has_next = i + 1 < len(rows)
        next_t = rows[i + 1].teacher if has_next else None

        if i > 0:
            prev_w, cur_w = weeks[i - 1], weeks[i]
            if rows[i - 1].teacher != t or (prev_w is not None and cur_w is not None and prev_w != cur_w):
                out.append(SEPARATOR)
                separators += 1

        session_rows += 1
        if is_special_row(r):
            session_special = True

        minutes = lesson_minutes(r)
        subject = display_subject(r)

        rec = ClassifiedRecord(
            student=r.student,
            furigana=r.furigana,
            teacher=t,
            grade=r.grade,
            year=r.year,
            start=starts[i],
            end=format_timestamp(r.end),
            subject=subject,
            is_error=r.annotations.is_error or has_missing_time(r),
            is_manually_fixed=r.annotations.is_manually_fixed,
            class_type=r.class_type,
            is_special=is_special_row(r),
        )

        last_of_session = not has_next or next_t != t or starts[i + 1] != starts[i]
        if last_of_session:
            category = classify_session(
                minutes, subject, r.annotations.force_type,
                session_special, session_rows, t, excluded,
            )
            setattr(rec, category, minutes)
            st = stats[t]
            st.add(category, minutes)
            if category in INDIVIDUAL_CATEGORIES:
                st.individual_count += 1
                rec.office = AUTO_OFFICE_MINUTES
                st.office += AUTO_OFFICE_MINUTES
            session_rows = 0
            session_special = False

        last_of_week = not has_next or next_t != t or weeks[i + 1] != weeks[i]
        if last_of_week and weeks[i] is not None:
            days = weekly.get((t, weeks[i]))
            if days:
                rec.weekly_days = len(days)

        out.append(rec)

    log.info(
        "transform_completed",
        rows=len(rows),
        skipped_no_teacher=skipped,
        separators=separators,
        teachers=len(stats),
    )
    return out, stats

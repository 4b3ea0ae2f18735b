from __future__ import annotations
from typing import List, Optional, Sequence, Tuple
from .columns import OFFICE_TOKEN, DEFAULT_ESTIMATE_MINUTES
from .models import ForceType, RawRecord
from .utils import norm_text, strip_all_whitespace, parse_minutes, shift_timestamp
from .logging import get_logger

log = get_logger(__name__)


def has_missing_time(r: RawRecord) -> bool:
    return not norm_text(r.start) or not norm_text(r.end)


def is_ambiguous_office(r: RawRecord) -> bool:
    # 科目/内容/コメントのどこかに「事務」があり、まだ人が判定していない
    txt = strip_all_whitespace((r.subject or "") + (r.content or "") + (r.comment or ""))
    return OFFICE_TOKEN in txt and r.annotations.force_type is None


def check_quality(records: Sequence[RawRecord]) -> Tuple[List[int], List[int]]:
    """
    (エラー行, 要確認行) のインデックスを返す。
      - エラー: 開始/終了時間が空
      - 要確認: 「事務」を含むが事務/授業の強制指定がない
    副作用なし。レコードを編集したら毎回呼び直すこと。
    """
    errors: List[int] = []
    warnings: List[int] = []
    for i, r in enumerate(records):
        if has_missing_time(r):
            errors.append(i)
        if is_ambiguous_office(r):
            warnings.append(i)

    log.info("quality_checked", rows=len(records), errors=len(errors), warnings=len(warnings))
    return errors, warnings


def mark_errors(records: Sequence[RawRecord], error_indices: Sequence[int]) -> None:
    # check_quality の結果を注釈に書き戻す（エラーでなくなった行は False に戻す）
    flagged = set(error_indices)
    for i, r in enumerate(records):
        r.annotations.is_error = i in flagged


# =========================
# 修正ワークフロー
# =========================
def estimate_minutes(r: RawRecord) -> int:
    return parse_minutes(r.duration) or DEFAULT_ESTIMATE_MINUTES


def estimate_missing_time(r: RawRecord) -> Optional[Tuple[str, str]]:
    """
    開始/終了の片方だけある場合、授業時間(分)から欠けている方を推定する。
    戻り値は (フィールド名, 推定値)。推定できなければ None。
    """
    start = norm_text(r.start)
    end = norm_text(r.end)
    minutes = estimate_minutes(r)
    if start and not end:
        value = shift_timestamp(start, minutes)
        return ("end", value) if value else None
    if end and not start:
        value = shift_timestamp(end, -minutes)
        return ("start", value) if value else None
    return None


def autofill_missing_times(records: Sequence[RawRecord], error_indices: Sequence[int]) -> List[int]:
    filled: List[int] = []
    for idx in error_indices:
        r = records[idx]
        guess = estimate_missing_time(r)
        if guess is None:
            continue
        attr, value = guess
        setattr(r, attr, value)
        r.annotations.is_manually_fixed = True
        filled.append(idx)

    if filled:
        log.info("missing_times_autofilled", count=len(filled))
    return filled


def set_times(r: RawRecord, start: Optional[str] = None, end: Optional[str] = None) -> None:
    if start is not None:
        r.start = start
    if end is not None:
        r.end = end
    r.annotations.is_manually_fixed = True


def set_force_type(r: RawRecord, force_type: Optional[ForceType]) -> None:
    r.annotations.force_type = ForceType(force_type) if force_type else None
    r.annotations.is_manually_fixed = True


def set_subject(r: RawRecord, subject: str) -> None:
    r.subject = subject

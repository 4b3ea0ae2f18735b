from __future__ import annotations
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple
from .columns import HONORIFIC
from .models import RawRecord
from .utils import collation_key, sort_timestamp
from .logging import get_logger

log = get_logger(__name__)


def _strip_honorific(name: str) -> str:
    return (name or "").replace(HONORIFIC, "").strip()


def _name_matches(teacher: str, entry: str) -> bool:
    # 「吉川講師」と CSV の「吉川 太郎」のような表記ゆれを部分一致で吸収する
    if teacher == entry:
        return True
    t = _strip_honorific(teacher)
    e = _strip_honorific(entry)
    if not t or not e:
        return False
    return e in teacher or e in t or t in e


def teacher_rank(teacher: str, sort_order: Sequence[str]) -> Optional[int]:
    """並び順リスト内の位置。見つからなければ None。"""
    for i, entry in enumerate(sort_order):
        if _name_matches(teacher, entry):
            return i
    return None


def _sort_key(r: RawRecord, sort_order: Sequence[str]) -> Tuple[int, int, str, datetime]:
    rank = teacher_rank(r.teacher, sort_order)
    if rank is not None:
        return (0, rank, "", sort_timestamp(r.start))
    # 未登録の講師は登録済みの後ろ、名前順
    return (1, 0, collation_key(r.teacher), sort_timestamp(r.start))


def sort_records(records: Sequence[RawRecord], sort_order: Sequence[str]) -> List[RawRecord]:
    """
    講師の並び順 -> 開始時間 の順で並べる。
    sorted() は安定なので同値の行は元の順序を保つ。
    """
    out = sorted(records, key=lambda r: _sort_key(r, sort_order))
    log.info("records_sorted", rows=len(out), order_entries=len(sort_order))
    return out


def merge_teachers(sort_order: Sequence[str], records: Iterable[RawRecord]) -> Tuple[List[str], bool]:
    """データに出てきた未登録の講師を並び順の末尾に追加する（出現順）。"""
    updated = list(sort_order)
    changed = False
    for r in records:
        t = r.teacher
        if t and t not in updated:
            updated.append(t)
            changed = True
    return updated, changed

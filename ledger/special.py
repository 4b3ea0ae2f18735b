from __future__ import annotations
import uuid
from typing import Dict, List, Mapping, Optional, Sequence
from .models import CandidateMatch, RawRecord, SpecialClassRule
from .logging import get_logger

log = get_logger(__name__)


def new_rule(teacher: str = "", student: str = "", subject: str = "") -> SpecialClassRule:
    return SpecialClassRule(
        id=uuid.uuid4().hex,
        teacher=(teacher or "").strip(),
        student=(student or "").strip(),
        subject=(subject or "").strip(),
    )


def describe_rule(rule: SpecialClassRule) -> str:
    # 生徒 / 講師 / 科目（空の部分は省略）
    parts = [p for p in (rule.student, rule.teacher, rule.subject) if p]
    return " / ".join(parts) if parts else "(全件)"


def _part_matches(value: str, pattern: str) -> bool:
    if not pattern:
        return True
    value = value or ""
    return pattern in value or value == pattern


def rule_matches(rule: SpecialClassRule, r: RawRecord) -> bool:
    return (
        _part_matches(r.teacher, rule.teacher)
        and _part_matches(r.student, rule.student)
        and _part_matches(r.subject, rule.subject)
    )


def first_matching_rule(rules: Sequence[SpecialClassRule], r: RawRecord) -> Optional[SpecialClassRule]:
    # ユーザーが並べた順に見て最初に当たったルールを採用（以降は見ない）
    for rule in rules:
        if rule_matches(rule, r):
            return rule
    return None


def scan_candidates(records: Sequence[RawRecord], rules: Sequence[SpecialClassRule]) -> List[CandidateMatch]:
    """
    特能授業の候補を探す（確認済みの行は対象外）。レコードは変更しない。
    """
    if not rules or not records:
        return []

    out: List[CandidateMatch] = []
    for i, r in enumerate(records):
        if r.annotations.special_confirmed:
            continue
        rule = first_matching_rule(rules, r)
        if rule is not None:
            out.append(CandidateMatch(index=i, rule=describe_rule(rule)))

    log.info("candidates_scanned", rows=len(records), rules=len(rules), candidates=len(out))
    return out


def confirm_candidates(records: Sequence[RawRecord], decisions: Mapping[int, bool]) -> Dict[str, int]:
    """
    候補ごとの「特能として適用するか」を書き戻す。
    decisions: {レコードのインデックス: True/False}
    """
    applied = 0
    ignored = 0
    for idx, is_special in decisions.items():
        r = records[idx]
        r.annotations.force_special = bool(is_special)
        r.annotations.special_confirmed = True
        if is_special:
            applied += 1
        else:
            ignored += 1

    log.info("candidates_confirmed", applied=applied, ignored=ignored)
    return {"applied": applied, "ignored": ignored}


def clear_special(r: RawRecord) -> None:
    # 特能解除: 再スキャンの対象に戻す
    r.annotations.force_special = False
    r.annotations.special_confirmed = False


def confirmed_special_indices(records: Sequence[RawRecord]) -> List[int]:
    return [i for i, r in enumerate(records) if r.annotations.special_confirmed and r.annotations.force_special]

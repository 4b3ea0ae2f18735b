from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from .models import SpecialClassRule
from .special import new_rule
from .utils import settings_path, load_json, save_json
from .logging import get_logger

log = get_logger(__name__)


@dataclass
class LedgerSettings:
    """画面で編集してファイルに保存する設定。"""
    sort_order: List[str] = field(default_factory=list)
    excluded_teachers: List[str] = field(default_factory=list)
    special_rules: List[SpecialClassRule] = field(default_factory=list)
    sheet_comments: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sort_order": list(self.sort_order),
            "excluded_teachers": list(self.excluded_teachers),
            "special_rules": [r.to_dict() for r in self.special_rules],
            "sheet_comments": dict(self.sheet_comments),
        }


def _str_list(v: Any) -> List[str]:
    # 空・重複を除いて順序は保つ
    if isinstance(v, str):
        v = [v]
    if not isinstance(v, list):
        return []
    out: List[str] = []
    for x in v:
        s = str(x or "").strip()
        if s and s not in out:
            out.append(s)
    return out


def _rules(v: Any) -> List[SpecialClassRule]:
    if not isinstance(v, list):
        return []
    out: List[SpecialClassRule] = []
    for item in v:
        if not isinstance(item, dict):
            continue
        rule = SpecialClassRule.from_dict(item)
        # 全部空のルールは全件に当たるので捨てる
        if not (rule.teacher or rule.student or rule.subject):
            continue
        if not rule.id:
            rule.id = new_rule().id
        out.append(rule)
    return out


def _comments(v: Any) -> Dict[str, str]:
    if not isinstance(v, dict):
        return {}
    out: Dict[str, str] = {}
    for k, text in v.items():
        t = str(text or "").strip()
        if str(k).strip() and t:
            out[str(k).strip()] = t
    return out


def settings_from_dict(obj: Any, default_order: Sequence[str]) -> LedgerSettings:
    if not isinstance(obj, dict):
        obj = {}
    order = _str_list(obj.get("sort_order"))
    # 保存済みの並び順がなければ既定の順
    if not order:
        order = list(default_order)
    return LedgerSettings(
        sort_order=order,
        excluded_teachers=_str_list(obj.get("excluded_teachers")),
        special_rules=_rules(obj.get("special_rules")),
        sheet_comments=_comments(obj.get("sheet_comments")),
    )


def load_settings(default_order: Sequence[str], path: Optional[Path] = None) -> LedgerSettings:
    path = path or settings_path()
    return settings_from_dict(load_json(path, {}), default_order)


def save_settings(settings: LedgerSettings, path: Optional[Path] = None) -> None:
    path = path or settings_path()
    save_json(path, settings.to_dict())
    log.info(
        "settings_saved",
        path=str(path),
        teachers=len(settings.sort_order),
        excluded=len(settings.excluded_teachers),
        rules=len(settings.special_rules),
    )

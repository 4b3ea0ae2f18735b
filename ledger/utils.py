import os
import re
import json
import unicodedata
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Optional
from dateutil import parser as dtparser

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"

APPDATA = os.environ.get("APPDATA")
if APPDATA:
    USER_DATA_DIR = Path(APPDATA) / "AttendanceLedger" / "data"
else:
    USER_DATA_DIR = DEFAULT_DATA_DIR  # fallback

def load_json(path: Path, default: Any):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except Exception:
        return default

def save_json(path: Path, obj: Any):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)

_NBSP_RE = re.compile(r"[\u00A0\u2007\u202F\u3000]")  # NBSP / 全角スペース
_WS_RE = re.compile(r"\s+")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def norm_text(s: Any) -> str:
    """
    セル値の軽い正規化:
    - None / NaN -> ""
    - BOM・NBSP・全角スペース
    - 前後の空白を除去
    """
    if s is None:
        return ""
    if isinstance(s, float) and s != s:
        return ""
    s = str(s).replace("\ufeff", "")
    s = _NBSP_RE.sub(" ", s)
    return s.strip()

def strip_all_whitespace(s: str) -> str:
    return _WS_RE.sub("", s or "")

def collation_key(s: Any) -> str:
    # 日本語の辞書順の近似（全角/半角・大文字/小文字を同一視）
    return unicodedata.normalize("NFKC", norm_text(s)).casefold()


# =========================
# 日時
# =========================
def parse_timestamp(s: Any) -> Optional[datetime]:
    """
    "2024/4/5 16:00" / "2024-04-05 16:00:00" などを datetime に。
    解釈できなければ None（例外は投げない）。タイムゾーンは無視してローカル時刻として扱う。
    """
    txt = norm_text(s)
    if not txt:
        return None
    try:
        dt = dtparser.parse(txt)
    except (ValueError, OverflowError, TypeError):
        return None
    return dt.replace(tzinfo=None)

def format_datetime(dt: datetime) -> str:
    # YYYY/M/D H:mm
    return f"{dt.year}/{dt.month}/{dt.day} {dt.hour}:{dt.minute:02d}"

def format_timestamp(s: Any) -> str:
    # 解釈できない値はそのまま返す
    txt = norm_text(s)
    if not txt:
        return ""
    dt = parse_timestamp(txt)
    if dt is None:
        return txt
    return format_datetime(dt)

def day_key(s: Any) -> Optional[str]:
    dt = parse_timestamp(s)
    if dt is None:
        return None
    return f"{dt.year}/{dt.month}/{dt.day}"

def week_key(s: Any) -> Optional[date]:
    """開始日時を含む週の日曜日（同日または直前の日曜）。"""
    dt = parse_timestamp(s)
    if dt is None:
        return None
    d = dt.date()
    return d - timedelta(days=(d.weekday() + 1) % 7)

def sort_timestamp(s: Any) -> datetime:
    # 欠損・不正値は最小値扱い（先頭に並ぶ）
    dt = parse_timestamp(s)
    return dt if dt is not None else datetime.min

def shift_timestamp(s: Any, minutes: int) -> str:
    dt = parse_timestamp(s)
    if dt is None:
        return ""
    return format_datetime(dt + timedelta(minutes=minutes))

def minutes_between(start: Any, end: Any) -> Optional[int]:
    s = parse_timestamp(start)
    e = parse_timestamp(end)
    if s is None or e is None:
        return None
    return int((e - s).total_seconds() // 60)

def parse_minutes(s: Any, default: int = 0) -> int:
    # 先頭の整数だけを読む（"80分" -> 80, "abc" -> default）
    m = _LEADING_INT_RE.match(norm_text(s))
    if not m:
        return default
    return int(m.group(1))


# =========================
# パス
# =========================
def rules_path() -> Path:
    return DEFAULT_DATA_DIR / "rules.json"

def settings_path() -> Path:
    USER_DATA_DIR.mkdir(parents=True, exist_ok=True)
    return USER_DATA_DIR / "settings.json"

"""Data models for the attendance ledger."""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Set, Union

from .columns import INPUT_FIELDS, CATEGORY_FIELDS


class ForceType(str, Enum):
    """Manual override of the office/lesson decision."""
    OFFICE = "office"
    LESSON = "lesson"


@dataclass
class Annotations:
    """Correction / confirmation state attached by the UI, never present in the CSV."""
    is_error: bool = False
    is_manually_fixed: bool = False
    force_type: Optional[ForceType] = None
    force_special: bool = False
    special_confirmed: bool = False


@dataclass
class RawRecord:
    """One attendance row as read from the source file (all cells are strings)."""
    student: str = ""
    furigana: str = ""
    teacher: str = ""
    grade: str = ""
    year: str = ""
    start: str = ""
    end: str = ""
    duration: str = ""
    subject: str = ""
    content: str = ""
    comment: str = ""
    class_type: str = ""
    annotations: Annotations = field(default_factory=Annotations)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "RawRecord":
        # 列名（日本語）から属性へ。欠けている列・NaN は空文字
        values = {}
        for col, attr in INPUT_FIELDS.items():
            v = row.get(col, "")
            if v is None or (isinstance(v, float) and v != v):
                v = ""
            values[attr] = str(v)
        return cls(**values)

    def to_row(self) -> Dict[str, str]:
        return {col: getattr(self, attr) for col, attr in INPUT_FIELDS.items()}


@dataclass
class SpecialClassRule:
    """Partial-match rule; an empty part is a wildcard."""
    id: str
    teacher: str = ""
    student: str = ""
    subject: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "teacher": self.teacher, "student": self.student, "subject": self.subject}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SpecialClassRule":
        return cls(
            id=str(d.get("id", "") or ""),
            teacher=str(d.get("teacher", "") or "").strip(),
            student=str(d.get("student", "") or "").strip(),
            subject=str(d.get("subject", "") or "").strip(),
        )


@dataclass
class CandidateMatch:
    index: int   # index into the raw record list
    rule: str    # human readable description of the matched rule


@dataclass
class ClassifiedRecord:
    """One output row of the ledger. ``None`` means a blank cell."""
    student: str = ""
    furigana: str = ""
    teacher: str = ""
    grade: str = ""
    year: str = ""
    start: str = ""
    end: str = ""
    individual: Optional[int] = None
    special_pair: Optional[int] = None
    special_single: Optional[int] = None
    group: Optional[int] = None
    office: Optional[int] = None
    conversation: Optional[int] = None
    subject: str = ""
    weekly_days: Optional[int] = None

    is_error: bool = False
    is_manually_fixed: bool = False
    class_type: str = ""
    is_special: bool = False

    def categories(self) -> Dict[str, Optional[int]]:
        return {c: getattr(self, c) for c in CATEGORY_FIELDS}


class Separator:
    """Visual break between teachers / weeks in the output sequence."""
    _instance: Optional["Separator"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SEPARATOR"


SEPARATOR = Separator()

OutputRow = Union[ClassifiedRecord, Separator]


def is_separator(row: Any) -> bool:
    return isinstance(row, Separator)


@dataclass
class TeacherStats:
    """Running per-teacher totals (minutes) collected by the transform."""
    individual: int = 0
    special_pair: int = 0
    special_single: int = 0
    group: int = 0
    office: int = 0
    conversation: int = 0
    individual_count: int = 0
    days: Set[str] = field(default_factory=set)

    @property
    def work_days(self) -> int:
        return len(self.days)

    def add(self, category: str, minutes: int) -> None:
        setattr(self, category, getattr(self, category) + minutes)

    def totals(self) -> Dict[str, int]:
        return {c: getattr(self, c) for c in CATEGORY_FIELDS}

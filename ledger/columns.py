from __future__ import annotations
from typing import Dict, List

# =========================
# 入力CSVの列名
# =========================
STUDENT_COL = "生徒氏名"
FURIGANA_COL = "フリガナ"
TEACHER_COL = "書いた先生"
GRADE_COL = "学年"
YEAR_COL = "年度"
START_COL = "授業開始時間"
END_COL = "授業終了時間"
DURATION_COL = "授業時間(分)"
SUBJECT_COL = "科目"
CONTENT_COL = "授業内容"
COMMENT_COL = "コメント"
CLASS_TYPE_COL = "授業区分"

# 列名 -> RawRecord の属性名
INPUT_FIELDS: Dict[str, str] = {
    STUDENT_COL: "student",
    FURIGANA_COL: "furigana",
    TEACHER_COL: "teacher",
    GRADE_COL: "grade",
    YEAR_COL: "year",
    START_COL: "start",
    END_COL: "end",
    DURATION_COL: "duration",
    SUBJECT_COL: "subject",
    CONTENT_COL: "content",
    COMMENT_COL: "comment",
    CLASS_TYPE_COL: "class_type",
}

REQUIRED_COLUMNS: List[str] = [TEACHER_COL]

# =========================
# 出力（ワークブック / CSV）の列
# =========================
OUT_STUDENT = "生徒氏名"
OUT_FURIGANA = "フリガナ"
OUT_TEACHER = "講師名"
OUT_GRADE = "学年"
OUT_YEAR = "年度"
OUT_START = "授業開始時間"
OUT_END = "授業終了時間"
OUT_INDIVIDUAL = "１：２"
OUT_SPECIAL_PAIR = "１：２(特能)"
OUT_SPECIAL_SINGLE = "１：１(特能）"
OUT_GROUP = "集団指導"
OUT_OFFICE = "事務作業"
OUT_CONVERSATION = "英会話"
OUT_SUBJECT = "教科"
OUT_WEEKLY_DAYS = "週間日数"

# 並び順は下流の互換性のため固定
OUTPUT_HEADER: List[str] = [
    OUT_STUDENT, OUT_FURIGANA, OUT_TEACHER, OUT_GRADE, OUT_YEAR,
    OUT_START, OUT_END,
    OUT_INDIVIDUAL, OUT_SPECIAL_PAIR, OUT_SPECIAL_SINGLE, OUT_GROUP, OUT_OFFICE, OUT_CONVERSATION,
    OUT_SUBJECT, OUT_WEEKLY_DAYS,
]

# ClassifiedRecord の属性名（OUTPUT_HEADER と同じ順）
OUTPUT_FIELDS: List[str] = [
    "student", "furigana", "teacher", "grade", "year",
    "start", "end",
    "individual", "special_pair", "special_single", "group", "office", "conversation",
    "subject", "weekly_days",
]

# 区分スロット（属性名, 表示名）
CATEGORY_FIELDS: List[str] = ["individual", "special_pair", "special_single", "group", "office", "conversation"]
CATEGORY_LABELS: Dict[str, str] = {
    "individual": "1:2",
    "special_pair": "1:2(特能)",
    "special_single": "1:1(特能)",
    "group": "集団指導",
    "office": "事務作業",
    "conversation": "英会話",
}

# 集計一覧シート
SUMMARY_TEACHER = "講師名"
SUMMARY_DAYS = "勤務日数"
SUMMARY_COUNT = "個別授業回数"
SUMMARY_HEADER: List[str] = [SUMMARY_TEACHER] + [CATEGORY_LABELS[c] for c in CATEGORY_FIELDS] + [SUMMARY_DAYS, SUMMARY_COUNT]
SUMMARY_TARGET = "全体集計"

# =========================
# 判定用トークン / 定数
# =========================
OFFICE_TOKEN = "事務"
CONVERSATION_TOKEN = "英会話レッスン"
SPECIAL_TOKEN = "特能"
HONORIFIC = "講師"
SEASONAL_TOKEN = "講習"
MAKEUP_TOKEN = "振替"

GROUP_MINUTES = 90
INDIVIDUAL_MINUTES = (80, 60)
AUTO_OFFICE_MINUTES = 10
DEFAULT_ESTIMATE_MINUTES = 80

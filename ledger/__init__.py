"""
勤務集計パッケージ:
- CSV/XLSX の読み込み（文字コード自動判定）
- データ品質チェックと修正ヘルパー
- 特能授業ルールの候補スキャン
- 講師順ソート
- セッション区分・講師別集計
- Excel / CSV 出力
- 設定の保存
"""
from .ingest import load_records, read_csv_bytes, MissingColumnsError
from .quality import check_quality, autofill_missing_times
from .special import scan_candidates, confirm_candidates, clear_special
from .sorting import sort_records, merge_teachers
from .transform import transform
from .summary import ledger_frame, summary_frame
from .export import export_to_excel_bytes, export_to_csv_bytes
from .settings import LedgerSettings, load_settings, save_settings

__all__ = [
    "load_records",
    "read_csv_bytes",
    "MissingColumnsError",
    "check_quality",
    "autofill_missing_times",
    "scan_candidates",
    "confirm_candidates",
    "clear_special",
    "sort_records",
    "merge_teachers",
    "transform",
    "ledger_frame",
    "summary_frame",
    "export_to_excel_bytes",
    "export_to_csv_bytes",
    "LedgerSettings",
    "load_settings",
    "save_settings",
]

from __future__ import annotations
import csv
from io import BytesIO
from typing import List, Optional, Sequence
import pandas as pd
from .columns import REQUIRED_COLUMNS
from .models import RawRecord
from .logging import get_logger

log = get_logger(__name__)

# auto の場合に試す順番（Shift_JIS 系は cp932 で読む）
AUTO_ENCODINGS = ["utf-8-sig", "utf-8", "cp932"]
ENCODING_ALIASES = {"shift_jis": "cp932", "sjis": "cp932", "utf8": "utf-8"}

MISSING_COLUMNS_MESSAGE = "必須列が見つかりません。CSVの形式を確認してください。"


class MissingColumnsError(ValueError):
    """Raised when no decoding of the upload exposes the required columns."""


# =========================
# CSV: 文字コード・区切り文字の推定
# =========================
def _decode_sample(data: bytes, enc: str, limit: int = 65536) -> str:
    try:
        return data[:limit].decode(enc, errors="replace")
    except LookupError:
        return data[:limit].decode("utf-8", errors="replace")


def _guess_delimiter(sample_text: str) -> str:
    # 通常は ','。Excel 保存のタブ区切りも受ける
    try:
        dialect = csv.Sniffer().sniff(sample_text, delimiters=",\t;")
        if dialect.delimiter:
            return dialect.delimiter
    except csv.Error:
        pass

    lines = [ln for ln in sample_text.splitlines() if ln.strip()][:20]
    if not lines:
        return ","

    scores = {}
    for d in [",", "\t", ";"]:
        cnts = [ln.count(d) for ln in lines]
        scores[d] = sum(cnts) / max(1, len(cnts))

    best = max(scores.items(), key=lambda x: x[1])[0]
    return best if scores.get(best, 0) > 0 else ","


def _clean_frame(df: pd.DataFrame) -> pd.DataFrame:
    df = df.fillna("")
    df.columns = [str(c).replace("\ufeff", "").strip() for c in df.columns]
    return df


def _has_required(df: pd.DataFrame) -> bool:
    return all(c in df.columns for c in REQUIRED_COLUMNS)


def _read_with_encoding(data: bytes, enc: str) -> Optional[pd.DataFrame]:
    try:
        delim = _guess_delimiter(_decode_sample(data, enc))
        df = pd.read_csv(
            BytesIO(data),
            sep=delim,
            dtype=str,
            keep_default_na=False,
            encoding=enc,
            skip_blank_lines=True,
            engine="python",
        )
    except (UnicodeDecodeError, LookupError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        log.debug("csv_decode_failed", encoding=enc, error=str(e))
        return None
    return _clean_frame(df)


def read_csv_bytes(data: bytes, encoding: str = "auto") -> pd.DataFrame:
    """
    CSV を DataFrame（全セル文字列）として読む。
    encoding="auto": UTF-8(BOM) -> UTF-8 -> Shift_JIS の順に試し、
    必須列（書いた先生）が見えた時点で採用する。
    """
    enc = ENCODING_ALIASES.get(encoding.lower(), encoding) if encoding else "auto"
    candidates: Sequence[str] = AUTO_ENCODINGS if enc == "auto" else [enc]

    for e in candidates:
        df = _read_with_encoding(data, e)
        if df is None:
            continue
        if _has_required(df):
            log.info("csv_decoded", encoding=e, rows=len(df), columns=len(df.columns))
            return df
        log.debug("csv_required_columns_missing", encoding=e, columns=list(df.columns)[:20])

    raise MissingColumnsError(MISSING_COLUMNS_MESSAGE)


def read_excel_bytes(data: bytes) -> pd.DataFrame:
    # 先頭シートのみ
    df = pd.read_excel(BytesIO(data), sheet_name=0, dtype=str, engine="openpyxl")
    df = _clean_frame(df)
    if not _has_required(df):
        raise MissingColumnsError(MISSING_COLUMNS_MESSAGE)
    log.info("xlsx_decoded", rows=len(df), columns=len(df.columns))
    return df


def records_from_frame(df: pd.DataFrame) -> List[RawRecord]:
    records = [RawRecord.from_row(row) for row in df.to_dict(orient="records")]
    # 完全な空行は捨てる
    return [r for r in records if any(v.strip() for v in r.to_row().values())]


def load_records(name: str, data: bytes, encoding: str = "auto") -> List[RawRecord]:
    """アップロード（ファイル名 + bytes）から RawRecord のリストを作る。"""
    if name.lower().endswith((".xlsx", ".xlsm")):
        df = read_excel_bytes(data)
    else:
        df = read_csv_bytes(data, encoding=encoding)
    return records_from_frame(df)

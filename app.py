from __future__ import annotations
import hashlib
import pandas as pd
import streamlit as st
from ledger.columns import SUMMARY_TARGET
from ledger.ingest import load_records, MissingColumnsError
from ledger.models import ForceType
from ledger.quality import check_quality, mark_errors, autofill_missing_times, estimate_minutes, set_times, set_force_type, set_subject
from ledger.special import scan_candidates, confirm_candidates, clear_special, confirmed_special_indices, new_rule
from ledger.sorting import sort_records, merge_teachers
from ledger.transform import transform
from ledger.summary import ledger_frame, summary_frame, highlight_mask, style_ledger
from ledger.export import export_to_excel_bytes, export_to_csv_bytes, excel_file_name, csv_file_name
from ledger.settings import load_settings, save_settings
from ledger.utils import rules_path, load_json, format_timestamp
from ledger.logging import setup_logging_from_env, get_logger

setup_logging_from_env()
log = get_logger("app")

RULES = load_json(rules_path(), {})
# 保存済みの並び順がないときの初期値（ここだけで持つ）
DEFAULT_TEACHER_ORDER = list(RULES.get("default_teacher_order", []))

st.set_page_config(page_title="勤務集計ツール", layout="wide")
st.title("勤務集計ツール")

FORCE_LABELS = {"": "自動判定", ForceType.OFFICE.value: "事務", ForceType.LESSON.value: "授業"}
FORCE_FROM_LABEL = {v: k for k, v in FORCE_LABELS.items()}

if "settings" not in st.session_state:
    st.session_state["settings"] = load_settings(DEFAULT_TEACHER_ORDER)
st.session_state.setdefault("records", [])
st.session_state.setdefault("upload_sig", None)
st.session_state.setdefault("candidates_dismissed", False)

settings = st.session_state["settings"]
records = st.session_state["records"]

flash = st.session_state.pop("flash", None)
if flash:
    st.success(flash)


def _persist_if_changed(before: dict) -> None:
    if settings.to_dict() != before:
        save_settings(settings)


def _rerun(*editor_keys: str) -> None:
    # エディタの編集差分は元の表に対して残るので、表を差し替える前に捨てる
    for k in editor_keys:
        st.session_state.pop(k, None)
    st.rerun()


def _order_from_editor(edited: pd.DataFrame) -> list:
    eo = edited.dropna(subset=["講師名"]).copy()
    eo["講師名"] = eo["講師名"].astype(str).str.strip()
    eo = eo[eo["講師名"] != ""]
    eo["順番"] = pd.to_numeric(eo["順番"], errors="coerce").fillna(len(eo) + 1)
    out = []
    for name in eo.sort_values("順番", kind="stable")["講師名"].tolist():
        if name not in out:
            out.append(name)
    return out


def _rules_from_editor(edited: pd.DataFrame) -> list:
    # 内容が変わっていない行は既存のルール（id）をそのまま使う
    known = {(r.teacher, r.student, r.subject): r for r in settings.special_rules}
    out = []
    for rr in edited.fillna("").to_dict(orient="records"):
        parts = tuple(str(rr.get(k, "")).strip() for k in ("講師", "生徒", "科目"))
        if not any(parts):
            continue
        out.append(known.pop(parts, None) or new_rule(*parts))
    return out
# =========================

# 設定
# =========================
with st.expander("設定", expanded=not records):
    before = settings.to_dict()
    c1, c2 = st.columns(2)

    with c1:
        st.markdown("#### 講師の表示順序")
        st.caption("「順番」を書き換えて「並び順を保存」を押すと並び替わります。行の追加・削除もできます。")
        order_df = pd.DataFrame({"順番": list(range(1, len(settings.sort_order) + 1)), "講師名": settings.sort_order})
        edited_order = st.data_editor(order_df, num_rows="dynamic", hide_index=True, width="stretch", key="order_editor")

        b1, b2, b3 = st.columns(3)
        with b1:
            if st.button("並び順を保存", type="primary"):
                settings.sort_order = _order_from_editor(edited_order)
                save_settings(settings)
                _rerun("order_editor")
        with b2:
            if st.button("初期順に戻す"):
                settings.sort_order = list(DEFAULT_TEACHER_ORDER)
                save_settings(settings)
                _rerun("order_editor")
        with b3:
            if st.button("CSVから追加"):
                if not records:
                    st.warning("先にCSVファイルを読み込んでください。")
                else:
                    settings.sort_order, changed = merge_teachers(settings.sort_order, records)
                    if changed:
                        save_settings(settings)
                        _rerun("order_editor")

    with c2:
        st.markdown("#### 個別指導(1:2) 対象外講師")
        options = list(dict.fromkeys(settings.sort_order + settings.excluded_teachers))
        settings.excluded_teachers = st.multiselect("対象外講師", options, default=settings.excluded_teachers)
        manual_name = st.text_input("講師名を入力して追加", value="")
        if st.button("追加") and manual_name.strip() and manual_name.strip() not in settings.excluded_teachers:
            settings.excluded_teachers = settings.excluded_teachers + [manual_name.strip()]

    st.markdown("#### 特能授業ルール")
    st.caption("講師・生徒・科目の部分一致（空欄は全件）。上のルールから順に判定し、最初に当たったものを使います。")
    rules_df = pd.DataFrame(
        [{"講師": r.teacher, "生徒": r.student, "科目": r.subject} for r in settings.special_rules],
        columns=["講師", "生徒", "科目"],
    )
    edited_rules = st.data_editor(rules_df, num_rows="dynamic", hide_index=True, width="stretch", key="rules_editor")
    if st.button("ルールを保存"):
        settings.special_rules = _rules_from_editor(edited_rules)
        save_settings(settings)
        st.session_state["candidates_dismissed"] = False
        _rerun("rules_editor")

    st.markdown("#### シートコメント")
    targets = [SUMMARY_TARGET] + settings.sort_order
    tc1, tc2 = st.columns([1, 2])
    with tc1:
        target = st.selectbox("対象シート", targets)
    with tc2:
        text = st.text_area("シート上部に表示するコメント", value=settings.sheet_comments.get(target, ""))
    cb1, cb2 = st.columns(2)
    with cb1:
        if st.button("コメントを保存") and text.strip():
            settings.sheet_comments = {**settings.sheet_comments, target: text.strip()}
    with cb2:
        if st.button("コメントを削除") and target in settings.sheet_comments:
            settings.sheet_comments = {k: v for k, v in settings.sheet_comments.items() if k != target}

    _persist_if_changed(before)
# =========================

# 読み込み
# =========================
upload = st.file_uploader("出席データ（CSV / XLSX）をアップロード", type=["csv", "xlsx"])
encoding = st.selectbox("文字コード", ["auto", "utf-8", "shift_jis"], index=0)

if upload is not None:
    data = upload.getvalue()
    sig = hashlib.md5(data).hexdigest() + "|" + encoding
    if sig != st.session_state["upload_sig"]:
        try:
            loaded = load_records(upload.name, data, encoding=encoding)
        except MissingColumnsError as e:
            st.error(str(e))
            loaded = None
        except Exception as e:
            log.exception("upload_failed", file=upload.name)
            st.error(f"読み込みエラー: {type(e).__name__}: {e}")
            loaded = None

        if loaded is not None:
            st.session_state["records"] = loaded
            st.session_state["upload_sig"] = sig
            st.session_state["candidates_dismissed"] = False
            before = settings.to_dict()
            settings.sort_order, _ = merge_teachers(settings.sort_order, loaded)
            _persist_if_changed(before)
            st.session_state["flash"] = f"読み込み完了: {len(loaded)}行"
            _rerun("order_editor", "time_editor", "office_editor", "cand_editor")

if not records:
    st.info("CSVファイルを読み込んでください。")
    st.stop()
# =========================

# データの確認と修正
# =========================
error_idx, warn_idx = check_quality(records)
mark_errors(records, error_idx)

if error_idx or warn_idx:
    st.subheader("データの確認と修正")
    tab_time, tab_office = st.tabs([f"時間未入力エラー ({len(error_idx)})", f"事務/授業 判定チェック ({len(warn_idx)})"])

    with tab_time:
        if not error_idx:
            st.success("時間エラーはありません")
        else:
            if st.button("授業時間から推定して補完"):
                filled = autofill_missing_times(records, error_idx)
                st.session_state["flash"] = f"{len(filled)}件を補完しました。"
                _rerun("time_editor")

            time_df = pd.DataFrame([
                {
                    "No": i,
                    "生徒名": records[i].student,
                    "講師名": records[i].teacher,
                    "推定時間": f"{estimate_minutes(records[i])}分",
                    "開始時間": records[i].start,
                    "終了時間": records[i].end,
                }
                for i in error_idx
            ])
            edited_time = st.data_editor(
                time_df, hide_index=True, width="stretch", key="time_editor",
                disabled=["No", "生徒名", "講師名", "推定時間"],
            )
            if st.button("時間修正を適用", type="primary"):
                changed = 0
                for rr in edited_time.fillna("").to_dict(orient="records"):
                    r = records[int(rr["No"])]
                    start, end = str(rr["開始時間"]).strip(), str(rr["終了時間"]).strip()
                    if start != r.start or end != r.end:
                        set_times(r, start=start, end=end)
                        changed += 1
                st.session_state["flash"] = f"{changed}件を修正しました。"
                _rerun("time_editor")

    with tab_office:
        if not warn_idx:
            st.success("要確認データはありません")
        else:
            office_df = pd.DataFrame([
                {
                    "No": i,
                    "講師名": records[i].teacher,
                    "生徒名": records[i].student,
                    "科目名": records[i].subject,
                    "時間": f"{records[i].duration}分",
                    "強制指定": FORCE_LABELS[""],
                }
                for i in warn_idx
            ])
            edited_office = st.data_editor(
                office_df, hide_index=True, width="stretch", key="office_editor",
                disabled=["No", "講師名", "生徒名", "時間"],
                column_config={
                    "強制指定": st.column_config.SelectboxColumn("強制指定", options=list(FORCE_LABELS.values())),
                },
            )
            if st.button("判定修正を適用", type="primary"):
                for rr in edited_office.fillna("").to_dict(orient="records"):
                    r = records[int(rr["No"])]
                    if str(rr["科目名"]) != r.subject:
                        set_subject(r, str(rr["科目名"]))
                    forced = FORCE_FROM_LABEL.get(str(rr["強制指定"]), "")
                    if forced:
                        set_force_type(r, ForceType(forced))
                _rerun("office_editor")
# =========================

# 特能授業の候補
# =========================
candidates = scan_candidates(records, settings.special_rules)

if candidates and not st.session_state["candidates_dismissed"]:
    st.subheader(f"特能授業 候補リスト ({len(candidates)}件)")
    st.caption("チェックした行を特能授業として適用し、外した行は通常授業として確定します。")
    cand_df = pd.DataFrame([
        {
            "適用": True,
            "No": c.index,
            "日付": format_timestamp(records[c.index].start),
            "生徒名": records[c.index].student,
            "講師名": records[c.index].teacher,
            "科目": records[c.index].subject,
            "ルール": c.rule,
        }
        for c in candidates
    ])
    edited_cand = st.data_editor(
        cand_df, hide_index=True, width="stretch", key="cand_editor",
        disabled=["No", "日付", "生徒名", "講師名", "科目", "ルール"],
    )
    k1, k2 = st.columns(2)
    with k1:
        if st.button("確定", type="primary"):
            decisions = {int(rr["No"]): bool(rr["適用"]) for rr in edited_cand.to_dict(orient="records")}
            res = confirm_candidates(records, decisions)
            st.session_state["flash"] = f"{res['applied']}件を特能授業として適用し、{res['ignored']}件を通常授業として処理しました。"
            _rerun("cand_editor")
    with k2:
        if st.button("キャンセル"):
            st.session_state["candidates_dismissed"] = True
            _rerun("cand_editor")

special_idx = confirmed_special_indices(records)
if special_idx:
    with st.expander(f"特能として確定済み ({len(special_idx)}件)", expanded=False):
        labels = {i: f"{format_timestamp(records[i].start)} {records[i].student} / {records[i].teacher}" for i in special_idx}
        to_clear = st.multiselect("特能解除する行", special_idx, format_func=lambda i: labels[i])
        if st.button("特能解除") and to_clear:
            for i in to_clear:
                clear_special(records[i])
            st.session_state["candidates_dismissed"] = False
            _rerun("cand_editor")
# =========================

# 集計
# =========================
sorted_records = sort_records(records, settings.sort_order)
rows, stats = transform(sorted_records, settings.excluded_teachers)

st.divider()
st.subheader("集計結果")
m1, m2, m3, m4 = st.columns(4)
with m1:
    st.metric("講師数", len(stats))
with m2:
    st.metric("行数", len(records))
with m3:
    st.metric("時間未入力", len(error_idx))
with m4:
    st.metric("要確認", len(warn_idx))

sum_df = summary_frame(stats, settings.sort_order)
st.dataframe(sum_df, width="stretch", hide_index=True)

teacher_sel = st.selectbox("講師で絞り込み", ["(全員)"] + sum_df["講師名"].tolist())
view = ledger_frame(rows)
if teacher_sel != "(全員)":
    view = view[view["講師名"] == teacher_sel]
st.caption("赤色の行: 時間未入力または手修正")
st.dataframe(style_ledger(view.head(2000), highlight_mask(rows)), width="stretch", hide_index=True)

d1, d2 = st.columns(2)
with d1:
    xbytes = export_to_excel_bytes(rows, stats, settings.sort_order, comments=settings.sheet_comments)
    st.download_button(
        "Excelをダウンロード",
        data=xbytes,
        file_name=excel_file_name(rows),
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        type="primary",
    )
with d2:
    st.download_button(
        "CSVをダウンロード",
        data=export_to_csv_bytes(rows),
        file_name=csv_file_name(),
        mime="text/csv",
    )

from __future__ import annotations

import io
import json
from collections.abc import Iterable, Sequence

import pandas as pd

from ..domain.models import CATEGORIES, Category, User, WheelEntry


def _to_iso(val):
    if hasattr(val, "isoformat"):
        try:
            return val.isoformat()
        except Exception:
            return str(val)
    return val


def entries_frame(
    entries: Iterable[WheelEntry],
    users: Iterable[User] = (),
    categories: Sequence[Category] = CATEGORIES,
) -> pd.DataFrame:
    """One row per entry with a column per category, newest first."""
    names = {u.id: u.name for u in users}
    columns = ["EntryID", "UserID", "User", "CreatedAt", *[c.id for c in categories], "Average", "Narrative"]
    rows = []
    for e in entries:
        row = {
            "EntryID": e.id,
            "UserID": e.user_id,
            "User": names.get(e.user_id),
            "CreatedAt": e.created_at,
        }
        for c in categories:
            row[c.id] = e.scores.get(c.id)
        row["Average"] = round(sum(e.scores.get(c.id, 0) for c in categories) / len(categories), 2)
        row["Narrative"] = e.narrative
        rows.append(row)

    df = pd.DataFrame(rows, columns=columns)
    if not df.empty:
        df = df.sort_values("CreatedAt", ascending=False, ignore_index=True)
    return df


def make_json_export_payload(entries_df: pd.DataFrame) -> str:
    payload = {
        "entry_count": int(len(entries_df)),
        "entries": entries_df.astype(object).where(entries_df.notna(), None).map(_to_iso).to_dict(orient="records"),
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def make_xlsx_export_bytes(entries_df: pd.DataFrame, categories: Sequence[Category] = CATEGORIES) -> bytes:
    """Single-sheet Excel export; category columns use the display names."""
    if entries_df is None:
        entries_df = entries_frame([])

    sheet = entries_df.rename(columns={c.id: c.name for c in categories})

    bio = io.BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        sheet.to_excel(writer, index=False, sheet_name="History")
    return bio.getvalue()

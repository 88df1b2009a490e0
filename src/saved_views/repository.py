from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, List, Optional

from src.storage import UNSET, BaseRepository

from .models import SavedView


class SavedViewRepository(BaseRepository):
    """Saved views with their filters and sort stored as JSON documents."""

    @staticmethod
    def _row_to_view(row: sqlite3.Row) -> SavedView:
        return SavedView(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            filters=json.loads(row["filters_json"] or "{}"),
            sort_order=json.loads(row["sort_order_json"] or "{}"),
            display_mode=row["display_mode"],
            icon=row["icon"],
            is_default=bool(row["is_default"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def list(self, user_id: int) -> List[SavedView]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM saved_views WHERE user_id = ? ORDER BY name COLLATE NOCASE, id",
                (user_id,),
            ).fetchall()
        return [self._row_to_view(row) for row in rows]

    def count(self, user_id: int) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM saved_views WHERE user_id = ?", (user_id,)
            ).fetchone()
        return row["total"]

    def get(self, view_id: int) -> Optional[SavedView]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM saved_views WHERE id = ?", (view_id,)).fetchone()
        return self._row_to_view(row) if row else None

    def create(
        self,
        user_id: int,
        name: str,
        filters: Optional[Dict[str, Any]] = None,
        sort_order: Optional[Dict[str, Any]] = None,
        display_mode: str = "list",
        icon: Optional[str] = None,
        is_default: bool = False,
    ) -> SavedView:
        now = self._now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO saved_views (user_id, name, filters_json, sort_order_json, display_mode,
                                         icon, is_default, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    name,
                    json.dumps(filters or {}, ensure_ascii=False),
                    json.dumps(sort_order or {}, ensure_ascii=False),
                    display_mode or "list",
                    icon,
                    int(is_default),
                    now,
                    now,
                ),
            )
            conn.commit()
            view_id = cursor.lastrowid
        return self.get(view_id)

    def update(
        self,
        view_id: int,
        *,
        name: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        sort_order: Optional[Dict[str, Any]] = None,
        display_mode: Optional[str] = None,
        icon: Any = UNSET,
        is_default: Optional[bool] = None,
    ) -> Optional[SavedView]:
        fields: list[str] = []
        params: list[object] = []
        if name is not None:
            fields.append("name = ?")
            params.append(name)
        if filters is not None:
            fields.append("filters_json = ?")
            params.append(json.dumps(filters, ensure_ascii=False))
        if sort_order is not None:
            fields.append("sort_order_json = ?")
            params.append(json.dumps(sort_order, ensure_ascii=False))
        if display_mode is not None:
            fields.append("display_mode = ?")
            params.append(display_mode)
        if icon is not UNSET:
            fields.append("icon = ?")
            params.append(icon)
        if is_default is not None:
            fields.append("is_default = ?")
            params.append(int(is_default))
        if not fields:
            return self.get(view_id)

        fields.append("updated_at = ?")
        params.extend([self._now(), view_id])
        with self._connect() as conn:
            conn.execute(f"UPDATE saved_views SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
        return self.get(view_id)

    def delete(self, view_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM saved_views WHERE id = ?", (view_id,))
            conn.commit()
            return cursor.rowcount > 0

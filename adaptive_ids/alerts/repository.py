from __future__ import annotations

import csv
import hashlib
import sqlite3
import threading
from pathlib import Path
from typing import Any

from adaptive_ids.models.events import Alert


class AlertRepository:
    """Registro SQLite de alertas con hash encadenado para trazabilidad."""

    name = "sqlite"

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._init_db()

    def _init_db(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS alerts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ts_ms INTEGER NOT NULL,
                    source_id TEXT NOT NULL,
                    dest_id TEXT NOT NULL,
                    source_port INTEGER NOT NULL,
                    dest_port INTEGER NOT NULL,
                    attack_type TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    description TEXT NOT NULL,
                    action_taken TEXT NOT NULL,
                    prev_hash TEXT,
                    record_hash TEXT NOT NULL
                )
                """
            )

    def emit(self, alert: Alert) -> None:
        self.save_alert(alert)

    def save_alert(self, alert: Alert) -> str:
        with self._lock, sqlite3.connect(self.db_path) as conn:
            row = conn.execute("SELECT record_hash FROM alerts ORDER BY id DESC LIMIT 1").fetchone()
            prev_hash = row[0] if row else ""
            raw = (
                f"{alert.timestamp_ms}|{alert.attack_type.value}|{alert.source_id}|"
                f"{alert.dest_id}|{alert.action_taken.value}|{prev_hash}"
            )
            record_hash = hashlib.sha256(raw.encode("utf-8")).hexdigest()
            conn.execute(
                """
                INSERT INTO alerts (ts_ms, source_id, dest_id, source_port, dest_port, attack_type,
                                    confidence, description, action_taken, prev_hash, record_hash)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    alert.timestamp_ms,
                    alert.source_id,
                    alert.dest_id,
                    alert.source_port,
                    alert.dest_port,
                    alert.attack_type.value,
                    alert.confidence,
                    alert.description,
                    alert.action_taken.value,
                    prev_hash,
                    record_hash,
                ),
            )
        return record_hash

    def export_json(self) -> list[dict[str, Any]]:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute("SELECT * FROM alerts ORDER BY id ASC").fetchall()
            return [dict(row) for row in rows]

    def export_csv(self, output: str | Path) -> int:
        rows = self.export_json()
        if not rows:
            Path(output).write_text("", encoding="utf-8")
            return 0

        with Path(output).open("w", newline="", encoding="utf-8") as fh:
            writer = csv.DictWriter(fh, fieldnames=list(rows[0].keys()))
            writer.writeheader()
            writer.writerows(rows)
        return len(rows)

    def verify_chain(self) -> bool:
        prev_hash = ""
        for row in self.export_json():
            raw = (
                f"{row['ts_ms']}|{row['attack_type']}|{row['source_id']}|"
                f"{row['dest_id']}|{row['action_taken']}|{prev_hash}"
            )
            if row["prev_hash"] != prev_hash:
                return False
            if hashlib.sha256(raw.encode("utf-8")).hexdigest() != row["record_hash"]:
                return False
            prev_hash = row["record_hash"]
        return True

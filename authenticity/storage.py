from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List

from .schemas import AnalysisCreate, AnalysisRecord

logger = logging.getLogger(__name__)


class AnalysisStorage(ABC):
    """Persists analysis records keyed by a generated id."""

    @abstractmethod
    def create_image_analysis(self, data: AnalysisCreate) -> AnalysisRecord:
        ...

    @abstractmethod
    def get_image_analysis(self, analysis_id: str) -> AnalysisRecord | None:
        ...

    @abstractmethod
    def get_recent_analyses(self, limit: int) -> List[AnalysisRecord]:
        ...

    def close(self) -> None:
        pass

    @staticmethod
    def _new_record(data: AnalysisCreate) -> AnalysisRecord:
        return AnalysisRecord(id=str(uuid.uuid4()), **data.model_dump())


class MemStorage(AnalysisStorage):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_id: Dict[str, AnalysisRecord] = {}
        # insertion order doubles as creation order
        self._order: List[str] = []

    def create_image_analysis(self, data: AnalysisCreate) -> AnalysisRecord:
        record = self._new_record(data)
        with self._lock:
            self._by_id[record.id] = record
            self._order.append(record.id)
        return record

    def get_image_analysis(self, analysis_id: str) -> AnalysisRecord | None:
        with self._lock:
            return self._by_id.get(analysis_id)

    def get_recent_analyses(self, limit: int) -> List[AnalysisRecord]:
        if limit <= 0:
            return []
        with self._lock:
            ids = self._order[-limit:]
            return [self._by_id[i] for i in reversed(ids)]


_SCHEMA = """
CREATE TABLE IF NOT EXISTS image_analyses (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    filename TEXT NOT NULL,
    original_size INTEGER NOT NULL,
    dimensions TEXT NOT NULL,
    classification TEXT NOT NULL,
    confidence INTEGER NOT NULL,
    processing_time REAL NOT NULL,
    indicators TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL
)
"""

_COLUMNS = (
    "id, filename, original_size, dimensions, classification, "
    "confidence, processing_time, indicators, created_at"
)


class SQLiteStorage(AnalysisStorage):
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        directory = os.path.dirname(os.path.abspath(db_path))
        if db_path != ":memory:":
            os.makedirs(directory, exist_ok=True)
        self._lock = threading.Lock()
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        with self._lock:
            self.conn.execute(_SCHEMA)
            self.conn.commit()
        logger.info("Using SQLite analysis store at %s", db_path)

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> AnalysisRecord:
        return AnalysisRecord(
            id=row["id"],
            filename=row["filename"],
            original_size=row["original_size"],
            dimensions=row["dimensions"],
            classification=row["classification"],
            confidence=row["confidence"],
            processing_time=row["processing_time"],
            indicators=json.loads(row["indicators"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def create_image_analysis(self, data: AnalysisCreate) -> AnalysisRecord:
        record = self._new_record(data)
        with self._lock:
            self.conn.execute(
                f"INSERT INTO image_analyses ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.filename,
                    record.original_size,
                    record.dimensions,
                    record.classification,
                    record.confidence,
                    record.processing_time,
                    json.dumps(record.indicators),
                    record.created_at.isoformat(),
                ),
            )
            self.conn.commit()
        return record

    def get_image_analysis(self, analysis_id: str) -> AnalysisRecord | None:
        with self._lock:
            row = self.conn.execute(
                f"SELECT {_COLUMNS} FROM image_analyses WHERE id = ?", (analysis_id,)
            ).fetchone()
        return self._row_to_record(row) if row is not None else None

    def get_recent_analyses(self, limit: int) -> List[AnalysisRecord]:
        if limit <= 0:
            return []
        with self._lock:
            rows = self.conn.execute(
                f"SELECT {_COLUMNS} FROM image_analyses ORDER BY seq DESC LIMIT ?", (limit,)
            ).fetchall()
        return [self._row_to_record(r) for r in rows]

    def close(self) -> None:
        with self._lock:
            self.conn.close()


def storage_from_path(db_path: str) -> AnalysisStorage:
    if not db_path:
        return MemStorage()
    return SQLiteStorage(db_path)

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from lesson_mentor.config import env, progress_dir
from lesson_mentor.schemas import ProgressRecord

logger = logging.getLogger(__name__)

KEY_PREFIX = "progress:"


class ProgressBackend(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryProgressBackend:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class FileProgressBackend:
    """One JSON file per key under a directory (per-device storage)."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)


class PostgresProgressBackend:
    """
    Key/value progress table in Postgres.
    Requires DATABASE_URL.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url

    def _connect(self):
        # Import lazily so local dev runs without Postgres deps installed.
        import psycopg  # type: ignore

        return psycopg.connect(self.database_url)

    def ensure_schema(self) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS lesson_progress (
                      key TEXT PRIMARY KEY,
                      value TEXT NOT NULL,
                      updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
                    );
                    """
                )
            conn.commit()

    def get(self, key: str) -> str | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT value FROM lesson_progress WHERE key = %s;", (key,))
                row = cur.fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO lesson_progress (key, value, updated_at)
                    VALUES (%s, %s, now())
                    ON CONFLICT (key) DO UPDATE
                      SET value = EXCLUDED.value,
                          updated_at = EXCLUDED.updated_at;
                    """,
                    (key, value),
                )
            conn.commit()


class ProgressStore:
    """
    Resume position and completed checkpoints per video.

    Every write reads the full record, changes one field and writes it back, so
    saving the playhead never drops a completion and vice versa. Storage failures
    are logged and ignored; losing progress is not fatal.
    """

    def __init__(self, backend: ProgressBackend) -> None:
        self.backend = backend

    @staticmethod
    def _key(video_id: str) -> str:
        return f"{KEY_PREFIX}{video_id}"

    def load(self, video_id: str) -> ProgressRecord:
        default = ProgressRecord(videoId=video_id)
        try:
            raw = self.backend.get(self._key(video_id))
        except Exception:
            logger.exception("Failed to read progress for %s", video_id)
            return default
        if raw is None:
            return default
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("progress record is not an object")
            data["videoId"] = video_id
            return ProgressRecord.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning("Ignoring corrupt progress for %s: %s", video_id, e)
            return default

    def _write(self, record: ProgressRecord) -> None:
        try:
            payload = record.model_dump_json()
            self.backend.set(self._key(record.videoId), payload)
        except Exception:
            logger.exception("Failed to save progress for %s", record.videoId)

    def save_time(self, video_id: str, time_seconds: int) -> ProgressRecord:
        record = self.load(video_id)
        record.lastTimeSeconds = max(int(time_seconds), 0)
        self._write(record)
        return record

    def mark_completed(self, video_id: str, checkpoint_id: str) -> ProgressRecord:
        record = self.load(video_id)
        record.completedCheckpointIds = record.completedCheckpointIds | {checkpoint_id}
        self._write(record)
        return record


def make_progress_store() -> ProgressStore:
    db_url = env("DATABASE_URL")
    if db_url:
        backend = PostgresProgressBackend(db_url)
        backend.ensure_schema()
        return ProgressStore(backend)
    return ProgressStore(FileProgressBackend(progress_dir()))

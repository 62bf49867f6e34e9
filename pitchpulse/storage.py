import logging
import os
import re
import threading
import uuid
from datetime import datetime
from typing import List, Optional, Protocol

from .errors import StorageFullError
from .models import HistoryItem, SaveHistoryRequest, utc_now

try:
    import psycopg
    from psycopg import errors as pg_errors
except Exception:  # pragma: no cover - only relevant when Postgres is enabled.
    psycopg = None
    pg_errors = None


logger = logging.getLogger("uvicorn.error")

MAX_HISTORY_ITEMS = 50
REDUCED_HISTORY_ITEMS = 20
PREVIEW_CHARS = 150
TITLE_MAX_CHARS = 50
UNTITLED_PITCH = "Untitled Pitch"

_WHITESPACE_RE = re.compile(r"\s+")
_SENTENCE_END_RE = re.compile(r"[.!?]")


def normalize_database_url(database_url: str) -> str:
    if database_url.startswith("postgres://"):
        return "postgresql://" + database_url[len("postgres://") :]
    return database_url


def generate_pitch_title(transcript_text: str) -> str:
    cleaned = _WHITESPACE_RE.sub(" ", (transcript_text or "").strip())
    first_sentence = _SENTENCE_END_RE.split(cleaned, 1)[0]
    if len(first_sentence) <= TITLE_MAX_CHARS:
        return first_sentence or UNTITLED_PITCH
    return first_sentence[: TITLE_MAX_CHARS - 3] + "..."


def transcript_preview(transcript_text: str) -> str:
    if len(transcript_text) > PREVIEW_CHARS:
        return transcript_text[:PREVIEW_CHARS] + "..."
    return transcript_text


def new_history_id(now: Optional[datetime] = None) -> str:
    moment = now or utc_now()
    return f"pitch-{int(moment.timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"


def build_history_item(request: SaveHistoryRequest, *, now: Optional[datetime] = None) -> HistoryItem:
    moment = now or utc_now()
    text = request.transcript.text
    return HistoryItem(
        id=new_history_id(moment),
        title=generate_pitch_title(text),
        date=moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        persona=request.persona,
        overall_score=request.analysis.overall_score,
        weak_moments_count=sum(1 for segment in request.analysis.segments if segment.weak_moment),
        transcript_preview=transcript_preview(text),
        serialized_result=request.serialized(),
    )


class HistoryStore(Protocol):
    storage_name: str

    def list_items(self) -> List[HistoryItem]:
        pass

    def get_item(self, item_id: str) -> Optional[HistoryItem]:
        pass

    def save_item(self, item: HistoryItem) -> HistoryItem:
        pass

    def delete_item(self, item_id: str) -> bool:
        pass

    def clear(self) -> int:
        pass


class InMemoryHistoryStore:
    """Newest-first history list kept in process memory.

    ``max_bytes`` emulates a browser storage quota: a write whose serialized
    size exceeds it raises StorageFullError, which ``save_item`` answers by
    keeping only the newest twenty entries and writing once more.
    """

    storage_name = "memory"

    def __init__(
        self,
        *,
        capacity: int = MAX_HISTORY_ITEMS,
        reduced_capacity: int = REDUCED_HISTORY_ITEMS,
        max_bytes: Optional[int] = None,
    ) -> None:
        self.capacity = capacity
        self.reduced_capacity = reduced_capacity
        self.max_bytes = max_bytes
        self._items: List[HistoryItem] = []
        self._lock = threading.Lock()

    def _commit(self, items: List[HistoryItem]) -> None:
        if self.max_bytes is not None:
            size = sum(len(item.model_dump_json(by_alias=True)) for item in items)
            if size > self.max_bytes:
                raise StorageFullError(f"History needs {size} bytes; quota is {self.max_bytes}.")
        self._items = items

    def list_items(self) -> List[HistoryItem]:
        with self._lock:
            return list(self._items)

    def get_item(self, item_id: str) -> Optional[HistoryItem]:
        with self._lock:
            return next((item for item in self._items if item.id == item_id), None)

    def save_item(self, item: HistoryItem) -> HistoryItem:
        with self._lock:
            updated = [item, *self._items][: self.capacity]
            try:
                self._commit(updated)
            except StorageFullError:
                logger.warning("history_storage_full reducing_to=%s", self.reduced_capacity)
                self._commit(updated[: self.reduced_capacity])
        return item

    def delete_item(self, item_id: str) -> bool:
        with self._lock:
            remaining = [item for item in self._items if item.id != item_id]
            deleted = len(remaining) != len(self._items)
            self._items = remaining
        return deleted

    def clear(self) -> int:
        with self._lock:
            cleared = len(self._items)
            self._items = []
        return cleared


_HISTORY_COLUMNS = (
    "id, title, date, persona, overall_score, weak_moments_count, transcript_preview, serialized_result"
)


def _row_to_item(row) -> HistoryItem:
    (
        item_id,
        title,
        date,
        persona,
        overall_score,
        weak_moments_count,
        preview,
        serialized_result,
    ) = row
    return HistoryItem(
        id=item_id,
        title=title,
        date=date,
        persona=persona,
        overall_score=float(overall_score),
        weak_moments_count=int(weak_moments_count),
        transcript_preview=preview,
        serialized_result=serialized_result,
    )


class PostgresHistoryStore:
    storage_name = "postgres"

    def __init__(
        self,
        database_url: str,
        *,
        capacity: int = MAX_HISTORY_ITEMS,
        reduced_capacity: int = REDUCED_HISTORY_ITEMS,
    ) -> None:
        if psycopg is None:
            raise RuntimeError("psycopg is required when DATABASE_URL is set.")
        self._database_url = normalize_database_url(database_url)
        self.capacity = capacity
        self.reduced_capacity = reduced_capacity
        self._ensure_schema()

    def _connect(self):
        return psycopg.connect(self._database_url, autocommit=True)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS pitch_history (
                        seq BIGSERIAL,
                        id TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        date TEXT NOT NULL,
                        persona TEXT NOT NULL,
                        overall_score DOUBLE PRECISION NOT NULL,
                        weak_moments_count INTEGER NOT NULL,
                        transcript_preview TEXT NOT NULL,
                        serialized_result TEXT NOT NULL
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_pitch_history_seq
                    ON pitch_history (seq DESC)
                    """
                )

    def _prune(self, cur, keep: int) -> None:
        cur.execute(
            """
            DELETE FROM pitch_history
            WHERE id NOT IN (
                SELECT id FROM pitch_history ORDER BY seq DESC LIMIT %s
            )
            """,
            (keep,),
        )

    def _insert(self, item: HistoryItem, keep: int) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"INSERT INTO pitch_history ({_HISTORY_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)",
                    (
                        item.id,
                        item.title,
                        item.date,
                        item.persona,
                        item.overall_score,
                        item.weak_moments_count,
                        item.transcript_preview,
                        item.serialized_result,
                    ),
                )
                self._prune(cur, keep)

    def list_items(self) -> List[HistoryItem]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {_HISTORY_COLUMNS} FROM pitch_history ORDER BY seq DESC")
                return [_row_to_item(row) for row in cur.fetchall()]

    def get_item(self, item_id: str) -> Optional[HistoryItem]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {_HISTORY_COLUMNS} FROM pitch_history WHERE id = %s", (item_id,))
                row = cur.fetchone()
                if row is None:
                    return None
                return _row_to_item(row)

    def save_item(self, item: HistoryItem) -> HistoryItem:
        try:
            self._insert(item, self.capacity)
        except pg_errors.DiskFull:
            logger.warning("history_storage_full reducing_to=%s", self.reduced_capacity)
            with self._connect() as conn:
                with conn.cursor() as cur:
                    self._prune(cur, self.reduced_capacity - 1)
            try:
                self._insert(item, self.reduced_capacity)
            except pg_errors.DiskFull as exc:
                raise StorageFullError("History storage is full.") from exc
        return item

    def delete_item(self, item_id: str) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM pitch_history WHERE id = %s", (item_id,))
                return cur.rowcount > 0

    def clear(self) -> int:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM pitch_history")
                return cur.rowcount


def build_history_store() -> HistoryStore:
    database_url = os.getenv("DATABASE_URL", "").strip()
    if database_url:
        return PostgresHistoryStore(database_url=database_url)
    return InMemoryHistoryStore()

"""SQLite summary repository — requires aiosqlite (guarded import).

Every operation opens its own connection.  Version assignment runs in a
``BEGIN IMMEDIATE`` transaction, which takes the database write lock
before the max-version read, so concurrent writers in any process
serialise on it.

Segment text is transient and is not persisted.

Classes
-------
- SQLiteSummaryRepository  — aiosqlite-backed repository
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Sequence
from uuid import uuid4

from summary_hierarchy.config import DEFAULT_DB_PATH
from summary_hierarchy.storage.base import (
    TYPE_ORDER,
    CollectionNotFoundError,
    SummaryNotFoundError,
    SummaryRepository,
    apply_update,
    group_by_scope,
)
from summary_hierarchy.summary.state import (
    CollectionSource,
    Concept,
    CreateSummaryInput,
    DocumentSegment,
    Summary,
    SummaryCollection,
    SummaryType,
    UpdateSummaryInput,
)

logger = logging.getLogger(__name__)

_AIOSQLITE_IMPORT_ERROR = (
    "SQLiteSummaryRepository requires the 'aiosqlite' package. "
    "Install it with: pip install aiosqlite"
)

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS summaries (
    id                     TEXT PRIMARY KEY,
    source_id              TEXT NOT NULL,
    summary_type           TEXT NOT NULL
        CHECK (summary_type IN ('executive', 'key_points', 'detailed', 'segment')),
    title                  TEXT NOT NULL,
    content                TEXT NOT NULL,
    word_count             INTEGER DEFAULT 0,
    version                INTEGER NOT NULL DEFAULT 1,
    is_current             INTEGER NOT NULL DEFAULT 1,
    parent_version_id      TEXT,
    generation_model       TEXT NOT NULL,
    generation_duration_ms INTEGER,
    input_token_count      INTEGER,
    output_token_count     INTEGER,
    quality_score          REAL,
    user_rating            INTEGER CHECK (user_rating BETWEEN 1 AND 5),
    created_at             TEXT NOT NULL,
    updated_at             TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS document_segments (
    id               TEXT PRIMARY KEY,
    source_id        TEXT NOT NULL,
    segment_index    INTEGER NOT NULL,
    start_index      INTEGER,
    end_index        INTEGER,
    section_title    TEXT,
    level            INTEGER DEFAULT 0,
    estimated_tokens INTEGER,
    created_at       TEXT NOT NULL,
    UNIQUE (source_id, segment_index)
);

CREATE TABLE IF NOT EXISTS summary_collections (
    id                    TEXT PRIMARY KEY,
    name                  TEXT NOT NULL,
    description           TEXT,
    collection_type       TEXT NOT NULL CHECK (collection_type IN ('topic', 'course', 'custom')),
    aggregated_summary_id TEXT,
    created_at            TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS collection_sources (
    id            TEXT PRIMARY KEY,
    collection_id TEXT NOT NULL,
    source_id     TEXT NOT NULL,
    sequence      INTEGER,
    weight        REAL DEFAULT 1.0,
    UNIQUE (collection_id, source_id)
);

CREATE TABLE IF NOT EXISTS summary_concepts (
    id                 TEXT PRIMARY KEY,
    summary_id         TEXT NOT NULL,
    concept            TEXT NOT NULL,
    concept_normalized TEXT NOT NULL,
    definition         TEXT,
    importance_score   REAL DEFAULT 0.5
);

CREATE INDEX IF NOT EXISTS idx_summaries_scope_current
    ON summaries (source_id, summary_type, is_current);
CREATE INDEX IF NOT EXISTS idx_summaries_scope_version
    ON summaries (source_id, summary_type, version);
CREATE INDEX IF NOT EXISTS idx_document_segments_source ON document_segments (source_id);
CREATE INDEX IF NOT EXISTS idx_collection_sources_collection ON collection_sources (collection_id);
CREATE INDEX IF NOT EXISTS idx_summary_concepts_summary ON summary_concepts (summary_id);
CREATE INDEX IF NOT EXISTS idx_summary_concepts_normalized ON summary_concepts (concept_normalized);
"""

_INSERT_SUMMARY_SQL = """
INSERT INTO summaries (
    id, source_id, summary_type, title, content, word_count, version, is_current,
    parent_version_id, generation_model, generation_duration_ms, input_token_count,
    output_token_count, quality_score, user_rating, created_at, updated_at
) VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_UPSERT_MEMBER_SQL = """
INSERT INTO collection_sources (id, collection_id, source_id, sequence, weight)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(collection_id, source_id) DO UPDATE SET
    sequence = excluded.sequence,
    weight   = excluded.weight
"""

_TYPE_ORDER_SQL = (
    "CASE summary_type "
    + " ".join(f"WHEN '{kind.value}' THEN {rank}" for kind, rank in TYPE_ORDER.items())
    + " END"
)


def _summary_from_row(row: Any) -> Summary:
    data = dict(row)
    data["summary_id"] = data.pop("id")
    data["is_current"] = bool(data["is_current"])
    return Summary(**data)


def _segment_from_row(row: Any) -> DocumentSegment:
    data = dict(row)
    data["segment_id"] = data.pop("id")
    return DocumentSegment(**data)


def _collection_from_row(row: Any) -> SummaryCollection:
    data = dict(row)
    data["collection_id"] = data.pop("id")
    data["description"] = data["description"] or ""
    return SummaryCollection(**data)


def _concept_from_row(row: Any) -> Concept:
    data = dict(row)
    data["concept_id"] = data.pop("id")
    return Concept(**data)


class SQLiteSummaryRepository(SummaryRepository):
    """Persists the summary hierarchy in a local SQLite database.

    Parameters
    ----------
    db_path:
        Path to the SQLite file.  Defaults to
        ``~/.summary-hierarchy/summaries.db``.  The parent directory and
        tables are created automatically on first use.
    busy_timeout:
        Seconds a connection waits for the write lock held by another
        writer.  Default: 30.
    """

    def __init__(self, db_path: str | Path | None = None, busy_timeout: float = 30.0) -> None:
        try:
            import aiosqlite as _aiosqlite  # noqa: F401
        except ImportError as exc:
            raise ImportError(_AIOSQLITE_IMPORT_ERROR) from exc

        self._db_path: Path = Path(db_path) if db_path is not None else DEFAULT_DB_PATH
        self._busy_timeout = busy_timeout
        self._schema_initialised = False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _ensure_schema(self) -> None:
        """Create tables and indexes on first use."""
        if self._schema_initialised:
            return
        import aiosqlite

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path), timeout=self._busy_timeout) as conn:
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.executescript(_SCHEMA_SQL)
            await conn.commit()
        self._schema_initialised = True

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[Any]:
        """Yield an autocommit connection with ``Row`` results."""
        import aiosqlite

        await self._ensure_schema()
        async with aiosqlite.connect(
            str(self._db_path), timeout=self._busy_timeout, isolation_level=None
        ) as conn:
            conn.row_factory = aiosqlite.Row
            yield conn

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[Any]:
        """Yield a connection inside ``BEGIN IMMEDIATE`` … ``COMMIT``."""
        async with self._connect() as conn:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            await conn.execute("COMMIT")

    @staticmethod
    async def _fetchall(conn: Any, sql: str, params: Sequence[Any] = ()) -> list[Any]:
        async with conn.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    @staticmethod
    async def _fetchone(conn: Any, sql: str, params: Sequence[Any] = ()) -> Any:
        async with conn.execute(sql, params) as cursor:
            return await cursor.fetchone()

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    async def save_segments(self, source_id: str, segments: Sequence[DocumentSegment]) -> None:
        async with self._transaction() as conn:
            await conn.execute("DELETE FROM document_segments WHERE source_id = ?", (source_id,))
            await conn.executemany(
                "INSERT INTO document_segments (id, source_id, segment_index, start_index, "
                "end_index, section_title, level, estimated_tokens, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        s.segment_id,
                        source_id,
                        s.segment_index,
                        s.start_index,
                        s.end_index,
                        s.section_title,
                        s.level,
                        s.estimated_tokens,
                        s.created_at.isoformat(),
                    )
                    for s in segments
                ],
            )

    async def list_segments(self, source_id: str) -> list[DocumentSegment]:
        async with self._connect() as conn:
            rows = await self._fetchall(
                conn,
                "SELECT * FROM document_segments WHERE source_id = ? ORDER BY segment_index",
                (source_id,),
            )
        return [_segment_from_row(row) for row in rows]

    async def delete_segments(self, source_id: str) -> int:
        async with self._connect() as conn:
            cursor = await conn.execute(
                "DELETE FROM document_segments WHERE source_id = ?", (source_id,)
            )
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    async def create_summaries(self, inputs: Sequence[CreateSummaryInput]) -> list[Summary]:
        """Insert a batch in one ``BEGIN IMMEDIATE`` transaction."""
        stored: dict[int, Summary] = {}
        async with self._transaction() as conn:
            for (source_id, summary_type), group in group_by_scope(inputs).items():
                scope = (source_id, summary_type.value)
                row = await self._fetchone(
                    conn,
                    "SELECT COALESCE(MAX(version), 0) FROM summaries "
                    "WHERE source_id = ? AND summary_type = ?",
                    scope,
                )
                next_version = int(row[0]) + 1
                current = await self._fetchall(
                    conn,
                    "SELECT id FROM summaries "
                    "WHERE source_id = ? AND summary_type = ? AND is_current = 1",
                    scope,
                )
                parent_id = current[0]["id"] if len(current) == 1 else None
                await conn.execute(
                    "UPDATE summaries SET is_current = 0 "
                    "WHERE source_id = ? AND summary_type = ? AND is_current = 1",
                    scope,
                )
                for position, data in group:
                    summary = Summary.from_input(
                        data, version=next_version, parent_version_id=parent_id
                    )
                    await conn.execute(
                        _INSERT_SUMMARY_SQL,
                        (
                            summary.summary_id,
                            summary.source_id,
                            summary.summary_type.value,
                            summary.title,
                            summary.content,
                            summary.word_count,
                            summary.version,
                            summary.parent_version_id,
                            summary.generation_model,
                            summary.generation_duration_ms,
                            summary.input_token_count,
                            summary.output_token_count,
                            summary.quality_score,
                            summary.user_rating,
                            summary.created_at.isoformat(),
                            summary.updated_at.isoformat(),
                        ),
                    )
                    stored[position] = summary
                logger.debug(
                    "Stored %d %s summaries for %r as version %d",
                    len(group),
                    summary_type.value,
                    source_id,
                    next_version,
                )
        return [stored[index] for index in range(len(inputs))]

    async def get_summary(self, summary_id: str) -> Summary:
        async with self._connect() as conn:
            row = await self._fetchone(conn, "SELECT * FROM summaries WHERE id = ?", (summary_id,))
        if row is None:
            raise SummaryNotFoundError(summary_id)
        return _summary_from_row(row)

    async def list_summaries(
        self,
        source_id: str,
        summary_type: SummaryType | None = None,
        current_only: bool = True,
    ) -> list[Summary]:
        sql = "SELECT * FROM summaries WHERE source_id = ?"
        params: list[Any] = [source_id]
        if summary_type is not None:
            sql += " AND summary_type = ?"
            params.append(SummaryType(summary_type).value)
        if current_only:
            sql += " AND is_current = 1"
        sql += f" ORDER BY {_TYPE_ORDER_SQL}, version DESC, rowid ASC"
        async with self._connect() as conn:
            rows = await self._fetchall(conn, sql, params)
        return [_summary_from_row(row) for row in rows]

    async def update_summary(self, summary_id: str, update: UpdateSummaryInput) -> Summary:
        changes = apply_update(update)
        changes["updated_at"] = datetime.now(timezone.utc).isoformat()
        assignments = ", ".join(f"{column} = ?" for column in changes)
        async with self._connect() as conn:
            cursor = await conn.execute(
                f"UPDATE summaries SET {assignments} WHERE id = ?",
                (*changes.values(), summary_id),
            )
            if cursor.rowcount == 0:
                raise SummaryNotFoundError(summary_id)
        return await self.get_summary(summary_id)

    async def delete_summary(self, summary_id: str) -> bool:
        async with self._transaction() as conn:
            await conn.execute("DELETE FROM summary_concepts WHERE summary_id = ?", (summary_id,))
            cursor = await conn.execute("DELETE FROM summaries WHERE id = ?", (summary_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def create_collection(self, collection: SummaryCollection) -> SummaryCollection:
        async with self._connect() as conn:
            await conn.execute(
                "INSERT INTO summary_collections "
                "(id, name, description, collection_type, aggregated_summary_id, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    collection.collection_id,
                    collection.name,
                    collection.description,
                    collection.collection_type.value,
                    collection.aggregated_summary_id,
                    collection.created_at.isoformat(),
                ),
            )
        return collection

    async def get_collection(self, collection_id: str) -> SummaryCollection:
        async with self._connect() as conn:
            row = await self._fetchone(
                conn, "SELECT * FROM summary_collections WHERE id = ?", (collection_id,)
            )
        if row is None:
            raise CollectionNotFoundError(collection_id)
        return _collection_from_row(row)

    async def list_collections(self) -> list[SummaryCollection]:
        async with self._connect() as conn:
            rows = await self._fetchall(
                conn, "SELECT * FROM summary_collections ORDER BY created_at, rowid"
            )
        return [_collection_from_row(row) for row in rows]

    async def delete_collection(self, collection_id: str) -> bool:
        async with self._transaction() as conn:
            await conn.execute(
                "DELETE FROM collection_sources WHERE collection_id = ?", (collection_id,)
            )
            cursor = await conn.execute(
                "DELETE FROM summary_collections WHERE id = ?", (collection_id,)
            )
            return cursor.rowcount > 0

    async def add_collection_source(self, source: CollectionSource) -> CollectionSource:
        async with self._transaction() as conn:
            row = await self._fetchone(
                conn, "SELECT 1 FROM summary_collections WHERE id = ?", (source.collection_id,)
            )
            if row is None:
                raise CollectionNotFoundError(source.collection_id)
            await conn.execute(
                _UPSERT_MEMBER_SQL,
                (str(uuid4()), source.collection_id, source.source_id, source.sequence, source.weight),
            )
        return source

    async def list_collection_sources(self, collection_id: str) -> list[CollectionSource]:
        async with self._connect() as conn:
            rows = await self._fetchall(
                conn,
                "SELECT collection_id, source_id, sequence, weight FROM collection_sources "
                "WHERE collection_id = ? ORDER BY sequence IS NULL, sequence, rowid",
                (collection_id,),
            )
        return [CollectionSource(**dict(row)) for row in rows]

    async def remove_collection_source(self, collection_id: str, source_id: str) -> bool:
        async with self._connect() as conn:
            cursor = await conn.execute(
                "DELETE FROM collection_sources WHERE collection_id = ? AND source_id = ?",
                (collection_id, source_id),
            )
            return cursor.rowcount > 0

    async def set_aggregated_summary(self, collection_id: str, summary_id: str) -> None:
        async with self._connect() as conn:
            cursor = await conn.execute(
                "UPDATE summary_collections SET aggregated_summary_id = ? WHERE id = ?",
                (summary_id, collection_id),
            )
            if cursor.rowcount == 0:
                raise CollectionNotFoundError(collection_id)

    # ------------------------------------------------------------------
    # Concepts
    # ------------------------------------------------------------------

    async def add_concepts(self, concepts: Sequence[Concept]) -> list[Concept]:
        async with self._transaction() as conn:
            await conn.executemany(
                "INSERT INTO summary_concepts "
                "(id, summary_id, concept, concept_normalized, definition, importance_score) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (
                        c.concept_id,
                        c.summary_id,
                        c.concept,
                        c.concept_normalized,
                        c.definition,
                        c.importance_score,
                    )
                    for c in concepts
                ],
            )
        return list(concepts)

    async def list_concepts(self, summary_id: str) -> list[Concept]:
        async with self._connect() as conn:
            rows = await self._fetchall(
                conn,
                "SELECT * FROM summary_concepts WHERE summary_id = ? ORDER BY rowid",
                (summary_id,),
            )
        return [_concept_from_row(row) for row in rows]

    async def find_concepts(self, concept_normalized: str) -> list[Concept]:
        async with self._connect() as conn:
            rows = await self._fetchall(
                conn,
                "SELECT * FROM summary_concepts WHERE concept_normalized = ? ORDER BY rowid",
                (concept_normalized,),
            )
        return [_concept_from_row(row) for row in rows]

    def __repr__(self) -> str:
        return f"SQLiteSummaryRepository(db_path={str(self._db_path)!r})"


__all__ = ["SQLiteSummaryRepository"]

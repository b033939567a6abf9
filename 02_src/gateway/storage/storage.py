"""SQLite storage implementation."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import OutcomeRecord, OutcomeStatus


class IStorage(Protocol):
    """Durable store for replay fingerprints and outcome records (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Replay fingerprints
    async def insert_fingerprint(self, fingerprint: str, created_at: float) -> bool:
        """Insert if absent. True when this call inserted the row."""
        ...

    async def purge_fingerprints(self, before: float) -> int:
        """Delete fingerprints created before ``before``."""
        ...

    # Outcome records
    async def upsert_outcome(self, record: OutcomeRecord) -> None:
        """Insert or update an outcome record by event_id."""
        ...

    async def get_outcome(self, event_id: str) -> OutcomeRecord | None:
        """Get an outcome record by event_id."""
        ...

    async def list_outcomes(
        self,
        env: str,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[OutcomeRecord]:
        """List outcome records for one environment, newest first."""
        ...

    async def count_outcomes(self, env: str, status: str | None = None) -> int:
        """Count outcome records matching the same filters as list_outcomes."""
        ...

    async def purge_outcomes(self, before: float) -> int:
        """Delete outcome records last updated before ``before``."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


_OUTCOME_COLUMNS = """
    event_id, env, service_role, source, status, error_code, error_message,
    retry_count, response_status, correlation_id, timestamp
"""


def _row_to_outcome(row) -> OutcomeRecord:
    return OutcomeRecord(
        event_id=row[0],
        env=row[1],
        service_role=row[2],
        source=row[3],
        status=OutcomeStatus(row[4]),
        error_code=row[5],
        error_message=row[6],
        retry_count=row[7],
        response_status=row[8],
        correlation_id=row[9],
        timestamp=datetime.fromisoformat(row[10]).astimezone(timezone.utc),
    )


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        if str(self._db_path) != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self._db_path))

        # Read and execute schema
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    # Replay fingerprints
    async def insert_fingerprint(self, fingerprint: str, created_at: float) -> bool:
        """Insert if absent. True when this call inserted the row.

        The primary key on ``fingerprint`` makes the insert itself the
        decision; there is no separate read.
        """
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        cursor = await self._conn.execute(
            """
            INSERT OR IGNORE INTO replay_fingerprints (fingerprint, created_at)
            VALUES (?, ?)
            """,
            (fingerprint, created_at),
        )
        inserted = cursor.rowcount == 1
        await self._conn.commit()
        return inserted

    async def purge_fingerprints(self, before: float) -> int:
        """Delete fingerprints created before ``before``."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        cursor = await self._conn.execute(
            "DELETE FROM replay_fingerprints WHERE created_at < ?",
            (before,),
        )
        await self._conn.commit()
        return cursor.rowcount

    # Outcome records
    async def upsert_outcome(self, record: OutcomeRecord) -> None:
        """Insert or update an outcome record by event_id.

        A later write without a correlation id keeps the one already stored.
        """
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        await self._conn.execute(
            """
            INSERT INTO outcome_records (
                event_id, env, service_role, source, status, error_code,
                error_message, retry_count, response_status, correlation_id,
                timestamp, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(event_id) DO UPDATE SET
                env = excluded.env,
                service_role = excluded.service_role,
                source = excluded.source,
                status = excluded.status,
                error_code = excluded.error_code,
                error_message = excluded.error_message,
                retry_count = excluded.retry_count,
                response_status = excluded.response_status,
                correlation_id = COALESCE(
                    excluded.correlation_id, outcome_records.correlation_id
                ),
                timestamp = excluded.timestamp,
                updated_at = excluded.updated_at
            """,
            (
                record.event_id,
                record.env,
                record.service_role,
                record.source,
                record.status.value,
                record.error_code,
                record.error_message,
                record.retry_count,
                record.response_status,
                record.correlation_id,
                record.timestamp.isoformat(),
                record.timestamp.timestamp(),
            ),
        )
        await self._conn.commit()

    async def get_outcome(self, event_id: str) -> OutcomeRecord | None:
        """Get an outcome record by event_id."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        cursor = await self._conn.execute(
            f"""
            SELECT {_OUTCOME_COLUMNS}
            FROM outcome_records
            WHERE event_id = ?
            """,
            (event_id,),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return _row_to_outcome(row)

    async def list_outcomes(
        self,
        env: str,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[OutcomeRecord]:
        """List outcome records for one environment, newest first."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        conditions = ["env = ?"]
        params: list = [env]

        if status:
            conditions.append("status = ?")
            params.append(status)

        query = f"""
            SELECT {_OUTCOME_COLUMNS}
            FROM outcome_records
            WHERE {' AND '.join(conditions)}
            ORDER BY updated_at DESC
            LIMIT ? OFFSET ?
        """
        params.extend([limit, offset])

        cursor = await self._conn.execute(query, params)
        rows = await cursor.fetchall()

        return [_row_to_outcome(row) for row in rows]

    async def count_outcomes(self, env: str, status: str | None = None) -> int:
        """Count outcome records matching the same filters as list_outcomes."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        if status:
            cursor = await self._conn.execute(
                "SELECT COUNT(*) FROM outcome_records WHERE env = ? AND status = ?",
                (env, status),
            )
        else:
            cursor = await self._conn.execute(
                "SELECT COUNT(*) FROM outcome_records WHERE env = ?",
                (env,),
            )
        row = await cursor.fetchone()
        return row[0]

    async def purge_outcomes(self, before: float) -> int:
        """Delete outcome records last updated before ``before``."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        cursor = await self._conn.execute(
            "DELETE FROM outcome_records WHERE updated_at < ?",
            (before,),
        )
        await self._conn.commit()
        return cursor.rowcount

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        for table in ["replay_fingerprints", "outcome_records"]:
            await self._conn.execute(f"DELETE FROM {table}")

        await self._conn.commit()

"""Persistence for synced health metrics and the sync run log.

``health_tracker_data`` holds one row per (connection, data_type, day);
re-syncing a day overwrites it.  ``health_tracker_sync_logs`` holds one row
per sync run, opened as 'running' and closed as 'completed' or 'failed'.
"""

from __future__ import annotations

import json
import logging
import uuid

from src.providers.base import DailyRecord
from src.services.connections import ExternalConnection, storage_errors
from src.services.supabase import execute, executemany, fetchrow

logger = logging.getLogger("tracklink.health_data")

_SAVE_FAILED = "Failed to save health data"

_UPSERT_RECORD_SQL = """
    INSERT INTO health_tracker_data (
        connection_id, data_type, recorded_date, value, metadata, raw_data
    )
    VALUES ($1, $2, $3, $4, $5::jsonb, $6::jsonb)
    ON CONFLICT (connection_id, data_type, recorded_date) DO UPDATE SET
        value = EXCLUDED.value,
        metadata = EXCLUDED.metadata,
        raw_data = EXCLUDED.raw_data
"""


class HealthDataStore:
    """Write synced metrics and sync-run bookkeeping."""

    async def save_records(
        self, connection: ExternalConnection, records: list[DailyRecord]
    ) -> int:
        """Upsert ``records`` for the connection.  Returns how many were written."""
        if not records:
            return 0
        rows = [
            (
                connection.id,
                r.data_type,
                r.recorded_date,
                r.value,
                json.dumps(r.metadata),
                json.dumps(r.raw_data),
            )
            for r in records
        ]
        with storage_errors(
            "save", connection.user_id, connection.provider, what="health data", message=_SAVE_FAILED
        ):
            await executemany(_UPSERT_RECORD_SQL, rows, user_id=connection.user_id)
        logger.info(
            "Saved %d %s records for user %s",
            len(rows),
            connection.provider,
            connection.user_id,
        )
        return len(rows)

    async def start_sync_log(self, connection: ExternalConnection) -> uuid.UUID:
        """Open a 'running' log row for a sync of ``connection``."""
        with storage_errors(
            "open", connection.user_id, connection.provider, what="sync log", message=_SAVE_FAILED
        ):
            row = await fetchrow(
                """
                INSERT INTO health_tracker_sync_logs (connection_id, sync_status)
                VALUES ($1, 'running')
                RETURNING id
                """,
                connection.id,
                user_id=connection.user_id,
            )
        return row["id"]

    async def finish_sync_log(
        self,
        connection: ExternalConnection,
        log_id: uuid.UUID,
        records_synced: int,
        error: str | None = None,
    ) -> None:
        """Close the log row as 'completed', or 'failed' when ``error`` is set."""
        status = "failed" if error else "completed"
        with storage_errors(
            "close", connection.user_id, connection.provider, what="sync log", message=_SAVE_FAILED
        ):
            await execute(
                """
                UPDATE health_tracker_sync_logs
                SET sync_status = $2, sync_completed_at = NOW(),
                    records_synced = $3, error_message = $4
                WHERE id = $1
                """,
                log_id,
                status,
                records_synced,
                error,
                user_id=connection.user_id,
            )

"""AssetStore backed by PostgreSQL using raw asyncpg SQL."""

import json
from typing import Optional

import asyncpg

from ...core.errors import AssetStoreError
from ...core.types import AssetKind, Attempt, AttemptStatus, NewReferenceAsset, ReferenceAsset

# Errors from the driver or the connection that mean the write did not happen
DATABASE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class PostgresAssetStore:
    """Repository for reference assets and the attempt audit trail."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def list_reference_assets(self, character_id: str) -> list[ReferenceAsset]:
        """All reference assets owned by a character, oldest first."""
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT id, kind, quality_score, consistency_score, shot_type, angle,
                           keywords_json, media_url, created_at
                    FROM reference_assets
                    WHERE character_id = $1
                    ORDER BY created_at, id
                    """,
                    character_id,
                )
        except DATABASE_ERRORS as e:
            raise AssetStoreError(f"failed to load references for {character_id}: {e}") from e

        return [self._row_to_asset(row) for row in rows]

    async def create_reference_asset(self, character_id: str, metadata: NewReferenceAsset) -> str:
        """Insert the asset and its generation metadata in one transaction."""
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        """
                        INSERT INTO reference_assets
                            (id, character_id, kind, quality_score, consistency_score,
                             shot_type, angle, keywords_json, media_url)
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                        """,
                        metadata.asset_id,
                        character_id,
                        metadata.kind.value,
                        metadata.quality_score,
                        metadata.consistency_score,
                        metadata.shot_type,
                        metadata.angle,
                        json.dumps(sorted(metadata.keywords)),
                        metadata.media_url,
                    )
                    await conn.execute(
                        """
                        INSERT INTO generation_metadata
                            (asset_id, request_id, prompt, style, source_reference_id,
                             quality_score, consistency_score, tags_json)
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                        """,
                        metadata.asset_id,
                        metadata.request_id,
                        metadata.prompt,
                        metadata.style,
                        metadata.source_reference_id,
                        metadata.quality_score,
                        metadata.consistency_score,
                        json.dumps(list(metadata.tags)),
                    )
        except asyncpg.UniqueViolationError as e:
            raise AssetStoreError(
                f"asset {metadata.asset_id} conflicts with an existing asset for {character_id}"
            ) from e
        except DATABASE_ERRORS as e:
            raise AssetStoreError(f"failed to persist asset {metadata.asset_id}: {e}") from e

        return metadata.asset_id

    async def append_attempt_audit(self, request_id: str, attempt: Attempt) -> None:
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO generation_attempts
                        (request_id, attempt_number, reference_id, reference_kind, status,
                         elapsed_ms, quality_score, consistency_score, reject_reason,
                         candidate_asset_id, same_subject)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                    """,
                    request_id,
                    attempt.attempt_number,
                    attempt.reference_id,
                    attempt.reference_kind.value,
                    attempt.status.value,
                    attempt.elapsed_ms,
                    attempt.quality_score,
                    attempt.consistency_score,
                    attempt.reject_reason,
                    attempt.candidate_asset_id,
                    attempt.same_subject,
                )
        except DATABASE_ERRORS as e:
            raise AssetStoreError(
                f"failed to audit attempt {attempt.attempt_number} of {request_id}: {e}"
            ) from e

    async def list_attempt_audit(self, request_id: str) -> list[Attempt]:
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT attempt_number, reference_id, reference_kind, status, elapsed_ms,
                           quality_score, consistency_score, reject_reason,
                           candidate_asset_id, same_subject
                    FROM generation_attempts
                    WHERE request_id = $1
                    ORDER BY attempt_number
                    """,
                    request_id,
                )
        except DATABASE_ERRORS as e:
            raise AssetStoreError(f"failed to load audit trail for {request_id}: {e}") from e

        return [self._row_to_attempt(row) for row in rows]

    def _row_to_asset(self, row: asyncpg.Record) -> ReferenceAsset:
        return ReferenceAsset(
            id=row["id"],
            kind=AssetKind(row["kind"]),
            quality_score=float(row["quality_score"] or 0.0),
            consistency_score=float(row["consistency_score"] or 0.0),
            shot_type=row["shot_type"],
            angle=row["angle"],
            keywords=frozenset(_load_json_list(row["keywords_json"])),
            created_at=row["created_at"],
            media_url=row["media_url"],
        )

    def _row_to_attempt(self, row: asyncpg.Record) -> Attempt:
        return Attempt(
            attempt_number=row["attempt_number"],
            reference_id=row["reference_id"],
            reference_kind=AssetKind(row["reference_kind"]),
            status=AttemptStatus(row["status"]),
            elapsed_ms=row["elapsed_ms"],
            quality_score=row["quality_score"],
            consistency_score=row["consistency_score"],
            reject_reason=row["reject_reason"],
            candidate_asset_id=row["candidate_asset_id"],
            same_subject=row["same_subject"],
        )


def _load_json_list(value: Optional[str]) -> list:
    if not value:
        return []
    return json.loads(value)

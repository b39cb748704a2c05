"""
Persistence contract for reference assets and the attempt audit trail.

The orchestrator only depends on the AssetStore protocol. InMemoryAssetStore
backs the CLI and tests; the Postgres implementation lives in
charlib.api.database.asset_store.
"""

import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, Protocol

from .errors import AssetStoreError
from .types import AssetKind, Attempt, NewReferenceAsset, ReferenceAsset


class AssetStore(Protocol):
    """Character media persistence used by the generation orchestrator."""

    async def list_reference_assets(self, character_id: str) -> list[ReferenceAsset]:
        """All reference assets owned by a character."""
        ...

    async def create_reference_asset(self, character_id: str, metadata: NewReferenceAsset) -> str:
        """Persist a new asset and its metadata atomically. Returns the asset id."""
        ...

    async def append_attempt_audit(self, request_id: str, attempt: Attempt) -> None:
        """Append one attempt to a request's audit trail."""
        ...

    async def list_attempt_audit(self, request_id: str) -> list[Attempt]:
        """A request's audit trail, in attempt order."""
        ...


class InMemoryAssetStore:
    """Process-local AssetStore. Writes are serialized by a lock."""

    def __init__(self):
        self._assets: dict[str, list[ReferenceAsset]] = defaultdict(list)
        self._metadata: dict[str, NewReferenceAsset] = {}
        self._audit: dict[str, list[Attempt]] = defaultdict(list)
        self._lock = asyncio.Lock()

    def seed(self, character_id: str, assets: Iterable[ReferenceAsset]) -> None:
        """Load an existing pool for a character (setup/testing helper)."""
        assets = list(assets)
        masters = [a for a in assets if a.kind is AssetKind.MASTER]
        existing_master = any(a.kind is AssetKind.MASTER for a in self._assets[character_id])
        if len(masters) > 1 or (masters and existing_master):
            raise AssetStoreError(f"character {character_id} can only have one master reference")
        self._assets[character_id].extend(assets)

    async def list_reference_assets(self, character_id: str) -> list[ReferenceAsset]:
        return list(self._assets.get(character_id, ()))

    async def create_reference_asset(self, character_id: str, metadata: NewReferenceAsset) -> str:
        async with self._lock:
            pool = self._assets[character_id]
            if any(a.id == metadata.asset_id for a in pool):
                raise AssetStoreError(f"asset {metadata.asset_id} already exists for {character_id}")
            if metadata.kind is AssetKind.MASTER and any(a.kind is AssetKind.MASTER for a in pool):
                raise AssetStoreError(f"character {character_id} already has a master reference")
            # Both records land together or not at all
            asset = metadata.to_reference_asset(created_at=datetime.now(timezone.utc))
            self._metadata[asset.id] = metadata
            pool.append(asset)
            return asset.id

    async def get_asset_metadata(self, asset_id: str) -> NewReferenceAsset:
        try:
            return self._metadata[asset_id]
        except KeyError:
            raise AssetStoreError(f"no generation metadata for asset {asset_id}") from None

    async def append_attempt_audit(self, request_id: str, attempt: Attempt) -> None:
        async with self._lock:
            self._audit[request_id].append(attempt)

    async def list_attempt_audit(self, request_id: str) -> list[Attempt]:
        return sorted(self._audit.get(request_id, ()), key=lambda a: a.attempt_number)

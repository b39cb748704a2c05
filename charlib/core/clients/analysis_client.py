"""
Client for the external asset analysis service.

Feature extraction runs asynchronously on the service side: an upload
returns an asset id straight away, and the status endpoint moves through
pending -> processing -> success | error. The client polls on a fixed
interval under a bounded wait instead of relying on a callback.
"""

import asyncio
import logging
import uuid
from typing import Optional

import httpx

from ...config.services import SERVICE_CONSTANTS, ServiceSettings
from ..errors import ServicePermanentError, ServiceTransientError
from ..types import ConsistencyScore, ExtractedAsset
from .base import ServiceClient

logger = logging.getLogger(__name__)

PENDING_STATUSES = {"pending", "processing"}


class AssetAnalysisClient(ServiceClient):
    """Thin async adapter over the analysis service. No business logic."""

    service_name = "analysis"

    def __init__(
        self,
        settings: ServiceSettings,
        poll_interval_s: float = SERVICE_CONSTANTS["analysis_poll_interval_s"],
        poll_timeout_s: float = SERVICE_CONSTANTS["analysis_poll_timeout_s"],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(settings, transport=transport)
        self.poll_interval_s = poll_interval_s
        self.poll_timeout_s = poll_timeout_s

    async def upload_and_extract(self, image_bytes: bytes, filename: Optional[str] = None) -> ExtractedAsset:
        """
        Upload a candidate image and wait for feature extraction to finish.

        Raises:
            ServiceTransientError: network/5xx, or extraction still pending
                after poll_timeout_s
            ServicePermanentError: upload rejected, or extraction reported error
        """
        filename = filename or f"candidate_{uuid.uuid4().hex}.jpg"
        upload = await self._request_json(
            "POST",
            "/api/v1/upload-media",
            files={"file": (filename, image_bytes, "image/jpeg")},
        )
        asset_id = str(self._require(upload, "asset_id", "upload-media"))

        status = await self.wait_for_analysis(asset_id)
        quality = status.get("quality_score")
        features = status.get("features") or []
        if not isinstance(features, list):
            raise ServicePermanentError(
                f"status response has malformed 'features': {features!r}", self.service_name
            )
        return ExtractedAsset(
            asset_id=asset_id,
            media_url=upload.get("media_url"),
            features=tuple(features),
            quality_score=self._number(quality, "quality_score", "status") if quality is not None else None,
        )

    async def get_status(self, asset_id: str) -> dict:
        return await self._request_json("GET", f"/api/v1/status/{asset_id}")

    async def wait_for_analysis(self, asset_id: str) -> dict:
        """
        Poll the status endpoint until a terminal status or the wait bound.

        Returns:
            The final status payload (status == "success")
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.poll_timeout_s

        while True:
            payload = await self.get_status(asset_id)
            status = payload.get("status")

            if status == "success":
                return payload
            if status == "error":
                raise ServicePermanentError(
                    f"analysis of {asset_id} failed: {payload.get('error') or 'no detail'}",
                    self.service_name,
                )
            if status not in PENDING_STATUSES:
                raise ServicePermanentError(
                    f"analysis of {asset_id} returned unknown status {status!r}", self.service_name
                )

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ServiceTransientError(
                    f"analysis of {asset_id} still {status} after {self.poll_timeout_s:g}s",
                    self.service_name,
                )
            logger.debug(f"Analysis of {asset_id} is {status}, polling again")
            await asyncio.sleep(min(self.poll_interval_s, remaining))

    async def score_quality(self, asset_id: str) -> float:
        """Intrinsic quality score (0-100) for an uploaded asset."""
        data = await self._request_json("POST", "/api/v1/analyze-quality", json={"asset_id": asset_id})
        quality = self._require(data, "quality_score", "analyze-quality")
        return self._number(quality, "quality_score", "analyze-quality")

    async def score_consistency(self, reference_asset_id: str, candidate_asset_id: str) -> ConsistencyScore:
        """Same-subject similarity (0-100) of a candidate against a reference."""
        data = await self._request_json(
            "POST",
            "/api/v1/validate-consistency",
            json={"reference_asset_id": reference_asset_id, "test_asset_id": candidate_asset_id},
        )
        score = data.get("consistency_score", data.get("similarity_score"))
        if score is None:
            raise ServicePermanentError("validate-consistency response missing a score", self.service_name)
        same_subject = data.get("same_subject", data.get("same_character", False))
        confidence = data.get("confidence")
        return ConsistencyScore(
            score=self._number(score, "consistency_score", "validate-consistency"),
            same_subject=bool(same_subject),
            confidence=(
                self._number(confidence, "confidence", "validate-consistency") if confidence is not None else None
            ),
        )

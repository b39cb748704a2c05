"""Unit tests for charlib/core/types.py."""

from datetime import datetime

import pytest

from charlib.config import OrchestratorConfig
from charlib.core.types import (
    AssetKind,
    Attempt,
    AttemptStatus,
    GenerationRequest,
    GenerationResult,
    GenerationStyle,
    NewReferenceAsset,
    ReferenceAsset,
    ResultStatus,
    Thresholds,
)


# =============================================================================
# GenerationRequest tests
# =============================================================================


class TestGenerationRequest:
    """Tests for request validation and defaults."""

    def test_defaults(self):
        request = GenerationRequest(character_id="hero", prompt="portrait")

        assert request.max_attempts == 3
        assert request.quality_threshold == 70
        assert request.consistency_threshold == 80
        assert request.style is GenerationStyle.CHARACTER_PRODUCTION

    @pytest.mark.parametrize("max_attempts", [0, 6, -1])
    def test_rejects_max_attempts_out_of_range(self, max_attempts):
        with pytest.raises(ValueError, match="max_attempts"):
            GenerationRequest(character_id="hero", prompt="portrait", max_attempts=max_attempts)

    @pytest.mark.parametrize("field", ["quality_threshold", "consistency_threshold"])
    def test_rejects_threshold_out_of_range(self, field):
        with pytest.raises(ValueError, match="threshold"):
            GenerationRequest(character_id="hero", prompt="portrait", **{field: 101})

    def test_rejects_blank_prompt(self):
        with pytest.raises(ValueError, match="prompt"):
            GenerationRequest(character_id="hero", prompt="   ")

    def test_rejects_missing_character(self):
        with pytest.raises(ValueError, match="character_id"):
            GenerationRequest(character_id="", prompt="portrait")

    def test_thresholds_property(self):
        request = GenerationRequest(character_id="hero", prompt="p", quality_threshold=10, consistency_threshold=20)

        assert request.thresholds == Thresholds(quality=10, consistency=20)


class TestWithDefaults:
    """Tests for None-vs-provided handling in GenerationRequest.with_defaults."""

    def test_omitted_fields_take_config_defaults(self):
        config = OrchestratorConfig(default_max_attempts=4, default_quality_threshold=55)

        request = GenerationRequest.with_defaults(config, character_id="hero", prompt="portrait")

        assert request.max_attempts == 4
        assert request.quality_threshold == 55
        assert request.consistency_threshold == 80

    def test_provided_zero_is_not_replaced_by_default(self):
        request = GenerationRequest.with_defaults(
            OrchestratorConfig(), character_id="hero", prompt="p",
            quality_threshold=0, consistency_threshold=0,
        )

        assert request.quality_threshold == 0
        assert request.consistency_threshold == 0

    def test_provided_invalid_value_is_rejected_not_clamped(self):
        with pytest.raises(ValueError):
            GenerationRequest.with_defaults(OrchestratorConfig(), character_id="hero", prompt="p", max_attempts=9)

    def test_config_limit_applies(self):
        config = OrchestratorConfig(max_attempts_limit=2)

        with pytest.raises(ValueError):
            GenerationRequest.with_defaults(config, character_id="hero", prompt="p", max_attempts=3)


# =============================================================================
# Asset / Attempt / Result tests
# =============================================================================


class TestReferenceAsset:
    def test_from_dict_normalizes_fields(self):
        asset = ReferenceAsset.from_dict({
            "id": 7,
            "kind": "master",
            "quality_score": "88.5",
            "keywords": ["Red", "Cape"],
            "created_at": "2024-01-01T12:00:00",
        })

        assert asset.id == "7"
        assert asset.kind is AssetKind.MASTER
        assert asset.quality_score == 88.5
        assert asset.consistency_score == 0.0
        assert asset.keywords == frozenset({"red", "cape"})
        assert asset.created_at == datetime(2024, 1, 1, 12, 0, 0)

    def test_to_dict_sorts_keywords(self):
        asset = ReferenceAsset(id="c", kind=AssetKind.CORE_SET, keywords=frozenset({"b", "a"}))

        assert asset.to_dict()["keywords"] == ["a", "b"]

    def test_kind_priority_order(self):
        assert AssetKind.MASTER.priority < AssetKind.CORE_SET.priority < AssetKind.GENERATED.priority


class TestNewReferenceAsset:
    def test_to_reference_asset_is_generated_kind(self):
        metadata = NewReferenceAsset(
            asset_id="cand-1", quality_score=91, consistency_score=88, prompt="p",
            style="custom", source_reference_id="m", request_id="r", shot_type="wide",
        )

        asset = metadata.to_reference_asset()

        assert asset.id == "cand-1"
        assert asset.kind is AssetKind.GENERATED
        assert asset.shot_type == "wide"
        assert asset.quality_score == 91


class TestAttempt:
    def test_reference_used_format(self):
        attempt = Attempt(
            attempt_number=1, reference_id="m1", reference_kind=AssetKind.MASTER,
            status=AttemptStatus.REJECTED, elapsed_ms=12,
        )

        assert attempt.reference_used == "master:m1"
        assert attempt.accepted is False
        assert attempt.to_dict()["status"] == "rejected"


class TestGenerationResult:
    def test_success_requires_accepted_asset(self):
        assert GenerationResult(request_id="r", status=ResultStatus.ACCEPTED, accepted_asset_id="a").success
        assert not GenerationResult(request_id="r", status=ResultStatus.ACCEPTED).success
        assert not GenerationResult(request_id="r", status=ResultStatus.EXHAUSTED).success

    def test_to_dict_includes_diagnostics(self):
        result = GenerationResult(
            request_id="r",
            status=ResultStatus.ABORTED,
            failure_reasons=["no reference available"],
            warnings=["audit failed"],
        )

        data = result.to_dict()

        assert data["status"] == "aborted"
        assert data["success"] is False
        assert data["attempts"] == []
        assert data["failure_reasons"] == ["no reference available"]
        assert data["warnings"] == ["audit failed"]

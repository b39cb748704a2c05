#!/usr/bin/env python3
"""
CLI for generating a consistency-validated character image.

Reads a character's reference pool from a JSON file, runs smart generation
against the services configured in .env and prints the result as JSON.

Usage:
    python cli/generate_image.py hero-1 "close-up of the hero smiling" --pool pool.json
    python cli/generate_image.py hero-1 "full body, outdoor" --pool pool.json --max-attempts 5
    python cli/generate_image.py hero-1 "side view" --pool pool.json --rank-only

Pool file format: a JSON list of reference assets, e.g.
    [{"id": "m1", "kind": "master", "quality_score": 90, "consistency_score": 95,
      "shot_type": "close-up", "angle": "front", "keywords": ["smiling"]}]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from charlib.config import OrchestratorConfig, get_analysis_client, get_generation_client
from charlib.core.asset_store import InMemoryAssetStore
from charlib.core.errors import AssetStoreError
from charlib.core.modules import PromptAnalyzer, ReferenceRanker, RetryOrchestrator
from charlib.core.types import GenerationRequest, GenerationStyle, ReferenceAsset


def load_pool(path: Path) -> list[ReferenceAsset]:
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of reference assets")
    return [ReferenceAsset.from_dict(item) for item in data]


def rank_only(args: argparse.Namespace, pool: list[ReferenceAsset]) -> dict:
    profile = PromptAnalyzer().analyze(args.prompt)
    ranked = ReferenceRanker().rank_with_scores(pool, profile)
    return {
        "profile": profile.to_dict(),
        "references": [{"id": r.asset.id, "kind": r.asset.kind.value, "score": r.score} for r in ranked],
    }


async def generate(args: argparse.Namespace, pool: list[ReferenceAsset]) -> dict:
    config = OrchestratorConfig()
    request = GenerationRequest.with_defaults(
        config,
        character_id=args.character_id,
        prompt=args.prompt,
        style=GenerationStyle(args.style) if args.style else None,
        max_attempts=args.max_attempts,
        quality_threshold=args.quality_threshold,
        consistency_threshold=args.consistency_threshold,
        tags=tuple(args.tag) if args.tag else None,
    )

    store = InMemoryAssetStore()
    store.seed(args.character_id, pool)

    async with get_generation_client() as generation_client, get_analysis_client() as analysis_client:
        orchestrator = RetryOrchestrator(generation_client, analysis_client, store, config=config)
        result = await orchestrator.run(request, await store.list_reference_assets(args.character_id))
    return result.to_dict()


def main():
    parser = argparse.ArgumentParser(
        description="Generate a character image validated for quality and consistency",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python cli/generate_image.py hero-1 "close-up of the hero smiling" --pool pool.json
    python cli/generate_image.py hero-1 "full body, outdoor" --pool pool.json --quality-threshold 60
    python cli/generate_image.py hero-1 "side view" --pool pool.json --rank-only
        """,
    )

    parser.add_argument("character_id", type=str, help="Character to generate")
    parser.add_argument("prompt", type=str, help="What the character should be doing")

    parser.add_argument(
        "--pool", "-p",
        type=Path,
        required=True,
        help="JSON file with the character's reference assets",
    )

    parser.add_argument(
        "--style",
        choices=[s.value for s in GenerationStyle],
        default=None,
        help="Generation style (default: character_production)",
    )

    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Maximum generation attempts (1-5, default: 3)",
    )

    parser.add_argument(
        "--quality-threshold",
        type=float,
        default=None,
        help="Minimum quality score to accept (0-100, default: 70)",
    )

    parser.add_argument(
        "--consistency-threshold",
        type=float,
        default=None,
        help="Minimum consistency score to accept (0-100, default: 80)",
    )

    parser.add_argument(
        "--tag",
        action="append",
        help="Tag stored with the accepted asset (repeatable)",
    )

    parser.add_argument(
        "--rank-only",
        action="store_true",
        help="Only print the ranked references, don't generate",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print progress information",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        pool = load_pool(args.pool)
        if args.rank_only:
            output = rank_only(args, pool)
        else:
            output = asyncio.run(generate(args, pool))
    except (OSError, ValueError, AssetStoreError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(output, indent=2))
    if not args.rank_only and not output["success"]:
        sys.exit(2)


if __name__ == "__main__":
    main()

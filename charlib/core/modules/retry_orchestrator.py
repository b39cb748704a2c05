"""
Smart generation orchestrator.

Turns a prompt plus a character's reference pool into one accepted image:
pick a reference, generate, analyze the candidate, gate it on quality and
consistency, and on rejection try again with a different reference until
the attempt budget runs out.

The loop is an explicit state machine:

    SELECT_REFERENCE -> GENERATE -> ANALYZE -> GATE -> ACCEPT
                                                    -> CONTINUE -> SELECT_REFERENCE
                                                    -> EXHAUSTED
    (any step) -> ABORTED   no reference left, cancelled, or out of time

Service calls raise; every call is converted to a CallOutcome at the step
boundary so the state machine branches on values. Transient errors are
retried inside the call (tenacity) and never show up as extra attempts.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from ...config.generation import ConsistencyAnchor, OrchestratorConfig
from ...config.services import build_service_retry
from ..asset_store import AssetStore
from ..clients import AssetAnalysisClient, GenerationClient
from ..errors import AssetStoreError, ServiceError, ServicePermanentError
from ..types import (
    AssetKind,
    Attempt,
    AttemptStatus,
    ConsistencyScore,
    ExtractedAsset,
    GeneratedImage,
    GenerationRequest,
    GenerationResult,
    NewReferenceAsset,
    PromptProfile,
    ReferenceAsset,
    ResultStatus,
)
from .consistency_gate import ConsistencyGate
from .generation_styles import build_generation_prompt, get_dimensions
from .prompt_analyzer import PromptAnalyzer
from .reference_ranker import ReferenceRanker

logger = logging.getLogger(__name__)

T = TypeVar("T")

NO_REFERENCE_REASON = "no reference available"
CANCELLED_REASON = "request cancelled"
DEADLINE_REASON = "request deadline exceeded"


class OrchestratorState(Enum):
    SELECT_REFERENCE = "select_reference"
    GENERATE = "generate"
    ANALYZE = "analyze"
    GATE = "gate"
    CONTINUE = "continue"
    ACCEPT = "accept"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"


TERMINAL_STATES = {
    OrchestratorState.ACCEPT: ResultStatus.ACCEPTED,
    OrchestratorState.EXHAUSTED: ResultStatus.EXHAUSTED,
    OrchestratorState.ABORTED: ResultStatus.ABORTED,
}


@dataclass
class CallOutcome(Generic[T]):
    """Result of one external call: a value, a service error, or an interruption."""

    value: Optional[T] = None
    error: Optional[ServiceError] = None
    interrupted: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.interrupted is None


@dataclass
class _RunState:
    """Mutable bookkeeping for one orchestration run."""

    request: GenerationRequest
    request_id: str
    pool: tuple[ReferenceAsset, ...]
    profile: PromptProfile
    started_at: float
    deadline: float
    cancel_event: Optional[asyncio.Event] = None
    attempts: list[Attempt] = field(default_factory=list)
    failure_reasons: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    used_ids: set[str] = field(default_factory=set)
    cycle_used_ids: set[str] = field(default_factory=set)
    abort_reason: Optional[str] = None
    accepted_asset_id: Optional[str] = None

    # Current attempt
    attempt_number: int = 0
    attempt_started_at: float = 0.0
    reference: Optional[ReferenceAsset] = None
    image: Optional[GeneratedImage] = None
    candidate: Optional[ExtractedAsset] = None
    quality_score: Optional[float] = None
    consistency: Optional[ConsistencyScore] = None

    def begin_attempt(self, reference: ReferenceAsset, now: float) -> None:
        self.attempt_number += 1
        self.attempt_started_at = now
        self.reference = reference
        self.used_ids.add(reference.id)
        self.cycle_used_ids.add(reference.id)
        self.image = None
        self.candidate = None
        self.quality_score = None
        self.consistency = None


class RetryOrchestrator:
    """
    Drive generate -> analyze -> gate attempts for one request at a time.

    One instance can serve many concurrent requests: all per-request state
    lives in the run, and the service clients cap their own concurrency.

    Reference selection per attempt:
    - attempt 1: top-ranked reference of the full pool
    - attempt 2: the master, if it exists and has not been used yet
    - otherwise: next-ranked reference not yet used in this cycle; once the
      whole pool has been used, start a new cycle in ranked order
    """

    def __init__(
        self,
        generation_client: GenerationClient,
        analysis_client: AssetAnalysisClient,
        asset_store: AssetStore,
        config: Optional[OrchestratorConfig] = None,
        prompt_analyzer: Optional[PromptAnalyzer] = None,
        ranker: Optional[ReferenceRanker] = None,
        gate: Optional[ConsistencyGate] = None,
    ):
        self.generation_client = generation_client
        self.analysis_client = analysis_client
        self.asset_store = asset_store
        self.config = config or OrchestratorConfig()
        self.prompt_analyzer = prompt_analyzer or PromptAnalyzer()
        self.ranker = ranker or ReferenceRanker(self.config.ranking_weights)
        self.gate = gate or ConsistencyGate()

        self._handlers: dict[OrchestratorState, Callable[[_RunState], Awaitable[OrchestratorState]]] = {
            OrchestratorState.SELECT_REFERENCE: self._select_reference,
            OrchestratorState.GENERATE: self._generate,
            OrchestratorState.ANALYZE: self._analyze,
            OrchestratorState.GATE: self._gate,
            OrchestratorState.CONTINUE: self._continue,
        }

    async def run(
        self,
        request: GenerationRequest,
        pool: Sequence[ReferenceAsset],
        request_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        """
        Run the attempt loop for a request against a reference pool.

        Args:
            request: Validated generation request
            pool: The character's reference assets (read-only)
            request_id: Audit trail key (generated if omitted)
            cancel_event: Set to cancel; the in-flight service call is
                cancelled and the attempt is recorded as aborted

        Cancelling the task running this coroutine also records the
        in-flight attempt as aborted before CancelledError propagates.

        Returns:
            GenerationResult; never raises for gate rejections, service
            errors, an empty pool, cancellation or deadline expiry
        """
        loop = asyncio.get_running_loop()
        now = loop.time()
        run = _RunState(
            request=request,
            request_id=request_id or str(uuid.uuid4()),
            pool=tuple(pool),
            profile=self.prompt_analyzer.analyze(request.prompt),
            started_at=now,
            deadline=now + request.max_attempts * self.config.per_attempt_budget_s,
            cancel_event=cancel_event,
        )

        logger.info(
            f"[{run.request_id}] Smart generation for character {request.character_id}: "
            f"{len(run.pool)} references, max {request.max_attempts} attempts, "
            f"thresholds quality {request.quality_threshold:g} / consistency {request.consistency_threshold:g}"
        )
        logger.debug(f"[{run.request_id}] Prompt profile: {run.profile}")

        state = OrchestratorState.SELECT_REFERENCE
        try:
            while state not in TERMINAL_STATES:
                next_state = await self._handlers[state](run)
                logger.debug(f"[{run.request_id}] {state.value} -> {next_state.value}")
                state = next_state
        except asyncio.CancelledError:
            # Task cancelled from outside (job timeout, shutdown)
            if self._attempt_in_progress(run):
                logger.warning(f"[{run.request_id}] Attempt {run.attempt_number} interrupted: task cancelled")
                await self._record_attempt(run, AttemptStatus.ABORTED, CANCELLED_REASON)
            raise

        return self._build_result(run, state)

    # === STATE HANDLERS ===

    async def _select_reference(self, run: _RunState) -> OrchestratorState:
        interruption = self._interruption(run)
        if interruption:
            run.abort_reason = interruption
            return OrchestratorState.ABORTED

        reference = self._next_reference(run)
        if reference is None:
            run.abort_reason = NO_REFERENCE_REASON
            return OrchestratorState.ABORTED

        run.begin_attempt(reference, asyncio.get_running_loop().time())
        logger.info(
            f"[{run.request_id}] Attempt {run.attempt_number}/{run.request.max_attempts} "
            f"using {reference.kind.value} reference {reference.id}"
        )
        return OrchestratorState.GENERATE

    async def _generate(self, run: _RunState) -> OrchestratorState:
        style = run.request.style
        outcome = await self._call(
            run,
            self.generation_client.generate,
            build_generation_prompt(run.request.prompt, style),
            run.reference.id,
            style,
            get_dimensions(style),
        )
        if not outcome.ok:
            return await self._fail_attempt(run, "generation failed", outcome)

        run.image = outcome.value
        logger.debug(
            f"[{run.request_id}] Generated {len(run.image.image_bytes)} bytes "
            f"in {run.image.generation_time_ms}ms"
        )
        return OrchestratorState.ANALYZE

    async def _analyze(self, run: _RunState) -> OrchestratorState:
        upload = await self._call(run, self.analysis_client.upload_and_extract, run.image.image_bytes)
        if not upload.ok:
            return await self._fail_attempt(run, "analysis failed", upload)
        run.candidate = upload.value

        run.quality_score = run.candidate.quality_score
        if run.quality_score is None:
            quality = await self._call(run, self.analysis_client.score_quality, run.candidate.asset_id)
            if not quality.ok:
                return await self._fail_attempt(run, "analysis failed", quality)
            run.quality_score = quality.value

        anchor = self._consistency_reference(run)
        consistency = await self._call(
            run, self.analysis_client.score_consistency, anchor.id, run.candidate.asset_id
        )
        if not consistency.ok:
            return await self._fail_attempt(run, "analysis failed", consistency)
        run.consistency = consistency.value
        return OrchestratorState.GATE

    async def _gate(self, run: _RunState) -> OrchestratorState:
        decision = self.gate.evaluate(run.quality_score, run.consistency.score, run.request.thresholds)

        if not decision.accepted:
            logger.info(f"[{run.request_id}] Attempt {run.attempt_number} rejected: {decision.reason}")
            await self._record_attempt(run, AttemptStatus.REJECTED, decision.reason)
            run.failure_reasons.append(f"attempt {run.attempt_number}: {decision.reason}")
            return self._after_unaccepted(run)

        logger.info(
            f"[{run.request_id}] Attempt {run.attempt_number} accepted: "
            f"quality {run.quality_score:g}, consistency {run.consistency.score:g}"
        )
        await self._record_attempt(run, AttemptStatus.ACCEPTED)
        try:
            run.accepted_asset_id = await self.asset_store.create_reference_asset(
                run.request.character_id, self._new_asset_metadata(run)
            )
        except AssetStoreError as e:
            logger.error(f"[{run.request_id}] Failed to persist accepted asset: {e}")
            run.abort_reason = f"accepted asset could not be persisted: {e}"
            return OrchestratorState.ABORTED
        return OrchestratorState.ACCEPT

    async def _continue(self, run: _RunState) -> OrchestratorState:
        return OrchestratorState.SELECT_REFERENCE

    # === SELECTION ===

    def _next_reference(self, run: _RunState) -> Optional[ReferenceAsset]:
        ranked = self.ranker.rank(run.pool, run.profile)
        if not ranked:
            return None

        attempt = run.attempt_number + 1
        if attempt == 1:
            return ranked[0]

        if attempt == 2:
            master = next((a for a in ranked if a.kind is AssetKind.MASTER), None)
            if master is not None and master.id not in run.used_ids:
                return master

        remaining = self.ranker.rank(run.pool, run.profile, excluded=run.cycle_used_ids)
        if not remaining:
            logger.info(f"[{run.request_id}] All {len(ranked)} references used, starting a new cycle")
            run.cycle_used_ids.clear()
            remaining = ranked
        return remaining[0]

    def _consistency_reference(self, run: _RunState) -> ReferenceAsset:
        if self.config.consistency_anchor is ConsistencyAnchor.MASTER:
            master = next((a for a in run.pool if a.kind is AssetKind.MASTER), None)
            if master is not None:
                return master
        return run.reference

    # === CALLS AND RECORDING ===

    def _interruption(self, run: _RunState) -> Optional[str]:
        if run.cancel_event is not None and run.cancel_event.is_set():
            return CANCELLED_REASON
        if asyncio.get_running_loop().time() >= run.deadline:
            return DEADLINE_REASON
        return None

    async def _call(self, run: _RunState, fn: Callable[..., Awaitable[T]], *args: Any) -> CallOutcome[T]:
        """
        Await one service call under the retry policy, the request deadline
        and the cancel event. On interruption the call's task is cancelled.
        """
        interruption = self._interruption(run)
        if interruption:
            return CallOutcome(interrupted=interruption)

        retrying = build_service_retry(self.config.retry_policy)
        task = asyncio.ensure_future(retrying(fn, *args))
        waiters = {task}
        cancel_waiter = None
        if run.cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(run.cancel_event.wait())
            waiters.add(cancel_waiter)

        timeout = run.deadline - asyncio.get_running_loop().time()
        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            await asyncio.wait({task})
            raise
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()
            if not task.done():
                task.cancel()

        if task not in done:
            # Let the cancelled call unwind before moving on
            await asyncio.wait({task})
            reason = CANCELLED_REASON if cancel_waiter is not None and cancel_waiter in done else DEADLINE_REASON
            logger.warning(f"[{run.request_id}] Attempt {run.attempt_number} interrupted: {reason}")
            return CallOutcome(interrupted=reason)

        try:
            return CallOutcome(value=task.result())
        except ServiceError as e:
            return CallOutcome(error=e)

    async def _fail_attempt(self, run: _RunState, stage: str, outcome: CallOutcome) -> OrchestratorState:
        if outcome.interrupted:
            await self._record_attempt(run, AttemptStatus.ABORTED, outcome.interrupted)
            run.abort_reason = outcome.interrupted
            return OrchestratorState.ABORTED

        reason = f"{stage}: {self._describe_error(outcome.error)}"
        logger.warning(f"[{run.request_id}] Attempt {run.attempt_number} {reason}")
        await self._record_attempt(run, AttemptStatus.FAILED, reason)
        run.failure_reasons.append(f"attempt {run.attempt_number}: {reason}")
        return self._after_unaccepted(run)

    def _describe_error(self, error: ServiceError) -> str:
        if isinstance(error, ServicePermanentError):
            return f"service rejected request ({error})"
        tries = self.config.retry_policy.max_retries + 1
        return f"service unavailable after {tries} tries ({error})"

    def _attempt_in_progress(self, run: _RunState) -> bool:
        if run.reference is None:
            return False
        return not run.attempts or run.attempts[-1].attempt_number != run.attempt_number

    def _after_unaccepted(self, run: _RunState) -> OrchestratorState:
        if run.attempt_number >= run.request.max_attempts:
            return OrchestratorState.EXHAUSTED
        return OrchestratorState.CONTINUE

    async def _record_attempt(self, run: _RunState, status: AttemptStatus, reason: Optional[str] = None) -> None:
        elapsed = asyncio.get_running_loop().time() - run.attempt_started_at
        attempt = Attempt(
            attempt_number=run.attempt_number,
            reference_id=run.reference.id,
            reference_kind=run.reference.kind,
            status=status,
            elapsed_ms=int(elapsed * 1000),
            quality_score=run.quality_score,
            consistency_score=run.consistency.score if run.consistency else None,
            reject_reason=reason,
            candidate_asset_id=run.candidate.asset_id if run.candidate else None,
            same_subject=run.consistency.same_subject if run.consistency else None,
        )
        run.attempts.append(attempt)

        try:
            await self.asset_store.append_attempt_audit(run.request_id, attempt)
        except AssetStoreError as e:
            logger.error(f"[{run.request_id}] Failed to audit attempt {attempt.attempt_number}: {e}")
            run.warnings.append(f"audit of attempt {attempt.attempt_number} failed: {e}")

    def _new_asset_metadata(self, run: _RunState) -> NewReferenceAsset:
        tags = tuple(run.request.tags)
        return NewReferenceAsset(
            asset_id=run.candidate.asset_id,
            quality_score=run.quality_score,
            consistency_score=run.consistency.score,
            prompt=run.request.prompt,
            style=run.request.style.value,
            source_reference_id=run.reference.id,
            request_id=run.request_id,
            shot_type=run.profile.shot_type,
            angle=run.profile.angle,
            keywords=run.profile.keywords | {t.lower() for t in tags},
            tags=tags,
            media_url=run.candidate.media_url,
        )

    def _build_result(self, run: _RunState, state: OrchestratorState) -> GenerationResult:
        status = TERMINAL_STATES[state]
        failure_reasons = list(run.failure_reasons)
        if status is ResultStatus.EXHAUSTED:
            failure_reasons.append(f"no candidate accepted after {run.attempt_number} attempts")
        elif status is ResultStatus.ABORTED and run.abort_reason:
            failure_reasons.append(run.abort_reason)

        elapsed = asyncio.get_running_loop().time() - run.started_at
        result = GenerationResult(
            request_id=run.request_id,
            status=status,
            attempts=tuple(run.attempts),
            total_elapsed_ms=int(elapsed * 1000),
            failure_reasons=failure_reasons,
            warnings=list(run.warnings),
        )
        if status is ResultStatus.ACCEPTED:
            result.accepted_asset_id = run.accepted_asset_id
            result.selected_reference_id = run.reference.id
            result.quality_score = run.quality_score
            result.consistency_score = run.consistency.score
            result.media_url = run.candidate.media_url

        logger.info(
            f"[{run.request_id}] Finished {status.value} after {len(run.attempts)} attempt(s) "
            f"in {result.total_elapsed_ms}ms"
        )
        return result

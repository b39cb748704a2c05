# Prompt analysis and reference selection
from .prompt_analyzer import PromptAnalyzer
from .reference_ranker import RankedReference, ReferenceRanker

# Validation and the attempt loop
from .consistency_gate import ConsistencyGate, GateVerdict
from .retry_orchestrator import OrchestratorState, RetryOrchestrator

__all__ = [
    # Prompt analysis and reference selection
    "PromptAnalyzer",
    "RankedReference",
    "ReferenceRanker",
    # Validation and the attempt loop
    "ConsistencyGate",
    "GateVerdict",
    "OrchestratorState",
    "RetryOrchestrator",
]

"""Orchestration layer - audit lifecycle and activity completion."""

from lean_rpg.orchestration.state_machine import (
    VALID_TRANSITIONS,
    apply_review,
    can_transition,
    transition_audit,
    valid_transitions,
)
from lean_rpg.orchestration.progression_orchestrator import (
    CompletionHandle,
    ProgressionOrchestrator,
)

__all__ = [
    "VALID_TRANSITIONS",
    "apply_review",
    "can_transition",
    "transition_audit",
    "valid_transitions",
    "CompletionHandle",
    "ProgressionOrchestrator",
]

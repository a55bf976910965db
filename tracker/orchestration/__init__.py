"""Orchestration layer - item lifecycle state machine and item plumbing."""

from tracker.orchestration.state_machine import (
    ResolutionSubmission,
    StateMachine,
    TransitionResult,
    can_transition,
    check_transition,
    valid_transitions,
)
from tracker.orchestration.item_service import ImageUpload, ItemListFilter, ItemService

__all__ = [
    "ResolutionSubmission",
    "StateMachine",
    "TransitionResult",
    "can_transition",
    "check_transition",
    "valid_transitions",
    "ImageUpload",
    "ItemListFilter",
    "ItemService",
]

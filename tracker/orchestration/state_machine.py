"""
State machine for the work-item lifecycle.

Item status is authoritative for review. Valid transitions and which kind
of actor may trigger them are defined here; agents are held to a narrower
edge set than humans so they can submit work but never approve it.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from tracker.kernel.errors import Conflict, InvalidTransition, ValidationFailed
from tracker.kernel.events.event_store import (
    ActivityRecorder,
    resolution_note_message,
    review_message,
    status_change_message,
)
from tracker.kernel.events.event_types import (
    CommandOutput,
    ResolutionNoteMetadata,
    ReviewMetadata,
    ReviewSubmittedMetadata,
    StatusChangeMetadata,
)
from tracker.kernel.models.activity import ActivityType
from tracker.kernel.models.base import enum_value, utcnow
from tracker.kernel.models.item import TERMINAL_STATUSES, ItemStatus, WorkItem
from tracker.kernel.permissions import Operation, PermissionService
from tracker.kernel.principal import ActorType, Principal, is_agent
from tracker.logging_config import get_logger

logger = get_logger(__name__)

_HUMAN = {ActorType.USER}
_ANYONE = {ActorType.USER, ActorType.AGENT}

# Valid transitions: (from_status, to_status) -> actor types that may trigger
_TRANSITIONS: Dict[Tuple[str, str], Set[ActorType]] = {
    # Work and submission
    (ItemStatus.OPEN.value, ItemStatus.IN_PROGRESS.value): _HUMAN,
    (ItemStatus.OPEN.value, ItemStatus.IN_REVIEW.value): _ANYONE,
    (ItemStatus.IN_PROGRESS.value, ItemStatus.IN_REVIEW.value): _ANYONE,
    (ItemStatus.IN_REVIEW.value, ItemStatus.IN_PROGRESS.value): _HUMAN,
    # Closing
    (ItemStatus.OPEN.value, ItemStatus.ARCHIVED.value): _HUMAN,
    (ItemStatus.IN_PROGRESS.value, ItemStatus.ARCHIVED.value): _HUMAN,
    (ItemStatus.IN_REVIEW.value, ItemStatus.RESOLVED.value): _HUMAN,
    (ItemStatus.IN_REVIEW.value, ItemStatus.ARCHIVED.value): _HUMAN,
    # Reopening
    (ItemStatus.RESOLVED.value, ItemStatus.OPEN.value): _HUMAN,
    (ItemStatus.RESOLVED.value, ItemStatus.IN_PROGRESS.value): _HUMAN,
    (ItemStatus.ARCHIVED.value, ItemStatus.OPEN.value): _HUMAN,
    (ItemStatus.ARCHIVED.value, ItemStatus.IN_PROGRESS.value): _HUMAN,
}


def _actor_type(principal: Principal) -> ActorType:
    return ActorType.AGENT if is_agent(principal) else ActorType.USER


def valid_transitions(principal: Principal, from_status: str) -> List[str]:
    """Return the target statuses ``principal`` may move an item to from ``from_status``."""
    actor_type = _actor_type(principal)
    if actor_type == ActorType.AGENT and ItemStatus(from_status) in TERMINAL_STATUSES:
        return []
    return sorted(t for (f, t), allowed in _TRANSITIONS.items() if f == from_status and actor_type in allowed)


def can_transition(principal: Principal, from_status: str, to_status: str) -> bool:
    """Check if ``principal`` may move an item from_status -> to_status."""
    return to_status in valid_transitions(principal, from_status)


def check_transition(principal: Principal, from_status: str, to_status: str) -> None:
    """
    Raise InvalidTransition unless the edge exists and the principal may take it.

    An agent touching a resolved or archived item is always a terminal-state
    violation, whatever it asked for.
    """
    if is_agent(principal) and ItemStatus(from_status) in TERMINAL_STATUSES:
        raise InvalidTransition(from_status, to_status, "item is closed to agents")
    if (from_status, to_status) not in _TRANSITIONS:
        raise InvalidTransition(from_status, to_status)
    if not can_transition(principal, from_status, to_status):
        raise InvalidTransition(from_status, to_status, "agents may only submit items for review")


@dataclass
class ResolutionSubmission:
    """
    Evidence bundle accompanying a resolve request.

    Fields are optional here so that missing evidence is reported as
    VALIDATION_FAILED by ``validate`` rather than rejected at parse time.
    """

    chat_session_id: Optional[str] = None
    resolution_note: Optional[str] = None
    code_changes: Optional[str] = None
    command_outputs: Optional[List[Dict[str, Any]]] = None
    test_summary: Optional[str] = None

    def validate(self) -> List[CommandOutput]:
        issues: List[Dict[str, str]] = []
        for name, value in (
            ("chatSessionId", self.chat_session_id),
            ("resolutionNote", self.resolution_note),
            ("codeChanges", self.code_changes),
        ):
            if not isinstance(value, str) or not value.strip():
                issues.append({"field": name, "message": "must be a non-empty string"})

        outputs: List[CommandOutput] = []
        if not self.command_outputs:
            issues.append({"field": "commandOutputs", "message": "must be a non-empty list"})
        else:
            for index, entry in enumerate(self.command_outputs):
                prefix = f"commandOutputs[{index}]"
                if not isinstance(entry, dict):
                    issues.append({"field": prefix, "message": "must be an object"})
                    continue
                command = entry.get("command")
                output = entry.get("output")
                exit_code = entry.get("exitCode", entry.get("exit_code"))
                entry_ok = True
                if not isinstance(command, str) or not command.strip():
                    issues.append({"field": f"{prefix}.command", "message": "must be a non-empty string"})
                    entry_ok = False
                if not isinstance(output, str):
                    issues.append({"field": f"{prefix}.output", "message": "must be a string"})
                    entry_ok = False
                if isinstance(exit_code, bool) or not isinstance(exit_code, int):
                    issues.append({"field": f"{prefix}.exitCode", "message": "must be an integer"})
                    entry_ok = False
                if entry_ok:
                    outputs.append(CommandOutput(command=command, output=output, exit_code=exit_code))

        if self.test_summary is not None and not isinstance(self.test_summary, str):
            issues.append({"field": "testSummary", "message": "must be a string"})

        if issues:
            raise ValidationFailed("Resolution submission is incomplete", issues=issues)
        return outputs


@dataclass
class TransitionResult:
    item: WorkItem
    changed: bool
    activity_ids: List[uuid.UUID] = field(default_factory=list)


class StateMachine:
    """Service for performing status transitions with audit recording."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.permissions = PermissionService(session)
        self.recorder = ActivityRecorder(session)

    async def change_status(
        self,
        principal: Principal,
        item_id: uuid.UUID,
        to_status: ItemStatus,
        expected_status: Optional[ItemStatus] = None,
    ) -> TransitionResult:
        """
        Move an item to ``to_status``.

        Requesting the current status is a successful no-op and records
        nothing. ``expected_status`` guards against clients acting on a
        stale view.
        """
        item = await self.permissions.get_item(principal, item_id, Operation.TRANSITION, for_update=True)
        from_status = enum_value(item.status)
        to_status = enum_value(to_status)

        if expected_status is not None and enum_value(expected_status) != from_status:
            raise Conflict("Item status has changed", current_status=from_status)

        if is_agent(principal) and ItemStatus(from_status) in TERMINAL_STATUSES:
            raise InvalidTransition(from_status, to_status, "item is closed to agents")

        if from_status == to_status:
            return TransitionResult(item=item, changed=False)

        check_transition(principal, from_status, to_status)
        activity_id = await self._apply(principal, item, to_status)
        return TransitionResult(item=item, changed=True, activity_ids=[activity_id])

    async def submit_resolution(
        self,
        principal: Principal,
        item_id: uuid.UUID,
        submission: ResolutionSubmission,
    ) -> TransitionResult:
        """
        Record a resolution note and submit the item for review.

        Items already in review get the note plus a REVIEW_SUBMITTED
        resubmission marker instead of a transition.
        """
        item = await self.permissions.get_item(principal, item_id, Operation.SUBMIT_RESOLUTION, for_update=True)
        from_status = enum_value(item.status)
        target = ItemStatus.IN_REVIEW.value

        if is_agent(principal) and ItemStatus(from_status) in TERMINAL_STATUSES:
            raise InvalidTransition(from_status, target, "item is closed to agents")

        outputs = submission.validate()

        if from_status != target:
            check_transition(principal, from_status, target)

        note = await self.recorder.record(
            item_id=item.id,
            actor=principal.actor,
            event_type=ActivityType.RESOLUTION_NOTE,
            message=resolution_note_message(submission.resolution_note),
            metadata=ResolutionNoteMetadata(
                chat_session_id=submission.chat_session_id,
                resolution_note=submission.resolution_note,
                code_changes=submission.code_changes,
                command_outputs=outputs,
                test_summary=submission.test_summary,
                status_before=from_status,
            ),
        )
        activity_ids = [note.id]

        if from_status == target:
            marker = await self.recorder.record(
                item_id=item.id,
                actor=principal.actor,
                event_type=ActivityType.REVIEW_SUBMITTED,
                message="Resubmitted for review",
                metadata=ReviewSubmittedMetadata(resolution_activity_id=note.id),
            )
            item.updated_at = utcnow()
            await self.session.flush()
            activity_ids.append(marker.id)
            logger.info("Resolution resubmitted", extra={"item_id": str(item.id)})
            return TransitionResult(item=item, changed=False, activity_ids=activity_ids)

        activity_ids.append(await self._apply(principal, item, target))
        return TransitionResult(item=item, changed=True, activity_ids=activity_ids)

    async def review(
        self,
        principal: Principal,
        item_id: uuid.UUID,
        approve: bool,
        note: Optional[str] = None,
        expected_status: Optional[ItemStatus] = None,
    ) -> TransitionResult:
        """
        Approve or reject an item in review.

        Only an item currently in review can be reviewed; anything else
        means the reviewer acted on a stale view.
        """
        item = await self.permissions.get_item(principal, item_id, Operation.REVIEW, for_update=True)
        from_status = enum_value(item.status)

        if expected_status is not None and enum_value(expected_status) != from_status:
            raise Conflict("Item status has changed", current_status=from_status)
        if from_status != ItemStatus.IN_REVIEW.value:
            raise Conflict("Item is not awaiting review", current_status=from_status)

        to_status = ItemStatus.RESOLVED.value if approve else ItemStatus.IN_PROGRESS.value
        check_transition(principal, from_status, to_status)

        item.status = ItemStatus(to_status)
        item.updated_at = utcnow()
        activity = await self.recorder.record(
            item_id=item.id,
            actor=principal.actor,
            event_type=ActivityType.REVIEW_APPROVED if approve else ActivityType.REVIEW_REJECTED,
            message=review_message(approve, note),
            metadata=ReviewMetadata(from_status=from_status, to_status=to_status, note=note),
        )

        logger.info(
            "Review decision recorded",
            extra={"item_id": str(item.id), "approved": approve, "to_status": to_status},
        )
        return TransitionResult(item=item, changed=True, activity_ids=[activity.id])

    async def _apply(self, principal: Principal, item: WorkItem, to_status: str) -> uuid.UUID:
        from_status = enum_value(item.status)
        item.status = ItemStatus(to_status)
        item.updated_at = utcnow()
        activity = await self.recorder.record(
            item_id=item.id,
            actor=principal.actor,
            event_type=ActivityType.STATUS_CHANGE,
            message=status_change_message(from_status, to_status),
            metadata=StatusChangeMetadata(from_status=from_status, to_status=to_status),
        )
        logger.info(
            "Item status changed",
            extra={
                "item_id": str(item.id),
                "from_status": from_status,
                "to_status": to_status,
                "actor_type": _actor_type(principal).value,
            },
        )
        return activity.id

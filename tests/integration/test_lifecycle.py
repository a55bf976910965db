"""
Integration tests for the item lifecycle, the audit trail and its transaction
boundary.
"""

import uuid
from typing import List

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.kernel.errors import Conflict, Forbidden, InvalidTransition, NotFound, ValidationFailed
from tracker.kernel.events import ActivityRecorder
from tracker.kernel.models import ItemStatus, ItemType, WorkItem
from tracker.kernel.models.activity import ActivityType, ImmutableActivityError, ItemActivity
from tracker.kernel.principal import ActorType, UserActor
from tracker.orchestration import ItemService, ResolutionSubmission, StateMachine


def _evidence(note: str = "Re-enabled the submit button.") -> ResolutionSubmission:
    return ResolutionSubmission(
        chat_session_id="chat-7",
        resolution_note=note,
        code_changes="form.tsx: recompute disabled state on change",
        command_outputs=[{"command": "npm test", "output": "ok", "exitCode": 0}],
    )


async def _activity(session: AsyncSession, item_id: uuid.UUID) -> List[ItemActivity]:
    result = await session.execute(
        select(ItemActivity)
        .where(ItemActivity.item_id == item_id)
        .order_by(ItemActivity.created_at, ItemActivity.id)
    )
    return list(result.scalars().all())


def _types(rows: List[ItemActivity]) -> List[str]:
    return sorted(str(getattr(row.type, "value", row.type)) for row in rows)


class TestReviewLoop:
    """The agent submits, the human rejects, the agent resubmits, the human approves."""

    @pytest.mark.asyncio
    async def test_full_loop(self, db_session, item, member_principal, agent_principal):
        machine = StateMachine(db_session)

        result = await machine.submit_resolution(agent_principal, item.id, _evidence())
        await db_session.commit()
        assert result.changed is True
        assert result.item.status == ItemStatus.IN_REVIEW

        rows = await _activity(db_session, item.id)
        assert _types(rows) == ["RESOLUTION_NOTE", "STATUS_CHANGE"]
        change = next(row for row in rows if row.type == ActivityType.STATUS_CHANGE.value)
        assert change.payload == {"from": "open", "to": "in_review"}
        assert change.actor_type == ActorType.AGENT.value
        assert change.agent_key_id == agent_principal.key_id
        assert change.actor_user_id is None

        result = await machine.review(member_principal, item.id, approve=False, note="Still broken on Safari")
        await db_session.commit()
        assert result.item.status == ItemStatus.IN_PROGRESS

        await machine.submit_resolution(agent_principal, item.id, _evidence("Handled Safari autofill too."))
        await db_session.commit()

        result = await machine.review(member_principal, item.id, approve=True)
        await db_session.commit()
        assert result.item.status == ItemStatus.RESOLVED

        rows = await _activity(db_session, item.id)
        assert [row.type for row in rows].count(ActivityType.REVIEW_REJECTED.value) == 1
        assert [row.type for row in rows].count(ActivityType.REVIEW_APPROVED.value) == 1
        assert len(rows) == 6

        with pytest.raises(InvalidTransition):
            await machine.submit_resolution(agent_principal, item.id, _evidence())
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_resubmission_in_review_records_marker(self, db_session, item, agent_principal):
        machine = StateMachine(db_session)
        first = await machine.submit_resolution(agent_principal, item.id, _evidence())
        await db_session.commit()

        second = await machine.submit_resolution(agent_principal, item.id, _evidence("More detail."))
        await db_session.commit()

        assert second.changed is False
        rows = await _activity(db_session, item.id)
        assert _types(rows) == ["RESOLUTION_NOTE", "RESOLUTION_NOTE", "REVIEW_SUBMITTED", "STATUS_CHANGE"]
        marker = next(row for row in rows if row.type == ActivityType.REVIEW_SUBMITTED.value)
        assert marker.payload["resolutionActivityId"] == str(second.activity_ids[0])
        assert first.activity_ids[0] != second.activity_ids[0]


class TestStatusChanges:
    @pytest.mark.asyncio
    async def test_same_status_is_silent_noop(self, db_session, item, member_principal):
        result = await StateMachine(db_session).change_status(member_principal, item.id, ItemStatus.OPEN)
        await db_session.commit()

        assert result.changed is False
        assert await _activity(db_session, item.id) == []

    @pytest.mark.asyncio
    async def test_repeated_noops_never_add_events(self, db_session, item, member_principal):
        machine = StateMachine(db_session)
        await machine.change_status(member_principal, item.id, ItemStatus.IN_PROGRESS)
        await db_session.commit()
        before = len(await _activity(db_session, item.id))

        for _ in range(5):
            result = await machine.change_status(member_principal, item.id, ItemStatus.IN_PROGRESS)
            await db_session.commit()
            assert result.changed is False

        assert before == 1
        assert len(await _activity(db_session, item.id)) == before

    @pytest.mark.asyncio
    async def test_resolving_without_review_is_refused(self, db_session, item, member_principal):
        item_id = item.id
        with pytest.raises(InvalidTransition):
            await StateMachine(db_session).change_status(member_principal, item_id, ItemStatus.RESOLVED)
        await db_session.rollback()

        assert await _activity(db_session, item_id) == []

    @pytest.mark.asyncio
    async def test_agent_cannot_touch_terminal_item(self, db_session, item, member_principal, agent_principal):
        machine = StateMachine(db_session)
        await machine.change_status(member_principal, item.id, ItemStatus.ARCHIVED)
        await db_session.commit()

        # Even the same-status request is refused
        with pytest.raises(InvalidTransition):
            await machine.change_status(agent_principal, item.id, ItemStatus.ARCHIVED)
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_agent_may_not_start_work(self, db_session, item, agent_principal):
        with pytest.raises(InvalidTransition):
            await StateMachine(db_session).change_status(agent_principal, item.id, ItemStatus.IN_PROGRESS)
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_human_reopens_resolved_item(self, db_session, item, member_principal):
        machine = StateMachine(db_session)
        await machine.change_status(member_principal, item.id, ItemStatus.IN_REVIEW)
        await machine.change_status(member_principal, item.id, ItemStatus.RESOLVED)
        result = await machine.change_status(member_principal, item.id, ItemStatus.OPEN)
        await db_session.commit()

        assert result.item.status == ItemStatus.OPEN
        assert _types(await _activity(db_session, item.id)) == ["STATUS_CHANGE"] * 3

    @pytest.mark.asyncio
    async def test_stale_expected_status_conflicts(self, db_session, item, member_principal):
        with pytest.raises(Conflict) as exc_info:
            await StateMachine(db_session).change_status(
                member_principal, item.id, ItemStatus.IN_PROGRESS, expected_status=ItemStatus.IN_REVIEW
            )
        await db_session.rollback()

        assert exc_info.value.current_status == "open"

    @pytest.mark.asyncio
    async def test_review_of_item_not_in_review_conflicts(self, db_session, item, member_principal):
        with pytest.raises(Conflict):
            await StateMachine(db_session).review(member_principal, item.id, approve=True)
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_agents_never_review(self, db_session, item, member_principal, agent_principal):
        machine = StateMachine(db_session)
        await machine.change_status(member_principal, item.id, ItemStatus.IN_REVIEW)
        await db_session.commit()

        with pytest.raises(Forbidden):
            await machine.review(agent_principal, item.id, approve=True)
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_agent_outside_project_sees_not_found(self, db_session, other_item, agent_principal):
        with pytest.raises(NotFound):
            await StateMachine(db_session).change_status(agent_principal, other_item.id, ItemStatus.IN_REVIEW)
        await db_session.rollback()


class TestAtomicity:
    @pytest.mark.asyncio
    async def test_incomplete_evidence_changes_nothing(self, db_session, session_factory, item, agent_principal):
        item_id = item.id
        with pytest.raises(ValidationFailed) as exc_info:
            await StateMachine(db_session).submit_resolution(
                agent_principal, item_id, ResolutionSubmission(chat_session_id="chat-7")
            )
        await db_session.rollback()

        assert {issue["field"] for issue in exc_info.value.issues} >= {"resolutionNote", "codeChanges"}
        async with session_factory() as fresh:
            stored = await fresh.get(WorkItem, item_id)
            assert stored.status == ItemStatus.OPEN
            assert await _activity(fresh, item_id) == []

    @pytest.mark.asyncio
    async def test_failed_audit_write_rolls_back_mutation(
        self, db_session, session_factory, item, member_principal, monkeypatch
    ):
        async def broken_record(self, **kwargs):
            raise RuntimeError("audit store unavailable")

        monkeypatch.setattr(ActivityRecorder, "record", broken_record)
        item_id = item.id

        with pytest.raises(RuntimeError):
            await StateMachine(db_session).change_status(member_principal, item_id, ItemStatus.IN_PROGRESS)
        await db_session.rollback()

        async with session_factory() as fresh:
            stored = await fresh.get(WorkItem, item_id)
            assert stored.status == ItemStatus.OPEN

    @pytest.mark.asyncio
    async def test_recorder_refuses_to_run_outside_a_transaction(self, session_factory, item, member):
        async with session_factory() as fresh:
            with pytest.raises(RuntimeError):
                await ActivityRecorder(fresh).record(
                    item_id=item.id,
                    actor=UserActor(member.id),
                    event_type=ActivityType.ITEM_UPDATED,
                    message="out of band",
                )

    @pytest.mark.asyncio
    async def test_written_activity_cannot_be_updated(self, db_session, item, member_principal):
        await StateMachine(db_session).change_status(member_principal, item.id, ItemStatus.IN_PROGRESS)
        await db_session.commit()

        row = (await _activity(db_session, item.id))[0]
        row.message = "rewritten history"
        with pytest.raises(ImmutableActivityError):
            await db_session.flush()
        await db_session.rollback()


class TestItemService:
    @pytest.mark.asyncio
    async def test_delete_removes_item_activity(self, db_session, session_factory, item, member_principal):
        item_id = item.id
        await StateMachine(db_session).change_status(member_principal, item_id, ItemStatus.IN_PROGRESS)
        await ItemService(db_session).update_item(member_principal, item_id, {"priority": "high"})
        await db_session.commit()
        assert len(await _activity(db_session, item_id)) == 2

        await ItemService(db_session).delete_item(member_principal, item_id)
        await db_session.commit()

        async with session_factory() as fresh:
            assert await fresh.get(WorkItem, item_id) is None
            assert await _activity(fresh, item_id) == []

    @pytest.mark.asyncio
    async def test_create_records_item_created(self, db_session, project, member_principal):
        item = await ItemService(db_session).create_item(
            member_principal, project.id, ItemType.FEATURE, title="  Dark mode  ", tags=["ui", " ", "theme"]
        )
        await db_session.commit()

        assert item.status == ItemStatus.OPEN
        assert item.title == "Dark mode"
        assert item.tags == ["ui", "theme"]
        rows = await _activity(db_session, item.id)
        assert _types(rows) == ["ITEM_CREATED"]
        assert rows[0].payload["status"] == "open"

    @pytest.mark.asyncio
    async def test_agents_cannot_create_items(self, db_session, project, agent_principal):
        with pytest.raises(Forbidden):
            await ItemService(db_session).create_item(agent_principal, project.id, ItemType.ISSUE, title="x")
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_update_records_only_real_changes(self, db_session, item, member_principal):
        service = ItemService(db_session)
        await service.update_item(member_principal, item.id, {"title": item.title, "tags": ["checkout"]})
        await db_session.commit()
        assert await _activity(db_session, item.id) == []

        updated = await service.update_item(member_principal, item.id, {"priority": "high", "title": item.title})
        await db_session.commit()

        assert updated.priority == "high"
        rows = await _activity(db_session, item.id)
        assert _types(rows) == ["ITEM_UPDATED"]
        assert rows[0].payload["changes"] == [{"field": "priority", "before": "medium", "after": "high"}]

    @pytest.mark.asyncio
    async def test_status_is_not_editable(self, db_session, item, member_principal):
        with pytest.raises(ValidationFailed):
            await ItemService(db_session).update_item(member_principal, item.id, {"status": "resolved"})
        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_list_is_scoped_and_filterable(self, db_session, item, other_item, member_principal, admin_principal):
        service = ItemService(db_session)

        mine = await service.list_items(member_principal)
        everything = await service.list_items(admin_principal)

        assert [i.id for i in mine] == [item.id]
        assert {i.id for i in everything} == {item.id, other_item.id}

    @pytest.mark.asyncio
    async def test_member_cannot_see_other_project_item(self, db_session, other_item, member_principal):
        with pytest.raises(NotFound):
            await ItemService(db_session).get_item(member_principal, other_item.id)

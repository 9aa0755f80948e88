import uuid

import pytest

from pagesmith.core.errors import InvalidTransition, ProjectNotFound
from pagesmith.models.project import ProjectStatus as S
from pagesmith.services import lifecycle

from conftest import create_account, create_generated_project, create_project, reload


def test_transition_table():
    assert lifecycle.can_transition("DRAFT", "PROCESSING")
    assert lifecycle.can_transition("PUBLISHED", "LIVE")
    assert not lifecycle.can_transition("DRAFT", "PUBLISHED")
    assert not lifecycle.can_transition("GENERATED", "DRAFT")
    assert not lifecycle.can_transition("PROCESSING", "CANCELLED")


async def test_foreign_project_looks_missing(session):
    project = await create_project(session)
    stranger = await create_account(session)
    with pytest.raises(ProjectNotFound):
        await lifecycle.load_project(session, project.id, stranger.id)
    with pytest.raises(ProjectNotFound):
        await lifecycle.load_project(session, uuid.uuid4())


async def test_cas_loses_when_status_moved(session):
    project = await create_project(session)
    await lifecycle.transition(session, project.id, S.DRAFT, S.PROCESSING)
    with pytest.raises(InvalidTransition):
        await lifecycle.transition(session, project.id, S.DRAFT, S.PROCESSING)
    assert (await reload(session, project)).status == "PROCESSING"


async def test_non_edge_is_rejected_before_touching_the_row(session):
    project = await create_project(session)
    with pytest.raises(InvalidTransition):
        await lifecycle.transition(session, project.id, S.DRAFT, S.LIVE)


async def test_cancel_records_grace_start(session):
    project = await create_generated_project(session, status=S.PUBLISHED.value)
    project = await lifecycle.cancel(session, project.id)

    assert project.status == "CANCELLED"
    assert project.status_before_cancel == "PUBLISHED"
    assert project.cancelled_at is not None
    assert project.subscription_id is None


async def test_cancel_twice_is_a_noop(session):
    project = await create_project(session)
    first = await lifecycle.cancel(session, project.id)
    cancelled_at = first.cancelled_at
    second = await lifecycle.cancel(session, project.id)
    assert second.cancelled_at == cancelled_at


async def test_cancel_while_processing_is_rejected(session):
    project = await create_project(session, status=S.PROCESSING.value)
    with pytest.raises(InvalidTransition) as info:
        await lifecycle.cancel(session, project.id)
    assert info.value.message_key == "generation_in_progress"


async def test_reactivate_restores_previous_status(session):
    project = await create_generated_project(session, status=S.LIVE.value)
    await lifecycle.cancel(session, project.id)
    project = await lifecycle.reactivate(session, project.id, subscription_id="sub_new")

    assert project.status == "LIVE"
    assert project.cancelled_at is None
    assert project.status_before_cancel is None
    assert project.sent_reminder_milestones == []
    assert project.subscription_id == "sub_new"


async def test_reactivate_active_project_is_rejected(session):
    project = await create_project(session)
    with pytest.raises(InvalidTransition):
        await lifecycle.reactivate(session, project.id)


async def test_cancelled_project_is_read_only(session):
    project = await create_generated_project(session)
    project = await lifecycle.cancel(session, project.id)
    with pytest.raises(InvalidTransition) as info:
        lifecycle.ensure_has_document(project)
    assert info.value.message_key == "project_cancelled"

import asyncio
import copy

import pytest

from pagesmith.core.config import settings
from pagesmith.core.errors import (
    ConfigurationError,
    GenerationTimeout,
    InsufficientTokens,
    InvalidModelOutput,
    InvalidTransition,
    ModelUnavailable,
)
from pagesmith.models.project import ProjectStatus as S
from pagesmith.schemas.content import StructuredContent
from pagesmith.services.generation import GenerationOrchestrator
from pagesmith.services.images import STATIC_FALLBACKS, ImageChain, StaticFallbackProvider

from conftest import CONTENT, PAGE, FakeModel, create_generated_project, create_project, page, reload


def content(**overrides) -> StructuredContent:
    data = copy.deepcopy(CONTENT)
    data.update(overrides)
    return StructuredContent.model_validate(data)


# ── Create ──────────────────────────────────────────────────
async def test_create_generates_and_locks(session):
    project = await create_project(session)
    model = FakeModel(f"```html\n{PAGE}\n```")
    orchestrator = GenerationOrchestrator(session, model)

    project = await orchestrator.create(project.id, content())

    assert project.status == "GENERATED"
    assert project.document == PAGE
    assert project.document_version == 1
    assert project.generation_locked is True
    assert project.structured_content["business_name"] == "Salon Ana"
    assert "Salon Ana" in model.prompts[0]


async def test_create_fills_only_empty_image_slots(session):
    project = await create_project(session)
    orchestrator = GenerationOrchestrator(session, FakeModel(), images=ImageChain([StaticFallbackProvider()]))

    project = await orchestrator.create(project.id, content(about_image_url=""))

    stored = project.structured_content
    assert stored["hero_image_url"] == "https://images.example.com/hero.jpg"
    assert stored["about_image_url"].startswith("https://")
    assert stored["about_image_url"] != ""


async def test_create_twice_is_rejected(session):
    project = await create_generated_project(session)
    model = FakeModel()
    with pytest.raises(InvalidTransition) as info:
        await GenerationOrchestrator(session, model).create(project.id, content())
    assert info.value.message_key == "already_generated"
    assert model.prompts == []


@pytest.mark.parametrize(
    "failure",
    [ModelUnavailable("down"), "Sorry, I cannot help with that."],
)
async def test_failed_create_reverts_to_draft(session, failure):
    project = await create_project(session)
    with pytest.raises((ModelUnavailable, InvalidModelOutput)):
        await GenerationOrchestrator(session, FakeModel(failure)).create(project.id, content())

    project = await reload(session, project)
    assert project.status == "DRAFT"
    assert project.document is None
    assert project.generation_locked is False


async def test_create_timeout_reverts_to_draft(session, monkeypatch):
    monkeypatch.setattr(settings, "GENERATION_TIMEOUT_SECONDS", 0.05)
    project = await create_project(session)
    with pytest.raises(GenerationTimeout):
        await GenerationOrchestrator(session, FakeModel(delay=1.0)).create(project.id, content())
    assert (await reload(session, project)).status == "DRAFT"


async def test_unconfigured_model_fails_before_state_change(session):
    project = await create_project(session)
    with pytest.raises(ConfigurationError):
        await GenerationOrchestrator(session, FakeModel(configured=False)).create(project.id, content())
    assert (await reload(session, project)).status == "DRAFT"


async def test_create_while_processing_is_rejected(session):
    project = await create_project(session, status=S.PROCESSING.value)
    with pytest.raises(InvalidTransition) as info:
        await GenerationOrchestrator(session, FakeModel()).create(project.id, content())
    assert info.value.message_key == "generation_in_progress"


# ── Edit ────────────────────────────────────────────────────
async def test_edit_charges_and_records_snapshot(session):
    project = await create_generated_project(session, token_balance=120)
    edited = page("Blue") + "\n<!-- EDIT_SUMMARY: Header is blue now. -->"
    orchestrator = GenerationOrchestrator(session, FakeModel(edited))

    outcome = await orchestrator.edit(project.id, "make the header blue")

    assert outcome.message == "Header is blue now."
    assert outcome.tokens_consumed == settings.TOKENS_PER_EDIT
    assert outcome.tokens_remaining == 120 - settings.TOKENS_PER_EDIT
    assert outcome.document_version == 2

    project = await reload(session, project)
    assert project.document == page("Blue")
    record = project.edit_history[-1]
    assert record["succeeded"] is True
    assert record["document_snapshot"] == PAGE


async def test_edit_without_tokens_makes_no_model_call(session):
    project = await create_generated_project(session, token_balance=10)
    model = FakeModel()
    with pytest.raises(InsufficientTokens):
        await GenerationOrchestrator(session, model).edit(project.id, "anything")
    assert model.prompts == []
    project = await reload(session, project)
    assert project.edit_history == []
    assert project.token_balance == 10


async def test_failed_edit_is_recorded_and_not_refunded(session):
    project = await create_generated_project(session, token_balance=100)
    with pytest.raises(InvalidModelOutput):
        await GenerationOrchestrator(session, FakeModel("not html")).edit(project.id, "break it")

    project = await reload(session, project)
    assert project.document == PAGE
    assert project.document_version == 1
    assert project.token_balance == 100 - settings.TOKENS_PER_EDIT
    record = project.edit_history[-1]
    assert record["succeeded"] is False
    assert record["error_summary"] == "invalid_output"
    assert record["tokens_consumed"] == settings.TOKENS_PER_EDIT


async def test_edit_on_draft_is_rejected(session):
    project = await create_project(session)
    with pytest.raises(InvalidTransition) as info:
        await GenerationOrchestrator(session, FakeModel()).edit(project.id, "x")
    assert info.value.message_key == "not_generated"


# ── Surgical update ─────────────────────────────────────────
async def test_surgical_update_without_changes_skips_model(session):
    project = await create_generated_project(session)
    model = FakeModel()
    outcome = await GenerationOrchestrator(session, model).surgical_update(project.id, content())

    assert outcome.applied is False
    assert outcome.document_version == 1
    assert model.prompts == []


async def test_surgical_update_applies_changes_for_free(session):
    project = await create_generated_project(session, token_balance=100)
    model = FakeModel(page("New phone"))
    outcome = await GenerationOrchestrator(session, model).surgical_update(
        project.id, content(phone="+385 99 999 9999"),
    )

    assert outcome.applied is True
    assert outcome.document_version == 2
    assert [c.field for c in outcome.changes] == ["phone"]
    assert "+385 99 999 9999" in model.prompts[0]

    project = await reload(session, project)
    assert project.document == page("New phone")
    assert project.structured_content["phone"] == "+385 99 999 9999"
    assert project.token_balance == 100


async def test_surgical_update_bad_output_changes_nothing(session):
    project = await create_generated_project(session)
    with pytest.raises(InvalidModelOutput):
        await GenerationOrchestrator(session, FakeModel("oops")).surgical_update(
            project.id, content(phone="+385 99 999 9999"),
        )
    project = await reload(session, project)
    assert project.document == PAGE
    assert project.structured_content["phone"] == CONTENT["phone"]


async def test_save_content_leaves_document(session):
    project = await create_generated_project(session)
    project = await GenerationOrchestrator(session, FakeModel()).save_content(
        project.id, content(tagline="Since 2004"),
    )
    assert project.structured_content["tagline"] == "Since 2004"
    assert project.document == PAGE
    assert project.document_version == 1


# ── Trial ───────────────────────────────────────────────────
async def test_trial_generate_caps_output(monkeypatch):
    monkeypatch.setattr(settings, "MAX_TRIAL_DOCUMENT_CHARS", 50)
    result = await GenerationOrchestrator(None, FakeModel()).trial_generate("Salon Ana", "Hair salon in Zagreb")
    assert len(result.document) == 50


async def test_trial_edit_returns_summary():
    model = FakeModel(page("Edited") + "<!-- EDIT_SUMMARY: Done. -->")
    result = await GenerationOrchestrator(None, model).trial_edit(PAGE, "change heading")
    assert result.document == page("Edited")
    assert result.message == "Done."


async def test_concurrent_creates_generate_once(session, session_factory):
    project = await create_project(session)
    model = FakeModel(delay=0.05)

    async def create_in_own_session():
        async with session_factory() as own:
            return await GenerationOrchestrator(own, model).create(project.id, content())

    results = await asyncio.gather(create_in_own_session(), create_in_own_session(), return_exceptions=True)

    generated = [r for r in results if not isinstance(r, BaseException)]
    rejected = [r for r in results if isinstance(r, InvalidTransition)]
    assert len(generated) == 1 and len(rejected) == 1
    assert generated[0].status == "GENERATED"
    assert len(model.prompts) == 1
    project = await reload(session, project)
    assert project.document_version == 1
    assert project.generation_locked is True


class _Stalled:
    name = "stalled"

    async def attempt(self, query):
        await asyncio.sleep(5)
        return "https://never.example.com/image.jpg"


async def test_create_bounds_slow_image_providers(session, monkeypatch):
    monkeypatch.setattr(settings, "IMAGE_TIMEOUT_SECONDS", 0.05)
    project = await create_project(session)
    orchestrator = GenerationOrchestrator(
        session, FakeModel(), images=ImageChain([_Stalled(), StaticFallbackProvider()]),
    )

    project = await asyncio.wait_for(orchestrator.create(project.id, content(about_image_url="")), timeout=2)

    assert project.status == "GENERATED"
    assert project.structured_content["about_image_url"] == STATIC_FALLBACKS["about"]

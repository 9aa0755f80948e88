import os

# Settings are read at import time; configure before anything imports pagesmith
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_pagesmith.db"
os.environ["CRON_SECRET"] = "cron-test-secret"
os.environ["BILLING_WEBHOOK_SECRET"] = "billing-test-secret"
os.environ["GEMINI_API_KEY"] = ""
os.environ["PEXELS_API_KEY"] = ""
os.environ["UNSPLASH_ACCESS_KEY"] = ""
os.environ["SMTP_HOST"] = ""
os.environ["VERCEL_API_TOKEN"] = ""
os.environ["STORAGE_BUCKET"] = ""
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["LOCALE"] = "en"

import asyncio
import hashlib
import uuid
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from pagesmith.core.database import Base, build_engine, build_session_factory
from pagesmith.models.account import Account
from pagesmith.models.project import Project, ProjectStatus
from pagesmith.schemas.content import StructuredContent

import pagesmith.models.account_key  # noqa: F401
import pagesmith.models.media  # noqa: F401
import pagesmith.models.rate_limit_window  # noqa: F401

PAGE = (
    "<!DOCTYPE html><html lang=\"en\"><head><title>Salon Ana</title></head>"
    "<body><h1>Salon Ana</h1></body></html>"
)


def page(marker: str) -> str:
    return PAGE.replace("<h1>Salon Ana</h1>", f"<h1>{marker}</h1>")


CONTENT: dict[str, Any] = {
    "business_name": "Salon Ana",
    "industry": "beauty",
    "description": "Hair salon in the centre of Zagreb with 20 years of experience.",
    "template": "modern",
    "primary_color": "#aa3366",
    "email": "ana@example.com",
    "phone": "+385 1 234 5678",
    "hero_image_url": "https://images.example.com/hero.jpg",
    "about_image_url": "https://images.example.com/about.jpg",
    "services_background_url": "https://images.example.com/services.jpg",
    "services": [
        {"name": "Haircut", "description": "Wash, cut and style"},
        {"name": "Coloring", "description": "Full color"},
    ],
}


# ── Fakes ───────────────────────────────────────────────────
class FakeModel:
    """Content model double. Queued items are returned (or raised) in order."""

    def __init__(self, *responses: Any, configured: bool = True, delay: float = 0.0) -> None:
        self.responses = list(responses)
        self.prompts: list[str] = []
        self._configured = configured
        self.delay = delay

    @property
    def configured(self) -> bool:
        return self._configured

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.responses.pop(0) if self.responses else PAGE
        if isinstance(item, BaseException):
            raise item
        return item


class FakeStorage:
    def __init__(self, configured: bool = True) -> None:
        self._configured = configured
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []

    @property
    def configured(self) -> bool:
        return self._configured

    def build_key(self, *, project_id: str, kind: str, data: bytes, content_type: str | None) -> str:
        return f"{project_id}/{kind}/{hashlib.sha256(data).hexdigest()[:12]}"

    async def put(self, *, key: str, data: bytes, content_type: str | None) -> str:
        self.objects[key] = data
        return f"https://cdn.example.com/{key}"

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        self.objects.pop(key, None)


class FakeMailer:
    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.sent: list[dict[str, str]] = []
        self.fail_for = fail_for or set()

    async def send(self, *, to_email: str, subject: str, html_body: str) -> bool:
        if to_email in self.fail_for:
            raise OSError("connection refused")
        self.sent.append({"to": to_email, "subject": subject, "html": html_body})
        return True


class FakeProvisioner:
    def __init__(self, verified: bool = True) -> None:
        self.added: list[str] = []
        self.removed: list[str] = []
        self.verified = verified

    async def add(self, domain: str) -> None:
        self.added.append(domain)

    async def remove(self, domain: str) -> None:
        self.removed.append(domain)

    async def verify(self, domain: str) -> bool:
        return self.verified


# ── Database ────────────────────────────────────────────────
@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'pagesmith.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


async def create_account(session: AsyncSession, **overrides: Any) -> Account:
    values: dict[str, Any] = {"id": uuid.uuid4(), "email": f"{uuid.uuid4().hex[:8]}@example.com", "name": "Ana"}
    values.update(overrides)
    account = Account(**values)
    session.add(account)
    await session.commit()
    return account


async def create_project(session: AsyncSession, owner: Account | None = None, **overrides: Any) -> Project:
    if owner is None:
        owner = await create_account(session)
    values: dict[str, Any] = {
        "id": uuid.uuid4(),
        "owner_id": owner.id,
        "name": "Salon Ana",
        "plan_name": "Basic",
        "subscription_id": "sub_123",
        "status": ProjectStatus.DRAFT.value,
        "token_balance": 500,
        "edit_history": [],
        "sent_reminder_milestones": [],
    }
    values.update(overrides)
    project = Project(**values)
    session.add(project)
    await session.commit()
    return project


async def create_generated_project(session: AsyncSession, owner: Account | None = None, **overrides: Any) -> Project:
    values: dict[str, Any] = {
        "status": ProjectStatus.GENERATED.value,
        "generation_locked": True,
        "document": PAGE,
        "document_version": 1,
        "structured_content": StructuredContent.model_validate(CONTENT).stored(),
    }
    values.update(overrides)
    return await create_project(session, owner, **values)


async def reload(session: AsyncSession, project: Project) -> Project:
    await session.refresh(project)
    return project

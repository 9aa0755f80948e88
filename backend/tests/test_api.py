"""
End-to-end checks through the FastAPI app.

The app runs against its own SQLite file (NullPool, so each request opens a
fresh connection); seeding goes through a plain
synchronous engine so nothing async is shared between event loops.
"""

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from pagesmith.auth.hashing import display_prefix, generate_account_key
from pagesmith.auth.rate_limit import get_rate_limiter
from pagesmith.core.database import Base, build_engine, build_session_factory, get_db_session
from pagesmith.main import app
from pagesmith.models.account import Account
from pagesmith.models.account_key import AccountKey
from pagesmith.models.media import Invoice, MediaAsset
from pagesmith.models.project import Project
from pagesmith.routers.deps import get_image_chain
from pagesmith.schemas.content import StructuredContent
from pagesmith.services.domains import get_domain_provisioner
from pagesmith.services.images import ImageChain, StaticFallbackProvider
from pagesmith.services.llm_client import get_content_model
from pagesmith.services.notifications import get_mailer
from pagesmith.services.rate_limiter import MemoryRateLimiter
from pagesmith.services.storage import get_storage

from conftest import CONTENT, PAGE, FakeMailer, FakeModel, FakeProvisioner, FakeStorage, page

CRON = {"Authorization": "Bearer cron-test-secret"}
BILLING = {"X-Billing-Secret": "billing-test-secret"}


class Harness:
    def __init__(self, tmp_path):
        path = tmp_path / "api.db"
        self.sync_engine = create_engine(f"sqlite:///{path}")
        Base.metadata.create_all(self.sync_engine)
        self.session_factory = build_session_factory(build_engine(f"sqlite+aiosqlite:///{path}"))
        self.model = FakeModel()
        self.storage = FakeStorage()
        self.mailer = FakeMailer()
        self.provisioner = FakeProvisioner()
        self.limiter = MemoryRateLimiter()

    async def db_session(self):
        async with self.session_factory() as session:
            yield session

    def install(self) -> None:
        app.dependency_overrides.update(
            {
                get_db_session: self.db_session,
                get_content_model: lambda: self.model,
                get_storage: lambda: self.storage,
                get_mailer: lambda: self.mailer,
                get_domain_provisioner: lambda: self.provisioner,
                get_image_chain: lambda: ImageChain([StaticFallbackProvider()]),
                get_rate_limiter: lambda: self.limiter,
            }
        )

    # ── Seeding ─────────────────────────────────────────────
    def add(self, *rows) -> None:
        with Session(self.sync_engine, expire_on_commit=False) as session:
            session.add_all(rows)
            session.commit()

    def account(self, email: str = "ana@example.com") -> tuple[Account, dict[str, str]]:
        raw, key_hash = generate_account_key()
        account = Account(id=uuid.uuid4(), email=email, name="Ana")
        self.add(account)
        self.add(AccountKey(account_id=account.id, key_hash=key_hash, prefix=display_prefix(raw)))
        return account, {"Authorization": f"Bearer {raw}"}

    def project(self, owner: Account, **overrides) -> Project:
        values = {
            "id": uuid.uuid4(),
            "owner_id": owner.id,
            "name": "Salon Ana",
            "plan_name": "Basic",
            "status": "DRAFT",
            "token_balance": 500,
            "edit_history": [],
            "sent_reminder_milestones": [],
        }
        values.update(overrides)
        project = Project(**values)
        self.add(project)
        return project

    def generated(self, owner: Account, **overrides) -> Project:
        values = {
            "status": "GENERATED",
            "generation_locked": True,
            "document": PAGE,
            "document_version": 1,
            "structured_content": StructuredContent.model_validate(CONTENT).stored(),
        }
        values.update(overrides)
        return self.project(owner, **values)

    def get(self, model, ident):
        with Session(self.sync_engine) as session:
            return session.get(model, ident)

    def count(self, model) -> int:
        with Session(self.sync_engine) as session:
            return len(session.execute(select(model)).scalars().all())


@pytest.fixture
def harness(tmp_path):
    harness = Harness(tmp_path)
    harness.install()
    yield harness
    app.dependency_overrides.clear()
    harness.sync_engine.dispose()


@pytest.fixture
def client(harness):
    return TestClient(app)


# ── Auth + envelope ─────────────────────────────────────────
def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_missing_key_is_401_envelope(client):
    response = client.get("/projects")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    error = response.json()["error"]
    assert error["kind"] == "authorization"
    assert error["retryable"] is False


def test_other_owner_project_is_404(client, harness):
    owner, _ = harness.account("owner@example.com")
    _, intruder = harness.account("intruder@example.com")
    project = harness.generated(owner)

    response = client.get(f"/projects/{project.id}", headers=intruder)
    assert response.status_code == 404


def test_validation_envelope_lists_fields(client, harness):
    owner, headers = harness.account()
    project = harness.project(owner)
    body = dict(CONTENT, primary_color="red")

    response = client.post(f"/projects/{project.id}/generate", json=body, headers=headers)

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["kind"] == "validation"
    assert any("primary_color" in item["loc"] for item in error["fields"])


# ── Generate / edit / undo ──────────────────────────────────
def test_generate_then_edit_then_undo(client, harness):
    owner, headers = harness.account()
    project = harness.project(owner)
    harness.model.responses = [PAGE, page("Salon Ana Zagreb")]

    response = client.post(f"/projects/{project.id}/generate", json=CONTENT, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "GENERATED"
    assert body["document_version"] == 1

    again = client.post(f"/projects/{project.id}/generate", json=CONTENT, headers=headers)
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "already_generated"

    edit = client.post(f"/projects/{project.id}/edit", json={"request_text": "Add the city"}, headers=headers)
    assert edit.status_code == 200
    assert "Salon Ana Zagreb" in edit.json()["document"]
    assert edit.json()["tokens_remaining"] == 450

    history = client.get(f"/projects/{project.id}/history", headers=headers).json()
    assert history["can_undo"] is True
    assert [e["succeeded"] for e in history["entries"]] == [True]

    undo = client.post(f"/projects/{project.id}/undo", headers=headers)
    assert undo.status_code == 200
    assert undo.json()["document"] == PAGE
    assert undo.json()["undone_request"] == "Add the city"

    nothing = client.post(f"/projects/{project.id}/undo", headers=headers)
    assert nothing.status_code == 409


def test_edit_without_tokens_is_402(client, harness):
    owner, headers = harness.account()
    project = harness.generated(owner, token_balance=10)

    response = client.post(f"/projects/{project.id}/edit", json={"request_text": "Bigger logo"}, headers=headers)

    assert response.status_code == 402
    error = response.json()["error"]
    assert error["kind"] == "insufficient_funds"
    assert error["tokens_remaining"] == 10
    assert harness.model.prompts == []


def test_unconfigured_model_is_503(client, harness):
    owner, headers = harness.account()
    project = harness.project(owner)
    harness.model = FakeModel(configured=False)
    harness.install()

    response = client.post(f"/projects/{project.id}/generate", json=CONTENT, headers=headers)

    assert response.status_code == 503
    assert harness.get(Project, project.id).status == "DRAFT"


def test_apply_without_changes_skips_model(client, harness):
    owner, headers = harness.account()
    project = harness.generated(owner)

    response = client.post(f"/projects/{project.id}/content/apply", json=CONTENT, headers=headers)

    assert response.status_code == 200
    assert response.json()["applied"] is False
    assert harness.model.prompts == []


# ── Publishing ──────────────────────────────────────────────
def test_publish_and_status(client, harness):
    owner, headers = harness.account()
    project = harness.generated(owner)

    published = client.post(f"/projects/{project.id}/publish", headers=headers)
    assert published.status_code == 200
    assert published.json()["subdomain"] == "salon-ana"
    assert harness.provisioner.added == ["salon-ana.pagesmith.site"]

    status = client.get(f"/projects/{project.id}/publication", headers=headers).json()
    assert status["published"] is True
    assert status["has_unpushed_changes"] is False


# ── Trial ───────────────────────────────────────────────────
def test_trial_generate_is_rate_limited(client, harness):
    payload = {"business_name": "Salon Ana", "business_description": "Hair salon in Zagreb"}
    for _ in range(5):
        assert client.post("/try/generate", json=payload).status_code == 200

    response = client.post("/try/generate", json=payload)
    assert response.status_code == 429
    assert response.json()["error"]["kind"] == "rate_limited"


def test_trial_edit_returns_document(client, harness):
    harness.model.responses = [page("Salon Ana Split")]
    response = client.post("/try/edit", json={"document": PAGE, "request_text": "Move to Split"})
    assert response.status_code == 200
    assert "Salon Ana Split" in response.json()["document"]


# ── Billing ─────────────────────────────────────────────────
CHECKOUT = {
    "email": "New@Example.com",
    "customer_name": "Ana",
    "plan_name": "Basic",
    "subscription_id": "sub_1",
    "project_name": "Salon Ana",
    "amount": "19.99",
    "external_reference": "cs_1",
}


def test_billing_requires_secret(client):
    response = client.post("/billing/checkout-completed", json=CHECKOUT)
    assert response.status_code == 401


def test_checkout_creates_account_and_project_once(client, harness):
    response = client.post("/billing/checkout-completed", json=CHECKOUT, headers=BILLING)
    assert response.status_code == 201
    body = response.json()
    assert body["token_balance"] == 500
    assert body["api_key"].startswith("ps_live_")

    listed = client.get("/projects", headers={"Authorization": f"Bearer {body['api_key']}"})
    assert [p["id"] for p in listed.json()] == [body["project_id"]]

    replay = client.post("/billing/checkout-completed", json=CHECKOUT, headers=BILLING)
    assert replay.status_code == 409
    assert harness.count(Project) == 1


def test_token_purchase_and_subscription_cycle(client, harness):
    owner, _ = harness.account()
    project = harness.generated(owner)
    purchase = {"project_id": str(project.id), "package": "tokens_500", "external_reference": "pi_1"}

    response = client.post("/billing/token-purchase", json=purchase, headers=BILLING)
    assert response.json()["token_balance"] == 1000
    assert client.post("/billing/token-purchase", json=purchase, headers=BILLING).status_code == 409
    assert harness.count(Invoice) == 1

    ended = client.post("/billing/subscription-ended", json={"project_id": str(project.id)}, headers=BILLING)
    assert ended.json()["status"] == "CANCELLED"

    renewed = client.post(
        "/billing/subscription-renewed",
        json={"project_id": str(project.id), "subscription_id": "sub_2"},
        headers=BILLING,
    )
    assert renewed.json()["status"] == "GENERATED"


# ── Cron ────────────────────────────────────────────────────
def test_cron_requires_secret(client):
    assert client.get("/cron/nurture").status_code == 401
    assert client.get("/cron/nurture", headers={"Authorization": "Bearer wrong"}).status_code == 401


def test_cron_jobs_report(client, harness):
    response = client.post("/cron/deletion-reminders", headers=CRON)
    assert response.status_code == 200
    assert response.json() == {"reminders_sent": 0, "projects_deleted": 0, "errors": 0, "details": []}

    assert client.get("/cron/nurture", headers=CRON).json()["sent"] == 0


# ── Media ───────────────────────────────────────────────────
def test_media_upload_list_delete(client, harness):
    owner, headers = harness.account()
    project = harness.generated(owner)

    uploaded = client.post(
        f"/projects/{project.id}/media",
        files={"file": ("logo.png", b"\x89PNG data", "image/png")},
        headers=headers,
    )
    assert uploaded.status_code == 201
    media_id = uploaded.json()["id"]
    assert len(harness.storage.objects) == 1

    listed = client.get(f"/projects/{project.id}/media", headers=headers).json()
    assert [m["id"] for m in listed] == [media_id]

    deleted = client.delete(f"/projects/{project.id}/media/{media_id}", headers=headers)
    assert deleted.status_code == 204
    assert harness.storage.objects == {}
    assert harness.count(MediaAsset) == 0

    missing = client.delete(f"/projects/{project.id}/media/{media_id}", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "media_not_found"


def test_media_rejects_non_images(client, harness):
    owner, headers = harness.account()
    project = harness.generated(owner)

    response = client.post(
        f"/projects/{project.id}/media",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=headers,
    )
    assert response.status_code == 422


def test_owner_deletes_published_project(client, harness):
    owner, headers = harness.account()
    project = harness.generated(owner, status="PUBLISHED", subdomain="salon-ana", custom_domain="salon-ana.hr")
    harness.add(MediaAsset(project_id=project.id, storage_key="p/logo.png", url="https://cdn.example.com/p/logo.png"))

    response = client.delete(f"/projects/{project.id}", headers=headers)

    assert response.status_code == 204
    assert harness.provisioner.removed == ["salon-ana.pagesmith.site", "salon-ana.hr"]
    assert harness.storage.deleted == ["p/logo.png"]
    assert harness.count(Project) == 0
    assert client.get(f"/projects/{project.id}", headers=headers).status_code == 404

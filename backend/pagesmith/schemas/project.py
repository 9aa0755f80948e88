"""
Pydantic v2 schemas for the owner-facing project endpoints.

Separation:
  • *Request — what the CLIENT sends (extra="forbid").
  • *Response — what the SERVER returns; built from ORM rows or from the
    orchestrator's outcome dataclasses (from_attributes=True).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ── Requests ────────────────────────────────────────────────
class EditRequest(BaseModel):
    """Free-text change request for the AI editor (paid)."""

    model_config = ConfigDict(extra="forbid")

    request_text: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        examples=["Make the header dark blue and add a phone number to the footer"],
    )


class CustomDomainRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    domain: str = Field(..., min_length=4, max_length=255, examples=["www.salon-ana.hr"])


class TrialGenerateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    business_name: str = Field(..., min_length=2, max_length=100)
    business_description: str = Field(..., min_length=10, max_length=2000)


class TrialEditRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    document: str = Field(..., min_length=1, max_length=500_000)
    request_text: str = Field(..., min_length=1, max_length=2000)


# ── Responses ───────────────────────────────────────────────
class ProjectResponse(BaseModel):
    """Project summary; the document itself is served separately."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    status: str
    plan_name: str | None
    token_balance: int
    tokens_used: int
    document_version: int
    generation_locked: bool
    subdomain: str | None
    custom_domain: str | None
    published_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime


class ProjectDetailResponse(ProjectResponse):
    structured_content: dict[str, Any] | None
    document: str | None


class EditResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    document: str
    message: str
    document_version: int
    tokens_consumed: int
    tokens_remaining: int


class FieldChangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    field: str
    description: str


class SurgicalUpdateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    applied: bool
    message: str
    document_version: int
    changes: list[FieldChangeResponse] = Field(default_factory=list)


class HistoryEntryResponse(BaseModel):
    """One edit attempt. Snapshots are not returned; they only feed undo."""

    request_text: str
    succeeded: bool
    timestamp: datetime
    tokens_consumed: int
    error_summary: str | None = None


class HistoryResponse(BaseModel):
    entries: list[HistoryEntryResponse]
    can_undo: bool


class UndoResponse(BaseModel):
    document: str
    document_version: int
    undone_request: str


class PublicationStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: str
    published: bool
    published_at: datetime | None
    updated_at: datetime | None
    has_unpushed_changes: bool
    subdomain: str | None
    subdomain_url: str | None
    custom_domain: str | None
    custom_domain_url: str | None
    custom_domain_verified: bool


class MediaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    url: str
    content_type: str | None
    source: str
    created_at: datetime


class TrialResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    document: str
    message: str | None = None

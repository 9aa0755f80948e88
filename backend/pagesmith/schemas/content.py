"""
Pydantic v2 schema for a project's structured content.

Structured content is the schema-validated set of business facts a page
is generated from. It is stored as JSON on the project row
(`Project.structured_content`) and compared field by field by the merge
compiler.

Rules:
  • Optional strings accept "" and default to "" — the stored form never
    mixes None and "" for the same meaning.
  • URL fields only check the scheme; the page is the consumer.
  • extra="forbid" everywhere — unknown keys are a 422, not silently dropped.
"""

from __future__ import annotations

import re
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

_HEX_COLOR = r"^#([0-9A-Fa-f]{3}){1,2}$"
_OPTIONAL_HEX_COLOR = r"^(#([0-9A-Fa-f]{3}){1,2})?$"
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _check_url(value: str) -> str:
    value = value.strip()
    if value and not value.startswith(("http://", "https://")):
        raise ValueError("must be an http(s) URL")
    return value


UrlStr = Annotated[str, AfterValidator(_check_url)]


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ── Nested pieces ───────────────────────────────────────────
class CallToAction(_Strict):
    type: Literal["contact", "phone", "link", "email", "whatsapp"] = "contact"
    label: str = ""
    url: str = ""


class WorkingHours(_Strict):
    day: str
    from_: str = Field(default="", alias="from")
    to: str = ""
    closed: bool = False

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ServiceItem(_Strict):
    name: str = Field(..., min_length=1)
    description: str = ""
    image_url: UrlStr = ""
    cta: CallToAction = Field(default_factory=CallToAction)


class Testimonial(_Strict):
    name: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    role: str = ""
    rating: int = Field(default=5, ge=1, le=5)
    image_url: UrlStr = ""


class FaqItem(_Strict):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class GalleryItem(_Strict):
    image_url: UrlStr = Field(..., min_length=1)
    caption: str = ""


class PricingPlan(_Strict):
    name: str = Field(..., min_length=1)
    price: str = Field(..., min_length=1)
    description: str = ""
    features: list[str] = Field(default_factory=list)
    highlighted: bool = False


class SocialLinks(_Strict):
    facebook: UrlStr = ""
    instagram: UrlStr = ""
    linkedin: UrlStr = ""
    twitter: UrlStr = ""


# ── Root ────────────────────────────────────────────────────
class StructuredContent(_Strict):
    """Everything the owner tells us about the business."""

    # Basic info
    business_name: str = Field(..., min_length=2, max_length=200)
    industry: str = Field(..., min_length=2, max_length=100)
    description: str = Field(..., min_length=10)
    tagline: str = ""

    # Template & style
    template: Literal["modern", "professional", "creative", "minimal"] = "modern"
    primary_color: str = Field(..., pattern=_HEX_COLOR)
    secondary_color: str = Field(default="", pattern=_OPTIONAL_HEX_COLOR)
    background_color: str = Field(default="", pattern=_OPTIONAL_HEX_COLOR)
    text_color: str = Field(default="", pattern=_OPTIONAL_HEX_COLOR)

    hero_cta: CallToAction = Field(default_factory=CallToAction)

    # Brand assets + section images (empty slots are filled by the image chain)
    logo_url: UrlStr = ""
    hero_image_url: UrlStr = ""
    about_image_url: UrlStr = ""
    features_image_url: UrlStr = ""
    services_background_url: UrlStr = ""

    # SEO
    meta_title: str = Field(default="", max_length=60)
    meta_description: str = Field(default="", max_length=160)
    meta_keywords: list[str] = Field(default_factory=list)

    # Contact
    email: str
    phone: str = ""
    address: str = ""
    map_embed: str = ""

    working_hours: list[WorkingHours] = Field(default_factory=list)
    services: list[ServiceItem] = Field(..., min_length=1)
    testimonials: list[Testimonial] = Field(default_factory=list)
    faq: list[FaqItem] = Field(default_factory=list)
    gallery: list[GalleryItem] = Field(default_factory=list)
    pricing: list[PricingPlan] = Field(default_factory=list)
    social_links: SocialLinks = Field(default_factory=SocialLinks)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.strip()
        if not _EMAIL.match(value):
            raise ValueError("invalid e-mail address")
        return value

    def stored(self) -> dict:
        """JSON-safe dict as persisted on the project row."""
        return self.model_dump(mode="json", by_alias=True)

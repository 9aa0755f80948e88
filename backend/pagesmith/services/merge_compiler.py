"""
Change-driven merge compiler.

Compares the stored structured content with a newly submitted version
and produces an ordered list of FieldChange descriptors. The surgical
update prompt hands this list to the model so it edits only what changed
and leaves everything else (including manual styling from earlier
free-text edits) alone.

Rules:
  • Scalars compare by equality; lists and nested objects compare by
    canonical JSON (sorted keys) so key order never counts as a change.
  • Missing values, "" and empty lists/objects are the same value.
  • Keyed collections (services, testimonials, FAQ, gallery, pricing)
    also name the items that were added and removed.
  • The compiler never reads or writes the document.

Order of the output follows FIELD_RULES, which is the order the form
presents fields in.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True, slots=True)
class FieldChange:
    field: str
    description: str

    def __str__(self) -> str:
        return self.description


def _canonical(value: Any) -> str:
    if value is None or value == "" or value == [] or value == {}:
        return ""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


def _display(value: Any) -> str:
    return str(value) if value not in (None, "") else "N/A"


def _get(content: dict[str, Any] | None, field: str) -> Any:
    return (content or {}).get(field)


# ── Describers ──────────────────────────────────────────────
def _from_to(label: str) -> Callable[[Any, Any, dict], str]:
    def describe(old: Any, new: Any, _new_content: dict) -> str:
        return f'{label}: "{_display(old)}" → "{_display(new)}"'
    return describe


def _changed(text: str) -> Callable[[Any, Any, dict], str]:
    def describe(_old: Any, _new: Any, _new_content: dict) -> str:
        return text
    return describe


def _item_key(item: Any, key: str) -> str:
    if isinstance(item, dict):
        return str(item.get(key) or "").strip()
    return str(item)


def _collection(label: str, noun: str | None, key: str) -> Callable[[Any, Any, dict], str]:
    """'Services updated (2 → 3 services); added: X; removed: Y'."""

    def describe(old: Any, new: Any, _new_content: dict) -> str:
        old_items = old or []
        new_items = new or []
        counts = f"{len(old_items)} → {len(new_items)}"
        if noun:
            counts = f"{counts} {noun}"
        text = f"{label} updated ({counts})"

        old_keys = [_item_key(item, key) for item in old_items]
        new_keys = [_item_key(item, key) for item in new_items]
        added = [k for k in new_keys if k and k not in old_keys]
        removed = [k for k in old_keys if k and k not in new_keys]

        # Items present on both sides whose body differs
        old_by_key = {_item_key(item, key): _canonical(item) for item in old_items}
        modified = [
            _item_key(item, key)
            for item in new_items
            if _item_key(item, key) in old_by_key
            and old_by_key[_item_key(item, key)] != _canonical(item)
        ]

        if added:
            text += "; added: " + ", ".join(f'"{k}"' for k in added)
        if removed:
            text += "; removed: " + ", ".join(f'"{k}"' for k in removed)
        if modified:
            text += "; modified: " + ", ".join(f'"{k}"' for k in modified if k)
        return text

    return describe


def _describe_colors(_old: Any, _new: Any, new_content: dict) -> str:
    parts = [f"primary={new_content.get('primary_color')}"]
    for field, short in (
        ("secondary_color", "secondary"),
        ("background_color", "bg"),
        ("text_color", "text"),
    ):
        if new_content.get(field):
            parts.append(f"{short}={new_content[field]}")
    return "Colors updated: " + ", ".join(parts)


def _describe_cta(_old: Any, new: Any, _new_content: dict) -> str:
    new = new or {}
    return f'Hero CTA updated: type={new.get("type")}, label="{new.get("label") or ""}"'


@dataclass(frozen=True, slots=True)
class FieldRule:
    name: str
    fields: tuple[str, ...]
    describe: Callable[[Any, Any, dict], str]


# ── Rule table ──────────────────────────────────────────────
FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("business_name", ("business_name",), _from_to("Business name")),
    FieldRule("tagline", ("tagline",), _changed("Tagline changed")),
    FieldRule("description", ("description",), _changed("Description changed")),
    FieldRule("industry", ("industry",), _changed("Industry changed")),
    FieldRule("services", ("services",), _collection("Services", "services", "name")),
    FieldRule("phone", ("phone",), _from_to("Phone")),
    FieldRule("email", ("email",), _from_to("Email")),
    FieldRule("social_links", ("social_links",), _changed("Social links updated")),
    FieldRule(
        "colors",
        ("primary_color", "secondary_color", "background_color", "text_color"),
        _describe_colors,
    ),
    FieldRule("hero_cta", ("hero_cta",), _describe_cta),
    FieldRule("address", ("address",), _from_to("Address")),
    FieldRule("map_embed", ("map_embed",), _changed("Google Maps embed updated")),
    FieldRule("working_hours", ("working_hours",), _changed("Working hours updated")),
    FieldRule("logo_url", ("logo_url",), _changed("Logo changed")),
    FieldRule("hero_image_url", ("hero_image_url",), _changed("Hero image changed")),
    FieldRule(
        "section_images",
        ("about_image_url", "features_image_url", "services_background_url"),
        _changed("Section images changed"),
    ),
    FieldRule(
        "seo",
        ("meta_title", "meta_description", "meta_keywords"),
        _changed("SEO meta data updated"),
    ),
    FieldRule("testimonials", ("testimonials",), _collection("Testimonials", None, "name")),
    FieldRule("faq", ("faq",), _collection("FAQ", None, "question")),
    FieldRule("gallery", ("gallery",), _collection("Gallery", None, "image_url")),
    FieldRule("pricing", ("pricing",), _collection("Pricing", None, "name")),
)


def compile_changes(
    previous: dict[str, Any] | None,
    current: dict[str, Any],
) -> list[FieldChange]:
    """
    Field-by-field diff of two structured-content dicts.

    Returns an empty list when nothing the page shows has changed.
    """
    changes: list[FieldChange] = []
    for rule in FIELD_RULES:
        differs = any(
            _canonical(_get(previous, field)) != _canonical(_get(current, field))
            for field in rule.fields
        )
        if not differs:
            continue
        head = rule.fields[0]
        changes.append(
            FieldChange(
                field=rule.name,
                description=rule.describe(_get(previous, head), _get(current, head), current),
            )
        )
    return changes

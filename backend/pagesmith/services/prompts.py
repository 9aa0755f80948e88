"""
Prompt builders for the content model.

Each builder returns one plain-text prompt. The model ONLY returns a
complete HTML document — every prompt says so explicitly, and the
orchestrator validates it afterwards anyway.
"""

from __future__ import annotations

import json
from typing import Any

from pagesmith.services.merge_compiler import FieldChange

_LANGUAGES = {"en": "English", "hr": "Croatian"}

_OUTPUT_RULES = """\
**Critical:**
- Start output with <!DOCTYPE html>
- Return a valid, complete HTML document
- Do NOT wrap the output in markdown code blocks
- No explanations, no comments outside the HTML"""

_CDN_STACK = """\
**TECHNICAL STACK (load via CDN):**
1. Tailwind CSS: <script src="https://cdn.tailwindcss.com"></script>
   - Configure the theme in a <script> block using the brand colors.
2. GSAP + ScrollTrigger for fade-up section animations:
   - <script src="https://cdnjs.cloudflare.com/ajax/libs/gsap/3.12.2/gsap.min.js"></script>
   - <script src="https://cdnjs.cloudflare.com/ajax/libs/gsap/3.12.2/ScrollTrigger.min.js"></script>
3. Lucide icons: <script src="https://unpkg.com/lucide@latest"></script>"""


def language_name(locale: str) -> str:
    return _LANGUAGES.get(locale, "English")


# ── Create ──────────────────────────────────────────────────
def build_create_prompt(content: dict[str, Any], locale: str) -> str:
    """Full-page generation from structured content."""
    return f"""\
You are a Senior Frontend Engineer and UI/UX Designer.
Generate a SINGLE, self-contained HTML file for a landing page based on the client's data.

{_CDN_STACK}

**IMAGES:**
- Use the image URLs provided in the data (logo_url, hero_image_url,
  about_image_url, features_image_url, services_background_url).
- Do not invent other image URLs.

**CONTENT:**
- Write persuasive marketing copy from the raw `description` and `industry`.
- Sections: Navbar, Hero, Features, About, Services, then Testimonials,
  FAQ, Gallery and Pricing when the data has them, then Contact and Footer.
- Use the hero call to action (`hero_cta`) for the primary hero button.
- All visible text MUST be in {language_name(locale)}.

**DESIGN:** Modern, clean, whitespace-heavy, mobile-first.

**CLIENT INPUT DATA (JSON):**
{json.dumps(content, ensure_ascii=False)}

{_OUTPUT_RULES}
"""


# ── Free-text edit ──────────────────────────────────────────
def build_edit_prompt(document: str, request_text: str, locale: str) -> str:
    return f"""\
You are an expert HTML/CSS editor. The user has a website and wants to make a change.

**Current HTML:**
```html
{document}
```

**User's edit request (in {language_name(locale)}):**
"{request_text}"

**Your task:**
1. Understand what the user wants to change.
2. Modify the HTML accordingly, making minimal changes — only what is requested.
3. Keep all existing functionality intact.

**Guidelines:**
- COLOR: modify the appropriate CSS/Tailwind classes
- TEXT: change the text content
- IMAGES: update src attributes
- LAYOUT: adjust spacing, sizing, positioning, flexbox, grid
- ADDING CONTENT: insert new elements in the existing style
- REMOVING: delete the requested elements

{_OUTPUT_RULES}

At the very end of the document add a one-line summary of what you changed,
in {language_name(locale)}, in exactly this format:
<!-- EDIT_SUMMARY: ... -->
"""


# ── Surgical update ─────────────────────────────────────────
def build_surgical_prompt(
    document: str,
    previous: dict[str, Any] | None,
    current: dict[str, Any],
    changes: list[FieldChange],
) -> str:
    change_lines = "\n".join(f"- {change.description}" for change in changes)
    return f"""\
You are making SURGICAL updates to an existing website. The owner has made
custom edits to this page and ALL of them must be preserved.

**Current website HTML (with custom edits):**
```html
{document}
```

**Old content data:**
```json
{json.dumps(previous or {}, indent=2, ensure_ascii=False)}
```

**New content data:**
```json
{json.dumps(current, indent=2, ensure_ascii=False)}
```

**Changes detected:**
{change_lines}

**RULES:**
1. Preserve 100% of custom styling, layout, headings and added elements.
2. For each change above find the corresponding element and replace ONLY its
   text content or attribute value. Do not touch classes, styles or structure.
3. When a list grew, duplicate the structure of an existing item and change
   only its content. When a list shrank, remove only the dropped items.
4. If customized text embeds an old value (e.g. "Welcome to Salon Maja" where
   the old name was "Salon Maja"), replace only the embedded value.
5. Return the COMPLETE updated document.

{_OUTPUT_RULES}
"""


# ── Trial (public try-it page) ──────────────────────────────
def build_trial_prompt(business_name: str, business_description: str, locale: str) -> str:
    return f"""\
You are an award-winning Frontend Engineer and UI/UX Designer.
Generate a SINGLE, self-contained HTML file for a modern, premium landing page.

{_CDN_STACK}

**NO IMAGES:**
- Do NOT use <img> tags, background-image URLs or external photos.
- Create visual interest with CSS gradients, inline SVG shapes and icons.

**CONTENT:**
- Business name: "{business_name}"
- Business description: "{business_description}"
- All text MUST be in {language_name(locale)}.

**SECTIONS:** Navbar, Hero, About, Services (3-4 cards), Stats, Testimonials,
CTA, Contact (form with name, email, message), Footer.

{_OUTPUT_RULES}
"""

"""
Image acquisition chain for page image slots (hero, about, services).

Providers are tried in priority order; the first one that returns a URL
wins:
  1. GeminiImageProvider  — AI image → object storage → public URL
  2. StockPhotoProvider   — Pexels, then Unsplash
  3. StaticFallbackProvider — fixed URL per slot, always succeeds

Every provider implements `async attempt(query) -> str | None`. Each attempt
runs under asyncio.wait_for(IMAGE_TIMEOUT_SECONDS); a provider that times
out or raises is logged and treated as None. The chain itself never
raises, so a page always gets an image for every slot.

Queries are derived from the business name + description through an
industry keyword table, with an optional style modifier. The three slots
are acquired concurrently.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from pagesmith.core.config import settings
from pagesmith.services.storage import Storage

logger = logging.getLogger(__name__)

SLOTS = ("hero", "about", "services")

# Structured-content field filled by each slot
SLOT_FIELDS = {
    "hero": "hero_image_url",
    "about": "about_image_url",
    "services": "services_background_url",
}

STATIC_FALLBACKS = {
    "hero": "https://images.pexels.com/photos/3184291/pexels-photo-3184291.jpeg?auto=compress&cs=tinysrgb&w=1400",
    "about": "https://images.pexels.com/photos/4350057/pexels-photo-4350057.jpeg?auto=compress&cs=tinysrgb&w=900",
    "services": "https://images.pexels.com/photos/3184360/pexels-photo-3184360.jpeg?auto=compress&cs=tinysrgb&w=1000",
}

# ── Style → photo aesthetic ─────────────────────────────────
STYLE_IMAGE_MODS: dict[str, str] = {
    "organic": "warm natural lighting, earthy tones, plants and natural textures, calm mood",
    "luxury": "ultra-minimalist, white marble surfaces, gold accents, soft diffused light",
    "scandinavian": "bright airy space, white and light wood tones, clean lines",
    "playful": "bright vibrant colors, cheerful energy, soft pastel accents",
    "corporate": "professional clean environment, navy and slate tones, trustworthy atmosphere",
    "bento": "clean minimal flat composition, soft whites and light grays, uncluttered",
    "editorial": "editorial photography style, asymmetric composition, artistic and refined",
    "monochrome": "black and white photography, strong contrast, architectural composition",
    "industrial": "concrete and steel textures, dark moody industrial setting",
    "handmade": "warm rustic textures, artisan workshop atmosphere",
}

# Content template → style modifier key
TEMPLATE_STYLES = {
    "professional": "corporate",
    "creative": "playful",
    "minimal": "bento",
}


@dataclass(frozen=True, slots=True)
class IndustryImages:
    keywords: tuple[str, ...]
    hero: str
    about: str
    services: str


# ── Industry keywords → subject per slot (Croatian + English) ──
INDUSTRY_IMAGE_MAP: tuple[IndustryImages, ...] = (
    IndustryImages(
        ("frizer", "salon", "šiš", "hair", "friz", "barber"),
        "stylish modern hair salon interior with warm lighting",
        "professional hairdresser styling client hair",
        "hair styling tools and products flat lay",
    ),
    IndustryImages(
        ("restoran", "pizzeria", "pizza", "caffe", "café", "kafić", "bistro", "konoba", "grill", "restaurant"),
        "elegant restaurant dining area with warm ambient lighting",
        "skilled chef plating gourmet food in professional kitchen",
        "beautifully presented gourmet dish close-up",
    ),
    IndustryImages(
        ("mehaničar", "automobil", "vozil", "gume", "mechanic", "car repair", "garage"),
        "modern professional car service garage",
        "expert mechanic working on car engine with precision",
        "automotive tools laid out in organized workshop",
    ),
    IndustryImages(
        ("odvjetn", "pravn", "ugovor", "notarsk", "lawyer", "legal", "attorney"),
        "sophisticated law office with books and elegant furniture",
        "professional lawyer in consultation meeting with client",
        "legal documents and scales of justice on desk",
    ),
    IndustryImages(
        ("liječn", "doktor", "klinik", "stomatolog", "zubar", "medicin", "clinic", "dentist", "doctor"),
        "modern bright medical clinic reception area",
        "caring doctor having consultation with patient",
        "advanced medical equipment in clean clinic room",
    ),
    IndustryImages(
        ("fitness", "teretana", "gym", "trening", "trener", "pilates", "yoga", "wellness"),
        "bright modern fitness studio with equipment",
        "personal trainer motivating client during workout session",
        "close-up of fitness equipment and weights",
    ),
    IndustryImages(
        ("kozmet", "ljepot", "beauty", "manikur", "pedikur", "spa", "masaž", "massage"),
        "luxurious beauty spa reception with soft lighting",
        "beauty therapist providing professional skin treatment",
        "premium skincare products arranged elegantly",
    ),
    IndustryImages(
        ("građevin", "renovacij", "soboslikar", "fasad", "krov", "zidar", "construction", "roofing"),
        "modern construction site with professional workers",
        "skilled construction team collaborating on renovation",
        "professional construction tools and blueprints",
    ),
    IndustryImages(
        ("vodoinstalater", "kupaon", "sanitarij", "plumb"),
        "newly renovated luxurious modern bathroom",
        "professional plumber installing fixtures with precision",
        "modern plumbing fixtures and tools close-up",
    ),
    IndustryImages(
        ("računovod", "porez", "financij", "knjigovod", "accounting", "tax", "bookkeep"),
        "clean modern accounting office with large windows",
        "professional accountant reviewing financial documents",
        "financial charts and documents on clean desk",
    ),
    IndustryImages(
        ("fotograf", "sniman", "vjenčanj", "wedding", "portret", "photograph"),
        "professional photography studio with camera equipment",
        "photographer capturing beautiful portrait shot",
        "professional camera lenses and equipment arranged",
    ),
    IndustryImages(
        ("nekretnin", "real estate", "najam", "property"),
        "stunning modern house exterior in golden hour light",
        "real estate agent showing client around bright property",
        "elegant modern interior living room and dining area",
    ),
    IndustryImages(
        ("pekar", "kruh", "kolač", "torta", "slastičar", "bakery", "pastry"),
        "artisan bakery with fresh bread and pastries displayed",
        "skilled baker pulling fresh bread from stone oven",
        "beautiful freshly baked pastries and cakes close-up",
    ),
    IndustryImages(
        ("cvjeć", "flower", "buket", "florist"),
        "colorful flower shop with bouquets on display",
        "florist artfully arranging fresh flower bouquet",
        "close-up of vibrant fresh flowers and petals",
    ),
    IndustryImages(
        ("softver", "programer", "startup", "saas", "software", "developer"),
        "modern tech startup open office with screens and plants",
        "developer team collaborating around computer screens",
        "code on screen in modern development environment",
    ),
    IndustryImages(
        ("čišćen", "posprem", "cleaning", "higijena"),
        "spotlessly clean bright modern home after cleaning",
        "professional cleaner working with eco-friendly products",
        "professional cleaning supplies and equipment organized",
    ),
    IndustryImages(
        ("hotel", "hostel", "smještaj", "apartman", "resort"),
        "luxury hotel lobby with elegant interior design",
        "friendly hotel staff providing excellent guest service",
        "luxurious hotel room with beautiful bed arrangement",
    ),
)


@dataclass(frozen=True, slots=True)
class ImageQuery:
    """Everything a provider may need to fill one slot."""

    slot: str
    prompt: str        # AI image prompt
    search: str        # stock photo search text
    key_prefix: str    # storage key hint (project id or trial slug)


def match_industry(text: str) -> IndustryImages | None:
    lowered = text.lower()
    for entry in INDUSTRY_IMAGE_MAP:
        if any(kw in lowered for kw in entry.keywords):
            return entry
    return None


def build_image_queries(
    business_name: str,
    business_description: str,
    style_key: str | None = None,
    key_prefix: str = "trial",
) -> dict[str, ImageQuery]:
    """Per-slot AI prompts and stock search texts."""
    matched = match_industry(f"{business_name} {business_description}")
    style_mod = STYLE_IMAGE_MODS.get(style_key or "", "")

    if matched is not None:
        subjects = {"hero": matched.hero, "about": matched.about, "services": matched.services}
        searches = dict(subjects)
    else:
        subjects = {
            "hero": f"professional business environment for {business_name}",
            "about": f"professional team working at {business_name}",
            "services": f"professional service detail for {business_name}",
        }
        searches = {
            "hero": "professional business",
            "about": "professional team",
            "services": "professional service",
        }

    suffix = (
        f". Style: {style_mod}. Photorealistic, high quality, no text."
        if style_mod
        else ". Photorealistic, professional photography, high quality, no text."
    )
    slot_hints = {
        "hero": " Wide landscape 16:9 format.",
        "about": " Natural candid feel.",
        "services": " Detailed and sharp.",
    }
    search_mod = f" {style_mod.split(',')[0]}" if style_mod else ""

    return {
        slot: ImageQuery(
            slot=slot,
            prompt=f"{subjects[slot]}{suffix}{slot_hints[slot]}",
            search=f"{searches[slot]}{search_mod}",
            key_prefix=key_prefix,
        )
        for slot in SLOTS
    }


# ── Providers ───────────────────────────────────────────────
class ImageProvider(Protocol):
    name: str

    async def attempt(self, query: ImageQuery) -> str | None: ...


def _extract_first_inline_image(response_json: dict[str, Any]) -> tuple[bytes, str] | None:
    for cand in response_json.get("candidates") or []:
        content = cand.get("content") if isinstance(cand, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        for part in parts:
            if not isinstance(part, dict):
                continue
            inline = part.get("inlineData") or part.get("inline_data")
            if not isinstance(inline, dict):
                continue
            data = inline.get("data")
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            if isinstance(data, str) and data:
                return base64.b64decode(data), str(mime_type)
    return None


class GeminiImageProvider:
    """Generate an image with the Gemini image model and store it."""

    name = "gemini"

    def __init__(
        self,
        storage: Storage,
        api_key: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.storage = storage
        self.api_key = settings.GEMINI_API_KEY if api_key is None else api_key
        self.model = model or settings.IMAGE_MODEL
        self._transport = transport

    async def attempt(self, query: ImageQuery) -> str | None:
        if not self.api_key or not self.storage.configured:
            return None

        payload = {
            "contents": [{"parts": [{"text": query.prompt}]}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {"aspectRatio": "16:9"},
            },
        }
        url = f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
        async with httpx.AsyncClient(timeout=60.0, transport=self._transport) as client:
            response = await client.post(
                url,
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                json=payload,
            )
        response.raise_for_status()

        image = _extract_first_inline_image(response.json())
        if image is None:
            logger.warning("Gemini image response for slot %s had no inline image", query.slot)
            return None

        data, mime_type = image
        key = self.storage.build_key(
            project_id=query.key_prefix,
            kind=f"ai-{query.slot}",
            data=data,
            content_type=mime_type,
        )
        return await self.storage.put(key=key, data=data, content_type=mime_type)


class StockPhotoProvider:
    """Pexels first, Unsplash second."""

    name = "stock"

    def __init__(
        self,
        pexels_key: str | None = None,
        unsplash_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.pexels_key = settings.PEXELS_API_KEY if pexels_key is None else pexels_key
        self.unsplash_key = settings.UNSPLASH_ACCESS_KEY if unsplash_key is None else unsplash_key
        self._transport = transport

    async def _pexels(self, client: httpx.AsyncClient, text: str) -> str | None:
        response = await client.get(
            "https://api.pexels.com/v1/search",
            headers={"Authorization": self.pexels_key},
            params={"query": text, "per_page": 5, "orientation": "landscape"},
        )
        response.raise_for_status()
        photos = response.json().get("photos") or []
        if not photos:
            return None
        src = photos[0].get("src") or {}
        return src.get("large2x") or src.get("large")

    async def _unsplash(self, client: httpx.AsyncClient, text: str) -> str | None:
        response = await client.get(
            "https://api.unsplash.com/search/photos",
            headers={"Authorization": f"Client-ID {self.unsplash_key}", "Accept-Version": "v1"},
            params={"query": text, "per_page": 1, "orientation": "landscape"},
        )
        response.raise_for_status()
        results = response.json().get("results") or []
        if not results:
            return None
        return (results[0].get("urls") or {}).get("regular")

    async def attempt(self, query: ImageQuery) -> str | None:
        async with httpx.AsyncClient(timeout=20.0, transport=self._transport) as client:
            if self.pexels_key:
                try:
                    url = await self._pexels(client, query.search)
                except (httpx.HTTPError, ValueError) as exc:
                    logger.warning("Pexels search failed for %r: %s", query.search, exc)
                    url = None
                if url:
                    return url
            if self.unsplash_key:
                return await self._unsplash(client, query.search)
        return None


class StaticFallbackProvider:
    name = "static"

    async def attempt(self, query: ImageQuery) -> str | None:
        return STATIC_FALLBACKS.get(query.slot, STATIC_FALLBACKS["hero"])


# ── Chain ───────────────────────────────────────────────────
class ImageChain:
    """Ordered providers; first non-None result wins."""

    def __init__(self, providers: list[ImageProvider], timeout: float | None = None) -> None:
        self.providers = list(providers)
        self.timeout = timeout if timeout is not None else settings.IMAGE_TIMEOUT_SECONDS

    async def acquire(self, query: ImageQuery) -> str:
        for provider in self.providers:
            try:
                url = await asyncio.wait_for(provider.attempt(query), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Image provider %s exceeded %.0fs for slot %s",
                    getattr(provider, "name", type(provider).__name__), self.timeout, query.slot,
                )
                continue
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Image provider %s failed for slot %s: %s",
                    getattr(provider, "name", type(provider).__name__), query.slot, str(exc)[:200],
                )
                continue
            if url:
                logger.info("Slot %s filled by %s", query.slot, getattr(provider, "name", "?"))
                return url
        return STATIC_FALLBACKS.get(query.slot, STATIC_FALLBACKS["hero"])

    async def acquire_page_images(
        self,
        business_name: str,
        business_description: str,
        style_key: str | None = None,
        key_prefix: str = "trial",
        slots: tuple[str, ...] = SLOTS,
    ) -> dict[str, str]:
        """Fill the requested slots concurrently."""
        queries = build_image_queries(business_name, business_description, style_key, key_prefix)
        wanted = [queries[slot] for slot in slots]
        urls = await asyncio.gather(*(self.acquire(q) for q in wanted))
        return dict(zip(slots, urls))


def default_chain(storage: Storage) -> ImageChain:
    return ImageChain(
        [
            GeminiImageProvider(storage),
            StockPhotoProvider(),
            StaticFallbackProvider(),
        ]
    )

import asyncio
import base64

import httpx

from pagesmith.services.images import (
    STATIC_FALLBACKS,
    GeminiImageProvider,
    ImageChain,
    StaticFallbackProvider,
    StockPhotoProvider,
    build_image_queries,
    match_industry,
)

from conftest import FakeStorage


class _Raising:
    name = "broken"

    async def attempt(self, query):
        raise RuntimeError("provider down")


class _Empty:
    name = "empty"

    async def attempt(self, query):
        return None


def test_match_industry_croatian_and_english():
    assert match_industry("Frizerski salon Ana").hero.startswith("stylish modern hair salon")
    assert match_industry("Best pizza in town") is not None
    assert match_industry("Quantum widgets ltd") is None


def test_queries_fall_back_to_generic_subjects():
    queries = build_image_queries("Acme", "We make things", key_prefix="p1")
    assert queries["hero"].search == "professional business"
    assert "Acme" in queries["about"].prompt
    assert queries["services"].key_prefix == "p1"


def test_style_modifier_reaches_prompt_and_search():
    queries = build_image_queries("Salon Ana", "hair salon", style_key="luxury")
    assert "white marble" in queries["hero"].prompt
    assert queries["hero"].search.endswith("ultra-minimalist")


async def test_chain_skips_failing_providers():
    chain = ImageChain([_Raising(), _Empty(), StaticFallbackProvider()])
    urls = await chain.acquire_page_images("Acme", "We make things")
    assert urls == STATIC_FALLBACKS


async def test_chain_without_providers_still_returns_fallback():
    chain = ImageChain([])
    query = build_image_queries("Acme", "things")["about"]
    assert await chain.acquire(query) == STATIC_FALLBACKS["about"]


class _Recording:
    name = "recording"

    def __init__(self) -> None:
        self.queries = []

    async def attempt(self, query):
        self.queries.append(query)
        return "https://second.example.com/image.jpg"


class _Slow:
    name = "slow"

    async def attempt(self, query):
        await asyncio.sleep(5)
        return "https://slow.example.com/image.jpg"


async def test_chain_stops_at_first_success():
    second = _Recording()
    chain = ImageChain([StaticFallbackProvider(), second])
    urls = await chain.acquire_page_images("Acme", "We make things")
    assert urls == STATIC_FALLBACKS
    assert second.queries == []


async def test_slow_provider_times_out_and_falls_through():
    second = _Recording()
    chain = ImageChain([_Slow(), second], timeout=0.05)
    query = build_image_queries("Acme", "things")["hero"]
    url = await asyncio.wait_for(chain.acquire(query), timeout=2)
    assert url == "https://second.example.com/image.jpg"
    assert [q.slot for q in second.queries] == ["hero"]


async def test_pexels_failure_falls_through_to_unsplash():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.pexels.com":
            return httpx.Response(500)
        assert request.headers["Authorization"] == "Client-ID u-key"
        return httpx.Response(200, json={"results": [{"urls": {"regular": "https://unsplash.test/1.jpg"}}]})

    provider = StockPhotoProvider("p-key", "u-key", transport=httpx.MockTransport(handler))
    query = build_image_queries("Salon Ana", "hair salon")["hero"]
    assert await provider.attempt(query) == "https://unsplash.test/1.jpg"


async def test_pexels_hit_wins():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "api.pexels.com"
        return httpx.Response(200, json={"photos": [{"src": {"large2x": "https://pexels.test/a.jpg"}}]})

    provider = StockPhotoProvider("p-key", "", transport=httpx.MockTransport(handler))
    query = build_image_queries("Salon Ana", "hair salon")["about"]
    assert await provider.attempt(query) == "https://pexels.test/a.jpg"


async def test_gemini_image_is_stored():
    raw = b"\x89PNG fake"

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["x-goog-api-key"] == "g-key"
        return httpx.Response(
            200,
            json={
                "candidates": [
                    {"content": {"parts": [{"inlineData": {"mimeType": "image/png", "data": base64.b64encode(raw).decode()}}]}}
                ]
            },
        )

    storage = FakeStorage()
    provider = GeminiImageProvider(storage, api_key="g-key", model="img", transport=httpx.MockTransport(handler))
    query = build_image_queries("Salon Ana", "hair salon", key_prefix="proj")["hero"]

    url = await provider.attempt(query)

    assert url.startswith("https://cdn.example.com/proj/ai-hero/")
    assert list(storage.objects.values()) == [raw]


async def test_gemini_skipped_without_storage():
    provider = GeminiImageProvider(FakeStorage(configured=False), api_key="g-key")
    query = build_image_queries("Salon Ana", "hair salon")["hero"]
    assert await provider.attempt(query) is None

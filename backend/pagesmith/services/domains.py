"""
Domain provisioning through the Vercel projects API.

Every published project gets `<slug>.<ROOT_DOMAIN>`; a custom domain can
be attached on top. Without VERCEL_API_TOKEN the provisioner runs in
log-only mode: calls succeed, nothing leaves the process, and custom
domains report as unverified.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol

import httpx

from pagesmith.core.config import settings
from pagesmith.core.errors import UpstreamError

logger = logging.getLogger(__name__)

_VERCEL_API = "https://api.vercel.com"

MAX_LABEL_LENGTH = 63

_TRANSLITERATION = str.maketrans(
    {
        "č": "c", "ć": "c", "š": "s", "ž": "z", "đ": "dj",
        "Č": "c", "Ć": "c", "Š": "s", "Ž": "z", "Đ": "dj",
        "ä": "a", "ö": "o", "ü": "u", "ß": "ss",
        "Ä": "a", "Ö": "o", "Ü": "u",
    }
)
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def generate_subdomain(name: str) -> str:
    """DNS-safe label from a project name ("Frizerski salon Đurđa" → "frizerski-salon-djurdja")."""
    slug = _NON_ALNUM.sub("-", name.translate(_TRANSLITERATION).lower()).strip("-")
    return slug[:MAX_LABEL_LENGTH].rstrip("-") or "site"


def normalize_domain(domain: str) -> str:
    """Lowercase, drop scheme, trailing slashes and a leading www."""
    cleaned = domain.strip().lower()
    cleaned = re.sub(r"^https?://", "", cleaned)
    cleaned = cleaned.rstrip("/")
    if cleaned.startswith("www."):
        cleaned = cleaned[4:]
    return cleaned


class DomainProvisioner(Protocol):
    async def add(self, domain: str) -> None: ...

    async def remove(self, domain: str) -> None: ...

    async def verify(self, domain: str) -> bool: ...


class VercelDomains:
    """Adds, removes and verifies domains on one Vercel project."""

    def __init__(
        self,
        token: str | None = None,
        project_id: str | None = None,
        team_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = settings.VERCEL_API_TOKEN if token is None else token
        self.project_id = project_id or settings.VERCEL_PROJECT_ID
        self.team_id = settings.VERCEL_TEAM_ID if team_id is None else team_id
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.token and self.project_id)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        params = {"teamId": self.team_id} if self.team_id else None
        headers = {"Authorization": f"Bearer {self.token}"}
        try:
            async with httpx.AsyncClient(
                base_url=_VERCEL_API, timeout=30.0, transport=self._transport
            ) as client:
                return await client.request(method, path, params=params, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Vercel %s %s transport error: %s", method, path, exc)
            raise UpstreamError(f"domain API unreachable ({method} {path})") from exc

    async def add(self, domain: str) -> None:
        if not self.configured:
            logger.info("Domain add (log-only): %s", domain)
            return
        response = await self._request(
            "POST", f"/v9/projects/{self.project_id}/domains", json={"name": domain},
        )
        if response.is_error:
            logger.error("Vercel add %s failed: %d %s", domain, response.status_code, response.text[:300])
            raise UpstreamError(f"could not add domain {domain}")
        logger.info("Domain added: %s", domain)

    async def remove(self, domain: str) -> None:
        if not self.configured:
            logger.info("Domain remove (log-only): %s", domain)
            return
        response = await self._request("DELETE", f"/v9/projects/{self.project_id}/domains/{domain}")
        if response.is_error and response.status_code != 404:
            logger.error("Vercel remove %s failed: %d %s", domain, response.status_code, response.text[:300])
            raise UpstreamError(f"could not remove domain {domain}")
        logger.info("Domain removed: %s", domain)

    async def verify(self, domain: str) -> bool:
        if not self.configured:
            logger.info("Domain verify (log-only): %s", domain)
            return False
        response = await self._request("POST", f"/v9/projects/{self.project_id}/domains/{domain}/verify")
        if response.is_error:
            logger.warning("Vercel verify %s: %d %s", domain, response.status_code, response.text[:300])
            return False
        try:
            return bool(response.json().get("verified"))
        except ValueError:
            logger.error("Vercel verify %s returned invalid JSON", domain)
            return False


def get_domain_provisioner() -> DomainProvisioner:
    """FastAPI dependency — overridden in tests."""
    return VercelDomains()

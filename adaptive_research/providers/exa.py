"""Exa neural web search restricted to trusted medical domains."""

from typing import Any
from urllib.parse import urlparse

import httpx

from adaptive_research.models import ProviderName, WebPassage
from adaptive_research.providers.base import open_client

EXA_SEARCH_URL = "https://api.exa.ai/search"

TRUSTED_MEDICAL_DOMAINS = (
    "mayoclinic.org",
    "clevelandclinic.org",
    "hopkinsmedicine.org",
    "cdc.gov",
    "nih.gov",
    "who.int",
    "diabetes.org",
    "joslin.org",
    "jdrf.org",
    "diabetesed.net",
    "beyondtype1.org",
    "diatribe.org",
    "idf.org",
    "easd.org",
    "diabetesjournals.org",
    "endocrine.org",
    "cochranelibrary.com",
)


def _domain(url: str) -> str:
    host = urlparse(url).hostname or ""
    return host.removeprefix("www.")


class ExaProvider:
    """Primary provider: passages from trusted medical websites."""

    name = ProviderName.EXA

    def __init__(
        self,
        api_key: str,
        *,
        client: httpx.AsyncClient | None = None,
        include_domains: tuple[str, ...] = TRUSTED_MEDICAL_DOMAINS,
    ) -> None:
        self.api_key = api_key
        self.client = client
        self.include_domains = include_domains

    async def fetch(self, query: str, count: int) -> list[WebPassage]:
        if count <= 0:
            return []
        if not self.api_key:
            raise RuntimeError("RESEARCH_EXA_API_KEY is not configured")

        body: dict[str, Any] = {
            "query": query,
            "type": "neural",
            "numResults": count,
            "includeDomains": list(self.include_domains),
            "contents": {"text": {"maxCharacters": 500}, "highlights": {"numSentences": 3}},
        }
        async with open_client(self.client) as client:
            response = await client.post(
                EXA_SEARCH_URL,
                json=body,
                headers={"Accept": "application/json", "x-api-key": self.api_key},
            )
            response.raise_for_status()
            payload = response.json()

        passages: list[WebPassage] = []
        for item in payload.get("results", []):
            url = item.get("url")
            if not url:
                continue
            passages.append(
                WebPassage(
                    url=url,
                    title=item.get("title") or "Untitled",
                    snippet=(item.get("text") or "")[:300],
                    publish_date=item.get("publishedDate"),
                    author=item.get("author"),
                    domain=_domain(url),
                    highlights=item.get("highlights") or [],
                )
            )
        return passages

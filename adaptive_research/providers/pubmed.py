"""PubMed E-utilities search (esearch for ids, esummary for metadata)."""

from typing import Any

import httpx

from adaptive_research.models import JournalArticle, ProviderName
from adaptive_research.providers.base import open_client

ESEARCH_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/esearch.fcgi"
ESUMMARY_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/esummary.fcgi"
ARTICLE_URL = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/"


def _doi(summary: dict[str, Any]) -> str | None:
    for article_id in summary.get("articleids", []):
        if article_id.get("idtype") == "doi" and article_id.get("value"):
            return article_id["value"]
    elocation = summary.get("elocationid") or ""
    if elocation.startswith("doi:"):
        return elocation.removeprefix("doi:").strip()
    return None


class PubMedProvider:
    """Peer-reviewed literature from PubMed."""

    name = ProviderName.PUBMED

    def __init__(
        self,
        api_key: str = "",
        *,
        client: httpx.AsyncClient | None = None,
        years_back: int = 5,
    ) -> None:
        self.api_key = api_key
        self.client = client
        self.years_back = years_back

    def _params(self, **params: Any) -> dict[str, Any]:
        params = {"db": "pubmed", "retmode": "json", **params}
        if self.api_key:
            params["api_key"] = self.api_key
        return params

    async def fetch(self, query: str, count: int) -> list[JournalArticle]:
        if count <= 0:
            return []

        search_params = self._params(term=query, retmax=count, sort="relevance")
        if self.years_back > 0:
            search_params["reldate"] = self.years_back * 365

        async with open_client(self.client) as client:
            response = await client.get(ESEARCH_URL, params=search_params)
            response.raise_for_status()
            ids: list[str] = response.json().get("esearchresult", {}).get("idlist", [])
            if not ids:
                return []

            response = await client.get(ESUMMARY_URL, params=self._params(id=",".join(ids)))
            response.raise_for_status()
            result: dict[str, Any] = response.json().get("result", {})

        articles: list[JournalArticle] = []
        for pmid in ids:
            summary = result.get(pmid)
            if not summary:
                continue
            authors = [a["name"] for a in summary.get("authors", []) if a.get("name")]
            articles.append(
                JournalArticle(
                    pmid=pmid,
                    url=ARTICLE_URL.format(pmid=pmid),
                    title=summary.get("title") or "Untitled",
                    journal=summary.get("source") or "",
                    publish_date=summary.get("pubdate"),
                    authors=authors,
                    author=authors[0] if authors else None,
                    doi=_doi(summary),
                )
            )
        return articles

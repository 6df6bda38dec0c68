"""medRxiv preprints, searched through the Europe PMC REST API."""

import httpx

from adaptive_research.models import Preprint, ProviderName
from adaptive_research.providers.base import open_client

EUROPE_PMC_SEARCH_URL = "https://www.ebi.ac.uk/europepmc/webservices/rest/search"


class MedRxivProvider:
    """Recent, not yet peer-reviewed findings."""

    name = ProviderName.MEDRXIV

    def __init__(self, *, client: httpx.AsyncClient | None = None) -> None:
        self.client = client

    async def fetch(self, query: str, count: int) -> list[Preprint]:
        if count <= 0:
            return []

        params = {
            "query": f'({query}) AND SRC:PPR AND PUBLISHER:"medRxiv"',
            "format": "json",
            "resultType": "core",
            "pageSize": count,
        }
        async with open_client(self.client) as client:
            response = await client.get(EUROPE_PMC_SEARCH_URL, params=params)
            response.raise_for_status()
            payload = response.json()

        preprints: list[Preprint] = []
        for item in payload.get("resultList", {}).get("result", [])[:count]:
            doi = item.get("doi")
            if doi:
                url = f"https://www.medrxiv.org/content/{doi}"
            elif item.get("id"):
                url = f"https://europepmc.org/article/PPR/{item['id']}"
            else:
                continue
            authors = item.get("authorString") or ""
            preprints.append(
                Preprint(
                    url=url,
                    doi=doi,
                    title=item.get("title") or "Untitled",
                    snippet=item.get("abstractText") or "",
                    publish_date=item.get("firstPublicationDate"),
                    authors=authors,
                    author=authors.split(",")[0].strip() or None,
                )
            )
        return preprints

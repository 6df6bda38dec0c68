"""ClinicalTrials.gov v2 study search."""

from typing import Any

import httpx

from adaptive_research.models import ClinicalTrial, ProviderName
from adaptive_research.providers.base import open_client

STUDIES_URL = "https://clinicaltrials.gov/api/v2/studies"


def _to_trial(study: dict[str, Any]) -> ClinicalTrial | None:
    protocol = study.get("protocolSection", {})
    identification = protocol.get("identificationModule", {})
    nct_id = identification.get("nctId")
    if not nct_id:
        return None

    status = protocol.get("statusModule", {})
    sponsor = protocol.get("sponsorCollaboratorsModule", {}).get("leadSponsor", {}).get("name")
    return ClinicalTrial(
        nct_id=nct_id,
        url=f"https://clinicaltrials.gov/study/{nct_id}",
        title=identification.get("briefTitle") or identification.get("officialTitle") or "Untitled",
        snippet=protocol.get("descriptionModule", {}).get("briefSummary") or "",
        publish_date=status.get("startDateStruct", {}).get("date"),
        status=status.get("overallStatus"),
        sponsor=sponsor,
        author=sponsor,
    )


class ClinicalTrialsProvider:
    name = ProviderName.CLINICAL_TRIALS

    def __init__(self, *, client: httpx.AsyncClient | None = None) -> None:
        self.client = client

    async def fetch(self, query: str, count: int) -> list[ClinicalTrial]:
        if count <= 0:
            return []

        params = {"query.term": query, "pageSize": count, "format": "json"}
        async with open_client(self.client) as client:
            response = await client.get(STUDIES_URL, params=params)
            response.raise_for_status()
            payload = response.json()

        trials = (_to_trial(study) for study in payload.get("studies", []))
        return [trial for trial in trials if trial is not None]

"""Tests for the ClinicalTrials.gov adapter."""

import httpx
import pytest

from adaptive_research.providers.clinical_trials import ClinicalTrialsProvider


def _study(nct_id: str | None, title: str = "Metformin in T1D") -> dict:
    return {
        "protocolSection": {
            "identificationModule": {"nctId": nct_id, "briefTitle": title},
            "descriptionModule": {"briefSummary": "Adjunct metformin therapy."},
            "statusModule": {"overallStatus": "RECRUITING", "startDateStruct": {"date": "2023-09"}},
            "sponsorCollaboratorsModule": {"leadSponsor": {"name": "Joslin Diabetes Center"}},
        }
    }


@pytest.mark.asyncio
async def test__fetch__maps_studies() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"studies": [_study("NCT05000001"), _study(None)]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        trials = await ClinicalTrialsProvider(client=client).fetch("metformin type 1", 4)

    assert seen[0].url.params["query.term"] == "metformin type 1"
    assert seen[0].url.params["pageSize"] == "4"

    assert len(trials) == 1
    trial = trials[0]
    assert trial.nct_id == "NCT05000001"
    assert trial.url == "https://clinicaltrials.gov/study/NCT05000001"
    assert trial.status == "RECRUITING"
    assert trial.publish_date == "2023-09"
    assert trial.sponsor == "Joslin Diabetes Center"
    assert trial.snippet == "Adjunct metformin therapy."

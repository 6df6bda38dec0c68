from adaptive_research.providers.base import EvidenceProvider, SessionStore
from adaptive_research.providers.clinical_trials import ClinicalTrialsProvider
from adaptive_research.providers.exa import ExaProvider
from adaptive_research.providers.fetcher import ParallelRoundFetcher
from adaptive_research.providers.medrxiv import MedRxivProvider
from adaptive_research.providers.pubmed import PubMedProvider
from adaptive_research.providers.sessions import InMemorySessionStore

__all__ = [
    "ClinicalTrialsProvider",
    "EvidenceProvider",
    "ExaProvider",
    "InMemorySessionStore",
    "MedRxivProvider",
    "ParallelRoundFetcher",
    "PubMedProvider",
    "SessionStore",
]

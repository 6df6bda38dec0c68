"""Contracts for the external collaborators the engine talks to."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol, Sequence, runtime_checkable

import httpx

from adaptive_research.models import EvidenceRecord, ProviderName, SessionMatch


@runtime_checkable
class EvidenceProvider(Protocol):
    """A search/evidence source: query + count in, typed records out.

    Implementations may raise anything on failure; the fetcher treats every
    exception and every timeout the same way.
    """

    name: ProviderName

    async def fetch(self, query: str, count: int) -> Sequence[EvidenceRecord]: ...


@runtime_checkable
class SessionStore(Protocol):
    """Lookup of past research sessions scored against search terms."""

    async def search(self, terms: str) -> list[SessionMatch]: ...


@asynccontextmanager
async def open_client(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client, or a short-lived one closed on exit."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=30.0) as owned:
        yield owned

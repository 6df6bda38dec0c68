"""Cross-round deduplication of evidence records."""

from typing import Sequence, TypeVar

from adaptive_research.logging import get_logger
from adaptive_research.models import (
    ClinicalTrial,
    JournalArticle,
    Preprint,
    ProviderName,
    ProviderSources,
    WebPassage,
)

log = get_logger("adaptive_research.dedup")

R = TypeVar("R", WebPassage, JournalArticle, Preprint, ClinicalTrial)


class SourceDeduplicator:
    """Keeps one identity set per provider for the lifetime of a research run.

    Filtering is order stable and first occurrence wins, including for
    duplicates inside the same batch. Feeding the same batch twice returns
    nothing the second time.
    """

    def __init__(self) -> None:
        self._seen: dict[ProviderName, set[str]] = {name: set() for name in ProviderName}
        self._duplicates: dict[ProviderName, int] = {name: 0 for name in ProviderName}

    def _filter(self, provider: ProviderName, records: Sequence[R]) -> list[R]:
        seen = self._seen[provider]
        unique: list[R] = []
        for record in records:
            key = record.identity_key
            if key in seen:
                self._duplicates[provider] += 1
                continue
            seen.add(key)
            unique.append(record)
        return unique

    def filter_exa(self, records: Sequence[WebPassage]) -> list[WebPassage]:
        return self._filter(ProviderName.EXA, records)

    def filter_pubmed(self, records: Sequence[JournalArticle]) -> list[JournalArticle]:
        return self._filter(ProviderName.PUBMED, records)

    def filter_medrxiv(self, records: Sequence[Preprint]) -> list[Preprint]:
        return self._filter(ProviderName.MEDRXIV, records)

    def filter_clinical_trials(self, records: Sequence[ClinicalTrial]) -> list[ClinicalTrial]:
        return self._filter(ProviderName.CLINICAL_TRIALS, records)

    def filter_round(self, raw: ProviderSources) -> ProviderSources:
        """Filter every provider group of a round at once."""
        return ProviderSources(
            exa=self.filter_exa(raw.exa),
            pubmed=self.filter_pubmed(raw.pubmed),
            medrxiv=self.filter_medrxiv(raw.medrxiv),
            clinical_trials=self.filter_clinical_trials(raw.clinical_trials),
        )

    @property
    def seen_count(self) -> int:
        return sum(len(keys) for keys in self._seen.values())

    @property
    def duplicate_count(self) -> int:
        return sum(self._duplicates.values())

    def log_summary(self) -> None:
        log.info(
            "dedup.summary",
            unique=self.seen_count,
            duplicates=self.duplicate_count,
            **{f"duplicates_{name.value}": count for name, count in self._duplicates.items()},
        )

"""Region name search for drill-down selection."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator

from .models import Feature


class SearchStatus(Enum):
    TOO_SHORT = "too_short"
    NO_MATCHES = "no_matches"
    MATCHES = "matches"


@dataclass(frozen=True, slots=True)
class SearchResult:
    query: str
    status: SearchStatus
    features: tuple[Feature, ...] = ()

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def __len__(self) -> int:
        return len(self.features)

    @property
    def items(self) -> tuple[tuple[Feature, str], ...]:
        return tuple((feature, feature.name) for feature in self.features)

    @property
    def skipped(self) -> bool:
        return self.status is SearchStatus.TOO_SHORT


class SearchIndex:
    """Case-insensitive substring match over feature names, in collection order."""

    def __init__(self, *, min_query_length: int = 2, max_results: int = 10) -> None:
        self.min_query_length = min_query_length
        self.max_results = max_results

    def query(self, text: str, features: Iterable[Feature]) -> SearchResult:
        needle = text.strip()
        if len(needle) < self.min_query_length:
            return SearchResult(query=needle, status=SearchStatus.TOO_SHORT)

        folded = needle.casefold()
        matches: list[Feature] = []
        for feature in features:
            if folded in feature.name.casefold():
                matches.append(feature)
                if len(matches) >= self.max_results:
                    break
        status = SearchStatus.MATCHES if matches else SearchStatus.NO_MATCHES
        return SearchResult(query=needle, status=status, features=tuple(matches))

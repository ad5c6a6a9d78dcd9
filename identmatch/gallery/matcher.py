"""
Gallery Matching

Nearest-neighbour search of a query fingerprint against a gallery of
reference fingerprints, with a distance-based match decision.
"""

import heapq
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

from identmatch.config import DEFAULT_CONFIG, MatchConfig
from identmatch.gallery.distance import distance_to_confidence, hamming_distance
from identmatch.schemas import Fingerprint, GalleryEntry, MatchCandidate, MatchResult


logger = logging.getLogger(__name__)

# (distance, gallery index); tuples order by distance then index
Neighbour = Tuple[int, int]


class SearchStrategy(ABC):
    """
    Finds the k nearest fingerprints.

    Implementations must order results by (distance, index) so that ties
    resolve to the earliest gallery entry regardless of execution order.
    """

    @abstractmethod
    def nearest(
        self,
        query: Fingerprint,
        fingerprints: Sequence[Fingerprint],
        k: int = 1
    ) -> List[Neighbour]:
        """
        Args:
            query: Query fingerprint
            fingerprints: Gallery fingerprints in canonical order
            k: Number of neighbours to return

        Returns:
            Up to k (distance, index) pairs, nearest first
        """


class LinearSearch(SearchStrategy):
    """Sequential O(n) scan"""

    def nearest(
        self,
        query: Fingerprint,
        fingerprints: Sequence[Fingerprint],
        k: int = 1
    ) -> List[Neighbour]:
        distances = (
            (hamming_distance(query, fingerprint), index)
            for index, fingerprint in enumerate(fingerprints)
        )
        return heapq.nsmallest(k, distances)


class ParallelSearch(SearchStrategy):
    """
    Fan-out/fan-in scan over gallery chunks.

    Each chunk reports its own k nearest tagged with original indices;
    the merge orders by (distance, index), never by arrival order.
    """

    def __init__(self, max_workers: int = 4, chunk_size: Optional[int] = None):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers
        self.chunk_size = chunk_size

    def _chunks(self, total: int) -> List[Tuple[int, int]]:
        size = self.chunk_size or max(1, -(-total // self.max_workers))
        return [(start, min(start + size, total)) for start in range(0, total, size)]

    def nearest(
        self,
        query: Fingerprint,
        fingerprints: Sequence[Fingerprint],
        k: int = 1
    ) -> List[Neighbour]:
        if not fingerprints:
            return []

        def scan(bounds: Tuple[int, int]) -> List[Neighbour]:
            start, stop = bounds
            return heapq.nsmallest(
                k,
                (
                    (hamming_distance(query, fingerprints[index]), index)
                    for index in range(start, stop)
                ),
            )

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            partials = list(executor.map(scan, self._chunks(len(fingerprints))))

        return heapq.nsmallest(k, (n for partial in partials for n in partial))


class GalleryMatcher:
    """
    Fingerprint matcher using Hamming distance.

    A match is declared iff the gallery is non-empty, the nearest distance
    is <= max_distance and its confidence is >= min_confidence. The nearest
    entry's confidence is always reported so callers can show how close
    the best candidate was.
    """

    def __init__(
        self,
        confidence_slope: float = 2.5,
        max_distance: int = 10,
        min_confidence: int = 70,
        top_k: int = 3,
        strategy: Optional[SearchStrategy] = None,
        parallel_threshold: int = 2048,
        max_workers: int = 4
    ):
        """
        Initialize matcher.

        Args:
            confidence_slope: Confidence lost per differing bit
            max_distance: Largest distance that may still be a match
            min_confidence: Smallest confidence that may still be a match
            top_k: Number of nearest candidates to report
            strategy: Fixed search strategy; chosen by gallery size if None
            parallel_threshold: Gallery size at which ParallelSearch is used
            max_workers: Worker threads for ParallelSearch
        """
        if top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {top_k}")
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self.confidence_slope = confidence_slope
        self.max_distance = max_distance
        self.min_confidence = min_confidence
        self.top_k = top_k
        self.strategy = strategy
        self.parallel_threshold = parallel_threshold
        self.max_workers = max_workers

    @classmethod
    def from_config(cls, config: MatchConfig = DEFAULT_CONFIG) -> "GalleryMatcher":
        return cls(
            confidence_slope=config.confidence_slope,
            max_distance=config.max_distance,
            min_confidence=config.min_confidence,
            top_k=config.top_k,
            parallel_threshold=config.parallel_threshold,
            max_workers=config.max_workers,
        )

    def confidence(self, distance: int) -> int:
        """Confidence (0-100) for a distance"""
        return distance_to_confidence(distance, self.confidence_slope)

    def is_match(self, distance: int, confidence: int) -> bool:
        return distance <= self.max_distance and confidence >= self.min_confidence

    def _strategy_for(self, size: int) -> SearchStrategy:
        if self.strategy is not None:
            return self.strategy
        if size >= self.parallel_threshold:
            return ParallelSearch(max_workers=self.max_workers)
        return LinearSearch()

    def match(
        self,
        query: Fingerprint,
        gallery: Sequence[GalleryEntry]
    ) -> MatchResult:
        """
        Match a query fingerprint against a gallery.

        Args:
            query: Fingerprint to match
            gallery: Reference entries; read only, never modified

        Returns:
            MatchResult (no-match with confidence 0 for an empty gallery)
        """
        if not gallery:
            logger.debug("Empty gallery, no match")
            return MatchResult.empty()

        fingerprints = [entry.fingerprint for entry in gallery]
        strategy = self._strategy_for(len(fingerprints))
        neighbours = strategy.nearest(query, fingerprints, k=self.top_k)

        candidates = tuple(
            MatchCandidate(
                identity=gallery[index].identity,
                label=gallery[index].label,
                distance=distance,
                confidence=self.confidence(distance),
                index=index,
            )
            for distance, index in neighbours
        )

        best = candidates[0]
        matched = self.is_match(best.distance, best.confidence)

        logger.info(
            "Nearest of %d entries: %r at distance %d (%d%%), match=%s",
            len(gallery), best.identity, best.distance, best.confidence, matched
        )

        return MatchResult(
            identity=best.identity if matched else None,
            confidence=best.confidence,
            distance=best.distance,
            candidates=candidates,
        )

    def batch_match(
        self,
        queries: Sequence[Fingerprint],
        gallery: Sequence[GalleryEntry]
    ) -> List[MatchResult]:
        """Match multiple fingerprints against the same gallery"""
        return [self.match(query, gallery) for query in queries]

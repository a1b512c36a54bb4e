"""
Rarity scoring module.
Builds trait frequency statistics for a collection, scores and ranks items,
and answers per-trait rarity queries.

Rarity Score = sum(collection_size / trait_frequency) over an item's traits,
with a 10% bonus for items carrying more traits than the collection average.
"""

from collections import Counter
from operator import attrgetter
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from .schemas import (
    CollectionStats,
    InvalidItemError,
    NFTMetadata,
    NFTWithRarity,
    RarityTier,
    Trait,
    TraitRarity,
    TRAIT_COUNT_BONUS,
)


class TraitFrequencyIndex:
    """Read-only trait counts for a fixed collection."""

    def __init__(self, nfts: Iterable[NFTMetadata]):
        nfts = tuple(nfts)
        trait_frequency = Counter()
        trait_type_count = Counter()

        for nft in nfts:
            if not isinstance(nft, NFTMetadata):
                raise InvalidItemError(f"Expected NFTMetadata, got {type(nft).__name__}")
            for trait in nft.attributes:
                trait_frequency[trait] += 1
                trait_type_count[trait.trait_type] += 1

        self._collection_size = len(nfts)
        self._trait_frequency = MappingProxyType(dict(trait_frequency))
        self._trait_type_count = MappingProxyType(dict(trait_type_count))

    @property
    def collection_size(self) -> int:
        return self._collection_size

    @property
    def trait_frequency(self) -> Mapping[Trait, int]:
        return self._trait_frequency

    @property
    def trait_type_count(self) -> Mapping[str, int]:
        return self._trait_type_count

    @property
    def average_trait_count(self) -> float:
        """Trait occurrences divided by the number of distinct trait types (0 if none)."""
        total = sum(self._trait_type_count.values())
        return total / max(len(self._trait_type_count), 1)

    def frequency(self, trait: Trait) -> int:
        """Number of indexed items carrying this exact trait."""
        return self._trait_frequency.get(trait, 0)

    def __len__(self) -> int:
        return self._collection_size

    def __repr__(self) -> str:
        return (
            f"TraitFrequencyIndex(collection_size={self._collection_size}, "
            f"unique_traits={len(self._trait_frequency)}, "
            f"trait_types={len(self._trait_type_count)})"
        )


class RarityCalculator:
    """Scores, ranks, and tiers NFTs against a trait frequency index."""

    def __init__(self, nfts: Iterable[NFTMetadata]):
        self.nfts: Tuple[NFTMetadata, ...] = tuple(nfts)
        self.index = TraitFrequencyIndex(self.nfts)

    @property
    def collection_size(self) -> int:
        return self.index.collection_size

    def score(self, nft: NFTMetadata) -> float:
        """
        Calculate the rarity score of a single item.

        Traits missing from the index count as seen once.

        Args:
            nft: Item to score

        Returns:
            Non-negative score, 0.0 for items without attributes
        """
        if not nft.attributes:
            return 0.0

        collection_size = self.index.collection_size
        total_score = 0.0
        for trait in nft.attributes:
            frequency = self.index.frequency(trait) or 1
            total_score += collection_size / frequency

        if nft.trait_count > self.index.average_trait_count:
            total_score *= TRAIT_COUNT_BONUS

        return total_score

    def percentile(self, rank: int) -> float:
        """Rank as a percentage of the indexed collection size."""
        if self.index.collection_size == 0:
            return 100.0
        return rank * 100 / self.index.collection_size

    def calculate_rarity(self, nfts: Optional[Iterable[NFTMetadata]] = None) -> List[NFTWithRarity]:
        """
        Score and rank items, rarest first.

        Percentiles are always relative to the indexed collection, so a
        scored subset does not reach 100.

        Args:
            nfts: Items to rank, defaults to the indexed collection

        Returns:
            Ranked items; exact score ties keep their input order
        """
        if nfts is None:
            nfts = self.nfts

        scored = []
        for nft in nfts:
            if not isinstance(nft, NFTMetadata):
                raise InvalidItemError(f"Expected NFTMetadata, got {type(nft).__name__}")
            scored.append((nft, self.score(nft)))

        # sorted() is stable with reverse=True
        scored = sorted(scored, key=lambda pair: pair[1], reverse=True)

        ranked = []
        for position, (nft, rarity_score) in enumerate(scored):
            rank = position + 1
            percentile = self.percentile(rank)
            ranked.append(NFTWithRarity(
                metadata=nft,
                rarity_score=rarity_score,
                rarity_rank=rank,
                rarity_percentile=percentile,
                rarity_tier=RarityTier.from_percentile(percentile),
            ))

        return ranked

    def get_trait_rarity(self, trait: Trait) -> TraitRarity:
        """
        Frequency statistics for a single trait.

        rarity_contribution is 0.0 for traits that never occur in the index.
        """
        collection_size = self.index.collection_size
        count = self.index.frequency(trait)
        frequency = count * 100 / collection_size if collection_size else 0.0
        rarity_contribution = collection_size / count if count else 0.0

        return TraitRarity(
            trait_type=trait.trait_type,
            value=trait.value,
            count=count,
            frequency=frequency,
            rarity_contribution=rarity_contribution,
        )

    def trait_breakdown(self, nft: NFTMetadata) -> List[TraitRarity]:
        """An item's traits with their statistics, rarest first."""
        return sorted(
            (self.get_trait_rarity(trait) for trait in nft.attributes),
            key=attrgetter('frequency'),
        )

    def get_collection_stats(self) -> CollectionStats:
        return CollectionStats(
            collection_size=self.index.collection_size,
            unique_traits=len(self.index.trait_frequency),
            trait_types=len(self.index.trait_type_count),
        )


def rank_collection(nfts: Sequence[NFTMetadata]) -> List[NFTWithRarity]:
    """Index a collection and rank all of its items."""
    return RarityCalculator(nfts).calculate_rarity()

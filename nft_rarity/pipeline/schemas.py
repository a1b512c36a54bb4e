"""
Schema definitions for the NFT rarity pipeline.
Defines item/trait types, rarity tiers, and output table schemas.
"""

import math
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional, Tuple
import polars as pl


class InvalidItemError(ValueError):
    """Raised when an item or trait does not match the metadata contract."""


class RarityTier(str, Enum):
    """Discrete rarity label derived from a percentile."""

    LEGENDARY = 'legendary'
    EPIC = 'epic'
    RARE = 'rare'
    UNCOMMON = 'uncommon'
    COMMON = 'common'

    @classmethod
    def from_percentile(cls, percentile: float) -> 'RarityTier':
        """
        Map a percentile (rank percentile or trait frequency %) to a tier.

        Args:
            percentile: Value in percent, lower is rarer

        Returns:
            The first tier whose upper bound is >= percentile
        """
        if math.isnan(percentile):
            raise ValueError("percentile must not be NaN")

        for upper_bound, tier in TIER_THRESHOLDS:
            if percentile <= upper_bound:
                return tier
        return cls.COMMON


# Upper percentile bound for each tier, checked in order
TIER_THRESHOLDS: List[Tuple[float, RarityTier]] = [
    (1.0, RarityTier.LEGENDARY),
    (5.0, RarityTier.EPIC),
    (15.0, RarityTier.RARE),
    (40.0, RarityTier.UNCOMMON),
]

# Flat multiplier for items carrying more traits than the collection average
TRAIT_COUNT_BONUS = 1.1

# Trait frequency (%) at or below which a single trait is flagged as rare
RARE_TRAIT_FREQUENCY = 5.0


@dataclass(frozen=True)
class Trait:
    """A single (trait_type, value) attribute of an NFT."""

    trait_type: str
    value: str

    def __post_init__(self):
        if not isinstance(self.trait_type, str):
            raise InvalidItemError(f"trait_type must be a string, got {type(self.trait_type).__name__}")
        if not isinstance(self.value, str):
            raise InvalidItemError(
                f"value for trait '{self.trait_type}' must be a string, got {type(self.value).__name__}"
            )

    @property
    def key(self) -> str:
        """Display key, e.g. 'Background:Red'."""
        return f"{self.trait_type}:{self.value}"

    def to_dict(self) -> Dict[str, str]:
        return {'trait_type': self.trait_type, 'value': self.value}


@dataclass(frozen=True)
class NFTMetadata:
    """Off-chain metadata of a single token."""

    token_id: str
    name: Optional[str] = None
    image: Optional[str] = None
    attributes: Tuple[Trait, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.token_id, str) or not self.token_id:
            raise InvalidItemError(f"token_id must be a non-empty string, got {self.token_id!r}")

        attributes = tuple(self.attributes)
        for trait in attributes:
            if not isinstance(trait, Trait):
                raise InvalidItemError(
                    f"Token {self.token_id}: attributes must be Trait instances, got {type(trait).__name__}"
                )
        object.__setattr__(self, 'attributes', attributes)

    @property
    def trait_count(self) -> int:
        return len(self.attributes)

    def to_dict(self) -> Dict:
        return {
            'token_id': self.token_id,
            'name': self.name,
            'image': self.image,
            'attributes': [trait.to_dict() for trait in self.attributes],
        }


@dataclass(frozen=True)
class NFTWithRarity:
    """An item annotated with its score, rank, percentile, and tier."""

    metadata: NFTMetadata
    rarity_score: float
    rarity_rank: int
    rarity_percentile: float
    rarity_tier: RarityTier

    @property
    def token_id(self) -> str:
        return self.metadata.token_id

    @property
    def name(self) -> Optional[str]:
        return self.metadata.name

    @property
    def attributes(self) -> Tuple[Trait, ...]:
        return self.metadata.attributes

    def to_dict(self) -> Dict:
        record = self.metadata.to_dict()
        record.update({
            'rarity_score': self.rarity_score,
            'rarity_rank': self.rarity_rank,
            'rarity_percentile': self.rarity_percentile,
            'rarity_tier': self.rarity_tier.value,
        })
        return record


@dataclass(frozen=True)
class TraitRarity:
    """Frequency statistics of one trait within an indexed collection."""

    trait_type: str
    value: str
    count: int
    frequency: float  # percent of the collection carrying the trait
    rarity_contribution: float

    @property
    def tier(self) -> RarityTier:
        return RarityTier.from_percentile(self.frequency)

    @property
    def is_rare(self) -> bool:
        return self.frequency <= RARE_TRAIT_FREQUENCY

    def to_dict(self) -> Dict:
        record = asdict(self)
        record['tier'] = self.tier.value
        return record


@dataclass(frozen=True)
class CollectionStats:
    """Summary sizes of a trait frequency index."""

    collection_size: int
    unique_traits: int
    trait_types: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class RaritySchema:
    """Schema for rarity output tables."""

    @staticmethod
    def get_rarity_table_schema() -> Dict[str, pl.DataType]:
        """Schema for the per-item rarity ranking table."""
        return {
            'collection': pl.Utf8,
            'token_id': pl.Utf8,
            'name': pl.Utf8,
            'image_url': pl.Utf8,
            'trait_count': pl.Int64,
            'rarity_score': pl.Float64,
            'rarity_rank': pl.Int64,
            'rarity_percentile': pl.Float64,
            'rarity_tier': pl.Utf8,
        }

    @staticmethod
    def get_trait_table_schema() -> Dict[str, pl.DataType]:
        """Schema for the per-trait frequency table."""
        return {
            'collection': pl.Utf8,
            'trait_type': pl.Utf8,
            'value': pl.Utf8,
            'count': pl.Int64,
            'frequency_pct': pl.Float64,
            'rarity_contribution': pl.Float64,
            'trait_tier': pl.Utf8,
        }

    @staticmethod
    def get_collection_summary_schema() -> Dict[str, pl.DataType]:
        """Schema for the per-collection rarity summary."""
        schema = {
            'collection': pl.Utf8,
            'total_items': pl.Int64,
            'min_score': pl.Float64,
            'max_score': pl.Float64,
            'mean_score': pl.Float64,
            'median_score': pl.Float64,
        }
        for tier in RarityTier:
            schema[f'{tier.value}_count'] = pl.Int64
        return schema


# Metadata record keys, in lookup order
TOKEN_ID_KEYS = ['token_id', 'tokenId', 'identifier']
IMAGE_KEYS = ['image', 'image_url']
ATTRIBUTE_KEYS = ['attributes', 'traits']
TOKEN_URI_KEYS = ['tokenURI', 'token_uri']

DEFAULT_IPFS_GATEWAY = 'https://ipfs.io/ipfs/'

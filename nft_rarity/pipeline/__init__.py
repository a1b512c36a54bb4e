"""
NFT Rarity Pipeline
A modular system for scoring, ranking, and tiering NFT collections by trait rarity.
"""

__version__ = '1.0.0'

from .schemas import (
    CollectionStats,
    InvalidItemError,
    NFTMetadata,
    NFTWithRarity,
    RarityTier,
    RaritySchema,
    Trait,
    TraitRarity,
)
from .calculator import RarityCalculator, TraitFrequencyIndex, rank_collection
from .metadata import MetadataParser, decode_token_uri, drop_empty, resolve_ipfs_url
from .validate import MetadataValidator
from .aggregate import RarityAggregator, find_by_token_id, similar_items
from .io_utils import MetadataLoader, DataWriter, VersionedOutput

__all__ = [
    'CollectionStats',
    'InvalidItemError',
    'NFTMetadata',
    'NFTWithRarity',
    'RarityTier',
    'RaritySchema',
    'Trait',
    'TraitRarity',
    'RarityCalculator',
    'TraitFrequencyIndex',
    'rank_collection',
    'MetadataParser',
    'decode_token_uri',
    'drop_empty',
    'resolve_ipfs_url',
    'MetadataValidator',
    'RarityAggregator',
    'find_by_token_id',
    'similar_items',
    'MetadataLoader',
    'DataWriter',
    'VersionedOutput',
]

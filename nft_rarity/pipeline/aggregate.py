"""
Aggregation module for creating rarity datasets.
Generates ranking tables, trait frequency tables, and collection summaries.
"""

from typing import List, Optional
import polars as pl

from .calculator import RarityCalculator
from .metadata import resolve_ipfs_url
from .schemas import DEFAULT_IPFS_GATEWAY, NFTWithRarity, RarityTier, RaritySchema


class RarityAggregator:
    """Builds analytical tables from ranked items."""

    def __init__(self, ipfs_gateway: str = DEFAULT_IPFS_GATEWAY):
        self.ipfs_gateway = ipfs_gateway

    def create_rarity_table(self, ranked: List[NFTWithRarity], collection: str) -> pl.DataFrame:
        """
        Create the per-item rarity ranking table.

        Args:
            ranked: Items as returned by RarityCalculator.calculate_rarity
            collection: Collection name

        Returns:
            DataFrame with one row per item, ordered by rank
        """
        print(f"Creating rarity table for {collection}...")

        rows = [
            {
                'collection': collection,
                'token_id': nft.token_id,
                'name': nft.name,
                'image_url': self._image_url(nft.metadata.image),
                'trait_count': nft.metadata.trait_count,
                'rarity_score': nft.rarity_score,
                'rarity_rank': nft.rarity_rank,
                'rarity_percentile': nft.rarity_percentile,
                'rarity_tier': nft.rarity_tier.value,
            }
            for nft in ranked
        ]

        table = pl.DataFrame(rows, schema=RaritySchema.get_rarity_table_schema())
        table = table.sort('rarity_rank')

        print(f"  Created {len(table)} rarity records")
        return table

    def create_trait_table(self, calculator: RarityCalculator, collection: str) -> pl.DataFrame:
        """
        Create the per-trait frequency table.

        Args:
            calculator: Calculator holding the collection index
            collection: Collection name

        Returns:
            DataFrame with one row per distinct trait, rarest first
        """
        print(f"Creating trait table for {collection}...")

        rows = []
        for trait in calculator.index.trait_frequency:
            stats = calculator.get_trait_rarity(trait)
            rows.append({
                'collection': collection,
                'trait_type': stats.trait_type,
                'value': stats.value,
                'count': stats.count,
                'frequency_pct': stats.frequency,
                'rarity_contribution': stats.rarity_contribution,
                'trait_tier': stats.tier.value,
            })

        table = pl.DataFrame(rows, schema=RaritySchema.get_trait_table_schema())
        table = table.sort(['count', 'trait_type', 'value'])

        print(f"  Created {len(table)} trait records")
        return table

    def create_collection_summary(self, rarity_tables: List[pl.DataFrame]) -> pl.DataFrame:
        """
        Create per-collection score and tier summary.

        Args:
            rarity_tables: Outputs of create_rarity_table

        Returns:
            DataFrame with one row per collection
        """
        print("Creating collection summary...")

        schema = RaritySchema.get_collection_summary_schema()
        if not rarity_tables:
            return pl.DataFrame(schema=schema)

        combined = pl.concat(rarity_tables, how="vertical")

        tier_counts = [
            (pl.col('rarity_tier') == tier.value).sum().cast(pl.Int64).alias(f'{tier.value}_count')
            for tier in RarityTier
        ]

        summary = combined.group_by('collection').agg([
            pl.len().cast(pl.Int64).alias('total_items'),
            pl.min('rarity_score').alias('min_score'),
            pl.max('rarity_score').alias('max_score'),
            pl.mean('rarity_score').alias('mean_score'),
            pl.median('rarity_score').alias('median_score'),
            *tier_counts,
        ])

        summary = summary.select(list(schema.keys())).sort('collection')

        print(f"  Created summary for {len(summary)} collections")
        return summary

    def _image_url(self, image: Optional[str]) -> Optional[str]:
        if not image:
            return None
        return resolve_ipfs_url(image, self.ipfs_gateway)


def find_by_token_id(ranked: List[NFTWithRarity], token_id: str) -> Optional[NFTWithRarity]:
    """Look up a ranked item by token id."""
    for nft in ranked:
        if nft.token_id == token_id:
            return nft
    return None


def similar_items(ranked: List[NFTWithRarity], token_id: str, limit: int = 6) -> List[NFTWithRarity]:
    """
    Items ranked close to the given token.

    The window starts half its length above the token (three ranks for the
    default limit); unknown tokens get the top of the ranking.
    """
    position = next((i for i, nft in enumerate(ranked) if nft.token_id == token_id), None)
    if position is None:
        return ranked[:limit]

    start = max(position - limit // 2, 0)
    return ranked[start:start + limit]

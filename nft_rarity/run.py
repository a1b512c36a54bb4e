#!/usr/bin/env python3
"""
NFT Rarity Pipeline
Main orchestration script for scoring collections from metadata files.

Usage:
    nft-rarity                         # Score every file in metadata/
    nft-rarity --use-duckdb            # Use DuckDB for large CSV exports
    nft-rarity --validate-only         # Only run validation, no scoring
"""

import argparse
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .pipeline.io_utils import DataWriter, MetadataLoader, VersionedOutput
from .pipeline.validate import MetadataValidator
from .pipeline.metadata import MetadataParser, drop_empty
from .pipeline.calculator import RarityCalculator
from .pipeline.aggregate import RarityAggregator

DEFAULT_CONFIG = {
    'workspace_root': '.',
    'metadata_dir': 'metadata',
    'output_dir': 'rarity_output',
    'pattern': '*',
    'drop_empty': False,
    'strict': True,
    'use_duckdb': False,
    'write_csv': False,
}


class RarityPipeline:
    """Main pipeline orchestrator."""

    def __init__(self, config: dict):
        self.config = {**DEFAULT_CONFIG, **config}
        self.workspace_root = Path(self.config['workspace_root'])
        self.metadata_path = self.workspace_root / self.config['metadata_dir']
        self.output_path = self.workspace_root / self.config['output_dir']

        # Initialize components
        self.loader = MetadataLoader(self.metadata_path)
        self.validator = MetadataValidator(verbose=True)
        self.aggregator = RarityAggregator()

        self.run_log = []

    def log(self, message: str):
        """Log a message with timestamp."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        log_entry = f"[{timestamp}] {message}"
        print(log_entry)
        self.run_log.append(log_entry)

    def run(self, validate_only: bool = False) -> List[Dict[str, Any]]:
        """
        Execute the full pipeline.

        Args:
            validate_only: If True, only validate metadata without scoring

        Returns:
            One result entry per collection
        """
        self.log("="*60)
        self.log("NFT Rarity Pipeline")
        self.log("="*60)

        try:
            # Step 1: Load metadata
            self.log("\n[1/5] Loading metadata...")
            collections = self.loader.load_collections(
                pattern=self.config['pattern'],
                use_duckdb=self.config['use_duckdb'],
            )
            self.log(f"Loaded {len(collections)} collections")

            # Step 2: Validate metadata
            self.log("\n[2/5] Validating metadata...")
            reports = {}
            for name, records in collections.items():
                self.log(f"Validating {name} ({len(records):,} records)")
                reports[name] = self.validator.generate_report(records)
            self.log("Validation complete")

            if validate_only:
                self.log("\nValidation-only mode. Exiting.")
                for name, report in reports.items():
                    print(f"\n{name}\n{report}")
                return []

            # Step 3: Score and rank each collection
            self.log("\n[3/5] Scoring collections...")
            results = []
            rarity_tables = {}
            trait_tables = {}
            for name, records in collections.items():
                result, tables = self._process_collection(name, records)
                results.append(result)
                if tables is not None:
                    rarity_tables[name], trait_tables[name] = tables

            # Step 4: Summarize
            self.log("\n[4/5] Creating collection summary...")
            summary = self.aggregator.create_collection_summary(list(rarity_tables.values()))

            # Step 5: Write outputs
            self.log("\n[5/5] Writing outputs...")
            versioned_output = VersionedOutput(self.output_path)
            version_dir = versioned_output.create_version_dir()
            writer = DataWriter(version_dir)

            for name, table in rarity_tables.items():
                writer.write_parquet(table, f"{name}_rarity.parquet")
                writer.write_parquet(trait_tables[name], f"{name}_traits.parquet")
                if self.config['write_csv']:
                    writer.write_csv(table, f"{name}_rarity.csv")
                    writer.write_csv(trait_tables[name], f"{name}_traits.csv")
            writer.write_parquet(summary, "collection_summary.parquet")
            writer.write_json(results, "results.json")

            succeeded = sum(1 for r in results if r['status'] == 'success')
            failed = sum(1 for r in results if r['status'] == 'failed')
            self.log("\n" + "="*60)
            self.log(f"Rarity calculation complete: {succeeded} succeeded, {failed} failed")
            self.log("="*60)
            self.log(f"\nOutput directory: {version_dir}")

            log_content = "\n".join(self.run_log)
            for name, report in reports.items():
                log_content += f"\n\n{name}\n{report}"
            versioned_output.write_run_log(version_dir, log_content)

            return results

        except Exception as e:
            self.log(f"\n❌ Pipeline failed with error: {e}")
            self.log(traceback.format_exc())
            raise

    def _process_collection(self, name: str, records: List[Dict[str, Any]]):
        """Score one collection; failures are reported, not raised."""
        try:
            parser = MetadataParser(strict=self.config['strict'])
            nfts = parser.parse_many(records)
            if self.config['drop_empty']:
                nfts = drop_empty(nfts)

            if not nfts:
                self.log(f"  {name}: skipped (no items)")
                return {'collection': name, 'status': 'skipped', 'reason': 'no_items'}, None

            calculator = RarityCalculator(nfts)
            ranked = calculator.calculate_rarity()
            stats = calculator.get_collection_stats()

            rarity_table = self.aggregator.create_rarity_table(ranked, name)
            trait_table = self.aggregator.create_trait_table(calculator, name)

            self.log(
                f"  {name}: {stats.collection_size:,} items, "
                f"{stats.unique_traits:,} traits across {stats.trait_types} types"
            )
            result = {
                'collection': name,
                'status': 'success',
                'skipped_records': parser.skipped,
                **stats.to_dict(),
            }
            return result, (rarity_table, trait_table)

        except Exception as e:
            self.log(f"  {name}: failed ({e})")
            return {'collection': name, 'status': 'failed', 'error': str(e)}, None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="NFT Rarity Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  nft-rarity                          # Score every file in metadata/
  nft-rarity --use-duckdb             # Use DuckDB for large CSV exports
  nft-rarity --validate-only          # Only run validation
  nft-rarity --drop-empty --lenient   # Ignore items without traits and bad records
        """
    )

    parser.add_argument(
        '--validate-only',
        action='store_true',
        help='Only validate metadata without scoring'
    )

    parser.add_argument(
        '--use-duckdb',
        action='store_true',
        help='Use DuckDB for loading CSV files (better for large files)'
    )

    parser.add_argument(
        '--drop-empty',
        action='store_true',
        help='Exclude items without attributes before ranking'
    )

    parser.add_argument(
        '--lenient',
        action='store_true',
        help='Skip invalid metadata records instead of failing the collection'
    )

    parser.add_argument(
        '--csv',
        action='store_true',
        help='Also write CSV copies of the rarity and trait tables'
    )

    parser.add_argument(
        '--pattern',
        type=str,
        default=DEFAULT_CONFIG['pattern'],
        help='Glob pattern for metadata files'
    )

    parser.add_argument(
        '--workspace',
        type=str,
        default=DEFAULT_CONFIG['workspace_root'],
        help='Path to workspace root directory'
    )

    parser.add_argument(
        '--metadata-dir',
        type=str,
        default=DEFAULT_CONFIG['metadata_dir'],
        help='Metadata directory, relative to the workspace'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        default=DEFAULT_CONFIG['output_dir'],
        help='Output directory, relative to the workspace'
    )

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    # Configuration
    config = {
        'workspace_root': args.workspace,
        'metadata_dir': args.metadata_dir,
        'output_dir': args.output_dir,
        'pattern': args.pattern,
        'drop_empty': args.drop_empty,
        'strict': not args.lenient,
        'use_duckdb': args.use_duckdb,
        'write_csv': args.csv,
    }

    # Run pipeline
    pipeline = RarityPipeline(config)
    pipeline.run(validate_only=args.validate_only)


if __name__ == '__main__':
    main()

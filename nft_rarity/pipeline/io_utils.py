"""
I/O utilities for reading metadata and writing rarity outputs.
Supports Polars (for in-memory processing) and DuckDB (for larger CSV exports).
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional
import polars as pl
import duckdb
from datetime import datetime

SUPPORTED_SUFFIXES = ['.json', '.jsonl', '.ndjson', '.csv']


class MetadataLoader:
    """Loads per-collection metadata files from a directory."""

    def __init__(self, base_path: str):
        self.base_path = Path(base_path)

    def load_collections(self, pattern: str = "*", use_duckdb: bool = False) -> Dict[str, List[Dict[str, Any]]]:
        """
        Load every metadata file matching pattern; one file is one collection.

        Args:
            pattern: Glob pattern for metadata files
            use_duckdb: If True, use DuckDB for CSV files (better for large files)

        Returns:
            Mapping of collection name (file stem) to raw metadata records
        """
        if not self.base_path.is_dir():
            raise FileNotFoundError(f"Metadata directory not found: {self.base_path}")

        files = sorted(
            f for f in self.base_path.glob(pattern)
            if f.is_file() and f.suffix.lower() in SUPPORTED_SUFFIXES
        )

        if not files:
            raise FileNotFoundError(f"No metadata files found matching {pattern} in {self.base_path}")

        print(f"Found {len(files)} metadata files to load")

        collections = {}
        for path in files:
            if path.stem in collections:
                print(f"Skipping {path.name}: collection '{path.stem}' already loaded from another file")
                continue
            print(f"Loading {path.name}...")
            try:
                collections[path.stem] = self.load_file(path, use_duckdb=use_duckdb)
            except Exception as e:
                print(f"Error loading {path.name}: {e}")
                continue

        if not collections:
            raise ValueError("No metadata loaded successfully")

        return collections

    def load_file(self, path: Path, use_duckdb: bool = False) -> List[Dict[str, Any]]:
        """Load raw metadata records from a single file."""
        path = Path(path)
        suffix = path.suffix.lower()

        if suffix == '.json':
            return self._load_json(path)
        if suffix in ('.jsonl', '.ndjson'):
            return self._load_json_lines(path)
        if suffix == '.csv':
            if use_duckdb:
                return self._load_csv_with_duckdb(path)
            return self._load_csv_with_polars(path)

        raise ValueError(f"Unsupported metadata file type: {path.suffix}")

    def _load_json(self, path: Path) -> List[Dict[str, Any]]:
        """Load a JSON array, an API page ({"nfts": [...]}), or a {token_id: record} mapping."""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        if isinstance(data, list):
            return data

        if isinstance(data, dict):
            if isinstance(data.get('nfts'), list):
                return data['nfts']

            records = []
            for token_id, record in data.items():
                if isinstance(record, dict):
                    record = {'token_id': token_id, **record}
                records.append(record)
            return records

        raise ValueError(f"{path.name} does not contain metadata records")

    def _load_json_lines(self, path: Path) -> List[Dict[str, Any]]:
        records = []
        with open(path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line:
                    records.append(json.loads(line))
        return records

    def _load_csv_with_polars(self, path: Path) -> List[Dict[str, Any]]:
        """Load CSVs using Polars; every column is read as text."""
        df = pl.read_csv(path, infer_schema_length=0, truncate_ragged_lines=True)
        return df.to_dicts()

    def _load_csv_with_duckdb(self, path: Path) -> List[Dict[str, Any]]:
        """Load CSVs using DuckDB (better for large files)."""
        query = """
        SELECT * FROM read_csv_auto(
            ?,
            all_varchar=true,
            ignore_errors=true
        )
        """

        with duckdb.connect(':memory:') as conn:
            result = conn.execute(query, [str(path)]).pl()

        print(f"Loaded {len(result)} rows using DuckDB")
        return result.to_dicts()


class DataWriter:
    """Handles writing data to various formats."""

    def __init__(self, base_path: str):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def write_parquet(self, df: pl.DataFrame, filename: str, compression: str = "zstd") -> str:
        """
        Write DataFrame to Parquet file.

        Args:
            df: Polars DataFrame to write
            filename: Output filename (without path)
            compression: Compression algorithm (zstd, snappy, gzip, lz4)

        Returns:
            Full path to written file
        """
        output_path = self.base_path / filename
        df.write_parquet(output_path, compression=compression)
        print(f"Wrote {len(df)} rows to {output_path}")
        return str(output_path)

    def write_csv(self, df: pl.DataFrame, filename: str) -> str:
        """Write DataFrame to CSV file."""
        output_path = self.base_path / filename
        df.write_csv(output_path)
        print(f"Wrote {len(df)} rows to {output_path}")
        return str(output_path)

    def write_json(self, data: Any, filename: str) -> str:
        """Write a JSON-serializable object."""
        output_path = self.base_path / filename
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, default=str)
        print(f"Wrote {output_path}")
        return str(output_path)


class VersionedOutput:
    """Manages versioned output directories."""

    def __init__(self, base_output_path: str):
        self.base_output_path = Path(base_output_path)
        self.base_output_path.mkdir(parents=True, exist_ok=True)

    def create_version_dir(self, prefix: str = "") -> Path:
        """
        Create a new timestamped version directory.

        Args:
            prefix: Optional prefix for the version directory

        Returns:
            Path to the created version directory
        """
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        version_name = f"{prefix}{timestamp}" if prefix else timestamp
        version_dir = self.base_output_path / version_name
        version_dir.mkdir(parents=True, exist_ok=True)

        print(f"Created version directory: {version_dir}")
        return version_dir

    def get_latest_version(self) -> Optional[Path]:
        """Get the most recent version directory."""
        version_dirs = sorted(p for p in self.base_output_path.glob("*") if p.is_dir())

        if not version_dirs:
            return None

        return version_dirs[-1]

    def write_run_log(self, version_dir: Path, log_content: str):
        """Write run log to version directory."""
        log_path = version_dir / "_run.log"

        with open(log_path, 'w') as f:
            f.write(f"Run timestamp: {datetime.now()}\n")
            f.write("="*50 + "\n")
            f.write(log_content)

        print(f"Wrote run log to {log_path}")

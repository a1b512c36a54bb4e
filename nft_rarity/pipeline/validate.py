"""
Validation utilities for metadata quality checks.
Detects missing fields, duplicate tokens, malformed traits, and vocabulary gaps.
"""

import math
from collections import Counter
from typing import Any, Dict, List, Tuple

from .schemas import ATTRIBUTE_KEYS, TOKEN_ID_KEYS


def _token_id(record: Dict[str, Any]) -> Any:
    for key in TOKEN_ID_KEYS:
        if record.get(key) is not None:
            return record[key]
    return None


def _attributes(record: Dict[str, Any]) -> Any:
    for key in ATTRIBUTE_KEYS:
        if record.get(key) is not None:
            return record[key]
    return None


class MetadataValidator:
    """Validates raw metadata records before they are parsed."""

    def __init__(self, verbose: bool = True):
        self.verbose = verbose
        self.validation_results = []

    def check_required_fields(self, records: List[Dict[str, Any]]) -> Dict[str, int]:
        """
        Count records missing a token id or not being objects at all.

        Args:
            records: Raw metadata records

        Returns:
            Dictionary mapping problem names to counts
        """
        problems = {'not_an_object': 0, 'missing_token_id': 0}

        for record in records:
            if not isinstance(record, dict):
                problems['not_an_object'] += 1
            elif _token_id(record) is None:
                problems['missing_token_id'] += 1

        problems = {k: v for k, v in problems.items() if v > 0}
        for name, count in problems.items():
            self._log(f"⚠️  {count} records: {name.replace('_', ' ')}")

        if not problems:
            self._log("✓ All records have a token id")

        return problems

    def detect_duplicates(self, records: List[Dict[str, Any]]) -> Tuple[int, List[str]]:
        """
        Detect token ids that occur more than once.

        Args:
            records: Raw metadata records

        Returns:
            Tuple of (duplicate_row_count, duplicated_token_ids)
        """
        token_ids = Counter(
            str(_token_id(record)) for record in records
            if isinstance(record, dict) and _token_id(record) is not None
        )
        duplicated = sorted(token_id for token_id, count in token_ids.items() if count > 1)
        duplicate_count = sum(token_ids[token_id] - 1 for token_id in duplicated)

        if duplicate_count > 0:
            self._log(f"⚠️  Found {duplicate_count} duplicate records across {len(duplicated)} token ids")
        else:
            self._log("✓ No duplicate token ids found")

        return duplicate_count, duplicated

    def check_attributes(self, records: List[Dict[str, Any]]) -> Dict[str, int]:
        """
        Check attribute lists for malformed traits.

        Args:
            records: Raw metadata records

        Returns:
            Dictionary of problem counts
        """
        results = {
            'empty_attributes': 0,
            'invalid_attribute_list': 0,
            'malformed_traits': 0,
            'null_values': 0,
            'non_finite_values': 0,
        }

        for record in records:
            if not isinstance(record, dict):
                continue

            attributes = _attributes(record)
            if attributes is None or attributes == []:
                results['empty_attributes'] += 1
                continue
            if not isinstance(attributes, list):
                # CSV sources carry attributes as JSON text; parsed later
                if not isinstance(attributes, str):
                    results['invalid_attribute_list'] += 1
                continue

            for attr in attributes:
                if not isinstance(attr, dict) or attr.get('trait_type') is None or 'value' not in attr:
                    results['malformed_traits'] += 1
                elif attr['value'] is None:
                    results['null_values'] += 1
                elif isinstance(attr['value'], float) and not math.isfinite(attr['value']):
                    results['non_finite_values'] += 1

        if results['empty_attributes'] > 0:
            self._log(f"⚠️  {results['empty_attributes']} records have no attributes (score 0)")
        if results['invalid_attribute_list'] > 0:
            self._log(f"❌ {results['invalid_attribute_list']} records have a non-list attributes field")
        if results['malformed_traits'] > 0:
            self._log(f"❌ {results['malformed_traits']} traits are missing trait_type or value")
        if results['null_values'] > 0:
            self._log(f"❌ {results['null_values']} traits have a null value")
        if results['non_finite_values'] > 0:
            self._log(f"❌ {results['non_finite_values']} traits have a non-finite value")

        if not any(results.values()):
            self._log("✓ All attribute lists are well-formed")

        return results

    def check_trait_vocabulary(self, records: List[Dict[str, Any]]) -> Dict[str, int]:
        """
        Find trait types that not every item carries.

        Items with disjoint trait types are still scored; this is informational.

        Returns:
            Dictionary mapping trait type to the number of records missing it
        """
        type_counts = Counter()
        total = 0

        for record in records:
            if not isinstance(record, dict):
                continue
            attributes = _attributes(record)
            if not isinstance(attributes, list):
                continue
            total += 1
            trait_types = {
                attr['trait_type'] for attr in attributes
                if isinstance(attr, dict) and attr.get('trait_type') is not None
            }
            type_counts.update(trait_types)

        missing = {
            trait_type: total - count
            for trait_type, count in sorted(type_counts.items())
            if count < total
        }

        if missing:
            self._log(f"ℹ️  {len(missing)} trait types are not present on every item")
        else:
            self._log("✓ All items share the same trait types")

        return missing

    def generate_report(self, records: List[Dict[str, Any]]) -> str:
        """
        Generate a validation report.

        Args:
            records: Raw metadata records

        Returns:
            String containing the validation report
        """
        report_lines = [
            "="*60,
            "METADATA VALIDATION REPORT",
            "="*60,
            f"Total records: {len(records):,}",
            ""
        ]

        required = self.check_required_fields(records)
        dup_count, _ = self.detect_duplicates(records)
        attribute_results = self.check_attributes(records)
        missing_types = self.check_trait_vocabulary(records)

        for name, count in required.items():
            report_lines.append(f"{name.replace('_', ' ').capitalize()}: {count:,}")
        report_lines.append(f"Duplicate records: {dup_count:,}")
        for name, count in attribute_results.items():
            report_lines.append(f"{name.replace('_', ' ').capitalize()}: {count:,}")
        report_lines.append(f"Trait types not on every item: {len(missing_types)}")

        report_lines.append("")
        report_lines.append("="*60)

        return "\n".join(report_lines)

    def _log(self, message: str):
        """Log a validation message."""
        if self.verbose:
            print(message)
        self.validation_results.append(message)

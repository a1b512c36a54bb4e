"""
Metadata normalization module.
Turns raw off-chain NFT metadata records into typed items.
"""

import base64
import binascii
import json
import math
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import unquote

from .schemas import (
    ATTRIBUTE_KEYS,
    DEFAULT_IPFS_GATEWAY,
    IMAGE_KEYS,
    TOKEN_ID_KEYS,
    TOKEN_URI_KEYS,
    InvalidItemError,
    NFTMetadata,
    Trait,
)

BASE64_JSON_PREFIX = 'data:application/json;base64,'
PLAIN_JSON_PREFIX = 'data:application/json,'
UTF8_JSON_PREFIX = 'data:application/json;utf8,'


def decode_token_uri(token_uri: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Decode an on-chain JSON data URI.

    Args:
        token_uri: tokenURI value as returned by the contract

    Returns:
        Decoded metadata dict, or None if the URI is not a JSON data URI
    """
    if token_uri is None or token_uri == '':
        return None
    if not isinstance(token_uri, str):
        raise InvalidItemError(f"tokenURI must be a string, got {type(token_uri).__name__}")

    try:
        if token_uri.startswith(BASE64_JSON_PREFIX):
            payload = base64.b64decode(token_uri[len(BASE64_JSON_PREFIX):]).decode('utf-8')
        elif token_uri.startswith(UTF8_JSON_PREFIX):
            payload = unquote(token_uri[len(UTF8_JSON_PREFIX):])
        elif token_uri.startswith(PLAIN_JSON_PREFIX):
            payload = unquote(token_uri[len(PLAIN_JSON_PREFIX):])
        else:
            return None
        metadata = json.loads(payload)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidItemError(f"Malformed data URI: {e}") from e

    if not isinstance(metadata, dict):
        raise InvalidItemError("Data URI does not contain a JSON object")
    return metadata


def resolve_ipfs_url(uri: Optional[str], gateway: str = DEFAULT_IPFS_GATEWAY) -> str:
    """Rewrite ipfs:// URIs to an HTTP gateway URL."""
    if not uri:
        return ''
    if uri.startswith('ipfs://'):
        return f"{gateway}{uri[len('ipfs://'):]}"
    return uri


def stringify_trait_value(value: Any) -> str:
    """Render a JSON trait value the way metadata viewers display it."""
    if value is None:
        raise InvalidItemError("Trait value is null")
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidItemError(f"Trait value is not finite: {value}")
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (int, str)):
        return str(value)
    raise InvalidItemError(f"Unsupported trait value type: {type(value).__name__}")


def drop_empty(nfts: Iterable[NFTMetadata]) -> List[NFTMetadata]:
    """Keep only items with at least one attribute."""
    return [nft for nft in nfts if nft.attributes]


def _first_present(record: Dict[str, Any], keys: List[str]) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


class MetadataParser:
    """Normalizes raw metadata records into NFTMetadata items."""

    def __init__(self, strict: bool = True):
        self.strict = strict
        self.skipped = 0
        self.errors: List[str] = []

    def parse(self, record: Dict[str, Any], token_id: Optional[str] = None) -> NFTMetadata:
        """
        Parse a single metadata record.

        Args:
            record: Raw metadata dict (OpenSea / ERC-721 JSON shape)
            token_id: Token id to use when the record does not carry one

        Returns:
            Normalized NFTMetadata
        """
        if not isinstance(record, dict):
            raise InvalidItemError(f"Metadata record must be an object, got {type(record).__name__}")

        resolved_id = _first_present(record, TOKEN_ID_KEYS)
        if resolved_id is None:
            resolved_id = token_id
        if resolved_id is None or isinstance(resolved_id, bool):
            raise InvalidItemError("Metadata record has no token id")
        resolved_id = str(resolved_id).strip()

        raw_attributes = _first_present(record, ATTRIBUTE_KEYS)
        if raw_attributes is None:
            embedded = decode_token_uri(_first_present(record, TOKEN_URI_KEYS))
            if embedded is not None:
                merged = dict(embedded)
                merged.update({k: v for k, v in record.items() if v is not None})
                record = merged
                raw_attributes = _first_present(embedded, ATTRIBUTE_KEYS)

        attributes = self._parse_attributes(resolved_id, raw_attributes)
        name = record.get('name')
        image = _first_present(record, IMAGE_KEYS)

        return NFTMetadata(
            token_id=resolved_id,
            name=str(name) if name is not None else None,
            image=str(image) if image is not None else None,
            attributes=attributes,
        )

    def parse_many(self, records: Iterable[Dict[str, Any]]) -> List[NFTMetadata]:
        """
        Parse a batch of records.

        In strict mode the first invalid record raises; otherwise invalid
        records are skipped and counted. The counters describe the latest batch.
        """
        self.skipped = 0
        self.errors = []
        nfts = []
        for position, record in enumerate(records):
            try:
                nfts.append(self.parse(record))
            except InvalidItemError as e:
                if self.strict:
                    raise
                self.skipped += 1
                self.errors.append(f"record {position}: {e}")

        if self.skipped > 0:
            print(f"    Skipped {self.skipped} invalid metadata records")

        return nfts

    def _parse_attributes(self, token_id: str, raw_attributes: Any) -> List[Trait]:
        if raw_attributes is None:
            return []
        if isinstance(raw_attributes, str):
            try:
                raw_attributes = json.loads(raw_attributes) if raw_attributes.strip() else []
            except json.JSONDecodeError as e:
                raise InvalidItemError(f"Token {token_id}: attributes are not valid JSON") from e
        if not isinstance(raw_attributes, list):
            raise InvalidItemError(f"Token {token_id}: attributes must be a list")

        traits = []
        for attr in raw_attributes:
            if not isinstance(attr, dict):
                raise InvalidItemError(f"Token {token_id}: attribute must be an object, got {attr!r}")
            if 'trait_type' not in attr or attr['trait_type'] is None:
                raise InvalidItemError(f"Token {token_id}: attribute is missing trait_type")
            if 'value' not in attr:
                raise InvalidItemError(
                    f"Token {token_id}: attribute '{attr['trait_type']}' is missing value"
                )
            try:
                value = stringify_trait_value(attr['value'])
            except InvalidItemError as e:
                raise InvalidItemError(f"Token {token_id}, trait '{attr['trait_type']}': {e}") from e
            traits.append(Trait(trait_type=self._trait_type(token_id, attr['trait_type']), value=value))

        return traits

    @staticmethod
    def _trait_type(token_id: str, trait_type: Any) -> str:
        if isinstance(trait_type, bool) or not isinstance(trait_type, (str, int)):
            raise InvalidItemError(
                f"Token {token_id}: trait_type must be a string or integer, got {trait_type!r}"
            )
        return str(trait_type)

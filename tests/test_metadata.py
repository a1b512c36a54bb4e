# tests/test_metadata.py
"""
Tests for metadata normalization.
"""

import base64
import json
import math

import pytest

from nft_rarity.pipeline.metadata import (
    MetadataParser,
    decode_token_uri,
    drop_empty,
    resolve_ipfs_url,
    stringify_trait_value,
)
from nft_rarity.pipeline.schemas import InvalidItemError, NFTMetadata, Trait


def _base64_uri(payload: dict) -> str:
    encoded = base64.b64encode(json.dumps(payload).encode('utf-8')).decode('ascii')
    return f"data:application/json;base64,{encoded}"


class TestMetadataParser:
    """Tests for record parsing."""

    def test_parses_token_id_variants(self, raw_records) -> None:
        nfts = MetadataParser().parse_many(raw_records)

        assert [nft.token_id for nft in nfts] == ['1', '2', '3']
        assert nfts[0].image == 'ipfs://QmHash/1.png'
        assert nfts[1].image == 'https://example.com/2.png'
        assert nfts[2].attributes == ()

    def test_numeric_values_are_stringified(self, raw_records) -> None:
        nft = MetadataParser().parse(raw_records[1])
        assert Trait('Level', '3') in nft.attributes

    def test_explicit_token_id(self) -> None:
        nft = MetadataParser().parse({'attributes': []}, token_id='42')
        assert nft.token_id == '42'

    def test_traits_key_is_accepted(self) -> None:
        nft = MetadataParser().parse({'identifier': '7', 'traits': [{'trait_type': 'Fur', 'value': 'Gold'}]})
        assert nft.attributes == (Trait('Fur', 'Gold'),)

    def test_attributes_as_json_text(self) -> None:
        record = {'token_id': '5', 'attributes': '[{"trait_type": "Fur", "value": "Gold"}]'}
        assert MetadataParser().parse(record).attributes == (Trait('Fur', 'Gold'),)

    def test_blank_attribute_text_is_empty(self) -> None:
        assert MetadataParser().parse({'token_id': '5', 'attributes': ''}).attributes == ()

    def test_embedded_token_uri(self) -> None:
        record = {
            'tokenId': '9',
            'tokenURI': _base64_uri({
                'name': 'On-chain #9',
                'image': 'ipfs://Qm/9.svg',
                'attributes': [{'trait_type': 'Shape', 'value': 'Circle'}],
            }),
        }
        nft = MetadataParser().parse(record)

        assert nft.token_id == '9'
        assert nft.name == 'On-chain #9'
        assert nft.image == 'ipfs://Qm/9.svg'
        assert nft.attributes == (Trait('Shape', 'Circle'),)

    @pytest.mark.parametrize(
        "record",
        [
            {'attributes': []},
            {'token_id': '1', 'attributes': {'trait_type': 'Fur'}},
            {'token_id': '1', 'attributes': [{'value': 'Gold'}]},
            {'token_id': '1', 'attributes': [{'trait_type': 'Fur'}]},
            {'token_id': '1', 'attributes': [{'trait_type': 'Fur', 'value': None}]},
            {'token_id': '1', 'attributes': [{'trait_type': 'Level', 'value': math.inf}]},
            {'token_id': '1', 'attributes': ['Gold']},
            {'token_id': '1', 'attributes': 'not json'},
            'not a record',
        ],
    )
    def test_invalid_records_fail_fast(self, record) -> None:
        with pytest.raises(InvalidItemError):
            MetadataParser().parse(record)

    def test_lenient_mode_skips_invalid_records(self, raw_records) -> None:
        parser = MetadataParser(strict=False)
        nfts = parser.parse_many(raw_records + [{'attributes': []}])

        assert len(nfts) == 3
        assert parser.skipped == 1
        assert parser.errors[0].startswith('record 3:')

    def test_strict_mode_raises_in_batch(self, raw_records) -> None:
        with pytest.raises(InvalidItemError):
            MetadataParser().parse_many(raw_records + [{'attributes': []}])

    def test_lenient_mode_skips_non_string_token_uri(self) -> None:
        parser = MetadataParser(strict=False)
        records = [
            {'token_id': '1', 'tokenURI': 123},
            {'token_id': '2', 'attributes': [{'trait_type': 'Fur', 'value': 'Gold'}]},
        ]

        nfts = parser.parse_many(records)

        assert [nft.token_id for nft in nfts] == ['2']
        assert parser.skipped == 1
        assert 'tokenURI must be a string' in parser.errors[0]

    def test_counters_reset_per_batch(self) -> None:
        parser = MetadataParser(strict=False)
        parser.parse_many([{'attributes': []}, {'attributes': []}])

        parser.parse_many([{'attributes': []}, {'token_id': '1'}])

        assert parser.skipped == 1
        assert len(parser.errors) == 1

    def test_integer_trait_type_is_stringified(self) -> None:
        nft = MetadataParser().parse({'token_id': '1', 'attributes': [{'trait_type': 7, 'value': 'x'}]})
        assert nft.attributes == (Trait('7', 'x'),)

    @pytest.mark.parametrize("trait_type", [True, 3.0, ['Fur'], {'a': 1}])
    def test_ambiguous_trait_types_rejected(self, trait_type) -> None:
        record = {'token_id': '1', 'attributes': [{'trait_type': trait_type, 'value': 'x'}]}
        with pytest.raises(InvalidItemError, match='trait_type must be a string or integer'):
            MetadataParser().parse(record)


class TestTraitValues:
    """Tests for trait value rendering."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ('Red', 'Red'),
            (3, '3'),
            (3.0, '3'),
            (2.5, '2.5'),
            (True, 'true'),
            (False, 'false'),
        ],
    )
    def test_stringify(self, value, expected: str) -> None:
        assert stringify_trait_value(value) == expected

    @pytest.mark.parametrize("value", [None, math.nan, -math.inf, ['a'], {'a': 1}])
    def test_stringify_rejects(self, value) -> None:
        with pytest.raises(InvalidItemError):
            stringify_trait_value(value)


class TestDataUris:
    """Tests for token URI decoding."""

    def test_base64_uri(self) -> None:
        assert decode_token_uri(_base64_uri({'name': 'x'})) == {'name': 'x'}

    def test_plain_uri(self) -> None:
        assert decode_token_uri('data:application/json,%7B%22name%22%3A%22x%22%7D') == {'name': 'x'}

    def test_utf8_uri(self) -> None:
        assert decode_token_uri('data:application/json;utf8,{"name":"x"}') == {'name': 'x'}

    @pytest.mark.parametrize("uri", [None, '', 'ipfs://QmHash/1', 'https://example.com/1.json'])
    def test_non_data_uris(self, uri) -> None:
        assert decode_token_uri(uri) is None

    @pytest.mark.parametrize(
        "uri",
        [
            'data:application/json;base64,!!!',
            'data:application/json,{broken',
            'data:application/json,[1, 2]',
        ],
    )
    def test_malformed_uris(self, uri: str) -> None:
        with pytest.raises(InvalidItemError):
            decode_token_uri(uri)

    @pytest.mark.parametrize("uri", [123, 1.5, ['data:application/json,{}'], {'uri': 'x'}])
    def test_non_string_uris(self, uri) -> None:
        with pytest.raises(InvalidItemError):
            decode_token_uri(uri)


def test_resolve_ipfs_url() -> None:
    assert resolve_ipfs_url('ipfs://QmHash/1.png') == 'https://ipfs.io/ipfs/QmHash/1.png'
    assert resolve_ipfs_url('ipfs://QmHash', gateway='https://gw.example/ipfs/') == 'https://gw.example/ipfs/QmHash'
    assert resolve_ipfs_url('https://example.com/1.png') == 'https://example.com/1.png'
    assert resolve_ipfs_url(None) == ''


def test_drop_empty() -> None:
    nfts = [
        NFTMetadata(token_id='1', attributes=[Trait('Fur', 'Gold')]),
        NFTMetadata(token_id='2'),
    ]
    assert [nft.token_id for nft in drop_empty(nfts)] == ['1']


class TestItemContract:
    """Construction-time checks on items and traits."""

    def test_trait_requires_strings(self) -> None:
        with pytest.raises(InvalidItemError):
            Trait('Level', 3)

    @pytest.mark.parametrize("token_id", ['', None, 7])
    def test_item_requires_token_id(self, token_id) -> None:
        with pytest.raises(InvalidItemError):
            NFTMetadata(token_id=token_id)

    def test_item_requires_trait_instances(self) -> None:
        with pytest.raises(InvalidItemError):
            NFTMetadata(token_id='1', attributes=[{'trait_type': 'Fur', 'value': 'Gold'}])

    def test_attributes_are_stored_as_tuple(self) -> None:
        nft = NFTMetadata(token_id='1', attributes=[Trait('Fur', 'Gold')])
        assert nft.attributes == (Trait('Fur', 'Gold'),)
        assert nft.trait_count == 1
        assert Trait('Fur', 'Gold').key == 'Fur:Gold'

# tests/conftest.py
"""
Test fixtures for the NFT rarity pipeline tests.
"""

import json
from pathlib import Path
from typing import Dict, List

import pytest

from nft_rarity.pipeline.calculator import RarityCalculator
from nft_rarity.pipeline.schemas import NFTMetadata, Trait


def make_nft(token_id: str, *traits) -> NFTMetadata:
    """Build an item from (trait_type, value) pairs."""
    return NFTMetadata(
        token_id=token_id,
        name=f"#{token_id}",
        attributes=[Trait(trait_type, value) for trait_type, value in traits],
    )


@pytest.fixture
def four_item_collection() -> List[NFTMetadata]:
    """A, B (bg, red); C (bg, blue); D (bg, blue), (hat, top)."""
    return [
        make_nft('A', ('bg', 'red')),
        make_nft('B', ('bg', 'red')),
        make_nft('C', ('bg', 'blue')),
        make_nft('D', ('bg', 'blue'), ('hat', 'top')),
    ]


@pytest.fixture
def four_item_calculator(four_item_collection) -> RarityCalculator:
    return RarityCalculator(four_item_collection)


@pytest.fixture
def raw_records() -> List[Dict]:
    """Metadata records in the shape served by token URIs."""
    return [
        {
            'token_id': '1',
            'name': 'Ape #1',
            'image': 'ipfs://QmHash/1.png',
            'attributes': [
                {'trait_type': 'Background', 'value': 'Red'},
                {'trait_type': 'Hat', 'value': 'Crown'},
            ],
        },
        {
            'tokenId': '2',
            'name': 'Ape #2',
            'image_url': 'https://example.com/2.png',
            'attributes': [
                {'trait_type': 'Background', 'value': 'Red'},
                {'trait_type': 'Level', 'value': 3},
            ],
        },
        {
            'identifier': 3,
            'name': 'Ape #3',
            'attributes': [],
        },
    ]


@pytest.fixture
def metadata_dir(tmp_path: Path, raw_records) -> Path:
    """A workspace metadata directory with one JSON and one CSV collection."""
    directory = tmp_path / 'metadata'
    directory.mkdir()

    with open(directory / 'apes.json', 'w') as f:
        json.dump(raw_records, f)

    csv_lines = ['token_id,name,attributes']
    for token_id, color in [('10', 'Gold'), ('11', 'Gold'), ('12', 'Silver')]:
        attributes = json.dumps([{'trait_type': 'Fur', 'value': color}]).replace('"', '""')
        csv_lines.append(f'{token_id},Cat {token_id},"{attributes}"')
    (directory / 'cats.csv').write_text("\n".join(csv_lines) + "\n")

    return directory

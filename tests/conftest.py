"""Shared fixtures for blockgraph tests."""

import pytest

from blockgraph.config import Settings
from blockgraph.core.builder import build_graph
from blockgraph.core.normalizer import normalize_records


@pytest.fixture
def simple_records():
    """A block with one part, as two definition records."""
    return [
        {"scope": "/A", "blockName": "X", "blockPart": []},
        {"scope": "/A", "blockName": "X", "blockPart": ["P1"]},
    ]


@pytest.fixture
def related_records():
    """X is based on Y; Z is unrelated."""
    return [
        {"scope": "/A", "blockName": "X", "based": "Y"},
        {"scope": "/A", "blockName": "X", "blockPart": "P1"},
        {"scope": "/B", "blockName": "Y"},
        {"scope": "/C", "blockName": "Z"},
    ]


@pytest.fixture
def related_graph(related_records):
    return build_graph(normalize_records(related_records))


@pytest.fixture
def settings():
    """Settings isolated from the environment and ~/.blockgraph/.env."""
    return Settings(_env_file=None, collect_file_stats=False)

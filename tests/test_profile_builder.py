"""Tests for style profile construction."""

import numpy as np
import pytest

from stylerec.ai.embedding_service import EmbeddingServiceError
from stylerec.recommend.profile_builder import ProfileBuilder, prompt_line, render_item, top_brands
from stylerec.recommend.types import SavedItem


def make_item(i: int, **fields) -> SavedItem:
    return SavedItem(id=i, user_id="u1", url=f"https://shop.test/{i}", **fields)


def test_render_item_omits_missing_segments():
    assert render_item(make_item(1, brand="Cos", title="Wool Scarf", price="49")) == "Cos Wool Scarf $49"
    assert render_item(make_item(2, title="Wool Scarf")) == "Wool Scarf"
    assert render_item(make_item(3, brand="Cos", price="$49.00")) == "Cos $49.00"
    assert render_item(make_item(4)) == ""


def test_prompt_line_defaults():
    assert prompt_line(make_item(1)) == "- Untitled (Unknown brand) - $N/A"
    assert prompt_line(make_item(2, title="Boots", brand="Ganni", price="$250")) == "- Boots (Ganni) - $250"


def test_build_truncates_and_joins():
    items = [make_item(i, title=f"Item {i}") for i in range(15)]
    profile = ProfileBuilder(max_items=5).build(items)

    assert profile.text == "Item 0 | Item 1 | Item 2 | Item 3 | Item 4"
    assert len(profile.item_lines) == 5
    assert profile.representative_url == "https://shop.test/0"
    assert profile.embedding is None


def test_build_falls_back_to_urls():
    profile = ProfileBuilder(max_items=5).build([make_item(1), make_item(2)])
    assert profile.text == "https://shop.test/1 | https://shop.test/2"


def test_top_brands_by_frequency():
    items = [
        make_item(1, brand="Arket"),
        make_item(2, brand="cos"),
        make_item(3, brand="COS"),
        make_item(4, brand="Toteme"),
        make_item(5, brand="Ganni"),
        make_item(6, brand="Toteme"),
        make_item(7, brand="Cos"),
        make_item(8),
    ]
    assert top_brands(items) == ["cos", "Toteme", "Arket"]
    assert top_brands([make_item(1)]) == []


async def test_embed_attaches_vector(fake_embeddings):
    builder = ProfileBuilder(fake_embeddings, max_items=5)
    profile = builder.build([make_item(1, title="Loafers")])

    vector = await builder.embed(profile)
    again = await builder.embed(profile)

    assert isinstance(vector, np.ndarray)
    assert profile.embedding is vector
    assert again is vector
    assert fake_embeddings.calls == ["Loafers"]


async def test_embed_propagates_service_errors(fake_embeddings):
    fake_embeddings.error = EmbeddingServiceError("rate limited", transient=True)
    builder = ProfileBuilder(fake_embeddings, max_items=5)
    profile = builder.build([make_item(1, title="Loafers")])

    with pytest.raises(EmbeddingServiceError):
        await builder.embed(profile)
    assert profile.embedding is None

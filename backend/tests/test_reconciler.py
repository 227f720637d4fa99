from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sync_engine.models import Card, CardMeta
from sync_engine.reconciler import merge_from_json, merge_from_secondary, stamp_changes


def card(cid, type="scene", title="", content="", tags=None, version=1, ts=1000):
    return Card(id=cid, type=type, title=title, content=content, tags=tags or [], meta=CardMeta(version, ts))


def test_secondary_text_wins_when_present_and_meta_comes_from_index():
    index = [card("a", title="Old", content="old body", tags=["t1"], version=4, ts=500)]
    primary = [Card(id="a", type="", title="New", content="")]
    (merged,) = merge_from_secondary(primary, index)
    assert (merged.type, merged.title, merged.content) == ("scene", "New", "old body")
    assert merged.tags == ["t1"]
    assert merged.meta == CardMeta(4, 500)


def test_secondary_order_then_unconsumed_index_cards():
    index = [card("a"), card("b"), card("c")]
    primary = [card("c"), card("new", type=""), card("a")]
    merged = merge_from_secondary(primary, index)
    assert [c.id for c in merged] == ["c", "new", "a", "b"]
    new = merged[1]
    assert new.type == "unknown" and new.tags == [] and new.meta.version == 1


def test_secondary_never_drops_index_cards():
    index = [card("a", content="keep me"), card("b")]
    merged = merge_from_secondary([], index)
    assert [c.id for c in merged] == ["a", "b"]
    assert merged[0].content == "keep me"


def test_secondary_duplicate_ids_keep_first():
    merged = merge_from_secondary([card("a", title="first"), card("a", title="second")], [])
    assert [(c.id, c.title) for c in merged] == [("a", "first")]


def test_merge_from_json_prefers_index_text():
    index = [card("a", title="", content="index body", tags=["x"], version=3)]
    secondary = [Card(id="a", type="note", title="From outline", content="outline body")]
    (merged,) = merge_from_json(index, secondary)
    assert (merged.type, merged.title, merged.content) == ("scene", "From outline", "index body")
    assert merged.tags == ["x"] and merged.meta.version == 3


def test_merge_from_json_appends_secondary_only_cards():
    index = [card("b"), card("a")]
    secondary = [Card(id="a"), Card(id="z", type="", title="Extra")]
    merged = merge_from_json(index, secondary)
    assert [c.id for c in merged] == ["b", "a", "z"]
    assert merged[2].type == "unknown"


def test_merges_do_not_alias_inputs():
    index = [card("a", tags=["t"])]
    merged = merge_from_secondary([], index)
    merged[0].tags.append("mutated")
    assert index[0].tags == ["t"]


def test_stamp_changes_bumps_only_edited_cards():
    previous = [card("a", content="same", version=2, ts=10), card("b", content="before", version=5, ts=10)]
    merged = [card("a", content="same", version=2, ts=10), card("b", content="after", version=5, ts=10),
              card("c", content="fresh", version=1, ts=99)]
    out = stamp_changes(merged, previous, now=2000)
    assert [(c.id, c.meta.version, c.meta.updatedAt) for c in out] == [("a", 2, 10), ("b", 6, 2000), ("c", 1, 99)]

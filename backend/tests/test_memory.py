from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

from services.memory_service import MemoryService, cosine, embed_text


def test_embedding_is_normalised_and_deterministic():
    v = embed_text("the lighthouse keeper")
    assert v == embed_text("the lighthouse keeper")
    assert abs(sum(x * x for x in v) - 1.0) < 1e-3
    assert embed_text("") == [0.0] * len(v)


def test_add_texts_skips_blank_and_known_texts(tmp_path: Path):
    mem = MemoryService(tmp_path / "mem0.json")
    assert mem.add_texts([{"text": "Storm at sea.", "source": "init"}, {"text": "  "}, {"text": "Storm at sea."}])
    mem.add_texts([{"text": "Storm at sea.", "source": "again"}])
    records = mem.load()
    assert [(r["text"], r["source"]) for r in records] == [("Storm at sea.", "init")]


def test_search_ranks_related_text_first(tmp_path: Path):
    mem = MemoryService(tmp_path / "mem0.json")
    mem.add_text("The lighthouse keeper climbs the tower", "api", ["keeper"])
    mem.add_text("A market full of spices and merchants", "api")
    hits = mem.search("lighthouse tower", 2)
    assert hits[0]["text"].startswith("The lighthouse keeper")
    assert hits[0]["tags"] == ["keeper"]
    assert hits[0]["score"] > hits[1]["score"]
    assert mem.search("", 5) == []


def test_corrupt_file_reads_as_empty(tmp_path: Path):
    path = tmp_path / "mem0.json"
    path.write_text("{{{", encoding="utf-8")
    mem = MemoryService(path)
    assert mem.load() == []
    assert mem.search("anything") == []


def test_cosine_of_identical_vectors():
    v = embed_text("quiet harbour")
    assert abs(cosine(v, v) - 1.0) < 1e-6

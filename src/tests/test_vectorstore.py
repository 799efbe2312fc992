from __future__ import annotations

import pytest

from src.rag.errors import DimensionMismatchError, NamespaceNotFoundError
from src.rag.types import Chunk, EmbeddedChunk
from src.vectorstore.inmemory import InMemoryNamespaceStore
from src.vectorstore.milvus import collection_name


def _embedded(text: str, vector: list[float]) -> EmbeddedChunk:
    return EmbeddedChunk(chunk=Chunk(text=text, metadata={"source": text}), vector=vector)


def test_upsert_creates_collection_on_first_use() -> None:
    store = InMemoryNamespaceStore()
    assert not store.collection_exists("docs")

    stored = store.upsert("docs", [_embedded("a", [1.0, 0.0]), _embedded("b", [0.0, 1.0])])

    assert stored == 2
    assert store.collection_exists("docs")
    assert store.count("docs") == 2
    assert store.collections["docs"].dimension == 2


def test_upsert_appends_without_deduplication() -> None:
    store = InMemoryNamespaceStore()
    store.upsert("docs", [_embedded("a", [1.0, 0.0])])
    store.upsert("docs", [_embedded("a", [1.0, 0.0])])

    assert store.count("docs") == 2


def test_upsert_empty_batch_is_noop() -> None:
    store = InMemoryNamespaceStore()

    assert store.upsert("docs", []) == 0
    assert not store.collection_exists("docs")


def test_upsert_rejects_dimension_change() -> None:
    store = InMemoryNamespaceStore()
    store.upsert("docs", [_embedded("a", [1.0, 0.0])])

    with pytest.raises(DimensionMismatchError):
        store.upsert("docs", [_embedded("b", [1.0, 0.0, 0.0])])

    assert store.count("docs") == 1


def test_upsert_rejects_mixed_batch() -> None:
    store = InMemoryNamespaceStore()

    with pytest.raises(DimensionMismatchError):
        store.upsert("docs", [_embedded("a", [1.0, 0.0]), _embedded("b", [1.0])])

    assert not store.collection_exists("docs")


def test_nearest_neighbors_orders_by_similarity() -> None:
    store = InMemoryNamespaceStore()
    store.upsert(
        "docs",
        [
            _embedded("far", [0.0, 1.0]),
            _embedded("near", [1.0, 0.1]),
            _embedded("middle", [1.0, 1.0]),
        ],
    )

    results = store.nearest_neighbors("docs", [1.0, 0.0], k=2)

    assert [result.chunk.text for result in results] == ["near", "middle"]
    assert results[0].score >= results[1].score


def test_nearest_neighbors_returns_all_when_fewer_than_k() -> None:
    store = InMemoryNamespaceStore()
    store.upsert("docs", [_embedded("only", [1.0, 0.0])])

    assert len(store.nearest_neighbors("docs", [1.0, 0.0], k=4)) == 1


def test_nearest_neighbors_unknown_namespace() -> None:
    store = InMemoryNamespaceStore()

    with pytest.raises(NamespaceNotFoundError) as excinfo:
        store.nearest_neighbors("missing", [1.0], k=1)

    assert str(excinfo.value) == "Namespace not found: missing"


def test_namespaces_are_isolated() -> None:
    store = InMemoryNamespaceStore()
    store.upsert("alpha", [_embedded("alpha text", [1.0, 0.0])])
    store.upsert("beta", [_embedded("beta text", [1.0, 0.0, 0.0])])

    results = store.nearest_neighbors("alpha", [1.0, 0.0], k=4)

    assert [result.chunk.text for result in results] == ["alpha text"]
    assert store.count("beta") == 1
    assert store.health() == {"backend": "memory", "ok": True, "detail": "2 namespaces"}


def test_collection_name_keeps_legal_names() -> None:
    assert collection_name("docs") == "docs"
    assert collection_name("docs", prefix="rag_") == "rag_docs"


def test_collection_name_rewrites_illegal_characters() -> None:
    dashed = collection_name("my-docs")
    spaced = collection_name("my docs")

    assert dashed.startswith("my_docs_")
    assert spaced.startswith("my_docs_")
    assert dashed != spaced
    assert dashed != collection_name("my_docs")
    assert all(ch.isalnum() or ch == "_" for ch in dashed)


def test_collection_name_never_starts_with_digit() -> None:
    name = collection_name("2024-reports")

    assert name.startswith("ns_")
    assert len(name) <= 255


def test_collection_name_truncates_long_names() -> None:
    name = collection_name("x" * 400)

    assert len(name) <= 255
    assert name != collection_name("x" * 401)

import uuid

import pytest

from docchat.errors import DeletionUnsupported, NamespaceNotFound, VectorStoreUnavailableError
from docchat.ingest.models import Segment, SegmentMetadata
from docchat.vectorstore import InMemoryVectorStore, NamespaceVectorStore, build_vector_store
from docchat.vectorstore.base import SearchResult, segment_metadata


def _segment(text: str, index: int, document_id: str = "doc-1", language=None) -> Segment:
    return Segment(
        content=text,
        metadata=SegmentMetadata(
            document_id=document_id,
            file_name="notes.txt",
            chunk_index=index,
            char_start=index * 10,
            char_end=index * 10 + len(text),
            language=language,
        ),
    )


def test_memory_store_ranks_by_cosine_distance(store: InMemoryVectorStore) -> None:
    segments = [_segment("east", 0), _segment("north", 1), _segment("diagonal", 2)]
    store.add("doc-1", segments, [[1.0, 0.0], [0.0, 1.0], [0.7, 0.7]])

    results = store.search("doc-1", [1.0, 0.1], k=2)

    assert [result.content for result in results] == ["east", "diagonal"]
    assert results[0].distance <= results[1].distance
    assert results[0].metadata["document_id"] == "doc-1"
    assert results[0].metadata["content_length"] == 4


def test_memory_store_keeps_namespaces_isolated(store: InMemoryVectorStore) -> None:
    store.add("doc-a", [_segment("alpha", 0, "doc-a")], [[1.0, 0.0]])
    store.add("doc-b", [_segment("beta", 0, "doc-b")], [[1.0, 0.0]])

    results = store.search("doc-a", [1.0, 0.0], k=10)

    assert [result.content for result in results] == ["alpha"]
    assert store.list_namespaces() == ["doc-a", "doc-b"]


def test_memory_store_unknown_namespace_returns_nothing(store: InMemoryVectorStore) -> None:
    assert store.search("doc-missing", [1.0, 0.0], k=4) == []
    assert not store.has_namespace("doc-missing")


def test_memory_store_upserts_identical_segments(store: InMemoryVectorStore) -> None:
    segment = _segment("alpha", 0)
    first = store.add("doc-1", [segment], [[1.0, 0.0]])
    second = store.add("doc-1", [segment], [[0.0, 1.0]])

    assert first == second
    assert len(store.search("doc-1", [1.0, 0.0], k=10)) == 1


def test_memory_store_rejects_mismatched_lengths(store: InMemoryVectorStore) -> None:
    with pytest.raises(ValueError):
        store.add("doc-1", [_segment("alpha", 0)], [])


def test_memory_store_delete_outcomes(store: InMemoryVectorStore) -> None:
    store.add("doc-1", [_segment("alpha", 0)], [[1.0, 0.0]])

    store.delete_namespace("doc-1")

    assert not store.has_namespace("doc-1")
    assert store.search("doc-1", [1.0, 0.0], k=4) == []
    with pytest.raises(NamespaceNotFound):
        store.delete_namespace("doc-1")


def test_backends_without_delete_report_unsupported() -> None:
    class AppendOnlyStore(NamespaceVectorStore):
        backend = "append-only"

        def add(self, namespace, segments, embeddings):
            return []

        def search(self, namespace, embedding, k):
            return []

        def has_namespace(self, namespace):
            return True

        def list_namespaces(self):
            return []

    with pytest.raises(DeletionUnsupported):
        AppendOnlyStore().delete_namespace("doc-1")


def test_segment_metadata_drops_unset_values() -> None:
    metadata = segment_metadata(_segment("alpha", 0))

    assert "language" not in metadata
    assert metadata["file_name"] == "notes.txt"


def test_search_result_score_is_clamped() -> None:
    assert SearchResult(id="x", content="", distance=0.25).score == 0.75
    assert SearchResult(id="x", content="", distance=1.5).score == 0.0


def test_build_vector_store_rejects_unknown_backend(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VECTOR_STORE", "faiss")
    from docchat.config import reset_settings_cache

    reset_settings_cache()

    with pytest.raises(VectorStoreUnavailableError):
        build_vector_store()


@pytest.fixture
def chroma_store():
    chromadb = pytest.importorskip("chromadb")
    from docchat.vectorstore.chroma_store import ChromaVectorStore

    return ChromaVectorStore(chromadb.EphemeralClient())


def test_chroma_store_round_trip_and_delete(chroma_store) -> None:
    namespace = f"doc-{uuid.uuid4()}"
    chroma_store.add(
        namespace,
        [_segment("east", 0, namespace, language="en"), _segment("north", 1, namespace)],
        [[1.0, 0.0], [0.0, 1.0]],
    )

    results = chroma_store.search(namespace, [1.0, 0.05], k=5)

    assert [result.content for result in results] == ["east", "north"]
    assert results[0].metadata["language"] == "en"
    assert namespace in chroma_store.list_namespaces()

    chroma_store.delete_namespace(namespace)

    assert chroma_store.search(namespace, [1.0, 0.0], k=5) == []
    with pytest.raises(NamespaceNotFound):
        chroma_store.delete_namespace(namespace)


def test_chroma_store_treats_invalid_names_as_missing(chroma_store) -> None:
    assert chroma_store.search("x", [1.0, 0.0], k=3) == []
    with pytest.raises(NamespaceNotFound):
        chroma_store.delete_namespace("not a valid name!")

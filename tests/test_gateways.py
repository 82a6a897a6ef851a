"""Tests for the embedding and vector index gateways."""

import json
import sys
import threading
import time
import types

import httpx
import numpy as np
import pytest

from docdesk.embeddings.base import get_embedder
from docdesk.embeddings.local import SentenceTransformerEmbedder
from docdesk.embeddings.ollama import OllamaEmbedder
from docdesk.errors import IndexQueryError, IndexWriteError, InvalidResponse, ServiceUnavailable
from docdesk.storage.base import get_vector_index
from docdesk.storage.chromadb import ChromaVectorIndex
from docdesk.storage.memory import InMemoryVectorIndex


def _ollama(handler):
    return OllamaEmbedder("http://ollama.test", "embeddinggemma:latest", transport=httpx.MockTransport(handler))


# -- Ollama --

def test_ollama_embed_sends_model_and_prompt():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"embedding": [0.1, 2, -3.5]})

    vector = _ollama(handler).embed("hello world")

    assert vector == [0.1, 2.0, -3.5]
    assert seen["path"] == "/api/embeddings"
    assert seen["body"] == {"model": "embeddinggemma:latest", "prompt": "hello world"}


def test_ollama_error_status_is_unavailable():
    embedder = _ollama(lambda request: httpx.Response(500, text="model not loaded"))
    with pytest.raises(ServiceUnavailable, match="500"):
        embedder.embed("x")


def test_ollama_connection_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ServiceUnavailable):
        _ollama(handler).embed("x")


@pytest.mark.parametrize("payload", [
    {},
    {"embedding": []},
    {"embedding": "nope"},
    {"embedding": [1.0, "two"]},
    {"embedding": [True, 1.0]},
    ["not", "a", "dict"],
])
def test_ollama_malformed_payload_is_invalid(payload):
    embedder = _ollama(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(InvalidResponse):
        embedder.embed("x")


def test_ollama_non_json_is_invalid():
    embedder = _ollama(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(InvalidResponse):
        embedder.embed("x")


# -- sentence-transformers --

class _FailingModel:
    def encode(self, text):
        raise RuntimeError("CUDA out of memory")


def test_local_encode_failure_is_unavailable():
    embedder = SentenceTransformerEmbedder("all-MiniLM-L6-v2")
    embedder._model = _FailingModel()

    with pytest.raises(ServiceUnavailable, match="CUDA out of memory"):
        embedder.embed("x")


def test_local_model_loads_once_across_threads(monkeypatch):
    loads = []

    class SlowModel:
        def __init__(self, name):
            loads.append(name)
            time.sleep(0.05)

        def encode(self, text):
            return np.array([float(len(text))])

    fake = types.ModuleType("sentence_transformers")
    fake.SentenceTransformer = SlowModel
    monkeypatch.setitem(sys.modules, "sentence_transformers", fake)

    embedder = SentenceTransformerEmbedder("all-MiniLM-L6-v2")
    results = []
    threads = [threading.Thread(target=lambda: results.append(embedder.embed("abc"))) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert loads == ["all-MiniLM-L6-v2"]
    assert results == [[3.0]] * 8


# -- Chroma --

def _chroma(handler):
    return ChromaVectorIndex("http://chroma.test:8000", transport=httpx.MockTransport(handler))


def test_chroma_health_falls_back_to_v1():
    paths = []

    def handler(request):
        paths.append(request.url.path)
        if request.url.path == "/api/v1/heartbeat":
            return httpx.Response(200, json={"nanosecond heartbeat": 1})
        return httpx.Response(404)

    _chroma(handler).health_check()
    assert paths == ["/api/v2/heartbeat", "/api/v1/heartbeat"]


def test_chroma_health_v2_short_circuits():
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(200, json={})

    _chroma(handler).health_check()
    assert paths == ["/api/v2/heartbeat"]


def test_chroma_health_fails_when_both_fail():
    def handler(request):
        if request.url.path.startswith("/api/v2"):
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(503)

    with pytest.raises(ServiceUnavailable, match="chroma.test"):
        _chroma(handler).health_check()


class FakeCollection:
    def __init__(self, raw=None, error=None):
        self.raw = raw
        self.error = error
        self.upserts = []

    def query(self, **kwargs):
        self.last_query = kwargs
        if self.error:
            raise self.error
        return self.raw

    def upsert(self, **kwargs):
        if self.error:
            raise self.error
        self.upserts.append(kwargs)

    def delete(self, **kwargs):
        raise self.error


def test_chroma_query_unwraps_first_result_list():
    index = ChromaVectorIndex("http://chroma.test:8000")
    index._collection = FakeCollection(raw={
        "ids": [["a:chunk:0", "b:chunk:1"]],
        "metadatas": [[{"documentId": "a"}, None]],
        "distances": [[0.1, None]],
        "documents": [["text a", None]],
    })

    result = index.query([0.1, 0.2], limit=5, document_id="a")

    assert result.ids == ["a:chunk:0", "b:chunk:1"]
    assert result.metadatas == [{"documentId": "a"}, {}]
    assert result.distances == [0.1, 1.0]
    assert result.documents == ["text a", ""]
    assert index._collection.last_query["n_results"] == 5
    assert index._collection.last_query["where"] == {"documentId": "a"}


def test_chroma_failures_are_wrapped():
    index = ChromaVectorIndex("http://chroma.test:8000")
    index._collection = FakeCollection(error=RuntimeError("boom"))

    with pytest.raises(IndexQueryError):
        index.query([0.1])
    with pytest.raises(IndexWriteError):
        index.upsert(["x"], [[0.1]], ["t"], [{}])
    with pytest.raises(IndexWriteError):
        index.delete_by_ids(["x"])


def test_chroma_empty_writes_are_noops():
    index = ChromaVectorIndex("http://chroma.test:8000")
    index._collection = FakeCollection(error=RuntimeError("should not be called"))
    index.upsert([], [], [], [])
    index.delete_by_ids([])


# -- in-memory index --

def test_memory_query_orders_by_distance_and_filters():
    index = InMemoryVectorIndex()
    index.upsert(
        ids=["a", "b", "c"],
        embeddings=[[1.0, 0.0], [0.7, 0.7], [0.0, 1.0]],
        documents=["A", "B", "C"],
        metadatas=[{"documentId": "d1"}, {"documentId": "d2"}, {"documentId": "d1"}],
    )

    result = index.query([1.0, 0.0], limit=10)
    assert result.ids == ["a", "b", "c"]
    assert result.distances[0] == pytest.approx(0.0)
    assert result.distances[2] == pytest.approx(1.0)

    assert index.query([1.0, 0.0], limit=1).ids == ["a"]
    assert index.query([1.0, 0.0], document_id="d1").ids == ["a", "c"]


def test_memory_zero_vector_has_distance_one():
    index = InMemoryVectorIndex()
    index.upsert(["a"], [[0.0, 0.0]], ["A"], [{}])
    assert index.query([1.0, 0.0]).distances == [pytest.approx(1.0)]


def test_memory_rejects_bad_input():
    index = InMemoryVectorIndex()
    with pytest.raises(IndexWriteError):
        index.upsert(["a", "b"], [[1.0]], ["A"], [{}])
    index.upsert(["a"], [[1.0, 0.0]], ["A"], [{}])
    with pytest.raises(IndexQueryError):
        index.query([1.0, 0.0, 0.0])


def test_memory_unhealthy():
    index = InMemoryVectorIndex()
    index.healthy = False
    with pytest.raises(ServiceUnavailable):
        index.health_check()
    with pytest.raises(IndexWriteError):
        index.upsert(["a"], [[1.0]], ["A"], [{}])
    with pytest.raises(IndexQueryError):
        index.query([1.0])


# -- factories --

def test_factories_pick_backends():
    assert isinstance(get_vector_index({"vector_backend": "memory"}), InMemoryVectorIndex)
    chroma = get_vector_index({"vector_backend": "chromadb", "chroma": {"base_url": "http://h:9000/"}})
    assert isinstance(chroma, ChromaVectorIndex)
    assert chroma.base_url == "http://h:9000"

    embedder = get_embedder({"embedding_backend": "ollama", "ollama": {"model": "m1"}})
    assert isinstance(embedder, OllamaEmbedder)
    assert embedder.model_name == "m1"


def test_factories_reject_unknown_backends():
    with pytest.raises(ValueError):
        get_vector_index({"vector_backend": "faiss"})
    with pytest.raises(ValueError):
        get_embedder({"embedding_backend": "openai"})

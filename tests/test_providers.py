import json
import math

import httpx
import pytest

from docchat.config import get_settings
from docchat.errors import EmbeddingProviderError, GenerationProviderError
from docchat.providers import (
    EmbeddingIntent,
    GeminiEmbeddingProvider,
    GeminiGenerationProvider,
    GenerationConfig,
    HashingEmbeddingProvider,
    StubGenerationProvider,
    build_embedding_provider,
    build_generation_provider,
)

BASE_URL = "https://gemini.test/v1beta"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.anyio
async def test_hashing_embeddings_are_deterministic_and_normalised() -> None:
    provider = HashingEmbeddingProvider(dimension=64)

    first = await provider.embed(["The sky is blue."], EmbeddingIntent.DOCUMENT)
    second = await provider.embed(["The sky is blue."], EmbeddingIntent.QUERY)

    assert first == second
    assert len(first[0]) == 64
    assert math.isclose(sum(value * value for value in first[0]), 1.0)


@pytest.mark.anyio
async def test_hashing_embeddings_rank_shared_vocabulary_closer() -> None:
    provider = HashingEmbeddingProvider()
    sky, grass, query = provider.vectorize("the sky is blue"), provider.vectorize("grass grows"), provider.vectorize("what color is the sky")

    def cosine(a, b):
        return sum(x * y for x, y in zip(a, b))

    assert cosine(query, sky) > cosine(query, grass)


def test_hashing_rejects_non_positive_dimension() -> None:
    with pytest.raises(ValueError):
        HashingEmbeddingProvider(dimension=0)


@pytest.mark.anyio
async def test_stub_generation_echoes_prompt_prefix() -> None:
    provider = StubGenerationProvider()

    answer = await provider.generate("x" * 500)

    assert answer == "STUB_ANSWER: " + "x" * 100


@pytest.mark.anyio
async def test_gemini_embeddings_send_task_type_and_batch() -> None:
    requests: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1beta/models/text-embedding-004:batchEmbedContents"
        assert request.headers["x-goog-api-key"] == "secret"
        body = json.loads(request.content)
        requests.append(body)
        return httpx.Response(
            200, json={"embeddings": [{"values": [float(i), 1.0]} for i, _ in enumerate(body["requests"])]}
        )

    provider = GeminiEmbeddingProvider(
        "secret", "text-embedding-004", base_url=BASE_URL, http_client=_client(handler)
    )

    vectors = await provider.embed([f"text {i}" for i in range(150)], EmbeddingIntent.DOCUMENT)
    query_vector = await provider.embed_query("question")

    assert len(vectors) == 150
    assert [len(body["requests"]) for body in requests] == [100, 50, 1]
    assert requests[0]["requests"][0] == {
        "model": "models/text-embedding-004",
        "content": {"parts": [{"text": "text 0"}]},
        "taskType": "RETRIEVAL_DOCUMENT",
    }
    assert requests[-1]["requests"][0]["taskType"] == "RETRIEVAL_QUERY"
    assert query_vector == [0.0, 1.0]


@pytest.mark.anyio
async def test_gemini_embedding_http_error_is_typed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"message": "quota"}})

    provider = GeminiEmbeddingProvider("secret", "text-embedding-004", base_url=BASE_URL, http_client=_client(handler))

    with pytest.raises(EmbeddingProviderError) as excinfo:
        await provider.embed(["hello"], EmbeddingIntent.QUERY)

    assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)


@pytest.mark.anyio
async def test_gemini_embedding_count_mismatch_is_an_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"embeddings": []})

    provider = GeminiEmbeddingProvider("secret", "text-embedding-004", base_url=BASE_URL, http_client=_client(handler))

    with pytest.raises(EmbeddingProviderError):
        await provider.embed(["hello"], EmbeddingIntent.DOCUMENT)


@pytest.mark.anyio
async def test_gemini_generation_sends_config_and_joins_parts() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "world"}]}}]},
        )

    provider = GeminiGenerationProvider(
        "secret",
        "gemini-2.0-flash",
        base_url=BASE_URL,
        http_client=_client(handler),
        generation_config=GenerationConfig(),
    )

    answer = await provider.generate("Say hello")

    assert answer == "Hello world"
    assert seen["path"] == "/v1beta/models/gemini-2.0-flash:generateContent"
    assert seen["body"]["contents"] == [{"role": "user", "parts": [{"text": "Say hello"}]}]
    assert seen["body"]["generationConfig"] == {
        "temperature": 0.9,
        "topP": 1.0,
        "topK": 32,
        "maxOutputTokens": 4096,
    }


@pytest.mark.anyio
async def test_gemini_generation_blocked_prompt_is_an_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

    provider = GeminiGenerationProvider("secret", "gemini-2.0-flash", base_url=BASE_URL, http_client=_client(handler))

    with pytest.raises(GenerationProviderError, match="SAFETY"):
        await provider.generate("anything")


@pytest.mark.anyio
async def test_gemini_connection_error_is_typed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    provider = GeminiGenerationProvider("secret", "gemini-2.0-flash", base_url=BASE_URL, http_client=_client(handler))

    with pytest.raises(GenerationProviderError, match="Could not reach Gemini"):
        await provider.generate("anything")


def test_gemini_requires_api_key() -> None:
    with pytest.raises(GenerationProviderError):
        GeminiGenerationProvider("", "gemini-2.0-flash")


def test_factories_follow_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    assert isinstance(build_embedding_provider(get_settings()), HashingEmbeddingProvider)
    assert isinstance(build_generation_provider(get_settings()), StubGenerationProvider)


def test_factories_build_gemini_when_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "secret")
    monkeypatch.setenv("LLM_PROVIDER", "gemini")
    monkeypatch.setenv("EMBEDDING_PROVIDER", "gemini")
    monkeypatch.setenv("LLM_TEMPERATURE", "0.2")
    get_settings.cache_clear()

    generation = build_generation_provider()
    embedding = build_embedding_provider()

    assert isinstance(generation, GeminiGenerationProvider)
    assert generation.generation_config.temperature == 0.2
    assert isinstance(embedding, GeminiEmbeddingProvider)


def test_unknown_provider_names_are_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "nope")
    monkeypatch.setenv("EMBEDDING_PROVIDER", "nope")
    get_settings.cache_clear()

    with pytest.raises(GenerationProviderError):
        build_generation_provider()
    with pytest.raises(EmbeddingProviderError):
        build_embedding_provider()


class FakeSentenceModel:
    def __init__(self) -> None:
        self.inputs: list[list[str]] = []

    def encode(self, inputs, **kwargs):
        self.inputs.append(list(inputs))
        assert kwargs["normalize_embeddings"] is True
        return [[1.0, 0.0] for _ in inputs]


@pytest.mark.anyio
async def test_local_provider_applies_intent_prefixes() -> None:
    from docchat.providers.local import SentenceTransformerEmbeddingProvider

    model = FakeSentenceModel()
    provider = SentenceTransformerEmbeddingProvider(
        "intfloat/multilingual-e5-small", query_prefix="query: ", document_prefix="passage: ", model=model
    )

    documents = await provider.embed(["alpha", "beta"], EmbeddingIntent.DOCUMENT)
    query = await provider.embed_query("gamma")

    assert documents == [[1.0, 0.0], [1.0, 0.0]]
    assert query == [1.0, 0.0]
    assert model.inputs == [["passage: alpha", "passage: beta"], ["query: gamma"]]
